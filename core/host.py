"""Host file-system adapter interface and a local directory implementation."""

from __future__ import annotations

import contextlib
import os
import posixpath
import tempfile
from pathlib import Path
from typing import Protocol, runtime_checkable


@runtime_checkable
class HostAdapter(Protocol):
    """What the store needs from the host application's file system.

    Paths are vault-relative, ``/``-separated strings.
    """

    def path_join(self, *segments: str) -> str:
        ...

    def exists(self, path: str) -> bool:
        ...

    def read(self, path: str) -> str:
        ...

    def write(self, path: str, text: str) -> None:
        ...

    def mkdir(self, path: str) -> None:
        ...


class LocalFsAdapter:
    """Host adapter over a local directory (the vault root).

    ``write`` replaces the target atomically: the text goes to a temporary
    file in the same directory which is then ``os.replace``d over the target.
    """

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root)

    @property
    def root(self) -> Path:
        return self._root

    def local_path(self, path: str) -> Path:
        """Resolve a vault-relative path, refusing anything outside the root."""
        root = self._root.resolve()
        candidate = (self._root / path).resolve()
        try:
            candidate.relative_to(root)
        except ValueError:
            raise ValueError(f"Path {path!r} resolves outside vault root") from None
        return candidate

    def path_join(self, *segments: str) -> str:
        return posixpath.normpath(posixpath.join(*segments)) if segments else ""

    def exists(self, path: str) -> bool:
        return self.local_path(path).exists()

    def read(self, path: str) -> str:
        return self.local_path(path).read_text(encoding="utf-8")

    def write(self, path: str, text: str) -> None:
        target = self.local_path(path)
        fd, tmp_name = tempfile.mkstemp(dir=str(target.parent), prefix=f".{target.name}.", suffix=".tmp")
        tmp_path: Path | None = Path(tmp_name)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(text)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, target)
            tmp_path = None
        finally:
            if tmp_path is not None:
                with contextlib.suppress(OSError):
                    tmp_path.unlink()

    def mkdir(self, path: str) -> None:
        self.local_path(path).mkdir(parents=True, exist_ok=True)

    def list_documents(self, suffix: str = ".md") -> list[str]:
        """Return vault-relative paths of every document with ``suffix``, skipping dot-directories."""
        root = self._root.resolve()
        paths: list[str] = []
        for path in sorted(root.rglob(f"*{suffix}")):
            rel = path.relative_to(root)
            if any(part.startswith(".") for part in rel.parts[:-1]):
                continue
            if path.is_file():
                paths.append(rel.as_posix())
        return paths
