"""Blob store interface and the JSON side-car map implementation."""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Iterable
from typing import Protocol, runtime_checkable

from core.allocator import allocate
from core.config import StoreConfig
from core.errors import InvalidTargetError, StorageIOError
from core.host import HostAdapter
from core.locks import StoreLock
from core.models import StoreSnapshot

logger = logging.getLogger(__name__)


@runtime_checkable
class BlobStore(Protocol):
    """Identifier -> payload store used by the ingest, render and GC paths."""

    @property
    def generation(self) -> int:
        """Counter bumped by every insert, including deduplicated ones."""
        ...

    def open(self) -> StoreSnapshot:
        """Ensure the backing storage exists and return a fresh snapshot."""
        ...

    def insert(self, payload: str, destination: str) -> str:
        """Store payload (deduplicated by value) and return its identifier."""
        ...

    def resolve(self, identifier: str) -> str | None:
        """Return the payload for identifier, or None when it is not stored."""
        ...

    def delete(self, identifier: str, *, unclaimed_since: int | None = None) -> bool:
        """Remove one entry. Return True when something was removed."""
        ...

    def delete_many(self, identifiers: Iterable[str], *, unclaimed_since: int | None = None) -> list[str]:
        """Remove several entries with a single persist. Return the removed ids."""
        ...

    def keys(self) -> set[str]:
        """Return every stored identifier."""
        ...


class _ClaimLedger:
    """Identifiers handed out by insert, stamped with the generation they were handed out at.

    Only touched while the owning store lock is held.
    """

    def __init__(self) -> None:
        self.generation = 0
        self.claims: dict[str, int] = {}

    def claim(self, identifier: str) -> None:
        self.generation += 1
        self.claims[identifier] = self.generation

    def claimed_since(self, identifier: str, generation: int) -> bool:
        return self.claims.get(identifier, 0) > generation

    def release(self, identifiers: Iterable[str]) -> None:
        for identifier in identifiers:
            self.claims.pop(identifier, None)


# One ledger per backing file, shared by every store object in the process
_ledgers: dict[str, _ClaimLedger] = {}
_ledgers_guard = threading.Lock()


def _ledger_for(key: str) -> _ClaimLedger:
    with _ledgers_guard:
        ledger = _ledgers.get(key)
        if ledger is None:
            ledger = _ledgers[key] = _ClaimLedger()
        return ledger


class JsonFileBlobStore:
    """Blob store persisted as one pretty-printed JSON object.

    Layout: {vault}/{store_directory}/{store_filename} -> {"<id>": "<data uri>", ...}

    Every access reloads the whole map and every mutation rewrites it, all
    under a :class:`StoreLock` keyed by the backing path.

    Deletes may pass ``unclaimed_since`` (a :attr:`generation` read before the
    caller decided what to delete). Entries that ``insert`` handed out after
    that point, including a deduplicated re-paste of the same payload, are
    kept. The ledger is per process; inserts from another process are not seen.
    """

    def __init__(self, config: StoreConfig, host: HostAdapter) -> None:
        self._config = config
        self._host = host
        self._dir_path = host.path_join(config.store_directory)
        self._file_path = host.path_join(config.store_directory, config.store_filename)
        self._snapshot: StoreSnapshot | None = None

        local_path = None
        local_resolver = getattr(host, "local_path", None)
        if callable(local_resolver):
            try:
                local_path = local_resolver(self._file_path)
            except (OSError, ValueError) as exc:
                raise StorageIOError(f"Invalid store location {self._file_path}: {exc}", path=self._file_path) from exc
        lock_key = str(local_path) if local_path is not None else f"{id(host)}:{self._file_path}"
        self._lock = StoreLock(lock_key, local_path=local_path, timeout=config.lock_timeout_seconds)
        self._ledger = _ledger_for(lock_key)

    @property
    def config(self) -> StoreConfig:
        return self._config

    @property
    def file_path(self) -> str:
        return self._file_path

    @property
    def snapshot(self) -> StoreSnapshot | None:
        """Last snapshot loaded; None before the first load or after a storage failure."""
        return self._snapshot

    @property
    def generation(self) -> int:
        return self._ledger.generation

    # -- backing file -------------------------------------------------------

    def _ensure_backing(self) -> None:
        try:
            if not self._host.exists(self._dir_path):
                self._host.mkdir(self._dir_path)
                logger.info("Created store directory %s", self._dir_path)
            if not self._host.exists(self._file_path):
                self._host.write(self._file_path, json.dumps({}, indent=2))
                logger.info("Created empty store file %s", self._file_path)
        except (OSError, ValueError, AttributeError) as exc:
            self._snapshot = None
            raise StorageIOError(f"Could not prepare store at {self._file_path}: {exc}", path=self._file_path) from exc

    def _load(self) -> StoreSnapshot:
        self._ensure_backing()
        try:
            raw = json.loads(self._host.read(self._file_path))
        except (OSError, ValueError, AttributeError) as exc:
            self._snapshot = None
            raise StorageIOError(f"Could not read store file {self._file_path}: {exc}", path=self._file_path) from exc

        if not isinstance(raw, dict) or not all(isinstance(k, str) and isinstance(v, str) for k, v in raw.items()):
            self._snapshot = None
            raise StorageIOError(
                f"Store file {self._file_path} is not a flat object of strings",
                path=self._file_path,
            )

        self._snapshot = StoreSnapshot(entries=raw)
        return self._snapshot

    def _save(self, entries: dict[str, str]) -> StoreSnapshot:
        try:
            self._host.write(self._file_path, json.dumps(entries, indent=2, ensure_ascii=False))
        except (OSError, ValueError, AttributeError) as exc:
            self._snapshot = None
            raise StorageIOError(f"Could not write store file {self._file_path}: {exc}", path=self._file_path) from exc
        self._snapshot = StoreSnapshot(entries=entries)
        return self._snapshot

    # -- public operations --------------------------------------------------

    def open(self) -> StoreSnapshot:
        with self._lock.hold():
            return self._load()

    def insert(self, payload: str, destination: str) -> str:
        if not destination:
            raise InvalidTargetError(destination=destination)

        with self._lock.hold():
            snapshot = self._load()

            existing = snapshot.find_identifier(payload)
            if existing is not None:
                self._ledger.claim(existing)
                logger.debug("Payload already stored as %s, skipping write", existing)
                return existing

            identifier = allocate(snapshot.keys(), max_attempts=self._config.allocator_max_attempts)
            entries = dict(snapshot.entries)
            entries[identifier] = payload
            self._save(entries)
            self._ledger.claim(identifier)

        logger.info("Stored new image %s for %s (%d chars)", identifier, destination, len(payload))
        return identifier

    def resolve(self, identifier: str) -> str | None:
        return self.open().get(identifier)

    def delete(self, identifier: str, *, unclaimed_since: int | None = None) -> bool:
        return bool(self.delete_many([identifier], unclaimed_since=unclaimed_since))

    def delete_many(self, identifiers: Iterable[str], *, unclaimed_since: int | None = None) -> list[str]:
        wanted = list(dict.fromkeys(identifiers))
        if not wanted:
            return []

        with self._lock.hold():
            snapshot = self._load()
            removed = [identifier for identifier in wanted if identifier in snapshot]
            if unclaimed_since is not None:
                reclaimed = [i for i in removed if self._ledger.claimed_since(i, unclaimed_since)]
                if reclaimed:
                    logger.info("Keeping %d image(s) stored again since the scan: %s", len(reclaimed), ", ".join(reclaimed))
                    removed = [i for i in removed if i not in reclaimed]
            if not removed:
                return []
            doomed = set(removed)
            entries = {k: v for k, v in snapshot.entries.items() if k not in doomed}
            self._save(entries)
            self._ledger.release(removed)

        logger.info("Deleted %d image(s) from %s: %s", len(removed), self._file_path, ", ".join(removed))
        return removed

    def keys(self) -> set[str]:
        return self.open().keys()
