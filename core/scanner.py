"""Find identifiers still referenced by documents (the live set)."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping

from core.errors import StorageIOError
from core.host import HostAdapter
from core.markers import FENCE, MARKER_TAG
from core.models import DocumentReference

logger = logging.getLogger(__name__)

# Reserved slot for encrypted image data; never garbage-collected
SENTINEL_ID = "encryptedImageJsonData"

_BLOCK_RE = re.compile(re.escape(FENCE + MARKER_TAG) + r"([\s\S]*?)" + re.escape(FENCE))
_ID_RE = re.compile(r"^[ \t]*id:[ \t]*(\S[^\r\n]*?)[ \t]*\r?$", re.MULTILINE)
_NAME_RE = re.compile(r"^[ \t]*name:[ \t]*(\S[^\r\n]*?)[ \t]*\r?$", re.MULTILINE)


def extract_identifiers(text: str) -> list[str]:
    """Identifiers of every marker block in one document, in order of appearance.

    Blocks without an ``id:`` line contribute nothing.
    """
    identifiers: list[str] = []
    for block in _BLOCK_RE.finditer(text):
        match = _ID_RE.search(block.group(1))
        if match is not None:
            identifiers.append(match.group(1))
    return identifiers


def extract_references(document_path: str, text: str) -> list[DocumentReference]:
    references: list[DocumentReference] = []
    for block in _BLOCK_RE.finditer(text):
        body = block.group(1)
        id_match = _ID_RE.search(body)
        if id_match is None:
            continue
        name_match = _NAME_RE.search(body)
        references.append(DocumentReference(
            document_path=document_path,
            display_name=name_match.group(1) if name_match else "",
            identifier=id_match.group(1),
        ))
    return references


def scan(documents: Iterable[str] | Mapping[str, str]) -> set[str]:
    """Return the live set for a corpus: every referenced id plus the sentinel.

    ``documents`` is either an iterable of texts or a mapping of path -> text.
    """
    texts = documents.values() if isinstance(documents, Mapping) else documents
    live = {SENTINEL_ID}
    for text in texts:
        live.update(extract_identifiers(text))
    return live


def load_corpus(host: HostAdapter, paths: Iterable[str]) -> dict[str, str]:
    """Read documents through the host.

    An unreadable document aborts the scan: its references would otherwise
    drop out of the live set and their entries would look orphaned.
    """
    corpus: dict[str, str] = {}
    for path in paths:
        try:
            corpus[path] = host.read(path)
        except (OSError, UnicodeDecodeError, ValueError) as exc:
            raise StorageIOError(f"Could not read document {path}: {exc}", path=path) from exc
    logger.debug("Loaded %d document(s) for reference scan", len(corpus))
    return corpus


def scan_corpus(host: HostAdapter, paths: Iterable[str]) -> set[str]:
    return scan(load_corpus(host, paths))
