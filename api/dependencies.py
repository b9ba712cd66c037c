"""Shared FastAPI dependencies: host adapter and blob store built from settings"""

from __future__ import annotations

from core.blob_store import JsonFileBlobStore
from core.config import settings
from core.host import LocalFsAdapter

_host: LocalFsAdapter | None = None
_blob_store: JsonFileBlobStore | None = None


def get_host() -> LocalFsAdapter:
    global _host
    if _host is None:
        _host = LocalFsAdapter(settings.VAULT_ROOT)
    return _host


def get_blob_store() -> JsonFileBlobStore:
    global _blob_store
    if _blob_store is None:
        _blob_store = JsonFileBlobStore(settings.store_config(), get_host())
    return _blob_store
