"""Tests for core/models.py, core/config.py, core/errors.py and core/ingest.py"""

from __future__ import annotations

import io

import pytest
from pydantic import ValidationError

from core.blob_store import JsonFileBlobStore
from core.config import Settings, StoreConfig
from core.errors import (
    EncodingError,
    IdentifierExhaustedError,
    ImageStoreError,
    InvalidTargetError,
    StorageIOError,
)
from core.host import LocalFsAdapter
from core.ingest import embed_bytes, embed_file, embed_html, embed_many, embed_payload
from core.models import GcMode, PayloadCreateRequest, StoreSnapshot
from core.scanner import scan


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------


class TestStoreSnapshot:
    def test_lookup(self):
        snapshot = StoreSnapshot(entries={"a": "p1", "b": "p2"})
        assert len(snapshot) == 2
        assert "a" in snapshot
        assert snapshot.get("b") == "p2"
        assert snapshot.get("z") is None
        assert snapshot.keys() == {"a", "b"}

    def test_find_identifier_by_payload(self):
        snapshot = StoreSnapshot(entries={"a": "p1", "b": "p2"})
        assert snapshot.find_identifier("p2") == "b"
        assert snapshot.find_identifier("p3") is None

    def test_frozen(self):
        snapshot = StoreSnapshot(entries={})
        with pytest.raises(ValidationError):
            snapshot.entries = {"a": "b"}


class TestPayloadCreateRequest:
    def test_payload_only(self):
        req = PayloadCreateRequest(payload="data:,x", destination="a.md")
        assert req.html is None

    def test_both_sources_rejected(self):
        with pytest.raises(ValidationError):
            PayloadCreateRequest(payload="data:,x", html="<img src='x'>", destination="a.md")

    def test_no_source_rejected(self):
        with pytest.raises(ValidationError):
            PayloadCreateRequest(destination="a.md")


# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------


class TestConfig:
    def test_defaults(self):
        config = StoreConfig()
        assert config.store_directory == ".image-base64"
        assert config.store_filename == "image-base64.json"

    def test_blank_names_rejected(self):
        with pytest.raises(ValidationError):
            StoreConfig(store_filename="  ")

    def test_settings_build_store_config(self):
        settings = Settings(STORE_DIRECTORY="imgs", STORE_FILENAME="map.json", LOCK_TIMEOUT_SECONDS=2.5)
        config = settings.store_config()
        assert config == StoreConfig(store_directory="imgs", store_filename="map.json", lock_timeout_seconds=2.5)

    def test_settings_from_env(self, monkeypatch):
        monkeypatch.setenv("GC_MODE", "automatic")
        monkeypatch.setenv("STORE_DIRECTORY", ".attachments")
        settings = Settings()
        assert settings.GC_MODE is GcMode.automatic
        assert settings.store_config().store_directory == ".attachments"


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class TestErrors:
    def test_hierarchy(self):
        for cls in (EncodingError, InvalidTargetError, StorageIOError, IdentifierExhaustedError):
            assert issubclass(cls, ImageStoreError)

    def test_response_body(self):
        body = StorageIOError("disk gone", path=".image-base64/image-base64.json").to_response_body()
        assert body == {
            "detail": "disk gone",
            "error": "StorageIOError",
            "context": {"path": ".image-base64/image-base64.json"},
        }

    def test_invalid_target_default_notice(self):
        exc = InvalidTargetError(destination="")
        assert str(exc) == "Invalid file path."
        assert exc.status_code == 400

    def test_exhausted_attempts(self):
        exc = IdentifierExhaustedError(7)
        assert exc.attempts == 7
        assert "7" in str(exc)


# ---------------------------------------------------------------------------
# Ingest
# ---------------------------------------------------------------------------


@pytest.fixture()
def blob_store(tmp_path):
    return JsonFileBlobStore(StoreConfig(), LocalFsAdapter(tmp_path))


class TestIngest:
    def test_embed_bytes_marker_references_store(self, blob_store: JsonFileBlobStore):
        created = embed_bytes(blob_store, io.BytesIO(b"img"), "image/png", "notes/a.md", name="shot")

        assert created.name == "shot"
        assert scan([created.marker]) >= {created.id}
        assert blob_store.resolve(created.id) == "data:image/png;base64,aW1n"

    def test_embed_payload_default_name(self, blob_store: JsonFileBlobStore):
        created = embed_payload(blob_store, "data:,x", "a.md")
        assert created.name.startswith("pasted-image-")

    def test_embed_many_separates_markers(self, blob_store: JsonFileBlobStore):
        created = embed_many(blob_store, [(b"one", "image/png"), (b"two", "image/png")], "a.md")
        assert len({c.id for c in created}) == 2
        assert all(c.marker.endswith("```\n\n") for c in created)

    def test_embed_single_no_trailing_blank(self, blob_store: JsonFileBlobStore):
        [created] = embed_many(blob_store, [(b"one", "image/png")], "a.md")
        assert created.marker.endswith("```\n")
        assert not created.marker.endswith("\n\n")

    def test_empty_destination_leaves_store_untouched(self, blob_store: JsonFileBlobStore):
        with pytest.raises(InvalidTargetError):
            embed_bytes(blob_store, b"img", "image/png", "")
        assert blob_store.keys() == set()

    def test_embed_html(self, blob_store: JsonFileBlobStore):
        created = embed_html(blob_store, '<img src="https://example.com/cat.png">', "a.md")
        assert blob_store.resolve(created.id) == "https://example.com/cat.png"

    def test_embed_html_without_src(self, blob_store: JsonFileBlobStore):
        with pytest.raises(EncodingError):
            embed_html(blob_store, "<p>nothing</p>", "a.md")

    def test_embed_file_names_after_stem(self, blob_store: JsonFileBlobStore, tmp_path):
        path = tmp_path / "diagram.png"
        path.write_bytes(b"img")
        created = embed_file(blob_store, path, "a.md")
        assert created.name == "diagram"
        assert blob_store.resolve(created.id) == "data:image/png;base64,aW1n"

    def test_current_line_places_marker(self, blob_store: JsonFileBlobStore):
        on_empty = embed_payload(blob_store, "data:,x", "a.md", name="n", current_line="")
        on_text = embed_payload(blob_store, "data:,x", "a.md", name="n", current_line="text")
        assert on_text.marker == f"\n{on_empty.marker}\n"
