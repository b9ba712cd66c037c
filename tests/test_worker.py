"""Tests for the scheduled GC worker task (gc.collect_unreferenced)"""

from __future__ import annotations

import json
from unittest.mock import patch

import pytest

from core.blob_store import JsonFileBlobStore
from core.config import Settings
from core.host import LocalFsAdapter
from core.markers import render_marker
from core.models import GcMode
from core.scanner import SENTINEL_ID
from worker.tasks.gc import _collect_unreferenced_impl, collect_unreferenced


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def vault(tmp_path):
    return LocalFsAdapter(tmp_path)


def _settings(vault: LocalFsAdapter, mode: GcMode) -> Settings:
    return Settings(VAULT_ROOT=str(vault.root), GC_MODE=mode)


@pytest.fixture
def seeded(vault: LocalFsAdapter) -> dict[str, str]:
    # Two stored images, one referenced from a note in a subfolder
    store = JsonFileBlobStore(_settings(vault, GcMode.automatic).store_config(), vault)
    kept = store.insert("data:image/png;base64,KEEP", "notes/a.md")
    orphan = store.insert("data:image/png;base64,GONE", "notes/a.md")

    notes = vault.root / "notes"
    notes.mkdir()
    (notes / "a.md").write_text("# A\n\n" + render_marker("kept", kept), encoding="utf-8")
    return {"kept": kept, "orphan": orphan}


def _keys(vault: LocalFsAdapter) -> set[str]:
    return JsonFileBlobStore(Settings(VAULT_ROOT=str(vault.root)).store_config(), vault).keys()


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------

def test_automatic_mode_deletes_orphans(vault: LocalFsAdapter, seeded):
    result = _collect_unreferenced_impl(_settings(vault, GcMode.automatic))

    assert result["mode"] == "automatic"
    assert result["deleted"] == [seeded["orphan"]]
    assert _keys(vault) == {seeded["kept"]}


def test_interactive_mode_only_reports(vault: LocalFsAdapter, seeded):
    result = _collect_unreferenced_impl(_settings(vault, GcMode.interactive))

    assert result["mode"] == "interactive"
    assert result["orphans"] == [seeded["orphan"]]
    assert result["deleted"] == []
    assert _keys(vault) == {seeded["kept"], seeded["orphan"]}


def test_sentinel_never_collected(vault: LocalFsAdapter, seeded):
    path = vault.local_path(".image-base64/image-base64.json")
    entries = json.loads(path.read_text(encoding="utf-8"))
    path.write_text(json.dumps({**entries, SENTINEL_ID: "secret"}, indent=2), encoding="utf-8")

    result = _collect_unreferenced_impl(_settings(vault, GcMode.automatic))

    assert SENTINEL_ID not in result["orphans"]
    assert _keys(vault) == {seeded["kept"], SENTINEL_ID}


def test_empty_vault_creates_store(vault: LocalFsAdapter):
    result = _collect_unreferenced_impl(_settings(vault, GcMode.automatic))

    assert result["examined"] == 0
    assert vault.exists(".image-base64/image-base64.json")


def test_task_reraises_failures(vault: LocalFsAdapter):
    with patch("worker.tasks.gc._collect_unreferenced_impl", side_effect=RuntimeError("boom")):
        with pytest.raises(RuntimeError):
            collect_unreferenced.apply(throw=True).get()
