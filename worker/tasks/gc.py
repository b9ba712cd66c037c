"""Unattended garbage collection for Celery task gc.collect_unreferenced"""

from __future__ import annotations

import logging

from core.blob_store import JsonFileBlobStore
from core.config import Settings, settings
from core.gc import GarbageCollector
from core.host import LocalFsAdapter
from core.models import GcMode, GcReport
from core.scanner import load_corpus
from worker.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(name="gc.collect_unreferenced", bind=True, max_retries=0)
def collect_unreferenced(self) -> dict:
    try:
        return _collect_unreferenced_impl(settings)
    except Exception:
        logger.exception("collect_unreferenced failed for vault %s", settings.VAULT_ROOT)
        raise


def _collect_unreferenced_impl(config: Settings) -> dict:
    host = LocalFsAdapter(config.VAULT_ROOT)
    store = JsonFileBlobStore(config.store_config(), host)
    collector = GarbageCollector(store, config.GC_MODE)

    since = store.generation
    corpus = load_corpus(host, host.list_documents(config.DOCUMENT_SUFFIX))

    if collector.mode is GcMode.automatic:
        report = collector.collect(corpus, since=since)
    else:
        # Interactive mode never deletes unattended; report what a reviewer would see
        orphans, live = collector.find_orphans(corpus)
        report = GcReport(
            mode=GcMode.interactive,
            examined=len(store.keys()),
            live=len(live),
            orphans=sorted(orphans),
        )

    logger.info(
        "GC over %s (%s): %d orphan(s), %d deleted",
        config.VAULT_ROOT, report.mode.value, len(report.orphans), len(report.deleted),
    )
    return report.model_dump(mode="json")
