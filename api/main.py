"""Entrypoint for the FastAPI image store service"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.concurrency import run_in_threadpool

from api.dependencies import get_blob_store, get_host
from api.errors import register_error_handlers
from api.routes import gc, images
from core.config import settings
from core.errors import StorageIOError
from core.gc import collect_orphans
from core.scanner import scan_corpus

logger = logging.getLogger(__name__)


def _startup_scan() -> None:
    # Report only; deleting is left to an explicit review or collect call
    host = get_host()
    live = scan_corpus(host, host.list_documents(settings.DOCUMENT_SUFFIX))
    orphans = collect_orphans(get_blob_store().keys(), live)
    if orphans:
        logger.info("%d unused image(s) found in %s", len(orphans), settings.VAULT_ROOT)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.GC_SCAN_ON_STARTUP:
        try:
            await run_in_threadpool(_startup_scan)
        except StorageIOError as exc:
            logger.warning("Startup orphan scan skipped: %s", exc)
    yield


app = FastAPI(
    title="Image Base64 Store API",
    version="0.1.0",
    description="Content-addressed side-car store for images embedded in text documents",
    lifespan=lifespan,
)

register_error_handlers(app)
app.include_router(images.router)
app.include_router(gc.router)


@app.get("/health")
async def health() -> dict:
    return {"status": "ok"}
