"""Garbage collection endpoints: orphan scan, references, automatic collect, interactive review"""

from __future__ import annotations

import logging
import time
import uuid

from fastapi import APIRouter, Depends, HTTPException
from fastapi.concurrency import run_in_threadpool

from api.dependencies import get_blob_store, get_host
from core.blob_store import JsonFileBlobStore
from core.config import settings
from core.gc import GarbageCollector, ReviewSession, ReviewStateError
from core.host import LocalFsAdapter
from core.models import (
    DocumentReference,
    GcMode,
    GcReport,
    OrphanScanRequest,
    OrphanScanResponse,
    ReviewDecision,
    ReviewState,
    ReviewStatus,
)
from core.scanner import extract_references, load_corpus

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/gc", tags=["gc"])

# Open review sessions, keyed by session id. Finished sessions are dropped on
# their last decision; abandoned ones expire after REVIEW_SESSION_TTL_SECONDS.
_sessions: dict[str, ReviewSession] = {}
_last_used: dict[str, float] = {}


def _corpus(body: OrphanScanRequest | None, host: LocalFsAdapter) -> dict[str, str]:
    if body is not None and body.documents is not None:
        return body.documents
    return load_corpus(host, host.list_documents(settings.DOCUMENT_SUFFIX))


def _status(session_id: str, session: ReviewSession) -> ReviewStatus:
    return ReviewStatus(
        session_id=session_id,
        state=session.state,
        index=session.index,
        total=len(session.orphans),
        current=session.current,
        decisions=session.decisions,
    )


def _forget(session_id: str) -> ReviewSession | None:
    _last_used.pop(session_id, None)
    return _sessions.pop(session_id, None)


def _expire_sessions(now: float) -> None:
    cutoff = now - settings.REVIEW_SESSION_TTL_SECONDS
    for session_id in [sid for sid, used in _last_used.items() if used < cutoff]:
        session = _forget(session_id)
        if session is not None:
            session.close()
            logger.info("Expired abandoned review session %s", session_id)


def _get_session(session_id: str) -> ReviewSession:
    session = _sessions.get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Review session not found")
    _last_used[session_id] = time.monotonic()
    return session


@router.post("/orphans", response_model=OrphanScanResponse)
async def find_orphans(
    body: OrphanScanRequest | None = None,
    blob_store: JsonFileBlobStore = Depends(get_blob_store),
    host: LocalFsAdapter = Depends(get_host),
) -> OrphanScanResponse:
    corpus = await run_in_threadpool(_corpus, body, host)
    orphans, live = await run_in_threadpool(GarbageCollector(blob_store).find_orphans, corpus)
    return OrphanScanResponse(orphans=sorted(orphans), live=len(live))


@router.post("/references", response_model=list[DocumentReference])
async def list_references(
    body: OrphanScanRequest | None = None,
    host: LocalFsAdapter = Depends(get_host),
) -> list[DocumentReference]:
    corpus = await run_in_threadpool(_corpus, body, host)
    return [ref for path, text in sorted(corpus.items()) for ref in extract_references(path, text)]


@router.post("/collect", response_model=GcReport)
async def collect(
    body: OrphanScanRequest | None = None,
    blob_store: JsonFileBlobStore = Depends(get_blob_store),
    host: LocalFsAdapter = Depends(get_host),
) -> GcReport:
    since = blob_store.generation
    corpus = await run_in_threadpool(_corpus, body, host)
    collector = GarbageCollector(blob_store, GcMode.automatic)
    return await run_in_threadpool(collector.collect, corpus, since=since)


@router.post("/reviews", status_code=201, response_model=ReviewStatus)
async def start_review(
    body: OrphanScanRequest | None = None,
    blob_store: JsonFileBlobStore = Depends(get_blob_store),
    host: LocalFsAdapter = Depends(get_host),
) -> ReviewStatus:
    since = blob_store.generation
    corpus = await run_in_threadpool(_corpus, body, host)
    collector = GarbageCollector(blob_store)
    session = await run_in_threadpool(collector.start_review, corpus, since=since)

    session_id = str(uuid.uuid4())
    now = time.monotonic()
    _expire_sessions(now)
    # Nothing to review: report idle without holding on to the session
    if session.state is ReviewState.reviewing:
        _sessions[session_id] = session
        _last_used[session_id] = now
    return await run_in_threadpool(_status, session_id, session)


@router.get("/reviews/{session_id}", response_model=ReviewStatus)
async def get_review(session_id: str) -> ReviewStatus:
    session = _get_session(session_id)
    return await run_in_threadpool(_status, session_id, session)


@router.post("/reviews/{session_id}/{decision}", response_model=ReviewStatus)
async def decide(session_id: str, decision: ReviewDecision) -> ReviewStatus:
    session = _get_session(session_id)
    action = session.skip if decision is ReviewDecision.skip else session.delete
    try:
        await run_in_threadpool(action)
    except ReviewStateError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc

    status = await run_in_threadpool(_status, session_id, session)
    if status.state is ReviewState.idle:
        _forget(session_id)
    return status


@router.delete("/reviews/{session_id}", response_model=ReviewStatus)
async def close_review(session_id: str) -> ReviewStatus:
    session = _forget(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Review session not found")
    session.close()
    return _status(session_id, session)
