"""Mark-and-sweep of store entries no document references any more."""

from __future__ import annotations

import logging
import threading
from collections.abc import Collection, Iterable, Mapping

from core.blob_store import BlobStore
from core.models import GcMode, GcReport, ReviewDecision, ReviewItem, ReviewRecord, ReviewState
from core.scanner import SENTINEL_ID, scan

logger = logging.getLogger(__name__)


def collect_orphans(store_keys: Collection[str], live_identifiers: Collection[str]) -> set[str]:
    """Store keys not in the live set. The sentinel is never an orphan."""
    return set(store_keys) - set(live_identifiers) - {SENTINEL_ID}


class ReviewStateError(RuntimeError):
    """A decision was made on a session that is not reviewing."""


class ReviewSession:
    """Interactive, one-orphan-at-a-time review.

    States: idle -> reviewing(index 0..N-1) -> idle. Every delete is
    committed to the store as it is made, so closing the session early keeps
    the decisions taken so far and leaves the rest untouched.

    ``since`` is the store generation read before the orphans were computed.
    An orphan the store handed out again after that (the same image pasted
    back in) is kept even when the reviewer chooses delete.

    Decisions are serialized: concurrent callers each act on a distinct orphan.
    """

    def __init__(self, store: BlobStore, orphans: Iterable[str], *, since: int | None = None) -> None:
        self._store = store
        self._orphans = sorted(set(orphans))
        self._since = store.generation if since is None else since
        self._index = 0
        self._state = ReviewState.idle
        self._decisions: list[ReviewRecord] = []
        self._lock = threading.Lock()

    @property
    def state(self) -> ReviewState:
        return self._state

    @property
    def index(self) -> int:
        return self._index

    @property
    def orphans(self) -> list[str]:
        return list(self._orphans)

    @property
    def decisions(self) -> list[ReviewRecord]:
        with self._lock:
            return list(self._decisions)

    def start(self) -> ReviewState:
        """Enter reviewing when there is anything to review; otherwise stay idle."""
        with self._lock:
            if self._state is ReviewState.idle and self._index < len(self._orphans):
                self._state = ReviewState.reviewing
                logger.info("Reviewing %d unused image(s)", len(self._orphans) - self._index)
            return self._state

    @property
    def current(self) -> ReviewItem | None:
        with self._lock:
            if self._state is not ReviewState.reviewing:
                return None
            identifier = self._orphans[self._index]
        # Payload is read fresh so the reviewer sees what is actually stored
        return ReviewItem(id=identifier, payload=self._store.resolve(identifier))

    def _require_reviewing(self) -> str:
        if self._state is not ReviewState.reviewing:
            raise ReviewStateError(f"Review session is {self._state.value}, expected reviewing")
        return self._orphans[self._index]

    def _advance(self, identifier: str, decision: ReviewDecision) -> ReviewState:
        self._decisions.append(ReviewRecord(id=identifier, decision=decision))
        self._index += 1
        if self._index >= len(self._orphans):
            self._state = ReviewState.idle
            logger.info("Review finished: %d decision(s)", len(self._decisions))
        return self._state

    def skip(self) -> ReviewState:
        with self._lock:
            identifier = self._require_reviewing()
            return self._advance(identifier, ReviewDecision.skip)

    def delete(self) -> ReviewState:
        with self._lock:
            identifier = self._require_reviewing()
            self._store.delete(identifier, unclaimed_since=self._since)
            return self._advance(identifier, ReviewDecision.delete)

    def close(self) -> None:
        """Interrupt the review; unreviewed orphans stay in the store."""
        with self._lock:
            if self._state is ReviewState.reviewing:
                logger.info("Review interrupted with %d orphan(s) undecided", len(self._orphans) - self._index)
            self._state = ReviewState.idle


class GarbageCollector:
    """Scan documents, diff against the store, then review or delete orphans."""

    def __init__(self, store: BlobStore, mode: GcMode = GcMode.interactive) -> None:
        self._store = store
        self._mode = GcMode(mode)

    @property
    def mode(self) -> GcMode:
        return self._mode

    def find_orphans(self, documents: Iterable[str] | Mapping[str, str]) -> tuple[set[str], set[str]]:
        """Return ``(orphans, live)`` for the given corpus."""
        live = scan(documents)
        orphans = collect_orphans(self._store.keys(), live)
        return orphans, live

    def start_review(
        self, documents: Iterable[str] | Mapping[str, str], *, since: int | None = None
    ) -> ReviewSession:
        """Build and start a review over the current orphans; idle when there are none.

        Pass ``since`` (the store generation) when the documents were read before this call.
        """
        if since is None:
            since = self._store.generation
        orphans, _ = self.find_orphans(documents)
        session = ReviewSession(self._store, orphans, since=since)
        session.start()
        return session

    def run(self, documents: Iterable[str] | Mapping[str, str]) -> GcReport | ReviewSession | None:
        """Collect according to the configured mode.

        Automatic mode deletes every orphan in one batch and returns a report.
        Interactive mode returns a started :class:`ReviewSession`, or None
        when nothing is orphaned.
        """
        if self._mode is GcMode.automatic:
            return self.collect(documents)

        session = self.start_review(documents)
        if session.state is ReviewState.idle:
            return None
        return session

    def collect(self, documents: Iterable[str] | Mapping[str, str], *, since: int | None = None) -> GcReport:
        if since is None:
            since = self._store.generation
        keys = self._store.keys()
        live = scan(documents)
        orphans = collect_orphans(keys, live)
        deleted = self._store.delete_many(sorted(orphans), unclaimed_since=since) if orphans else []
        if deleted:
            logger.info("Removed %d unused image(s)", len(deleted))
        return GcReport(
            mode=GcMode.automatic,
            examined=len(keys),
            live=len(live),
            orphans=sorted(orphans),
            deleted=deleted,
        )
