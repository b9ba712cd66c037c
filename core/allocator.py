"""Collision-free identifier allocation for new store entries."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable, Collection

from core.errors import IdentifierExhaustedError

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 16


def allocate(
    existing_keys: Collection[str],
    *,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    factory: Callable[[], uuid.UUID | str] | None = None,
) -> str:
    """Return a fresh UUID-formatted identifier not present in ``existing_keys``.

    Re-rolls on collision. ``existing_keys`` is a snapshot, so the caller must
    hold the store lock for the result to stay unique once written.

    Raises:
        IdentifierExhaustedError if every one of ``max_attempts`` candidates collided.
    """
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")

    if factory is None:
        factory = uuid.uuid4

    for attempt in range(1, max_attempts + 1):
        candidate = str(factory())
        if candidate not in existing_keys:
            return candidate
        logger.warning("Identifier collision on attempt %d (%s), re-rolling", attempt, candidate)

    raise IdentifierExhaustedError(max_attempts)
