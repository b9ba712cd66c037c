"""Fenced ``image-base64`` markers: writing and parsing one block."""

from __future__ import annotations

import time

from core.models import MarkerFields

MARKER_TAG = "image-base64"
FENCE = "```"
NAME_PREFIX = "pasted-image"


def default_display_name(now_ms: int | None = None) -> str:
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"{NAME_PREFIX}-{now_ms}"


def render_marker(name: str, identifier: str, *, multi: bool = False) -> str:
    """Render the canonical block: ``name:`` line then ``id:`` line.

    ``multi`` appends a blank line so consecutive markers stay separated.
    """
    text = f"{FENCE}{MARKER_TAG}\nname: {name}\nid: {identifier}\n{FENCE}\n"
    if multi:
        text += "\n"
    return text


# Markers land on their own lines: wrap in newlines when the cursor line has text
def place_marker(marker: str, current_line: str) -> str:
    if current_line == "":
        return marker
    return f"\n{marker}\n"


def _field(lines: list[str], label: str) -> str | None:
    prefix = f"{label}:"
    for line in lines:
        stripped = line.strip()
        if stripped.startswith(prefix):
            return stripped[len(prefix):].strip() or None
    return None


def parse_marker(source: str) -> MarkerFields:
    """Parse the body of one marker block by label, in any order.

    A missing name falls back to a timestamped default; a missing id stays None.
    """
    lines = source.split("\n")
    return MarkerFields(
        name=_field(lines, "name") or default_display_name(),
        id=_field(lines, "id"),
    )
