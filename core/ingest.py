"""Turn pasted or dropped images into stored entries plus document markers.

Callers supply raw bytes (or an already-encoded source) and the destination
document path; how they learned about the image is their business.
"""

from __future__ import annotations

from pathlib import Path
from typing import BinaryIO

from core.blob_store import BlobStore
from core.encoder import encode, encode_file, extract_image_src
from core.errors import EncodingError
from core.markers import default_display_name, place_marker, render_marker
from core.models import ImageCreateResponse


def embed_payload(
    store: BlobStore,
    payload: str,
    destination: str,
    *,
    name: str | None = None,
    multi: bool = False,
    current_line: str | None = None,
) -> ImageCreateResponse:
    """Store an encoded payload and return its id with the marker to insert.

    When ``current_line`` is given the marker is placed for that line, so
    text already on it is not merged into the fence.
    """
    name = name or default_display_name()
    identifier = store.insert(payload, destination)
    marker = render_marker(name, identifier, multi=multi)
    if current_line is not None:
        marker = place_marker(marker, current_line)
    return ImageCreateResponse(id=identifier, name=name, marker=marker)


def embed_bytes(
    store: BlobStore,
    raw: bytes | BinaryIO,
    mime_hint: str | None,
    destination: str,
    *,
    name: str | None = None,
    multi: bool = False,
    current_line: str | None = None,
) -> ImageCreateResponse:
    return embed_payload(
        store, encode(raw, mime_hint), destination, name=name, multi=multi, current_line=current_line
    )


def embed_file(
    store: BlobStore,
    path: str | Path,
    destination: str,
    *,
    name: str | None = None,
    multi: bool = False,
    current_line: str | None = None,
) -> ImageCreateResponse:
    """Embed an image file from disk; the display name defaults to the file stem."""
    payload = encode_file(path)
    return embed_payload(
        store, payload, destination, name=name or Path(path).stem, multi=multi, current_line=current_line
    )


def embed_many(
    store: BlobStore,
    files: list[tuple[bytes | BinaryIO, str | None]],
    destination: str,
) -> list[ImageCreateResponse]:
    """Embed several files in order; markers get a trailing blank line when there is more than one."""
    multi = len(files) > 1
    return [embed_bytes(store, raw, mime, destination, multi=multi) for raw, mime in files]


def embed_html(
    store: BlobStore,
    html: str,
    destination: str,
    *,
    name: str | None = None,
    current_line: str | None = None,
) -> ImageCreateResponse:
    # Dropped HTML images are stored by their src as-is
    src = extract_image_src(html)
    if src is None:
        raise EncodingError("Dropped HTML has no image src")
    return embed_payload(store, src, destination, name=name, current_line=current_line)
