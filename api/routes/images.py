"""Image endpoints: store (upload / batch / import / encoded payload), resolve, raw bytes, delete"""

from __future__ import annotations

from fastapi import APIRouter, Depends, File, Form, HTTPException, Response, UploadFile
from fastapi.concurrency import run_in_threadpool

from api.dependencies import get_blob_store, get_host
from core.blob_store import JsonFileBlobStore
from core.encoder import decode
from core.errors import EncodingError, InvalidTargetError
from core.host import LocalFsAdapter
from core.ingest import embed_bytes, embed_file, embed_html, embed_many, embed_payload
from core.markers import parse_marker
from core.models import (
    DeleteResponse,
    ImageCreateResponse,
    ImageImportRequest,
    ImageResponse,
    MarkerResolveRequest,
    MarkerResolveResponse,
    PayloadCreateRequest,
)

router = APIRouter(prefix="/images", tags=["images"])


@router.post("", status_code=201, response_model=ImageCreateResponse)
async def upload_image(
    file: UploadFile = File(...),
    destination: str = Form(""),
    name: str | None = Form(None),
    multi: bool = Form(False),
    current_line: str | None = Form(None),
    blob_store: JsonFileBlobStore = Depends(get_blob_store),
) -> ImageCreateResponse:
    data = await file.read()
    content_type = file.content_type or "application/octet-stream"
    return await run_in_threadpool(
        embed_bytes, blob_store, data, content_type, destination,
        name=name, multi=multi, current_line=current_line,
    )


@router.post("/batch", status_code=201, response_model=list[ImageCreateResponse])
async def upload_images(
    files: list[UploadFile] = File(...),
    destination: str = Form(""),
    blob_store: JsonFileBlobStore = Depends(get_blob_store),
) -> list[ImageCreateResponse]:
    """Store several dropped files in order, one marker each."""
    items = [(await f.read(), f.content_type or "application/octet-stream") for f in files]
    return await run_in_threadpool(embed_many, blob_store, items, destination)


@router.post("/import", status_code=201, response_model=ImageCreateResponse)
async def import_image(
    body: ImageImportRequest,
    blob_store: JsonFileBlobStore = Depends(get_blob_store),
    host: LocalFsAdapter = Depends(get_host),
) -> ImageCreateResponse:
    try:
        source = host.local_path(body.path)
    except ValueError as exc:
        raise InvalidTargetError(path=body.path) from exc
    return await run_in_threadpool(
        embed_file, blob_store, source, body.destination,
        name=body.name, multi=body.multi, current_line=body.current_line,
    )


@router.post("/payload", status_code=201, response_model=ImageCreateResponse)
async def store_payload(
    body: PayloadCreateRequest,
    blob_store: JsonFileBlobStore = Depends(get_blob_store),
) -> ImageCreateResponse:
    if body.html is not None:
        return await run_in_threadpool(
            embed_html, blob_store, body.html, body.destination,
            name=body.name, current_line=body.current_line,
        )
    return await run_in_threadpool(
        embed_payload, blob_store, body.payload, body.destination,
        name=body.name, multi=body.multi, current_line=body.current_line,
    )


@router.post("/markers/resolve", response_model=MarkerResolveResponse)
async def resolve_marker(
    body: MarkerResolveRequest,
    blob_store: JsonFileBlobStore = Depends(get_blob_store),
) -> MarkerResolveResponse:
    """Render path: parse one marker block and return the payload it points at."""
    fields = parse_marker(body.source)
    if fields.id is None:
        raise EncodingError("Marker has no id line")
    payload = await _resolve_or_404(blob_store, fields.id)
    return MarkerResolveResponse(name=fields.name, id=fields.id, payload=payload)


async def _resolve_or_404(blob_store: JsonFileBlobStore, image_id: str) -> str:
    payload = await run_in_threadpool(blob_store.resolve, image_id)
    if payload is None:
        raise HTTPException(status_code=404, detail="Image not found")
    return payload


@router.get("/{image_id}", response_model=ImageResponse)
async def get_image(
    image_id: str,
    blob_store: JsonFileBlobStore = Depends(get_blob_store),
) -> ImageResponse:
    payload = await _resolve_or_404(blob_store, image_id)
    return ImageResponse(id=image_id, payload=payload)


@router.get("/{image_id}/raw")
async def get_image_raw(
    image_id: str,
    blob_store: JsonFileBlobStore = Depends(get_blob_store),
) -> Response:
    payload = await _resolve_or_404(blob_store, image_id)
    media_type, data = decode(payload)
    return Response(content=data, media_type=media_type)


@router.delete("/{image_id}", response_model=DeleteResponse)
async def delete_image(
    image_id: str,
    blob_store: JsonFileBlobStore = Depends(get_blob_store),
) -> DeleteResponse:
    deleted = await run_in_threadpool(blob_store.delete, image_id)
    return DeleteResponse(id=image_id, deleted=deleted)
