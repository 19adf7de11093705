# src/parley_broker/api/v1/endpoints/blobs.py
"""Payload upload endpoints for the Parley API.

Clients upload attachment and voice note bytes here first, then send a
message that references the returned ``payload_ref``.
"""

from __future__ import annotations

from fastapi import APIRouter, Request, Response, status

from parley_broker.core.errors import InvalidContent
from parley_broker.core.settings import settings
from parley_broker.schemas.blob import BlobResponse

from ..dependencies import BlobStoreDep, CurrentPrincipalDep, SessionDep

router = APIRouter(prefix="/blobs", tags=["blobs"])


@router.post("", status_code=status.HTTP_201_CREATED, response_model=BlobResponse)
async def upload_blob(
    request: Request,
    current: CurrentPrincipalDep,
    db: SessionDep,
    blobs: BlobStoreDep,
) -> BlobResponse:
    """Store the raw request body; the Content-Type header is kept as its MIME type."""
    data = await _read_limited(request, settings.max_attachment_bytes)
    mime_type = request.headers.get("content-type", "application/octet-stream")
    blob = blobs.put(db, data, mime_type.split(";", 1)[0].strip())
    return BlobResponse.model_validate(blob)



async def _read_limited(request: Request, limit: int) -> bytes:
    """Read the request body, giving up as soon as it exceeds ``limit`` bytes."""
    declared = request.headers.get("content-length", "")
    if declared.isdigit() and int(declared) > limit:
        raise InvalidContent(f"Upload exceeds the {limit} byte limit")

    data = bytearray()
    async for chunk in request.stream():
        data.extend(chunk)
        if len(data) > limit:
            raise InvalidContent(f"Upload exceeds the {limit} byte limit")
    return bytes(data)


@router.get("/{payload_ref}")
async def download_blob(
    payload_ref: str, current: CurrentPrincipalDep, db: SessionDep, blobs: BlobStoreDep
) -> Response:
    blob = blobs.get(db, payload_ref)
    return Response(content=blob.data, media_type=blob.mime_type)
