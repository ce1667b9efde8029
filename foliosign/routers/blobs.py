# foliosign/routers/blobs.py
"""
Presigned blob endpoints for the local filesystem backend.

LocalBlobStore.presign_put/presign_get hand out links to these routes, so the
browser uploads and downloads PDFs exactly as it would against S3.
"""
from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import Response

from foliosign.main import get_blob_store
from foliosign.adapters.base import BlobStore
from foliosign.adapters.local import LocalBlobStore
from foliosign.core.errors import BlobNotFoundError, InvalidUploadError
from foliosign.settings import Settings, get_settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/blobs", tags=["blobs"])

Blobs = Annotated[BlobStore, Depends(get_blob_store)]
Config = Annotated[Settings, Depends(get_settings)]


def _local(blobs: BlobStore, key: str) -> LocalBlobStore:
    if not isinstance(blobs, LocalBlobStore):
        # S3 links never point here
        raise BlobNotFoundError(key)
    return blobs


@router.put("/{key:path}")
async def put_blob(
    key: str,
    request: Request,
    blobs: Blobs,
    config: Config,
    expires: int = Query(...),
    signature: str = Query(...),
):
    store = _local(blobs, key)
    store.verify("PUT", key, expires, signature)

    data = await request.body()
    if not data:
        raise InvalidUploadError("Uploaded file is empty", key=key)
    if len(data) > config.max_upload_bytes:
        raise InvalidUploadError(
            f"File size must be less than {config.max_upload_mb}MB",
            key=key,
            size=len(data),
        )

    content_type = request.headers.get("content-type") or "application/pdf"
    await run_in_threadpool(store.put, key, data, content_type)
    logger.info("[blobs.put] key=%s bytes=%s", key, len(data))
    return Response(status_code=200)


@router.get("/{key:path}")
async def get_blob(
    key: str,
    blobs: Blobs,
    expires: int = Query(...),
    signature: str = Query(...),
):
    store = _local(blobs, key)
    store.verify("GET", key, expires, signature)
    data = await run_in_threadpool(store.get, key)
    return Response(
        content=data,
        media_type="application/pdf",
        headers={"Cache-Control": "private, max-age=60"},
    )
