# foliosign/core/signing.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional
from uuid import uuid4

from fastapi.concurrency import run_in_threadpool

from foliosign.adapters.base import BlobStore, MetadataStore
from .compositing import PlacementResult, place_signature
from .errors import DocumentNotFoundError, FolioSignError
from .locks import KeyedLocks

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SignRequest:
    document_id: str
    signature_data_uri: str
    x: float
    y: float
    width: float
    height: float
    page: int = 1
    visitor_id: Optional[str] = None


class SigningService:
    """
    Read-modify-write cycle for placing a stamp on a stored document.

    Order of operations per document (under its in-process lock):
        1) read metadata (remember version)
        2) claim the signing lease: version+1, rejected with 409 while
           another process holds an unexpired lease
        3) read blob
        4) composite (pure, all-or-nothing)
        5) overwrite blob at the same key
        6) commit: visitor_id, updated_at, lease dropped

    Any failure in 3-5 releases the lease and restores the version, so a
    failed sign leaves both the stored document and its metadata as they were.
    """

    def __init__(
        self,
        metadata: MetadataStore,
        blobs: BlobStore,
        locks: Optional[KeyedLocks] = None,
        *,
        lease_seconds: int = 120,
    ):
        self.metadata = metadata
        self.blobs = blobs
        self.locks = locks or KeyedLocks()
        self.lease_seconds = lease_seconds

    async def sign_document(self, req: SignRequest) -> PlacementResult:
        async with self.locks.hold(req.document_id):
            doc = await run_in_threadpool(self.metadata.get_document, req.document_id)
            if not doc:
                raise DocumentNotFoundError(f"Document {req.document_id} not found", doc_id=req.document_id)

            key = doc["storage_key"]
            version = int(doc.get("version") or 0)
            lease = uuid4().hex

            await run_in_threadpool(
                self.metadata.claim_signature, req.document_id, version, lease, self.lease_seconds
            )
            try:
                result = await self._write_signed_blob(key, req)
            except Exception:
                released = await run_in_threadpool(self.metadata.release_signature, req.document_id, lease)
                if not released:
                    logger.error("[signing] doc=%s lease %s lost before release", req.document_id, lease)
                raise

            await run_in_threadpool(
                self.metadata.commit_signature, req.document_id, lease, version + 1, req.visitor_id
            )

            logger.info(
                "[signing] doc=%s key=%s page=%s/%s rect=%s version=%s->%s",
                req.document_id, key, result.page_number, result.page_count,
                tuple(round(v, 2) for v in result.rect), version, version + 1,
            )
            return result

    async def _write_signed_blob(self, key: str, req: SignRequest) -> PlacementResult:
        try:
            pdf_bytes = await run_in_threadpool(self.blobs.get, key)
            result = await run_in_threadpool(
                place_signature,
                pdf_bytes,
                req.page,
                req.x,
                req.y,
                req.width,
                req.height,
                req.signature_data_uri,
            )
        except FolioSignError as e:
            logger.warning(
                "[signing] doc=%s page=%s failed before write: %s (%s) context=%s",
                req.document_id, req.page, e.message, e.code, _context(e, req),
            )
            raise

        try:
            await run_in_threadpool(self.blobs.put, key, result.pdf_bytes, "application/pdf")
        except Exception as e:
            logger.error("[signing] doc=%s key=%s blob write failed: %s", req.document_id, key, e)
            raise
        return result


def _context(e: FolioSignError, req: SignRequest) -> Dict[str, Any]:
    ctx = dict(e.context)
    ctx.setdefault("position", (req.x, req.y))
    ctx.setdefault("size", (req.width, req.height))
    ctx.setdefault("signature_length", len(req.signature_data_uri or ""))
    return ctx
