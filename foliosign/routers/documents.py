# foliosign/routers/documents.py
from __future__ import annotations

import logging
from typing import Annotated, Any, Dict, List, Optional

from fastapi import APIRouter, Depends, status

from foliosign.main import get_current_user_id, get_document_service, get_signing_service
from foliosign.core.documents import DocumentService
from foliosign.core.signing import SignRequest, SigningService
from foliosign.models.converters import document_from_row
from foliosign.schemas import (
    CleanupOut,
    CleanupRequest,
    DocumentCreate,
    DocumentOut,
    DocumentWithUrl,
    PresignOut,
    PresignRequest,
    SignDocumentOut,
    SignDocumentRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/documents", tags=["documents"])

# ---- DI aliases (no default value allowed) ----
Documents = Annotated[DocumentService, Depends(get_document_service)]
Signer = Annotated[SigningService, Depends(get_signing_service)]
UserId = Annotated[Optional[str], Depends(get_current_user_id)]


def _out(row: Dict[str, Any]) -> DocumentOut:
    return DocumentOut(**document_from_row(row).to_dict())


@router.post("/sign", response_model=SignDocumentOut)
async def sign_document(payload: SignDocumentRequest, signer: Signer):
    """
    Stamp the signature image onto one page and overwrite the stored PDF.

    Position is the stamp centre in zoom-normalised page pixels
    (origin top-left); the engine converts to PDF points.
    """
    await signer.sign_document(
        SignRequest(
            document_id=payload.document_id,
            signature_data_uri=payload.signature_data_uri,
            x=payload.x,
            y=payload.y,
            width=payload.width,
            height=payload.height,
            page=payload.page,
            visitor_id=payload.visitor_id,
        )
    )
    return SignDocumentOut(success=True)


@router.post("/presign", response_model=PresignOut)
def create_presigned_url(payload: PresignRequest, docs: Documents, user_id: UserId):
    """
    Presigned PUT URL for a direct browser upload.
    Key = {owner or 'guest'}/{base}_{epoch_ms}{ext}
    """
    return docs.create_presigned_upload(
        payload.name,
        user_id,
        content_type=payload.content_type,
        size=payload.size,
    )


@router.post("", response_model=DocumentOut, status_code=status.HTTP_201_CREATED)
def create_document(payload: DocumentCreate, docs: Documents, user_id: UserId):
    row = docs.create_document(payload.name, payload.storage_key, user_id)
    return _out(row)


@router.get("", response_model=List[DocumentOut])
def list_documents(docs: Documents, user_id: UserId):
    """Documents owned by the caller, newest first. Guests get 401."""
    return [_out(r) for r in docs.list_documents(user_id)]


@router.post("/cleanup", response_model=CleanupOut, response_model_exclude_none=True)
def cleanup_guest_documents(payload: CleanupRequest, docs: Documents):
    """
    Bulk best-effort delete of guest documents.
    Always one result per requested id; owned documents are never touched.
    """
    results = docs.cleanup_guest_documents(payload.document_ids)
    return {"results": results}


@router.get("/{doc_id}", response_model=DocumentWithUrl)
def get_document(doc_id: str, docs: Documents):
    doc = docs.get_document(doc_id)
    base = document_from_row(doc).to_dict()
    return DocumentWithUrl(**base, url=doc["url"])


@router.delete("/{doc_id}")
def delete_document(doc_id: str, docs: Documents, user_id: UserId):
    docs.delete_document(doc_id, user_id)
    return {"success": True}
