"""
Pydantic schemas for documents.
"""
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field


class DocumentCreate(BaseModel):
    """Schema for creating a document record after the PDF was uploaded."""
    name: str = Field(..., min_length=1, description="Display filename")
    storage_key: str = Field(..., min_length=1, alias="key", description="Blob key returned by /documents/presign")

    model_config = ConfigDict(populate_by_name=True)


class PresignRequest(BaseModel):
    """Schema for requesting a presigned upload URL."""
    name: str = Field(..., min_length=1, description="Original filename, e.g. contract.pdf")
    content_type: Optional[str] = Field(None, alias="contentType", description="Browser-reported mime type")
    size: Optional[int] = Field(None, ge=0, description="File size in bytes")

    model_config = ConfigDict(populate_by_name=True)


class PresignOut(BaseModel):
    presigned_url: str
    key: str


class DocumentOut(BaseModel):
    """Schema for document output."""
    id: str = Field(..., description="Document ID")
    name: str
    storage_key: str
    owner_id: Optional[str] = None
    visitor_id: Optional[str] = None
    version: int = 0
    created_at: str = ""
    updated_at: str = ""


class DocumentWithUrl(DocumentOut):
    """Document plus a time-limited signed read URL for its current bytes."""
    url: str


class CleanupRequest(BaseModel):
    document_ids: List[str] = Field(..., alias="documentIds", description="Guest document ids to delete")

    model_config = ConfigDict(populate_by_name=True)


class CleanupResult(BaseModel):
    id: str
    success: bool
    error: Optional[str] = None


class CleanupOut(BaseModel):
    results: List[CleanupResult]
