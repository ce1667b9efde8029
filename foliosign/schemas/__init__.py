"""
Pydantic schemas for API request/response validation.
"""
from .document import (
    CleanupOut,
    CleanupRequest,
    CleanupResult,
    DocumentCreate,
    DocumentOut,
    DocumentWithUrl,
    PresignOut,
    PresignRequest,
)
from .signature import (
    DrawnSignatureRequest,
    SignatureOut,
    SignDocumentOut,
    SignDocumentRequest,
    TypedSignatureRequest,
)

__all__ = [
    "CleanupOut",
    "CleanupRequest",
    "CleanupResult",
    "DocumentCreate",
    "DocumentOut",
    "DocumentWithUrl",
    "PresignOut",
    "PresignRequest",
    "DrawnSignatureRequest",
    "SignatureOut",
    "SignDocumentOut",
    "SignDocumentRequest",
    "TypedSignatureRequest",
]
