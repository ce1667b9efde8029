# foliosign/core/documents.py
from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, Iterable, List, Optional

from cachetools import TTLCache

from foliosign.adapters.base import BlobStore, MetadataStore
from foliosign.models.converters import document_from_row
from .errors import (
    AuthenticationRequiredError,
    DocumentNotFoundError,
    InvalidUploadError,
    PermissionDeniedError,
)
from .validation import split_file_name, validate_upload

logger = logging.getLogger(__name__)

GUEST_PREFIX = "guest"


def build_storage_key(name: str, owner_id: Optional[str], now_ms: int) -> str:
    """`{owner_id or "guest"}/{base_name}_{epoch_ms}{extension}`"""
    base, ext = split_file_name(name.strip())
    return f"{owner_id or GUEST_PREFIX}/{base}_{now_ms}{ext}"


class DocumentService:
    """
    Document lifecycle around the metadata store and the blob store:
    presigned upload, create, fetch (with signed read URL), list,
    delete, guest bulk cleanup.
    """

    def __init__(
        self,
        metadata: MetadataStore,
        blobs: BlobStore,
        *,
        presign_expiry_seconds: int = 3600,
        url_cache_ttl_seconds: int = 300,
        url_cache_size: int = 1024,
        max_upload_bytes: Optional[int] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.metadata = metadata
        self.blobs = blobs
        self.presign_expiry_seconds = presign_expiry_seconds
        self.max_upload_bytes = max_upload_bytes
        self._clock = clock
        # (storage_key, version) -> signed read URL
        self._url_cache: TTLCache = TTLCache(maxsize=url_cache_size, ttl=url_cache_ttl_seconds)

    # ---------- upload ----------

    def create_presigned_upload(
        self,
        name: str,
        owner_id: Optional[str],
        content_type: Optional[str] = None,
        size: Optional[int] = None,
    ) -> Dict[str, str]:
        validate_upload(name, content_type, size, self.max_upload_bytes)
        key = build_storage_key(name, owner_id, int(self._clock() * 1000))
        url = self.blobs.presign_put(key, self.presign_expiry_seconds)
        logger.info("[documents.presign] owner=%s key=%s", owner_id or GUEST_PREFIX, key)
        return {"presigned_url": url, "key": key}

    def create_document(self, name: str, storage_key: str, owner_id: Optional[str]) -> Dict[str, Any]:
        """
        Register an uploaded blob. The key must sit under the caller's own
        prefix, the one `create_presigned_upload` hands out.
        """
        validate_upload(name)
        key = (storage_key or "").strip()
        if not key:
            raise InvalidUploadError("storage_key is required")
        prefix = f"{owner_id or GUEST_PREFIX}/"
        if not key.startswith(prefix) or ".." in key.split("/"):
            raise InvalidUploadError(
                f"storage_key must start with {prefix!r}",
                storage_key=key,
                owner_id=owner_id,
            )
        row = self.metadata.create_document(name=name.strip(), storage_key=key, owner_id=owner_id)
        logger.info("[documents.create] id=%s owner=%s key=%s", row["id"], owner_id or GUEST_PREFIX, row["storage_key"])
        return row

    # ---------- read ----------

    def _require(self, doc_id: str) -> Dict[str, Any]:
        doc = self.metadata.get_document(doc_id)
        if not doc:
            raise DocumentNotFoundError(f"Document {doc_id} not found", doc_id=doc_id)
        return doc

    def signed_read_url(self, doc: Dict[str, Any]) -> str:
        cache_key = (doc["storage_key"], int(doc.get("version") or 0))
        url = self._url_cache.get(cache_key)
        if url is None:
            url = self.blobs.presign_get(doc["storage_key"], self.presign_expiry_seconds)
            self._url_cache[cache_key] = url
        return url

    def get_document(self, doc_id: str) -> Dict[str, Any]:
        doc = self._require(doc_id)
        return {**doc, "url": self.signed_read_url(doc)}

    def list_documents(self, owner_id: Optional[str]) -> List[Dict[str, Any]]:
        if not owner_id:
            raise AuthenticationRequiredError("Sign in to list your documents")
        return self.metadata.list_documents(owner_id)

    # ---------- delete ----------

    def _delete_blob_best_effort(self, key: str) -> None:
        try:
            self.blobs.delete(key)
            logger.info("[documents.delete] blob deleted: %s", key)
        except Exception as e:
            # Metadata cleanup must not depend on blob-store permissions
            logger.error("[documents.delete] blob delete failed for %s: %s", key, e)

    def delete_document(self, doc_id: str, requester_id: Optional[str]) -> None:
        """
        Owners may delete their documents; anyone may delete a guest document.
        """
        doc = self._require(doc_id)
        record = document_from_row(doc)
        is_owner = bool(requester_id) and record.owner_id == requester_id
        if not record.is_guest and not is_owner:
            raise PermissionDeniedError(
                "You don't have permission to delete this document",
                doc_id=doc_id,
            )

        self._delete_blob_best_effort(doc["storage_key"])
        self.metadata.delete_document(doc_id)
        logger.info("[documents.delete] metadata deleted: %s", doc_id)

    def cleanup_guest_documents(self, document_ids: Iterable[str]) -> List[Dict[str, Any]]:
        """
        Delete the owner-less documents among `document_ids`.

        Returns one result per requested id, in request order:
            {"id": ..., "success": bool, "error": optional str}
        """
        results: List[Dict[str, Any]] = []
        for doc_id in document_ids:
            try:
                doc = self.metadata.get_document(doc_id)
                if not doc:
                    results.append({"id": doc_id, "success": False, "error": "Document not found"})
                    continue
                if not document_from_row(doc).is_guest:
                    results.append({"id": doc_id, "success": False, "error": "Not a guest document"})
                    continue

                self._delete_blob_best_effort(doc["storage_key"])
                self.metadata.delete_document(doc_id)
                results.append({"id": doc_id, "success": True})
            except Exception as e:
                logger.error("[documents.cleanup] failed to clean up %s: %s", doc_id, e)
                results.append({"id": doc_id, "success": False, "error": str(e) or "Unknown error"})

        cleaned = sum(1 for r in results if r["success"])
        logger.info("[documents.cleanup] %s/%s guest documents removed", cleaned, len(results))
        return results
