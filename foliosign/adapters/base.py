"""
Storage adapter interfaces for folio-sign.
Defines the contracts that all metadata and blob backends must implement.
"""

from typing import Protocol, List, Dict, Any, Optional


class MetadataStore(Protocol):
    """
    Protocol for the document metadata store.

    This allows swapping between SQLite and JSON files
    without changing the router or service code.

    Rows are plain dicts with the keys:
        id, name, storage_key, owner_id, visitor_id,
        version, created_at, updated_at
    """

    def create_document(
        self,
        name: str,
        storage_key: str,
        owner_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Create a new document record.

        Args:
            name: Display filename (immutable)
            storage_key: Blob key holding the PDF bytes (immutable)
            owner_id: Owning user id, or None for a guest document

        Returns:
            The stored row, including the generated id and version 0.
        """
        ...

    def get_document(self, doc_id: str) -> Optional[Dict[str, Any]]:
        """
        Fetch a document row by id.

        Returns:
            Dict with document fields, or None if not found.
        """
        ...

    def list_documents(self, owner_id: str) -> List[Dict[str, Any]]:
        """
        Return all documents owned by `owner_id`, newest first.
        """
        ...

    def claim_signature(
        self,
        doc_id: str,
        expected_version: int,
        lease_token: str,
        lease_seconds: int,
    ) -> Dict[str, Any]:
        """
        Take the signing lease before the blob is read.

        Implementations must, atomically:
            - raise DocumentNotFoundError if the row is gone
            - raise ConcurrentModificationError if version != expected_version
              or another unexpired lease is held
            - otherwise bump version by one and store the lease token with
              an expiry `lease_seconds` from now

        visitor_id and updated_at are left alone until commit.

        Returns:
            The updated row.
        """
        ...

    def commit_signature(
        self,
        doc_id: str,
        lease_token: str,
        claimed_version: int,
        visitor_id: Optional[str],
    ) -> Dict[str, Any]:
        """
        Finish a sign after the new blob is stored: set visitor_id, refresh
        updated_at and drop the lease.

        Raises:
            ConcurrentModificationError if the lease is no longer ours
            (it expired and another signer took it).
        """
        ...

    def release_signature(self, doc_id: str, lease_token: str) -> bool:
        """
        Abandon a claim: restore the previous version and drop the lease.
        A no-op (False) when the lease is no longer ours.
        """
        ...

    def delete_document(self, doc_id: str) -> bool:
        """
        Delete a document row.

        Returns:
            True if a row was deleted, False if it did not exist.
        """
        ...

    def ping(self) -> None:
        """Raise if the backend is unreachable (used by /readyz)."""
        ...


class BlobStore(Protocol):
    """
    Protocol for the object store holding raw PDF bytes, keyed by storage key.
    """

    def get(self, key: str) -> bytes:
        """
        Return the bytes stored at `key`.

        Raises:
            BlobNotFoundError if nothing is stored there.
        """
        ...

    def put(self, key: str, data: bytes, content_type: str = "application/pdf") -> None:
        """Store `data` at `key`, replacing whatever was there."""
        ...

    def presign_put(self, key: str, expires_in: int) -> str:
        """URL a client can upload `key` to directly."""
        ...

    def presign_get(self, key: str, expires_in: int) -> str:
        """Time-limited URL to read `key`."""
        ...

    def delete(self, key: str) -> None:
        """Remove `key`. Missing keys are not an error."""
        ...
