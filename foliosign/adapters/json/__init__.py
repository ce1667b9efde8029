"""
JSON file storage adapter for folio-sign.
Simple file-based metadata storage for quick demos and testing.
Single-process only: the lock below does not protect against other processes.
"""
import json
import threading
import uuid
from datetime import datetime, timedelta, timezone
from typing import List, Dict, Any, Optional
from pathlib import Path

from foliosign.core.errors import ConcurrentModificationError, DocumentNotFoundError


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).replace(tzinfo=None).isoformat()


def _lease_held(doc: Dict[str, Any], now: datetime) -> bool:
    if not doc.get("lease_token"):
        return False
    expires = doc.get("lease_expires_at")
    return bool(expires) and datetime.fromisoformat(expires) >= now


def _public(doc: Dict[str, Any]) -> Dict[str, Any]:
    """Row as callers see it (lease bookkeeping stripped)."""
    return {k: v for k, v in doc.items() if k not in ("lease_token", "lease_expires_at")}


class JsonAdapter:
    """
    JSON file-based metadata adapter.
    Stores all document rows in one JSON file under the data directory.
    Uses atomic file operations for basic consistency.
    """

    def __init__(self, data_dir: str = "data/json"):
        """
        Initialize the JSON adapter.

        Args:
            data_dir: Directory to store JSON files
        """
        self.data_dir = Path(data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.documents_file = self.data_dir / "documents.json"
        self._lock = threading.RLock()

        if not self.documents_file.exists():
            self._write_file(self.documents_file, [])

    def _read_file(self, filepath: Path) -> List[Dict[str, Any]]:
        """Read and parse a JSON file."""
        try:
            with open(filepath, "r", encoding="utf-8") as f:
                return json.load(f)
        except (FileNotFoundError, json.JSONDecodeError):
            return []

    def _write_file(self, filepath: Path, data: List[Dict[str, Any]]) -> None:
        """Write data to a JSON file atomically."""
        # Write to temporary file first
        tmp_file = filepath.with_suffix(".tmp")
        with open(tmp_file, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False, default=str)

        # Atomic rename
        tmp_file.replace(filepath)

    def create_document(self, name: str, storage_key: str, owner_id: Optional[str] = None) -> Dict[str, Any]:
        """Create a new document."""
        now = _utcnow_iso()
        row = {
            "id": str(uuid.uuid4()),
            "name": name,
            "storage_key": storage_key,
            "owner_id": owner_id or None,
            "visitor_id": None,
            "version": 0,
            "created_at": now,
            "updated_at": now,
        }
        with self._lock:
            documents = self._read_file(self.documents_file)
            documents.append(row)
            self._write_file(self.documents_file, documents)
        return dict(row)

    def get_document(self, doc_id: str) -> Optional[Dict[str, Any]]:
        documents = self._read_file(self.documents_file)
        doc = next((d for d in documents if d["id"] == doc_id), None)
        return _public(doc) if doc else None

    def list_documents(self, owner_id: str) -> List[Dict[str, Any]]:
        documents = self._read_file(self.documents_file)
        owned = [_public(d) for d in documents if d.get("owner_id") == owner_id]
        owned.sort(key=lambda d: d["created_at"], reverse=True)
        return owned

    def _find(self, documents: List[Dict[str, Any]], doc_id: str) -> Dict[str, Any]:
        doc = next((d for d in documents if d["id"] == doc_id), None)
        if not doc:
            raise DocumentNotFoundError(f"Document {doc_id} not found", doc_id=doc_id)
        return doc

    def claim_signature(
        self, doc_id: str, expected_version: int, lease_token: str, lease_seconds: int
    ) -> Dict[str, Any]:
        """Bump version and take the signing lease if the version matches and no live lease is held."""
        now = datetime.now(timezone.utc).replace(tzinfo=None)
        with self._lock:
            documents = self._read_file(self.documents_file)
            doc = self._find(documents, doc_id)
            if int(doc.get("version", 0)) != expected_version or _lease_held(doc, now):
                raise ConcurrentModificationError(doc_id, expected_version)

            doc["version"] = expected_version + 1
            doc["lease_token"] = lease_token
            doc["lease_expires_at"] = (now + timedelta(seconds=lease_seconds)).isoformat()
            self._write_file(self.documents_file, documents)
            return _public(doc)

    def commit_signature(
        self, doc_id: str, lease_token: str, claimed_version: int, visitor_id: Optional[str]
    ) -> Dict[str, Any]:
        """Record the signer and drop the lease."""
        with self._lock:
            documents = self._read_file(self.documents_file)
            doc = self._find(documents, doc_id)
            if doc.get("lease_token") != lease_token:
                raise ConcurrentModificationError(doc_id, claimed_version)

            doc["visitor_id"] = visitor_id
            doc["updated_at"] = _utcnow_iso()
            doc.pop("lease_token", None)
            doc.pop("lease_expires_at", None)
            self._write_file(self.documents_file, documents)
            return _public(doc)

    def release_signature(self, doc_id: str, lease_token: str) -> bool:
        """Undo a claim: restore the previous version and drop the lease."""
        with self._lock:
            documents = self._read_file(self.documents_file)
            doc = next((d for d in documents if d["id"] == doc_id), None)
            if not doc or doc.get("lease_token") != lease_token:
                return False

            doc["version"] = int(doc.get("version", 0)) - 1
            doc.pop("lease_token", None)
            doc.pop("lease_expires_at", None)
            self._write_file(self.documents_file, documents)
            return True

    def delete_document(self, doc_id: str) -> bool:
        with self._lock:
            documents = self._read_file(self.documents_file)
            remaining = [d for d in documents if d["id"] != doc_id]
            if len(remaining) == len(documents):
                return False
            self._write_file(self.documents_file, remaining)
            return True

    def ping(self) -> None:
        if not self.data_dir.is_dir():
            raise RuntimeError(f"JSON data dir missing: {self.data_dir}")
