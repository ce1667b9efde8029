# foliosign/adapters/local/__init__.py
"""
Filesystem blob store.

PDF bytes live under `root_dir/<storage key>`. Presigned URLs point back at
this API's /blobs routes and carry an HMAC over (method, key, expiry), so a
browser can upload/download directly the same way it would against S3.
"""
from __future__ import annotations

import hashlib
import hmac
import logging
import time
from pathlib import Path
from typing import Optional
from urllib.parse import quote, urlencode

from foliosign.core.errors import BlobNotFoundError, InvalidUploadError, PermissionDeniedError

logger = logging.getLogger(__name__)


class LocalBlobStore:
    def __init__(self, root_dir: str, base_url: str = "http://localhost:8000", secret: str = "dev-secret"):
        self.root = Path(root_dir).resolve()
        self.root.mkdir(parents=True, exist_ok=True)
        self.base_url = base_url.rstrip("/")
        self._secret = secret.encode("utf-8")

    # ---- key -> path ----

    def _path(self, key: str) -> Path:
        if not key or key.startswith("/") or "\\" in key:
            raise InvalidUploadError(f"Invalid storage key {key!r}")
        path = (self.root / key).resolve()
        if self.root not in path.parents:
            raise InvalidUploadError(f"Invalid storage key {key!r}")
        return path

    # ---- BlobStore ----

    def get(self, key: str) -> bytes:
        path = self._path(key)
        try:
            return path.read_bytes()
        except FileNotFoundError as e:
            raise BlobNotFoundError(key) from e

    def put(self, key: str, data: bytes, content_type: str = "application/pdf") -> None:
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        # Write to temporary file first, then atomic rename
        tmp = path.with_name(path.name + ".tmp")
        tmp.write_bytes(data)
        tmp.replace(path)

    def delete(self, key: str) -> None:
        path = self._path(key)
        try:
            path.unlink()
        except FileNotFoundError:
            logger.info("[blobs.local] delete: %s already gone", key)

    def presign_put(self, key: str, expires_in: int) -> str:
        return self._signed_url("PUT", key, expires_in)

    def presign_get(self, key: str, expires_in: int) -> str:
        return self._signed_url("GET", key, expires_in)

    # ---- signing ----

    def _signature(self, method: str, key: str, expires: int) -> str:
        msg = f"{method}\n{key}\n{expires}".encode("utf-8")
        return hmac.new(self._secret, msg, hashlib.sha256).hexdigest()

    def _signed_url(self, method: str, key: str, expires_in: int) -> str:
        self._path(key)
        expires = int(time.time()) + int(expires_in)
        query = urlencode({"expires": expires, "signature": self._signature(method, key, expires)})
        return f"{self.base_url}/blobs/{quote(key)}?{query}"

    def verify(self, method: str, key: str, expires: int, signature: str, now: Optional[float] = None) -> None:
        """
        Check a presigned request.

        Raises:
            PermissionDeniedError: expired link or bad signature
        """
        now = time.time() if now is None else now
        if expires < now:
            raise PermissionDeniedError("Link has expired", key=key)
        expected = self._signature(method.upper(), key, int(expires))
        if not hmac.compare_digest(expected, signature or ""):
            raise PermissionDeniedError("Invalid link signature", key=key)
