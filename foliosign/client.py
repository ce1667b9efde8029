# foliosign/client.py
"""
Thin httpx client for the folio-sign HTTP API.

Used by scripts and by the viewer-side CleanupQueue as its flush transport:

    client = FolioSignClient("http://localhost:8000")
    queue = CleanupQueue(client.cleanup_guest_documents, delete_fn=client.delete_document)
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional

import httpx

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """Non-2xx response; carries the server's {message, code} when present."""

    def __init__(self, status_code: int, message: str, code: Optional[str] = None):
        super().__init__(f"{status_code} {code or 'error'}: {message}")
        self.status_code = status_code
        self.message = message
        self.code = code


class FolioSignClient:
    def __init__(
        self,
        base_url: str,
        user_id: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        headers = {"X-User-Id": user_id} if user_id else {}
        self._http = httpx.Client(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "FolioSignClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def _request(self, method: str, path: str, **kwargs) -> Any:
        resp = self._http.request(method, path, **kwargs)
        if resp.status_code >= 400:
            try:
                body = resp.json()
            except ValueError:
                body = {}
            message = body.get("message") if isinstance(body, dict) else None
            code = body.get("code") if isinstance(body, dict) else None
            raise ApiError(resp.status_code, message or resp.text or resp.reason_phrase, code)
        return resp.json() if resp.content else None

    # ---------- documents ----------

    def presign_upload(self, name: str, content_type: str = "application/pdf", size: Optional[int] = None) -> Dict[str, str]:
        return self._request("POST", "/documents/presign", json={"name": name, "contentType": content_type, "size": size})

    def upload_document(self, name: str, data: bytes) -> Dict[str, Any]:
        """Presign, PUT the bytes to the returned URL, then register the record."""
        presigned = self.presign_upload(name, size=len(data))
        put = self._http.put(presigned["presigned_url"], content=data, headers={"Content-Type": "application/pdf"})
        put.raise_for_status()
        return self._request("POST", "/documents", json={"name": name, "key": presigned["key"]})

    def get_document(self, doc_id: str) -> Dict[str, Any]:
        return self._request("GET", f"/documents/{doc_id}")

    def list_documents(self) -> List[Dict[str, Any]]:
        return self._request("GET", "/documents")

    def delete_document(self, doc_id: str) -> None:
        self._request("DELETE", f"/documents/{doc_id}")

    def sign_document(
        self,
        document_id: str,
        signature_data_uri: str,
        x: float,
        y: float,
        width: float,
        height: float,
        page: int = 1,
        visitor_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        return self._request(
            "POST",
            "/documents/sign",
            json={
                "documentId": document_id,
                "signatureDataUri": signature_data_uri,
                "visitorId": visitor_id,
                "page": page,
                "x": x,
                "y": y,
                "width": width,
                "height": height,
            },
        )

    def cleanup_guest_documents(self, document_ids: Iterable[str]) -> List[Dict[str, Any]]:
        ids = list(document_ids)
        body = self._request("POST", "/documents/cleanup", json={"documentIds": ids})
        results = body.get("results", [])
        logger.info("[client.cleanup] %s ids sent, %s results", len(ids), len(results))
        return results

    # ---------- signatures ----------

    def capture_typed(self, text: str, color: str = "#000000") -> Dict[str, Any]:
        return self._request("POST", "/signatures/typed", json={"text": text, "color": color})

    def capture_drawn(self, strokes, width: int = 600, height: int = 200, color: str = "#000000") -> Dict[str, Any]:
        return self._request(
            "POST",
            "/signatures/drawn",
            json={"strokes": strokes, "width": width, "height": height, "color": color},
        )

    def upload_signature(self, filename: str, data: bytes, content_type: str) -> Dict[str, Any]:
        return self._request("POST", "/signatures/upload", files={"file": (filename, data, content_type)})
