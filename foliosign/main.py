"""
folio-sign - PDF signing backend API
FastAPI with pluggable metadata (SQLite / JSON) and blob (local / S3) storage.

Install dependencies:
pip install -e .

Run server:
uvicorn foliosign.main:app --host 0.0.0.0 --port 8000
"""

import contextvars
import logging
import os
import time
import uuid
from typing import Optional

from fastapi import Depends, FastAPI, Header, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from foliosign.adapters.base import BlobStore, MetadataStore
from foliosign.core.documents import DocumentService
from foliosign.core.errors import FolioSignError
from foliosign.core.locks import KeyedLocks
from foliosign.core.signing import SigningService
from foliosign.settings import get_settings

# ========== Request Context for Tracing ==========
request_id_var = contextvars.ContextVar('request_id', default=None)
request_start_time_var = contextvars.ContextVar('request_start_time', default=None)

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

STORAGE_BACKEND = settings.storage_backend.lower()
BLOB_BACKEND = settings.blob_backend.lower()
VERSION = "1.0"

logger.info(f"🔧 Storage Backend: {STORAGE_BACKEND.upper()} / Blob Backend: {BLOB_BACKEND.upper()}")

# ============================================================================
# STORAGE INITIALIZATION (lazy, so tests can override before first use)
# ============================================================================

_metadata_store: Optional[MetadataStore] = None
_blob_store: Optional[BlobStore] = None
_document_service: Optional[DocumentService] = None
_signing_service: Optional[SigningService] = None


def build_metadata_store() -> MetadataStore:
    if STORAGE_BACKEND == "sqlite":
        from foliosign.adapters.sqlite import SqliteAdapter
        logger.info(f"Initializing SQLite adapter ({settings.db_url.split('://')[0]})...")
        return SqliteAdapter.from_url(settings.db_url)
    if STORAGE_BACKEND == "json":
        from foliosign.adapters.json import JsonAdapter
        logger.info(f"Initializing JSON adapter in {settings.json_data_dir}...")
        return JsonAdapter(settings.json_data_dir)
    raise ValueError(f"Unknown STORAGE_BACKEND: {STORAGE_BACKEND}")


def build_blob_store() -> BlobStore:
    if BLOB_BACKEND == "local":
        from foliosign.adapters.local import LocalBlobStore
        logger.info(f"Initializing local blob store in {settings.blob_dir}...")
        return LocalBlobStore(
            settings.blob_dir,
            base_url=settings.public_base_url,
            secret=settings.blob_signing_secret,
        )
    if BLOB_BACKEND == "s3":
        from foliosign.adapters.s3 import S3BlobStore
        logger.info(f"Initializing S3 blob store (bucket={settings.s3_bucket_name})...")
        return S3BlobStore(
            settings.s3_bucket_name,
            region=settings.s3_region,
            endpoint_url=settings.s3_endpoint_url,
        )
    raise ValueError(f"Unknown BLOB_BACKEND: {BLOB_BACKEND}")


# ---- DI helpers (used by routers/*) ----
def get_metadata_store() -> MetadataStore:
    global _metadata_store
    if _metadata_store is None:
        _metadata_store = build_metadata_store()
    return _metadata_store


def get_blob_store() -> BlobStore:
    global _blob_store
    if _blob_store is None:
        _blob_store = build_blob_store()
    return _blob_store


def get_document_service() -> DocumentService:
    global _document_service
    if _document_service is None:
        _document_service = DocumentService(
            get_metadata_store(),
            get_blob_store(),
            presign_expiry_seconds=settings.presign_expiry_seconds,
            url_cache_ttl_seconds=settings.url_cache_ttl_seconds,
            url_cache_size=settings.url_cache_size,
            max_upload_bytes=settings.max_upload_bytes,
        )
    return _document_service


def get_signing_service() -> SigningService:
    # One service (and one lock table) per process
    global _signing_service
    if _signing_service is None:
        _signing_service = SigningService(
            get_metadata_store(),
            get_blob_store(),
            KeyedLocks(),
            lease_seconds=settings.sign_lease_seconds,
        )
    return _signing_service


def get_current_user_id(x_user_id: Optional[str] = Header(None)) -> Optional[str]:
    """Caller identity from the X-User-Id header; None means guest."""
    if x_user_id is None:
        return None
    return x_user_id.strip() or None


# ============================================================================
# APP
# ============================================================================

app = FastAPI(
    title="folio-sign API",
    description="Place signature images on PDF pages and store the signed result",
    version=VERSION,
    docs_url="/docs",
    redoc_url="/redoc"
)


# ========== Request Tracing Middleware ==========
@app.middleware("http")
async def request_tracing_middleware(request, call_next):
    """Add request_id and timing to all requests."""
    request_id = str(uuid.uuid4())[:8]
    request_id_var.set(request_id)
    request_start_time_var.set(time.time())

    response = await call_next(request)

    latency = time.time() - request_start_time_var.get()
    logger.info(
        f"Request completed",
        extra={
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "status": response.status_code,
            "latency_ms": round(latency * 1000, 2),
        }
    )

    response.headers["X-Request-ID"] = request_id
    return response


ALLOWED_ORIGINS = settings.get_origins_list()

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(FolioSignError)
async def folio_sign_exception_handler(request, exc: FolioSignError):
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        f"[{exc.code}] {request.method} {request.url.path}: {exc.message}",
        extra={"request_id": request_id_var.get(), "context": exc.context},
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = f"{field}: {first.get('msg', 'invalid value')}" if field else first.get("msg", "Invalid request")
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"message": message, "code": "invalid-request"},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    logger.error(f"Unhandled exception: {str(exc)}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"message": "Internal server error", "code": "internal-error"}
    )


# ============================================================================
# ENDPOINTS
# ============================================================================

@app.get("/healthz")
async def healthz():
    """
    Liveness probe. Returns 200 while the process is up.
    """
    return {
        "status": "ok",
        "timestamp": time.time(),
        "version": VERSION
    }


@app.get("/readyz")
async def readyz(
    metadata: MetadataStore = Depends(get_metadata_store),
    blobs: BlobStore = Depends(get_blob_store),
):
    """
    Readiness probe: metadata store reachable.
    Returns 200 if ready, 503 if not.
    """
    try:
        metadata.ping()
        return {"status": "ready", "backend": STORAGE_BACKEND, "blobs": BLOB_BACKEND}
    except Exception as e:
        logger.error(f"Readiness check failed: {str(e)}")
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "not_ready", "backend": STORAGE_BACKEND, "error": str(e)}
        )


@app.get("/")
async def root():
    """API root endpoint"""
    return {
        "message": "folio-sign API",
        "version": VERSION,
        "backend": STORAGE_BACKEND,
        "blobs": BLOB_BACKEND,
        "status": "running",
        "docs": "/docs"
    }


from foliosign.routers import documents as documents_router
app.include_router(documents_router.router)

from foliosign.routers import signatures as signatures_router
app.include_router(signatures_router.router)

from foliosign.routers import blobs as blobs_router
app.include_router(blobs_router.router)


@app.on_event("startup")
async def startup_event():
    logger.info("folio-sign API starting up...")
    logger.info(f"Storage Backend: {STORAGE_BACKEND.upper()}")
    logger.info(f"Blob Backend: {BLOB_BACKEND.upper()}")
    logger.info(f"Allowed origins: {ALLOWED_ORIGINS}")


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("folio-sign API shutting down...")
    engine = getattr(_metadata_store, "engine", None)
    if engine is not None:
        engine.dispose()


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run("foliosign.main:app", host="0.0.0.0", port=port)
