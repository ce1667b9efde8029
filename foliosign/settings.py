# foliosign/settings.py
from pydantic_settings import BaseSettings
from pydantic import ConfigDict, Field
from typing import List, Optional
from pathlib import Path

class Settings(BaseSettings):
    # Metadata storage settings
    # Default to SQLite; override via .env (STORAGE_BACKEND=json)
    storage_backend: str = "sqlite"
    db_url: str = "sqlite:///data/foliosign.db"
    json_data_dir: str = "data/json"

    # Blob storage settings
    # "local" keeps PDFs on disk under blob_dir, "s3" uses the bucket below
    blob_backend: str = "local"
    blob_dir: str = "data/blobs"
    # Local backend only: presigned /blobs/... links are built on this base
    # and signed with this secret.
    public_base_url: str = "http://localhost:8000"
    blob_signing_secret: str = "change-me"
    s3_bucket_name: str = ""
    s3_region: str = "us-east-1"
    # Optional: point at MinIO / LocalStack instead of AWS
    s3_endpoint_url: Optional[str] = None

    # Signed URL lifetime (seconds). Matches the 1-hour read links the viewer expects.
    presign_expiry_seconds: int = 3600
    # Signed read URLs are cached per (key, version) for this long; must stay
    # well below presign_expiry_seconds.
    url_cache_ttl_seconds: int = 300
    url_cache_size: int = 1024

    # A signer holds the per-document lease for at most this long; a crashed
    # process stops blocking signs on that document after it runs out.
    sign_lease_seconds: int = 120

    # CORS settings
    allowed_origins: str = "http://localhost:3001,http://localhost:3000"

    # Upload / capture limits
    max_upload_mb: int = 10
    max_signature_mb: int = 5

    # Script font used for typed signatures. Empty = try common system fonts.
    signature_font_path: str = Field(
        default="",
        description="Path to a .ttf/.otf cursive font for typed signatures",
    )

    log_level: str = "INFO"

    model_config = ConfigDict(
        # Always load .env from the same folder as this settings.py
        env_file=str(Path(__file__).resolve().parent / ".env"),
        extra="ignore",
    )

    @property
    def max_upload_bytes(self) -> int:
        return self.max_upload_mb * 1024 * 1024

    @property
    def max_signature_bytes(self) -> int:
        return self.max_signature_mb * 1024 * 1024

    def get_origins_list(self) -> List[str]:
        """Parse comma-separated origins into a list."""
        if not self.allowed_origins:
            return ["*"]
        return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]


_settings_instance = None

def get_settings() -> Settings:
    """Singleton pattern for settings."""
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings()
    return _settings_instance
