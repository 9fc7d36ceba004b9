"""
Video Ingest Configuration Management Module

This module provides configuration management for the video ingest service
using Pydantic Settings. It loads and validates all environment variables required for:
- Application settings (name, environment, debug mode, logging)
- Bearer token verification
- Local thumbnail asset storage and public URL composition
- S3-compatible object storage, CDN distribution and presigned URL expiry
- Media type allow-lists and aspect-ratio key prefixes
- External media tools (ffprobe / ffmpeg)
- Video catalog backend (MongoDB or in-memory)

All settings support environment variable overrides and .env file loading.
Dictionary-valued settings are given as JSON in the environment, e.g.
``ALLOWED_IMAGE_TYPES='{"image/png": "png"}'``.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


MIB = 1024 * 1024
MAX_PRESIGNED_URL_EXPIRATION_SECONDS = 3600


class Settings(BaseSettings):
    """
    Configuration settings for the video ingest service.

    Configuration Categories:
    - Application: Core app settings like name, environment, debug mode
    - Auth: HMAC secret and expected issuer for bearer tokens
    - Assets: Local directory and public host used for thumbnails
    - S3: Bucket, region, optional CDN distribution and credentials
    - Media: Allowed MIME types, aspect-ratio prefixes, intake spill thresholds
    - Tools: ffprobe / ffmpeg executables
    - Catalog: MongoDB connection or in-memory development catalog

    Example usage:
        ```python
        from app.config import get_settings

        settings = get_settings()
        print(f"CDN mode: {settings.is_cdn_enabled}")
        ```
    """

    # =========================================================================
    # Application Settings
    # =========================================================================

    app_name: str = Field(
        default="Video Ingest API",
        description="Application name displayed in API documentation and logs",
    )

    app_env: str = Field(
        default="development",
        description="Application environment (development, staging, production, testing)",
    )

    debug: bool = Field(default=False, description="Enable debug mode with hot-reload")

    log_level: str = Field(
        default="info", description="Logging level (debug, info, warning, error, critical)"
    )

    json_logs: bool = Field(
        default=False, description="Emit one JSON object per log line instead of plain text"
    )

    host: str = Field(default="0.0.0.0", description="Host address for the API server to bind to")

    port: int = Field(
        default=8091,
        description="Port number for the API server, also used in thumbnail URLs",
        ge=1,
        le=65535,
    )

    public_host: str = Field(
        default="localhost",
        description="Host name clients use to reach this server (thumbnail URLs)",
    )

    cors_origins: list[str] = Field(
        default=["http://localhost:8091"],
        description="List of allowed CORS origins for frontend access",
    )

    # =========================================================================
    # Auth Configuration
    # =========================================================================

    jwt_secret: str = Field(
        default="development-jwt-secret-change-in-production",
        description="HMAC secret used to verify bearer tokens",
        min_length=16,
    )

    jwt_algorithm: str = Field(default="HS256", description="JWT signing algorithm")

    jwt_issuer: str = Field(
        default="video-ingest-access", description="Required 'iss' claim of bearer tokens"
    )

    # =========================================================================
    # Local Asset Storage
    # =========================================================================

    assets_root: str = Field(
        default="./assets", description="Directory holding thumbnails, served at /assets"
    )

    temp_dir: str | None = Field(
        default=None,
        description="Directory for video staging files (None uses the platform temp dir)",
    )

    # =========================================================================
    # S3 Storage Configuration
    # =========================================================================

    s3_bucket: str = Field(default="video-ingest", description="Bucket receiving video uploads")

    s3_region: str = Field(default="us-east-1", description="Region of the video bucket")

    s3_cf_distribution: str | None = Field(
        default=None,
        description="CDN distribution host; when set, video URLs use the public CDN form",
    )

    s3_endpoint_url: str | None = Field(
        default=None, description="S3-compatible endpoint URL (None for AWS S3)"
    )

    s3_access_key_id: str | None = Field(
        default=None, description="Access key ID (None uses the boto3 credential chain)"
    )

    s3_secret_access_key: str | None = Field(
        default=None, description="Secret access key (None uses the boto3 credential chain)"
    )

    presigned_url_expiration_seconds: int = Field(
        default=MAX_PRESIGNED_URL_EXPIRATION_SECONDS,
        description="Lifetime of presigned GET URLs handed out on read",
        ge=60,
        le=MAX_PRESIGNED_URL_EXPIRATION_SECONDS,
    )

    # =========================================================================
    # Media Policy
    # =========================================================================

    allowed_image_types: dict[str, str] = Field(
        default={"image/jpeg": "jpg", "image/png": "png", "image/gif": "gif"},
        description="Thumbnail MIME type to file extension map",
    )

    allowed_video_types: dict[str, str] = Field(
        default={"video/mp4": "mp4"},
        description="Video MIME type to file extension map",
    )

    aspect_ratio_prefixes: dict[str, str] = Field(
        default={"16:9": "landscape", "9:16": "portrait"},
        description="Display aspect ratio to object key prefix map",
    )

    thumbnail_memory_limit_bytes: int = Field(
        default=10 * MIB,
        description="Thumbnail bytes held in memory before spilling to disk",
        ge=1,
    )

    video_memory_limit_bytes: int = Field(
        default=1024 * MIB,
        description="Video bytes held in memory before spilling to disk",
        ge=1,
    )

    # =========================================================================
    # External Media Tools
    # =========================================================================

    ffprobe_path: str = Field(default="ffprobe", description="ffprobe executable")

    ffmpeg_path: str = Field(default="ffmpeg", description="ffmpeg executable")

    # =========================================================================
    # Catalog Configuration
    # =========================================================================

    catalog_backend: str = Field(
        default="mongodb", description="Video catalog backend (mongodb or memory)"
    )

    mongodb_uri: str = Field(
        default="mongodb://localhost:27017",
        description="MongoDB connection URI (e.g., mongodb://localhost:27017)",
    )

    mongodb_db_name: str = Field(default="video_ingest", description="MongoDB database name")

    mongodb_videos_collection: str = Field(
        default="videos", description="Collection holding video records"
    )

    mongodb_max_pool_size: int = Field(
        default=100, description="Maximum number of connections in MongoDB connection pool", ge=1
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate that log_level is a valid logging level."""
        valid_levels = {"debug", "info", "warning", "error", "critical"}
        normalized = v.lower()
        if normalized not in valid_levels:
            raise ValueError(f"Invalid log_level '{v}'. Must be one of: {', '.join(valid_levels)}")
        return normalized

    @field_validator("app_env")
    @classmethod
    def validate_app_env(cls, v: str) -> str:
        """Validate that app_env is a valid environment name."""
        valid_envs = {"development", "staging", "production", "testing"}
        normalized = v.lower()
        if normalized not in valid_envs:
            raise ValueError(f"Invalid app_env '{v}'. Must be one of: {', '.join(valid_envs)}")
        return normalized

    @field_validator("jwt_algorithm")
    @classmethod
    def validate_jwt_algorithm(cls, v: str) -> str:
        """Only HMAC algorithms are accepted since tokens are verified with a shared secret."""
        valid_algorithms = {"HS256", "HS384", "HS512"}
        if v.upper() not in valid_algorithms:
            raise ValueError(
                f"Invalid jwt_algorithm '{v}'. Must be one of: {', '.join(valid_algorithms)}"
            )
        return v.upper()

    @field_validator("catalog_backend")
    @classmethod
    def validate_catalog_backend(cls, v: str) -> str:
        normalized = v.lower()
        if normalized not in {"mongodb", "memory"}:
            raise ValueError(f"Invalid catalog_backend '{v}'. Must be 'mongodb' or 'memory'")
        return normalized

    @field_validator("s3_cf_distribution", mode="before")
    @classmethod
    def validate_cf_distribution(cls, v: str | None) -> str | None:
        """Treat a blank distribution as unset and strip any scheme or trailing slash."""
        if v is None:
            return None
        value = str(v).strip()
        for scheme in ("https://", "http://"):
            if value.startswith(scheme):
                value = value[len(scheme) :]
        return value.rstrip("/") or None

    @field_validator("allowed_image_types", "allowed_video_types", mode="after")
    @classmethod
    def validate_media_types(cls, v: dict[str, str]) -> dict[str, str]:
        if not v:
            raise ValueError("Allowed media type map must not be empty")
        return {mime.strip().lower(): ext.strip().lstrip(".") for mime, ext in v.items()}

    @field_validator("cors_origins", mode="before")
    @classmethod
    def validate_cors_origins(cls, v: str | list[str]) -> list[str]:
        """Parse CORS origins from a comma-separated string or list."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    @property
    def is_cdn_enabled(self) -> bool:
        """Public CDN mode is selected by the presence of a distribution host."""
        return self.s3_cf_distribution is not None

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    @property
    def assets_path(self) -> Path:
        return Path(self.assets_root)


@lru_cache
def get_settings() -> Settings:
    """
    Get the global Settings instance.

    The Settings object is created once on first call; later calls return the
    cached instance without re-reading environment variables or .env files.
    """
    return Settings()
