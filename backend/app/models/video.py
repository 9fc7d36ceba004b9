"""
Video catalog models.

``VideoRecord`` is the catalog entity mutated by the upload pipeline. Records
are created elsewhere; uploads only fill in ``thumbnail_url`` / ``video_url``.
Fields this service does not know about are accepted and written back
unchanged.
"""

from datetime import UTC, datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class AspectPrefix(str, Enum):
    """Leading object-key segment derived from a video's display aspect ratio."""

    LANDSCAPE = "landscape"
    PORTRAIT = "portrait"
    OTHER = "other"


class VideoRecord(BaseModel):
    """
    A video entry in the catalog.

    ``video_url`` holds either an absolute CDN URL or, for private-bucket
    deployments, the literal ``"{bucket},{key}"`` tuple that is presigned on
    every read.
    """

    id: UUID = Field(..., description="Video identifier")
    owner_id: UUID = Field(..., description="ID of the user that owns this video")
    title: str = Field(default="", description="Display title")
    description: str = Field(default="", description="Free-form description")
    thumbnail_url: str | None = Field(default=None, description="Public thumbnail URL")
    video_url: str | None = Field(
        default=None, description="CDN URL or private 'bucket,key' tuple"
    )
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC), description="Creation timestamp (UTC)"
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC), description="Last modification timestamp (UTC)"
    )

    model_config = ConfigDict(
        extra="allow",
        json_schema_extra={
            "example": {
                "id": "4f8e8f5e-2b0c-4f6a-9a3e-1d2c3b4a5f60",
                "owner_id": "0b6f3c1e-7d2a-4e8b-9c5d-6a7b8c9d0e1f",
                "title": "Beach day",
                "description": "",
                "thumbnail_url": "http://localhost:8091/assets/4f8e8f5e-2b0c-4f6a-9a3e-1d2c3b4a5f60.png",
                "video_url": "https://d111111abcdef8.cloudfront.net/landscape/abc.mp4",
                "created_at": "2025-01-15T10:30:00Z",
                "updated_at": "2025-01-15T10:30:00Z",
            }
        },
    )

    def is_owned_by(self, user_id: UUID) -> bool:
        return self.owner_id == user_id
