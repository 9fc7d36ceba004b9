"""
Media type validation for uploaded parts.

Uploads are accepted on the MIME type the client advertises for the part.
The allow-lists are configuration (``allowed_image_types`` /
``allowed_video_types``) mapping each accepted media type to the file
extension used when the artifact is stored.
"""

import re

from dataclasses import dataclass

from app.config import Settings
from app.core.errors import UnsupportedMediaError


# =============================================================================
# CONSTANTS
# =============================================================================

THUMBNAIL_FIELD = "thumbnail"
VIDEO_FIELD = "video"

# RFC 7231 token characters for the type and subtype of a media type
_TOKEN = r"[a-z0-9!#$%&'*+.^_`|~-]+"
MEDIA_TYPE_PATTERN = re.compile(rf"^({_TOKEN})/({_TOKEN})$")


@dataclass(frozen=True)
class MediaPolicy:
    """Which multipart field to read, what it may contain, and how much to hold in memory."""

    field_name: str
    allowed_types: dict[str, str]
    memory_limit: int

    @classmethod
    def for_thumbnails(cls, settings: Settings) -> "MediaPolicy":
        return cls(
            field_name=THUMBNAIL_FIELD,
            allowed_types=settings.allowed_image_types,
            memory_limit=settings.thumbnail_memory_limit_bytes,
        )

    @classmethod
    def for_videos(cls, settings: Settings) -> "MediaPolicy":
        return cls(
            field_name=VIDEO_FIELD,
            allowed_types=settings.allowed_video_types,
            memory_limit=settings.video_memory_limit_bytes,
        )


def parse_media_type(content_type: str | None) -> str:
    """
    Parse a Content-Type header value down to its ``type/subtype``.

    Parameters such as ``; charset=...`` are dropped and the result is
    lower-cased.

    Raises:
        UnsupportedMediaError: If the value is empty or not a media type.

    Example:
        >>> parse_media_type("Image/PNG; name=thumb.png")
        'image/png'
    """
    if not content_type:
        raise UnsupportedMediaError("Missing Content-Type for file")

    media_type = content_type.split(";", 1)[0].strip().lower()
    if not MEDIA_TYPE_PATTERN.match(media_type):
        raise UnsupportedMediaError("Invalid Content-Type")
    return media_type


def validate_media_type(content_type: str | None, policy: MediaPolicy) -> tuple[str, str]:
    """
    Check an advertised Content-Type against the policy's allow-list.

    Returns:
        tuple: ``(media_type, extension)``

    Raises:
        UnsupportedMediaError: If the type is malformed or not allowed.
    """
    media_type = parse_media_type(content_type)
    extension = policy.allowed_types.get(media_type)
    if extension is None:
        raise UnsupportedMediaError(f"Invalid file type for {policy.field_name}")
    return media_type, extension
