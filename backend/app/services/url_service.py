"""
Video URL binding and read-time presigning.

Two deployment modes, chosen by ``s3_cf_distribution``:

- Public CDN: ``video_url`` is stored as ``https://{distribution}/{key}``.
- Private bucket: ``video_url`` is stored as the literal ``"{bucket},{key}"``
  and replaced by a fresh presigned GET URL every time a record is read.
"""

import logging

from app.config import Settings
from app.core.errors import MalformedStoredURLError
from app.models.video import VideoRecord
from app.services.storage_service import StorageService


logger = logging.getLogger(__name__)

ABSOLUTE_URL_PREFIXES = ("https://", "http://")
PRIVATE_URL_SEPARATOR = ","


def split_private_url(stored_url: str) -> tuple[str, str]:
    """
    Split a stored ``"{bucket},{key}"`` tuple on its first comma.

    Raises:
        MalformedStoredURLError: If either side is missing or empty.
    """
    parts = stored_url.split(PRIVATE_URL_SEPARATOR, 1)
    if len(parts) != 2 or not all(part.strip() for part in parts):
        raise MalformedStoredURLError()
    bucket, key = (part.strip() for part in parts)
    return bucket, key


class VideoURLService:
    def __init__(self, settings: Settings, storage: StorageService) -> None:
        self.settings = settings
        self.storage = storage

    def bind_video_url(self, object_key: str) -> str:
        """Return the value to store in ``video_url`` for a freshly uploaded object."""
        if self.settings.is_cdn_enabled:
            return f"https://{self.settings.s3_cf_distribution}/{object_key}"
        return f"{self.settings.s3_bucket}{PRIVATE_URL_SEPARATOR}{object_key}"

    async def sign_video(self, record: VideoRecord) -> VideoRecord:
        """
        Return a copy of ``record`` whose private ``video_url`` is presigned.

        Records without a video URL, or with an absolute URL, come back unchanged.

        Raises:
            MalformedStoredURLError: The stored value is neither a URL nor a bucket/key pair
            StorageError: Signing failed
        """
        stored_url = record.video_url
        if not stored_url or stored_url.startswith(ABSOLUTE_URL_PREFIXES):
            return record

        bucket, key = split_private_url(stored_url)
        signed_url = await self.storage.generate_presigned_download_url(
            key,
            bucket_name=bucket,
            expiration=self.settings.presigned_url_expiration_seconds,
        )
        return record.model_copy(update={"video_url": signed_url})

    async def sign_videos(self, records: list[VideoRecord]) -> list[VideoRecord]:
        return [await self.sign_video(record) for record in records]
