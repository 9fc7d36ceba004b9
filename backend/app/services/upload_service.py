"""
Upload pipeline orchestration.

Thumbnail upload:
    catalog read -> ownership check -> intake "thumbnail" -> local asset store
    -> catalog write

Video upload:
    catalog read -> ownership check -> intake "video" -> capture to temp file
    -> probe aspect ratio -> fast-start remux -> object store PUT -> bind URL
    -> catalog write

Both staging files of a video upload (the capture and its ``.processing``
remux) are removed on every exit path. A failure after the PUT succeeded
leaves an unreferenced object in the bucket; that is tolerated.

The caller's user ID is resolved before any method here runs; every error
is an ``IngestError`` subclass mapped to an HTTP status by the API layer.
"""

import asyncio
import logging
import os
import tempfile

from typing import IO
from uuid import UUID

import aiofiles

from fastapi import Request

from app.config import Settings
from app.core.errors import AssetIOError, NotOwnerError, UploadCancelledError
from app.models.video import VideoRecord
from app.services.asset_store import LocalAssetStore
from app.services.catalog_service import VideoCatalog
from app.services.intake_service import read_upload_part
from app.services.media_service import PROCESSING_SUFFIX, MediaService, classify_aspect_ratio
from app.services.storage_service import StorageService, generate_object_key
from app.services.url_service import VideoURLService
from app.utils.file_validator import MediaPolicy
from app.utils.logger import add_log_context


logger = logging.getLogger(__name__)

CAPTURE_FILE_PREFIX = "video-upload-"
COPY_CHUNK_SIZE = 1024 * 1024
DISCONNECT_POLL_INTERVAL_SECONDS = 1.0


class UploadService:
    """
    Runs thumbnail and video uploads against a single catalog record.

    Example:
        ```python
        service = UploadService(
            settings=settings,
            catalog=catalog,
            storage=storage,
            media=MediaService.from_settings(settings),
            asset_store=LocalAssetStore.from_settings(settings),
            url_service=VideoURLService(settings, storage),
        )
        record = await service.upload_video(request, video_id, user_id)
        ```
    """

    def __init__(
        self,
        settings: Settings,
        catalog: VideoCatalog,
        storage: StorageService,
        media: MediaService,
        asset_store: LocalAssetStore,
        url_service: VideoURLService,
    ) -> None:
        self.settings = settings
        self.catalog = catalog
        self.storage = storage
        self.media = media
        self.asset_store = asset_store
        self.url_service = url_service

    async def load_owned_video(self, video_id: UUID, user_id: UUID) -> VideoRecord:
        """
        Fetch a record and confirm the caller owns it.

        Raises:
            VideoNotFoundError: No such video
            NotOwnerError: The record belongs to someone else
        """
        record = await self.catalog.get(video_id)
        if not record.is_owned_by(user_id):
            logger.warning(
                "User %s attempted to modify video %s owned by %s",
                user_id,
                video_id,
                record.owner_id,
            )
            raise NotOwnerError()
        return record

    # =========================================================================
    # Thumbnail
    # =========================================================================

    async def upload_thumbnail(
        self, request: Request, video_id: UUID, user_id: UUID
    ) -> VideoRecord:
        ctx_logger = add_log_context(logger, video_id=str(video_id), user_id=str(user_id))
        ctx_logger.info("Uploading thumbnail")

        record = await self.load_owned_video(video_id, user_id)

        policy = MediaPolicy.for_thumbnails(self.settings)
        part = await read_upload_part(request, policy, spill_dir=self.settings.temp_dir)
        async with part:
            thumbnail_url = await self.asset_store.save(video_id, part.extension, part.source)

        record.thumbnail_url = thumbnail_url
        await self.catalog.put(record)

        ctx_logger.info("Thumbnail stored", extra={"thumbnail_url": thumbnail_url})
        return record

    # =========================================================================
    # Video
    # =========================================================================

    async def upload_video(self, request: Request, video_id: UUID, user_id: UUID) -> VideoRecord:
        ctx_logger = add_log_context(logger, video_id=str(video_id), user_id=str(user_id))
        ctx_logger.info("Uploading video")

        record = await self.load_owned_video(video_id, user_id)

        capture_path: str | None = None
        processed_path: str | None = None
        try:
            policy = MediaPolicy.for_videos(self.settings)
            part = await read_upload_part(request, policy, spill_dir=self.settings.temp_dir)
            async with part:
                capture_path = self._create_capture_file(part.extension)
                await self._copy_to_file(part.source, capture_path)
                content_type = part.content_type
                extension = part.extension
            ctx_logger.info("Captured upload", extra={"size_bytes": part.size})

            aspect_ratio = await self.media.get_aspect_ratio(capture_path)
            prefix = classify_aspect_ratio(aspect_ratio, self.settings.aspect_ratio_prefixes)
            ctx_logger.info(
                "Probed video", extra={"aspect_ratio": aspect_ratio, "key_prefix": prefix}
            )

            # Assigned before the remux so a partial output is cleaned up too
            processed_path = f"{capture_path}{PROCESSING_SUFFIX}"
            await self.media.process_for_fast_start(capture_path)

            object_key = generate_object_key(prefix, extension)
            try:
                with open(processed_path, "rb") as processed:
                    await self._put_unless_disconnected(
                        request, object_key, processed, content_type
                    )
            except OSError as e:
                raise AssetIOError("Couldn't open processed file") from e
        finally:
            self._remove_temp_files(capture_path, processed_path)

        record.video_url = self.url_service.bind_video_url(object_key)
        try:
            await self.catalog.put(record)
        except Exception:
            ctx_logger.warning(
                "Catalog write failed after upload; object is orphaned",
                extra={"object_key": object_key},
            )
            raise

        ctx_logger.info("Video stored", extra={"object_key": object_key})
        return record

    def _create_capture_file(self, extension: str) -> str:
        """Create a uniquely named, empty staging file and return its path."""
        try:
            fd, path = tempfile.mkstemp(
                prefix=CAPTURE_FILE_PREFIX, suffix=f".{extension}", dir=self.settings.temp_dir
            )
        except OSError as e:
            raise AssetIOError("Couldn't create temp file") from e
        os.close(fd)
        return path

    async def _copy_to_file(self, source: IO[bytes], path: str) -> None:
        """Copy a spooled upload into ``path``; reads happen in a worker thread."""
        try:
            async with aiofiles.open(path, "wb") as out:
                while chunk := await asyncio.to_thread(source.read, COPY_CHUNK_SIZE):
                    await out.write(chunk)
        except OSError as e:
            raise AssetIOError("Couldn't write temp file") from e

    async def _put_unless_disconnected(
        self, request: Request, object_key: str, body: IO[bytes], content_type: str
    ) -> None:
        """
        PUT the object, aborting it if the client goes away first.

        Raises:
            StorageError: The store rejected the PUT
            UploadCancelledError: The client disconnected mid-upload
        """
        upload = asyncio.create_task(self.storage.put_object(object_key, body, content_type))
        try:
            while True:
                done, _ = await asyncio.wait({upload}, timeout=DISCONNECT_POLL_INTERVAL_SECONDS)
                if done:
                    upload.result()
                    return
                if await request.is_disconnected():
                    logger.warning("Client disconnected during upload of %s", object_key)
                    raise UploadCancelledError("Client disconnected")
        finally:
            if not upload.done():
                upload.cancel()
                await asyncio.gather(upload, return_exceptions=True)

    def _remove_temp_files(self, *paths: str | None) -> None:
        for path in paths:
            if path is None:
                continue
            try:
                os.remove(path)
            except FileNotFoundError:
                continue
            except OSError:
                logger.exception("Failed to remove temp file %s", path)
