"""
Shared FastAPI dependencies for the API routers.

Routers declare ``get_video_id`` before ``get_current_user_id`` so that a
malformed path ID is rejected before the bearer token is checked, and neither
dependency touches the request body.
"""

from uuid import UUID

from fastapi import Depends, Path

from app.config import Settings, get_settings
from app.core.errors import InvalidIdError
from app.services.asset_store import LocalAssetStore
from app.services.catalog_service import VideoCatalog, get_catalog
from app.services.media_service import MediaService
from app.services.storage_service import StorageService, get_storage_service
from app.services.upload_service import UploadService
from app.services.url_service import VideoURLService


def get_video_id(video_id: str = Path(..., alias="videoID")) -> UUID:
    """
    Parse the ``{videoID}`` path segment.

    Raises:
        InvalidIdError: The segment is not a UUID (400).
    """
    try:
        return UUID(video_id)
    except ValueError as e:
        raise InvalidIdError() from e


def get_url_service(
    settings: Settings = Depends(get_settings),
    storage: StorageService = Depends(get_storage_service),
) -> VideoURLService:
    return VideoURLService(settings, storage)


def get_upload_service(
    settings: Settings = Depends(get_settings),
    catalog: VideoCatalog = Depends(get_catalog),
    storage: StorageService = Depends(get_storage_service),
    url_service: VideoURLService = Depends(get_url_service),
) -> UploadService:
    return UploadService(
        settings=settings,
        catalog=catalog,
        storage=storage,
        media=MediaService.from_settings(settings),
        asset_store=LocalAssetStore.from_settings(settings),
        url_service=url_service,
    )
