"""
Video read endpoints.

Records are passed through the presigner on the way out, so private-bucket
deployments hand clients a short-lived signed URL instead of the stored
bucket/key pair.
"""

from uuid import UUID

from fastapi import APIRouter, Depends

from app.api.dependencies import get_upload_service, get_url_service, get_video_id
from app.core.auth import get_current_user_id
from app.models.video import VideoRecord
from app.services.catalog_service import VideoCatalog, get_catalog
from app.services.upload_service import UploadService
from app.services.url_service import VideoURLService


router = APIRouter(tags=["videos"])


@router.get("/videos", response_model=list[VideoRecord], summary="List the caller's videos")
async def list_videos(
    user_id: UUID = Depends(get_current_user_id),
    catalog: VideoCatalog = Depends(get_catalog),
    url_service: VideoURLService = Depends(get_url_service),
) -> list[VideoRecord]:
    records = await catalog.list_for_owner(user_id)
    return await url_service.sign_videos(records)


@router.get("/videos/{videoID}", response_model=VideoRecord, summary="Get one video")
async def get_video(
    video_id: UUID = Depends(get_video_id),
    user_id: UUID = Depends(get_current_user_id),
    upload_service: UploadService = Depends(get_upload_service),
    url_service: VideoURLService = Depends(get_url_service),
) -> VideoRecord:
    record = await upload_service.load_owned_video(video_id, user_id)
    return await url_service.sign_video(record)
