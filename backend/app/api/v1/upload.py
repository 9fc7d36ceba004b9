"""
Upload endpoints.

- POST /api/thumbnail_upload/{videoID}: multipart part ``thumbnail``
- POST /api/video_upload/{videoID}: multipart part ``video``

Both respond with the updated video record. Errors are rendered as
``{"error": "<message>"}`` with status 400, 401 or 500.
"""

import logging

from uuid import UUID

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field

from app.api.dependencies import get_upload_service, get_video_id
from app.core.auth import get_current_user_id
from app.models.video import VideoRecord
from app.services.upload_service import UploadService


logger = logging.getLogger(__name__)


class ErrorResponse(BaseModel):
    """Body of every error response."""

    error: str = Field(..., description="Client-safe error message")


ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid ID, unknown video or bad upload"},
    401: {"model": ErrorResponse, "description": "Missing or invalid token, or not the owner"},
    500: {"model": ErrorResponse, "description": "Storage, media processing or catalog failure"},
}

MULTIPART_BODY = {
    "requestBody": {
        "required": True,
        "content": {"multipart/form-data": {"schema": {"type": "object"}}},
    }
}

router = APIRouter(tags=["upload"], responses=ERROR_RESPONSES)


@router.post(
    "/thumbnail_upload/{videoID}",
    response_model=VideoRecord,
    summary="Upload a video thumbnail",
    openapi_extra=MULTIPART_BODY,
)
async def upload_thumbnail(
    request: Request,
    video_id: UUID = Depends(get_video_id),
    user_id: UUID = Depends(get_current_user_id),
    upload_service: UploadService = Depends(get_upload_service),
) -> VideoRecord:
    """
    Store an image as the video's thumbnail.

    The image is saved under the assets directory as ``{videoID}.{ext}``,
    replacing any earlier thumbnail, and ``thumbnail_url`` is set to its
    public URL.
    """
    logger.info(f"Thumbnail upload requested for video {video_id} by user {user_id}")
    return await upload_service.upload_thumbnail(request, video_id, user_id)


@router.post(
    "/video_upload/{videoID}",
    response_model=VideoRecord,
    summary="Upload the video file",
    openapi_extra=MULTIPART_BODY,
)
async def upload_video(
    request: Request,
    video_id: UUID = Depends(get_video_id),
    user_id: UUID = Depends(get_current_user_id),
    upload_service: UploadService = Depends(get_upload_service),
) -> VideoRecord:
    """
    Remux an MP4 for fast start and store it in the video bucket.

    The object key is ``{landscape|portrait|other}/{random}.mp4`` based on the
    probed display aspect ratio. ``video_url`` is set to the CDN URL, or to
    ``"{bucket},{key}"`` when no CDN is configured.
    """
    logger.info(f"Video upload requested for video {video_id} by user {user_id}")
    return await upload_service.upload_video(request, video_id, user_id)
