"""
API v1 router aggregator.

Version 1 routers, mounted under ``/api`` by ``app.main``:
    - upload.py: thumbnail and video upload endpoints
    - videos.py: video read endpoints (presigned on read)
"""

from fastapi import APIRouter

from app.api.v1.upload import router as upload_router
from app.api.v1.videos import router as videos_router


api_router = APIRouter()
api_router.include_router(upload_router)
api_router.include_router(videos_router)
