"""
Pydantic models for the video ingest backend.
"""

from app.models.video import AspectPrefix, VideoRecord


__all__ = ["AspectPrefix", "VideoRecord"]
