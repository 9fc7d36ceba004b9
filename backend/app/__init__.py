"""
Video Ingest Backend Application Package

FastAPI service that accepts authenticated thumbnail and video uploads for
existing catalog entries:

- Thumbnails are stored on local disk and served from /assets
- Videos are probed for aspect ratio, remuxed for fast start, and stored in
  an S3-compatible bucket under a random key
- Video URLs point at a CDN, or are presigned on every read for private buckets

Package Structure:
- api/: REST endpoints
- core/: Auth, errors and the MongoDB client
- models/: Pydantic data models
- services/: Upload pipeline stages and their orchestration
- utils/: Logging and media type validation
"""

__version__ = "1.0.0"
__app_name__ = "video-ingest"
