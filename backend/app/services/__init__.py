"""
Upload pipeline services.

- intake_service: multipart part extraction with media type policy
- asset_store: local thumbnail storage
- media_service: ffprobe aspect-ratio probe and ffmpeg fast-start remux
- storage_service: S3 PUT, presigned GET and object key generation
- url_service: video URL binding and read-time presigning
- catalog_service: video catalog gateway (MongoDB or in-memory)
- upload_service: thumbnail and video upload orchestration
"""
