"""
Video Ingest API package.

Routers are versioned by package:
    - v1/: upload and video read endpoints, mounted under ``/api``
    - dependencies.py: FastAPI dependencies shared across versions
"""
