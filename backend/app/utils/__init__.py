"""
Utilities for the video ingest backend.

- file_validator: Content-Type parsing and allow-list checks
- logger: JSON / text log formatting and context-bound loggers
"""
