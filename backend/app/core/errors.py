"""
Error hierarchy for the upload ingest pipeline.

Every failure a request can surface is an ``IngestError`` subclass carrying a
client-safe message, the error kind reported to clients, and the HTTP status
it maps to. Lower layers raise these with ``raise ... from exc`` so that the
underlying cause is kept for the server log; the registered exception handler
renders only ``{"error": message}``.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse


logger = logging.getLogger(__name__)

HTTP_400_BAD_REQUEST = 400
HTTP_401_UNAUTHORIZED = 401
HTTP_500_INTERNAL_SERVER_ERROR = 500


class IngestError(Exception):
    """Base class for all errors surfaced to upload clients."""

    status_code: int = HTTP_500_INTERNAL_SERVER_ERROR
    error_code: str = "InternalError"
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


# =============================================================================
# 400 - client input errors
# =============================================================================


class InvalidIdError(IngestError):
    status_code = HTTP_400_BAD_REQUEST
    error_code = "InvalidId"
    default_message = "Invalid ID"


class VideoNotFoundError(IngestError):
    status_code = HTTP_400_BAD_REQUEST
    error_code = "NotFound"
    default_message = "Unable to find video"


class BadMultipartError(IngestError):
    status_code = HTTP_400_BAD_REQUEST
    error_code = "BadMultipart"
    default_message = "Unable to parse form"


class UnsupportedMediaError(IngestError):
    status_code = HTTP_400_BAD_REQUEST
    error_code = "UnsupportedMedia"
    default_message = "Unsupported media type"


# =============================================================================
# 401 - authentication and ownership
# =============================================================================


class AuthMissingError(IngestError):
    status_code = HTTP_401_UNAUTHORIZED
    error_code = "AuthMissing"
    default_message = "Couldn't find JWT"


class AuthInvalidError(IngestError):
    status_code = HTTP_401_UNAUTHORIZED
    error_code = "AuthInvalid"
    default_message = "Couldn't validate JWT"


class NotOwnerError(IngestError):
    status_code = HTTP_401_UNAUTHORIZED
    error_code = "NotOwner"
    default_message = "You are not the owner of this video"


# =============================================================================
# 500 - server side failures
# =============================================================================


class AssetIOError(IngestError):
    error_code = "IOError"
    default_message = "Unable to store file"


class ProbeError(IngestError):
    error_code = "ProbeError"
    default_message = "Unable to determine video aspect ratio"


class RemuxError(IngestError):
    error_code = "RemuxError"
    default_message = "Unable to process video"


class StorageError(IngestError):
    error_code = "StorageError"
    default_message = "Unable to upload video"


class UploadCancelledError(StorageError):
    default_message = "Upload cancelled"


class CatalogError(IngestError):
    error_code = "CatalogWriteError"
    default_message = "Unable to read video catalog"


class CatalogWriteError(CatalogError):
    default_message = "Couldn't update video"


class MalformedStoredURLError(IngestError):
    error_code = "MalformedStoredURL"
    default_message = "Malformed video url"


# =============================================================================
# Exception handlers
# =============================================================================


async def ingest_error_handler(request: Request, exc: IngestError) -> JSONResponse:
    """Render an IngestError as ``{"error": message}``; the cause only goes to the log."""
    log_extra = {
        "error_code": exc.error_code,
        "status_code": exc.status_code,
        "path": request.url.path,
        "method": request.method,
    }
    cause = exc.__cause__
    if exc.status_code >= HTTP_500_INTERNAL_SERVER_ERROR:
        logger.error(
            "%s: %s (cause: %r)",
            exc.error_code,
            exc.message,
            cause,
            extra=log_extra,
            exc_info=cause,
        )
    else:
        logger.info("%s: %s", exc.error_code, exc.message, extra=log_extra)

    headers = None
    if exc.status_code == HTTP_401_UNAUTHORIZED:
        headers = {"WWW-Authenticate": "Bearer"}
    return JSONResponse(
        status_code=exc.status_code, content={"error": exc.message}, headers=headers
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(
        "Unhandled error on %s %s", request.method, request.url.path, exc_info=exc
    )
    return JSONResponse(
        status_code=HTTP_500_INTERNAL_SERVER_ERROR, content={"error": "Internal server error"}
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(IngestError, ingest_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
