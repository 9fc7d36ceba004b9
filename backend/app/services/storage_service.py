"""
S3-compatible object storage for uploaded videos.

Wraps a boto3 S3 client with async methods (blocking calls run in a worker
thread via ``async_wrap``):

- ``put_object``: single PUT of a whole file under a given key
- ``generate_presigned_download_url``: time-limited GET URL for a private object
- ``generate_object_key``: ``{prefix}/{random}.{ext}`` with 256 bits of randomness

A PUT whose awaiting task is cancelled (e.g. the client disconnected) is
aborted from inside the worker thread at the next body read.
"""

import asyncio
import base64
import logging
import secrets
import threading

from collections.abc import Callable
from functools import wraps
from typing import Any, BinaryIO, TypeVar

import boto3

from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from app.config import MAX_PRESIGNED_URL_EXPIRATION_SECONDS, Settings, get_settings
from app.core.errors import StorageError, UploadCancelledError


logger = logging.getLogger(__name__)

T = TypeVar("T")

OBJECT_KEY_RANDOM_BYTES = 32
MIN_PRESIGNED_URL_EXPIRATION_SECONDS = 1


def async_wrap(func: Callable[..., T]) -> Callable[..., "asyncio.Future[T]"]:
    """
    Decorator to run a synchronous boto3 call in a worker thread.

    Uses asyncio.to_thread so S3 round-trips never block the event loop.
    """

    @wraps(func)
    async def wrapper(*args: Any, **kwargs: Any) -> T:
        return await asyncio.to_thread(func, *args, **kwargs)

    return wrapper


def generate_object_key(prefix: str, extension: str) -> str:
    """
    Compose a video object key: ``{prefix}/{random}.{extension}``.

    ``random`` is 32 bytes from the OS CSPRNG in URL-safe base64 without
    padding (43 characters), so keys never collide in practice.
    """
    random_part = (
        base64.urlsafe_b64encode(secrets.token_bytes(OBJECT_KEY_RANDOM_BYTES))
        .rstrip(b"=")
        .decode("ascii")
    )
    return f"{prefix}/{random_part}.{extension}"


class CancellableReader:
    """
    File wrapper that fails reads once ``cancel_event`` is set.

    botocore streams the PUT body from a worker thread that cannot be
    interrupted from the event loop; failing the next ``read`` makes it abort
    the request instead of finishing the upload.
    """

    def __init__(self, fileobj: BinaryIO, cancel_event: threading.Event) -> None:
        self._fileobj = fileobj
        self._cancel_event = cancel_event

    def read(self, size: int = -1) -> bytes:
        if self._cancel_event.is_set():
            raise UploadCancelledError()
        return self._fileobj.read(size)

    def seek(self, offset: int, whence: int = 0) -> int:
        return self._fileobj.seek(offset, whence)

    def tell(self) -> int:
        return self._fileobj.tell()

    def __getattr__(self, name: str) -> Any:
        return getattr(self._fileobj, name)


class StorageService:
    """
    Object storage service for video uploads.

    Works with AWS S3 and S3-compatible stores through a configurable
    endpoint URL. Credentials fall back to the boto3 credential chain
    (environment, shared config, instance role) when not given.

    Example:
        >>> service = StorageService(bucket_name="videos", region_name="us-east-1")
        >>> await service.put_object("landscape/abc.mp4", fileobj, "video/mp4")
        >>> url = await service.generate_presigned_download_url("landscape/abc.mp4")
    """

    def __init__(
        self,
        bucket_name: str,
        endpoint_url: str | None = None,
        access_key: str | None = None,
        secret_key: str | None = None,
        region_name: str = "us-east-1",
    ) -> None:
        self.bucket_name = bucket_name
        self.endpoint_url = endpoint_url
        self.region_name = region_name

        client_kwargs: dict[str, Any] = {
            "region_name": region_name,
            "config": Config(
                signature_version="s3v4",
                retries={"max_attempts": 3, "mode": "standard"},
            ),
        }
        if endpoint_url:
            client_kwargs["endpoint_url"] = endpoint_url
        if access_key and secret_key:
            client_kwargs["aws_access_key_id"] = access_key
            client_kwargs["aws_secret_access_key"] = secret_key

        try:
            self._client = boto3.client("s3", **client_kwargs)
        except BotoCoreError as e:
            logger.error("Failed to initialize S3 client: %s", e)
            raise StorageError("Storage is not configured") from e

        logger.info(
            "StorageService initialized with bucket=%s, endpoint=%s",
            bucket_name,
            endpoint_url or "AWS S3 default",
        )

    async def put_object(
        self,
        object_key: str,
        body: BinaryIO,
        content_type: str,
        bucket_name: str | None = None,
    ) -> None:
        """
        Upload a whole file with a single PUT.

        Args:
            object_key: Destination key
            body: Seekable binary file positioned at the start of the content
            content_type: MIME type recorded on the object
            bucket_name: Optional bucket override (defaults to service bucket)

        Raises:
            StorageError: If the store rejects the PUT or the request fails
            asyncio.CancelledError: If the awaiting task is cancelled; the
                in-flight PUT is aborted at its next body read
        """
        target_bucket = bucket_name or self.bucket_name
        cancel_event = threading.Event()
        reader = CancellableReader(body, cancel_event)

        @async_wrap
        def _put_object() -> dict[str, Any]:
            return self._client.put_object(
                Bucket=target_bucket,
                Key=object_key,
                Body=reader,
                ContentType=content_type,
            )

        try:
            await _put_object()
        except asyncio.CancelledError:
            cancel_event.set()
            logger.warning(
                "PUT cancelled for object_key=%s, bucket=%s", object_key, target_bucket
            )
            raise
        except (ClientError, BotoCoreError) as e:
            logger.error(
                "PUT failed for object_key=%s, bucket=%s: %s", object_key, target_bucket, e
            )
            raise StorageError() from e

        logger.info(
            "Uploaded object",
            extra={"object_key": object_key, "bucket": target_bucket, "content_type": content_type},
        )

    async def generate_presigned_download_url(
        self,
        object_key: str,
        bucket_name: str | None = None,
        expiration: int = MAX_PRESIGNED_URL_EXPIRATION_SECONDS,
    ) -> str:
        """
        Generate a presigned GET URL for a private object.

        Every call signs afresh against the current time; nothing is cached.

        Args:
            object_key: Key of the object to expose
            bucket_name: Optional bucket override (defaults to service bucket)
            expiration: Lifetime in seconds, at most one hour

        Raises:
            ValueError: If expiration is outside 1..3600 seconds
            StorageError: If signing fails
        """
        valid_range = range(
            MIN_PRESIGNED_URL_EXPIRATION_SECONDS, MAX_PRESIGNED_URL_EXPIRATION_SECONDS + 1
        )
        if expiration not in valid_range:
            raise ValueError(
                f"expiration must be between {MIN_PRESIGNED_URL_EXPIRATION_SECONDS} and "
                f"{MAX_PRESIGNED_URL_EXPIRATION_SECONDS} seconds"
            )
        target_bucket = bucket_name or self.bucket_name

        @async_wrap
        def _generate() -> str:
            return self._client.generate_presigned_url(
                ClientMethod="get_object",
                Params={"Bucket": target_bucket, "Key": object_key},
                ExpiresIn=expiration,
                HttpMethod="GET",
            )

        try:
            url = await _generate()
        except (ClientError, BotoCoreError) as e:
            logger.error(
                "Failed to presign object_key=%s, bucket=%s: %s", object_key, target_bucket, e
            )
            raise StorageError("Couldn't generate presigned URL") from e

        logger.debug(
            "Generated presigned URL for %s/%s (%ss)", target_bucket, object_key, expiration
        )
        return url


class _StorageServiceContainer:
    service: StorageService | None = None


_container = _StorageServiceContainer()


def build_storage_service(settings: Settings) -> StorageService:
    return StorageService(
        bucket_name=settings.s3_bucket,
        endpoint_url=settings.s3_endpoint_url,
        access_key=settings.s3_access_key_id,
        secret_key=settings.s3_secret_access_key,
        region_name=settings.s3_region,
    )


def get_storage_service() -> StorageService:
    """FastAPI dependency returning the process-wide storage service."""
    if _container.service is None:
        _container.service = build_storage_service(get_settings())
    return _container.service
