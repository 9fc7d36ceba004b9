"""
Multipart intake for upload requests.

Reads one named file part from a ``multipart/form-data`` body, checks its
advertised media type against a ``MediaPolicy``, and copies the body into a
``SpooledTemporaryFile`` that stays in memory up to the policy's limit and
spills to disk beyond it. Spool writes run in a worker thread so the
rollover to disk does not stall the event loop. The returned ``UploadedPart``
owns that file and the parsed form; callers release both with ``async with``
or ``close()``. Its ``source`` should likewise be read off the loop.
"""

import asyncio
import logging
import tempfile

from dataclasses import dataclass, field
from typing import IO

from starlette.datastructures import FormData, UploadFile
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.formparsers import MultiPartException
from starlette.requests import ClientDisconnect, Request

from app.core.errors import AssetIOError, BadMultipartError
from app.utils.file_validator import MediaPolicy, validate_media_type


logger = logging.getLogger(__name__)

READ_CHUNK_SIZE = 1024 * 1024


@dataclass
class UploadedPart:
    """A validated file part, rewound and ready to read."""

    source: IO[bytes]
    content_type: str
    media_type: str
    extension: str
    size: int
    form: FormData | None = field(default=None, repr=False)

    @property
    def spilled_to_disk(self) -> bool:
        return bool(getattr(self.source, "_rolled", False))

    async def close(self) -> None:
        self.source.close()
        if self.form is not None:
            await self.form.close()
            self.form = None

    async def __aenter__(self) -> "UploadedPart":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()


async def read_upload_part(
    request: Request,
    policy: MediaPolicy,
    spill_dir: str | None = None,
) -> UploadedPart:
    """
    Parse the request body and return the part named by ``policy.field_name``.

    Args:
        request: Incoming request with a multipart body
        policy: Field name, allowed media types and in-memory limit
        spill_dir: Directory for parts larger than the in-memory limit

    Raises:
        BadMultipartError: The body is not parseable multipart, or the named
            file part is missing
        UnsupportedMediaError: The part's Content-Type is not allowed
        AssetIOError: Spilling the part to disk failed
    """
    try:
        form = await request.form()
    except (MultiPartException, StarletteHTTPException, ClientDisconnect) as e:
        logger.info("Unable to parse multipart body: %s", e)
        raise BadMultipartError("Unable to parse form") from e

    try:
        part = form.get(policy.field_name)
        if not isinstance(part, UploadFile):
            raise BadMultipartError("Unable to parse form file")

        content_type = part.content_type or ""
        media_type, extension = validate_media_type(content_type, policy)

        source = tempfile.SpooledTemporaryFile(max_size=policy.memory_limit, dir=spill_dir)
        size = 0
        try:
            while chunk := await part.read(READ_CHUNK_SIZE):
                await asyncio.to_thread(source.write, chunk)
                size += len(chunk)
            source.seek(0)
        except OSError as e:
            source.close()
            raise AssetIOError("Unable to read file") from e
        except BaseException:
            source.close()
            raise
    except BaseException:
        await form.close()
        raise

    uploaded = UploadedPart(
        source=source,
        content_type=content_type,
        media_type=media_type,
        extension=extension,
        size=size,
        form=form,
    )
    logger.debug(
        "Read %s part",
        policy.field_name,
        extra={
            "media_type": media_type,
            "size_bytes": size,
            "spilled_to_disk": uploaded.spilled_to_disk,
        },
    )
    return uploaded
