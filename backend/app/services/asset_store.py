"""
Local asset store for thumbnails.

Thumbnails are written to ``{assets_root}/{video_id}.{ext}`` and served by
the application at ``/assets``. The name is deterministic, so a new upload
for the same video replaces the previous file (last writer wins).

Each upload is staged in its own hidden file inside ``assets_root`` and
renamed onto the final name once complete. Readers therefore see either the
previous thumbnail or a whole new one, and a failed upload leaves the
previous thumbnail untouched.
"""

import asyncio
import logging
import os

from pathlib import Path
from typing import IO
from uuid import UUID

import aiofiles
import aiofiles.os
import aiofiles.tempfile

from app.config import Settings
from app.core.errors import AssetIOError


logger = logging.getLogger(__name__)

COPY_CHUNK_SIZE = 1024 * 1024
STAGING_SUFFIX = ".part"


class LocalAssetStore:
    def __init__(self, assets_root: str | Path, public_host: str, port: int) -> None:
        self.assets_root = Path(assets_root)
        self.public_host = public_host
        self.port = port

    @classmethod
    def from_settings(cls, settings: Settings) -> "LocalAssetStore":
        return cls(settings.assets_path, settings.public_host, settings.port)

    def ensure_root(self) -> None:
        """Create the assets directory if it does not exist yet."""
        self.assets_root.mkdir(parents=True, exist_ok=True)

    def asset_filename(self, video_id: UUID, extension: str) -> str:
        return f"{video_id}.{extension}"

    def asset_url(self, filename: str) -> str:
        return f"http://{self.public_host}:{self.port}/assets/{filename}"

    async def save(self, video_id: UUID, extension: str, source: IO[bytes]) -> str:
        """
        Write ``source`` to the video's asset path, replacing any previous asset.

        ``source`` is read in a worker thread, so it may be a spooled file
        that has rolled over to disk.

        Returns:
            str: Public URL of the stored asset

        Raises:
            AssetIOError: On any filesystem error
        """
        filename = self.asset_filename(video_id, extension)
        path = self.assets_root / filename
        staging_path: str | None = None
        published = False
        written = 0
        try:
            async with aiofiles.tempfile.NamedTemporaryFile(
                "wb",
                dir=self.assets_root,
                prefix=f".{filename}.",
                suffix=STAGING_SUFFIX,
                delete=False,
            ) as out:
                staging_path = out.name
                while chunk := await asyncio.to_thread(source.read, COPY_CHUNK_SIZE):
                    await out.write(chunk)
                    written += len(chunk)
            await aiofiles.os.replace(staging_path, path)
            published = True
        except OSError as e:
            logger.error("Failed to write asset %s: %s", path, e)
            raise AssetIOError("Error saving file") from e
        finally:
            if staging_path is not None and not published:
                _discard(staging_path)

        logger.info("Stored asset", extra={"asset_path": str(path), "size_bytes": written})
        return self.asset_url(filename)


def _discard(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError:
        logger.exception("Failed to remove staged asset %s", path)
