"""
Out-of-process media tools: aspect-ratio probing and fast-start remuxing.

Both steps shell out to FFmpeg's command-line tools through
``asyncio.create_subprocess_exec``. If the awaiting task is cancelled while a
tool is running, the child process is killed and reaped before the
cancellation propagates.
"""

import asyncio
import json
import logging

from app.config import Settings
from app.core.errors import ProbeError, RemuxError
from app.models.video import AspectPrefix


logger = logging.getLogger(__name__)

PROCESSING_SUFFIX = ".processing"
STDERR_LOG_LIMIT = 2000


def classify_aspect_ratio(aspect_ratio: str, prefixes: dict[str, str]) -> str:
    """
    Map a display aspect ratio to its object-key prefix.

    Ratios missing from ``prefixes`` (including an empty string) map to
    ``"other"``.

    Example:
        >>> classify_aspect_ratio("16:9", {"16:9": "landscape"})
        'landscape'
        >>> classify_aspect_ratio("4:3", {"16:9": "landscape"})
        'other'
    """
    return prefixes.get(aspect_ratio.strip(), AspectPrefix.OTHER.value)


async def _run_tool(cmd: list[str]) -> tuple[int, bytes, bytes]:
    """
    Run a command to completion and capture its output.

    Raises:
        OSError: If the executable cannot be started
    """
    process = await asyncio.create_subprocess_exec(
        *cmd,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    try:
        stdout, stderr = await process.communicate()
    except asyncio.CancelledError:
        if process.returncode is None:
            logger.warning("Killing %s (pid %s) after cancellation", cmd[0], process.pid)
            process.kill()
            await process.wait()
        raise
    return process.returncode, stdout, stderr


class MediaService:
    """ffprobe / ffmpeg wrapper used by the video upload pipeline."""

    def __init__(self, ffprobe_path: str = "ffprobe", ffmpeg_path: str = "ffmpeg") -> None:
        self.ffprobe_path = ffprobe_path
        self.ffmpeg_path = ffmpeg_path

    @classmethod
    def from_settings(cls, settings: Settings) -> "MediaService":
        return cls(ffprobe_path=settings.ffprobe_path, ffmpeg_path=settings.ffmpeg_path)

    async def get_aspect_ratio(self, path: str) -> str:
        """
        Return ``streams[0].display_aspect_ratio`` as reported by ffprobe.

        A file whose first stream carries no aspect ratio yields ``""``;
        that is not an error.

        Raises:
            ProbeError: ffprobe could not run, exited non-zero, or printed invalid JSON
        """
        cmd = [self.ffprobe_path, "-v", "error", "-print_format", "json", "-show_streams", path]

        try:
            returncode, stdout, stderr = await _run_tool(cmd)
        except OSError as e:
            raise ProbeError() from e

        if returncode != 0:
            message = stderr.decode("utf-8", errors="replace")[:STDERR_LOG_LIMIT]
            raise ProbeError() from RuntimeError(f"ffprobe exited with {returncode}: {message}")

        try:
            data = json.loads(stdout.decode("utf-8", errors="replace"))
        except json.JSONDecodeError as e:
            raise ProbeError() from e
        if not isinstance(data, dict):
            raise ProbeError() from ValueError(f"ffprobe printed a JSON {type(data).__name__}")

        streams = data.get("streams") or []
        if not isinstance(streams, list) or not streams or not isinstance(streams[0], dict):
            return ""
        aspect_ratio = streams[0].get("display_aspect_ratio") or ""
        return str(aspect_ratio)

    async def process_for_fast_start(self, path: str) -> str:
        """
        Remux ``path`` into ``path.processing`` with the moov atom at the front.

        Streams are copied, not re-encoded. The caller owns the output file.

        Returns:
            str: Path of the remuxed file

        Raises:
            RemuxError: ffmpeg could not run or exited non-zero
        """
        output_path = f"{path}{PROCESSING_SUFFIX}"
        cmd = [
            self.ffmpeg_path,
            "-i",
            path,
            "-c",
            "copy",
            "-movflags",
            "faststart",
            "-f",
            "mp4",
            output_path,
        ]

        try:
            returncode, _, stderr = await _run_tool(cmd)
        except OSError as e:
            raise RemuxError() from e

        if returncode != 0:
            message = stderr.decode("utf-8", errors="replace")[-STDERR_LOG_LIMIT:]
            raise RemuxError() from RuntimeError(f"ffmpeg exited with {returncode}: {message}")

        return output_path
