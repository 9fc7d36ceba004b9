"""
ffprobe / ffmpeg wrapper tests.

Unit tests replace ``asyncio.create_subprocess_exec`` with a mock process.
The integration class runs the real tools when they are on PATH and checks
that the remuxed file has its ``moov`` box ahead of ``mdat``.
"""

import asyncio
import json
import struct
import subprocess

from pathlib import Path
from unittest.mock import AsyncMock, Mock, patch

import pytest

from app.core.errors import ProbeError, RemuxError
from app.services.media_service import MediaService, classify_aspect_ratio

from conftest import find_ffmpeg


PREFIXES = {"16:9": "landscape", "9:16": "portrait"}


def _process(returncode: int = 0, stdout: bytes = b"", stderr: bytes = b"") -> Mock:
    process = Mock()
    process.pid = 4242
    process.returncode = returncode
    process.communicate = AsyncMock(return_value=(stdout, stderr))
    process.kill = Mock()
    process.wait = AsyncMock(return_value=-9)
    return process


def _probe_output(*streams: dict) -> bytes:
    return json.dumps({"streams": list(streams)}).encode()


def top_level_boxes(path: Path) -> list[str]:
    """Return the types of the top-level ISO-BMFF boxes in file order."""
    boxes = []
    with open(path, "rb") as f:
        while header := f.read(8):
            if len(header) < 8:
                break
            size, box_type = struct.unpack(">I4s", header)
            header_size = 8
            if size == 1:
                (size,) = struct.unpack(">Q", f.read(8))
                header_size = 16
            boxes.append(box_type.decode("latin-1"))
            if size == 0:
                break
            f.seek(size - header_size, 1)
    return boxes


# =============================================================================
# Aspect ratio classification
# =============================================================================


class TestClassifyAspectRatio:
    @pytest.mark.parametrize(
        "ratio,prefix",
        [
            ("16:9", "landscape"),
            ("9:16", "portrait"),
            (" 16:9 ", "landscape"),
            ("4:3", "other"),
            ("1:1", "other"),
            ("", "other"),
            ("N/A", "other"),
        ],
    )
    def test_classify(self, ratio: str, prefix: str):
        assert classify_aspect_ratio(ratio, PREFIXES) == prefix


# =============================================================================
# Probe
# =============================================================================


class TestGetAspectRatio:
    async def test_command_and_result(self):
        process = _process(stdout=_probe_output({"display_aspect_ratio": "9:16"}))
        service = MediaService(ffprobe_path="/opt/ffprobe")

        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=process)) as exec_mock:
            ratio = await service.get_aspect_ratio("/tmp/in.mp4")

        assert ratio == "9:16"
        args = exec_mock.await_args.args
        assert list(args) == [
            "/opt/ffprobe",
            "-v",
            "error",
            "-print_format",
            "json",
            "-show_streams",
            "/tmp/in.mp4",
        ]

    async def test_only_first_stream_is_read(self):
        process = _process(
            stdout=_probe_output({"codec_type": "audio"}, {"display_aspect_ratio": "16:9"})
        )

        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=process)):
            ratio = await MediaService().get_aspect_ratio("/tmp/in.mp4")

        assert ratio == ""

    @pytest.mark.parametrize("stdout", [_probe_output(), b'{"format": {}}'])
    async def test_no_streams_is_empty_ratio(self, stdout: bytes):
        process = _process(stdout=stdout)

        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=process)):
            assert await MediaService().get_aspect_ratio("/tmp/in.mp4") == ""

    async def test_nonzero_exit(self):
        process = _process(returncode=1, stderr=b"Invalid data found when processing input")

        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=process)):
            with pytest.raises(ProbeError):
                await MediaService().get_aspect_ratio("/tmp/in.mp4")

    @pytest.mark.parametrize("stdout", [b"not json", b"[]", b"null", b"\"16:9\""])
    async def test_invalid_json(self, stdout: bytes):
        process = _process(stdout=stdout)

        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=process)):
            with pytest.raises(ProbeError):
                await MediaService().get_aspect_ratio("/tmp/in.mp4")

    async def test_missing_executable(self):
        exec_mock = AsyncMock(side_effect=FileNotFoundError("ffprobe"))

        with patch("asyncio.create_subprocess_exec", exec_mock):
            with pytest.raises(ProbeError) as exc_info:
                await MediaService().get_aspect_ratio("/tmp/in.mp4")
        assert exc_info.value.status_code == 500


# =============================================================================
# Remux
# =============================================================================


class TestProcessForFastStart:
    async def test_command_and_output_path(self):
        process = _process()
        service = MediaService(ffmpeg_path="/opt/ffmpeg")

        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=process)) as exec_mock:
            output = await service.process_for_fast_start("/tmp/in.mp4")

        assert output == "/tmp/in.mp4.processing"
        assert list(exec_mock.await_args.args) == [
            "/opt/ffmpeg",
            "-i",
            "/tmp/in.mp4",
            "-c",
            "copy",
            "-movflags",
            "faststart",
            "-f",
            "mp4",
            "/tmp/in.mp4.processing",
        ]

    async def test_nonzero_exit(self):
        process = _process(returncode=1, stderr=b"moov atom not found")

        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=process)):
            with pytest.raises(RemuxError) as exc_info:
                await MediaService().process_for_fast_start("/tmp/in.mp4")
        assert exc_info.value.message == "Unable to process video"

    async def test_missing_executable(self):
        exec_mock = AsyncMock(side_effect=PermissionError("ffmpeg"))

        with patch("asyncio.create_subprocess_exec", exec_mock):
            with pytest.raises(RemuxError):
                await MediaService().process_for_fast_start("/tmp/in.mp4")

    async def test_cancellation_kills_process(self):
        started = asyncio.Event()

        async def hang():
            started.set()
            await asyncio.Event().wait()

        process = _process()
        process.returncode = None
        process.communicate = AsyncMock(side_effect=hang)

        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=process)):
            task = asyncio.create_task(MediaService().process_for_fast_start("/tmp/in.mp4"))
            await started.wait()
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        process.kill.assert_called_once()
        process.wait.assert_awaited_once()


# =============================================================================
# Real tools
# =============================================================================


@pytest.mark.integration
@pytest.mark.skipif(not find_ffmpeg(), reason="ffmpeg/ffprobe not installed")
class TestRealTools:
    """Runs ffprobe and ffmpeg against a generated clip."""

    def _make_clip(self, path: Path, size: str) -> None:
        # The mp4 muxer writes mdat before moov unless told otherwise
        subprocess.run(
            [
                "ffmpeg",
                "-v",
                "error",
                "-f",
                "lavfi",
                "-i",
                f"testsrc=size={size}:rate=10",
                "-t",
                "1",
                "-c:v",
                "mpeg4",
                "-f",
                "mp4",
                str(path),
            ],
            check=True,
        )

    @pytest.mark.parametrize("size,ratio", [("320x180", "16:9"), ("180x320", "9:16")])
    async def test_probe(self, tmp_path: Path, size: str, ratio: str):
        clip = tmp_path / "clip.mp4"
        self._make_clip(clip, size)

        assert await MediaService().get_aspect_ratio(str(clip)) == ratio

    async def test_probe_rejects_garbage(self, tmp_path: Path):
        junk = tmp_path / "junk.mp4"
        junk.write_bytes(b"\x00" * 1024)

        with pytest.raises(ProbeError):
            await MediaService().get_aspect_ratio(str(junk))

    async def test_remux_moves_moov_first(self, tmp_path: Path):
        clip = tmp_path / "clip.mp4"
        self._make_clip(clip, "320x180")
        before = top_level_boxes(clip)
        assert before.index("mdat") < before.index("moov")

        output = await MediaService().process_for_fast_start(str(clip))

        after = top_level_boxes(Path(output))
        assert output == f"{clip}.processing"
        assert after.index("moov") < after.index("mdat")
