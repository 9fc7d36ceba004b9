"""
Pytest Configuration and Test Fixtures for the Video Ingest Backend

This module provides the shared fixtures for the test suite:
- Settings pointing at per-test asset and staging directories
- An in-memory video catalog seeded with one record
- A mocked storage service that captures PUT bodies
- A fake media service standing in for ffprobe / ffmpeg
- Bearer tokens for the record's owner and for another user
- FastAPI TestClient with dependency overrides
- Helpers for building raw multipart requests
"""

import shutil
import threading

from collections.abc import Callable, Generator
from io import BytesIO
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, Mock
from uuid import UUID, uuid4

import pytest

from fastapi.testclient import TestClient
from starlette.requests import Request

from app.api.dependencies import get_upload_service, get_url_service
from app.config import Settings, get_settings
from app.core.auth import create_access_token
from app.core.errors import ProbeError, RemuxError
from app.main import app
from app.models.video import VideoRecord
from app.services.asset_store import LocalAssetStore
from app.services.catalog_service import InMemoryVideoCatalog, get_catalog
from app.services.media_service import PROCESSING_SUFFIX
from app.services.storage_service import StorageService, get_storage_service
from app.services.upload_service import UploadService
from app.services.url_service import VideoURLService


TEST_JWT_SECRET = "test-jwt-secret-for-signing-tokens"
TEST_BUCKET = "test-bucket"
TEST_CDN = "cdn.example.com"
MULTIPART_BOUNDARY = "video-ingest-test-boundary"


# ==============================================================================
# Pytest Configuration
# ==============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """
    Configure pytest with custom markers for test categorization.

    Markers defined:
    - integration: For tests that need external tools (ffmpeg)
    - unit: For unit tests (isolated, no external dependencies)
    - slow: For slow-running tests that may be skipped in quick test runs
    """
    config.addinivalue_line("markers", "integration: mark test as integration test")
    config.addinivalue_line("markers", "unit: mark test as unit test")
    config.addinivalue_line("markers", "slow: mark test as slow-running")


# ==============================================================================
# Settings Fixtures
# ==============================================================================


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    """
    Settings for the private-bucket deployment mode.

    Thumbnails go to ``tmp_path/assets`` and video staging files to
    ``tmp_path/staging`` so tests can assert both directories' contents.
    """
    assets_root = tmp_path / "assets"
    temp_dir = tmp_path / "staging"
    assets_root.mkdir()
    temp_dir.mkdir()

    return Settings(
        app_env="testing",
        log_level="debug",
        public_host="localhost",
        port=8091,
        jwt_secret=TEST_JWT_SECRET,
        jwt_issuer="video-ingest-access",
        assets_root=str(assets_root),
        temp_dir=str(temp_dir),
        s3_bucket=TEST_BUCKET,
        s3_region="us-east-1",
        s3_cf_distribution=None,
        s3_endpoint_url=None,
        s3_access_key_id="AKIATESTKEY",
        s3_secret_access_key="test-secret-access-key",
        catalog_backend="memory",
    )


@pytest.fixture
def cdn_settings(test_settings: Settings) -> Settings:
    """Same as ``test_settings`` but in public CDN mode."""
    return test_settings.model_copy(update={"s3_cf_distribution": TEST_CDN})


@pytest.fixture
def staging_dir(test_settings: Settings) -> Path:
    return Path(test_settings.temp_dir)


@pytest.fixture
def assets_dir(test_settings: Settings) -> Path:
    return Path(test_settings.assets_root)


# ==============================================================================
# Users, Records and Catalog
# ==============================================================================


@pytest.fixture
def owner_id() -> UUID:
    return uuid4()


@pytest.fixture
def other_user_id() -> UUID:
    return uuid4()


@pytest.fixture
def video_record(owner_id: UUID) -> VideoRecord:
    """A freshly created video with no thumbnail and no file yet."""
    return VideoRecord(
        id=uuid4(),
        owner_id=owner_id,
        title="Boat trip",
        description="Filmed from the ferry",
    )


@pytest.fixture
def catalog(video_record: VideoRecord) -> InMemoryVideoCatalog:
    """
    In-memory catalog holding ``video_record``.

    ``get`` and ``put`` are wrapped in AsyncMocks so tests can assert whether
    the pipeline touched the catalog at all.
    """
    seeded = InMemoryVideoCatalog([video_record])
    seeded.get = AsyncMock(wraps=seeded.get)
    seeded.put = AsyncMock(wraps=seeded.put)
    return seeded


# ==============================================================================
# Storage Fixture
# ==============================================================================


@pytest.fixture
def mock_storage() -> Mock:
    """
    Mocked StorageService.

    ``put_object`` reads the whole body (as botocore would) and keeps it in
    ``mock.uploaded[object_key]``. ``generate_presigned_download_url`` returns
    a URL shaped like a SigV4 presigned GET.
    """
    storage = Mock(spec=StorageService)
    storage.bucket_name = TEST_BUCKET
    storage.uploaded = {}

    async def put_object(
        object_key: str, body: Any, content_type: str, bucket_name: str | None = None
    ) -> None:
        storage.uploaded[object_key] = body.read()

    async def presign(
        object_key: str, bucket_name: str | None = None, expiration: int = 3600
    ) -> str:
        bucket = bucket_name or TEST_BUCKET
        return (
            f"https://{bucket}.s3.amazonaws.com/{object_key}"
            f"?X-Amz-Algorithm=AWS4-HMAC-SHA256&X-Amz-Expires={expiration}"
            f"&X-Amz-Signature=deadbeef"
        )

    storage.put_object = AsyncMock(side_effect=put_object)
    storage.generate_presigned_download_url = AsyncMock(side_effect=presign)
    return storage


# ==============================================================================
# Readers
# ==============================================================================


class ThreadRecordingReader(BytesIO):
    """In-memory upload body that records which threads read from it."""

    def __init__(self, data: bytes) -> None:
        super().__init__(data)
        self.read_threads: list[int] = []

    def read(self, size: int | None = -1) -> bytes:
        self.read_threads.append(threading.get_ident())
        return super().read(size)


# ==============================================================================
# Media Fixture
# ==============================================================================


REMUXED_MARKER = b"faststart:"


class FakeMediaService:
    """
    Stand-in for MediaService that never launches a process.

    The remux writes ``REMUXED_MARKER + input`` to ``{path}.processing`` so
    tests can tell the remuxed file apart from the capture.
    """

    def __init__(self, aspect_ratio: str = "16:9") -> None:
        self.aspect_ratio = aspect_ratio
        self.probe_error: Exception | None = None
        self.remux_error: Exception | None = None
        self.probed_paths: list[str] = []
        self.remuxed_paths: list[str] = []

    async def get_aspect_ratio(self, path: str) -> str:
        self.probed_paths.append(path)
        assert Path(path).exists()
        if self.probe_error is not None:
            raise self.probe_error
        return self.aspect_ratio

    async def process_for_fast_start(self, path: str) -> str:
        self.remuxed_paths.append(path)
        output_path = f"{path}{PROCESSING_SUFFIX}"
        if self.remux_error is not None:
            # ffmpeg leaves a partial output behind when it fails mid-write
            Path(output_path).write_bytes(b"partial")
            raise self.remux_error
        Path(output_path).write_bytes(REMUXED_MARKER + Path(path).read_bytes())
        return output_path

    def fail_probe(self) -> None:
        self.probe_error = ProbeError()

    def fail_remux(self) -> None:
        self.remux_error = RemuxError()


@pytest.fixture
def fake_media() -> FakeMediaService:
    return FakeMediaService()


# ==============================================================================
# Service Fixtures
# ==============================================================================


def build_upload_service(
    settings: Settings, catalog: Any, storage: Any, media: Any
) -> UploadService:
    return UploadService(
        settings=settings,
        catalog=catalog,
        storage=storage,
        media=media,
        asset_store=LocalAssetStore.from_settings(settings),
        url_service=VideoURLService(settings, storage),
    )


@pytest.fixture
def upload_service(
    test_settings: Settings,
    catalog: InMemoryVideoCatalog,
    mock_storage: Mock,
    fake_media: FakeMediaService,
) -> UploadService:
    return build_upload_service(test_settings, catalog, mock_storage, fake_media)


# ==============================================================================
# Auth Fixtures
# ==============================================================================


@pytest.fixture
def owner_token(test_settings: Settings, owner_id: UUID) -> str:
    return create_access_token(owner_id, test_settings)


@pytest.fixture
def auth_headers(owner_token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {owner_token}"}


@pytest.fixture
def other_user_headers(test_settings: Settings, other_user_id: UUID) -> dict[str, str]:
    token = create_access_token(other_user_id, test_settings)
    return {"Authorization": f"Bearer {token}"}


# ==============================================================================
# TestClient Fixtures
# ==============================================================================


def _override_dependencies(
    settings: Settings, catalog: Any, storage: Any, media: Any
) -> None:
    service = build_upload_service(settings, catalog, storage, media)
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_catalog] = lambda: catalog
    app.dependency_overrides[get_storage_service] = lambda: storage
    app.dependency_overrides[get_url_service] = lambda: service.url_service
    app.dependency_overrides[get_upload_service] = lambda: service


@pytest.fixture
def client(
    test_settings: Settings,
    catalog: InMemoryVideoCatalog,
    mock_storage: Mock,
    fake_media: FakeMediaService,
) -> Generator[TestClient, None, None]:
    """
    TestClient for the private-bucket deployment.

    The lifespan is not entered; every collaborator is injected through
    ``app.dependency_overrides``.
    """
    _override_dependencies(test_settings, catalog, mock_storage, fake_media)
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def cdn_client(
    cdn_settings: Settings,
    catalog: InMemoryVideoCatalog,
    mock_storage: Mock,
    fake_media: FakeMediaService,
) -> Generator[TestClient, None, None]:
    """TestClient for the public CDN deployment."""
    _override_dependencies(cdn_settings, catalog, mock_storage, fake_media)
    yield TestClient(app)
    app.dependency_overrides.clear()


# ==============================================================================
# Sample Payloads
# ==============================================================================


@pytest.fixture
def png_bytes() -> bytes:
    """PNG signature followed by filler; content is never decoded."""
    return b"\x89PNG\r\n\x1a\n" + b"\x00" * 2040


@pytest.fixture
def mp4_bytes() -> bytes:
    """An ``ftyp`` box followed by filler; the fake media service never parses it."""
    ftyp = b"\x00\x00\x00\x18ftypisom\x00\x00\x02\x00isomiso2"
    return ftyp + b"\x00" * 4096


# ==============================================================================
# Raw Request Helpers
# ==============================================================================


def encode_multipart(
    field_name: str, filename: str, content_type: str, data: bytes
) -> tuple[bytes, str]:
    """Encode a single file part; returns ``(body, content_type_header)``."""
    head = (
        f"--{MULTIPART_BOUNDARY}\r\n"
        f'Content-Disposition: form-data; name="{field_name}"; filename="{filename}"\r\n'
        f"Content-Type: {content_type}\r\n\r\n"
    ).encode()
    tail = f"\r\n--{MULTIPART_BOUNDARY}--\r\n".encode()
    return head + data + tail, f"multipart/form-data; boundary={MULTIPART_BOUNDARY}"


@pytest.fixture
def make_request() -> Callable[..., Request]:
    """
    Factory for Starlette requests carrying a raw body.

    The ASGI receive channel delivers the body once and then reports a
    disconnect, like a client that hung up after sending.
    """

    def _make(body: bytes, content_type: str) -> Request:
        messages = [{"type": "http.request", "body": body, "more_body": False}]

        async def receive() -> dict[str, Any]:
            if messages:
                return messages.pop(0)
            return {"type": "http.disconnect"}

        scope = {
            "type": "http",
            "method": "POST",
            "path": "/",
            "query_string": b"",
            "headers": [(b"content-type", content_type.encode())],
        }
        return Request(scope, receive)

    return _make


def find_ffmpeg() -> bool:
    return shutil.which("ffmpeg") is not None and shutil.which("ffprobe") is not None
