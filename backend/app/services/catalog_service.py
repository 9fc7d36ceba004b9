"""
Video catalog gateway.

The upload pipeline reads one record and writes one record back through the
narrow ``VideoCatalog`` interface:

- ``get(video_id)``: fetch a record, ``VideoNotFoundError`` when absent
- ``put(record)``: replace the stored row for ``record.id`` (last writer wins)
- ``list_for_owner(owner_id)``: read-path listing, newest first

``MongoVideoCatalog`` is the production implementation on Motor;
``InMemoryVideoCatalog`` backs local development (``CATALOG_BACKEND=memory``).
Records are never created by the upload handlers.
"""

import asyncio
import logging

from abc import ABC, abstractmethod
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from motor.motor_asyncio import AsyncIOMotorCollection
from pydantic import ValidationError
from pymongo import DESCENDING
from pymongo.errors import PyMongoError

from app.config import Settings, get_settings
from app.core.database import close_db, get_db_client, init_db
from app.core.errors import CatalogError, CatalogWriteError, VideoNotFoundError
from app.models.video import VideoRecord


logger = logging.getLogger(__name__)


class VideoCatalog(ABC):
    """Interface the upload pipeline uses to read and write video records."""

    @abstractmethod
    async def get(self, video_id: UUID) -> VideoRecord:
        """
        Raises:
            VideoNotFoundError: No record with this ID exists.
            CatalogError: The backend failed.
        """

    @abstractmethod
    async def put(self, record: VideoRecord) -> None:
        """
        Replace the stored record with the same ID.

        Raises:
            CatalogWriteError: The write failed or the record no longer exists.
        """

    @abstractmethod
    async def list_for_owner(self, owner_id: UUID) -> list[VideoRecord]:
        """Return the owner's records, newest first."""

    async def close(self) -> None:
        """Release backend resources."""


# =============================================================================
# MongoDB
# =============================================================================


def record_to_document(record: VideoRecord) -> dict[str, Any]:
    """Map a record to its Mongo document; IDs are stored as strings under ``_id``."""
    document = record.model_dump()
    document["_id"] = str(document.pop("id"))
    document["owner_id"] = str(document["owner_id"])
    return document


def document_to_record(document: dict[str, Any]) -> VideoRecord:
    data = dict(document)
    data["id"] = data.pop("_id")
    return VideoRecord.model_validate(data)


class MongoVideoCatalog(VideoCatalog):
    """Catalog backed by a Motor collection."""

    def __init__(self, collection: AsyncIOMotorCollection) -> None:
        self._collection = collection

    async def get(self, video_id: UUID) -> VideoRecord:
        try:
            document = await self._collection.find_one({"_id": str(video_id)})
        except PyMongoError as e:
            raise CatalogError() from e

        if document is None:
            raise VideoNotFoundError()

        try:
            return document_to_record(document)
        except ValidationError as e:
            raise CatalogError() from e

    async def put(self, record: VideoRecord) -> None:
        record.updated_at = datetime.now(UTC)
        document = record_to_document(record)
        try:
            result = await self._collection.replace_one({"_id": document["_id"]}, document)
        except PyMongoError as e:
            raise CatalogWriteError() from e

        if result.matched_count == 0:
            logger.warning("Video %s vanished before it could be updated", record.id)
            raise CatalogWriteError()

    async def list_for_owner(self, owner_id: UUID) -> list[VideoRecord]:
        try:
            cursor = self._collection.find({"owner_id": str(owner_id)}).sort(
                "created_at", DESCENDING
            )
            documents = await cursor.to_list(length=None)
            return [document_to_record(document) for document in documents]
        except (PyMongoError, ValidationError) as e:
            raise CatalogError() from e

    async def close(self) -> None:
        await close_db()


# =============================================================================
# In-memory
# =============================================================================


class InMemoryVideoCatalog(VideoCatalog):
    """Process-local catalog for development and tests. Stores copies, never live objects."""

    def __init__(self, records: list[VideoRecord] | None = None) -> None:
        self._records: dict[UUID, VideoRecord] = {}
        self._lock = asyncio.Lock()
        for record in records or []:
            self._records[record.id] = record.model_copy(deep=True)

    async def add(self, record: VideoRecord) -> None:
        """Insert a record; stands in for the account service that creates videos."""
        async with self._lock:
            self._records[record.id] = record.model_copy(deep=True)

    async def get(self, video_id: UUID) -> VideoRecord:
        async with self._lock:
            record = self._records.get(video_id)
        if record is None:
            raise VideoNotFoundError()
        return record.model_copy(deep=True)

    async def put(self, record: VideoRecord) -> None:
        async with self._lock:
            if record.id not in self._records:
                raise CatalogWriteError()
            record.updated_at = datetime.now(UTC)
            self._records[record.id] = record.model_copy(deep=True)

    async def list_for_owner(self, owner_id: UUID) -> list[VideoRecord]:
        async with self._lock:
            owned = [
                record.model_copy(deep=True)
                for record in self._records.values()
                if record.owner_id == owner_id
            ]
        return sorted(owned, key=lambda record: record.created_at, reverse=True)


# =============================================================================
# Process-wide catalog
# =============================================================================


class _CatalogContainer:
    catalog: VideoCatalog | None = None


_container = _CatalogContainer()


async def init_catalog(settings: Settings | None = None) -> VideoCatalog:
    """
    Build the configured catalog backend. Called from the FastAPI lifespan.

    Raises:
        RuntimeError: If the MongoDB backend cannot connect.
    """
    if _container.catalog is not None:
        return _container.catalog

    settings = settings or get_settings()
    if settings.catalog_backend == "memory":
        logger.warning("Using in-memory video catalog; records are lost on restart")
        _container.catalog = InMemoryVideoCatalog()
    else:
        await init_db(settings)
        _container.catalog = MongoVideoCatalog(get_db_client().get_videos_collection())

    logger.info("Video catalog initialized (backend=%s)", settings.catalog_backend)
    return _container.catalog


async def close_catalog() -> None:
    if _container.catalog is not None:
        await _container.catalog.close()
        _container.catalog = None


def get_catalog() -> VideoCatalog:
    """
    FastAPI dependency returning the process-wide catalog.

    Raises:
        RuntimeError: If init_catalog() has not been called.
    """
    if _container.catalog is None:
        raise RuntimeError("Video catalog not initialized. Call init_catalog() first.")
    return _container.catalog
