"""Shared fixtures: in-memory database, settings and fake port implementations.

Hey future me - the fakes here implement the domain ports for real (they subclass the ABCs),
so a test that passes with them exercises the exact seams production uses. Configure them by
poking their public attributes (results, failures) inside the test.
"""

from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from tunevault.config import DatabaseSettings, Settings, StorageSettings
from tunevault.domain.entities import (
    CatalogRelease,
    ExtractedMetadata,
    ScanProgress,
    TagFields,
)
from tunevault.domain.exceptions import CatalogError, TagWriteError
from tunevault.domain.ports import (
    ICoverStore,
    IMetadataCatalog,
    IMetadataExtractor,
    IProgressSink,
    ITagWriter,
)
from tunevault.infrastructure.persistence.database import Database


class FakeExtractor(IMetadataExtractor):
    """Returns canned metadata per path, filename defaults otherwise."""

    def __init__(self) -> None:
        self.metadata: dict[str, ExtractedMetadata] = {}
        self.failures: dict[str, Exception] = {}
        self.calls: list[str] = []

    def extract(self, file_path: Path) -> ExtractedMetadata:
        key = str(file_path)
        self.calls.append(key)
        if key in self.failures:
            raise self.failures[key]
        if key in self.metadata:
            return self.metadata[key]
        return ExtractedMetadata(
            title=file_path.stem,
            artist_name="Unknown Artist",
            track_number=1,
            disc_number=1,
            format=file_path.suffix.lstrip("."),
        )


class FakeCatalog(IMetadataCatalog):
    """In-memory catalog: search results, release details and cover refs by id."""

    def __init__(self) -> None:
        self.search_results: list[CatalogRelease] = []
        self.details: dict[str, CatalogRelease] = {}
        self.cover_refs: dict[str, str] = {}
        self.search_calls: list[tuple[str, str, bool]] = []
        self.structured_error: CatalogError | None = None
        self.free_text_error: CatalogError | None = None

    async def search_releases(
        self, title: str, artist: str, limit: int = 10, structured: bool = True
    ) -> list[CatalogRelease]:
        self.search_calls.append((title, artist, structured))
        if structured and self.structured_error is not None:
            raise self.structured_error
        if not structured and self.free_text_error is not None:
            raise self.free_text_error
        return list(self.search_results[:limit])

    async def get_release_detail(self, release_id: str) -> CatalogRelease:
        if release_id not in self.details:
            raise CatalogError(f"Release {release_id} not found", status_code=404)
        return self.details[release_id]

    async def get_cover_ref(self, release_id: str) -> str | None:
        return self.cover_refs.get(release_id)


class FakeCoverStore(ICoverStore):
    """Records downloads and answers with a predictable local ref."""

    def __init__(self) -> None:
        self.downloads: list[tuple[str, str]] = []
        self.fail = False

    async def download(self, cover_ref: str, album_id: str) -> str | None:
        self.downloads.append((cover_ref, album_id))
        if self.fail:
            return None
        return f"/api/covers/{album_id}/cover-500.jpg"


class FakeTagWriter(ITagWriter):
    """Records tag writes; paths in failing_paths raise TagWriteError."""

    def __init__(self) -> None:
        self.writes: list[tuple[Path, TagFields]] = []
        self.failing_paths: set[str] = set()

    async def write(self, file_path: Path, fields: TagFields) -> None:
        if str(file_path) in self.failing_paths:
            raise TagWriteError(str(file_path), "read-only file system")
        self.writes.append((file_path, fields))


class RecordingSink(IProgressSink):
    """Keeps every snapshot and error it receives."""

    def __init__(self) -> None:
        self.snapshots: list[ScanProgress] = []
        self.errors: list[tuple[Exception, str | None]] = []

    def emit(self, progress: ScanProgress) -> None:
        self.snapshots.append(progress.snapshot())

    def emit_error(self, error: Exception, file_path: str | None = None) -> None:
        self.errors.append((error, file_path))


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings pointing at an in-memory database and a temp data dir."""
    return Settings(
        database=DatabaseSettings(url="sqlite+aiosqlite:///:memory:"),
        storage=StorageSettings(data_dir=tmp_path / "data"),
    )


@pytest.fixture
async def db(settings: Settings) -> AsyncGenerator[Database, None]:
    """Database with all tables created."""
    database = Database(settings)
    await database.create_tables()
    yield database
    await database.close()


@pytest.fixture
async def session(db: Database) -> AsyncGenerator[AsyncSession, None]:
    """A session on the test database.

    Whatever the test left uncommitted is rolled back, so the scope's own commit is a no-op
    even after a test provoked an IntegrityError.
    """
    async with db.session_scope() as session:
        yield session
        await session.rollback()


@pytest.fixture
def extractor() -> FakeExtractor:
    return FakeExtractor()


@pytest.fixture
def catalog() -> FakeCatalog:
    return FakeCatalog()


@pytest.fixture
def cover_store() -> FakeCoverStore:
    return FakeCoverStore()


@pytest.fixture
def tag_writer() -> FakeTagWriter:
    return FakeTagWriter()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()
