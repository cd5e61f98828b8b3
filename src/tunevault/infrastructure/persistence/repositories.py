"""Repository implementations for library entities.

Hey future me - these repos hand back ORM models directly. The scanner and auto-linker do
short read-modify-write cycles on single rows, and mapping every row to a dataclass and
back just to flip two columns buys nothing. Repos only STAGE changes (session.add, attribute
writes, bulk UPDATEs) - committing is the caller's job.
"""

from collections.abc import Iterable
from datetime import datetime

from sqlalchemy import ColumnElement, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from tunevault.domain.exceptions import EntityNotFoundException
from tunevault.domain.value_objects.media_files import root_prefix

from .models import AlbumModel, ArtistModel, LibraryModel, TrackModel, utc_now

# SQLite caps bound parameters per statement; keep IN (...) lists well below that
UPDATE_CHUNK_SIZE = 500


class LibraryRepository:
    """SQLAlchemy repository for libraries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with session."""
        self.session = session

    async def add(self, name: str, path: str) -> LibraryModel:
        """Add a new library."""
        model = LibraryModel(name=name, path=path)
        self.session.add(model)
        await self.session.flush()
        return model

    async def get_by_id(self, library_id: str) -> LibraryModel | None:
        """Get a library by ID."""
        stmt = select(LibraryModel).where(LibraryModel.id == library_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_path(self, path: str) -> LibraryModel | None:
        """Get a library by its root path."""
        stmt = select(LibraryModel).where(LibraryModel.path == path)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def mark_scanned(self, library_id: str, when: datetime | None = None) -> None:
        """Persist the completion time of a scan."""
        library = await self.get_by_id(library_id)
        if library is None:
            raise EntityNotFoundException("Library", library_id)
        library.last_scanned_at = when or utc_now()


class ArtistRepository:
    """SQLAlchemy repository for artists."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with session."""
        self.session = session

    async def add(
        self, name: str, sort_name: str, musicbrainz_id: str | None = None
    ) -> ArtistModel:
        """Add a new artist and flush so the generated id is available."""
        model = ArtistModel(name=name, sort_name=sort_name, musicbrainz_id=musicbrainz_id)
        self.session.add(model)
        await self.session.flush()
        return model

    async def get_by_id(self, artist_id: str) -> ArtistModel | None:
        """Get an artist by ID."""
        stmt = select(ArtistModel).where(ArtistModel.id == artist_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    # Hey future me - names are NOT unique in the table (two linked "Genesis" rows can exist),
    # so this returns the OLDEST exact match instead of scalar_one_or_none() blowing up.
    async def get_by_name(self, name: str) -> ArtistModel | None:
        """Get the first artist with exactly this name."""
        stmt = (
            select(ArtistModel)
            .where(ArtistModel.name == name)
            .order_by(ArtistModel.created_at, ArtistModel.id)
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def get_by_musicbrainz_id(self, musicbrainz_id: str) -> ArtistModel | None:
        """Get an artist by MusicBrainz ID."""
        stmt = select(ArtistModel).where(ArtistModel.musicbrainz_id == musicbrainz_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def count_by_name(self, name: str) -> int:
        """Count artists with exactly this name."""
        stmt = select(func.count(ArtistModel.id)).where(ArtistModel.name == name)
        result = await self.session.execute(stmt)
        return result.scalar() or 0

    async def count_all(self) -> int:
        """Count all artists."""
        result = await self.session.execute(select(func.count(ArtistModel.id)))
        return result.scalar() or 0


class AlbumRepository:
    """SQLAlchemy repository for albums."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with session."""
        self.session = session

    async def add(
        self,
        title: str,
        artist_id: str,
        year: int | None = None,
        genre: str | None = None,
        cover_url: str | None = None,
        musicbrainz_id: str | None = None,
    ) -> AlbumModel:
        """Add a new album and flush so the generated id is available."""
        model = AlbumModel(
            title=title,
            artist_id=artist_id,
            year=year,
            genre=genre,
            cover_url=cover_url,
            musicbrainz_id=musicbrainz_id,
        )
        self.session.add(model)
        await self.session.flush()
        return model

    async def get_by_id(self, album_id: str) -> AlbumModel | None:
        """Get an album by ID (artist eagerly loaded)."""
        stmt = (
            select(AlbumModel)
            .where(AlbumModel.id == album_id)
            .options(selectinload(AlbumModel.artist))
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_musicbrainz_id(self, musicbrainz_id: str) -> AlbumModel | None:
        """Get an album by MusicBrainz release ID."""
        stmt = select(AlbumModel).where(AlbumModel.musicbrainz_id == musicbrainz_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_title_and_artist(
        self, title: str, artist_id: str
    ) -> AlbumModel | None:
        """Get the first album with exactly this title by this artist."""
        stmt = (
            select(AlbumModel)
            .where(AlbumModel.title == title, AlbumModel.artist_id == artist_id)
            .order_by(AlbumModel.created_at, AlbumModel.id)
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()

    # Listen up, "present under root" = at least one NON-missing track whose file lives in this
    # library. Albums whose files all vanished aren't worth a catalog round-trip.
    def _present_under_root(self, root: str) -> ColumnElement[bool]:
        return (
            select(TrackModel.id)
            .where(
                TrackModel.album_id == AlbumModel.id,
                TrackModel.missing.is_(False),
                TrackModel.file_path.startswith(root_prefix(root), autoescape=True),
            )
            .exists()
        )

    async def list_unlinked_in_library(self, root: str) -> list[AlbumModel]:
        """Albums without MusicBrainz ID that still have files in the library."""
        stmt = (
            select(AlbumModel)
            .where(AlbumModel.musicbrainz_id.is_(None), self._present_under_root(root))
            .options(selectinload(AlbumModel.artist))
            .order_by(AlbumModel.title, AlbumModel.id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_linked_without_cover_in_library(self, root: str) -> list[AlbumModel]:
        """Linked albums that still have no cover and have files in the library."""
        stmt = (
            select(AlbumModel)
            .where(
                AlbumModel.musicbrainz_id.is_not(None),
                AlbumModel.cover_url.is_(None),
                self._present_under_root(root),
            )
            .order_by(AlbumModel.title, AlbumModel.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def count_all(self) -> int:
        """Count all albums."""
        result = await self.session.execute(select(func.count(AlbumModel.id)))
        return result.scalar() or 0


class TrackRepository:
    """SQLAlchemy repository for tracks."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with session."""
        self.session = session

    async def add(self, model: TrackModel) -> TrackModel:
        """Stage a new track and flush so the generated id is available."""
        self.session.add(model)
        await self.session.flush()
        return model

    async def get_by_id(self, track_id: str) -> TrackModel | None:
        """Get a track by ID."""
        stmt = select(TrackModel).where(TrackModel.id == track_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_file_path(self, file_path: str) -> TrackModel | None:
        """Get a track by its unique file path."""
        stmt = select(TrackModel).where(TrackModel.file_path == file_path)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_musicbrainz_id(self, musicbrainz_id: str) -> TrackModel | None:
        """Get a track by MusicBrainz recording ID."""
        stmt = select(TrackModel).where(TrackModel.musicbrainz_id == musicbrainz_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_by_album(
        self, album_id: str, include_missing: bool = False
    ) -> list[TrackModel]:
        """Tracks of an album ordered by disc and track number."""
        stmt = select(TrackModel).where(TrackModel.album_id == album_id)
        if not include_missing:
            stmt = stmt.where(TrackModel.missing.is_(False))
        stmt = stmt.order_by(
            TrackModel.disc_number, TrackModel.track_number, TrackModel.file_path
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def count_by_album(self, album_id: str) -> int:
        """Count non-missing tracks of an album."""
        stmt = select(func.count(TrackModel.id)).where(
            TrackModel.album_id == album_id, TrackModel.missing.is_(False)
        )
        result = await self.session.execute(stmt)
        return result.scalar() or 0

    # Hey future me, this is the ONE batch write of the cleanup phase. We pull (id, path) of every
    # present track under the root, diff against what the scan saw IN PYTHON, then flip the rest in
    # chunked UPDATEs. A "NOT IN (<50k paths>)" would blow SQLite's parameter limit on big libraries.
    async def mark_missing_except(self, root: str, seen_paths: Iterable[str]) -> int:
        """Flag every present track under root whose path was not seen.

        Args:
            root: Library root path
            seen_paths: File paths observed in the current scan

        Returns:
            Number of tracks flagged missing
        """
        seen = set(seen_paths)
        stmt = select(TrackModel.id, TrackModel.file_path).where(
            TrackModel.missing.is_(False),
            TrackModel.file_path.startswith(root_prefix(root), autoescape=True),
        )
        result = await self.session.execute(stmt)
        stale_ids = [row.id for row in result.all() if row.file_path not in seen]

        for start in range(0, len(stale_ids), UPDATE_CHUNK_SIZE):
            chunk = stale_ids[start : start + UPDATE_CHUNK_SIZE]
            await self.session.execute(
                update(TrackModel)
                .where(TrackModel.id.in_(chunk))
                .values(missing=True, updated_at=utc_now())
            )

        return len(stale_ids)

    async def count_all(self) -> int:
        """Count all tracks."""
        result = await self.session.execute(select(func.count(TrackModel.id)))
        return result.scalar() or 0

    async def count_missing(self) -> int:
        """Count tracks currently flagged missing."""
        stmt = select(func.count(TrackModel.id)).where(TrackModel.missing.is_(True))
        result = await self.session.execute(stmt)
        return result.scalar() or 0
