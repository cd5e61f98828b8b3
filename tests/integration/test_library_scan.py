"""End-to-end library scans on real directories with fake catalog ports.

Hey future me - these run the whole five-phase pipeline against in-memory SQLite. Only
the extractor, catalog, cover store and tag writer are fakes, so anything that goes wrong
between the phases (commits, rollbacks, identity resolution) shows up here.
"""

from pathlib import Path

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from tunevault.application.services import LibraryScannerService
from tunevault.config import MatchingSettings, Settings
from tunevault.domain.entities import CatalogRelease, CatalogTrack, ExtractedMetadata, ScanPhase
from tunevault.domain.exceptions import CatalogError, ExtractionError
from tunevault.infrastructure.persistence.repositories import (
    AlbumRepository,
    ArtistRepository,
    LibraryRepository,
    TrackRepository,
)

RELEASE_ID = "rel-opera"


def _touch(path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"")
    return path


@pytest.fixture
def music_root(tmp_path: Path) -> Path:
    root = tmp_path / "music"
    root.mkdir()
    return root


@pytest.fixture
def opera_files(music_root: Path, extractor) -> list[Path]:
    """Two Queen tracks with full tags."""
    files = []
    for number, title in ((1, "Death on Two Legs"), (2, "Lazing on a Sunday Afternoon")):
        path = _touch(music_root / "Queen" / "A Night at the Opera" / f"0{number}.flac")
        extractor.metadata[str(path)] = ExtractedMetadata(
            title=title,
            artist_name="Queen",
            album_title="A Night at the Opera",
            track_number=number,
            disc_number=1,
            year=1975,
            format="flac",
        )
        files.append(path)
    return files


@pytest.fixture
async def library_id(session: AsyncSession, music_root: Path) -> str:
    library = await LibraryRepository(session).add("Main", str(music_root))
    await session.commit()
    return library.id


@pytest.fixture
def scan(session, settings, extractor, catalog, cover_store, tag_writer, sink):
    """Run one scan with a fresh service, like the worker does per job."""

    async def _scan(library_id: str, scan_settings: Settings | None = None):
        service = LibraryScannerService(
            session,
            scan_settings or settings,
            extractor=extractor,
            catalog=catalog,
            cover_store=cover_store,
            tag_writer=tag_writer,
            progress_sink=sink,
        )
        return await service.run(library_id)

    return _scan


def _configure_catalog(catalog, date: str = "1975-11-21") -> None:
    catalog.search_results = [
        CatalogRelease(
            id=RELEASE_ID,
            title="A Night at the Opera",
            artist_credit="Queen",
            date=date,
            track_count=2,
        )
    ]
    catalog.details[RELEASE_ID] = CatalogRelease(
        id=RELEASE_ID,
        title="A Night at the Opera",
        artist_credit="Queen",
        date="1975-11-21",
        track_count=2,
        artist_id="mb-queen",
        label="EMI",
        tracks=[
            CatalogTrack("rec-1", "Death on Two Legs (Dedicated to...)", 1, 1),
            CatalogTrack("rec-2", "Lazing on a Sunday Afternoon", 1, 2),
        ],
    )
    catalog.cover_refs[RELEASE_ID] = "https://coverartarchive.org/release/rel-opera/front.jpg"


class TestIdempotentScan:
    """Re-scanning an unchanged library changes nothing."""

    async def test_rescan_creates_no_duplicates(
        self, session: AsyncSession, scan, library_id: str, opera_files
    ) -> None:
        first = await scan(library_id)
        second = await scan(library_id)

        assert first.new_tracks == 2
        assert second.new_tracks == 0
        assert second.updated_tracks == 2
        assert await TrackRepository(session).count_all() == 2
        assert await ArtistRepository(session).count_all() == 1
        assert await AlbumRepository(session).count_all() == 1

    async def test_untagged_folder_file_resolves_from_tags(
        self, session: AsyncSession, scan, library_id: str, music_root: Path, extractor
    ) -> None:
        """Folder names mean nothing; the tags decide artist and album."""
        path = _touch(music_root / "Unknown" / "01 track.mp3")
        extractor.metadata[str(path)] = ExtractedMetadata(
            title="Bohemian Rhapsody",
            artist_name="Queen",
            album_title="A Night at the Opera",
            track_number=1,
        )

        await scan(library_id)
        await scan(library_id)

        track = await TrackRepository(session).get_by_file_path(str(path))
        assert track.title == "Bohemian Rhapsody"
        assert await TrackRepository(session).count_all() == 1
        assert await ArtistRepository(session).count_by_name("Queen") == 1
        assert await AlbumRepository(session).count_all() == 1

    async def test_library_marked_scanned(
        self, session: AsyncSession, scan, library_id: str
    ) -> None:
        await scan(library_id)

        library = await LibraryRepository(session).get_by_id(library_id)
        await session.refresh(library)
        assert library.last_scanned_at is not None


class TestMissingFiles:
    """Vanished files are flagged, never deleted."""

    async def test_removed_file_flagged_then_restored(
        self, session: AsyncSession, scan, library_id: str, opera_files: list[Path]
    ) -> None:
        await scan(library_id)
        opera_files[1].unlink()

        after_removal = await scan(library_id)

        assert after_removal.removed_tracks == 1
        assert await TrackRepository(session).count_missing() == 1
        assert await TrackRepository(session).count_all() == 2

        _touch(opera_files[1])
        after_restore = await scan(library_id)

        assert after_restore.removed_tracks == 0
        assert after_restore.new_tracks == 0
        assert await TrackRepository(session).count_missing() == 0

    async def test_unreadable_file_counts_as_unobserved(
        self, session: AsyncSession, scan, library_id: str, opera_files: list[Path], extractor
    ) -> None:
        """Only successfully read files are observed; the row is kept but flagged."""
        await scan(library_id)
        extractor.failures[str(opera_files[0])] = ExtractionError(
            str(opera_files[0]), "permission denied"
        )

        progress = await scan(library_id)

        assert progress.errors == 1
        assert progress.removed_tracks == 1
        track = await TrackRepository(session).get_by_file_path(str(opera_files[0]))
        await session.refresh(track)
        assert track.missing is True


class TestPerFileErrors:
    """One broken file never stops the run."""

    async def test_errors_counted_and_reported(
        self,
        session: AsyncSession,
        scan,
        library_id: str,
        opera_files: list[Path],
        music_root: Path,
        extractor,
        sink,
    ) -> None:
        broken = _touch(music_root / "broken.mp3")
        extractor.failures[str(broken)] = ExtractionError(str(broken), "truncated file")

        progress = await scan(library_id)

        assert progress.phase is ScanPhase.DONE
        assert progress.errors == 1
        assert progress.new_tracks == 2
        assert progress.processed_files == 3
        assert [path for _, path in sink.errors] == [str(broken)]
        assert await TrackRepository(session).get_by_file_path(str(broken)) is None


class TestAutoLinkDuringScan:
    """The matching phase links confident albums and leaves the rest alone."""

    async def test_confident_album_linked(
        self,
        session: AsyncSession,
        scan,
        library_id: str,
        opera_files: list[Path],
        catalog,
        tag_writer,
    ) -> None:
        _configure_catalog(catalog)

        progress = await scan(library_id)

        assert progress.auto_linked_albums == 1
        assert progress.total_albums == 1
        assert progress.matched_albums == 1
        albums = await AlbumRepository(session).list_unlinked_in_library(
            str(opera_files[0].parents[2])
        )
        assert albums == []
        track = await TrackRepository(session).get_by_file_path(str(opera_files[0]))
        await session.refresh(track)
        assert track.musicbrainz_id == "rec-1"
        assert len(tag_writer.writes) == 2

    async def test_rescan_keeps_link(
        self, session: AsyncSession, scan, library_id: str, opera_files: list[Path], catalog
    ) -> None:
        _configure_catalog(catalog)
        await scan(library_id)

        second = await scan(library_id)

        assert second.auto_linked_albums == 0
        track = await TrackRepository(session).get_by_file_path(str(opera_files[0]))
        await session.refresh(track)
        assert track.musicbrainz_id == "rec-1"
        assert track.title == "Death on Two Legs"

    async def test_rescan_with_stale_tags_keeps_linked_album(
        self,
        session: AsyncSession,
        scan,
        library_id: str,
        music_root: Path,
        extractor,
        catalog,
        tag_writer,
    ) -> None:
        """Tags the link couldn't rewrite still resolve to the linked album."""
        files = []
        for number, title in ((1, "Death on Two Legs"), (2, "Lazing on a Sunday Afternoon")):
            path = _touch(music_root / "Queen" / "Opera" / f"0{number}.wav")
            extractor.metadata[str(path)] = ExtractedMetadata(
                title=title,
                artist_name="Queen",
                album_title="A Night At The Opera",
                track_number=number,
                disc_number=1,
                year=1975,
                format="wav",
            )
            tag_writer.failing_paths.add(str(path))
            files.append(path)
        _configure_catalog(catalog)

        first = await scan(library_id)
        track = await TrackRepository(session).get_by_file_path(str(files[0]))
        await session.refresh(track)
        linked_album_id = track.album_id

        second = await scan(library_id)

        assert first.auto_linked_albums == 1
        assert second.new_tracks == 0
        assert second.auto_linked_albums == 0
        assert await AlbumRepository(session).count_all() == 1
        for path in files:
            track = await TrackRepository(session).get_by_file_path(str(path))
            await session.refresh(track)
            assert track.album_id == linked_album_id
        album = await AlbumRepository(session).get_by_id(linked_album_id)
        assert album.musicbrainz_id == RELEASE_ID
        assert album.title == "A Night at the Opera"

    async def test_below_threshold_leaves_album_unlinked(
        self,
        session: AsyncSession,
        scan,
        library_id: str,
        opera_files: list[Path],
        catalog,
        tag_writer,
        cover_store,
    ) -> None:
        _configure_catalog(catalog, date="1976")

        progress = await scan(library_id)

        assert progress.auto_linked_albums == 0
        assert progress.matched_albums == 1
        assert tag_writer.writes == []
        assert cover_store.downloads == []

    async def test_lower_threshold_links_same_candidate(
        self,
        session: AsyncSession,
        scan,
        settings: Settings,
        library_id: str,
        opera_files: list[Path],
        catalog,
    ) -> None:
        _configure_catalog(catalog, date="1976")
        relaxed = settings.model_copy(
            update={"matching": MatchingSettings(auto_link_threshold=93)}
        )

        progress = await scan(library_id, relaxed)

        assert progress.auto_linked_albums == 1

    async def test_release_held_elsewhere_is_a_conflict(
        self,
        session: AsyncSession,
        scan,
        library_id: str,
        opera_files: list[Path],
        catalog,
        tag_writer,
    ) -> None:
        _configure_catalog(catalog)
        artist = await ArtistRepository(session).add("Queen", "Queen")
        await AlbumRepository(session).add(
            "A Night at the Opera (Vinyl)", artist.id, musicbrainz_id=RELEASE_ID
        )
        await session.commit()

        progress = await scan(library_id)

        assert progress.phase is ScanPhase.DONE
        assert progress.auto_linked_albums == 0
        assert tag_writer.writes == []

    async def test_catalog_outage_does_not_abort_scan(
        self, scan, library_id: str, opera_files: list[Path], catalog
    ) -> None:
        catalog.structured_error = CatalogError("503", status_code=503)
        catalog.free_text_error = CatalogError("timeout")

        progress = await scan(library_id)

        assert progress.phase is ScanPhase.DONE
        assert progress.auto_linked_albums == 0
        assert progress.matched_albums == 1


class TestProgressStream:
    """Progress snapshots tell a consistent story."""

    async def test_phase_order_and_counters(
        self, scan, library_id: str, opera_files: list[Path], sink
    ) -> None:
        await scan(library_id)

        phases: list[ScanPhase] = []
        for snapshot in sink.snapshots:
            if not phases or phases[-1] is not snapshot.phase:
                phases.append(snapshot.phase)
        assert phases == [
            ScanPhase.DISCOVERING,
            ScanPhase.SCANNING,
            ScanPhase.CLEANUP,
            ScanPhase.MATCHING,
            ScanPhase.DONE,
        ]
        processed = [s.processed_files for s in sink.snapshots]
        assert processed == sorted(processed)
        assert sink.snapshots[-1].message.startswith("Scan complete: 2 new")
