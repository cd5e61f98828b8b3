# Hey future me - this is the heart of the sync engine. One run = one library, five phases,
# strictly in order: discovering → scanning → cleanup → matching → done.
# Key rules:
# 1. IDEMPOTENT - file_path is the key, re-scanning an unchanged library creates nothing new
# 2. ONE BAD FILE NEVER KILLS THE RUN - per-file errors are counted, logged, emitted, skipped
# 3. COMMIT PER FILE / PER ALBUM - a failure only rolls back its own pending changes
# 4. ONLY "library not found" (or a dead database) aborts the whole run
"""Library scan orchestrator: discovery, reconciliation, cleanup and catalog matching."""

import asyncio
import logging
import os
from concurrent.futures import Executor
from pathlib import Path

from sqlalchemy.ext.asyncio import AsyncSession

from tunevault.config import Settings
from tunevault.domain.entities import ScanPhase, ScanProgress, UpsertOutcome
from tunevault.domain.exceptions import EntityNotFoundException
from tunevault.domain.ports import (
    ICoverStore,
    IMetadataCatalog,
    IMetadataExtractor,
    IProgressSink,
    ITagWriter,
)
from tunevault.domain.value_objects import is_audio_file
from tunevault.infrastructure.observability.log_messages import LogMessages
from tunevault.infrastructure.persistence.repositories import (
    AlbumRepository,
    LibraryRepository,
)

from .auto_linker import AutoLinker
from .identity_resolver import IdentityResolver
from .missing_file_detector import MissingFileDetector
from .scan_events import ScanEventBus
from .track_reconciler import TrackReconciler

logger = logging.getLogger(__name__)


def discover_audio_files(root: Path) -> list[str]:
    """Recursively list audio files under root, sorted by path.

    Unreadable directories are logged and skipped. Symlinked directories are not
    followed (a link back up the tree would otherwise loop forever).
    """

    def _on_error(error: OSError) -> None:
        logger.warning(LogMessages.directory_skipped(str(error.filename), str(error)))

    audio_files: list[str] = []
    for dirpath, _dirnames, filenames in os.walk(root, onerror=_on_error):
        for filename in filenames:
            if is_audio_file(filename):
                audio_files.append(os.path.join(dirpath, filename))

    audio_files.sort()
    return audio_files


class LibraryScannerService:
    """Runs one full synchronization pass over a library.

    Works with the JobQueue for background processing (see LibraryScanWorker),
    but is just as happy being awaited directly (tests do that).
    """

    def __init__(
        self,
        session: AsyncSession,
        settings: Settings,
        extractor: IMetadataExtractor,
        catalog: IMetadataCatalog,
        cover_store: ICoverStore,
        tag_writer: ITagWriter,
        progress_sink: IProgressSink | None = None,
        executor: Executor | None = None,
    ) -> None:
        """Initialize scanner service.

        Args:
            session: Database session (committed per file and per album)
            settings: Application settings
            extractor: Metadata extractor port (blocking, runs in the executor)
            catalog: Metadata catalog port
            cover_store: Cover persistence port
            tag_writer: Tag rewriter port
            progress_sink: Receives progress snapshots and per-item errors
            executor: Executor for blocking extraction (None = loop default)
        """
        self.session = session
        self.settings = settings
        self.extractor = extractor
        self.progress_sink: IProgressSink = progress_sink or ScanEventBus()
        self._executor = executor

        self.library_repo = LibraryRepository(session)
        self.album_repo = AlbumRepository(session)
        self.identity = IdentityResolver(session)
        self.reconciler = TrackReconciler(session)
        self.missing_detector = MissingFileDetector(session)
        self.auto_linker = AutoLinker(
            session,
            catalog=catalog,
            cover_store=cover_store,
            tag_writer=tag_writer,
            settings=settings.matching,
        )

    async def run(self, library_id: str) -> ScanProgress:
        """Scan a library end to end.

        Args:
            library_id: Library to scan

        Returns:
            Terminal progress (phase DONE) with aggregate counters

        Raises:
            EntityNotFoundException: If the library doesn't exist
        """
        library = await self.library_repo.get_by_id(library_id)
        if library is None:
            raise EntityNotFoundException("Library", library_id)

        # Plain strings from here on - rollbacks expire ORM instances
        root = library.path
        library_name = library.name

        progress = ScanProgress(library_id=library_id)
        self._emit(progress)
        logger.info(LogMessages.scan_started(library_name, root))

        try:
            files = await self._discover(progress, root)
            seen_paths = await self._scan_files(progress, files)
            await self._cleanup(progress, root, seen_paths)
            await self._match_albums(progress, root)
            await self._finish(progress, library_id, library_name)
        except Exception as e:
            await self.session.rollback()
            progress.phase = ScanPhase.ERROR
            progress.current_file = None
            progress.message = f"Scan failed: {e}"
            self._emit(progress)
            logger.error(LogMessages.scan_aborted(library_id, str(e)), exc_info=True)
            raise

        return progress

    # =========================================================================
    # PHASES
    # =========================================================================

    async def _discover(self, progress: ScanProgress, root: str) -> list[str]:
        loop = asyncio.get_running_loop()
        files = await loop.run_in_executor(self._executor, discover_audio_files, Path(root))

        progress.total_files = len(files)
        progress.phase = ScanPhase.SCANNING
        self._emit(progress)
        logger.info(f"Discovered {len(files)} audio files under {root}")
        return files

    # Listen up, extraction goes through the executor one file at a time. The event loop stays
    # free for the API while mutagen reads, and this coroutine stays the ONLY writer to the
    # session, which is what makes resolve-or-create safe without locks.
    async def _scan_files(self, progress: ScanProgress, files: list[str]) -> set[str]:
        loop = asyncio.get_running_loop()
        seen_paths: set[str] = set()

        for file_path in files:
            progress.current_file = file_path
            self._emit(progress)

            try:
                metadata = await loop.run_in_executor(
                    self._executor, self.extractor.extract, Path(file_path)
                )
                seen_paths.add(file_path)

                placement = await self.identity.linked_placement(file_path)
                artist_id = await self.identity.resolve_artist(
                    metadata.artist_name, metadata.musicbrainz_artist_id
                )
                album_id = None
                if metadata.album_title:
                    album_id = await self.identity.resolve_album(
                        metadata.album_title,
                        artist_id,
                        year=metadata.year,
                        genre=metadata.genre,
                        cover_ref=metadata.cover_ref,
                        external_id=metadata.musicbrainz_album_id,
                        linked_album_id=placement[1] if placement else None,
                    )
                    # A linked file keeps the catalog-credited artist, not the tag's
                    if placement is not None and album_id == placement[1]:
                        artist_id = placement[0]

                outcome = await self.reconciler.upsert_track(
                    file_path, metadata, artist_id, album_id
                )
                await self.session.commit()

                if outcome is UpsertOutcome.CREATED:
                    progress.new_tracks += 1
                else:
                    progress.updated_tracks += 1

            except Exception as e:
                await self.session.rollback()
                progress.errors += 1
                progress.error_files.append(file_path)
                logger.warning(LogMessages.file_scan_failed(file_path, str(e)))
                self.progress_sink.emit_error(e, file_path)

            progress.processed_files += 1
            self._emit(progress)

        return seen_paths

    async def _cleanup(self, progress: ScanProgress, root: str, seen_paths: set[str]) -> None:
        progress.phase = ScanPhase.CLEANUP
        progress.current_file = None
        self._emit(progress)

        progress.removed_tracks = await self.missing_detector.mark_missing(root, seen_paths)
        await self.session.commit()

    # Hey future me - matching is per album and every album is its own unit of work. A catalog
    # timeout on album 3 must not stop album 4, and a conflict on one never leaks writes.
    async def _match_albums(self, progress: ScanProgress, root: str) -> None:
        progress.phase = ScanPhase.MATCHING
        self._emit(progress)

        unlinked = [
            (album.id, album.title)
            for album in await self.album_repo.list_unlinked_in_library(root)
        ]
        needs_cover = [
            (album.id, album.title)
            for album in await self.album_repo.list_linked_without_cover_in_library(root)
        ]

        progress.total_albums = len(unlinked) + len(needs_cover)
        self._emit(progress)
        logger.info(
            f"Auto-matching {len(unlinked)} albums against MusicBrainz "
            f"(threshold: {self.settings.matching.auto_link_threshold}%), "
            f"{len(needs_cover)} linked albums without cover"
        )

        for album_id, title in unlinked:
            try:
                result = await self.auto_linker.auto_link_album(album_id)
                await self.session.commit()
                if result.linked:
                    progress.auto_linked_albums += 1
                elif result.reason:
                    logger.debug(f"Album '{title}' not linked: {result.reason}")
            except Exception as e:
                await self.session.rollback()
                logger.warning(LogMessages.album_match_failed(title, album_id, str(e)))
            progress.matched_albums += 1
            self._emit(progress)

        for album_id, title in needs_cover:
            try:
                await self.auto_linker.refresh_cover(album_id)
                await self.session.commit()
            except Exception as e:
                await self.session.rollback()
                logger.warning(LogMessages.album_match_failed(title, album_id, str(e)))
            progress.matched_albums += 1
            self._emit(progress)

        logger.info(
            f"Auto-matching complete: {progress.auto_linked_albums} of {len(unlinked)} "
            f"albums linked"
        )

    async def _finish(
        self, progress: ScanProgress, library_id: str, library_name: str
    ) -> None:
        await self.library_repo.mark_scanned(library_id)
        await self.session.commit()

        progress.phase = ScanPhase.DONE
        progress.message = (
            f"Scan complete: {progress.new_tracks} new, {progress.updated_tracks} updated, "
            f"{progress.removed_tracks} missing, {progress.errors} errors, "
            f"{progress.auto_linked_albums} auto-linked"
        )
        self._emit(progress)
        logger.info(
            LogMessages.scan_completed(
                library_name,
                new=progress.new_tracks,
                updated=progress.updated_tracks,
                missing=progress.removed_tracks,
                errors=progress.errors,
                auto_linked=progress.auto_linked_albums,
            )
        )

    def _emit(self, progress: ScanProgress) -> None:
        self.progress_sink.emit(progress)
