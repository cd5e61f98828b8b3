# Hey future me - this worker handles LIBRARY_SCAN jobs from the JobQueue!
# It builds a LibraryScannerService with a FRESH session per job and runs the scan in background.
# Register it once during startup (call register() after init).
# Key rules:
# 1. ONE scan per library at a time - enqueue_scan() dedups on the library id
# 2. Scans are never retried (max_retries=0) - a re-scan is cheap and idempotent, just enqueue again
# 3. Correlation id = job id, so every log line of one scan can be grepped together
# 4. ONE scan at a time overall - _scan_lock serializes jobs even when the queue runs more workers
# 5. Expired catalog responses are purged from the shared cache after every job
"""Library scan worker for background scanning jobs."""

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING, Any

from tunevault.application.cache import BaseCache, InMemoryCache
from tunevault.application.services.cover_service import CoverService
from tunevault.application.services.library_scanner_service import LibraryScannerService
from tunevault.application.services.metadata_extractor import MutagenMetadataExtractor
from tunevault.application.services.metadata_tagger import MutagenTagWriter
from tunevault.application.services.scan_events import ScanEventBus
from tunevault.application.workers.job_queue import Job, JobQueue, JobType
from tunevault.config import Settings
from tunevault.domain.ports import (
    ICoverStore,
    IMetadataCatalog,
    IMetadataExtractor,
    IProgressSink,
    ITagWriter,
)
from tunevault.infrastructure.integrations import (
    CoverArtArchiveClient,
    MusicBrainzCatalog,
    MusicBrainzClient,
)
from tunevault.infrastructure.observability import LogMessages, set_correlation_id

if TYPE_CHECKING:
    from tunevault.infrastructure.persistence.database import Database

logger = logging.getLogger(__name__)

SCAN_JOB_PRIORITY = 5


class LibraryScanWorker:
    """Worker for processing library scan jobs.

    This worker:
    1. Receives LIBRARY_SCAN jobs from JobQueue
    2. Creates LibraryScannerService with fresh DB session
    3. Runs the five scan phases
    4. Returns the terminal progress as the job result

    Collaborators (extractor, catalog, cover store, tag writer) are shared between
    jobs. Use from_settings() for the real mutagen/httpx/Pillow stack.
    """

    def __init__(
        self,
        job_queue: JobQueue,
        db: "Database",
        settings: Settings,
        extractor: IMetadataExtractor,
        catalog: IMetadataCatalog,
        cover_store: ICoverStore,
        tag_writer: ITagWriter,
        progress_sink: IProgressSink | None = None,
        cache: BaseCache[str, Any] | None = None,
    ) -> None:
        """Initialize worker.

        Args:
            job_queue: Job queue for background processing
            db: Database instance for creating sessions
            settings: Application settings
            extractor: Metadata extractor
            catalog: Metadata catalog
            cover_store: Cover persistence
            tag_writer: Tag rewriter
            progress_sink: Progress receiver (a fresh ScanEventBus when omitted)
            cache: Catalog response cache to purge after each job (None = nothing to purge)
        """
        self._job_queue = job_queue
        self.db = db
        self.settings = settings
        self.extractor = extractor
        self.catalog = catalog
        self.cover_store = cover_store
        self.tag_writer = tag_writer
        self.progress_sink: IProgressSink = progress_sink or ScanEventBus()
        self._executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="tag-reader")
        self.cache = cache
        self._scan_lock = asyncio.Lock()

    @classmethod
    def from_settings(
        cls,
        job_queue: JobQueue,
        db: "Database",
        settings: Settings,
        progress_sink: IProgressSink | None = None,
    ) -> "LibraryScanWorker":
        """Build a worker wired to MusicBrainz, Cover Art Archive, mutagen and Pillow.

        Both catalog clients share one in-process response cache.
        """
        cache: InMemoryCache[str, dict[str, Any]] = InMemoryCache()
        catalog = MusicBrainzCatalog(
            MusicBrainzClient(settings.musicbrainz, cache=cache),
            CoverArtArchiveClient(settings.musicbrainz, cache=cache),
        )
        return cls(
            job_queue=job_queue,
            db=db,
            settings=settings,
            extractor=MutagenMetadataExtractor(settings.storage.covers_path),
            catalog=catalog,
            cover_store=CoverService(settings),
            tag_writer=MutagenTagWriter(),
            progress_sink=progress_sink,
            cache=cache,
        )

    def register(self) -> None:
        """Register handlers with job queue.

        Call this AFTER app is fully initialized!
        """
        self._job_queue.register_handler(JobType.LIBRARY_SCAN, self._handle_scan_job)
        logger.info(
            LogMessages.worker_started(
                "Library Scan",
                config={
                    "auto_link_threshold": self.settings.matching.auto_link_threshold,
                    "max_retries": 0,
                },
            )
        )

    async def enqueue_scan(self, library_id: str) -> str:
        """Queue a scan for a library.

        Returns the id of the already pending/running scan for the same library
        instead of queueing a second one.

        Args:
            library_id: Library to scan

        Returns:
            Job ID
        """
        return await self._job_queue.enqueue(
            JobType.LIBRARY_SCAN,
            {"library_id": library_id},
            max_retries=0,
            priority=SCAN_JOB_PRIORITY,
            dedup_key=f"library_scan:{library_id}",
        )

    async def _handle_scan_job(self, job: Job) -> dict[str, Any]:
        """Handle a library scan job.

        Called by JobQueue when a LIBRARY_SCAN job is ready.

        Args:
            job: The job to process

        Returns:
            Terminal scan progress as a dict
        """
        set_correlation_id(job.id)
        library_id = job.payload["library_id"]

        logger.info(f"Starting library scan job {job.id} (library={library_id})")

        try:
            async with self._scan_lock, self.db.session_scope() as session:
                service = LibraryScannerService(
                    session=session,
                    settings=self.settings,
                    extractor=self.extractor,
                    catalog=self.catalog,
                    cover_store=self.cover_store,
                    tag_writer=self.tag_writer,
                    progress_sink=self.progress_sink,
                    executor=self._executor,
                )
                progress = await service.run(library_id)

            logger.info(
                f"Library scan job {job.id} complete: "
                f"{progress.new_tracks} new, {progress.errors} errors"
            )
            return progress.to_dict()

        except Exception as e:
            logger.error(f"Library scan job {job.id} failed: {e}")
            raise

        finally:
            await self._purge_cache()

    async def _purge_cache(self) -> None:
        if self.cache is None:
            return
        removed = await self.cache.cleanup_expired()
        if removed:
            logger.debug(f"Purged {removed} expired catalog cache entries")

    async def close(self) -> None:
        """Release the executor and HTTP clients owned by the collaborators."""
        self._executor.shutdown(wait=False)
        for resource in (self.catalog, self.cover_store):
            close = getattr(resource, "close", None)
            if close is not None:
                await close()
