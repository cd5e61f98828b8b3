"""In-memory job queue for background processing.

Hey future me - this is deliberately small. Jobs live in a dict, the ready ones sit in an
asyncio.PriorityQueue as (-priority, counter, job) tuples (the counter keeps FIFO order for
equal priorities and stops the tuple comparison from ever reaching the Job itself).

Key rules:
1. Handlers are registered per JobType BEFORE start() - a job without a handler fails fast
2. max_concurrent_jobs caps how many handlers run at once, no matter how many workers loop
3. dedup_key makes enqueue idempotent while a job with the same key is pending or running
4. Cancel only works for PENDING jobs - a running handler is never interrupted
5. Only the newest max_finished_jobs terminal jobs are kept, older ones are forgotten
"""

import asyncio
import logging
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


class JobStatus(str, Enum):
    """Job lifecycle states."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class JobType(str, Enum):
    """Kinds of background jobs."""

    LIBRARY_SCAN = "library_scan"


ACTIVE_STATUSES = frozenset({JobStatus.PENDING, JobStatus.RUNNING})


@dataclass
class Job:
    """A unit of background work."""

    id: str
    job_type: JobType
    payload: dict[str, Any]
    status: JobStatus = JobStatus.PENDING
    priority: int = 0
    max_retries: int = 3
    retries: int = 0
    dedup_key: str | None = None
    result: Any = None
    error: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    started_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def is_active(self) -> bool:
        """True while pending or running."""
        return self.status in ACTIVE_STATUSES

    def mark_running(self) -> None:
        self.status = JobStatus.RUNNING
        self.started_at = datetime.now(UTC)

    def mark_completed(self, result: Any = None) -> None:
        self.status = JobStatus.COMPLETED
        self.result = result
        self.error = None
        self.completed_at = datetime.now(UTC)

    def mark_failed(self, error: str) -> None:
        self.status = JobStatus.FAILED
        self.error = error
        self.completed_at = datetime.now(UTC)

    def mark_cancelled(self) -> None:
        self.status = JobStatus.CANCELLED
        self.completed_at = datetime.now(UTC)

    def should_retry(self) -> bool:
        """Whether a failed attempt gets another go."""
        return self.retries < self.max_retries


JobHandler = Callable[[Job], Awaitable[Any]]


class JobQueue:
    """Priority job queue processed by asyncio worker tasks."""

    def __init__(self, max_concurrent_jobs: int = 5, max_finished_jobs: int = 100) -> None:
        """Initialize job queue.

        Args:
            max_concurrent_jobs: Maximum number of handlers running at once
            max_finished_jobs: Terminal jobs kept for get_job()/list_jobs() lookups
        """
        self.max_concurrent_jobs = max_concurrent_jobs
        self.max_finished_jobs = max_finished_jobs
        self._queue: asyncio.PriorityQueue[tuple[int, int, Job]] = asyncio.PriorityQueue()
        self._jobs: dict[str, Job] = {}
        self._handlers: dict[JobType, JobHandler] = {}
        self._done_events: dict[str, asyncio.Event] = {}
        self._semaphore = asyncio.Semaphore(max_concurrent_jobs)
        self._workers: list[asyncio.Task[None]] = []
        self._running = False
        self._counter = 0

    def register_handler(self, job_type: JobType, handler: JobHandler) -> None:
        """Register the coroutine that processes jobs of a type.

        Args:
            job_type: Job type
            handler: Async callable receiving the Job, its return value becomes job.result
        """
        self._handlers[job_type] = handler
        logger.debug(f"Registered handler for {job_type.value} jobs")

    def find_active_job(self, dedup_key: str) -> Job | None:
        """Pending or running job holding a dedup key, if any."""
        for job in self._jobs.values():
            if job.dedup_key == dedup_key and job.is_active:
                return job
        return None

    async def enqueue(
        self,
        job_type: JobType,
        payload: dict[str, Any],
        max_retries: int = 3,
        priority: int = 0,
        dedup_key: str | None = None,
    ) -> str:
        """Add a job to the queue.

        Args:
            job_type: Type of job
            payload: Job data handed to the handler
            max_retries: Maximum retry attempts after the first failure
            priority: Job priority (higher = picked first)
            dedup_key: When set and a pending/running job holds the same key,
                that job's id is returned and nothing new is queued

        Returns:
            Job ID
        """
        if dedup_key is not None:
            existing = self.find_active_job(dedup_key)
            if existing is not None:
                logger.info(
                    f"Job for '{dedup_key}' already {existing.status.value} "
                    f"({existing.id}), not queueing another"
                )
                return existing.id

        job = Job(
            id=str(uuid.uuid4()),
            job_type=job_type,
            payload=payload,
            max_retries=max_retries,
            priority=priority,
            dedup_key=dedup_key,
        )
        self._jobs[job.id] = job
        self._done_events[job.id] = asyncio.Event()
        await self._put(job)

        logger.debug(f"Enqueued job {job.id} ({job_type.value}) with priority {priority}")
        return job.id

    async def _put(self, job: Job) -> None:
        await self._queue.put((-job.priority, self._counter, job))
        self._counter += 1

    async def start(self, num_workers: int = 1) -> None:
        """Start worker tasks.

        Args:
            num_workers: Number of worker loops
        """
        if self._running:
            return

        self._running = True
        for i in range(num_workers):
            self._workers.append(asyncio.create_task(self._worker(f"job-worker-{i}")))
        logger.info(
            f"Job queue started with {num_workers} workers "
            f"(max {self.max_concurrent_jobs} concurrent jobs)"
        )

    async def stop(self) -> None:
        """Stop worker tasks. Jobs still pending stay pending."""
        self._running = False
        for task in self._workers:
            task.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers.clear()
        logger.info("Job queue stopped")

    async def _worker(self, name: str) -> None:
        while self._running:
            try:
                _, _, job = await asyncio.wait_for(self._queue.get(), timeout=1.0)
            except TimeoutError:
                continue

            try:
                if job.status is not JobStatus.PENDING:
                    continue
                async with self._semaphore:
                    await self._execute(job, name)
            finally:
                self._queue.task_done()

    # Listen up, handler exceptions end up on the Job (error + FAILED status), never in the
    # worker loop. A crashing scan must not take the worker task down with it.
    async def _execute(self, job: Job, worker_name: str) -> None:
        handler = self._handlers.get(job.job_type)
        if handler is None:
            job.mark_failed(f"No handler registered for job type {job.job_type.value}")
            logger.error(f"{worker_name}: {job.error} (job {job.id})")
            self._finish(job)
            return

        job.mark_running()
        logger.debug(f"{worker_name}: running job {job.id} ({job.job_type.value})")

        try:
            result = await handler(job)
        except asyncio.CancelledError:
            job.mark_failed("Cancelled while running")
            self._finish(job)
            raise
        except Exception as e:
            if job.should_retry():
                job.retries += 1
                job.status = JobStatus.PENDING
                job.error = str(e)
                logger.warning(
                    f"Job {job.id} failed (attempt {job.retries}/{job.max_retries + 1}), "
                    f"retrying: {e}"
                )
                await self._put(job)
                return

            job.mark_failed(str(e))
            logger.error(f"Job {job.id} ({job.job_type.value}) failed: {e}")
            self._finish(job)
            return

        job.mark_completed(result)
        logger.debug(f"Job {job.id} completed")
        self._finish(job)

    def _finish(self, job: Job) -> None:
        event = self._done_events.get(job.id)
        if event is not None:
            event.set()
        self._prune_finished()

    # Dicts keep insertion order, so the first finished ids are the oldest jobs. A waiter that
    # already holds the done event still wakes up after its job is pruned.
    def _prune_finished(self) -> None:
        finished = [job_id for job_id, job in self._jobs.items() if not job.is_active]
        excess = len(finished) - self.max_finished_jobs
        for job_id in finished[: max(excess, 0)]:
            del self._jobs[job_id]
            self._done_events.pop(job_id, None)
        if excess > 0:
            logger.debug(f"Pruned {excess} finished jobs")

    async def get_job(self, job_id: str) -> Job | None:
        """Get a job by id."""
        return self._jobs.get(job_id)

    async def list_jobs(
        self, status: JobStatus | None = None, job_type: JobType | None = None
    ) -> list[Job]:
        """List known jobs, optionally filtered, oldest first."""
        jobs = [
            job
            for job in self._jobs.values()
            if (status is None or job.status is status)
            and (job_type is None or job.job_type is job_type)
        ]
        return sorted(jobs, key=lambda job: job.created_at)

    async def cancel_job(self, job_id: str) -> bool:
        """Cancel a pending job.

        Returns:
            True if the job was pending and is now cancelled
        """
        job = self._jobs.get(job_id)
        if job is None or job.status is not JobStatus.PENDING:
            return False

        job.mark_cancelled()
        self._finish(job)
        logger.info(f"Cancelled job {job_id}")
        return True

    async def wait_for_job(self, job_id: str, timeout: float | None = None) -> Job | None:
        """Wait until a job reaches a terminal state.

        Args:
            job_id: Job id
            timeout: Seconds to wait (None = forever)

        Returns:
            The job, or None if it is unknown

        Raises:
            TimeoutError: If the job is still active after timeout
        """
        job = self._jobs.get(job_id)
        if job is None:
            return None

        event = self._done_events[job_id]
        await asyncio.wait_for(event.wait(), timeout=timeout)
        return job

    def get_stats(self) -> dict[str, Any]:
        """Job counts per status."""
        stats: dict[str, Any] = {status.value: 0 for status in JobStatus}
        for job in self._jobs.values():
            stats[job.status.value] += 1
        stats["total"] = len(self._jobs)
        stats["queued"] = self._queue.qsize()
        return stats
