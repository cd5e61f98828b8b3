"""Background workers."""

from .job_queue import Job, JobQueue, JobStatus, JobType
from .library_scan_worker import LibraryScanWorker

__all__ = ["Job", "JobQueue", "JobStatus", "JobType", "LibraryScanWorker"]
