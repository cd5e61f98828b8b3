"""In-process scan progress events."""

import logging
from collections.abc import Callable

from tunevault.domain.entities import ScanProgress
from tunevault.domain.ports import IProgressSink

logger = logging.getLogger(__name__)

ProgressListener = Callable[[ScanProgress], None]
ErrorListener = Callable[[Exception, str | None], None]


class ScanEventBus(IProgressSink):
    """Fan-out of scan progress to synchronous listeners.

    Hey future me - emit() is called from INSIDE the scan loop, after every file. A slow or
    broken listener must never hurt the scan: listeners are plain callables (keep them cheap,
    hand off to a queue if you need IO), and anything they raise is logged and swallowed here.
    The bus also remembers the latest snapshot per library so a status endpoint can answer
    "how far along is it?" without subscribing.
    """

    def __init__(self) -> None:
        """Initialize an empty bus."""
        self._progress_listeners: list[ProgressListener] = []
        self._error_listeners: list[ErrorListener] = []
        self._latest: dict[str, ScanProgress] = {}

    def subscribe(self, listener: ProgressListener) -> None:
        """Register a progress listener."""
        self._progress_listeners.append(listener)

    def subscribe_errors(self, listener: ErrorListener) -> None:
        """Register a per-item error listener."""
        self._error_listeners.append(listener)

    def unsubscribe(self, listener: ProgressListener | ErrorListener) -> None:
        """Remove a listener registered with either subscribe method."""
        if listener in self._progress_listeners:
            self._progress_listeners.remove(listener)  # type: ignore[arg-type]
        if listener in self._error_listeners:
            self._error_listeners.remove(listener)  # type: ignore[arg-type]

    def latest(self, library_id: str) -> ScanProgress | None:
        """Most recent snapshot emitted for a library."""
        return self._latest.get(library_id)

    def emit(self, progress: ScanProgress) -> None:
        """Publish a progress snapshot to all listeners."""
        snapshot = progress.snapshot()
        self._latest[snapshot.library_id] = snapshot
        for listener in list(self._progress_listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception(f"Scan progress listener {listener!r} failed")

    def emit_error(self, error: Exception, file_path: str | None = None) -> None:
        """Publish a per-item error to all error listeners."""
        for listener in list(self._error_listeners):
            try:
                listener(error, file_path)
            except Exception:
                logger.exception(f"Scan error listener {listener!r} failed")
