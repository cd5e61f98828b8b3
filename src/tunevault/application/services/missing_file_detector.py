"""Missing-file detection after the per-file scan loop."""

import logging
from collections.abc import Iterable

from sqlalchemy.ext.asyncio import AsyncSession

from tunevault.infrastructure.persistence.repositories import TrackRepository

logger = logging.getLogger(__name__)


class MissingFileDetector:
    """Flags tracks whose files were not seen in the current pass.

    Rows are never deleted. A flagged track comes back automatically the next
    time a scan sees its path (the reconciler clears the flag).
    """

    def __init__(self, session: AsyncSession) -> None:
        """Initialize detector.

        Args:
            session: Database session
        """
        self.track_repo = TrackRepository(session)

    async def mark_missing(self, root: str, seen_paths: Iterable[str]) -> int:
        """Flag every present track under root that isn't in seen_paths.

        Args:
            root: Library root path
            seen_paths: Paths whose metadata was read in this pass

        Returns:
            Number of tracks newly flagged missing
        """
        flagged = await self.track_repo.mark_missing_except(root, seen_paths)
        if flagged:
            logger.info(f"Marked {flagged} tracks under {root} as missing")
        return flagged
