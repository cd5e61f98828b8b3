"""Album matcher - catalog search plus deterministic ranking."""

import logging

from tunevault.config import MatchingSettings
from tunevault.domain.entities import CatalogRelease, LocalAlbumDescriptor, MatchResult
from tunevault.domain.exceptions import CatalogError
from tunevault.domain.ports import IMetadataCatalog
from tunevault.domain.value_objects import rank_candidates

logger = logging.getLogger(__name__)


class AlbumMatcher:
    """Searches the catalog for a local album and ranks what comes back.

    Hey future me - two search strategies, tried in order:
    1. Structured: release:"<title>" AND artist:"<artist>" (precise, but chokes on odd
       punctuation and returns nothing for slightly-off titles)
    2. Free text: "<title> <artist>" (fuzzy, catches what the first one misses)

    The second only runs if the first failed or came back empty. If the second one fails
    too, CatalogError goes to the caller (the scanner logs it and skips the album).
    """

    def __init__(self, catalog: IMetadataCatalog, settings: MatchingSettings) -> None:
        """Initialize matcher.

        Args:
            catalog: Metadata catalog port
            settings: Matching thresholds and limits
        """
        self.catalog = catalog
        self.settings = settings

    async def _search(self, local: LocalAlbumDescriptor) -> list[CatalogRelease]:
        releases: list[CatalogRelease] = []
        try:
            releases = await self.catalog.search_releases(
                local.title,
                local.artist_name,
                limit=self.settings.search_limit,
                structured=True,
            )
        except CatalogError as e:
            logger.warning(
                f"Structured catalog query failed for '{local.title}', trying free text: {e}"
            )

        if releases:
            return releases

        try:
            return await self.catalog.search_releases(
                local.title,
                local.artist_name,
                limit=self.settings.search_limit,
                structured=False,
            )
        except CatalogError as e:
            logger.error(f"Free-text catalog query also failed for '{local.title}': {e}")
            raise

    async def match_album(self, local: LocalAlbumDescriptor) -> MatchResult:
        """Find and rank catalog candidates for a local album.

        Args:
            local: Local album descriptor

        Returns:
            MatchResult with at most max_candidates candidates, best first, and
            suggested set when the best reaches the manual-match threshold

        Raises:
            CatalogError: If the fallback search fails
        """
        releases = await self._search(local)
        candidates = rank_candidates(releases, local, limit=self.settings.max_candidates)

        suggested = None
        if candidates and candidates[0].confidence >= self.settings.manual_match_threshold:
            suggested = candidates[0]

        return MatchResult(query=local, candidates=candidates, suggested=suggested)
