"""Tests for AlbumMatcher search fallback and ranking."""

from unittest.mock import AsyncMock

import pytest

from tunevault.application.services.album_matcher import AlbumMatcher
from tunevault.config import MatchingSettings
from tunevault.domain.entities import CatalogRelease, LocalAlbumDescriptor
from tunevault.domain.exceptions import CatalogError
from tunevault.domain.ports import IMetadataCatalog

LOCAL = LocalAlbumDescriptor(
    title="A Night at the Opera", artist_name="Queen", year=1975, track_count=12
)


def _release(release_id: str, **overrides) -> CatalogRelease:
    data = {
        "id": release_id,
        "title": "A Night at the Opera",
        "artist_credit": "Queen",
        "date": "1975-11-21",
        "track_count": 12,
    }
    data.update(overrides)
    return CatalogRelease(**data)


@pytest.fixture
def mock_catalog() -> AsyncMock:
    """Catalog mock with a spec so typos in method names fail loudly."""
    return AsyncMock(spec=IMetadataCatalog)


class TestSearchFallback:
    """Test structured → free-text fallback."""

    async def test_structured_results_used_directly(self, mock_catalog: AsyncMock) -> None:
        mock_catalog.search_releases.return_value = [_release("r1")]
        matcher = AlbumMatcher(mock_catalog, MatchingSettings())

        result = await matcher.match_album(LOCAL)

        assert result.best.release.id == "r1"
        assert mock_catalog.search_releases.await_count == 1
        assert mock_catalog.search_releases.await_args.kwargs["structured"] is True

    async def test_empty_structured_falls_back(self, mock_catalog: AsyncMock) -> None:
        mock_catalog.search_releases.side_effect = [[], [_release("r2")]]
        matcher = AlbumMatcher(mock_catalog, MatchingSettings())

        result = await matcher.match_album(LOCAL)

        assert result.best.release.id == "r2"
        assert mock_catalog.search_releases.await_args.kwargs["structured"] is False

    async def test_failing_structured_falls_back(self, mock_catalog: AsyncMock) -> None:
        mock_catalog.search_releases.side_effect = [CatalogError("400"), [_release("r3")]]
        matcher = AlbumMatcher(mock_catalog, MatchingSettings())

        result = await matcher.match_album(LOCAL)

        assert result.best.release.id == "r3"

    async def test_both_failing_raises(self, mock_catalog: AsyncMock) -> None:
        mock_catalog.search_releases.side_effect = [
            CatalogError("400"),
            CatalogError("timeout"),
        ]
        matcher = AlbumMatcher(mock_catalog, MatchingSettings())

        with pytest.raises(CatalogError):
            await matcher.match_album(LOCAL)

    async def test_search_limit_passed_through(self, mock_catalog: AsyncMock) -> None:
        mock_catalog.search_releases.return_value = [_release("r1")]
        matcher = AlbumMatcher(mock_catalog, MatchingSettings(search_limit=25))

        await matcher.match_album(LOCAL)

        assert mock_catalog.search_releases.await_args.kwargs["limit"] == 25


class TestRankingAndSuggestion:
    """Test candidate limits and the manual-match suggestion."""

    async def test_candidates_capped(self, mock_catalog: AsyncMock) -> None:
        mock_catalog.search_releases.return_value = [_release(f"r{i}") for i in range(10)]
        matcher = AlbumMatcher(mock_catalog, MatchingSettings(max_candidates=5))

        result = await matcher.match_album(LOCAL)

        assert len(result.candidates) == 5

    async def test_suggested_at_manual_threshold(self, mock_catalog: AsyncMock) -> None:
        """93 (year off by one) is suggested with the default 80 bar."""
        mock_catalog.search_releases.return_value = [_release("r1", date="1976")]
        matcher = AlbumMatcher(mock_catalog, MatchingSettings())

        result = await matcher.match_album(LOCAL)

        assert result.suggested is not None
        assert result.suggested.confidence == 93

    async def test_not_suggested_below_manual_threshold(self, mock_catalog: AsyncMock) -> None:
        mock_catalog.search_releases.return_value = [_release("r1", date="1976")]
        matcher = AlbumMatcher(mock_catalog, MatchingSettings(manual_match_threshold=94))

        result = await matcher.match_album(LOCAL)

        assert result.best.confidence == 93
        assert result.suggested is None

    async def test_no_results(self, mock_catalog: AsyncMock) -> None:
        mock_catalog.search_releases.return_value = []
        matcher = AlbumMatcher(mock_catalog, MatchingSettings())

        result = await matcher.match_album(LOCAL)

        assert result.best is None
        assert result.suggested is None
