"""Tests for MusicBrainzCatalog parsing and error translation."""

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from tunevault.domain.exceptions import CatalogError
from tunevault.infrastructure.integrations.coverartarchive_client import CoverArtArchiveClient
from tunevault.infrastructure.integrations.musicbrainz_catalog import (
    MusicBrainzCatalog,
    build_release_query,
    credited_artist_name,
    escape_quoted,
    parse_release,
)
from tunevault.infrastructure.integrations.musicbrainz_client import MusicBrainzClient

RELEASE_DETAIL = {
    "id": "rel-1",
    "title": "A Night at the Opera",
    "date": "1975-11-21",
    "country": "GB",
    "artist-credit": [{"name": "Queen", "artist": {"id": "mb-queen", "name": "Queen"}}],
    "label-info": [{"label": {"name": "EMI"}}],
    "tags": [{"name": "rock", "count": 7}, {"name": "progressive rock", "count": 3}],
    "media": [
        {
            "position": 1,
            "track-count": 2,
            "tracks": [
                {"position": 1, "title": "Death on Two Legs", "recording": {"id": "rec-1"}},
                {"position": 2, "recording": {"id": "rec-2", "title": "Lazing on a Sunday"}},
            ],
        },
        {
            "position": 2,
            "track-count": 1,
            "tracks": [{"position": 1, "title": "Bonus", "recording": {}}],
        },
    ],
}


def _status_error(status: int) -> httpx.HTTPStatusError:
    response = MagicMock()
    response.status_code = status
    return httpx.HTTPStatusError("error", request=MagicMock(), response=response)


@pytest.fixture
def musicbrainz() -> AsyncMock:
    return AsyncMock(spec=MusicBrainzClient)


@pytest.fixture
def cover_art() -> AsyncMock:
    return AsyncMock(spec=CoverArtArchiveClient)


@pytest.fixture
def catalog(musicbrainz: AsyncMock, cover_art: AsyncMock) -> MusicBrainzCatalog:
    return MusicBrainzCatalog(musicbrainz, cover_art)


class TestQueryBuilding:
    """Test Lucene query construction."""

    def test_structured_query(self) -> None:
        assert (
            build_release_query("Abbey Road", "The Beatles")
            == 'release:"Abbey Road" AND artist:"The Beatles"'
        )

    def test_free_text_query(self) -> None:
        assert build_release_query("Abbey Road", "The Beatles", structured=False) == (
            "Abbey Road The Beatles"
        )

    def test_quotes_are_escaped(self) -> None:
        assert escape_quoted('The "Best" of \\') == 'The \\"Best\\" of \\\\'


class TestParseRelease:
    """Test MusicBrainz JSON → CatalogRelease."""

    def test_search_hit_fields(self) -> None:
        release = parse_release(RELEASE_DETAIL)

        assert release.id == "rel-1"
        assert release.artist_credit == "Queen"
        assert release.year == 1975
        assert release.track_count == 3
        assert release.tracks == []
        assert release.label is None

    def test_detail_fields(self) -> None:
        release = parse_release(RELEASE_DETAIL, with_details=True)

        assert release.artist_id == "mb-queen"
        assert release.label == "EMI"
        assert release.genre == "rock"
        assert release.disc_count == 2
        assert [(t.recording_id, t.title) for t in release.tracks] == [
            ("rec-1", "Death on Two Legs"),
            ("rec-2", "Lazing on a Sunday"),
        ]

    def test_joined_artist_credit(self) -> None:
        data = {
            "artist-credit": [
                {"name": "Queen", "joinphrase": " & "},
                {"artist": {"name": "David Bowie"}},
            ]
        }

        assert credited_artist_name(data) == "Queen & David Bowie"

    def test_missing_date_is_none(self) -> None:
        release = parse_release({"id": "rel-2", "title": "X", "date": ""})

        assert release.date is None
        assert release.year is None


class TestMusicBrainzCatalog:
    """Test the catalog port on top of mocked clients."""

    async def test_search_uses_structured_query(
        self, catalog: MusicBrainzCatalog, musicbrainz: AsyncMock
    ) -> None:
        musicbrainz.search_releases.return_value = [{"id": "rel-1", "title": "Jazz"}, {}]

        releases = await catalog.search_releases("Jazz", "Queen", limit=3)

        assert [r.id for r in releases] == ["rel-1"]
        musicbrainz.search_releases.assert_awaited_once_with(
            'release:"Jazz" AND artist:"Queen"', limit=3
        )

    async def test_search_error_becomes_catalog_error(
        self, catalog: MusicBrainzCatalog, musicbrainz: AsyncMock
    ) -> None:
        musicbrainz.search_releases.side_effect = _status_error(503)

        with pytest.raises(CatalogError) as exc_info:
            await catalog.search_releases("Jazz", "Queen")

        assert exc_info.value.status_code == 503

    async def test_timeout_becomes_catalog_error(
        self, catalog: MusicBrainzCatalog, musicbrainz: AsyncMock
    ) -> None:
        musicbrainz.search_releases.side_effect = httpx.ReadTimeout("timed out")

        with pytest.raises(CatalogError):
            await catalog.search_releases("Jazz", "Queen", structured=False)

    async def test_unknown_release_detail(
        self, catalog: MusicBrainzCatalog, musicbrainz: AsyncMock
    ) -> None:
        musicbrainz.lookup_release.return_value = None

        with pytest.raises(CatalogError) as exc_info:
            await catalog.get_release_detail("missing")

        assert exc_info.value.status_code == 404

    async def test_release_detail(
        self, catalog: MusicBrainzCatalog, musicbrainz: AsyncMock
    ) -> None:
        musicbrainz.lookup_release.return_value = RELEASE_DETAIL

        release = await catalog.get_release_detail("rel-1")

        assert len(release.tracks) == 2

    async def test_cover_failure_is_none(
        self, catalog: MusicBrainzCatalog, cover_art: AsyncMock
    ) -> None:
        cover_art.get_front_cover_url.side_effect = httpx.ConnectError("refused")

        assert await catalog.get_cover_ref("rel-1") is None

    async def test_close_closes_both_clients(
        self, catalog: MusicBrainzCatalog, musicbrainz: AsyncMock, cover_art: AsyncMock
    ) -> None:
        await catalog.close()

        musicbrainz.close.assert_awaited_once()
        cover_art.close.assert_awaited_once()
