"""Tests for IdentityResolver."""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from tunevault.application.services.identity_resolver import IdentityResolver
from tunevault.domain.exceptions import ValidationException
from tunevault.infrastructure.persistence.models import TrackModel
from tunevault.infrastructure.persistence.repositories import (
    AlbumRepository,
    ArtistRepository,
    TrackRepository,
)


class TestResolveArtist:
    """Test artist resolution order: external id, name, create."""

    async def test_creates_with_sort_name(self, session: AsyncSession) -> None:
        resolver = IdentityResolver(session)

        artist_id = await resolver.resolve_artist("The Beatles")

        artist = await ArtistRepository(session).get_by_id(artist_id)
        assert artist.sort_name == "Beatles, The"
        assert artist.musicbrainz_id is None

    async def test_same_name_resolves_to_same_row(self, session: AsyncSession) -> None:
        resolver = IdentityResolver(session)

        first = await resolver.resolve_artist("Queen")
        second = await resolver.resolve_artist("Queen")

        assert first == second
        assert await ArtistRepository(session).count_by_name("Queen") == 1

    async def test_external_id_beats_name(self, session: AsyncSession) -> None:
        """A tagged id finds its artist even under a different spelling."""
        repo = ArtistRepository(session)
        linked = await repo.add("Björk", "Björk", musicbrainz_id="mb-bjork")
        resolver = IdentityResolver(session)

        assert await resolver.resolve_artist("Bjork", "mb-bjork") == linked.id

    async def test_attaches_external_id_to_name_match(self, session: AsyncSession) -> None:
        resolver = IdentityResolver(session)
        artist_id = await resolver.resolve_artist("Queen")

        again = await resolver.resolve_artist("Queen", "mb-queen")

        artist = await ArtistRepository(session).get_by_id(artist_id)
        assert again == artist_id
        assert artist.musicbrainz_id == "mb-queen"

    async def test_does_not_overwrite_existing_external_id(self, session: AsyncSession) -> None:
        """A name match that is already linked elsewhere isn't re-pointed."""
        repo = ArtistRepository(session)
        existing = await repo.add("Genesis", "Genesis", musicbrainz_id="mb-band")
        resolver = IdentityResolver(session)

        resolved = await resolver.resolve_artist("Genesis", "mb-other")

        assert resolved == existing.id
        assert existing.musicbrainz_id == "mb-band"

    async def test_new_artist_keeps_external_id(self, session: AsyncSession) -> None:
        resolver = IdentityResolver(session)

        artist_id = await resolver.resolve_artist("Queen", "mb-queen")

        assert (await ArtistRepository(session).get_by_musicbrainz_id("mb-queen")).id == artist_id

    async def test_empty_name_rejected(self, session: AsyncSession) -> None:
        with pytest.raises(ValidationException):
            await IdentityResolver(session).resolve_artist("   ")


class TestResolveAlbum:
    """Test album resolution."""

    async def test_create_then_reuse(self, session: AsyncSession) -> None:
        resolver = IdentityResolver(session)
        artist_id = await resolver.resolve_artist("Queen")

        first = await resolver.resolve_album("Jazz", artist_id, year=1978)
        second = await resolver.resolve_album("Jazz", artist_id)

        assert first == second
        assert await AlbumRepository(session).count_all() == 1

    async def test_same_title_different_artist_is_different_album(
        self, session: AsyncSession
    ) -> None:
        resolver = IdentityResolver(session)
        queen = await resolver.resolve_artist("Queen")
        other = await resolver.resolve_artist("Other")

        assert await resolver.resolve_album("Greatest Hits", queen) != await resolver.resolve_album(
            "Greatest Hits", other
        )

    async def test_refresh_only_with_values(self, session: AsyncSession) -> None:
        """Missing values on a later file never blank out known ones."""
        resolver = IdentityResolver(session)
        artist_id = await resolver.resolve_artist("Queen")
        album_id = await resolver.resolve_album(
            "Jazz", artist_id, year=1978, genre="Rock", cover_ref="/api/covers/a.jpg"
        )

        await resolver.resolve_album("Jazz", artist_id, genre="Hard Rock")

        album = await AlbumRepository(session).get_by_id(album_id)
        assert album.year == 1978
        assert album.genre == "Hard Rock"
        assert album.cover_url == "/api/covers/a.jpg"

    async def test_external_id_lookup_first(self, session: AsyncSession) -> None:
        resolver = IdentityResolver(session)
        artist_id = await resolver.resolve_artist("Queen")
        album_id = await resolver.resolve_album("Jazz", artist_id, external_id="mb-jazz")

        renamed = await resolver.resolve_album(
            "Jazz (Remastered)", artist_id, external_id="mb-jazz"
        )

        assert renamed == album_id

    async def test_name_miss_keeps_linked_album(self, session: AsyncSession) -> None:
        """Tag text that no longer matches a linked album doesn't spawn a new one."""
        resolver = IdentityResolver(session)
        artist_id = await resolver.resolve_artist("Queen")
        linked = await AlbumRepository(session).add(
            "A Night at the Opera", artist_id, year=1975, musicbrainz_id="rel-opera"
        )

        resolved = await resolver.resolve_album(
            "A Night At The Opera", artist_id, year=1999, linked_album_id=linked.id
        )

        assert resolved == linked.id
        assert linked.year == 1975
        assert await AlbumRepository(session).count_all() == 1

    async def test_name_hit_wins_over_linked_album(self, session: AsyncSession) -> None:
        """A file retagged onto another known album moves there."""
        resolver = IdentityResolver(session)
        artist_id = await resolver.resolve_artist("Queen")
        linked = await AlbumRepository(session).add(
            "A Night at the Opera", artist_id, musicbrainz_id="rel-opera"
        )
        jazz = await resolver.resolve_album("Jazz", artist_id)

        resolved = await resolver.resolve_album("Jazz", artist_id, linked_album_id=linked.id)

        assert resolved == jazz


class TestLinkedPlacement:
    """Test lookup of where a link filed a track."""

    async def _track_on(self, session: AsyncSession, musicbrainz_id: str | None) -> TrackModel:
        artist = await ArtistRepository(session).add("Queen", "Queen")
        album = await AlbumRepository(session).add(
            "A Night at the Opera", artist.id, musicbrainz_id=musicbrainz_id
        )
        return await TrackRepository(session).add(
            TrackModel(
                title="Death on Two Legs",
                artist_id=artist.id,
                album_id=album.id,
                file_path="/music/Queen/01.wav",
            )
        )

    async def test_linked_album(self, session: AsyncSession) -> None:
        track = await self._track_on(session, "rel-opera")

        placement = await IdentityResolver(session).linked_placement("/music/Queen/01.wav")

        assert placement == (track.artist_id, track.album_id)

    async def test_unlinked_album(self, session: AsyncSession) -> None:
        await self._track_on(session, None)

        assert await IdentityResolver(session).linked_placement("/music/Queen/01.wav") is None

    async def test_unknown_file(self, session: AsyncSession) -> None:
        assert await IdentityResolver(session).linked_placement("/music/new.flac") is None
