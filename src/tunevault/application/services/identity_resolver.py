"""Identity resolution for artists and albums found during a scan."""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from tunevault.domain.exceptions import ValidationException
from tunevault.domain.value_objects import build_sort_name
from tunevault.infrastructure.persistence.repositories import (
    AlbumRepository,
    ArtistRepository,
    TrackRepository,
)

logger = logging.getLogger(__name__)


class IdentityResolver:
    """Finds or creates Artist and Album rows for extracted metadata.

    Hey future me - lookup order is ALWAYS external id first, then exact name, then create.
    Name matching is exact (no case folding, no fuzziness): "Beatles" and "The Beatles" are
    two artists here, the catalog link is what merges identities later. Scans run file by
    file in one coroutine, so "not found → create" can't race with itself within a run.
    """

    def __init__(self, session: AsyncSession) -> None:
        """Initialize resolver.

        Args:
            session: Database session
        """
        self.session = session
        self.artist_repo = ArtistRepository(session)
        self.album_repo = AlbumRepository(session)
        self.track_repo = TrackRepository(session)

    async def resolve_artist(self, name: str, external_id: str | None = None) -> str:
        """Resolve an artist to its row id, creating it when unknown.

        Args:
            name: Artist name as tagged
            external_id: MusicBrainz artist id from the file, if any

        Returns:
            Artist id

        Raises:
            ValidationException: If name is empty
        """
        if not name or not name.strip():
            raise ValidationException("Artist name must not be empty")

        if external_id:
            by_external = await self.artist_repo.get_by_musicbrainz_id(external_id)
            if by_external is not None:
                return by_external.id

        by_name = await self.artist_repo.get_by_name(name)
        if by_name is not None:
            # The external id lookup above came back empty, so nobody else owns it
            if external_id and by_name.musicbrainz_id is None:
                by_name.musicbrainz_id = external_id
                logger.debug(f"Attached MusicBrainz id {external_id} to artist '{name}'")
            return by_name.id

        artist = await self.artist_repo.add(
            name=name,
            sort_name=build_sort_name(name),
            musicbrainz_id=external_id,
        )
        logger.debug(f"Created artist '{name}' ({artist.id})")
        return artist.id
    async def linked_placement(self, file_path: str) -> tuple[str, str] | None:
        """Artist and album a file was filed under by a catalog link.

        Args:
            file_path: Absolute file path of an already stored track

        Returns:
            (artist_id, album_id) when the file's track sits on a linked album, else None
        """
        track = await self.track_repo.get_by_file_path(file_path)
        if track is None or track.album_id is None:
            return None

        album = await self.album_repo.get_by_id(track.album_id)
        if album is None or not album.musicbrainz_id:
            return None
        return track.artist_id, album.id

    # Listen up, an existing album only gets year/genre/cover REFRESHED when the file supplies a
    # value. A track without a year must not blank out the year its siblings provided.
    async def resolve_album(
        self,
        title: str,
        artist_id: str,
        year: int | None = None,
        genre: str | None = None,
        cover_ref: str | None = None,
        external_id: str | None = None,
        linked_album_id: str | None = None,
    ) -> str:
        """Resolve an album to its row id, creating it when unknown.

        Args:
            title: Album title as tagged
            artist_id: Resolved artist id
            year: Release year from the file
            genre: Genre from the file
            cover_ref: Local cover reference from the extractor
            external_id: MusicBrainz release id from the file, if any
            linked_album_id: Linked album the file already belongs to (see linked_placement)

        Returns:
            Album id
        """
        album = None
        if external_id:
            album = await self.album_repo.get_by_musicbrainz_id(external_id)
        if album is None:
            album = await self.album_repo.get_by_title_and_artist(title, artist_id)

        # Hey future me - a link rewrites the album title and artist from the catalog. When the
        # file's tags weren't rewritten too (WAV/AIFF/AAC, read-only files) the old tag text no
        # longer finds the album. Creating a new one would orphan the link and then collide with
        # it on the release id, so the file stays where the link put it. Catalog-owned fields
        # aren't refreshed from tags here.
        if album is None and linked_album_id is not None:
            logger.debug(
                f"Album '{title}' not found by name, keeping file on linked album {linked_album_id}"
            )
            return linked_album_id

        if album is not None:
            if year is not None:
                album.year = year
            if genre is not None:
                album.genre = genre
            if cover_ref is not None:
                album.cover_url = cover_ref
            return album.id

        album = await self.album_repo.add(
            title=title,
            artist_id=artist_id,
            year=year,
            genre=genre,
            cover_url=cover_ref,
            musicbrainz_id=external_id,
        )
        logger.debug(f"Created album '{title}' ({album.id})")
        return album.id
