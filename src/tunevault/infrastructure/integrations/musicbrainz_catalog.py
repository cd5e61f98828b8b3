"""MusicBrainz-backed implementation of the metadata catalog port.

Hey future me - this is the ONE place where MusicBrainz JSON turns into domain objects
and httpx errors turn into CatalogError. Services never see a dict from MusicBrainz and
never catch httpx exceptions. Keep it that way!
"""

import logging
from typing import Any

import httpx

from tunevault.domain.entities import CatalogRelease, CatalogTrack
from tunevault.domain.exceptions import CatalogError
from tunevault.domain.ports import IMetadataCatalog

from .coverartarchive_client import CoverArtArchiveClient
from .musicbrainz_client import MusicBrainzClient

logger = logging.getLogger(__name__)


def escape_quoted(value: str) -> str:
    """Escape a value for use inside a double-quoted Lucene phrase.

    Inside "..." only backslash and double quote need escaping.
    """
    return value.replace("\\", "\\\\").replace('"', '\\"')


def build_release_query(title: str, artist: str, structured: bool = True) -> str:
    """Build a release search query.

    Examples:
        >>> build_release_query("Abbey Road", "The Beatles")
        'release:"Abbey Road" AND artist:"The Beatles"'
        >>> build_release_query("Abbey Road", "The Beatles", structured=False)
        'Abbey Road The Beatles'
    """
    if not structured:
        return f"{title} {artist}".strip()
    return f'release:"{escape_quoted(title)}" AND artist:"{escape_quoted(artist)}"'


def credited_artist_name(data: dict[str, Any]) -> str:
    """Join an artist-credit list into one display string ("A feat. B")."""
    credits = data.get("artist-credit") or []
    return "".join(
        (credit.get("name") or credit.get("artist", {}).get("name", ""))
        + (credit.get("joinphrase") or "")
        for credit in credits
    )


def _total_track_count(data: dict[str, Any]) -> int:
    media = data.get("media") or []
    if media:
        return sum(int(medium.get("track-count") or 0) for medium in media)
    return int(data.get("track-count") or 0)


def _top_tag(data: dict[str, Any]) -> str | None:
    tags = data.get("tags") or []
    if not tags:
        return None
    best = max(tags, key=lambda tag: tag.get("count") or 0)
    return best.get("name") or None


def _parse_tracks(data: dict[str, Any]) -> list[CatalogTrack]:
    tracks: list[CatalogTrack] = []
    for medium in data.get("media") or []:
        disc_number = int(medium.get("position") or 1)
        for track in medium.get("tracks") or []:
            recording = track.get("recording") or {}
            recording_id = recording.get("id")
            if not recording_id:
                continue
            tracks.append(
                CatalogTrack(
                    recording_id=recording_id,
                    title=track.get("title") or recording.get("title", ""),
                    disc_number=disc_number,
                    track_number=int(track.get("position") or 0),
                )
            )
    return tracks


def parse_release(data: dict[str, Any], with_details: bool = False) -> CatalogRelease:
    """Convert a MusicBrainz release dict into a CatalogRelease.

    Args:
        data: Release JSON (search hit or lookup response)
        with_details: Also parse label, tags, media and tracklist
    """
    release = CatalogRelease(
        id=data["id"],
        title=data.get("title", ""),
        artist_credit=credited_artist_name(data),
        date=data.get("date") or None,
        track_count=_total_track_count(data),
        country=data.get("country") or None,
    )
    if not with_details:
        return release

    credits = data.get("artist-credit") or []
    if credits:
        release.artist_id = (credits[0].get("artist") or {}).get("id")

    label_info = data.get("label-info") or []
    if label_info:
        release.label = ((label_info[0] or {}).get("label") or {}).get("name")

    release.genre = _top_tag(data)
    media = data.get("media") or []
    release.disc_count = len(media) or 1
    release.tracks = _parse_tracks(data)
    return release


class MusicBrainzCatalog(IMetadataCatalog):
    """Metadata catalog backed by MusicBrainz and the Cover Art Archive."""

    def __init__(
        self,
        musicbrainz: MusicBrainzClient,
        cover_art: CoverArtArchiveClient,
    ) -> None:
        """Initialize the catalog.

        Args:
            musicbrainz: MusicBrainz API client
            cover_art: Cover Art Archive client
        """
        self.musicbrainz = musicbrainz
        self.cover_art = cover_art

    async def search_releases(
        self, title: str, artist: str, limit: int = 10, structured: bool = True
    ) -> list[CatalogRelease]:
        """Search releases by title and artist."""
        query = build_release_query(title, artist, structured=structured)
        try:
            results = await self.musicbrainz.search_releases(query, limit=limit)
        except httpx.HTTPStatusError as e:
            raise CatalogError(
                f"MusicBrainz search failed: {e}", status_code=e.response.status_code
            ) from e
        except httpx.HTTPError as e:
            raise CatalogError(f"MusicBrainz search failed: {e}") from e

        return [parse_release(item) for item in results if item.get("id")]

    async def get_release_detail(self, release_id: str) -> CatalogRelease:
        """Full release detail including tracklist."""
        try:
            data = await self.musicbrainz.lookup_release(release_id)
        except httpx.HTTPStatusError as e:
            raise CatalogError(
                f"MusicBrainz lookup of release {release_id} failed: {e}",
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            raise CatalogError(
                f"MusicBrainz lookup of release {release_id} failed: {e}"
            ) from e

        if data is None:
            raise CatalogError(f"Release {release_id} not found", status_code=404)
        return parse_release(data, with_details=True)

    # Listen up, covers are nice-to-have. A flaky Cover Art Archive must never cost us a link,
    # so failures here are logged and answered with None instead of raising.
    async def get_cover_ref(self, release_id: str) -> str | None:
        """URL of the release's front cover, or None."""
        try:
            return await self.cover_art.get_front_cover_url(release_id)
        except httpx.HTTPError as e:
            logger.warning(f"Cover Art Archive lookup failed for release {release_id}: {e}")
            return None

    async def close(self) -> None:
        """Close both HTTP clients."""
        await self.musicbrainz.close()
        await self.cover_art.close()
