"""Auto-linker - attaches local albums to catalog releases when the match is near-certain.

Hey future me - this is the ONLY code path that writes catalog data over what the files
said. That's why it's so defensive about WHEN it writes:

1. Album must exist (EntityNotFoundException otherwise) and must not be linked yet.
   Already-linked albums are never re-pointed at another release.
2. Best candidate must reach auto_link_threshold (98 by default). Below that: nothing is
   written, the result just carries the observed confidence.
3. If another album already holds the release id → "Conflict: ..." and nothing is written.
4. Only then: album row first, then track rows, in one flush. A uniqueness violation at
   flush time is rolled back and reported as a conflict, never raised.
5. The link is COMMITTED before any file is touched. Cover download and tag rewriting
   come after and are best effort, so nothing they do (or raise) can undo the link.
   It also means no cover files get written for a link that turned into a conflict.
"""

import logging
from pathlib import Path

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tunevault.config import MatchingSettings
from tunevault.domain.entities import (
    AutoLinkResult,
    CatalogRelease,
    CatalogTrack,
    LocalAlbumDescriptor,
    TagFields,
)
from tunevault.domain.exceptions import EntityNotFoundException, TagWriteError
from tunevault.domain.ports import ICoverStore, IMetadataCatalog, ITagWriter
from tunevault.infrastructure.observability.log_messages import LogMessages
from tunevault.infrastructure.persistence.models import AlbumModel, TrackModel
from tunevault.infrastructure.persistence.repositories import (
    AlbumRepository,
    ArtistRepository,
    TrackRepository,
)

from .album_matcher import AlbumMatcher
from .identity_resolver import IdentityResolver

logger = logging.getLogger(__name__)

REASON_ALREADY_LINKED = "Already linked"
REASON_NO_CANDIDATES = "No candidates found"


def pair_catalog_tracks(
    catalog_tracks: list[CatalogTrack], local_tracks: list[TrackModel]
) -> tuple[list[tuple[CatalogTrack, TrackModel]], int]:
    """Pair catalog tracks with local tracks by position.

    Exact (disc, track) first. When every local track sits on disc 1 (or has no disc
    number), the track number alone is enough - single-disc rips often carry no disc tag
    while the catalog says disc 1. Each local track is used at most once.

    Returns:
        (matched pairs, number of catalog tracks without a local counterpart)
    """
    by_position: dict[tuple[int | None, int | None], TrackModel] = {}
    by_number: dict[int | None, TrackModel] = {}
    for track in local_tracks:
        by_position.setdefault((track.disc_number, track.track_number), track)
        by_number.setdefault(track.track_number, track)

    single_disc = all(track.disc_number in (1, None) for track in local_tracks)

    pairs: list[tuple[CatalogTrack, TrackModel]] = []
    used: set[str] = set()
    unmatched = 0
    for catalog_track in catalog_tracks:
        local = by_position.get((catalog_track.disc_number, catalog_track.track_number))
        if local is None and single_disc:
            local = by_number.get(catalog_track.track_number)

        if local is None or local.id in used:
            unmatched += 1
            continue

        used.add(local.id)
        pairs.append((catalog_track, local))

    return pairs, unmatched


class AutoLinker:
    """Links unlinked albums to catalog releases above the auto-link threshold."""

    def __init__(
        self,
        session: AsyncSession,
        catalog: IMetadataCatalog,
        cover_store: ICoverStore,
        tag_writer: ITagWriter,
        settings: MatchingSettings,
        matcher: AlbumMatcher | None = None,
    ) -> None:
        """Initialize auto-linker.

        Args:
            session: Database session
            catalog: Metadata catalog port
            cover_store: Cover persistence port
            tag_writer: Tag rewriter port
            settings: Matching settings (auto-link threshold)
            matcher: Album matcher (built from catalog + settings when omitted)
        """
        self.session = session
        self.catalog = catalog
        self.cover_store = cover_store
        self.tag_writer = tag_writer
        self.settings = settings
        self.matcher = matcher or AlbumMatcher(catalog, settings)
        self.album_repo = AlbumRepository(session)
        self.artist_repo = ArtistRepository(session)
        self.track_repo = TrackRepository(session)
        self.identity = IdentityResolver(session)

    async def auto_link_album(self, album_id: str) -> AutoLinkResult:
        """Try to link one album to its catalog release.

        Args:
            album_id: Album id

        Returns:
            AutoLinkResult - linked=False is a normal outcome, reason says why

        Raises:
            EntityNotFoundException: If the album doesn't exist
            CatalogError: If the catalog can't be queried
        """
        album = await self.album_repo.get_by_id(album_id)
        if album is None:
            raise EntityNotFoundException("Album", album_id)

        if album.musicbrainz_id:
            return AutoLinkResult(album_id=album_id, linked=False, reason=REASON_ALREADY_LINKED)

        local_tracks = await self.track_repo.list_by_album(album_id)
        local = LocalAlbumDescriptor(
            title=album.title,
            artist_name=album.artist.name,
            year=album.year,
            track_count=len(local_tracks),
        )

        match = await self.matcher.match_album(local)
        best = match.best
        if best is None:
            return AutoLinkResult(album_id=album_id, linked=False, reason=REASON_NO_CANDIDATES)

        threshold = self.settings.auto_link_threshold
        if best.confidence < threshold:
            return AutoLinkResult(
                album_id=album_id,
                linked=False,
                confidence=best.confidence,
                reason=(
                    f"Best match confidence {best.confidence}% below threshold {threshold}%"
                ),
            )

        release_id = best.release.id
        owner = await self.album_repo.get_by_musicbrainz_id(release_id)
        if owner is not None and owner.id != album_id:
            return self._conflict(
                album_id,
                best.confidence,
                release_id,
                f"release {release_id} is already linked to album {owner.id}",
            )

        logger.info(
            f"Auto-linking album '{album.title}' ({album_id}) to MusicBrainz release "
            f"{release_id} (confidence: {best.confidence}%)"
        )

        detail = await self.catalog.get_release_detail(release_id)

        artist_name = detail.artist_credit or album.artist.name
        try:
            artist_id = await self._resolve_credited_artist(album, artist_name, detail)
            self._apply_release(album, artist_id, detail)
            pairs, unmatched = pair_catalog_tracks(detail.tracks, local_tracks)
            await self._apply_tracks(pairs, artist_id)
            await self.session.flush()
        except IntegrityError as e:
            await self.session.rollback()
            return self._conflict(album_id, best.confidence, release_id, str(e.orig))
        await self.session.commit()

        cover_ref = await self.catalog.get_cover_ref(release_id)
        if cover_ref:
            local_cover = await self.cover_store.download(cover_ref, album_id)
            if local_cover is None:
                logger.warning(f"Auto-link: could not download cover art for album {album_id}")
            else:
                album.cover_url = local_cover

        logger.info(
            LogMessages.album_auto_linked(
                album_title=detail.title,
                release_id=release_id,
                confidence=best.confidence,
                matched_tracks=len(pairs),
                unmatched_tracks=unmatched,
            )
        )

        await self._rewrite_tags(pairs, artist_name, detail)

        return AutoLinkResult(
            album_id=album_id,
            linked=True,
            confidence=best.confidence,
            external_id=release_id,
            matched_tracks=len(pairs),
            unmatched_tracks=unmatched,
        )

    def _conflict(
        self, album_id: str, confidence: int, release_id: str, detail: str
    ) -> AutoLinkResult:
        logger.warning(f"Auto-link conflict for album {album_id}: {detail}")
        return AutoLinkResult(
            album_id=album_id,
            linked=False,
            confidence=confidence,
            external_id=release_id,
            reason=f"Conflict: {detail}",
        )

    # Yo, the credited artist keeps the album's current artist row when the names agree, so a
    # library with two same-named artists doesn't suddenly move the album to the older one.
    # The catalog artist id is only attached when no other artist row holds it already.
    async def _resolve_credited_artist(
        self, album: AlbumModel, artist_name: str, detail: CatalogRelease
    ) -> str:
        if artist_name != album.artist.name:
            return await self.identity.resolve_artist(artist_name, detail.artist_id)

        artist = album.artist
        if detail.artist_id and artist.musicbrainz_id is None:
            holder = await self.artist_repo.get_by_musicbrainz_id(detail.artist_id)
            if holder is None:
                artist.musicbrainz_id = detail.artist_id
            elif holder.id != artist.id:
                logger.info(
                    f"MusicBrainz artist {detail.artist_id} already belongs to artist "
                    f"{holder.id}, leaving '{artist.name}' unlinked"
                )
        return artist.id

    @staticmethod
    def _apply_release(
        album: AlbumModel,
        artist_id: str,
        detail: CatalogRelease,
    ) -> None:
        album.title = detail.title or album.title
        album.artist_id = artist_id
        album.year = detail.year
        album.genre = detail.genre
        album.label = detail.label
        album.country = detail.country
        album.total_discs = detail.disc_count
        album.total_tracks = detail.track_count or len(detail.tracks) or None
        album.musicbrainz_id = detail.id

    async def _apply_tracks(
        self, pairs: list[tuple[CatalogTrack, TrackModel]], artist_id: str
    ) -> None:
        assigned: set[str] = set()
        for catalog_track, track in pairs:
            track.title = catalog_track.title or track.title
            track.artist_id = artist_id

            # Track ids are write-once: a track that already has one keeps it
            recording_id = catalog_track.recording_id
            if track.musicbrainz_id is not None or recording_id in assigned:
                continue
            holder = await self.track_repo.get_by_musicbrainz_id(recording_id)
            if holder is None or holder.id == track.id:
                track.musicbrainz_id = recording_id
                assigned.add(recording_id)

    async def _rewrite_tags(
        self,
        pairs: list[tuple[CatalogTrack, TrackModel]],
        artist_name: str,
        detail: CatalogRelease,
    ) -> None:
        for catalog_track, track in pairs:
            fields = TagFields(
                title=catalog_track.title,
                artist=artist_name,
                album=detail.title,
                track_number=catalog_track.track_number,
                disc_number=catalog_track.disc_number,
                year=detail.year,
                genre=detail.genre,
            )
            try:
                await self.tag_writer.write(Path(track.file_path), fields)
            except TagWriteError as e:
                logger.warning(LogMessages.tag_write_failed(track.file_path, e.reason))
            except Exception as e:
                # Other ITagWriter implementations may not translate their errors
                logger.warning(
                    LogMessages.tag_write_failed(track.file_path, f"{type(e).__name__}: {e}"),
                    exc_info=True,
                )

    async def refresh_cover(self, album_id: str) -> bool:
        """Download a cover for a linked album that has none.

        Never touches the album's external id.

        Returns:
            True if a cover was stored
        """
        album = await self.album_repo.get_by_id(album_id)
        if album is None:
            raise EntityNotFoundException("Album", album_id)

        if not album.musicbrainz_id or album.cover_url:
            return False

        cover_ref = await self.catalog.get_cover_ref(album.musicbrainz_id)
        if not cover_ref:
            return False

        local_cover = await self.cover_store.download(cover_ref, album_id)
        if local_cover is None:
            return False

        album.cover_url = local_cover
        logger.info(f"Refreshed cover art for album '{album.title}' ({album_id})")
        return True
