"""Track reconciliation: one file path, one Track row."""

import logging
from dataclasses import asdict, fields

from sqlalchemy.ext.asyncio import AsyncSession

from tunevault.domain.entities import ExtractedMetadata, TrackFields, UpsertOutcome
from tunevault.domain.value_objects import merge_track_fields
from tunevault.infrastructure.persistence.models import TrackModel
from tunevault.infrastructure.persistence.repositories import TrackRepository

logger = logging.getLogger(__name__)

_TRACK_FIELD_NAMES = tuple(f.name for f in fields(TrackFields))


def track_fields_from_metadata(
    metadata: ExtractedMetadata, artist_id: str, album_id: str | None
) -> TrackFields:
    """Map extractor output onto the stored track fields."""
    return TrackFields(
        title=metadata.title,
        artist_id=artist_id,
        album_id=album_id,
        track_number=metadata.track_number,
        disc_number=metadata.disc_number,
        duration=metadata.duration,
        file_size=metadata.file_size,
        format=metadata.format,
        bitrate=metadata.bitrate,
        sample_rate=metadata.sample_rate,
        channels=metadata.channels,
        musicbrainz_id=metadata.musicbrainz_track_id,
    )


def track_fields_from_model(model: TrackModel) -> TrackFields:
    """Detach the mergeable fields of a stored track."""
    return TrackFields(**{name: getattr(model, name) for name in _TRACK_FIELD_NAMES})


class TrackReconciler:
    """Creates or refreshes the Track row of a scanned file."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize reconciler.

        Args:
            session: Database session
        """
        self.session = session
        self.track_repo = TrackRepository(session)

    async def upsert_track(
        self,
        file_path: str,
        metadata: ExtractedMetadata,
        artist_id: str,
        album_id: str | None,
    ) -> UpsertOutcome:
        """Upsert the track for file_path.

        Args:
            file_path: Absolute file path (the reconciliation key)
            metadata: Freshly extracted metadata
            artist_id: Resolved artist id
            album_id: Resolved album id, None for album-less files

        Returns:
            CREATED for a new row, UPDATED for an existing one
        """
        incoming = track_fields_from_metadata(metadata, artist_id, album_id)

        # Hey future me - the recording id column is UNIQUE. Two files tagged with the same
        # recording (a duplicate rip, a compilation copy) would blow up the flush, so the
        # second one simply doesn't get the id. Skip-and-log, never crash the file.
        if incoming.musicbrainz_id:
            owner = await self.track_repo.get_by_musicbrainz_id(incoming.musicbrainz_id)
            if owner is not None and owner.file_path != file_path:
                logger.warning(
                    f"MusicBrainz recording {incoming.musicbrainz_id} already belongs to "
                    f"{owner.file_path}, not assigning it to {file_path}"
                )
                incoming.musicbrainz_id = None

        existing = await self.track_repo.get_by_file_path(file_path)
        if existing is not None:
            merged = merge_track_fields(track_fields_from_model(existing), incoming)
            for name, value in asdict(merged).items():
                setattr(existing, name, value)
            return UpsertOutcome.UPDATED

        await self.track_repo.add(TrackModel(file_path=file_path, **asdict(incoming)))
        return UpsertOutcome.CREATED
