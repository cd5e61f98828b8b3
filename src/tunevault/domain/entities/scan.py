"""Scan-side domain entities: extracted metadata, progress, track fields."""

from dataclasses import asdict, dataclass, field, replace
from enum import Enum
from typing import Any


# Hey future me, phases run STRICTLY in this order and never go backwards:
# discovering → scanning → cleanup → matching → done. ERROR is only reached when the
# whole run dies (library vanished between enqueue and execution, DB down, ...).
class ScanPhase(str, Enum):
    """Phase of a library scan run."""

    DISCOVERING = "discovering"
    SCANNING = "scanning"
    CLEANUP = "cleanup"
    MATCHING = "matching"
    DONE = "done"
    ERROR = "error"


class UpsertOutcome(str, Enum):
    """Result of reconciling one file against the store."""

    CREATED = "created"
    UPDATED = "updated"


@dataclass
class ExtractedMetadata:
    """Everything the extractor could read from one media file.

    title and artist_name are always set (filename / "Unknown Artist" fallback).
    Everything else is optional - tagless files are normal, not errors.
    """

    title: str
    artist_name: str
    album_title: str | None = None
    track_number: int | None = None
    disc_number: int | None = None
    year: int | None = None
    genre: str | None = None
    duration: float = 0.0
    file_size: int | None = None
    format: str | None = None
    bitrate: int | None = None
    sample_rate: int | None = None
    channels: int | None = None
    musicbrainz_track_id: str | None = None
    musicbrainz_album_id: str | None = None
    musicbrainz_artist_id: str | None = None
    cover_ref: str | None = None


# Listen up, TrackFields is the PURE view of a track row that merge_track_fields() works on.
# No ORM, no session - just values. That keeps the "only overwrite external id when incoming has
# one" rule testable without a database.
@dataclass
class TrackFields:
    """Descriptive and technical fields of a track, detached from the store."""

    title: str
    artist_id: str
    album_id: str | None = None
    track_number: int | None = None
    disc_number: int | None = None
    duration: float = 0.0
    file_size: int | None = None
    format: str | None = None
    bitrate: int | None = None
    sample_rate: int | None = None
    channels: int | None = None
    musicbrainz_id: str | None = None
    missing: bool = False


@dataclass
class TagFields:
    """Fields written back into a media file's tags after a catalog match."""

    title: str | None = None
    artist: str | None = None
    album: str | None = None
    track_number: int | None = None
    disc_number: int | None = None
    year: int | None = None
    genre: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Only the fields that carry a value."""
        return {key: value for key, value in asdict(self).items() if value is not None}


# Hey future me - ScanProgress is EPHEMERAL, it's never stored. The orchestrator mutates one
# instance and hands snapshot() copies to the sink so subscribers can't see later mutations.
@dataclass
class ScanProgress:
    """Live progress of one scan run."""

    library_id: str
    phase: ScanPhase = ScanPhase.DISCOVERING
    total_files: int = 0
    processed_files: int = 0
    current_file: str | None = None
    new_tracks: int = 0
    updated_tracks: int = 0
    removed_tracks: int = 0
    errors: int = 0
    total_albums: int = 0
    matched_albums: int = 0
    auto_linked_albums: int = 0
    message: str | None = None
    error_files: list[str] = field(default_factory=list)

    def snapshot(self) -> "ScanProgress":
        """Independent copy for handing to subscribers."""
        return replace(self, error_files=list(self.error_files))

    def to_dict(self) -> dict[str, Any]:
        """JSON-friendly representation (used as job result)."""
        data = asdict(self)
        data["phase"] = self.phase.value
        return data
