"""Domain entities."""

from tunevault.domain.entities.matching import (
    AutoLinkResult,
    CatalogRelease,
    CatalogTrack,
    LocalAlbumDescriptor,
    MatchCandidate,
    MatchResult,
    MatchScore,
)
from tunevault.domain.entities.scan import (
    ExtractedMetadata,
    ScanPhase,
    ScanProgress,
    TagFields,
    TrackFields,
    UpsertOutcome,
)

__all__ = [
    "AutoLinkResult",
    "CatalogRelease",
    "CatalogTrack",
    "ExtractedMetadata",
    "LocalAlbumDescriptor",
    "MatchCandidate",
    "MatchResult",
    "MatchScore",
    "ScanPhase",
    "ScanProgress",
    "TagFields",
    "TrackFields",
    "UpsertOutcome",
]
