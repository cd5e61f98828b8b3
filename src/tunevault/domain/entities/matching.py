"""Catalog matching entities: releases, candidates, auto-link results."""

from dataclasses import dataclass, field


@dataclass
class LocalAlbumDescriptor:
    """What we know about a local album when asking the catalog about it."""

    title: str
    artist_name: str
    year: int | None = None
    track_count: int | None = None


@dataclass
class CatalogTrack:
    """One track of a catalog release, positioned by disc and track number."""

    recording_id: str
    title: str
    disc_number: int
    track_number: int


# Hey future me, CatalogRelease serves BOTH search hits and full detail lookups. Search results
# only fill the top half (id/title/artist_credit/date/track_count). get_detail() fills the rest
# (artist_id, label, country, genre, disc_count, tracks). Don't expect tracks on search hits!
@dataclass
class CatalogRelease:
    """A release as described by the external metadata catalog."""

    id: str
    title: str
    artist_credit: str = ""
    date: str | None = None
    track_count: int = 0
    artist_id: str | None = None
    label: str | None = None
    country: str | None = None
    genre: str | None = None
    disc_count: int = 1
    tracks: list[CatalogTrack] = field(default_factory=list)

    @property
    def year(self) -> int | None:
        """Year parsed from the first four characters of the release date."""
        if not self.date or len(self.date) < 4:
            return None
        try:
            return int(self.date[:4])
        except ValueError:
            return None


@dataclass
class MatchScore:
    """Confidence (0-100) plus the human-readable reasons behind it."""

    confidence: int
    reasons: list[str] = field(default_factory=list)


@dataclass
class MatchCandidate:
    """A scored catalog release."""

    release: CatalogRelease
    confidence: int
    reasons: list[str] = field(default_factory=list)


@dataclass
class MatchResult:
    """Ranked candidates for one local album."""

    query: LocalAlbumDescriptor
    candidates: list[MatchCandidate] = field(default_factory=list)
    suggested: MatchCandidate | None = None

    @property
    def best(self) -> MatchCandidate | None:
        """Top-ranked candidate regardless of threshold."""
        return self.candidates[0] if self.candidates else None


@dataclass
class AutoLinkResult:
    """Outcome of one auto-link attempt.

    linked=False is a normal answer, not a failure - reason says why.
    confidence is carried whenever a candidate was scored, even below threshold.
    """

    album_id: str
    linked: bool
    confidence: int | None = None
    external_id: str | None = None
    reason: str | None = None
    matched_tracks: int = 0
    unmatched_tracks: int = 0
