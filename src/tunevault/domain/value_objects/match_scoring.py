"""Deterministic confidence scoring of catalog releases against a local album.

Hey future me - this module is PURE. No IO, no logging, no settings. Same inputs, same
number, every time. The auto-linker's whole safety story rests on that, so keep it that way!

Scoring model (weights add up to 100 when every input is available):

| Component   | Weight | Full credit              | Half credit          |
|-------------|--------|--------------------------|----------------------|
| title       | 40     | scaled by similarity     | -                    |
| artist      | 35     | scaled by similarity     | -                    |
| year        | 15     | same year                | off by one year      |
| track count | 10     | same count               | off by at most two   |

A component whose input is missing on either side (no artist credit, no local year,
no release date, no local track count) is dropped from BOTH the score and the maximum.
So a release without a date is judged on title/artist/tracks alone, it isn't punished.

confidence = round(score / max * 100), or 0 if nothing was comparable.
"""

import math
from collections.abc import Sequence

from rapidfuzz.distance import Levenshtein

from tunevault.domain.entities import (
    CatalogRelease,
    LocalAlbumDescriptor,
    MatchCandidate,
    MatchScore,
)
from tunevault.domain.value_objects.artist_normalization import normalize_for_matching

TITLE_WEIGHT = 40
ARTIST_WEIGHT = 35
YEAR_WEIGHT = 15
TRACK_COUNT_WEIGHT = 10

SIMILAR_REASON_THRESHOLD = 80
YEAR_TOLERANCE = 1
TRACK_COUNT_TOLERANCE = 2


def _round_half_up(value: float) -> int:
    # round() is banker's rounding in Python (round(0.5) == 0); scores need 0.5 -> 1
    return int(math.floor(value + 0.5))


def similarity(a: str | None, b: str | None) -> int:
    """Similarity of two strings on a 0-100 scale after normalization.

    Identical normalized strings (including both empty) score 100.

    Examples:
        >>> similarity("Abbey Road", "abbey road!")
        100
        >>> similarity("abc", "abd")
        67
    """
    left = normalize_for_matching(a)
    right = normalize_for_matching(b)

    if left == right:
        return 100

    max_len = max(len(left), len(right))
    if max_len == 0:
        return 100

    distance = Levenshtein.distance(left, right)
    return _round_half_up((1 - distance / max_len) * 100)


def score_candidate(
    candidate: CatalogRelease, local: LocalAlbumDescriptor
) -> MatchScore:
    """Score one catalog release against the local album.

    Args:
        candidate: Release from a catalog search (or detail lookup)
        local: What the library knows about the album

    Returns:
        MatchScore with confidence 0-100 and the reasons that contributed
    """
    reasons: list[str] = []
    score = 0.0
    max_score = 0

    # Title
    title_sim = similarity(candidate.title, local.title)
    score += title_sim / 100 * TITLE_WEIGHT
    max_score += TITLE_WEIGHT
    if title_sim == 100:
        reasons.append("Exact title match")
    elif title_sim >= SIMILAR_REASON_THRESHOLD:
        reasons.append(f"Title similar ({title_sim}%)")

    # Artist credit
    if candidate.artist_credit:
        artist_sim = similarity(candidate.artist_credit, local.artist_name)
        score += artist_sim / 100 * ARTIST_WEIGHT
        max_score += ARTIST_WEIGHT
        if artist_sim == 100:
            reasons.append("Exact artist match")
        elif artist_sim >= SIMILAR_REASON_THRESHOLD:
            reasons.append(f"Artist similar ({artist_sim}%)")

    # Year
    release_year = candidate.year
    if local.year and release_year is not None:
        max_score += YEAR_WEIGHT
        if release_year == local.year:
            score += YEAR_WEIGHT
            reasons.append("Year matches")
        elif abs(release_year - local.year) <= YEAR_TOLERANCE:
            score += YEAR_WEIGHT * 0.5
            reasons.append(f"Year close ({release_year} vs {local.year})")

    # Track count
    if local.track_count and local.track_count > 0:
        catalog_tracks = candidate.track_count
        max_score += TRACK_COUNT_WEIGHT
        if catalog_tracks == local.track_count:
            score += TRACK_COUNT_WEIGHT
            reasons.append("Track count matches")
        elif (
            catalog_tracks > 0
            and abs(catalog_tracks - local.track_count) <= TRACK_COUNT_TOLERANCE
        ):
            score += TRACK_COUNT_WEIGHT * 0.5
            reasons.append(
                f"Track count close ({catalog_tracks} vs {local.track_count})"
            )

    confidence = _round_half_up(score / max_score * 100) if max_score > 0 else 0
    return MatchScore(confidence=confidence, reasons=reasons)


# Hey future me - sorted() is STABLE, so candidates with equal confidence keep the order the
# catalog returned them in. That's the documented tie-break, don't "improve" it with a secondary key.
def rank_candidates(
    candidates: Sequence[CatalogRelease],
    local: LocalAlbumDescriptor,
    limit: int | None = None,
) -> list[MatchCandidate]:
    """Score and sort candidates by descending confidence.

    Args:
        candidates: Releases in catalog order
        local: Local album descriptor
        limit: Keep at most this many (None keeps all)

    Returns:
        Scored candidates, best first
    """
    scored = []
    for release in candidates:
        result = score_candidate(release, local)
        scored.append(
            MatchCandidate(
                release=release,
                confidence=result.confidence,
                reasons=result.reasons,
            )
        )

    ranked = sorted(scored, key=lambda c: c.confidence, reverse=True)
    if limit is not None:
        ranked = ranked[:limit]
    return ranked


__all__ = [
    "ARTIST_WEIGHT",
    "TITLE_WEIGHT",
    "TRACK_COUNT_WEIGHT",
    "YEAR_WEIGHT",
    "rank_candidates",
    "score_candidate",
    "similarity",
]
