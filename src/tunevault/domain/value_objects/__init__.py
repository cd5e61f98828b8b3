"""Domain value objects and pure domain functions."""

from tunevault.domain.value_objects.artist_normalization import (
    build_sort_name,
    normalize_for_matching,
)
from tunevault.domain.value_objects.match_scoring import (
    rank_candidates,
    score_candidate,
    similarity,
)
from tunevault.domain.value_objects.media_files import (
    AUDIO_EXTENSIONS,
    is_audio_file,
    is_under_root,
)
from tunevault.domain.value_objects.track_merge import merge_track_fields

__all__ = [
    "AUDIO_EXTENSIONS",
    "build_sort_name",
    "is_audio_file",
    "is_under_root",
    "merge_track_fields",
    "normalize_for_matching",
    "rank_candidates",
    "score_candidate",
    "similarity",
]
