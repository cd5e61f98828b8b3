"""Merge rule for re-scanned tracks."""

from dataclasses import replace

from tunevault.domain.entities import TrackFields


# Hey future me, this is THE rule for what a re-scan may change on an existing track:
# - descriptive + technical fields + album/artist refs: file wins, always overwritten
# - musicbrainz_id: only overwritten when the file actually carries one. A file without an id
#   must NEVER wipe the id the auto-linker wrote earlier!
# - missing: always cleared - we just saw the file, so it isn't missing.
def merge_track_fields(existing: TrackFields, incoming: TrackFields) -> TrackFields:
    """Combine stored track fields with freshly extracted ones.

    Args:
        existing: Fields currently stored for the track
        incoming: Fields derived from the file in this scan pass

    Returns:
        New TrackFields to persist (inputs are not modified)
    """
    return replace(
        incoming,
        musicbrainz_id=incoming.musicbrainz_id or existing.musicbrainz_id,
        missing=False,
    )


__all__ = ["merge_track_fields"]
