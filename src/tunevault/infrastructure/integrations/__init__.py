"""External catalog integrations (MusicBrainz, Cover Art Archive)."""

from .coverartarchive_client import CoverArtArchiveClient
from .musicbrainz_catalog import MusicBrainzCatalog
from .musicbrainz_client import MusicBrainzClient

__all__ = ["CoverArtArchiveClient", "MusicBrainzCatalog", "MusicBrainzClient"]
