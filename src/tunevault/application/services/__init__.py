"""Application services."""

from .album_matcher import AlbumMatcher
from .auto_linker import AutoLinker, pair_catalog_tracks
from .cover_service import CoverService
from .identity_resolver import IdentityResolver
from .library_scanner_service import LibraryScannerService, discover_audio_files
from .metadata_extractor import MutagenMetadataExtractor
from .metadata_tagger import MutagenTagWriter
from .missing_file_detector import MissingFileDetector
from .scan_events import ScanEventBus
from .track_reconciler import TrackReconciler

__all__ = [
    "AlbumMatcher",
    "AutoLinker",
    "CoverService",
    "IdentityResolver",
    "LibraryScannerService",
    "MissingFileDetector",
    "MutagenMetadataExtractor",
    "MutagenTagWriter",
    "ScanEventBus",
    "TrackReconciler",
    "discover_audio_files",
    "pair_catalog_tracks",
]
