"""Domain ports (interfaces) for dependency inversion.

Hey future me - every collaborator the sync engine talks to is behind one of these.
Services only import the ABC; the concrete mutagen / httpx / Pillow implementations
live in application/services and infrastructure/integrations. Tests swap in fakes.
"""

from abc import ABC, abstractmethod
from pathlib import Path

from tunevault.domain.entities import (
    CatalogRelease,
    ExtractedMetadata,
    ScanProgress,
    TagFields,
)


class IMetadataExtractor(ABC):
    """Reads tags and technical audio properties from a media file."""

    # Yo, this is SYNC on purpose - mutagen is blocking file IO. The orchestrator pushes each
    # call into a thread pool executor so the event loop stays free.
    @abstractmethod
    def extract(self, file_path: Path) -> ExtractedMetadata:
        """Extract metadata from a file.

        Never raises for unsupported or tagless files (falls back to filename
        defaults). Raises ExtractionError only when the file can't be read at all.
        """
        pass


class IMetadataCatalog(ABC):
    """External canonical metadata catalog (MusicBrainz + Cover Art Archive)."""

    @abstractmethod
    async def search_releases(
        self, title: str, artist: str, limit: int = 10, structured: bool = True
    ) -> list[CatalogRelease]:
        """Search releases by title and artist.

        structured=True uses field-qualified query syntax, False a plain free-text query.
        Raises CatalogError on network/protocol failure.
        """
        pass

    @abstractmethod
    async def get_release_detail(self, release_id: str) -> CatalogRelease:
        """Full release detail including tracklist.

        Raises CatalogError on failure or when the release doesn't exist.
        """
        pass

    @abstractmethod
    async def get_cover_ref(self, release_id: str) -> str | None:
        """URL of the release's front cover, or None when there is none."""
        pass


class ICoverStore(ABC):
    """Downloads and persists album covers locally."""

    @abstractmethod
    async def download(self, cover_ref: str, album_id: str) -> str | None:
        """Fetch cover_ref and store it for album_id.

        Returns the local reference or None on any failure (best effort).
        """
        pass


class ITagWriter(ABC):
    """Rewrites tags inside media files."""

    @abstractmethod
    async def write(self, file_path: Path, fields: TagFields) -> None:
        """Write fields into the file. Raises TagWriteError on failure."""
        pass


class IProgressSink(ABC):
    """Receives scan progress. Fire-and-forget: must never raise into the scanner."""

    @abstractmethod
    def emit(self, progress: ScanProgress) -> None:
        """Publish a progress snapshot."""
        pass

    @abstractmethod
    def emit_error(self, error: Exception, file_path: str | None = None) -> None:
        """Publish a per-item error."""
        pass


__all__ = [
    "ICoverStore",
    "IMetadataCatalog",
    "IMetadataExtractor",
    "IProgressSink",
    "ITagWriter",
]
