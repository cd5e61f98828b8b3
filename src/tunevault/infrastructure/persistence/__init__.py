"""Infrastructure persistence layer."""

from .database import Database
from .models import AlbumModel, ArtistModel, Base, LibraryModel, TrackModel
from .repositories import (
    AlbumRepository,
    ArtistRepository,
    LibraryRepository,
    TrackRepository,
)

__all__ = [
    "AlbumModel",
    "AlbumRepository",
    "ArtistModel",
    "ArtistRepository",
    "Base",
    "Database",
    "LibraryModel",
    "LibraryRepository",
    "TrackModel",
    "TrackRepository",
]
