"""Media file classification and library-root path helpers."""

import os
from pathlib import Path

# Supported audio file extensions (lowercase)
AUDIO_EXTENSIONS = frozenset(
    {
        # Lossy
        ".mp3",
        ".m4a",
        ".aac",
        ".ogg",
        ".opus",
        # Lossless
        ".flac",
        ".wav",
        ".aiff",
    }
)

# Hey future me - folder artwork fallback, checked in THIS order (name first, then extension).
# "cover.jpg" beats "folder.png" beats "front.webp". Only used when the file has no
# embedded picture.
COVER_FILENAMES: tuple[str, ...] = ("cover", "folder", "front", "album")
COVER_EXTENSIONS: tuple[str, ...] = (".jpg", ".jpeg", ".png", ".webp")


def is_audio_file(filename: str | Path) -> bool:
    """Check if a filename has a supported audio extension.

    Args:
        filename: Filename or path to check.

    Returns:
        True if the file has a supported audio extension.
    """
    ext = Path(filename).suffix.lower()
    return ext in AUDIO_EXTENSIONS


# Listen up, plain startswith() is WRONG for roots: "/music" would swallow "/music2/x.mp3" and the
# missing-file pass would flag another library's tracks. We compare against root + separator.
def is_under_root(file_path: str, root: str) -> bool:
    """Check whether file_path lies inside the library root directory."""
    return file_path.startswith(root_prefix(root))


def root_prefix(root: str) -> str:
    """Root path with exactly one trailing separator, for prefix queries."""
    return os.path.join(root.rstrip(os.sep) or os.sep, "")


__all__ = [
    "AUDIO_EXTENSIONS",
    "COVER_EXTENSIONS",
    "COVER_FILENAMES",
    "is_audio_file",
    "is_under_root",
    "root_prefix",
]
