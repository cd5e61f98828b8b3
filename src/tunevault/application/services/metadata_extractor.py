"""Mutagen-backed metadata extraction for library scans."""

import base64
import hashlib
import logging
import os
from pathlib import Path
from typing import Any

import mutagen
from mutagen.flac import Picture

from tunevault.domain.entities import ExtractedMetadata
from tunevault.domain.exceptions import ExtractionError
from tunevault.domain.ports import IMetadataExtractor
from tunevault.domain.value_objects.media_files import COVER_EXTENSIONS, COVER_FILENAMES

logger = logging.getLogger(__name__)

UNKNOWN_ARTIST = "Unknown Artist"
COVER_URL_PREFIX = "/api/covers"

MIME_TO_EXT = {
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
    "image/gif": ".gif",
}

# Hey future me - one mapping for all three tag families. ID3 frame ids (MP3), lowercase Vorbis
# comment keys (FLAC/OGG/Opus; mutagen's Vorbis lookup is case-insensitive) and MP4 atoms (M4A/AAC).
# First hit per field wins, so TDRC comes before TYER on purpose.
TAG_MAPPINGS: dict[str, tuple[str, ...]] = {
    "title": ("TIT2", "title", "©nam"),
    "artist_name": ("TPE1", "artist", "©ART"),
    "album_title": ("TALB", "album", "©alb"),
    "track_number": ("TRCK", "tracknumber", "trkn"),
    "disc_number": ("TPOS", "discnumber", "disk"),
    "year": ("TDRC", "TYER", "date", "year", "©day"),
    "genre": ("TCON", "genre", "©gen"),
    "musicbrainz_track_id": (
        "UFID:http://musicbrainz.org",
        "TXXX:MusicBrainz Track Id",
        "musicbrainz_trackid",
        "----:com.apple.iTunes:MusicBrainz Track Id",
    ),
    "musicbrainz_album_id": (
        "TXXX:MusicBrainz Album Id",
        "musicbrainz_albumid",
        "----:com.apple.iTunes:MusicBrainz Album Id",
    ),
    "musicbrainz_artist_id": (
        "TXXX:MusicBrainz Artist Id",
        "musicbrainz_artistid",
        "----:com.apple.iTunes:MusicBrainz Artist Id",
    ),
}


def _first_value(value: Any) -> Any:
    """Unwrap mutagen's tag containers down to one plain value."""
    if hasattr(value, "text"):
        value = value.text
    elif hasattr(value, "data") and not isinstance(value, bytes | bytearray):
        # UFID frames carry the id as raw bytes in .data
        value = value.data
    if isinstance(value, list):
        if not value:
            return None
        value = value[0]
    if isinstance(value, bytes | bytearray):
        value = bytes(value).decode("utf-8", errors="replace")
    return value


def _parse_position(value: Any) -> int | None:
    """Parse track/disc numbers: 3, "3", "3/12" or MP4's (3, 12) tuple."""
    if isinstance(value, tuple):
        value = value[0] if value else None
    if isinstance(value, str) and "/" in value:
        value = value.split("/")[0]
    try:
        number = int(str(value).strip())
    except (ValueError, TypeError):
        return None
    return number if number > 0 else None


def _parse_year(value: Any) -> int | None:
    try:
        return int(str(value).strip()[:4])
    except (ValueError, TypeError):
        return None


def _clean_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip().replace("\x00", "")
    return text or None


class MutagenMetadataExtractor(IMetadataExtractor):
    """Reads tags, audio properties and artwork with mutagen.

    Hey future me - this runs in a thread pool executor (mutagen is blocking IO), one
    file at a time. It NEVER raises for unreadable tags or unknown containers: a file
    that mutagen can't parse still gets a row (filename title, "Unknown Artist").
    ExtractionError is reserved for "the file itself can't be stat'ed".
    """

    def __init__(self, covers_path: Path) -> None:
        """Initialize extractor.

        Args:
            covers_path: Directory where embedded/folder artwork is stored by hash
        """
        self.covers_path = covers_path

    def extract(self, file_path: Path) -> ExtractedMetadata:
        """Extract metadata from a file."""
        try:
            file_size = file_path.stat().st_size
        except OSError as e:
            raise ExtractionError(str(file_path), str(e)) from e

        metadata = ExtractedMetadata(
            title=file_path.stem,
            artist_name=UNKNOWN_ARTIST,
            track_number=1,
            disc_number=1,
            file_size=file_size,
            format=file_path.suffix.lstrip(".").lower() or "unknown",
        )

        try:
            audio = mutagen.File(file_path)
        except (mutagen.MutagenError, OSError, ValueError) as e:
            logger.warning(
                f"Failed to parse metadata for {file_path}: {e}. Using filename defaults"
            )
            return metadata

        if audio is None:
            logger.debug(f"Unsupported container for {file_path.name}, using filename defaults")
            return metadata

        self._apply_audio_info(metadata, audio)
        if audio.tags:
            self._apply_tags(metadata, audio.tags)
        else:
            logger.debug(f"No tags found in {file_path.name} (format: {metadata.format})")

        metadata.cover_ref = self._save_embedded_cover(audio) or self._save_folder_cover(
            file_path
        )
        return metadata

    def _apply_audio_info(self, metadata: ExtractedMetadata, audio: Any) -> None:
        info = getattr(audio, "info", None)
        if info is None:
            return
        if getattr(info, "length", None):
            metadata.duration = float(info.length)
        if getattr(info, "bitrate", None):
            metadata.bitrate = int(round(info.bitrate))
        if getattr(info, "sample_rate", None):
            metadata.sample_rate = int(info.sample_rate)
        if getattr(info, "channels", None):
            metadata.channels = int(info.channels)

    def _apply_tags(self, metadata: ExtractedMetadata, tags: Any) -> None:
        for field_name, keys in TAG_MAPPINGS.items():
            raw = self._lookup(tags, keys)
            if raw is None:
                continue

            if field_name in ("track_number", "disc_number"):
                value: Any = _parse_position(raw)
            elif field_name == "year":
                value = _parse_year(raw)
            else:
                value = _clean_text(raw)

            if value is not None:
                setattr(metadata, field_name, value)

    @staticmethod
    def _lookup(tags: Any, keys: tuple[str, ...]) -> Any:
        for key in keys:
            try:
                if key not in tags:
                    continue
                value = tags[key]
            except (KeyError, ValueError):
                # Vorbis comments reject non-ASCII keys like "©nam" with ValueError
                continue
            # MP4 positions are [(n, total)], keep the tuple for _parse_position
            if isinstance(value, list) and value and isinstance(value[0], tuple):
                return value[0]
            result = _first_value(value)
            if result is not None and result != "":
                return result
        return None

    # Listen up, artwork lives in a different place in every container: APIC frames (ID3),
    # audio.pictures (FLAC), base64 METADATA_BLOCK_PICTURE comments (OGG/Opus) and covr atoms (MP4).
    def _embedded_picture(self, audio: Any) -> tuple[bytes, str] | None:
        tags = audio.tags
        if tags is not None and hasattr(tags, "getall"):
            frames = tags.getall("APIC")
            if frames:
                return bytes(frames[0].data), frames[0].mime or "image/jpeg"

        pictures = getattr(audio, "pictures", None)
        if pictures:
            return bytes(pictures[0].data), pictures[0].mime or "image/jpeg"

        if tags is None:
            return None

        try:
            encoded = tags.get("metadata_block_picture")
        except ValueError:
            encoded = None
        if encoded:
            try:
                picture = Picture(base64.b64decode(encoded[0]))
            except (ValueError, mutagen.MutagenError) as e:
                logger.debug(f"Invalid embedded picture block: {e}")
            else:
                return bytes(picture.data), picture.mime or "image/jpeg"

        try:
            covers = tags.get("covr")
        except ValueError:
            covers = None
        if covers:
            cover = covers[0]
            # MP4Cover.FORMAT_PNG == 14
            mime = "image/png" if getattr(cover, "imageformat", None) == 14 else "image/jpeg"
            return bytes(cover), mime

        return None

    def _save_embedded_cover(self, audio: Any) -> str | None:
        picture = self._embedded_picture(audio)
        if picture is None:
            return None
        data, mime = picture
        return self._store_cover(data, MIME_TO_EXT.get(mime.lower(), ".jpg"))

    def _save_folder_cover(self, file_path: Path) -> str | None:
        """Fallback to cover.jpg / folder.png / ... next to the file (case-insensitive)."""
        try:
            entries = {
                entry.name.lower(): entry.path
                for entry in os.scandir(file_path.parent)
                if entry.is_file()
            }
        except OSError as e:
            logger.debug(f"Could not list {file_path.parent} for folder artwork: {e}")
            return None

        for name in COVER_FILENAMES:
            for ext in COVER_EXTENSIONS:
                candidate = entries.get(f"{name}{ext}")
                if candidate is None:
                    continue
                try:
                    data = Path(candidate).read_bytes()
                except OSError as e:
                    logger.debug(f"Could not read folder artwork {candidate}: {e}")
                    continue
                return self._store_cover(data, ".jpg" if ext == ".jpeg" else ext)

        return None

    # Hey future me - content hash as filename = every album sharing the same artwork (all 12
    # tracks of an album, usually) lands in ONE file that's written once.
    def _store_cover(self, data: bytes, ext: str) -> str | None:
        if not data:
            return None

        filename = f"{hashlib.sha256(data).hexdigest()}{ext}"
        target = self.covers_path / filename
        try:
            if not target.exists():
                self.covers_path.mkdir(parents=True, exist_ok=True)
                target.write_bytes(data)
        except OSError as e:
            logger.warning(f"Failed to save cover art {filename}: {e}")
            return None

        return f"{COVER_URL_PREFIX}/{filename}"
