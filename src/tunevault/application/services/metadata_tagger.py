"""Metadata tag writer - rewrites tags in audio files after a catalog match.

Hey future me - once an album is linked, the store holds the canonical titles. This writes
them back into the files so other players see the same thing. It's strictly BEST EFFORT:
the auto-linker catches TagWriteError, logs it and moves on, the store stays the truth.

TAG MAPPING:

| Field        | EasyID3     | Vorbis      | MP4   |
|--------------|-------------|-------------|-------|
| title        | title       | TITLE       | ©nam  |
| artist       | artist      | ARTIST      | ©ART  |
| album        | album       | ALBUM       | ©alb  |
| track_number | tracknumber | TRACKNUMBER | trkn  |
| disc_number  | discnumber  | DISCNUMBER  | disk  |
| year         | date        | DATE        | ©day  |
| genre        | genre       | GENRE       | ©gen  |

Formats without a tag container we can write (WAV, AIFF, raw AAC) are skipped with an
info log. That's not an error.
"""

import asyncio
import logging
from pathlib import Path
from typing import Any

import mutagen
from mutagen.easyid3 import EasyID3
from mutagen.flac import FLAC
from mutagen.id3 import ID3NoHeaderError
from mutagen.mp3 import MP3
from mutagen.mp4 import MP4
from mutagen.oggopus import OggOpus
from mutagen.oggvorbis import OggVorbis

from tunevault.domain.entities import TagFields
from tunevault.domain.exceptions import TagWriteError
from tunevault.domain.ports import ITagWriter

logger = logging.getLogger(__name__)

EASY_ID3_KEYS = {
    "title": "title",
    "artist": "artist",
    "album": "album",
    "genre": "genre",
    "year": "date",
    "track_number": "tracknumber",
    "disc_number": "discnumber",
}

VORBIS_KEYS = {
    "title": "TITLE",
    "artist": "ARTIST",
    "album": "ALBUM",
    "genre": "GENRE",
    "year": "DATE",
    "track_number": "TRACKNUMBER",
    "disc_number": "DISCNUMBER",
}

MP4_TEXT_KEYS = {
    "title": "©nam",
    "artist": "©ART",
    "album": "©alb",
    "genre": "©gen",
    "year": "©day",
}


class MutagenTagWriter(ITagWriter):
    """Writes TagFields into MP3, FLAC, OGG Vorbis, Opus and M4A files."""

    SUPPORTED_EXTENSIONS = frozenset({".mp3", ".flac", ".ogg", ".opus", ".m4a"})

    async def write(self, file_path: Path, fields: TagFields) -> None:
        """Write fields into the file (only fields that carry a value).

        Raises:
            TagWriteError: If the file can't be opened or saved
        """
        ext = file_path.suffix.lower()
        if ext not in self.SUPPORTED_EXTENSIONS:
            logger.info(
                f"Tag writing not supported for {ext or 'extensionless'} files: "
                f"{file_path.name}"
            )
            return

        values = fields.as_dict()
        if not values:
            return

        # mutagen is blocking file IO, keep it off the event loop
        try:
            await asyncio.to_thread(self._write_sync, file_path, ext, values)
        except (mutagen.MutagenError, OSError, ValueError, KeyError) as e:
            raise TagWriteError(str(file_path), str(e)) from e

        logger.debug(f"Wrote tags {sorted(values)} to {file_path.name}")

    def _write_sync(self, file_path: Path, ext: str, values: dict[str, Any]) -> None:
        if ext == ".mp3":
            self._write_mp3(file_path, values)
        elif ext == ".flac":
            self._write_vorbis(FLAC(str(file_path)), values)
        elif ext == ".ogg":
            self._write_vorbis(OggVorbis(str(file_path)), values)
        elif ext == ".opus":
            self._write_vorbis(OggOpus(str(file_path)), values)
        elif ext == ".m4a":
            self._write_mp4(file_path, values)

    def _write_mp3(self, file_path: Path, values: dict[str, Any]) -> None:
        try:
            audio = EasyID3(str(file_path))
        except ID3NoHeaderError:
            # File has no ID3 tag yet, create an empty one first
            mp3 = MP3(str(file_path))
            mp3.add_tags()
            mp3.save()
            audio = EasyID3(str(file_path))

        for field_name, value in values.items():
            audio[EASY_ID3_KEYS[field_name]] = str(value)
        audio.save()

    def _write_vorbis(self, audio: Any, values: dict[str, Any]) -> None:
        if audio.tags is None:
            audio.add_tags()
        for field_name, value in values.items():
            audio[VORBIS_KEYS[field_name]] = str(value)
        audio.save()

    # Yo, MP4 positions are (number, total) tuples. We don't know totals here, and 0 means
    # "unknown" to every player out there.
    def _write_mp4(self, file_path: Path, values: dict[str, Any]) -> None:
        audio = MP4(str(file_path))
        if audio.tags is None:
            audio.add_tags()
        for field_name, value in values.items():
            if field_name == "track_number":
                audio["trkn"] = [(int(value), 0)]
            elif field_name == "disc_number":
                audio["disk"] = [(int(value), 0)]
            else:
                audio[MP4_TEXT_KEYS[field_name]] = [str(value)]
        audio.save()
