"""Cover service - downloads album artwork and stores resized local copies.

Hey future me - covers for linked albums come from the Cover Art Archive, but we NEVER store
the remote URL on the album. We download once, crop to squares and keep two JPEGs:

    <data_dir>/covers/<album_id>/cover-500.jpg   (detail views)
    <data_dir>/covers/<album_id>/cover-300.jpg   (grids)

The album's cover_url is the local 500px reference. Everything here is best effort: any
failure (HTTP, broken image, disk full) logs a warning and returns None. A missing cover
never blocks a link.
"""

import asyncio
import logging
from io import BytesIO
from pathlib import Path
from typing import Any

import httpx
from PIL import Image, ImageOps, UnidentifiedImageError

from tunevault.config import Settings
from tunevault.domain.ports import ICoverStore
from tunevault.infrastructure.integrations.musicbrainz_client import build_user_agent

logger = logging.getLogger(__name__)

COVER_URL_PREFIX = "/api/covers"

# (size in px, filename, JPEG quality)
COVER_VARIANTS: tuple[tuple[int, str, int], ...] = (
    (500, "cover-500.jpg", 90),
    (300, "cover-300.jpg", 85),
)


class CoverService(ICoverStore):
    """Downloads cover images with httpx and resizes them with Pillow."""

    def __init__(self, settings: Settings, client: httpx.AsyncClient | None = None) -> None:
        """Initialize cover service.

        Args:
            settings: Application settings (covers path, User-Agent, timeout)
            client: Optional pre-built HTTP client (tests inject a mock transport)
        """
        self._settings = settings
        self._covers_path = settings.storage.covers_path
        self._client = client
        self._owns_client = client is None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers={"User-Agent": build_user_agent(self._settings.musicbrainz)},
                timeout=self._settings.musicbrainz.request_timeout,
                follow_redirects=True,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client if we created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def download(self, cover_ref: str, album_id: str) -> str | None:
        """Fetch cover_ref and store resized copies for album_id.

        Returns:
            Local reference of the 500px cover, or None on any failure
        """
        try:
            client = await self._get_client()
            response = await client.get(cover_ref)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning(
                f"Failed to download cover art for album {album_id} from {cover_ref}: {e}"
            )
            return None

        try:
            # Pillow is CPU-bound, keep it off the event loop
            await asyncio.to_thread(self._process_and_save_sync, response.content, album_id)
        except (UnidentifiedImageError, OSError, ValueError) as e:
            logger.warning(f"Failed to process cover art for album {album_id}: {e}")
            return None

        logger.info(f"Saved cover art for album {album_id}")
        return f"{COVER_URL_PREFIX}/{album_id}/{COVER_VARIANTS[0][1]}"

    def album_cover_dir(self, album_id: str) -> Path:
        """Directory holding the processed covers of one album."""
        return self._covers_path / album_id

    def _process_and_save_sync(self, image_bytes: bytes, album_id: str) -> None:
        target_dir = self.album_cover_dir(album_id)
        target_dir.mkdir(parents=True, exist_ok=True)

        with Image.open(BytesIO(image_bytes)) as img:
            # JPEG can't hold alpha or palette images
            rgb: Any = img.convert("RGB") if img.mode != "RGB" else img
            for size, filename, quality in COVER_VARIANTS:
                # fit() crops to fill the square instead of letterboxing
                resized = ImageOps.fit(rgb, (size, size), Image.Resampling.LANCZOS)
                resized.save(target_dir / filename, format="JPEG", quality=quality)
