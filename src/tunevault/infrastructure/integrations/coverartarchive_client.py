"""CoverArtArchive HTTP client implementation.

Hey future me - CoverArtArchive (CAA) hosts the artwork for MusicBrainz releases. It's a
separate service keyed by the same release ids, free and without an API key.

Response format:
- GET /release/{mbid}/ returns JSON with an images array
- Each image has types ("Front", "Back", ...), a front flag, thumbnails and the original URL

GOTCHA: plenty of releases have no artwork at all. 404 is the normal "nothing here" answer,
never an error. The Internet Archive backend is also intermittently slow and answers 503 or
429 under load, so those (and timeouts) get a couple of retries.
"""

import asyncio
import logging
from typing import Any, cast

import httpx

from tunevault.application.cache import BaseCache, InMemoryCache
from tunevault.config.settings import MusicBrainzSettings

from .musicbrainz_client import build_user_agent

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = frozenset({429, 503})


def ensure_https(url: str) -> str:
    """Upgrade a plain http:// URL to https://."""
    if url.startswith("http://"):
        return "https://" + url[len("http://") :]
    return url


def select_cover_url(images: list[dict[str, Any]]) -> str | None:
    """Pick the best cover URL from a CAA images list.

    The front image wins, otherwise the first image. Within an image the 500px
    thumbnail is preferred over "large" and then the original.
    """
    if not images:
        return None

    chosen = next((img for img in images if img.get("front")), images[0])
    thumbnails = chosen.get("thumbnails") or {}
    url = thumbnails.get("500") or thumbnails.get("large") or chosen.get("image")
    return ensure_https(url) if url else None


class CoverArtArchiveClient:
    """HTTP client for CoverArtArchive API.

    Usage:
        async with CoverArtArchiveClient(settings.musicbrainz) as client:
            front_url = await client.get_front_cover_url(release_mbid)
    """

    API_BASE_URL = "https://coverartarchive.org"

    # CAA has no strict limit like MusicBrainz, 200ms between requests keeps us polite.
    RATE_LIMIT_DELAY = 0.2
    MAX_RETRIES = 2
    RETRY_BACKOFF_SECONDS = 1.0

    def __init__(
        self,
        settings: MusicBrainzSettings,
        cache: BaseCache[str, dict[str, Any]] | None = None,
    ) -> None:
        """Initialize CoverArtArchive client.

        Args:
            settings: MusicBrainz settings (User-Agent, timeout, cache TTL are shared)
            cache: Response cache (defaults to a process-local in-memory cache)
        """
        self.settings = settings
        self._cache: BaseCache[str, dict[str, Any]] = cache or InMemoryCache()
        self._client: httpx.AsyncClient | None = None
        self._last_request_time: float = 0.0
        self._rate_limit_lock = asyncio.Lock()

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client.

        Follow redirects is important - CAA answers with 307s to archive.org.
        """
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.API_BASE_URL,
                headers={
                    "User-Agent": build_user_agent(self.settings),
                    "Accept": "application/json",
                },
                timeout=self.settings.request_timeout,
                follow_redirects=True,
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _rate_limited_request(
        self, method: str, url: str, **kwargs: Any
    ) -> httpx.Response:
        """Make a rate-limited request to CoverArtArchive."""
        async with self._rate_limit_lock:
            current_time = asyncio.get_event_loop().time()
            time_since_last = current_time - self._last_request_time

            if time_since_last < self.RATE_LIMIT_DELAY:
                await asyncio.sleep(self.RATE_LIMIT_DELAY - time_since_last)

            client = await self._get_client()
            try:
                response = await client.request(method, url, **kwargs)
            finally:
                self._last_request_time = asyncio.get_event_loop().time()

            return response

    # Hey future me, retries cover exactly two cases: 503/429 and timeouts. Anything else
    # (404, 500, connection refused) goes straight out to the caller on the first attempt.
    async def get_release_artwork(self, release_mbid: str) -> dict[str, Any] | None:
        """Get the artwork listing for a MusicBrainz release.

        Args:
            release_mbid: MusicBrainz Release ID

        Returns:
            Raw CAA JSON, or None when the release has no artwork

        Raises:
            httpx.HTTPError: On non-retryable failure or when retries are exhausted
        """
        path = f"/release/{release_mbid}/"
        key = f"caa:{path}"

        cached = await self._cache.get(key)
        if cached is not None:
            return cached

        last_error: httpx.HTTPError | None = None
        for attempt in range(self.MAX_RETRIES + 1):
            if attempt > 0:
                delay = self.RETRY_BACKOFF_SECONDS * attempt
                logger.debug(
                    f"CAA retry {attempt}/{self.MAX_RETRIES} after {delay}s for {release_mbid}"
                )
                await asyncio.sleep(delay)

            try:
                response = await self._rate_limited_request("GET", path)
            except httpx.TimeoutException as e:
                last_error = e
                continue

            if response.status_code == 404:
                logger.debug(f"No artwork found for release {release_mbid}")
                return None

            if response.status_code in RETRYABLE_STATUS_CODES:
                last_error = httpx.HTTPStatusError(
                    f"Cover Art Archive error: {response.status_code}",
                    request=response.request,
                    response=response,
                )
                continue

            response.raise_for_status()
            data = cast(dict[str, Any], response.json())
            await self._cache.set(key, data, ttl_seconds=self.settings.cache_ttl_seconds)
            return data

        assert last_error is not None
        raise last_error

    async def get_front_cover_url(self, release_mbid: str) -> str | None:
        """Get the preferred front cover URL for a release.

        Args:
            release_mbid: MusicBrainz Release ID

        Returns:
            https URL of the cover image, or None if the release has no artwork

        Raises:
            httpx.HTTPError: If the request fails
        """
        data = await self.get_release_artwork(release_mbid)
        if data is None:
            return None
        return select_cover_url(data.get("images", []))

    async def __aenter__(self) -> "CoverArtArchiveClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()
