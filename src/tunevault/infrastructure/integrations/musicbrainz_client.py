"""MusicBrainz HTTP client implementation with rate limiting and response caching."""

import asyncio
import logging
from typing import Any, cast

import httpx

from tunevault.application.cache import BaseCache, InMemoryCache
from tunevault.config.settings import MusicBrainzSettings

logger = logging.getLogger(__name__)


def build_user_agent(settings: MusicBrainzSettings) -> str:
    """User-Agent in the "AppName/Version ( contact )" form MusicBrainz asks for."""
    return f"{settings.app_name}/{settings.app_version} ( {settings.contact} )"


class MusicBrainzClient:
    """HTTP client for MusicBrainz release search and lookup."""

    API_BASE_URL = "https://musicbrainz.org/ws/2"
    # 1 request per second as per MusicBrainz guidelines, plus a small safety margin
    RATE_LIMIT_DELAY = 1.1

    # Everything the auto-linker needs in ONE lookup: credits for the artist, labels, the full
    # tracklist (recordings), release group and tags for the genre.
    RELEASE_DETAIL_INC = "artist-credits+labels+recordings+release-groups+tags"

    # Hey future me, MusicBrainz is STRICT about rate limiting - exceed 1 req/sec and they
    # IP-ban you for hours. The lock serializes every request from every coroutine sharing this
    # client, so keep ONE instance per process (the scan worker builds it once).
    def __init__(
        self,
        settings: MusicBrainzSettings,
        cache: BaseCache[str, dict[str, Any]] | None = None,
    ) -> None:
        """Initialize MusicBrainz client.

        Args:
            settings: MusicBrainz configuration settings
            cache: Response cache (defaults to a process-local in-memory cache)
        """
        self.settings = settings
        self._cache: BaseCache[str, dict[str, Any]] = cache or InMemoryCache()
        self._client: httpx.AsyncClient | None = None
        self._last_request_time: float = 0.0
        self._rate_limit_lock = asyncio.Lock()

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.API_BASE_URL,
                headers={
                    "User-Agent": build_user_agent(self.settings),
                    "Accept": "application/json",
                },
                timeout=self.settings.request_timeout,
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    # Yo, _last_request_time is updated AFTER the response arrives, not before sending. Slow
    # responses would otherwise let the next request start less than a second after this one ended.
    async def _rate_limited_request(
        self, method: str, url: str, **kwargs: Any
    ) -> httpx.Response:
        """Make a rate-limited request to MusicBrainz API.

        Raises:
            httpx.HTTPError: If the request fails
        """
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

    @staticmethod
    def _cache_key(path: str, params: dict[str, Any]) -> str:
        ordered = "&".join(f"{key}={params[key]}" for key in sorted(params))
        return f"mb:{path}:{ordered}"

    # Listen up, the cache sits IN FRONT of the rate limiter. A cached answer costs no request
    # and no waiting, which matters on re-scans: every unlinked album asks the same searches again.
    async def _get_json(self, path: str, params: dict[str, Any]) -> dict[str, Any]:
        """GET a MusicBrainz resource as JSON, served from cache when possible.

        Raises:
            httpx.HTTPError: On network failure or non-2xx status
        """
        params = {**params, "fmt": "json"}
        key = self._cache_key(path, params)

        cached = await self._cache.get(key)
        if cached is not None:
            logger.debug(f"MusicBrainz cache hit: {key}")
            return cached

        response = await self._rate_limited_request("GET", path, params=params)
        response.raise_for_status()
        data = cast(dict[str, Any], response.json())

        await self._cache.set(key, data, ttl_seconds=self.settings.cache_ttl_seconds)
        return data

    async def search_releases(self, query: str, limit: int = 10) -> list[dict[str, Any]]:
        """Search releases with a Lucene or free-text query.

        Args:
            query: Query string, passed through as-is
            limit: Maximum number of results

        Returns:
            Raw release dicts in MusicBrainz relevance order

        Raises:
            httpx.HTTPError: If the request fails
        """
        data = await self._get_json("/release", {"query": query, "limit": limit})
        return cast(list[dict[str, Any]], data.get("releases", []))

    # Hey future me, "release" means a specific edition (CD, vinyl reissue, digital...), which is
    # exactly what we link albums to. 404 = release id doesn't exist (or was merged away).
    async def lookup_release(
        self, release_id: str, inc: str = RELEASE_DETAIL_INC
    ) -> dict[str, Any] | None:
        """Lookup a release by MusicBrainz ID.

        Args:
            release_id: MusicBrainz release ID
            inc: Sub-queries to include

        Returns:
            Release information or None if not found

        Raises:
            httpx.HTTPError: If the request fails
        """
        try:
            return await self._get_json(f"/release/{release_id}", {"inc": inc})
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 404:
                return None
            raise

    async def __aenter__(self) -> "MusicBrainzClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()
