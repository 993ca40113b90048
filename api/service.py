"""
Upstream Service
----------------
Cache-first access to the upstream API for route handlers.

Flow: cache.get(key) -> hit: return
                     -> miss: client.fetch -> decode JSON -> cache.set -> return

The cache is chosen per call through CachePolicy, so a live-match route can
use a short-TTL cache while team pages share a longer one.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple
import asyncio

from api.client import UpstreamClient
from cache.keys import Params, RequestDescriptor
from cache.response_cache import MISSING, ResponseCache
from core.errors import ErrorHandler, ResponseDecodeError, UpstreamLayerError
from infra.logging import get_logger

DEFAULT_TAGS: Tuple[str, ...] = ("api", "pandascore")

CRITICAL_ENDPOINTS: Tuple[str, ...] = (
    "https://api.pandascore.co/matches/running",
    "https://api.pandascore.co/matches/upcoming",
)


@dataclass
class CachePolicy:
    """Which cache a call reads and fills, and the tags stored with the entry."""
    cache: Optional[ResponseCache] = None
    tags: Sequence[str] = field(default_factory=tuple)
    bypass: bool = False  # Skip the read; still refresh the entry


class UpstreamService:
    """
    Route-handler facing wrapper around UpstreamClient and ResponseCache.

    Example:
        live = ResponseCache(ttl_seconds=30, name="live")
        service = UpstreamService(client, default_cache=ResponseCache())
        matches = await service.fetch_json(
            "https://api.pandascore.co/matches/running",
            {"per_page": 50},
            policy=CachePolicy(cache=live, tags=["live"]),
        )
    """

    def __init__(
        self,
        client: UpstreamClient,
        default_cache: ResponseCache,
        error_handler: Optional[ErrorHandler] = None,
    ):
        self.client = client
        self.default_cache = default_cache
        self.error_handler = error_handler or ErrorHandler()
        self._logger = get_logger("api.service")

    def _caches(self, policy: Optional[CachePolicy]) -> List[ResponseCache]:
        caches = [self.default_cache]
        if policy is not None and policy.cache is not None and policy.cache is not self.default_cache:
            caches.append(policy.cache)
        return caches

    async def fetch_json(
        self,
        url: str,
        params: Params = None,
        policy: Optional[CachePolicy] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> Any:
        """Return decoded JSON for a GET, from cache when possible."""
        policy = policy or CachePolicy()
        cache = policy.cache or self.default_cache
        url = self.client.resolve_url(url)
        descriptor = RequestDescriptor.build(url, params, "GET", headers)
        key = descriptor.cache_key()

        if not policy.bypass:
            cached = cache.get(key, MISSING)
            if cached is not MISSING:
                self._logger.debug(f"Cache hit: {key}", extra={"cache": cache.name})
                return cached

        response = await self.client.fetch(url, params, headers=headers)
        try:
            data = response.json()
        except ValueError:
            raise ResponseDecodeError(response.status_code, response.text, url=url) from None
        cache.set(key, data, tags=[*DEFAULT_TAGS, *policy.tags])
        return data

    async def fetch_json_or_default(
        self,
        url: str,
        params: Params = None,
        default: Any = None,
        policy: Optional[CachePolicy] = None,
    ) -> Any:
        """
        Like fetch_json, but degrade to ``default`` on upstream failure.

        Route handlers answer with an empty list instead of a 500.
        """
        try:
            return await self.fetch_json(url, params, policy=policy)
        except UpstreamLayerError as e:
            self.error_handler.handle(e)
            return default

    async def preload(
        self,
        endpoints: Iterable[str] = CRITICAL_ENDPOINTS,
        policy: Optional[CachePolicy] = None,
    ) -> Dict[str, Any]:
        """
        Warm the cache for critical endpoints concurrently.

        A failing endpoint is logged and maps to None.
        """
        policy = policy or CachePolicy(tags=("critical", "preload"))
        endpoints = list(endpoints)

        async def _load(endpoint: str) -> Any:
            try:
                return await self.fetch_json(endpoint, policy=policy)
            except UpstreamLayerError as e:
                self._logger.warning(f"Failed to preload {endpoint}: {e.message}")
                return None

        results = await asyncio.gather(*(_load(endpoint) for endpoint in endpoints))
        return dict(zip(endpoints, results))

    def clear_api_cache(
        self,
        tags: Optional[Iterable[str]] = None,
        policy: Optional[CachePolicy] = None,
    ) -> int:
        """Drop entries by tag (default: everything tagged ``api``)."""
        removed = 0
        for cache in self._caches(policy):
            for tag in tags or ("api",):
                removed += cache.invalidate_tag(tag)
        return removed
