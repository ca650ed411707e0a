from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any

import httpx

from ..errors import (
    AssetInstallError,
    LifecycleError,
    MirrorError,
    NetworkError,
    OutOfScope,
    StoreError,
)
from .blob_cache import BlobCache, CacheEntry
from .config import CACHE_FIRST, DEFAULT_ASSET_CONFIG, AssetConfig

logger = logging.getLogger(__name__)


class ProxyState(str, Enum):
    parsed = "parsed"
    installing = "installing"
    installed = "installed"
    activating = "activating"
    activated = "activated"
    redundant = "redundant"


class AssetCacheProxy:
    """
    Offline fallback for static assets.

    Lifecycle: ``install`` pre-warms the bucket from the manifest (all or
    nothing), ``activate`` starts interception, and only then does
    ``intercept`` answer requests. ``start`` runs the first two in order.
    """

    def __init__(
        self,
        cache: BlobCache,
        client: httpx.AsyncClient,
        config: AssetConfig = DEFAULT_ASSET_CONFIG,
    ) -> None:
        self._cache = cache
        self._client = client
        self._config = config
        self._state = ProxyState.parsed
        self._hits = 0
        self._misses = 0
        self._network = 0
        self._failures = 0

    @property
    def state(self) -> ProxyState:
        return self._state

    @property
    def config(self) -> AssetConfig:
        return self._config

    def resolve(self, url: str) -> str:
        return str(httpx.URL(self._config.origin).join(url))

    def in_scope(self, url: httpx.URL | str) -> bool:
        """True when ``url`` points at the configured origin (scheme, host and port)."""
        origin = httpx.URL(self._config.origin)
        target = httpx.URL(url)
        return (target.scheme, target.host, target.port) == (origin.scheme, origin.host, origin.port)

    # ── Lifecycle ────────────────────────────────────────────────────────

    async def _fetch_for_install(self, url: str) -> CacheEntry:
        try:
            response = await self._client.get(url)
        except httpx.HTTPError as exc:
            raise NetworkError(f"Could not fetch {url}: {exc}") from exc
        if not response.is_success:
            raise NetworkError(
                f"Fetching {url} returned status {response.status_code}",
                status_code=response.status_code,
            )
        return CacheEntry.from_response(url, response)

    async def install(self, manifest: list[str] | tuple[str, ...] | None = None) -> None:
        if self._state not in (ProxyState.parsed, ProxyState.redundant):
            raise LifecycleError(f"Cannot install while {self._state.value}")

        self._state = ProxyState.installing
        urls = [self.resolve(u) for u in (manifest if manifest is not None else self._config.manifest)]
        results = await asyncio.gather(
            *(self._fetch_for_install(url) for url in urls),
            return_exceptions=True,
        )

        failed: list[str] = []
        entries: list[CacheEntry] = []
        for url, result in zip(urls, results):
            if isinstance(result, MirrorError):
                logger.warning("Install fetch failed: %s", result.message)
                failed.append(url)
            elif isinstance(result, BaseException):
                self._state = ProxyState.redundant
                raise result
            else:
                entries.append(result)

        if failed:
            self._state = ProxyState.redundant
            raise AssetInstallError(
                f"{len(failed)} of {len(urls)} assets failed to download; nothing cached",
                failed_urls=failed,
            )

        try:
            await asyncio.to_thread(self._cache.install, entries)
        except StoreError:
            self._state = ProxyState.redundant
            raise

        self._state = ProxyState.installed
        logger.info("Opened cache %r with %d assets", self._cache.name, len(entries))

    async def activate(self) -> None:
        if self._state is not ProxyState.installed:
            raise LifecycleError(f"Cannot activate while {self._state.value}")
        self._state = ProxyState.activating
        # Nothing to hand over; every request from now on goes through intercept()
        self._state = ProxyState.activated
        logger.info("Asset proxy active (%s)", self._config.strategy)

    async def start(self, manifest: list[str] | tuple[str, ...] | None = None) -> None:
        await self.install(manifest)
        await self.activate()

    # ── Interception ─────────────────────────────────────────────────────

    async def _from_cache(self, request: httpx.Request) -> httpx.Response | None:
        entry = await asyncio.to_thread(
            self._cache.match, str(request.url), self._config.ignore_search,
        )
        if entry is None:
            self._misses += 1
            return None
        self._hits += 1
        return entry.to_response(request)

    async def _from_network(self, request: httpx.Request) -> httpx.Response:
        response = await self._client.send(request)
        self._network += 1
        return response

    async def _network_first(self, request: httpx.Request) -> httpx.Response:
        try:
            response = await self._from_network(request)
        except httpx.HTTPError as exc:
            logger.info("Network failed for %s (%s), trying cache", request.url, exc)
            cached = await self._from_cache(request)
            if cached is None:
                raise
            return cached

        if response.is_success:
            return response
        cached = await self._from_cache(request)
        return cached if cached is not None else response

    async def intercept(self, request: httpx.Request) -> httpx.Response | None:
        """
        Answer one outgoing request.

        Returns ``None`` when neither the cache nor the network could answer;
        the failure is logged and no substitute response is made up.
        Requests for any other host raise ``OutOfScope`` without touching
        the network.
        """
        if self._state is not ProxyState.activated:
            raise LifecycleError(f"Cannot intercept while {self._state.value}")
        if not self.in_scope(request.url):
            logger.warning("Refusing asset request outside %s: %s", self._config.origin, request.url)
            raise OutOfScope(f"{request.url} is not served by {self._config.origin}")

        try:
            if request.method != "GET":
                return await self._from_network(request)
            if self._config.strategy == CACHE_FIRST:
                cached = await self._from_cache(request)
                if cached is not None:
                    return cached
                return await self._from_network(request)
            return await self._network_first(request)
        except (httpx.HTTPError, MirrorError) as exc:
            self._failures += 1
            logger.error("Asset request %s %s failed: %s", request.method, request.url, exc)
            return None

    # ── Stats ────────────────────────────────────────────────────────────

    async def stats(self) -> dict[str, Any]:
        size = len(await asyncio.to_thread(self._cache.keys))
        lookups = self._hits + self._misses
        return {
            "name": self._cache.name,
            "state": self._state.value,
            "strategy": self._config.strategy,
            "size": size,
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": round(self._hits / lookups * 100, 1) if lookups > 0 else 0.0,
            "network_responses": self._network,
            "failures": self._failures,
        }

    def reset_stats(self) -> None:
        self._hits = 0
        self._misses = 0
        self._network = 0
        self._failures = 0
