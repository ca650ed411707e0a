from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable

import httpx

from ..errors import NetworkError, NoCachedData, ParseError, StoreError
from ..records.models import Record, RecordCollection, parse_collection
from ..records.store import RecordStore
from . import queries
from .config import DEFAULT_COORDINATOR_CONFIG, CoordinatorConfig
from .connectivity import ConnectivityCheck, default_connectivity
from .result import Callback, QueryResult, T, deliver

logger = logging.getLogger(__name__)


class FetchCoordinator:
    """
    Single entry point for restaurant queries.

    Connectivity is checked once when a query starts. Online queries hit the
    remote endpoint and refresh the store; offline queries read the store.
    A failed network fetch is reported as-is, never retried and never
    replaced by cached data.
    """

    def __init__(
        self,
        store: RecordStore,
        client: httpx.AsyncClient,
        config: CoordinatorConfig = DEFAULT_COORDINATOR_CONFIG,
        is_online: ConnectivityCheck | None = None,
    ) -> None:
        self._store = store
        self._client = client
        self._config = config
        self._is_online = is_online or default_connectivity(config)

    @property
    def store(self) -> RecordStore:
        return self._store

    async def run(self, query: Awaitable[T], callback: Callback | None = None) -> QueryResult[T]:
        return await deliver(query, callback)

    # ── Full dataset ─────────────────────────────────────────────────────

    async def fetch_restaurants(self) -> RecordCollection:
        # the default check opens a socket, so keep it off the event loop
        online = await asyncio.to_thread(self._is_online)
        if online:
            return await self._fetch_remote()
        logger.info("No connection, fetching cached data")
        return await self._read_cached()

    async def _fetch_remote(self) -> RecordCollection:
        url = self._config.restaurants_url
        start_time = time.time()

        try:
            response = await self._client.get(url, timeout=self._config.request_timeout)
        except httpx.HTTPError as exc:
            logger.warning("Request to %s failed: %s", url, exc)
            raise NetworkError(f"Request to {url} failed: {exc}") from exc

        if not response.is_success:
            logger.warning("Request to %s returned status %d", url, response.status_code)
            raise NetworkError(
                f"Request failed. Returned status of {response.status_code}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise ParseError(f"Response from {url} is not valid JSON") from exc

        records = parse_collection(payload)

        try:
            await self._store.put_all(records)
        except StoreError:
            logger.warning("Could not refresh local restaurant cache", exc_info=True)

        elapsed_ms = round((time.time() - start_time) * 1000, 1)
        logger.info("Fetched %d restaurants from %s in %sms", len(records), url, elapsed_ms)
        return records

    async def _read_cached(self) -> RecordCollection:
        records = await self._store.get_all()
        if not records:
            raise NoCachedData("No cached data available")
        return records

    # ── Derived queries ──────────────────────────────────────────────────

    async def fetch_restaurant_by_id(self, restaurant_id: int | str) -> Record:
        return queries.find_by_id(await self.fetch_restaurants(), restaurant_id)

    async def fetch_restaurants_by_cuisine(self, cuisine: str) -> RecordCollection:
        return queries.filter_by_cuisine(await self.fetch_restaurants(), cuisine)

    async def fetch_restaurants_by_neighborhood(self, neighborhood: str) -> RecordCollection:
        return queries.filter_by_neighborhood(await self.fetch_restaurants(), neighborhood)

    async def fetch_restaurants_by_cuisine_and_neighborhood(
        self,
        cuisine: str,
        neighborhood: str,
    ) -> RecordCollection:
        return queries.filter_by_cuisine_and_neighborhood(
            await self.fetch_restaurants(), cuisine, neighborhood,
        )

    async def fetch_neighborhoods(self) -> list[str]:
        return queries.distinct_neighborhoods(await self.fetch_restaurants())

    async def fetch_cuisines(self) -> list[str]:
        return queries.distinct_cuisines(await self.fetch_restaurants())
