from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from typing import Any

import httpx
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, Response

from .assets.blob_cache import SqliteBlobCache
from .assets.config import DEFAULT_ASSET_CONFIG
from .assets.proxy import AssetCacheProxy, ProxyState
from .coordinator.fetch import FetchCoordinator
from .coordinator.queries import ALL
from .errors import (
    DomainError,
    InfrastructureError,
    MirrorError,
    NetworkError,
    NoCachedData,
    NotFound,
    OutOfScope,
    ParseError,
)
from .records.backends import SqliteKeyValueStore
from .records.config import DEFAULT_STORE_CONFIG
from .records.models import Record
from .records.store import RecordStore

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)

ERROR_STATUS_MAP: dict[type[MirrorError], int] = {
    NotFound: 404,
    OutOfScope: 404,
    NoCachedData: 503,
    NetworkError: 502,
    ParseError: 502,
}

_HOP_HEADERS = {"content-encoding", "content-length", "transfer-encoding", "connection"}


def map_mirror_error(error: MirrorError) -> HTTPException:
    """Map a mirror error to an HTTPException with a ``{code, message}`` detail."""
    detail: dict[str, Any] = {"code": error.code, "message": error.message}
    status_code = ERROR_STATUS_MAP.get(type(error))
    if status_code is None:
        if isinstance(error, InfrastructureError):
            status_code = 503
        elif isinstance(error, DomainError):
            status_code = 400
        else:
            status_code = 500
    return HTTPException(status_code=status_code, detail=detail)


def _coerce_id(raw: str) -> int | str:
    """ASCII-numeric path ids compare against integer record ids."""
    digits = raw[1:] if raw.startswith("-") else raw
    return int(raw) if digits.isascii() and digits.isdecimal() else raw


def get_coordinator(request: Request) -> FetchCoordinator:
    return request.app.state.coordinator


def get_proxy(request: Request) -> AssetCacheProxy:
    return request.app.state.proxy


def create_app(
    coordinator: FetchCoordinator | None = None,
    proxy: AssetCacheProxy | None = None,
) -> FastAPI:
    """
    Build the service.

    Components that are not injected are created from the environment
    configuration (SQLite backends, one shared HTTP client) when the app
    starts. The asset proxy is installed and activated before the first
    request is served.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        client: httpx.AsyncClient | None = None
        if app.state.coordinator is None or app.state.proxy is None:
            client = httpx.AsyncClient(follow_redirects=True)
        if app.state.coordinator is None:
            store = RecordStore(SqliteKeyValueStore(DEFAULT_STORE_CONFIG))
            app.state.coordinator = FetchCoordinator(store, client)
        if app.state.proxy is None:
            cache = SqliteBlobCache(DEFAULT_ASSET_CONFIG.db_path, DEFAULT_ASSET_CONFIG.cache_name)
            app.state.proxy = AssetCacheProxy(cache, client, DEFAULT_ASSET_CONFIG)

        if app.state.proxy.state is ProxyState.parsed:
            try:
                await app.state.proxy.start()
            except MirrorError:
                logger.warning("Asset cache install failed; asset requests will be refused", exc_info=True)

        try:
            yield
        finally:
            if client is not None:
                await client.aclose()

    app = FastAPI(title="Restaurant Mirror API", version="1.0.0", lifespan=lifespan)
    app.state.coordinator = coordinator
    app.state.proxy = proxy

    @app.exception_handler(MirrorError)
    async def mirror_error_handler(request: Request, exc: MirrorError) -> JSONResponse:
        http_exc = map_mirror_error(exc)
        return JSONResponse(status_code=http_exc.status_code, content={"detail": http_exc.detail})

    # ── Public endpoints ─────────────────────────────────────────────────

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/cache/stats")
    async def cache_stats(proxy: AssetCacheProxy = Depends(get_proxy)) -> dict:
        return await proxy.stats()

    # ── Restaurant data ──────────────────────────────────────────────────

    @app.get("/api/restaurants", response_model=list[Record])
    async def restaurants(
        cuisine: str = ALL,
        neighborhood: str = ALL,
        coordinator: FetchCoordinator = Depends(get_coordinator),
    ) -> list[Record]:
        result = await coordinator.run(
            coordinator.fetch_restaurants_by_cuisine_and_neighborhood(cuisine, neighborhood)
        )
        return result.unwrap()

    @app.get("/api/restaurants/{restaurant_id}", response_model=Record)
    async def restaurant_by_id(
        restaurant_id: str,
        coordinator: FetchCoordinator = Depends(get_coordinator),
    ) -> Record:
        result = await coordinator.run(coordinator.fetch_restaurant_by_id(_coerce_id(restaurant_id)))
        return result.unwrap()

    @app.get("/api/neighborhoods")
    async def neighborhoods(coordinator: FetchCoordinator = Depends(get_coordinator)) -> list[str]:
        result = await coordinator.run(coordinator.fetch_neighborhoods())
        return result.unwrap()

    @app.get("/api/cuisines")
    async def cuisines(coordinator: FetchCoordinator = Depends(get_coordinator)) -> list[str]:
        result = await coordinator.run(coordinator.fetch_cuisines())
        return result.unwrap()

    # ── Static assets ────────────────────────────────────────────────────

    @app.get("/{asset_path:path}")
    async def asset(
        asset_path: str,
        request: Request,
        proxy: AssetCacheProxy = Depends(get_proxy),
    ) -> Response:
        # "//host/x" would otherwise join as a network-path reference
        url = proxy.resolve("/" + asset_path.lstrip("/"))
        if request.url.query:
            url = f"{url}?{request.url.query}"

        upstream = await proxy.intercept(httpx.Request("GET", url))
        if upstream is None:
            return Response(status_code=504)

        headers = {k: v for k, v in upstream.headers.items() if k.lower() not in _HOP_HEADERS}
        return Response(content=upstream.content, status_code=upstream.status_code, headers=headers)

    return app


app = create_app()
