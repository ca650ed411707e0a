from __future__ import annotations

import httpx
import pytest

from restaurant_mirror.assets.blob_cache import InMemoryBlobCache
from restaurant_mirror.assets.config import DEFAULT_MANIFEST, NETWORK_FIRST, AssetConfig
from restaurant_mirror.assets.proxy import AssetCacheProxy, ProxyState
from restaurant_mirror.errors import AssetInstallError, LifecycleError, OutOfScope

ORIGIN = "http://assets.test"
MANIFEST = ("/", "a.js")


@pytest.fixture
def blob_cache():
    return InMemoryBlobCache("restaurant-cache")


@pytest.fixture
def proxy(blob_cache, asset_client):
    return AssetCacheProxy(blob_cache, asset_client, AssetConfig(origin=ORIGIN, manifest=MANIFEST))


@pytest.fixture
def network_first_proxy(blob_cache, asset_client):
    cfg = AssetConfig(origin=ORIGIN, manifest=MANIFEST, strategy=NETWORK_FIRST)
    return AssetCacheProxy(blob_cache, asset_client, cfg)


def _get(path: str) -> httpx.Request:
    return httpx.Request("GET", f"{ORIGIN}{path}")


# ── Install / activate ───────────────────────────────────────────────────


def test_default_manifest_matches_site_layout():
    assert DEFAULT_MANIFEST[0] == "/"
    assert "data/restaurants.json" in DEFAULT_MANIFEST
    assert [u for u in DEFAULT_MANIFEST if u.startswith("img/")] == [f"img/{n}.jpg" for n in range(1, 11)]


def test_unknown_strategy_is_rejected():
    with pytest.raises(ValueError):
        AssetConfig(strategy="stale_while_revalidate")


@pytest.mark.asyncio
async def test_install_caches_every_manifest_url(proxy, blob_cache):
    await proxy.install()

    assert proxy.state is ProxyState.installed
    assert sorted(blob_cache.keys()) == [f"{ORIGIN}/", f"{ORIGIN}/a.js"]
    assert blob_cache.match(f"{ORIGIN}/a.js").body == b"console.log('a');"


@pytest.mark.asyncio
async def test_install_is_all_or_nothing_on_missing_asset(proxy, blob_cache, origin):
    origin.missing.add("/a.js")

    with pytest.raises(AssetInstallError) as exc_info:
        await proxy.install()

    assert exc_info.value.failed_urls == [f"{ORIGIN}/a.js"]
    assert blob_cache.keys() == []
    assert proxy.state is ProxyState.redundant


@pytest.mark.asyncio
async def test_install_is_all_or_nothing_on_unreachable_asset(proxy, blob_cache, origin):
    origin.unreachable.add("/a.js")

    with pytest.raises(AssetInstallError):
        await proxy.install()
    assert blob_cache.keys() == []


@pytest.mark.asyncio
async def test_install_can_be_retried_after_failure(proxy, blob_cache, origin):
    origin.missing.add("/a.js")
    with pytest.raises(AssetInstallError):
        await proxy.install()

    origin.missing.clear()
    await proxy.install()
    assert len(blob_cache.keys()) == 2


@pytest.mark.asyncio
async def test_activate_before_install_is_refused(proxy):
    with pytest.raises(LifecycleError):
        await proxy.activate()


@pytest.mark.asyncio
async def test_install_twice_is_refused(proxy):
    await proxy.start()
    with pytest.raises(LifecycleError):
        await proxy.install()


@pytest.mark.asyncio
async def test_intercept_before_activate_is_refused(proxy):
    await proxy.install()
    with pytest.raises(LifecycleError):
        await proxy.intercept(_get("/"))


@pytest.mark.asyncio
async def test_start_installs_then_activates(proxy):
    await proxy.start()
    assert proxy.state is ProxyState.activated


# ── Cache-first interception ─────────────────────────────────────────────


@pytest.mark.asyncio
async def test_cache_hit_skips_network(proxy, origin):
    await proxy.start()
    origin.calls.clear()

    response = await proxy.intercept(_get("/a.js"))

    assert response.status_code == 200
    assert response.content == b"console.log('a');"
    assert origin.calls == []


@pytest.mark.asyncio
async def test_cache_hit_ignores_query_string(proxy, origin):
    await proxy.start()
    origin.offline = True

    response = await proxy.intercept(_get("/?utm=feed"))

    assert response.content == b"<html>home</html>"


@pytest.mark.asyncio
async def test_cached_copy_wins_over_newer_origin_copy(proxy, origin):
    await proxy.start()
    origin.assets["/a.js"] = b"console.log('v2');"

    response = await proxy.intercept(_get("/a.js"))

    assert response.content == b"console.log('a');"


@pytest.mark.asyncio
async def test_cache_miss_goes_to_network(proxy, origin):
    origin.assets["/img/1.jpg"] = b"jpeg"
    await proxy.start()

    response = await proxy.intercept(_get("/img/1.jpg"))

    assert response.content == b"jpeg"
    assert origin.calls[-1].url.path == "/img/1.jpg"


@pytest.mark.asyncio
async def test_network_error_status_is_passed_through(proxy):
    await proxy.start()
    response = await proxy.intercept(_get("/missing.css"))
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_cache_miss_while_offline_fails_silently(proxy, origin, caplog):
    await proxy.start()
    origin.offline = True

    assert await proxy.intercept(_get("/img/2.jpg")) is None
    assert "failed" in caplog.text
    assert (await proxy.stats())["failures"] == 1


@pytest.mark.asyncio
async def test_non_get_requests_bypass_cache(proxy, origin):
    await proxy.start()
    origin.calls.clear()

    response = await proxy.intercept(httpx.Request("POST", f"{ORIGIN}/a.js"))

    assert response.status_code == 200
    assert len(origin.calls) == 1


@pytest.mark.asyncio
async def test_request_for_another_host_is_refused_without_network(proxy, origin):
    await proxy.start()
    origin.calls.clear()

    with pytest.raises(OutOfScope):
        await proxy.intercept(httpx.Request("GET", "http://evil.example/secret"))

    assert origin.calls == []


def test_in_scope_compares_scheme_host_and_port(proxy):
    assert proxy.in_scope(f"{ORIGIN}/img/1.jpg")
    assert not proxy.in_scope("https://assets.test/img/1.jpg")
    assert not proxy.in_scope("http://assets.test:8080/img/1.jpg")
    assert not proxy.in_scope("http://other.test/img/1.jpg")
    assert not proxy.in_scope(proxy.resolve("//evil.example/x"))


# ── Network-first interception ───────────────────────────────────────────


@pytest.mark.asyncio
async def test_network_first_prefers_fresh_copy(network_first_proxy, origin):
    await network_first_proxy.start()
    origin.assets["/a.js"] = b"console.log('v2');"

    response = await network_first_proxy.intercept(_get("/a.js"))

    assert response.content == b"console.log('v2');"


@pytest.mark.asyncio
async def test_network_first_falls_back_when_offline(network_first_proxy, origin):
    await network_first_proxy.start()
    origin.offline = True

    response = await network_first_proxy.intercept(_get("/a.js"))

    assert response.content == b"console.log('a');"


@pytest.mark.asyncio
async def test_network_first_falls_back_on_error_status(network_first_proxy, origin):
    await network_first_proxy.start()
    origin.missing.add("/a.js")

    response = await network_first_proxy.intercept(_get("/a.js"))

    assert response.status_code == 200
    assert response.content == b"console.log('a');"


@pytest.mark.asyncio
async def test_network_first_offline_miss_fails_silently(network_first_proxy, origin):
    await network_first_proxy.start()
    origin.offline = True

    assert await network_first_proxy.intercept(_get("/img/3.jpg")) is None


# ── Stats ────────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_stats_track_hits_and_misses(proxy, origin):
    origin.assets["/img/1.jpg"] = b"jpeg"
    await proxy.start()

    await proxy.intercept(_get("/"))
    await proxy.intercept(_get("/a.js"))
    await proxy.intercept(_get("/img/1.jpg"))

    stats = await proxy.stats()
    assert stats["name"] == "restaurant-cache"
    assert stats["state"] == "activated"
    assert stats["size"] == 2
    assert stats["hits"] == 2
    assert stats["misses"] == 1
    assert stats["hit_rate"] == 66.7
    assert stats["network_responses"] == 1

    proxy.reset_stats()
    assert (await proxy.stats())["hits"] == 0
