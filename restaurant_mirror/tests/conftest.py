from __future__ import annotations

import copy
import json

import httpx
import pytest

from restaurant_mirror.coordinator.config import CoordinatorConfig
from restaurant_mirror.records.backends import InMemoryKeyValueStore
from restaurant_mirror.records.store import RecordStore

BASE_URL = "http://data.test"

SAMPLE_RESTAURANTS = [
    {
        "id": 1,
        "name": "Mission Chinese Food",
        "neighborhood": "Manhattan",
        "photograph": "1",
        "address": "171 E Broadway, New York, NY 10002",
        "latlng": {"lat": 40.713829, "lng": -73.989667},
        "cuisine_type": "Asian",
    },
    {
        "id": 2,
        "name": "Emily",
        "neighborhood": "Brooklyn",
        "photograph": "2",
        "address": "919 Fulton St, Brooklyn, NY 11238",
        "latlng": {"lat": 40.683555, "lng": -73.966393},
        "cuisine_type": "Pizza",
    },
    {
        "id": 3,
        "name": "Kang Ho Dong Baekjeong",
        "neighborhood": "Manhattan",
        "latlng": {"lat": 40.747143, "lng": -73.985414},
        "cuisine_type": "Asian",
    },
    {
        "id": 4,
        "name": "Katz's Delicatessen",
        "neighborhood": "Manhattan",
        "photograph": "4",
        "latlng": {"lat": 40.722216, "lng": -73.987501},
        "cuisine_type": "American",
    },
    {
        "id": 5,
        "name": "Roberta's Pizza",
        "neighborhood": "Brooklyn",
        "photograph": "5",
        "latlng": {"lat": 40.705089, "lng": -73.933585},
        "cuisine_type": "Pizza",
    },
    {
        "id": 9,
        "name": "Mu Ramen",
        "neighborhood": "Queens",
        "photograph": "9",
        "latlng": {"lat": 40.743797, "lng": -73.950652},
        "cuisine_type": "Asian",
    },
    {
        "id": 10,
        "name": "Casa Enrique",
        "neighborhood": "Queens",
        "latlng": {"lat": 40.743394, "lng": -73.954235},
        "cuisine_type": "Mexican",
    },
]


class FakeEndpoint:
    """MockTransport handler standing in for the remote restaurant endpoint."""

    def __init__(self, payload=None) -> None:
        self.status_code = 200
        self.body: str | None = None
        self.payload = copy.deepcopy(SAMPLE_RESTAURANTS if payload is None else payload)
        self.fail_transport = False
        self.calls: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        if self.fail_transport:
            raise httpx.ConnectError("connection refused", request=request)
        body = self.body if self.body is not None else json.dumps(self.payload)
        return httpx.Response(self.status_code, text=body, headers={"content-type": "application/json"})


class FakeOrigin:
    """MockTransport handler standing in for the static asset server."""

    def __init__(self, assets: dict[str, bytes] | None = None) -> None:
        self.assets = assets if assets is not None else {
            "/": b"<html>home</html>",
            "/a.js": b"console.log('a');",
        }
        self.missing: set[str] = set()
        self.unreachable: set[str] = set()
        self.offline = False
        self.calls: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        path = request.url.path
        if self.offline or path in self.unreachable:
            raise httpx.ConnectError("origin unreachable", request=request)
        if path in self.missing or path not in self.assets:
            return httpx.Response(404, text="not found")
        return httpx.Response(200, content=self.assets[path], headers={"content-type": "text/plain"})


class Switch:
    """Connectivity predicate whose answer a test can flip."""

    def __init__(self, online: bool = True) -> None:
        self.online = online
        self.checks = 0

    def __call__(self) -> bool:
        self.checks += 1
        return self.online


@pytest.fixture
def sample_payload() -> list[dict]:
    return copy.deepcopy(SAMPLE_RESTAURANTS)


@pytest.fixture
def endpoint() -> FakeEndpoint:
    return FakeEndpoint()


@pytest.fixture
def data_client(endpoint: FakeEndpoint) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(endpoint))


@pytest.fixture
def origin() -> FakeOrigin:
    return FakeOrigin()


@pytest.fixture
def asset_client(origin: FakeOrigin) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(origin))


@pytest.fixture
def memory_backend() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def store(memory_backend: InMemoryKeyValueStore) -> RecordStore:
    return RecordStore(memory_backend)


@pytest.fixture
def switch() -> Switch:
    return Switch(online=True)


@pytest.fixture
def coordinator_config() -> CoordinatorConfig:
    return CoordinatorConfig(base_url=BASE_URL, request_timeout=None, force_offline=False)
