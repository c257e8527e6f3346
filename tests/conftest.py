from __future__ import annotations

from collections.abc import Callable

import httpx
import pytest
from fastapi.testclient import TestClient

from relay.config import Settings
from relay.domain.credentials import CredentialStore
from relay.main import create_app
from relay.service.gateway import AssetGateway

UPLOAD_URL = "https://upload.test/Data/Upload.ashx"
DELIVERY_URL = "https://delivery.test/v1/asset/"


class FakeClock:
    def __init__(self, t: float = 1_700_000_000.0) -> None:
        self.t = t

    def __call__(self) -> float:  # acts like time.time / time.monotonic
        return self.t

    def advance(self, dt: float) -> None:
        self.t += dt


class Upstream:
    """Records requests and answers them through a swappable handler."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.handler: Callable[[httpx.Request], httpx.Response] = self.default

    @staticmethod
    def default(request: httpx.Request) -> httpx.Response:
        if request.url.host == "upload.test":
            return httpx.Response(200, text="987654")
        if request.url.host == "delivery.test":
            return httpx.Response(200, content=b"asset:" + request.url.params["id"].encode())
        return httpx.Response(200, content=b"\x00\x01remote-bytes")

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.handler(request)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> CredentialStore:
    return CredentialStore(ttl_seconds=1800, clock=clock)


@pytest.fixture
def upstream() -> Upstream:
    return Upstream()


@pytest.fixture
def gateway(upstream: Upstream) -> AssetGateway:
    client = httpx.AsyncClient(transport=httpx.MockTransport(upstream))
    return AssetGateway(upload_url=UPLOAD_URL, asset_delivery_url=DELIVERY_URL, client=client)


@pytest.fixture
def settings() -> Settings:
    return Settings(port=10000, version="1.0.0", rate_limit_max=0)


@pytest.fixture
def client(settings: Settings, store: CredentialStore, gateway: AssetGateway):
    app = create_app(settings, store=store, gateway=gateway)
    with TestClient(app) as c:
        yield c


@pytest.fixture
def api_key(client: TestClient) -> str:
    return client.post("/api/key/generate", json={"username": "tester"}).json()["key"]
