import json
from collections.abc import Callable, Iterator

import httpx
import pytest
from fastapi.testclient import TestClient

from clickdeal_gateway.config import Settings, get_settings
from clickdeal_gateway.main import app
from clickdeal_gateway.notifications import WhatsAppNotifier, get_notifier
from clickdeal_gateway.shopify_client import ShopifyClient, get_shopify_client

API_KEY = "test-api-key"
AUTH_HEADERS = {"Authorization": f"Bearer {API_KEY}"}


class FakeUpstream:
    """httpx.MockTransport handler that records every request it answers."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.responder: Callable[[httpx.Request], httpx.Response] = lambda request: httpx.Response(
            200, json={"data": {}}
        )

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responder(request)

    def client(self) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self))

    def json_bodies(self) -> list[dict]:
        return [json.loads(r.content) for r in self.requests if r.content]


def graphql_response(data: dict) -> httpx.Response:
    return httpx.Response(200, json={"data": data})


def make_settings(**overrides) -> Settings:
    values = {
        "API_KEY": API_KEY,
        "SHOPIFY_STORE_DOMAIN": "clickdeal.test",
        "SHOPIFY_ADMIN_TOKEN": "admin-token",
        "SHOPIFY_STOREFRONT_TOKEN": "storefront-token",
        "WA_TOKEN": "wa-token",
        "WA_PHONE_ID": "555000",
        "WA_RECIPIENTS": "+15550001, +15550002",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def shopify_upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
def whatsapp_upstream() -> FakeUpstream:
    upstream = FakeUpstream()
    upstream.responder = lambda request: httpx.Response(200, json={"messages": [{"id": "wamid.1"}]})
    return upstream


@pytest.fixture
def shopify_client(settings, shopify_upstream) -> ShopifyClient:
    return ShopifyClient(settings, http=shopify_upstream.client())


@pytest.fixture
def notifier(settings, whatsapp_upstream) -> WhatsAppNotifier:
    return WhatsAppNotifier(settings, http=whatsapp_upstream.client())


@pytest.fixture(autouse=True)
def override_dependencies(settings, shopify_client, notifier) -> Iterator[None]:
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_shopify_client] = lambda: shopify_client
    app.dependency_overrides[get_notifier] = lambda: notifier
    yield
    app.dependency_overrides.clear()


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)
