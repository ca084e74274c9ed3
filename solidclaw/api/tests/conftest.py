"""
Shared fixtures for the API test suite.

The app runs over a MemoryStore through httpx's ASGITransport; the model
proxy's upstream is an httpx.MockTransport that records what it received.
"""

import base64

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport

from solidclaw.api import create_app
from solidclaw.config import Config
from solidclaw.store import MemoryStore

ADMIN_TOKEN = "admin-secret"
ZERO_KEY = base64.b64encode(bytes(32)).decode()


class Upstream:
    """Records proxied requests and answers with a canned completion."""

    def __init__(self):
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(
            200, json={"id": "cmpl-1", "object": "chat.completion"}, headers={"x-upstream": "1"}
        )


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def upstream():
    return Upstream()


@pytest.fixture
def config(tmp_path):
    return Config(
        master_key=ZERO_KEY,
        admin_token=ADMIN_TOKEN,
        store="memory",
        web_url="http://console.test",
        openclaw_state_dir=str(tmp_path / "openclaw"),
    )


def _app_client(app):
    return httpx.AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


@pytest_asyncio.fixture
async def app(config, store, upstream):
    proxy_client = httpx.AsyncClient(transport=httpx.MockTransport(upstream))
    application = create_app(config, store=store, http_client=proxy_client)
    yield application
    await proxy_client.aclose()


@pytest_asyncio.fixture
async def client(app):
    async with _app_client(app) as c:
        yield c


@pytest.fixture
def admin():
    return {"Authorization": f"Bearer {ADMIN_TOKEN}"}


@pytest_asyncio.fixture
async def access_token(client, admin):
    """Run the device flow end to end and return a fresh access token."""
    start = (await client.post("/device/start", json={"scopes": ["models"]})).json()
    await client.post("/device/approve", json={"user_code": start["user_code"]}, headers=admin)
    token = (await client.post("/device/poll", json={"device_code": start["device_code"]})).json()
    return token["access_token"]


@pytest.fixture
def bearer(access_token):
    return {"Authorization": f"Bearer {access_token}"}
