"""
MRMS proxy test configuration

Fixtures:
- fake_clock: manually advanced clock for cache expiry
- upstream: mock upstream server with a call counter
- proxy: MrmsProxy wired to the mock upstream
"""

import json
import sys
from pathlib import Path
from typing import Callable, List, Optional

import httpx
import pytest
import pytest_asyncio

# Add backend directory to the Python path
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

from mrms_proxy import MrmsProxy, ProxyConfig, ResponseCache

EXPORT_BASE = "https://mapservices.example.gov/arcgis/rest/services/radar/MapServer/export"
METADATA_URL = "https://mapservices.example.gov/arcgis/rest/services/radar/ImageServer?f=json"
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeUpstream:
    """
    Records requests and answers them with a configurable handler.

    The default handler serves PNG bytes for exports and an empty
    metadata document for everything else.
    """

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.handler: Optional[Callable[[httpx.Request], httpx.Response]] = None

    @property
    def calls(self) -> int:
        return len(self.requests)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.handler is not None:
            return self.handler(request)
        if request.url.path.endswith("/export"):
            return httpx.Response(200, content=PNG_BYTES, headers={"content-type": "image/png"})
        return httpx.Response(200, content=json.dumps({}).encode())

    def respond_json(self, document, status: int = 200) -> None:
        self.handler = lambda request: httpx.Response(status, json=document)


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def upstream():
    return FakeUpstream()


@pytest.fixture
def config():
    return ProxyConfig(export_base=EXPORT_BASE)


@pytest.fixture
def cache(fake_clock):
    return ResponseCache(max_entries=500, default_ttl=120.0, clock=fake_clock)


@pytest_asyncio.fixture
async def proxy(config, cache, upstream):
    client = httpx.AsyncClient(transport=httpx.MockTransport(upstream))
    yield MrmsProxy(config, cache=cache, http_client=client)
    await client.aclose()
