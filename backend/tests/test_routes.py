"""
HTTP surface tests

Runs the FastAPI app in-process with a mock upstream.

Run:
    cd backend
    pytest tests/test_routes.py -v
"""

import asyncio

import httpx
import pytest
from fastapi.testclient import TestClient

from main import create_app
from mrms_proxy import MrmsProxy, ProxyConfig
from conftest import EXPORT_BASE, METADATA_URL, PNG_BYTES


@pytest.fixture
def client(proxy):
    return TestClient(create_app(proxy))


class TestExportRoute:
    """GET /api/mrms/export"""

    def test_miss_then_hit(self, client, upstream):
        url = "/api/mrms/export?bbox=-100,30,-90,40&size=256,256"

        first = client.get(url)
        second = client.get(url)

        assert first.status_code == 200
        assert first.content == PNG_BYTES
        assert first.headers["content-type"] == "image/png"
        assert first.headers["x-cache"] == "MISS"
        assert first.headers["cache-control"] == "public, max-age=60"

        assert second.status_code == 200
        assert second.content == PNG_BYTES
        assert second.headers["x-cache"] == "HIT"
        assert second.headers["cache-control"] == "public, max-age=60"
        assert upstream.calls == 1

    def test_unconfigured_returns_500(self, cache, upstream):
        transport_client = httpx.AsyncClient(transport=httpx.MockTransport(upstream))
        proxy = MrmsProxy(ProxyConfig(), cache=cache, http_client=transport_client)

        response = TestClient(create_app(proxy)).get("/api/mrms/export?bbox=1,2,3,4")

        assert response.status_code == 500
        assert "not configured" in response.json()["error"]
        assert upstream.calls == 0

    def test_upstream_failure_returns_502(self, client, upstream):
        upstream.handler = lambda request: httpx.Response(404, text="no such layer")

        response = client.get("/api/mrms/export?bbox=1,2,3,4")

        assert response.status_code == 502
        assert response.json() == {
            "error": "Upstream failed",
            "status": 404,
            "body": "no such layer",
        }

    def test_transport_failure_returns_500(self, client, upstream):
        def timeout(request):
            raise httpx.ConnectTimeout("timed out", request=request)

        upstream.handler = timeout

        response = client.get("/api/mrms/export?bbox=1,2,3,4")

        assert response.status_code == 500
        assert "error" in response.json()


class TestTimesRoute:
    """GET /api/mrms/times"""

    def test_times_json(self, client, upstream):
        upstream.respond_json({"timeInfo": {"timeValues": ["1700000000"]}})

        response = client.get("/api/mrms/times")

        assert response.status_code == 200
        body = response.json()
        assert body["source"] == METADATA_URL
        assert body["times"] == ["2023-11-14T22:13:20.000Z"]
        assert set(body) == {"source", "fetchedAt", "times"}

    def test_upstream_failure_returns_502(self, client, upstream):
        upstream.respond_json({}, status=500)

        response = client.get("/api/mrms/times")

        assert response.status_code == 502
        assert response.json()["status"] == 500

    def test_unconfigured_returns_500(self, cache, upstream):
        transport_client = httpx.AsyncClient(transport=httpx.MockTransport(upstream))
        proxy = MrmsProxy(ProxyConfig(), cache=cache, http_client=transport_client)

        response = TestClient(create_app(proxy)).get("/api/mrms/times")

        assert response.status_code == 500
        assert set(response.json()) == {"error"}
        assert "not configured" in response.json()["error"]
        assert upstream.calls == 0


class TestAppConfiguration:
    """Building the app from the environment"""

    def test_reads_upstream_from_env_file(self, tmp_path, monkeypatch):
        for name in ("UPSTREAM_EXPORT_BASE", "UPSTREAM_METADATA_URL"):
            # setenv then delenv so the variable is removed again after the test
            monkeypatch.setenv(name, "")
            monkeypatch.delenv(name)
        env_file = tmp_path / ".env"
        env_file.write_text(f"UPSTREAM_EXPORT_BASE={EXPORT_BASE}\n")

        app = create_app(env_file=str(env_file))
        proxy = app.state.proxy
        asyncio.run(proxy.aclose())

        assert proxy.config.export_base == EXPORT_BASE
        assert proxy.config.metadata_url == METADATA_URL

    def test_process_environment_wins_over_env_file(self, tmp_path, monkeypatch):
        monkeypatch.setenv("UPSTREAM_EXPORT_BASE", "https://primary.example.gov/MapServer/export")
        env_file = tmp_path / ".env"
        env_file.write_text(f"UPSTREAM_EXPORT_BASE={EXPORT_BASE}\n")

        app = create_app(env_file=str(env_file))
        asyncio.run(app.state.proxy.aclose())

        assert app.state.proxy.config.export_base == "https://primary.example.gov/MapServer/export"


class TestServiceRoutes:
    """Health, stats and cleanup"""

    def test_health(self, client):
        body = client.get("/health").json()

        assert body["ok"] is True
        assert isinstance(body["ts"], int)

    def test_stats_and_cleanup(self, client, fake_clock):
        client.get("/api/mrms/export?bbox=1,2,3,4")

        stats = client.get("/api/mrms/stats").json()["stats"]
        assert stats["total_entries"] == 1

        fake_clock.advance(200)
        cleanup = client.post("/api/mrms/cleanup").json()
        assert cleanup["removed_entries"] == 1
        assert cleanup["current_stats"]["total_entries"] == 0
