# tests/integration/routers/test_health_and_metrics.py
from __future__ import annotations

import httpx
import pytest
from fastapi import FastAPI

from merge_proxy.adapters.routers import health_router, metrics_router
from merge_proxy.main import create_app


class _DownProbe:
    async def redis(self) -> tuple[bool, str | None]:
        return False, "connection refused"


def _client(app: FastAPI) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test")


@pytest.mark.asyncio
async def test_liveness_and_readiness_with_redis(settings, fake_redis) -> None:
    app = create_app(settings, redis=fake_redis)
    async with app.router.lifespan_context(app), _client(app) as http:
        live = await http.get("/healthz")
        assert live.status_code == 200
        assert live.json() == {"status": "ok"}

        ready = await http.get("/readyz")
        assert ready.status_code == 200
        body = ready.json()
        assert body["status"] == "ok"
        assert body["checks"][0]["name"] == "redis"
        assert body["checks"][0]["status"] == "ok"


@pytest.mark.asyncio
async def test_readiness_degrades_when_probe_fails() -> None:
    app = FastAPI()
    app.include_router(health_router)
    app.state.health_probe = _DownProbe()
    async with _client(app) as http:
        resp = await http.get("/readyz")
    assert resp.status_code == 503
    assert resp.json()["status"] == "degraded"
    assert resp.json()["checks"][0]["detail"] == "connection refused"


@pytest.mark.asyncio
async def test_readiness_without_probe_is_degraded() -> None:
    app = FastAPI()
    app.include_router(health_router)
    async with _client(app) as http:
        resp = await http.get("/readyz")
    assert resp.status_code == 503


@pytest.mark.asyncio
async def test_metrics_exposes_pipeline_collectors() -> None:
    app = FastAPI()
    app.include_router(metrics_router)
    async with _client(app) as http:
        resp = await http.get("/metrics")
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/plain")
    text = resp.text
    assert "merge_proxy_intake_outcomes_total" in text
    assert "merge_proxy_promotion_outcomes_total" in text
    assert "merge_proxy_upstream_latency_seconds" in text
