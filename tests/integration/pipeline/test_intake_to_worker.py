# tests/integration/pipeline/test_intake_to_worker.py
from __future__ import annotations

import asyncio

import httpx
import pytest
from conftest import ScriptedGateway

from merge_proxy.adapters.queues.redis_promotion_stream import RedisPromotionStream
from merge_proxy.application.use_cases.requests.promote_request import PromoteRequest
from merge_proxy.main import create_app
from merge_proxy.tasks.worker import PromotionWorker


async def _worker(
    app, fake_redis, settings, gateway, *, timeout_s=1.0
) -> tuple[PromotionWorker, PromoteRequest]:
    stream = RedisPromotionStream(
        fake_redis,
        namespace=settings.key_namespace,
        group=settings.promotion_group,
        consumer="pipeline-test",
    )
    promote = PromoteRequest(
        app.state.ledger,
        app.state.results,
        gateway,
        timeout_s=timeout_s,
        budget_s=timeout_s + 1.0,
    )
    await stream.ensure_group()
    return PromotionWorker(stream, promote, block_ms=1), promote


@pytest.mark.asyncio
async def test_many_identical_submissions_produce_one_upstream_call(settings, fake_redis) -> None:
    app = create_app(settings, redis=fake_redis)
    gateway = ScriptedGateway("<html>OK</html>")
    transport = httpx.ASGITransport(app=app)
    async with app.router.lifespan_context(app), httpx.AsyncClient(
        transport=transport, base_url="http://test"
    ) as http:
        body = {"credential": "A", "lookupKey": "123-456"}
        responses = await asyncio.gather(*(http.post("/v1/requests", json=body) for _ in range(10)))
        assert {r.status_code for r in responses} == {202}

        worker, _ = await _worker(app, fake_redis, settings, gateway)
        await worker.drain_pending()
        assert await worker.run_once() == 1
        assert await worker.run_once() == 0
        assert len(gateway.calls) == 1

        done = await http.post("/v1/requests", json=body)
        assert done.status_code == 200
        assert done.text == "<html>OK</html>"


@pytest.mark.asyncio
async def test_timed_out_lookup_is_requeued_by_next_submission(settings, fake_redis) -> None:
    app = create_app(settings, redis=fake_redis)
    gateway = ScriptedGateway("<html>late</html>")
    gateway.release = asyncio.Event()
    transport = httpx.ASGITransport(app=app)
    async with app.router.lifespan_context(app), httpx.AsyncClient(
        transport=transport, base_url="http://test"
    ) as http:
        body = {"credential": "A", "lookupKey": "123-456"}
        await http.post("/v1/requests", json=body)

        worker, promote = await _worker(app, fake_redis, settings, gateway, timeout_s=0.05)
        await worker.drain_pending()
        assert await worker.run_once() == 1

        again = await http.post("/v1/requests", json=body)
        assert again.status_code == 202
        assert again.json()["message"] == "Request has been queued for processing"

        gateway.release.set()
        await promote.wait_stragglers()
        assert gateway.finished == 1
