# tests/unit/dependencies/test_bootstrap.py
from __future__ import annotations

import pytest
from fastapi import FastAPI

from merge_proxy.adapters.repositories.redis_request_ledger import RedisRequestLedger
from merge_proxy.adapters.repositories.redis_result_store import RedisResultStore
from merge_proxy.dependencies.core.bootstrap import bootstrap


@pytest.mark.asyncio
async def test_bootstrap_publishes_state_and_keeps_injected_client(settings, fake_redis) -> None:
    app = FastAPI()
    async with bootstrap(app, settings=settings, redis=fake_redis) as state:
        assert state.redis is fake_redis
        assert isinstance(app.state.ledger, RedisRequestLedger)
        assert isinstance(app.state.results, RedisResultStore)
        assert app.state.settings is settings
        assert await app.state.health_probe.redis() == (True, None)

    # Injected clients are owned by the caller and stay usable.
    assert await fake_redis.ping()
