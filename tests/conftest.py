# tests/conftest.py
from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

import fakeredis
import fakeredis.aioredis
import pytest

from merge_proxy.adapters.queues.redis_promotion_stream import RedisPromotionStream
from merge_proxy.adapters.repositories.redis_request_ledger import RedisRequestLedger
from merge_proxy.adapters.repositories.redis_result_store import RedisResultStore
from merge_proxy.config.settings import Settings
from merge_proxy.domain.exceptions.requests import StoreUnavailable

NAMESPACE = "test:merge_proxy"


class FakeClock:
    """Mutable UTC clock for expiry tests."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2025, 1, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


class ScriptedGateway:
    """Upstream gateway double.

    ``outcome`` is either a body string, an exception instance to raise, or a
    callable returning one of those. ``delay_s`` holds the call open, and
    ``release`` (when set) holds it until the event fires.
    """

    def __init__(
        self,
        outcome: str | BaseException | Callable[[], Any] = "<html>OK</html>",
        *,
        delay_s: float = 0.0,
    ) -> None:
        self.outcome = outcome
        self.delay_s = delay_s
        self.release: asyncio.Event | None = None
        self.calls: list[tuple[str, str]] = []
        self.finished = 0

    async def fetch(self, credential: str, lookup_key: str) -> str:
        self.calls.append((credential, lookup_key))
        try:
            if self.delay_s:
                await asyncio.sleep(self.delay_s)
            if self.release is not None:
                await self.release.wait()
            outcome = self.outcome() if callable(self.outcome) else self.outcome
            if isinstance(outcome, BaseException):
                raise outcome
            return outcome
        finally:
            self.finished += 1


class FlakyLedger:
    """Ledger wrapper whose named operations raise ``StoreUnavailable``.

    ``failures`` maps an operation name to how many calls fail before the
    wrapped ledger is used again.
    """

    def __init__(self, inner: RedisRequestLedger, **failures: int) -> None:
        self._inner = inner
        self.failures = failures

    def __getattr__(self, name: str) -> Any:
        attr = getattr(self._inner, name)
        if name not in self.failures:
            return attr

        async def flaky(*args: Any, **kwargs: Any) -> Any:
            if self.failures[name] > 0:
                self.failures[name] -= 1
                raise StoreUnavailable(f"ledger {name} failed", details={"store": "ledger"})
            return await attr(*args, **kwargs)

        return flaky


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_redis() -> fakeredis.aioredis.FakeRedis:
    """Isolated async fake Redis (own server per test)."""
    return fakeredis.aioredis.FakeRedis(server=fakeredis.FakeServer(), decode_responses=True)


@pytest.fixture
def ledger(fake_redis: fakeredis.aioredis.FakeRedis, clock: FakeClock) -> RedisRequestLedger:
    return RedisRequestLedger(fake_redis, namespace=NAMESPACE, stream_maxlen=1000, clock=clock)


@pytest.fixture
def results(fake_redis: fakeredis.aioredis.FakeRedis) -> RedisResultStore:
    return RedisResultStore(fake_redis, namespace=NAMESPACE)


@pytest.fixture
def stream(fake_redis: fakeredis.aioredis.FakeRedis) -> RedisPromotionStream:
    return RedisPromotionStream(
        fake_redis,
        namespace=NAMESPACE,
        group="promotion-workers",
        consumer="consumer-1",
    )


@pytest.fixture
def settings() -> Settings:
    """Settings for in-process tests; never reads a .env file."""
    return Settings(
        _env_file=None,
        ENVIRONMENT="test",
        KEY_NAMESPACE=NAMESPACE,
        UPSTREAM_URL="https://upstream.test/WebID.asp?action=DeaQuery",
    )
