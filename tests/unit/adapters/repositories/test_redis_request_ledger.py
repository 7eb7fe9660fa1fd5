# tests/unit/adapters/repositories/test_redis_request_ledger.py
from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest
from conftest import NAMESPACE

from merge_proxy.adapters.queues.redis_promotion_stream import promotion_stream_key
from merge_proxy.domain.entities.request_record import RequestRecord
from merge_proxy.domain.enums.request_status import RequestStatus
from merge_proxy.domain.exceptions.requests import MalformedRecord

RID = "a" * 64
LEDGER_KEY = f"{NAMESPACE}:ledger:{RID}"


def _record(clock, *, retention_s: int = 3600) -> RequestRecord:
    return RequestRecord.new_queued(
        request_id=RID,
        credential="A",
        lookup_key="123-456",
        retention=timedelta(seconds=retention_s),
        now=clock(),
    )


@pytest.mark.asyncio
async def test_insert_then_get_round_trips_and_sets_ttl(ledger, fake_redis, clock) -> None:
    rec = _record(clock)
    assert await ledger.insert_if_absent(rec) is True

    got = await ledger.get(RID)
    assert got == rec
    ttl = await fake_redis.ttl(LEDGER_KEY)
    assert 3590 <= ttl <= 3600


@pytest.mark.asyncio
async def test_insert_publishes_exactly_one_trigger(ledger, fake_redis, clock) -> None:
    rec = _record(clock)
    assert await ledger.insert_if_absent(rec) is True
    assert await ledger.insert_if_absent(rec) is False
    assert await fake_redis.xlen(promotion_stream_key(NAMESPACE)) == 1


@pytest.mark.asyncio
async def test_concurrent_inserts_have_a_single_winner(ledger, fake_redis, clock) -> None:
    rec = _record(clock)
    outcomes = await asyncio.gather(*(ledger.insert_if_absent(rec) for _ in range(20)))
    assert outcomes.count(True) == 1
    assert await fake_redis.xlen(promotion_stream_key(NAMESPACE)) == 1


@pytest.mark.asyncio
async def test_get_returns_none_for_absent_and_expired(ledger, clock) -> None:
    assert await ledger.get(RID) is None

    await ledger.insert_if_absent(_record(clock, retention_s=60))
    clock.advance(60)
    assert await ledger.get(RID) is None


@pytest.mark.asyncio
async def test_expired_record_is_replaced_on_insert(ledger, fake_redis, clock) -> None:
    await ledger.insert_if_absent(_record(clock, retention_s=60))
    clock.advance(61)

    fresh = _record(clock)
    assert await ledger.insert_if_absent(fresh) is True
    assert await ledger.get(RID) == fresh
    assert await fake_redis.xlen(promotion_stream_key(NAMESPACE)) == 2


@pytest.mark.asyncio
async def test_malformed_value_raises_on_get_and_is_replaced_on_insert(
    ledger, fake_redis, clock
) -> None:
    await fake_redis.set(LEDGER_KEY, "{not json")
    with pytest.raises(MalformedRecord):
        await ledger.get(RID)
    assert await ledger.update_status(RID, RequestStatus.IN_PROGRESS) is False

    assert await ledger.insert_if_absent(_record(clock)) is True
    assert (await ledger.get(RID)).status is RequestStatus.QUEUED


@pytest.mark.asyncio
async def test_update_status_moves_forward_only(ledger, clock) -> None:
    await ledger.insert_if_absent(_record(clock))

    assert await ledger.update_status(RID, RequestStatus.IN_PROGRESS) is True
    assert await ledger.update_status(RID, RequestStatus.IN_PROGRESS) is False
    assert await ledger.update_status(RID, RequestStatus.QUEUED) is False

    ref = f"responses/{RID}.html"
    assert await ledger.update_status(RID, RequestStatus.COMPLETE, result_ref=ref) is True
    got = await ledger.get(RID)
    assert got.status is RequestStatus.COMPLETE
    assert got.result_ref == ref


@pytest.mark.asyncio
async def test_update_to_complete_without_ref_is_rejected(ledger, clock) -> None:
    await ledger.insert_if_absent(_record(clock))
    assert await ledger.update_status(RID, RequestStatus.COMPLETE) is False
    assert (await ledger.get(RID)).status is RequestStatus.QUEUED


@pytest.mark.asyncio
async def test_update_preserves_remaining_ttl(ledger, fake_redis, clock) -> None:
    await ledger.insert_if_absent(_record(clock, retention_s=120))
    await fake_redis.expire(LEDGER_KEY, 50)

    assert await ledger.update_status(RID, RequestStatus.IN_PROGRESS) is True
    assert 0 < await fake_redis.ttl(LEDGER_KEY) <= 50


@pytest.mark.asyncio
async def test_update_on_absent_or_expired_record_returns_false(ledger, clock) -> None:
    assert await ledger.update_status(RID, RequestStatus.IN_PROGRESS) is False

    await ledger.insert_if_absent(_record(clock, retention_s=10))
    clock.advance(11)
    assert await ledger.update_status(RID, RequestStatus.IN_PROGRESS) is False


@pytest.mark.asyncio
async def test_delete_is_idempotent(ledger, clock) -> None:
    await ledger.insert_if_absent(_record(clock))
    await ledger.delete(RID)
    await ledger.delete(RID)
    assert await ledger.get(RID) is None
