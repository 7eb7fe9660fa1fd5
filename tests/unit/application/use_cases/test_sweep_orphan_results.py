# tests/unit/application/use_cases/test_sweep_orphan_results.py
from __future__ import annotations

from datetime import timedelta

import pytest
from conftest import NAMESPACE

from merge_proxy.application.use_cases.requests.submit_request import SubmitRequest
from merge_proxy.application.use_cases.requests.sweep_orphan_results import SweepOrphanResults
from merge_proxy.domain.entities.request_record import RequestRecord
from merge_proxy.domain.enums.request_status import RequestStatus
from merge_proxy.domain.services.request_identity import compute_request_id, result_ref_for


async def _insert(ledger, clock, lookup_key: str) -> str:
    rid = compute_request_id("A", lookup_key)
    await ledger.insert_if_absent(
        RequestRecord.new_queued(
            request_id=rid,
            credential="A",
            lookup_key=lookup_key,
            retention=timedelta(hours=1),
            now=clock(),
        )
    )
    return rid


@pytest.mark.asyncio
async def test_sweep_keeps_owned_blobs_and_deletes_orphans(
    ledger, results, clock, fake_redis
) -> None:
    complete = await _insert(ledger, clock, "complete")
    await ledger.update_status(complete, RequestStatus.IN_PROGRESS)
    await ledger.update_status(
        complete, RequestStatus.COMPLETE, result_ref=result_ref_for(complete)
    )

    running = await _insert(ledger, clock, "running")
    await ledger.update_status(running, RequestStatus.IN_PROGRESS)

    queued = await _insert(ledger, clock, "queued")
    gone = compute_request_id("A", "gone")
    broken = compute_request_id("A", "broken")
    await fake_redis.set(f"{NAMESPACE}:ledger:{broken}", "###")

    for rid in (complete, running, queued, gone, broken):
        await results.put(result_ref_for(rid), b"x", ttl_seconds=60)
    await results.put("stray.txt", b"x", ttl_seconds=60)

    report = await SweepOrphanResults(ledger, results).execute()

    assert report.scanned == 6
    assert report.deleted == 4
    remaining = sorted([k async for k in results.iter_keys()])
    assert remaining == sorted([result_ref_for(complete), result_ref_for(running)])


@pytest.mark.asyncio
async def test_sweep_on_empty_store(ledger, results) -> None:
    report = await SweepOrphanResults(ledger, results).execute()
    assert (report.scanned, report.deleted) == (0, 0)


class _LedgerWithCycleDuringRecheck:
    """Ledger whose second read of ``request_id`` races a whole new cycle.

    The read returns what it saw before the cycle ran, as it would if the
    new cycle landed just after the sweep looked.
    """

    def __init__(self, inner, results, clock, request_id: str) -> None:
        self._inner = inner
        self._results = results
        self._clock = clock
        self._request_id = request_id
        self._reads = 0

    def __getattr__(self, name):
        return getattr(self._inner, name)

    async def get(self, request_id: str):
        record = await self._inner.get(request_id)
        if request_id != self._request_id:
            return record
        self._reads += 1
        if self._reads == 2:
            await self._run_cycle(request_id)
        return record

    async def _run_cycle(self, request_id: str) -> None:
        ref = result_ref_for(request_id)
        await self._inner.insert_if_absent(
            RequestRecord.new_queued(
                request_id=request_id,
                credential="A",
                lookup_key="123-456",
                retention=timedelta(hours=1),
                now=self._clock(),
            )
        )
        await self._inner.update_status(request_id, RequestStatus.IN_PROGRESS)
        await self._results.put(ref, b"<html>fresh</html>", ttl_seconds=60)
        await self._inner.update_status(request_id, RequestStatus.COMPLETE, result_ref=ref)


@pytest.mark.asyncio
async def test_sweep_keeps_blob_rewritten_by_a_new_cycle(ledger, results, clock) -> None:
    rid = compute_request_id("A", "123-456")
    ref = result_ref_for(rid)
    await results.put(ref, b"<html>stale</html>", ttl_seconds=60)
    racing = _LedgerWithCycleDuringRecheck(ledger, results, clock, rid)

    report = await SweepOrphanResults(racing, results).execute()

    assert (report.scanned, report.deleted) == (1, 0)
    assert await results.get(ref) == b"<html>fresh</html>"
    submit = SubmitRequest(ledger, results, retention_seconds=3600, clock=clock)
    done = await submit.execute("A", "123-456")
    assert done.status is RequestStatus.COMPLETE
    assert done.body == b"<html>fresh</html>"
