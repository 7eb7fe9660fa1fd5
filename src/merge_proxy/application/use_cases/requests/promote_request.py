# src/merge_proxy/application/use_cases/requests/promote_request.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""
Use Case: Promote Request (promotion worker)

Purpose:
    Move a freshly queued record to ``in-progress``, perform the single
    upstream call, and leave the ledger either ``complete`` (result stored)
    or absent (re-queueable by the next submission).

Race:
    The upstream call and a timeout timer run as two tasks sharing a
    :class:`CompletionFlag`. Whichever claims first performs its terminal
    action; the other is suppressed. A timed-out upstream call is not
    interrupted: it keeps running as a straggler and its result is discarded
    when it finds the flag already claimed.

Idempotency:
    Triggers are delivered at-least-once. Only a ``queued`` record can be
    moved to ``in-progress`` (forward-only compare-and-set), so a duplicate
    delivery abandons without touching upstream.

Layer: application/use_cases
"""

from __future__ import annotations

import asyncio
from contextlib import suppress
from dataclasses import dataclass

from merge_proxy.application.schemas.dto.requests import PromotionOutcome
from merge_proxy.application.services.completion_flag import Claimant, CompletionFlag
from merge_proxy.domain.entities.request_record import RequestRecord
from merge_proxy.domain.enums.request_status import RequestStatus
from merge_proxy.domain.exceptions.requests import StoreUnavailable
from merge_proxy.domain.interfaces.gateways.upstream_gateway import UpstreamGatewayProtocol
from merge_proxy.domain.interfaces.repositories.request_ledger import RequestLedgerProtocol
from merge_proxy.domain.interfaces.repositories.result_store import ResultStoreProtocol
from merge_proxy.domain.services.clock import Clock, utc_now
from merge_proxy.domain.services.request_identity import result_ref_for
from merge_proxy.infrastructure.logging.logger import get_json_logger
from merge_proxy.infrastructure.observability.metrics import get_promotion_outcomes_total

logger = get_json_logger(__name__)


def _count(outcome: str) -> None:
    with suppress(Exception):
        get_promotion_outcomes_total().labels(outcome=outcome).inc()


@dataclass(frozen=True, slots=True)
class _UpstreamResult:
    body: str = ""
    error: BaseException | None = None


class PromoteRequest:
    """Promotion use case.

    Args:
        ledger: Request ledger.
        results: Result store.
        gateway: Upstream lookup gateway.
        timeout_s: Time the upstream call may take before the record is abandoned.
        budget_s: Hard execution budget for one promotion including cleanup.
        clock: Optional UTC clock (tests).
    """

    def __init__(
        self,
        ledger: RequestLedgerProtocol,
        results: ResultStoreProtocol,
        gateway: UpstreamGatewayProtocol,
        *,
        timeout_s: float,
        budget_s: float,
        clock: Clock | None = None,
    ) -> None:
        if timeout_s >= budget_s:
            raise ValueError("timeout_s must be strictly less than budget_s")
        self._ledger = ledger
        self._results = results
        self._gateway = gateway
        self._timeout_s = timeout_s
        self._budget_s = budget_s
        self._clock: Clock = clock or utc_now
        self._stragglers: set[asyncio.Task[_UpstreamResult | None]] = set()

    @property
    def straggler_count(self) -> int:
        """Return the number of timed-out upstream calls still running."""
        return len(self._stragglers)

    async def execute(self, record: RequestRecord | None) -> PromotionOutcome:
        """Promote one triggered record.

        Args:
            record: The record carried by the trigger, or ``None`` if the
                trigger could not be decoded.

        Returns:
            PromotionOutcome: Outcome of the attempt; ``DEFERRED`` when the
            store failed before the record was started. Upstream and store
            failures are logged rather than raised.
        """
        try:
            async with asyncio.timeout(self._budget_s):
                outcome = await self._promote(record)
        except TimeoutError:
            logger.error(
                "promotion.budget_exceeded",
                extra={"budget_s": self._budget_s},
            )
            _count("budget_exceeded")
            return PromotionOutcome.ABANDONED
        _count(outcome.value)
        return outcome

    async def wait_stragglers(self) -> None:
        """Wait for every timed-out upstream call to finish."""
        if self._stragglers:
            await asyncio.gather(*self._stragglers, return_exceptions=True)

    async def aclose(self) -> None:
        """Cancel stragglers still running (shutdown)."""
        for task in list(self._stragglers):
            task.cancel()
        await self.wait_stragglers()

    # ------------------------------------------------------------------ #
    # Steps
    # ------------------------------------------------------------------ #
    async def _promote(self, record: RequestRecord | None) -> PromotionOutcome:
        if record is None or record.status is not RequestStatus.QUEUED:
            logger.info(
                "promotion.skipped",
                extra={"status": record.status.value if record else None},
            )
            return PromotionOutcome.SKIPPED

        request_id = record.request_id
        try:
            started = await self._ledger.update_status(request_id, RequestStatus.IN_PROGRESS)
        except StoreUnavailable:
            # Record untouched; leave the trigger pending for redelivery.
            logger.exception("promotion.start_failed", extra={"request_id": request_id})
            return PromotionOutcome.DEFERRED
        if not started:
            logger.info("promotion.not_startable", extra={"request_id": request_id})
            return PromotionOutcome.ABANDONED

        logger.info("promotion.started", extra={"request_id": request_id})
        flag = CompletionFlag()
        upstream = asyncio.create_task(self._call_upstream(record, flag))
        timer = asyncio.create_task(self._run_timer(flag))
        try:
            winner = await flag.wait()
        except BaseException:
            # Cancelled (budget or shutdown) before anyone claimed.
            timer.cancel()
            if not flag.claimed:
                upstream.cancel()
            raise

        if winner is Claimant.TIMEOUT:
            self._stragglers.add(upstream)
            upstream.add_done_callback(self._stragglers.discard)
            logger.warning(
                "promotion.timed_out",
                extra={"request_id": request_id, "timeout_s": self._timeout_s},
            )
            await self._delete_record(request_id)
            return PromotionOutcome.TIMED_OUT

        timer.cancel()
        result = await upstream
        if result is None or result.error is not None:
            error = result.error if result is not None else None
            logger.warning(
                "promotion.upstream_failed",
                extra={"request_id": request_id, "error": type(error).__name__},
            )
            await self._delete_record(request_id)
            return PromotionOutcome.FAILED
        return await self._complete(record, result.body)

    async def _call_upstream(
        self, record: RequestRecord, flag: CompletionFlag
    ) -> _UpstreamResult | None:
        try:
            body = await self._gateway.fetch(record.credential, record.lookup_key)
            result = _UpstreamResult(body=body)
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # noqa: BLE001 - any failure aborts the promotion
            result = _UpstreamResult(error=exc)

        if not flag.claim(Claimant.UPSTREAM):
            logger.info(
                "promotion.straggler_discarded",
                extra={"request_id": record.request_id, "failed": result.error is not None},
            )
            return None
        return result

    async def _run_timer(self, flag: CompletionFlag) -> None:
        await asyncio.sleep(self._timeout_s)
        flag.claim(Claimant.TIMEOUT)

    async def _complete(self, record: RequestRecord, body: str) -> PromotionOutcome:
        request_id = record.request_id
        result_ref = result_ref_for(request_id)
        ttl = record.remaining_ttl_seconds(self._clock())
        try:
            await self._results.put(result_ref, body.encode("utf-8"), ttl_seconds=ttl)
        except StoreUnavailable:
            logger.exception("promotion.store_failed", extra={"request_id": request_id})
            await self._delete_record(request_id)
            return PromotionOutcome.FAILED

        try:
            applied = await self._ledger.update_status(
                request_id, RequestStatus.COMPLETE, result_ref=result_ref
            )
        except StoreUnavailable:
            logger.exception("promotion.complete_failed", extra={"request_id": request_id})
            await self._delete_blob(result_ref)
            await self._delete_record(request_id)
            return PromotionOutcome.FAILED

        if not applied:
            # Record vanished (expired or deleted); its blob has no owner.
            logger.warning("promotion.record_vanished", extra={"request_id": request_id})
            await self._delete_blob(result_ref)
            return PromotionOutcome.ABANDONED

        logger.info(
            "promotion.completed",
            extra={"request_id": request_id, "result_ref": result_ref, "bytes": len(body)},
        )
        return PromotionOutcome.COMPLETED

    # ------------------------------------------------------------------ #
    # Cleanup (failures are logged; the retention window is the backstop)
    # ------------------------------------------------------------------ #
    async def _delete_record(self, request_id: str) -> None:
        try:
            await self._ledger.delete(request_id)
        except StoreUnavailable:
            logger.exception("promotion.cleanup_failed", extra={"request_id": request_id})

    async def _delete_blob(self, result_ref: str) -> None:
        try:
            await self._results.delete(result_ref)
        except StoreUnavailable:
            logger.exception("promotion.blob_cleanup_failed", extra={"result_ref": result_ref})
