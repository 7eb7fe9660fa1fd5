# src/merge_proxy/tasks/worker.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Promotion worker consumer loop.

Reads promotion triggers from the stream, runs up to ``concurrency``
promotions at once and acknowledges each trigger once its promotion has
resolved (skips and abandons included). A deferred promotion is left
unacknowledged so reclaim redelivers it. On start it first drains its own
pending entries (delivered before a crash, never acknowledged); while running
it periodically reclaims entries other consumers left pending too long.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Sequence

from merge_proxy.application.schemas.dto.requests import PromotionOutcome
from merge_proxy.application.use_cases.requests.promote_request import PromoteRequest
from merge_proxy.domain.exceptions.requests import StoreUnavailable
from merge_proxy.domain.interfaces.queues.promotion_queue import (
    PromotionTrigger,
    PromotionTriggerSource,
)
from merge_proxy.infrastructure.logging.logger import get_json_logger, set_request_context

logger = get_json_logger(__name__)

_READ_ERROR_BACKOFF_S = 1.0


def _deferred(task: asyncio.Task[PromotionOutcome | None]) -> bool:
    return task.done() and not task.cancelled() and task.result() is PromotionOutcome.DEFERRED


class PromotionWorker:
    """Consumer loop driving :class:`PromoteRequest` from a trigger source."""

    def __init__(
        self,
        source: PromotionTriggerSource,
        promote: PromoteRequest,
        *,
        concurrency: int = 16,
        batch_size: int = 16,
        block_ms: int = 5_000,
        reclaim_idle_ms: int = 120_000,
        reclaim_interval_s: float = 30.0,
    ) -> None:
        self._source = source
        self._promote = promote
        self._batch_size = batch_size
        self._block_ms = block_ms
        self._reclaim_idle_ms = reclaim_idle_ms
        self._reclaim_interval_s = reclaim_interval_s
        self._slots = asyncio.Semaphore(concurrency)
        self._inflight: set[asyncio.Task[PromotionOutcome | None]] = set()
        self._last_reclaim = 0.0

    async def run(self, stop: asyncio.Event) -> None:
        """Consume triggers until ``stop`` is set, then drain in-flight work."""
        await self._source.ensure_group()
        await self.drain_pending()
        logger.info("worker.started")
        try:
            while not stop.is_set():
                try:
                    if time.monotonic() - self._last_reclaim >= self._reclaim_interval_s:
                        await self.reclaim()
                    triggers = await self._source.read(
                        count=self._batch_size, block_ms=self._block_ms
                    )
                except StoreUnavailable:
                    logger.exception("worker.read_failed")
                    await asyncio.sleep(_READ_ERROR_BACKOFF_S)
                    continue
                await self._dispatch(triggers)
        finally:
            await self.join()
            logger.info("worker.stopped")

    async def run_once(self) -> int:
        """Read one batch of new triggers and process it to completion.

        Returns:
            Number of triggers handled.
        """
        triggers = await self._source.read(count=self._batch_size, block_ms=self._block_ms)
        await self._dispatch(triggers)
        await self.join()
        return len(triggers)

    async def drain_pending(self) -> int:
        """Process this consumer's unacknowledged triggers until none remain."""
        handled = 0
        while True:
            triggers = await self._source.read(
                count=self._batch_size, block_ms=self._block_ms, pending=True
            )
            if not triggers:
                break
            tasks = await self._dispatch(triggers)
            await self.join()
            handled += len(triggers)
            if all(_deferred(task) for task in tasks):
                # Store still failing; reclaim retries these later.
                break
        if handled:
            logger.info("worker.pending_drained", extra={"count": handled})
        return handled

    async def reclaim(self) -> int:
        """Take over triggers idle longer than the reclaim threshold and process them."""
        self._last_reclaim = time.monotonic()
        triggers = await self._source.reclaim(
            min_idle_ms=self._reclaim_idle_ms, count=self._batch_size
        )
        if triggers:
            logger.warning("worker.reclaimed", extra={"count": len(triggers)})
            await self._dispatch(triggers)
        return len(triggers)

    async def join(self) -> None:
        """Wait for every in-flight promotion to resolve."""
        if self._inflight:
            await asyncio.gather(*self._inflight, return_exceptions=True)

    async def _dispatch(
        self, triggers: Sequence[PromotionTrigger]
    ) -> list[asyncio.Task[PromotionOutcome | None]]:
        tasks = []
        for trigger in triggers:
            await self._slots.acquire()
            task = asyncio.create_task(self._handle(trigger))
            self._inflight.add(task)
            task.add_done_callback(self._inflight.discard)
            tasks.append(task)
        return tasks

    async def _handle(self, trigger: PromotionTrigger) -> PromotionOutcome | None:
        outcome: PromotionOutcome | None = None
        try:
            if trigger.record is not None:
                set_request_context(request_id=trigger.record.request_id)
            outcome = await self._promote.execute(trigger.record)
            logger.info(
                "worker.promotion_resolved",
                extra={"message_id": trigger.message_id, "outcome": outcome.value},
            )
        except Exception:
            logger.exception("worker.promotion_crashed", extra={"message_id": trigger.message_id})
        finally:
            self._slots.release()
        # Not reached on cancellation: the trigger stays pending for redelivery.
        if outcome is PromotionOutcome.DEFERRED:
            return outcome
        try:
            await self._source.ack(trigger.message_id)
        except StoreUnavailable:
            logger.exception("worker.ack_failed", extra={"message_id": trigger.message_id})
        return outcome
