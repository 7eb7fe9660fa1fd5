# src/merge_proxy/application/use_cases/requests/submit_request.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""
Use Case: Submit Request (intake gateway)

Purpose:
    Deduplicate a caller's lookup by content-addressed identity. The first
    submission queues a record (which triggers promotion); later submissions
    report progress; the first submission after completion consumes the
    stored result and removes every trace of it.

Layer: application/use_cases
"""

from __future__ import annotations

from contextlib import suppress
from datetime import timedelta

from merge_proxy.application.schemas.dto.requests import (
    QUEUED_MESSAGE,
    STATUS_MESSAGES,
    SubmitOutcome,
)
from merge_proxy.domain.entities.request_record import RequestRecord
from merge_proxy.domain.enums.request_status import RequestStatus
from merge_proxy.domain.exceptions.requests import (
    InvalidRequestInput,
    MalformedRecord,
    ResultMissing,
    StoreUnavailable,
)
from merge_proxy.domain.interfaces.repositories.request_ledger import RequestLedgerProtocol
from merge_proxy.domain.interfaces.repositories.result_store import ResultStoreProtocol
from merge_proxy.domain.services.clock import Clock, utc_now
from merge_proxy.domain.services.request_identity import compute_request_id
from merge_proxy.infrastructure.logging.logger import get_json_logger
from merge_proxy.infrastructure.observability.metrics import get_intake_outcomes_total

logger = get_json_logger(__name__)


def _count(outcome: str) -> None:
    with suppress(Exception):
        get_intake_outcomes_total().labels(outcome=outcome).inc()


class SubmitRequest:
    """Intake use case.

    Args:
        ledger: Request ledger.
        results: Result store.
        retention_seconds: Lifetime of a new record from its creation.
        clock: Optional UTC clock (tests).
    """

    def __init__(
        self,
        ledger: RequestLedgerProtocol,
        results: ResultStoreProtocol,
        *,
        retention_seconds: int,
        clock: Clock | None = None,
    ) -> None:
        self._ledger = ledger
        self._results = results
        self._retention = timedelta(seconds=retention_seconds)
        self._clock: Clock = clock or utc_now

    async def execute(self, credential: str | None, lookup_key: str | None) -> SubmitOutcome:
        """Handle one submission.

        Args:
            credential: Caller credential token.
            lookup_key: Target lookup key.

        Returns:
            SubmitOutcome: ``queued``/``in-progress`` for pending work, or
            ``complete`` with the consumed result body.

        Raises:
            InvalidRequestInput: If either input is missing or blank.
            ResultMissing: If a complete record points at a missing blob.
            StoreUnavailable: If the ledger or result store is unreachable.
        """
        if not credential or not credential.strip() or not lookup_key or not lookup_key.strip():
            _count("invalid")
            raise InvalidRequestInput(
                "credential and lookupKey are required",
                details={
                    "missing": [
                        name
                        for name, value in (("credential", credential), ("lookupKey", lookup_key))
                        if not value or not value.strip()
                    ]
                },
            )

        request_id = compute_request_id(credential, lookup_key)
        try:
            outcome = await self._dispatch(request_id, credential, lookup_key)
        except InvalidRequestInput:
            raise
        except Exception:
            _count("error")
            raise
        _count(outcome.status.value)
        return outcome

    async def _dispatch(self, request_id: str, credential: str, lookup_key: str) -> SubmitOutcome:
        try:
            record = await self._ledger.get(request_id)
        except MalformedRecord:
            # Replaced by the insert below.
            logger.warning("intake.malformed_record", extra={"request_id": request_id})
            record = None

        if record is None:
            return await self._enqueue(request_id, credential, lookup_key)

        if record.status is RequestStatus.COMPLETE:
            return await self._consume(record)

        logger.info(
            "intake.pending",
            extra={"request_id": request_id, "status": record.status.value},
        )
        return SubmitOutcome(
            request_id=request_id,
            status=record.status,
            message=STATUS_MESSAGES[record.status],
        )

    async def _enqueue(self, request_id: str, credential: str, lookup_key: str) -> SubmitOutcome:
        record = RequestRecord.new_queued(
            request_id=request_id,
            credential=credential,
            lookup_key=lookup_key,
            retention=self._retention,
            now=self._clock(),
        )
        inserted = await self._ledger.insert_if_absent(record)
        # Losing the insert race still means the identity is queued.
        logger.info("intake.queued", extra={"request_id": request_id, "inserted": inserted})
        return SubmitOutcome(
            request_id=request_id,
            status=RequestStatus.QUEUED,
            message=QUEUED_MESSAGE,
        )

    async def _consume(self, record: RequestRecord) -> SubmitOutcome:
        result_ref = record.result_ref
        if result_ref is None:
            raise MalformedRecord(
                "complete record has no result reference",
                details={"request_id": record.request_id},
            )
        body = await self._results.get(result_ref)
        if body is None:
            logger.error(
                "intake.result_missing",
                extra={"request_id": record.request_id, "result_ref": result_ref},
            )
            raise ResultMissing(
                "stored result is missing",
                details={"request_id": record.request_id},
            )

        # Record first: if its delete fails the blob is still there for a retry.
        await self._ledger.delete(record.request_id)
        try:
            await self._results.delete(result_ref)
        except StoreUnavailable:
            # Unowned now; expiry or the orphan sweep removes it.
            logger.exception(
                "intake.blob_cleanup_failed",
                extra={"request_id": record.request_id, "result_ref": result_ref},
            )
        logger.info(
            "intake.consumed",
            extra={"request_id": record.request_id, "bytes": len(body)},
        )
        return SubmitOutcome(
            request_id=record.request_id,
            status=RequestStatus.COMPLETE,
            body=body,
        )
