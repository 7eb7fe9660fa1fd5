# src/merge_proxy/application/schemas/dto/requests.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Application DTOs for request intake and promotion.

Synopsis:
    Strict (Pydantic v2) DTOs returned by the intake and promotion use cases.
    Adapters map ``SubmitOutcome`` onto HTTP responses; the worker only logs
    and counts ``PromotionOutcome``.

Layer:
    application/schemas/dto
"""

from __future__ import annotations

from enum import Enum
from typing import Final

from merge_proxy.application.schemas.dto.base import BaseDTO
from merge_proxy.domain.enums.request_status import RequestStatus

QUEUED_MESSAGE: Final[str] = "Request has been queued for processing"
STATUS_MESSAGES: Final[dict[RequestStatus, str]] = {
    RequestStatus.QUEUED: "Request is queued for processing",
    RequestStatus.IN_PROGRESS: "Request is being processed",
}


class PromotionOutcome(str, Enum):
    """Result of one promotion attempt.

    Every outcome but ``DEFERRED`` is terminal for its trigger. ``DEFERRED``
    means the store failed before the record was touched; the trigger is
    left unacknowledged so it is redelivered.
    """

    SKIPPED = "skipped"
    ABANDONED = "abandoned"
    COMPLETED = "completed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    DEFERRED = "deferred"


class SubmitOutcome(BaseDTO):
    """Result of one intake call.

    Attributes:
        request_id: Identity of the submission.
        status: Ledger status the caller observed. ``COMPLETE`` means the
            result was consumed and ``body`` carries it.
        message: Human-readable status message for pending outcomes.
        body: Raw result bytes, present only when ``status`` is ``COMPLETE``.
    """

    request_id: str
    status: RequestStatus
    message: str | None = None
    body: bytes | None = None

    @property
    def is_pending(self) -> bool:
        """Return True while the caller still has to poll."""
        return self.status is not RequestStatus.COMPLETE
