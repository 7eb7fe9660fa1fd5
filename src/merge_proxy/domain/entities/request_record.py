# src/merge_proxy/domain/entities/request_record.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Request Record (Domain Entity).

Synopsis:
    Immutable representation of one in-flight or recently completed upstream
    request, keyed by its content-addressed identity. Carries the original
    inputs so the promotion worker can call upstream without the caller
    resubmitting them.

Layer:
    domain/entities
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import UTC, datetime, timedelta
from typing import Any

from merge_proxy.domain.entities.base import BaseEntity
from merge_proxy.domain.enums.request_status import RequestStatus


@dataclass(frozen=True, slots=True)
class RequestRecord(BaseEntity):
    """A ledger entry for one request identity.

    Attributes:
        request_id:
            Request identity (hex digest); primary key in the ledger.
        status:
            Lifecycle status.
        credential:
            Caller credential token forwarded upstream.
        lookup_key:
            Target lookup key as submitted (unsanitized).
        created_at:
            Creation timestamp (UTC).
        expires_at:
            Absolute expiry (UTC). The record is unreadable at or after this time.
        result_ref:
            Result store key. Present iff ``status`` is ``COMPLETE``.

    Raises:
        ValueError: If the ``result_ref``/``status`` pairing or the expiry
            ordering is violated.
    """

    request_id: str
    status: RequestStatus
    credential: str
    lookup_key: str
    created_at: datetime
    expires_at: datetime
    result_ref: str | None = None

    def __post_init__(self) -> None:
        if not self.request_id:
            raise ValueError("request_id must be non-empty")
        if self.created_at.tzinfo is None:
            object.__setattr__(self, "created_at", self.created_at.replace(tzinfo=UTC))
        if self.expires_at.tzinfo is None:
            object.__setattr__(self, "expires_at", self.expires_at.replace(tzinfo=UTC))
        if self.expires_at <= self.created_at:
            raise ValueError("expires_at must be after created_at")
        has_ref = self.result_ref is not None
        if has_ref != (self.status is RequestStatus.COMPLETE):
            raise ValueError("result_ref must be set iff status is complete")

    @classmethod
    def new_queued(
        cls,
        *,
        request_id: str,
        credential: str,
        lookup_key: str,
        retention: timedelta,
        now: datetime,
    ) -> RequestRecord:
        """Build a fresh ``queued`` record for a first sighting of an identity."""
        return cls(
            request_id=request_id,
            status=RequestStatus.QUEUED,
            credential=credential,
            lookup_key=lookup_key,
            created_at=now,
            expires_at=now + retention,
        )

    def is_expired(self, now: datetime) -> bool:
        """Return True once ``now`` has reached ``expires_at``."""
        return now >= self.expires_at

    def remaining_ttl_seconds(self, now: datetime) -> int:
        """Return whole seconds left before expiry, never less than one."""
        remaining = (self.expires_at - now).total_seconds()
        return max(1, int(remaining + 0.999))

    def with_status(self, status: RequestStatus, *, result_ref: str | None = None) -> RequestRecord:
        """Return a copy moved forward to ``status``.

        Raises:
            ValueError: If ``status`` is not strictly after the current status.
        """
        if not self.status.can_transition_to(status):
            raise ValueError(f"cannot move request from {self.status.value} to {status.value}")
        return replace(self, status=status, result_ref=result_ref)

    def to_payload(self) -> dict[str, Any]:
        """Serialize into a JSON-friendly mapping (ledger and trigger wire format)."""
        return {
            "requestId": self.request_id,
            "status": self.status.value,
            "credential": self.credential,
            "lookupKey": self.lookup_key,
            "createdAt": self.created_at.isoformat(),
            "expiresAt": self.expires_at.isoformat(),
            "resultRef": self.result_ref,
        }

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> RequestRecord:
        """Rebuild a record from :meth:`to_payload` output.

        Raises:
            KeyError: If a required key is missing.
            ValueError: If a value cannot be parsed or invariants fail.
        """
        return cls(
            request_id=str(payload["requestId"]),
            status=RequestStatus(payload["status"]),
            credential=str(payload["credential"]),
            lookup_key=str(payload["lookupKey"]),
            created_at=datetime.fromisoformat(payload["createdAt"]),
            expires_at=datetime.fromisoformat(payload["expiresAt"]),
            result_ref=payload.get("resultRef"),
        )
