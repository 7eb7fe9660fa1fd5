# Copyright (c)
# SPDX-License-Identifier: MIT
"""Promotion Trigger Source Protocol.

Synopsis:
    Consumer side of the message-passing boundary between the request ledger
    and the promotion worker. Each successful ``insert_if_absent`` produces
    one trigger carrying the full new record. Delivery is at-least-once and
    may be duplicated or reordered.

Layer:
    domain/interfaces/queues
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol

from merge_proxy.domain.entities.request_record import RequestRecord


@dataclass(frozen=True, slots=True)
class PromotionTrigger:
    """One delivered trigger.

    Attributes:
        message_id: Transport-specific id used for acknowledgement.
        record: The record as it was inserted, or ``None`` if the payload
            could not be decoded (acknowledged and dropped by the worker).
    """

    message_id: str
    record: RequestRecord | None


class PromotionTriggerSource(Protocol):
    """Reads and acknowledges promotion triggers for one consumer."""

    async def ensure_group(self) -> None:
        """Create the consumer group if it does not exist yet."""
        ...

    async def read(
        self,
        *,
        count: int,
        block_ms: int,
        pending: bool = False,
    ) -> Sequence[PromotionTrigger]:
        """Return up to ``count`` triggers.

        Args:
            count: Maximum number of triggers to return.
            block_ms: Maximum time to wait for new triggers.
            pending: If True, return triggers already delivered to this
                consumer but not yet acknowledged instead of new ones.
        """
        ...

    async def ack(self, message_id: str) -> None:
        """Acknowledge a processed trigger."""
        ...

    async def reclaim(self, *, min_idle_ms: int, count: int) -> Sequence[PromotionTrigger]:
        """Take over triggers left unacknowledged by other consumers."""
        ...
