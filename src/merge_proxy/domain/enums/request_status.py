# src/merge_proxy/domain/enums/request_status.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Request lifecycle status.

Layer:
    domain/enums
"""

from __future__ import annotations

from enum import Enum


class RequestStatus(str, Enum):
    """Lifecycle state of a request record.

    Records only ever move forward (``queued → in-progress → complete``); the
    abort path deletes the record instead of moving it backward.
    """

    QUEUED = "queued"
    IN_PROGRESS = "in-progress"
    COMPLETE = "complete"

    @property
    def rank(self) -> int:
        """Return the ordinal position of this status in the lifecycle."""
        return _ORDER.index(self)

    def can_transition_to(self, target: RequestStatus) -> bool:
        """Return True if moving from this status to ``target`` is a forward step."""
        return target.rank > self.rank


_ORDER: tuple[RequestStatus, ...] = (
    RequestStatus.QUEUED,
    RequestStatus.IN_PROGRESS,
    RequestStatus.COMPLETE,
)
