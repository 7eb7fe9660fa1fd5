# src/merge_proxy/domain/interfaces/repositories/request_ledger.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Request Ledger Protocol.

Synopsis:
    Keyed store of request records with atomic point operations and
    time-bounded expiry. Concrete implementations live in the adapters layer.

Design:
    * ``insert_if_absent`` is the single serialization point per identity and
      publishes exactly one promotion trigger per successful insert.
    * ``update_status`` is a forward-only compare-and-set; it never raises for
      a missing record or a non-forward transition.
    * ``delete`` is idempotent.

Layer:
    domain/interfaces/repositories
"""

from __future__ import annotations

from typing import Protocol

from merge_proxy.domain.entities.request_record import RequestRecord
from merge_proxy.domain.enums.request_status import RequestStatus


class RequestLedgerProtocol(Protocol):
    """Abstraction over the request ledger.

    Implementations raise :class:`~merge_proxy.domain.exceptions.requests.StoreUnavailable`
    when the backing store cannot be reached, and never leave partial writes.
    """

    async def get(self, request_id: str) -> RequestRecord | None:
        """Return the live record for ``request_id``.

        Returns:
            The record, or ``None`` if absent or expired.
        """
        ...

    async def insert_if_absent(self, record: RequestRecord) -> bool:
        """Create ``record`` only if no live record exists for its id.

        Returns:
            True if this call created the record (and published its trigger).
        """
        ...

    async def update_status(
        self,
        request_id: str,
        new_status: RequestStatus,
        result_ref: str | None = None,
    ) -> bool:
        """Move a live record forward to ``new_status``.

        Returns:
            True if the update applied; False if the record no longer exists
            or ``new_status`` is not ahead of the stored status.
        """
        ...

    async def delete(self, request_id: str) -> None:
        """Delete the record if present."""
        ...
