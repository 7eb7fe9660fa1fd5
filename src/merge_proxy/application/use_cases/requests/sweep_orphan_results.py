# src/merge_proxy/application/use_cases/requests/sweep_orphan_results.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""
Use Case: Sweep Orphan Results

Purpose:
    Delete result blobs no live record owns. Blobs already expire with their
    record; the sweep covers blobs left behind when a cleanup write failed.

Ownership:
    A blob is kept when its record is ``complete`` and points at it, or is
    ``in-progress`` (a promotion may be between its blob write and its
    status update). Everything else is deleted.

    Ownership is checked twice: once while scanning, and again under a watch
    on the blob key right before the delete. A cycle that rewrites the blob
    between the two checks keeps it.

Layer: application/use_cases
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from functools import partial
from typing import Final

from merge_proxy.domain.enums.request_status import RequestStatus
from merge_proxy.domain.exceptions.requests import MalformedRecord
from merge_proxy.domain.interfaces.repositories.request_ledger import RequestLedgerProtocol
from merge_proxy.domain.interfaces.repositories.result_store import ResultStoreProtocol
from merge_proxy.infrastructure.logging.logger import get_json_logger

logger = get_json_logger(__name__)

_RESULT_KEY: Final[re.Pattern[str]] = re.compile(r"^responses/(?P<request_id>[0-9a-f]{64})\.html$")


@dataclass(frozen=True, slots=True)
class SweepReport:
    """Counts from one sweep pass."""

    scanned: int
    deleted: int


class SweepOrphanResults:
    """One pass over the result store deleting unowned blobs."""

    def __init__(self, ledger: RequestLedgerProtocol, results: ResultStoreProtocol) -> None:
        self._ledger = ledger
        self._results = results

    async def execute(self) -> SweepReport:
        """Run one sweep pass.

        Raises:
            StoreUnavailable: If the ledger or result store is unreachable.
        """
        scanned = 0
        candidates: list[str] = []
        async for key in self._results.iter_keys():
            scanned += 1
            if not await self._is_owned(key):
                candidates.append(key)

        deleted = 0
        for key in candidates:
            if await self._results.delete_if_orphaned(key, partial(self._is_orphaned, key)):
                deleted += 1
                logger.info("sweep.deleted", extra={"result_ref": key})
            else:
                logger.info("sweep.reclaimed_by_owner", extra={"result_ref": key})

        logger.info("sweep.finished", extra={"scanned": scanned, "deleted": deleted})
        return SweepReport(scanned=scanned, deleted=deleted)

    async def _is_orphaned(self, key: str) -> bool:
        return not await self._is_owned(key)

    async def _is_owned(self, key: str) -> bool:
        match = _RESULT_KEY.match(key)
        if match is None:
            return False
        try:
            record = await self._ledger.get(match.group("request_id"))
        except MalformedRecord:
            return False
        if record is None:
            return False
        if record.status is RequestStatus.IN_PROGRESS:
            return True
        return record.status is RequestStatus.COMPLETE and record.result_ref == key
