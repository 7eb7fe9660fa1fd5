# src/merge_proxy/application/services/completion_flag.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Single-winner completion flag.

Synopsis:
    A one-shot exchange between the concurrent tasks of one promotion. Each
    task calls :meth:`CompletionFlag.claim` right before its terminal action;
    exactly one claim returns True and every later claim returns False, so
    the loser's terminal action is suppressed. Because ``claim`` is
    synchronous there is no suspension point between the check and the set.

Layer:
    application/services
"""

from __future__ import annotations

import asyncio
from enum import Enum


class Claimant(str, Enum):
    """Parties racing within a promotion."""

    UPSTREAM = "upstream"
    TIMEOUT = "timeout"


class CompletionFlag:
    """Future-backed single-winner flag.

    Must be created inside a running event loop.
    """

    __slots__ = ("_future",)

    def __init__(self) -> None:
        self._future: asyncio.Future[Claimant] = asyncio.get_running_loop().create_future()

    def claim(self, claimant: Claimant) -> bool:
        """Try to win the race for ``claimant``.

        Returns:
            True if this call won; False if another party already claimed.
        """
        if self._future.done():
            return False
        self._future.set_result(claimant)
        return True

    @property
    def claimed(self) -> bool:
        """Return True once any party has claimed the flag."""
        return self._future.done()

    @property
    def winner(self) -> Claimant | None:
        """Return the winning party, or ``None`` while unclaimed."""
        if not self._future.done():
            return None
        return self._future.result()

    async def wait(self) -> Claimant:
        """Wait until some party claims the flag and return the winner."""
        return await asyncio.shield(self._future)
