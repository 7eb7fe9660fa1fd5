# Copyright (c)
# SPDX-License-Identifier: MIT
"""Result Store Protocol.

Blob store holding upstream response bodies until a client consumes them.

Layer:
    domain/interfaces/repositories
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Protocol


class ResultStoreProtocol(Protocol):
    """Keyed blob store with per-entry lifetime.

    Blobs are UTF-8 encoded text; implementations may reject other bytes.
    """

    async def put(self, key: str, data: bytes, *, ttl_seconds: int) -> None:
        """Store ``data`` under ``key`` for at most ``ttl_seconds``.

        Raises:
            ValueError: If ``data`` is not valid UTF-8.
        """
        ...

    async def get(self, key: str) -> bytes | None:
        """Return the blob for ``key``, or ``None`` if absent."""
        ...

    async def delete(self, key: str) -> None:
        """Delete the blob for ``key``; absent keys are not an error."""
        ...

    def iter_keys(self) -> AsyncIterator[str]:
        """Iterate over every stored key (used by the orphan sweep)."""
        ...

    async def delete_if_orphaned(
        self,
        key: str,
        is_orphaned: Callable[[], Awaitable[bool]],
    ) -> bool:
        """Delete ``key`` if ``is_orphaned`` still holds and the blob is unchanged.

        The check and the delete are atomic with respect to writers of
        ``key``: a ``put`` that lands after the check aborts the delete.
        Returns True if the blob was deleted.
        """
        ...
