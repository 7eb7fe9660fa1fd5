# Copyright (c)
# SPDX-License-Identifier: MIT
"""UTC clock seam shared by repositories and use cases.

Layer:
    domain/services
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime

__all__ = ["Clock", "utc_now"]

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Return current UTC time with timezone info."""
    return datetime.now(UTC)
