# Copyright (c)
# SPDX-License-Identifier: MIT
"""Request identity and lookup-key shaping (pure functions).

The identity is the sole deduplication key: two submissions with the same
credential and lookup key always map to the same record.

Layer:
    domain/services
"""

from __future__ import annotations

import hashlib
import re
from typing import Final

__all__ = ["compute_request_id", "result_ref_for", "sanitize_lookup_key"]

_SEPARATOR: Final[str] = ":"
_UNSAFE_LOOKUP_CHARS: Final[re.Pattern[str]] = re.compile(r"[^A-Za-z0-9]")


def compute_request_id(credential: str, lookup_key: str) -> str:
    """Return the SHA-256 hex digest of ``credential:lookup_key``."""
    material = f"{credential}{_SEPARATOR}{lookup_key}".encode()
    return hashlib.sha256(material).hexdigest()


def sanitize_lookup_key(lookup_key: str) -> str:
    """Strip every character outside ``[A-Za-z0-9]``.

    Only used to shape the outbound upstream request; identity is computed on
    the raw lookup key.
    """
    return _UNSAFE_LOOKUP_CHARS.sub("", lookup_key)


def result_ref_for(request_id: str) -> str:
    """Return the result store key owned by ``request_id``."""
    return f"responses/{request_id}.html"
