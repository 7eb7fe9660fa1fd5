# Copyright (c)
# SPDX-License-Identifier: MIT
"""merge-proxy: deduplicating asynchronous queue in front of a slow lookup endpoint."""

from __future__ import annotations

__all__ = ["__version__"]

__version__ = "0.1.0"
