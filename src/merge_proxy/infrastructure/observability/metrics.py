# Copyright (c)
# SPDX-License-Identifier: MIT
"""Prometheus metrics utilities (registry-aware, hot-reload safe).

Every accessor returns a collector bound to the **current**
``prometheus_client.REGISTRY``:

- Safe under hot reload and tests that swap the default registry.
- No duplicate-registration errors.
- Cache automatically resets when the active registry changes.

All histograms use explicit buckets so ``_bucket/_count/_sum`` series appear
after the first ``observe(...)`` call.

Example:
    get_promotion_outcomes_total().labels(outcome="completed").inc()
    get_upstream_latency_seconds().labels(outcome="success").observe(12.5)
"""

from __future__ import annotations

import logging
import threading
from contextlib import suppress
from typing import Final

import prometheus_client as prom
from prometheus_client import Counter, Histogram

_log = logging.getLogger(__name__)

# Store round-trips (seconds).
_BUCKETS: Final[tuple[float, ...]] = (
    0.001,
    0.005,
    0.010,
    0.025,
    0.050,
    0.100,
    0.250,
    0.500,
    1.000,
    2.500,
    5.000,
)

# Upstream calls are slow; buckets extend past the promotion timeout.
_UPSTREAM_BUCKETS: Final[tuple[float, ...]] = (
    0.5,
    1.0,
    2.5,
    5.0,
    10.0,
    20.0,
    30.0,
    45.0,
    60.0,
    90.0,
    120.0,
)

_registry_id: int | None = None
_hist_cache: dict[str, Histogram] = {}
_counter_cache: dict[str, Counter] = {}
_lock = threading.RLock()


def _ensure_registry() -> None:
    """Reset caches if the active registry changed."""
    global _registry_id
    with _lock:
        rid = id(prom.REGISTRY)
        if _registry_id != rid:
            _hist_cache.clear()
            _counter_cache.clear()
            _registry_id = rid


def _lookup_existing(name: str) -> object | None:
    """Return a collector already registered under ``name``, if any."""
    with _lock, suppress(Exception):
        mapping = getattr(prom.REGISTRY, "_names_to_collectors", None)
        if isinstance(mapping, dict):
            return mapping.get(name)
    return None


def _get_or_create_hist(
    name: str,
    help_text: str,
    *,
    buckets: tuple[float, ...] = _BUCKETS,
    labelnames: tuple[str, ...] = (),
) -> Histogram:
    """Get or create a registry-bound ``Histogram`` with stable identity.

    Args:
        name: Metric name (snake_case).
        help_text: Human-readable description.
        buckets: Histogram buckets in seconds.
        labelnames: Optional label names tuple.

    Returns:
        Histogram: Bound to ``prom.REGISTRY``.
    """
    _ensure_registry()
    with _lock:
        cached = _hist_cache.get(name)
        if cached is not None:
            return cached

        existing = _lookup_existing(name)
        if isinstance(existing, Histogram):
            _hist_cache[name] = existing
            return existing

        try:
            h = Histogram(name, help_text, labelnames, buckets=buckets, registry=prom.REGISTRY)
        except ValueError as exc:
            if "Duplicated timeseries" in str(exc):
                again = _lookup_existing(name)
                if isinstance(again, Histogram):
                    _hist_cache[name] = again
                    return again
            _log.exception("Failed to register Prometheus histogram %s", name)
            raise
        _hist_cache[name] = h
        return h


def _get_or_create_counter(
    name: str,
    help_text: str,
    *,
    labelnames: tuple[str, ...] = (),
) -> Counter:
    """Get or create a registry-bound ``Counter`` with stable identity."""
    _ensure_registry()
    with _lock:
        cached = _counter_cache.get(name)
        if cached is not None:
            return cached

        # Counters register under their base name plus "_total".
        existing = _lookup_existing(name) or _lookup_existing(f"{name}_total")
        if isinstance(existing, Counter):
            _counter_cache[name] = existing
            return existing

        try:
            c = Counter(name, help_text, labelnames, registry=prom.REGISTRY)
        except ValueError as exc:
            if "Duplicated timeseries" in str(exc):
                again = _lookup_existing(name) or _lookup_existing(f"{name}_total")
                if isinstance(again, Counter):
                    _counter_cache[name] = again
                    return again
            _log.exception("Failed to register Prometheus counter %s", name)
            raise
        _counter_cache[name] = c
        return c


# ---------------------------------------------------------------------------
# Health


def get_readyz_redis_latency_seconds() -> Histogram:
    """Return the Redis readiness latency histogram."""
    return _get_or_create_hist(
        name="readyz_redis_latency_seconds",
        help_text="Latency of Redis readiness probe (seconds).",
    )


# ---------------------------------------------------------------------------
# Request pipeline


def get_intake_outcomes_total() -> Counter:
    """Return counter for intake responses.

    Labels:
        outcome: ``queued|in-progress|complete|invalid|error``.
    """
    return _get_or_create_counter(
        name="merge_proxy_intake_outcomes_total",
        help_text="Intake gateway responses by outcome",
        labelnames=("outcome",),
    )


def get_promotion_outcomes_total() -> Counter:
    """Return counter for promotion results.

    Labels:
        outcome: ``completed|failed|timed_out|skipped|abandoned|budget_exceeded``.
    """
    return _get_or_create_counter(
        name="merge_proxy_promotion_outcomes_total",
        help_text="Promotion worker results by outcome",
        labelnames=("outcome",),
    )


def get_upstream_latency_seconds() -> Histogram:
    """Return histogram for upstream call latency.

    Labels:
        outcome: ``success`` or the failure class name.
    """
    return _get_or_create_hist(
        name="merge_proxy_upstream_latency_seconds",
        help_text="Latency (seconds) of single upstream lookup attempts",
        buckets=_UPSTREAM_BUCKETS,
        labelnames=("outcome",),
    )


def get_store_operation_duration_seconds() -> Histogram:
    """Return histogram for ledger/result-store round trips.

    Labels:
        store: ``ledger`` or ``results``.
        operation: Operation name (e.g. ``insert_if_absent``).
    """
    return _get_or_create_hist(
        name="merge_proxy_store_operation_duration_seconds",
        help_text="Duration (seconds) of ledger and result store operations",
        labelnames=("store", "operation"),
    )
