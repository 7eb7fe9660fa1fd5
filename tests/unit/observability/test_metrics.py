# tests/unit/observability/test_metrics.py
from __future__ import annotations

from prometheus_client import REGISTRY

from merge_proxy.infrastructure.observability.metrics import (
    get_intake_outcomes_total,
    get_promotion_outcomes_total,
    get_store_operation_duration_seconds,
    get_upstream_latency_seconds,
)


def test_collectors_are_singletons() -> None:
    assert get_intake_outcomes_total() is get_intake_outcomes_total()
    assert get_promotion_outcomes_total() is get_promotion_outcomes_total()
    assert get_upstream_latency_seconds() is get_upstream_latency_seconds()
    assert get_store_operation_duration_seconds() is get_store_operation_duration_seconds()


def test_counter_increments_are_visible_in_registry() -> None:
    name = "merge_proxy_promotion_outcomes_total"
    before = REGISTRY.get_sample_value(name, {"outcome": "timed_out"}) or 0.0
    get_promotion_outcomes_total().labels(outcome="timed_out").inc()
    assert REGISTRY.get_sample_value(name, {"outcome": "timed_out"}) == before + 1


def test_store_histogram_records_observations() -> None:
    name = "merge_proxy_store_operation_duration_seconds_count"
    labels = {"store": "ledger", "operation": "get"}
    before = REGISTRY.get_sample_value(name, labels) or 0.0
    get_store_operation_duration_seconds().labels(**labels).observe(0.001)
    assert REGISTRY.get_sample_value(name, labels) == before + 1
