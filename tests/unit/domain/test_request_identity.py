# tests/unit/domain/test_request_identity.py
from __future__ import annotations

import hashlib

from merge_proxy.domain.services.request_identity import (
    compute_request_id,
    result_ref_for,
    sanitize_lookup_key,
)


def test_identity_is_sha256_of_joined_inputs() -> None:
    expected = hashlib.sha256(b"A:123-456").hexdigest()
    assert compute_request_id("A", "123-456") == expected


def test_identity_is_deterministic_and_input_sensitive() -> None:
    rid = compute_request_id("cookie=1", "AB1234563")
    assert rid == compute_request_id("cookie=1", "AB1234563")
    assert rid != compute_request_id("cookie=2", "AB1234563")
    assert rid != compute_request_id("cookie=1", "AB1234564")
    assert len(rid) == 64


def test_identity_uses_raw_lookup_key_not_sanitized() -> None:
    assert compute_request_id("A", "123-456") != compute_request_id("A", "123456")


def test_sanitize_strips_non_alphanumerics() -> None:
    assert sanitize_lookup_key("ab-12 3/x_Y!") == "ab123xY"
    assert sanitize_lookup_key("---") == ""


def test_result_ref_is_derived_from_identity() -> None:
    rid = compute_request_id("A", "123-456")
    assert result_ref_for(rid) == f"responses/{rid}.html"
