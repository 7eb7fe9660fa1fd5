# tests/unit/adapters/presenters/test_request_presenter.py
from __future__ import annotations

import json

from merge_proxy.adapters.presenters.request_presenter import RequestPresenter
from merge_proxy.application.schemas.dto.requests import SubmitOutcome
from merge_proxy.domain.enums.request_status import RequestStatus
from merge_proxy.domain.exceptions.requests import InvalidRequestInput, StoreUnavailable


def test_pending_outcome_is_202_status_document() -> None:
    resp = RequestPresenter().present(
        SubmitOutcome(request_id="abc", status=RequestStatus.IN_PROGRESS, message="busy")
    )
    assert resp.status_code == 202
    assert json.loads(resp.body) == {"requestId": "abc", "status": "in-progress", "message": "busy"}


def test_consumed_outcome_is_raw_body() -> None:
    resp = RequestPresenter(result_media_type="text/plain").present(
        SubmitOutcome(request_id="abc", status=RequestStatus.COMPLETE, body=b"payload")
    )
    assert resp.status_code == 200
    assert resp.body == b"payload"
    assert resp.media_type == "text/plain"


def test_errors_map_to_envelope() -> None:
    presenter = RequestPresenter()

    bad = presenter.present_error(
        InvalidRequestInput("missing", details={"missing": ["credential"]}), trace_id="t-1"
    )
    assert bad.status_code == 400
    assert json.loads(bad.body) == {
        "error": {
            "code": "INVALID_INPUT",
            "http_status": 400,
            "message": "missing",
            "details": {"missing": ["credential"]},
            "trace_id": "t-1",
        }
    }

    down = presenter.present_error(StoreUnavailable("redis down"), trace_id=None)
    assert down.status_code == 500
    assert json.loads(down.body)["error"] == {
        "code": "STORE_UNAVAILABLE",
        "http_status": 500,
        "message": "redis down",
    }
