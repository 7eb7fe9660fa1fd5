# tests/unit/tasks/test_cli.py
from __future__ import annotations

import fakeredis
import fakeredis.aioredis
import pytest
from typer.testing import CliRunner

from merge_proxy.tasks import cli


@pytest.fixture
def patched(monkeypatch: pytest.MonkeyPatch, settings):
    server = fakeredis.FakeServer()
    monkeypatch.setattr(cli, "get_settings", lambda: settings)
    monkeypatch.setattr(
        cli,
        "create_redis_client",
        lambda _s: fakeredis.aioredis.FakeRedis(server=server, decode_responses=True),
    )
    return server


def test_sweep_reports_deleted_count(patched) -> None:
    result = CliRunner().invoke(cli.app, ["sweep"])
    assert result.exit_code == 0, result.output
    assert "deleted 0 orphan result(s)" in result.output


def test_help_lists_commands() -> None:
    result = CliRunner().invoke(cli.app, ["--help"])
    assert result.exit_code == 0
    for command in ("worker", "sweep", "serve"):
        assert command in result.output
