# tests/unit/adapters/gateways/test_lookup_gateway.py
from __future__ import annotations

import pytest

from merge_proxy.adapters.gateways.lookup_gateway import LookupGateway
from merge_proxy.domain.exceptions.requests import UpstreamUnavailable


class _Client:
    def __init__(self, outcome) -> None:
        self.outcome = outcome
        self.calls: list[tuple[str, str]] = []

    async def lookup(self, credential: str, lookup_key: str) -> str:
        self.calls.append((credential, lookup_key))
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome


@pytest.mark.asyncio
async def test_fetch_passes_inputs_through() -> None:
    client = _Client("<html>OK</html>")
    assert await LookupGateway(client).fetch("A", "123-456") == "<html>OK</html>"  # type: ignore[arg-type]
    assert client.calls == [("A", "123-456")]


@pytest.mark.asyncio
async def test_fetch_propagates_upstream_failures() -> None:
    gateway = LookupGateway(_Client(UpstreamUnavailable("down")))  # type: ignore[arg-type]
    with pytest.raises(UpstreamUnavailable):
        await gateway.fetch("A", "k")
