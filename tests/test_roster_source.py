"""Unit tests for the roster source adapter.

Uses httpx.MockTransport so no network access happens.
"""

import asyncio

import httpx
import pytest

from gatong_pass.errors import FetchError
from gatong_pass.roster.source import RosterSource

ROSTER_URL = "https://sheets.example.com/export?format=csv"

# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------


def make_source(handler, **kwargs) -> RosterSource:  # type: ignore[no-untyped-def]
    return RosterSource(ROSTER_URL, transport=httpx.MockTransport(handler), **kwargs)


class TestFetchRoster:
    """Tests for fetching and parsing the export."""

    def test_fetch_parses_csv_body(self, roster_csv: str) -> None:
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, text=roster_csv)

        result = asyncio.run(make_source(handler).fetch_roster())

        assert len(result.students) == 4
        assert len(requests) == 1
        assert requests[0].method == "GET"
        assert str(requests[0].url) == ROSTER_URL

    def test_non_2xx_raises_fetch_error_with_status(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404, text="not found")

        with pytest.raises(FetchError) as exc_info:
            asyncio.run(make_source(handler).fetch_roster())

        assert exc_info.value.status_code == 404
        assert exc_info.value.url == ROSTER_URL

    def test_server_error_is_not_retried(self) -> None:
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(503)

        with pytest.raises(FetchError):
            asyncio.run(make_source(handler).fetch_roster())

        assert len(calls) == 1

    def test_transport_error_raises_fetch_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(FetchError) as exc_info:
            asyncio.run(make_source(handler).fetch_roster())

        assert exc_info.value.status_code is None

    def test_exclude_inactive_is_forwarded(self) -> None:
        body = "학번,이름,학적\n1205,홍길동,\n1206,임꺽정,전학\n"

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text=body)

        kept = asyncio.run(make_source(handler, exclude_inactive=False).fetch_roster())
        filtered = asyncio.run(make_source(handler).fetch_roster())

        assert len(kept.students) == 2
        assert len(filtered.students) == 1

    def test_default_timeout(self) -> None:
        source = RosterSource(ROSTER_URL)
        assert source.timeout_seconds == RosterSource.DEFAULT_TIMEOUT_SECONDS
