"""
Unit tests for the scope document cache.

HTTP is served by httpx.MockTransport and time by a settable fake clock.
"""

import time

import httpx
import pytest

from app.services.scope_context import ScopeContextCache

URL = "http://docs.test/skill.md"


class FakeClock:
    def __init__(self, now: float = 1_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class ScriptedServer:
    """Returns the scripted responses in order and counts requests."""

    def __init__(self, *responses) -> None:
        self.responses = list(responses)
        self.calls = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls += 1
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


def _cache(server: ScriptedServer, clock: FakeClock) -> ScopeContextCache:
    return ScopeContextCache(url=URL, ttl_seconds=3600, transport=httpx.MockTransport(server), clock=clock)


@pytest.mark.asyncio
async def test_two_calls_within_window_fetch_once() -> None:
    server = ScriptedServer(httpx.Response(200, text="# OpenRTB, VAST"))
    clock = FakeClock()
    cache = _cache(server, clock)
    assert await cache.get_context() == "# OpenRTB, VAST"
    clock.now += 3599
    assert await cache.get_context() == "# OpenRTB, VAST"
    assert server.calls == 1


@pytest.mark.asyncio
async def test_refetches_after_window() -> None:
    server = ScriptedServer(httpx.Response(200, text="v1"), httpx.Response(200, text="v2"))
    clock = FakeClock()
    cache = _cache(server, clock)
    assert await cache.get_context() == "v1"
    clock.now += 3600
    assert await cache.get_context() == "v2"
    assert server.calls == 2
    assert cache.cached.fetched_at == clock.now


@pytest.mark.asyncio
async def test_failed_status_keeps_previous_value() -> None:
    server = ScriptedServer(httpx.Response(200, text="good"), httpx.Response(503, text="down"))
    clock = FakeClock()
    cache = _cache(server, clock)
    await cache.get_context()
    fetched_at = cache.cached.fetched_at
    clock.now += 7200
    assert await cache.get_context() == "good"
    assert cache.cached.content == "good"
    assert cache.cached.fetched_at == fetched_at


@pytest.mark.asyncio
async def test_transport_error_keeps_previous_value() -> None:
    server = ScriptedServer(httpx.Response(200, text="good"), httpx.ConnectError("refused"))
    clock = FakeClock()
    cache = _cache(server, clock)
    await cache.get_context()
    clock.now += 7200
    assert await cache.get_context() == "good"


@pytest.mark.asyncio
async def test_failure_without_previous_value_returns_empty() -> None:
    server = ScriptedServer(httpx.Response(404), httpx.Response(200, text="late"))
    cache = _cache(server, FakeClock())
    assert await cache.get_context() == ""
    assert cache.cached.content is None
    # Nothing cached yet, so the next call tries again immediately.
    assert await cache.get_context() == "late"
    assert server.calls == 2


@pytest.mark.asyncio
async def test_empty_document_is_cached() -> None:
    server = ScriptedServer(httpx.Response(200, text=""))
    cache = _cache(server, FakeClock())
    assert await cache.get_context() == ""
    assert await cache.get_context() == ""
    assert server.calls == 1


@pytest.mark.asyncio
async def test_body_decoded_as_utf8_regardless_of_charset_header() -> None:
    body = "# 対象規格: OpenRTB".encode("utf-8")
    server = ScriptedServer(
        httpx.Response(200, content=body, headers={"Content-Type": "text/markdown; charset=iso-8859-1"})
    )
    cache = _cache(server, FakeClock())
    assert await cache.get_context() == "# 対象規格: OpenRTB"


@pytest.mark.asyncio
async def test_non_utf8_body_is_a_failed_fetch() -> None:
    server = ScriptedServer(httpx.Response(200, text="good"), httpx.Response(200, content=b"\xff\xfe bad"))
    clock = FakeClock()
    cache = _cache(server, clock)
    await cache.get_context()
    clock.now += 7200
    assert await cache.get_context() == "good"
    assert cache.cached.content == "good"


def test_default_clock_is_monotonic() -> None:
    assert ScopeContextCache(url=URL)._clock is time.monotonic
