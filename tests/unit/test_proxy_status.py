"""Unit tests for relay availability status and the TTL gate."""

from unittest.mock import AsyncMock

import anyio
import httpx
import pytest

from paper_research_tool.config import Settings
from paper_research_tool.proxy_status import (
    FETCH_FAILED_MESSAGE,
    HttpProxyStatusFetcher,
    ProxyAvailabilityGate,
    ProxyConfig,
)

pytestmark = pytest.mark.unit


def envelope(llm=False, webdav=True):
    return {
        "success": True,
        "data": {
            "llm": {"enabled": llm, "message": "llm message"},
            "webdav": {"enabled": webdav, "message": "webdav message"},
        },
    }


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


async def test_status_is_cached_within_ttl(clock):
    fetch = AsyncMock(return_value=envelope())
    gate = ProxyAvailabilityGate(fetch, ttl=300, clock=clock)

    assert await gate.is_relay_enabled_for("webdav") is True
    clock.now += 299
    assert await gate.is_relay_enabled_for("llm") is False

    assert fetch.await_count == 1


async def test_status_is_refetched_after_ttl(clock):
    fetch = AsyncMock(side_effect=[envelope(webdav=True), envelope(webdav=False)])
    gate = ProxyAvailabilityGate(fetch, ttl=300, clock=clock)

    assert await gate.is_relay_enabled_for("webdav") is True
    clock.now += 300
    assert await gate.is_relay_enabled_for("webdav") is False
    assert fetch.await_count == 2


async def test_fetch_failure_fails_closed_without_caching(clock):
    fetch = AsyncMock(side_effect=[httpx.ConnectError("unreachable"), envelope()])
    gate = ProxyAvailabilityGate(fetch, ttl=300, clock=clock)

    assert await gate.is_relay_enabled_for("webdav") is False
    assert await gate.unavailable_message("webdav") == "webdav message"
    assert fetch.await_count == 2


async def test_failure_message_is_reported(clock):
    fetch = AsyncMock(side_effect=httpx.ConnectError("unreachable"))
    gate = ProxyAvailabilityGate(fetch, clock=clock)

    assert await gate.unavailable_message("llm") == FETCH_FAILED_MESSAGE
    assert await gate.unavailable_message("webdav") == FETCH_FAILED_MESSAGE


@pytest.mark.parametrize(
    "error",
    [OSError("socket closed"), RuntimeError("unexpected"), httpx.InvalidURL("bad url")],
)
async def test_any_fetch_error_fails_closed(clock, error):
    fetch = AsyncMock(side_effect=[error, envelope()])
    gate = ProxyAvailabilityGate(fetch, clock=clock)

    assert await gate.is_relay_enabled_for("webdav") is False
    assert await gate.is_relay_enabled_for("webdav") is True


async def test_malformed_relay_base_url_fails_closed(clock):
    gate = ProxyAvailabilityGate(HttpProxyStatusFetcher("http://[::1"), clock=clock)

    assert await gate.is_relay_enabled_for("webdav") is False
    assert await gate.unavailable_message("webdav") == FETCH_FAILED_MESSAGE


@pytest.mark.parametrize(
    "payload",
    [
        {"success": False, "error": "nope"},
        {"data": {"webdav": {"enabled": True}}},
        ["not", "a", "dict"],
        {"success": True, "data": {"webdav": {"enabled": "sometimes"}}},
    ],
)
async def test_unsuccessful_or_malformed_envelope_fails_closed(clock, payload):
    gate = ProxyAvailabilityGate(AsyncMock(return_value=payload), clock=clock)

    status = await gate.get_status()

    assert status.webdav_relay_enabled is False
    assert status.llm_relay_enabled is False


async def test_invalidate_forces_refetch(clock):
    fetch = AsyncMock(return_value=envelope())
    gate = ProxyAvailabilityGate(fetch, clock=clock)

    await gate.get_status()
    gate.invalidate()
    await gate.get_status()

    assert fetch.await_count == 2


async def test_unknown_kind_is_rejected(clock):
    fetch = AsyncMock(return_value=envelope())
    gate = ProxyAvailabilityGate(fetch, clock=clock)

    with pytest.raises(ValueError, match="Unknown relay kind"):
        await gate.is_relay_enabled_for("ftp")
    with pytest.raises(ValueError):
        await gate.unavailable_message("ftp")
    fetch.assert_not_awaited()


async def test_concurrent_callers_share_one_fetch(clock):
    calls = 0

    async def slow_fetch():
        nonlocal calls
        calls += 1
        await anyio.sleep(0.01)
        return envelope()

    gate = ProxyAvailabilityGate(slow_fetch, clock=clock)
    results = []

    async def check():
        results.append(await gate.is_relay_enabled_for("webdav"))

    async with anyio.create_task_group() as tg:
        for _ in range(5):
            tg.start_soon(check)

    assert calls == 1
    assert results == [True] * 5


class TestHttpFetcher:
    async def test_fetches_status_endpoint(self):
        seen = []

        def handler(request):
            seen.append(str(request.url))
            return httpx.Response(200, json=envelope())

        fetcher = HttpProxyStatusFetcher(
            "http://relay.test/", transport=httpx.MockTransport(handler)
        )

        assert await fetcher() == envelope()
        assert seen == ["http://relay.test/api/proxy-status"]

    async def test_http_error_fails_closed_through_gate(self, clock):
        fetcher = HttpProxyStatusFetcher(
            "http://relay.test",
            transport=httpx.MockTransport(lambda request: httpx.Response(502)),
        )
        gate = ProxyAvailabilityGate(fetcher, clock=clock)

        assert await gate.is_relay_enabled_for("webdav") is False

    def test_gate_from_settings_uses_ttl_and_base_url(self):
        gate = ProxyAvailabilityGate.from_settings(
            Settings(relay_base_url="https://tool.example.com/", proxy_status_ttl=60)
        )

        assert gate.ttl == 60
        assert gate._fetch_status.url == "https://tool.example.com/api/proxy-status"


@pytest.mark.parametrize(
    "llm,webdav",
    [(True, False), (False, True), (False, False)],
)
def test_proxy_config_reports_flags_with_messages(llm, webdav):
    status = ProxyConfig(llm_proxy_enabled=llm, webdav_proxy_enabled=webdav).to_status()

    assert status.llm.enabled is llm
    assert status.webdav.enabled is webdav
    for flag in (status.llm, status.webdav):
        if flag.enabled:
            assert flag.message.endswith("is enabled")
        else:
            assert "administrator" in flag.message


def test_proxy_config_from_settings():
    config = ProxyConfig.from_settings(Settings(enable_webdav_proxy=True))
    assert config.webdav_proxy_enabled is True
    assert config.llm_proxy_enabled is False
