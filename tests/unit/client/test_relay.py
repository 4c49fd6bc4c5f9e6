"""Unit tests for the relay WebDAV transport."""

import json

import httpx
import pytest

from paper_research_tool.app import get_app
from paper_research_tool.client.relay import RelayTransport
from paper_research_tool.config import Settings
from paper_research_tool.errors import ErrorCategory
from paper_research_tool.models import ConnectivityConfig

pytestmark = pytest.mark.unit

RELAY_URL = "http://relay.test/api/webdav"


def relay_through_app(config, webdav_server, enable_webdav_proxy=True):
    """Relay transport talking to the real relay app over ASGI."""
    app = get_app(
        Settings(enable_webdav_proxy=enable_webdav_proxy),
        upstream_transport=httpx.MockTransport(webdav_server.handler),
    )
    return RelayTransport(config, RELAY_URL, transport=httpx.ASGITransport(app=app))


async def test_operations_round_trip_through_relay(webdav_config, webdav_server):
    transport = relay_through_app(webdav_config, webdav_server)

    assert (await transport.upload("a.json", '{"x": 1}')).success is True

    listing = await transport.list()
    assert listing.success is True
    assert [f.name for f in listing.files] == ["a.json"]

    downloaded = await transport.download("a.json")
    assert downloaded.content == '{"x": 1}'

    assert (await transport.delete("a.json")).success is True
    assert webdav_server.files == {}


async def test_relay_reports_origin_status_mapping(webdav_config, webdav_server):
    transport = relay_through_app(webdav_config, webdav_server)

    result = await transport.download("missing.json")

    assert result.success is False
    assert result.category == ErrorCategory.NOT_FOUND


async def test_relay_test_connection_succeeds(webdav_config, webdav_server):
    result = await relay_through_app(webdav_config, webdav_server).test_connection()
    assert result.success is True


async def test_disabled_relay_message_passes_through(webdav_config, webdav_server):
    transport = relay_through_app(webdav_config, webdav_server, enable_webdav_proxy=False)

    result = await transport.test_connection()

    assert result.success is False
    assert result.category == ErrorCategory.RELAY_DISABLED
    assert "administrator" in result.message
    assert "CORS" not in result.message
    assert webdav_server.requests == []


async def test_descriptor_carries_credentials_not_auth_header(webdav_config):
    captured = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return httpx.Response(
            200,
            json={
                "success": True,
                "status": 201,
                "statusText": "Created",
                "data": "",
                "headers": {},
            },
        )

    transport = RelayTransport(webdav_config, RELAY_URL, transport=httpx.MockTransport(handler))
    await transport.upload("a.json", "{}")

    put = captured[-1]
    assert "authorization" not in put.headers
    body = json.loads(put.content)
    assert body["method"] == "PUT"
    assert body["url"].endswith("/paper-research-tool/a.json")
    assert body["data"] == "{}"
    assert body["config"] == {"username": "alice", "secret": "s3cret"}


async def test_relay_server_error_is_connectivity_failure(webdav_config):
    def handler(request):
        return httpx.Response(
            500, json={"success": False, "error": "getaddrinfo failed", "status": 500}
        )

    transport = RelayTransport(webdav_config, RELAY_URL, transport=httpx.MockTransport(handler))
    result = await transport.download("a.json")

    assert result.success is False
    assert result.category == ErrorCategory.CONNECTIVITY
    assert "getaddrinfo failed" in result.details


async def test_malformed_envelope_is_connectivity_failure(webdav_config):
    def handler(request):
        return httpx.Response(200, text="<html>gateway</html>")

    transport = RelayTransport(webdav_config, RELAY_URL, transport=httpx.MockTransport(handler))
    result = await transport.delete("a.json")

    assert result.category == ErrorCategory.CONNECTIVITY


async def test_malformed_relay_url_is_connectivity_failure(webdav_config):
    result = await RelayTransport(webdav_config, "http://[::1/api/webdav").list()

    assert result.success is False
    assert result.category == ErrorCategory.CONNECTIVITY


async def test_malformed_origin_url_is_reported_by_relay(webdav_server):
    config = ConnectivityConfig(server_url="http://[::1/dav/", username="alice", secret="s3cret")
    result = await relay_through_app(config, webdav_server).test_connection()

    assert result.success is False
    assert result.category == ErrorCategory.CONNECTIVITY
    assert webdav_server.requests == []


async def test_unreachable_relay_is_connectivity_failure(webdav_config):
    def handler(request):
        raise httpx.ConnectError("Connection refused")

    transport = RelayTransport(webdav_config, RELAY_URL, transport=httpx.MockTransport(handler))
    result = await transport.test_connection()

    assert result.success is False
    assert result.category == ErrorCategory.CONNECTIVITY
