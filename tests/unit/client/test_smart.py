"""Unit tests for the smart client, its factory and mode detection."""

import httpx
import pytest

from paper_research_tool.app import get_app
from paper_research_tool.client.base import DEFAULT_TIMEOUT
from paper_research_tool.client.direct import DirectTransport
from paper_research_tool.client.relay import RelayTransport
from paper_research_tool.client.smart import (
    SmartWebDAVClient,
    TransportFactory,
    annotate_test_result,
    create_transport,
    decide_connection_mode,
)
from paper_research_tool.config import Settings
from paper_research_tool.errors import ErrorCategory
from paper_research_tool.models import ConnectionMode, ConnectivityConfig, OperationResult

pytestmark = pytest.mark.unit


def ok():
    return OperationResult.ok("WebDAV connection test succeeded")


def failed():
    return OperationResult.fail("WebDAV connection failed", ErrorCategory.HTTP)


def cors_blocked(request):
    raise httpx.ConnectError("CORS request did not succeed")


@pytest.fixture
def relay_factory(webdav_server):
    """Factory whose direct mode hits CORS and whose relay reaches the origin."""
    app = get_app(
        Settings(enable_webdav_proxy=True),
        upstream_transport=httpx.MockTransport(webdav_server.handler),
    )
    return TransportFactory(
        relay_base_url="http://relay.test",
        direct_transport=httpx.MockTransport(cors_blocked),
        relay_transport=httpx.ASGITransport(app=app),
    )


@pytest.mark.parametrize(
    "direct,relay,mode,success",
    [
        (True, True, ConnectionMode.DIRECT, True),
        (True, False, ConnectionMode.DIRECT, True),
        (False, True, ConnectionMode.RELAY, True),
        (False, False, ConnectionMode.RELAY, False),
    ],
)
def test_decision_table(direct, relay, mode, success):
    result = decide_connection_mode(
        ok() if direct else failed(), ok() if relay else failed()
    )

    assert result.recommended_mode == mode
    assert result.success is success
    assert result.recommendation


@pytest.mark.parametrize(
    "use_relay,expected",
    [(False, DirectTransport), (True, RelayTransport)],
)
def test_client_binds_transport_from_config(webdav_config, use_relay, expected):
    config = webdav_config.model_copy(update={"use_relay": use_relay})
    client = SmartWebDAVClient(config)

    assert isinstance(client.transport, expected)
    assert client.get_connection_type() == (
        ConnectionMode.RELAY if use_relay else ConnectionMode.DIRECT
    )


def test_missing_use_relay_defaults_to_relay():
    config = ConnectivityConfig.model_validate(
        {"url": "https://dav.example.com", "username": "u", "password": "p"}
    )
    assert SmartWebDAVClient(config).get_connection_type() == ConnectionMode.RELAY


def test_create_transport_ignores_config_flag(webdav_config):
    transport = create_transport(webdav_config, ConnectionMode.RELAY)

    assert isinstance(transport, RelayTransport)
    assert transport.relay_url == "http://127.0.0.1:8000/api/webdav"


def test_factory_default_timeout():
    first, second = TransportFactory(), TransportFactory()

    assert first.timeout == DEFAULT_TIMEOUT
    assert first.timeout.connect == 5
    assert second.timeout == first.timeout


def test_factory_from_settings_uses_configured_timeout():
    factory = TransportFactory.from_settings(Settings(webdav_timeout=12))
    transport = factory.create(
        ConnectivityConfig(server_url="https://x", username="u", secret="p"),
        ConnectionMode.DIRECT,
    )

    assert factory.timeout == httpx.Timeout(12, connect=5)
    assert transport._timeout == factory.timeout


def test_factory_relay_endpoint_strips_trailing_slash():
    factory = TransportFactory(relay_base_url="https://tool.example.com/")
    assert factory.relay_endpoint == "https://tool.example.com/api/webdav"


class TestAnnotation:
    def test_direct_cors_failure_recommends_relay(self):
        result = OperationResult.fail(
            "CORS policy restriction", ErrorCategory.CROSS_ORIGIN, is_warning=True
        )

        annotated = annotate_test_result(ConnectionMode.DIRECT, result)

        assert annotated.is_warning is True
        assert "relay" in annotated.message
        assert "relay" in annotated.details

    def test_direct_success_confirms_cross_origin_support(self):
        annotated = annotate_test_result(ConnectionMode.DIRECT, ok())
        assert "cross-origin" in annotated.details

    def test_relay_success_confirms_relay(self):
        annotated = annotate_test_result(ConnectionMode.RELAY, ok())
        assert "Relay mode" in annotated.details

    def test_relay_failure_is_unchanged(self):
        result = failed()
        assert annotate_test_result(ConnectionMode.RELAY, result) == result

    def test_other_direct_failure_is_unchanged(self):
        result = failed()
        assert annotate_test_result(ConnectionMode.DIRECT, result) == result


async def test_direct_client_test_connection_annotates_cors(webdav_config):
    factory = TransportFactory(direct_transport=httpx.MockTransport(cors_blocked))

    result = await SmartWebDAVClient(webdav_config, factory).test_connection()

    assert result.success is False
    assert result.is_warning is True
    assert "relay" in result.message


async def test_detection_recommends_relay_when_direct_is_blocked(
    webdav_config, relay_factory
):
    client = SmartWebDAVClient(webdav_config, relay_factory)
    bound = client.transport

    result = await client.detect_best_connection_mode()

    assert result.success is True
    assert result.recommended_mode == ConnectionMode.RELAY
    assert result.direct_result.success is False
    assert result.proxy_result.success is True
    assert client.transport is bound
    assert client.get_connection_type() == ConnectionMode.DIRECT


async def test_detection_recommends_direct_when_both_work(webdav_config, webdav_server):
    app = get_app(
        Settings(enable_webdav_proxy=True),
        upstream_transport=httpx.MockTransport(webdav_server.handler),
    )
    factory = TransportFactory(
        relay_base_url="http://relay.test",
        direct_transport=httpx.MockTransport(webdav_server.handler),
        relay_transport=httpx.ASGITransport(app=app),
    )

    result = await SmartWebDAVClient(webdav_config, factory).detect_best_connection_mode()

    assert result.recommended_mode == ConnectionMode.DIRECT
    assert result.success is True


async def test_unexpected_probe_error_does_not_abort_other_probe(
    webdav_config, relay_factory, mocker
):
    mocker.patch.object(
        DirectTransport, "test_connection", side_effect=RuntimeError("boom")
    )

    result = await SmartWebDAVClient(webdav_config, relay_factory).detect_best_connection_mode()

    assert result.direct_result.success is False
    assert "boom" in result.direct_result.details
    assert result.proxy_result.success is True
    assert result.recommended_mode == ConnectionMode.RELAY


async def test_detection_fails_when_both_modes_fail(webdav_config):
    def refuse(request):
        raise httpx.ConnectError("Connection refused")

    factory = TransportFactory(
        direct_transport=httpx.MockTransport(refuse),
        relay_transport=httpx.MockTransport(refuse),
    )

    result = await SmartWebDAVClient(webdav_config, factory).detect_best_connection_mode()

    assert result.success is False
    assert result.recommended_mode == ConnectionMode.RELAY
