"""Relay endpoints.

- ``POST /api/webdav`` forwards one WebDAV operation to the origin server
- ``POST /api/webdav/detect`` probes both connection modes for a config
- ``GET /api/proxy-status`` reports which relays the administrator enabled

Upstream requests use ``request.app.state.upstream_transport`` when set,
which lets tests route the origin through an ``httpx.MockTransport``.
"""

import logging

from httpx import AsyncClient, BasicAuth, InvalidURL, RequestError, Timeout
from pydantic import ValidationError
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from paper_research_tool.client.smart import SmartWebDAVClient, TransportFactory
from paper_research_tool.client.relay import RELAY_DISABLED_CODE
from paper_research_tool.models import ConnectivityConfig, RelayRequest, RelayResponse
from paper_research_tool.observability.metrics import record_relay_request
from paper_research_tool.proxy_status import ProxyConfig

logger = logging.getLogger(__name__)

# Only these verbs carry a request body to the origin
BODY_METHODS = ("PUT", "PROPFIND")

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
}


def _sanitize_error_for_client(error: Exception, context: str = "") -> str:
    """
    Return a safe, generic error message for clients.

    The detailed error is logged internally only.
    """
    logger.error(f"Error in {context}: {error}", exc_info=True)
    return "An internal error occurred. Please contact your administrator."


def _timeout(request: Request) -> Timeout:
    return Timeout(request.app.state.settings.webdav_timeout, connect=5)


async def webdav_relay(request: Request) -> JSONResponse:
    """POST /api/webdav - forward one WebDAV operation to the origin.

    Returns the normalized envelope ``{success, status, statusText, data,
    headers}``; origin failures are reported inside a 200 envelope, relay
    failures with a 4xx/5xx status.
    """
    settings = request.app.state.settings
    if not settings.enable_webdav_proxy:
        record_relay_request("disabled")
        return JSONResponse(
            {
                "success": False,
                "error": "WebDAV relay is disabled",
                "message": (
                    "The administrator has disabled the WebDAV relay. Use direct "
                    "mode or ask the administrator to enable the relay."
                ),
                "code": RELAY_DISABLED_CODE,
            },
            status_code=403,
        )

    try:
        descriptor = RelayRequest.model_validate(await request.json())
    except (ValueError, ValidationError) as e:
        logger.debug(f"Rejected relay request: {e}")
        record_relay_request("invalid")
        return JSONResponse(
            {"success": False, "error": "Missing required parameters"},
            status_code=400,
        )

    method = descriptor.method.upper()
    content = None
    if descriptor.data and method in BODY_METHODS:
        content = descriptor.data.encode("utf-8")

    try:
        async with AsyncClient(
            auth=BasicAuth(descriptor.config.username, descriptor.config.secret),
            timeout=_timeout(request),
            transport=request.app.state.upstream_transport,
        ) as client:
            upstream = await client.request(
                method, descriptor.url, headers=descriptor.headers, content=content
            )
    except (RequestError, InvalidURL) as e:
        logger.warning(f"Relay {method} {descriptor.url} failed: {type(e).__name__}: {e}")
        record_relay_request("error")
        return JSONResponse(
            {"success": False, "error": str(e) or type(e).__name__, "status": 500},
            status_code=500,
        )

    success = upstream.is_success
    record_relay_request("success" if success else "failure")
    logger.debug(f"Relayed {method} {descriptor.url} -> {upstream.status_code}")

    envelope = RelayResponse(
        success=success,
        status=upstream.status_code,
        status_text=upstream.reason_phrase,
        data=upstream.text if success else None,
        headers=dict(upstream.headers.items()),
    )
    return JSONResponse(envelope.model_dump(by_alias=True))


async def webdav_relay_preflight(request: Request) -> Response:
    """OPTIONS /api/webdav - CORS preflight for browser clients."""
    return Response(status_code=200, headers=CORS_HEADERS)


async def detect_connection_mode(request: Request) -> JSONResponse:
    """POST /api/webdav/detect - probe direct and relay modes for a config.

    The relay probe goes back through this server's own ``/api/webdav``.
    """
    try:
        body = await request.json()
        config = ConnectivityConfig.model_validate(
            body.get("config") if isinstance(body, dict) else None
        )
    except (ValueError, ValidationError) as e:
        logger.debug(f"Rejected detection request: {e}")
        return JSONResponse(
            {"success": False, "error": "A WebDAV config object is required"},
            status_code=400,
        )

    if not config.is_complete():
        return JSONResponse(
            {
                "success": False,
                "error": "WebDAV configuration is incomplete",
            },
            status_code=400,
        )

    state = request.app.state
    factory = TransportFactory(
        relay_base_url=str(request.base_url).rstrip("/"),
        timeout=_timeout(request),
        direct_transport=state.upstream_transport,
        relay_transport=getattr(state, "relay_transport", None),
    )

    try:
        detection = await SmartWebDAVClient(config, factory).detect_best_connection_mode()
    except Exception as e:
        error_msg = _sanitize_error_for_client(e, "detect_connection_mode")
        return JSONResponse({"success": False, "error": error_msg}, status_code=500)

    return JSONResponse(detection.model_dump(by_alias=True, mode="json"))


async def get_proxy_status(request: Request) -> JSONResponse:
    """GET /api/proxy-status - administrative relay flags."""
    status = ProxyConfig.from_settings(request.app.state.settings).to_status()
    return JSONResponse({"success": True, "data": status.model_dump()})
