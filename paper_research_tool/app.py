import logging
from typing import Optional

from httpx import AsyncBaseTransport
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.applications import Starlette
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from paper_research_tool.api.relay import (
    detect_connection_mode,
    get_proxy_status,
    webdav_relay,
    webdav_relay_preflight,
)
from paper_research_tool.config import Settings, get_settings

logger = logging.getLogger(__name__)


def health_live(request):
    """Liveness probe endpoint.

    Returns 200 OK if the application process is running.
    """
    return JSONResponse({"status": "alive"})


def metrics(request):
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


def get_app(
    settings: Optional[Settings] = None,
    upstream_transport: Optional[AsyncBaseTransport] = None,
) -> Starlette:
    """Build the relay application.

    Args:
        settings: Application settings, read from the environment when omitted
        upstream_transport: httpx transport used for requests to WebDAV origins
    """
    if settings is None:
        settings = get_settings()

    routes = [
        Route("/api/webdav", webdav_relay, methods=["POST"]),
        Route("/api/webdav", webdav_relay_preflight, methods=["OPTIONS"]),
        Route("/api/webdav/detect", detect_connection_mode, methods=["POST"]),
        Route("/api/proxy-status", get_proxy_status, methods=["GET"]),
        Route("/health/live", health_live, methods=["GET"]),
    ]
    if settings.metrics_enabled:
        routes.append(Route("/metrics", metrics, methods=["GET"]))

    app = Starlette(routes=routes)
    app.state.settings = settings
    app.state.upstream_transport = upstream_transport
    app.state.relay_transport = None

    logger.info(
        f"Relay app configured: webdav_relay={settings.enable_webdav_proxy}, "
        f"llm_relay={settings.enable_llm_proxy}, metrics={settings.metrics_enabled}"
    )
    return app
