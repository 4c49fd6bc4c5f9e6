"""
Observability for the paper research tool.

This module provides:
- Structured logging (JSON via python-json-logger, or text)
- Prometheus metrics for WebDAV transports, the relay and the availability gate
"""

from paper_research_tool.observability.logging_config import (
    get_uvicorn_logging_config,
    setup_logging,
)
from paper_research_tool.observability.metrics import (
    record_proxy_status_fetch,
    record_relay_request,
    record_webdav_request,
)

__all__ = [
    "setup_logging",
    "get_uvicorn_logging_config",
    "record_webdav_request",
    "record_relay_request",
    "record_proxy_status_fetch",
]
