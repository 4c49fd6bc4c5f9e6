from .base import TransportResponse, WebDAVTransport, normalize_server_url
from .direct import DirectTransport
from .parser import parse_multistatus
from .relay import RelayTransport
from .smart import (
    SmartWebDAVClient,
    TransportFactory,
    create_transport,
    decide_connection_mode,
)

__all__ = [
    "DirectTransport",
    "RelayTransport",
    "SmartWebDAVClient",
    "TransportFactory",
    "TransportResponse",
    "WebDAVTransport",
    "create_transport",
    "decide_connection_mode",
    "normalize_server_url",
    "parse_multistatus",
]
