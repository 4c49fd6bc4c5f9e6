"""Smart WebDAV client: chooses a transport from config and probes both modes."""

import logging
from dataclasses import dataclass, field
from typing import Optional

import anyio
from httpx import AsyncBaseTransport, Timeout

from paper_research_tool.client.base import DEFAULT_TIMEOUT, WebDAVTransport
from paper_research_tool.client.direct import DirectTransport
from paper_research_tool.client.relay import RelayTransport
from paper_research_tool.errors import ErrorCategory
from paper_research_tool.models.webdav import (
    ConnectionMode,
    ConnectivityConfig,
    DetectionResult,
    DownloadResult,
    ListResult,
    OperationResult,
)

logger = logging.getLogger(__name__)

RELAY_PATH = "/api/webdav"

DIRECT_CORS_ADVICE = (
    "Direct mode ran into a CORS restriction. Suggestions:\n"
    "✓ Enable the relay option to route requests through the server\n"
    "✓ Or ask your WebDAV provider to configure a CORS policy\n\n"
    "If your WebDAV server allows cross-origin access you can ignore this warning."
)
DIRECT_SUCCESS_NOTE = (
    "✓ Direct mode test succeeded. Your WebDAV server allows cross-origin access."
)
RELAY_SUCCESS_NOTE = "✓ Relay mode test succeeded. WebDAV is reached through the relay."

RECOMMENDATIONS = {
    (True, True): "Both connection modes work. Direct mode is recommended for better performance.",
    (True, False): "Direct mode is recommended. Your WebDAV server allows cross-origin access.",
    (False, True): "Relay mode is recommended. Direct mode is blocked by CORS restrictions.",
    (False, False): "Both connection modes failed. Check your WebDAV configuration.",
}


@dataclass
class TransportFactory:
    """Builds either transport variant for a given config.

    ``direct_transport`` and ``relay_transport`` are optional httpx transports
    handed to the underlying clients, mainly for tests.
    """

    relay_base_url: str = "http://127.0.0.1:8000"
    timeout: Timeout = field(default_factory=lambda: DEFAULT_TIMEOUT)
    direct_transport: Optional[AsyncBaseTransport] = None
    relay_transport: Optional[AsyncBaseTransport] = None

    @classmethod
    def from_settings(cls, settings, **kwargs) -> "TransportFactory":
        return cls(
            relay_base_url=settings.relay_base_url,
            timeout=Timeout(settings.webdav_timeout, connect=5),
            **kwargs,
        )

    @property
    def relay_endpoint(self) -> str:
        return self.relay_base_url.rstrip("/") + RELAY_PATH

    def create(self, config: ConnectivityConfig, mode: ConnectionMode) -> WebDAVTransport:
        if mode == ConnectionMode.DIRECT:
            return DirectTransport(
                config, timeout=self.timeout, transport=self.direct_transport
            )
        return RelayTransport(
            config,
            self.relay_endpoint,
            timeout=self.timeout,
            transport=self.relay_transport,
        )


def create_transport(
    config: ConnectivityConfig,
    mode: ConnectionMode,
    factory: Optional[TransportFactory] = None,
) -> WebDAVTransport:
    """Build the transport for ``mode`` without consulting ``config.use_relay``."""
    return (factory or TransportFactory()).create(config, mode)


def _append_details(result: OperationResult, note: str) -> str:
    return f"{result.details or ''}\n\n{note}".lstrip("\n")


def annotate_test_result(mode: ConnectionMode, result: OperationResult) -> OperationResult:
    """Add mode-specific advice to a ``test_connection`` result."""
    if mode == ConnectionMode.DIRECT:
        if not result.success and (
            result.category == ErrorCategory.CROSS_ORIGIN or "CORS" in result.message
        ):
            return result.model_copy(
                update={
                    "message": "CORS policy restriction, enabling the relay is recommended",
                    "details": _append_details(result, DIRECT_CORS_ADVICE),
                    "is_warning": True,
                }
            )
        if result.success:
            return result.model_copy(
                update={"details": _append_details(result, DIRECT_SUCCESS_NOTE)}
            )
        return result

    if result.success:
        return result.model_copy(
            update={"details": _append_details(result, RELAY_SUCCESS_NOTE)}
        )
    return result


def decide_connection_mode(
    direct_result: Optional[OperationResult], proxy_result: Optional[OperationResult]
) -> DetectionResult:
    """Apply the detection decision table to two probe results."""
    direct_ok = bool(direct_result and direct_result.success)
    proxy_ok = bool(proxy_result and proxy_result.success)

    return DetectionResult(
        success=direct_ok or proxy_ok,
        recommended_mode=ConnectionMode.DIRECT if direct_ok else ConnectionMode.RELAY,
        direct_result=direct_result,
        proxy_result=proxy_result,
        recommendation=RECOMMENDATIONS[(direct_ok, proxy_ok)],
    )


class SmartWebDAVClient:
    """Facade binding one transport according to ``config.use_relay``."""

    def __init__(
        self, config: ConnectivityConfig, factory: Optional[TransportFactory] = None
    ):
        self.config = config
        self.factory = factory or TransportFactory()
        self.transport = self.factory.create(config, self.get_connection_type())

    def get_connection_type(self) -> ConnectionMode:
        return self.config.mode

    async def upload_file(self, name: str, content: str) -> OperationResult:
        return await self.transport.upload(name, content)

    async def download_file(self, name: str) -> DownloadResult:
        return await self.transport.download(name)

    async def list_files(self) -> ListResult:
        return await self.transport.list()

    async def delete_file(self, name: str) -> OperationResult:
        return await self.transport.delete(name)

    async def test_connection(self) -> OperationResult:
        result = await self.transport.test_connection()
        return annotate_test_result(self.get_connection_type(), result)

    async def _probe(self, mode: ConnectionMode) -> OperationResult:
        transport = self.factory.create(self.config, mode)
        try:
            result = await transport.test_connection()
        except Exception as e:
            logger.exception(f"Unexpected error probing {mode.value} mode")
            return OperationResult.fail(
                "Error during detection",
                ErrorCategory.CONNECTIVITY,
                details=str(e) or type(e).__name__,
            )
        if mode == ConnectionMode.RELAY:
            return annotate_test_result(mode, result)
        return result

    async def detect_best_connection_mode(self) -> DetectionResult:
        """Probe direct and relay modes concurrently and recommend one.

        Neither probe touches the bound transport; each builds its own from
        the same config.
        """
        results: dict[ConnectionMode, OperationResult] = {}

        async def run_probe(mode: ConnectionMode) -> None:
            results[mode] = await self._probe(mode)

        async with anyio.create_task_group() as tg:
            tg.start_soon(run_probe, ConnectionMode.DIRECT)
            tg.start_soon(run_probe, ConnectionMode.RELAY)

        detection = decide_connection_mode(
            results.get(ConnectionMode.DIRECT), results.get(ConnectionMode.RELAY)
        )
        logger.info(
            f"Connection detection recommends {detection.recommended_mode.value} "
            f"(success={detection.success})"
        )
        return detection
