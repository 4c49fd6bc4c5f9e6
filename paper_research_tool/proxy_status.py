"""Relay availability: server-side flags and the client-side TTL gate.

The gate is fail-closed. Any failure to learn the relay status is treated as
"both relays disabled" and is not cached, so the next call tries again.
"""

import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

import anyio
from httpx import AsyncBaseTransport, AsyncClient, Timeout

from paper_research_tool.client.base import DEFAULT_TIMEOUT
from paper_research_tool.models import ProxyAvailability, ProxyStatus, RelayFlag
from paper_research_tool.observability.metrics import record_proxy_status_fetch

logger = logging.getLogger(__name__)

PROXY_STATUS_PATH = "/api/proxy-status"
DEFAULT_TTL = 300.0
FETCH_FAILED_MESSAGE = "Unable to fetch relay status, check the network"

RELAY_KINDS = ("llm", "webdav")

StatusFetcher = Callable[[], Awaitable[dict]]


@dataclass
class ProxyConfig:
    """Administrative relay flags as configured on the server."""

    llm_proxy_enabled: bool = False
    webdav_proxy_enabled: bool = False

    @classmethod
    def from_settings(cls, settings) -> "ProxyConfig":
        return cls(
            llm_proxy_enabled=settings.enable_llm_proxy,
            webdav_proxy_enabled=settings.enable_webdav_proxy,
        )

    def to_status(self) -> ProxyStatus:
        return ProxyStatus(
            llm=RelayFlag(
                enabled=self.llm_proxy_enabled,
                message="LLM relay is enabled"
                if self.llm_proxy_enabled
                else "LLM relay is disabled, contact the administrator to enable it",
            ),
            webdav=RelayFlag(
                enabled=self.webdav_proxy_enabled,
                message="WebDAV relay is enabled"
                if self.webdav_proxy_enabled
                else "WebDAV relay is disabled, contact the administrator to enable it",
            ),
        )


class HttpProxyStatusFetcher:
    """Fetches the status envelope from ``GET {base_url}/api/proxy-status``."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: Timeout = DEFAULT_TIMEOUT,
        transport: Optional[AsyncBaseTransport] = None,
    ):
        self.url = base_url.rstrip("/") + PROXY_STATUS_PATH
        self._timeout = timeout
        self._transport = transport

    async def __call__(self) -> dict:
        async with AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            response = await client.get(self.url)
            response.raise_for_status()
            return response.json()


class ProxyAvailabilityGate:
    """TTL-cached, fail-closed view of which relays the server allows.

    Args:
        fetch_status: Async callable returning the ``/api/proxy-status`` envelope
        ttl: Seconds a successful fetch stays fresh
        clock: Monotonic time source, injectable for tests
    """

    def __init__(
        self,
        fetch_status: StatusFetcher,
        *,
        ttl: float = DEFAULT_TTL,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._fetch_status = fetch_status
        self.ttl = ttl
        self._clock = clock
        self._cached: Optional[ProxyAvailability] = None
        self._lock = anyio.Lock()

    @classmethod
    def from_settings(cls, settings, **kwargs) -> "ProxyAvailabilityGate":
        fetcher = HttpProxyStatusFetcher(
            settings.relay_base_url, timeout=Timeout(settings.webdav_timeout, connect=5)
        )
        return cls(fetcher, ttl=settings.proxy_status_ttl, **kwargs)

    def _fresh(self) -> Optional[ProxyAvailability]:
        if self._cached is None:
            return None
        if self._clock() - self._cached.fetched_at >= self.ttl:
            return None
        return self._cached

    async def get_status(self) -> ProxyAvailability:
        cached = self._fresh()
        if cached is not None:
            return cached

        async with self._lock:
            # another caller may have refreshed while we waited
            cached = self._fresh()
            if cached is not None:
                return cached

            try:
                envelope = await self._fetch_status()
                if not isinstance(envelope, dict) or envelope.get("success") is not True:
                    raise ValueError(
                        f"Relay status request was not successful: {envelope!r}"
                    )
                status = ProxyStatus.model_validate(envelope.get("data") or {})
            except Exception as e:
                logger.warning(
                    f"Failed to fetch relay status, treating relays as disabled: "
                    f"{type(e).__name__}: {e}"
                )
                record_proxy_status_fetch("error")
                return ProxyAvailability(
                    llm_message=FETCH_FAILED_MESSAGE,
                    webdav_message=FETCH_FAILED_MESSAGE,
                    fetched_at=self._clock(),
                )

            self._cached = ProxyAvailability.from_status(status, fetched_at=self._clock())
            record_proxy_status_fetch("success")
            logger.debug(
                f"Relay status refreshed: llm={status.llm.enabled}, webdav={status.webdav.enabled}"
            )
            return self._cached

    async def is_relay_enabled_for(self, kind: str) -> bool:
        _check_kind(kind)
        availability = await self.get_status()
        if kind == "llm":
            return availability.llm_relay_enabled
        return availability.webdav_relay_enabled

    async def unavailable_message(self, kind: str) -> str:
        _check_kind(kind)
        availability = await self.get_status()
        if kind == "llm":
            return availability.llm_message
        return availability.webdav_message

    def invalidate(self) -> None:
        self._cached = None


def _check_kind(kind: str) -> None:
    if kind not in RELAY_KINDS:
        raise ValueError(f"Unknown relay kind '{kind}', expected one of {RELAY_KINDS}")
