"""Direct transport: the WebDAV server is contacted from this process."""

import logging
from typing import Dict, Optional

from httpx import (
    AsyncBaseTransport,
    AsyncClient,
    BasicAuth,
    InvalidURL,
    RequestError,
    Timeout,
)

from paper_research_tool.client.base import (
    DEFAULT_TIMEOUT,
    EVENT_HOOKS,
    TransportResponse,
    WebDAVTransport,
)
from paper_research_tool.errors import (
    ConnectivityError,
    CrossOriginError,
    is_cors_failure,
)
from paper_research_tool.models.webdav import ConnectionMode, ConnectivityConfig

logger = logging.getLogger(__name__)


class DirectTransport(WebDAVTransport):
    """Issues WebDAV requests straight to the origin with HTTP Basic auth."""

    mode = ConnectionMode.DIRECT

    def __init__(
        self,
        config: ConnectivityConfig,
        *,
        timeout: Timeout = DEFAULT_TIMEOUT,
        transport: Optional[AsyncBaseTransport] = None,
    ):
        super().__init__(config)
        self._timeout = timeout
        self._transport = transport

    def _client(self) -> AsyncClient:
        return AsyncClient(
            auth=BasicAuth(self.config.username, self.config.secret),
            timeout=self._timeout,
            transport=self._transport,
            event_hooks=EVENT_HOOKS,
        )

    async def _send(
        self,
        method: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        data: Optional[str] = None,
    ) -> TransportResponse:
        try:
            async with self._client() as client:
                response = await client.request(
                    method,
                    url,
                    headers=headers,
                    content=data.encode("utf-8") if data is not None else None,
                )
        except (RequestError, InvalidURL) as e:
            if is_cors_failure(e):
                raise CrossOriginError(str(e)) from e
            logger.debug(f"Direct {method} {url} failed: {type(e).__name__}: {e}")
            raise ConnectivityError(str(e) or type(e).__name__) from e

        return TransportResponse(
            status=response.status_code,
            reason=response.reason_phrase,
            headers={k.lower(): v for k, v in response.headers.items()},
            text=response.text,
        )
