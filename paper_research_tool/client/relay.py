"""Relay transport: WebDAV operations are forwarded by the server-side relay."""

import logging
from typing import Dict, Optional

from httpx import (
    AsyncBaseTransport,
    AsyncClient,
    InvalidURL,
    RequestError,
    Response,
    Timeout,
)
from pydantic import ValidationError

from paper_research_tool.client.base import (
    DEFAULT_TIMEOUT,
    EVENT_HOOKS,
    TransportResponse,
    WebDAVTransport,
)
from paper_research_tool.errors import ConnectivityError, RelayDisabledError
from paper_research_tool.models.webdav import (
    ConnectionMode,
    ConnectivityConfig,
    RelayCredentials,
    RelayRequest,
    RelayResponse,
)

logger = logging.getLogger(__name__)

RELAY_DISABLED_CODE = "PROXY_DISABLED"


class RelayTransport(WebDAVTransport):
    """Posts operation descriptors to ``relay_url`` and unwraps the envelope.

    Credentials travel in the descriptor body; the relay builds the Basic
    auth header for the origin request.
    """

    mode = ConnectionMode.RELAY

    def __init__(
        self,
        config: ConnectivityConfig,
        relay_url: str,
        *,
        timeout: Timeout = DEFAULT_TIMEOUT,
        transport: Optional[AsyncBaseTransport] = None,
    ):
        super().__init__(config)
        self.relay_url = relay_url
        self._timeout = timeout
        self._transport = transport

    def _descriptor(
        self,
        method: str,
        url: str,
        headers: Optional[Dict[str, str]],
        data: Optional[str],
    ) -> dict:
        request = RelayRequest(
            method=method,
            url=url,
            headers=headers or {},
            data=data,
            config=RelayCredentials(
                username=self.config.username, secret=self.config.secret
            ),
        )
        return request.model_dump(exclude_none=True)

    async def _send(
        self,
        method: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        data: Optional[str] = None,
    ) -> TransportResponse:
        try:
            async with AsyncClient(
                timeout=self._timeout,
                transport=self._transport,
                event_hooks=EVENT_HOOKS,
            ) as client:
                response = await client.post(
                    self.relay_url, json=self._descriptor(method, url, headers, data)
                )
        except (RequestError, InvalidURL) as e:
            logger.debug(f"Relay request to {self.relay_url} failed: {e}")
            raise ConnectivityError(
                f"Relay request failed: {str(e) or type(e).__name__}"
            ) from e

        if response.status_code >= 400:
            raise self._relay_error(response)

        try:
            envelope = RelayResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise ConnectivityError(f"Relay returned a malformed response: {e}") from e

        return TransportResponse(
            status=envelope.status,
            reason=envelope.status_text,
            headers={k.lower(): v for k, v in envelope.headers.items()},
            text=envelope.data,
        )

    def _relay_error(self, response: Response) -> Exception:
        status = response.status_code
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        if status == 403 and body.get("code") == RELAY_DISABLED_CODE:
            message = body.get("message") or body.get("error") or "Relay is disabled"
            logger.info(f"Relay refused {self.relay_url}: {message}")
            return RelayDisabledError(message, status=status)

        detail = body.get("error") or response.reason_phrase
        return ConnectivityError(f"Relay request failed: {status} {detail}", status=status)
