"""Base transport for WebDAV operations scoped to the app subdirectory."""

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Optional

from httpx import Request, Response, Timeout

from paper_research_tool.client.parser import parse_multistatus
from paper_research_tool.errors import (
    AuthenticationError,
    ConnectivityError,
    CrossOriginError,
    DirectoryOperationError,
    ErrorCategory,
    PermissionDeniedError,
    RelayDisabledError,
    WebDAVError,
    error_for_status,
)
from paper_research_tool.models.webdav import (
    APP_SUBDIRECTORY,
    ConnectionMode,
    ConnectivityConfig,
    DownloadResult,
    ListResult,
    OperationResult,
)
from paper_research_tool.observability.metrics import record_webdav_request

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = Timeout(timeout=30, connect=5)

AUTH_FAILED_MESSAGE = "WebDAV authentication failed, check username and password"
PERMISSION_DENIED_MESSAGE = "WebDAV access denied, check permission settings"
NETWORK_FAILED_MESSAGE = (
    "Network connection failed, check the WebDAV server address and network"
)
CORS_MESSAGE = "CORS policy restriction"
CORS_DETAILS = (
    "The cross-origin policy blocked direct access to the WebDAV server. "
    "This is normal for most WebDAV providers; switch to relay mode to avoid it."
)

_STATUS_MESSAGES = {
    401: AUTH_FAILED_MESSAGE,
    403: PERMISSION_DENIED_MESSAGE,
}


async def log_request(request: Request):
    logger.debug("Request event hook: %s %s", request.method, request.url)


async def log_response(response: Response):
    await response.aread()
    logger.debug("Response [%s] %s", response.status_code, response.text[:500])


EVENT_HOOKS = {"request": [log_request], "response": [log_response]}


def normalize_server_url(url: str) -> str:
    """Return ``url`` with exactly one trailing slash."""
    return url.strip().rstrip("/") + "/"


def sanitize_name(name: str) -> str:
    """Strip leading slashes so a name cannot escape the app subdirectory."""
    return name.lstrip("/")


@dataclass
class TransportResponse:
    """Origin response as seen by a transport, whichever way it travelled."""

    status: int
    reason: str = ""
    headers: Dict[str, str] = field(default_factory=dict)
    text: Optional[str] = None

    @property
    def ok(self) -> bool:
        # 207 Multi-Status falls inside this range
        return 200 <= self.status < 300


class WebDAVTransport(ABC):
    """Operation contract shared by the direct and relay transports.

    Subclasses only implement :meth:`_send`. Every public operation returns
    an :class:`OperationResult`; expected failures (network, CORS, 401, 403,
    404, disabled relay) never raise.
    """

    mode: ConnectionMode

    def __init__(self, config: ConnectivityConfig):
        self.config = config

    @property
    def root_url(self) -> str:
        return normalize_server_url(self.config.server_url)

    @property
    def app_url(self) -> str:
        return f"{self.root_url}{APP_SUBDIRECTORY}/"

    def resource_url(self, name: str = "") -> str:
        return self.app_url + sanitize_name(name)

    @abstractmethod
    async def _send(
        self,
        method: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        data: Optional[str] = None,
    ) -> TransportResponse:
        """Deliver one request to the origin.

        Raises:
            ConnectivityError: No response was received
            RelayDisabledError: The relay refused the operation
        """

    async def _request(
        self,
        method: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        data: Optional[str] = None,
    ) -> TransportResponse:
        """Common request wrapper with logging and metrics."""
        logger.debug(f"[{self.mode.value}] {method} {url}")

        start_time = time.time()
        status_code = 0
        try:
            response = await self._send(method, url, headers=headers, data=data)
            status_code = response.status
            logger.debug(f"[{self.mode.value}] {method} {url} -> {status_code}")
            return response
        finally:
            record_webdav_request(
                mode=self.mode.value,
                method=method,
                status_code=status_code,
                duration=time.time() - start_time,
            )

    async def _ensure_directory(self) -> None:
        """Create the app subdirectory if a depth-0 probe reports it missing."""
        url = self.app_url
        probe = await self._request("PROPFIND", url, headers={"Depth": "0"})

        if probe.status == 404:
            created = await self._request("MKCOL", url)
            # 405 Method Not Allowed means the collection already exists
            if not created.ok and created.status != 405:
                raise DirectoryOperationError(
                    f"Failed to create directory: {created.status} {created.reason}",
                    status=created.status,
                )
            logger.info(f"Created app directory {url}")
        elif probe.status in _STATUS_MESSAGES:
            raise error_for_status(probe.status, _STATUS_MESSAGES[probe.status])
        elif not probe.ok:
            raise DirectoryOperationError(
                f"Failed to check directory: {probe.status} {probe.reason}",
                status=probe.status,
            )

    def _error_from_response(
        self, response: TransportResponse, action: str, name: Optional[str] = None
    ) -> WebDAVError:
        if response.status == 404 and name is not None:
            return error_for_status(404, f"File {name} does not exist")
        if response.status in _STATUS_MESSAGES:
            return error_for_status(response.status, _STATUS_MESSAGES[response.status])
        return WebDAVError(
            f"{action} failed: {response.status} {response.reason}".strip(),
            status=response.status,
        )

    def _result_from_error(
        self, error: WebDAVError, action: str, result_cls=OperationResult
    ):
        if isinstance(error, CrossOriginError):
            return result_cls.fail(
                CORS_MESSAGE,
                ErrorCategory.CROSS_ORIGIN,
                details=CORS_DETAILS,
                is_warning=True,
            )
        if isinstance(error, ConnectivityError):
            return result_cls.fail(
                NETWORK_FAILED_MESSAGE, ErrorCategory.CONNECTIVITY, details=error.message
            )
        if isinstance(error, DirectoryOperationError):
            return result_cls.fail(
                f"{action} failed: directory operation failed",
                ErrorCategory.DIRECTORY,
                details=error.message,
            )
        return result_cls.fail(error.message, error.category)

    async def upload(self, name: str, content: str) -> OperationResult:
        """Write ``content`` to ``name`` inside the app subdirectory via PUT."""
        try:
            await self._ensure_directory()
            response = await self._request(
                "PUT",
                self.resource_url(name),
                headers={"Content-Type": "application/json; charset=utf-8"},
                data=content,
            )
            if response.ok:
                logger.debug(f"Uploaded '{name}' ({len(content)} chars)")
                return OperationResult.ok(f"File {name} uploaded successfully")
            raise self._error_from_response(response, "Upload")
        except WebDAVError as e:
            logger.warning(f"WebDAV upload of '{name}' failed: {e}")
            return self._result_from_error(e, "Upload")

    async def download(self, name: str) -> DownloadResult:
        """Read ``name`` from the app subdirectory via GET."""
        try:
            response = await self._request("GET", self.resource_url(name))
            if response.ok:
                return DownloadResult.ok(
                    f"File {name} downloaded successfully", content=response.text or ""
                )
            raise self._error_from_response(response, "Download", name=name)
        except WebDAVError as e:
            logger.warning(f"WebDAV download of '{name}' failed: {e}")
            return self._result_from_error(e, "Download", DownloadResult)

    async def list(self) -> ListResult:
        """List the plain files in the app subdirectory via PROPFIND depth 1."""
        try:
            await self._ensure_directory()
            response = await self._request("PROPFIND", self.app_url, headers={"Depth": "1"})
            if response.ok:
                files = parse_multistatus(response.text or "", app_path=self.app_url)
                return ListResult.ok(f"Found {len(files)} files", files=files)
            raise self._error_from_response(response, "List files")
        except WebDAVError as e:
            logger.warning(f"WebDAV listing failed: {e}")
            return self._result_from_error(e, "List files", ListResult)

    async def delete(self, name: str) -> OperationResult:
        """Remove ``name`` from the app subdirectory via DELETE."""
        try:
            response = await self._request("DELETE", self.resource_url(name))
            if response.ok:
                return OperationResult.ok(f"File {name} deleted successfully")
            raise self._error_from_response(response, "Delete", name=name)
        except WebDAVError as e:
            logger.warning(f"WebDAV delete of '{name}' failed: {e}")
            return self._result_from_error(e, "Delete")

    async def test_connection(self) -> OperationResult:
        """Probe the server root with OPTIONS, falling back to PROPFIND depth 0."""
        try:
            options = await self._request("OPTIONS", self.root_url)
            if options.ok:
                allow = options.headers.get("allow", "")
                if "PROPFIND" in allow.upper() or "dav" in options.headers:
                    return OperationResult.ok(
                        "WebDAV connection test succeeded",
                        details=(
                            "Server supports the WebDAV protocol. Response status: "
                            f"{options.status} {options.reason}"
                        ),
                    )

            propfind = await self._request(
                "PROPFIND", self.root_url, headers={"Depth": "0"}
            )
            if propfind.ok:
                return OperationResult.ok(
                    "WebDAV connection test succeeded",
                    details=f"Server response status: {propfind.status} {propfind.reason}",
                )
            raise error_for_status(
                propfind.status, f"{propfind.status} {propfind.reason}".strip()
            )

        except CrossOriginError:
            logger.info("WebDAV connection test blocked by CORS")
            return OperationResult.fail(
                CORS_MESSAGE,
                ErrorCategory.CROSS_ORIGIN,
                details=CORS_DETAILS,
                is_warning=True,
            )
        except ConnectivityError as e:
            logger.warning(f"WebDAV connection test could not reach server: {e}")
            return OperationResult.fail(
                "Network connection failed",
                ErrorCategory.CONNECTIVITY,
                details=(
                    "Could not connect to the WebDAV server, check the URL and "
                    f"network connection ({e.message})"
                ),
            )
        except AuthenticationError:
            return OperationResult.fail(
                "WebDAV authentication failed",
                ErrorCategory.AUTHENTICATION,
                details="Username or password is incorrect, check your credentials",
            )
        except PermissionDeniedError:
            return OperationResult.fail(
                "WebDAV access denied",
                ErrorCategory.PERMISSION,
                details="Your account may not have permission to access this path",
            )
        except RelayDisabledError as e:
            return OperationResult.fail(e.message, ErrorCategory.RELAY_DISABLED)
        except WebDAVError as e:
            return OperationResult.fail(
                "WebDAV connection failed",
                ErrorCategory.HTTP,
                details=f"Server response: {e.message}",
            )
