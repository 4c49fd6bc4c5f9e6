"""Error taxonomy for WebDAV connectivity and configuration sync.

Transports raise these internally and convert them to structured
``OperationResult`` objects at their public boundary, so callers only ever
see exceptions for programming defects.
"""

from enum import Enum
from typing import Optional


class ErrorCategory(str, Enum):
    """Machine-readable category attached to failed results."""

    CONNECTIVITY = "connectivity"
    CROSS_ORIGIN = "cross_origin"
    AUTHENTICATION = "authentication"
    PERMISSION = "permission"
    NOT_FOUND = "not_found"
    RELAY_DISABLED = "relay_disabled"
    DIRECTORY = "directory"
    HTTP = "http"
    FORMAT = "format"
    EMPTY_DOCUMENT = "empty_document"
    INCOMPLETE_CONFIG = "incomplete_config"
    NO_BACKUP = "no_backup"
    IMPORT_FAILED = "import_failed"


class WebDAVError(Exception):
    """Base class for expected WebDAV failures."""

    category: ErrorCategory = ErrorCategory.HTTP

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status = status


class ConnectivityError(WebDAVError):
    """Network unreachable, DNS/TLS failure or timeout."""

    category = ErrorCategory.CONNECTIVITY


class CrossOriginError(ConnectivityError):
    """Cross-origin (CORS) rejection of a direct request."""

    category = ErrorCategory.CROSS_ORIGIN


class AuthenticationError(WebDAVError):
    category = ErrorCategory.AUTHENTICATION


class PermissionDeniedError(WebDAVError):
    category = ErrorCategory.PERMISSION


class NotFoundError(WebDAVError):
    category = ErrorCategory.NOT_FOUND


class RelayDisabledError(WebDAVError):
    """The relay refused the operation because an admin flag is off."""

    category = ErrorCategory.RELAY_DISABLED


class DirectoryOperationError(WebDAVError):
    """The app subdirectory could not be probed or created."""

    category = ErrorCategory.DIRECTORY


class FormatError(ValueError):
    """Import document is not well-formed JSON or not a JSON object."""

    category = ErrorCategory.FORMAT


class EmptyDocumentError(ValueError):
    """Import document is valid JSON but carries no recognised section."""

    category = ErrorCategory.EMPTY_DOCUMENT


_STATUS_ERRORS: dict[int, type[WebDAVError]] = {
    401: AuthenticationError,
    403: PermissionDeniedError,
    404: NotFoundError,
}


def error_for_status(status: int, message: str) -> WebDAVError:
    """Build the exception matching an HTTP status code."""
    error_cls = _STATUS_ERRORS.get(status, WebDAVError)
    return error_cls(message, status=status)


def is_cors_failure(error: BaseException) -> bool:
    """Return True when an error's text reports a CORS rejection."""
    return "CORS" in str(error)
