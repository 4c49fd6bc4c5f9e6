"""Pydantic models for WebDAV connectivity, listings and operation results."""

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from paper_research_tool.errors import ErrorCategory

APP_SUBDIRECTORY = "paper-research-tool"


class ConnectionMode(str, Enum):
    """How WebDAV requests reach the origin server."""

    DIRECT = "direct"
    RELAY = "proxy"


class ConnectivityConfig(BaseModel):
    """WebDAV server settings persisted in the local store.

    Accepts the legacy document keys ``url``, ``password`` and ``useProxy``
    on input; always serializes with the current camelCase names.
    """

    model_config = ConfigDict(populate_by_name=True)

    server_url: str = Field(
        "",
        validation_alias=AliasChoices("serverUrl", "url", "server_url"),
        serialization_alias="serverUrl",
        description="WebDAV root URL",
    )
    username: str = Field("", description="WebDAV username")
    secret: str = Field(
        "",
        validation_alias=AliasChoices("secret", "password"),
        serialization_alias="secret",
        description="WebDAV password or app token",
    )
    use_relay: bool = Field(
        True,
        validation_alias=AliasChoices("useRelay", "useProxy", "use_relay"),
        serialization_alias="useRelay",
        description="Route requests through the server-side relay",
    )

    def is_complete(self) -> bool:
        return bool(self.server_url and self.username and self.secret)

    @property
    def mode(self) -> ConnectionMode:
        return ConnectionMode.DIRECT if self.use_relay is False else ConnectionMode.RELAY


class FileEntry(BaseModel):
    """A plain file found in the app subdirectory."""

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(description="Decoded file name")
    path: str = Field(description="Full remote href")
    size_bytes: int = Field(0, ge=0, alias="sizeBytes", description="Size in bytes")
    last_modified: datetime = Field(
        alias="lastModified", description="Last modification time"
    )
    is_directory: bool = Field(False, alias="isDirectory")


class OperationResult(BaseModel):
    """Structured outcome of a WebDAV or configuration operation."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool
    message: str = Field(min_length=1)
    details: Optional[str] = None
    is_warning: bool = Field(False, alias="isWarning")
    category: Optional[ErrorCategory] = None

    @classmethod
    def ok(cls, message: str, details: Optional[str] = None, **extra):
        return cls(success=True, message=message, details=details, **extra)

    @classmethod
    def fail(
        cls,
        message: str,
        category: ErrorCategory,
        details: Optional[str] = None,
        is_warning: bool = False,
        **extra,
    ):
        return cls(
            success=False,
            message=message,
            details=details,
            category=category,
            is_warning=is_warning,
            **extra,
        )


class DownloadResult(OperationResult):
    content: Optional[str] = None


class ListResult(OperationResult):
    files: List[FileEntry] = Field(default_factory=list)


class DetectionResult(BaseModel):
    """Outcome of probing both connection modes against one config."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool
    recommended_mode: ConnectionMode = Field(alias="recommendedMode")
    direct_result: Optional[OperationResult] = Field(None, alias="directResult")
    proxy_result: Optional[OperationResult] = Field(None, alias="proxyResult")
    recommendation: str


class RelayCredentials(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    username: str
    secret: str = Field(validation_alias=AliasChoices("secret", "password"))


class RelayRequest(BaseModel):
    """Operation descriptor posted to the relay endpoint."""

    method: str = Field(min_length=1)
    url: str = Field(min_length=1)
    headers: Dict[str, str] = Field(default_factory=dict)
    data: Optional[str] = None
    config: RelayCredentials


class RelayResponse(BaseModel):
    """Normalized origin response returned by the relay."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool
    status: int
    status_text: str = Field("", alias="statusText")
    data: Optional[str] = None
    headers: Dict[str, str] = Field(default_factory=dict)
