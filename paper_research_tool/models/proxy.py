"""Pydantic models for relay availability status."""

from pydantic import BaseModel, ConfigDict, Field


class RelayFlag(BaseModel):
    enabled: bool = False
    message: str = ""


class ProxyStatus(BaseModel):
    """Administrative relay status as served by ``GET /api/proxy-status``."""

    llm: RelayFlag = Field(default_factory=RelayFlag)
    webdav: RelayFlag = Field(default_factory=RelayFlag)


class ProxyAvailability(BaseModel):
    """Cached view of :class:`ProxyStatus` held by the availability gate."""

    model_config = ConfigDict(populate_by_name=True)

    llm_relay_enabled: bool = Field(False, alias="llmRelayEnabled")
    webdav_relay_enabled: bool = Field(False, alias="webdavRelayEnabled")
    llm_message: str = Field("", alias="llmMessage")
    webdav_message: str = Field("", alias="webdavMessage")
    fetched_at: float = Field(0.0, alias="fetchedAt")

    @classmethod
    def from_status(cls, status: ProxyStatus, fetched_at: float):
        return cls(
            llm_relay_enabled=status.llm.enabled,
            webdav_relay_enabled=status.webdav.enabled,
            llm_message=status.llm.message,
            webdav_message=status.webdav.message,
            fetched_at=fetched_at,
        )
