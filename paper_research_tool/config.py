import logging
import os
from dataclasses import dataclass


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() == "true"


@dataclass
class Settings:
    """Application settings from environment variables."""

    # Relay administrative flags, reported by GET /api/proxy-status
    enable_llm_proxy: bool = False
    enable_webdav_proxy: bool = False

    # Where clients reach the relay (used for relay transports and the gate)
    relay_base_url: str = "http://127.0.0.1:8000"

    # Local preference/favorites store (aiosqlite)
    state_db: str = "~/.paper-research-tool/state.db"

    # Network settings
    webdav_timeout: float = 30.0  # seconds, connect timeout is fixed at 5
    proxy_status_ttl: float = 300.0  # seconds (5 minutes)

    # Observability settings
    metrics_enabled: bool = True
    log_format: str = "text"  # "json" or "text"
    log_level: str = "INFO"

    def __post_init__(self):
        logger = logging.getLogger(__name__)

        if self.webdav_timeout <= 0:
            raise ValueError(
                f"WEBDAV_TIMEOUT ({self.webdav_timeout}) must be a positive number of seconds."
            )

        if self.proxy_status_ttl <= 0:
            raise ValueError(
                f"PROXY_STATUS_TTL ({self.proxy_status_ttl}) must be a positive number of seconds."
            )

        if self.log_format not in ("json", "text"):
            logger.warning(
                f"Unknown LOG_FORMAT '{self.log_format}', falling back to text output."
            )
            self.log_format = "text"

        self.relay_base_url = self.relay_base_url.rstrip("/")

    @property
    def state_db_path(self) -> str:
        return os.path.expanduser(self.state_db)


def get_settings() -> Settings:
    """Get application settings from environment variables.

    Returns:
        Settings object with configuration values
    """
    return Settings(
        enable_llm_proxy=_env_flag("ENABLE_LLM_PROXY"),
        enable_webdav_proxy=_env_flag("ENABLE_WEBDAV_PROXY"),
        relay_base_url=os.getenv("RELAY_BASE_URL", "http://127.0.0.1:8000"),
        state_db=os.getenv("STATE_DB", "~/.paper-research-tool/state.db"),
        webdav_timeout=float(os.getenv("WEBDAV_TIMEOUT", "30")),
        proxy_status_ttl=float(os.getenv("PROXY_STATUS_TTL", "300")),
        metrics_enabled=_env_flag("METRICS_ENABLED", "true"),
        log_format=os.getenv("LOG_FORMAT", "text").lower(),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )
