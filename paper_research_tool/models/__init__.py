from .config import (
    DEFAULT_CATEGORIES,
    SCHEMA_VERSION,
    AppConfigDocument,
    ConfigStats,
    FavoriteCategory,
    FavoritePaper,
    PaperAnalysis,
    PaperSummary,
    UserPreference,
)
from .proxy import ProxyAvailability, ProxyStatus, RelayFlag
from .webdav import (
    APP_SUBDIRECTORY,
    ConnectionMode,
    ConnectivityConfig,
    DetectionResult,
    DownloadResult,
    FileEntry,
    ListResult,
    OperationResult,
    RelayCredentials,
    RelayRequest,
    RelayResponse,
)

__all__ = [
    "APP_SUBDIRECTORY",
    "DEFAULT_CATEGORIES",
    "SCHEMA_VERSION",
    "AppConfigDocument",
    "ConfigStats",
    "ConnectionMode",
    "ConnectivityConfig",
    "DetectionResult",
    "DownloadResult",
    "FavoriteCategory",
    "FavoritePaper",
    "FileEntry",
    "ListResult",
    "OperationResult",
    "PaperAnalysis",
    "PaperSummary",
    "ProxyAvailability",
    "ProxyStatus",
    "RelayCredentials",
    "RelayFlag",
    "RelayRequest",
    "RelayResponse",
    "UserPreference",
]
