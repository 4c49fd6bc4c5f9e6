"""
Config Aggregator: export, import and remote backup of application state.

The aggregated document bundles the four local sections (preferences,
connectivity, favorite categories, favorite papers) with the user id. Remote
backups are stored as ``paper-config-YYYY-MM-DD.json`` under the app
subdirectory of the configured WebDAV server; a second sync on the same day
overwrites the earlier file, and restore always picks the newest backup.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Callable, Optional, Union

from paper_research_tool.client.smart import SmartWebDAVClient, TransportFactory
from paper_research_tool.errors import EmptyDocumentError, ErrorCategory, FormatError
from paper_research_tool.models import (
    DEFAULT_CATEGORIES,
    SCHEMA_VERSION,
    AppConfigDocument,
    ConfigStats,
    ConnectionMode,
    ConnectivityConfig,
    DetectionResult,
    FileEntry,
    ListResult,
    OperationResult,
    UserPreference,
)
from paper_research_tool.proxy_status import ProxyAvailabilityGate
from paper_research_tool.storage import (
    CATEGORIES_KEY,
    CONNECTIVITY_KEY,
    FAVORITES_KEY,
    OWNED_SLOTS,
    PREFERENCES_KEY,
    LocalStore,
)

logger = logging.getLogger(__name__)

BACKUP_PREFIX = "paper-config-"
BACKUP_SUFFIX = ".json"

INCOMPLETE_CONFIG_MESSAGE = (
    "WebDAV configuration is incomplete, configure the server URL, "
    "username and password first"
)

# (document keys accepted on import, expected JSON type, slot, label)
_SECTIONS = (
    (("preferences",), dict, PREFERENCES_KEY, "user preferences"),
    (("connectivity", "webdavConfig"), dict, CONNECTIVITY_KEY, "WebDAV configuration"),
    (("favoriteCategories",), list, CATEGORIES_KEY, "favorite categories"),
    (("favoritePapers",), list, FAVORITES_KEY, "favorite papers"),
)


def backup_file_name(moment: datetime) -> str:
    return f"{BACKUP_PREFIX}{moment:%Y-%m-%d}{BACKUP_SUFFIX}"


def is_backup_file(name: str) -> bool:
    return name.startswith(BACKUP_PREFIX) and name.endswith(BACKUP_SUFFIX)


def select_backups(files: list[FileEntry]) -> list[FileEntry]:
    """Keep backup files only, newest first."""
    backups = [f for f in files if is_backup_file(f.name)]
    return sorted(backups, key=lambda f: f.last_modified, reverse=True)


def _size_kb(num_bytes: int) -> str:
    return f"{num_bytes / 1024:.2f} KB"


def _parse_document(data: Union[str, bytes, dict]) -> dict:
    if isinstance(data, dict):
        return data
    try:
        parsed = json.loads(data)
    except (TypeError, ValueError) as e:
        raise FormatError(f"Configuration is not valid JSON: {e}") from e
    if not isinstance(parsed, dict):
        raise FormatError("Configuration must be a JSON object")
    return parsed


class ConfigService:
    """Aggregates local state into one document and syncs it with WebDAV.

    The connectivity config is re-read from the store for every operation,
    so edits made between calls always take effect.

    Args:
        store: Local slot store
        factory: Builds transports; defaults to a relay on localhost
        gate: Relay availability gate consulted before selecting relay mode
        clock: Returns the current time, used for backup names and timestamps
    """

    def __init__(
        self,
        store: LocalStore,
        factory: Optional[TransportFactory] = None,
        gate: Optional[ProxyAvailabilityGate] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.factory = factory or TransportFactory()
        self.gate = gate
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def _client(self) -> tuple[ConnectivityConfig, SmartWebDAVClient]:
        config = await self.store.get_connectivity_config()
        return config, SmartWebDAVClient(config, self.factory)

    # ============================================================================
    # Local document
    # ============================================================================

    async def export_config(self) -> AppConfigDocument:
        preferences = await self.store.get_slot(PREFERENCES_KEY)
        if not isinstance(preferences, dict):
            preferences = UserPreference().model_dump(by_alias=True)

        categories = await self.store.get_slot(CATEGORIES_KEY)
        if not isinstance(categories, list):
            categories = [c.model_dump(exclude_none=True) for c in DEFAULT_CATEGORIES]

        favorites = await self.store.get_slot(FAVORITES_KEY)
        if not isinstance(favorites, list):
            favorites = []

        connectivity = await self.store.get_connectivity_config()

        return AppConfigDocument(
            preferences=preferences,
            connectivity=connectivity.model_dump(by_alias=True),
            favorite_categories=categories,
            favorite_papers=favorites,
            user_id=await self.store.get_user_id(),
            exported_at=self._clock().isoformat(),
            schema_version=SCHEMA_VERSION,
        )

    async def export_json(self) -> str:
        return (await self.export_config()).to_json()

    async def import_config(self, data: Union[str, bytes, dict]) -> OperationResult:
        """Apply every well-formed section of a configuration document.

        Sections are written one after another; a failure part way through
        leaves the earlier sections applied.
        """
        try:
            document = _parse_document(data)
            applied = []
            for keys, expected_type, slot, label in _SECTIONS:
                value = next((document[k] for k in keys if k in document), None)
                if isinstance(value, expected_type):
                    await self.store.set_slot(slot, value)
                    applied.append(label)

            if not applied:
                raise EmptyDocumentError(
                    "Make sure the file contains user settings, favorites "
                    "or other configuration data"
                )

            user_id = document.get("userId")
            if isinstance(user_id, str) and user_id:
                await self.store.set_user_id(user_id)
                applied.append("user id")

        except FormatError as e:
            logger.warning(f"Rejected configuration import: {e}")
            return OperationResult.fail(
                "Invalid configuration file format", e.category, details=str(e)
            )
        except EmptyDocumentError as e:
            return OperationResult.fail(
                "No valid configuration data found in the file",
                e.category,
                details=str(e),
            )

        logger.info(f"Imported configuration sections: {', '.join(applied)}")
        return OperationResult.ok(
            "Configuration imported successfully",
            details=f"Imported: {', '.join(applied)}",
        )

    async def reset_all(self) -> str:
        """Delete all owned slots and regenerate the user id.

        Returns:
            The new user id
        """
        for slot in OWNED_SLOTS:
            await self.store.delete_slot(slot)
        user_id = await self.store.reset_user_id()
        logger.info("All local configuration has been reset")
        return user_id

    async def get_stats(self) -> ConfigStats:
        preferences = await self.store.get_preferences()
        config = await self.store.get_connectivity_config()
        return ConfigStats(
            has_preferences=preferences.is_configured(),
            has_connectivity_config=config.is_complete(),
            favorite_categories_count=len(await self.store.get_favorite_categories()),
            favorite_papers_count=len(await self.store.get_favorites()),
        )

    # ============================================================================
    # Remote backups
    # ============================================================================

    async def sync_to_remote(self) -> OperationResult:
        config, client = await self._client()
        if not config.is_complete():
            return OperationResult.fail(
                INCOMPLETE_CONFIG_MESSAGE, ErrorCategory.INCOMPLETE_CONFIG
            )

        now = self._clock()
        file_name = backup_file_name(now)
        content = await self.export_json()

        result = await client.upload_file(file_name, content)
        if not result.success:
            logger.warning(f"Sync to WebDAV failed: {result.message}")
            return OperationResult.fail(
                "WebDAV sync failed",
                result.category or ErrorCategory.HTTP,
                details=result.message,
                is_warning=result.is_warning,
            )

        logger.info(f"Synced configuration to {file_name} via {config.mode.value}")
        return OperationResult.ok(
            "Configuration synced to the WebDAV server",
            details=(
                f"File name: {file_name}\n"
                f"File size: {_size_kb(len(content.encode('utf-8')))}\n"
                f"Sync time: {now.isoformat()}"
            ),
        )

    async def _list_backups(
        self, client: SmartWebDAVClient
    ) -> Union[ListResult, list[FileEntry]]:
        listing = await client.list_files()
        if not listing.success:
            return ListResult.fail(
                "Unable to list files on the WebDAV server",
                listing.category or ErrorCategory.HTTP,
                details=listing.message,
                is_warning=listing.is_warning,
            )
        return select_backups(listing.files)

    async def list_remote_backups(self) -> ListResult:
        config, client = await self._client()
        if not config.is_complete():
            return ListResult.fail(
                INCOMPLETE_CONFIG_MESSAGE, ErrorCategory.INCOMPLETE_CONFIG
            )

        backups = await self._list_backups(client)
        if isinstance(backups, ListResult):
            return backups
        return ListResult.ok(f"Found {len(backups)} backups", files=backups)

    async def restore_from_remote(self) -> ListResult:
        """Download and import the newest remote backup."""
        config, client = await self._client()
        if not config.is_complete():
            return ListResult.fail(
                INCOMPLETE_CONFIG_MESSAGE, ErrorCategory.INCOMPLETE_CONFIG
            )

        backups = await self._list_backups(client)
        if isinstance(backups, ListResult):
            return backups
        if not backups:
            return ListResult.fail(
                "No configuration backups found on the WebDAV server",
                ErrorCategory.NO_BACKUP,
                details="Use sync to create a configuration backup first",
            )

        latest = backups[0]
        download = await client.download_file(latest.name)
        if not download.success:
            return ListResult.fail(
                "Failed to download the backup file",
                download.category or ErrorCategory.HTTP,
                details=download.message,
                is_warning=download.is_warning,
            )

        imported = await self.import_config(download.content or "")
        if not imported.success:
            details = imported.message
            if imported.details:
                details = f"{imported.message}: {imported.details}"
            return ListResult.fail(
                "Backup downloaded but import failed",
                ErrorCategory.IMPORT_FAILED,
                details=details,
            )

        logger.info(f"Restored configuration from {latest.name}")
        return ListResult.ok(
            "Configuration restored from the WebDAV server",
            details=(
                f"Restored file: {latest.name}\n"
                f"File size: {_size_kb(latest.size_bytes)}\n"
                f"Backup time: {latest.last_modified.isoformat()}\n"
                f"{imported.details or ''}"
            ).rstrip("\n"),
            files=backups,
        )

    # ============================================================================
    # Connectivity
    # ============================================================================

    async def configure_webdav(
        self,
        server_url: str,
        username: str,
        secret: str,
        use_relay: Optional[bool] = None,
    ) -> ConnectivityConfig:
        """Store new server settings, keeping the current mode unless given."""
        current = await self.store.get_connectivity_config()
        config = ConnectivityConfig(
            server_url=server_url.strip(),
            username=username,
            secret=secret,
            use_relay=current.use_relay if use_relay is None else use_relay,
        )
        await self.store.save_connectivity_config(config)
        return config

    async def set_connection_mode(self, mode: ConnectionMode) -> OperationResult:
        """Persist the connection mode; relay mode requires the relay to be allowed."""
        if mode == ConnectionMode.RELAY and self.gate is not None:
            if not await self.gate.is_relay_enabled_for("webdav"):
                message = await self.gate.unavailable_message("webdav")
                logger.info(f"Refused switch to relay mode: {message}")
                return OperationResult.fail(
                    message or "WebDAV relay is disabled", ErrorCategory.RELAY_DISABLED
                )

        config = await self.store.get_connectivity_config()
        config.use_relay = mode == ConnectionMode.RELAY
        await self.store.save_connectivity_config(config)
        return OperationResult.ok(f"Connection mode set to {mode.value}")

    async def test_connection(self) -> OperationResult:
        config, client = await self._client()
        if not config.is_complete():
            return OperationResult.fail(
                INCOMPLETE_CONFIG_MESSAGE, ErrorCategory.INCOMPLETE_CONFIG
            )
        return await client.test_connection()

    async def detect_best_connection_mode(self) -> DetectionResult:
        config, client = await self._client()
        if not config.is_complete():
            return DetectionResult(
                success=False,
                recommended_mode=ConnectionMode.RELAY,
                recommendation=INCOMPLETE_CONFIG_MESSAGE,
            )
        return await client.detect_best_connection_mode()

