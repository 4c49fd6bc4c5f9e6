"""
Local preference and favorites store.

Every piece of local state lives in one named slot of a small SQLite
key/value table, holding the raw JSON text of that slot:

- ``user_preferences``: research profile (:class:`UserPreference`)
- ``webdav_config``: WebDAV connectivity settings (:class:`ConnectivityConfig`)
- ``favorite_categories``: favorite category taxonomy
- ``paper_favorites``: favorite paper records
- ``user_id``: stable anonymous identifier, created on first use

Slots are written one statement at a time; there is no cross-slot
transaction.
"""

import json
import logging
import os
import time
import uuid
from pathlib import Path
from typing import Any, Optional

import aiosqlite
from pydantic import ValidationError

from paper_research_tool.models import (
    DEFAULT_CATEGORIES,
    ConnectivityConfig,
    FavoriteCategory,
    FavoritePaper,
    UserPreference,
)

logger = logging.getLogger(__name__)

PREFERENCES_KEY = "user_preferences"
CONNECTIVITY_KEY = "webdav_config"
CATEGORIES_KEY = "favorite_categories"
FAVORITES_KEY = "paper_favorites"
USER_ID_KEY = "user_id"

# Slots cleared by a full reset (the user id is regenerated instead)
OWNED_SLOTS = (PREFERENCES_KEY, CONNECTIVITY_KEY, CATEGORIES_KEY, FAVORITES_KEY)


class LocalStore:
    """aiosqlite-backed key/value slots for local application state."""

    def __init__(self, db_path: str):
        self.db_path = db_path
        self._initialized = False

    @classmethod
    def from_settings(cls, settings) -> "LocalStore":
        return cls(db_path=settings.state_db_path)

    @classmethod
    def from_env(cls) -> "LocalStore":
        """
        Create a store from environment variables.

        Environment variables:
            STATE_DB: Path to database file (default: ~/.paper-research-tool/state.db)
        """
        db_path = os.path.expanduser(
            os.getenv("STATE_DB", "~/.paper-research-tool/state.db")
        )
        return cls(db_path=db_path)

    async def initialize(self) -> None:
        """Initialize database schema"""
        if self._initialized:
            return

        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(
                """
                CREATE TABLE IF NOT EXISTS slots (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at REAL NOT NULL
                )
                """
            )
            await db.commit()

        self._initialized = True
        logger.debug(f"Local store initialized at {self.db_path}")

    # ============================================================================
    # Raw slots
    # ============================================================================

    async def get_slot(self, key: str, default: Any = None) -> Any:
        """
        Read and decode one slot.

        Args:
            key: Slot name
            default: Returned when the slot is empty or holds corrupt JSON

        Returns:
            The decoded JSON value
        """
        if not self._initialized:
            await self.initialize()

        async with aiosqlite.connect(self.db_path) as db:
            cursor = await db.execute("SELECT value FROM slots WHERE key = ?", (key,))
            row = await cursor.fetchone()

        if row is None:
            return default

        try:
            return json.loads(row[0])
        except json.JSONDecodeError as e:
            logger.warning(f"Slot '{key}' holds invalid JSON, using default: {e}")
            return default

    async def set_slot(self, key: str, value: Any) -> None:
        if not self._initialized:
            await self.initialize()

        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(
                "INSERT OR REPLACE INTO slots (key, value, updated_at) VALUES (?, ?, ?)",
                (key, json.dumps(value, ensure_ascii=False), time.time()),
            )
            await db.commit()

        logger.debug(f"Stored slot '{key}'")

    async def delete_slot(self, key: str) -> bool:
        """
        Remove one slot.

        Returns:
            True if the slot existed
        """
        if not self._initialized:
            await self.initialize()

        async with aiosqlite.connect(self.db_path) as db:
            cursor = await db.execute("DELETE FROM slots WHERE key = ?", (key,))
            await db.commit()
            deleted = cursor.rowcount > 0

        if deleted:
            logger.debug(f"Deleted slot '{key}'")
        return deleted

    # ============================================================================
    # Connectivity
    # ============================================================================

    async def get_connectivity_config(self) -> ConnectivityConfig:
        raw = await self.get_slot(CONNECTIVITY_KEY)
        if not isinstance(raw, dict):
            return ConnectivityConfig()
        try:
            return ConnectivityConfig.model_validate(raw)
        except ValidationError as e:
            logger.warning(f"Stored WebDAV config is invalid, using defaults: {e}")
            return ConnectivityConfig()

    async def save_connectivity_config(self, config: ConnectivityConfig) -> None:
        await self.set_slot(CONNECTIVITY_KEY, config.model_dump(by_alias=True))

    # ============================================================================
    # Preferences
    # ============================================================================

    async def get_preferences(self) -> UserPreference:
        raw = await self.get_slot(PREFERENCES_KEY)
        if not isinstance(raw, dict):
            return UserPreference()
        try:
            return UserPreference.model_validate(raw)
        except ValidationError as e:
            logger.warning(f"Stored preferences are invalid, using defaults: {e}")
            return UserPreference()

    async def save_preferences(self, preferences: UserPreference) -> None:
        await self.set_slot(PREFERENCES_KEY, preferences.model_dump(by_alias=True))

    # ============================================================================
    # Favorites
    # ============================================================================

    async def get_favorite_categories(self) -> list[FavoriteCategory]:
        raw = await self.get_slot(CATEGORIES_KEY)
        if not isinstance(raw, list):
            return [category.model_copy() for category in DEFAULT_CATEGORIES]

        categories = []
        for item in raw:
            try:
                categories.append(FavoriteCategory.model_validate(item))
            except ValidationError as e:
                logger.warning(f"Skipping invalid favorite category: {e}")
        return categories

    async def save_favorite_categories(self, categories: list[FavoriteCategory]) -> None:
        await self.set_slot(
            CATEGORIES_KEY,
            [category.model_dump(by_alias=True, exclude_none=True) for category in categories],
        )

    async def get_favorites(self) -> list[FavoritePaper]:
        raw = await self.get_slot(FAVORITES_KEY)
        if not isinstance(raw, list):
            return []

        favorites = []
        for item in raw:
            try:
                favorites.append(FavoritePaper.model_validate(item))
            except ValidationError as e:
                logger.warning(f"Skipping invalid favorite record: {e}")
        return favorites

    async def save_favorites(self, favorites: list[FavoritePaper]) -> None:
        await self.set_slot(
            FAVORITES_KEY,
            [paper.model_dump(by_alias=True, exclude_none=True) for paper in favorites],
        )

    # ============================================================================
    # User id
    # ============================================================================

    async def get_user_id(self) -> str:
        """Return the stored user id, creating one on first use."""
        user_id = await self.get_slot(USER_ID_KEY)
        if isinstance(user_id, str) and user_id:
            return user_id
        return await self.reset_user_id()

    async def set_user_id(self, user_id: str) -> None:
        await self.set_slot(USER_ID_KEY, user_id)

    async def reset_user_id(self) -> str:
        user_id = str(uuid.uuid4())
        await self.set_user_id(user_id)
        logger.info(f"Generated new user id {user_id}")
        return user_id
