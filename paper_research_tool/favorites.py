"""Favorite papers kept in the local store."""

import logging
import secrets
import string
import time
from datetime import datetime, timezone
from typing import Optional

from paper_research_tool.models import FavoritePaper, PaperAnalysis, PaperSummary
from paper_research_tool.storage import LocalStore

logger = logging.getLogger(__name__)

_ID_ALPHABET = string.ascii_lowercase + string.digits


def new_favorite_id() -> str:
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"fav_{int(time.time() * 1000)}_{suffix}"


class FavoritesService:
    """Add, update, search and summarise favorite papers.

    Records are keyed by the paper id; favoriting an already-favorited paper
    replaces the earlier record.
    """

    def __init__(self, store: LocalStore):
        self.store = store

    async def add_favorite(
        self,
        paper: PaperSummary,
        category_id: str = "default",
        notes: Optional[str] = None,
        analysis: Optional[PaperAnalysis] = None,
    ) -> FavoritePaper:
        favorites = [f for f in await self.store.get_favorites() if f.id != paper.id]

        favorite = FavoritePaper(
            **paper.model_dump(exclude={"updated"}),
            updated=paper.updated or paper.published,
            favorite_id=new_favorite_id(),
            category_id=category_id,
            favorited_at=datetime.now(timezone.utc).isoformat(),
            notes=notes,
            analysis=analysis,
        )
        favorites.append(favorite)
        await self.store.save_favorites(favorites)

        logger.info(f"Added paper {paper.id} to favorites in category '{category_id}'")
        return favorite

    async def remove_favorite(self, paper_id: str) -> bool:
        favorites = await self.store.get_favorites()
        remaining = [f for f in favorites if f.id != paper_id]
        if len(remaining) == len(favorites):
            return False
        await self.store.save_favorites(remaining)
        logger.info(f"Removed paper {paper_id} from favorites")
        return True

    async def update_favorite(
        self,
        paper_id: str,
        category_id: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Optional[FavoritePaper]:
        """Change the category or notes of a favorite; None if not favorited."""
        favorites = await self.store.get_favorites()
        for index, favorite in enumerate(favorites):
            if favorite.id != paper_id:
                continue
            updates = {}
            if category_id is not None:
                updates["category_id"] = category_id
            if notes is not None:
                updates["notes"] = notes
            favorites[index] = favorite.model_copy(update=updates)
            await self.store.save_favorites(favorites)
            return favorites[index]
        return None

    async def is_favorited(self, paper_id: str) -> bool:
        return any(f.id == paper_id for f in await self.store.get_favorites())

    async def get_favorite(self, paper_id: str) -> Optional[FavoritePaper]:
        for favorite in await self.store.get_favorites():
            if favorite.id == paper_id:
                return favorite
        return None

    async def get_favorites_by_category(self, category_id: str) -> list[FavoritePaper]:
        return [
            f for f in await self.store.get_favorites() if f.category_id == category_id
        ]

    async def search_favorites(self, query: str) -> list[FavoritePaper]:
        """Case-insensitive match on title, summary, authors and notes."""
        needle = query.lower()
        results = []
        for favorite in await self.store.get_favorites():
            haystacks = [favorite.title, favorite.summary, *favorite.authors]
            if favorite.notes:
                haystacks.append(favorite.notes)
            if any(needle in text.lower() for text in haystacks):
                results.append(favorite)
        return results

    async def get_stats(self) -> dict:
        by_category: dict[str, int] = {}
        favorites = await self.store.get_favorites()
        for favorite in favorites:
            by_category[favorite.category_id] = by_category.get(favorite.category_id, 0) + 1
        return {"total": len(favorites), "byCategory": by_category}
