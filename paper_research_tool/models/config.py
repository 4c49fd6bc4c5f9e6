"""Pydantic models for the portable application configuration."""

from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

SCHEMA_VERSION = "1.0.0"


class UserPreference(BaseModel):
    """Research profile used to rank papers."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    profession: str = Field("", description="User's field or job title")
    interests: List[str] = Field(default_factory=list)
    non_interests: List[str] = Field(default_factory=list, alias="nonInterests")

    def is_configured(self) -> bool:
        api_config = (self.model_extra or {}).get("apiConfig")
        has_api_key = isinstance(api_config, dict) and bool(api_config.get("apiKey"))
        return bool(self.profession or self.interests or has_api_key)


class PaperAnalysis(BaseModel):
    """Result contract of the external LLM analysis capability."""

    model_config = ConfigDict(populate_by_name=True)

    is_relevant: bool = Field(alias="isRelevant")
    reason: str = ""
    score: int = Field(0, ge=0, le=100)
    title_translation: str = Field(
        "",
        validation_alias=AliasChoices("titleTranslation", "titleTrans"),
        serialization_alias="titleTranslation",
    )
    summary_translation: str = Field(
        "",
        validation_alias=AliasChoices("summaryTranslation", "summaryTrans"),
        serialization_alias="summaryTranslation",
    )


class PaperSummary(BaseModel):
    """Result contract of the external ArXiv search capability."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    title: str
    summary: str = ""
    authors: List[str] = Field(default_factory=list)
    categories: List[str] = Field(default_factory=list)
    published: str = ""
    updated: Optional[str] = None
    link: str = ""


class FavoriteCategory(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    color: str = ""
    description: Optional[str] = None


DEFAULT_CATEGORIES = [
    FavoriteCategory(
        id="default",
        name="Default",
        color="bg-blue-100 text-blue-800 dark:bg-blue-900 dark:text-blue-100",
        description="Default favorites category",
    )
]


class FavoritePaper(PaperSummary):
    """A paper saved to one of the user's favorite categories."""

    updated: str = ""
    favorite_id: str = Field(alias="favoriteId")
    category_id: str = Field(alias="categoryId")
    favorited_at: str = Field(alias="favoritedAt")
    notes: Optional[str] = None
    analysis: Optional[PaperAnalysis] = None


class AppConfigDocument(BaseModel):
    """The single portable unit used for backup and restore.

    Sections are kept as raw JSON values: import only checks their JSON
    shape, so a restored document round-trips byte-for-byte through the
    local store.
    """

    model_config = ConfigDict(populate_by_name=True)

    preferences: Optional[Dict[str, Any]] = None
    connectivity: Optional[Dict[str, Any]] = Field(
        None,
        validation_alias=AliasChoices("connectivity", "webdavConfig"),
        serialization_alias="connectivity",
    )
    favorite_categories: Optional[List[Any]] = Field(
        None, alias="favoriteCategories"
    )
    favorite_papers: Optional[List[Any]] = Field(None, alias="favoritePapers")
    user_id: Optional[str] = Field(None, alias="userId")
    exported_at: Optional[str] = Field(None, alias="exportedAt")
    schema_version: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("schemaVersion", "version"),
        serialization_alias="schemaVersion",
    )

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, indent=2)


class ConfigStats(BaseModel):
    """Completeness summary of local state; never exposes secrets."""

    model_config = ConfigDict(populate_by_name=True)

    has_preferences: bool = Field(alias="hasPreferences")
    has_connectivity_config: bool = Field(alias="hasConnectivityConfig")
    favorite_categories_count: int = Field(alias="favoriteCategoriesCount")
    favorite_papers_count: int = Field(alias="favoritePapersCount")
