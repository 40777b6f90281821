from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

MAX_STRING_LENGTH = 10_000
MAX_LIST_ITEMS = 50
MAX_LIST_ITEM_LENGTH = 100
MIN_RECIPE_ID_LENGTH = 10


def _sanitize_string(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip()[:MAX_STRING_LENGTH]
    return value


def _sanitize_list(value: Any) -> Any:
    if isinstance(value, (list, tuple)):
        return [str(item).strip()[:MAX_LIST_ITEM_LENGTH] for item in list(value)[:MAX_LIST_ITEMS]]
    return value


def validate_recipe_id(value: Any) -> str:
    if not isinstance(value, str) or len(value.strip()) < MIN_RECIPE_ID_LENGTH:
        raise ValueError("Invalid recipe ID")
    return value.strip()


class RecipeUpdates(BaseModel):
    """Allow-listed direct field updates; unknown keys are dropped."""

    model_config = ConfigDict(extra="ignore")

    title: Optional[str] = None
    meal: Optional[str] = None
    cuisine: Optional[str] = None
    tags: Optional[list[str]] = None
    keyIngredients: Optional[list[str]] = None
    selectedImage: Optional[str] = None

    @field_validator("title", "meal", "cuisine", "selectedImage", mode="before")
    @classmethod
    def limit_strings(cls, value: Any) -> Any:
        return _sanitize_string(value)

    @field_validator("tags", "keyIngredients", mode="before")
    @classmethod
    def limit_lists(cls, value: Any) -> Any:
        return _sanitize_list(value)


class EnrichmentPostRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    action: Optional[str] = None
    recipeId: Optional[Any] = None
    updates: Optional[dict[str, Any]] = None


class ApprovedChanges(BaseModel):
    model_config = ConfigDict(extra="ignore")

    title: Optional[str] = None
    meal: Optional[str] = None
    cuisine: Optional[str] = None
    tags: Optional[list[str]] = None
    key_ingredients: Optional[list[str]] = None
    image: Optional[str] = None

    @field_validator("title", "meal", "cuisine", "image", mode="before")
    @classmethod
    def limit_strings(cls, value: Any) -> Any:
        return _sanitize_string(value)

    @field_validator("tags", "key_ingredients", mode="before")
    @classmethod
    def limit_lists(cls, value: Any) -> Any:
        return _sanitize_list(value)

    @field_validator("meal", "cuisine")
    @classmethod
    def drop_placeholder(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and value.lower() == "not set":
            return None
        return value


class ApplyChangesRequest(BaseModel):
    recipeId: str = Field(min_length=1)
    changes: ApprovedChanges = Field(default_factory=ApprovedChanges)


class AddImageUrlRequest(BaseModel):
    recipeId: str = Field(min_length=1)
    imageUrl: str = Field(min_length=1)
