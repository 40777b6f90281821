from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

# Change-set field names, in display order.
FIELD_MEAL = "meal"
FIELD_CUISINE = "cuisine"
FIELD_TAGS = "tags"
FIELD_KEY_INGREDIENTS = "key_ingredients"
CATEGORICAL_FIELDS: tuple[str, ...] = (FIELD_MEAL, FIELD_CUISINE, FIELD_TAGS, FIELD_KEY_INGREDIENTS)


def _clean_list(values: Any) -> list[str]:
    if isinstance(values, str):
        values = [values]
    if not isinstance(values, (list, tuple)):
        return []
    cleaned: list[str] = []
    for value in values:
        text = str(value).strip() if value is not None else ""
        if text:
            cleaned.append(text)
    return cleaned


def _clean_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    if not text or text.lower() in {"null", "none", "n/a"}:
        return None
    return text


@dataclass
class RecipeRecord:
    id: str
    title: str
    link: Optional[str] = None
    page_url: Optional[str] = None
    meal: Optional[str] = None
    cuisine: Optional[str] = None
    tags: list[str] = field(default_factory=list)
    key_ingredients: list[str] = field(default_factory=list)

    def current_value(self, field_name: str) -> Any:
        return getattr(self, field_name)

    def has_value(self, field_name: str) -> bool:
        value = self.current_value(field_name)
        if isinstance(value, list):
            return len(value) > 0
        return bool(value)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "url": self.page_url,
            "name": self.title,
            "link": self.link or "",
            "current_meal": self.meal,
            "current_cuisine": self.cuisine,
            "current_tags": list(self.tags),
            "current_ingredients": list(self.key_ingredients),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RecipeRecord":
        return cls(
            id=str(data.get("id") or ""),
            title=str(data.get("name") or data.get("title") or ""),
            link=_clean_text(data.get("link")),
            page_url=_clean_text(data.get("url")),
            meal=_clean_text(data.get("current_meal")),
            cuisine=_clean_text(data.get("current_cuisine")),
            tags=_clean_list(data.get("current_tags")),
            key_ingredients=_clean_list(data.get("current_ingredients")),
        )


@dataclass(frozen=True)
class ExtractedImage:
    url: str
    alt: str = ""
    width: Optional[int] = None
    height: Optional[int] = None
    source: str = "general"

    @property
    def area(self) -> int:
        return (self.width or 0) * (self.height or 0)

    def to_dict(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "alt": self.alt,
            "width": self.width,
            "height": self.height,
            "source": self.source,
        }


@dataclass
class ExtractedPageData:
    url: str
    title: Optional[str] = None
    ingredients: list[str] = field(default_factory=list)
    instructions: list[str] = field(default_factory=list)
    description: Optional[str] = None
    images: list[ExtractedImage] = field(default_factory=list)

    @property
    def image_url(self) -> Optional[str]:
        return self.images[0].url if self.images else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "title": self.title,
            "ingredients": list(self.ingredients),
            "instructions": list(self.instructions),
            "description": self.description,
            "images": [image.to_dict() for image in self.images],
            "imageUrl": self.image_url,
        }


@dataclass
class ClassificationResult:
    standardized_title: Optional[str] = None
    meal: Optional[str] = None
    cuisine: Optional[str] = None
    tags: Optional[list[str]] = None
    key_ingredients: Optional[list[str]] = None
    confidence: float = 0.0
    reasoning: str = ""
    source: str = "ai"

    @classmethod
    def from_payload(cls, payload: dict[str, Any], *, source: str = "ai") -> "ClassificationResult":
        """Build a result from a model's JSON object, tolerating loose types."""
        tags = payload.get("tags")
        key_ingredients = payload.get("key_ingredients")
        if key_ingredients is None:
            key_ingredients = payload.get("keyIngredients")
        try:
            confidence = float(payload.get("confidence") or 0.0)
        except (TypeError, ValueError):
            confidence = 0.0
        return cls(
            standardized_title=_clean_text(payload.get("standardized_title")),
            meal=_clean_text(payload.get("meal")),
            cuisine=_clean_text(payload.get("cuisine")),
            tags=None if tags is None else _clean_list(tags),
            key_ingredients=None if key_ingredients is None else _clean_list(key_ingredients),
            confidence=confidence,
            reasoning=str(payload.get("reasoning") or "").strip(),
            source=source,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "standardized_title": self.standardized_title,
            "meal": self.meal,
            "cuisine": self.cuisine,
            "tags": None if self.tags is None else list(self.tags),
            "key_ingredients": None if self.key_ingredients is None else list(self.key_ingredients),
            "confidence": self.confidence,
            "reasoning": self.reasoning,
            "source": self.source,
        }


@dataclass(frozen=True)
class FieldChange:
    current: Any
    suggested: Any

    def to_dict(self) -> dict[str, Any]:
        current = "Empty" if self.current is None else self.current
        return {"current": current, "suggested": self.suggested}


@dataclass(frozen=True)
class ImageSuggestion:
    suggested: str
    candidates: tuple[ExtractedImage, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "current": "No image",
            "suggested": self.suggested,
            "candidates": [image.to_dict() for image in self.candidates],
        }


@dataclass
class SuggestedChangeSet:
    fields: dict[str, FieldChange] = field(default_factory=dict)
    title: Optional[FieldChange] = None
    image: Optional[ImageSuggestion] = None

    def count(self) -> int:
        return len(self.fields) + (1 if self.title else 0) + (1 if self.image else 0)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {name: change.to_dict() for name, change in self.fields.items()}
        if self.title is not None:
            payload["title"] = self.title.to_dict()
        if self.image is not None:
            payload["image"] = self.image.to_dict()
        return payload


@dataclass
class EnrichmentItem:
    recipe: RecipeRecord
    extracted: Optional[ExtractedPageData]
    classification: ClassificationResult
    changes: SuggestedChangeSet

    def to_dict(self) -> dict[str, Any]:
        return {
            "recipe": self.recipe.to_dict(),
            "extractedData": self.extracted.to_dict() if self.extracted else None,
            "analysis": self.classification.to_dict(),
            "suggestedChanges": self.changes.to_dict(),
        }
