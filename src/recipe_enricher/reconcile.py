"""Validation of classifier output and the suggested-change diff.

Both classifier paths go through ``validate_classification``, so callers can
rely on two guarantees: a field that already holds a value is never
suggested, and every suggested categorical value is a registry member.
"""
from __future__ import annotations

import logging
from typing import Optional

from . import vocabulary
from .models import (
    CATEGORICAL_FIELDS,
    ClassificationResult,
    ExtractedPageData,
    FieldChange,
    ImageSuggestion,
    RecipeRecord,
    SuggestedChangeSet,
)

logger = logging.getLogger(__name__)


def _single_value(axis: str, value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    member = vocabulary.canonical(axis, value)
    if member is None:
        logger.debug("Replacing unknown %s value %r with default", axis, value)
        return vocabulary.default_for(axis)
    return member


def _set_values(axis: str, values: Optional[list[str]]) -> Optional[list[str]]:
    if not values:
        return None
    kept: list[str] = []
    for value in values:
        member = vocabulary.canonical(axis, value)
        if member is not None and member not in kept:
            kept.append(member)
    return kept or None


def clamp_confidence(value: object) -> float:
    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return 0.0
    if number != number:  # NaN
        return 0.0
    return min(1.0, max(0.0, number))


def validate_classification(result: ClassificationResult, recipe: RecipeRecord) -> ClassificationResult:
    """Return a copy of *result* that respects existing values and the vocabulary."""
    validated = ClassificationResult(
        standardized_title=(result.standardized_title or "").strip() or None,
        meal=_single_value(vocabulary.MEAL, result.meal),
        cuisine=_single_value(vocabulary.CUISINE, result.cuisine),
        tags=_set_values(vocabulary.TAG, result.tags),
        key_ingredients=_set_values(vocabulary.INGREDIENT, result.key_ingredients),
        confidence=clamp_confidence(result.confidence),
        reasoning=result.reasoning,
        source=result.source,
    )
    for field_name in CATEGORICAL_FIELDS:
        if recipe.has_value(field_name):
            setattr(validated, field_name, None)
    return validated


def build_change_set(
    recipe: RecipeRecord,
    classification: ClassificationResult,
    extracted: Optional[ExtractedPageData] = None,
) -> SuggestedChangeSet:
    """Diff *classification* against *recipe*, keeping only empty-field suggestions."""
    changes = SuggestedChangeSet()
    for field_name in CATEGORICAL_FIELDS:
        if recipe.has_value(field_name):
            continue
        suggested = getattr(classification, field_name)
        if not suggested:
            continue
        if isinstance(suggested, list):
            changes.fields[field_name] = FieldChange(current=list(recipe.current_value(field_name)), suggested=list(suggested))
        else:
            changes.fields[field_name] = FieldChange(current=recipe.current_value(field_name), suggested=suggested)

    title = classification.standardized_title
    if title and title != recipe.title:
        changes.title = FieldChange(current=recipe.title, suggested=title)

    if extracted is not None and extracted.images:
        changes.image = ImageSuggestion(suggested=extracted.images[0].url, candidates=tuple(extracted.images))
    return changes
