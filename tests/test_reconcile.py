import math

import pytest

from recipe_enricher.models import ClassificationResult, ExtractedImage, ExtractedPageData, RecipeRecord
from recipe_enricher.reconcile import build_change_set, clamp_confidence, validate_classification


def test_existing_values_are_never_suggested():
    recipe = RecipeRecord(id="recipe-0001", title="Sheet Pan Gnocchi", tags=["Baked"], cuisine="Italian")
    result = ClassificationResult(
        meal="Main Dish",
        cuisine="Italian",
        tags=["Baked", "Roasted"],
        key_ingredients=["Tomato"],
        confidence=0.9,
    )

    validated = validate_classification(result, recipe)

    assert validated.tags is None
    assert validated.cuisine is None
    assert validated.meal == "Main Dish"
    assert validated.key_ingredients == ["Tomato"]


def test_values_are_closed_over_vocabulary():
    recipe = RecipeRecord(id="recipe-0001", title="Mystery Dish")
    result = ClassificationResult(
        standardized_title="  Mystery Dish  ",
        meal="dessert",
        cuisine="Martian",
        tags=["spicy", "Unknown", "Spicy"],
        key_ingredients=["garlic", "Tofu"],
        confidence=1.7,
        source="ai",
    )

    validated = validate_classification(result, recipe)

    assert validated.standardized_title == "Mystery Dish"
    assert validated.meal == "Dessert"
    assert validated.cuisine == "American"
    assert validated.tags == ["Spicy"]
    assert validated.key_ingredients == ["Garlic"]
    assert validated.confidence == 1.0
    assert validated.source == "ai"


def test_sets_with_no_known_values_become_none():
    recipe = RecipeRecord(id="recipe-0001", title="x")
    validated = validate_classification(ClassificationResult(tags=["Nope"], key_ingredients=[]), recipe)

    assert validated.tags is None
    assert validated.key_ingredients is None
    assert validated.meal is None


@pytest.mark.parametrize(
    "value,expected",
    [(0.42, 0.42), (-1, 0.0), (3, 1.0), ("0.5", 0.5), ("abc", 0.0), (None, 0.0), (math.nan, 0.0)],
)
def test_clamp_confidence(value, expected):
    assert clamp_confidence(value) == expected


def test_change_set_only_covers_empty_fields():
    recipe = RecipeRecord(id="recipe-0001", title="lemon chicken recipe", cuisine="Greek")
    classification = ClassificationResult(
        standardized_title="Lemon Chicken",
        meal="Main Dish",
        cuisine="Mediterranean",
        tags=["Roasted"],
        key_ingredients=None,
    )
    images = [
        ExtractedImage(url="https://x.com/big.jpg", width=800, height=600, source="priority"),
        ExtractedImage(url="https://x.com/small.jpg"),
    ]
    extracted = ExtractedPageData(url="https://x.com/lemon-chicken", images=images)

    changes = build_change_set(recipe, classification, extracted)

    assert set(changes.fields) == {"meal", "tags"}
    assert changes.title is not None
    assert changes.image is not None
    assert changes.count() == 4

    payload = changes.to_dict()
    assert payload["meal"] == {"current": "Empty", "suggested": "Main Dish"}
    assert payload["tags"] == {"current": [], "suggested": ["Roasted"]}
    assert payload["title"] == {"current": "lemon chicken recipe", "suggested": "Lemon Chicken"}
    assert payload["image"]["current"] == "No image"
    assert payload["image"]["suggested"] == "https://x.com/big.jpg"
    assert [candidate["url"] for candidate in payload["image"]["candidates"]] == [
        "https://x.com/big.jpg",
        "https://x.com/small.jpg",
    ]


def test_unchanged_title_and_missing_images_produce_no_suggestions():
    recipe = RecipeRecord(id="recipe-0001", title="Lemon Chicken")
    classification = ClassificationResult(standardized_title="Lemon Chicken")

    changes = build_change_set(recipe, classification, ExtractedPageData(url="https://x.com"))

    assert changes.count() == 0
    assert changes.to_dict() == {}
