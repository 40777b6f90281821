"""Static review items for exercising the review UI without Notion or OpenAI."""
from __future__ import annotations

from typing import Any

from .models import ClassificationResult, EnrichmentItem, ExtractedPageData, RecipeRecord
from .orchestrator import summarize
from .reconcile import build_change_set, validate_classification

_SAMPLES: tuple[dict[str, Any], ...] = (
    {
        "recipe": RecipeRecord(
            id="demo-1",
            page_url="https://notion.so/demo-1",
            title="Potatoes au Gratin (Dauphinoise) - RecipeTin Eats",
            link="https://www.recipetineats.com/potatoes-au-gratin/",
        ),
        "extracted": ExtractedPageData(
            url="https://www.recipetineats.com/potatoes-au-gratin/",
            title="Potatoes au Gratin (Dauphinoise)",
            description="Potatoes au Gratin is the ultimate potato recipe! French classic with layers of thinly sliced potato...",
            ingredients=["potatoes", "heavy cream", "garlic", "thyme", "butter", "salt", "pepper"],
        ),
        "analysis": ClassificationResult(
            standardized_title="Potatoes au Gratin (Dauphinoise)",
            meal="Side Dish",
            cuisine="French",
            tags=["Baked", "Creamy", "Traditional"],
            key_ingredients=["Potato", "Cream", "Garlic"],
            confidence=0.95,
            reasoning="A traditional French side dish, baked, with a creamy texture from the cream.",
        ),
    },
    {
        "recipe": RecipeRecord(
            id="demo-2",
            page_url="https://notion.so/demo-2",
            title="Chicken 65 Recipe | Restaurant Style - Swasthi's Recipes",
            link="https://www.indianhealthyrecipes.com/chicken-65-recipe-no-egg-restaurant-style-chicken-recipes/",
        ),
        "extracted": ExtractedPageData(
            url="https://www.indianhealthyrecipes.com/chicken-65-recipe-no-egg-restaurant-style-chicken-recipes/",
            title="Chicken 65",
            description="Chicken 65 is a popular South Indian Chicken appetizer made by deep frying marinated chicken with cu...",
            ingredients=["chicken", "ginger garlic paste", "red chili powder", "coriander powder", "garam masala"],
        ),
        "analysis": ClassificationResult(
            standardized_title="Chicken 65",
            meal="Main Dish",
            cuisine="Indian",
            tags=["Appetizer", "Spicy"],
            key_ingredients=["Chicken", "Garlic", "Ginger"],
            confidence=0.95,
            reasoning="A spicy South Indian chicken dish served as a main or an appetizer.",
        ),
    },
    {
        "recipe": RecipeRecord(
            id="demo-3",
            page_url="https://notion.so/demo-3",
            title="Chapati Recipe (Indian Flatbread) - Swasthi's Recipes",
            link="https://www.indianhealthyrecipes.com/chapati/",
        ),
        "extracted": ExtractedPageData(
            url="https://www.indianhealthyrecipes.com/chapati/",
            title="Chapati (Indian Flatbread)",
            description="Chapati Recipe to make super soft and perfect Indian flatbread every single time! The recipe uses wh...",
            ingredients=["whole wheat flour", "water", "salt", "oil"],
        ),
        "analysis": ClassificationResult(
            standardized_title="Chapati (Indian Flatbread)",
            meal="Main Dish",
            cuisine="Indian",
            tags=["Traditional", "Vegan"],
            key_ingredients=["Bread"],
            confidence=0.95,
            reasoning="A traditional Indian flatbread with no animal products.",
        ),
    },
)


def demo_items() -> list[EnrichmentItem]:
    items = []
    for sample in _SAMPLES:
        recipe = sample["recipe"]
        analysis = validate_classification(sample["analysis"], recipe)
        items.append(
            EnrichmentItem(
                recipe=recipe,
                extracted=sample["extracted"],
                classification=analysis,
                changes=build_change_set(recipe, analysis, sample["extracted"]),
            )
        )
    return items


def demo_payload() -> dict[str, Any]:
    items = demo_items()
    return {
        "success": True,
        "data": [item.to_dict() for item in items],
        "stats": summarize(items),
        "note": "Static demo data; no Notion or OpenAI calls were made.",
    }
