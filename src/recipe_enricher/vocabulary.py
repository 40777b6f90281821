"""Closed option sets for the four classification axes.

These mirror the select / multi-select options configured on the Notion
recipe database.  Values outside these lists are never written back.
"""
from __future__ import annotations

MEAL = "meal"
CUISINE = "cuisine"
TAG = "tag"
INGREDIENT = "ingredient"

MEAL_OPTIONS: tuple[str, ...] = (
    "Main Dish", "Side Dish", "Breakfast", "Dessert", "Snack", "Beverage",
)

CUISINE_OPTIONS: tuple[str, ...] = (
    "African", "American", "Asian", "Brazilian", "Chinese", "Dessert",
    "French", "German", "Greek", "Hungarian", "Indian", "Italian",
    "Japanese", "Korean", "Mediterranean", "Mexican", "Middle Eastern",
    "Persian", "Peruvian", "Spanish", "Thai", "Vietnamese",
)

TAG_OPTIONS: tuple[str, ...] = (
    "Appetizer", "Baked", "Braised", "Breakfast", "Chocolate", "Citrusy",
    "Condiment", "Creamy", "Curry", "Drink", "Eggs", "Fish", "Grilled",
    "Herby", "No Bake", "Pasta", "Pickled", "Refreshing", "Roasted",
    "Salad", "Sandwich", "Savory", "Seafood", "Soup", "Spicy", "Steamed",
    "Stew", "Stir-Fry", "Sweet", "Tangy", "Traditional", "Vegan", "Vegetarian",
)

INGREDIENT_OPTIONS: tuple[str, ...] = (
    "Beef", "Chicken", "Pork", "Fish", "Salmon", "Shrimp", "Eggs", "Cheese",
    "Pasta", "Rice", "Bread", "Potato", "Tomato", "Onions", "Garlic",
    "Spinach", "Broccoli", "Carrot", "Mushrooms", "Peppers", "Lemon",
    "Basil", "Herbs", "Ginger", "Chili", "Beans", "Cream", "Milk",
)

AXES: dict[str, tuple[str, ...]] = {
    MEAL: MEAL_OPTIONS,
    CUISINE: CUISINE_OPTIONS,
    TAG: TAG_OPTIONS,
    INGREDIENT: INGREDIENT_OPTIONS,
}

# Substituted for an unknown value on single-valued axes.
DEFAULTS: dict[str, str] = {
    MEAL: "Main Dish",
    CUISINE: "American",
}

_MEMBERS: dict[str, frozenset[str]] = {axis: frozenset(values) for axis, values in AXES.items()}


def options(axis: str) -> tuple[str, ...]:
    try:
        return AXES[axis]
    except KeyError:
        raise ValueError(f"Unknown vocabulary axis '{axis}'") from None


def is_member(axis: str, value: object) -> bool:
    if not isinstance(value, str):
        return False
    options(axis)
    return value in _MEMBERS[axis]


def default_for(axis: str) -> str:
    try:
        return DEFAULTS[axis]
    except KeyError:
        raise ValueError(f"Axis '{axis}' has no default value") from None


_CASEFOLDED: dict[str, dict[str, str]] = {
    axis: {value.casefold(): value for value in values} for axis, values in AXES.items()
}


def canonical(axis: str, value: object) -> str | None:
    """Registry spelling of *value* on *axis*, matched case-insensitively, else ``None``."""
    if not isinstance(value, str):
        return None
    options(axis)
    return _CASEFOLDED[axis].get(value.strip().casefold())
