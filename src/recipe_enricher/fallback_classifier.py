"""Rule-based classifier used when the AI path is unavailable.

Pure and deterministic: keyword tables are matched with word-boundary regexes
against the recipe name and (when present) the extracted page title and
ingredient lines.  Never touches the network and never raises.
"""
from __future__ import annotations

import re
from typing import Optional

from . import vocabulary
from .models import ClassificationResult, ExtractedPageData, RecipeRecord

MAX_TAGS = 4
MAX_KEY_INGREDIENTS = 5
INGREDIENT_SCAN_LIMIT = 10
CONFIDENCE_INFERRED = 0.7
CONFIDENCE_DEFAULT_ONLY = 0.5
REASONING = "Rule-based fallback classification used; AI classification was not available."


def _compile_pattern(pattern: str) -> re.Pattern[str]:
    return re.compile(rf"\b(?:{pattern})\b", re.IGNORECASE)


def _table(entries: list[tuple[str, str]]) -> list[tuple[str, re.Pattern[str]]]:
    return [(name, _compile_pattern(pattern)) for name, pattern in entries]


# Checked in order; first match wins.
_MEAL_RULES = _table([
    ("Breakfast", r"breakfast|pancakes?|waffles?|oatmeal|granola|omelett?e|frittata|french toast|muffins?"),
    ("Dessert", r"desserts?|cakes?|cookies?|brownies?|cupcakes?|cheesecake|pudding|ice cream|(?:fruit|lemon|lime|apple|pear|cherry|berry|strawberry|blueberry|custard|chocolate|pecan|treacle|jam|egg) tarts?|tarte tatin"),
    ("Side Dish", r"salads?|sides?|slaw|coleslaw"),
    ("Beverage", r"hot chocolate|hot cocoa|smoothies?|lemonade|cocktails?|tea|coffee|latte|juice|drinks?"),
    ("Snack", r"snacks?|dips?|hummus|popcorn|trail mix|energy balls?"),
])

_CUISINE_NATIONALITY = _table([
    ("Middle Eastern", r"middle eastern"),
    ("Italian", r"italian"),
    ("Mexican", r"mexican"),
    ("Chinese", r"chinese"),
    ("Indian", r"indian"),
    ("Thai", r"thai"),
    ("Japanese", r"japanese"),
    ("Korean", r"korean"),
    ("Vietnamese", r"vietnamese"),
    ("French", r"french"),
    ("Greek", r"greek"),
    ("Spanish", r"spanish"),
    ("German", r"german"),
    ("Hungarian", r"hungarian"),
    ("Persian", r"persian"),
    ("Peruvian", r"peruvian"),
    ("Brazilian", r"brazilian"),
    ("African", r"african|moroccan|ethiopian"),
    ("Mediterranean", r"mediterranean"),
    ("Asian", r"asian"),
])

_CUISINE_DISHES = _table([
    ("Italian", r"pasta|pizza|risotto|lasagna|gnocchi|carbonara|bolognese|pesto|parmigiana"),
    ("Mexican", r"tacos?|burritos?|enchiladas?|quesadillas?|fajitas?|salsa|guacamole|tamales?"),
    ("Chinese", r"stir[- ]fry|lo mein|chow mein|kung pao|dumplings?|fried rice|sweet and sour"),
    ("Indian", r"curry|tikka|masala|dal|dhal|biryani|tandoori|korma|paneer|samosas?"),
    ("Thai", r"pad thai|tom yum|satay|larb"),
    ("Japanese", r"sushi|ramen|teriyaki|miso|tempura|udon|katsu"),
    ("Korean", r"bulgogi|kimchi|bibimbap|gochujang"),
    ("Vietnamese", r"pho|banh mi|spring rolls?"),
    ("Greek", r"tzatziki|souvlaki|moussaka|spanakopita|gyros?"),
    ("Middle Eastern", r"shawarma|falafel|tahini|shakshuka"),
    ("Spanish", r"paella|gazpacho|tapas|chorizo"),
    ("French", r"ratatouille|crepes?|quiche|souffle|coq au vin"),
])

_METHOD_TAGS = _table([
    ("Baked", r"baked|bake"),
    ("Grilled", r"grilled|grill|bbq|barbecue"),
    ("Roasted", r"roasted|roast"),
    ("Stir-Fry", r"stir[- ]fry|stir[- ]fried"),
    ("Steamed", r"steamed|steam"),
    ("Braised", r"braised|braise"),
])

_DISH_TAGS = _table([
    ("Salad", r"salads?"),
    ("Soup", r"soups?|chowder|bisque"),
    ("Stew", r"stews?|chili con carne"),
    ("Sandwich", r"sandwich(?:es)?|burgers?|wraps?"),
    ("Pasta", r"pasta|spaghetti|penne|linguine|fettuccine|macaroni|noodles?"),
    ("Curry", r"curry|curries"),
])

_FLAVOR_TAGS = _table([
    ("Spicy", r"spicy|hot (?:sauce|peppers?|chil(?:i|e|ies))|chili|chile|jalapeno|sriracha|cayenne"),
    ("Sweet", r"sweet|honey|maple|caramel"),
    ("Creamy", r"creamy|cream|alfredo"),
])

_MEAT_RE = _compile_pattern(
    r"chicken|beef|pork|bacon|ham|sausages?|turkey|lamb|steak|fish|salmon|tuna|shrimp|prawns?|crab|lobster|anchov(?:y|ies)|meat|veal|duck"
)
_ANIMAL_PRODUCT_RE = _compile_pattern(r"eggs?|cheese|milk|butter|cream|yogurt|yoghurt|honey|parmesan|mozzarella")

_INGREDIENT_RULES = _table([
    ("Beef", r"beef|steak"),
    ("Chicken", r"chicken"),
    ("Pork", r"pork|bacon|ham"),
    ("Salmon", r"salmon"),
    ("Fish", r"fish|cod|tilapia|halibut|tuna"),
    ("Shrimp", r"shrimp|prawns?"),
    ("Eggs", r"eggs?"),
    ("Cheese", r"cheese|cheddar|parmesan|mozzarella|feta"),
    ("Pasta", r"pasta|spaghetti|penne|linguine|fettuccine|macaroni"),
    ("Rice", r"rice"),
    ("Bread", r"bread|breadcrumbs|baguette|tortillas?"),
    ("Potato", r"potato(?:es)?"),
    ("Tomato", r"tomato(?:es)?"),
    ("Onions", r"onions?|shallots?|scallions?"),
    ("Garlic", r"garlic"),
    ("Spinach", r"spinach"),
    ("Broccoli", r"broccoli"),
    ("Carrot", r"carrots?"),
    ("Mushrooms", r"mushrooms?"),
    ("Peppers", r"bell peppers?|peppers"),
    ("Lemon", r"lemons?"),
    ("Basil", r"basil"),
    ("Herbs", r"parsley|cilantro|thyme|rosemary|oregano|dill|herbs?"),
    ("Ginger", r"ginger"),
    ("Chili", r"chili|chile|chilies|jalapenos?|cayenne"),
    ("Beans", r"beans?|chickpeas?|lentils?"),
    ("Cream", r"cream"),
    ("Milk", r"milk"),
])


def _first_match(table: list[tuple[str, re.Pattern[str]]], text: str) -> Optional[str]:
    for name, pattern in table:
        if pattern.search(text):
            return name
    return None


def infer_meal(text: str) -> str:
    return _first_match(_MEAL_RULES, text) or vocabulary.default_for(vocabulary.MEAL)


def infer_cuisine(text: str) -> Optional[str]:
    return _first_match(_CUISINE_NATIONALITY, text) or _first_match(_CUISINE_DISHES, text)


def infer_key_ingredients(ingredients: list[str]) -> list[str]:
    found: list[str] = []
    for line in ingredients[:INGREDIENT_SCAN_LIMIT]:
        for name, pattern in _INGREDIENT_RULES:
            if name not in found and pattern.search(line):
                found.append(name)
                if len(found) >= MAX_KEY_INGREDIENTS:
                    return found
    return found


def infer_tags(text: str) -> list[str]:
    tags: list[str] = []
    for table in (_METHOD_TAGS, _DISH_TAGS, _FLAVOR_TAGS):
        for name, pattern in table:
            if name not in tags and pattern.search(text):
                tags.append(name)
    if not _MEAT_RE.search(text):
        tags.append("Vegan" if not _ANIMAL_PRODUCT_RE.search(text) else "Vegetarian")
    return tags[:MAX_TAGS]


def classify_fallback(recipe: RecipeRecord, extracted: Optional[ExtractedPageData] = None) -> ClassificationResult:
    """Classify *recipe* from its name and any extracted page data."""
    parts = [recipe.title or ""]
    ingredients: list[str] = []
    if extracted is not None:
        if extracted.title:
            parts.append(extracted.title)
        ingredients = list(extracted.ingredients)
    name_text = " ".join(parts)
    full_text = " ".join([name_text, *ingredients])

    meal = infer_meal(name_text)
    cuisine = infer_cuisine(full_text)
    key_ingredients = infer_key_ingredients(ingredients)
    tags = infer_tags(full_text) if full_text.strip() else []

    inferred_more = bool(
        cuisine
        or tags
        or key_ingredients
        or meal != vocabulary.default_for(vocabulary.MEAL)
    )
    return ClassificationResult(
        standardized_title=None,
        meal=meal,
        cuisine=cuisine,
        tags=tags or None,
        key_ingredients=key_ingredients or None,
        confidence=CONFIDENCE_INFERRED if inferred_more else CONFIDENCE_DEFAULT_ONLY,
        reasoning=REASONING,
        source="fallback",
    )
