import pytest

from recipe_enricher.title_normalizer import standardize_title


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("The Best Chicken Curry Recipe | Some Food Blog", "The Best Chicken Curry"),
        ("Chicken 65 Recipe | Restaurant Style - Swasthi's Recipes", "Chicken 65"),
        ("Chapati Recipe (Indian Flatbread) - Swasthi's Recipes", "Chapati Recipe (Indian Flatbread)"),
        ("Recipe: pasta with garlic and oil", "Pasta with Garlic and Oil"),
        ("recipe for fish in a bag", "Fish in a Bag"),
        ("easy beef stir-fry", "Easy Beef Stir-Fry"),
        ("bbq pulled pork sandwich", "BBQ Pulled Pork Sandwich"),
        ("grandma's apple pie", "Grandma's Apple Pie"),
        ("the perfect omelette", "The Perfect Omelette"),
    ],
)
def test_standardize_title(raw, expected):
    assert standardize_title(raw) == expected


@pytest.mark.parametrize(
    "title",
    [
        "Potatoes au Gratin (Dauphinoise) - RecipeTin Eats",
        "Recipe: spicy CHICKEN curry",
        "BLT with a Twist",
        "Recipe",
        "| Only Branding",
        "Chicken Recipe Recipe",
        "Recipe for Recipe: Apple Pie",
        "Recipe: Recipe: Pie",
    ],
)
def test_standardize_title_is_idempotent(title):
    once = standardize_title(title)
    assert standardize_title(once) == once


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("Chicken Recipe Recipe", "Chicken"),
        ("Recipe for Recipe: Apple Pie", "Apple Pie"),
        ("Recipe: Recipe: Pie", "Pie"),
    ],
)
def test_repeated_boilerplate_is_stripped_in_one_call(raw, expected):
    assert standardize_title(raw) == expected


def test_standardize_title_empty_input():
    assert standardize_title("") == ""
    assert standardize_title(None) == ""
    assert standardize_title("   ") == ""


def test_title_that_is_only_noise_falls_back_to_title_case():
    assert standardize_title("recipe:") == "Recipe:"
