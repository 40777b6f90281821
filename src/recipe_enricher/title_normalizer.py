"""Recipe title standardization.

Page titles scraped from recipe sites usually carry site branding and filler
words, e.g. "The Best Chicken Curry Recipe | Some Blog".  Transformations
applied (in order):

  1. Strip a "| Site Name" suffix.
  2. Strip a " - Site Name" suffix (the dash must be surrounded by spaces so
     hyphenated words like "Stir-Fry" survive).
  3. Strip leading "Recipe:" and "Recipe for".
  4. Strip trailing word "recipe".
     (Steps 1-4 repeat until the title stops changing.)
  5. Smart title-case (function words stay lowercase unless first,
     acronyms are preserved).

The function is idempotent: standardizing an already standardized title
returns it unchanged.
"""
from __future__ import annotations

import re

_PIPE_SUFFIX = re.compile(r"\s*\|\s*.*$")
_DASH_SUFFIX = re.compile(r"\s+[-–—]\s+.*$")
_PREFIX_PATTERNS: list[re.Pattern] = [
    re.compile(r"^recipe\s*:\s*", re.IGNORECASE),
    re.compile(r"^recipe\s+for\s+", re.IGNORECASE),
]
_SUFFIX_PATTERN = re.compile(r"\s+recipe$", re.IGNORECASE)

# Lowercase in title case unless first.
_SMALL_WORDS: frozenset[str] = frozenset({
    "a", "an", "the",
    "and", "or",
    "at", "in", "of", "on", "to", "for", "with",
})

_ACRONYMS: dict[str, str] = {
    "bbq": "BBQ", "blt": "BLT", "pb": "PB", "pbj": "PBJ", "xo": "XO", "diy": "DIY",
}


def _capitalize(word: str) -> str:
    """Uppercase the first letter, skipping leading punctuation."""
    for i, ch in enumerate(word):
        if ch.isalpha():
            return word[:i] + ch.upper() + word[i + 1 :].lower()
    return word


def _title_case_word(word: str) -> str:
    """Capitalize a single word, handling apostrophes and hyphens."""
    if "-" in word:
        return "-".join(_title_case_word(part) for part in word.split("-"))
    if "'" in word:
        # "grandma's" -> "Grandma's"
        parts = word.split("'", 1)
        return _capitalize(parts[0]) + "'" + parts[1]
    return _capitalize(word)


def _smart_title_case(text: str) -> str:
    words = text.lower().split()
    if not words:
        return text
    result: list[str] = []
    for i, word in enumerate(words):
        stripped = word.strip(",:;!?\"'()")
        if stripped in _ACRONYMS:
            result.append(word.replace(stripped, _ACRONYMS[stripped]))
        elif i == 0 or stripped not in _SMALL_WORDS:
            result.append(_title_case_word(word))
        else:
            result.append(word)
    return " ".join(result)


def _strip_once(name: str) -> str:
    name = _PIPE_SUFFIX.sub("", name).strip()
    name = _DASH_SUFFIX.sub("", name).strip()
    for pat in _PREFIX_PATTERNS:
        name = pat.sub("", name).strip()
    return _SUFFIX_PATTERN.sub("", name).strip()


def _strip_noise(title: str) -> str:
    # Repeated boilerplate ("Recipe: Recipe: Pie") needs more than one pass.
    name = re.sub(r"\s+", " ", title).strip()
    while True:
        stripped = _strip_once(name)
        if stripped == name:
            return name
        name = stripped


def standardize_title(raw: str | None) -> str:
    """Return a cleaned, title-cased version of *raw*.

    Falls back to title-casing the whole input when stripping would leave
    nothing (e.g. a title that is just "Recipe").
    """
    if not raw:
        return ""
    original = re.sub(r"\s+", " ", str(raw)).strip()
    if not original:
        return ""
    cleaned = _strip_noise(original)
    if not cleaned:
        return _smart_title_case(original)
    return _smart_title_case(cleaned)
