from __future__ import annotations

import dataclasses
import logging
import threading
from typing import Any, Optional

import requests

from . import vocabulary
from .config import env_or_config, require_float, resolve_openai_api_key
from .errors import AiRequestError
from .fallback_classifier import classify_fallback
from .json_response import parse_json_object
from .models import ClassificationResult, ExtractedPageData, RecipeRecord
from .reconcile import validate_classification
from .resilience import EnrichmentContext, call_with_timeout

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_MODEL = "gpt-4o-mini"
DEFAULT_TIMEOUT_SECONDS = 20.0
# Hard ceiling for one AI call, kept well under the 30 s request limit of the host.
MAX_DEADLINE_SECONDS = 25.0
DEADLINE_MARGIN_SECONDS = 2.0
MAX_TOKENS = 500
TEMPERATURE = 0.3
PROMPT_INGREDIENT_LIMIT = 10


def cache_key(recipe_id: str) -> tuple[str, str]:
    return ("classification", recipe_id)


def _or(value: Any, placeholder: str) -> str:
    if isinstance(value, list):
        return ", ".join(value) if value else placeholder
    return str(value) if value else placeholder


def build_prompt(recipe: RecipeRecord, extracted: Optional[ExtractedPageData] = None) -> str:
    if extracted is not None:
        context = (
            f"Extracted Title: {_or(extracted.title, 'N/A')}\n"
            f"Description: {_or(extracted.description, 'N/A')}\n"
            f"Sample Ingredients: {_or(extracted.ingredients[:PROMPT_INGREDIENT_LIMIT], 'N/A')}"
        )
    else:
        context = "No extracted data available"

    return (
        "Analyze this recipe and provide enrichment data.\n\n"
        f"Recipe Name: {recipe.title}\n"
        f"Source Link: {_or(recipe.link, 'No link')}\n"
        f"{context}\n\n"
        "Current Data (preserve if exists):\n"
        f"- Meal Type: {_or(recipe.meal, 'Not set')}\n"
        f"- Cuisine: {_or(recipe.cuisine, 'Not set')}\n"
        f"- Tags: {_or(recipe.tags, 'None')}\n"
        f"- Key Ingredients: {_or(recipe.key_ingredients, 'None')}\n\n"
        "RULES:\n"
        "1. Only suggest values for MISSING fields; use null for fields that already have data.\n"
        "2. Choose values EXACTLY from the options provided. Do not invent new values.\n"
        "3. Suggest a standardized title only if the current title needs improvement.\n\n"
        "Available Options:\n"
        f"- MEAL TYPES: {', '.join(vocabulary.options(vocabulary.MEAL))}\n"
        f"- CUISINES: {', '.join(vocabulary.options(vocabulary.CUISINE))}\n"
        f"- TAGS: {', '.join(vocabulary.options(vocabulary.TAG))}\n"
        f"- KEY INGREDIENTS: {', '.join(vocabulary.options(vocabulary.INGREDIENT))}\n\n"
        "Respond with ONLY a single valid JSON object:\n"
        "{\n"
        '  "standardized_title": "improved title or null",\n'
        '  "meal": "meal type or null",\n'
        '  "cuisine": "cuisine or null",\n'
        '  "tags": ["tag1", "tag2"] or null,\n'
        '  "key_ingredients": ["ingredient1", "ingredient2"] or null,\n'
        '  "confidence": 0.85,\n'
        '  "reasoning": "brief explanation"\n'
        "}"
    )


class AiClassifier:
    """Classify recipes with a chat-completion model, falling back to rules.

    The circuit breaker is consulted before any network call; while it is
    open, or when no API key is configured, ``classify`` goes straight to the
    rule-based classifier.  Successful AI results are cached per recipe id.
    """

    def __init__(
        self,
        context: EnrichmentContext,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ):
        self.context = context
        self.api_key = resolve_openai_api_key() if api_key is None else api_key
        self.base_url = (base_url or env_or_config("OPENAI_BASE_URL", "providers.openai.base_url", DEFAULT_BASE_URL)).rstrip("/")
        self.model = model or env_or_config("OPENAI_MODEL", "providers.openai.model", DEFAULT_MODEL)
        if timeout is None:
            timeout = env_or_config(
                "AI_TIMEOUT_SECONDS", "providers.openai.timeout_seconds", DEFAULT_TIMEOUT_SECONDS,
                lambda v: require_float(v, "AI_TIMEOUT_SECONDS"),
            )
        self.timeout = float(timeout)
        self.deadline = min(self.timeout + DEADLINE_MARGIN_SECONDS, MAX_DEADLINE_SECONDS)
        self.session = session or requests.Session()
        self._stats_lock = threading.Lock()
        self.stats: dict[str, int] = {}

    def increment_stat(self, key: str, amount: int = 1) -> None:
        with self._stats_lock:
            self.stats[key] = self.stats.get(key, 0) + amount

    def stats_snapshot(self) -> dict[str, int]:
        with self._stats_lock:
            return dict(self.stats)

    def query_text(self, prompt: str) -> str:
        """POST *prompt* to the chat-completions endpoint and return the message content."""
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        body = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": MAX_TOKENS,
            "temperature": TEMPERATURE,
        }
        try:
            response = self.session.post(
                f"{self.base_url}/chat/completions", headers=headers, json=body, timeout=self.timeout
            )
        except requests.RequestException as exc:
            raise AiRequestError(f"AI request failed: {exc}") from exc
        if not response.ok:
            raise AiRequestError(f"AI API error: {response.status_code}")
        try:
            payload = response.json()
            content = payload["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise AiRequestError(f"Malformed AI API response: {exc}") from exc
        if not content or not str(content).strip():
            raise AiRequestError("AI API returned empty content")
        return str(content).strip()

    def _fallback(self, recipe: RecipeRecord, extracted: Optional[ExtractedPageData]) -> ClassificationResult:
        self.increment_stat("fallbacks")
        return validate_classification(classify_fallback(recipe, extracted), recipe)

    def classify(
        self,
        recipe: RecipeRecord,
        extracted: Optional[ExtractedPageData] = None,
        *,
        refresh: bool = False,
    ) -> ClassificationResult:
        key = cache_key(recipe.id)
        if not refresh:
            cached = self.context.cache.get(key)
            if cached is not None:
                self.increment_stat("cache_hits")
                return validate_classification(dataclasses.replace(cached, source="cache"), recipe)

        if not self.api_key:
            logger.info("No OpenAI API key configured; using fallback for '%s'", recipe.title)
            return self._fallback(recipe, extracted)

        breaker = self.context.breaker
        if not breaker.allow_request():
            logger.info("AI circuit breaker open; using fallback for '%s'", recipe.title)
            self.increment_stat("breaker_skips")
            return self._fallback(recipe, extracted)

        prompt = build_prompt(recipe, extracted)
        try:
            content = call_with_timeout(lambda: self.query_text(prompt), self.deadline)
        except (AiRequestError, TimeoutError) as exc:
            breaker.record_failure()
            self.increment_stat("ai_failures")
            logger.warning("AI classification failed for '%s': %s", recipe.title, exc)
            return self._fallback(recipe, extracted)

        payload = parse_json_object(content)
        if payload is None:
            snippet = content[:200].replace("\n", "\\n")
            if len(content) > 200:
                snippet += f"... ({len(content)} chars total)"
            logger.warning("Invalid JSON from AI for '%s': %s", recipe.title, snippet)
            self.increment_stat("invalid_responses")
            return self._fallback(recipe, extracted)

        breaker.record_success()
        self.increment_stat("ai_calls")
        result = ClassificationResult.from_payload(payload, source="ai")
        self.context.cache.set(key, result)
        return validate_classification(result, recipe)
