"""Batch enrichment: fetch candidates, extract, classify, diff.

Nothing is written back to the record store here; the output is a list of
review items whose change sets a caller may later apply.
"""
from __future__ import annotations

import concurrent.futures
import enum
import logging
import threading
import time
from typing import Any, Callable, Optional, Protocol

from .config import env_or_config, require_float, require_int
from .models import ClassificationResult, EnrichmentItem, ExtractedPageData, RecipeRecord
from .reconcile import build_change_set
from .resilience import EnrichmentContext

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 5
DEFAULT_DELAY_SECONDS = 1.0
DEFAULT_MAX_WORKERS = 1


class EnrichmentMode(str, enum.Enum):
    STANDARD = "standard"
    RESCRAPE = "rescrape"
    RECLASSIFY = "reclassify"

    @classmethod
    def from_refresh(cls, value: Optional[str]) -> "EnrichmentMode":
        """Map the HTTP ``refresh`` parameter; unknown values mean standard."""
        return _REFRESH_MODES.get(str(value or "").strip().lower(), cls.STANDARD)


_REFRESH_MODES = {
    "notion": EnrichmentMode.STANDARD,
    "website": EnrichmentMode.RESCRAPE,
    "ai": EnrichmentMode.RECLASSIFY,
}


class RunState(str, enum.Enum):
    IDLE = "idle"
    FETCHING_CANDIDATES = "fetching-candidates"
    EXTRACTING = "extracting"
    CLASSIFYING = "classifying"
    DIFFING = "diffing"
    COMPLETE = "complete"


class RecipeSource(Protocol):
    def query_incomplete_recipes(self, page_size: int = ...) -> list[RecipeRecord]: ...


class Extractor(Protocol):
    def extract(self, url: Optional[str]) -> Optional[ExtractedPageData]: ...


class Classifier(Protocol):
    def classify(
        self, recipe: RecipeRecord, extracted: Optional[ExtractedPageData] = ..., *, refresh: bool = ...
    ) -> ClassificationResult: ...


class ReviewNotifier(Protocol):
    def send_review(self, items: list[EnrichmentItem], stats: dict[str, Any]) -> bool: ...

    def send_error(self, error: BaseException) -> bool: ...


def page_cache_key(url: str) -> tuple[str, str]:
    return ("page", url)


def summarize(items: list[EnrichmentItem]) -> dict[str, Any]:
    total = len(items)
    return {
        "totalRecipes": total,
        "totalSuggestions": sum(item.changes.count() for item in items),
        "imagesFound": sum(1 for item in items if item.extracted is not None and item.extracted.images),
        "avgConfidence": (sum(item.classification.confidence for item in items) / total) if total else 0,
    }


class EnrichmentOrchestrator:
    def __init__(
        self,
        store: RecipeSource,
        extractor: Extractor,
        classifier: Classifier,
        context: EnrichmentContext,
        *,
        notifier: Optional[ReviewNotifier] = None,
        batch_size: Optional[int] = None,
        delay_seconds: Optional[float] = None,
        max_workers: Optional[int] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.store = store
        self.extractor = extractor
        self.classifier = classifier
        self.context = context
        self.notifier = notifier
        if batch_size is None:
            batch_size = env_or_config(
                "ENRICHMENT_BATCH_SIZE", "enrichment.batch_size", DEFAULT_BATCH_SIZE,
                lambda v: require_int(v, "ENRICHMENT_BATCH_SIZE"),
            )
        if delay_seconds is None:
            delay_seconds = env_or_config(
                "ENRICHMENT_DELAY_SECONDS", "enrichment.delay_seconds", DEFAULT_DELAY_SECONDS,
                lambda v: require_float(v, "ENRICHMENT_DELAY_SECONDS"),
            )
        if max_workers is None:
            max_workers = env_or_config(
                "ENRICHMENT_MAX_WORKERS", "enrichment.max_workers", DEFAULT_MAX_WORKERS,
                lambda v: require_int(v, "ENRICHMENT_MAX_WORKERS"),
            )
        self.batch_size = max(1, int(batch_size))
        self.delay_seconds = max(0.0, float(delay_seconds))
        self.max_workers = max(1, int(max_workers))
        self._sleep = sleep
        self._state_lock = threading.Lock()
        self._state = RunState.IDLE
        self._recipe_states: dict[str, RunState] = {}

    @property
    def state(self) -> RunState:
        """Batch stage.

        Sequential runs mirror the current recipe's stage here.  Pooled runs
        leave it alone until the pool drains; per-recipe progress is in
        :meth:`recipe_state`.
        """
        with self._state_lock:
            return self._state

    def recipe_state(self, recipe_id: str) -> RunState:
        with self._state_lock:
            return self._recipe_states.get(recipe_id, RunState.IDLE)

    def _set_state(self, state: RunState) -> None:
        with self._state_lock:
            self._state = state

    def _set_stage(self, recipe_id: str, state: RunState, *, mirror: bool) -> None:
        with self._state_lock:
            self._recipe_states[recipe_id] = state
            if mirror:
                self._state = state

    # ------------------------------------------------------------------
    # Per-recipe pipeline
    # ------------------------------------------------------------------

    def page_data(self, url: Optional[str], mode: EnrichmentMode) -> Optional[ExtractedPageData]:
        if not url:
            return None
        key = page_cache_key(url)
        if mode is not EnrichmentMode.RESCRAPE:
            cached = self.context.cache.get(key)
            if cached is not None:
                return cached
        data = self.extractor.extract(url)
        if data is not None:
            self.context.cache.set(key, data)
        return data

    def process_recipe(
        self,
        recipe: RecipeRecord,
        mode: EnrichmentMode = EnrichmentMode.STANDARD,
        *,
        mirror_stage: bool = True,
    ) -> EnrichmentItem:
        self._set_stage(recipe.id, RunState.EXTRACTING, mirror=mirror_stage)
        extracted = self.page_data(recipe.link, mode)

        self._set_stage(recipe.id, RunState.CLASSIFYING, mirror=mirror_stage)
        classification = self.classifier.classify(recipe, extracted, refresh=mode is not EnrichmentMode.STANDARD)

        self._set_stage(recipe.id, RunState.DIFFING, mirror=mirror_stage)
        changes = build_change_set(recipe, classification, extracted)
        self._set_stage(recipe.id, RunState.COMPLETE, mirror=False)
        return EnrichmentItem(recipe=recipe, extracted=extracted, classification=classification, changes=changes)

    def _process_safely(
        self, recipe: RecipeRecord, mode: EnrichmentMode, mirror_stage: bool = True
    ) -> Optional[EnrichmentItem]:
        try:
            return self.process_recipe(recipe, mode, mirror_stage=mirror_stage)
        except Exception:
            logger.exception("Error processing recipe %s ('%s')", recipe.id, recipe.title)
            return None

    # ------------------------------------------------------------------
    # Batches
    # ------------------------------------------------------------------

    def fetch_candidates(self) -> list[RecipeRecord]:
        self._set_state(RunState.FETCHING_CANDIDATES)
        return list(self.store.query_incomplete_recipes(page_size=self.batch_size))[: self.batch_size]

    def run_batch(
        self,
        mode: EnrichmentMode = EnrichmentMode.STANDARD,
        recipes: Optional[list[RecipeRecord]] = None,
    ) -> list[EnrichmentItem]:
        """Build review items for up to ``batch_size`` recipes.

        A recipe whose processing raises is logged and left out; the rest of
        the batch is unaffected.
        """
        if recipes is None:
            recipes = self.fetch_candidates()
        else:
            recipes = list(recipes)[: self.batch_size]
        with self._state_lock:
            self._recipe_states.clear()

        if self.max_workers > 1 and len(recipes) > 1:
            results = self._run_pooled(recipes, mode)
        else:
            results = []
            for index, recipe in enumerate(recipes):
                if index and self.delay_seconds:
                    self._sleep(self.delay_seconds)
                results.append(self._process_safely(recipe, mode))

        items = [item for item in results if item is not None]
        self._set_state(RunState.COMPLETE)
        logger.info("Enrichment batch (%s) built %d/%d review items", mode.value, len(items), len(recipes))
        return items

    def _run_pooled(self, recipes: list[RecipeRecord], mode: EnrichmentMode) -> list[Optional[EnrichmentItem]]:
        with concurrent.futures.ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = []
            for index, recipe in enumerate(recipes):
                # Submissions are spaced out by the same delay as the sequential path.
                if index and self.delay_seconds:
                    self._sleep(self.delay_seconds)
                futures.append(executor.submit(self._process_safely, recipe, mode, False))
            return [future.result() for future in futures]

    def run_scheduled(self, mode: EnrichmentMode = EnrichmentMode.STANDARD) -> dict[str, Any]:
        """One unattended pass: build the batch and email it for review."""
        try:
            recipes = self.fetch_candidates()
            items = self.run_batch(mode, recipes=recipes)
            stats = summarize(items)
            if self.notifier is not None:
                self.notifier.send_review(items, stats)
            return {"success": True, "processed": len(items), "total": len(recipes)}
        except Exception as exc:
            logger.error("Scheduled enrichment failed: %s", exc)
            if self.notifier is not None:
                self.notifier.send_error(exc)
            raise


def build_orchestrator(
    store: RecipeSource,
    context: Optional[EnrichmentContext] = None,
    *,
    notifier: Optional[ReviewNotifier] = None,
) -> EnrichmentOrchestrator:
    """Wire the default page extractor and AI classifier around *store*."""
    from .ai_classifier import AiClassifier
    from .page_extractor import PageExtractor

    context = context or EnrichmentContext.from_config()
    return EnrichmentOrchestrator(
        store,
        PageExtractor(),
        AiClassifier(context),
        context,
        notifier=notifier,
    )
