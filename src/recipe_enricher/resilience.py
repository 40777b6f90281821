"""Timeouts, retries, caching and the AI circuit breaker.

All mutable state lives on explicit objects (``TTLCache``, ``CircuitBreaker``)
bundled into an ``EnrichmentContext`` that callers pass around, so tests and
separate app instances never share state by accident.
"""
from __future__ import annotations

import concurrent.futures
import logging
import random
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Hashable, Optional, TypeVar

from .config import env_or_config, require_float, require_int

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_CACHE_TTL_SECONDS = 24 * 60 * 60
DEFAULT_BREAKER_THRESHOLD = 3
DEFAULT_BREAKER_RESET_SECONDS = 300.0


def call_with_timeout(fn: Callable[[], T], timeout: float) -> T:
    """Run *fn* on a worker thread and raise ``TimeoutError`` after *timeout* seconds.

    Used as a hard deadline around calls whose own socket timeout is not
    enough (slow-drip responses).  The worker is not killed; its result is
    discarded.
    """
    executor = concurrent.futures.ThreadPoolExecutor(max_workers=1)
    future = executor.submit(fn)
    try:
        return future.result(timeout=timeout)
    except concurrent.futures.TimeoutError as exc:
        raise TimeoutError(f"Call exceeded {timeout:.1f}s deadline") from exc
    finally:
        executor.shutdown(wait=False)


def retry_with_backoff(
    fn: Callable[[], T],
    attempts: int = 2,
    base_delay: float = 0.5,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Call *fn* up to *attempts* times, sleeping ``base * 2**n + jitter`` between tries."""
    attempts = max(1, attempts)
    for attempt in range(attempts):
        try:
            return fn()
        except retry_on as exc:
            if attempt >= attempts - 1:
                raise
            logger.debug("Retry %d/%d after error: %s", attempt + 1, attempts, exc)
            sleep((base_delay * (2**attempt)) + random.uniform(0, 0.25))
    raise RuntimeError("unreachable")  # pragma: no cover


class TTLCache:
    """Unbounded key -> (data, timestamp) store with lazy expiry on read."""

    def __init__(self, ttl_seconds: float = DEFAULT_CACHE_TTL_SECONDS, clock: Callable[[], float] = time.time):
        self.ttl_seconds = float(ttl_seconds)
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: dict[Hashable, tuple[Any, float]] = {}

    def get(self, key: Hashable, ttl_seconds: Optional[float] = None) -> Any:
        ttl = self.ttl_seconds if ttl_seconds is None else ttl_seconds
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            data, stamp = entry
            if self._clock() - stamp >= ttl:
                del self._entries[key]
                return None
            return data

    def set(self, key: Hashable, data: Any) -> None:
        with self._lock:
            self._entries[key] = (data, self._clock())

    def invalidate(self, key: Hashable) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class CircuitBreaker:
    """Consecutive-failure guard for the AI call path.

    Open while ``failures >= threshold`` and the last failure is younger than
    ``reset_seconds``.  Once the window passes, requests are allowed again; a
    further failure re-opens it immediately because the counter is only reset
    by a success.
    """

    def __init__(
        self,
        threshold: int = DEFAULT_BREAKER_THRESHOLD,
        reset_seconds: float = DEFAULT_BREAKER_RESET_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.threshold = max(1, int(threshold))
        self.reset_seconds = float(reset_seconds)
        self._clock = clock
        self._lock = threading.Lock()
        self._failures = 0
        self._last_failure: Optional[float] = None

    @property
    def failures(self) -> int:
        with self._lock:
            return self._failures

    @property
    def is_open(self) -> bool:
        with self._lock:
            return self._is_open_locked()

    def _is_open_locked(self) -> bool:
        if self._failures < self.threshold or self._last_failure is None:
            return False
        return (self._clock() - self._last_failure) < self.reset_seconds

    def allow_request(self) -> bool:
        with self._lock:
            return not self._is_open_locked()

    def record_failure(self) -> None:
        with self._lock:
            self._failures += 1
            self._last_failure = self._clock()
            if self._failures == self.threshold:
                logger.warning("AI circuit breaker opened after %d consecutive failures", self._failures)

    def record_success(self) -> None:
        with self._lock:
            self._failures = 0
            self._last_failure = None

    def snapshot(self) -> dict[str, Any]:
        with self._lock:
            return {
                "failures": self._failures,
                "lastFailure": self._last_failure,
                "threshold": self.threshold,
                "isOpen": self._is_open_locked(),
            }


@dataclass
class EnrichmentContext:
    """Shared cache and breaker threaded through the orchestrator and classifiers."""

    cache: TTLCache = field(default_factory=TTLCache)
    breaker: CircuitBreaker = field(default_factory=CircuitBreaker)

    @classmethod
    def from_config(cls) -> "EnrichmentContext":
        ttl = env_or_config(
            "CACHE_TTL_SECONDS", "resilience.cache_ttl_seconds", DEFAULT_CACHE_TTL_SECONDS,
            lambda v: require_float(v, "CACHE_TTL_SECONDS"),
        )
        threshold = env_or_config(
            "BREAKER_THRESHOLD", "resilience.breaker_threshold", DEFAULT_BREAKER_THRESHOLD,
            lambda v: require_int(v, "BREAKER_THRESHOLD"),
        )
        reset = env_or_config(
            "BREAKER_RESET_SECONDS", "resilience.breaker_reset_seconds", DEFAULT_BREAKER_RESET_SECONDS,
            lambda v: require_float(v, "BREAKER_RESET_SECONDS"),
        )
        return cls(cache=TTLCache(ttl), breaker=CircuitBreaker(threshold, reset))
