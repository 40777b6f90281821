from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any, Callable, Generic, Optional, TypeVar

from fastapi import Request

from ..orchestrator import EnrichmentOrchestrator, ReviewNotifier
from ..resilience import EnrichmentContext
from .scheduler import SchedulerService
from .settings import WebUISettings

T = TypeVar("T")


class LazyResource(Generic[T]):
    """Build a collaborator on first use so missing credentials fail the request, not startup."""

    def __init__(self, factory: Callable[[], T]) -> None:
        self._factory = factory
        self._lock = threading.Lock()
        self._value: Optional[T] = None

    def get(self) -> T:
        with self._lock:
            if self._value is None:
                self._value = self._factory()
            return self._value

    def close(self) -> None:
        with self._lock:
            value, self._value = self._value, None
        closer = getattr(value, "close", None)
        if callable(closer):
            closer()


@dataclass(frozen=True)
class Services:
    settings: WebUISettings
    context: EnrichmentContext
    store: LazyResource[Any]
    notifier_factory: Callable[[], Optional[ReviewNotifier]]
    orchestrator_factory: Callable[..., EnrichmentOrchestrator]
    image_probe: Callable[[str], bool]
    image_uploader: Callable[[bytes, str], str]
    scheduler: SchedulerService

    def orchestrator(self, *, with_notifier: bool = False) -> EnrichmentOrchestrator:
        notifier = self.notifier_factory() if with_notifier else None
        return self.orchestrator_factory(self.store.get(), self.context, notifier=notifier)


def require_services(request: Request) -> Services:
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise RuntimeError("Web services are not initialized.")
    return services
