"""
@file events.py
@brief Observer registry for engine progress and slot status.

Each event type keeps its most recent value and replays it to new
subscribers. Subscriber exceptions are logged and do not affect the
publisher or the other subscribers.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple, Type, TypeVar

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StateChangeEvent:
    """Human-readable progress string."""
    text: str


@dataclass(frozen=True)
class SlotStatusEvent:
    """Resolved cycle status; labels is None when checked and nothing was found."""
    labels: Optional[Tuple[str, ...]] = None

    @property
    def found(self) -> bool:
        return bool(self.labels)


E = TypeVar("E")
Handler = Callable[[E], None]


class EventBus:
    """Thread-safe publish/subscribe with replay of the last value per event type."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscribers: Dict[type, List[Handler]] = {}
        self._last: Dict[type, object] = {}

    def subscribe(self, event_type: Type[E], handler: Handler, replay: bool = True) -> Callable[[], None]:
        """
        Register handler for event_type.

        @return Callable that removes the subscription
        """
        with self._lock:
            self._subscribers.setdefault(event_type, []).append(handler)
            last = self._last.get(event_type)

        if replay and last is not None:
            self._deliver(handler, last)

        def unsubscribe() -> None:
            with self._lock:
                handlers = self._subscribers.get(event_type, [])
                if handler in handlers:
                    handlers.remove(handler)

        return unsubscribe

    def publish(self, event: object) -> None:
        event_type = type(event)
        with self._lock:
            self._last[event_type] = event
            handlers = list(self._subscribers.get(event_type, []))
        for handler in handlers:
            self._deliver(handler, event)

    def last(self, event_type: Type[E]) -> Optional[E]:
        with self._lock:
            return self._last.get(event_type)  # type: ignore[return-value]

    @staticmethod
    def _deliver(handler: Handler, event: object) -> None:
        try:
            handler(event)
        except Exception:
            logger.exception(f"Event handler failed for {type(event).__name__}")
