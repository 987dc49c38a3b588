"""In-process event bus for ranking invalidation.

Events are dispatched synchronously to every subscribed handler. A failing handler
is logged and does not prevent the remaining handlers from running.
"""

import enum
import logging
import threading
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from candidate_ranking.utils.timestamps import utcnow

logger = logging.getLogger(__name__)


class EventType(str, enum.Enum):
    ASSESSMENT_SUBMITTED = "ASSESSMENT_SUBMITTED"
    SCORING_CONFIG_CHANGED = "SCORING_CONFIG_CHANGED"
    JOB_UPDATED = "JOB_UPDATED"
    APPLICANT_UPDATED = "APPLICANT_UPDATED"
    RANKING_CALCULATED = "RANKING_CALCULATED"
    MANUAL_TRIGGER = "MANUAL_TRIGGER"


@dataclass(frozen=True)
class RankingEvent:
    type: EventType
    payload: dict[str, Any] = field(default_factory=dict)
    occurred_at: datetime = field(default_factory=utcnow)


EventHandler = Callable[[RankingEvent], None]


class EventBus:
    """Synchronous publish/subscribe keyed by EventType."""

    def __init__(self):
        self._handlers: dict[EventType, list[EventHandler]] = defaultdict(list)
        self._lock = threading.Lock()

    def subscribe(self, event_type: EventType, handler: EventHandler) -> None:
        with self._lock:
            self._handlers[EventType(event_type)].append(handler)

    def unsubscribe(self, event_type: EventType, handler: EventHandler) -> None:
        with self._lock:
            handlers = self._handlers.get(EventType(event_type), [])
            if handler in handlers:
                handlers.remove(handler)

    def handlers_for(self, event_type: EventType) -> list[EventHandler]:
        with self._lock:
            return list(self._handlers.get(EventType(event_type), []))

    def publish(self, event_type: EventType, payload: dict[str, Any] | None = None) -> int:
        """Dispatch an event and return how many handlers completed without raising."""
        event = RankingEvent(type=EventType(event_type), payload=dict(payload or {}))
        delivered = 0
        for handler in self.handlers_for(event.type):
            try:
                handler(event)
            except Exception:
                logger.exception(
                    "Handler %s failed for %s event %s",
                    getattr(handler, "__qualname__", handler),
                    event.type.value,
                    event.payload,
                )
                continue
            delivered += 1
        return delivered
