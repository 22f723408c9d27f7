"""
pod_orchestrator/events/stream.py
──────────────────────────────────
Pod lifecycle events and the in-process stream that broadcasts them.

Events
───────
  PodEvent(kind=CREATED)  → event_type "pod_created_event"
  PodEvent(kind=UPDATED)  → event_type "pod_updated_event"
  PodEvent(kind=DELETED)  → event_type "pod_deleted_event"

Each event records who caused it (client_ip, uri) and when (timestamp,
ISO-8601 UTC, same format as pod versions).

EventStream
────────────
Fire-and-forget broadcast. publish() hands the event to every subscriber
in subscription order and returns. A subscriber that raises is logged and
skipped; the remaining subscribers still receive the event and the
publisher never sees the exception.

    stream = EventStream()
    stream.subscribe(audit_log.append, event_type="pod_created_event")
    stream.publish(PodEvent(client_ip="10.0.0.1", uri="/v2/pods", kind=PodEventKind.CREATED))
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from pod_orchestrator.shared.models import format_timestamp

logger = logging.getLogger(__name__)


class PodEventKind(str, Enum):
    CREATED = "pod_created_event"
    UPDATED = "pod_updated_event"
    DELETED = "pod_deleted_event"


class PodEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    client_ip: str
    uri: str
    kind: PodEventKind
    timestamp: str = Field(
        default_factory=lambda: format_timestamp(datetime.now(timezone.utc))
    )

    @property
    def event_type(self) -> str:
        return self.kind.value


Subscriber = Callable[[PodEvent], None]


class EventStream:
    """
    Not thread-safe: subscribe/unsubscribe from the same thread that
    publishes, or guard the stream externally.
    """

    def __init__(self) -> None:
        self._subscribers: List[Tuple[Subscriber, Optional[str]]] = []

    def subscribe(self, subscriber: Subscriber, event_type: Optional[str] = None) -> None:
        """Receive every event, or only events whose event_type matches."""
        self._subscribers.append((subscriber, event_type))

    def unsubscribe(self, subscriber: Subscriber) -> None:
        self._subscribers = [
            (existing, event_type)
            for existing, event_type in self._subscribers
            if existing != subscriber
        ]

    def publish(self, event: PodEvent) -> int:
        """Deliver `event`. Returns how many subscribers received it without error."""
        delivered = 0
        for subscriber, event_type in list(self._subscribers):
            if event_type is not None and event_type != event.event_type:
                continue
            try:
                subscriber(event)
            except Exception:
                logger.warning(
                    "EventStream: subscriber %r failed on %s, skipping.",
                    subscriber, event.event_type, exc_info=True,
                )
                continue
            delivered += 1
        return delivered
