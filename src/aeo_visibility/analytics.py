from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List


class EventName(str, Enum):
    CHECK_STARTED = "check_started"
    PLATFORM_FAILED = "platform_failed"
    CHECK_COMPLETED = "check_completed"
    TRAFFIC_ESTIMATED = "traffic_estimated"


@dataclass(frozen=True)
class AnalyticsEvent:
    name: str
    payload: Dict[str, Any] = field(default_factory=dict)
    recorded_at: datetime = field(
        default_factory=lambda: datetime.now(tz=timezone.utc)
    )


class AnalyticsTracker:
    """In-memory sink for check and estimation telemetry, safe across workers."""

    def __init__(self) -> None:
        self._events: List[AnalyticsEvent] = []
        self._lock = threading.Lock()

    def track(self, name: "EventName | str", payload: Dict[str, Any] | None = None) -> AnalyticsEvent:
        event = AnalyticsEvent(
            name=name.value if isinstance(name, EventName) else str(name),
            payload=dict(payload or {}),
        )
        with self._lock:
            self._events.append(event)
        return event

    def named(self, name: "EventName | str") -> List[AnalyticsEvent]:
        key = name.value if isinstance(name, EventName) else str(name)
        with self._lock:
            return [event for event in self._events if event.name == key]

    def flush(self) -> List[AnalyticsEvent]:
        with self._lock:
            events, self._events = self._events, []
        return events

    @property
    def events(self) -> List[AnalyticsEvent]:
        with self._lock:
            return list(self._events)
