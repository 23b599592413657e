"""
Append-only audit log kept under its own store key.

The log is one JSON list rewritten on every append, so it keeps only the
newest ``max_entries`` events.
"""

import logging
from typing import Any, Dict, List, Optional

from pydantic import TypeAdapter, ValidationError

from shortlink_app.clock import Clock, current_millis
from shortlink_app.config import settings
from shortlink_app.models.events import EventLogEntry, EventType
from shortlink_app.store.strategies import StoreStrategy

logger = logging.getLogger(__name__)

_entries_adapter = TypeAdapter(List[EventLogEntry])


class EventLog:
    def __init__(
        self,
        store: StoreStrategy,
        key: Optional[str] = None,
        clock: Clock = current_millis,
        max_entries: Optional[int] = None
    ):
        self.store = store
        self.key = key or settings.event_log_key
        self.clock = clock
        self.max_entries = settings.event_log_max_entries if max_entries is None else max_entries

    def append(self, event_type: EventType, payload: Optional[Dict[str, Any]] = None) -> EventLogEntry:
        event = EventLogEntry(type=event_type, payload=payload or {}, ts=self.clock())
        events = self.entries()
        events.append(event)
        if len(events) > self.max_entries:
            events = events[-self.max_entries:]
        self.store.set(self.key, _entries_adapter.dump_json(events).decode("utf-8"))
        return event

    def entries(self) -> List[EventLogEntry]:
        raw = self.store.get(self.key)
        if raw is None:
            return []
        try:
            return _entries_adapter.validate_json(raw)
        except ValidationError as e:
            # A damaged log must not block shortening or login
            logger.error("Event log under %s is unreadable, starting a new one: %s", self.key, e)
            return []

    def of_type(self, event_type: EventType) -> List[EventLogEntry]:
        return [event for event in self.entries() if event.type == event_type]
