"""
Persisted models for the shortlink service.

URL entries, sessions and audit events are pydantic models serialized to
JSON strings in the key-value store. ``StoreItem`` is the SQLAlchemy row
used only by the SQL store backend.
"""

from .url import ClickEvent, UrlEntry, StoredCollection, LegacyRecord, CurrentRecord
from .session import AuthSession, Credentials, UserProfile
from .events import EventType, EventLogEntry

__all__ = [
    "ClickEvent",
    "UrlEntry",
    "StoredCollection",
    "LegacyRecord",
    "CurrentRecord",
    "AuthSession",
    "Credentials",
    "UserProfile",
    "EventType",
    "EventLogEntry",
]
