"""
Audit events appended to the event log key.
"""

from enum import Enum
from typing import Any, Dict

from pydantic import BaseModel, Field


class EventType(str, Enum):
    SHORTEN_CREATED = "SHORTEN_CREATED"
    REDIRECT = "REDIRECT"
    REDIRECT_NOT_FOUND = "REDIRECT_NOT_FOUND"
    REDIRECT_EXPIRED = "REDIRECT_EXPIRED"
    LOGIN_ATTEMPT = "LOGIN_ATTEMPT"
    LOGIN_SUCCESS = "LOGIN_SUCCESS"


class EventLogEntry(BaseModel):
    type: EventType
    payload: Dict[str, Any] = Field(default_factory=dict)
    ts: int
