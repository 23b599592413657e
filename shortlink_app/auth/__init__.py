"""
Authentication module: boundary clients and the per-context token manager.
"""

from .clients import AuthClient, HttpAuthClient, InMemoryAuthClient
from .factory import AuthClientFactory, AuthBackend
from .scheduler import AsyncioScheduler, ScheduledTask, Scheduler
from .token_manager import SessionState, TokenManager

__all__ = [
    "AuthClient",
    "HttpAuthClient",
    "InMemoryAuthClient",
    "AuthClientFactory",
    "AuthBackend",
    "AsyncioScheduler",
    "ScheduledTask",
    "Scheduler",
    "SessionState",
    "TokenManager",
]
