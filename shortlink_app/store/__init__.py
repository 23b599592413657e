"""
Persistent store module.
Implements Strategy Pattern for store backends shared by execution contexts.
"""

from .models import StoreChange
from .strategies import StoreStrategy, InMemoryStore, SharedMemoryOrigin, SqlStore, RedisStore
from .factory import StoreFactory, StoreBackend

__all__ = [
    "StoreChange",
    "StoreStrategy",
    "InMemoryStore",
    "SharedMemoryOrigin",
    "SqlStore",
    "RedisStore",
    "StoreFactory",
    "StoreBackend",
]
