"""
Store strategies using Strategy Pattern.
Allows switching between persistent store backends (In-Memory, SQL, Redis).

Every backend is a synchronous key -> string map shared by all execution
contexts, plus a change feed: writes made by one context are queued for
the others and handed to their subscribers on ``dispatch_pending()``.
"""

import asyncio
import json
import logging
import uuid
from abc import ABC, abstractmethod
from collections import deque
from typing import Callable, Deque, Dict, List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from shortlink_app.database.connection import Base
from shortlink_app.models.store_item import StoreItem
from .models import StoreChange

logger = logging.getLogger(__name__)

ChangeHandler = Callable[[StoreChange], None]


class StoreStrategy(ABC):
    """
    Abstract base class for store strategies.

    This is the Strategy Pattern interface - services only talk to get/set/
    remove/on_change, the backend decides where bytes live and how other
    contexts learn about writes.

    The publish/subscribe channel belongs to the store: subscribers
    (registry, token manager) never own it.
    """

    def __init__(self):
        self._handlers: Dict[str, List[ChangeHandler]] = {}

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """
        Get raw value.

        Args:
            key: Store key

        Returns:
            Stored string or None if the key is absent
        """
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """
        Write a full value (last write wins).

        Args:
            key: Store key
            value: Raw string value
        """
        pass

    @abstractmethod
    def remove(self, key: str) -> None:
        """
        Remove a key. Other contexts observe a change with ``new_value=None``.

        Args:
            key: Store key
        """
        pass

    @abstractmethod
    def _poll_changes(self) -> List[StoreChange]:
        """Collect writes made by other contexts since the last poll"""
        pass

    def on_change(self, key: str, handler: ChangeHandler) -> Callable[[], None]:
        """
        Subscribe to changes of ``key`` made by other contexts.

        Returns:
            Callable that removes the subscription (safe to call twice)
        """
        self._handlers.setdefault(key, []).append(handler)

        def unsubscribe():
            handlers = self._handlers.get(key, [])
            if handler in handlers:
                handlers.remove(handler)

        return unsubscribe

    def dispatch_pending(self) -> int:
        """
        Deliver queued changes to subscribers.

        Returns:
            Number of changes observed
        """
        changes = self._poll_changes()
        for change in changes:
            for handler in list(self._handlers.get(change.key, ())):
                try:
                    handler(change)
                except Exception:
                    logger.exception("Store change handler failed for key %s", change.key)
        return len(changes)

    async def watch(self, interval: float = 1.0):
        """
        Dispatch changes forever; run as a task on the context's event loop.

        A failed poll (backend unreachable) is logged and retried on the next
        tick.
        """
        while True:
            try:
                self.dispatch_pending()
            except Exception:
                logger.exception("Polling store changes failed, retrying in %ss", interval)
            await asyncio.sleep(interval)

    def close(self) -> None:
        """Release backend resources"""
        self._handlers.clear()


class SharedMemoryOrigin:
    """
    Backing map shared by every in-memory store view.

    One origin models one browser origin; each ``InMemoryStore`` attached to
    it is one execution context (tab).
    """

    def __init__(self):
        self.data: Dict[str, str] = {}
        self.views: List["InMemoryStore"] = []


class InMemoryStore(StoreStrategy):
    """
    In-memory store implementation using a shared Python dict.

    Pros:
    - No external dependencies
    - Several views on one origin behave like several tabs
    - Good for development and testing

    Cons:
    - Lost on restart
    - Single process only
    """

    def __init__(self, origin: Optional[SharedMemoryOrigin] = None):
        super().__init__()
        self.origin = origin or SharedMemoryOrigin()
        self.origin.views.append(self)
        self._inbox: Deque[StoreChange] = deque()

    def get(self, key: str) -> Optional[str]:
        return self.origin.data.get(key)

    def set(self, key: str, value: str) -> None:
        old_value = self.origin.data.get(key)
        self.origin.data[key] = value
        self._broadcast(key, old_value, value)

    def remove(self, key: str) -> None:
        if key not in self.origin.data:
            return
        old_value = self.origin.data.pop(key)
        self._broadcast(key, old_value, None)

    def _broadcast(self, key: str, old_value: Optional[str], new_value: Optional[str]):
        """Queue the change for every other view (never for the writer)"""
        if old_value == new_value:
            return
        change = StoreChange(key=key, old_value=old_value, new_value=new_value)
        for view in self.origin.views:
            if view is not self:
                view._inbox.append(change)

    def _poll_changes(self) -> List[StoreChange]:
        changes = list(self._inbox)
        self._inbox.clear()
        return changes

    def close(self) -> None:
        super().close()
        if self in self.origin.views:
            self.origin.views.remove(self)


class SqlStore(StoreStrategy):
    """
    SQLAlchemy implementation backed by a ``store_items`` table.

    Each write bumps the row revision. Other contexts poll revisions and
    turn every revision they have not seen into a change notification.
    Removing a key keeps the row with ``value = NULL`` (tombstone) so the
    removal is observable.

    Pros:
    - Durable (survives restarts)
    - Shared between processes (SQLite file, PostgreSQL, ...)

    Cons:
    - Change detection is polling based (latency = poll interval)
    """

    def __init__(self, engine):
        super().__init__()
        self.engine = engine
        self.session_factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
        self._revisions: Dict[str, int] = {}
        self._values: Dict[str, Optional[str]] = {}
        self._init_database()

    def _init_database(self):
        """Create the store table and remember the current revisions"""
        Base.metadata.create_all(bind=self.engine)

        db = self.session_factory()
        try:
            for item in db.query(StoreItem).all():
                self._revisions[item.key] = item.revision
                self._values[item.key] = item.value
        finally:
            db.close()

    def get(self, key: str) -> Optional[str]:
        db = self.session_factory()
        try:
            item = db.get(StoreItem, key)
            return item.value if item else None
        finally:
            db.close()

    def set(self, key: str, value: str) -> None:
        self._write(key, value)

    def remove(self, key: str) -> None:
        self._write(key, None)

    def _write(self, key: str, value: Optional[str]):
        db = self.session_factory()
        try:
            item = db.get(StoreItem, key)
            if item is None and value is None:
                return
            if item is not None and item.value is None and value is None:
                return

            if item is None:
                try:
                    db.add(StoreItem(key=key, value=value, revision=1))
                    db.commit()
                except IntegrityError:
                    # Another context inserted the key first
                    db.rollback()
                    item = db.get(StoreItem, key)

            if item is not None:
                db.execute(
                    update(StoreItem)
                    .where(StoreItem.key == key)
                    .values(value=value, revision=StoreItem.revision + 1)
                    .execution_options(synchronize_session=False)
                )
                db.commit()

            revision = db.scalar(select(StoreItem.revision).where(StoreItem.key == key))
            self._revisions[key] = revision
            self._values[key] = value
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def _poll_changes(self) -> List[StoreChange]:
        changes = []
        db = self.session_factory()
        try:
            for item in db.query(StoreItem).all():
                seen_revision = self._revisions.get(item.key)
                old_value = self._values.get(item.key)
                if seen_revision == item.revision and old_value == item.value:
                    continue
                self._revisions[item.key] = item.revision
                self._values[item.key] = item.value
                if old_value != item.value:
                    changes.append(
                        StoreChange(key=item.key, old_value=old_value, new_value=item.value)
                    )
        finally:
            db.close()
        return changes


class RedisStore(StoreStrategy):
    """
    Redis implementation: plain string keys plus a pub/sub channel.

    Every write publishes ``{key, old, new, source}``; each context skips
    its own messages by ``source`` id.

    Pros:
    - Shared between processes and hosts
    - Push-based notifications (no table scans)

    Cons:
    - Requires Redis >= 6.2 (SET ... GET, GETDEL)
    - Notifications published while a context is disconnected are lost
    """

    def __init__(self, redis_client, channel: str = "shortlink:store-changes"):
        super().__init__()
        self.redis = redis_client
        self.channel = channel
        self.source_id = uuid.uuid4().hex
        self.pubsub = redis_client.pubsub()
        self.pubsub.subscribe(channel)

    def get(self, key: str) -> Optional[str]:
        return _decode(self.redis.get(key))

    def set(self, key: str, value: str) -> None:
        old_value = _decode(self.redis.set(key, value, get=True))
        self._publish(key, old_value, value)

    def remove(self, key: str) -> None:
        old_value = _decode(self.redis.getdel(key))
        if old_value is not None:
            self._publish(key, old_value, None)

    def _publish(self, key: str, old_value: Optional[str], new_value: Optional[str]):
        if old_value == new_value:
            return
        self.redis.publish(
            self.channel,
            json.dumps({
                "key": key,
                "old": old_value,
                "new": new_value,
                "source": self.source_id,
            }),
        )

    def _poll_changes(self) -> List[StoreChange]:
        changes = []
        while True:
            message = self.pubsub.get_message(timeout=0.0)
            if message is None:
                break
            if message.get("type") != "message":
                continue

            try:
                payload = json.loads(_decode(message["data"]))
            except (TypeError, ValueError) as e:
                logger.warning("Ignoring malformed store notification: %s", e)
                continue

            if payload.get("source") == self.source_id:
                continue
            changes.append(
                StoreChange(
                    key=payload["key"],
                    old_value=payload.get("old"),
                    new_value=payload.get("new"),
                )
            )
        return changes

    def close(self) -> None:
        super().close()
        self.pubsub.close()


def _decode(value) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return value
