"""
One-shot timers for session renewal.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Callable


class ScheduledTask:
    """
    A cancellable one-shot callback, keyed by the session it was armed for.

    Cancelling is idempotent, and a task cancelled after its event loop
    handle was already queued still never runs its callback.
    """

    def __init__(self, key: Any, callback: Callable[[], None]):
        self.key = key
        self._callback = callback
        self._handle = None
        self.cancelled = False
        self.fired = False

    @property
    def active(self) -> bool:
        return not (self.cancelled or self.fired)

    def attach(self, handle) -> None:
        """Remember the underlying timer handle so ``cancel`` can stop it"""
        self._handle = handle

    def cancel(self) -> None:
        self.cancelled = True
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def run(self) -> None:
        if not self.active:
            return
        self.fired = True
        self._handle = None
        self._callback()


class Scheduler(ABC):
    @abstractmethod
    def call_later(self, delay: float, key: Any, callback: Callable[[], None]) -> ScheduledTask:
        """Run ``callback`` once after ``delay`` seconds"""
        pass


class AsyncioScheduler(Scheduler):
    """Timers on the running event loop of the current context"""

    def call_later(self, delay: float, key: Any, callback: Callable[[], None]) -> ScheduledTask:
        task = ScheduledTask(key, callback)
        loop = asyncio.get_running_loop()
        task.attach(loop.call_later(max(0.0, delay), task.run))
        return task
