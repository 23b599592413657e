"""
Test configuration and fixtures for the shortlink service.
This centralizes all test setup, making individual tests clean.
"""

import asyncio
import random
from typing import Optional

import pytest
from fastapi.testclient import TestClient

from main import app
from shortlink_app.auth.clients import AuthClient
from shortlink_app.auth.scheduler import ScheduledTask, Scheduler
from shortlink_app.auth.token_manager import TokenManager
from shortlink_app.config import settings
from shortlink_app.dependencies import reset_dependencies
from shortlink_app.models.session import LoginGrant, RefreshGrant, UserProfile
from shortlink_app.services.event_log import EventLog
from shortlink_app.services.short_code_strategies import RandomShortCodeStrategy
from shortlink_app.services.url_service import ShortCodeRegistry
from shortlink_app.store.strategies import InMemoryStore, SharedMemoryOrigin

START_MS = 1_700_000_000_000


class FakeClock:
    """Epoch-millisecond clock that only moves when told to"""

    def __init__(self, now: int = START_MS):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class ManualScheduler(Scheduler):
    """Timers driven by a FakeClock; ``advance`` fires due callbacks in order"""

    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.pending = []

    def call_later(self, delay, key, callback) -> ScheduledTask:
        task = ScheduledTask(key, callback)
        self.pending.append((self.clock.now + round(delay * 1000), task))
        return task

    def advance(self, ms: int) -> None:
        target = self.clock.now + ms
        while True:
            due = [item for item in self.pending if item[0] <= target and item[1].active]
            if not due:
                break
            item = min(due, key=lambda pair: pair[0])
            self.pending.remove(item)
            self.clock.now = max(self.clock.now, item[0])
            item[1].run()
        self.clock.now = target

    def active_tasks(self):
        return [task for _, task in self.pending if task.active]


class StubAuthClient(AuthClient):
    """Counts calls; failures and a refresh gate are set per test"""

    def __init__(self, expires_in: int = 3600):
        self.expires_in = expires_in
        self.login_calls = 0
        self.refresh_calls = 0
        self.login_error: Optional[Exception] = None
        self.refresh_error: Optional[Exception] = None
        self.refresh_gate: Optional[asyncio.Event] = None

    async def login(self, credentials):
        self.login_calls += 1
        if self.login_error:
            raise self.login_error
        return LoginGrant(
            access_token=f"token-{self.login_calls}",
            expires_in=self.expires_in,
            user=UserProfile(email=credentials.email, name="Test User", roll_no="42"),
        )

    async def refresh(self, access_token):
        self.refresh_calls += 1
        if self.refresh_gate is not None:
            await self.refresh_gate.wait()
        if self.refresh_error:
            raise self.refresh_error
        return RefreshGrant(access_token=f"refreshed-{self.refresh_calls}", expires_in=self.expires_in)


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def scheduler(fake_clock):
    return ManualScheduler(fake_clock)


@pytest.fixture
def origin():
    """One shared origin; each InMemoryStore on it is one execution context"""
    return SharedMemoryOrigin()


@pytest.fixture
def store(origin):
    return InMemoryStore(origin)


@pytest.fixture
def event_log(store, fake_clock):
    return EventLog(store, clock=fake_clock)


@pytest.fixture
def registry(store, event_log, fake_clock):
    strategy = RandomShortCodeStrategy(length=6, max_attempts=10, rng=random.Random(1234))
    return ShortCodeRegistry(store=store, event_log=event_log, code_strategy=strategy, clock=fake_clock)


@pytest.fixture
def auth_stub():
    return StubAuthClient()


@pytest.fixture
def make_manager(auth_stub, scheduler, fake_clock, event_log):
    """Build token managers, one per store view, sharing clock and scheduler"""
    managers = []

    def factory(view, client=None, **kwargs):
        manager = TokenManager(
            store=view,
            auth_client=client or auth_stub,
            event_log=event_log,
            scheduler=scheduler,
            clock=fake_clock,
            **kwargs
        )
        managers.append(manager)
        return manager

    yield factory

    for manager in managers:
        manager.close()


@pytest.fixture(scope="function")
def client(monkeypatch):
    """
    Test client on fresh in-memory backends.
    Login is not required unless a test turns it back on.
    """
    monkeypatch.setattr(settings, "store_backend", "memory")
    monkeypatch.setattr(settings, "auth_backend", "memory")
    monkeypatch.setattr(settings, "geo_backend", "null")
    monkeypatch.setattr(settings, "require_login", False)
    reset_dependencies()

    with TestClient(app) as test_client:
        yield test_client

    reset_dependencies()
