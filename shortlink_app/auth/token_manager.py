"""
Session/Token Manager.

State machine per execution context:

    ANONYMOUS --login--> AUTHENTICATED --timer--> REFRESHING
        ^                     |   ^                    |
        |                     |   +----- success ------+
        +------ logout -------+                        |
        +---------------- refresh failure -------------+

The store is the only state shared with other contexts. Each manager
subscribes to the session key and reconciles:

- key removed elsewhere: drop the local session (another context logged out)
- new session written elsewhere: adopt it and re-arm the timer against its
  ``expires_at`` (another context refreshed first)

A refresh that completes after the session was replaced or cleared is
discarded, so a context that lost the race never overwrites the winner.
"""

import asyncio
import logging
from enum import Enum
from functools import partial
from typing import Optional

from pydantic import ValidationError

from shortlink_app.auth.clients import AuthClient
from shortlink_app.auth.scheduler import AsyncioScheduler, ScheduledTask, Scheduler
from shortlink_app.clock import Clock, current_millis
from shortlink_app.config import settings
from shortlink_app.errors import AuthError
from shortlink_app.models.events import EventType
from shortlink_app.models.session import AuthSession, Credentials
from shortlink_app.services.event_log import EventLog
from shortlink_app.store.models import StoreChange
from shortlink_app.store.strategies import StoreStrategy

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    ANONYMOUS = "anonymous"
    AUTHENTICATED = "authenticated"
    REFRESHING = "refreshing"


class TokenManager:
    def __init__(
        self,
        store: StoreStrategy,
        auth_client: AuthClient,
        event_log: Optional[EventLog] = None,
        scheduler: Optional[Scheduler] = None,
        clock: Clock = current_millis,
        session_key: Optional[str] = None,
        refresh_lead_seconds: Optional[int] = None
    ):
        self.store = store
        self.auth_client = auth_client
        self.event_log = event_log
        self.scheduler = scheduler or AsyncioScheduler()
        self.clock = clock
        self.session_key = session_key or settings.session_key
        self.refresh_lead_seconds = (
            settings.refresh_lead_seconds if refresh_lead_seconds is None else refresh_lead_seconds
        )

        self.state = SessionState.ANONYMOUS
        self._session: Optional[AuthSession] = None
        self._timer: Optional[ScheduledTask] = None
        self._refresh_task: Optional[asyncio.Task] = None
        self._unsubscribe = store.on_change(self.session_key, self._on_store_change)

    @property
    def scheduled_for(self) -> Optional[int]:
        """``expires_at`` of the session the pending timer was armed for"""
        if self._timer is not None and self._timer.active:
            return self._timer.key
        return None

    @property
    def pending_refresh(self) -> Optional[asyncio.Task]:
        if self._refresh_task is not None and not self._refresh_task.done():
            return self._refresh_task
        return None

    def restore(self) -> Optional[AuthSession]:
        """Adopt a live session another context (or a previous run) stored"""
        try:
            session = AuthSession.from_json(self.store.get(self.session_key))
        except ValidationError as e:
            logger.warning("Stored session is unreadable, ignoring it: %s", e)
            return None

        if session is None or not session.is_live(self.clock()):
            return None

        self._adopt(session)
        logger.info("Restored session for %s", session.user.email)
        return session

    async def login(self, credentials: Credentials) -> AuthSession:
        """
        Authenticate against the boundary and make the session current.

        Raises:
            AuthRejected: Invalid credentials
            AuthUnavailable: Transport or service failure (caller may retry)
        """
        self._log_event(EventType.LOGIN_ATTEMPT, {"email": credentials.email})

        try:
            grant = await self.auth_client.login(credentials)
        except AuthError as e:
            logger.warning("Login for %s failed: %s", credentials.email, e)
            raise

        session = AuthSession.from_grant(grant, issued_at=self.clock())
        self._cancel_refresh_task()
        self._adopt(session)
        self._persist(session)

        self._log_event(EventType.LOGIN_SUCCESS, {"email": session.user.email})
        logger.info("Logged in %s, session expires at %d", session.user.email, session.expires_at)
        return session

    def get_session(self) -> Optional[AuthSession]:
        """Current session, or None once ``now >= expires_at`` (checked on every read)"""
        session = self._session
        if session is None:
            return None

        if not session.is_live(self.clock()):
            logger.info("Session for %s expired", session.user.email)
            self._cancel_refresh_task()
            self._drop()
            return None

        return session

    def schedule_refresh(self, session: AuthSession) -> ScheduledTask:
        """Arm the renewal timer at ``expires_at - lead``, never with a negative delay"""
        self._cancel_timer()

        fire_at = session.expires_at - self.refresh_lead_seconds * 1000
        delay_ms = max(0, fire_at - self.clock())
        self._timer = self.scheduler.call_later(
            delay_ms / 1000,
            session.expires_at,
            partial(self._on_timer, session.expires_at),
        )
        logger.debug("Refresh scheduled in %.1fs", delay_ms / 1000)
        return self._timer

    def logout(self) -> None:
        """Clear the session here and, through the store, in every other context"""
        session = self._session
        self._cancel_refresh_task()
        self._drop()
        self.store.remove(self.session_key)

        if session is not None:
            logger.info("Logged out %s", session.user.email)

    def close(self) -> None:
        """Detach from the store and stop timers (context shutdown)"""
        self._unsubscribe()
        self._cancel_timer()
        self._cancel_refresh_task()

    def _on_timer(self, key: int) -> None:
        session = self._session
        if session is None or session.expires_at != key:
            return

        self._timer = None
        self._refresh_task = asyncio.get_running_loop().create_task(self._refresh(session))

    async def _refresh(self, session: AuthSession) -> None:
        self.state = SessionState.REFRESHING

        try:
            grant = await self.auth_client.refresh(session.access_token)
        except AuthError as e:
            if self._session is not session:
                return
            logger.warning("Session refresh for %s failed, logging out: %s", session.user.email, e)
            self._drop()
            self.store.remove(self.session_key)
            return

        if self._session is not session:
            logger.info("Discarding refresh result, session changed meanwhile")
            return

        renewed = session.renewed(grant, issued_at=self.clock())
        self._adopt(renewed)
        self._persist(renewed)
        logger.info("Session for %s refreshed, expires at %d", renewed.user.email, renewed.expires_at)

    def _on_store_change(self, change: StoreChange) -> None:
        # Notifications can arrive after later writes; the stored value is canonical
        raw = self.store.get(self.session_key)

        if raw is None:
            if self._session is not None:
                logger.info("Session cleared by another context")
            self._cancel_refresh_task()
            self._drop()
            return

        try:
            incoming = AuthSession.from_json(raw)
        except ValidationError as e:
            logger.warning("Ignoring unreadable session written by another context: %s", e)
            return

        current = self._session
        if (
            current is not None
            and current.access_token == incoming.access_token
            and current.expires_at == incoming.expires_at
        ):
            return

        self._cancel_refresh_task()
        if not incoming.is_live(self.clock()):
            self._drop()
            return

        logger.info("Adopting session written by another context (expires at %d)", incoming.expires_at)
        self._adopt(incoming)

    def _adopt(self, session: AuthSession) -> None:
        self._session = session
        self.state = SessionState.AUTHENTICATED
        self.schedule_refresh(session)

    def _drop(self) -> None:
        self._cancel_timer()
        self._session = None
        self.state = SessionState.ANONYMOUS

    def _persist(self, session: AuthSession) -> None:
        self.store.set(self.session_key, session.to_json())

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _cancel_refresh_task(self) -> None:
        task = self._refresh_task
        self._refresh_task = None
        if task is not None and not task.done() and task is not _current_task():
            task.cancel()

    def _log_event(self, event_type: EventType, payload: dict) -> None:
        if self.event_log:
            self.event_log.append(event_type, payload)


def _current_task() -> Optional[asyncio.Task]:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None
