"""
FastAPI dependencies for dependency injection.

This module provides the per-process (per execution context) instances of
the store, registry, recorder and token manager that are injected into
routes.

Pattern: Dependency Injection
- Loose coupling between components
- Easy to test (reset and rebuild from settings)
- Flexible (swap implementations via config)
"""

from functools import lru_cache
from typing import Optional

from fastapi import Depends, HTTPException, status

from shortlink_app.auth.clients import AuthClient
from shortlink_app.auth.factory import AuthClientFactory, AuthBackend
from shortlink_app.auth.token_manager import TokenManager
from shortlink_app.config import settings
from shortlink_app.geo.factory import GeoLookupFactory, GeoBackend
from shortlink_app.geo.strategies import GeoLookupStrategy
from shortlink_app.models.session import AuthSession
from shortlink_app.services.analytics_service import AnalyticsRecorder
from shortlink_app.services.event_log import EventLog
from shortlink_app.services.short_code_factory import ShortCodeFactory
from shortlink_app.services.url_service import ShortCodeRegistry
from shortlink_app.store.factory import StoreFactory, StoreBackend
from shortlink_app.store.strategies import StoreStrategy


@lru_cache()
def get_store() -> StoreStrategy:
    """
    Get store instance (singleton).

    Factory gets config from settings internally.
    @lru_cache ensures this is called only once.
    """
    backend = StoreBackend(settings.store_backend)
    return StoreFactory.create(backend)


@lru_cache()
def get_event_log() -> EventLog:
    return EventLog(get_store())


@lru_cache()
def get_registry() -> ShortCodeRegistry:
    return ShortCodeRegistry(store=get_store(), event_log=get_event_log())


@lru_cache()
def get_geo_lookup() -> GeoLookupStrategy:
    backend = GeoBackend(settings.geo_backend)
    return GeoLookupFactory.create(backend)


@lru_cache()
def get_recorder() -> AnalyticsRecorder:
    return AnalyticsRecorder(registry=get_registry(), geo=get_geo_lookup())


@lru_cache()
def get_auth_client() -> AuthClient:
    backend = AuthBackend(settings.auth_backend)
    return AuthClientFactory.create(backend)


@lru_cache()
def get_token_manager() -> TokenManager:
    """
    Get the token manager of this execution context (singleton).

    Owned explicitly here and injected into routes; it subscribes to the
    store's session key on creation.
    """
    return TokenManager(
        store=get_store(),
        auth_client=get_auth_client(),
        event_log=get_event_log(),
    )


def require_session(
    manager: TokenManager = Depends(get_token_manager)
) -> Optional[AuthSession]:
    """
    Authorization policy: a non-expired session, when ``require_login`` is on.
    """
    session = manager.get_session()
    if session is None and settings.require_login:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Login required"
        )
    return session


def reset_dependencies() -> None:
    """Drop every cached instance so the next request rebuilds from settings (for testing)"""
    if get_token_manager.cache_info().currsize:
        get_token_manager().close()

    for provider in (
        get_token_manager,
        get_auth_client,
        get_recorder,
        get_geo_lookup,
        get_registry,
        get_event_log,
        get_store,
    ):
        provider.cache_clear()

    StoreFactory.clear_instance()
    AuthClientFactory.clear_instance()
    GeoLookupFactory.clear_instance()
    ShortCodeFactory.clear_instances()
