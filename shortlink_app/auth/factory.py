"""
Factory for creating authentication clients.
"""

import logging
from enum import Enum

from .clients import AuthClient, HttpAuthClient, InMemoryAuthClient
from shortlink_app.config import settings

logger = logging.getLogger(__name__)


class AuthBackend(Enum):
    """Available authentication backends"""
    HTTP = "http"
    MEMORY = "memory"


class AuthClientFactory:
    """
    Simple factory for creating authentication clients.

    Gets configuration from settings (not passed as parameters).
    """

    _instance: AuthClient = None  # Single cached instance

    @classmethod
    def create(cls, backend: AuthBackend) -> AuthClient:
        if cls._instance is not None:
            return cls._instance

        if backend == AuthBackend.HTTP:
            cls._instance = HttpAuthClient(
                base_url=settings.auth_base_url,
                timeout=settings.auth_timeout
            )
            logger.info("✅ HTTP auth client initialized (%s)", settings.auth_base_url)

        elif backend == AuthBackend.MEMORY:
            client = InMemoryAuthClient(token_lifetime=settings.auth_token_lifetime)
            client.add_account(
                settings.demo_user_email,
                settings.demo_user_password,
                name=settings.demo_user_name,
                roll_no=settings.demo_user_roll_no,
            )
            cls._instance = client
            logger.info("✅ In-memory auth client initialized")

        else:
            raise ValueError(f"Unknown auth backend: {backend}")

        return cls._instance

    @classmethod
    def clear_instance(cls):
        """Clear cached instance (for testing)"""
        cls._instance = None
