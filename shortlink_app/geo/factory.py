"""
Factory for creating geo lookup instances.
"""

import logging
from enum import Enum

from .strategies import GeoLookupStrategy, HttpGeoLookup, NullGeoLookup
from shortlink_app.config import settings

logger = logging.getLogger(__name__)


class GeoBackend(Enum):
    """Available geo lookup backends"""
    HTTP = "http"
    NULL = "null"


class GeoLookupFactory:
    """
    Simple factory for creating geo lookup instances.

    Gets configuration from settings (not passed as parameters).
    """

    _instance: GeoLookupStrategy = None  # Single cached instance

    @classmethod
    def create(cls, backend: GeoBackend) -> GeoLookupStrategy:
        if cls._instance is not None:
            return cls._instance

        if backend == GeoBackend.HTTP:
            cls._instance = HttpGeoLookup(
                url_template=settings.geo_lookup_url,
                timeout=settings.geo_lookup_timeout
            )
            logger.info("✅ HTTP geo lookup initialized")

        elif backend == GeoBackend.NULL:
            cls._instance = NullGeoLookup()
            logger.info("✅ Null geo lookup initialized")

        else:
            raise ValueError(f"Unknown geo backend: {backend}")

        return cls._instance

    @classmethod
    def clear_instance(cls):
        """Clear cached instance (for testing)"""
        cls._instance = None
