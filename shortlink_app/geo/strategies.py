"""
Geo lookup strategies using Strategy Pattern.

The geo boundary is best-effort: callers bound every lookup with a timeout
and treat any GeoLookupError as "Unknown".
"""

import asyncio
import logging
from abc import ABC, abstractmethod

import requests

from shortlink_app.errors import GeoLookupError
from shortlink_app.models.url import UNKNOWN_COUNTRY

logger = logging.getLogger(__name__)


class GeoLookupStrategy(ABC):
    """Abstract base class for IP -> country lookups"""

    @abstractmethod
    async def lookup(self, ip_address: str) -> str:
        """
        Resolve a client IP to a country label.

        Raises:
            GeoLookupError: If the lookup failed
        """
        pass


class HttpGeoLookup(GeoLookupStrategy):
    """
    Lookup through an HTTP JSON endpoint (ipapi.co style).

    ``url_template`` contains an ``{ip}`` placeholder. The response must
    carry ``country_name`` or ``country``.

    The blocking ``requests`` call runs in a worker thread so the event
    loop keeps serving redirects meanwhile.
    """

    def __init__(self, url_template: str, timeout: float = 2.0):
        self.url_template = url_template
        self.timeout = timeout

    async def lookup(self, ip_address: str) -> str:
        return await asyncio.to_thread(self._lookup_sync, ip_address)

    def _lookup_sync(self, ip_address: str) -> str:
        try:
            url = self.url_template.format(ip=ip_address)
        except (KeyError, IndexError, ValueError) as e:
            raise GeoLookupError(f"Bad geo lookup URL template {self.url_template!r}: {e}") from e

        try:
            response = requests.get(url, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            raise GeoLookupError(f"Geo lookup for {ip_address} failed: {e}") from e

        if not isinstance(data, dict) or data.get("error"):
            raise GeoLookupError(f"Geo lookup for {ip_address} returned no country")

        country = data.get("country_name") or data.get("country")
        if not country:
            raise GeoLookupError(f"Geo lookup for {ip_address} returned no country")
        return str(country)


class NullGeoLookup(GeoLookupStrategy):
    """
    Null Object Pattern - lookup that never calls out.

    Used for development, tests and deployments without a geo provider.
    """

    async def lookup(self, ip_address: str) -> str:
        return UNKNOWN_COUNTRY
