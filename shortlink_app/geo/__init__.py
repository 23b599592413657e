"""
Geo lookup module.
Best-effort country enrichment for click events.
"""

from .strategies import GeoLookupStrategy, HttpGeoLookup, NullGeoLookup
from .factory import GeoLookupFactory, GeoBackend

__all__ = [
    "GeoLookupStrategy",
    "HttpGeoLookup",
    "NullGeoLookup",
    "GeoLookupFactory",
    "GeoBackend",
]
