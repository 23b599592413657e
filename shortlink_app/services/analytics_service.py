"""
Click analytics: recording redirects and summarizing them.
"""

import asyncio
import logging
from collections import Counter
from typing import Optional

from pydantic import BaseModel

from shortlink_app.clock import Clock, current_millis
from shortlink_app.config import settings
from shortlink_app.errors import GeoLookupError
from shortlink_app.geo.strategies import GeoLookupStrategy
from shortlink_app.models.url import UNKNOWN_COUNTRY, ClickEvent, UrlEntry
from shortlink_app.schemas.url import ClickStats, Granularity, TimelineBucket
from shortlink_app.services.url_service import ShortCodeRegistry

logger = logging.getLogger(__name__)

DIRECT_REFERRER = "Direct"
MAX_TIMELINE_BUCKETS = 1000


class ClickContext(BaseModel):
    """Request metadata captured at redirect time"""
    referrer: str = ""
    user_agent: str = ""
    ip_address: Optional[str] = None


class AnalyticsRecorder:
    """
    Appends click events to resolved entries.

    Geographic enrichment is never on the critical path: the lookup is
    bounded by ``geo_timeout`` and any failure records ``"Unknown"``.
    """

    def __init__(
        self,
        registry: ShortCodeRegistry,
        geo: GeoLookupStrategy,
        clock: Clock = current_millis,
        geo_timeout: Optional[float] = None
    ):
        self.registry = registry
        self.geo = geo
        self.clock = clock
        self.geo_timeout = settings.geo_lookup_timeout if geo_timeout is None else geo_timeout

    async def record(self, entry: UrlEntry, context: ClickContext) -> UrlEntry:
        """
        Record one click on ``entry`` and persist it.

        Returns:
            The updated entry with the new click last

        Raises:
            NotFound: The entry was removed from the store meanwhile
        """
        ts = self.clock()
        country = await self._lookup_country(context.ip_address)

        click = ClickEvent(
            ts=ts,
            referrer=context.referrer or "",
            ua=context.user_agent or "",
            country=country,
        )
        updated = self.registry.append_click(entry.shortcode, click)
        logger.debug("Recorded click on %s (country=%s)", entry.shortcode, country)
        return updated

    async def _lookup_country(self, ip_address: Optional[str]) -> str:
        if not ip_address:
            return UNKNOWN_COUNTRY

        try:
            country = await asyncio.wait_for(self.geo.lookup(ip_address), timeout=self.geo_timeout)
        except asyncio.TimeoutError:
            logger.info("Geo lookup for %s timed out after %ss", ip_address, self.geo_timeout)
            return UNKNOWN_COUNTRY
        except GeoLookupError as e:
            logger.info("Geo lookup failed: %s", e)
            return UNKNOWN_COUNTRY
        except Exception:
            logger.exception("Geo lookup for %s raised unexpectedly", ip_address)
            return UNKNOWN_COUNTRY

        return country or UNKNOWN_COUNTRY

    @staticmethod
    def aggregate(entry: UrlEntry, granularity: Granularity = Granularity.HOUR) -> ClickStats:
        """
        Summarize the clicks of one entry. Pure: no store access.

        Empty referrers count as ``"Direct"``. Timeline buckets start at
        multiples of the granularity and ascend. Zero-count buckets between
        the first and last click are included while the span fits in
        ``MAX_TIMELINE_BUCKETS``; wider spans list only non-empty buckets.
        """
        clicks = entry.clicks
        by_referrer = Counter(click.referrer or DIRECT_REFERRER for click in clicks)
        by_country = Counter(click.country or UNKNOWN_COUNTRY for click in clicks)

        size = granularity.millis
        per_bucket = Counter((click.ts // size) * size for click in clicks)
        timeline = []
        if per_bucket:
            start, end = min(per_bucket), max(per_bucket)
            if (end - start) // size < MAX_TIMELINE_BUCKETS:
                buckets = range(start, end + size, size)
            else:
                buckets = sorted(per_bucket)
            timeline = [
                TimelineBucket(bucket_start=bucket, count=per_bucket.get(bucket, 0))
                for bucket in buckets
            ]

        return ClickStats(
            total_clicks=len(clicks),
            by_referrer=dict(by_referrer),
            by_country=dict(by_country),
            timeline=timeline,
        )
