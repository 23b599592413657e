"""
Tests for click recording, aggregation and the geo boundary.
"""
import asyncio
from unittest.mock import MagicMock

import pytest
import requests

from shortlink_app.errors import GeoLookupError, NotFound
from shortlink_app.geo.factory import GeoBackend, GeoLookupFactory
from shortlink_app.geo.strategies import GeoLookupStrategy, HttpGeoLookup, NullGeoLookup
from shortlink_app.models.url import ClickEvent, UrlEntry
from shortlink_app.schemas.url import Granularity
from shortlink_app.services.analytics_service import MAX_TIMELINE_BUCKETS, AnalyticsRecorder, ClickContext

HOUR_MS = 3_600_000


class StubGeo(GeoLookupStrategy):
    def __init__(self, country="Iran", error=None, delay=0.0):
        self.country = country
        self.error = error
        self.delay = delay
        self.calls = []

    async def lookup(self, ip_address):
        self.calls.append(ip_address)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return self.country


def make_entry(clicks):
    return UrlEntry(
        shortcode="stats",
        long_url="https://example.com",
        created_at=0,
        expires_at=10 ** 13,
        clicks=clicks,
    )


class TestAnalyticsRecorder:
    """Recording clicks through the registry"""

    def record(self, registry, geo, context, geo_timeout=1.0):
        recorder = AnalyticsRecorder(registry, geo, clock=registry.clock, geo_timeout=geo_timeout)
        entry = registry.get("track") or registry.shorten("https://example.com", custom_code="track")
        return asyncio.run(recorder.record(entry, context))

    def test_records_click_with_country(self, registry, fake_clock):
        geo = StubGeo("Iran")
        context = ClickContext(referrer="https://ref.example.com", user_agent="UA", ip_address="1.2.3.4")

        updated = self.record(registry, geo, context)

        assert geo.calls == ["1.2.3.4"]
        assert updated.clicks == [
            ClickEvent(ts=fake_clock.now, referrer="https://ref.example.com", ua="UA", country="Iran")
        ]
        assert registry.get("track").clicks == updated.clicks

    def test_no_ip_skips_lookup(self, registry):
        geo = StubGeo()
        updated = self.record(registry, geo, ClickContext())

        assert geo.calls == []
        assert updated.clicks[0].country == "Unknown"

    def test_lookup_failure_records_unknown(self, registry):
        geo = StubGeo(error=GeoLookupError("down"))
        updated = self.record(registry, geo, ClickContext(ip_address="1.2.3.4"))
        assert updated.clicks[0].country == "Unknown"

    def test_lookup_timeout_records_unknown(self, registry):
        geo = StubGeo(delay=1.0)
        updated = self.record(registry, geo, ClickContext(ip_address="1.2.3.4"), geo_timeout=0.01)
        assert updated.clicks[0].country == "Unknown"

    def test_clicks_keep_arrival_order(self, registry, fake_clock):
        """Clicks sharing a timestamp stay in the order they were recorded"""
        geo = StubGeo()
        self.record(registry, geo, ClickContext(referrer="first"))
        self.record(registry, geo, ClickContext(referrer="second"))

        clicks = registry.get("track").clicks
        assert [click.referrer for click in clicks] == ["first", "second"]
        assert clicks[0].ts == clicks[1].ts == fake_clock.now

    def test_timestamp_taken_before_lookup(self, registry, fake_clock):
        start = fake_clock.now

        class SlowGeo(GeoLookupStrategy):
            async def lookup(self, ip_address):
                fake_clock.advance(5000)
                return "Iran"

        updated = self.record(registry, SlowGeo(), ClickContext(ip_address="1.2.3.4"))
        assert updated.clicks[0].ts == start

    def test_record_on_purged_entry(self, registry, fake_clock):
        entry = registry.shorten("https://example.com", custom_code="gone", ttl_minutes=1)
        fake_clock.advance(2 * 60_000)
        registry.purge_expired()

        recorder = AnalyticsRecorder(registry, NullGeoLookup(), clock=fake_clock)
        with pytest.raises(NotFound):
            asyncio.run(recorder.record(entry, ClickContext()))


class TestAggregate:
    """Pure summaries of an entry's clicks"""

    def test_empty(self):
        stats = AnalyticsRecorder.aggregate(make_entry([]))

        assert stats.total_clicks == 0
        assert stats.by_referrer == {}
        assert stats.by_country == {}
        assert stats.timeline == []

    def test_groups_referrers_and_countries(self):
        stats = AnalyticsRecorder.aggregate(make_entry([
            ClickEvent(ts=1, referrer="", country="Iran"),
            ClickEvent(ts=2, referrer="https://a.example.com", country="Iran"),
            ClickEvent(ts=3, referrer="", country="Unknown"),
        ]))

        assert stats.total_clicks == 3
        assert stats.by_referrer == {"Direct": 2, "https://a.example.com": 1}
        assert stats.by_country == {"Iran": 2, "Unknown": 1}

    def test_timeline_fills_gaps(self):
        stats = AnalyticsRecorder.aggregate(make_entry([
            ClickEvent(ts=HOUR_MS + 5),
            ClickEvent(ts=HOUR_MS + 10),
            ClickEvent(ts=3 * HOUR_MS + 1),
        ]), Granularity.HOUR)

        assert [(b.bucket_start, b.count) for b in stats.timeline] == [
            (HOUR_MS, 2),
            (2 * HOUR_MS, 0),
            (3 * HOUR_MS, 1),
        ]

    def test_timeline_granularity(self):
        clicks = [ClickEvent(ts=0), ClickEvent(ts=90_000), ClickEvent(ts=HOUR_MS)]

        minutes = AnalyticsRecorder.aggregate(make_entry(clicks), Granularity.MINUTE).timeline
        days = AnalyticsRecorder.aggregate(make_entry(clicks), Granularity.DAY).timeline

        assert len(minutes) == 61
        assert minutes[1].bucket_start == 60_000
        assert [(b.bucket_start, b.count) for b in days] == [(0, 3)]

    def test_timeline_sums_to_total(self):
        clicks = [ClickEvent(ts=ts) for ts in (5, 7 * HOUR_MS, 7 * HOUR_MS + 1, 30 * HOUR_MS)]
        stats = AnalyticsRecorder.aggregate(make_entry(clicks))

        assert sum(b.count for b in stats.timeline) == stats.total_clicks
        starts = [b.bucket_start for b in stats.timeline]
        assert starts == sorted(starts)
        assert all(start % HOUR_MS == 0 for start in starts)


class TestHttpGeoLookup:
    def lookup(self, monkeypatch, response=None, error=None):
        def fake_get(url, timeout):
            assert url == "https://geo.example.com/1.2.3.4/json/"
            if error:
                raise error
            return response

        monkeypatch.setattr(requests, "get", fake_get)
        geo = HttpGeoLookup("https://geo.example.com/{ip}/json/", timeout=1.0)
        return asyncio.run(geo.lookup("1.2.3.4"))

    def test_reads_country_name(self, monkeypatch):
        response = MagicMock()
        response.json.return_value = {"country_name": "Iran", "country": "IR"}
        assert self.lookup(monkeypatch, response=response) == "Iran"

    def test_transport_error(self, monkeypatch):
        with pytest.raises(GeoLookupError):
            self.lookup(monkeypatch, error=requests.ConnectionError("refused"))

    def test_error_payload(self, monkeypatch):
        response = MagicMock()
        response.json.return_value = {"error": True, "reason": "Reserved IP Address"}
        with pytest.raises(GeoLookupError):
            self.lookup(monkeypatch, response=response)

    def test_http_error_status(self, monkeypatch):
        response = MagicMock()
        response.raise_for_status.side_effect = requests.HTTPError("429")
        with pytest.raises(GeoLookupError):
            self.lookup(monkeypatch, response=response)


class TestGeoLookupFactory:
    def setup_method(self):
        GeoLookupFactory.clear_instance()

    def teardown_method(self):
        GeoLookupFactory.clear_instance()

    def test_null_backend(self):
        geo = GeoLookupFactory.create(GeoBackend.NULL)
        assert isinstance(geo, NullGeoLookup)
        assert asyncio.run(geo.lookup("1.2.3.4")) == "Unknown"

    def test_http_backend(self):
        assert isinstance(GeoLookupFactory.create(GeoBackend.HTTP), HttpGeoLookup)


class TestGeoFailuresNeverSurface:
    """Any geo failure degrades to "Unknown" and the click is still stored"""

    def test_template_with_unknown_placeholder(self, registry):
        geo = HttpGeoLookup("https://ipinfo.io/{ip}/json?token={token}", timeout=1.0)
        with pytest.raises(GeoLookupError):
            asyncio.run(geo.lookup("1.2.3.4"))

        entry = registry.shorten("https://example.com", custom_code="tmpl")
        recorder = AnalyticsRecorder(registry, geo, clock=registry.clock, geo_timeout=1.0)
        updated = asyncio.run(recorder.record(entry, ClickContext(ip_address="1.2.3.4")))

        assert updated.clicks[0].country == "Unknown"
        assert len(registry.get("tmpl").clicks) == 1

    def test_unexpected_lookup_error(self, registry):
        entry = registry.shorten("https://example.com", custom_code="boom")
        geo = StubGeo(error=RuntimeError("provider bug"))
        recorder = AnalyticsRecorder(registry, geo, clock=registry.clock, geo_timeout=1.0)

        updated = asyncio.run(recorder.record(entry, ClickContext(ip_address="1.2.3.4")))
        assert updated.clicks[0].country == "Unknown"


class TestTimelineSpan:
    def test_wide_span_lists_only_clicked_buckets(self):
        """Far-apart clicks do not expand into millions of empty buckets"""
        clicks = [ClickEvent(ts=0), ClickEvent(ts=1_700_000_000_000), ClickEvent(ts=1_700_000_000_500)]

        stats = AnalyticsRecorder.aggregate(make_entry(clicks), Granularity.MINUTE)

        assert [(b.bucket_start, b.count) for b in stats.timeline] == [
            (0, 1),
            (1_699_999_980_000, 2),
        ]

    def test_span_at_limit_is_still_filled(self):
        minute = Granularity.MINUTE.millis
        last = (MAX_TIMELINE_BUCKETS - 1) * minute
        clicks = [ClickEvent(ts=0), ClickEvent(ts=last)]

        timeline = AnalyticsRecorder.aggregate(make_entry(clicks), Granularity.MINUTE).timeline

        assert len(timeline) == MAX_TIMELINE_BUCKETS
        assert timeline[-1].bucket_start == last
        assert sum(b.count for b in timeline) == 2
