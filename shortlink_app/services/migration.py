"""
Upgrade of the unversioned (legacy) URL collection to the versioned layout.

Each legacy item is classified exactly once into the ``StoredRecord``
tagged union:

- ``CurrentRecord``: the item already validates as a ``UrlEntry``
- ``LegacyRecord``: anything else, kept raw until ``upgrade`` fills defaults

The result is built completely in memory; the registry writes it with a
single store write, so readers never see a half-migrated collection.
"""

import json
import logging
import math
from datetime import datetime, timezone
from typing import Any, List, Optional

from pydantic import ValidationError

from shortlink_app.models.url import (
    UNKNOWN_COUNTRY,
    ClickEvent,
    CurrentRecord,
    LegacyRecord,
    StoredCollection,
    StoredRecord,
    UrlEntry,
)

logger = logging.getLogger(__name__)


def classify(raw: Any) -> StoredRecord:
    try:
        return CurrentRecord(entry=UrlEntry.model_validate(raw))
    except ValidationError:
        return LegacyRecord(raw=raw)


def upgrade(record: StoredRecord, default_ttl_ms: int) -> Optional[UrlEntry]:
    """Turn any stored record into a current entry, or None if unusable"""
    if isinstance(record, CurrentRecord):
        return record.entry
    return _upgrade_legacy(record.raw, default_ttl_ms)


def build_collection(legacy_json: str, default_ttl_ms: int) -> StoredCollection:
    """
    Parse the legacy payload and upgrade every record.

    The legacy payload is either a JSON list of records or an object keyed
    by short code. Records that cannot be upgraded are dropped with a
    warning; the first record wins when a code appears twice.

    Raises:
        ValueError: If the payload is not JSON or has neither shape
    """
    items = json.loads(legacy_json)
    if isinstance(items, dict):
        items = [_with_code(code, item) for code, item in items.items()]
    if not isinstance(items, list):
        raise ValueError("legacy collection must be a list or an object")

    entries: List[UrlEntry] = []
    seen = set()
    for record in (classify(item) for item in items):
        entry = upgrade(record, default_ttl_ms)
        if entry is None:
            continue
        if entry.shortcode in seen:
            logger.warning("Dropping duplicate legacy short code %s", entry.shortcode)
            continue
        seen.add(entry.shortcode)
        entries.append(entry)

    return StoredCollection(entries=entries)


def _with_code(code: str, item: Any) -> Any:
    if isinstance(item, dict) and not _first(item, "shortcode", "shortCode", "code"):
        return {**item, "shortcode": code}
    return item


def _upgrade_legacy(raw: Any, default_ttl_ms: int) -> Optional[UrlEntry]:
    if not isinstance(raw, dict):
        logger.warning("Dropping legacy record that is not an object: %r", raw)
        return None

    shortcode = _first(raw, "shortcode", "shortCode", "code")
    long_url = _first(raw, "longUrl", "long_url", "url", "originalUrl")

    created_at = _to_millis(_first(raw, "createdAt", "created_at"))
    if created_at is None:
        created_at = 0
    expires_at = _to_millis(_first(raw, "expiresAt", "expires_at"))
    if expires_at is None or expires_at <= created_at:
        expires_at = created_at + default_ttl_ms

    try:
        return UrlEntry(
            shortcode=shortcode,
            long_url=long_url,
            created_at=created_at,
            expires_at=expires_at,
            clicks=_upgrade_clicks(raw.get("clicks")),
        )
    except ValidationError as e:
        logger.warning("Dropping legacy record %r: %s", shortcode, e)
        return None


def _upgrade_clicks(raw_clicks: Any) -> List[ClickEvent]:
    # Some legacy records only kept a click counter
    if not isinstance(raw_clicks, list):
        return []

    clicks = []
    for item in raw_clicks:
        if not isinstance(item, dict):
            continue
        ts = _to_millis(_first(item, "ts", "timestamp"))
        if ts is None:
            continue
        clicks.append(
            ClickEvent(
                ts=ts,
                referrer=str(item.get("referrer") or ""),
                ua=str(_first(item, "ua", "userAgent") or ""),
                country=str(item.get("country") or UNKNOWN_COUNTRY),
            )
        )
    return clicks


def _first(raw: dict, *names: str) -> Any:
    for name in names:
        value = raw.get(name)
        if value is not None and value != "":
            return value
    return None


def _to_millis(value: Any) -> Optional[int]:
    """Epoch milliseconds from a number, numeric string or ISO-8601 string"""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None
    if isinstance(value, (int, float)):
        return int(value)
    if not isinstance(value, str):
        return None

    try:
        return int(value)
    except ValueError:
        pass

    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return int(parsed.timestamp() * 1000)
