import logging
from typing import List, Optional

from pydantic import ValidationError

from shortlink_app.clock import Clock, current_millis
from shortlink_app.config import settings
from shortlink_app.errors import DuplicateCode, Expired, NotFound
from shortlink_app.models.events import EventType
from shortlink_app.models.url import ClickEvent, StoredCollection, UrlEntry
from shortlink_app.services import migration
from shortlink_app.services.event_log import EventLog
from shortlink_app.services.short_code_factory import ShortCodeFactory
from shortlink_app.services.short_code_strategies import ShortCodeStrategy
from shortlink_app.services.validators import validate_custom_code, validate_long_url, validate_ttl
from shortlink_app.store.strategies import StoreStrategy

logger = logging.getLogger(__name__)


class ShortCodeRegistry:
    """
    Short-code registry with dependency injection for store and event log.

    Owns the URL collection stored under the versioned collection key.
    Every mutation reads the whole collection, changes it and writes it
    back in one ``store.set``.

    Concurrency contract: two contexts writing at the same time follow
    last-write-wins; an entry created by the losing context can be dropped.
    This is accepted (single user, low concurrency) rather than guarded by
    a lock.
    """

    def __init__(
        self,
        store: StoreStrategy,
        event_log: Optional[EventLog] = None,
        code_strategy: Optional[ShortCodeStrategy] = None,
        clock: Clock = current_millis
    ):
        """
        Initialize the registry with dependencies.

        Args:
            store: Persistent store shared by all contexts
            event_log: Audit log (optional)
            code_strategy: Short code generator, defaults to the configured one
            clock: Source of epoch milliseconds
        """
        self.store = store
        self.event_log = event_log
        self.code_strategy = code_strategy or ShortCodeFactory.create_strategy()
        self.clock = clock
        self.collection_key = settings.collection_key
        self.legacy_key = settings.legacy_collection_key

    def shorten(
        self,
        long_url: str,
        custom_code: Optional[str] = None,
        ttl_minutes: Optional[int] = None
    ) -> UrlEntry:
        """Create a new short URL

        Note: Always creates a new entry even if the long URL already exists,
        so each share can be tracked separately.

        Raises:
            InvalidUrl, InvalidCode, InvalidTtl: Bad input
            DuplicateCode: Custom code already stored (expired entries included)
            GenerationExhausted: No free generated code within the attempt cap
        """
        long_url = validate_long_url(long_url)
        ttl_minutes = validate_ttl(settings.default_ttl_minutes if ttl_minutes is None else ttl_minutes)
        if custom_code is not None and not custom_code.strip():
            custom_code = None

        collection = self._load()
        taken = {entry.shortcode for entry in collection.entries}

        if custom_code is not None:
            shortcode = validate_custom_code(custom_code.strip())
            if shortcode in taken:
                raise DuplicateCode(shortcode)
        else:
            shortcode = self.code_strategy.generate(lambda code: code in taken)

        now = self.clock()
        entry = UrlEntry(
            shortcode=shortcode,
            long_url=long_url,
            created_at=now,
            expires_at=now + ttl_minutes * 60_000,
            clicks=[],
        )
        collection.entries.append(entry)
        self._save(collection)

        logger.info("Created short code %s -> %s (ttl %s min)", shortcode, long_url, ttl_minutes)
        self._log_event(EventType.SHORTEN_CREATED, {
            "shortcode": shortcode,
            "longUrl": long_url,
            "custom": custom_code is not None,
            "expiresAt": entry.expires_at,
        })
        return entry

    def resolve(self, shortcode: str) -> UrlEntry:
        """
        Look up a live entry for redirection.

        Does not record the click; the caller hands the entry to the
        analytics recorder.

        Raises:
            NotFound: No entry has this code
            Expired: The entry exists but ``now > expires_at``
        """
        entry = self._load().find(shortcode)

        if entry is None:
            self._log_event(EventType.REDIRECT_NOT_FOUND, {"shortcode": shortcode})
            raise NotFound(shortcode)

        if entry.is_expired(self.clock()):
            self._log_event(EventType.REDIRECT_EXPIRED, {"shortcode": shortcode})
            raise Expired(entry)

        self._log_event(EventType.REDIRECT, {"shortcode": shortcode, "longUrl": entry.long_url})
        return entry

    def get(self, shortcode: str) -> Optional[UrlEntry]:
        """Entry by code, expired or not"""
        return self._load().find(shortcode)

    def list_entries(self) -> List[UrlEntry]:
        return list(self._load().entries)

    def append_click(self, shortcode: str, click: ClickEvent) -> UrlEntry:
        """
        Append a click to the stored entry and persist it.

        Raises:
            NotFound: The entry disappeared (purged or overwritten elsewhere)
        """
        collection = self._load()
        entry = collection.find(shortcode)
        if entry is None:
            raise NotFound(shortcode)

        updated = entry.model_copy(update={"clicks": [*entry.clicks, click]})
        collection.replace(updated)
        self._save(collection)
        return updated

    def purge_expired(self) -> int:
        """
        Maintenance sweep: drop every expired entry.

        Returns:
            Number of entries removed
        """
        now = self.clock()
        collection = self._load()
        live = [entry for entry in collection.entries if not entry.is_expired(now)]
        removed = len(collection.entries) - len(live)

        if removed:
            self._save(StoredCollection(entries=live))
            logger.info("Purged %d expired entries", removed)
        return removed

    def migrate(self) -> None:
        """
        Upgrade the legacy collection once, at process start.

        No-op when the versioned key already exists or there is nothing to
        migrate. The legacy key is left untouched.
        """
        if self.store.get(self.collection_key) is not None:
            logger.debug("Collection already at version 2, nothing to migrate")
            return

        legacy_json = self.store.get(self.legacy_key)
        if legacy_json is None:
            return

        try:
            collection = migration.build_collection(
                legacy_json,
                default_ttl_ms=settings.default_ttl_minutes * 60_000
            )
        except ValueError as e:
            logger.error("Legacy collection under %s is unreadable, not migrating: %s", self.legacy_key, e)
            return

        self._save(collection)
        logger.info("Migrated %d legacy entries to version %d", len(collection.entries), collection.version)

    def _load(self) -> StoredCollection:
        raw = self.store.get(self.collection_key)
        if raw is None:
            return StoredCollection()

        try:
            return StoredCollection.model_validate_json(raw)
        except ValidationError as e:
            logger.error("Collection under %s is unreadable, treating as empty: %s", self.collection_key, e)
            return StoredCollection()

    def _save(self, collection: StoredCollection) -> None:
        self.store.set(self.collection_key, collection.model_dump_json(by_alias=True))

    def _log_event(self, event_type: EventType, payload: dict) -> None:
        if self.event_log:
            self.event_log.append(event_type, payload)
