"""
URL entry models persisted in the store.

Stored JSON uses camelCase keys (``longUrl``, ``createdAt``); Python code
uses the snake_case attribute names.
"""

from typing import Annotated, Any, List, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

CURRENT_SCHEMA_VERSION = 2
SHORTCODE_PATTERN = r"^[A-Za-z0-9]+$"
UNKNOWN_COUNTRY = "Unknown"


class ClickEvent(BaseModel):
    """A single redirect through a short code. Immutable once appended."""

    ts: int = Field(..., description="Epoch milliseconds of the click")
    referrer: str = Field("", description="HTTP referrer, empty for direct visits")
    ua: str = Field("", description="User agent string")
    country: str = Field(UNKNOWN_COUNTRY, description="Best-effort country label")

    model_config = ConfigDict(frozen=True)


class UrlEntry(BaseModel):
    """
    Mapping from a short code to a long URL, with its click history.

    Expiration is a read-time predicate (``is_expired``); nothing evicts an
    expired entry except the explicit purge sweep.
    """

    shortcode: str = Field(..., min_length=3, max_length=20, pattern=SHORTCODE_PATTERN)
    long_url: str
    created_at: int
    expires_at: int
    clicks: List[ClickEvent] = Field(default_factory=list)

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    @model_validator(mode="after")
    def check_lifetime(self) -> "UrlEntry":
        if self.expires_at <= self.created_at:
            raise ValueError("expiresAt must be later than createdAt")
        return self

    def is_expired(self, now: int) -> bool:
        return now > self.expires_at


class StoredCollection(BaseModel):
    """Versioned envelope written under the collection key"""

    version: int = CURRENT_SCHEMA_VERSION
    entries: List[UrlEntry] = Field(default_factory=list)

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def find(self, shortcode: str):
        for entry in self.entries:
            if entry.shortcode == shortcode:
                return entry
        return None

    def replace(self, entry: UrlEntry) -> None:
        for index, existing in enumerate(self.entries):
            if existing.shortcode == entry.shortcode:
                self.entries[index] = entry
                return
        raise KeyError(entry.shortcode)


class LegacyRecord(BaseModel):
    """An unversioned record as found under the legacy key"""

    version: Literal[1] = 1
    raw: Any = None


class CurrentRecord(BaseModel):
    """A record that already has the current entry shape"""

    version: Literal[2] = 2
    entry: UrlEntry


StoredRecord = Annotated[Union[LegacyRecord, CurrentRecord], Field(discriminator="version")]
