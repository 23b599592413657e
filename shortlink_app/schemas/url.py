from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field
from pydantic.alias_generators import to_camel

from shortlink_app.config import settings
from shortlink_app.models.url import ClickEvent

# API bodies use the same camelCase keys as the stored documents;
# requests may also use the snake_case field names.
_CAMEL = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class URLCreate(BaseModel):
    # Plain str: the registry validates and reports InvalidUrl itself
    long_url: str = Field(..., description="The original URL to be shortened")
    custom_code: Optional[str] = Field(None, description="Optional 3-20 character alphanumeric code")
    ttl_minutes: Optional[int] = Field(None, description="Minutes until the short URL expires")

    model_config = _CAMEL


class URLResponse(BaseModel):
    """Response schema that serializes a UrlEntry

    - from_attributes=True reads straight from the entry model
    - @computed_field creates derived fields
    """
    shortcode: str
    long_url: str
    created_at: int
    expires_at: int
    clicks: List[ClickEvent]

    @computed_field(alias="shortUrl")
    @property
    def short_url(self) -> str:
        """Computed field - automatically generated from shortcode"""
        return f"{settings.base_url}/{self.shortcode}"

    @computed_field(alias="totalClicks")
    @property
    def total_clicks(self) -> int:
        return len(self.clicks)

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class Granularity(str, Enum):
    """Timeline bucket sizes"""
    MINUTE = "minute"
    HOUR = "hour"
    DAY = "day"

    @property
    def millis(self) -> int:
        return {
            Granularity.MINUTE: 60_000,
            Granularity.HOUR: 3_600_000,
            Granularity.DAY: 86_400_000,
        }[self]


class TimelineBucket(BaseModel):
    bucket_start: int = Field(..., description="Epoch ms where the bucket starts")
    count: int

    model_config = _CAMEL


class ClickStats(BaseModel):
    total_clicks: int
    by_referrer: Dict[str, int]
    by_country: Dict[str, int]
    timeline: List[TimelineBucket]

    model_config = _CAMEL


class PurgeResult(BaseModel):
    removed: int
