"""
Source data model for feeds and scraped pages.

Sources are persisted as one JSON array in the key/value store, so the
schemas serialize with the camelCase keys that record uses.
"""

import math
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

DEFAULT_GROUP = "default"
DEFAULT_INTERVAL_MINUTES = 60

_OPTIONAL_TEXT_FIELDS = (
    "title",
    "group",
    "link_prefix",
    "title_selector",
    "link_selector",
    "description_selector",
)


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes as UTC; convert aware ones to UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def clean_optional_text(value: Any) -> Optional[str]:
    """Trim a string; blank strings become None."""
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def clamp_interval(value: Any) -> int:
    """Floor an interval to whole minutes with a minimum of 1.

    Raises:
        ValueError: If the value is not numeric
    """
    if value is None or value == "":
        return DEFAULT_INTERVAL_MINUTES
    try:
        minutes = math.floor(float(value))
    except (TypeError, ValueError, OverflowError):
        raise ValueError(f"intervalMinutes must be a finite number, got {value!r}")
    return max(1, minutes)


def _legacy_mode(data: Any) -> Any:
    """Translate the old isScrapedFeed flag into a mode value."""
    if not isinstance(data, dict):
        return data
    data = dict(data)
    legacy = data.pop("isScrapedFeed", data.pop("is_scraped_feed", None))
    if legacy is not None and data.get("mode") is None:
        data["mode"] = SourceMode.SCRAPE if legacy else SourceMode.SYNDICATION
    return data


class SourceMode(str, Enum):
    """How items are extracted from a source."""

    SYNDICATION = "syndication"
    SCRAPE = "scrape"


@dataclass(frozen=True)
class ScrapeSelectors:
    """CSS selectors for the three scraped item fields."""

    title: Optional[str]
    link: Optional[str]
    description: Optional[str] = None

    @property
    def is_complete(self) -> bool:
        """Title and link selectors are both present."""
        return bool(self.title and self.link)


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    @model_validator(mode="before")
    @classmethod
    def translate_legacy_mode(cls, data: Any) -> Any:
        """Accept records written with the isScrapedFeed flag."""
        return _legacy_mode(data)


class Source(_CamelModel):
    """A configured feed or scraped page."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    url: str
    title: Optional[str] = None
    group: Optional[str] = None
    interval_minutes: int = DEFAULT_INTERVAL_MINUTES
    link_prefix: Optional[str] = None
    mode: SourceMode = SourceMode.SYNDICATION

    title_selector: Optional[str] = None
    link_selector: Optional[str] = None
    description_selector: Optional[str] = None

    last_run_at: Optional[datetime] = None
    last_run_summary: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: Optional[datetime] = None

    @field_validator("url", mode="before")
    @classmethod
    def strip_url(cls, v: Any) -> str:
        """Trim the URL."""
        return str(v).strip() if v is not None else v

    @field_validator(*_OPTIONAL_TEXT_FIELDS, mode="before")
    @classmethod
    def clean_text(cls, v: Any) -> Optional[str]:
        """Trim optional text fields."""
        return clean_optional_text(v)

    @field_validator("interval_minutes", mode="before")
    @classmethod
    def normalize_interval(cls, v: Any) -> int:
        """Floor and clamp the interval."""
        return clamp_interval(v)

    @field_validator("last_run_at", "created_at", "updated_at")
    @classmethod
    def normalize_timestamp(cls, v: Optional[datetime]) -> Optional[datetime]:
        """Store timestamps as aware UTC."""
        return ensure_utc(v)

    @model_validator(mode="after")
    def default_title(self) -> "Source":
        """Fall back to the URL when no title is set."""
        if not self.title:
            self.title = self.url
        return self

    @property
    def group_name(self) -> str:
        """Digest group label, "default" when unset."""
        return self.group or DEFAULT_GROUP

    @property
    def is_scrape(self) -> bool:
        """Whether items come from selector scraping."""
        return self.mode == SourceMode.SCRAPE

    @property
    def selectors(self) -> ScrapeSelectors:
        """Scrape selectors of this source."""
        return ScrapeSelectors(
            title=self.title_selector,
            link=self.link_selector,
            description=self.description_selector,
        )

    def to_record(self) -> dict:
        """JSON-ready dict in the persisted camelCase layout."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def __repr__(self) -> str:
        return f"<Source(id='{self.id}', url='{self.url}', mode='{self.mode.value}')>"


class SourceCreate(_CamelModel):
    """Schema for creating a new source."""

    url: str = Field(..., min_length=1, max_length=2048, description="Feed or page URL")
    title: Optional[str] = None
    group: Optional[str] = None
    interval_minutes: Optional[int] = None
    link_prefix: Optional[str] = None
    mode: SourceMode = SourceMode.SYNDICATION
    title_selector: Optional[str] = None
    link_selector: Optional[str] = None
    description_selector: Optional[str] = None

    @field_validator("url", mode="before")
    @classmethod
    def strip_url(cls, v: Any) -> str:
        """Trim the URL."""
        return str(v).strip() if v is not None else v

    @field_validator(*_OPTIONAL_TEXT_FIELDS, mode="before")
    @classmethod
    def clean_text(cls, v: Any) -> Optional[str]:
        """Trim optional text fields."""
        return clean_optional_text(v)

    @field_validator("interval_minutes", mode="before")
    @classmethod
    def normalize_interval(cls, v: Any) -> int:
        """Floor and clamp the interval."""
        return clamp_interval(v)

    def to_source(self, now: Optional[datetime] = None) -> Source:
        """Build a new Source with a fresh id."""
        return Source(
            url=self.url,
            title=self.title or self.url,
            group=self.group,
            interval_minutes=self.interval_minutes or DEFAULT_INTERVAL_MINUTES,
            link_prefix=self.link_prefix,
            mode=self.mode,
            title_selector=self.title_selector,
            link_selector=self.link_selector,
            description_selector=self.description_selector,
            created_at=now or utcnow(),
        )


class SourceUpdate(_CamelModel):
    """Schema for updating a source.

    Only fields present in the payload are applied. An explicit blank or null
    clears an optional field; url and title are only replaced by non-blank values.
    """

    url: Optional[str] = None
    title: Optional[str] = None
    group: Optional[str] = None
    interval_minutes: Optional[int] = None
    link_prefix: Optional[str] = None
    mode: Optional[SourceMode] = None
    title_selector: Optional[str] = None
    link_selector: Optional[str] = None
    description_selector: Optional[str] = None

    @field_validator("url", *_OPTIONAL_TEXT_FIELDS, mode="before")
    @classmethod
    def clean_text(cls, v: Any) -> Optional[str]:
        """Trim text fields."""
        return clean_optional_text(v)

    @field_validator("interval_minutes", mode="before")
    @classmethod
    def normalize_interval(cls, v: Any) -> int:
        """Floor and clamp the interval."""
        return clamp_interval(v)

    @model_validator(mode="after")
    def require_some_field(self) -> "SourceUpdate":
        """Reject empty updates."""
        if not self.model_fields_set:
            raise ValueError("Provide at least one field to update")
        return self

    def apply_to(self, source: Source, now: Optional[datetime] = None) -> Source:
        """Apply the fields present in this update to a source in place."""
        fields = self.model_fields_set

        if "url" in fields and self.url:
            source.url = self.url
        if "title" in fields and self.title:
            source.title = self.title
        if "interval_minutes" in fields:
            source.interval_minutes = self.interval_minutes or DEFAULT_INTERVAL_MINUTES
        if "mode" in fields and self.mode is not None:
            source.mode = self.mode

        for name in ("group", "link_prefix", "title_selector", "link_selector", "description_selector"):
            if name in fields:
                setattr(source, name, getattr(self, name))

        source.updated_at = now or utcnow()
        return source
