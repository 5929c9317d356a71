"""
Event models for the ingestion pipeline.

RawEvent is the transient, source-shaped candidate emitted by an adapter.
Event is the canonical, channel-resolved record that gets persisted.
"""

from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SportType(str, Enum):
    """Closed set of sports the calendar knows how to display."""

    FOOTBALL = "football"
    RUGBY = "rugby"
    CRICKET = "cricket"
    TENNIS = "tennis"
    FORMULA1 = "formula1"
    BOXING = "boxing"
    GOLF = "golf"
    OTHER = "other"


class RawEvent(BaseModel):
    """
    Unvalidated event candidate as reported by a single source.

    Only the shape is enforced here. Times stay as strings because every
    source formats them differently; parsing happens in the normalizer.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    title: str
    sport_type: str
    start_time: str = Field(..., min_length=1)
    channel_name: str = Field(..., min_length=1)
    league: str | None = None
    home_team: str | None = None
    away_team: str | None = None
    end_time: str | None = None
    description: str | None = None

    # IANA zone used to interpret naive local times, e.g. "Europe/London"
    timezone: str | None = None
    source_id: str | None = None

    @field_validator("league", "home_team", "away_team", "end_time", "description", "timezone")
    @classmethod
    def blank_to_none(cls, v: str | None) -> str | None:
        """Treat empty optional strings as absent."""
        if v is None or not v.strip():
            return None
        return v


class Event(BaseModel):
    """
    Canonical broadcast event.

    Every persisted Event references a Channel of the same company.
    `id` is None until the store assigns one at insert.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    id: str | None = None
    company_id: str
    title: str = Field(..., min_length=1)
    sport_type: str
    league: str | None = None
    home_team: str | None = None
    away_team: str | None = None
    start_time: datetime
    end_time: datetime | None = None
    channel_id: str = Field(..., min_length=1)
    description: str | None = None
    is_featured: bool = False
    is_hidden: bool = False
    source: str | None = None

    @field_validator("start_time", "end_time")
    @classmethod
    def ensure_utc(cls, v: datetime | None) -> datetime | None:
        """Store instants as timezone-aware UTC; naive values are taken as UTC."""
        if v is None:
            return None
        if v.tzinfo is None:
            return v.replace(tzinfo=UTC)
        return v.astimezone(UTC)
