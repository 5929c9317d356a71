"""Data models shared across the ingestion pipeline."""

from sportscast.schemas.channel import Channel, DataSource
from sportscast.schemas.event import Event, RawEvent, SportType

__all__ = [
    "Channel",
    "DataSource",
    "Event",
    "RawEvent",
    "SportType",
]
