"""
Shared pytest fixtures for the sportscast test suite.

Provides factory fixtures for channels, raw candidates, canonical events
and canned adapters.
"""

import asyncio
from datetime import UTC, datetime
from typing import Any

import pytest

from sportscast.ingestion.adapters.base_adapter import (
    AdapterConfig,
    BaseSourceAdapter,
    DateWindow,
    FetchContext,
    FetchResult,
    SourceType,
)
from sportscast.ingestion.channel_resolver import UnresolvedChannelPolicy
from sportscast.schemas.channel import Channel
from sportscast.schemas.event import Event, RawEvent

TENANT = "co1"


class StaticAdapter(BaseSourceAdapter):
    """Adapter returning canned candidates, or raising a canned error."""

    def __init__(
        self,
        config: AdapterConfig,
        candidates: list[dict[str, Any]] | None = None,
        error: Exception | None = None,
        delay: float = 0.0,
        live: bool = True,
    ):
        super().__init__(config)
        self.candidates = candidates or []
        self.error = error
        self.delay = delay
        self.is_live = live
        self.calls = 0
        self.closed = False

    def _validate_config(self) -> None:
        pass

    async def _fetch_candidates(self, ctx: FetchContext, result: FetchResult) -> list[dict[str, Any]]:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return [dict(c) for c in self.candidates]

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def tenant_id() -> str:
    return TENANT


@pytest.fixture
def create_channel():
    """
    Return a function that creates Channel objects with sensible defaults.

    Example:
        channel = create_channel(id="c9", name="Premier Sports")
    """

    def _create_channel(id: str = "c1", name: str = "Sky Sports", **kwargs) -> Channel:
        defaults = {"id": id, "name": name, "company_id": TENANT, "is_active": True}
        defaults.update(kwargs)
        return Channel(**defaults)

    return _create_channel


@pytest.fixture
def channels(create_channel) -> list[Channel]:
    """Sky Sports (c1), TNT Sports (c2) and BBC One (c3) for the default tenant."""
    return [
        create_channel(id="c1", name="Sky Sports"),
        create_channel(id="c2", name="TNT Sports"),
        create_channel(id="c3", name="BBC One"),
    ]


@pytest.fixture
def create_raw_event():
    """
    Return a function that creates RawEvent objects with sensible defaults.

    Example:
        raw = create_raw_event(start_time="TBC")
    """

    def _create_raw_event(
        title: str = "Arsenal vs Chelsea",
        start_time: str = "2025-10-22T12:30:00Z",
        channel_name: str = "Sky Sports",
        **kwargs,
    ) -> RawEvent:
        defaults = {
            "title": title,
            "sport_type": "football",
            "start_time": start_time,
            "channel_name": channel_name,
            "home_team": "Arsenal",
            "away_team": "Chelsea",
            "league": "Premier League",
            "source_id": "test",
        }
        defaults.update(kwargs)
        return RawEvent(**defaults)

    return _create_raw_event


@pytest.fixture
def create_event():
    """
    Return a function that creates canonical Event objects with sensible defaults.

    Example:
        event = create_event(title="Liverpool vs Everton")
    """

    def _create_event(
        title: str = "Arsenal vs Chelsea",
        start_time: datetime | None = None,
        **kwargs,
    ) -> Event:
        defaults = {
            "company_id": TENANT,
            "title": title,
            "sport_type": "football",
            "home_team": "Arsenal",
            "away_team": "Chelsea",
            "start_time": start_time or datetime(2025, 10, 22, 12, 30, tzinfo=UTC),
            "channel_id": "c1",
        }
        defaults.update(kwargs)
        return Event(**defaults)

    return _create_event


@pytest.fixture
def candidate():
    """
    Return a function that creates candidate dicts as adapters emit them.

    Example:
        item = candidate(title="Liverpool vs Everton", start_time="2025-10-25T15:00:00")
    """

    def _candidate(**kwargs) -> dict[str, Any]:
        defaults = {
            "title": "Arsenal vs Chelsea",
            "sport_type": "football",
            "start_time": "2025-10-22T12:30:00Z",
            "home_team": "Arsenal",
            "away_team": "Chelsea",
            "channel_name": "Sky Sports",
        }
        defaults.update(kwargs)
        return defaults

    return _candidate


@pytest.fixture
def create_adapter():
    """
    Return a function that creates StaticAdapter instances.

    Example:
        adapter = create_adapter("api", candidates=[...])
        broken = create_adapter("llm", error=SourceUnavailable("llm", "down"))
    """

    def _create_adapter(
        source_id: str = "static",
        candidates: list[dict[str, Any]] | None = None,
        error: Exception | None = None,
        delay: float = 0.0,
        live: bool = True,
        policy: UnresolvedChannelPolicy = UnresolvedChannelPolicy.DROP,
        timezone: str = "UTC",
    ) -> StaticAdapter:
        config = AdapterConfig(
            source_id=source_id,
            source_type=SourceType.SPORTS_API if live else SourceType.SYNTHETIC,
            unresolved_channel_policy=policy,
            timezone=timezone,
        )
        return StaticAdapter(config, candidates=candidates, error=error, delay=delay, live=live)

    return _create_adapter


@pytest.fixture
def window() -> DateWindow:
    """Four weeks starting Monday 2025-10-20 00:00 UTC."""
    return DateWindow(
        start=datetime(2025, 10, 20, tzinfo=UTC),
        end=datetime(2025, 11, 17, tzinfo=UTC),
    )


@pytest.fixture
def fetch_context(channels, window) -> FetchContext:
    return FetchContext(tenant_id=TENANT, channels=channels, window=window)
