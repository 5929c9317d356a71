"""
Unit tests for the sports_api_adapter module.

HTTP traffic is served by httpx.MockTransport handlers.
"""

import asyncio
from datetime import UTC, datetime
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from sportscast.ingestion.adapters.base_adapter import (
    AdapterConfig,
    DateWindow,
    FetchContext,
    SourceType,
)
from sportscast.ingestion.adapters.sports_api_adapter import (
    APIFootballAdapter,
    TheSportsDBAdapter,
)
from sportscast.ingestion.errors import SourceEmpty, SourceMalformed, SourceUnavailable

# =============================================================================
# TEST DATA
# =============================================================================

TV_EVENT = {
    "strEvent": "Arsenal vs Chelsea",
    "strSport": "Soccer",
    "strLeague": "English Premier League",
    "strHomeTeam": "Arsenal",
    "strAwayTeam": "Chelsea",
    "strTimestamp": "2025-10-22T19:45:00",
    "dateEvent": "2025-10-22",
    "strChannel": "Sky Sports",
    "strCountry": "United Kingdom",
    "strVenue": "Emirates Stadium",
}

FIXTURE = {
    "fixture": {"date": "2025-10-25T15:00:00+01:00", "venue": {"name": "Anfield"}},
    "league": {"id": 39, "name": "Premier League"},
    "teams": {"home": {"name": "Liverpool"}, "away": {"name": "Everton"}},
}

# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture
def two_day_context(channels) -> FetchContext:
    window = DateWindow(
        start=datetime(2025, 10, 22, tzinfo=UTC),
        end=datetime(2025, 10, 24, tzinfo=UTC),
    )
    return FetchContext(tenant_id="co1", channels=channels, window=window)


def sportsdb_adapter(handler, **custom) -> TheSportsDBAdapter:
    custom_config = {
        "base_url": "https://www.thesportsdb.com/api/v1/json",
        "api_key": "3",
        "sports": ["Soccer"],
        "broadcast_country": "United Kingdom",
        **custom,
    }
    config = AdapterConfig(
        source_id="thesportsdb",
        source_type=SourceType.SPORTS_API,
        timezone="Europe/London",
        max_retries=0,
        custom_config=custom_config,
    )
    return TheSportsDBAdapter(config, client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))


def football_adapter(handler, **custom) -> APIFootballAdapter:
    custom_config = {
        "base_url": "https://v3.football.api-sports.io/fixtures",
        "api_key": "secret",
        "leagues": [39],
        "broadcaster": "Sky Sports",
        **custom,
    }
    config = AdapterConfig(
        source_id="api_football",
        source_type=SourceType.SPORTS_API,
        max_retries=0,
        custom_config=custom_config,
    )
    return APIFootballAdapter(config, client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))


# =============================================================================
# TEST CLASSES
# =============================================================================


class TestTheSportsDBConfig:
    """Tests for TheSportsDB configuration validation."""

    def test_requires_base_url(self):
        config = AdapterConfig(source_id="x", source_type=SourceType.SPORTS_API, custom_config={"sports": ["Soccer"]})
        with pytest.raises(ValueError, match="base_url"):
            TheSportsDBAdapter(config)

    def test_requires_sports(self):
        config = AdapterConfig(source_id="x", source_type=SourceType.SPORTS_API, custom_config={"base_url": "https://a"})
        with pytest.raises(ValueError, match="sport"):
            TheSportsDBAdapter(config)


class TestTheSportsDBFetch:
    """Tests for TheSportsDB day-by-day fetching."""

    def test_queries_each_day(self, two_day_context):
        """One eventsday call should be made per day and sport."""
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json={"events": [TV_EVENT]})

        result = asyncio.run(sportsdb_adapter(handler).fetch(two_day_context))

        assert [r.url.params["d"] for r in requests] == ["2025-10-22", "2025-10-23"]
        assert all(r.url.path.endswith("/3/eventsday.php") for r in requests)
        assert result.metadata["calls"] == 2
        assert len(result.raw_events) == 2

    def test_maps_fields(self, two_day_context):
        """TV listings should map onto candidate fields."""
        adapter = sportsdb_adapter(lambda request: httpx.Response(200, json={"events": [TV_EVENT]}))
        raw = asyncio.run(adapter.fetch(two_day_context)).raw_events[0]

        assert raw.title == "Arsenal vs Chelsea"
        assert raw.sport_type == "football"
        assert raw.channel_name == "Sky Sports"
        assert raw.start_time == "2025-10-22T19:45:00"
        assert raw.timezone == "UTC"
        assert raw.description == "English Premier League at Emirates Stadium"

    def test_filters_country_and_missing_channel(self, two_day_context):
        """Other countries and listings without a channel should be dropped."""
        events = [
            TV_EVENT,
            {**TV_EVENT, "strCountry": "Spain", "strChannel": "Movistar"},
            {**TV_EVENT, "strChannel": None},
        ]
        adapter = sportsdb_adapter(lambda request: httpx.Response(200, json={"events": events}))

        result = asyncio.run(adapter.fetch(two_day_context))
        assert {r.channel_name for r in result.raw_events} == {"Sky Sports"}
        assert len(result.raw_events) == 2

    def test_default_kickoff_is_local(self, two_day_context):
        """Events without a time should use the default kick-off in the adapter zone."""
        event = {**TV_EVENT, "strTimestamp": None, "strTime": None}
        adapter = sportsdb_adapter(
            lambda request: httpx.Response(200, json={"events": [event]}),
            default_kickoff="12:30:00",
        )
        raw = asyncio.run(adapter.fetch(two_day_context)).raw_events[0]

        assert raw.start_time == "2025-10-22T12:30:00"
        assert raw.timezone == "Europe/London"

    def test_failed_day_becomes_warning(self, two_day_context):
        """A failing day should not stop the other days."""

        def handler(request):
            if request.url.params["d"] == "2025-10-22":
                return httpx.Response(500)
            return httpx.Response(200, json={"events": [TV_EVENT]})

        result = asyncio.run(sportsdb_adapter(handler).fetch(two_day_context))

        assert len(result.raw_events) == 1
        assert result.is_partial
        assert "2025-10-22" in result.warnings[0]
        assert result.metadata["failed_calls"] == 1

    def test_every_day_failing_is_unavailable(self, two_day_context):
        """All calls failing should raise SourceUnavailable."""
        adapter = sportsdb_adapter(lambda request: httpx.Response(503))
        with pytest.raises(SourceUnavailable):
            asyncio.run(adapter.fetch(two_day_context))

    def test_every_day_malformed(self, two_day_context):
        """All calls returning the wrong shape should raise SourceMalformed."""
        adapter = sportsdb_adapter(lambda request: httpx.Response(200, json={"events": "none"}))
        with pytest.raises(SourceMalformed):
            asyncio.run(adapter.fetch(two_day_context))

    def test_no_listings_is_empty(self, two_day_context):
        """'events': null on every day should raise SourceEmpty."""
        adapter = sportsdb_adapter(lambda request: httpx.Response(200, json={"events": None}))
        with pytest.raises(SourceEmpty):
            asyncio.run(adapter.fetch(two_day_context))

    def test_pauses_between_batches(self, fetch_context):
        """The adapter should sleep every pause_every days."""
        adapter = sportsdb_adapter(
            lambda request: httpx.Response(200, json={"events": [TV_EVENT]}),
            pause_every=7,
            pause_seconds=0.5,
        )
        with patch("asyncio.sleep", new=AsyncMock()) as sleep:
            asyncio.run(adapter.fetch(fetch_context))

        # 28 days: pauses before days 7, 14 and 21
        assert sleep.await_count == 3


class TestAPIFootballFetch:
    """Tests for API-Football fixtures."""

    def test_sends_key_and_params(self, two_day_context):
        """The API key header and league/season/date params should be sent."""
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json={"errors": [], "response": [FIXTURE]})

        config = AdapterConfig(
            source_id="api_football",
            source_type=SourceType.SPORTS_API,
            custom_config={
                "base_url": "https://v3.football.api-sports.io/fixtures",
                "api_key": "secret",
                "leagues": [39],
                "broadcaster": "Sky Sports",
            },
        )
        adapter = APIFootballAdapter(config)
        adapter._client = httpx.AsyncClient(
            transport=httpx.MockTransport(handler), headers=adapter._default_headers()
        )

        asyncio.run(adapter.fetch(two_day_context))

        params = requests[0].url.params
        assert requests[0].headers["x-apisports-key"] == "secret"
        assert params["league"] == "39"
        assert params["season"] == "2025"
        assert params["from"] == "2025-10-22"
        assert params["to"] == "2025-10-24"

    def test_maps_fixture(self, two_day_context):
        """Fixtures should be reported on the configured broadcaster."""
        adapter = football_adapter(lambda request: httpx.Response(200, json={"response": [FIXTURE]}))
        raw = asyncio.run(adapter.fetch(two_day_context)).raw_events[0]

        assert raw.title == "Liverpool vs Everton"
        assert raw.channel_name == "Sky Sports"
        assert raw.sport_type == "football"
        assert raw.start_time == "2025-10-25T15:00:00+01:00"
        assert raw.description == "Premier League at Anfield"

    def test_season_before_july(self, channels):
        """Windows starting before July belong to the previous season."""
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json={"response": [FIXTURE]})

        window = DateWindow(start=datetime(2026, 2, 1, tzinfo=UTC), end=datetime(2026, 2, 2, tzinfo=UTC))
        ctx = FetchContext(tenant_id="co1", channels=channels, window=window)
        asyncio.run(football_adapter(handler).fetch(ctx))

        assert requests[0].url.params["season"] == "2025"

    def test_errors_field_is_unavailable(self, two_day_context):
        """Quota errors reported in the body should raise SourceUnavailable."""
        body = {"errors": {"requests": "You have reached the request limit"}, "response": []}
        adapter = football_adapter(lambda request: httpx.Response(200, json=body))

        with pytest.raises(SourceUnavailable, match="request limit"):
            asyncio.run(adapter.fetch(two_day_context))

    def test_one_league_failing_is_partial(self, two_day_context):
        """A failed league should be a warning when another succeeds."""

        def handler(request):
            if request.url.params["league"] == "140":
                return httpx.Response(200, json={"response": "bad"})
            return httpx.Response(200, json={"response": [FIXTURE]})

        adapter = football_adapter(handler, leagues=[39, 140])
        result = asyncio.run(adapter.fetch(two_day_context))

        assert len(result.raw_events) == 1
        assert result.warnings == ["league 140: 'response' is not a list"]

    def test_requires_broadcaster(self):
        config = AdapterConfig(
            source_id="x",
            source_type=SourceType.SPORTS_API,
            custom_config={"base_url": "https://a", "leagues": [39]},
        )
        with pytest.raises(ValueError, match="broadcaster"):
            APIFootballAdapter(config)
