"""
Public Sports API Adapters.

- TheSportsDBAdapter: day-by-day TV listings, filtered to a broadcast country
- APIFootballAdapter: fixtures per league over the whole window

Both walk a list of upstream calls and tolerate individual failures: a
failed call becomes a warning on the result and the remaining calls still
run. Only when every call fails does the source count as unavailable.
"""

import asyncio
from collections.abc import Awaitable, Callable
from datetime import date
from typing import Any

from sportscast.ingestion.adapters.base_adapter import (
    FetchContext,
    FetchResult,
    HTTPSourceAdapter,
)
from sportscast.ingestion.errors import SourceError, SourceMalformed, SourceUnavailable

# TheSportsDB sport names -> our sport labels
THESPORTSDB_SPORTS = {
    "soccer": "football",
    "rugby": "rugby",
    "cricket": "cricket",
    "tennis": "tennis",
    "motorsport": "formula1",
    "fighting": "boxing",
    "golf": "golf",
}


class SportsAPIAdapter(HTTPSourceAdapter):
    """Shared call loop for per-day / per-league JSON APIs."""

    async def _run_calls(
        self,
        calls: list[tuple[str, Callable[[], Awaitable[list[dict[str, Any]]]]]],
        result: FetchResult,
    ) -> list[dict[str, Any]]:
        """
        Run labelled calls in order, collecting candidates.

        Raises:
            SourceUnavailable: If every call failed
        """
        candidates: list[dict[str, Any]] = []
        failures: list[SourceError] = []

        for label, call in calls:
            try:
                candidates.extend(await call())
            except SourceError as e:
                failures.append(e)
                result.warnings.append(f"{label}: {e.message}")
                self.logger.warning(f"Call {label} failed, continuing: {e.message}")

        result.metadata["calls"] = len(calls)
        result.metadata["failed_calls"] = len(failures)

        if calls and len(failures) == len(calls):
            last = failures[-1]
            if all(isinstance(f, SourceMalformed) for f in failures):
                raise SourceMalformed(self.source_id, f"all {len(calls)} calls malformed; last: {last.message}")
            raise SourceUnavailable(self.source_id, f"all {len(calls)} calls failed; last: {last.message}")
        return candidates


class TheSportsDBAdapter(SportsAPIAdapter):
    """
    Adapter for TheSportsDB daily TV listings.

    custom_config:
        base_url: API root, e.g. https://www.thesportsdb.com/api/v1/json
        api_key: Key segment of the URL ("3" is the public test key)
        sports: TheSportsDB sport names to query per day
        broadcast_country: Keep only events listed for this country
        default_kickoff: Local time used when an event has no time
        pause_every: Sleep after this many days
        pause_seconds: Length of that sleep
    """

    def _validate_config(self) -> None:
        cfg = self.config.custom_config
        if not cfg.get("base_url"):
            raise ValueError("TheSportsDB adapter requires base_url")
        if not cfg.get("sports"):
            raise ValueError("TheSportsDB adapter requires at least one sport")

    async def _fetch_candidates(self, ctx: FetchContext, result: FetchResult) -> list[dict[str, Any]]:
        cfg = self.config.custom_config
        pause_every = int(cfg.get("pause_every", 7))
        pause_seconds = float(cfg.get("pause_seconds", 0.5))

        candidates: list[dict[str, Any]] = []
        failures = 0
        total = 0
        last_error: SourceError | None = None

        for index, day in enumerate(ctx.window.days()):
            if index and pause_every and index % pause_every == 0:
                await asyncio.sleep(pause_seconds)

            calls = [
                (f"{sport} {day.isoformat()}", self._day_call(day, sport))
                for sport in cfg["sports"]
            ]
            total += len(calls)
            day_result = FetchResult(source_id=self.source_id, source_type=self.source_type)
            try:
                candidates.extend(await self._run_calls(calls, day_result))
            except SourceError as e:
                last_error = e
            result.warnings.extend(day_result.warnings)
            failures += day_result.metadata.get("failed_calls", 0)

        result.metadata["calls"] = total
        result.metadata["failed_calls"] = failures
        if total and failures == total and last_error is not None:
            raise type(last_error)(self.source_id, f"every day of the window failed; last: {last_error.message}")
        return candidates

    def _day_call(self, day: date, sport: str) -> Callable[[], Awaitable[list[dict[str, Any]]]]:
        async def call() -> list[dict[str, Any]]:
            cfg = self.config.custom_config
            url = f"{cfg['base_url'].rstrip('/')}/{cfg.get('api_key') or '3'}/eventsday.php"
            data = await self._request_json(url, params={"d": day.isoformat(), "s": sport})
            if not isinstance(data, dict):
                raise SourceMalformed(self.source_id, "eventsday response is not an object")
            events = data.get("events")
            if events is None:
                return []
            if not isinstance(events, list):
                raise SourceMalformed(self.source_id, "'events' is not a list")
            return [c for c in (self._to_candidate(e) for e in events if isinstance(e, dict)) if c is not None]

        return call

    def _to_candidate(self, item: dict[str, Any]) -> dict[str, Any] | None:
        cfg = self.config.custom_config
        country = cfg.get("broadcast_country")
        if country and item.get("strCountry") != country:
            return None
        if not item.get("strChannel"):
            return None

        home, away = item.get("strHomeTeam"), item.get("strAwayTeam")
        title = item.get("strEvent") or (f"{home} vs {away}" if home and away else None)
        sport = str(item.get("strSport") or "")

        # strTimestamp and strTime are UTC; the default kick-off is local time
        if item.get("strTimestamp"):
            start_time, tz = str(item["strTimestamp"]), "UTC"
        elif item.get("dateEvent") and item.get("strTime"):
            start_time, tz = f"{item['dateEvent']}T{item['strTime']}", "UTC"
        elif item.get("dateEvent"):
            start_time, tz = f"{item['dateEvent']}T{cfg.get('default_kickoff', '15:00:00')}", self.config.timezone
        else:
            start_time, tz = "", None

        venue = item.get("strVenue")
        league = item.get("strLeague")
        return {
            "title": title or "",
            "sport_type": THESPORTSDB_SPORTS.get(sport.lower(), sport),
            "league": league,
            "home_team": home,
            "away_team": away,
            "start_time": start_time,
            "timezone": tz,
            "channel_name": item.get("strChannel"),
            "description": f"{league} at {venue}" if league and venue else league,
        }


class APIFootballAdapter(SportsAPIAdapter):
    """
    Adapter for API-Football fixtures.

    The API has no broadcaster data, so every fixture is reported on the
    configured broadcaster.

    custom_config:
        base_url: Fixtures endpoint
        api_key: Value of the x-apisports-key header
        leagues: League ids, e.g. [39] for the Premier League
        broadcaster: Channel name reported for every fixture
        season: Season year (defaults to the season containing the window start)
    """

    def _validate_config(self) -> None:
        cfg = self.config.custom_config
        if not cfg.get("base_url"):
            raise ValueError("API-Football adapter requires base_url")
        if not cfg.get("leagues"):
            raise ValueError("API-Football adapter requires at least one league")
        if not cfg.get("broadcaster"):
            raise ValueError("API-Football adapter requires a broadcaster")

    def _default_headers(self) -> dict[str, str]:
        headers = super()._default_headers()
        api_key = self.config.custom_config.get("api_key")
        if api_key:
            headers["x-apisports-key"] = api_key
        return headers

    async def _fetch_candidates(self, ctx: FetchContext, result: FetchResult) -> list[dict[str, Any]]:
        cfg = self.config.custom_config
        start = ctx.window.start.date()
        end = ctx.window.end.date()
        season = cfg.get("season") or (start.year if start.month >= 7 else start.year - 1)

        calls = [
            (
                f"league {league}",
                self._league_call({"league": league, "season": season, "from": start.isoformat(), "to": end.isoformat()}),
            )
            for league in cfg["leagues"]
        ]
        return await self._run_calls(calls, result)

    def _league_call(self, params: dict[str, Any]) -> Callable[[], Awaitable[list[dict[str, Any]]]]:
        async def call() -> list[dict[str, Any]]:
            data = await self._request_json(self.config.custom_config["base_url"], params=params)
            if not isinstance(data, dict):
                raise SourceMalformed(self.source_id, "fixtures response is not an object")
            # Auth and quota errors come back as HTTP 200 with an errors field
            if data.get("errors"):
                raise SourceUnavailable(self.source_id, f"API errors: {data['errors']}")
            fixtures = data.get("response")
            if not isinstance(fixtures, list):
                raise SourceMalformed(self.source_id, "'response' is not a list")
            return [self._to_candidate(f) for f in fixtures if isinstance(f, dict)]

        return call

    def _to_candidate(self, item: dict[str, Any]) -> dict[str, Any]:
        fixture = item.get("fixture") or {}
        league = item.get("league") or {}
        teams = item.get("teams") or {}
        home = (teams.get("home") or {}).get("name")
        away = (teams.get("away") or {}).get("name")
        venue = (fixture.get("venue") or {}).get("name")

        return {
            "title": f"{home} vs {away}" if home and away else "",
            "sport_type": "football",
            "league": league.get("name"),
            "home_team": home,
            "away_team": away,
            "start_time": fixture.get("date") or "",
            "channel_name": self.config.custom_config["broadcaster"],
            "description": f"{league.get('name')} at {venue}" if venue else league.get("name"),
        }
