"""
Synthetic Schedule Adapter.

Generates a plausible broadcast schedule for demos and for tenants with no
live source available. It never runs in place of a configured live
adapter: the orchestrator only calls it when no live adapter ran.
"""

import random
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sportscast.ingestion.adapters.base_adapter import (
    BaseSourceAdapter,
    FetchContext,
    FetchResult,
)
from sportscast.ingestion.normalization.time_parser import get_zone
from sportscast.schemas.event import SportType


@dataclass(frozen=True)
class SportProfile:
    """How one sport shows up in a generated schedule."""

    sport: SportType
    weight: int
    # league -> team pool; an empty pool means a non-fixture event
    leagues: dict[str, tuple[str, ...]]
    # local kick-off hours, inclusive
    first_hour: int
    last_hour: int


DEFAULT_PROFILES: tuple[SportProfile, ...] = (
    SportProfile(
        SportType.FOOTBALL,
        weight=50,
        leagues={
            "Premier League": (
                "Arsenal",
                "Chelsea",
                "Liverpool",
                "Manchester United",
                "Manchester City",
                "Tottenham",
                "Newcastle",
                "Aston Villa",
            ),
            "EFL Championship": ("Leeds", "Sunderland", "Burnley", "Norwich", "Watford", "Middlesbrough"),
            "Scottish Premiership": ("Celtic", "Rangers", "Hearts", "Aberdeen", "Hibernian"),
        },
        first_hour=12,
        last_hour=20,
    ),
    SportProfile(
        SportType.RUGBY,
        weight=15,
        leagues={
            "Premiership Rugby": ("Bath", "Saracens", "Leicester Tigers", "Northampton Saints", "Harlequins"),
            "United Rugby Championship": ("Leinster", "Munster", "Glasgow Warriors", "Ospreys"),
        },
        first_hour=13,
        last_hour=19,
    ),
    SportProfile(
        SportType.CRICKET,
        weight=10,
        leagues={"County Championship": ("Surrey", "Essex", "Somerset", "Lancashire", "Yorkshire")},
        first_hour=10,
        last_hour=14,
    ),
    SportProfile(SportType.TENNIS, weight=10, leagues={"ATP Tour": (), "WTA Tour": ()}, first_hour=11, last_hour=19),
    SportProfile(SportType.GOLF, weight=5, leagues={"DP World Tour": ()}, first_hour=9, last_hour=13),
    SportProfile(SportType.FORMULA1, weight=5, leagues={"Formula 1 Grand Prix": ()}, first_hour=12, last_hour=15),
    SportProfile(SportType.BOXING, weight=5, leagues={"Fight Night": ()}, first_hour=19, last_hour=22),
)


class SyntheticAdapter(BaseSourceAdapter):
    """
    Random schedule generator.

    custom_config:
        weekend_events: Events per Saturday/Sunday (default 5)
        weekday_events: Events per weekday (default 2)
        seed: Optional seed for a reproducible schedule
    """

    is_live = False

    def __init__(self, config, rng: random.Random | None = None):
        super().__init__(config)
        seed = config.custom_config.get("seed")
        self.rng = rng or random.Random(seed)
        self.profiles = DEFAULT_PROFILES

    def _validate_config(self) -> None:
        for key in ("weekend_events", "weekday_events"):
            value = self.config.custom_config.get(key, 1)
            if not isinstance(value, int) or value < 0:
                raise ValueError(f"{key} must be a non-negative integer, got {value!r}")

    async def _fetch_candidates(self, ctx: FetchContext, result: FetchResult) -> list[dict[str, Any]]:
        cfg = self.config.custom_config
        weekend_events = cfg.get("weekend_events", 5)
        weekday_events = cfg.get("weekday_events", 2)
        zone = get_zone(self.config.timezone)

        channels = ctx.channel_names
        if not channels:
            return []

        candidates = []
        for day in ctx.window.days():
            per_day = weekend_events if day.weekday() >= 5 else weekday_events
            for _ in range(per_day):
                profile = self.rng.choices(self.profiles, weights=[p.weight for p in self.profiles])[0]
                league = self.rng.choice(list(profile.leagues))
                hour = self.rng.randint(profile.first_hour, profile.last_hour)
                minute = self.rng.choice((0, 15, 30, 45))
                start = datetime(day.year, day.month, day.day, hour, minute, tzinfo=zone)

                home = away = None
                pool = profile.leagues[league]
                if len(pool) >= 2:
                    home, away = self.rng.sample(pool, 2)
                    title = f"{home} vs {away}"
                else:
                    title = f"{league} - Live"

                candidates.append(
                    {
                        "title": title,
                        "sport_type": profile.sport.value,
                        "league": league,
                        "home_team": home,
                        "away_team": away,
                        "start_time": start.isoformat(),
                        "channel_name": self.rng.choice(channels),
                    }
                )

        result.metadata["synthetic"] = True
        return candidates
