"""
Event Normalizer.

Converts a RawEvent into a canonical Event: parses times, classifies the
sport, resolves the channel and copies the descriptive fields through.
A candidate that cannot be normalized yields a Rejection; nothing here
raises for bad input, so one bad candidate never aborts a batch.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field

from sportscast.ingestion.channel_resolver import (
    ChannelResolver,
    MatchTier,
    UnresolvedChannelPolicy,
)
from sportscast.ingestion.errors import RejectReason, Rejection
from sportscast.ingestion.normalization.sport_classifier import PROFILE_CLOSED, classify_sport
from sportscast.ingestion.normalization.time_parser import parse_datetime
from sportscast.schemas.channel import Channel
from sportscast.schemas.event import Event, RawEvent

logger = logging.getLogger(__name__)


@dataclass
class NormalizationStats:
    """Counters for one batch of candidates."""

    normalized: int = 0
    rejected: Counter = field(default_factory=Counter)
    match_tiers: Counter = field(default_factory=Counter)

    @property
    def rejected_total(self) -> int:
        return sum(self.rejected.values())

    @property
    def fallback_channel_count(self) -> int:
        return self.match_tiers[MatchTier.FALLBACK.value]


def _clean_optional(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


class EventNormalizer:
    """
    Normalize RawEvents for one source.

    The unresolved-channel policy is fixed per instance so a source applies
    it consistently to every candidate.
    """

    def __init__(
        self,
        resolver: ChannelResolver | None = None,
        policy: UnresolvedChannelPolicy = UnresolvedChannelPolicy.DROP,
        sport_profile: str = PROFILE_CLOSED,
        default_timezone: str = "UTC",
    ):
        self.resolver = resolver or ChannelResolver()
        self.policy = UnresolvedChannelPolicy(policy)
        self.sport_profile = sport_profile
        self.default_timezone = default_timezone
        self.stats = NormalizationStats()

    def normalize(self, raw: RawEvent, channels: list[Channel]) -> Event | Rejection:
        """
        Normalize a single candidate.

        Args:
            raw: Candidate from an adapter
            channels: The tenant's channels

        Returns:
            Event without an id, or a Rejection describing why it was skipped
        """
        result = self._normalize(raw, channels)
        if isinstance(result, Rejection):
            self.stats.rejected[result.reason.value] += 1
            logger.debug(f"Rejected '{raw.title}': {result.reason.value} ({result.detail})")
        else:
            self.stats.normalized += 1
        return result

    def normalize_batch(self, raws: list[RawEvent], channels: list[Channel]) -> list[Event]:
        """Normalize a batch, keeping order and dropping rejections."""
        events = []
        for raw in raws:
            result = self.normalize(raw, channels)
            if isinstance(result, Event):
                events.append(result)
        return events

    def _normalize(self, raw: RawEvent, channels: list[Channel]) -> Event | Rejection:
        tz_hint = raw.timezone or self.default_timezone

        # (a) start time is mandatory
        start_time = parse_datetime(raw.start_time, tz_hint=tz_hint)
        if start_time is None:
            return Rejection(
                RejectReason.UNPARSEABLE_TIME,
                detail=f"start_time={raw.start_time!r}",
                title=raw.title,
            )

        # (b) end time is best effort
        end_time = parse_datetime(raw.end_time, tz_hint=tz_hint) if raw.end_time else None
        if end_time is not None and end_time <= start_time:
            end_time = None

        # (c) sport
        sport_type = classify_sport(raw.sport_type, self.sport_profile)

        # (d) channel
        found = self.resolver.resolve(raw.channel_name, channels, self.policy)
        if found is None:
            return Rejection(
                RejectReason.UNRESOLVED_CHANNEL,
                detail=f"channel_name={raw.channel_name!r}",
                title=raw.title,
            )

        # (e) descriptive fields
        title = (raw.title or "").strip()
        if not title:
            return Rejection(RejectReason.MISSING_TITLE, title=raw.title)

        self.stats.match_tiers[found.tier.value] += 1

        return Event(
            company_id=found.channel.company_id,
            title=title,
            sport_type=sport_type,
            league=_clean_optional(raw.league),
            home_team=_clean_optional(raw.home_team),
            away_team=_clean_optional(raw.away_team),
            start_time=start_time,
            end_time=end_time,
            channel_id=found.channel.id,
            description=_clean_optional(raw.description),
            source=raw.source_id,
        )
