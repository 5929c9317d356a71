"""
Channel Resolver.

Binds the free-text broadcaster name reported by a source to one of the
tenant's configured channels. Matching is tiered and deterministic:

1. exact match, case and whitespace insensitive
2. containment either way on the compacted name ("SkySports Main Event"
   contains "Sky Sports"); the longest matching channel name wins
3. broadcaster family, when both names carry the same family token
   (sky, bt, tnt, bbc); first channel in list order wins
4. no match: policy decides between dropping and the first active channel
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum

from sportscast.schemas.channel import Channel

logger = logging.getLogger(__name__)

DEFAULT_BROADCASTER_FAMILIES: tuple[str, ...] = ("sky", "bt", "tnt", "bbc")


class UnresolvedChannelPolicy(str, Enum):
    """What to do with a candidate whose channel matches nothing."""

    DROP = "drop"
    FALLBACK = "fallback"


class MatchTier(str, Enum):
    """Which rule produced a channel match."""

    EXACT = "exact"
    CONTAINS = "contains"
    FAMILY = "family"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class ChannelMatch:
    """A resolved channel and the tier that matched it."""

    channel: Channel
    tier: MatchTier


def _collapse(name: str) -> str:
    return re.sub(r"\s+", " ", name.strip().lower())


def _compact(name: str) -> str:
    return re.sub(r"[^a-z0-9]", "", name.lower())


def _words(name: str) -> list[str]:
    return [w for w in re.split(r"[^a-z0-9]+", name.lower()) if w]


class ChannelResolver:
    """
    Resolve broadcaster names against a channel list.

    Pure: the result depends only on the name, the channel list (and its
    order) and the policy.
    """

    def __init__(self, families: tuple[str, ...] = DEFAULT_BROADCASTER_FAMILIES):
        self.families = tuple(f.lower() for f in families)

    def match(self, channel_name: str, channels: list[Channel]) -> ChannelMatch | None:
        """Apply tiers 1-3. Returns None when no configured channel matches."""
        if not channel_name or not channel_name.strip():
            return None

        active = [c for c in channels if c.is_active]
        if not active:
            return None

        wanted = _collapse(channel_name)
        for channel in active:
            if _collapse(channel.name) == wanted:
                return ChannelMatch(channel, MatchTier.EXACT)

        wanted_compact = _compact(channel_name)
        if wanted_compact:
            best: Channel | None = None
            best_len = -1
            for channel in active:
                candidate = _compact(channel.name)
                if not candidate:
                    continue
                if candidate in wanted_compact or wanted_compact in candidate:
                    if len(candidate) > best_len:
                        best = channel
                        best_len = len(candidate)
            if best is not None:
                return ChannelMatch(best, MatchTier.CONTAINS)

        wanted_families = self._families_of(channel_name)
        if wanted_families:
            for channel in active:
                if wanted_families & self._families_of(channel.name):
                    return ChannelMatch(channel, MatchTier.FAMILY)

        return None

    def resolve(
        self,
        channel_name: str,
        channels: list[Channel],
        policy: UnresolvedChannelPolicy = UnresolvedChannelPolicy.DROP,
    ) -> ChannelMatch | None:
        """
        Resolve a name, applying the unresolved-channel policy.

        Returns None only under the DROP policy (or when there is no active
        channel to fall back to). Never raises.
        """
        found = self.match(channel_name, channels)
        if found is not None:
            return found

        if policy == UnresolvedChannelPolicy.FALLBACK:
            for channel in channels:
                if channel.is_active:
                    logger.debug(f"No channel matches '{channel_name}', falling back to '{channel.name}'")
                    return ChannelMatch(channel, MatchTier.FALLBACK)

        return None

    def _families_of(self, name: str) -> set[str]:
        words = _words(name)
        return {family for family in self.families if any(w.startswith(family) for w in words)}


def resolve(
    channel_name: str,
    channels: list[Channel],
    policy: UnresolvedChannelPolicy = UnresolvedChannelPolicy.DROP,
) -> Channel | None:
    """Module-level convenience returning just the channel."""
    found = ChannelResolver().resolve(channel_name, channels, policy)
    return found.channel if found else None
