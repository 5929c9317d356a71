"""
Module for event deduplication strategies.

Provides deduplication strategies using the Strategy pattern:
- ExactMatchDeduplicator: identity key match (title + start + teams)
- FuzzyMatchDeduplicator: identity key match, plus near-identical titles
  at the same kick-off via difflib

All strategies filter candidates against events already stored for the
tenant and against earlier candidates in the same batch. The first
occurrence of a duplicate always wins, so output order is stable.
"""

import hashlib
from abc import ABC, abstractmethod
from difflib import SequenceMatcher
from enum import Enum

from sportscast.schemas.event import Event

IdentityKey = tuple[str, str, str, str, str]


class DeduplicationStrategy(str, Enum):
    """Available deduplication strategies."""

    EXACT = "exact"
    FUZZY = "fuzzy"


def _norm(value: str | None) -> str:
    return (value or "").strip().lower()


def identity_key(event: Event) -> IdentityKey:
    """
    Derive the identity key of an event.

    (company, lowercased title, UTC ISO start, home team, away team).
    Missing fields become empty strings so the key is always defined.
    The key is textual: differently worded titles for the same fixture
    produce different keys.
    """
    return (
        event.company_id,
        _norm(event.title),
        event.start_time.isoformat(),
        _norm(event.home_team),
        _norm(event.away_team),
    )


def identity_hash(event: Event) -> str:
    """Stable hex digest of the identity key, used as a storage constraint column."""
    raw = "\x1f".join(identity_key(event))
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


class EventDeduplicator(ABC):
    """Abstract base for deduplication strategies."""

    @abstractmethod
    def filter(self, candidates: list[Event], existing: list[Event]) -> list[Event]:
        """Return the candidates that are neither stored nor repeated in the batch."""
        pass

    def deduplicate(self, events: list[Event]) -> list[Event]:
        """Deduplicate a single list (no stored events)."""
        return self.filter(events, [])


class ExactMatchDeduplicator(EventDeduplicator):
    """Match by identity key (exact)."""

    def filter(self, candidates: list[Event], existing: list[Event]) -> list[Event]:
        """
        Filter candidates using identity keys.

        Returns:
            Surviving candidates in input order (first occurrence kept)
        """
        seen: set[IdentityKey] = {identity_key(e) for e in existing}
        survivors = []

        for event in candidates:
            key = identity_key(event)
            if key in seen:
                continue
            seen.add(key)
            survivors.append(event)

        return survivors


class FuzzyMatchDeduplicator(EventDeduplicator):
    """
    Identity key match plus fuzzy title match for wording variations.

    Two events of the same company at the same instant whose titles have a
    similarity ratio >= threshold are treated as duplicates. Only events
    sharing a start instant are compared, which keeps the pairwise work small.
    """

    def __init__(self, threshold: float = 0.9):
        """
        Initialize with similarity threshold.

        Args:
            threshold: Similarity threshold (0.0-1.0) for title matching
        """
        self.threshold = threshold

    def filter(self, candidates: list[Event], existing: list[Event]) -> list[Event]:
        seen: set[IdentityKey] = set()
        by_slot: dict[tuple[str, str], list[str]] = {}

        for event in existing:
            seen.add(identity_key(event))
            by_slot.setdefault(self._slot(event), []).append(_norm(event.title))

        survivors = []
        for event in candidates:
            key = identity_key(event)
            if key in seen:
                continue

            title = _norm(event.title)
            slot = by_slot.setdefault(self._slot(event), [])
            if any(SequenceMatcher(None, title, other).ratio() >= self.threshold for other in slot):
                continue

            seen.add(key)
            slot.append(title)
            survivors.append(event)

        return survivors

    @staticmethod
    def _slot(event: Event) -> tuple[str, str]:
        return (event.company_id, event.start_time.isoformat())


def get_deduplicator(
    strategy: DeduplicationStrategy = DeduplicationStrategy.EXACT,
) -> EventDeduplicator:
    """
    Create a deduplicator instance for the given strategy.

    Args:
        strategy: DeduplicationStrategy enum value

    Returns:
        Configured EventDeduplicator instance
    """
    if strategy == DeduplicationStrategy.FUZZY:
        return FuzzyMatchDeduplicator()
    return ExactMatchDeduplicator()
