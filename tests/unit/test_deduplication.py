"""
Unit tests for the deduplication module.

Tests all deduplication strategies:
- identity_key / identity_hash
- ExactMatchDeduplicator
- FuzzyMatchDeduplicator
- get_deduplicator factory function
"""

from datetime import UTC, datetime, timedelta

import pytest

from sportscast.ingestion.deduplication import (
    DeduplicationStrategy,
    ExactMatchDeduplicator,
    FuzzyMatchDeduplicator,
    get_deduplicator,
    identity_hash,
    identity_key,
)

# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture
def sample_events(create_event):
    """Three distinct fixtures."""
    base = datetime(2025, 10, 25, 15, 0, tzinfo=UTC)
    return [
        create_event(title="Arsenal vs Chelsea", start_time=base),
        create_event(title="Liverpool vs Everton", home_team="Liverpool", away_team="Everton", start_time=base),
        create_event(title="Arsenal vs Chelsea", start_time=base + timedelta(days=7)),
    ]


# =============================================================================
# TEST CLASSES
# =============================================================================


class TestDeduplicationStrategy:
    """Tests for the DeduplicationStrategy enum."""

    def test_strategy_enum_values(self):
        """Both strategies should exist in the enum."""
        assert DeduplicationStrategy.EXACT.value == "exact"
        assert DeduplicationStrategy.FUZZY.value == "fuzzy"


class TestIdentityKey:
    """Tests for identity_key and identity_hash."""

    def test_title_is_lowercased_and_trimmed(self, create_event):
        """Case and surrounding whitespace should not change the key."""
        a = create_event(title="Arsenal vs Chelsea")
        b = create_event(title="  ARSENAL VS CHELSEA ")
        assert identity_key(a) == identity_key(b)

    def test_missing_teams_become_empty_strings(self, create_event):
        """Absent teams should yield empty strings, not None."""
        event = create_event(title="Monaco Grand Prix", home_team=None, away_team=None)
        key = identity_key(event)
        assert key[3] == "" and key[4] == ""

    def test_start_time_is_utc_iso(self, create_event):
        """Same instant in different zones should give the same key."""
        from zoneinfo import ZoneInfo

        utc = create_event(start_time=datetime(2025, 10, 22, 12, 30, tzinfo=UTC))
        london = create_event(start_time=datetime(2025, 10, 22, 13, 30, tzinfo=ZoneInfo("Europe/London")))
        assert identity_key(utc) == identity_key(london)

    def test_tenant_is_part_of_the_key(self, create_event):
        """The same fixture for two companies should not collide."""
        assert identity_key(create_event(company_id="a")) != identity_key(create_event(company_id="b"))

    def test_hash_is_stable(self, create_event):
        """identity_hash should be a deterministic hex digest."""
        event = create_event()
        assert identity_hash(event) == identity_hash(create_event())
        assert len(identity_hash(event)) == 64


class TestExactMatchDeduplicator:
    """Tests for ExactMatchDeduplicator."""

    def test_deduplicate_no_duplicates(self, sample_events):
        """All unique events should pass through unchanged."""
        result = ExactMatchDeduplicator().deduplicate(sample_events)
        assert result == sample_events

    def test_filters_existing(self, sample_events, create_event):
        """Candidates already stored should be dropped."""
        existing = [create_event(title="arsenal vs chelsea", start_time=sample_events[0].start_time)]
        result = ExactMatchDeduplicator().filter(sample_events, existing)
        assert result == sample_events[1:]

    def test_intra_batch_first_occurrence_wins(self, create_event):
        """The same fixture twice in one batch should keep the first copy."""
        first = create_event(source="api")
        second = create_event(source="llm")
        result = ExactMatchDeduplicator().filter([first, second], [])
        assert len(result) == 1
        assert result[0].source == "api"

    def test_never_returns_existing_or_repeated_keys(self, sample_events, create_event):
        """No survivor shares a key with existing events or with another survivor."""
        existing = [sample_events[1]]
        candidates = sample_events + [create_event(title="ARSENAL vs Chelsea")] + sample_events
        result = ExactMatchDeduplicator().filter(candidates, existing)

        keys = [identity_key(e) for e in result]
        assert len(keys) == len(set(keys))
        assert identity_key(existing[0]) not in keys

    def test_order_is_stable(self, sample_events):
        """Output order should follow input order."""
        reversed_events = list(reversed(sample_events))
        assert ExactMatchDeduplicator().deduplicate(reversed_events) == reversed_events

    def test_different_wording_is_not_a_duplicate(self, create_event):
        """The key is textual: reworded titles survive as separate events."""
        a = create_event(title="Arsenal vs Chelsea")
        b = create_event(title="Arsenal v Chelsea")
        assert len(ExactMatchDeduplicator().deduplicate([a, b])) == 2

    def test_empty_inputs(self):
        """Empty candidates should give an empty list."""
        assert ExactMatchDeduplicator().filter([], []) == []


class TestFuzzyMatchDeduplicator:
    """Tests for FuzzyMatchDeduplicator."""

    def test_near_identical_titles_at_same_time(self, create_event):
        """Small wording variations at the same kick-off should be merged."""
        a = create_event(title="Manchester United vs Liverpool", home_team=None, away_team=None)
        b = create_event(title="Manchester United v Liverpool", home_team=None, away_team=None)
        assert len(FuzzyMatchDeduplicator(threshold=0.9).deduplicate([a, b])) == 1

    def test_same_title_different_time_kept(self, sample_events):
        """Fuzzy matching only compares events sharing a start instant."""
        assert len(FuzzyMatchDeduplicator().deduplicate(sample_events)) == 3

    def test_matches_against_existing(self, create_event):
        """A near-identical stored title should drop the candidate."""
        existing = [create_event(title="Manchester United vs Liverpool")]
        candidate = create_event(title="Manchester Utd vs Liverpool")
        assert FuzzyMatchDeduplicator(threshold=0.85).filter([candidate], existing) == []


class TestGetDeduplicator:
    """Tests for the get_deduplicator factory."""

    def test_default_is_exact(self):
        """Should default to exact matching."""
        assert isinstance(get_deduplicator(), ExactMatchDeduplicator)

    def test_fuzzy(self):
        """Should create a fuzzy deduplicator."""
        assert isinstance(get_deduplicator(DeduplicationStrategy.FUZZY), FuzzyMatchDeduplicator)
