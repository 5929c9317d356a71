"""
Normalization helpers.

Time parsing and sport classification shared by the normalizer and the
adapters that need to interpret free text.
"""

from sportscast.ingestion.normalization.sport_classifier import (
    SPORT_KEYWORDS,
    classify_sport,
    guess_sport_from_text,
)
from sportscast.ingestion.normalization.time_parser import (
    find_date,
    has_date_resolution,
    parse_clock,
    parse_datetime,
)

__all__ = [
    "SPORT_KEYWORDS",
    "classify_sport",
    "guess_sport_from_text",
    "find_date",
    "has_date_resolution",
    "parse_clock",
    "parse_datetime",
]
