"""
Tolerant date/time parsing.

Sources report start times as full ISO-8601 instants, bare dates, naive
local date+time pairs, or European day-first dates. Everything that parses
is returned as a timezone-aware UTC datetime; everything else is None.
"""

import logging
import re
from datetime import UTC, date, datetime, timedelta
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

DATE_PREFIX = re.compile(r"^\s*\d{4}-\d{2}-\d{2}")

# Tried after datetime.fromisoformat, in order
FALLBACK_FORMATS = (
    "%d/%m/%Y %H:%M:%S",
    "%d/%m/%Y %H:%M",
    "%d/%m/%Y",
    "%Y/%m/%d %H:%M",
    "%Y/%m/%d",
    "%d %B %Y %H:%M",
    "%d %B %Y",
    "%d %b %Y %H:%M",
    "%d %b %Y",
)

CLOCK_12H = re.compile(
    r"\b(1[0-2]|0?[1-9])(?:[:.]([0-5]\d))?\s*([ap])\.?\s?m\b\.?",
    re.IGNORECASE,
)
CLOCK_24H = re.compile(r"\b([01]?\d|2[0-3])[:.h]([0-5]\d)\b")


def has_date_resolution(value: str | None) -> bool:
    """True if the string starts with a YYYY-MM-DD date or parses as a dated time."""
    if not value or not value.strip():
        return False
    return bool(DATE_PREFIX.match(value)) or _parse_naive_or_aware(value.strip()) is not None


def get_zone(name: str | None, default: str = "UTC") -> ZoneInfo:
    """Resolve an IANA zone name, falling back to `default` for unknown names."""
    for candidate in (name, default, "UTC"):
        if not candidate:
            continue
        try:
            return ZoneInfo(candidate)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning(f"Unknown timezone '{candidate}'")
    return ZoneInfo("UTC")


def parse_datetime(
    value: str | None,
    tz_hint: str | None = None,
    default_tz: str = "UTC",
) -> datetime | None:
    """
    Parse a source time string into an aware UTC datetime.

    Args:
        value: Time string as reported by the source
        tz_hint: IANA zone used for naive values (date-only means local midnight)
        default_tz: Zone used when no hint is given

    Returns:
        UTC datetime, or None if the value cannot be parsed
    """
    if not value:
        return None
    text = value.strip()
    if not text:
        return None

    parsed = _parse_naive_or_aware(text)
    if parsed is None:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=get_zone(tz_hint, default_tz))
    return parsed.astimezone(UTC)


def _parse_naive_or_aware(text: str) -> datetime | None:
    iso = text[:-1] + "+00:00" if text.endswith(("Z", "z")) else text
    try:
        return datetime.fromisoformat(iso)
    except ValueError:
        pass

    for fmt in FALLBACK_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    return None


def parse_clock(text: str) -> tuple[int, int] | None:
    """
    Find the first clock time in free text and return it on a 24-hour clock.

    Accepts "7pm", "7:30 p.m.", "19:30", "19.30" and "19h30".
    """
    if not text:
        return None

    match_12 = CLOCK_12H.search(text)
    match_24 = CLOCK_24H.search(text)

    # Prefer whichever appears first; "7:30pm" matches both at the same offset
    if match_12 and (not match_24 or match_12.start() <= match_24.start()):
        hour = int(match_12.group(1))
        minute = int(match_12.group(2) or 0)
        meridiem = match_12.group(3).lower()
        if meridiem == "p" and hour != 12:
            hour += 12
        elif meridiem == "a" and hour == 12:
            hour = 0
        return hour, minute

    if match_24:
        return int(match_24.group(1)), int(match_24.group(2))

    return None


ISO_DATE = re.compile(r"\b(\d{4})-(\d{2})-(\d{2})\b")
NUMERIC_DATE = re.compile(r"\b(\d{1,2})/(\d{1,2})/(\d{4})\b")
TEXT_DATE = re.compile(
    r"\b(\d{1,2})(?:st|nd|rd|th)?\s+"
    r"(jan|feb|mar|apr|may|jun|jul|aug|sep|oct|nov|dec)[a-z]*\.?"
    r"(?:,?\s+(\d{4}))?\b",
    re.IGNORECASE,
)
MONTHS = ("jan", "feb", "mar", "apr", "may", "jun", "jul", "aug", "sep", "oct", "nov", "dec")


def find_date(text: str, reference: date) -> date | None:
    """
    Find the first calendar date in free text.

    Accepts "2025-10-25", "25/10/2025" (day first) and "Saturday 25th October".
    A date without a year takes the year that puts it nearest after
    `reference`, so listings in late December roll into January.
    """
    if not text:
        return None

    candidates: list[tuple[int, date]] = []

    for m in ISO_DATE.finditer(text):
        found = _safe_date(int(m.group(1)), int(m.group(2)), int(m.group(3)))
        if found:
            candidates.append((m.start(), found))
            break

    for m in NUMERIC_DATE.finditer(text):
        found = _safe_date(int(m.group(3)), int(m.group(2)), int(m.group(1)))
        if found:
            candidates.append((m.start(), found))
            break

    for m in TEXT_DATE.finditer(text):
        day = int(m.group(1))
        month = MONTHS.index(m.group(2)[:3].lower()) + 1
        if m.group(3):
            found = _safe_date(int(m.group(3)), month, day)
        else:
            found = _safe_date(reference.year, month, day)
            if found and found < reference - timedelta(days=31):
                found = _safe_date(reference.year + 1, month, day)
        if found:
            candidates.append((m.start(), found))
            break

    if not candidates:
        return None
    return min(candidates, key=lambda c: c[0])[1]


def _safe_date(year: int, month: int, day: int) -> date | None:
    try:
        return date(year, month, day)
    except ValueError:
        return None
