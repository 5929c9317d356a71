"""
Sport classification.

Maps the sport labels sources report ("Soccer", "Rugby Union", "Motorsport")
onto the calendar's closed SportType set, and guesses a sport from free text
for the HTML scraper.
"""

import re

from sportscast.schemas.event import SportType

PROFILE_CLOSED = "closed"
PROFILE_OPEN = "open"

# Label aliases, compared after lowercasing and collapsing whitespace
SPORT_ALIASES: dict[str, SportType] = {
    "football": SportType.FOOTBALL,
    "soccer": SportType.FOOTBALL,
    "association football": SportType.FOOTBALL,
    "rugby": SportType.RUGBY,
    "rugby union": SportType.RUGBY,
    "rugby league": SportType.RUGBY,
    "cricket": SportType.CRICKET,
    "tennis": SportType.TENNIS,
    "formula1": SportType.FORMULA1,
    "formula 1": SportType.FORMULA1,
    "formula one": SportType.FORMULA1,
    "f1": SportType.FORMULA1,
    "motorsport": SportType.FORMULA1,
    "boxing": SportType.BOXING,
    "golf": SportType.GOLF,
    "other": SportType.OTHER,
}

# Keyword table for free text, checked in order; first hit wins
SPORT_KEYWORDS: dict[SportType, tuple[str, ...]] = {
    SportType.FORMULA1: ("formula 1", "formula one", "f1", "grand prix", "qualifying", "practice"),
    SportType.RUGBY: ("rugby", "six nations", "premiership rugby", "urc", "champions cup", "super league"),
    SportType.CRICKET: ("cricket", "test match", "odi", "t20", "the hundred", "ipl", "county championship"),
    SportType.TENNIS: ("tennis", "wimbledon", "atp", "wta", "us open", "roland garros", "australian open"),
    SportType.BOXING: ("boxing", "fight night", "title fight", "heavyweight", "undercard"),
    SportType.GOLF: ("golf", "pga", "dp world tour", "ryder cup", "the open", "masters"),
    SportType.FOOTBALL: (
        "football",
        "soccer",
        "premier league",
        "champions league",
        "europa league",
        "fa cup",
        "carabao cup",
        "efl",
        "championship",
        "la liga",
        "serie a",
        "bundesliga",
        "scottish premiership",
    ),
}

_KEYWORD_PATTERNS: list[tuple[SportType, re.Pattern]] = [
    (sport, re.compile(r"\b(" + "|".join(re.escape(k) for k in keywords) + r")\b", re.IGNORECASE))
    for sport, keywords in SPORT_KEYWORDS.items()
]


def _clean(label: str) -> str:
    return re.sub(r"\s+", " ", label.strip().lower())


def classify_sport(label: str | None, profile: str = PROFILE_CLOSED) -> str:
    """
    Classify a source-reported sport label.

    In the closed profile unknown labels become "other". In the open profile
    known labels are still canonicalized but unknown ones are kept as free
    text (lowercased), falling back to "other" only when blank.
    """
    if not label or not label.strip():
        return SportType.OTHER.value

    cleaned = _clean(label)
    sport = SPORT_ALIASES.get(cleaned)
    if sport is not None:
        return sport.value

    if profile == PROFILE_OPEN:
        return cleaned
    return SportType.OTHER.value


def guess_sport_from_text(text: str) -> SportType | None:
    """Best-guess sport for a block of free text, or None if nothing matches."""
    if not text:
        return None
    for sport, pattern in _KEYWORD_PATTERNS:
        if pattern.search(text):
            return sport
    return None


def contains_sport_keyword(text: str) -> bool:
    """True if the text mentions any sport keyword."""
    return guess_sport_from_text(text) is not None
