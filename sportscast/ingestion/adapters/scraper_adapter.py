"""
HTML Scrape Adapter.

Heuristic extraction of televised events from static listing pages. Pages
are fetched with a plain GET (no JavaScript), so client-rendered listings
yield nothing; that is expected, not an error.

Per page:
1. Reject pages without any sport keyword.
2. Keep the innermost block elements whose text has a sport keyword or a
   configured channel name, and a clock time.
3. From each block take a "Home vs Away" title (or a text snippet), the
   time, a date (block, nearest heading, else today) and the channel.
"""

import re
from datetime import date, datetime
from typing import Any

from bs4 import BeautifulSoup, Tag

from sportscast.ingestion.adapters.base_adapter import (
    FetchContext,
    FetchResult,
    HTTPSourceAdapter,
)
from sportscast.ingestion.errors import SourceError, SourceUnavailable
from sportscast.ingestion.normalization.sport_classifier import (
    contains_sport_keyword,
    guess_sport_from_text,
)
from sportscast.ingestion.normalization.time_parser import (
    CLOCK_12H,
    CLOCK_24H,
    find_date,
    get_zone,
    parse_clock,
)

BLOCK_TAGS = ["article", "section", "div", "li", "tr", "td", "p"]
HEADING_TAGS = ["h1", "h2", "h3", "h4"]

# Blocks longer than this are page sections, not listings
MAX_BLOCK_CHARS = 400
SNIPPET_CHARS = 80

TEAM = r"[A-Z][\w.'&-]*(?:\s+[A-Z0-9][\w.'&-]*){0,3}"
VERSUS = re.compile(rf"({TEAM})\s+(?:vs?\.?|versus)\s+({TEAM})")


class HTMLScrapeAdapter(HTTPSourceAdapter):
    """
    Adapter for generic schedule pages.

    URLs come from custom_config["urls"] followed by the tenant's active
    data sources.

    custom_config:
        urls: Extra URLs to scrape for every tenant
        default_channel: Channel name for blocks that mention none
        max_blocks_per_page: Cap on candidates taken from one page
    """

    def _validate_config(self) -> None:
        urls = self.config.custom_config.get("urls", [])
        if not isinstance(urls, list):
            raise ValueError("html_scrape urls must be a list")

    def _urls(self, ctx: FetchContext) -> list[str]:
        urls = list(self.config.custom_config.get("urls") or [])
        urls += [s.url for s in ctx.data_sources if s.url]
        return list(dict.fromkeys(urls))

    async def _fetch_candidates(self, ctx: FetchContext, result: FetchResult) -> list[dict[str, Any]]:
        urls = self._urls(ctx)
        if not urls:
            self.logger.info("No URLs to scrape")
            return []

        candidates: list[dict[str, Any]] = []
        failed = 0
        for url in urls:
            try:
                response = await self._request(url)
            except SourceError as e:
                failed += 1
                result.warnings.append(f"{url}: {e.message}")
                self.logger.warning(f"Could not fetch {url}: {e.message}")
                continue

            result.sources_consulted.append(url)
            found = self.extract_events(response.text, ctx.channel_names)
            self.logger.debug(f"{url}: {len(found)} candidate blocks")
            candidates.extend(found)

        result.metadata["pages"] = len(urls)
        result.metadata["failed_pages"] = failed
        if failed == len(urls):
            raise SourceUnavailable(self.source_id, f"all {len(urls)} pages failed")
        return candidates

    def extract_events(self, html: str, channel_names: list[str]) -> list[dict[str, Any]]:
        """Extract candidate dicts from one HTML document."""
        soup = BeautifulSoup(html, "lxml")
        for tag in soup(["script", "style", "noscript"]):
            tag.decompose()

        if not contains_sport_keyword(soup.get_text(" ", strip=True)):
            return []

        cache: dict[int, bool] = {}

        def qualifies(el: Tag) -> bool:
            key = id(el)
            if key not in cache:
                cache[key] = self._is_listing(el.get_text(" ", strip=True), channel_names)
            return cache[key]

        today = datetime.now(get_zone(self.config.timezone)).date()
        limit = int(self.config.custom_config.get("max_blocks_per_page", 200))

        candidates = []
        for el in soup.find_all(BLOCK_TAGS):
            if len(candidates) >= limit:
                break
            if not qualifies(el):
                continue
            # Innermost only: a qualifying child carries the same listing
            if any(qualifies(child) for child in el.find_all(BLOCK_TAGS)):
                continue

            candidate = self._block_to_candidate(el, channel_names, today)
            if candidate is not None:
                candidates.append(candidate)

        return candidates

    @staticmethod
    def _is_listing(text: str, channel_names: list[str]) -> bool:
        if not text or len(text) > MAX_BLOCK_CHARS:
            return False
        lowered = text.lower()
        mentions = contains_sport_keyword(text) or any(n and n.lower() in lowered for n in channel_names)
        return mentions and parse_clock(text) is not None

    def _block_to_candidate(self, el: Tag, channel_names: list[str], today: date) -> dict[str, Any] | None:
        text = el.get_text(" ", strip=True)

        clock = parse_clock(text)
        if clock is None:
            return None
        hour, minute = clock

        home = away = None
        match = VERSUS.search(text)
        if match:
            home = self._trim_channel(match.group(1), channel_names, keep_after=True) or None
            away = self._trim_channel(match.group(2), channel_names, keep_after=False) or None
        if home and away:
            title = f"{home} vs {away}"
        else:
            home = away = None
            title = self._snippet(text)
        if not title:
            return None

        day = find_date(text, today)
        if day is None:
            heading = el.find_previous(HEADING_TAGS)
            if heading is not None:
                day = find_date(heading.get_text(" ", strip=True), today)
        if day is None:
            day = today

        sport = guess_sport_from_text(text)
        return {
            "title": title,
            "sport_type": sport.value if sport else "other",
            "home_team": home,
            "away_team": away,
            "start_time": f"{day.isoformat()}T{hour:02d}:{minute:02d}:00",
            "timezone": self.config.timezone,
            "channel_name": self._find_channel(text, channel_names),
        }

    def _find_channel(self, text: str, channel_names: list[str]) -> str:
        lowered = text.lower()
        mentioned = [n for n in channel_names if n and n.lower() in lowered]
        if mentioned:
            return max(mentioned, key=len)
        return self.config.custom_config.get("default_channel") or ""

    @staticmethod
    def _trim_channel(team: str, channel_names: list[str], keep_after: bool) -> str:
        """Cut a channel name that the team pattern swallowed ("Chelsea Sky Sports")."""
        team = team.strip()
        lowered = team.lower()
        for name in sorted(channel_names, key=len, reverse=True):
            pos = lowered.find(name.lower()) if name else -1
            if pos == -1:
                continue
            team = team[pos + len(name) :] if keep_after else team[:pos]
            lowered = team.lower()
        return team.strip()

    @staticmethod
    def _snippet(text: str) -> str:
        stripped = CLOCK_24H.sub(" ", CLOCK_12H.sub(" ", text))
        stripped = re.sub(r"\s+", " ", stripped).strip(" -|:,")
        if len(stripped) > SNIPPET_CHARS:
            stripped = stripped[:SNIPPET_CHARS].rsplit(" ", 1)[0] + "..."
        return stripped
