"""
LLM Search Adapter.

Asks a web-browsing LLM for the televised sports schedule of the tenant's
channels over the ingestion window. The model answers in a fixed JSON
shape (events, sources_searched, sport_breakdown); this adapter only
converts that shape into RawEvents and never fills in missing fields.
"""

import json
import re
from typing import Any

from pydantic import BaseModel, Field

from sportscast.ingestion.adapters.base_adapter import (
    AdapterConfig,
    BaseSourceAdapter,
    FetchContext,
    FetchResult,
)
from sportscast.ingestion.errors import SourceMalformed, SourceUnavailable
from sportscast.ingestion.llm.anthropic_client import AnthropicLLMClient
from sportscast.ingestion.llm.base_llm_client import BaseLLMClient, LLMUnavailableError
from sportscast.schemas.event import SportType

SYSTEM_PROMPT = (
    "You are a sports listings researcher for UK pubs and bars. You search the web "
    "for upcoming televised sports and report only fixtures you found in a source. "
    "Never invent fixtures, kick-off times or broadcasters."
)

FENCED_JSON = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL)


class LLMEventCandidate(BaseModel):
    """One televised event as the model reports it."""

    title: str
    sport_type: SportType
    channel_name: str
    start_time: str = Field(..., description="ISO 8601 date-time, e.g. 2025-10-22T19:45:00")
    end_time: str | None = None
    description: str | None = None
    league: str | None = None
    home_team: str | None = None
    away_team: str | None = None


class LLMSearchResponse(BaseModel):
    """Response shape the model must answer in."""

    events: list[LLMEventCandidate] = Field(default_factory=list)
    sources_searched: list[str] = Field(default_factory=list)
    sport_breakdown: dict[str, int] = Field(default_factory=dict)


class LLMSearchAdapter(BaseSourceAdapter):
    """
    Adapter for LLM web search.

    custom_config:
        model_name: Provider model id
        api_key: Provider key (falls back to settings)
        max_searches: Upper bound on web searches per run
        max_tokens: Response token budget
    """

    def __init__(self, config: AdapterConfig, llm_client: BaseLLMClient | None = None):
        super().__init__(config)
        self.llm_client = llm_client or AnthropicLLMClient(
            model_name=config.custom_config.get("model_name", "claude-sonnet-4-5"),
            api_key=config.custom_config.get("api_key") or None,
            request_timeout=config.request_timeout,
        )

    def _validate_config(self) -> None:
        max_searches = self.config.custom_config.get("max_searches", 8)
        if not isinstance(max_searches, int) or max_searches < 1:
            raise ValueError(f"max_searches must be a positive integer, got {max_searches!r}")

    def build_prompt(self, ctx: FetchContext) -> str:
        """User prompt for one tenant and window."""
        start = ctx.window.start.date().isoformat()
        end = ctx.window.end.date().isoformat()
        channels = ", ".join(ctx.channel_names)

        lines = [
            f"Find televised live sports events between {start} and {end} "
            f"on these channels: {channels}.",
            "",
            "Check the broadcasters' own TV guides and league fixture lists. "
            "Cover football, rugby, cricket, tennis, Formula 1, boxing and golf.",
        ]

        urls = [s.url for s in ctx.data_sources if s.url]
        if urls:
            lines += ["", "Also check these websites:"]
            lines += [f"- {s.name}: {s.url}" for s in ctx.data_sources if s.url]

        lines += [
            "",
            "For each event give the title (e.g. 'Arsenal vs Chelsea'), sport_type, "
            "channel_name exactly as one of the channels above, start_time in ISO 8601 "
            "UK local time, and league, home_team, away_team where known.",
            "List every URL you used in sources_searched and count events per sport "
            "in sport_breakdown.",
            "Return the result with the structured_output tool.",
        ]
        return "\n".join(lines)

    async def _fetch_candidates(self, ctx: FetchContext, result: FetchResult) -> list[dict[str, Any]]:
        cfg = self.config.custom_config

        try:
            output = await self.llm_client.search_structured(
                system_prompt=SYSTEM_PROMPT,
                user_prompt=self.build_prompt(ctx),
                output_schema=LLMSearchResponse,
                max_searches=cfg.get("max_searches", 8),
                max_tokens=cfg.get("max_tokens", 8000),
            )
        except LLMUnavailableError as e:
            raise SourceUnavailable(self.source_id, str(e)) from e

        payload = output.structured if output.structured is not None else self._parse_text(output.text)
        if not isinstance(payload, dict) or not isinstance(payload.get("events"), list):
            raise SourceMalformed(self.source_id, "response has no 'events' array")

        sources = payload.get("sources_searched")
        if isinstance(sources, list):
            result.sources_consulted.extend(str(s) for s in sources if s)
        result.sources_consulted.extend(output.citations)
        result.sources_consulted = list(dict.fromkeys(result.sources_consulted))

        breakdown = payload.get("sport_breakdown")
        if isinstance(breakdown, dict):
            result.metadata["reported_sport_breakdown"] = breakdown
        result.metadata["token_usage"] = self.llm_client.get_token_usage()

        # Items are validated one by one; a bad item is skipped, not fatal
        return [item if isinstance(item, dict) else {} for item in payload["events"]]

    def _parse_text(self, text: str) -> Any:
        """
        Recover a JSON payload from a free-text answer.

        Accepts a bare object, a fenced ```json block, or a bare array of
        events (wrapped as {"events": [...]}).

        Raises:
            SourceMalformed: If no JSON can be found
        """
        if not text or not text.strip():
            raise SourceMalformed(self.source_id, "empty response")

        chunks = [m.group(1) for m in FENCED_JSON.finditer(text)] + [text]
        for chunk in chunks:
            # Try the outermost bracket first so an array is not read as its first item
            pairs = sorted((("{", "}"), ("[", "]")), key=lambda p: (chunk.find(p[0]) == -1, chunk.find(p[0])))
            for opener, closer in pairs:
                start, end = chunk.find(opener), chunk.rfind(closer)
                if start == -1 or end <= start:
                    continue
                try:
                    data = json.loads(chunk[start : end + 1])
                except ValueError:
                    continue
                return {"events": data} if isinstance(data, list) else data

        raise SourceMalformed(self.source_id, "response is not JSON")
