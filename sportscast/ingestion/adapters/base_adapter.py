"""
Base Source Adapter.

Abstract base class defining the interface for all source adapters.
Implements the Strategy pattern for different upstream origins: LLM web
search, public sports APIs, HTML scraping and the synthetic generator.

Every adapter shares one post-condition, enforced here: each RawEvent it
emits has a start_time with at least YYYY-MM-DD resolution and a non-empty
channel_name. Candidates failing it are counted as skipped at source.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, timedelta
from enum import Enum
from typing import Any

import httpx
from pydantic import ValidationError

from sportscast.ingestion.channel_resolver import UnresolvedChannelPolicy
from sportscast.ingestion.errors import SourceEmpty, SourceMalformed, SourceUnavailable
from sportscast.ingestion.normalization.time_parser import has_date_resolution
from sportscast.schemas.channel import Channel, DataSource
from sportscast.schemas.event import RawEvent

BROWSER_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
)


class SourceType(str, Enum):
    """Type of data source."""

    LLM_SEARCH = "llm_search"
    SPORTS_API = "sports_api"
    HTML_SCRAPE = "html_scrape"
    SYNTHETIC = "synthetic"


@dataclass(frozen=True)
class DateWindow:
    """Half-open UTC time window [start, end) being ingested."""

    start: datetime
    end: datetime

    @classmethod
    def next_days(cls, days: int = 28, now: datetime | None = None) -> "DateWindow":
        """Rolling window starting now."""
        now = now or datetime.now(UTC)
        return cls(start=now, end=now + timedelta(days=days))

    def days(self) -> Iterator[date]:
        """Each calendar date touched by the window, in order."""
        current = self.start.date()
        last = (self.end - timedelta(microseconds=1)).date()
        while current <= last:
            yield current
            current += timedelta(days=1)


@dataclass
class FetchContext:
    """Everything an adapter needs to know about the tenant being ingested."""

    tenant_id: str
    channels: list[Channel]
    window: DateWindow
    data_sources: list[DataSource] = field(default_factory=list)

    @property
    def channel_names(self) -> list[str]:
        return [c.name for c in self.channels]


@dataclass
class FetchResult:
    """
    Result of a data fetch operation.

    Provides a unified result format for every adapter type.
    """

    source_id: str
    source_type: SourceType
    raw_events: list[RawEvent] = field(default_factory=list)
    total_fetched: int = 0
    skipped_at_source: int = 0
    sources_consulted: list[str] = field(default_factory=list)
    # Partial failures that did not stop the source, e.g. one day of a window
    warnings: list[str] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)
    fetch_started_at: datetime | None = None
    fetch_ended_at: datetime | None = None

    @property
    def duration_seconds(self) -> float:
        """Calculate fetch duration."""
        if self.fetch_started_at and self.fetch_ended_at:
            return (self.fetch_ended_at - self.fetch_started_at).total_seconds()
        return 0.0

    @property
    def is_partial(self) -> bool:
        return bool(self.warnings)


@dataclass
class AdapterConfig:
    """
    Base configuration for source adapters.

    Extended by specific adapter types.
    """

    source_id: str
    source_type: SourceType
    enabled: bool = True
    unresolved_channel_policy: UnresolvedChannelPolicy = UnresolvedChannelPolicy.DROP
    timezone: str = "UTC"
    request_timeout: float = 30.0
    max_retries: int = 2
    rate_limit_per_second: float = 0.0
    custom_config: dict[str, Any] = field(default_factory=dict)


class BaseSourceAdapter(ABC):
    """
    Abstract base class for source adapters.

    Subclasses implement:
        - _fetch_candidates(): pull candidate dicts from the upstream
        - _validate_config(): validate adapter-specific configuration

    fetch() wraps them with timing, the shared post-condition and the
    empty-result signal.
    """

    # Live adapters talk to a real upstream; the synthetic one does not
    is_live: bool = True

    def __init__(self, config: AdapterConfig):
        """
        Initialize the adapter.

        Args:
            config: AdapterConfig with source-specific settings
        """
        self.config = config
        self.logger = logging.getLogger(f"sportscast.adapter.{config.source_id}")
        self._validate_config()

    @property
    def source_type(self) -> SourceType:
        """Get the source type."""
        return self.config.source_type

    @property
    def source_id(self) -> str:
        """Get the source identifier."""
        return self.config.source_id

    async def fetch(self, ctx: FetchContext) -> FetchResult:
        """
        Fetch candidate events for a tenant.

        Returns:
            FetchResult with at least one RawEvent

        Raises:
            SourceUnavailable: Upstream unreachable or refused the request
            SourceMalformed: Upstream answered with an unexpected shape
            SourceEmpty: No candidate survived the post-condition
        """
        result = FetchResult(
            source_id=self.source_id,
            source_type=self.source_type,
            fetch_started_at=datetime.now(UTC),
        )

        candidates = await self._fetch_candidates(ctx, result)
        result.total_fetched = len(candidates)

        for candidate in candidates:
            raw = self._accept(candidate)
            if raw is None:
                result.skipped_at_source += 1
            else:
                result.raw_events.append(raw)

        result.fetch_ended_at = datetime.now(UTC)
        self.logger.info(
            f"Fetched {result.total_fetched} candidates, kept {len(result.raw_events)}, "
            f"skipped {result.skipped_at_source} in {result.duration_seconds:.1f}s"
        )

        if not result.raw_events:
            raise SourceEmpty(
                self.source_id,
                skipped_at_source=result.skipped_at_source,
                sources_consulted=result.sources_consulted,
                warnings=result.warnings,
            )
        return result

    @abstractmethod
    async def _fetch_candidates(self, ctx: FetchContext, result: FetchResult) -> list[dict[str, Any]]:
        """
        Pull raw candidates from the upstream.

        Implementations may record warnings, sources consulted and metadata
        on `result`. Returned dicts use RawEvent field names.
        """
        pass

    @abstractmethod
    def _validate_config(self) -> None:
        """
        Validate adapter-specific configuration.

        Raises:
            ValueError: If configuration is invalid
        """
        pass

    def _accept(self, candidate: dict[str, Any] | RawEvent) -> RawEvent | None:
        """Apply the shared post-condition; None means skipped at source."""
        data = candidate.model_dump() if isinstance(candidate, RawEvent) else dict(candidate)
        data.setdefault("source_id", self.source_id)
        if not data.get("timezone"):
            data["timezone"] = self.config.timezone

        try:
            raw = RawEvent.model_validate(data)
        except ValidationError as e:
            self.logger.debug(f"Dropping candidate {data.get('title')!r}: {e.error_count()} invalid fields")
            return None

        if not has_date_resolution(raw.start_time):
            self.logger.debug(f"Dropping candidate {raw.title!r}: start_time {raw.start_time!r}")
            return None
        return raw

    async def close(self) -> None:
        """
        Release any resources held by the adapter.

        Override in subclasses that hold resources (e.g., HTTP clients).
        """
        pass

    async def __aenter__(self) -> "BaseSourceAdapter":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


class HTTPSourceAdapter(BaseSourceAdapter):
    """
    Base for adapters that talk HTTP.

    Owns an httpx.AsyncClient with a browser-like User-Agent, applies the
    configured rate limit and retries transient failures with exponential
    backoff. Failures surface as SourceUnavailable / SourceMalformed.
    """

    def __init__(self, config: AdapterConfig, client: httpx.AsyncClient | None = None):
        self._client = client
        self._owns_client = client is None
        super().__init__(config)

    def _default_headers(self) -> dict[str, str]:
        return {"User-Agent": BROWSER_USER_AGENT}

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create async HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers=self._default_headers(),
                follow_redirects=True,
                timeout=self.config.request_timeout,
            )
            self._owns_client = True
        return self._client

    async def _request(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        retry_count: int = 0,
    ) -> httpx.Response:
        """
        GET with retry logic.

        Retries transport errors, 429 and 5xx. Other 4xx fail immediately.

        Raises:
            SourceUnavailable: After retries are exhausted
        """
        client = self._get_client()

        if self.config.rate_limit_per_second > 0:
            await asyncio.sleep(1.0 / self.config.rate_limit_per_second)

        try:
            response = await client.get(url, params=params, headers=headers, timeout=self.config.request_timeout)
            response.raise_for_status()
            return response

        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            retryable = status == 429 or status >= 500
            if retryable and retry_count < self.config.max_retries:
                return await self._retry(url, params, headers, retry_count, e)
            raise SourceUnavailable(self.source_id, f"HTTP {status} from {url}") from e

        except httpx.HTTPError as e:
            if retry_count < self.config.max_retries:
                return await self._retry(url, params, headers, retry_count, e)
            raise SourceUnavailable(self.source_id, f"{type(e).__name__} for {url}: {e}") from e

    async def _retry(self, url, params, headers, retry_count: int, error: Exception) -> httpx.Response:
        wait_time = 2**retry_count
        self.logger.warning(f"Request failed, retrying in {wait_time}s: {error}")
        await asyncio.sleep(wait_time)
        return await self._request(url, params, headers, retry_count + 1)

    async def _request_json(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        """GET and decode JSON. Non-JSON bodies raise SourceMalformed."""
        response = await self._request(url, params=params, headers=headers)
        try:
            return response.json()
        except ValueError as e:
            raise SourceMalformed(self.source_id, f"Non-JSON response from {url}") from e

    async def close(self) -> None:
        """Close async HTTP client."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None
