"""
Ingestion Orchestrator.

Drives one ingestion run for a tenant:

    Idle -> FetchingSources -> Normalizing -> Deduplicating -> Persisting -> Done
                                   \\-> Done(empty) when no source yields a usable event

Adapters run concurrently and are joined all-settled: a failing source is
recorded in the report and the others carry on. Only PersistenceFailure and
IngestionConfigError escape a run; everything else ends up in IngestReport.
"""

import asyncio
import logging
import uuid
import weakref
from collections import Counter
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

import httpx

from sportscast.configs.config import Config
from sportscast.configs.settings import Settings, get_settings
from sportscast.ingestion.adapters.base_adapter import (
    BaseSourceAdapter,
    DateWindow,
    FetchContext,
    FetchResult,
)
from sportscast.ingestion.channel_resolver import ChannelResolver
from sportscast.ingestion.deduplication import (
    DeduplicationStrategy,
    EventDeduplicator,
    ExactMatchDeduplicator,
    get_deduplicator,
)
from sportscast.ingestion.errors import (
    IngestError,
    IngestionConfigError,
    PersistenceFailure,
    SourceEmpty,
    SourceError,
    SourceMalformed,
    SourceUnavailable,
)
from sportscast.ingestion.factory import STATUS_CONFIGURED, STATUS_DISABLED, AdapterFactory
from sportscast.ingestion.llm.base_llm_client import BaseLLMClient
from sportscast.ingestion.normalization.sport_classifier import PROFILE_CLOSED
from sportscast.ingestion.normalizer import EventNormalizer
from sportscast.ingestion.persist import (
    ChannelDirectory,
    EventStore,
    PostgresChannelDirectory,
    PostgresEventStore,
)
from sportscast.monitoring.logging import with_context
from sportscast.schemas.channel import Channel
from sportscast.schemas.event import Event

logger = logging.getLogger(__name__)


class RunState(str, Enum):
    """States of one orchestrator run."""

    IDLE = "idle"
    FETCHING_SOURCES = "fetching_sources"
    NORMALIZING = "normalizing"
    DEDUPLICATING = "deduplicating"
    PERSISTING = "persisting"
    DONE = "done"
    DONE_EMPTY = "done_empty"


class SourceStatus(str, Enum):
    """Outcome of one source within a run."""

    OK = "ok"
    PARTIAL = "partial"
    EMPTY = "empty"
    UNAVAILABLE = "unavailable"
    MALFORMED = "malformed"
    TIMED_OUT = "timed_out"
    NOT_RUN = "not_run"
    NOT_CONFIGURED = "not_configured"
    DISABLED = "disabled"


@dataclass
class SourceReport:
    """Per-source counts for one run."""

    source_id: str
    source_type: str
    status: SourceStatus = SourceStatus.NOT_RUN
    fetched: int = 0
    skipped_at_source: int = 0
    normalized: int = 0
    rejected: dict[str, int] = field(default_factory=dict)
    fallback_channel_count: int = 0
    warnings: list[str] = field(default_factory=list)
    sources_consulted: list[str] = field(default_factory=list)
    duration_seconds: float = 0.0


@dataclass
class IngestReport:
    """
    Result of an ingestion run.

    skipped_count = skipped at source + rejected in normalization + duplicates.
    inserted_count is only set once the store confirmed the insert.
    """

    tenant_id: str
    run_id: str
    state: RunState = RunState.IDLE
    state_history: list[RunState] = field(default_factory=lambda: [RunState.IDLE])
    inserted_count: int = 0
    skipped_count: int = 0
    skipped_breakdown: dict[str, int] = field(default_factory=dict)
    per_source: dict[str, SourceReport] = field(default_factory=dict)
    errors: list[IngestError] = field(default_factory=list)
    inserted: list[Event] = field(default_factory=list)
    sport_breakdown: dict[str, int] = field(default_factory=dict)
    synthetic_used: bool = False
    started_at: datetime | None = None
    finished_at: datetime | None = None

    @property
    def per_source_counts(self) -> dict[str, int]:
        """Normalized events per source."""
        return {source_id: report.normalized for source_id, report in self.per_source.items()}

    @property
    def sources_consulted(self) -> list[str]:
        urls: list[str] = []
        for report in self.per_source.values():
            urls.extend(report.sources_consulted)
        return list(dict.fromkeys(urls))

    def transition(self, state: RunState) -> None:
        self.state = state
        self.state_history.append(state)

    def to_dict(self) -> dict[str, Any]:
        """JSON-friendly view of the report."""
        return {
            "tenant_id": self.tenant_id,
            "run_id": self.run_id,
            "state": self.state.value,
            "state_history": [s.value for s in self.state_history],
            "inserted_count": self.inserted_count,
            "skipped_count": self.skipped_count,
            "skipped_breakdown": self.skipped_breakdown,
            "per_source": {
                source_id: {**asdict(report), "status": report.status.value}
                for source_id, report in self.per_source.items()
            },
            "errors": [asdict(e) for e in self.errors],
            "sport_breakdown": self.sport_breakdown,
            "sources_consulted": self.sources_consulted,
            "synthetic_used": self.synthetic_used,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }


STATUS_BY_ERROR: dict[type[SourceError], SourceStatus] = {
    SourceUnavailable: SourceStatus.UNAVAILABLE,
    SourceMalformed: SourceStatus.MALFORMED,
}


class IngestionOrchestrator:
    """
    Coordinates adapters, normalization, deduplication and persistence.

    Runs for the same tenant are serialized in-process; the PostgreSQL
    store adds a unique index and an advisory lock across processes.
    """

    def __init__(
        self,
        adapters: list[BaseSourceAdapter],
        store: EventStore,
        channel_directory: ChannelDirectory | None = None,
        deduplicator: EventDeduplicator | None = None,
        resolver: ChannelResolver | None = None,
        sport_profile: str = PROFILE_CLOSED,
        window_days: int = 28,
        timeout: float | None = None,
        source_statuses: dict[str, str] | None = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            adapters: Adapters in precedence order (first wins on duplicates)
            store: Where events are read from and written to
            channel_directory: Looks up channels and data sources by tenant
            deduplicator: Defaults to exact identity-key matching
            resolver: Channel resolver shared by every source
            sport_profile: "closed" or "open" sport classification
            window_days: Length of the forward ingestion window
            timeout: Upper bound in seconds on source fetching
            source_statuses: Factory statuses of sources that were not built
        """
        self.logger = logging.getLogger("sportscast.orchestrator")
        self.adapters = list(adapters)
        self.store = store
        self.channel_directory = channel_directory
        self.deduplicator = deduplicator or ExactMatchDeduplicator()
        self.resolver = resolver or ChannelResolver()
        self.sport_profile = sport_profile
        self.window_days = window_days
        self.timeout = timeout
        self.source_statuses = dict(source_statuses or {})
        # Entries vanish once no run holds or awaits the lock
        self._tenant_locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    # ========================================================================
    # RUN
    # ========================================================================

    async def run(
        self,
        tenant_id: str,
        channels: list[Channel] | None = None,
        window: DateWindow | None = None,
        timeout: float | None = None,
    ) -> IngestReport:
        """
        Ingest events for one tenant.

        Args:
            tenant_id: Company the events belong to
            channels: Active channels; looked up in the channel directory if None
            window: Time window to ingest; the next `window_days` days if None
            timeout: Overrides the orchestrator timeout for this run

        Returns:
            IngestReport with counts, per-source outcomes and errors

        Raises:
            IngestionConfigError: The tenant has no active channels
            PersistenceFailure: Reading or writing the store failed
        """
        lock = self._tenant_locks.setdefault(tenant_id, asyncio.Lock())
        async with lock:
            return await self._run(tenant_id, channels, window, timeout if timeout is not None else self.timeout)

    async def _run(
        self,
        tenant_id: str,
        channels: list[Channel] | None,
        window: DateWindow | None,
        timeout: float | None,
    ) -> IngestReport:
        report = IngestReport(tenant_id=tenant_id, run_id=uuid.uuid4().hex[:12], started_at=datetime.now(UTC))
        log = with_context(self.logger, run_id=report.run_id, tenant_id=tenant_id)

        channels = await self._active_channels(tenant_id, channels)
        data_sources = []
        if self.channel_directory is not None:
            data_sources = await asyncio.to_thread(self.channel_directory.list_data_sources, tenant_id)

        ctx = FetchContext(
            tenant_id=tenant_id,
            channels=channels,
            window=window or DateWindow.next_days(self.window_days),
            data_sources=data_sources,
        )

        for source_id, status in self.source_statuses.items():
            report.per_source[source_id] = SourceReport(
                source_id=source_id,
                source_type="",
                status=SourceStatus.DISABLED if status == STATUS_DISABLED else SourceStatus.NOT_CONFIGURED,
            )

        # --- fetch ---------------------------------------------------------
        self._enter(report, RunState.FETCHING_SOURCES, log)
        results = await self._fetch_all(ctx, report, timeout, log)

        # --- normalize -----------------------------------------------------
        self._enter(report, RunState.NORMALIZING, log)
        candidates = self._normalize_all(results, channels, report, log)

        skipped_at_source = sum(r.skipped_at_source for r in report.per_source.values())
        rejected: Counter = Counter()
        for source_report in report.per_source.values():
            rejected.update(source_report.rejected)
        report.skipped_breakdown = {"skipped_at_source": skipped_at_source, **dict(rejected), "duplicate": 0}

        if not candidates:
            report.skipped_count = skipped_at_source + sum(rejected.values())
            self._enter(report, RunState.DONE_EMPTY, log)
            report.finished_at = datetime.now(UTC)
            log.info(f"No usable events from any source ({len(report.errors)} source errors)")
            return report

        # --- deduplicate ---------------------------------------------------
        self._enter(report, RunState.DEDUPLICATING, log)
        start = min([ctx.window.start] + [e.start_time for e in candidates])
        end = max([ctx.window.end] + [e.start_time for e in candidates])
        existing = await asyncio.to_thread(self.store.query_by_tenant_and_window, tenant_id, start, end)
        survivors = self.deduplicator.filter(candidates, existing)
        log.info(f"{len(survivors)}/{len(candidates)} candidates are new ({len(existing)} already stored)")

        # --- persist -------------------------------------------------------
        self._enter(report, RunState.PERSISTING, log)
        try:
            inserted = await asyncio.to_thread(self.store.insert_many, survivors) if survivors else []
        except PersistenceFailure as e:
            log.error(f"Persisting {len(survivors)} events failed: {e}")
            raise

        # Rows the store refused on its identity constraint count as duplicates
        duplicates = len(candidates) - len(inserted)
        report.inserted = inserted
        report.inserted_count = len(inserted)
        report.skipped_breakdown["duplicate"] = duplicates
        report.skipped_count = skipped_at_source + sum(rejected.values()) + duplicates
        report.sport_breakdown = dict(Counter(e.sport_type for e in inserted))

        self._enter(report, RunState.DONE, log)
        report.finished_at = datetime.now(UTC)
        log.info(
            f"Inserted {report.inserted_count} events, skipped {report.skipped_count} "
            f"({len(report.errors)} source errors)"
        )
        return report

    def _enter(self, report: IngestReport, state: RunState, log) -> None:
        report.transition(state)
        with_context(log, stage=state.value).info(f"Run state -> {state.value}")

    async def _active_channels(self, tenant_id: str, channels: list[Channel] | None) -> list[Channel]:
        if channels is None:
            if self.channel_directory is None:
                raise IngestionConfigError("No channels given and no channel directory configured")
            channels = await asyncio.to_thread(self.channel_directory.list_active_channels, tenant_id)

        active = [c for c in channels if c.is_active and c.company_id == tenant_id]
        if not active:
            raise IngestionConfigError(f"Tenant '{tenant_id}' has no active channels")
        return active

    # ========================================================================
    # FETCHING
    # ========================================================================

    async def _fetch_all(
        self,
        ctx: FetchContext,
        report: IngestReport,
        timeout: float | None,
        log,
    ) -> list[tuple[BaseSourceAdapter, FetchResult]]:
        """
        Run live adapters concurrently, then the fallback ones if no live adapter exists.

        Returns successful results in adapter order.
        """
        live = [a for a in self.adapters if a.is_live]
        fallback = [a for a in self.adapters if not a.is_live]

        for adapter in self.adapters:
            report.per_source[adapter.source_id] = SourceReport(
                source_id=adapter.source_id,
                source_type=adapter.source_type.value,
            )

        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout if timeout is not None else None

        settled = await self._fetch_concurrently(live, ctx, report, deadline, log)

        if fallback and live:
            log.info(f"Live sources configured, not running fallback sources {[a.source_id for a in fallback]}")
        elif fallback:
            log.warning("No live source configured, using the synthetic schedule")
            settled.update(await self._fetch_concurrently(fallback, ctx, report, deadline, log))
            report.synthetic_used = any(a.source_id in settled for a in fallback)

        return [(a, settled[a.source_id]) for a in self.adapters if a.source_id in settled]

    async def _fetch_concurrently(
        self,
        adapters: list[BaseSourceAdapter],
        ctx: FetchContext,
        report: IngestReport,
        deadline: float | None,
        log,
    ) -> dict[str, FetchResult]:
        if not adapters:
            return {}

        tasks = {asyncio.create_task(a.fetch(ctx), name=f"fetch-{a.source_id}"): a for a in adapters}
        remaining = None if deadline is None else max(0.0, deadline - asyncio.get_running_loop().time())
        done, pending = await asyncio.wait(tasks, timeout=remaining)

        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        settled: dict[str, FetchResult] = {}
        for task, adapter in tasks.items():
            source_log = with_context(log, source_id=adapter.source_id)
            source_report = report.per_source[adapter.source_id]

            if task in pending:
                source_report.status = SourceStatus.TIMED_OUT
                report.errors.append(
                    IngestError(adapter.source_id, SourceUnavailable.kind, "timed out before completing")
                )
                source_log.warning("Source timed out, its results are discarded")
                continue

            exc = task.exception()
            if exc is None:
                result = task.result()
                settled[adapter.source_id] = result
                source_report.status = SourceStatus.PARTIAL if result.is_partial else SourceStatus.OK
                source_report.fetched = result.total_fetched
                source_report.skipped_at_source = result.skipped_at_source
                source_report.warnings = list(result.warnings)
                source_report.sources_consulted = list(result.sources_consulted)
                source_report.duration_seconds = result.duration_seconds
            elif isinstance(exc, SourceEmpty):
                source_report.status = SourceStatus.EMPTY
                source_report.skipped_at_source = exc.skipped_at_source
                source_report.warnings = list(exc.warnings)
                source_report.sources_consulted = list(exc.sources_consulted)
                source_log.info(f"Source returned no usable events (skipped {exc.skipped_at_source})")
            elif isinstance(exc, SourceError):
                source_report.status = STATUS_BY_ERROR.get(type(exc), SourceStatus.UNAVAILABLE)
                report.errors.append(IngestError.from_exception(adapter.source_id, exc))
                source_log.warning(f"Source failed ({exc.kind}): {exc.message}")
            else:
                source_report.status = SourceStatus.UNAVAILABLE
                report.errors.append(IngestError.from_exception(adapter.source_id, exc))
                source_log.warning(f"Source raised {type(exc).__name__}: {exc}", exc_info=exc)

        return settled

    # ========================================================================
    # NORMALIZATION
    # ========================================================================

    def _normalize_all(
        self,
        results: list[tuple[BaseSourceAdapter, FetchResult]],
        channels: list[Channel],
        report: IngestReport,
        log,
    ) -> list[Event]:
        """Normalize every source's candidates, concatenated in adapter order."""
        candidates: list[Event] = []
        for adapter, result in results:
            normalizer = EventNormalizer(
                resolver=self.resolver,
                policy=adapter.config.unresolved_channel_policy,
                sport_profile=self.sport_profile,
                default_timezone=adapter.config.timezone,
            )
            events = normalizer.normalize_batch(result.raw_events, channels)
            candidates.extend(events)

            source_report = report.per_source[adapter.source_id]
            source_report.normalized = normalizer.stats.normalized
            source_report.rejected = dict(normalizer.stats.rejected)
            source_report.fallback_channel_count = normalizer.stats.fallback_channel_count

            if normalizer.stats.rejected_total:
                with_context(log, source_id=adapter.source_id).info(
                    f"Normalized {len(events)}, rejected {dict(normalizer.stats.rejected)}"
                )
            if normalizer.stats.fallback_channel_count:
                with_context(log, source_id=adapter.source_id).warning(
                    f"{normalizer.stats.fallback_channel_count} events assigned to the fallback channel"
                )
        return candidates

    async def close(self) -> None:
        """Close every adapter."""
        for adapter in self.adapters:
            await adapter.close()


# ============================================================================
# ENTRY POINTS
# ============================================================================


def build_orchestrator(
    store: EventStore | None = None,
    channel_directory: ChannelDirectory | None = None,
    config: dict | None = None,
    settings: Settings | None = None,
    http_client: httpx.AsyncClient | None = None,
    llm_client: BaseLLMClient | None = None,
) -> IngestionOrchestrator:
    """
    Build an orchestrator from ingestion.yaml and settings.

    The PostgreSQL store and directory are used when none are given; a
    store built here has its schema applied first.
    """
    settings = settings or get_settings()
    config = config if config is not None else Config.load_ingestion_config(settings=settings)
    defaults = config.get("defaults") or {}

    built = AdapterFactory(config, http_client=http_client, llm_client=llm_client).build_adapters()
    skipped = {source_id: status for source_id, status in built.statuses.items() if status != STATUS_CONFIGURED}

    if store is None or channel_directory is None:
        if not settings.DATABASE_URL:
            raise IngestionConfigError("DATABASE_URL is required when no store is given")
        if store is None:
            store = PostgresEventStore()
            store.ensure_schema()
        channel_directory = channel_directory or PostgresChannelDirectory()

    return IngestionOrchestrator(
        adapters=built.adapters,
        store=store,
        channel_directory=channel_directory,
        deduplicator=get_deduplicator(DeduplicationStrategy(defaults.get("deduplication_strategy", "exact"))),
        sport_profile=str(defaults.get("sport_profile") or settings.SPORT_PROFILE),
        window_days=int(defaults.get("window_days") or settings.INGEST_WINDOW_DAYS),
        timeout=settings.INGEST_TIMEOUT_S,
        source_statuses=skipped,
    )


async def ingest_async(
    tenant_id: str,
    channels: list[Channel] | None = None,
    orchestrator: IngestionOrchestrator | None = None,
    **build_kwargs,
) -> IngestReport:
    """Run one ingestion for a tenant, closing adapters afterwards."""
    orchestrator = orchestrator or build_orchestrator(**build_kwargs)
    try:
        return await orchestrator.run(tenant_id, channels)
    finally:
        await orchestrator.close()


def ingest(
    tenant_id: str,
    channels: list[Channel] | None = None,
    orchestrator: IngestionOrchestrator | None = None,
    **build_kwargs,
) -> IngestReport:
    """
    Ingest events for tenant X using these active channels.

    Synchronous wrapper around ingest_async for scripts and admin actions.
    """
    return asyncio.run(ingest_async(tenant_id, channels, orchestrator, **build_kwargs))
