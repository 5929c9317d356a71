"""
Adapter Factory for config-driven source creation.

Reads the `sources:` mapping of ingestion.yaml and builds one adapter per
enabled source, in file order (which is dedup precedence).

Usage:
    from sportscast.ingestion.factory import AdapterFactory

    factory = AdapterFactory()
    built = factory.build_adapters()
    for adapter in built.adapters:
        ...
"""

import logging
from dataclasses import dataclass, field
from typing import Any

import httpx

from sportscast.configs.config import Config
from sportscast.ingestion.adapters.base_adapter import (
    AdapterConfig,
    BaseSourceAdapter,
    HTTPSourceAdapter,
    SourceType,
)
from sportscast.ingestion.adapters.llm_search_adapter import LLMSearchAdapter
from sportscast.ingestion.adapters.scraper_adapter import HTMLScrapeAdapter
from sportscast.ingestion.adapters.sports_api_adapter import APIFootballAdapter, TheSportsDBAdapter
from sportscast.ingestion.adapters.synthetic_adapter import SyntheticAdapter
from sportscast.ingestion.channel_resolver import UnresolvedChannelPolicy
from sportscast.ingestion.errors import IngestionConfigError
from sportscast.ingestion.llm.base_llm_client import BaseLLMClient

logger = logging.getLogger(__name__)

# yaml `type` -> (adapter class, source type)
ADAPTER_TYPES: dict[str, tuple[type[BaseSourceAdapter], SourceType]] = {
    "llm_search": (LLMSearchAdapter, SourceType.LLM_SEARCH),
    "thesportsdb": (TheSportsDBAdapter, SourceType.SPORTS_API),
    "api_football": (APIFootballAdapter, SourceType.SPORTS_API),
    "html_scrape": (HTMLScrapeAdapter, SourceType.HTML_SCRAPE),
    "synthetic": (SyntheticAdapter, SourceType.SYNTHETIC),
}

# Source types that cannot run without an api_key
REQUIRES_API_KEY = {"llm_search", "api_football"}

# Keys consumed by AdapterConfig itself; everything else is custom_config
COMMON_KEYS = {
    "type",
    "enabled",
    "unresolved_channel_policy",
    "timezone",
    "request_timeout",
    "max_retries",
    "rate_limit_per_second",
}

STATUS_DISABLED = "disabled"
STATUS_NOT_CONFIGURED = "not configured"
STATUS_CONFIGURED = "configured"


@dataclass
class BuiltAdapters:
    """Adapters ready to run, plus the status of every configured source."""

    adapters: list[BaseSourceAdapter] = field(default_factory=list)
    statuses: dict[str, str] = field(default_factory=dict)


class AdapterFactory:
    """
    Factory for creating source adapters from YAML configuration.

    An HTTP client and an LLM client can be injected; they are handed to
    every adapter that needs one (tests, shared connection pools).
    """

    def __init__(
        self,
        config: dict | None = None,
        http_client: httpx.AsyncClient | None = None,
        llm_client: BaseLLMClient | None = None,
    ):
        """
        Initialize the factory.

        Args:
            config: Parsed ingestion config. Loaded from ingestion.yaml if not provided.
            http_client: Shared client for HTTP adapters
            llm_client: Client for the LLM search adapter
        """
        self._config = config
        self.http_client = http_client
        self.llm_client = llm_client

    @property
    def config(self) -> dict:
        """Load and cache configuration."""
        if self._config is None:
            self._config = Config.load_ingestion_config()
        return self._config

    @property
    def defaults(self) -> dict:
        return self.config.get("defaults") or {}

    def list_sources(self) -> dict[str, dict]:
        """
        List all configured sources with their status.

        Returns:
            Dict mapping source_id -> {enabled: bool, type: str}
        """
        sources = self.config.get("sources") or {}
        return {
            name: {"enabled": cfg.get("enabled", True), "type": cfg.get("type", name)}
            for name, cfg in sources.items()
        }

    def build_adapters(self) -> BuiltAdapters:
        """
        Create adapters for every enabled and configured source.

        Sources missing a required api_key are skipped and reported as
        "not configured".

        Raises:
            IngestionConfigError: Unknown source type or invalid adapter options
        """
        built = BuiltAdapters()
        sources = self.config.get("sources") or {}

        for source_id, source_config in sources.items():
            source_config = source_config or {}
            source_kind = source_config.get("type", source_id)

            if not source_config.get("enabled", True):
                built.statuses[source_id] = STATUS_DISABLED
                continue

            if source_kind in REQUIRES_API_KEY and not source_config.get("api_key"):
                injected = source_kind == "llm_search" and self.llm_client is not None
                if not injected:
                    logger.info(f"Source '{source_id}' has no api_key, skipping")
                    built.statuses[source_id] = STATUS_NOT_CONFIGURED
                    continue

            built.adapters.append(self.create_adapter(source_id, source_config))
            built.statuses[source_id] = STATUS_CONFIGURED

        return built

    def create_adapter(self, source_id: str, source_config: dict[str, Any]) -> BaseSourceAdapter:
        """
        Create the adapter for a single source.

        Raises:
            IngestionConfigError: Unknown source type or invalid adapter options
        """
        source_kind = source_config.get("type", source_id)
        if source_kind not in ADAPTER_TYPES:
            raise IngestionConfigError(f"Unknown source type '{source_kind}' for source '{source_id}'")
        adapter_cls, source_type = ADAPTER_TYPES[source_kind]

        try:
            adapter_config = AdapterConfig(
                source_id=source_id,
                source_type=source_type,
                enabled=source_config.get("enabled", True),
                unresolved_channel_policy=UnresolvedChannelPolicy(
                    source_config.get("unresolved_channel_policy", UnresolvedChannelPolicy.DROP.value)
                ),
                timezone=source_config.get("timezone") or self.defaults.get("timezone") or "UTC",
                request_timeout=float(source_config.get("request_timeout", 30.0)),
                max_retries=int(source_config.get("max_retries", 2)),
                rate_limit_per_second=float(source_config.get("rate_limit_per_second", 0.0)),
                custom_config={k: v for k, v in source_config.items() if k not in COMMON_KEYS},
            )

            if adapter_cls is LLMSearchAdapter:
                return LLMSearchAdapter(adapter_config, llm_client=self.llm_client)
            if issubclass(adapter_cls, HTTPSourceAdapter):
                return adapter_cls(adapter_config, client=self.http_client)
            return adapter_cls(adapter_config)
        except ValueError as e:
            raise IngestionConfigError(f"Invalid configuration for source '{source_id}': {e}") from e
