"""
Source adapters.

One adapter per upstream origin, all behind BaseSourceAdapter.fetch().
"""

from sportscast.ingestion.adapters.base_adapter import (
    AdapterConfig,
    BaseSourceAdapter,
    DateWindow,
    FetchContext,
    FetchResult,
    HTTPSourceAdapter,
    SourceType,
)
from sportscast.ingestion.adapters.llm_search_adapter import LLMSearchAdapter
from sportscast.ingestion.adapters.scraper_adapter import HTMLScrapeAdapter
from sportscast.ingestion.adapters.sports_api_adapter import APIFootballAdapter, TheSportsDBAdapter
from sportscast.ingestion.adapters.synthetic_adapter import SyntheticAdapter

__all__ = [
    "AdapterConfig",
    "APIFootballAdapter",
    "BaseSourceAdapter",
    "DateWindow",
    "FetchContext",
    "FetchResult",
    "HTMLScrapeAdapter",
    "HTTPSourceAdapter",
    "LLMSearchAdapter",
    "SourceType",
    "SyntheticAdapter",
    "TheSportsDBAdapter",
]
