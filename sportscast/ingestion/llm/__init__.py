from sportscast.ingestion.llm.anthropic_client import AnthropicLLMClient
from sportscast.ingestion.llm.base_llm_client import (
    BaseLLMClient,
    LLMSearchOutput,
    LLMUnavailableError,
)

__all__ = ["AnthropicLLMClient", "BaseLLMClient", "LLMSearchOutput", "LLMUnavailableError"]
