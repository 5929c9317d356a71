"""
Abstract LLM client interface.

The LLM-search adapter talks to a model that can browse the web. Providers
implement search_structured(), which lets the model search and then return
a JSON payload matching a Pydantic schema.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class LLMUnavailableError(Exception):
    """The provider could not be reached, refused the key, or timed out."""


@dataclass
class LLMSearchOutput:
    """
    What came back from a search-and-answer call.

    `structured` holds the tool payload when the model used the structured
    output tool; otherwise `text` holds its free-text answer.
    """

    structured: dict[str, Any] | None = None
    text: str = ""
    citations: list[str] = field(default_factory=list)


class BaseLLMClient(ABC):
    """
    Abstract async LLM client.

    Providers implement search_structured() for web-grounded structured
    output.
    """

    provider: str = "base"

    @abstractmethod
    async def search_structured(
        self,
        system_prompt: str,
        user_prompt: str,
        output_schema: type[BaseModel],
        max_searches: int = 5,
        max_tokens: int = 8000,
    ) -> LLMSearchOutput:
        """
        Let the model search the web, then answer in `output_schema`.

        Raises:
            LLMUnavailableError: On transport, auth or provider errors
        """
        ...

    @abstractmethod
    def get_token_usage(self) -> dict[str, int]:
        """Returns {'prompt_tokens': N, 'completion_tokens': N, 'total': N} for last call."""
        ...

    @property
    def is_available(self) -> bool:
        """Returns True if the client has a valid API key and can make calls."""
        return False

    def _empty_usage(self) -> dict[str, int]:
        return {"prompt_tokens": 0, "completion_tokens": 0, "total": 0}
