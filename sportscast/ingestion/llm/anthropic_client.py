"""
Anthropic Claude client with web search and structured output.

The model gets two tools: Anthropic's server-side web search and a
`structured_output` tool whose input schema is the requested Pydantic
model. Searches happen server-side within a single messages call.
"""

import logging

import anthropic
from pydantic import BaseModel

from sportscast.configs.settings import get_settings
from sportscast.ingestion.llm.base_llm_client import (
    BaseLLMClient,
    LLMSearchOutput,
    LLMUnavailableError,
)

logger = logging.getLogger(__name__)

STRUCTURED_TOOL_NAME = "structured_output"
WEB_SEARCH_TOOL_TYPE = "web_search_20250305"


class AnthropicLLMClient(BaseLLMClient):
    """
    Anthropic Claude client for schedule discovery.

    Lazy initialization: the SDK client is only created on first use.
    """

    provider = "anthropic"

    def __init__(
        self,
        model_name: str = "claude-sonnet-4-5",
        api_key: str | None = None,
        temperature: float = 0.0,
        request_timeout: float = 120.0,
    ):
        self.model_name = model_name
        self.temperature = temperature
        self.request_timeout = request_timeout

        settings = get_settings()
        self._api_key: str | None = api_key or (
            settings.ANTHROPIC_API_KEY.get_secret_value() if settings.ANTHROPIC_API_KEY else None
        )
        self._client: anthropic.AsyncAnthropic | None = None
        self._last_usage: dict[str, int] = self._empty_usage()

    @property
    def is_available(self) -> bool:
        return bool(self._api_key)

    def _get_client(self) -> anthropic.AsyncAnthropic:
        if self._client is None:
            if not self._api_key:
                raise LLMUnavailableError("ANTHROPIC_API_KEY is not configured")
            self._client = anthropic.AsyncAnthropic(api_key=self._api_key, timeout=self.request_timeout)
        return self._client

    async def search_structured(
        self,
        system_prompt: str,
        user_prompt: str,
        output_schema: type[BaseModel],
        max_searches: int = 5,
        max_tokens: int = 8000,
    ) -> LLMSearchOutput:
        """
        Search, then answer through the structured_output tool.

        tool_choice stays "auto" so the model may search before answering;
        a model that answers in plain text is returned as `text`.
        """
        client = self._get_client()

        tools = [
            {"type": WEB_SEARCH_TOOL_TYPE, "name": "web_search", "max_uses": max_searches},
            {
                "name": STRUCTURED_TOOL_NAME,
                "description": f"Return the final answer as {output_schema.__name__}",
                "input_schema": output_schema.model_json_schema(),
            },
        ]

        try:
            resp = await client.messages.create(
                model=self.model_name,
                max_tokens=max_tokens,
                temperature=self.temperature,
                system=system_prompt,
                tools=tools,
                messages=[{"role": "user", "content": user_prompt}],
            )
        except anthropic.APIError as e:
            logger.warning(f"Anthropic request failed: {type(e).__name__}: {e}")
            raise LLMUnavailableError(f"{type(e).__name__}: {e}") from e

        self._last_usage = {
            "prompt_tokens": resp.usage.input_tokens,
            "completion_tokens": resp.usage.output_tokens,
            "total": resp.usage.input_tokens + resp.usage.output_tokens,
        }

        output = LLMSearchOutput()
        texts = []
        for block in resp.content:
            if block.type == "tool_use" and block.name == STRUCTURED_TOOL_NAME:
                output.structured = dict(block.input)
            elif block.type == "text":
                texts.append(block.text)
                for citation in getattr(block, "citations", None) or []:
                    url = getattr(citation, "url", None)
                    if url:
                        output.citations.append(url)
            elif block.type == "web_search_tool_result":
                results = block.content if isinstance(block.content, list) else []
                for result in results:
                    url = getattr(result, "url", None)
                    if url:
                        output.citations.append(url)

        output.text = "\n".join(texts)
        output.citations = list(dict.fromkeys(output.citations))
        return output

    def get_token_usage(self) -> dict[str, int]:
        return self._last_usage
