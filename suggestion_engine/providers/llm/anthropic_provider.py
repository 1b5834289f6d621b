"""Anthropic Messages API backend for the external ranker.

The system prompt travels as its own parameter; the reply is a list of
content blocks and only the text blocks are kept.
"""

from __future__ import annotations

import anthropic
import structlog

from suggestion_engine.config.settings import Settings
from suggestion_engine.interfaces.llm_provider import ILLMProvider
from suggestion_engine.utils.errors import LLMError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_MODEL = "claude-sonnet-4-20250514"
_PROVIDER = "anthropic"


class AnthropicLLMProvider(ILLMProvider):
    def __init__(self, settings: Settings) -> None:
        self._api_key = settings.anthropic_api_key
        self._model = settings.anthropic_model or _DEFAULT_MODEL
        self._client = anthropic.AsyncAnthropic(api_key=self._api_key)

    @property
    def model_name(self) -> str:
        return self._model

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.2,
        max_tokens: int = 1500,
    ) -> str:
        try:
            response = await self._client.messages.create(
                model=self._model,
                system=system_prompt,
                messages=[{"role": "user", "content": user_prompt}],
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except anthropic.APIError as exc:
            raise LLMError(message=f"anthropic: request failed ({exc})", provider_name=_PROVIDER) from exc

        text = "\n".join(block.text for block in response.content if block.type == "text")
        if not text:
            raise LLMError(message="anthropic: reply had no text blocks", provider_name=_PROVIDER)

        usage = getattr(response, "usage", None)
        logger.info(
            "llm_completion",
            provider=_PROVIDER,
            model=self._model,
            input_tokens=getattr(usage, "input_tokens", None),
            output_tokens=getattr(usage, "output_tokens", None),
        )
        return text

    def is_available(self) -> bool:
        return bool(self._api_key)

    def get_provider_name(self) -> str:
        return _PROVIDER
