"""OpenAI chat completions backend for the external ranker.

Setting ``OPENAI_BASE_URL`` points the client at any OpenAI-compatible
server (Together, Groq, a local vLLM); the provider then reports itself as
``openai-compatible``.
"""

from __future__ import annotations

from typing import NoReturn

import openai
import structlog

from suggestion_engine.config.settings import Settings
from suggestion_engine.interfaces.llm_provider import ILLMProvider
from suggestion_engine.utils.errors import LLMError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_MODEL = "gpt-4o-mini"
_REQUEST_TIMEOUT = 30.0
_CONNECT_TIMEOUT = 5.0


class OpenAILLMProvider(ILLMProvider):
    def __init__(self, settings: Settings) -> None:
        self._api_key = settings.openai_api_key
        self._label = "openai-compatible" if settings.openai_base_url else "openai"
        self._model = settings.openai_text_model or _DEFAULT_MODEL
        self._client = openai.AsyncOpenAI(
            api_key=self._api_key,
            base_url=settings.openai_base_url or None,
            timeout=openai.Timeout(_REQUEST_TIMEOUT, connect=_CONNECT_TIMEOUT),
        )

    @property
    def model_name(self) -> str:
        return self._model

    def _fail(self, message: str, cause: Exception | None = None) -> NoReturn:
        raise LLMError(message=f"{self._label}: {message}", provider_name=self._label) from cause

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.2,
        max_tokens: int = 1500,
    ) -> str:
        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except openai.APITimeoutError as exc:
            self._fail(f"no reply within {_REQUEST_TIMEOUT:.0f}s", exc)
        except openai.APIError as exc:
            self._fail(f"request failed ({exc})", exc)

        if not response.choices or not response.choices[0].message.content:
            self._fail("empty completion")

        logger.info(
            "llm_completion",
            provider=self._label,
            model=self._model,
            tokens=response.usage.total_tokens if response.usage else None,
        )
        return response.choices[0].message.content

    def is_available(self) -> bool:
        return bool(self._api_key)

    def get_provider_name(self) -> str:
        return self._label
