"""Text-completion backend used by the external ranker signal.

The ranker sends one system prompt (the scoring rubric) and one user prompt
(the source game plus a numbered candidate pool) and expects a JSON array
back.  Everything vendor-specific stays behind this interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Implementations: AnthropicLLMProvider, OpenAILLMProvider
# in suggestion_engine/providers/llm/
class ILLMProvider(ABC):
    """A chat model that turns a rubric plus a candidate pool into text."""

    @abstractmethod
    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.2,
        max_tokens: int = 1500,
    ) -> str:
        """Return the model's reply to *user_prompt* under *system_prompt*.

        Raises
        ------
        suggestion_engine.utils.errors.LLMError
            The call failed, timed out, or produced no text.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Short backend label for logs and ``/health`` (``"anthropic"``)."""

    @abstractmethod
    def is_available(self) -> bool:
        """Whether credentials are configured.  Makes no network call."""

    @property
    def model_name(self) -> str:
        """Model identifier sent with each request, if the backend has one."""
        return ""
