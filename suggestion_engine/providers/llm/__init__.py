"""LLM provider adapters used by the external ranker.

Two concrete implementations of ILLMProvider
(suggestion_engine/interfaces/llm_provider.py):
    - AnthropicLLMProvider - Claude via the Messages API
    - OpenAILLMProvider    - gpt-4o-mini, or any OpenAI-compatible endpoint

main.py picks the first provider with a configured API key (Anthropic,
then OpenAI).  With neither key set the external ranker is left out of the
provider list.
"""

from suggestion_engine.providers.llm.anthropic_provider import AnthropicLLMProvider
from suggestion_engine.providers.llm.openai_provider import OpenAILLMProvider

__all__ = ["AnthropicLLMProvider", "OpenAILLMProvider"]
