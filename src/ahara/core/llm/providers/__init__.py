"""Diet-plan LLM backends, keyed by the ``LLM_PROVIDER`` setting value."""

from ahara.core.llm.providers.anthropic import AnthropicProvider
from ahara.core.llm.providers.mock import MockProvider
from ahara.core.llm.providers.openai import OpenAIProvider

PROVIDER_CLASSES = {
    "openai": OpenAIProvider,
    "anthropic": AnthropicProvider,
    "mock": MockProvider,
}

__all__ = ["AnthropicProvider", "MockProvider", "OpenAIProvider", "PROVIDER_CLASSES"]
