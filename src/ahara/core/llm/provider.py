"""LLM provider protocol: the interface every diet-plan completion backend meets."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@dataclass
class ProviderResponse:
    """Response from an LLM provider."""

    content: str
    input_tokens: int
    output_tokens: int
    model: str
    latency_ms: float

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


@runtime_checkable
class LLMProvider(Protocol):
    """Abstract interface for a black-box text-completion service."""

    async def generate(
        self,
        system_message: str,
        user_message: str,
        max_tokens: int = 4000,
        temperature: float = 0.7,
    ) -> ProviderResponse: ...


# Env var that holds each provider's credential
CREDENTIAL_NAMES = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
}

DEFAULT_MODELS = {
    "openai": "gpt-4o-mini",
    "anthropic": "claude-sonnet-4-20250514",
    "mock": "mock",
}


def create_provider(
    provider_name: str,
    api_key: str = "",
    model: str = "",
) -> LLMProvider:
    """Build the diet-plan LLM backend named by ``LLM_PROVIDER``.

    Args:
        provider_name: "openai", "anthropic", or "mock"
        api_key: API key for the provider.
        model: Model identifier override.

    Raises:
        ValueError: For a provider name with no backend.
    """
    from ahara.core.llm.providers import PROVIDER_CLASSES

    provider_cls = PROVIDER_CLASSES.get(provider_name)
    if provider_cls is None:
        raise ValueError(f"Unknown LLM provider: {provider_name}")
    if provider_name == "mock":
        return provider_cls()
    return provider_cls(api_key=api_key, model=model or DEFAULT_MODELS[provider_name])
