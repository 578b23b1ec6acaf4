"""Completion client: the bridge between the orchestrator and an LLM provider."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from ahara.core.llm.provider import LLMProvider, ProviderResponse
from ahara.core.llm.system_prompt import build_full_system_prompt

logger = logging.getLogger(__name__)


@dataclass
class CompletionResult:
    """Raw completion text plus usage accounting."""

    content: str
    model: str
    usage: dict[str, int] = field(default_factory=dict)
    latency_ms: float = 0.0

    @property
    def tokens_used(self) -> int:
        return self.usage.get("input_tokens", 0) + self.usage.get("output_tokens", 0)


class CompletionClient:
    """Invokes the diet-plan specialist LLM with a fully built user prompt."""

    def __init__(self, provider: LLMProvider) -> None:
        self.provider = provider

    async def complete(
        self,
        user_message: str,
        max_tokens: int = 4000,
        temperature: float = 0.7,
        extra_instructions: str = "",
    ) -> CompletionResult:
        """Send one prompt and return the completion; provider errors propagate."""
        full_system = build_full_system_prompt(extra_instructions)

        provider_response: ProviderResponse = await self.provider.generate(
            system_message=full_system,
            user_message=user_message,
            max_tokens=max_tokens,
            temperature=temperature,
        )

        logger.info(
            "Diet-plan LLM call: model=%s, tokens=%d+%d, latency=%.0fms",
            provider_response.model,
            provider_response.input_tokens,
            provider_response.output_tokens,
            provider_response.latency_ms,
        )

        return CompletionResult(
            content=provider_response.content,
            model=provider_response.model,
            usage={
                "input_tokens": provider_response.input_tokens,
                "output_tokens": provider_response.output_tokens,
            },
            latency_ms=provider_response.latency_ms,
        )
