"""Anthropic messages adapter."""

from __future__ import annotations

import logging
import time
from typing import Any

from ahara.core.errors import UpstreamFailure
from ahara.core.llm.provider import ProviderResponse

logger = logging.getLogger(__name__)


class AnthropicProvider:
    """Diet-plan completions from Claude; text blocks of the reply are joined."""

    def __init__(
        self,
        api_key: str,
        model: str = "claude-sonnet-4-20250514",
        client: Any = None,
    ) -> None:
        if client is None:
            import anthropic

            client = anthropic.AsyncAnthropic(api_key=api_key)
        self.client = client
        self.model = model

    async def generate(
        self,
        system_message: str,
        user_message: str,
        max_tokens: int = 4000,
        temperature: float = 0.7,
    ) -> ProviderResponse:
        start = time.monotonic()
        response = await self.client.messages.create(
            model=self.model,
            max_tokens=max_tokens,
            temperature=temperature,
            system=system_message,
            messages=[{"role": "user", "content": user_message}],
        )
        elapsed_ms = (time.monotonic() - start) * 1000

        if getattr(response, "stop_reason", None) == "max_tokens":
            logger.warning("Anthropic reply hit max_tokens=%d; plan JSON may be cut off", max_tokens)
        text = "".join(
            block.text for block in response.content if getattr(block, "type", "") == "text"
        )
        if not text.strip():
            raise UpstreamFailure("Anthropic returned no text content")

        return ProviderResponse(
            content=text,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            model=getattr(response, "model", None) or self.model,
            latency_ms=elapsed_ms,
        )
