"""OpenAI chat-completions adapter, the default diet-plan backend."""

from __future__ import annotations

import logging
import time
from typing import Any

from ahara.core.errors import UpstreamFailure
from ahara.core.llm.provider import ProviderResponse

logger = logging.getLogger(__name__)


class OpenAIProvider:
    """Sends the diet-plan system and user messages as one chat turn.

    ``client`` may be any object shaped like ``openai.AsyncOpenAI``; when it
    is omitted one is built from ``api_key``.
    """

    def __init__(self, api_key: str, model: str = "gpt-4o-mini", client: Any = None) -> None:
        if client is None:
            import openai

            client = openai.AsyncOpenAI(api_key=api_key)
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
        response = await self.client.chat.completions.create(
            model=self.model,
            max_tokens=max_tokens,
            temperature=temperature,
            messages=[
                {"role": "system", "content": system_message},
                {"role": "user", "content": user_message},
            ],
        )
        elapsed_ms = (time.monotonic() - start) * 1000

        if not response.choices:
            raise UpstreamFailure("OpenAI returned no choices")
        choice = response.choices[0]
        if getattr(choice, "finish_reason", None) == "length":
            logger.warning("OpenAI completion hit max_tokens=%d; plan JSON may be cut off", max_tokens)
        content = choice.message.content or ""
        if not content.strip():
            raise UpstreamFailure("OpenAI returned an empty completion")

        usage = response.usage
        return ProviderResponse(
            content=content,
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
            model=getattr(response, "model", None) or self.model,
            latency_ms=elapsed_ms,
        )
