"""Diet-plan generation orchestrator.

Routing happens in a fixed order:

1. Canned fixture: a showcase patient gets its fixed plan after a simulated
   delay, without any LLM work.
2. Live generation: the credential is checked, the prompt is built and sent,
   and the first JSON object in the reply must carry ``patientInfo`` and
   ``mealPlan``.
3. Local fallback: any failure in step 2 (missing credential, provider error,
   unusable reply) degrades to the per-dosha library plan.

Every returned plan has been shape-repaired and carries ``source``.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Mapping

from ahara.core.errors import ConfigurationMissing, UpstreamFailure
from ahara.core.llm.client import CompletionClient
from ahara.core.llm.provider import CREDENTIAL_NAMES, DEFAULT_MODELS, LLMProvider, create_provider
from ahara.core.llm.response import parse_json_object
from ahara.domains.ayurveda.display.normalizer import as_record
from ahara.domains.ayurveda.domain_logic.fallback_plan import build_fallback_plan
from ahara.domains.ayurveda.domain_logic.fixtures import FixtureRoute, select_route
from ahara.domains.ayurveda.domain_logic.plan_repair import repair
from ahara.domains.ayurveda.prompts.diet_plan_prompt import build_prompt

logger = logging.getLogger(__name__)

REQUIRED_PLAN_KEYS = ("patientInfo", "mealPlan")


@dataclass(frozen=True)
class GeneratorConfig:
    """Everything the orchestrator needs from the environment, read once."""

    provider: str = "openai"
    api_key: str = ""
    model: str = DEFAULT_MODELS["openai"]
    temperature: float = 0.7
    max_tokens: int = 4000
    fixture_delay_seconds: float = 3.0

    @classmethod
    def from_settings(cls, settings: Any) -> GeneratorConfig:
        provider = settings.llm_provider
        if provider == "anthropic":
            api_key, model = settings.anthropic_api_key, settings.anthropic_model
        elif provider == "openai":
            api_key, model = settings.openai_api_key, settings.openai_model
        else:
            api_key, model = "", DEFAULT_MODELS.get(provider, provider)
        return cls(
            provider=provider,
            api_key=api_key,
            model=model,
            fixture_delay_seconds=settings.fixture_delay_seconds,
        )

    @property
    def credential_name(self) -> str | None:
        """Env var holding the active provider's credential; None if none is needed."""
        return CREDENTIAL_NAMES.get(self.provider)

    @property
    def is_configured(self) -> bool:
        return self.credential_name is None or bool(self.api_key)

    def check_configuration(self) -> None:
        """Raise ConfigurationMissing when the active provider's credential is empty."""
        if not self.is_configured:
            raise ConfigurationMissing(self.credential_name or self.provider)


@dataclass
class GenerationResult:
    """Outcome of one generation request."""

    success: bool
    data: dict[str, Any] | None
    tokens_used: int = 0
    source: str = "live"
    error: str | None = None
    fallback_reason: str | None = None
    llm_disclosed: bool = False
    duration_ms: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "success": self.success,
            "data": self.data,
            "tokensUsed": self.tokens_used,
            "source": self.source,
        }
        if self.fallback_reason:
            body["fallbackReason"] = self.fallback_reason
        if self.error:
            body["error"] = self.error
        return body


def parse_plan(content: str) -> dict[str, Any]:
    """Extract the plan object from a raw completion.

    Raises:
        UpstreamFailure: No JSON object, or one without the required keys.
    """
    plan = parse_json_object(content)
    if plan is None:
        raise UpstreamFailure("No valid JSON found in response")
    missing = [key for key in REQUIRED_PLAN_KEYS if not plan.get(key)]
    if missing:
        raise UpstreamFailure(f"Invalid diet plan structure: missing {', '.join(missing)}")
    return plan


class DietPlanGenerator:
    """Produces diet plans; ``generate`` never raises."""

    def __init__(
        self,
        config: GeneratorConfig,
        provider: LLMProvider | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.config = config
        self._provider = provider
        self._sleep = sleep

    @property
    def provider(self) -> LLMProvider:
        if self._provider is None:
            self._provider = create_provider(
                self.config.provider, api_key=self.config.api_key, model=self.config.model
            )
        return self._provider

    async def generate(self, patient: Mapping[str, Any], variation: int = 0) -> GenerationResult:
        """Generate a plan for a stored record or collected intake answers.

        Args:
            patient: Patient document or flat map of intake answers.
            variation: Regeneration counter, used by the local fallback.
        """
        start = time.monotonic()
        if not isinstance(patient, Mapping):
            patient = {}
        route = select_route(patient)
        if isinstance(route, FixtureRoute):
            result = await self._from_fixture(route)
        else:
            result = await self._live_or_fallback(patient, variation)
        result.duration_ms = (time.monotonic() - start) * 1000
        return result

    async def _from_fixture(self, route: FixtureRoute) -> GenerationResult:
        logger.info("Diet plan from canned fixture %s", route.fixture.key)
        if self.config.fixture_delay_seconds > 0:
            await self._sleep(self.config.fixture_delay_seconds)
        plan = repair(route.plan())
        plan["source"] = "fixture"
        return GenerationResult(success=True, data=plan, tokens_used=0, source="fixture")

    async def _live_or_fallback(self, patient: Mapping[str, Any], variation: int) -> GenerationResult:
        disclosed = False
        try:
            self.config.check_configuration()
            record = as_record(patient)
            prompt = build_prompt(record)
            logger.info(
                "Generating live diet plan: provider=%s model=%s patient=%s",
                self.config.provider,
                self.config.model,
                record.get("name", "<unnamed>"),
            )
            disclosed = self.config.provider != "mock"
            completion = await CompletionClient(self.provider).complete(
                prompt,
                max_tokens=self.config.max_tokens,
                temperature=self.config.temperature,
            )
            plan = parse_plan(completion.content)
        except (ConfigurationMissing, UpstreamFailure) as exc:
            logger.warning("Live generation unavailable (%s); using local fallback", exc)
            return self.fallback(patient, variation, str(exc), llm_disclosed=disclosed)
        except Exception as exc:
            logger.exception("Provider call failed; using local fallback")
            reason = f"{type(exc).__name__}: {exc}"
            return self.fallback(patient, variation, reason, llm_disclosed=disclosed)

        repaired = repair(plan)
        repaired["source"] = "live"
        logger.info("Live diet plan generated (%d tokens)", completion.tokens_used)
        return GenerationResult(
            success=True,
            data=repaired,
            tokens_used=completion.tokens_used,
            source="live",
            llm_disclosed=disclosed,
        )

    def fallback(
        self,
        patient: Mapping[str, Any],
        variation: int = 0,
        reason: str | None = None,
        llm_disclosed: bool = False,
    ) -> GenerationResult:
        """Local library plan. Never raises."""
        try:
            plan = build_fallback_plan(patient, variation=variation)
        except Exception:
            logger.exception("Fallback library failed; returning placeholder plan")
            name = patient.get("name") if isinstance(patient, Mapping) else None
            plan = {"patientInfo": {"name": str(name or "Not specified")}}
        repaired = repair(plan)
        repaired["source"] = "fallback"
        return GenerationResult(
            success=True,
            data=repaired,
            tokens_used=0,
            source="fallback",
            fallback_reason=reason,
            llm_disclosed=llm_disclosed,
        )
