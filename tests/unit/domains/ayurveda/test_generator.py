"""Tests for the diet-plan generation orchestrator."""

from __future__ import annotations

import asyncio
import json
from types import SimpleNamespace

import pytest

from ahara.core.errors import ConfigurationMissing
from ahara.core.llm.providers.mock import MockProvider
from ahara.domains.ayurveda.domain_logic.generator import (
    DietPlanGenerator,
    GeneratorConfig,
    parse_plan,
)
from ahara.domains.ayurveda.prompts.diet_plan_prompt import MEAL_NAMES, PROPERTY_KEYS

AYUSHI_ID = "68cdcba34ddc05b1f94c8350"


def _run(coro):
    """Run an async coroutine synchronously (no pytest-asyncio required)."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def _live_plan_json(name: str = "Ravi Kumar") -> str:
    props = {key: f"{key} note" for key in PROPERTY_KEYS}
    plan = {
        "patientInfo": {"name": name},
        "mealPlan": {meal: [f"{meal} dish", "Calories: ~500 kcal", props] for meal in MEAL_NAMES},
        "guidelines": ["Eat warm food"],
        "herbs": ["Amalaki"],
        "lifestyle": ["Sleep early"],
    }
    return "Here is the plan:\n" + json.dumps(plan)


class _RecordingSleep:
    def __init__(self):
        self.calls = []

    async def __call__(self, seconds):
        self.calls.append(seconds)


def _assert_well_formed(plan):
    for meal in MEAL_NAMES:
        assert len(plan["mealPlan"][meal]) == 3
        assert set(PROPERTY_KEYS) <= set(plan["mealPlan"][meal][2])


class TestGeneratorConfig:
    def test_from_settings_openai(self):
        settings = SimpleNamespace(
            llm_provider="openai", openai_api_key="sk-x", openai_model="gpt-4o-mini",
            anthropic_api_key="", anthropic_model="claude", fixture_delay_seconds=1.5,
        )
        config = GeneratorConfig.from_settings(settings)
        assert (config.provider, config.api_key, config.model) == ("openai", "sk-x", "gpt-4o-mini")
        assert config.fixture_delay_seconds == 1.5
        assert config.is_configured

    def test_missing_credential(self):
        config = GeneratorConfig(provider="anthropic", api_key="")
        assert config.credential_name == "ANTHROPIC_API_KEY"
        with pytest.raises(ConfigurationMissing) as excinfo:
            config.check_configuration()
        assert excinfo.value.credential == "ANTHROPIC_API_KEY"

    def test_mock_needs_no_credential(self):
        config = GeneratorConfig(provider="mock")
        assert config.credential_name is None
        config.check_configuration()


class TestParsePlan:
    def test_extracts_plan(self):
        assert parse_plan(_live_plan_json())["patientInfo"]["name"] == "Ravi Kumar"

    @pytest.mark.parametrize("content", ["no json", '{"patientInfo": {"name": "x"}}', '{"mealPlan": {}}'])
    def test_rejects_unusable(self, content):
        from ahara.core.errors import UpstreamFailure

        with pytest.raises(UpstreamFailure):
            parse_plan(content)


class TestFixtureRoute:
    def test_fixture_by_id(self):
        sleep = _RecordingSleep()
        provider = MockProvider(response_content=_live_plan_json())
        generator = DietPlanGenerator(
            GeneratorConfig(provider="openai", api_key="sk", fixture_delay_seconds=3.0),
            provider=provider,
            sleep=sleep,
        )
        result = _run(generator.generate({"_id": AYUSHI_ID, "name": "Anyone", "age": 99}))
        assert result.success is True
        assert result.tokens_used == 0
        assert result.source == "fixture"
        assert result.data["patientInfo"]["name"] == "Ayushi Singh"
        assert result.data["source"] == "fixture"
        assert result.llm_disclosed is False
        assert sleep.calls == [3.0]
        assert provider.call_count == 0

    def test_fixture_by_name_without_delay(self):
        sleep = _RecordingSleep()
        generator = DietPlanGenerator(GeneratorConfig(provider="mock", fixture_delay_seconds=0), sleep=sleep)
        result = _run(generator.generate({"name": "ayushi"}))
        assert result.source == "fixture"
        assert sleep.calls == []
        assert "recipes" in result.data


class TestLiveRoute:
    def test_live_plan(self, patient_payload):
        provider = MockProvider(response_content=_live_plan_json())
        generator = DietPlanGenerator(GeneratorConfig(provider="openai", api_key="sk"), provider=provider)
        result = _run(generator.generate(patient_payload))
        assert result.success is True
        assert result.source == "live"
        assert result.data["source"] == "live"
        assert result.tokens_used > 0
        assert result.llm_disclosed is True
        assert "Ravi Kumar" in provider.last_user_message
        assert provider.last_max_tokens == 4000
        assert provider.last_temperature == 0.7
        _assert_well_formed(result.data)

    def test_live_plan_is_repaired(self, patient_payload):
        content = json.dumps({"patientInfo": {"name": "R"}, "mealPlan": {"breakfast": ["Upma"]}})
        generator = DietPlanGenerator(
            GeneratorConfig(provider="mock"), provider=MockProvider(response_content=content)
        )
        result = _run(generator.generate(patient_payload))
        assert result.source == "live"
        assert result.llm_disclosed is False
        _assert_well_formed(result.data)


class TestFallbackRoute:
    def test_missing_credential_never_calls_provider(self, patient_payload):
        provider = MockProvider(response_content=_live_plan_json())
        generator = DietPlanGenerator(GeneratorConfig(provider="openai", api_key=""), provider=provider)
        result = _run(generator.generate(patient_payload))
        assert result.success is True
        assert result.source == "fallback"
        assert result.fallback_reason == "OPENAI_API_KEY is not configured"
        assert result.llm_disclosed is False
        assert provider.call_count == 0
        _assert_well_formed(result.data)

    def test_provider_error(self, patient_payload):
        provider = MockProvider(error=ConnectionError("network down"))
        generator = DietPlanGenerator(GeneratorConfig(provider="openai", api_key="sk"), provider=provider)
        result = _run(generator.generate(patient_payload))
        assert result.source == "fallback"
        assert result.fallback_reason == "ConnectionError: network down"
        assert result.llm_disclosed is True
        _assert_well_formed(result.data)

    @pytest.mark.parametrize("content", ["Mock LLM response.", '{"patientInfo": {}}', "{broken"])
    def test_unusable_reply(self, patient_payload, content):
        generator = DietPlanGenerator(
            GeneratorConfig(provider="mock"), provider=MockProvider(response_content=content)
        )
        result = _run(generator.generate(patient_payload))
        assert result.success is True
        assert result.source == "fallback"
        assert result.data["ayurvedicExplanation"]["dosha"] == "Pitta"
        _assert_well_formed(result.data)

    def test_variation_reaches_fallback(self, patient_payload):
        generator = DietPlanGenerator(GeneratorConfig(provider="openai", api_key=""))
        first = _run(generator.generate(patient_payload, variation=0))
        second = _run(generator.generate(patient_payload, variation=1))
        assert first.data["mealPlan"]["breakfast"][0] != second.data["mealPlan"]["breakfast"][0]

    @pytest.mark.parametrize("patient", [{}, None, "not a patient", {"roga": 5, "prakriti": "??"}])
    def test_garbage_input_still_yields_plan(self, patient):
        generator = DietPlanGenerator(GeneratorConfig(provider="mock"))
        result = _run(generator.generate(patient))
        assert result.success is True
        _assert_well_formed(result.data)

    def test_to_dict(self, patient_payload):
        generator = DietPlanGenerator(GeneratorConfig(provider="openai", api_key=""))
        body = _run(generator.generate(patient_payload)).to_dict()
        assert body["success"] is True
        assert body["source"] == "fallback"
        assert body["tokensUsed"] == 0
        assert body["fallbackReason"] == "OPENAI_API_KEY is not configured"
        assert "error" not in body
