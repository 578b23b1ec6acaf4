"""Tests for the local per-dosha fallback plan."""

from __future__ import annotations

import pytest

from ahara.domains.ayurveda.domain_logic.fallback_plan import (
    build_fallback_plan,
    daily_totals,
    fallback_dosha,
    select_herbs,
)
from ahara.domains.ayurveda.domain_logic.library import load_fallback_library
from ahara.domains.ayurveda.domain_logic.plan_repair import repair
from ahara.domains.ayurveda.prompts.diet_plan_prompt import MEAL_NAMES, PROPERTY_KEYS


class TestDoshaSelection:
    def test_vikriti_wins(self):
        record = {"prakriti": {"vata": 4, "pitta": 1, "kapha": 1},
                  "vikriti": {"vata": 1, "pitta": 1, "kapha": 4}}
        assert fallback_dosha(record) == "Kapha"

    def test_prakriti_when_no_vikriti(self):
        assert fallback_dosha({"prakriti": {"vata": 1, "pitta": 4, "kapha": 1}}) == "Pitta"

    def test_nothing_is_vata(self):
        assert fallback_dosha({}) == "Vata"


class TestHerbs:
    def test_concern_herbs_appended_and_capped(self):
        library = load_fallback_library()
        herbs = select_herbs(["Ashwagandha", "Brahmi"], "Abdominal Gas, Heat in body", library)
        assert herbs[:2] == ["Ashwagandha", "Brahmi"]
        assert "Hing (Asafoetida)" in herbs
        assert len(herbs) == library.herb_limit

    def test_duplicates_removed(self):
        library = load_fallback_library()
        herbs = select_herbs(["Ginger"], "poor digestion", library)
        assert herbs.count("Ginger") == 1


class TestBuildFallbackPlan:
    def test_pitta_patient(self, patient_payload):
        plan = build_fallback_plan(patient_payload)
        assert plan["ayurvedicExplanation"]["dosha"] == "Pitta"
        assert plan["patientInfo"]["name"] == "Ravi Kumar"
        assert plan["patientInfo"]["dominantDosha"] == "pitta"
        assert plan["dailyTotals"]["calories"] == "~2400 kcal"
        assert len(plan["herbs"]) <= 6
        assert "Amalaki" in plan["herbs"]

    def test_calorie_split(self, patient_payload):
        plan = build_fallback_plan(patient_payload)
        assert plan["mealPlan"]["breakfast"][1] == "Calories: ~600 kcal"
        assert plan["mealPlan"]["lunch"][1] == "Calories: ~840 kcal"
        assert plan["mealPlan"]["snack"][1] == "Calories: ~240 kcal"
        assert plan["mealPlan"]["dinner"][1] == "Calories: ~720 kcal"

    def test_meals_are_complete_triples(self, patient_payload):
        plan = build_fallback_plan(patient_payload)
        for meal in MEAL_NAMES:
            dish, calories, properties = plan["mealPlan"][meal]
            assert " + " in dish
            assert set(PROPERTY_KEYS) <= set(properties)
        assert repair(plan)["mealPlan"] == plan["mealPlan"]

    def test_variations_cycle(self, patient_payload):
        first = build_fallback_plan(patient_payload, variation=0)
        second = build_fallback_plan(patient_payload, variation=1)
        wrapped = build_fallback_plan(patient_payload, variation=3)
        assert first["mealPlan"]["breakfast"][0] != second["mealPlan"]["breakfast"][0]
        assert wrapped["mealPlan"] == first["mealPlan"]

    def test_collected_answers(self):
        plan = build_fallback_plan({
            "prakriti": "Kapha dominant",
            "vikruti": "Vata: 1, Pitta: 1, Kapha: 4",
            "roga": "Weight gain",
            "targetCalories": "1800 kcal",
        })
        assert plan["ayurvedicExplanation"]["dosha"] == "Kapha"
        assert plan["dailyTotals"]["calories"] == "~1800 kcal"

    def test_default_calories(self):
        plan = build_fallback_plan({})
        assert plan["dailyTotals"]["calories"] == "~2000 kcal"


def test_daily_totals_macros():
    assert daily_totals(2000) == {
        "calories": "~2000 kcal",
        "carbs": "~288g (55-60%)",
        "protein": "~58g (11-12%)",
        "fat": "~47g (20-22%)",
    }
