"""Deterministic local diet plan used when live generation is unavailable."""

from __future__ import annotations

import logging
from typing import Any, Mapping

from ahara.domains.ayurveda.display.normalizer import CollectedPatient, StoredPatient, as_record
from ahara.domains.ayurveda.domain_logic.constitution import dominant_dosha
from ahara.domains.ayurveda.domain_logic.library import FallbackLibrary, load_fallback_library
from ahara.domains.ayurveda.prompts.diet_plan_prompt import (
    MEAL_NAMES,
    format_health_conditions,
    plan_patient_info,
    target_calories,
)

logger = logging.getLogger(__name__)


def fallback_dosha(record: Mapping[str, Any]) -> str:
    """Dominant dosha of the current state (vikriti), else of the constitution."""
    vikriti = record.get("vikriti")
    if isinstance(vikriti, Mapping) and vikriti:
        return dominant_dosha(vikriti)
    prakriti = record.get("prakriti")
    return dominant_dosha(prakriti if isinstance(prakriti, Mapping) else None)


def select_herbs(base: list[str], concerns: str, library: FallbackLibrary) -> list[str]:
    """Base herbs plus concern-specific ones, de-duplicated and capped."""
    herbs = list(base)
    lowered = concerns.lower()
    for entry in library.concern_herbs:
        if entry.keyword in lowered:
            herbs.extend(entry.herbs)
    unique = list(dict.fromkeys(herbs))
    return unique[: library.herb_limit]


def daily_totals(calories: int) -> dict[str, str]:
    return {
        "calories": f"~{calories} kcal",
        "carbs": f"~{round(calories * 0.575 / 4)}g (55-60%)",
        "protein": f"~{round(calories * 0.115 / 4)}g (11-12%)",
        "fat": f"~{round(calories * 0.21 / 9)}g (20-22%)",
    }


def build_fallback_plan(
    patient: Mapping[str, Any] | StoredPatient | CollectedPatient,
    variation: int = 0,
    library: FallbackLibrary | None = None,
) -> dict[str, Any]:
    """Assemble a plan from the per-dosha library.

    Args:
        patient: Stored record or collected intake answers.
        variation: Regeneration counter; picks one of the dosha's meal sets.
        library: Override for the packaged fallback library.
    """
    library = library or load_fallback_library()
    record = as_record(patient)
    dosha = fallback_dosha(record)
    profile = library.profile(dosha)
    calories = target_calories(record)
    meals = profile.variations[variation % len(profile.variations)]

    meal_plan = {
        meal: [
            " + ".join(meals.get(meal, [])),
            f"Calories: ~{round(calories * library.calorie_split.get(meal, 0.0))} kcal",
            dict(profile.properties.get(meal, {})),
        ]
        for meal in MEAL_NAMES
    }

    concerns = format_health_conditions(record.get("roga"))
    logger.debug("Fallback plan: dosha=%s variation=%d", dosha, variation)
    return {
        "patientInfo": plan_patient_info(record),
        "mealPlan": meal_plan,
        "dailyTotals": daily_totals(calories),
        "guidelines": list(profile.guidelines),
        "herbs": select_herbs(profile.herbs, concerns, library),
        "lifestyle": list(profile.lifestyle),
        "ayurvedicExplanation": {"dosha": dosha, **profile.explanation},
    }
