"""Shape repair for diet plans before they reach callers.

Whatever the upstream payload looked like, a repaired plan has all four meals,
each an exact ``[dish, nutrition, properties]`` triple with the six Ayurvedic
property keys, plus ``patientInfo``, ``guidelines``, ``herbs`` and
``lifestyle``. Repair is total and idempotent.
"""

from __future__ import annotations

import copy
import logging
from typing import Any

from ahara.domains.ayurveda.display.normalizer import safe_render
from ahara.domains.ayurveda.prompts.diet_plan_prompt import MEAL_NAMES, PROPERTY_KEYS

logger = logging.getLogger(__name__)

CALORIES_PLACEHOLDER = "Calories: Calculating..."
MISSING_MEAL_TEXT = "AI processing failed - using fallback"
MISSING_SLOT_TEXT = "Missing AI data"
BAD_PROPERTIES_TEXT = "Data structure error"


def placeholder_properties(text: str) -> dict[str, str]:
    return {key: text for key in PROPERTY_KEYS}


def placeholder_meal(meal: str) -> list[Any]:
    return [
        f"AI-generated {meal} recommendation",
        CALORIES_PLACEHOLDER,
        placeholder_properties(MISSING_MEAL_TEXT),
    ]


def _repair_meal(meal: str, value: Any) -> list[Any]:
    if not isinstance(value, list):
        logger.debug("Meal %s missing or not a list; using placeholder", meal)
        return placeholder_meal(meal)

    slots = list(value[:3])
    dish = slots[0] if len(slots) > 0 else f"AI-generated {meal} recommendation"
    nutrition = slots[1] if len(slots) > 1 else CALORIES_PLACEHOLDER

    if len(slots) < 3:
        properties = placeholder_properties(MISSING_SLOT_TEXT)
    elif not isinstance(slots[2], dict):
        properties = placeholder_properties(BAD_PROPERTIES_TEXT)
    else:
        properties = dict(slots[2])
        for key in PROPERTY_KEYS:
            if properties.get(key) is None:
                properties[key] = MISSING_SLOT_TEXT

    return [
        dish if isinstance(dish, str) else safe_render(dish, f"AI-generated {meal} recommendation"),
        nutrition if isinstance(nutrition, str) else safe_render(nutrition, CALORIES_PLACEHOLDER),
        properties,
    ]


def _as_list(value: Any) -> list[Any]:
    if isinstance(value, list):
        return value
    if isinstance(value, str) and value:
        return [value]
    return []


def repair(plan: Any) -> dict[str, Any]:
    """Return a repaired deep copy of ``plan``; the input is never mutated."""
    repaired: dict[str, Any] = copy.deepcopy(plan) if isinstance(plan, dict) else {}

    meal_plan = repaired.get("mealPlan")
    if not isinstance(meal_plan, dict):
        meal_plan = {}
    for meal in MEAL_NAMES:
        meal_plan[meal] = _repair_meal(meal, meal_plan.get(meal))
    repaired["mealPlan"] = meal_plan

    if not isinstance(repaired.get("patientInfo"), dict):
        repaired["patientInfo"] = {}
    for key in ("guidelines", "herbs", "lifestyle"):
        repaired[key] = _as_list(repaired.get(key))
    return repaired
