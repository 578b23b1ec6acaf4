"""Flat-text export of diet plans and their recipes.

Output is line-oriented with fixed section headers. The generation date is
passed in, so the same plan and date always produce the same text.
"""

from __future__ import annotations

import re
from datetime import date
from typing import Any, Mapping

from ahara.domains.ayurveda.display.normalizer import safe_render
from ahara.domains.ayurveda.prompts.diet_plan_prompt import MEAL_NAMES

RULE = "=" * 63
DISCLAIMER = (
    "Note: This diet plan is generated based on Ayurvedic principles. Please consult "
    "with a qualified Ayurvedic practitioner for personalized advice."
)

MEAL_LABELS = {
    "breakfast": "BREAKFAST",
    "lunch": "LUNCH",
    "snack": "EVENING SNACK",
    "dinner": "DINNER",
}

_PATIENT_LINES = (
    ("Name", "name"),
    ("Age", "age"),
    ("Weight", "weight"),
    ("Height", "height"),
    ("Gender", "gender"),
    ("Prakriti", "prakriti"),
    ("Dominant Dosha", "dominantDosha"),
    ("Vikruti", "vikruti"),
    ("Health Concerns", "concerns"),
    ("Agni", "agni"),
    ("Target Calories", "targetCalories"),
)


def _heading(title: str) -> list[str]:
    return [f"{title}:", "=" * (len(title) + 1)]


def _bullets(items: Any) -> list[str]:
    if not isinstance(items, list) or not items:
        return ["• None provided"]
    return [f"• {safe_render(item, '')}" for item in items]


def _meal_lines(meal: Any) -> list[str]:
    if not isinstance(meal, list):
        return ["• Not specified"]
    lines = []
    for slot in meal:
        if isinstance(slot, Mapping):
            lines.extend(f"  {key}: {safe_render(value)}" for key, value in slot.items())
        else:
            lines.append(f"• {safe_render(slot)}")
    return lines


def format_plan_text(plan: Mapping[str, Any], generated_on: date) -> str:
    """Serialize a plan for download."""
    info = plan.get("patientInfo") if isinstance(plan.get("patientInfo"), Mapping) else {}
    meal_plan = plan.get("mealPlan") if isinstance(plan.get("mealPlan"), Mapping) else {}

    lines = ["PERSONALIZED AYURVEDIC DIET PLAN", f"Generated on: {generated_on.isoformat()}", ""]

    lines += _heading("PATIENT INFORMATION")
    for label, key in _PATIENT_LINES:
        value = safe_render(info.get(key))
        if key == "dominantDosha":
            value = value.upper()
        lines.append(f"{label}: {value}")
    lines.append("")

    lines += _heading("DAILY MEAL PLAN")
    for meal in MEAL_NAMES:
        lines.append(f"{meal.upper()}:")
        lines += _meal_lines(meal_plan.get(meal))
        lines.append("")

    totals = plan.get("dailyTotals")
    if isinstance(totals, Mapping) and totals:
        lines += _heading("DAILY TOTALS")
        lines += [f"{key.capitalize()}: {safe_render(value)}" for key, value in totals.items()]
        lines.append("")

    for title, key in (
        ("DIETARY GUIDELINES", "guidelines"),
        ("RECOMMENDED HERBS", "herbs"),
        ("LIFESTYLE RECOMMENDATIONS", "lifestyle"),
    ):
        lines += _heading(title)
        lines += _bullets(plan.get(key))
        lines.append("")

    lines.append(DISCLAIMER)
    return "\n".join(lines)


def _as_list(value: Any) -> list[Any]:
    """A list field as a list: None or "" is empty, any other single value is one item."""
    if value is None or value == "":
        return []
    if isinstance(value, list):
        return value
    if isinstance(value, (str, Mapping)):
        return [value]
    return [safe_render(value)]


def _recipe_block(recipe: Mapping[str, Any]) -> list[str]:
    lines: list[str] = []
    ingredients = _as_list(recipe.get("ingredients"))
    if ingredients:
        lines += ["INGREDIENTS:", *(f"• {safe_render(i, '')}" for i in ingredients), ""]
    method = _as_list(recipe.get("method"))
    if method:
        steps = (f"{n}. {safe_render(step, '')}" for n, step in enumerate(method, 1))
        lines += ["METHOD:", *steps, ""]
    return lines


def format_recipes_text(plan: Mapping[str, Any], generated_on: date) -> str:
    """Serialize the plan's recipes, or a short notice when it has none."""
    info = plan.get("patientInfo") if isinstance(plan.get("patientInfo"), Mapping) else {}
    name = safe_render(info.get("name"), "Patient")
    recipes = plan.get("recipes")

    if not isinstance(recipes, Mapping) or not recipes:
        return "\n".join([
            "AYURVEDIC RECIPES",
            f"Generated on: {generated_on.isoformat()}",
            "",
            f"Patient: {name}",
            "",
            "No detailed recipes available for this diet plan.",
            "Please refer to the main diet plan for food suggestions.",
        ])

    lines = [
        f"AYURVEDIC RECIPES FOR {name.upper()}",
        f"Generated on: {generated_on.isoformat()}",
        "",
        f"Constitution: {safe_render(info.get('prakriti'))}",
        f"Health Concerns: {safe_render(info.get('concerns'))}",
        f"Target: {safe_render(info.get('targetCalories'))}",
        "",
    ]
    for meal in MEAL_NAMES:
        recipe = recipes.get(meal)
        if not isinstance(recipe, Mapping):
            continue
        lines += [RULE, "", f"{MEAL_LABELS[meal]} RECIPE: {safe_render(recipe.get('title'))}", ""]
        lines += _recipe_block(recipe)
        for dish in _as_list(recipe.get("dishes")):
            if not isinstance(dish, Mapping):
                continue
            lines += [f"--- {safe_render(dish.get('name')).upper()} ---", ""]
            lines += _recipe_block(dish)
        if recipe.get("ayurvedicBenefit"):
            lines += ["AYURVEDIC BENEFIT:", safe_render(recipe["ayurvedicBenefit"]), ""]

    lines += [RULE, "", "Consult an Ayurvedic practitioner for personalized modifications."]
    return "\n".join(lines)


def _slug(text: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")


def plan_filename(generated_on: date) -> str:
    return f"ayurvedic-diet-plan-{generated_on.isoformat()}.txt"


def recipes_filename(plan: Mapping[str, Any], generated_on: date) -> str:
    info = plan.get("patientInfo") if isinstance(plan.get("patientInfo"), Mapping) else {}
    name = _slug(str(info.get("name") or "")) or "patient"
    return f"ayurvedic-recipes-{name}-{generated_on.isoformat()}.txt"
