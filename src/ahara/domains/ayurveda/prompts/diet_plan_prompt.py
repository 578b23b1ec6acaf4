"""Diet-plan prompt construction.

``build_prompt`` turns one patient into the user message sent to the LLM: the
patient facts, a constitutional-analysis brief, one example JSON document in
the exact output shape, and the hard constraints. It is pure: the same
patient always yields the same string.
"""

from __future__ import annotations

import json
from typing import Any, Mapping

from ahara.domains.ayurveda.display.normalizer import (
    NOT_SPECIFIED,
    CollectedPatient,
    StoredPatient,
    as_record,
    format_number,
    render_dosha,
)
from ahara.domains.ayurveda.domain_logic.constitution import dominant_dosha

DEFAULT_CALORIES = 2000
GENERAL_WELLNESS = "General wellness"

MEAL_NAMES = ("breakfast", "lunch", "snack", "dinner")
PROPERTY_KEYS = ("Rasa", "Guna", "Virya", "Vipaka", "Dosha", "Prabhava")


def _section(mapping: Mapping[str, Any] | None, key: str) -> Mapping[str, Any]:
    value = (mapping or {}).get(key)
    return value if isinstance(value, Mapping) else {}


def _text(value: Any, default: str) -> str:
    if value is None or value == "":
        return default
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return format_number(value)
    return str(value)


def format_health_conditions(roga: Any) -> str:
    """Comma-joined condition names, or "General wellness" when there are none."""
    if not roga or not isinstance(roga, list):
        return GENERAL_WELLNESS
    names = []
    for condition in roga:
        if isinstance(condition, str):
            names.append(condition)
        elif isinstance(condition, Mapping):
            names.append(str(condition.get("condition") or condition.get("name") or GENERAL_WELLNESS))
        else:
            names.append(str(condition))
    return ", ".join(names)


def target_calories(record: Mapping[str, Any]) -> int:
    value = _section(record, "dietaryHabits").get("targetCalories")
    if isinstance(value, (int, float)) and not isinstance(value, bool) and value > 0:
        return int(value)
    return DEFAULT_CALORIES


def _weight_text(record: Mapping[str, Any]) -> str:
    weight = _section(_section(record, "physicalMeasurements"), "weight")
    return f"{_text(weight.get('value'), NOT_SPECIFIED)}{weight.get('unit') or 'kg'}"


def _height_text(record: Mapping[str, Any]) -> str:
    height = _section(_section(record, "physicalMeasurements"), "height")
    if height.get("cm"):
        return f"{_text(height['cm'], NOT_SPECIFIED)} cm"
    return f"{_text(height.get('feet'), NOT_SPECIFIED)}'{_text(height.get('inches'), '0')}\""


def plan_patient_info(patient: Mapping[str, Any] | StoredPatient | CollectedPatient) -> dict[str, str]:
    """The ``patientInfo`` block of a plan: every value a display string."""
    record = as_record(patient)
    prakriti = _section(record, "prakriti")
    vikriti = _section(record, "vikriti")
    dietary = _section(record, "dietaryHabits")
    preferences = _section(dietary, "foodPreferences")
    environment = _section(record, "environment")
    notes = _section(record, "intakeNotes")
    constitution = dominant_dosha(prakriti or None)

    return {
        "name": _text(record.get("name"), NOT_SPECIFIED),
        "age": _text(record.get("age"), NOT_SPECIFIED),
        "weight": _weight_text(record),
        "height": _height_text(record),
        "gender": _text(record.get("gender"), NOT_SPECIFIED),
        "prakriti": f"{render_dosha(prakriti)} ({constitution} dominant constitution)",
        "dominantDosha": constitution.lower(),
        "vikruti": render_dosha(vikriti),
        "concerns": format_health_conditions(record.get("roga")),
        "climate": (
            f"{_text(environment.get('climate'), 'Tropical')} climate, "
            f"{_text(environment.get('season'), 'Summer')} season"
        ),
        "agni": _text(dietary.get("appetite"), "Normal digestive capacity"),
        "foodPreferences": _text(
            notes.get("foodPreferences"),
            f"{_text(dietary.get('type'), 'Vegetarian')}, prefers "
            f"{_text(preferences.get('temperature'), 'warm').lower()} foods",
        ),
        "targetCalories": f"{target_calories(record)} kcal/day",
    }


# ---------------------------------------------------------------------------
# Example output document
# ---------------------------------------------------------------------------

_EXAMPLE_MEALS = {
    "breakfast": (
        "REAL INDIAN DISH with quantities - e.g. 'Vegetable Upma (1 bowl) + Coconut Chutney "
        "(2 tbsp) + Ginger Tea (1 cup)' OR 'Moong Dal Cheela (2 pieces) + Mint Chutney + "
        "Buttermilk (1 glass)'",
        "Sweet and mild bitter (upma), pungent (ginger)",
        "Laghu (light), Snigdha (moist) - easy morning digestion",
        "Ushna (warming) - stimulates morning Agni, reduces gas",
        "Sweet Vipaka - nourishes tissues, stable energy",
        "Pacifies aggravated Vata, does not increase Pitta",
        "Improves digestion, prevents morning bloating, sustained energy",
    ),
    "lunch": (
        "AUTHENTIC INDIAN LUNCH - e.g. 'Dal Tadka (1 bowl) + Steamed Rice (1 cup) + Aloo Sabzi "
        "(1/2 cup) + Roti (2 pieces) + Curd (1/2 cup)' OR 'Moong Dal Khichdi (1.5 cups) + Ghee "
        "(1 tsp) + Papad (1)'",
        "Sweet (rice, dal), mild pungent (jeera), astringent (vegetables)",
        "Laghu (light dal), Guru (rice), Snigdha (ghee) - satisfying yet digestible",
        "Predominantly Sheeta (cooling) with mild Ushna - balances body heat",
        "Sweet Vipaka - builds tissues, provides sustained energy",
        "Pacifies aggravated Pitta, grounds Vata, does not increase Kapha",
        "Nourishes all dhatus, improves digestion, reduces inflammation",
    ),
    "snack": (
        "INDIAN EVENING SNACK - e.g. 'Masala Chai (1 cup) + Marie Biscuits (3-4)' OR "
        "'Buttermilk (1 glass) + Roasted Chana (1/4 cup)'",
        "Sweet (dates), pungent (ginger), astringent (tea) - kindles evening Agni",
        "Laghu (light), Ruksha (dry nuts) - prepares stomach for dinner",
        "Ushna (warming spices) - stimulates digestion before dinner",
        "Sweet-Pungent Vipaka - quick energy, enhances appetite",
        "Pacifies Vata, stimulates Agni without aggravating Pitta",
        "Prevents evening fatigue, improves dinner digestion, calms mind",
    ),
    "dinner": (
        "LIGHT INDIAN DINNER - e.g. 'Moong Dal Soup (1 bowl) + Jeera Rice (3/4 cup) + Sauteed "
        "Bottle Gourd (1/2 cup) + Ghee (1 tsp)' OR 'Vegetable Khichdi (1 cup) + Curd (1/4 cup)'",
        "Sweet (dal, rice), mild bitter (vegetables) - calming for night",
        "Laghu (light), Snigdha (moist) - easy nighttime digestion",
        "Mild Ushna (gentle warmth) - aids digestion without overstimulation",
        "Sweet Vipaka - promotes restful sleep, tissue repair",
        "Pacifies Vata for sleep, does not aggravate Kapha",
        "Promotes sound sleep, prevents midnight hunger, easy morning elimination",
    ),
}


def _example_plan(info: dict[str, str], calories: int) -> dict[str, Any]:
    meal_plan = {}
    for meal in MEAL_NAMES:
        dish, *properties = _EXAMPLE_MEALS[meal]
        meal_plan[meal] = [
            dish,
            "Calories: ~XXX kcal | Carbs: XXg | Protein: XXg | Fat: XXg",
            dict(zip(PROPERTY_KEYS, properties)),
        ]
    example_info = dict(info)
    example_info["agni"] = (
        f"Based on {info['dominantDosha'].capitalize()} constitution - "
        "provide appropriate digestive fire description"
    )
    return {
        "patientInfo": example_info,
        "mealPlan": meal_plan,
        "dailyTotals": {
            "calories": f"~{calories} kcal",
            "carbs": "~XXXg (55-60%)",
            "protein": "~XXg (11-12%)",
            "fat": "~XXg (20-22%)",
        },
        "guidelines": [
            "Follow meal timings: Breakfast 7:30-8:30 AM, Lunch 12:30-1:30 PM, Snack 5 PM, Dinner 7:30-8:00 PM",
            "Drink warm water throughout the day to aid digestion",
            "Practice mindful eating - chew food slowly and thoroughly",
            "Additional specific guideline based on patient's conditions",
        ],
        "herbs": [
            "Hing (Asafoetida) - Add pinch to dal for gas relief",
            "Fennel seeds - Chew 1 tsp after meals for digestion",
            "Fresh ginger - Small piece before meals to kindle Agni",
            "Additional herb specific to patient's conditions",
        ],
        "lifestyle": [
            "Practice Pranayama: Nadi Shodhana (alternate nostril breathing) for 10 minutes daily",
            "Sleep schedule: Sleep by 10 PM, wake up by 6 AM",
            "Additional lifestyle recommendation based on patient's needs",
        ],
    }


# ---------------------------------------------------------------------------
# Prompt
# ---------------------------------------------------------------------------


def build_prompt(patient: Mapping[str, Any] | StoredPatient | CollectedPatient) -> str:
    """Build the diet-plan user prompt for one patient.

    Absent fields are replaced by fixed defaults ("Not specified", 2000 kcal/day,
    "General wellness") so the narrative never contains empty slots.
    """
    record = as_record(patient)
    info = plan_patient_info(record)
    prakriti = _section(record, "prakriti")
    vikriti = _section(record, "vikriti")
    dietary = _section(record, "dietaryHabits")
    preferences = _section(dietary, "foodPreferences")
    lifestyle = _section(record, "lifestyle")
    environment = _section(record, "environment")

    constitution = dominant_dosha(prakriti or None)
    imbalance = dominant_dosha(vikriti or None)
    conditions = format_health_conditions(record.get("roga"))
    calories = target_calories(record)
    weight = _section(_section(record, "physicalMeasurements"), "weight")
    gender = _text(record.get("gender"), NOT_SPECIFIED)
    age = _text(record.get("age"), NOT_SPECIFIED)
    example = json.dumps(_example_plan(info, calories), indent=2, ensure_ascii=False)

    return f"""You are Dr. Rajesh Sharma, a renowned Ayurvedic physician with 25+ years of experience in personalized nutrition therapy. You specialize in creating practical, traditional Indian diet plans that heal specific health conditions through food as medicine.

PATIENT ANALYSIS & PERSONALIZED AYURVEDIC DIET PLAN

STEP 1: ANALYZE THIS PATIENT CAREFULLY

PATIENT DETAILS:
- Name: {info['name']}
- Age: {age} years
- Gender: {gender}
- Weight: {_text(weight.get('value'), NOT_SPECIFIED)} {weight.get('unit') or 'kg'}
- Height: {info['height']}
- Prakriti (Natural Constitution): {render_dosha(prakriti)} ({constitution} dominant)
- Vikriti (Current Imbalance): {render_dosha(vikriti)} ({imbalance} current state)
- Health Conditions (Roga): {conditions}
- Agni (Digestion): {_text(dietary.get('appetite'), NOT_SPECIFIED)}
- Dietary Type: {_text(dietary.get('type'), 'Vegetarian')}
- Target Calories: {calories} kcal/day
- Food Preferences: {_text(preferences.get('temperature'), 'Warm')} foods, {_text(preferences.get('spiceLevel'), 'Medium')} spice level
- Activity Level: {_text(lifestyle.get('activityLevel'), 'Moderately Active')}
- Climate: {_text(environment.get('climate'), 'Tropical')}
- Season: {_text(environment.get('season'), 'Summer')}

STEP 2: AYURVEDIC CONSTITUTIONAL ANALYSIS
Analyze this patient's constitution:

Primary Analysis:
- Dominant Prakriti (natural constitution): {constitution}
- Current Vikriti (imbalance): {imbalance}
- Health conditions to address: {conditions}
- Target calories needed: {calories} kcal/day

Clinical Assessment:
- Which doshas are aggravated and need pacification?
- What Rasa (tastes) will balance this patient's current state?
- What Guna (qualities) of food will support healing?
- What Virya (potency) is needed - heating or cooling foods?
- What Vipaka (post-digestive effect) will optimize digestion?

STEP 3: CREATE PRACTICAL INDIAN AYURVEDIC DIET PLAN
Create a diet plan using REAL, commonly available Indian dishes. Use traditional recipes that Indian families actually cook and eat daily.

MANDATORY REQUIREMENTS:
- Use ONLY authentic Indian dishes (like dal, rice, roti, sabzi, khichdi, curry, etc.)
- Specify exact quantities (1 cup, 2 rotis, 1 bowl, etc.)
- Include accurate calories and macros for each meal
- Provide detailed Ayurvedic properties for each meal
- Address the patient's specific health conditions through food choices
- Ensure total daily calories = {calories} kcal

Please create a diet plan in the EXACT same format as this example (but personalized for the above patient):

{example}

CRITICAL REQUIREMENTS - FOLLOW EXACTLY:

1. USE ONLY REAL INDIAN FOOD that people actually eat daily.
   GOOD: Dal-chawal, roti-sabzi, khichdi, upma, paratha, sambar, rasam, curd rice
   BAD: Quinoa bowls, exotic grains, uncommon vegetables, Western dishes

2. SPECIFY EXACT INDIAN MEASUREMENTS.
   GOOD: "Dal Tadka (1 bowl)", "Rice (1 cup)", "Roti (2 pieces)", "Ghee (1 tsp)"
   BAD: "Some dal", "A portion of rice", "Bread"

3. ACCURATE CALORIE CALCULATIONS.
   Breakfast: 400-500 kcal, Lunch: 600-800 kcal, Snack: 150-250 kcal, Dinner: 400-600 kcal
   Total must equal exactly {calories} kcal

4. DETAILED AYURVEDIC PROPERTIES for each meal: Rasa, Guna, Virya, Vipaka, Dosha and Prabhava.

5. ADDRESS PATIENT'S HEALTH CONDITIONS ({conditions}):
   - Digestive issues: include digestive spices
   - Heat-related conditions: cooling foods and preparations
   - Vata aggravation: warm, moist, grounding foods

6. RETURN ONLY VALID JSON - no explanatory text before or after.

MEDICAL FOCUS:
This {age}-year-old {gender.lower() if gender != NOT_SPECIFIED else 'patient'} with {constitution} constitution and {conditions} needs a diet that specifically addresses these imbalances through targeted food choices.

Generate the complete personalized Indian Ayurvedic diet plan now:"""
