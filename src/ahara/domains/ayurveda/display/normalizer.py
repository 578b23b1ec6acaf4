"""Patient normalization for display and for plan generation.

Patient data reaches the generator in two shapes: a stored document with
nested objects and numbers, or a flat map collected by the chat intake where
every answer is a string. Both are modelled as one tagged union so rendering
code never has to guess which shape it holds.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Mapping, Union

from ahara.domains.ayurveda.domain_logic.constitution import parse_dosha_text

logger = logging.getLogger(__name__)

NOT_SPECIFIED = "Not specified"

# Display field -> fallback text when the value is absent
DISPLAY_FALLBACKS = {
    "name": "Unnamed Patient",
    "age": "Age not specified",
    "gender": "Gender not specified",
    "prakriti": NOT_SPECIFIED,
    "vikruti": NOT_SPECIFIED,
    "roga": "No health concerns",
    "climate": "Climate not specified",
    "agni": "Appetite not specified",
    "foodPreferences": "Food preferences not specified",
    "targetCalories": "Target calories not specified",
}

_DOSHA_KEYS = ("vata", "pitta", "kapha")


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


def format_number(value: int | float) -> str:
    """Render numbers without a trailing ``.0`` for integral floats."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def render_dosha(triple: Mapping[str, Any]) -> str:
    parts = []
    for key in _DOSHA_KEYS:
        value = triple.get(key) or 0
        rendered = format_number(value) if isinstance(value, (int, float)) else str(value)
        parts.append(f"{key.capitalize()}: {rendered}")
    return ", ".join(parts)


def safe_render(value: Any, fallback: str = NOT_SPECIFIED) -> str:
    """Turn any patient field into a display string. Never raises.

    Dosha triples render as ``"Vata: x, Pitta: y, Kapha: z"``; lists join
    their items (condition records by their condition name); other mappings
    join their truthy values.
    """
    if value is None:
        return fallback
    if isinstance(value, str):
        return value if value.strip() else fallback
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if isinstance(value, (int, float)):
        return format_number(value)
    if isinstance(value, (list, tuple)):
        items = []
        for item in value:
            if isinstance(item, Mapping) and (item.get("condition") or item.get("name")):
                items.append(str(item.get("condition") or item.get("name")))
            else:
                items.append(safe_render(item, ""))
        joined = ", ".join(i for i in items if i)
        return joined or fallback
    if isinstance(value, Mapping):
        if any(key in value for key in _DOSHA_KEYS):
            return render_dosha(value)
        joined = ", ".join(safe_render(v, "") for v in value.values() if v)
        return joined or fallback
    return str(value)


# ---------------------------------------------------------------------------
# Patient sources
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StoredPatient:
    """A structured patient document (from the store or a full payload)."""

    record: dict[str, Any]

    @property
    def patient_id(self) -> str | None:
        pid = self.record.get("_id")
        return str(pid) if pid else None


@dataclass(frozen=True)
class CollectedPatient:
    """Free-text answers gathered by the intake conversation."""

    answers: dict[str, str] = field(default_factory=dict)
    patient_id: str | None = None


PatientSource = Union[StoredPatient, CollectedPatient]


def classify_patient(raw: Mapping[str, Any] | PatientSource | None) -> PatientSource:
    """Tag raw patient data as stored or collected.

    A map whose values (other than ``_id``) are all strings is treated as
    collected intake answers; anything with nested or numeric values is a
    stored document.
    """
    if isinstance(raw, (StoredPatient, CollectedPatient)):
        return raw
    data = dict(raw or {})
    pid = data.get("_id")
    values = [v for k, v in data.items() if k != "_id"]
    if all(v is None or isinstance(v, str) for v in values):
        answers = {k: v for k, v in data.items() if k != "_id" and v is not None}
        return CollectedPatient(answers=answers, patient_id=str(pid) if pid else None)
    return StoredPatient(record=data)


def _stored_display(record: Mapping[str, Any]) -> dict[str, Any]:
    dietary = record.get("dietaryHabits") if isinstance(record.get("dietaryHabits"), Mapping) else {}
    environment = record.get("environment") if isinstance(record.get("environment"), Mapping) else {}
    preferences = dietary.get("foodPreferences") if isinstance(dietary.get("foodPreferences"), Mapping) else {}

    food_parts = [dietary.get("type"), preferences.get("temperature") and f"prefers {preferences['temperature'].lower()} foods"]
    climate_parts = [environment.get("climate"), environment.get("season")]
    calories = dietary.get("targetCalories")
    return {
        "name": record.get("name"),
        "age": record.get("age"),
        "gender": record.get("gender"),
        "prakriti": record.get("prakriti"),
        "vikruti": record.get("vikriti"),
        "roga": record.get("roga"),
        "climate": ", ".join(p for p in climate_parts if p) or None,
        "agni": dietary.get("appetite"),
        "foodPreferences": ", ".join(p for p in food_parts if p) or None,
        "targetCalories": f"{format_number(calories)} kcal/day" if isinstance(calories, (int, float)) else calories,
    }


def _collected_display(answers: Mapping[str, str]) -> dict[str, Any]:
    return {
        "name": answers.get("name"),
        "age": answers.get("age"),
        "gender": answers.get("gender"),
        "prakriti": answers.get("prakriti"),
        "vikruti": answers.get("vikruti") or answers.get("vikriti"),
        "roga": answers.get("roga"),
        "climate": answers.get("climate"),
        "agni": answers.get("agni"),
        "foodPreferences": answers.get("foodPreferences"),
        "targetCalories": answers.get("targetCalories"),
    }


def to_display_safe(raw: Mapping[str, Any] | PatientSource | None) -> dict[str, Any]:
    """Normalize either patient shape into display strings.

    The original ``_id`` is carried through untouched so a later generation
    request can still look the full record up in the store.
    """
    source = classify_patient(raw)
    if isinstance(source, StoredPatient):
        fields = _stored_display(source.record)
        raw_id = source.record.get("_id")
    else:
        fields = _collected_display(source.answers)
        raw_id = source.patient_id

    display = {key: safe_render(fields.get(key), fallback) for key, fallback in DISPLAY_FALLBACKS.items()}
    if raw_id is not None:
        display["_id"] = raw_id
    return display


# ---------------------------------------------------------------------------
# Collected answers -> structured record
# ---------------------------------------------------------------------------

_NUMBER_RE = re.compile(r"\d+(?:\.\d+)?")
_FEET_INCHES_RE = re.compile(
    r"(\d+(?:\.\d+)?)\s*(?:'|ft|feet|foot)\s*(?:(\d+(?:\.\d+)?)\s*(?:\"|in|inch|inches)?)?",
    re.IGNORECASE,
)


def _first_number(text: str | None) -> float | None:
    match = _NUMBER_RE.search(text or "")
    return float(match.group()) if match else None


def _as_int(text: str | None) -> int | str | None:
    number = _first_number(text)
    if number is None:
        return text or None
    return int(number)


def parse_weight(text: str | None) -> dict[str, Any] | None:
    value = _first_number(text)
    if value is None:
        return None
    unit = "lbs" if re.search(r"lb|pound", text or "", re.IGNORECASE) else "kg"
    return {"value": value, "unit": unit}


def parse_height(text: str | None) -> dict[str, Any] | None:
    """Parse ``165 cm``, ``5'5"``, ``5 ft 5 in`` or a bare number."""
    if not text:
        return None
    if re.search(r"cm|centimet", text, re.IGNORECASE):
        cm = _first_number(text)
        return {"cm": cm} if cm else None
    match = _FEET_INCHES_RE.search(text)
    if match:
        inches = float(match.group(2)) if match.group(2) else 0.0
        return {"feet": float(match.group(1)), "inches": inches}
    value = _first_number(text)
    if value is None:
        return None
    # A bare number this large can only be centimetres.
    if value >= 100:
        return {"cm": value}
    return {"feet": value, "inches": 0.0}


def collected_to_record(source: CollectedPatient) -> dict[str, Any]:
    """Best-effort structured record built from free-text intake answers.

    Fields that cannot be parsed are left out so downstream defaults apply.
    Free-text answers with no structured home are kept under ``intakeNotes``.
    """
    answers = source.answers
    record: dict[str, Any] = {}
    if source.patient_id:
        record["_id"] = source.patient_id
    if answers.get("name"):
        record["name"] = answers["name"]
    age = _as_int(answers.get("age"))
    if age is not None:
        record["age"] = age
    if answers.get("gender"):
        record["gender"] = answers["gender"]

    prakriti = parse_dosha_text(answers.get("prakriti", ""))
    if prakriti:
        record["prakriti"] = prakriti
    vikriti = parse_dosha_text(answers.get("vikruti") or answers.get("vikriti") or "")
    if vikriti:
        record["vikriti"] = vikriti

    roga_text = answers.get("roga", "")
    conditions = [part.strip() for part in re.split(r"[,;]", roga_text) if part.strip()]
    if conditions:
        record["roga"] = [{"condition": c} for c in conditions]

    measurements: dict[str, Any] = {}
    weight = parse_weight(answers.get("weight"))
    if weight:
        measurements["weight"] = weight
    height = parse_height(answers.get("height"))
    if height:
        measurements["height"] = height
    if measurements:
        record["physicalMeasurements"] = measurements

    dietary: dict[str, Any] = {}
    if answers.get("dietaryHabits"):
        dietary["type"] = answers["dietaryHabits"]
    if answers.get("agni"):
        dietary["appetite"] = answers["agni"]
    calories = _first_number(answers.get("targetCalories"))
    if calories is not None:
        dietary["targetCalories"] = int(calories)
    if dietary:
        record["dietaryHabits"] = dietary

    if answers.get("climate"):
        record["environment"] = {"climate": answers["climate"]}

    notes = {
        key: answers[key]
        for key in ("prakriti", "vikruti", "foodPreferences", "mealFrequency")
        if answers.get(key)
    }
    if notes:
        record["intakeNotes"] = notes
    return record


def as_record(raw: Mapping[str, Any] | PatientSource | None) -> dict[str, Any]:
    """Structured record for either patient shape."""
    source = classify_patient(raw)
    if isinstance(source, StoredPatient):
        return source.record
    return collected_to_record(source)
