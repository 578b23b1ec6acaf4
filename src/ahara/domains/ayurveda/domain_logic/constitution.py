"""Derived constitution and body-measurement values for a patient record.

These are computed on read and never treated as authoritative stored data,
except that every write refreshes ``physicalMeasurements.bmi`` from
:func:`calculated_bmi`.
"""

from __future__ import annotations

import re
from typing import Any, Mapping

DOSHAS = ("Vata", "Pitta", "Kapha")

LBS_TO_KG = 0.453592
INCH_TO_M = 0.0254

_DOSHA_VALUE_RE = re.compile(r"(vata|pitta|kapha)\s*[:=]?\s*(-?\d+(?:\.\d+)?)", re.IGNORECASE)


def _mapping(value: Any) -> Mapping[str, Any] | None:
    """The value itself when it is a mapping; any other shape counts as absent."""
    return value if isinstance(value, Mapping) else None


def _number(value: Any) -> float:
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return 0.0
    return 0.0


def dominant_dosha(triple: Mapping[str, Any] | None) -> str:
    """Return the dominant dosha of a ``{vata, pitta, kapha}`` triple.

    Ties resolve Vata over Pitta over Kapha. A missing or non-mapping triple
    yields "Vata".
    """
    triple = _mapping(triple)
    if not triple:
        return "Vata"
    vata = _number(triple.get("vata", 0))
    pitta = _number(triple.get("pitta", 0))
    kapha = _number(triple.get("kapha", 0))
    if vata >= pitta and vata >= kapha:
        return "Vata"
    if pitta >= kapha:
        return "Pitta"
    return "Kapha"


def parse_dosha_text(text: str) -> dict[str, float] | None:
    """Parse free text such as ``"Vata: 3, Pitta: 2, Kapha: 1"`` into a triple.

    Returns None when no dosha value can be found.
    """
    matches = _DOSHA_VALUE_RE.findall(text or "")
    if not matches:
        return None
    triple = {"vata": 0.0, "pitta": 0.0, "kapha": 0.0}
    for name, value in matches:
        triple[name.lower()] = float(value)
    return triple


def coerce_dosha(value: Any) -> str:
    """Dominant dosha of either a structured triple or collected free text.

    Text that only names a dosha (``"pitta dominant"``) picks that dosha;
    anything unparseable falls back to "Vata".
    """
    if isinstance(value, Mapping):
        return dominant_dosha(value)
    if isinstance(value, str):
        triple = parse_dosha_text(value)
        if triple is not None:
            return dominant_dosha(triple)
        lowered = value.lower()
        for dosha in DOSHAS:
            if dosha.lower() in lowered:
                return dosha
    return "Vata"


def weight_in_kg(weight: Mapping[str, Any] | None) -> float | None:
    weight = _mapping(weight)
    if not weight or weight.get("value") in (None, ""):
        return None
    value = _number(weight.get("value"))
    if weight.get("unit") == "lbs":
        return value * LBS_TO_KG
    return value


def height_in_m(height: Mapping[str, Any] | None) -> float | None:
    """Height in metres from ``{cm}`` or ``{feet, inches}``; cm wins if both are set."""
    height = _mapping(height)
    if not height:
        return None
    cm = _number(height.get("cm"))
    if cm:
        return cm / 100
    feet = _number(height.get("feet"))
    if feet:
        total_inches = feet * 12 + _number(height.get("inches"))
        return total_inches * INCH_TO_M
    return None


def calculated_bmi(measurements: Mapping[str, Any] | None) -> float | None:
    """BMI rounded to two decimals, or None when weight or height is missing."""
    measurements = _mapping(measurements)
    if not measurements:
        return None
    kg = weight_in_kg(measurements.get("weight"))
    metres = height_in_m(measurements.get("height"))
    if kg is None or not metres:
        return None
    return round(kg / (metres * metres), 2)


def with_virtuals(document: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of a stored patient document with derived fields attached."""
    enriched = dict(document)
    enriched["calculatedBMI"] = calculated_bmi(document.get("physicalMeasurements"))
    enriched["dominantPrakriti"] = dominant_dosha(document.get("prakriti"))
    enriched["dominantVikriti"] = dominant_dosha(document.get("vikriti"))
    return enriched


def patient_summary(document: Mapping[str, Any]) -> dict[str, Any]:
    """Derived snapshot used by the patient summary endpoint."""
    dietary = _mapping(document.get("dietaryHabits")) or {}
    lifestyle = _mapping(document.get("lifestyle")) or {}
    roga = document.get("roga")
    conditions = [
        item.get("condition") if isinstance(item, Mapping) else str(item)
        for item in (roga if isinstance(roga, list) else [])
    ]
    return {
        "basicInfo": {
            "name": document.get("name"),
            "age": document.get("age"),
            "gender": document.get("gender"),
            "bmi": calculated_bmi(document.get("physicalMeasurements")),
        },
        "constitution": {
            "dominantPrakriti": dominant_dosha(document.get("prakriti")),
            "dominantVikriti": dominant_dosha(document.get("vikriti")),
            "prakritiBalance": document.get("prakriti"),
            "vikritiBalance": document.get("vikriti"),
        },
        "currentHealth": {
            "conditions": conditions,
            "targetCalories": dietary.get("targetCalories"),
            "dietType": dietary.get("type"),
            "activityLevel": lifestyle.get("activityLevel"),
        },
        "lastUpdated": document.get("lastUpdated"),
    }
