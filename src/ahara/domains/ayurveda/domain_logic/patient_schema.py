"""Pydantic schema for patient records.

Documents travel in camelCase (``dietaryHabits.targetCalories``); the models
use snake_case attributes with a camelCase alias generator and reject unknown
keys, so every offending field surfaces as its own ``{field, message}`` entry.
"""

from __future__ import annotations

import re
from datetime import date, datetime
from functools import lru_cache
from typing import Annotated, Any, Literal, Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    StringConstraints,
    TypeAdapter,
    ValidationError,
    field_validator,
)
from pydantic.alias_generators import to_camel

from ahara.core.errors import FieldError, ValidationFailure

_PHONE_RE = re.compile(r"^\+?[0-9]{6,15}$")
_EMAIL_RE = re.compile(r"^[\w.+-]+@[\w-]+(\.[\w-]+)*\.[A-Za-z]{2,}$")

Gender = Literal["Male", "Female", "Other"]
Severity = Literal["Mild", "Moderate", "Severe"]
DietType = Literal["Vegetarian", "Non-Vegetarian", "Vegan", "Jain", "Eggetarian"]
Appetite = Literal["Poor", "Moderate", "Good", "Excessive"]
FoodTemperature = Literal["Cold", "Warm", "Hot", "Room Temperature"]
Taste = Literal["Sweet", "Sour", "Salty", "Pungent", "Bitter", "Astringent"]
SpiceLevel = Literal["Mild", "Medium", "Spicy", "Very Spicy"]
ActivityLevel = Literal[
    "Sedentary", "Lightly Active", "Moderately Active", "Very Active", "Extremely Active"
]
SleepQuality = Literal["Poor", "Fair", "Good", "Excellent"]
StressLevel = Literal["Low", "Moderate", "High", "Very High"]
SmokingStatus = Literal["Never", "Former", "Current"]
AlcoholConsumption = Literal["None", "Occasional", "Moderate", "Heavy"]
Climate = Literal["Tropical", "Subtropical", "Temperate", "Cold", "Arid", "Humid"]
Season = Literal["Spring", "Summer", "Monsoon", "Autumn", "Winter"]

PatientName = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=100)]
DoshaScore = Annotated[float, Field(ge=0, le=5)]
CalendarDate = date | datetime


class _Model(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
    )


# ---------------------------------------------------------------------------
# Nested records
# ---------------------------------------------------------------------------


class Address(_Model):
    street: str = ""
    city: str = ""
    state: str = ""
    zip_code: str = ""
    country: str = "India"


class ContactInfo(_Model):
    phone: str = ""
    email: str = ""
    address: Optional[Address] = None

    @field_validator("phone")
    @classmethod
    def _check_phone(cls, value: str) -> str:
        value = value.strip()
        if value and not _PHONE_RE.match(value):
            raise ValueError("Please enter a valid phone number")
        return value

    @field_validator("email")
    @classmethod
    def _check_email(cls, value: str) -> str:
        value = value.strip().lower()
        if value and not _EMAIL_RE.match(value):
            raise ValueError("Please enter a valid email")
        return value


class DoshaTriple(_Model):
    vata: DoshaScore
    pitta: DoshaScore
    kapha: DoshaScore


class Condition(_Model):
    condition: str = Field(
        min_length=1,
        validation_alias=AliasChoices("condition", "name"),
    )
    severity: Severity = "Moderate"
    duration: str = ""
    notes: str = ""


class Weight(_Model):
    value: float = Field(gt=0)
    unit: Literal["kg", "lbs"] = "kg"


class Height(_Model):
    feet: Optional[float] = Field(default=None, ge=0)
    inches: Optional[float] = Field(default=None, ge=0)
    cm: Optional[float] = Field(default=None, ge=0)


class PhysicalMeasurements(_Model):
    weight: Weight
    height: Height
    bmi: Optional[float] = None


class FoodPreferences(_Model):
    temperature: FoodTemperature = "Warm"
    taste: list[Taste] = Field(default_factory=list)
    spice_level: SpiceLevel = "Medium"


class MealFrequency(_Model):
    main_meals: int = Field(default=3, ge=1, le=6)
    snacks: int = Field(default=1, ge=0, le=5)


class DietaryHabits(_Model):
    type: DietType
    appetite: Appetite = "Moderate"
    food_preferences: FoodPreferences = Field(default_factory=FoodPreferences)
    meal_frequency: MealFrequency = Field(default_factory=MealFrequency)
    target_calories: int = Field(ge=800, le=5000)
    allergies: list[str] = Field(default_factory=list)
    dislikes: list[str] = Field(default_factory=list)


class SleepPattern(_Model):
    average_hours: float = Field(default=7, ge=3, le=12)
    quality: SleepQuality = "Good"


class Lifestyle(_Model):
    activity_level: ActivityLevel = "Moderately Active"
    sleep_pattern: SleepPattern = Field(default_factory=SleepPattern)
    stress_level: StressLevel = "Moderate"
    occupation: str = ""
    smoking_status: SmokingStatus = "Never"
    alcohol_consumption: AlcoholConsumption = "None"


class Environment(_Model):
    climate: Climate = "Tropical"
    season: Season = "Summer"


class Medication(_Model):
    name: Optional[str] = None
    dosage: Optional[str] = None
    frequency: Optional[str] = None
    start_date: Optional[CalendarDate] = None


class PastIllness(_Model):
    condition: Optional[str] = None
    year: Optional[int] = None
    treatment: Optional[str] = None


class FamilyHistoryEntry(_Model):
    relation: Optional[str] = None
    condition: Optional[str] = None


class Surgery(_Model):
    procedure: Optional[str] = None
    date: Optional[CalendarDate] = None
    hospital: Optional[str] = None


class MedicalHistory(_Model):
    current_medications: list[Medication] = Field(default_factory=list)
    past_illnesses: list[PastIllness] = Field(default_factory=list)
    family_history: list[FamilyHistoryEntry] = Field(default_factory=list)
    surgeries: list[Surgery] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Patient
# ---------------------------------------------------------------------------


class PatientRecord(_Model):
    """A full patient record as accepted on create and full update."""

    name: PatientName
    age: int = Field(ge=0, le=150)
    gender: Gender
    contact_info: Optional[ContactInfo] = None
    prakriti: DoshaTriple
    vikriti: DoshaTriple
    roga: list[Condition] = Field(default_factory=list)
    physical_measurements: PhysicalMeasurements
    dietary_habits: DietaryHabits
    lifestyle: Lifestyle = Field(default_factory=Lifestyle)
    environment: Environment = Field(default_factory=Environment)
    medical_history: Optional[MedicalHistory] = None
    created_by: Optional[str] = None
    is_active: bool = True

    def to_document(self) -> dict[str, Any]:
        """camelCase, JSON-safe document with defaults filled in."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


def validate_patient_payload(payload: Any) -> dict[str, Any]:
    """Validate a raw request body and return the normalized document.

    Raises:
        ValidationFailure: With one entry per offending field.
    """
    if not isinstance(payload, dict):
        raise ValidationFailure.single("body", "Patient data must be a JSON object")
    try:
        record = PatientRecord.model_validate(payload)
    except ValidationError as exc:
        raise ValidationFailure.from_pydantic(exc) from exc
    return record.to_document()


# ---------------------------------------------------------------------------
# Partial updates
# ---------------------------------------------------------------------------

# Constraint, enum, required-field and custom-validator failures. A partial
# update skips these; anything else is a value of the wrong shape or type.
_NON_TYPE_ERRORS = frozenset({
    "missing",
    "extra_forbidden",
    "literal_error",
    "enum",
    "value_error",
    "assertion_error",
    "string_too_short",
    "string_too_long",
    "string_pattern_mismatch",
    "too_short",
    "too_long",
    "greater_than",
    "greater_than_equal",
    "less_than",
    "less_than_equal",
})


@lru_cache(maxsize=None)
def _field_adapters() -> dict[str, TypeAdapter]:
    """Top-level document key (camelCase or snake_case) -> adapter for its type."""
    adapters: dict[str, TypeAdapter] = {}
    for name, info in PatientRecord.model_fields.items():
        adapter = TypeAdapter(info.annotation)
        adapters[name] = adapter
        if info.alias:
            adapters[info.alias] = adapter
    return adapters


def validate_partial_payload(payload: Any) -> dict[str, Any]:
    """Type-check the keys of a partial update without enforcing the full schema.

    Each known top-level key must have the shape its field declares (a triple
    must be an object, a weight must be ``{value, unit}``, an age a number).
    Bounds, enums, required fields and unknown keys are not checked, so the
    editor can save work in progress.

    Raises:
        ValidationFailure: When the body is not an object or a value has the
            wrong type; one entry per offending field.
    """
    if not isinstance(payload, dict):
        raise ValidationFailure.single("body", "Patient data must be a JSON object")
    adapters = _field_adapters()
    errors: list[FieldError] = []
    for key, value in payload.items():
        adapter = adapters.get(key)
        if adapter is None:
            continue
        try:
            adapter.validate_python(value)
        except ValidationError as exc:
            errors.extend(
                FieldError(
                    field=".".join(str(part) for part in (key, *err["loc"])),
                    message=err["msg"],
                )
                for err in exc.errors()
                if err["type"] not in _NON_TYPE_ERRORS
            )
    if errors:
        raise ValidationFailure(errors)
    return payload
