"""Loader for the static YAML data shipped with the Ayurveda domain.

Canned fixture plans, the per-dosha fallback library and the sample patients
live under ``domains/ayurveda/data``. Each file is parsed once and cached.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

DATA_DIR = Path(__file__).resolve().parent.parent / "data"


@lru_cache(maxsize=None)
def _load(name: str) -> dict[str, Any]:
    path = DATA_DIR / name
    with open(path, encoding="utf-8") as f:
        data: dict[str, Any] = yaml.safe_load(f) or {}
    logger.debug("Loaded domain data file %s", path.name)
    return data


def load_data_file(name: str) -> dict[str, Any]:
    """Parsed contents of a data file; callers get their own copy."""
    return copy.deepcopy(_load(name))


# ---------------------------------------------------------------------------
# Canned fixtures
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CannedFixture:
    """A showcase patient answered with a fixed plan instead of the LLM."""

    key: str
    patient_id: str
    name_token: str
    plan: dict[str, Any] = field(repr=False, compare=False)

    def matches(self, patient_id: str | None, name: str | None) -> bool:
        if patient_id and patient_id == self.patient_id:
            return True
        return bool(name) and self.name_token in name.lower()


@lru_cache(maxsize=None)
def load_fixtures() -> tuple[CannedFixture, ...]:
    data = _load("fixture_plans.yaml")
    return tuple(
        CannedFixture(
            key=item["key"],
            patient_id=str(item["patient_id"]),
            name_token=str(item["name_token"]).lower(),
            plan=item["plan"],
        )
        for item in data.get("fixtures", [])
    )


# ---------------------------------------------------------------------------
# Fallback library
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DoshaProfile:
    """Canned recommendations for one dominant dosha."""

    dosha: str
    variations: list[dict[str, list[str]]]
    properties: dict[str, dict[str, str]]
    guidelines: list[str]
    herbs: list[str]
    lifestyle: list[str]
    explanation: dict[str, str]


@dataclass(frozen=True)
class ConcernHerbs:
    keyword: str
    herbs: list[str]


@dataclass(frozen=True)
class FallbackLibrary:
    calorie_split: dict[str, float]
    herb_limit: int
    concern_herbs: list[ConcernHerbs]
    doshas: dict[str, DoshaProfile]

    def profile(self, dosha: str) -> DoshaProfile:
        """Profile for ``dosha`` (case-insensitive); unknown names get Vata."""
        return self.doshas.get(dosha.lower(), self.doshas["vata"])


@lru_cache(maxsize=None)
def load_fallback_library() -> FallbackLibrary:
    data = _load("fallback_library.yaml")
    doshas = {
        name: DoshaProfile(
            dosha=name,
            variations=body["variations"],
            properties=body["properties"],
            guidelines=body["guidelines"],
            herbs=body["herbs"],
            lifestyle=body["lifestyle"],
            explanation=body["explanation"],
        )
        for name, body in data["doshas"].items()
    }
    return FallbackLibrary(
        calorie_split={k: float(v) for k, v in data["calorie_split"].items()},
        herb_limit=int(data.get("herb_limit", 6)),
        concern_herbs=[
            ConcernHerbs(keyword=c["keyword"].lower(), herbs=c["herbs"])
            for c in data.get("concern_herbs", [])
        ],
        doshas=doshas,
    )


def load_sample_patients() -> list[dict[str, Any]]:
    """Sample records as ``{"id": ..., "record": {...}}`` entries."""
    return load_data_file("sample_patients.yaml").get("patients", [])
