"""Shared test fixtures for Ahara tests."""

from __future__ import annotations

import copy
import sys
from pathlib import Path
from typing import Any

import pytest

# ---------------------------------------------------------------------------
# Test hermeticity
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _force_hermetic_test_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LLM_PROVIDER", "mock")
    monkeypatch.setenv("ANTHROPIC_API_KEY", "")
    monkeypatch.setenv("OPENAI_API_KEY", "")
    monkeypatch.setenv("ENCRYPTION_KEY", "")
    monkeypatch.setenv("FIXTURE_DELAY_SECONDS", "0")
    monkeypatch.setenv("DB_PATH", ":memory:")
    monkeypatch.setenv("AHARA_ENV", "test")

# Allow running tests without `pip install -e .` by making `src/` importable.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_SRC_DIR = _PROJECT_ROOT / "src"
if str(_SRC_DIR) not in sys.path:
    sys.path.insert(0, str(_SRC_DIR))


# ---------------------------------------------------------------------------
# Patient payloads
# ---------------------------------------------------------------------------

_PATIENT_PAYLOAD: dict[str, Any] = {
    "name": "Ravi Kumar",
    "age": 42,
    "gender": "Male",
    "contactInfo": {
        "phone": "+919812345678",
        "email": "Ravi.Kumar@Example.com",
    },
    "prakriti": {"vata": 1, "pitta": 4, "kapha": 2},
    "vikriti": {"vata": 1, "pitta": 4.5, "kapha": 2},
    "roga": [
        {"condition": "Acidity and heat in body", "severity": "Mild"},
    ],
    "physicalMeasurements": {
        "weight": {"value": 78, "unit": "kg"},
        "height": {"cm": 175},
    },
    "dietaryHabits": {
        "type": "Vegetarian",
        "targetCalories": 2400,
    },
    "environment": {"climate": "Temperate", "season": "Winter"},
}


def make_patient_payload(**overrides: Any) -> dict[str, Any]:
    """A valid create payload; top-level keys can be overridden."""
    payload = copy.deepcopy(_PATIENT_PAYLOAD)
    payload.update(overrides)
    return payload


@pytest.fixture
def patient_payload() -> dict[str, Any]:
    return make_patient_payload()


# ---------------------------------------------------------------------------
# In-memory storage fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def patient_db():
    """Create an in-memory PatientDatabase for testing."""
    from ahara.core.storage.database import PatientDatabase

    db = PatientDatabase(":memory:")
    db.initialize()
    yield db
    db.close()


@pytest.fixture
def document_codec():
    """A DocumentCodec encrypting with a fresh test key."""
    from ahara.core.storage.encryption import DocumentCodec, FieldEncryptor

    return DocumentCodec(FieldEncryptor(FieldEncryptor.generate_key()))


@pytest.fixture
def patient_repository(patient_db, document_codec):
    """Create a PatientRepository backed by in-memory SQLite."""
    from ahara.core.storage.repository import PatientRepository

    return PatientRepository(patient_db, document_codec)


@pytest.fixture
def audit_logger(patient_db):
    """Create an AuditLogger backed by in-memory SQLite."""
    from ahara.core.audit.logger import AuditLogger

    return AuditLogger(patient_db)


@pytest.fixture
def patient_factory():
    """The payload builder, for tests that need several distinct patients."""
    return make_patient_payload
