"""Diet-plan routes under ``/api/diet-plans``: generation, export and diagnostics."""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Any, Mapping

from fastapi import APIRouter, Body, Depends
from fastapi.responses import PlainTextResponse

from ahara.core.audit.logger import AuditLogger
from ahara.core.errors import ValidationFailure
from ahara.core.server.deps import get_audit, get_generator, get_repository
from ahara.core.storage.repository import PatientRepository, is_valid_id
from ahara.domains.ayurveda.display.export import (
    format_plan_text,
    format_recipes_text,
    plan_filename,
    recipes_filename,
)
from ahara.domains.ayurveda.domain_logic.generator import DietPlanGenerator, GenerationResult

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/diet-plans", tags=["diet-plans"])

FEATURES = [
    "Personalized Ayurvedic diet plans",
    "Dosha-based meal recommendations",
    "Calorie and macro calculations",
    "Herb and lifestyle recommendations",
    "Local fallback plans when the LLM is unavailable",
    "Plain-text plan and recipe export",
]


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


async def _generate_audited(
    generator: DietPlanGenerator,
    audit: AuditLogger,
    patient: Mapping[str, Any],
    patient_id: str | None,
    variation: int = 0,
) -> GenerationResult:
    result = await generator.generate(patient, variation=variation)
    audit.log_generation(
        patient,
        patient_id=patient_id,
        llm_provider=generator.config.provider,
        llm_disclosed=result.llm_disclosed,
        plan_source=result.source,
        tokens_used=result.tokens_used,
        duration_ms=result.duration_ms,
        fallback_reason=result.fallback_reason,
    )
    return result


def _generation_body(
    result: GenerationResult,
    patient_id: str | None,
    patient_name: Any,
    **meta: Any,
) -> dict[str, Any]:
    body_meta: dict[str, Any] = {
        "patientId": patient_id,
        "patientName": patient_name,
        "tokensUsed": result.tokens_used,
        "source": result.source,
        "generatedAt": _now_iso(),
        **meta,
    }
    if result.fallback_reason:
        body_meta["fallbackReason"] = result.fallback_reason
    return {
        "success": result.success,
        "message": "Diet plan generated successfully",
        "data": result.data,
        "meta": body_meta,
    }


# ---------------------------------------------------------------------------
# Generation
# ---------------------------------------------------------------------------


@router.post("/generate/{patient_id}")
async def generate_for_patient(
    patient_id: str,
    repository: PatientRepository = Depends(get_repository),
    generator: DietPlanGenerator = Depends(get_generator),
    audit: AuditLogger = Depends(get_audit),
) -> dict[str, Any]:
    """Generate a plan for a stored patient."""
    patient = repository.get(patient_id)
    pid = patient["_id"]
    logger.info("Generating diet plan for stored patient %s", pid)
    result = await _generate_audited(generator, audit, patient, pid)
    return _generation_body(result, pid, patient.get("name"))


@router.post("/generate-direct")
async def generate_direct(
    payload: Any = Body(None),
    repository: PatientRepository = Depends(get_repository),
    generator: DietPlanGenerator = Depends(get_generator),
    audit: AuditLogger = Depends(get_audit),
) -> dict[str, Any]:
    """Generate a plan from supplied patient data.

    When ``patientData._id`` names an active stored patient, the stored record
    is used instead of the supplied fields.
    """
    if not isinstance(payload, dict) or not isinstance(payload.get("patientData"), dict):
        raise ValidationFailure.single("patientData", "Patient data is required")
    patient: dict[str, Any] = payload["patientData"]

    variation = payload.get("variation", 0)
    if isinstance(variation, bool) or not isinstance(variation, int):
        raise ValidationFailure.single("variation", "variation must be an integer")

    supplied_id = patient.get("_id")
    data_source = "Supplied Only"
    if isinstance(supplied_id, str) and is_valid_id(supplied_id):
        stored = repository.find(supplied_id)
        if stored is not None:
            patient = stored
            data_source = "Store + Supplied"
        else:
            logger.warning("Patient %s not in store; using supplied data", supplied_id)

    pid = patient.get("_id") if isinstance(patient.get("_id"), str) else None
    result = await _generate_audited(generator, audit, patient, pid, variation)
    return _generation_body(result, pid, patient.get("name"), dataSource=data_source)


# ---------------------------------------------------------------------------
# Export
# ---------------------------------------------------------------------------


def _plan_from_body(payload: Any) -> dict[str, Any]:
    if not isinstance(payload, dict) or not isinstance(payload.get("plan"), dict):
        raise ValidationFailure.single("plan", "Diet plan is required")
    return payload["plan"]


def _attachment(text: str, filename: str) -> PlainTextResponse:
    return PlainTextResponse(
        text,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/export/plan")
def export_plan(payload: Any = Body(None)) -> PlainTextResponse:
    plan = _plan_from_body(payload)
    today = date.today()
    return _attachment(format_plan_text(plan, today), plan_filename(today))


@router.post("/export/recipes")
def export_recipes(payload: Any = Body(None)) -> PlainTextResponse:
    plan = _plan_from_body(payload)
    today = date.today()
    return _attachment(format_recipes_text(plan, today), recipes_filename(plan, today))


# ---------------------------------------------------------------------------
# Diagnostics
# ---------------------------------------------------------------------------


@router.get("/health")
def service_health(
    generator: DietPlanGenerator = Depends(get_generator),
    audit: AuditLogger = Depends(get_audit),
) -> dict[str, Any]:
    config = generator.config
    return {
        "success": True,
        "message": "Diet plan generation service status",
        "status": {
            "configured": config.is_configured,
            "provider": config.provider,
            "model": config.model,
            "features": FEATURES,
            "audit": audit.counters(),
        },
        "timestamp": _now_iso(),
    }


@router.get("/test/{patient_id}")
async def test_generation(
    patient_id: str,
    repository: PatientRepository = Depends(get_repository),
    generator: DietPlanGenerator = Depends(get_generator),
    audit: AuditLogger = Depends(get_audit),
) -> dict[str, Any]:
    """Run one generation with a debug report.

    Unlike the generation routes, a missing credential is reported as an
    error here instead of degrading to the local fallback.
    """
    generator.config.check_configuration()
    patient = repository.get(patient_id)
    pid = patient["_id"]
    result = await _generate_audited(generator, audit, patient, pid)
    return {
        "success": True,
        "message": "Diet plan generation test completed",
        "debug": {
            "patientId": pid,
            "patientName": patient.get("name"),
            "provider": generator.config.provider,
            "apiKeyConfigured": generator.config.is_configured,
            "generationSuccess": result.success,
            "source": result.source,
            "fallbackReason": result.fallback_reason,
            "tokensUsed": result.tokens_used,
        },
        "result": result.to_dict(),
    }
