"""Patient CRUD routes under ``/api/patients``."""

from __future__ import annotations

import logging
import math
from typing import Any

from fastapi import APIRouter, Body, Depends, Header, Query

from ahara.core.audit.logger import AuditLogger
from ahara.core.server.deps import get_audit, get_repository
from ahara.core.storage.repository import PatientRepository
from ahara.domains.ayurveda.domain_logic.constitution import patient_summary, with_virtuals
from ahara.domains.ayurveda.domain_logic.patient_schema import (
    validate_partial_payload,
    validate_patient_payload,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/patients", tags=["patients"])


@router.get("")
def list_patients(
    page: int = Query(1),
    limit: int = Query(10),
    search: str = Query(""),
    sort_by: str = Query("createdAt", alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder"),
    repository: PatientRepository = Depends(get_repository),
) -> dict[str, Any]:
    """List active patients, newest first by default."""
    patients, total = repository.list_patients(
        page=page, limit=limit, search=search, sort_by=sort_by, sort_order=sort_order
    )
    total_pages = math.ceil(total / limit)
    return {
        "success": True,
        "data": [with_virtuals(p) for p in patients],
        "pagination": {
            "currentPage": page,
            "totalPages": total_pages,
            "totalPatients": total,
            "hasNextPage": page < total_pages,
            "hasPrevPage": page > 1,
        },
    }


@router.get("/{patient_id}")
def get_patient(
    patient_id: str,
    repository: PatientRepository = Depends(get_repository),
) -> dict[str, Any]:
    return {"success": True, "data": with_virtuals(repository.get(patient_id))}


@router.post("", status_code=201)
def create_patient(
    payload: Any = Body(None),
    repository: PatientRepository = Depends(get_repository),
) -> dict[str, Any]:
    document = validate_patient_payload(payload)
    created = repository.create(document)
    return {
        "success": True,
        "message": "Patient created successfully",
        "data": with_virtuals(created),
    }


@router.put("/{patient_id}")
def update_patient(
    patient_id: str,
    payload: Any = Body(None),
    x_partial_update: str | None = Header(None),
    repository: PatientRepository = Depends(get_repository),
) -> dict[str, Any]:
    """Full validated replace, or a shallow type-checked merge for the editor.

    The merge path is selected by the ``X-Partial-Update: true`` header.
    """
    if x_partial_update == "true":
        updated = repository.patch(patient_id, validate_partial_payload(payload))
    else:
        updated = repository.replace(patient_id, validate_patient_payload(payload))
    return {
        "success": True,
        "message": "Patient updated successfully",
        "data": with_virtuals(updated),
    }


@router.delete("/{patient_id}")
def delete_patient(
    patient_id: str,
    repository: PatientRepository = Depends(get_repository),
    audit: AuditLogger = Depends(get_audit),
) -> dict[str, Any]:
    repository.soft_delete(patient_id)
    audit.log_patient_delete(patient_id.lower())
    return {"success": True, "message": "Patient deleted successfully"}


@router.get("/{patient_id}/summary")
def get_patient_summary(
    patient_id: str,
    repository: PatientRepository = Depends(get_repository),
) -> dict[str, Any]:
    return {"success": True, "data": patient_summary(repository.get(patient_id))}
