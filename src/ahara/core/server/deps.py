"""FastAPI dependencies resolving the shared services built by ``create_app``."""

from __future__ import annotations

from fastapi import Request

from ahara.core.audit.logger import AuditLogger
from ahara.core.storage.repository import PatientRepository
from ahara.domains.ayurveda.domain_logic.generator import DietPlanGenerator


def get_repository(request: Request) -> PatientRepository:
    return request.app.state.repository


def get_generator(request: Request) -> DietPlanGenerator:
    return request.app.state.generator


def get_audit(request: Request) -> AuditLogger:
    return request.app.state.audit
