"""Ahara diet-plan API: application factory.

This module provides:
- create_app() for testability (integration tests create fresh app instances
  with in-memory storage and injected generators)
- Module-level ``app`` for ``uvicorn ahara.core.server.app:app``
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI

from ahara.core.audit.logger import AuditLogger
from ahara.core.config.settings import Settings, get_settings
from ahara.core.server.errors import register_exception_handlers
from ahara.core.storage.database import PatientDatabase
from ahara.core.storage.encryption import DocumentCodec
from ahara.core.storage.repository import PatientRepository
from ahara.domains.ayurveda.domain_logic.generator import DietPlanGenerator, GeneratorConfig
from ahara.domains.ayurveda.routes import diet_plans, patients

logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"


def create_app(
    *,
    settings: Settings | None = None,
    repository_override: PatientRepository | None = None,
    generator_override: DietPlanGenerator | None = None,
    audit_override: AuditLogger | None = None,
) -> FastAPI:
    """Create and configure the Ahara REST API.

    This is the main application factory. It:
    1. Opens the patient store (and its audit table) unless one is injected
    2. Builds the diet-plan generator from settings unless one is injected
    3. Registers error handlers and the patient and diet-plan routers
    """
    settings = settings or get_settings()

    # --- Storage ---
    if repository_override is not None:
        repository = repository_override
    else:
        database = PatientDatabase(settings.db_path)
        database.initialize()
        repository = PatientRepository(database, DocumentCodec.from_key(settings.encryption_key))
        logger.info(
            "Patient store initialized: %s (schema v%d)",
            settings.db_path,
            database.get_schema_version(),
        )

    audit = audit_override or AuditLogger(repository.database)

    # --- Generation ---
    if generator_override is not None:
        generator = generator_override
    else:
        config = GeneratorConfig.from_settings(settings)
        generator = DietPlanGenerator(config)
        if not config.is_configured:
            logger.warning(
                "%s is not set; live generation will degrade to local fallback plans",
                config.credential_name,
            )

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        yield
        if repository_override is None:
            repository.database.close()
            logger.info("Patient store closed")

    app = FastAPI(
        title="Ahara Ayurvedic Diet Management API",
        version=API_VERSION,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.repository = repository
    app.state.generator = generator
    app.state.audit = audit

    register_exception_handlers(app)

    @app.get("/")
    def welcome() -> dict:
        return {
            "success": True,
            "message": "Welcome to Ahara Ayurvedic Diet Management API",
            "version": API_VERSION,
            "endpoints": {
                "patients": "/api/patients",
                "dietPlans": "/api/diet-plans",
                "health": "/health",
            },
        }

    @app.get("/health")
    def health() -> dict:
        return {
            "success": True,
            "message": "Ahara Ayurvedic Diet Management API is running",
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "environment": settings.ahara_env,
            "patients": repository.count(),
        }

    app.include_router(patients.router)
    app.include_router(diet_plans.router)
    return app


# Lazy: only created when this attribute is looked up (uvicorn "app" target),
# not when tests import create_app.
def __getattr__(name: str):
    if name == "app":
        global app  # noqa: PLW0603
        app = create_app()
        return app
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
