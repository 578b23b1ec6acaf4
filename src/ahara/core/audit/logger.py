"""Audit trail for diet-plan generations and patient deletions.

Rows are PHI-free: the generation input is stored only as a SHA-256 of its
canonical JSON, and ``llm_disclosed`` records whether patient data was sent
to an external LLM provider.
"""

from __future__ import annotations

import hashlib
import json
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from ahara.core.storage.database import PatientDatabase

logger = logging.getLogger(__name__)


def hash_input(data: Any) -> str:
    """SHA-256 of canonical JSON, or "" when ``data`` is not serializable."""
    try:
        canonical = json.dumps(data, sort_keys=True, separators=(",", ":"), default=str)
    except (TypeError, ValueError):
        return ""
    return hashlib.sha256(canonical.encode()).hexdigest()


@dataclass
class AuditEvent:
    """A single audit log entry."""

    action: str                          # 'plan_generation' | 'patient_delete'
    patient_id: str | None = None
    input_hash: str = ""
    llm_provider: str | None = None      # 'openai' | 'anthropic' | 'mock'
    llm_disclosed: bool = False
    plan_source: str | None = None       # 'fixture' | 'live' | 'fallback'
    tokens_used: int = 0
    duration_ms: float | None = None
    status: str = "success"
    error_type: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


class AuditLogger:
    """Records audit events to the ``audit_log`` table.

    Writes are committed immediately. A failed write is logged and reported
    as an empty event id; it never fails the request being audited.
    """

    def __init__(self, database: PatientDatabase) -> None:
        self._db = database

    # ---------------------------------------------------------------
    # Write
    # ---------------------------------------------------------------

    def log_event(self, event: AuditEvent) -> str:
        event_id = uuid.uuid4().hex
        now = datetime.now(timezone.utc).isoformat()
        metadata_json = (
            json.dumps(event.metadata, separators=(",", ":")) if event.metadata else None
        )

        try:
            conn = self._db.connection
            conn.execute(
                """INSERT INTO audit_log
                   (id, timestamp, action, patient_id, input_hash, llm_provider,
                    llm_disclosed, plan_source, tokens_used, duration_ms,
                    status, error_type, metadata_json)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    event_id,
                    now,
                    event.action,
                    event.patient_id,
                    event.input_hash or None,
                    event.llm_provider,
                    1 if event.llm_disclosed else 0,
                    event.plan_source,
                    event.tokens_used,
                    event.duration_ms,
                    event.status,
                    event.error_type,
                    metadata_json,
                ),
            )
            conn.commit()
        except Exception:
            logger.exception("Failed to write audit event; event lost")
            return ""
        return event_id

    def log_generation(
        self,
        patient_data: Any,
        *,
        patient_id: str | None,
        llm_provider: str | None,
        llm_disclosed: bool,
        plan_source: str,
        tokens_used: int = 0,
        duration_ms: float | None = None,
        fallback_reason: str | None = None,
    ) -> str:
        """Record one diet-plan generation.

        Args:
            patient_data: Patient input (hashed, never stored raw).
            patient_id: Store id, when the input came from the store.
            llm_provider: Provider configured for live generation.
            llm_disclosed: Whether patient data reached the external provider.
            plan_source: "fixture", "live" or "fallback".
            tokens_used: Tokens consumed by the provider.
            duration_ms: Wall time of the generation.
            fallback_reason: Why the plan degraded to the local fallback.
        """
        degraded = plan_source == "fallback"
        return self.log_event(AuditEvent(
            action="plan_generation",
            patient_id=patient_id,
            input_hash=hash_input(patient_data),
            llm_provider=llm_provider,
            llm_disclosed=llm_disclosed,
            plan_source=plan_source,
            tokens_used=tokens_used,
            duration_ms=duration_ms,
            status="degraded" if degraded else "success",
            metadata={"fallback_reason": fallback_reason} if fallback_reason else {},
        ))

    def log_patient_delete(self, patient_id: str) -> str:
        return self.log_event(AuditEvent(action="patient_delete", patient_id=patient_id))

    # ---------------------------------------------------------------
    # Read
    # ---------------------------------------------------------------

    def get_events(
        self,
        *,
        action: str | None = None,
        patient_id: str | None = None,
        limit: int = 50,
    ) -> list[dict[str, Any]]:
        """Query audit events, newest first."""
        conditions: list[str] = []
        params: list[Any] = []
        if action:
            conditions.append("action = ?")
            params.append(action)
        if patient_id:
            conditions.append("patient_id = ?")
            params.append(patient_id)

        where = (" WHERE " + " AND ".join(conditions)) if conditions else ""
        params.append(limit)
        rows = self._db.connection.execute(
            f"SELECT * FROM audit_log{where} ORDER BY timestamp DESC, rowid DESC LIMIT ?",
            params,
        ).fetchall()
        return [dict(row) for row in rows]

    def count_events(self, *, action: str | None = None) -> int:
        if action:
            row = self._db.connection.execute(
                "SELECT COUNT(*) FROM audit_log WHERE action = ?", (action,)
            ).fetchone()
        else:
            row = self._db.connection.execute("SELECT COUNT(*) FROM audit_log").fetchone()
        return row[0]

    def count_disclosures(self) -> int:
        """Number of generations whose patient data was sent to an external LLM."""
        row = self._db.connection.execute(
            "SELECT COUNT(*) FROM audit_log WHERE llm_disclosed = 1"
        ).fetchone()
        return row[0]

    def counters(self) -> dict[str, int]:
        """Aggregate counters for diagnostics."""
        by_source = {
            row[0]: row[1]
            for row in self._db.connection.execute(
                "SELECT plan_source, COUNT(*) FROM audit_log "
                "WHERE action = 'plan_generation' GROUP BY plan_source"
            ).fetchall()
        }
        return {
            "generations": sum(by_source.values()),
            "fixture": by_source.get("fixture", 0),
            "live": by_source.get("live", 0),
            "fallback": by_source.get("fallback", 0),
            "disclosures": self.count_disclosures(),
            "deletions": self.count_events(action="patient_delete"),
        }
