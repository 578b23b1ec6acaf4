"""Patient repository: CRUD over the SQLite patient store.

Documents are kept whole (camelCase JSON, optionally Fernet-encrypted) in
``document_enc``; name, contact and lifecycle fields are mirrored into plain
columns so listing, search and duplicate checks never decrypt every row.
"""

from __future__ import annotations

import copy
import logging
import re
import sqlite3
import uuid
from datetime import datetime, timezone
from typing import Any

from ahara.core.errors import DuplicateRecord, MalformedIdentity, NotFound, ValidationFailure
from ahara.core.storage.database import PatientDatabase
from ahara.core.storage.encryption import DocumentCodec
from ahara.domains.ayurveda.domain_logic.constitution import calculated_bmi

logger = logging.getLogger(__name__)

_ID_RE = re.compile(r"^[0-9a-fA-F]{24}$")

SORT_COLUMNS = {
    "createdAt": "created_at",
    "updatedAt": "updated_at",
    "lastUpdated": "last_updated",
    "name": "name",
    "age": "age",
}

# Keys owned by the store; client payloads never overwrite them
_SYSTEM_KEYS = frozenset({"_id", "id", "createdAt", "updatedAt", "lastUpdated", "isActive"})


def is_valid_id(patient_id: str) -> bool:
    return bool(patient_id) and bool(_ID_RE.match(patient_id))


def normalize_id(patient_id: str) -> str:
    """Lower-case a 24-hex id.

    Raises:
        MalformedIdentity: If the id is not 24 hex characters.
    """
    if not isinstance(patient_id, str) or not is_valid_id(patient_id):
        raise MalformedIdentity("Invalid patient ID format")
    return patient_id.lower()


class PatientRepository:
    """CRUD repository for patient documents with soft deletion.

    Usage::

        db = PatientDatabase(":memory:")
        db.initialize()
        repo = PatientRepository(db)

        created = repo.create(validated_document)
        patient = repo.get(created["_id"])
    """

    def __init__(self, database: PatientDatabase, codec: DocumentCodec | None = None) -> None:
        self._db = database
        self._codec = codec or DocumentCodec()

    @property
    def database(self) -> PatientDatabase:
        return self._db

    @staticmethod
    def _new_id() -> str:
        return uuid.uuid4().hex[:24]

    @staticmethod
    def _now_iso() -> str:
        return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")

    @staticmethod
    def _refresh_bmi(document: dict[str, Any]) -> None:
        measurements = document.get("physicalMeasurements")
        bmi = calculated_bmi(measurements) if isinstance(measurements, dict) else None
        if bmi is not None:
            measurements["bmi"] = bmi

    @staticmethod
    def _contact(document: dict[str, Any]) -> tuple[str, str]:
        contact = document.get("contactInfo") or {}
        if not isinstance(contact, dict):
            return "", ""
        email = str(contact.get("email") or "").strip().lower()
        phone = str(contact.get("phone") or "").strip()
        return email, phone

    @staticmethod
    def _age(document: dict[str, Any]) -> int | None:
        age = document.get("age")
        if isinstance(age, bool):
            return None
        return int(age) if isinstance(age, (int, float)) else None

    def _row_to_document(self, row: sqlite3.Row) -> dict[str, Any]:
        document = self._codec.decode(row["document_enc"])
        document["_id"] = row["id"]
        document["isActive"] = bool(row["is_active"])
        document["createdAt"] = row["created_at"]
        document["updatedAt"] = row["updated_at"]
        document["lastUpdated"] = row["last_updated"]
        return document

    def _fetch_row(self, patient_id: str) -> sqlite3.Row | None:
        return self._db.connection.execute(
            "SELECT * FROM patients WHERE id = ?", (patient_id,)
        ).fetchone()

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def _check_duplicates(self, email: str, phone: str) -> None:
        conn = self._db.connection
        if email:
            row = conn.execute(
                "SELECT 1 FROM patients WHERE is_active = 1 AND email = ? LIMIT 1", (email,)
            ).fetchone()
            if row is not None:
                raise DuplicateRecord("contactInfo.email")
        if phone:
            row = conn.execute(
                "SELECT 1 FROM patients WHERE is_active = 1 AND phone = ? LIMIT 1", (phone,)
            ).fetchone()
            if row is not None:
                raise DuplicateRecord("contactInfo.phone")

    def create(self, document: dict[str, Any], patient_id: str | None = None) -> dict[str, Any]:
        """Insert a validated document and return the stored version.

        Args:
            document: A schema-validated camelCase patient document.
            patient_id: Explicit id (used when seeding); generated if omitted.

        Raises:
            DuplicateRecord: An active patient already uses the email or phone.
            MalformedIdentity: ``patient_id`` is not a 24-hex id.
        """
        pid = normalize_id(patient_id) if patient_id else self._new_id()
        doc = {k: v for k, v in copy.deepcopy(document).items() if k not in _SYSTEM_KEYS}
        email, phone = self._contact(doc)
        self._check_duplicates(email, phone)
        self._refresh_bmi(doc)

        now = self._now_iso()
        conn = self._db.connection
        try:
            conn.execute(
                """INSERT INTO patients (
                    id, name, email, phone, age, is_active,
                    created_at, updated_at, last_updated, document_enc
                ) VALUES (?, ?, ?, ?, ?, 1, ?, ?, ?, ?)""",
                (
                    pid,
                    str(doc.get("name", "")),
                    email,
                    phone,
                    self._age(doc),
                    now,
                    now,
                    now,
                    self._codec.encode(doc),
                ),
            )
        except sqlite3.IntegrityError as exc:
            raise DuplicateRecord("_id") from exc
        conn.commit()
        logger.info("Created patient %s", pid)
        return self.get(pid)

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def find(self, patient_id: str, include_inactive: bool = False) -> dict[str, Any] | None:
        """Return the document for ``patient_id``, or None if absent."""
        row = self._fetch_row(normalize_id(patient_id))
        if row is None or (not include_inactive and not row["is_active"]):
            return None
        return self._row_to_document(row)

    def get(self, patient_id: str) -> dict[str, Any]:
        """Return an active patient.

        Raises:
            MalformedIdentity: If the id is not 24 hex characters.
            NotFound: If the patient does not exist or was soft-deleted.
        """
        document = self.find(patient_id)
        if document is None:
            raise NotFound("Patient not found")
        return document

    def list_patients(
        self,
        page: int = 1,
        limit: int = 10,
        search: str = "",
        sort_by: str = "createdAt",
        sort_order: str = "desc",
    ) -> tuple[list[dict[str, Any]], int]:
        """Return one page of active patients and the total matching count.

        Search is a case-insensitive substring match over name, email and phone.

        Raises:
            ValidationFailure: On an unknown sort key or order, or non-positive paging.
        """
        column = SORT_COLUMNS.get(sort_by)
        if column is None:
            raise ValidationFailure.single(
                "sortBy", f"sortBy must be one of: {', '.join(SORT_COLUMNS)}"
            )
        if sort_order not in ("asc", "desc"):
            raise ValidationFailure.single("sortOrder", "sortOrder must be 'asc' or 'desc'")
        if page < 1:
            raise ValidationFailure.single("page", "page must be at least 1")
        if limit < 1:
            raise ValidationFailure.single("limit", "limit must be at least 1")

        where = "is_active = 1"
        params: list[Any] = []
        if search:
            pattern = "%" + re.sub(r"([\\%_])", r"\\\1", search.lower()) + "%"
            where += (
                " AND (lower(name) LIKE ? ESCAPE '\\'"
                " OR email LIKE ? ESCAPE '\\'"
                " OR phone LIKE ? ESCAPE '\\')"
            )
            params.extend([pattern, pattern, pattern])

        conn = self._db.connection
        total = conn.execute(f"SELECT COUNT(*) FROM patients WHERE {where}", params).fetchone()[0]

        direction = "DESC" if sort_order == "desc" else "ASC"
        rows = conn.execute(
            f"SELECT * FROM patients WHERE {where} "
            f"ORDER BY {column} {direction}, rowid {direction} LIMIT ? OFFSET ?",
            [*params, limit, (page - 1) * limit],
        ).fetchall()
        return [self._row_to_document(row) for row in rows], total

    def count(self, active_only: bool = True) -> int:
        query = "SELECT COUNT(*) FROM patients"
        if active_only:
            query += " WHERE is_active = 1"
        return self._db.connection.execute(query).fetchone()[0]

    # ------------------------------------------------------------------
    # Update / delete
    # ------------------------------------------------------------------

    def _write(self, patient_id: str, doc: dict[str, Any]) -> dict[str, Any]:
        self._refresh_bmi(doc)
        email, phone = self._contact(doc)
        now = self._now_iso()
        conn = self._db.connection
        conn.execute(
            """UPDATE patients
               SET name = ?, email = ?, phone = ?, age = ?,
                   updated_at = ?, last_updated = ?, document_enc = ?
               WHERE id = ?""",
            (
                str(doc.get("name", "")),
                email,
                phone,
                self._age(doc),
                now,
                now,
                self._codec.encode(doc),
                patient_id,
            ),
        )
        conn.commit()
        return self.get(patient_id)

    def _stored_body(self, patient_id: str) -> tuple[str, dict[str, Any]]:
        pid = normalize_id(patient_id)
        row = self._fetch_row(pid)
        if row is None or not row["is_active"]:
            raise NotFound("Patient not found")
        return pid, self._codec.decode(row["document_enc"])

    def replace(self, patient_id: str, document: dict[str, Any]) -> dict[str, Any]:
        """Replace an active patient's document with a fully validated one."""
        pid, _ = self._stored_body(patient_id)
        doc = {k: v for k, v in copy.deepcopy(document).items() if k not in _SYSTEM_KEYS}
        logger.info("Replaced patient %s", pid)
        return self._write(pid, doc)

    def patch(self, patient_id: str, changes: dict[str, Any]) -> dict[str, Any]:
        """Shallow-merge top-level keys into an active patient.

        Only the shapes of the values are expected to have been checked (see
        ``validate_partial_payload``); bounds and required fields are not.
        """
        pid, doc = self._stored_body(patient_id)
        for key, value in changes.items():
            if key not in _SYSTEM_KEYS:
                doc[key] = copy.deepcopy(value)
        logger.info("Patched patient %s (%d keys)", pid, len(changes))
        return self._write(pid, doc)

    def soft_delete(self, patient_id: str) -> None:
        """Mark an active patient inactive; the row is kept."""
        pid, _ = self._stored_body(patient_id)
        now = self._now_iso()
        conn = self._db.connection
        conn.execute(
            "UPDATE patients SET is_active = 0, last_updated = ? WHERE id = ?",
            (now, pid),
        )
        conn.commit()
        logger.info("Soft-deleted patient %s", pid)
