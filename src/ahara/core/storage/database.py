"""SQLite database management for the patient store.

Handles connection lifecycle, schema creation, and migrations.
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path

logger = logging.getLogger(__name__)

# Current schema version
SCHEMA_VERSION = 2

# ---------------------------------------------------------------------------
# Schema DDL
# ---------------------------------------------------------------------------

_SCHEMA_V1 = """
-- One row per patient; the full record lives in document_enc
CREATE TABLE IF NOT EXISTS patients (
    id            TEXT PRIMARY KEY,
    name          TEXT NOT NULL,
    email         TEXT NOT NULL DEFAULT '',
    phone         TEXT NOT NULL DEFAULT '',
    age           INTEGER,
    is_active     INTEGER NOT NULL DEFAULT 1,
    created_at    TEXT NOT NULL,
    updated_at    TEXT NOT NULL,
    last_updated  TEXT NOT NULL,

    -- JSON document, Fernet-encrypted when an encryption key is configured
    document_enc  TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS schema_version (
    version    INTEGER NOT NULL,
    applied_at TEXT NOT NULL DEFAULT (datetime('now'))
);

-- Lookups used by listing, search and duplicate-contact checks
CREATE INDEX IF NOT EXISTS idx_patients_name    ON patients(name);
CREATE INDEX IF NOT EXISTS idx_patients_email   ON patients(email);
CREATE INDEX IF NOT EXISTS idx_patients_phone   ON patients(phone);
CREATE INDEX IF NOT EXISTS idx_patients_active  ON patients(is_active);
CREATE INDEX IF NOT EXISTS idx_patients_created ON patients(created_at);
"""

# ---------------------------------------------------------------------------
# V2: audit trail of generations and deletions
# ---------------------------------------------------------------------------

_SCHEMA_V2 = """
CREATE TABLE IF NOT EXISTS audit_log (
    id               TEXT PRIMARY KEY,
    timestamp        TEXT NOT NULL DEFAULT (datetime('now')),
    action           TEXT NOT NULL,
    patient_id       TEXT,
    input_hash       TEXT,
    llm_provider     TEXT,
    llm_disclosed    INTEGER DEFAULT 0,
    plan_source      TEXT,
    tokens_used      INTEGER DEFAULT 0,
    duration_ms      REAL,
    status           TEXT NOT NULL DEFAULT 'success',
    error_type       TEXT,
    metadata_json    TEXT
);

CREATE INDEX IF NOT EXISTS idx_audit_timestamp ON audit_log(timestamp);
CREATE INDEX IF NOT EXISTS idx_audit_action    ON audit_log(action);
CREATE INDEX IF NOT EXISTS idx_audit_patient   ON audit_log(patient_id);
"""

_MIGRATIONS: list[tuple[int, str, str]] = [
    (1, _SCHEMA_V1, "patients table"),
    (2, _SCHEMA_V2, "audit_log table"),
]


class DatabaseError(Exception):
    """Raised when database operations fail."""


class PatientDatabase:
    """SQLite database manager for patient records.

    Supports both file-based and in-memory (`:memory:`) databases.
    The connection is shared across the server's worker threads, so
    it is opened with ``check_same_thread=False``.

    Usage::

        db = PatientDatabase(":memory:")
        db.initialize()
        conn = db.connection
        db.close()
    """

    def __init__(self, db_path: str = ":memory:") -> None:
        self._db_path = db_path
        self._conn: sqlite3.Connection | None = None

    @property
    def connection(self) -> sqlite3.Connection:
        """Get the active database connection.

        Raises:
            DatabaseError: If the database has not been initialized.
        """
        if self._conn is None:
            raise DatabaseError("Database not initialized. Call initialize() first.")
        return self._conn

    def initialize(self) -> None:
        """Open the connection and bring the schema up to date. Idempotent."""
        if self._conn is not None:
            return

        if self._db_path != ":memory:":
            db_file = Path(self._db_path).expanduser()
            db_file.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(str(db_file), check_same_thread=False)
            self._conn.execute("PRAGMA journal_mode=WAL")
        else:
            self._conn = sqlite3.connect(":memory:", check_same_thread=False)

        self._conn.row_factory = sqlite3.Row
        self._ensure_schema()
        logger.info("Patient database initialized: %s", self._db_path)

    def _ensure_schema(self) -> None:
        conn = self.connection
        conn.execute(
            "CREATE TABLE IF NOT EXISTS schema_version ("
            "version INTEGER NOT NULL, applied_at TEXT NOT NULL DEFAULT (datetime('now')))"
        )
        current_version = self.get_schema_version()

        for version, ddl, label in _MIGRATIONS:
            if version > current_version:
                conn.executescript(ddl)
                logger.info("Applied schema migration V%d: %s", version, label)

        if current_version < SCHEMA_VERSION:
            conn.execute(
                "INSERT INTO schema_version (version) VALUES (?)",
                (SCHEMA_VERSION,),
            )
            conn.commit()
            logger.info(
                "Schema updated from version %d to %d", current_version, SCHEMA_VERSION
            )

    def get_schema_version(self) -> int:
        """Return the current schema version (0 for a fresh database)."""
        row = self.connection.execute("SELECT MAX(version) FROM schema_version").fetchone()
        return row[0] if row[0] is not None else 0

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None
            logger.info("Patient database closed")

    def __enter__(self) -> PatientDatabase:
        self.initialize()
        return self

    def __exit__(self, *args) -> None:
        self.close()
