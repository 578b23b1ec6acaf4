"""Tests for PatientDatabase: schema creation, versioning, lifecycle."""

from __future__ import annotations

import pytest

from ahara.core.storage.database import SCHEMA_VERSION, DatabaseError, PatientDatabase


class TestInitialization:
    def test_in_memory_initialize(self):
        db = PatientDatabase(":memory:")
        db.initialize()
        assert db.connection is not None
        db.close()

    def test_double_initialize_is_idempotent(self):
        db = PatientDatabase(":memory:")
        db.initialize()
        conn1 = db.connection
        db.initialize()
        assert db.connection is conn1
        db.close()

    def test_connection_before_init_raises(self):
        db = PatientDatabase(":memory:")
        with pytest.raises(DatabaseError, match="not initialized"):
            _ = db.connection

    def test_context_manager(self):
        with PatientDatabase(":memory:") as db:
            assert db.connection is not None
        with pytest.raises(DatabaseError):
            _ = db.connection

    def test_file_database_creates_parent_dirs(self, tmp_path):
        path = tmp_path / "nested" / "patients.db"
        with PatientDatabase(str(path)) as db:
            assert db.get_schema_version() == SCHEMA_VERSION
        assert path.exists()


class TestSchema:
    def test_schema_version_recorded(self):
        with PatientDatabase(":memory:") as db:
            assert db.get_schema_version() == SCHEMA_VERSION

    def test_tables_created(self):
        with PatientDatabase(":memory:") as db:
            cursor = db.connection.execute(
                "SELECT name FROM sqlite_master WHERE type='table' AND name NOT LIKE 'sqlite_%'"
            )
            tables = {row[0] for row in cursor.fetchall()}
        assert {"patients", "audit_log", "schema_version"} <= tables

    def test_indexes_created(self):
        expected = {
            "idx_patients_name",
            "idx_patients_email",
            "idx_patients_phone",
            "idx_patients_active",
            "idx_patients_created",
            "idx_audit_timestamp",
            "idx_audit_action",
            "idx_audit_patient",
        }
        with PatientDatabase(":memory:") as db:
            cursor = db.connection.execute("SELECT name FROM sqlite_master WHERE type='index'")
            indexes = {row[0] for row in cursor.fetchall()}
        assert expected <= indexes

    def test_reopen_file_keeps_version(self, tmp_path):
        path = str(tmp_path / "patients.db")
        with PatientDatabase(path):
            pass
        with PatientDatabase(path) as db:
            rows = db.connection.execute("SELECT COUNT(*) FROM schema_version").fetchone()
            assert db.get_schema_version() == SCHEMA_VERSION
            assert rows[0] == 1
