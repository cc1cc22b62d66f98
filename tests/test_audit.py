"""
Tests for the audit trail and retention purge.
"""
from datetime import datetime, timedelta
from decimal import Decimal
from types import SimpleNamespace

import pytest

from itcost.models import AuditLog
from itcost.domain.services import AuditService
from itcost.domain.services import audit_service as audit_module


@pytest.fixture
def audit(db):
    return AuditService(db)


def add_entry(db, action, created_at, table_name="calculations", record_id=1):
    entry = AuditLog(action=action, table_name=table_name, record_id=str(record_id), created_at=created_at)
    db.add(entry)
    db.commit()
    return entry


class TestLogAudit:
    """Tests for writing audit entries."""

    def test_values_stored_as_json(self, db, audit):
        entry = audit.log_audit(
            "update", "calculations", 7,
            {"total_cost": Decimal("100.00")},
            {"total_cost": Decimal("250.50"), "approved_at": datetime(2026, 3, 1, 9, 30)},
            user_id=3,
        )
        db.commit()

        stored = db.get(AuditLog, entry.id)
        assert stored.record_id == "7"
        assert stored.old_values == {"total_cost": "100.00"}
        assert stored.new_values == {"total_cost": "250.50", "approved_at": "2026-03-01T09:30:00"}
        assert stored.user_id == 3

    def test_missing_values_stay_null(self, db, audit):
        entry = audit.log_audit("delete", "customers", 1)
        db.commit()

        assert entry.old_values is None
        assert entry.new_values is None


class TestHistory:
    """Tests for reading the audit trail."""

    def test_newest_first(self, db, audit):
        now = datetime.utcnow()
        add_entry(db, "create", now - timedelta(hours=2))
        add_entry(db, "submit", now - timedelta(hours=1))
        add_entry(db, "approve", now)

        assert [e.action for e in audit.history()] == ["approve", "submit", "create"]

    def test_filters(self, db, audit):
        now = datetime.utcnow()
        add_entry(db, "create", now, table_name="calculations", record_id=1)
        add_entry(db, "create", now, table_name="customers", record_id=1)
        add_entry(db, "update", now, table_name="calculations", record_id=2)

        assert len(audit.history(table_name="calculations")) == 2
        assert len(audit.history(action="create")) == 2
        assert [e.table_name for e in audit.history(table_name="calculations", record_id="2")] == ["calculations"]

    def test_limit(self, db, audit):
        now = datetime.utcnow()
        for i in range(5):
            add_entry(db, "update", now - timedelta(minutes=i))

        assert len(audit.history(limit=3)) == 3


class TestPurge:
    """Tests for the retention purge."""

    def test_disabled_by_default(self, db, audit):
        add_entry(db, "create", datetime(2020, 1, 1))

        assert audit.purge_expired() == 0
        assert db.query(AuditLog).count() == 1

    def test_removes_entries_past_retention(self, db, audit, monkeypatch):
        monkeypatch.setattr(audit_module, "get_config", lambda: SimpleNamespace(audit_retention_days=30))
        now = datetime(2026, 10, 1)
        add_entry(db, "create", now - timedelta(days=45))
        add_entry(db, "update", now - timedelta(days=10))

        assert audit.purge_expired(now=now) == 1
        assert [e.action for e in db.query(AuditLog).all()] == ["update"]
