"""
Tests for the approval queue and approval scope.
"""
from decimal import Decimal

import pytest

from conftest import calculation_data, make_price, make_user
from itcost.models import AuditLog, BudgetOutcome
from itcost.domain.services import CalculationService, ApprovalService, can_approve_for
from itcost.domain.exceptions import (
    ApprovalScopeError,
    InvalidStatusTransitionError,
    PermissionDeniedError,
)


@pytest.fixture
def pending(db, user, customer, owning_org, prices, configuration_item):
    service = CalculationService(db)
    calc = service.save(
        calculation_data(customer, owning_org, configuration_item_id=configuration_item.id), user
    )
    return service.submit(calc.id, user)


@pytest.fixture
def pending_elsewhere(db, user, customer, other_owning_org, prices):
    service = CalculationService(db)
    calc = service.save(calculation_data(customer, other_owning_org, name="Servicecenter-kalkyl"), user)
    return service.submit(calc.id, user)


class TestApprovalScope:
    """Tests for can_approve_for."""

    def test_empty_scope_covers_all(self, admin):
        assert can_approve_for(admin, "IT-avdelningen")
        assert can_approve_for(admin, "Servicecenter")

    def test_scoped_approver(self, approver):
        assert can_approve_for(approver, "IT-avdelningen")
        assert not can_approve_for(approver, "Servicecenter")

    def test_without_can_approve(self, user):
        assert not can_approve_for(user, "IT-avdelningen")


class TestPendingQueue:

    def test_unscoped_approver_sees_all(self, db, admin, pending, pending_elsewhere):
        ids = {c.id for c in ApprovalService(db).pending_for(admin)}
        assert ids == {pending.id, pending_elsewhere.id}

    def test_scoped_approver_sees_own_orgs(self, db, approver, pending, pending_elsewhere):
        assert [c.id for c in ApprovalService(db).pending_for(approver)] == [pending.id]

    def test_non_approver_rejected(self, db, user, pending):
        with pytest.raises(PermissionDeniedError):
            ApprovalService(db).pending_for(user)

    def test_drafts_not_listed(self, db, admin, user, customer, owning_org, prices):
        CalculationService(db).save(calculation_data(customer, owning_org), user)
        assert ApprovalService(db).pending_for(admin) == []


class TestApprove:
    """Tests for approving calculations."""

    def test_approve(self, db, approver, pending):
        calc = ApprovalService(db).approve(pending.id, approver)
        assert calc.status == "approved"
        assert calc.approved_by == approver.id
        assert calc.approved_by_name == "Arne Approver"
        assert calc.approved_at is not None
        entry = db.query(AuditLog).filter_by(table_name="calculations", action="approve").one()
        assert entry.user_id == approver.id
        assert entry.new_values == {"status": "approved"}

    def test_out_of_scope(self, db, approver, pending_elsewhere):
        with pytest.raises(ApprovalScopeError):
            ApprovalService(db).approve(pending_elsewhere.id, approver)
        db.expire_all()
        assert CalculationService(db).get_calculation(pending_elsewhere.id).status == "pending_approval"

    def test_requires_can_approve(self, db, user, pending):
        with pytest.raises(PermissionDeniedError):
            ApprovalService(db).approve(pending.id, user)

    def test_draft_cannot_be_approved(self, db, admin, user, customer, owning_org, prices):
        calc = CalculationService(db).save(calculation_data(customer, owning_org), user)
        with pytest.raises(InvalidStatusTransitionError):
            ApprovalService(db).approve(calc.id, admin)
        assert calc.approved_by is None

    def test_approve_twice_rejected(self, db, admin, pending):
        service = ApprovalService(db)
        service.approve(pending.id, admin)
        with pytest.raises(InvalidStatusTransitionError):
            service.approve(pending.id, admin)

    def test_approve_snapshots_version(self, db, admin, pending):
        ApprovalService(db).approve(pending.id, admin)
        approved = CalculationService(db).last_approved_version(pending.id)
        assert approved is not None
        assert approved.created_by == admin.id

    def test_approver_scoped_to_other_org(self, db, pending):
        other = make_user(
            db, "sc@kommun.se", can_approve=True, approval_organizations=["Servicecenter"]
        )
        with pytest.raises(ApprovalScopeError):
            ApprovalService(db).approve(pending.id, other)


class TestApprovalDetails:
    """Tests for cost and ledger breakdown per sub-account."""

    def test_costs_by_ukonto(self, db, approver, pending):
        details = ApprovalService(db).approval_details(pending.id, approver)
        assert details["calculation"].id == pending.id
        assert details["object_number"] == "6110700"
        assert details["costs_by_ukonto"] == {
            "4010": Decimal("1000.00"),
            "4020": Decimal("250.00"),
        }

    def test_ledger_by_ukonto(self, db, approver, pending):
        db.add_all([
            BudgetOutcome(ukonto="4010", objekt="6110700 Ekonomi", budget_2025=Decimal("800.00"),
                          budget_2026=Decimal("900.00"), utfall_ack=Decimal("600.00")),
            BudgetOutcome(ukonto="4010", objekt="6110700", budget_2025=Decimal("200.00"),
                          budget_2026=Decimal("100.00"), utfall_ack=Decimal("50.00")),
            BudgetOutcome(ukonto="4020", objekt="9999999 Annat", budget_2025=Decimal("1.00")),
        ])
        db.commit()
        details = ApprovalService(db).approval_details(pending.id, approver)
        assert details["ledger_by_ukonto"] == {
            "4010": {
                "budget_2025": Decimal("1000.00"),
                "budget_2026": Decimal("1000.00"),
                "utfall_ack": Decimal("650.00"),
            }
        }

    def test_without_configuration_item(self, db, admin, pending_elsewhere):
        details = ApprovalService(db).approval_details(pending_elsewhere.id, admin)
        assert details["object_number"] is None
        assert details["ledger_by_ukonto"] == {}

    def test_line_without_ukonto(self, db, admin, user, customer, owning_org, prices):
        extra = make_price(db, "Konsult", "1000.00")
        calc = CalculationService(db).save(
            calculation_data(customer, owning_org, items=[{"pricing_config_id": extra.id, "quantity": 1}]),
            user,
        )
        details = ApprovalService(db).approval_details(calc.id, admin)
        assert details["costs_by_ukonto"]["-"] == Decimal("1000.00")
