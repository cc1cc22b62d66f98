"""
Tests for saving calculations, lifecycle transitions and version history.
"""
from datetime import date
from decimal import Decimal

import pytest

from conftest import calculation_data, make_price, make_user, OTHER_SERVICE_TYPE
from itcost.models import AuditLog, CalculationVersion, Organization
from itcost.domain.services import CalculationService, ApprovalService
from itcost.domain.exceptions import (
    CalculationNotFoundError,
    EntityNotFoundError,
    InvalidStatusTransitionError,
    PermissionDeniedError,
    ValidationError,
)


@pytest.fixture
def service(db):
    return CalculationService(db)


@pytest.fixture
def saved(service, user, customer, owning_org, prices):
    return service.save(calculation_data(customer, owning_org), user)


class TestSaveCalculation:
    """Tests for creating calculations."""

    def test_create_prices_parameters(self, saved, user):
        assert saved.id is not None
        assert saved.status == "draft"
        assert saved.version == 1
        assert saved.user_id == user.id
        assert saved.cpu_cost == Decimal("1000.00")
        assert saved.storage_cost == Decimal("250.00")
        assert saved.server_cost == Decimal("0.00")
        assert saved.total_cost == Decimal("1250.00")
        assert [i.price_type for i in saved.items] == ["CPU", "Lagring"]

    def test_denormalized_names(self, saved):
        assert saved.municipality == "Sundsvalls kommun"
        assert saved.owning_organization == "IT-avdelningen"
        assert saved.created_by_name == "Ulla User"

    def test_total_equals_line_totals(self, service, user, customer, owning_org, prices):
        data = calculation_data(
            customer, owning_org,
            items=[
                {"price_type": "Licens", "quantity": 2},
                {"pricing_config_id": prices["Drifttimme"].id, "quantity": "1.5", "comment": "Uppstart"},
            ],
        )
        calc = service.save(data, user)
        assert calc.total_cost == sum(i.total_price for i in calc.items)
        assert calc.total_cost == Decimal("1250.00") + Decimal("10000.00") + Decimal("1275.00")
        assert calc.items[-1].comment == "Uppstart"

    def test_unit_price_fixed_at_save(self, db, service, saved, prices):
        """Later price changes do not alter stored lines."""
        make_price(db, "CPU", "999.00", effective_from=date(2025, 1, 1))
        db.expire_all()
        calc = service.get_calculation(saved.id)
        assert calc.items[0].unit_price == Decimal("250.00")
        assert calc.total_cost == Decimal("1250.00")

    def test_create_appends_snapshot_and_audit(self, db, saved):
        versions = db.query(CalculationVersion).filter_by(calculation_id=saved.id).all()
        assert len(versions) == 1
        assert versions[0].version == 1
        assert versions[0].status == "draft"
        assert versions[0].total_cost == Decimal("1250.00")
        assert [i["price_type"] for i in versions[0].items] == ["CPU", "Lagring"]
        assert versions[0].items[0]["total_price"] == "1000.00"
        entry = db.query(AuditLog).filter_by(table_name="calculations", action="create").one()
        assert entry.new_values["total_cost"] == "1250.00"

    def test_create_as_pending(self, service, user, customer, owning_org, prices):
        calc = service.save(calculation_data(customer, owning_org, status="pending_approval"), user)
        assert calc.status == "pending_approval"

    def test_cannot_save_as_approved(self, service, user, customer, owning_org, prices):
        with pytest.raises(ValidationError):
            service.save(calculation_data(customer, owning_org, status="approved"), user)

    def test_read_only_user_cannot_save(self, service, reader, customer, owning_org, prices):
        with pytest.raises(PermissionDeniedError):
            service.save(calculation_data(customer, owning_org), reader)

    def test_no_lines_rejected(self, service, user, customer, owning_org, prices):
        with pytest.raises(ValidationError) as exc:
            service.save(calculation_data(customer, owning_org, cpu_count=0, storage_gb=0), user)
        assert exc.value.field == "items"

    @pytest.mark.parametrize("field,value", [
        ("name", ""),
        ("ci_identity", "  "),
        ("service_type", "Okänd tjänst"),
        ("calculation_year", None),
        ("customer_id", None),
        ("owning_organization_id", None),
    ])
    def test_validation(self, service, user, customer, owning_org, prices, field, value):
        with pytest.raises(ValidationError) as exc:
            service.save(calculation_data(customer, owning_org, **{field: value}), user)
        assert exc.value.field == field

    def test_unknown_customer(self, service, user, customer, owning_org, prices):
        with pytest.raises(EntityNotFoundError):
            service.save(calculation_data(customer, owning_org, customer_id=9999), user)

    def test_links_configuration_item(self, service, user, customer, owning_org, prices, configuration_item):
        calc = service.save(
            calculation_data(customer, owning_org, configuration_item_id=configuration_item.id), user
        )
        assert calc.configuration_item.object_number == "6110700"

    def test_organization_must_exist(self, db, service, user, customer, owning_org, prices):
        with pytest.raises(EntityNotFoundError):
            service.save(calculation_data(customer, owning_org, organization_id=4242), user)
        org = Organization(name="Socialförvaltningen", customer_id=customer.id)
        db.add(org)
        db.commit()
        calc = service.save(calculation_data(customer, owning_org, organization_id=org.id), user)
        assert calc.organization_id == org.id


class TestUpdateCalculation:
    """Tests for editing saved calculations."""

    def test_update_bumps_version(self, db, service, saved, user, customer, owning_org):
        data = calculation_data(customer, owning_org, name="Ekonomisystem v2", cpu_count=8)
        calc = service.save(data, user, calculation_id=saved.id)
        assert calc.version == 2
        assert calc.name == "Ekonomisystem v2"
        assert calc.total_cost == Decimal("2250.00")
        assert calc.updated_by_name == "Ulla User"
        assert len(service.versions(calc.id)) == 2
        entry = db.query(AuditLog).filter_by(table_name="calculations", action="update").one()
        assert entry.old_values["version"] == 1
        assert entry.new_values["version"] == 2

    def test_items_replaced(self, service, saved, user, customer, owning_org):
        data = calculation_data(customer, owning_org, storage_gb=0)
        calc = service.save(data, user, calculation_id=saved.id)
        assert [i.price_type for i in calc.items] == ["CPU"]

    def test_other_user_cannot_edit(self, service, saved, approver, customer, owning_org):
        with pytest.raises(PermissionDeniedError):
            service.save(calculation_data(customer, owning_org), approver, calculation_id=saved.id)

    def test_admin_can_edit(self, service, saved, admin, customer, owning_org):
        calc = service.save(calculation_data(customer, owning_org), admin, calculation_id=saved.id)
        assert calc.updated_by_name == "Anna Admin"
        assert calc.user_id == saved.user_id

    def test_unknown_calculation(self, service, user, customer, owning_org, prices):
        with pytest.raises(CalculationNotFoundError):
            service.save(calculation_data(customer, owning_org), user, calculation_id=9999)

    def test_edit_after_approval_requires_reapproval(self, db, service, saved, user, admin, customer, owning_org):
        service.submit(saved.id, user)
        ApprovalService(db).approve(saved.id, admin)
        assert saved.approved_by == admin.id

        calc = service.save(calculation_data(customer, owning_org, cpu_count=5), user, calculation_id=saved.id)
        assert calc.status == "pending_approval"
        assert calc.approved_by is None
        assert calc.approved_by_name is None
        assert calc.approved_at is None

    def test_edit_after_close_requires_reapproval(self, db, service, saved, user, admin, customer, owning_org):
        service.submit(saved.id, user)
        ApprovalService(db).approve(saved.id, admin)
        service.close(saved.id, admin)
        calc = service.save(
            calculation_data(customer, owning_org, status="draft"), user, calculation_id=saved.id
        )
        assert calc.status == "pending_approval"


class TestTransitions:
    """Tests for lifecycle transitions."""

    def test_submit(self, db, service, saved, user):
        calc = service.submit(saved.id, user)
        assert calc.status == "pending_approval"
        assert db.query(AuditLog).filter_by(table_name="calculations", action="submit").count() == 1

    def test_submit_twice_rejected(self, service, saved, user):
        service.submit(saved.id, user)
        with pytest.raises(InvalidStatusTransitionError):
            service.submit(saved.id, user)

    def test_submit_by_other_user(self, service, saved, approver):
        with pytest.raises(PermissionDeniedError):
            service.submit(saved.id, approver)

    def test_close_requires_admin(self, db, service, saved, user, admin):
        service.submit(saved.id, user)
        ApprovalService(db).approve(saved.id, admin)
        with pytest.raises(PermissionDeniedError):
            service.close(saved.id, user)
        assert service.close(saved.id, admin).status == "closed"

    def test_close_requires_approved(self, service, saved, admin):
        with pytest.raises(InvalidStatusTransitionError):
            service.close(saved.id, admin)

    def test_failed_transition_leaves_status(self, service, saved, admin):
        with pytest.raises(InvalidStatusTransitionError):
            service.close(saved.id, admin)
        assert service.get_calculation(saved.id).status == "draft"
        assert len(service.versions(saved.id)) == 1

    def test_every_transition_snapshots(self, db, service, saved, user, admin):
        service.submit(saved.id, user)
        ApprovalService(db).approve(saved.id, admin)
        service.close(saved.id, admin)
        statuses = [v.status for v in service.versions(saved.id)]
        assert sorted(statuses) == ["approved", "closed", "draft", "pending_approval"]


class TestVersionHistory:

    def test_versions_newest_first(self, service, saved, user, customer, owning_org):
        service.save(calculation_data(customer, owning_org, cpu_count=8), user, calculation_id=saved.id)
        versions = service.versions(saved.id)
        assert [v.version for v in versions] == [2, 1]
        assert versions[1].total_cost == Decimal("1250.00")

    def test_snapshots_immutable_after_edit(self, service, saved, user, customer, owning_org):
        first = service.versions(saved.id)[0]
        service.save(calculation_data(customer, owning_org, cpu_count=8), user, calculation_id=saved.id)
        again = service.get_version(saved.id, first.id)
        assert again.total_cost == Decimal("1250.00")
        assert again.items[0]["quantity"] == "4.00"

    def test_get_version_of_other_calculation(self, service, saved, user, customer, owning_org):
        other = service.save(calculation_data(customer, owning_org, name="Annan"), user)
        version = service.versions(other.id)[0]
        with pytest.raises(EntityNotFoundError):
            service.get_version(saved.id, version.id)

    def test_last_approved_version(self, db, service, saved, user, admin, customer, owning_org):
        assert service.last_approved_version(saved.id) is None
        service.submit(saved.id, user)
        ApprovalService(db).approve(saved.id, admin)
        service.save(calculation_data(customer, owning_org, cpu_count=8), user, calculation_id=saved.id)

        approved = service.last_approved_version(saved.id)
        assert approved.status == "approved"
        assert approved.total_cost == Decimal("1250.00")

    def test_versions_of_unknown(self, service):
        with pytest.raises(CalculationNotFoundError):
            service.versions(9999)


class TestVisibilityAndDelete:

    def test_owner_sees_own(self, service, saved, user):
        assert service.get_visible(saved.id, user).id == saved.id

    def test_approver_can_view(self, service, saved, approver):
        assert service.get_visible(saved.id, approver).id == saved.id

    def test_stranger_cannot_view(self, db, service, saved):
        stranger = make_user(db, "stranger@kommun.se")
        with pytest.raises(PermissionDeniedError):
            service.get_visible(saved.id, stranger)

    def test_list_for_user_and_admin(self, service, saved, user, admin, customer, owning_org):
        service.save(calculation_data(customer, owning_org, name="Admins"), admin)
        assert [c.id for c in service.list_for(user)] == [saved.id]
        assert len(service.list_for(admin)) == 2
        assert service.list_for(admin, year=2025) == []
        assert len(service.list_for(admin, status="draft")) == 2

    def test_delete_cascades_versions(self, db, service, saved, user):
        calc_id = saved.id
        service.delete(calc_id, user)
        with pytest.raises(CalculationNotFoundError):
            service.get_calculation(calc_id)
        assert db.query(CalculationVersion).filter_by(calculation_id=calc_id).count() == 0
        entry = db.query(AuditLog).filter_by(table_name="calculations", action="delete").one()
        assert entry.old_values["total_cost"] == "1250.00"

    def test_service_type_change(self, service, saved, user, customer, owning_org):
        calc = service.save(
            calculation_data(customer, owning_org, service_type=OTHER_SERVICE_TYPE), user,
            calculation_id=saved.id,
        )
        assert calc.service_type == OTHER_SERVICE_TYPE
