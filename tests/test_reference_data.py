"""
Tests for reference data and configuration items.
"""
import pytest
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from conftest import calculation_data
from itcost.models import AuditLog, ConfigurationItem, OwningOrganization
from itcost.domain.services import CalculationService, ReferenceDataService, ConfigurationItemService
from itcost.domain.exceptions import (
    EntityNotFoundError,
    PermissionDeniedError,
    ReferenceInUseError,
    ValidationError,
)
from itcost.modules.etl import parse_configuration_item_csv


class TestReferenceData:
    """Tests for customers, organizations and owning organizations."""

    def test_unknown_kind(self, db):
        with pytest.raises(ValueError):
            ReferenceDataService(db, "departments")

    def test_create_and_list(self, db, admin):
        service = ReferenceDataService(db, "customers")
        service.create({"name": "  Timrå kommun "}, admin)
        service.create({"name": "Ånge kommun", "is_active": False}, admin)
        assert [c.name for c in service.list_entities()] == ["Timrå kommun", "Ånge kommun"]
        assert [c.name for c in service.list_entities(active_only=True)] == ["Timrå kommun"]
        assert db.query(AuditLog).filter_by(table_name="customers", action="create").count() == 2

    def test_name_required(self, db, admin):
        with pytest.raises(ValidationError):
            ReferenceDataService(db, "customers").create({"name": " "}, admin)

    def test_admin_only(self, db, user):
        with pytest.raises(PermissionDeniedError):
            ReferenceDataService(db, "customers").create({"name": "Timrå kommun"}, user)

    def test_owning_organization_names_unique(self, db, admin, owning_org):
        service = ReferenceDataService(db, "owning_organizations")
        with pytest.raises(ValidationError):
            service.create({"name": "IT-avdelningen"}, admin)
        # Renaming to its own name is fine
        assert service.update(owning_org.id, {"name": "IT-avdelningen", "description": "IT"}, admin).description == "IT"

    def test_partial_update(self, db, admin, customer):
        service = ReferenceDataService(db, "customers")
        updated = service.update(customer.id, {"description": "Kommunen"}, admin)
        assert updated.name == "Sundsvalls kommun"
        assert updated.description == "Kommunen"
        entry = db.query(AuditLog).filter_by(table_name="customers", action="update").one()
        assert entry.old_values["description"] is None

    def test_delete(self, db, admin, customer):
        service = ReferenceDataService(db, "customers")
        service.delete(customer.id, admin)
        with pytest.raises(EntityNotFoundError):
            service.get(customer.id)


class TestOrganizations:
    """Tests for the organization tree."""

    def test_customer_must_exist(self, db, admin):
        with pytest.raises(EntityNotFoundError):
            ReferenceDataService(db, "organizations").create({"name": "Skola", "customer_id": 999}, admin)

    def test_parent_must_exist(self, db, admin, customer):
        with pytest.raises(EntityNotFoundError):
            ReferenceDataService(db, "organizations").create(
                {"name": "Skola", "customer_id": customer.id, "parent_id": 999}, admin
            )

    def test_own_parent_rejected(self, db, admin, customer):
        service = ReferenceDataService(db, "organizations")
        org = service.create({"name": "Skola", "customer_id": customer.id}, admin)
        with pytest.raises(ValidationError):
            service.update(org.id, {"parent_id": org.id}, admin)

    def test_cycle_rejected(self, db, admin, customer):
        service = ReferenceDataService(db, "organizations")
        top = service.create({"name": "Förvaltning", "customer_id": customer.id}, admin)
        middle = service.create({"name": "Avdelning", "customer_id": customer.id, "parent_id": top.id}, admin)
        bottom = service.create({"name": "Enhet", "customer_id": customer.id, "parent_id": middle.id}, admin)
        with pytest.raises(ValidationError):
            service.update(top.id, {"parent_id": bottom.id}, admin)
        assert bottom.parent.parent.id == top.id

    def test_list_for_customer(self, db, admin, customer):
        service = ReferenceDataService(db, "organizations")
        other = ReferenceDataService(db, "customers").create({"name": "Timrå kommun"}, admin)
        service.create({"name": "Skola", "customer_id": customer.id}, admin)
        service.create({"name": "Vård", "customer_id": other.id}, admin)
        assert [o.name for o in service.list_for_customer(customer.id)] == ["Skola"]

    def test_list_for_customer_only_for_organizations(self, db):
        with pytest.raises(ValueError):
            ReferenceDataService(db, "customers").list_for_customer(1)


class TestDeleteReferencedRows:
    """Rows still referenced elsewhere cannot be deleted."""

    @pytest.fixture
    def saved(self, db, user, customer, owning_org, prices, configuration_item):
        return CalculationService(db).save(
            calculation_data(customer, owning_org, configuration_item_id=configuration_item.id), user
        )

    def test_customer_used_by_calculation(self, db, admin, customer, saved):
        service = ReferenceDataService(db, "customers")
        with pytest.raises(ReferenceInUseError) as exc:
            service.delete(customer.id, admin)
        assert exc.value.code == "REFERENCE_IN_USE"
        assert exc.value.referenced_by == "calculations"
        assert service.get(customer.id).name == "Sundsvalls kommun"
        assert db.query(AuditLog).filter_by(table_name="customers", action="delete").count() == 0

    def test_customer_with_organizations(self, db, admin, customer):
        ReferenceDataService(db, "organizations").create({"name": "Skola", "customer_id": customer.id}, admin)
        with pytest.raises(ReferenceInUseError) as exc:
            ReferenceDataService(db, "customers").delete(customer.id, admin)
        assert exc.value.referenced_by == "organizations"

    def test_parent_organization(self, db, admin, customer):
        service = ReferenceDataService(db, "organizations")
        parent = service.create({"name": "Förvaltning", "customer_id": customer.id}, admin)
        child = service.create({"name": "Enhet", "customer_id": customer.id, "parent_id": parent.id}, admin)
        with pytest.raises(ReferenceInUseError):
            service.delete(parent.id, admin)
        service.delete(child.id, admin)
        service.delete(parent.id, admin)

    def test_owning_organization_used_by_calculation(self, db, admin, owning_org, saved):
        with pytest.raises(ReferenceInUseError):
            ReferenceDataService(db, "owning_organizations").delete(owning_org.id, admin)
        assert saved.owning_organization_id == owning_org.id

    def test_configuration_item_used_by_calculation(self, db, admin, configuration_item, saved):
        with pytest.raises(ReferenceInUseError):
            ConfigurationItemService(db).delete_item(configuration_item.id, admin)
        assert db.get(ConfigurationItem, configuration_item.id) is not None

    def test_deletable_after_calculation_removed(self, db, user, admin, customer, saved):
        CalculationService(db).delete(saved.id, user)
        ReferenceDataService(db, "customers").delete(customer.id, admin)
        with pytest.raises(EntityNotFoundError):
            ReferenceDataService(db, "customers").get(customer.id)

    def test_database_enforces_foreign_keys(self, db, owning_org, saved):
        with pytest.raises(IntegrityError):
            db.query(OwningOrganization).filter_by(id=owning_org.id).delete(synchronize_session=False)
        db.rollback()


class TestConfigurationItems:
    """Tests for configuration item maintenance."""

    def test_create(self, db, admin):
        item = ConfigurationItemService(db).create_item(
            {"ci_number": "CI-2001", "system_name": "Lönesystem", "object_number": "6110800"}, admin
        )
        assert item.is_active is True
        assert db.query(AuditLog).filter_by(table_name="configuration_items", action="create").count() == 1

    def test_required_fields(self, db, admin):
        with pytest.raises(ValidationError):
            ConfigurationItemService(db).create_item({"ci_number": "CI-2001"}, admin)

    def test_admin_only(self, db, user):
        with pytest.raises(PermissionDeniedError):
            ConfigurationItemService(db).create_item({"ci_number": "CI-2001", "system_name": "Lön"}, user)

    def test_update_and_delete(self, db, admin, configuration_item):
        service = ConfigurationItemService(db)
        item = service.update_item(configuration_item.id, {"is_active": False}, admin)
        assert item.is_active is False
        assert item.system_name == "Ekonomisystem"
        service.delete_item(item.id, admin)
        with pytest.raises(EntityNotFoundError):
            service.get_item(item.id)


class TestConfigurationItemSearch:
    """Tests for CI search."""

    @pytest.fixture
    def items(self, db):
        db.add_all([
            ConfigurationItem(ci_number="CI-1001", system_name="Ekonomisystem"),
            ConfigurationItem(ci_number="CI-1002", system_name="Lönesystem"),
            ConfigurationItem(ci_number="CI-2001", system_name="Ärendehantering"),
            ConfigurationItem(ci_number="CI-9999", system_name="Ekonomi arkiv", is_active=False),
        ])
        db.commit()

    def test_substring_on_ci_number(self, db, items):
        hits = ConfigurationItemService(db).search("ci-100")
        assert [item.ci_number for item, _ in hits] == ["CI-1001", "CI-1002"]
        assert all(score == 100.0 for _, score in hits)

    def test_substring_on_system_name(self, db, items):
        hits = ConfigurationItemService(db).search("EKONOMI")
        assert [item.ci_number for item, _ in hits] == ["CI-1001"]

    def test_inactive_included_on_request(self, db, items):
        hits = ConfigurationItemService(db).search("ekonomi", active_only=False)
        assert [item.ci_number for item, _ in hits] == ["CI-1001", "CI-9999"]

    def test_fuzzy_match(self, db, items):
        hits = ConfigurationItemService(db).search("ekonomisytem")
        assert hits[0][0].ci_number == "CI-1001"
        assert hits[0][1] < 100

    def test_unrelated_query(self, db, items):
        assert ConfigurationItemService(db).search("xyz") == []

    def test_blank_query(self, db, items):
        assert ConfigurationItemService(db).search("  ") == []

    def test_limit(self, db, items):
        assert len(ConfigurationItemService(db).search("ci-", limit=2)) == 2


class TestConfigurationItemImport:
    """Tests for CI CSV import."""

    CSV = "\n".join([
        "CI nummer;Systemnamn;Systemägare;Objektnummer",
        "CI-3001;Bokningssystem;Eva;6120000",
        ";Saknar nummer;;",
        "CI-3002;Kartsystem;;",
    ])

    def test_import_reports_failed_rows(self, db, admin):
        result = ConfigurationItemService(db).import_items(parse_configuration_item_csv(self.CSV), admin)
        assert result == {
            "success": 2,
            "failed": 1,
            "errors": ["Rad 3: CI number and system name are required"],
        }
        items = ConfigurationItemService(db).list_items()
        assert [i.ci_number for i in items] == ["CI-3001", "CI-3002"]
        assert items[0].system_owner == "Eva"
        assert items[0].object_number == "6120000"
        assert items[1].object_number is None

    def test_database_error_skips_row(self, db, admin, monkeypatch):
        service = ConfigurationItemService(db)
        original_add = service.ci_repo.add

        def failing_add(item):
            if item.ci_number == "CI-3001":
                raise SQLAlchemyError("boom")
            return original_add(item)

        monkeypatch.setattr(service.ci_repo, "add", failing_add)
        result = service.import_items(parse_configuration_item_csv(self.CSV), admin)
        assert result["success"] == 1
        assert "Rad 2: SQLAlchemyError" in result["errors"]
        assert [i.ci_number for i in service.list_items()] == ["CI-3002"]

    def test_import_audited(self, db, admin):
        ConfigurationItemService(db).import_items(parse_configuration_item_csv(self.CSV), admin)
        entry = db.query(AuditLog).filter_by(table_name="configuration_items", action="import").one()
        assert entry.new_values == {"success": 2, "failed": 1}

    def test_admin_only(self, db, user):
        with pytest.raises(PermissionDeniedError):
            ConfigurationItemService(db).import_items(parse_configuration_item_csv(self.CSV), user)
