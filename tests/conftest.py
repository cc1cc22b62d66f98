"""
Shared pytest fixtures for the IT cost test suite.

Provides:
    - engine / db: In-memory SQLite database, recreated per test
    - admin, superadmin, user, approver, reader: Pre-created profiles
    - customer, owning_org, other_owning_org: Reference data
    - prices: Price rows for the four parameter components plus a licence row
    - client: FastAPI TestClient bound to the test database
    - auth_headers: Bearer header factory
"""
import sys
from datetime import date

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

sys.path.insert(0, '.')

from itcost.models import (
    Base, get_db, Profile, UserRole, Customer, OwningOrganization,
    PricingConfig, ConfigurationItem,
)
from itcost.infrastructure.security import hash_password, create_access_token

TEST_PASSWORD = "correct-horse-battery"
# Shared by every fixture user
TEST_PASSWORD_HASH = hash_password(TEST_PASSWORD)

SERVICE_TYPE = "Bastjänst IT infrastruktur"
OTHER_SERVICE_TYPE = "Anpassad drift"


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


def make_user(db, email, role="user", permission_level="read_write",
              can_approve=False, approval_organizations=None, full_name=None):
    user = Profile(
        email=email,
        full_name=full_name,
        password_hash=TEST_PASSWORD_HASH,
        permission_level=permission_level,
        can_approve=can_approve,
        approval_organizations=approval_organizations or [],
    )
    user.role = UserRole(role=role)
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def admin(db):
    return make_user(db, "admin@kommun.se", role="admin", full_name="Anna Admin", can_approve=True)


@pytest.fixture
def superadmin(db):
    return make_user(db, "super@kommun.se", role="superadmin", full_name="Sam Super")


@pytest.fixture
def user(db):
    return make_user(db, "user@kommun.se", full_name="Ulla User")


@pytest.fixture
def approver(db):
    return make_user(
        db, "approver@kommun.se", full_name="Arne Approver",
        can_approve=True, approval_organizations=["IT-avdelningen"],
    )


@pytest.fixture
def reader(db):
    return make_user(db, "reader@kommun.se", permission_level="read_only")


@pytest.fixture
def customer(db):
    customer = Customer(name="Sundsvalls kommun")
    db.add(customer)
    db.commit()
    return customer


@pytest.fixture
def owning_org(db):
    org = OwningOrganization(name="IT-avdelningen")
    db.add(org)
    db.commit()
    return org


@pytest.fixture
def other_owning_org(db):
    org = OwningOrganization(name="Servicecenter")
    db.add(org)
    db.commit()
    return org


@pytest.fixture
def configuration_item(db):
    item = ConfigurationItem(ci_number="CI-1001", system_name="Ekonomisystem", object_number="6110700")
    db.add(item)
    db.commit()
    return item


def make_price(db, price_type, price, effective_from=date(2024, 1, 1), effective_to=None, **extra):
    row = PricingConfig(
        price_type=price_type,
        price_per_unit=price,
        effective_from=effective_from,
        effective_to=effective_to,
        service_types=extra.pop("service_types", []),
        disallowed_service_types=extra.pop("disallowed_service_types", []),
        **extra,
    )
    db.add(row)
    db.commit()
    return row


@pytest.fixture
def prices(db):
    """Current prices for each parameter component plus a default licence row."""
    return {
        "CPU": make_price(db, "CPU", "250.00", unit="kr/st", ukonto="4010", category="Infrastruktur"),
        "Lagring": make_price(db, "Lagring", "2.50", unit="kr/GB", ukonto="4020", category="Infrastruktur"),
        "Server": make_price(db, "Server", "1200.00", unit="kr/st", ukonto="4010", category="Infrastruktur"),
        "Drifttimme": make_price(db, "Drifttimme", "850.00", unit="kr/timme", ukonto="4030"),
        "Licens": make_price(
            db, "Licens", "5000.00", unit="kr/år", ukonto="4040", category="Licenser",
            service_types=[SERVICE_TYPE],
        ),
    }


def calculation_data(customer, owning_org, **overrides):
    data = {
        "name": "Ekonomisystem 2026",
        "ci_identity": "CI-1001",
        "service_type": SERVICE_TYPE,
        "customer_id": customer.id,
        "owning_organization_id": owning_org.id,
        "calculation_year": 2026,
        "cpu_count": 4,
        "storage_gb": 100,
        "server_count": 0,
        "operation_hours": 0,
        "status": "draft",
        "items": [],
    }
    data.update(overrides)
    return data


@pytest.fixture
def client(session_factory):
    from fastapi.testclient import TestClient
    from itcost.main import app

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    # Startup hooks are not run; they target the configured database
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    def _headers(profile):
        token = create_access_token(profile.id, profile.role_name)
        return {"Authorization": f"Bearer {token}"}
    return _headers
