"""
Database models and SQLAlchemy setup for the IT Cost Calculation service.
Monetary values and quantities stored as Numeric(14, 2) and handled as Decimal.
"""
from datetime import datetime
from sqlalchemy import (
    create_engine, event, Column, Integer, String, Boolean, Numeric,
    DateTime, Date, Text, JSON, ForeignKey, Index
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker, relationship
import enum

from itcost.config import get_config

DATABASE_URL = get_config().database_url
_connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}
engine = create_engine(DATABASE_URL, connect_args=_connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


@event.listens_for(Engine, "connect")
def _enable_sqlite_foreign_keys(dbapi_conn, connection_record):
    """SQLite ignores foreign keys unless enabled per connection."""
    if "sqlite" in type(dbapi_conn).__module__:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


class CalculationStatus(enum.Enum):
    """Lifecycle status of a calculation."""
    DRAFT = "draft"
    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    CLOSED = "closed"


class AppRole(enum.Enum):
    USER = "user"
    ADMIN = "admin"
    SUPERADMIN = "superadmin"


class PermissionLevel(enum.Enum):
    READ_ONLY = "read_only"
    READ_WRITE = "read_write"


# =============================================================================
# Reference Data
# =============================================================================

class Customer(Base):
    """Customer (municipality or company) a calculation is made for."""
    __tablename__ = "customers"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False, index=True)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_by = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    organizations = relationship("Organization", back_populates="customer")


class Organization(Base):
    """Customer-side organization, optionally nested under a parent organization."""
    __tablename__ = "organizations"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False, index=True)
    description = Column(Text, nullable=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=True, index=True)
    parent_id = Column(Integer, ForeignKey("organizations.id"), nullable=True, index=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_by = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    customer = relationship("Customer", back_populates="organizations")
    parent = relationship("Organization", remote_side=[id])


class OwningOrganization(Base):
    """Internal organization that owns calculations; approval scopes refer to these by name."""
    __tablename__ = "owning_organizations"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False, unique=True, index=True)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_by = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class ConfigurationItem(Base):
    """Tracked system/service record (CMDB configuration item)."""
    __tablename__ = "configuration_items"

    id = Column(Integer, primary_key=True, index=True)
    ci_number = Column(String(100), nullable=False, index=True)
    system_name = Column(String(300), nullable=False)
    system_owner = Column(String(200), nullable=True)
    system_administrator = Column(String(200), nullable=True)
    organization = Column(String(200), nullable=True)
    object_number = Column(String(50), nullable=True, index=True)  # Joins to ledger rows
    is_active = Column(Boolean, default=True, nullable=False)
    created_by = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


# =============================================================================
# Pricing
# =============================================================================

class PricingConfig(Base):
    """Dated price list entry for one price type (cost component)."""
    __tablename__ = "pricing_config"

    id = Column(Integer, primary_key=True, index=True)
    price_type = Column(String(200), nullable=False, index=True)
    price_per_unit = Column(Numeric(14, 2), nullable=False)
    unit = Column(String(50), nullable=True)  # e.g. kr/timme, kr/GB
    category = Column(String(100), nullable=True)
    comment = Column(Text, nullable=True)
    cost_owner = Column(String(100), nullable=True)
    ukonto = Column(String(50), nullable=True)  # Sub-account used in budget comparison
    internal_account = Column(String(50), nullable=True)
    external_account = Column(String(50), nullable=True)
    service_types = Column(JSON, nullable=True)  # Service types this row is a default for
    disallowed_service_types = Column(JSON, nullable=True)
    effective_from = Column(Date, nullable=False, index=True)
    effective_to = Column(Date, nullable=True)  # None = open-ended
    created_by = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


# =============================================================================
# Calculations
# =============================================================================

class Calculation(Base):
    """A priced configuration for a service and year, with approval lifecycle."""
    __tablename__ = "calculations"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(300), nullable=True)
    ci_identity = Column(String(200), nullable=False, index=True)
    configuration_item_id = Column(Integer, ForeignKey("configuration_items.id"), nullable=True)
    service_type = Column(String(200), nullable=False, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=True)
    owning_organization_id = Column(Integer, ForeignKey("owning_organizations.id"), nullable=True)
    municipality = Column(String(200), default="")  # Customer name at save time
    owning_organization = Column(String(200), nullable=True, index=True)  # Owning org name at save time
    calculation_year = Column(Integer, nullable=False, index=True)

    # Infrastructure parameters and per-component costs
    cpu_count = Column(Numeric(14, 2), default=0)
    storage_gb = Column(Numeric(14, 2), default=0)
    server_count = Column(Numeric(14, 2), default=0)
    operation_hours = Column(Numeric(14, 2), default=0)
    cpu_cost = Column(Numeric(14, 2), default=0)
    storage_cost = Column(Numeric(14, 2), default=0)
    server_cost = Column(Numeric(14, 2), default=0)
    operation_cost = Column(Numeric(14, 2), default=0)
    total_cost = Column(Numeric(14, 2), default=0, nullable=False)

    status = Column(String(20), nullable=False, default=CalculationStatus.DRAFT.value, index=True)
    version = Column(Integer, nullable=False, default=1)

    user_id = Column(Integer, ForeignKey("profiles.id"), nullable=False, index=True)
    created_by_name = Column(String(200), nullable=True)
    updated_by_name = Column(String(200), nullable=True)
    approved_by = Column(Integer, nullable=True)
    approved_by_name = Column(String(200), nullable=True)
    approved_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=True, onupdate=datetime.utcnow)

    items = relationship(
        "CalculationItem", back_populates="calculation",
        cascade="all, delete-orphan", order_by="CalculationItem.id"
    )
    versions = relationship(
        "CalculationVersion", back_populates="calculation",
        cascade="all, delete-orphan", order_by="CalculationVersion.id"
    )
    configuration_item = relationship("ConfigurationItem")


class CalculationItem(Base):
    """A price line: price type, quantity, unit price and line total."""
    __tablename__ = "calculation_items"

    id = Column(Integer, primary_key=True, index=True)
    calculation_id = Column(Integer, ForeignKey("calculations.id", ondelete="CASCADE"), nullable=False, index=True)
    pricing_config_id = Column(Integer, ForeignKey("pricing_config.id"), nullable=True)
    price_type = Column(String(200), nullable=False)
    quantity = Column(Numeric(14, 2), nullable=False, default=1)
    unit_price = Column(Numeric(14, 2), nullable=False, default=0)
    total_price = Column(Numeric(14, 2), nullable=False, default=0)
    comment = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    calculation = relationship("Calculation", back_populates="items")
    pricing_config = relationship("PricingConfig")


class CalculationVersion(Base):
    """
    Append-only snapshot of a calculation at save or status-change time.
    Price lines are embedded as JSON.
    """
    __tablename__ = "calculation_versions"

    id = Column(Integer, primary_key=True, index=True)
    calculation_id = Column(Integer, ForeignKey("calculations.id", ondelete="CASCADE"), nullable=False, index=True)
    version = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False)
    name = Column(String(300), nullable=True)
    ci_identity = Column(String(200), nullable=False)
    service_type = Column(String(200), nullable=False)
    municipality = Column(String(200), default="")
    owning_organization = Column(String(200), nullable=True)
    customer_id = Column(Integer, nullable=True)
    organization_id = Column(Integer, nullable=True)
    owning_organization_id = Column(Integer, nullable=True)
    calculation_year = Column(Integer, nullable=False)
    total_cost = Column(Numeric(14, 2), nullable=False, default=0)
    items = Column(JSON, nullable=False, default=list)
    created_by = Column(Integer, nullable=True)
    created_by_name = Column(String(200), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    calculation = relationship("Calculation", back_populates="versions")

    __table_args__ = (
        Index("ix_calculation_versions_calc_version", "calculation_id", "version"),
    )


# =============================================================================
# Budget / Outcome Ledger
# =============================================================================

class BudgetOutcome(Base):
    """Imported accounting row. Free-text objekt/mot fields start with an object number."""
    __tablename__ = "budget_outcomes"

    id = Column(Integer, primary_key=True, index=True)
    ansvar = Column(String(200), nullable=True, index=True)
    ukonto = Column(String(200), nullable=True, index=True)
    vht = Column(String(200), nullable=True)
    akt = Column(String(200), nullable=True)
    proj = Column(String(200), nullable=True)
    objekt = Column(String(300), nullable=True)
    mot = Column(String(300), nullable=True)
    kgrp = Column(String(200), nullable=True)
    budget_2025 = Column(Numeric(16, 2), nullable=True)
    utfall_ack = Column(Numeric(16, 2), nullable=True)
    diff = Column(Numeric(16, 2), nullable=True)
    budget_2026 = Column(Numeric(16, 2), nullable=True)
    import_label = Column(String(200), nullable=True)
    extraction_date = Column(Date, nullable=True)
    import_date = Column(Date, default=lambda: datetime.utcnow().date())
    imported_by = Column(Integer, nullable=True)
    imported_at = Column(DateTime, default=datetime.utcnow)


# =============================================================================
# Identity
# =============================================================================

class Profile(Base):
    """User identity with permission level and approval scope."""
    __tablename__ = "profiles"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    full_name = Column(String(200), nullable=True)
    password_hash = Column(String(255), nullable=False)
    permission_level = Column(String(20), nullable=False, default=PermissionLevel.READ_WRITE.value)
    can_approve = Column(Boolean, default=False, nullable=False)
    approval_organizations = Column(JSON, nullable=True)  # Owning organization names
    last_login_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    role = relationship("UserRole", uselist=False, back_populates="user", cascade="all, delete-orphan")

    @property
    def role_name(self) -> str:
        return self.role.role if self.role else AppRole.USER.value

    @property
    def is_admin(self) -> bool:
        return self.role_name in (AppRole.ADMIN.value, AppRole.SUPERADMIN.value)

    @property
    def is_superadmin(self) -> bool:
        return self.role_name == AppRole.SUPERADMIN.value

    @property
    def has_write_permission(self) -> bool:
        return self.permission_level == PermissionLevel.READ_WRITE.value

    @property
    def display_name(self) -> str:
        return self.full_name or self.email


class UserRole(Base):
    """Application role assignment (one per user)."""
    __tablename__ = "user_roles"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("profiles.id", ondelete="CASCADE"), unique=True, nullable=False)
    role = Column(String(20), nullable=False, default=AppRole.USER.value)
    created_at = Column(DateTime, default=datetime.utcnow)

    user = relationship("Profile", back_populates="role")


class AuditLog(Base):
    """Audit trail for data changes and lifecycle events."""
    __tablename__ = "audit_log"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=True, index=True)
    action = Column(String(30), nullable=False, index=True)  # create, update, delete, approve, submit, close, import
    table_name = Column(String(50), nullable=False, index=True)
    record_id = Column(String(50), nullable=False)
    old_values = Column(JSON, nullable=True)
    new_values = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)


def init_db():
    """Initialize the database and create all tables."""
    Base.metadata.create_all(bind=engine)


def get_db():
    """Database session dependency for FastAPI."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
