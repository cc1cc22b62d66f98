"""Initial schema for IT cost calculations

Creates:
- customers, organizations, owning_organizations: Reference data
- configuration_items: CMDB records with ledger object numbers
- pricing_config: Dated price list
- profiles, user_roles: Identities and role assignments
- calculations, calculation_items, calculation_versions: Calculations with history
- budget_outcomes: Imported ledger rows
- audit_log: Audit trail

Revision ID: 20261019_initial
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '20261019_initial'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _audit_columns():
    return [
        sa.Column('created_by', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    ]


def upgrade() -> None:
    """Create all tables."""

    # =========================================================================
    # Reference data
    # =========================================================================
    op.create_table(
        'customers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_audit_columns(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_customers_name', 'customers', ['name'])

    op.create_table(
        'organizations',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('customer_id', sa.Integer(), sa.ForeignKey('customers.id'), nullable=True),
        sa.Column('parent_id', sa.Integer(), sa.ForeignKey('organizations.id'), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_audit_columns(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_organizations_name', 'organizations', ['name'])
    op.create_index('ix_organizations_customer_id', 'organizations', ['customer_id'])
    op.create_index('ix_organizations_parent_id', 'organizations', ['parent_id'])

    op.create_table(
        'owning_organizations',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_audit_columns(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_owning_organizations_name', 'owning_organizations', ['name'], unique=True)

    op.create_table(
        'configuration_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('ci_number', sa.String(100), nullable=False),
        sa.Column('system_name', sa.String(300), nullable=False),
        sa.Column('system_owner', sa.String(200), nullable=True),
        sa.Column('system_administrator', sa.String(200), nullable=True),
        sa.Column('organization', sa.String(200), nullable=True),
        sa.Column('object_number', sa.String(50), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_audit_columns(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_configuration_items_ci_number', 'configuration_items', ['ci_number'])
    op.create_index('ix_configuration_items_object_number', 'configuration_items', ['object_number'])

    # =========================================================================
    # Pricing
    # =========================================================================
    op.create_table(
        'pricing_config',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('price_type', sa.String(200), nullable=False),
        sa.Column('price_per_unit', sa.Numeric(14, 2), nullable=False),
        sa.Column('unit', sa.String(50), nullable=True),
        sa.Column('category', sa.String(100), nullable=True),
        sa.Column('comment', sa.Text(), nullable=True),
        sa.Column('cost_owner', sa.String(100), nullable=True),
        sa.Column('ukonto', sa.String(50), nullable=True),
        sa.Column('internal_account', sa.String(50), nullable=True),
        sa.Column('external_account', sa.String(50), nullable=True),
        sa.Column('service_types', sa.JSON(), nullable=True),
        sa.Column('disallowed_service_types', sa.JSON(), nullable=True),
        sa.Column('effective_from', sa.Date(), nullable=False),
        sa.Column('effective_to', sa.Date(), nullable=True),
        *_audit_columns(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_pricing_config_price_type', 'pricing_config', ['price_type'])
    op.create_index('ix_pricing_config_effective_from', 'pricing_config', ['effective_from'])

    # =========================================================================
    # Identity
    # =========================================================================
    op.create_table(
        'profiles',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('full_name', sa.String(200), nullable=True),
        sa.Column('password_hash', sa.String(255), nullable=False),
        sa.Column('permission_level', sa.String(20), nullable=False, server_default='read_write'),
        sa.Column('can_approve', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('approval_organizations', sa.JSON(), nullable=True),
        sa.Column('last_login_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_profiles_email', 'profiles', ['email'], unique=True)

    op.create_table(
        'user_roles',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False),
        sa.Column('role', sa.String(20), nullable=False, server_default='user'),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id'),
    )

    # =========================================================================
    # Calculations
    # =========================================================================
    op.create_table(
        'calculations',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(300), nullable=True),
        sa.Column('ci_identity', sa.String(200), nullable=False),
        sa.Column('configuration_item_id', sa.Integer(), sa.ForeignKey('configuration_items.id'), nullable=True),
        sa.Column('service_type', sa.String(200), nullable=False),
        sa.Column('customer_id', sa.Integer(), sa.ForeignKey('customers.id'), nullable=True),
        sa.Column('organization_id', sa.Integer(), sa.ForeignKey('organizations.id'), nullable=True),
        sa.Column('owning_organization_id', sa.Integer(), sa.ForeignKey('owning_organizations.id'), nullable=True),
        sa.Column('municipality', sa.String(200), nullable=True),
        sa.Column('owning_organization', sa.String(200), nullable=True),
        sa.Column('calculation_year', sa.Integer(), nullable=False),
        sa.Column('cpu_count', sa.Numeric(14, 2), nullable=True),
        sa.Column('storage_gb', sa.Numeric(14, 2), nullable=True),
        sa.Column('server_count', sa.Numeric(14, 2), nullable=True),
        sa.Column('operation_hours', sa.Numeric(14, 2), nullable=True),
        sa.Column('cpu_cost', sa.Numeric(14, 2), nullable=True),
        sa.Column('storage_cost', sa.Numeric(14, 2), nullable=True),
        sa.Column('server_cost', sa.Numeric(14, 2), nullable=True),
        sa.Column('operation_cost', sa.Numeric(14, 2), nullable=True),
        sa.Column('total_cost', sa.Numeric(14, 2), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='draft'),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('profiles.id'), nullable=False),
        sa.Column('created_by_name', sa.String(200), nullable=True),
        sa.Column('updated_by_name', sa.String(200), nullable=True),
        sa.Column('approved_by', sa.Integer(), nullable=True),
        sa.Column('approved_by_name', sa.String(200), nullable=True),
        sa.Column('approved_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_calculations_ci_identity', 'calculations', ['ci_identity'])
    op.create_index('ix_calculations_service_type', 'calculations', ['service_type'])
    op.create_index('ix_calculations_owning_organization', 'calculations', ['owning_organization'])
    op.create_index('ix_calculations_calculation_year', 'calculations', ['calculation_year'])
    op.create_index('ix_calculations_status', 'calculations', ['status'])
    op.create_index('ix_calculations_user_id', 'calculations', ['user_id'])

    op.create_table(
        'calculation_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('calculation_id', sa.Integer(), sa.ForeignKey('calculations.id', ondelete='CASCADE'), nullable=False),
        sa.Column('pricing_config_id', sa.Integer(), sa.ForeignKey('pricing_config.id'), nullable=True),
        sa.Column('price_type', sa.String(200), nullable=False),
        sa.Column('quantity', sa.Numeric(14, 2), nullable=False),
        sa.Column('unit_price', sa.Numeric(14, 2), nullable=False),
        sa.Column('total_price', sa.Numeric(14, 2), nullable=False),
        sa.Column('comment', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_calculation_items_calculation_id', 'calculation_items', ['calculation_id'])

    op.create_table(
        'calculation_versions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('calculation_id', sa.Integer(), sa.ForeignKey('calculations.id', ondelete='CASCADE'), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('name', sa.String(300), nullable=True),
        sa.Column('ci_identity', sa.String(200), nullable=False),
        sa.Column('service_type', sa.String(200), nullable=False),
        sa.Column('municipality', sa.String(200), nullable=True),
        sa.Column('owning_organization', sa.String(200), nullable=True),
        sa.Column('customer_id', sa.Integer(), nullable=True),
        sa.Column('organization_id', sa.Integer(), nullable=True),
        sa.Column('owning_organization_id', sa.Integer(), nullable=True),
        sa.Column('calculation_year', sa.Integer(), nullable=False),
        sa.Column('total_cost', sa.Numeric(14, 2), nullable=False),
        sa.Column('items', sa.JSON(), nullable=False),
        sa.Column('created_by', sa.Integer(), nullable=True),
        sa.Column('created_by_name', sa.String(200), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_calculation_versions_calculation_id', 'calculation_versions', ['calculation_id'])
    op.create_index('ix_calculation_versions_calc_version', 'calculation_versions', ['calculation_id', 'version'])

    # =========================================================================
    # Ledger and audit
    # =========================================================================
    op.create_table(
        'budget_outcomes',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('ansvar', sa.String(200), nullable=True),
        sa.Column('ukonto', sa.String(200), nullable=True),
        sa.Column('vht', sa.String(200), nullable=True),
        sa.Column('akt', sa.String(200), nullable=True),
        sa.Column('proj', sa.String(200), nullable=True),
        sa.Column('objekt', sa.String(300), nullable=True),
        sa.Column('mot', sa.String(300), nullable=True),
        sa.Column('kgrp', sa.String(200), nullable=True),
        sa.Column('budget_2025', sa.Numeric(16, 2), nullable=True),
        sa.Column('utfall_ack', sa.Numeric(16, 2), nullable=True),
        sa.Column('diff', sa.Numeric(16, 2), nullable=True),
        sa.Column('budget_2026', sa.Numeric(16, 2), nullable=True),
        sa.Column('import_label', sa.String(200), nullable=True),
        sa.Column('extraction_date', sa.Date(), nullable=True),
        sa.Column('import_date', sa.Date(), nullable=True),
        sa.Column('imported_by', sa.Integer(), nullable=True),
        sa.Column('imported_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_budget_outcomes_ansvar', 'budget_outcomes', ['ansvar'])
    op.create_index('ix_budget_outcomes_ukonto', 'budget_outcomes', ['ukonto'])

    op.create_table(
        'audit_log',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('action', sa.String(30), nullable=False),
        sa.Column('table_name', sa.String(50), nullable=False),
        sa.Column('record_id', sa.String(50), nullable=False),
        sa.Column('old_values', sa.JSON(), nullable=True),
        sa.Column('new_values', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_audit_log_user_id', 'audit_log', ['user_id'])
    op.create_index('ix_audit_log_action', 'audit_log', ['action'])
    op.create_index('ix_audit_log_table_name', 'audit_log', ['table_name'])
    op.create_index('ix_audit_log_created_at', 'audit_log', ['created_at'])


def downgrade() -> None:
    """Drop all tables."""
    for table in (
        'audit_log', 'budget_outcomes', 'calculation_versions', 'calculation_items',
        'calculations', 'user_roles', 'profiles', 'pricing_config',
        'configuration_items', 'owning_organizations', 'organizations', 'customers',
    ):
        op.drop_table(table)
