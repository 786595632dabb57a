"""Initial schema: tenants, plans, users, CRM entities and entitlement overrides

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision: str = '001_initial_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


MODULE_TYPES = ('USERS', 'CONTACTS', 'CRM')
USER_ROLES = ('SUPER_ADMIN', 'BUSINESS_ADMIN', 'USER')
CONTACT_STATUSES = ('LEAD', 'ACTIVE', 'INACTIVE', 'BLOCKED')
OPPORTUNITY_STATUSES = ('NEW', 'QUALIFYING', 'PROPOSAL', 'NEGOTIATION', 'WON', 'LOST', 'ON_HOLD')

# Enum types are created once up front and shared between tables
module_type = postgresql.ENUM(*MODULE_TYPES, name='moduletype', create_type=False)
user_role = postgresql.ENUM(*USER_ROLES, name='userrole', create_type=False)
contact_status = postgresql.ENUM(*CONTACT_STATUSES, name='contactstatus', create_type=False)
opportunity_status = postgresql.ENUM(*OPPORTUNITY_STATUSES, name='opportunitystatus', create_type=False)


def upgrade() -> None:
    bind = op.get_bind()
    for enum_type in (module_type, user_role, contact_status, opportunity_status):
        postgresql.ENUM(*enum_type.enums, name=enum_type.name).create(bind, checkfirst=True)

    # Plans
    op.create_table(
        'plans',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('name', sa.String(100), nullable=False, unique=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        'plan_modules',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('plan_id', sa.String(36), sa.ForeignKey('plans.id', ondelete='CASCADE'), nullable=False),
        sa.Column('module_type', module_type, nullable=False),
        sa.Column('is_included', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('item_limit', sa.Integer(), nullable=True),
        sa.Column('can_create', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('can_edit', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('can_delete', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('can_view', sa.Boolean(), nullable=False, server_default='true'),
        sa.UniqueConstraint('plan_id', 'module_type', name='uq_plan_module_type'),
        sa.CheckConstraint('item_limit IS NULL OR item_limit >= 0', name='ck_plan_modules_item_limit_non_negative'),
    )
    op.create_index('ix_plan_modules_plan_id', 'plan_modules', ['plan_id'])

    # Tenants
    op.create_table(
        'tenants',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('plan_id', sa.String(36), sa.ForeignKey('plans.id', ondelete='SET NULL'), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_tenants_plan_id', 'tenants', ['plan_id'])

    # Users
    op.create_table(
        'users',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('tenant_id', sa.String(36), sa.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('hashed_password', sa.String(255), nullable=False),
        sa.Column('full_name', sa.String(255), nullable=True),
        sa.Column('phone', sa.String(50), nullable=True),
        sa.Column('role', user_role, nullable=False, server_default='USER'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('last_login', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_users_tenant_id', 'users', ['tenant_id'])
    op.create_index('ix_user_tenant_email', 'users', ['tenant_id', 'email'], unique=True)

    # Contacts (companies)
    op.create_table(
        'contacts',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('tenant_id', sa.String(36), sa.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('owner_id', sa.String(36), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('status', contact_status, nullable=False, server_default='LEAD'),
        sa.Column('contact_name', sa.String(255), nullable=True),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('phone', sa.String(50), nullable=True),
        sa.Column('website', sa.String(255), nullable=True),
        sa.Column('industry', sa.String(100), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_contacts_tenant_id', 'contacts', ['tenant_id'])
    op.create_index('ix_contact_tenant_deleted', 'contacts', ['tenant_id', 'deleted_at'])

    # Opportunities
    op.create_table(
        'opportunities',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('tenant_id', sa.String(36), sa.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('contact_id', sa.String(36), sa.ForeignKey('contacts.id', ondelete='CASCADE'), nullable=False),
        sa.Column('seller_id', sa.String(36), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('status', opportunity_status, nullable=False, server_default='NEW'),
        sa.Column('estimated_close_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_opportunities_tenant_id', 'opportunities', ['tenant_id'])
    op.create_index('ix_opportunity_tenant_status', 'opportunities', ['tenant_id', 'status'])

    # Tenant overrides
    op.create_table(
        'tenant_module_overrides',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('tenant_id', sa.String(36), sa.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('module_type', module_type, nullable=False),
        sa.Column('is_disabled', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('item_limit', sa.Integer(), nullable=True),
        sa.Column('updated_by', sa.String(36), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint('tenant_id', 'module_type', name='uq_tenant_module_override'),
        sa.CheckConstraint('item_limit IS NULL OR item_limit >= 0', name='ck_tenant_module_overrides_override_limit_non_negative'),
    )
    op.create_index('ix_tenant_module_overrides_tenant_id', 'tenant_module_overrides', ['tenant_id'])

    # User module permissions
    op.create_table(
        'user_module_permissions',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('tenant_id', sa.String(36), sa.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('module_type', module_type, nullable=False),
        sa.Column('can_view', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('can_create', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('can_edit', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('can_delete', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('granted_by', sa.String(36), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('granted_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.UniqueConstraint('user_id', 'module_type', name='uq_user_module_permission'),
    )
    op.create_index('ix_user_module_permissions_tenant_id', 'user_module_permissions', ['tenant_id'])

    # Cached usage
    op.create_table(
        'usage_records',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('tenant_id', sa.String(36), sa.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('module_type', module_type, nullable=False),
        sa.Column('current_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_calculated', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint('tenant_id', 'module_type', name='uq_usage_tenant_module'),
    )
    op.create_index('ix_usage_records_tenant_id', 'usage_records', ['tenant_id'])


def downgrade() -> None:
    op.drop_table('usage_records')
    op.drop_table('user_module_permissions')
    op.drop_table('tenant_module_overrides')
    op.drop_table('opportunities')
    op.drop_table('contacts')
    op.drop_table('users')
    op.drop_table('tenants')
    op.drop_table('plan_modules')
    op.drop_table('plans')

    bind = op.get_bind()
    for enum_type in (opportunity_status, contact_status, user_role, module_type):
        enum_type.drop(bind, checkfirst=True)
