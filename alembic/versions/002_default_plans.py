"""Seed the default plan catalog

Revision ID: 002_default_plans
Revises: 001_initial_schema
Create Date: 2026-10-19

"""
from typing import Sequence, Union
import uuid
from alembic import op
import sqlalchemy as sa


revision: str = '002_default_plans'
down_revision: Union[str, None] = '001_initial_schema'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


# (plan, description, {module: item_limit}); modules not listed are not included
DEFAULT_PLANS = [
    ('Starter', 'Small teams getting started', {'USERS': 2, 'CONTACTS': 50}),
    ('Standard', 'Growing businesses with a sales pipeline', {'USERS': 5, 'CONTACTS': 100, 'CRM': None}),
    ('Enterprise', 'Unlimited users and contacts', {'USERS': None, 'CONTACTS': None, 'CRM': None}),
]


def upgrade() -> None:
    plans = sa.table(
        'plans',
        sa.column('id', sa.String),
        sa.column('name', sa.String),
        sa.column('description', sa.Text),
    )
    plan_modules = sa.table(
        'plan_modules',
        sa.column('id', sa.String),
        sa.column('plan_id', sa.String),
        sa.column('module_type', sa.Enum('USERS', 'CONTACTS', 'CRM', name='moduletype')),
        sa.column('item_limit', sa.Integer),
    )

    bind = op.get_bind()
    for name, description, modules in DEFAULT_PLANS:
        exists = bind.execute(
            sa.text("SELECT 1 FROM plans WHERE name = :name"), {"name": name}
        ).first()
        if exists:
            continue

        plan_id = str(uuid.uuid4())
        op.bulk_insert(plans, [{'id': plan_id, 'name': name, 'description': description}])
        op.bulk_insert(plan_modules, [
            {'id': str(uuid.uuid4()), 'plan_id': plan_id, 'module_type': module, 'item_limit': limit}
            for module, limit in modules.items()
        ])


def downgrade() -> None:
    names = tuple(name for name, _, _ in DEFAULT_PLANS)
    op.execute(
        sa.text(
            "DELETE FROM plans WHERE name IN :names"
        ).bindparams(sa.bindparam('names', value=names, expanding=True))
    )
