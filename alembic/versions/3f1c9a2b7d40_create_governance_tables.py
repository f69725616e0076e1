"""create_governance_tables

Revision ID: 3f1c9a2b7d40
Revises:
Create Date: 2026-10-18 09:12:41.118204

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '3f1c9a2b7d40'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'tenant',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('tenant_id', sa.String(length=100), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('tier', sa.String(length=50), nullable=False),
        sa.Column('max_agents', sa.Integer(), nullable=True),
        sa.Column('max_campaigns', sa.Integer(), nullable=True),
        sa.Column('max_concurrent_calls', sa.Integer(), nullable=True),
        sa.Column('max_minutes', sa.Integer(), nullable=True),
        sa.Column('minutes_used', sa.Integer(), server_default='0', nullable=False),
        sa.Column(
            'allowed_features',
            sa.Text().with_variant(postgresql.JSONB(astext_type=sa.Text()), 'postgresql'),
            nullable=True,
        ),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('subscription_expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_by', sa.String(length=100), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint('minutes_used >= 0', name='ck_tenant_minutes_used_non_negative'),
        sa.CheckConstraint(
            '(max_agents IS NULL OR max_agents >= 0) '
            'AND (max_campaigns IS NULL OR max_campaigns >= 0) '
            'AND (max_concurrent_calls IS NULL OR max_concurrent_calls >= 0) '
            'AND (max_minutes IS NULL OR max_minutes >= 0)',
            name='ck_tenant_limits_non_negative',
        ),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_tenant_tenant_id'), 'tenant', ['tenant_id'], unique=True)

    op.create_table(
        'usage_record',
        sa.Column('sequence', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('tenant_id', sa.String(length=100), nullable=False),
        sa.Column('minutes_delta', sa.Integer(), nullable=False),
        sa.Column('idempotency_key', sa.String(length=200), nullable=False),
        sa.Column('source', sa.String(length=100), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('sequence'),
        sa.UniqueConstraint('tenant_id', 'idempotency_key', name='uq_usage_record_tenant_key'),
    )
    op.create_index('ix_usage_record_tenant_sequence', 'usage_record', ['tenant_id', 'sequence'])

    op.create_table(
        'resource_slot',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('tenant_id', sa.String(length=100), nullable=False),
        sa.Column('resource_kind', sa.String(length=20), nullable=False),
        sa.Column('slot_index', sa.Integer(), nullable=False),
        sa.Column('resource_ref', sa.String(length=200), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('tenant_id', 'resource_kind', 'slot_index', name='uq_resource_slot_index'),
        sa.UniqueConstraint('tenant_id', 'resource_kind', 'resource_ref', name='uq_resource_slot_ref'),
    )
    op.create_index('ix_resource_slot_tenant_kind', 'resource_slot', ['tenant_id', 'resource_kind'])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index('ix_resource_slot_tenant_kind', table_name='resource_slot')
    op.drop_table('resource_slot')
    op.drop_index('ix_usage_record_tenant_sequence', table_name='usage_record')
    op.drop_table('usage_record')
    op.drop_index(op.f('ix_tenant_tenant_id'), table_name='tenant')
    op.drop_table('tenant')
