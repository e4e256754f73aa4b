"""create recurring payments and ledger entries

Revision ID: 001
Revises: 
Create Date: 2026-10-19 09:00:00
"""

from alembic import op
import sqlalchemy as sa


FREQUENCY = sa.Enum("daily", "weekly", "monthly", "quarterly", "yearly", name="frequency")
ENTRY_KIND = sa.Enum("income", "expense", name="entrykind")
TERMINAL_REASON = sa.Enum("exhausted", "expired", name="terminalreason")


def upgrade() -> None:
    op.create_table(
        'recurring_payments',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('organization_id', sa.String(36), nullable=False),
        sa.Column('kind', ENTRY_KIND, nullable=False),
        sa.Column('category', sa.String(100), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('counterparty_id', sa.String(36), nullable=True),
        sa.Column('engagement_id', sa.String(36), nullable=True),
        sa.Column('frequency', FREQUENCY, nullable=False),
        sa.Column('day_of_month', sa.Integer(), nullable=True),
        sa.Column('day_of_week', sa.Integer(), nullable=True),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=True),
        sa.Column('occurrence_limit', sa.Integer(), nullable=True),
        sa.Column('occurrences_fired', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('next_occurrence', sa.Date(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('terminal_reason', TERMINAL_REASON, nullable=True),
        sa.Column('created_by', sa.String(36), nullable=True),
        sa.Column('updated_by', sa.String(36), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_recurring_payments_organization_id', 'recurring_payments', ['organization_id'])
    op.create_index(
        'idx_recurring_due', 'recurring_payments', ['organization_id', 'is_active', 'next_occurrence']
    )

    op.create_table(
        'ledger_entries',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('organization_id', sa.String(36), nullable=False),
        sa.Column(
            'recurring_payment_id',
            sa.String(36),
            sa.ForeignKey('recurring_payments.id', ondelete='SET NULL'),
            nullable=True,
        ),
        sa.Column('kind', ENTRY_KIND, nullable=False),
        sa.Column('category', sa.String(100), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('counterparty_id', sa.String(36), nullable=True),
        sa.Column('engagement_id', sa.String(36), nullable=True),
        sa.Column('occurrence_date', sa.Date(), nullable=False),
        sa.Column('source', sa.String(32), nullable=False),
        sa.Column('created_by', sa.String(36), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('recurring_payment_id', 'occurrence_date', name='uq_entry_rule_occurrence'),
    )
    op.create_index('ix_ledger_entries_organization_id', 'ledger_entries', ['organization_id'])
    op.create_index('idx_entry_org_date', 'ledger_entries', ['organization_id', 'occurrence_date'])


def downgrade() -> None:
    op.drop_index('idx_entry_org_date', table_name='ledger_entries')
    op.drop_index('ix_ledger_entries_organization_id', table_name='ledger_entries')
    op.drop_table('ledger_entries')
    op.drop_index('idx_recurring_due', table_name='recurring_payments')
    op.drop_index('ix_recurring_payments_organization_id', table_name='recurring_payments')
    op.drop_table('recurring_payments')
