"""Monthly reconciliation engine - properties, bookings, costs, reconciliations, audit log

Revision ID: 20261019_0900_monthly_reconciliation
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '20261019_0900_monthly_reconciliation'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


RECONCILIATION_STATUSES = ('preview', 'draft', 'approved', 'statement_sent', 'paid')
LINE_ITEM_TYPES = ('booking', 'mid_term_booking', 'pass_through_fee', 'expense', 'visit', 'order_minimum')
AUDIT_ACTIONS = ('created', 'finalized', 'auto_finalized', 'deleted', 'item_verified')


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    # =====================================================
    # DIRECTORY
    # =====================================================
    op.create_table(
        'property_owners',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('service_type', sa.String(50), nullable=True, comment='full_service or cohosting'),
        *_timestamps(),
    )

    op.create_table(
        'properties',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('owner_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('property_owners.id', ondelete='SET NULL'), nullable=True, index=True),
        sa.Column('management_fee_percentage', sa.Numeric(precision=5, scale=2), nullable=True),
        sa.Column('nightly_rate', sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column('order_minimum_fee', sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column('first_listing_live_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )

    # =====================================================
    # BOOKING SOURCES
    # =====================================================
    op.create_table(
        'ownerrez_bookings',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('property_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('properties.id', ondelete='CASCADE'), nullable=False),
        sa.Column('guest_name', sa.String(200), nullable=True),
        sa.Column('listing_name', sa.String(200), nullable=True),
        sa.Column('check_in', sa.Date(), nullable=False),
        sa.Column('check_out', sa.Date(), nullable=True),
        sa.Column('total_amount', sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column('accommodation_revenue', sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column('cleaning_fee', sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column('pet_fee', sa.Numeric(precision=12, scale=2), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_ownerrez_bookings_property_check_in', 'ownerrez_bookings', ['property_id', 'check_in'])

    op.create_table(
        'mid_term_bookings',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('property_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('properties.id', ondelete='CASCADE'), nullable=False),
        sa.Column('tenant_name', sa.String(200), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('monthly_rent', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='active'),
        *_timestamps(),
    )
    op.create_index('ix_mid_term_bookings_property_dates', 'mid_term_bookings', ['property_id', 'start_date', 'end_date'])

    # =====================================================
    # COSTS
    # =====================================================
    op.create_table(
        'expenses',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('property_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('properties.id', ondelete='CASCADE'), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('purpose', sa.String(500), nullable=True),
        sa.Column('items_detail', sa.Text(), nullable=True),
        sa.Column('category', sa.String(100), nullable=True),
        sa.Column('exported', sa.Boolean(), nullable=False, server_default='false'),
        *_timestamps(),
    )
    op.create_index('ix_expenses_property_date', 'expenses', ['property_id', 'date'])

    op.create_table(
        'visits',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('property_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('properties.id', ondelete='CASCADE'), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('price', sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column('visited_by', sa.String(200), nullable=True),
        sa.Column('billed', sa.Boolean(), nullable=False, server_default='false'),
        *_timestamps(),
    )
    op.create_index('ix_visits_property_date', 'visits', ['property_id', 'date'])

    # =====================================================
    # RECONCILIATIONS
    # =====================================================
    money = dict(precision=12, scale=2)
    op.create_table(
        'monthly_reconciliations',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('property_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('properties.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('owner_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('property_owners.id', ondelete='SET NULL'), nullable=True, index=True),
        sa.Column('reconciliation_month', sa.Date(), nullable=False),
        sa.Column('short_term_revenue', sa.Numeric(**money), nullable=False, server_default='0'),
        sa.Column('mid_term_revenue', sa.Numeric(**money), nullable=False, server_default='0'),
        sa.Column('total_revenue', sa.Numeric(**money), nullable=False, server_default='0'),
        sa.Column('pass_through_fees', sa.Numeric(**money), nullable=False, server_default='0'),
        sa.Column('visit_fees', sa.Numeric(**money), nullable=False, server_default='0'),
        sa.Column('total_expenses', sa.Numeric(**money), nullable=False, server_default='0'),
        sa.Column('management_fee', sa.Numeric(**money), nullable=False, server_default='0'),
        sa.Column('order_minimum_fee', sa.Numeric(**money), nullable=False, server_default='0'),
        sa.Column('net_to_owner', sa.Numeric(**money), nullable=False, server_default='0'),
        sa.Column('nightly_rate', sa.Numeric(**money), nullable=True),
        sa.Column('fee_policy', sa.String(30), nullable=True),
        sa.Column('status', sa.Enum(*RECONCILIATION_STATUSES, name='reconciliation_status'), nullable=False, server_default='draft'),
        sa.Column('notes', sa.Text(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint('property_id', 'reconciliation_month', name='uq_monthly_reconciliations_property_month'),
    )
    op.create_index('ix_monthly_reconciliations_status_month', 'monthly_reconciliations', ['status', 'reconciliation_month'])

    op.create_table(
        'reconciliation_line_items',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('reconciliation_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('monthly_reconciliations.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('item_type', sa.Enum(*LINE_ITEM_TYPES, name='line_item_type'), nullable=False),
        sa.Column('item_id', sa.String(100), nullable=False),
        sa.Column('description', sa.String(500), nullable=False),
        sa.Column('amount', sa.Numeric(**money), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('category', sa.String(100), nullable=True),
        sa.Column('fee_type', sa.String(50), nullable=True),
        sa.Column('verified', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('excluded', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('exclusion_reason', sa.String(500), nullable=True),
        sa.Column('source', sa.String(50), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint('reconciliation_id', 'item_type', 'item_id', name='uq_reconciliation_line_items_natural_key'),
    )

    # No FK on reconciliation_id: entries outlive deleted drafts
    op.create_table(
        'reconciliation_audit_log',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('reconciliation_id', postgresql.UUID(as_uuid=True), nullable=False, index=True),
        sa.Column('action', sa.Enum(*AUDIT_ACTIONS, name='reconciliation_audit_action'), nullable=False, index=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('item_id', sa.String(100), nullable=True),
        sa.Column('previous_values', postgresql.JSONB(), nullable=True),
        sa.Column('new_values', postgresql.JSONB(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False, index=True),
    )


def downgrade() -> None:
    op.drop_table('reconciliation_audit_log')
    op.drop_table('reconciliation_line_items')
    op.drop_index('ix_monthly_reconciliations_status_month', table_name='monthly_reconciliations')
    op.drop_table('monthly_reconciliations')
    op.drop_index('ix_visits_property_date', table_name='visits')
    op.drop_table('visits')
    op.drop_index('ix_expenses_property_date', table_name='expenses')
    op.drop_table('expenses')
    op.drop_index('ix_mid_term_bookings_property_dates', table_name='mid_term_bookings')
    op.drop_table('mid_term_bookings')
    op.drop_index('ix_ownerrez_bookings_property_check_in', table_name='ownerrez_bookings')
    op.drop_table('ownerrez_bookings')
    op.drop_table('properties')
    op.drop_table('property_owners')

    sa.Enum(name='reconciliation_audit_action').drop(op.get_bind(), checkfirst=True)
    sa.Enum(name='line_item_type').drop(op.get_bind(), checkfirst=True)
    sa.Enum(name='reconciliation_status').drop(op.get_bind(), checkfirst=True)
