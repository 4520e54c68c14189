"""subscription core tables

Revision ID: 20261019_0001
Revises: 
Create Date: 2026-10-19 00:01:00
"""

from alembic import op
import sqlalchemy as sa


revision = '20261019_0001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'services',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=160), nullable=False),
        sa.Column('category', sa.String(length=80), nullable=False, server_default='general'),
        sa.Column('price', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('included_sessions', sa.Integer(), nullable=False, server_default='8'),
        sa.Column('capacity', sa.Integer(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_services_id', 'services', ['id'])
    op.create_index('ix_services_is_active', 'services', ['is_active'])

    op.create_table(
        'schedule_slots',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('service_id', sa.Integer(), sa.ForeignKey('services.id'), nullable=True),
        sa.Column('day_of_week', sa.Integer(), nullable=False),
        sa.Column('start_time', sa.String(length=5), nullable=False),
        sa.Column('end_time', sa.String(length=5), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
    )
    op.create_index('ix_schedule_slots_id', 'schedule_slots', ['id'])
    op.create_index('ix_schedule_slots_service_id', 'schedule_slots', ['service_id'])
    op.create_index('ix_schedule_slots_service_day', 'schedule_slots', ['service_id', 'day_of_week'])

    op.create_table(
        'promotions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('title', sa.String(length=160), nullable=False),
        sa.Column('promo_code', sa.String(length=40), nullable=True),
        sa.Column('discount_type', sa.String(length=20), nullable=False, server_default='percentage'),
        sa.Column('discount_value', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('min_age', sa.Integer(), nullable=True),
        sa.Column('max_age', sa.Integer(), nullable=True),
        sa.Column('applicable_services', sa.Text(), nullable=False, server_default='[]'),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('max_uses', sa.Integer(), nullable=True),
        sa.Column('used_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_promotions_id', 'promotions', ['id'])
    op.create_index('ix_promotions_promo_code', 'promotions', ['promo_code'], unique=True)
    op.create_index('ix_promotions_is_active', 'promotions', ['is_active'])

    op.create_table(
        'subscriptions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('subscription_code', sa.String(length=32), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('service_id', sa.Integer(), sa.ForeignKey('services.id'), nullable=False),
        sa.Column('child_name', sa.String(length=120), nullable=False),
        sa.Column('child_age', sa.Integer(), nullable=False),
        sa.Column('parent_name', sa.String(length=160), nullable=False),
        sa.Column('parent_email', sa.String(length=200), nullable=False),
        sa.Column('parent_phone', sa.String(length=40), nullable=False),
        sa.Column('start_month', sa.Integer(), nullable=False),
        sa.Column('start_year', sa.Integer(), nullable=False),
        sa.Column('weekly_schedule', sa.Text(), nullable=False, server_default='{}'),
        sa.Column('preferred_days', sa.Text(), nullable=False, server_default='[]'),
        sa.Column('preferred_times', sa.Text(), nullable=False, server_default='[]'),
        sa.Column('sessions_per_month', sa.Integer(), nullable=False),
        sa.Column('special_requests', sa.Text(), nullable=True),
        sa.Column('base_monthly_price', sa.Numeric(10, 2), nullable=False),
        sa.Column('discount_amount', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('final_monthly_price', sa.Numeric(10, 2), nullable=False),
        sa.Column('promotion_id', sa.Integer(), sa.ForeignKey('promotions.id'), nullable=True),
        sa.Column('promotion_code', sa.String(length=40), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='pending'),
        sa.Column('payment_status', sa.String(length=20), nullable=False, server_default='pending'),
        sa.Column('confirmed_by', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_subscriptions_id', 'subscriptions', ['id'])
    op.create_index('ix_subscriptions_subscription_code', 'subscriptions', ['subscription_code'], unique=True)
    op.create_index('ix_subscriptions_user_id', 'subscriptions', ['user_id'])
    op.create_index('ix_subscriptions_service_id', 'subscriptions', ['service_id'])
    op.create_index('ix_subscriptions_promotion_id', 'subscriptions', ['promotion_id'])
    op.create_index('ix_subscriptions_status', 'subscriptions', ['status'])
    op.create_index('ix_subscriptions_created_at', 'subscriptions', ['created_at'])
    op.create_index(
        'ix_subscriptions_service_month_status',
        'subscriptions',
        ['service_id', 'start_year', 'start_month', 'status'],
    )

    op.create_table(
        'bookings',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('booking_code', sa.String(length=32), nullable=False),
        sa.Column('subscription_id', sa.Integer(), sa.ForeignKey('subscriptions.id'), nullable=True),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('service_id', sa.Integer(), sa.ForeignKey('services.id'), nullable=False),
        sa.Column('child_name', sa.String(length=120), nullable=False),
        sa.Column('child_age', sa.Integer(), nullable=False),
        sa.Column('parent_name', sa.String(length=160), nullable=False),
        sa.Column('parent_email', sa.String(length=200), nullable=False),
        sa.Column('parent_phone', sa.String(length=40), nullable=False),
        sa.Column('preferred_date', sa.Date(), nullable=False),
        sa.Column('preferred_time', sa.String(length=5), nullable=False),
        sa.Column('start_month', sa.Integer(), nullable=True),
        sa.Column('start_year', sa.Integer(), nullable=True),
        sa.Column('preferred_days', sa.Text(), nullable=False, server_default='[]'),
        sa.Column('preferred_times', sa.Text(), nullable=False, server_default='[]'),
        sa.Column('sessions_per_month', sa.Integer(), nullable=True),
        sa.Column('special_requests', sa.Text(), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='pending'),
        sa.Column('payment_status', sa.String(length=20), nullable=False, server_default='pending'),
        sa.Column('original_price', sa.Numeric(10, 2), nullable=False),
        sa.Column('promotion_id', sa.Integer(), sa.ForeignKey('promotions.id'), nullable=True),
        sa.Column('promotion_code', sa.String(length=40), nullable=True),
        sa.Column('discount_amount', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('final_price', sa.Numeric(10, 2), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_bookings_id', 'bookings', ['id'])
    op.create_index('ix_bookings_booking_code', 'bookings', ['booking_code'], unique=True)
    op.create_index('ix_bookings_subscription_id', 'bookings', ['subscription_id'])
    op.create_index('ix_bookings_user_id', 'bookings', ['user_id'])
    op.create_index('ix_bookings_service_id', 'bookings', ['service_id'])
    op.create_index('ix_bookings_status', 'bookings', ['status'])

    op.create_table(
        'child_profiles',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('subscription_id', sa.Integer(), sa.ForeignKey('subscriptions.id'), nullable=False),
        sa.Column('birth_date', sa.Date(), nullable=False),
        sa.Column('special_needs', sa.Text(), nullable=True),
        sa.Column('allergies', sa.Text(), nullable=False, server_default='[]'),
        sa.Column('medical_conditions', sa.Text(), nullable=False, server_default='[]'),
        sa.Column('medications', sa.Text(), nullable=False, server_default='[]'),
        sa.Column('emergency_contacts', sa.Text(), nullable=False, server_default='[]'),
        sa.Column('updated_by', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_child_profiles_id', 'child_profiles', ['id'])
    op.create_index('ix_child_profiles_subscription_id', 'child_profiles', ['subscription_id'], unique=True)

    op.create_table(
        'invoices',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('invoice_number', sa.String(length=32), nullable=False),
        sa.Column('subscription_id', sa.Integer(), sa.ForeignKey('subscriptions.id'), nullable=True),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('invoice_type', sa.String(length=20), nullable=False, server_default='registration'),
        sa.Column('billing_month', sa.Integer(), nullable=False),
        sa.Column('billing_year', sa.Integer(), nullable=False),
        sa.Column('due_date', sa.Date(), nullable=False),
        sa.Column('subtotal', sa.Numeric(10, 2), nullable=False),
        sa.Column('tax_amount', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('total_amount', sa.Numeric(10, 2), nullable=False),
        sa.Column('payment_status', sa.String(length=20), nullable=False, server_default='pending'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_invoices_id', 'invoices', ['id'])
    op.create_index('ix_invoices_invoice_number', 'invoices', ['invoice_number'], unique=True)
    op.create_index('ix_invoices_subscription_id', 'invoices', ['subscription_id'])
    op.create_index('ix_invoices_user_id', 'invoices', ['user_id'])
    op.create_index('ix_invoices_payment_status', 'invoices', ['payment_status'])

    op.create_table(
        'invoice_items',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('invoice_id', sa.Integer(), sa.ForeignKey('invoices.id'), nullable=False),
        sa.Column('description', sa.String(length=255), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('unit_price', sa.Numeric(10, 2), nullable=False),
        sa.Column('total_price', sa.Numeric(10, 2), nullable=False),
        sa.Column('service_id', sa.Integer(), nullable=True),
        sa.Column('service_name', sa.String(length=160), nullable=True),
    )
    op.create_index('ix_invoice_items_id', 'invoice_items', ['id'])
    op.create_index('ix_invoice_items_invoice_id', 'invoice_items', ['invoice_id'])

    op.create_table(
        'capacity_ledger',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('service_id', sa.Integer(), sa.ForeignKey('services.id'), nullable=False),
        sa.Column('month', sa.Integer(), nullable=False),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('admitted_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('service_id', 'month', 'year', name='uq_capacity_ledger_service_month_year'),
    )
    op.create_index('ix_capacity_ledger_id', 'capacity_ledger', ['id'])
    op.create_index('ix_capacity_ledger_service_id', 'capacity_ledger', ['service_id'])


def downgrade() -> None:
    op.drop_table('capacity_ledger')
    op.drop_table('invoice_items')
    op.drop_table('invoices')
    op.drop_table('child_profiles')
    op.drop_table('bookings')
    op.drop_table('subscriptions')
    op.drop_table('promotions')
    op.drop_table('schedule_slots')
    op.drop_table('services')
