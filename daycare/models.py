from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Index, Integer, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from daycare.db import Base


class SubscriptionStatus(str, Enum):
    PENDING = 'pending'
    ACTIVE = 'active'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'


# Statuses that hold a place against the monthly capacity.
ADMITTED_STATUSES = (SubscriptionStatus.PENDING.value, SubscriptionStatus.ACTIVE.value)


class DiscountType(str, Enum):
    PERCENTAGE = 'percentage'
    FIXED_AMOUNT = 'fixed_amount'
    FREE_SERVICE = 'free_service'


class Service(Base):
    __tablename__ = 'services'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(160))
    category: Mapped[str] = mapped_column(String(80), default='general')
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal('0.00'))
    included_sessions: Mapped[int] = mapped_column(Integer, default=8)
    capacity: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    schedule_slots: Mapped[list['ScheduleSlot']] = relationship('ScheduleSlot', back_populates='service')


class ScheduleSlot(Base):
    __tablename__ = 'schedule_slots'
    __table_args__ = (
        Index('ix_schedule_slots_service_day', 'service_id', 'day_of_week'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    service_id: Mapped[int | None] = mapped_column(ForeignKey('services.id'), nullable=True, index=True)
    day_of_week: Mapped[int] = mapped_column(Integer)  # 0=Sunday .. 6=Saturday
    start_time: Mapped[str] = mapped_column(String(5))
    end_time: Mapped[str] = mapped_column(String(5))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    service: Mapped['Service | None'] = relationship('Service', back_populates='schedule_slots')


class Promotion(Base):
    __tablename__ = 'promotions'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    title: Mapped[str] = mapped_column(String(160))
    promo_code: Mapped[str | None] = mapped_column(String(40), unique=True, index=True, nullable=True)
    discount_type: Mapped[str] = mapped_column(String(20), default=DiscountType.PERCENTAGE.value)
    discount_value: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal('0.00'))
    min_age: Mapped[int | None] = mapped_column(Integer, nullable=True)
    max_age: Mapped[int | None] = mapped_column(Integer, nullable=True)
    applicable_services: Mapped[str] = mapped_column(Text, default='[]')  # JSON list of service ids
    start_date: Mapped[date] = mapped_column(Date)
    end_date: Mapped[date] = mapped_column(Date)
    max_uses: Mapped[int | None] = mapped_column(Integer, nullable=True)
    used_count: Mapped[int] = mapped_column(Integer, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class Subscription(Base):
    __tablename__ = 'subscriptions'
    __table_args__ = (
        Index('ix_subscriptions_service_month_status', 'service_id', 'start_year', 'start_month', 'status'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    subscription_code: Mapped[str] = mapped_column(String(32), unique=True, index=True)
    user_id: Mapped[int] = mapped_column(Integer, index=True)
    service_id: Mapped[int] = mapped_column(ForeignKey('services.id'), index=True)
    child_name: Mapped[str] = mapped_column(String(120))
    child_age: Mapped[int] = mapped_column(Integer)  # months
    parent_name: Mapped[str] = mapped_column(String(160))
    parent_email: Mapped[str] = mapped_column(String(200))
    parent_phone: Mapped[str] = mapped_column(String(40))
    start_month: Mapped[int] = mapped_column(Integer)
    start_year: Mapped[int] = mapped_column(Integer)
    weekly_schedule: Mapped[str] = mapped_column(Text, default='{}')
    preferred_days: Mapped[str] = mapped_column(Text, default='[]')
    preferred_times: Mapped[str] = mapped_column(Text, default='[]')
    sessions_per_month: Mapped[int] = mapped_column(Integer)
    special_requests: Mapped[str | None] = mapped_column(Text, nullable=True)
    base_monthly_price: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    discount_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal('0.00'))
    final_monthly_price: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    promotion_id: Mapped[int | None] = mapped_column(ForeignKey('promotions.id'), nullable=True, index=True)
    promotion_code: Mapped[str | None] = mapped_column(String(40), nullable=True)
    status: Mapped[str] = mapped_column(String(20), default=SubscriptionStatus.PENDING.value, index=True)
    payment_status: Mapped[str] = mapped_column(String(20), default='pending')
    confirmed_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    service: Mapped['Service'] = relationship('Service')
    promotion: Mapped['Promotion | None'] = relationship('Promotion')
    booking: Mapped['Booking | None'] = relationship('Booking', back_populates='subscription', uselist=False)
    child_profile: Mapped['ChildProfile | None'] = relationship('ChildProfile', back_populates='subscription', uselist=False)
    invoices: Mapped[list['Invoice']] = relationship('Invoice', back_populates='subscription')


class Booking(Base):
    """Single-date booking shape kept for older read paths; derived from Subscription."""

    __tablename__ = 'bookings'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    booking_code: Mapped[str] = mapped_column(String(32), unique=True, index=True)
    subscription_id: Mapped[int | None] = mapped_column(ForeignKey('subscriptions.id'), nullable=True, index=True)
    user_id: Mapped[int] = mapped_column(Integer, index=True)
    service_id: Mapped[int] = mapped_column(ForeignKey('services.id'), index=True)
    child_name: Mapped[str] = mapped_column(String(120))
    child_age: Mapped[int] = mapped_column(Integer)
    parent_name: Mapped[str] = mapped_column(String(160))
    parent_email: Mapped[str] = mapped_column(String(200))
    parent_phone: Mapped[str] = mapped_column(String(40))
    preferred_date: Mapped[date] = mapped_column(Date)
    preferred_time: Mapped[str] = mapped_column(String(5))
    start_month: Mapped[int | None] = mapped_column(Integer, nullable=True)
    start_year: Mapped[int | None] = mapped_column(Integer, nullable=True)
    preferred_days: Mapped[str] = mapped_column(Text, default='[]')
    preferred_times: Mapped[str] = mapped_column(Text, default='[]')
    sessions_per_month: Mapped[int | None] = mapped_column(Integer, nullable=True)
    special_requests: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(20), default='pending', index=True)
    payment_status: Mapped[str] = mapped_column(String(20), default='pending')
    original_price: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    promotion_id: Mapped[int | None] = mapped_column(ForeignKey('promotions.id'), nullable=True)
    promotion_code: Mapped[str | None] = mapped_column(String(40), nullable=True)
    discount_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal('0.00'))
    final_price: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    subscription: Mapped['Subscription | None'] = relationship('Subscription', back_populates='booking')


class ChildProfile(Base):
    __tablename__ = 'child_profiles'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    subscription_id: Mapped[int] = mapped_column(ForeignKey('subscriptions.id'), unique=True, index=True)
    birth_date: Mapped[date] = mapped_column(Date)
    special_needs: Mapped[str | None] = mapped_column(Text, nullable=True)
    allergies: Mapped[str] = mapped_column(Text, default='[]')
    medical_conditions: Mapped[str] = mapped_column(Text, default='[]')
    medications: Mapped[str] = mapped_column(Text, default='[]')
    emergency_contacts: Mapped[str] = mapped_column(Text, default='[]')
    updated_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    subscription: Mapped['Subscription'] = relationship('Subscription', back_populates='child_profile')


class Invoice(Base):
    __tablename__ = 'invoices'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    invoice_number: Mapped[str] = mapped_column(String(32), unique=True, index=True)
    subscription_id: Mapped[int | None] = mapped_column(ForeignKey('subscriptions.id'), nullable=True, index=True)
    user_id: Mapped[int] = mapped_column(Integer, index=True)
    invoice_type: Mapped[str] = mapped_column(String(20), default='registration')
    billing_month: Mapped[int] = mapped_column(Integer)
    billing_year: Mapped[int] = mapped_column(Integer)
    due_date: Mapped[date] = mapped_column(Date)
    subtotal: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    tax_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal('0.00'))
    total_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    payment_status: Mapped[str] = mapped_column(String(20), default='pending', index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    subscription: Mapped['Subscription | None'] = relationship('Subscription', back_populates='invoices')
    items: Mapped[list['InvoiceItem']] = relationship('InvoiceItem', back_populates='invoice', cascade='all, delete-orphan')


class InvoiceItem(Base):
    __tablename__ = 'invoice_items'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    invoice_id: Mapped[int] = mapped_column(ForeignKey('invoices.id'), index=True)
    description: Mapped[str] = mapped_column(String(255))
    quantity: Mapped[int] = mapped_column(Integer, default=1)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    total_price: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    service_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    service_name: Mapped[str | None] = mapped_column(String(160), nullable=True)

    invoice: Mapped['Invoice'] = relationship('Invoice', back_populates='items')


class CapacityLedger(Base):
    """Admitted-subscription counter per (service, month, year), updated with conditional increments."""

    __tablename__ = 'capacity_ledger'
    __table_args__ = (
        UniqueConstraint('service_id', 'month', 'year', name='uq_capacity_ledger_service_month_year'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    service_id: Mapped[int] = mapped_column(ForeignKey('services.id'), index=True)
    month: Mapped[int] = mapped_column(Integer)
    year: Mapped[int] = mapped_column(Integer)
    admitted_count: Mapped[int] = mapped_column(Integer, default=0)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
