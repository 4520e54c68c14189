from __future__ import annotations

import json
import logging
from calendar import monthrange
from dataclasses import dataclass, field
from datetime import date, timedelta

from sqlalchemy import update
from sqlalchemy.orm import Session

from daycare.config import settings
from daycare.core.errors import (
    CapacityExceeded,
    InvalidPromotionCode,
    InvalidStatusTransition,
    NoScheduleSelected,
    PersistenceError,
    PromotionIneligible,
    ServiceUnavailable,
    SubscriptionNotFound,
    SubscriptionValidationError,
)
from daycare.core.money import ZERO, round_money
from daycare.core.time_provider import TimeProvider, default_time_provider
from daycare.metrics import record_provisioning_event, timed_service
from daycare.models import (
    ADMITTED_STATUSES,
    Booking,
    ChildProfile,
    Invoice,
    InvoiceItem,
    ScheduleSlot,
    Service,
    Subscription,
    SubscriptionStatus,
)
from daycare.schemas import SubscriptionCreateRequest
from daycare.services import capacity_service, promotion_service
from daycare.services.code_generator import generate_invoice_number, generate_subscription_code
from daycare.services.legacy_booking import legacy_preferred_days, project_booking_fields
from daycare.services.notification_service import (
    InvoiceDocument,
    InvoiceLine,
    NotificationJob,
    SubscriptionNotice,
    SubscriptionNotifier,
)
from daycare.services.pricing_service import SessionPricing, compute_session_pricing
from daycare.services.promotion_service import DiscountResult, PromotionRule


logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    SubscriptionStatus.PENDING.value: frozenset({SubscriptionStatus.ACTIVE.value, SubscriptionStatus.CANCELLED.value}),
    SubscriptionStatus.ACTIVE.value: frozenset({SubscriptionStatus.COMPLETED.value, SubscriptionStatus.CANCELLED.value}),
}


@dataclass
class ProvisioningResult:
    subscription: dict
    invoice_number: str
    notification: NotificationJob
    warnings: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class _Quote:
    pricing: SessionPricing
    promotion: PromotionRule | None
    discount: DiscountResult

    @property
    def base_price(self):
        return self.pricing.total_price

    @property
    def final_price(self):
        return self.discount.final_price


def _validate_schedule(weekly_schedule: dict[int, int | None]) -> None:
    if not any(slot_id is not None for slot_id in weekly_schedule.values()):
        raise NoScheduleSelected()


def _resolve_service(db: Session, service_id: int) -> Service:
    service = db.query(Service).filter(Service.id == int(service_id), Service.is_active.is_(True)).first()
    if not service:
        raise ServiceUnavailable(service_id)
    return service


def _resolve_quote(
    db: Session,
    payload: SubscriptionCreateRequest,
    service: Service,
    *,
    time_provider: TimeProvider,
) -> _Quote:
    pricing = compute_session_pricing(
        service.price,
        payload.sessions_per_month,
        included_sessions=service.included_sessions or settings.included_sessions,
    )
    if not payload.promotion_code:
        return _Quote(pricing, None, DiscountResult(pricing.total_price, ZERO, pricing.total_price))

    row = promotion_service.get_active_promotion_by_code(db, payload.promotion_code)
    if not row:
        raise InvalidPromotionCode(payload.promotion_code)
    rule = PromotionRule.from_model(row)
    eligibility = promotion_service.check_eligibility(rule, service.id, payload.child_age, time_provider.now())
    if not eligibility.eligible:
        raise PromotionIneligible(eligibility.reason.value, eligibility.message)
    return _Quote(pricing, rule, promotion_service.compute_discount(rule, pricing.total_price))


def _slot_start_times(db: Session, weekly_schedule: dict[int, int | None]) -> dict[int, str]:
    slot_ids = {int(slot_id) for slot_id in weekly_schedule.values() if slot_id is not None}
    if not slot_ids:
        return {}
    rows = db.query(ScheduleSlot.id, ScheduleSlot.start_time).filter(ScheduleSlot.id.in_(slot_ids)).all()
    return {int(slot_id): start_time for slot_id, start_time in rows}


def birth_date_from_age(today: date, age_months: int) -> date:
    total = today.year * 12 + (today.month - 1) - int(age_months)
    year, month_index = divmod(total, 12)
    month = month_index + 1
    return date(year, month, min(today.day, monthrange(year, month)[1]))


def _serialize_schedule(weekly_schedule: dict[int, int | None]) -> str:
    return json.dumps({str(day): weekly_schedule[day] for day in sorted(weekly_schedule)})


def _parse_schedule(raw: str | None) -> dict[int, int | None]:
    return {int(day): slot_id for day, slot_id in json.loads(raw or '{}').items()}


def _money(value) -> str | None:
    return None if value is None else str(round_money(value))


def serialize_subscription(row: Subscription, *, service_name: str | None = None) -> dict:
    return {
        'id': row.id,
        'subscription_code': row.subscription_code,
        'user_id': row.user_id,
        'service_id': row.service_id,
        'service_name': service_name if service_name is not None else (row.service.name if row.service else None),
        'child_name': row.child_name,
        'child_age': row.child_age,
        'parent_name': row.parent_name,
        'parent_email': row.parent_email,
        'parent_phone': row.parent_phone,
        'start_month': row.start_month,
        'start_year': row.start_year,
        'weekly_schedule': _parse_schedule(row.weekly_schedule),
        'preferred_days': json.loads(row.preferred_days or '[]'),
        'sessions_per_month': row.sessions_per_month,
        'special_requests': row.special_requests,
        'status': row.status,
        'payment_status': row.payment_status,
        'base_monthly_price': _money(row.base_monthly_price),
        'discount_amount': _money(row.discount_amount),
        'final_monthly_price': _money(row.final_monthly_price),
        'promotion_id': row.promotion_id,
        'promotion_code': row.promotion_code,
        'created_at': row.created_at.isoformat() if row.created_at else None,
        'updated_at': row.updated_at.isoformat() if row.updated_at else None,
    }


def _insert_subscription(
    db: Session,
    payload: SubscriptionCreateRequest,
    quote: _Quote,
    *,
    subscription_code: str,
    acting_user_id: int,
    timestamp,
) -> Subscription:
    row = Subscription(
        subscription_code=subscription_code,
        user_id=int(acting_user_id),
        service_id=payload.service_id,
        child_name=payload.child_name,
        child_age=payload.child_age,
        parent_name=payload.parent_name,
        parent_email=payload.parent_email,
        parent_phone=payload.parent_phone,
        start_month=payload.start_month,
        start_year=payload.start_year,
        weekly_schedule=_serialize_schedule(payload.weekly_schedule),
        preferred_days=json.dumps(legacy_preferred_days(payload.weekly_schedule)),
        preferred_times=json.dumps([]),
        sessions_per_month=payload.sessions_per_month,
        special_requests=payload.special_requests,
        base_monthly_price=quote.base_price,
        discount_amount=quote.discount.discount_amount,
        final_monthly_price=quote.final_price,
        promotion_id=quote.promotion.id if quote.promotion else None,
        promotion_code=quote.promotion.promo_code if quote.promotion else None,
        status=SubscriptionStatus.PENDING.value,
        payment_status='pending',
        created_at=timestamp,
        updated_at=timestamp,
    )
    db.add(row)
    db.flush()
    return row


def _insert_legacy_booking(
    db: Session,
    subscription: Subscription,
    weekly_schedule: dict[int, int | None],
    slot_start_times: dict[int, str],
) -> Booking:
    booking = Booking(
        **project_booking_fields(
            subscription,
            weekly_schedule=weekly_schedule,
            slot_start_times=slot_start_times,
            default_time=settings.default_session_time,
        )
    )
    db.add(booking)
    db.flush()
    return booking


def _insert_child_profile(db: Session, subscription: Subscription, *, today: date, acting_user_id: int) -> ChildProfile:
    profile = ChildProfile(
        subscription_id=subscription.id,
        birth_date=birth_date_from_age(today, subscription.child_age),
        special_needs=subscription.special_requests,
        allergies='[]',
        medical_conditions='[]',
        medications='[]',
        emergency_contacts='[]',
        updated_by=int(acting_user_id),
    )
    db.add(profile)
    db.flush()
    return profile


def _insert_invoice(
    db: Session,
    subscription: Subscription,
    *,
    invoice_number: str,
    due_date: date,
) -> Invoice:
    invoice = Invoice(
        invoice_number=invoice_number,
        subscription_id=subscription.id,
        user_id=subscription.user_id,
        invoice_type='registration',
        billing_month=subscription.start_month,
        billing_year=subscription.start_year,
        due_date=due_date,
        subtotal=subscription.final_monthly_price,
        tax_amount=ZERO,
        total_amount=subscription.final_monthly_price,
        payment_status='pending',
    )
    db.add(invoice)
    db.flush()
    return invoice


def _insert_invoice_item(db: Session, invoice: Invoice, subscription: Subscription, service: Service) -> InvoiceItem:
    item = InvoiceItem(
        invoice_id=invoice.id,
        description=f'Monthly subscription - {service.name} ({subscription.start_month}/{subscription.start_year})',
        quantity=1,
        unit_price=subscription.final_monthly_price,
        total_price=subscription.final_monthly_price,
        service_id=service.id,
        service_name=service.name,
    )
    db.add(item)
    db.flush()
    return item


def _build_notification_job(
    subscription: Subscription,
    invoice: Invoice,
    items: list[InvoiceItem],
    service: Service,
    weekly_schedule: dict[int, int | None],
    issued_at,
) -> NotificationJob:
    return NotificationJob(
        invoice=InvoiceDocument(
            invoice_number=invoice.invoice_number,
            invoice_type=invoice.invoice_type,
            billing_month=invoice.billing_month,
            billing_year=invoice.billing_year,
            due_date=invoice.due_date,
            subtotal=invoice.subtotal,
            tax_amount=invoice.tax_amount,
            total_amount=invoice.total_amount,
            payment_status=invoice.payment_status,
            issued_at=issued_at,
            customer_name=subscription.parent_name,
            customer_email=subscription.parent_email,
            customer_phone=subscription.parent_phone,
            subscription_code=subscription.subscription_code,
            child_name=subscription.child_name,
            service_name=service.name,
            items=tuple(
                InvoiceLine(
                    description=item.description,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    total_price=item.total_price,
                    service_name=item.service_name,
                )
                for item in items
            ),
        ),
        subscription=SubscriptionNotice(
            subscription_code=subscription.subscription_code,
            service_name=service.name,
            child_name=subscription.child_name,
            child_age=subscription.child_age,
            parent_name=subscription.parent_name,
            parent_email=subscription.parent_email,
            start_month=subscription.start_month,
            start_year=subscription.start_year,
            sessions_per_month=subscription.sessions_per_month,
            weekly_days=tuple(legacy_preferred_days(weekly_schedule)),
            base_monthly_price=subscription.base_monthly_price,
            discount_amount=subscription.discount_amount,
            final_monthly_price=subscription.final_monthly_price,
            promotion_code=subscription.promotion_code,
            status=subscription.status,
        ),
    )


@timed_service('create_subscription')
def create_subscription(
    db: Session,
    payload: SubscriptionCreateRequest,
    acting_user_id: int,
    *,
    notifier: SubscriptionNotifier | None = None,
    time_provider: TimeProvider = default_time_provider,
    dispatch_notifications: bool = True,
) -> ProvisioningResult:
    """Price, admit and provision a monthly subscription.

    Validation, capacity, pricing and promotion checks all run before anything is
    written. The subscription, its legacy booking, child profile, invoice and invoice
    line, plus the capacity and promotion counters, are committed together or not at
    all. Notifications run after the commit and only ever produce warnings; with
    ``dispatch_notifications=False`` the caller runs ``result.notification`` itself.
    """
    month, year = payload.start_month, payload.start_year
    try:
        _validate_schedule(payload.weekly_schedule)
        service = _resolve_service(db, payload.service_id)
        capacity_service.ensure_capacity(db, service, month, year)
        quote = _resolve_quote(db, payload, service, time_provider=time_provider)
    except CapacityExceeded:
        record_provisioning_event('capacity_rejected')
        db.rollback()
        raise
    except (InvalidPromotionCode, PromotionIneligible) as exc:
        logger.info('promotion_rejected code=%s service_id=%s reason=%s', payload.promotion_code, payload.service_id, exc)
        record_provisioning_event('promotion_rejected')
        db.rollback()
        raise
    except (SubscriptionValidationError, ServiceUnavailable):
        record_provisioning_event('validation_rejected')
        db.rollback()
        raise

    subscription_code = generate_subscription_code(time_provider=time_provider)
    invoice_number = generate_invoice_number(time_provider=time_provider)
    slot_start_times = _slot_start_times(db, payload.weekly_schedule)
    today = time_provider.today()
    timestamp = time_provider.utcnow_naive()

    try:
        capacity_service.try_reserve(db, service, month, year)
        if quote.promotion is not None:
            if not promotion_service.try_reserve_usage(db, quote.promotion.id, time_provider=time_provider):
                raise PromotionIneligible(
                    promotion_service.IneligibilityReason.USAGE_LIMIT_REACHED.value,
                    'Promotion usage limit has been reached',
                )
        subscription = _insert_subscription(
            db,
            payload,
            quote,
            subscription_code=subscription_code,
            acting_user_id=acting_user_id,
            timestamp=timestamp,
        )
        _insert_legacy_booking(db, subscription, payload.weekly_schedule, slot_start_times)
        _insert_child_profile(db, subscription, today=today, acting_user_id=acting_user_id)
        invoice = _insert_invoice(
            db,
            subscription,
            invoice_number=invoice_number,
            due_date=today + timedelta(days=settings.invoice_due_days),
        )
        item = _insert_invoice_item(db, invoice, subscription, service)
        job = _build_notification_job(subscription, invoice, [item], service, payload.weekly_schedule, timestamp)
        projection = serialize_subscription(subscription, service_name=service.name)
        db.commit()
    except CapacityExceeded:
        db.rollback()
        record_provisioning_event('capacity_rejected')
        raise
    except PromotionIneligible:
        db.rollback()
        record_provisioning_event('promotion_rejected')
        raise
    except Exception as exc:
        db.rollback()
        logger.exception(
            'subscription_persist_failed code=%s service_id=%s month=%s year=%s',
            subscription_code,
            payload.service_id,
            month,
            year,
        )
        record_provisioning_event('persistence_failed')
        raise PersistenceError() from exc

    record_provisioning_event('subscription_created')
    logger.info(
        'subscription_created code=%s service_id=%s month=%s year=%s base=%s discount=%s final=%s promotion_id=%s',
        subscription_code,
        payload.service_id,
        month,
        year,
        projection['base_monthly_price'],
        projection['discount_amount'],
        projection['final_monthly_price'],
        projection['promotion_id'],
    )

    result = ProvisioningResult(subscription=projection, invoice_number=invoice_number, notification=job)
    if dispatch_notifications:
        result.warnings = (notifier or SubscriptionNotifier()).dispatch(job)
    return result


def _get_row(db: Session, code: str, *, owner_id: int | None = None) -> Subscription:
    query = db.query(Subscription).filter(Subscription.subscription_code == code)
    if owner_id is not None:
        query = query.filter(Subscription.user_id == int(owner_id))
    row = query.first()
    if not row:
        raise SubscriptionNotFound(code)
    return row


def get_subscription(db: Session, code: str, *, owner_id: int | None = None) -> dict:
    row = _get_row(db, code, owner_id=owner_id)
    data = serialize_subscription(row)
    data['invoices'] = [
        {
            'invoice_number': invoice.invoice_number,
            'invoice_type': invoice.invoice_type,
            'due_date': invoice.due_date.isoformat(),
            'total_amount': _money(invoice.total_amount),
            'payment_status': invoice.payment_status,
        }
        for invoice in row.invoices
    ]
    return data


def list_subscriptions(
    db: Session,
    *,
    user_id: int | None = None,
    status: str | None = None,
    page: int = 1,
    limit: int = 10,
) -> dict:
    page = max(1, int(page))
    limit = max(1, min(100, int(limit)))
    query = db.query(Subscription)
    if user_id is not None:
        query = query.filter(Subscription.user_id == int(user_id))
    if status:
        query = query.filter(Subscription.status == status)
    total = query.count()
    offset = (page - 1) * limit
    rows = query.order_by(Subscription.created_at.desc(), Subscription.id.desc()).offset(offset).limit(limit).all()
    return {
        'subscriptions': [serialize_subscription(row) for row in rows],
        'pagination': {
            'page': page,
            'limit': limit,
            'total': total,
            'pages': (total + limit - 1) // limit,
            'has_next': offset + limit < total,
            'has_prev': page > 1,
        },
    }


def update_subscription_status(
    db: Session,
    code: str,
    new_status: str,
    *,
    acting_user_id: int,
    time_provider: TimeProvider = default_time_provider,
) -> dict:
    row = _get_row(db, code)
    current = row.status
    if new_status not in ALLOWED_TRANSITIONS.get(current, frozenset()):
        raise InvalidStatusTransition(current, new_status)

    timestamp = time_provider.utcnow_naive()
    values = {'status': new_status, 'updated_at': timestamp}
    if new_status == SubscriptionStatus.ACTIVE.value:
        values['confirmed_by'] = int(acting_user_id)
    try:
        # Conditional on the status we read, so two concurrent transitions cannot both apply.
        changed = db.execute(
            update(Subscription)
            .where(Subscription.id == row.id, Subscription.status == current)
            .values(**values)
            .execution_options(synchronize_session=False)
        ).rowcount
        if changed != 1:
            raise InvalidStatusTransition(current, new_status)
        db.execute(
            update(Booking)
            .where(Booking.subscription_id == row.id)
            .values(status=new_status, updated_at=timestamp)
            .execution_options(synchronize_session=False)
        )
        if current in ADMITTED_STATUSES and new_status not in ADMITTED_STATUSES:
            capacity_service.release(db, row.service_id, row.start_month, row.start_year)
        db.commit()
    except InvalidStatusTransition:
        db.rollback()
        raise
    except Exception as exc:
        db.rollback()
        logger.exception('subscription_status_update_failed code=%s from=%s to=%s', code, current, new_status)
        raise PersistenceError('Subscription status could not be updated') from exc

    logger.info('subscription_status_changed code=%s from=%s to=%s by=%s', code, current, new_status, acting_user_id)
    db.refresh(row)
    return serialize_subscription(row)


def withdraw_subscription(
    db: Session,
    code: str,
    *,
    acting_user_id: int,
    owner_id: int | None = None,
    time_provider: TimeProvider = default_time_provider,
) -> dict:
    """Remove a subscription that was never confirmed or paid, returning its place and promotion use."""
    row = _get_row(db, code, owner_id=owner_id)
    if row.status != SubscriptionStatus.PENDING.value or row.payment_status != 'pending':
        raise SubscriptionValidationError('Only pending subscriptions without payment can be withdrawn')

    subscription_id = row.id
    service_id, month, year, promotion_id = row.service_id, row.start_month, row.start_year, row.promotion_id
    try:
        # Claim the row while it is still pending and unpaid; a concurrent transition wins otherwise.
        claimed = db.execute(
            update(Subscription)
            .where(
                Subscription.id == subscription_id,
                Subscription.status == SubscriptionStatus.PENDING.value,
                Subscription.payment_status == 'pending',
            )
            .values(status=SubscriptionStatus.CANCELLED.value, updated_at=time_provider.utcnow_naive())
            .execution_options(synchronize_session=False)
        ).rowcount
        if claimed != 1:
            raise SubscriptionValidationError('Only pending subscriptions without payment can be withdrawn')
        invoice_ids = db.query(Invoice.id).filter(Invoice.subscription_id == subscription_id)
        db.query(InvoiceItem).filter(InvoiceItem.invoice_id.in_(invoice_ids.scalar_subquery())).delete(
            synchronize_session=False
        )
        db.query(Invoice).filter(Invoice.subscription_id == subscription_id).delete(synchronize_session=False)
        db.query(Booking).filter(Booking.subscription_id == subscription_id).delete(synchronize_session=False)
        db.query(ChildProfile).filter(ChildProfile.subscription_id == subscription_id).delete(synchronize_session=False)
        db.query(Subscription).filter(Subscription.id == subscription_id).delete(synchronize_session=False)
        capacity_service.release(db, service_id, month, year)
        if promotion_id is not None:
            promotion_service.release_usage(db, promotion_id, time_provider=time_provider)
        db.commit()
    except SubscriptionValidationError:
        db.rollback()
        raise
    except Exception as exc:
        db.rollback()
        logger.exception('subscription_withdraw_failed code=%s', code)
        raise PersistenceError('Subscription could not be withdrawn') from exc

    logger.info('subscription_withdrawn code=%s by=%s promotion_id=%s', code, acting_user_id, promotion_id)
    return {'subscription_code': code, 'withdrawn': True}
