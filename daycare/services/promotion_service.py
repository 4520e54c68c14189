from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import func, or_, update
from sqlalchemy.orm import Session

from daycare.core.errors import InvalidPromotionCode
from daycare.core.money import ZERO, format_price, round_money, to_decimal
from daycare.core.time_provider import TimeProvider, default_time_provider
from daycare.models import DiscountType, Promotion


logger = logging.getLogger(__name__)


class IneligibilityReason(str, Enum):
    INACTIVE = 'inactive'
    OUTSIDE_VALIDITY_WINDOW = 'outside_validity_window'
    SERVICE_NOT_APPLICABLE = 'service_not_applicable'
    BELOW_MIN_AGE = 'below_min_age'
    ABOVE_MAX_AGE = 'above_max_age'
    USAGE_LIMIT_REACHED = 'usage_limit_reached'


@dataclass(frozen=True)
class PromotionRule:
    """Detached copy of a promotion row, safe to evaluate outside a session."""

    id: int | None
    title: str
    promo_code: str | None
    discount_type: str
    discount_value: Decimal
    start_date: date
    end_date: date
    is_active: bool = True
    min_age: int | None = None
    max_age: int | None = None
    applicable_services: tuple[int, ...] = field(default_factory=tuple)
    max_uses: int | None = None
    used_count: int = 0

    @classmethod
    def from_model(cls, row: Promotion) -> 'PromotionRule':
        return cls(
            id=row.id,
            title=row.title,
            promo_code=row.promo_code,
            discount_type=row.discount_type,
            discount_value=to_decimal(row.discount_value or 0),
            start_date=row.start_date,
            end_date=row.end_date,
            is_active=bool(row.is_active),
            min_age=row.min_age,
            max_age=row.max_age,
            applicable_services=parse_applicable_services(row.applicable_services),
            max_uses=row.max_uses,
            used_count=int(row.used_count or 0),
        )

    def as_dict(self) -> dict:
        return {
            'id': self.id,
            'title': self.title,
            'promo_code': self.promo_code,
            'discount_type': self.discount_type,
            'discount_value': str(self.discount_value),
            'min_age': self.min_age,
            'max_age': self.max_age,
            'applicable_services': list(self.applicable_services),
            'start_date': self.start_date.isoformat(),
            'end_date': self.end_date.isoformat(),
            'max_uses': self.max_uses,
            'used_count': self.used_count,
            'is_active': self.is_active,
        }


@dataclass(frozen=True)
class EligibilityResult:
    eligible: bool
    reason: IneligibilityReason | None = None
    message: str = ''


@dataclass(frozen=True)
class DiscountResult:
    original_price: Decimal
    discount_amount: Decimal
    final_price: Decimal
    is_free_service: bool = False

    def as_dict(self) -> dict:
        return {
            'original_price': str(self.original_price),
            'discount_amount': str(self.discount_amount),
            'final_price': str(self.final_price),
            'is_free_service': self.is_free_service,
        }


def parse_applicable_services(raw: str | list | None) -> tuple[int, ...]:
    if raw is None or raw == '':
        return ()
    values = json.loads(raw) if isinstance(raw, str) else raw
    return tuple(int(value) for value in values or [])


def _as_date(now: datetime | date) -> date:
    return now.date() if isinstance(now, datetime) else now


def check_eligibility(
    promotion: PromotionRule,
    service_id: int,
    child_age_months: int,
    now: datetime | date,
) -> EligibilityResult:
    if not promotion.is_active:
        return EligibilityResult(False, IneligibilityReason.INACTIVE, 'Promotion is not active')

    today = _as_date(now)
    if today < promotion.start_date:
        return EligibilityResult(False, IneligibilityReason.OUTSIDE_VALIDITY_WINDOW, 'Promotion has not started yet')
    if today > promotion.end_date:
        return EligibilityResult(False, IneligibilityReason.OUTSIDE_VALIDITY_WINDOW, 'Promotion has expired')

    if promotion.applicable_services and int(service_id) not in promotion.applicable_services:
        return EligibilityResult(
            False,
            IneligibilityReason.SERVICE_NOT_APPLICABLE,
            'Promotion does not apply to this service',
        )

    if promotion.min_age is not None and child_age_months < promotion.min_age:
        return EligibilityResult(
            False,
            IneligibilityReason.BELOW_MIN_AGE,
            f'Promotion is for children aged {promotion.min_age} months or older',
        )
    if promotion.max_age is not None and child_age_months > promotion.max_age:
        return EligibilityResult(
            False,
            IneligibilityReason.ABOVE_MAX_AGE,
            f'Promotion is for children up to {promotion.max_age} months',
        )

    if promotion.max_uses is not None and promotion.used_count >= promotion.max_uses:
        return EligibilityResult(
            False,
            IneligibilityReason.USAGE_LIMIT_REACHED,
            'Promotion usage limit has been reached',
        )

    return EligibilityResult(True)


def compute_discount(promotion: PromotionRule, original_price) -> DiscountResult:
    original = round_money(to_decimal(original_price))
    value = to_decimal(promotion.discount_value)

    if promotion.discount_type == DiscountType.FREE_SERVICE.value:
        return DiscountResult(original, original, ZERO, is_free_service=True)

    if promotion.discount_type == DiscountType.PERCENTAGE.value:
        discount = round_money(original * value / Decimal(100))
    elif promotion.discount_type == DiscountType.FIXED_AMOUNT.value:
        discount = round_money(value)
    else:
        logger.warning('promotion_unknown_discount_type promotion_id=%s type=%s', promotion.id, promotion.discount_type)
        discount = ZERO

    discount = min(max(discount, ZERO), original)
    return DiscountResult(original, discount, original - discount)


def get_active_promotion_by_code(db: Session, code: str) -> Promotion | None:
    return (
        db.query(Promotion)
        .filter(Promotion.promo_code == code.strip(), Promotion.is_active.is_(True))
        .first()
    )


def try_reserve_usage(
    db: Session,
    promotion_id: int,
    *,
    time_provider: TimeProvider = default_time_provider,
) -> bool:
    """Count one use of a promotion unless its cap has been reached since it was evaluated.

    Runs in the caller's transaction; nothing is committed here.
    """
    stmt = (
        update(Promotion)
        .where(
            Promotion.id == int(promotion_id),
            Promotion.is_active.is_(True),
            or_(Promotion.max_uses.is_(None), func.coalesce(Promotion.used_count, 0) < Promotion.max_uses),
        )
        .values(
            used_count=func.coalesce(Promotion.used_count, 0) + 1,
            updated_at=time_provider.utcnow_naive(),
        )
        .execution_options(synchronize_session=False)
    )
    return db.execute(stmt).rowcount == 1


def release_usage(
    db: Session,
    promotion_id: int,
    *,
    time_provider: TimeProvider = default_time_provider,
) -> bool:
    stmt = (
        update(Promotion)
        .where(Promotion.id == int(promotion_id), Promotion.used_count > 0)
        .values(used_count=Promotion.used_count - 1, updated_at=time_provider.utcnow_naive())
        .execution_options(synchronize_session=False)
    )
    return db.execute(stmt).rowcount == 1


def validate_promotion_code(
    db: Session,
    *,
    code: str,
    service_id: int,
    child_age_months: int,
    original_price,
    time_provider: TimeProvider = default_time_provider,
) -> dict:
    """Preview a code for the booking form without consuming a use."""
    row = get_active_promotion_by_code(db, code)
    if not row:
        return {'valid': False, 'error': str(InvalidPromotionCode(code))}

    rule = PromotionRule.from_model(row)
    result = check_eligibility(rule, service_id, child_age_months, time_provider.now())
    if not result.eligible:
        return {'valid': False, 'error': result.message, 'reason': result.reason.value}

    return {
        'valid': True,
        'promotion': rule.as_dict(),
        'discount': compute_discount(rule, original_price).as_dict(),
    }


def get_promotion_status(promotion: PromotionRule, now: datetime | date) -> str:
    if not promotion.is_active:
        return 'inactive'
    today = _as_date(now)
    if today < promotion.start_date:
        return 'scheduled'
    if today > promotion.end_date:
        return 'expired'
    return 'active'


def is_promotion_expiring_soon(promotion: PromotionRule, now: datetime | date, days_threshold: int = 7) -> bool:
    days_left = (promotion.end_date - _as_date(now)).days
    return 0 < days_left <= days_threshold


def format_discount_display(promotion: PromotionRule) -> str:
    if promotion.discount_type == DiscountType.PERCENTAGE.value:
        return f'{promotion.discount_value.normalize():f}% off'
    if promotion.discount_type == DiscountType.FIXED_AMOUNT.value:
        return f'{format_price(promotion.discount_value)} off'
    if promotion.discount_type == DiscountType.FREE_SERVICE.value:
        return 'Free service'
    return 'Discount applied'
