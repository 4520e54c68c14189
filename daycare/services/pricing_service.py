"""Session-based monthly pricing.

A service's base price covers ``included_sessions`` sessions a month. Fewer
sessions are charged proportionally; extra sessions are charged at the same
per-session rate on top of the base price.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from daycare.config import settings
from daycare.core.errors import InvalidSessionCount, SubscriptionValidationError
from daycare.core.money import ZERO, format_price, round_money, to_decimal


WEEKS_PER_MONTH = 4


@dataclass(frozen=True)
class SessionPricing:
    base_price: Decimal
    additional_price: Decimal
    total_price: Decimal
    base_sessions: int
    additional_sessions: int
    total_sessions: int
    per_session_rate: Decimal

    def as_dict(self) -> dict:
        return {
            'base_price': str(self.base_price),
            'additional_price': str(self.additional_price),
            'total_price': str(self.total_price),
            'base_sessions': self.base_sessions,
            'additional_sessions': self.additional_sessions,
            'total_sessions': self.total_sessions,
            'per_session_rate': str(self.per_session_rate),
        }


def _validate(base_price: Decimal, sessions: int, included_sessions: int) -> None:
    if base_price < 0:
        raise SubscriptionValidationError('Base price cannot be negative')
    if included_sessions < 1:
        raise SubscriptionValidationError('Included sessions must be at least 1')
    if sessions < settings.min_sessions or sessions > settings.max_sessions:
        raise InvalidSessionCount(sessions, settings.min_sessions, settings.max_sessions)


def compute_session_pricing(base_price, sessions: int, *, included_sessions: int | None = None) -> SessionPricing:
    included = int(included_sessions or settings.included_sessions)
    base = round_money(to_decimal(base_price))
    sessions = int(sessions)
    _validate(base, sessions, included)

    rate = base / Decimal(included)
    if sessions >= included:
        additional_sessions = sessions - included
        additional_price = round_money(rate * additional_sessions) if additional_sessions else ZERO
        return SessionPricing(
            base_price=base,
            additional_price=additional_price,
            total_price=base + additional_price,
            base_sessions=included,
            additional_sessions=additional_sessions,
            total_sessions=sessions,
            per_session_rate=round_money(rate),
        )

    return SessionPricing(
        base_price=base,
        additional_price=ZERO,
        total_price=round_money(base * Decimal(sessions) / Decimal(included)),
        base_sessions=sessions,
        additional_sessions=0,
        total_sessions=sessions,
        per_session_rate=round_money(rate),
    )


def _percentage_of_base(sessions: int, included: int) -> int:
    return int(round_money(Decimal(sessions) * 100 / Decimal(included)).to_integral_value())


def get_pricing_description(sessions: int, base_price, *, included_sessions: int | None = None) -> str:
    included = int(included_sessions or settings.included_sessions)
    pricing = compute_session_pricing(base_price, sessions, included_sessions=included)
    if sessions == included:
        return f'Base price: {format_price(pricing.total_price)}'
    if sessions < included:
        return f'{_percentage_of_base(sessions, included)}% of base price: {format_price(pricing.total_price)}'
    extra = _percentage_of_base(sessions - included, included)
    return f'Base price + {extra}%: {format_price(pricing.total_price)}'


def get_session_options(*, included_sessions: int | None = None) -> list[dict]:
    """Selectable session counts: one entry per visit-per-week step inside the allowed band."""
    included = int(included_sessions or settings.included_sessions)
    options = []
    for sessions in range(settings.min_sessions, settings.max_sessions + 1, WEEKS_PER_MONTH):
        per_week = sessions // WEEKS_PER_MONTH
        if sessions == included:
            detail = 'base price'
        elif sessions < included:
            detail = f'{_percentage_of_base(sessions, included)}% of base price'
        else:
            detail = f'+{_percentage_of_base(sessions - included, included)}% of base price'
        options.append(
            {
                'value': sessions,
                'label': f'{sessions} sessions',
                'description': f'{per_week} per week ({detail})',
            }
        )
    return options
