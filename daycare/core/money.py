from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from daycare.config import settings


CENT = Decimal('0.01')
ZERO = Decimal('0.00')


def to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        # str() keeps the shortest repr, so 18.75 stays 18.75 instead of its binary expansion
        return Decimal(str(value))
    return Decimal(value)


def round_money(value) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def format_price(value) -> str:
    return f"{settings.currency_symbol} {round_money(value):.2f}"
