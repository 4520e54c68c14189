"""Projection of a subscription onto the older single-date booking shape.

Bookings are read by the pre-subscription screens only; the subscription row stays
authoritative, so nothing here is ever read back into pricing or admission.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from datetime import date

from daycare.models import Subscription


DAY_NAMES = ('sunday', 'monday', 'tuesday', 'wednesday', 'thursday', 'friday', 'saturday')


def selected_days(weekly_schedule: Mapping[int, int | None]) -> list[int]:
    return sorted(int(day) for day, slot_id in weekly_schedule.items() if slot_id is not None)


def legacy_preferred_days(weekly_schedule: Mapping[int, int | None]) -> list[str]:
    return [DAY_NAMES[day] for day in selected_days(weekly_schedule)]


def placeholder_date(start_month: int, start_year: int) -> date:
    return date(int(start_year), int(start_month), 1)


def placeholder_time(
    weekly_schedule: Mapping[int, int | None],
    slot_start_times: Mapping[int, str],
    default_time: str,
) -> str:
    """Start time of the first selected slot (Sunday first) that still exists."""
    for day in selected_days(weekly_schedule):
        start_time = slot_start_times.get(int(weekly_schedule[day]))
        if start_time:
            return start_time
    return default_time


def project_booking_fields(
    subscription: Subscription,
    *,
    weekly_schedule: Mapping[int, int | None],
    slot_start_times: Mapping[int, str],
    default_time: str,
) -> dict:
    return {
        'booking_code': subscription.subscription_code,
        'subscription_id': subscription.id,
        'user_id': subscription.user_id,
        'service_id': subscription.service_id,
        'child_name': subscription.child_name,
        'child_age': subscription.child_age,
        'parent_name': subscription.parent_name,
        'parent_email': subscription.parent_email,
        'parent_phone': subscription.parent_phone,
        'preferred_date': placeholder_date(subscription.start_month, subscription.start_year),
        'preferred_time': placeholder_time(weekly_schedule, slot_start_times, default_time),
        'start_month': subscription.start_month,
        'start_year': subscription.start_year,
        'preferred_days': json.dumps(legacy_preferred_days(weekly_schedule)),
        'preferred_times': json.dumps([]),
        'sessions_per_month': subscription.sessions_per_month,
        'special_requests': subscription.special_requests,
        'status': subscription.status,
        'original_price': subscription.base_monthly_price,
        'promotion_id': subscription.promotion_id,
        'promotion_code': subscription.promotion_code,
        'discount_amount': subscription.discount_amount,
        'final_price': subscription.final_monthly_price,
    }
