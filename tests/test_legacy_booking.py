import json
import unittest
from datetime import date
from decimal import Decimal

from daycare.models import Subscription
from daycare.services.legacy_booking import (
    legacy_preferred_days,
    placeholder_date,
    placeholder_time,
    project_booking_fields,
)


SCHEDULE = {0: None, 1: 11, 2: None, 3: 12, 4: None, 5: 13, 6: None}


class LegacyBookingProjectionTests(unittest.TestCase):
    def test_preferred_days_follow_week_order(self):
        self.assertEqual(legacy_preferred_days(SCHEDULE), ['monday', 'wednesday', 'friday'])
        self.assertEqual(legacy_preferred_days({6: 1, 0: 2}), ['sunday', 'saturday'])

    def test_placeholder_date_is_first_of_month(self):
        self.assertEqual(placeholder_date(2, 2027), date(2027, 2, 1))

    def test_placeholder_time_uses_first_resolvable_slot(self):
        self.assertEqual(placeholder_time(SCHEDULE, {12: '16:00', 13: '10:30'}, '09:00'), '16:00')
        self.assertEqual(placeholder_time(SCHEDULE, {}, '09:00'), '09:00')

    def test_projection_copies_prices_and_status(self):
        subscription = Subscription(
            id=7,
            subscription_code='SUBS123456ABCD',
            user_id=3,
            service_id=2,
            child_name='Mia',
            child_age=14,
            parent_name='Ana Perez',
            parent_email='ana@example.com',
            parent_phone='999111222',
            start_month=4,
            start_year=2026,
            sessions_per_month=12,
            special_requests=None,
            base_monthly_price=Decimal('225.00'),
            discount_amount=Decimal('45.00'),
            final_monthly_price=Decimal('180.00'),
            promotion_id=5,
            promotion_code='SPRING20',
            status='pending',
        )

        fields = project_booking_fields(subscription, weekly_schedule=SCHEDULE, slot_start_times={11: '08:30'}, default_time='09:00')

        self.assertEqual(fields['booking_code'], 'SUBS123456ABCD')
        self.assertEqual(fields['subscription_id'], 7)
        self.assertEqual(fields['preferred_date'], date(2026, 4, 1))
        self.assertEqual(fields['preferred_time'], '08:30')
        self.assertEqual(json.loads(fields['preferred_days']), ['monday', 'wednesday', 'friday'])
        self.assertEqual(fields['original_price'], Decimal('225.00'))
        self.assertEqual(fields['discount_amount'], Decimal('45.00'))
        self.assertEqual(fields['final_price'], Decimal('180.00'))
        self.assertEqual(fields['status'], 'pending')


if __name__ == '__main__':
    unittest.main()
