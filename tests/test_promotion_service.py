import json
import tempfile
import unittest
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path

from freezegun import freeze_time
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from daycare.db import Base
from daycare.models import Promotion
from daycare.services.promotion_service import (
    IneligibilityReason,
    PromotionRule,
    check_eligibility,
    compute_discount,
    format_discount_display,
    get_active_promotion_by_code,
    get_promotion_status,
    is_promotion_expiring_soon,
    release_usage,
    try_reserve_usage,
    validate_promotion_code,
)


NOW = datetime(2026, 3, 15, 10, 0)


def _rule(**overrides) -> PromotionRule:
    values = {
        'id': 1,
        'title': 'Spring',
        'promo_code': 'SPRING20',
        'discount_type': 'percentage',
        'discount_value': Decimal('20'),
        'start_date': date(2026, 3, 1),
        'end_date': date(2026, 3, 31),
    }
    values.update(overrides)
    return PromotionRule(**values)


class EligibilityTests(unittest.TestCase):
    def test_eligible_promotion(self):
        result = check_eligibility(_rule(), service_id=3, child_age_months=18, now=NOW)
        self.assertTrue(result.eligible)
        self.assertIsNone(result.reason)

    def test_inactive(self):
        result = check_eligibility(_rule(is_active=False), 3, 18, NOW)
        self.assertEqual(result.reason, IneligibilityReason.INACTIVE)

    def test_window_is_inclusive_on_both_ends(self):
        rule = _rule()
        self.assertTrue(check_eligibility(rule, 3, 18, datetime(2026, 3, 1, 0, 0)).eligible)
        self.assertTrue(check_eligibility(rule, 3, 18, datetime(2026, 3, 31, 23, 59)).eligible)

    def test_outside_window(self):
        before = check_eligibility(_rule(), 3, 18, date(2026, 2, 28))
        after = check_eligibility(_rule(), 3, 18, date(2026, 4, 1))
        self.assertEqual(before.reason, IneligibilityReason.OUTSIDE_VALIDITY_WINDOW)
        self.assertEqual(before.message, 'Promotion has not started yet')
        self.assertEqual(after.reason, IneligibilityReason.OUTSIDE_VALIDITY_WINDOW)
        self.assertEqual(after.message, 'Promotion has expired')

    def test_service_allow_list(self):
        rule = _rule(applicable_services=(1, 2))
        self.assertTrue(check_eligibility(rule, 2, 18, NOW).eligible)
        self.assertEqual(check_eligibility(rule, 3, 18, NOW).reason, IneligibilityReason.SERVICE_NOT_APPLICABLE)

    def test_empty_allow_list_applies_everywhere(self):
        self.assertTrue(check_eligibility(_rule(applicable_services=()), 99, 18, NOW).eligible)

    def test_age_bounds_in_months(self):
        rule = _rule(min_age=6, max_age=24)
        self.assertTrue(check_eligibility(rule, 3, 24, NOW).eligible)
        self.assertTrue(check_eligibility(rule, 3, 6, NOW).eligible)
        self.assertEqual(check_eligibility(rule, 3, 30, NOW).reason, IneligibilityReason.ABOVE_MAX_AGE)
        self.assertEqual(check_eligibility(rule, 3, 5, NOW).reason, IneligibilityReason.BELOW_MIN_AGE)

    def test_usage_limit(self):
        self.assertTrue(check_eligibility(_rule(max_uses=2, used_count=1), 3, 18, NOW).eligible)
        result = check_eligibility(_rule(max_uses=2, used_count=2), 3, 18, NOW)
        self.assertEqual(result.reason, IneligibilityReason.USAGE_LIMIT_REACHED)

    def test_first_failing_check_wins(self):
        rule = _rule(is_active=False, max_age=12, applicable_services=(7,))
        self.assertEqual(check_eligibility(rule, 3, 30, date(2027, 1, 1)).reason, IneligibilityReason.INACTIVE)
        rule = _rule(max_age=12, applicable_services=(7,))
        self.assertEqual(check_eligibility(rule, 3, 30, NOW).reason, IneligibilityReason.SERVICE_NOT_APPLICABLE)


class DiscountTests(unittest.TestCase):
    def test_percentage(self):
        result = compute_discount(_rule(), Decimal('150.00'))
        self.assertEqual(result.discount_amount, Decimal('30.00'))
        self.assertEqual(result.final_price, Decimal('120.00'))
        self.assertFalse(result.is_free_service)

    def test_percentage_rounds_half_up(self):
        result = compute_discount(_rule(discount_value=Decimal('15')), Decimal('187.50'))
        self.assertEqual(result.discount_amount, Decimal('28.13'))
        self.assertEqual(result.final_price, Decimal('159.37'))

    def test_fixed_amount_is_clamped_to_price(self):
        rule = _rule(discount_type='fixed_amount', discount_value=Decimal('200'))
        result = compute_discount(rule, Decimal('150.00'))
        self.assertEqual(result.discount_amount, Decimal('150.00'))
        self.assertEqual(result.final_price, Decimal('0.00'))

    def test_fixed_amount(self):
        rule = _rule(discount_type='fixed_amount', discount_value=Decimal('25.5'))
        self.assertEqual(compute_discount(rule, Decimal('150.00')).final_price, Decimal('124.50'))

    def test_free_service(self):
        rule = _rule(discount_type='free_service', discount_value=Decimal('0'))
        result = compute_discount(rule, Decimal('187.50'))
        self.assertTrue(result.is_free_service)
        self.assertEqual(result.discount_amount, Decimal('187.50'))
        self.assertEqual(result.final_price, Decimal('0.00'))

    def test_percentage_over_hundred_never_goes_negative(self):
        result = compute_discount(_rule(discount_value=Decimal('120')), Decimal('80.00'))
        self.assertEqual(result.final_price, Decimal('0.00'))

    def test_display_and_status(self):
        self.assertEqual(format_discount_display(_rule()), '20% off')
        self.assertEqual(
            format_discount_display(_rule(discount_type='fixed_amount', discount_value=Decimal('30'))),
            'S/ 30.00 off',
        )
        self.assertEqual(get_promotion_status(_rule(), NOW), 'active')
        self.assertEqual(get_promotion_status(_rule(), date(2026, 2, 1)), 'scheduled')
        self.assertEqual(get_promotion_status(_rule(), date(2026, 5, 1)), 'expired')
        self.assertTrue(is_promotion_expiring_soon(_rule(), date(2026, 3, 27)))
        self.assertFalse(is_promotion_expiring_soon(_rule(), NOW))


class PromotionStorageTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls._tmpdir = tempfile.TemporaryDirectory()
        db_path = Path(cls._tmpdir.name) / 'test_promotion_service.db'
        cls._engine = create_engine(f"sqlite:///{db_path}", connect_args={'check_same_thread': False})
        cls._session_factory = sessionmaker(autocommit=False, autoflush=False, bind=cls._engine)
        Base.metadata.create_all(bind=cls._engine)

    @classmethod
    def tearDownClass(cls):
        cls._engine.dispose()
        cls._tmpdir.cleanup()

    def setUp(self):
        db = self._session_factory()
        try:
            db.query(Promotion).delete()
            promotion = Promotion(
                title='Spring',
                promo_code='SPRING20',
                discount_type='percentage',
                discount_value=Decimal('20'),
                max_age=24,
                applicable_services=json.dumps([1]),
                start_date=date(2026, 3, 1),
                end_date=date(2026, 3, 31),
                max_uses=1,
                used_count=0,
            )
            db.add(promotion)
            db.commit()
            self.promotion_id = promotion.id
        finally:
            db.close()

    @freeze_time('2026-03-15 15:00:00')
    def test_validate_preview_does_not_consume_a_use(self):
        db = self._session_factory()
        try:
            result = validate_promotion_code(
                db, code='SPRING20', service_id=1, child_age_months=12, original_price=Decimal('150.00')
            )
            self.assertTrue(result['valid'])
            self.assertEqual(result['discount']['final_price'], '120.00')
            self.assertEqual(result['promotion']['promo_code'], 'SPRING20')
            self.assertEqual(db.get(Promotion, self.promotion_id).used_count, 0)
        finally:
            db.close()

    @freeze_time('2026-03-15 15:00:00')
    def test_validate_reports_reason(self):
        db = self._session_factory()
        try:
            result = validate_promotion_code(
                db, code='SPRING20', service_id=1, child_age_months=30, original_price=Decimal('150.00')
            )
            self.assertFalse(result['valid'])
            self.assertEqual(result['reason'], 'above_max_age')

            unknown = validate_promotion_code(
                db, code='NOPE', service_id=1, child_age_months=12, original_price=Decimal('150.00')
            )
            self.assertEqual(unknown, {'valid': False, 'error': 'Invalid promotion code'})
        finally:
            db.close()

    @freeze_time('2026-03-15 15:00:00')
    def test_switched_off_code_is_not_found(self):
        db = self._session_factory()
        try:
            db.get(Promotion, self.promotion_id).is_active = False
            db.commit()
            self.assertIsNone(get_active_promotion_by_code(db, ' SPRING20 '))
            result = validate_promotion_code(
                db, code='SPRING20', service_id=1, child_age_months=12, original_price=Decimal('150.00')
            )
            self.assertEqual(result, {'valid': False, 'error': 'Invalid promotion code'})
        finally:
            db.close()

    def test_reserve_usage_stops_at_cap_and_release_floors_at_zero(self):
        db = self._session_factory()
        try:
            self.assertTrue(try_reserve_usage(db, self.promotion_id))
            self.assertFalse(try_reserve_usage(db, self.promotion_id))
            db.commit()
            self.assertEqual(db.get(Promotion, self.promotion_id).used_count, 1)

            self.assertTrue(release_usage(db, self.promotion_id))
            self.assertFalse(release_usage(db, self.promotion_id))
            db.commit()
            db.expire_all()
            self.assertEqual(db.get(Promotion, self.promotion_id).used_count, 0)
        finally:
            db.close()


if __name__ == '__main__':
    unittest.main()
