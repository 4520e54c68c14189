import unittest
from decimal import Decimal

from daycare.core.errors import InvalidSessionCount, SubscriptionValidationError
from daycare.services.pricing_service import compute_session_pricing, get_pricing_description, get_session_options


class SessionPricingTests(unittest.TestCase):
    def test_included_sessions_cost_exactly_the_base_price(self):
        pricing = compute_session_pricing(Decimal('150.00'), 8, included_sessions=8)

        self.assertEqual(pricing.total_price, Decimal('150.00'))
        self.assertEqual(pricing.additional_price, Decimal('0.00'))
        self.assertEqual(pricing.base_sessions, 8)
        self.assertEqual(pricing.additional_sessions, 0)
        self.assertEqual(pricing.per_session_rate, Decimal('18.75'))

    def test_extra_sessions_are_charged_at_the_per_session_rate(self):
        pricing = compute_session_pricing(Decimal('150.00'), 10, included_sessions=8)

        self.assertEqual(pricing.additional_sessions, 2)
        self.assertEqual(pricing.additional_price, Decimal('37.50'))
        self.assertEqual(pricing.total_price, Decimal('187.50'))
        self.assertEqual(pricing.total_sessions, 10)

    def test_fewer_sessions_are_charged_proportionally(self):
        pricing = compute_session_pricing(Decimal('150.00'), 4, included_sessions=8)

        self.assertEqual(pricing.total_price, Decimal('75.00'))
        self.assertEqual(pricing.additional_price, Decimal('0.00'))
        self.assertEqual(pricing.base_sessions, 4)

    def test_float_and_string_prices_are_accepted(self):
        self.assertEqual(compute_session_pricing(99.9, 8).total_price, Decimal('99.90'))
        self.assertEqual(compute_session_pricing('120', 12).total_price, Decimal('180.00'))

    def test_rounding_is_half_up_to_cents(self):
        # 100 / 8 * 5 = 62.5 exactly, 100 / 3 sessions gives a repeating rate
        self.assertEqual(compute_session_pricing(Decimal('100.00'), 5, included_sessions=8).total_price, Decimal('62.50'))
        pricing = compute_session_pricing(Decimal('100.00'), 4, included_sessions=3)
        self.assertEqual(pricing.additional_price, Decimal('33.33'))
        self.assertEqual(pricing.total_price, Decimal('133.33'))

    def test_total_is_monotonic_across_the_band(self):
        totals = [compute_session_pricing(Decimal('150.00'), s).total_price for s in range(4, 21)]
        self.assertEqual(totals, sorted(totals))
        self.assertTrue(all(total >= 0 for total in totals))

    def test_total_equals_base_plus_additional_above_included(self):
        for sessions in range(8, 21):
            pricing = compute_session_pricing(Decimal('137.35'), sessions)
            self.assertEqual(pricing.total_price, pricing.base_price + pricing.additional_price)

    def test_session_count_outside_band_is_rejected(self):
        for sessions in (0, 3, 21, 40):
            with self.assertRaises(InvalidSessionCount) as ctx:
                compute_session_pricing(Decimal('150.00'), sessions)
            self.assertEqual(ctx.exception.sessions, sessions)
            self.assertEqual(ctx.exception.minimum, 4)
            self.assertEqual(ctx.exception.maximum, 20)

    def test_negative_base_price_is_rejected(self):
        with self.assertRaises(SubscriptionValidationError):
            compute_session_pricing(Decimal('-1.00'), 8)

    def test_zero_base_price_is_free(self):
        self.assertEqual(compute_session_pricing(Decimal('0'), 12).total_price, Decimal('0.00'))


class PricingPresentationTests(unittest.TestCase):
    def test_descriptions(self):
        self.assertEqual(get_pricing_description(8, Decimal('150.00')), 'Base price: S/ 150.00')
        self.assertEqual(get_pricing_description(4, Decimal('150.00')), '50% of base price: S/ 75.00')
        self.assertEqual(get_pricing_description(12, Decimal('150.00')), 'Base price + 50%: S/ 225.00')

    def test_session_options_cover_each_weekly_frequency(self):
        options = get_session_options()

        self.assertEqual([option['value'] for option in options], [4, 8, 12, 16, 20])
        self.assertEqual(options[0]['label'], '4 sessions')
        self.assertEqual(options[0]['description'], '1 per week (50% of base price)')
        self.assertEqual(options[1]['description'], '2 per week (base price)')
        self.assertEqual(options[4]['description'], '5 per week (+150% of base price)')


if __name__ == '__main__':
    unittest.main()
