import tempfile
import unittest
from decimal import Decimal
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from daycare.core.errors import CapacityExceeded
from daycare.db import Base
from daycare.models import CapacityLedger, Service, Subscription
from daycare.services.capacity_service import check_capacity, ensure_capacity, release, try_reserve


class CapacityServiceTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls._tmpdir = tempfile.TemporaryDirectory()
        db_path = Path(cls._tmpdir.name) / 'test_capacity_service.db'
        cls._engine = create_engine(f"sqlite:///{db_path}", connect_args={'check_same_thread': False})
        cls._session_factory = sessionmaker(autocommit=False, autoflush=False, bind=cls._engine)
        Base.metadata.create_all(bind=cls._engine)

    @classmethod
    def tearDownClass(cls):
        cls._engine.dispose()
        cls._tmpdir.cleanup()

    def setUp(self):
        self.db = self._session_factory()
        self.db.query(CapacityLedger).delete()
        self.db.query(Subscription).delete()
        self.db.query(Service).delete()
        self.service = Service(name='Early Stimulation', price=Decimal('150.00'), capacity=2)
        self.unlimited = Service(name='Open Play', price=Decimal('90.00'), capacity=None)
        self.db.add_all([self.service, self.unlimited])
        self.db.commit()

    def tearDown(self):
        self.db.close()

    def _add_subscription(self, service, status='pending', month=3, year=2026, code='S1'):
        self.db.add(
            Subscription(
                subscription_code=code,
                user_id=1,
                service_id=service.id,
                child_name='Mia',
                child_age=12,
                parent_name='Ana Perez',
                parent_email='ana@example.com',
                parent_phone='999',
                start_month=month,
                start_year=year,
                sessions_per_month=8,
                base_monthly_price=Decimal('150.00'),
                final_monthly_price=Decimal('150.00'),
                status=status,
            )
        )
        self.db.commit()

    def test_counts_only_pending_and_active_in_the_same_month(self):
        self._add_subscription(self.service, 'pending', code='A')
        self._add_subscription(self.service, 'active', code='B')
        self._add_subscription(self.service, 'cancelled', code='C')
        self._add_subscription(self.service, 'completed', code='D')
        self._add_subscription(self.service, 'pending', month=4, code='E')

        check = check_capacity(self.db, self.service, 3, 2026)

        self.assertFalse(check.ok)
        self.assertEqual(check.current, 2)
        self.assertEqual(check.max, 2)

    def test_cancelling_frees_a_place(self):
        self._add_subscription(self.service, 'pending', code='A')
        self._add_subscription(self.service, 'active', code='B')
        with self.assertRaises(CapacityExceeded) as ctx:
            ensure_capacity(self.db, self.service, 3, 2026)
        self.assertEqual(ctx.exception.current, 2)
        self.assertEqual(ctx.exception.maximum, 2)

        row = self.db.query(Subscription).filter(Subscription.subscription_code == 'B').one()
        row.status = 'cancelled'
        self.db.commit()

        check = ensure_capacity(self.db, self.service, 3, 2026)
        self.assertEqual(check.as_dict(), {'ok': True, 'current': 1, 'max': 2})

    def test_unlimited_capacity(self):
        for code in ('A', 'B', 'C'):
            self._add_subscription(self.unlimited, code=code)
        check = check_capacity(self.db, self.unlimited, 3, 2026)
        self.assertTrue(check.ok)
        self.assertIsNone(check.max)
        self.assertEqual(check.current, 3)

    def test_reservations_stop_at_capacity(self):
        self._add_subscription(self.service, 'active', code='A')

        first = try_reserve(self.db, self.service, 3, 2026)
        self.db.commit()
        self.assertEqual(first.current, 2)

        with self.assertRaises(CapacityExceeded) as ctx:
            try_reserve(self.db, self.service, 3, 2026)
        self.db.rollback()
        self.assertEqual(ctx.exception.current, 2)

        ledger = self.db.query(CapacityLedger).filter(CapacityLedger.service_id == self.service.id).one()
        self.assertEqual(ledger.admitted_count, 2)

    def test_release_floors_at_zero(self):
        try_reserve(self.db, self.service, 5, 2026)
        self.db.commit()
        self.assertTrue(release(self.db, self.service.id, 5, 2026))
        self.assertFalse(release(self.db, self.service.id, 5, 2026))
        self.db.commit()
        ledger = self.db.query(CapacityLedger).filter(CapacityLedger.month == 5).one()
        self.assertEqual(ledger.admitted_count, 0)


if __name__ == '__main__':
    unittest.main()
