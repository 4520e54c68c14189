from datetime import timedelta
from decimal import Decimal
from pathlib import Path
import json
import sys


# Ensure imports work when running this file directly: `python scripts/init_db.py`.
ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from daycare.core.time_provider import default_time_provider
from daycare.db import Base, SessionLocal, engine
from daycare.models import Promotion, ScheduleSlot, Service


Base.metadata.create_all(bind=engine)

db = SessionLocal()
try:
    if not db.query(Service).first():
        services = [
            Service(name='Early Stimulation', category='stimulation', price=Decimal('150.00'), included_sessions=8, capacity=12),
            Service(name='Music for Babies', category='music', price=Decimal('120.00'), included_sessions=8, capacity=10),
            Service(name='Baby Swimming', category='aquatic', price=Decimal('200.00'), included_sessions=8, capacity=None),
        ]
        db.add_all(services)
        db.commit()

        for service in services:
            db.refresh(service)
            for day in (1, 3, 5):
                db.add(ScheduleSlot(service_id=service.id, day_of_week=day, start_time='09:00', end_time='10:00'))
                db.add(ScheduleSlot(service_id=service.id, day_of_week=day, start_time='16:00', end_time='17:00'))
            db.add(ScheduleSlot(service_id=service.id, day_of_week=6, start_time='10:30', end_time='11:30'))
        db.commit()

        today = default_time_provider.today()
        db.add_all(
            [
                Promotion(
                    title='Welcome month',
                    promo_code='WELCOME20',
                    discount_type='percentage',
                    discount_value=Decimal('20'),
                    start_date=today - timedelta(days=1),
                    end_date=today + timedelta(days=60),
                    max_uses=50,
                ),
                Promotion(
                    title='Little ones',
                    promo_code='BABY30',
                    discount_type='fixed_amount',
                    discount_value=Decimal('30'),
                    max_age=24,
                    applicable_services=json.dumps([services[0].id]),
                    start_date=today - timedelta(days=1),
                    end_date=today + timedelta(days=30),
                ),
            ]
        )
        db.commit()
finally:
    db.close()

print('DB initialized with sample services, schedule slots and promotions.')
