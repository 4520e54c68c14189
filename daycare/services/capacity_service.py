from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from daycare.core.errors import CapacityExceeded
from daycare.models import ADMITTED_STATUSES, CapacityLedger, Service, Subscription


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CapacityCheck:
    ok: bool
    current: int
    max: int | None  # None means unlimited

    def as_dict(self) -> dict:
        return {'ok': self.ok, 'current': self.current, 'max': self.max}


def count_admitted(db: Session, service_id: int, month: int, year: int) -> int:
    return int(
        db.query(func.count(Subscription.id))
        .filter(
            Subscription.service_id == int(service_id),
            Subscription.start_month == int(month),
            Subscription.start_year == int(year),
            Subscription.status.in_(ADMITTED_STATUSES),
        )
        .scalar()
        or 0
    )


def check_capacity(db: Session, service: Service, month: int, year: int) -> CapacityCheck:
    current = count_admitted(db, service.id, month, year)
    if service.capacity is None:
        return CapacityCheck(ok=True, current=current, max=None)
    return CapacityCheck(ok=current < int(service.capacity), current=current, max=int(service.capacity))


def ensure_capacity(db: Session, service: Service, month: int, year: int) -> CapacityCheck:
    check = check_capacity(db, service, month, year)
    if not check.ok:
        logger.info(
            'capacity_rejected service_id=%s month=%s year=%s current=%s max=%s',
            service.id,
            month,
            year,
            check.current,
            check.max,
        )
        raise CapacityExceeded(current=check.current, maximum=int(check.max), month=month, year=year)
    return check


def _ensure_ledger_row(db: Session, service_id: int, month: int, year: int) -> None:
    exists = (
        db.query(CapacityLedger.id)
        .filter(CapacityLedger.service_id == service_id, CapacityLedger.month == month, CapacityLedger.year == year)
        .first()
    )
    if exists:
        return
    # Seeded in its own short transaction so the unique constraint settles racing creators
    # without disturbing the caller's transaction.
    seed_db = Session(bind=db.get_bind())
    try:
        seed_db.add(
            CapacityLedger(
                service_id=service_id,
                month=month,
                year=year,
                admitted_count=count_admitted(seed_db, service_id, month, year),
            )
        )
        seed_db.commit()
    except IntegrityError:
        seed_db.rollback()
    finally:
        seed_db.close()


def try_reserve(db: Session, service: Service, month: int, year: int) -> CapacityCheck:
    """Take one place in the (service, month, year) bucket inside the caller's transaction.

    The conditional increment is the admission decision: concurrent callers serialize on
    the ledger row and only those that still find room succeed. Raises CapacityExceeded.
    """
    service_id, month, year = int(service.id), int(month), int(year)
    _ensure_ledger_row(db, service_id, month, year)

    where = [CapacityLedger.service_id == service_id, CapacityLedger.month == month, CapacityLedger.year == year]
    if service.capacity is not None:
        where.append(CapacityLedger.admitted_count < int(service.capacity))
    stmt = (
        update(CapacityLedger)
        .where(*where)
        .values(admitted_count=CapacityLedger.admitted_count + 1)
        .execution_options(synchronize_session=False)
    )
    reserved = db.execute(stmt).rowcount == 1
    current = int(db.query(CapacityLedger.admitted_count).filter(*where[:3]).scalar() or 0)
    if reserved:
        return CapacityCheck(ok=True, current=current, max=service.capacity)

    logger.info(
        'capacity_reservation_rejected service_id=%s month=%s year=%s current=%s max=%s',
        service_id,
        month,
        year,
        current,
        service.capacity,
    )
    raise CapacityExceeded(current=current, maximum=int(service.capacity), month=month, year=year)


def release(db: Session, service_id: int, month: int, year: int) -> bool:
    stmt = (
        update(CapacityLedger)
        .where(
            CapacityLedger.service_id == int(service_id),
            CapacityLedger.month == int(month),
            CapacityLedger.year == int(year),
            CapacityLedger.admitted_count > 0,
        )
        .values(admitted_count=CapacityLedger.admitted_count - 1)
        .execution_options(synchronize_session=False)
    )
    return db.execute(stmt).rowcount == 1
