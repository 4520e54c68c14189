import smtplib
import sys

import httpx
from alembic.config import Config
from alembic.script import ScriptDirectory
from alembic.runtime.migration import MigrationContext
from sqlalchemy import text

from daycare.config import settings
from daycare.db import SessionLocal, engine
from daycare.models import CapacityLedger, Service
from daycare.services.capacity_service import count_admitted


GREEN = '\033[32m'
RED = '\033[31m'
RESET = '\033[0m'


def run_check(name, fn):
    try:
        message = fn() or ''
        suffix = f' - {message}' if message else ''
        print(f'{GREEN}PASS{RESET} {name}{suffix}')
        return True
    except Exception as exc:
        print(f'{RED}FAIL{RESET} {name} - {exc}')
        return False


def check_db_connectivity_and_write():
    with engine.begin() as conn:
        conn.execute(text('SELECT 1'))
        conn.execute(text('CREATE TABLE IF NOT EXISTS _healthcheck_probe (id INTEGER PRIMARY KEY, note TEXT)'))
        conn.execute(text("INSERT INTO _healthcheck_probe (note) VALUES ('probe')"))
        conn.execute(text("DELETE FROM _healthcheck_probe WHERE note='probe'"))
        conn.execute(text('DROP TABLE IF EXISTS _healthcheck_probe'))
    return 'connect + write ok'


def check_alembic_head():
    cfg = Config('alembic.ini')
    script = ScriptDirectory.from_config(cfg)
    heads = set(script.get_heads())
    if not heads:
        raise RuntimeError('No alembic heads found in repository')

    with engine.connect() as conn:
        current = MigrationContext.configure(conn).get_current_revision()

    if current is None:
        raise RuntimeError('No migration version in DB (run alembic upgrade head)')
    if current not in heads:
        raise RuntimeError(f'DB revision {current} is not at head {sorted(heads)}')
    return f'current={current}'


def check_required_env():
    required = {
        'DATABASE_URL': settings.database_url,
        'APP_TIMEZONE': settings.app_timezone,
        'CENTER_NAME': settings.center_name,
        'CURRENCY_SYMBOL': settings.currency_symbol,
    }
    if settings.enable_email_notifications:
        required['SMTP_HOST'] = settings.smtp_host
        required['EMAIL_FROM'] = settings.email_from
    missing = [key for key, value in required.items() if not str(value).strip()]
    if missing:
        raise RuntimeError(f'Missing env vars: {", ".join(missing)}')
    return 'all required vars present'


def check_api_health():
    res = httpx.get(f'{settings.app_base_url.rstrip("/")}/health', timeout=8)
    if res.status_code != 200:
        raise RuntimeError(f'HTTP {res.status_code} from /health')
    if res.json().get('status') != 'ok':
        raise RuntimeError(f'Unexpected payload: {res.json()}')
    return 'GET /health ok'


def check_smtp_reachable():
    if not settings.enable_email_notifications:
        return 'email disabled, skipped'
    with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=settings.smtp_timeout_seconds) as server:
        code, _ = server.noop()
    if code != 250:
        raise RuntimeError(f'SMTP NOOP returned {code}')
    return f'{settings.smtp_host}:{settings.smtp_port} ok'


def check_catalog_has_active_services():
    db = SessionLocal()
    try:
        active = db.query(Service).filter(Service.is_active.is_(True)).count()
        if not active:
            raise RuntimeError('No active services; run scripts/init_db.py or load the catalog')
        return f'active_services={active}'
    finally:
        db.close()


def check_capacity_ledger_matches_subscriptions():
    db = SessionLocal()
    try:
        drift = []
        rows = db.query(CapacityLedger).all()
        for row in rows:
            live = count_admitted(db, row.service_id, row.month, row.year)
            if live != row.admitted_count:
                drift.append(f'service={row.service_id} {row.month}/{row.year} ledger={row.admitted_count} live={live}')
        if drift:
            raise RuntimeError('; '.join(drift))
        return f'buckets={len(rows)}'
    finally:
        db.close()


def main():
    checks = [
        ('Database connectivity and write access', check_db_connectivity_and_write),
        ('Alembic migration status at head', check_alembic_head),
        ('Required environment variables present', check_required_env),
        ('API health endpoint reachable', check_api_health),
        ('SMTP server reachable', check_smtp_reachable),
        ('Service catalog loaded', check_catalog_has_active_services),
        ('Capacity ledger consistent with subscriptions', check_capacity_ledger_matches_subscriptions),
    ]

    all_ok = True
    for name, fn in checks:
        all_ok = run_check(name, fn) and all_ok

    if not all_ok:
        sys.exit(1)
    sys.exit(0)


if __name__ == '__main__':
    main()
