from __future__ import annotations

from datetime import date, datetime
from zoneinfo import ZoneInfo

from daycare.config import settings


APP_TIMEZONE = settings.app_timezone or 'America/Lima'
APP_ZONEINFO = ZoneInfo(APP_TIMEZONE)


class TimeProvider:
    def now(self) -> datetime:
        return datetime.now(APP_ZONEINFO)

    def today(self) -> date:
        return self.now().date()

    def utcnow_naive(self) -> datetime:
        """Naive UTC timestamp, the shape stored in DateTime columns."""
        return self.now().astimezone(ZoneInfo('UTC')).replace(tzinfo=None)


default_time_provider = TimeProvider()
