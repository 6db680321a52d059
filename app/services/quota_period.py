from datetime import datetime, time, timedelta, timezone
from typing import Callable
from zoneinfo import ZoneInfo


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class QuotaPeriodClock:
    """Daily quota periods: a period is a calendar day in a fixed timezone"""

    def __init__(self, timezone_name: str, now: Callable[[], datetime] = _utc_now) -> None:
        self.tz = ZoneInfo(timezone_name)
        self._now = now

    def period_key_for(self, instant: datetime) -> str:
        return instant.astimezone(self.tz).date().isoformat()

    def current_period_key(self) -> str:
        return self.period_key_for(self._now())

    def next_reset(self) -> datetime:
        """Start of the next period, as an aware datetime in the quota timezone"""
        today = self._now().astimezone(self.tz).date()
        return datetime.combine(today + timedelta(days=1), time.min, tzinfo=self.tz)
