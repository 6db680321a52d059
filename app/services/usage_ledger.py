"""Usage quota ledger: atomic consume-or-reject over per-period counters.

The check-and-increment is a single conditional UPDATE inside a write
transaction, so concurrent callers for the same user can never push a
counter past its limit. Lock contention is retried a bounded number of
times; anything else surfaces as StoreUnavailableError.
"""

import logging
import sqlite3
import time

from app.core.exceptions import StoreUnavailableError
from app.db.database import is_lock_contention
from app.db.usage_counter_repo import UsageCounterRepo
from app.models.usage_counter import ConsumeResult

logger = logging.getLogger(__name__)


class UsageLedger:
    def __init__(
        self,
        usage_counter_repo: UsageCounterRepo,
        max_retries: int = 3,
        retry_delay_seconds: float = 0.05,
    ) -> None:
        self.usage_counter_repo = usage_counter_repo
        self.max_retries = max(1, max_retries)
        self.retry_delay_seconds = retry_delay_seconds

    def try_consume(self, user_id: str, period_key: str, limit: int, tier: str) -> ConsumeResult:
        """Consume one unit of quota for the period if any is left"""
        last_error: sqlite3.Error | None = None
        for attempt in range(1, self.max_retries + 1):
            try:
                incremented, used = self.usage_counter_repo.try_increment(user_id, tier, period_key, limit)
            except sqlite3.Error as e:
                if not is_lock_contention(e):
                    raise StoreUnavailableError(f"Failed to consume quota: {e}") from e
                last_error = e
                logger.debug(
                    "Quota counter for user %s is locked (attempt %d/%d)",
                    user_id,
                    attempt,
                    self.max_retries,
                )
                if attempt < self.max_retries:
                    time.sleep(self.retry_delay_seconds * attempt)
                continue

            if not incremented:
                return ConsumeResult(allowed=False, remaining=0, used=used)
            return ConsumeResult(allowed=True, remaining=max(limit - used, 0), used=used)

        raise StoreUnavailableError(
            f"Quota counter still locked after {self.max_retries} attempts: {last_error}"
        ) from last_error

    def get_usage(self, user_id: str, period_key: str, tier: str) -> int:
        """Units consumed in the period; 0 when no counter exists yet"""
        counter = self.usage_counter_repo.get_counter(user_id, tier, period_key)
        return counter.count_used if counter else 0
