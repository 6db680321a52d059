from datetime import date, datetime, timezone

from app.core.exceptions import StoreUnavailableError
from app.db.database import Database, register_schema_sql
from app.models.usage_counter import UsageCounter


@register_schema_sql
def _create_usage_counters_table() -> str:
    return """
        CREATE TABLE IF NOT EXISTS usage_counters (
            user_id TEXT NOT NULL,
            tier TEXT NOT NULL,
            period_start TEXT NOT NULL,
            count_used INTEGER NOT NULL DEFAULT 0 CHECK (count_used >= 0),
            quota_limit INTEGER NOT NULL,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            PRIMARY KEY (user_id, tier, period_start)
        )
    """


@register_schema_sql
def _create_usage_counters_user_index() -> str:
    return """
        CREATE INDEX IF NOT EXISTS idx_usage_counters_user_id
        ON usage_counters(user_id)
    """


def _row_to_counter(row) -> UsageCounter:
    return UsageCounter(
        user_id=row["user_id"],
        tier=row["tier"],
        period_start=date.fromisoformat(row["period_start"]),
        count_used=row["count_used"],
        limit=row["quota_limit"],
    )


class UsageCounterRepo:
    """Repository for per-user, per-tier, per-period usage counters"""

    def __init__(self, db: Database) -> None:
        self.db = db

    def try_increment(self, user_id: str, tier: str, period_start: str, limit: int) -> tuple[bool, int]:
        """Create the counter if needed and increment it only while below `limit`

        Runs as one write transaction. Returns whether the increment happened
        and the counter value afterwards. sqlite3 errors are not wrapped so
        the caller can retry lock contention.
        """
        now = datetime.now(timezone.utc).isoformat()
        with self.db.transaction() as cursor:
            cursor.execute(
                """
                INSERT INTO usage_counters (user_id, tier, period_start, count_used, quota_limit, created_at, updated_at)
                VALUES (?, ?, ?, 0, ?, ?, ?)
                ON CONFLICT(user_id, tier, period_start) DO NOTHING
                """,
                (user_id, tier, period_start, limit, now, now)
            )
            cursor.execute(
                """
                UPDATE usage_counters
                SET count_used = count_used + 1, quota_limit = ?, updated_at = ?
                WHERE user_id = ? AND tier = ? AND period_start = ? AND count_used < ?
                """,
                (limit, now, user_id, tier, period_start, limit)
            )
            incremented = cursor.rowcount == 1
            cursor.execute(
                "SELECT count_used FROM usage_counters WHERE user_id = ? AND tier = ? AND period_start = ?",
                (user_id, tier, period_start)
            )
            row = cursor.fetchone()
            if row is None:
                raise StoreUnavailableError(f"Usage counter for {user_id} missing after upsert")
            return incremented, row["count_used"]

    def get_counter(self, user_id: str, tier: str, period_start: str) -> UsageCounter | None:
        rows = self.db.execute_query(
            "SELECT user_id, tier, period_start, count_used, quota_limit FROM usage_counters "
            "WHERE user_id = ? AND tier = ? AND period_start = ?",
            (user_id, tier, period_start)
        )

        if not rows:
            return None
        return _row_to_counter(rows[0])

    def list_counters_by_user(self, user_id: str) -> list[UsageCounter]:
        """All counters of a user, newest period first"""
        rows = self.db.execute_query(
            "SELECT user_id, tier, period_start, count_used, quota_limit FROM usage_counters "
            "WHERE user_id = ? ORDER BY period_start DESC, tier",
            (user_id,)
        )
        return [_row_to_counter(row) for row in rows]
