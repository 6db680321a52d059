from datetime import datetime, timezone
from app.db.database import Database, register_schema_sql
from app.models.personal_credential import CredentialRecord


@register_schema_sql
def _create_personal_credentials_table() -> str:
    return """
        CREATE TABLE IF NOT EXISTS personal_credentials (
            user_id TEXT PRIMARY KEY,
            key_name TEXT NOT NULL,
            credential_fingerprint TEXT NOT NULL,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            last_used_at TEXT
        )
    """


class CredentialRepo:
    """Repository for personal credential records, one row per user"""

    def __init__(self, db: Database) -> None:
        self.db = db

    def get_by_user_id(self, user_id: str) -> CredentialRecord | None:
        rows = self.db.execute_query(
            "SELECT user_id, key_name, credential_fingerprint, created_at, updated_at, last_used_at "
            "FROM personal_credentials WHERE user_id = ?",
            (user_id,)
        )

        if not rows:
            return None

        row = rows[0]
        return CredentialRecord(
            user_id=row["user_id"],
            key_name=row["key_name"],
            credential_fingerprint=row["credential_fingerprint"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
            last_used_at=datetime.fromisoformat(row["last_used_at"]) if row["last_used_at"] else None,
        )

    def exists(self, user_id: str) -> bool:
        rows = self.db.execute_query(
            "SELECT 1 FROM personal_credentials WHERE user_id = ?",
            (user_id,)
        )
        return bool(rows)

    def upsert(self, user_id: str, key_name: str, credential_fingerprint: str) -> None:
        """Insert or replace the user's credential; created_at survives replacement"""
        now = datetime.now(timezone.utc).isoformat()
        self.db.execute_update(
            """
            INSERT INTO personal_credentials (user_id, key_name, credential_fingerprint, created_at, updated_at, last_used_at)
            VALUES (?, ?, ?, ?, ?, NULL)
            ON CONFLICT(user_id) DO UPDATE SET
                key_name = excluded.key_name,
                credential_fingerprint = excluded.credential_fingerprint,
                updated_at = excluded.updated_at
            """,
            (user_id, key_name, credential_fingerprint, now, now)
        )

    def delete(self, user_id: str) -> int:
        return self.db.execute_update(
            "DELETE FROM personal_credentials WHERE user_id = ?",
            (user_id,)
        )

    def touch_last_used(self, user_id: str) -> None:
        self.db.execute_update(
            "UPDATE personal_credentials SET last_used_at = ? WHERE user_id = ?",
            (datetime.now(timezone.utc).isoformat(), user_id)
        )
