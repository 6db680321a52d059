import logging
import os
import sqlite3
from contextlib import closing, contextmanager
from datetime import datetime
from typing import Any, Callable, Iterator

from app.core.exceptions import StoreUnavailableError
from app.settings import settings


DB_VERSION = 1

logger = logging.getLogger(__name__)


class DatabaseNotInitializedError(Exception):
    """Raised when database operations are attempted before initialization"""
    pass


def register_schema_sql(func: Callable[[], str]) -> Callable[[], str]:
    """Decorator to register SQL returned by a function for schema initialization

    This decorator should be used on functions that return SQL statements
    for table creation, indexes, etc. The function is called immediately
    and its return value is registered for execution during database initialization.

    Example:
        @register_schema_sql
        def _create_usage_counters_table() -> str:
            return "CREATE TABLE IF NOT EXISTS usage_counters (...)"
    """
    sql = func()
    Database._schema_registry.append(sql)
    return func


def is_lock_contention(error: sqlite3.Error) -> bool:
    """Whether an error is a busy/locked condition worth retrying"""
    message = str(error).lower()
    return isinstance(error, sqlite3.OperationalError) and (
        "locked" in message or "busy" in message
    )


class Database:
    """SQLite database connection manager with schema registration

    Every storage failure surfaces as StoreUnavailableError so callers can
    fail closed without knowing about sqlite3.
    """

    _schema_registry: list[str] = []

    def __init__(self, db_path: str | None = None, timeout_seconds: float | None = None) -> None:
        self.db_path = db_path if db_path is not None else settings.db_path
        self.timeout_seconds = (
            timeout_seconds if timeout_seconds is not None else settings.db_timeout_seconds
        )
        self._initialized = False

    def _initialize_schema(self) -> None:
        """Initialize database schema by executing all registered SQL"""
        if self._initialized:
            return

        directory = os.path.dirname(self.db_path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        with closing(self.get_connection()) as conn:
            cursor = conn.cursor()
            self._set_db_version(cursor)

            for sql in self._schema_registry:
                cursor.execute(sql)

            conn.commit()

        self._initialized = True

    def _set_db_version(self, cursor: sqlite3.Cursor) -> None:
        cursor.execute("CREATE TABLE IF NOT EXISTS db_version (version INTEGER NOT NULL)")
        cursor.execute("DELETE FROM db_version")
        cursor.execute("INSERT INTO db_version (version) VALUES (?)", (DB_VERSION,))

    def _get_db_version(self) -> int | None:
        with closing(self.get_connection()) as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT name FROM sqlite_master WHERE type='table' AND name='db_version'"
            )
            if cursor.fetchone() is None:
                return None

            cursor.execute("SELECT version FROM db_version LIMIT 1")
            result = cursor.fetchone()
            return result[0] if result else None

    def _handle_version_mismatch(self) -> None:
        """Handle database version mismatch by deleting or renaming the old db file"""
        if not os.path.exists(self.db_path):
            return

        if settings.preserve_old_db:
            self._backup_db()
        else:
            os.remove(self.db_path)
            logger.warning("Old database deleted: %s", self.db_path)

    def _backup_db(self) -> None:
        timestamp = datetime.now().strftime("%Y%m%d%H%M%S")
        backup_path = self.db_path.replace(".db", f"-{timestamp}.db")
        if os.path.exists(backup_path):
            os.remove(self.db_path)
            logger.warning("Old database deleted - %s already exists", backup_path)
        else:
            os.rename(self.db_path, backup_path)
            logger.warning("Old database renamed to: %s", backup_path)

    def _check_and_handle_version(self) -> None:
        """Check database version and handle mismatch if necessary"""
        if not os.path.exists(self.db_path):
            return

        current_version = self._get_db_version()
        if current_version != DB_VERSION:
            logger.warning(
                "Database is not up to date (db version: %s, schema version: %s)",
                current_version,
                DB_VERSION,
            )
            self._handle_version_mismatch()

    def setup(self) -> None:
        """Check database version and initialize schema"""
        self._check_and_handle_version()
        self._initialize_schema()

    def _check_initialized(self) -> None:
        """Check if database has been initialized, raise error if not"""
        if not self._initialized:
            raise DatabaseNotInitializedError(
                "Database has not been initialized. Call setup() first."
            )

    def get_connection(self) -> sqlite3.Connection:
        """Get a database connection"""
        conn = sqlite3.connect(self.db_path, timeout=self.timeout_seconds)
        conn.row_factory = sqlite3.Row  # Access columns by name
        return conn

    def execute_query(self, query: str, params: tuple[Any, ...] = ()) -> list[sqlite3.Row]:
        """Execute a SELECT query and return results"""
        self._check_initialized()
        try:
            with closing(self.get_connection()) as conn:
                cursor = conn.cursor()
                cursor.execute(query, params)
                return cursor.fetchall()
        except sqlite3.Error as e:
            raise StoreUnavailableError(f"Query failed: {e}") from e

    def execute_update(self, query: str, params: tuple[Any, ...] = ()) -> int:
        """Execute an INSERT/UPDATE/DELETE query and return affected rows"""
        self._check_initialized()
        try:
            with closing(self.get_connection()) as conn:
                cursor = conn.cursor()
                cursor.execute(query, params)
                conn.commit()
                return cursor.rowcount
        except sqlite3.Error as e:
            raise StoreUnavailableError(f"Update failed: {e}") from e

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Cursor]:
        """Run statements in a single write transaction

        The write lock is taken up front (BEGIN IMMEDIATE), so concurrent
        writers are serialized by SQLite rather than by the caller.
        Raw sqlite3 errors are propagated so callers can decide whether to retry.
        """
        self._check_initialized()
        with closing(self.get_connection()) as conn:
            conn.isolation_level = None
            cursor = conn.cursor()
            cursor.execute("BEGIN IMMEDIATE")
            try:
                yield cursor
            except BaseException:
                cursor.execute("ROLLBACK")
                raise
            cursor.execute("COMMIT")
