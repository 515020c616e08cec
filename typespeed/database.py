import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from .config import DATABASE_PATH
from .errors import ConflictError, StorageError
from .logger import get_logger

logger = get_logger(__name__)

# ISO-8601 UTC with milliseconds; sorts lexicographically in time order
TIMESTAMP_SQL = "strftime('%Y-%m-%dT%H:%M:%fZ', 'now')"

USERS_TABLE = f"""
CREATE TABLE IF NOT EXISTS users (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    username TEXT UNIQUE NOT NULL COLLATE NOCASE,
    password_hash TEXT,
    google_id TEXT UNIQUE,
    profile_picture TEXT,
    created_at TEXT NOT NULL DEFAULT ({TIMESTAMP_SQL}),
    updated_at TEXT NOT NULL DEFAULT ({TIMESTAMP_SQL})
)
"""

TEST_RESULTS_TABLE = f"""
CREATE TABLE IF NOT EXISTS test_results (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    username TEXT NOT NULL,
    wpm REAL NOT NULL,
    cpm REAL NOT NULL,
    accuracy REAL NOT NULL,
    total_time INTEGER NOT NULL,
    difficulty TEXT NOT NULL,
    total_characters INTEGER NOT NULL,
    correct_characters INTEGER NOT NULL,
    incorrect_characters INTEGER NOT NULL,
    test_text TEXT,
    created_at TEXT NOT NULL DEFAULT ({TIMESTAMP_SQL})
)
"""

INDEXES = (
    "CREATE INDEX IF NOT EXISTS idx_test_results_username ON test_results (username)",
    "CREATE INDEX IF NOT EXISTS idx_test_results_created_at ON test_results (created_at)",
    "CREATE INDEX IF NOT EXISTS idx_test_results_username_date ON test_results (username, created_at)",
)


class SQLiteClient:
    """SQLite client shared by the user store and the results service"""

    def __init__(self, db_path: str = DATABASE_PATH):
        self.db_path = db_path
        self.connection: Optional[sqlite3.Connection] = None
        self.lock = threading.RLock()
        self._transaction_depth = 0

    def connect(self):
        """Open the connection and make sure the schema exists"""
        if self.connection is not None:
            return self.connection
        try:
            if self.db_path != ":memory:":
                Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
            self.connection = sqlite3.connect(self.db_path, check_same_thread=False)
            self.connection.row_factory = sqlite3.Row
            logger.info("Connected to SQLite database at %s", self.db_path)
        except sqlite3.Error as e:
            logger.error("Failed to connect to database at %s: %s", self.db_path, e)
            raise StorageError(f"Failed to connect to database: {e}") from e
        self.create_tables()
        return self.connection

    def disconnect(self):
        """Close connection"""
        with self.lock:
            if self.connection is not None:
                self.connection.close()
                self.connection = None

    def _execute(self, query: str, params: Sequence[Any] = ()) -> sqlite3.Cursor:
        connection = self.connect()
        try:
            cursor = connection.execute(query, tuple(params))
            if not self._transaction_depth:
                connection.commit()
            return cursor
        except sqlite3.IntegrityError as e:
            connection.rollback()
            logger.warning("Constraint violation: %s", e)
            raise ConflictError(str(e)) from e
        except sqlite3.Error as e:
            connection.rollback()
            logger.error("Query execution failed: %s", e)
            raise StorageError(str(e)) from e

    def fetch_one(self, query: str, params: Sequence[Any] = ()) -> Optional[Dict[str, Any]]:
        """Run a query and return the first row as a dict (None if no rows)"""
        with self.lock:
            row = self._execute(query, params).fetchone()
        return dict(row) if row is not None else None

    def fetch_all(self, query: str, params: Sequence[Any] = ()) -> List[Dict[str, Any]]:
        """Run a query and return every row as a dict"""
        with self.lock:
            rows = self._execute(query, params).fetchall()
        return [dict(row) for row in rows]

    def execute(self, query: str, params: Sequence[Any] = ()) -> sqlite3.Cursor:
        """Run a write statement; the cursor exposes lastrowid and rowcount"""
        with self.lock:
            return self._execute(query, params)

    @contextmanager
    def transaction(self):
        """
        Group several statements into one commit.

        The lock is held for the whole block, so other threads see either
        none or all of the changes. Any exception rolls everything back.
        """
        with self.lock:
            connection = self.connect()
            self._transaction_depth += 1
            try:
                yield self
            except BaseException:
                if self._transaction_depth == 1:
                    connection.rollback()
                raise
            else:
                if self._transaction_depth == 1:
                    try:
                        connection.commit()
                    except sqlite3.Error as e:
                        connection.rollback()
                        logger.error("Transaction commit failed: %s", e)
                        raise StorageError(f"Failed to commit transaction: {e}") from e
            finally:
                self._transaction_depth -= 1

    def create_tables(self):
        """Create tables and indexes if they don't exist"""
        with self.lock:
            try:
                self.connection.execute(USERS_TABLE)
                self.connection.execute(TEST_RESULTS_TABLE)
                for index in INDEXES:
                    self.connection.execute(index)
                self.connection.commit()
            except sqlite3.Error as e:
                logger.error("Failed to create tables: %s", e)
                raise StorageError(f"Failed to create tables: {e}") from e


# Singleton instance
database = SQLiteClient()


def get_database() -> SQLiteClient:
    """FastAPI dependency returning the shared database client"""
    return database
