import sqlite3
import aiosqlite
import datetime
from contextlib import contextmanager, asynccontextmanager
from typing import List, Tuple, Optional

from errors import NotFoundError


def _now() -> str:
    return datetime.datetime.now().isoformat(timespec="seconds")


class Database:
    """Provides SQLite connection management and schema initialization."""

    _TABLE_DEFINITIONS = {
        "state_store": (
            """CREATE TABLE state_store (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );""",
            ["key", "value", "updated_at"],
        ),
        "backups": (
            """CREATE TABLE backups (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    created_at TEXT NOT NULL,
                    label TEXT NOT NULL DEFAULT 'manual',
                    value TEXT NOT NULL
                );""",
            ["id", "created_at", "label", "value"],
        ),
        "sync_log": (
            """CREATE TABLE sync_log (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    timestamp TEXT NOT NULL,
                    batch_size INTEGER NOT NULL DEFAULT 0,
                    success INTEGER NOT NULL,
                    message TEXT
                );""",
            ["id", "timestamp", "batch_size", "success", "message"],
        ),
    }

    def __init__(self, db_path: str = "progression.db") -> None:
        self._db_path = db_path
        self._ensure_schema()

    @contextmanager
    def _connection(self):
        connection = sqlite3.connect(self._db_path)
        try:
            yield connection
            connection.commit()
        finally:
            connection.close()

    def _ensure_schema(self) -> None:
        with self._connection() as conn:
            for table, (sql, columns) in self._TABLE_DEFINITIONS.items():
                self._ensure_table(conn, table, sql, columns)

    def _ensure_table(
        self, conn: sqlite3.Connection, table: str, sql: str, columns: List[str]
    ) -> None:
        cur = conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name=?;", (table,)
        )
        if cur.fetchone() is None:
            conn.execute(sql)
            return

        cur = conn.execute(f"PRAGMA table_info({table});")
        existing_cols = [row[1] for row in cur.fetchall()]
        if existing_cols == columns:
            return

        conn.execute(f"ALTER TABLE {table} RENAME TO {table}_old;")
        conn.execute(sql)
        common = [c for c in existing_cols if c in columns]
        if common:
            cols = ", ".join(common)
            conn.execute(
                f"INSERT INTO {table} ({cols}) SELECT {cols} FROM {table}_old;"
            )
        conn.execute(f"DROP TABLE {table}_old;")


class BaseRepository(Database):
    """Base repository providing helper methods."""

    def execute(self, query: str, params: Tuple = ()) -> int:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return cursor.lastrowid

    def fetch_all(self, query: str, params: Tuple = ()) -> List[Tuple]:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return cursor.fetchall()


class AsyncDatabase(Database):
    """Provides asynchronous connection management."""

    @asynccontextmanager
    async def _async_connection(self):
        conn = await aiosqlite.connect(self._db_path)
        try:
            yield conn
            await conn.commit()
        finally:
            await conn.close()


class AsyncBaseRepository(AsyncDatabase):
    """Asynchronous variant of BaseRepository using aiosqlite."""

    async def execute(self, query: str, params: Tuple = ()) -> int:
        async with self._async_connection() as conn:
            cursor = await conn.execute(query, params)
            await conn.commit()
            return cursor.lastrowid

    async def fetch_all(self, query: str, params: Tuple = ()) -> List[Tuple]:
        async with self._async_connection() as conn:
            cursor = await conn.execute(query, params)
            rows = await cursor.fetchall()
            return rows


class StateStoreRepository(BaseRepository):
    """Durable key-value store holding serialized state documents."""

    def fetch(self, key: str) -> Optional[str]:
        rows = self.fetch_all("SELECT value FROM state_store WHERE key = ?;", (key,))
        return rows[0][0] if rows else None

    def save(self, key: str, value: str) -> None:
        self.execute(
            "INSERT INTO state_store (key, value, updated_at) VALUES (?, ?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value=excluded.value, updated_at=excluded.updated_at;",
            (key, value, _now()),
        )

    def updated_at(self, key: str) -> Optional[str]:
        rows = self.fetch_all(
            "SELECT updated_at FROM state_store WHERE key = ?;", (key,)
        )
        return rows[0][0] if rows else None

    def delete(self, key: str) -> None:
        self.execute("DELETE FROM state_store WHERE key = ?;", (key,))


class AsyncStateStoreRepository(AsyncBaseRepository):
    """Async read access to stored state documents."""

    async def fetch(self, key: str) -> Optional[str]:
        rows = await self.fetch_all(
            "SELECT value FROM state_store WHERE key = ?;", (key,)
        )
        return rows[0][0] if rows else None

    async def updated_at(self, key: str) -> Optional[str]:
        rows = await self.fetch_all(
            "SELECT updated_at FROM state_store WHERE key = ?;", (key,)
        )
        return rows[0][0] if rows else None


class BackupRepository(BaseRepository):
    """Repository for state snapshots."""

    def add(self, value: str, label: str = "manual") -> int:
        return self.execute(
            "INSERT INTO backups (created_at, label, value) VALUES (?, ?, ?);",
            (_now(), label, value),
        )

    def fetch_all_backups(self) -> list[tuple[int, str, str]]:
        return self.fetch_all(
            "SELECT id, created_at, label FROM backups ORDER BY id DESC;"
        )

    def fetch(self, backup_id: int) -> str:
        rows = self.fetch_all("SELECT value FROM backups WHERE id = ?;", (backup_id,))
        if not rows:
            raise NotFoundError("backup not found")
        return rows[0][0]


class SyncLogRepository(BaseRepository):
    """Repository recording sync flush attempts."""

    def log_success(self, batch_size: int) -> int:
        return self.execute(
            "INSERT INTO sync_log (timestamp, batch_size, success, message) VALUES (?, ?, 1, NULL);",
            (_now(), batch_size),
        )

    def log_error(self, batch_size: int, message: str) -> int:
        return self.execute(
            "INSERT INTO sync_log (timestamp, batch_size, success, message) VALUES (?, ?, 0, ?);",
            (_now(), batch_size, message),
        )

    def last_success(self) -> Optional[str]:
        rows = self.fetch_all(
            "SELECT timestamp FROM sync_log WHERE success = 1 ORDER BY id DESC LIMIT 1;"
        )
        return rows[0][0] if rows else None

    def last_errors(self, limit: int = 5) -> list[tuple[str, str]]:
        return self.fetch_all(
            "SELECT timestamp, message FROM sync_log WHERE success = 0 ORDER BY id DESC LIMIT ?;",
            (limit,),
        )
