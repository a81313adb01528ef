# src/portal_workqueue/storage/sqlite_store.py

from __future__ import annotations

import contextlib
import logging
import sqlite3
import time
from pathlib import Path

from ..tasks.task_models import TaskRecord

logger = logging.getLogger(__name__)


class SqliteStore:
    """
    SQLite result cache + durable task queue.

    The schema is intentionally simple and migration-safe:
    - create tables if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    Thread-safety:
    - each method opens its own SQLite connection

    Timestamps are unix seconds (REAL). A NULL expires_at means "never expires".
    """

    def __init__(self, db_path: str | Path = "portal.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        try:
            queued = self.queue_count()
        except Exception:
            queued = -1
        logger.info("SqliteStore ready db=%s queued=%s", self._db_path, queued)

    def close(self) -> None:
        """Compatibility hook for shutdown (no persistent connections to close)."""
        return

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(Exception):
            conn.execute("PRAGMA journal_mode=WAL")

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS key_value_cache (
                    key TEXT PRIMARY KEY NOT NULL,
                    value TEXT NOT NULL,
                    expires_at REAL,
                    created_at REAL NOT NULL
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS queued_tasks (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    task_name TEXT NOT NULL,
                    arguments TEXT NOT NULL,
                    added_at REAL NOT NULL,
                    expires_at REAL,
                    priority INTEGER NOT NULL DEFAULT 0
                )
                """
            )

            def add_col(table: str, name: str, decl: str) -> None:
                cur.execute(f"PRAGMA table_info({table})")
                cols = {row["name"] for row in cur.fetchall()}
                if name in cols:
                    return
                cur.execute(f"ALTER TABLE {table} ADD COLUMN {name} {decl}")
                logger.info("SqliteStore migration: added column %s.%s", table, name)

            add_col("key_value_cache", "expires_at", "REAL")
            add_col("key_value_cache", "created_at", "REAL NOT NULL DEFAULT 0")
            add_col("queued_tasks", "expires_at", "REAL")
            add_col("queued_tasks", "priority", "INTEGER NOT NULL DEFAULT 0")

            cur.execute(
                "CREATE INDEX IF NOT EXISTS idx_kv_cache_expires ON key_value_cache(expires_at)"
            )
            cur.execute(
                "CREATE INDEX IF NOT EXISTS idx_queued_tasks_order "
                "ON queued_tasks(priority DESC, added_at ASC)"
            )
            cur.execute(
                "CREATE INDEX IF NOT EXISTS idx_queued_tasks_expires ON queued_tasks(expires_at)"
            )

            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> TaskRecord:
        return TaskRecord(
            id=int(row["id"]),
            task_name=str(row["task_name"]),
            arguments=str(row["arguments"]),
            added_at=float(row["added_at"] or 0.0),
            expires_at=float(row["expires_at"]) if row["expires_at"] is not None else None,
            priority=int(row["priority"] or 0),
        )

    # ---- cache ----

    def cache_get(self, key: str, now_ts: float | None = None) -> str | None:
        """Value for ``key`` unless missing or expired (expired rows are left for cleanup)."""
        now = time.time() if now_ts is None else float(now_ts)
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                SELECT value
                FROM key_value_cache
                WHERE key = ?
                  AND (expires_at IS NULL OR expires_at > ?)
                """,
                (key, now),
            )
            row = cur.fetchone()
            return None if row is None else str(row["value"])
        finally:
            conn.close()

    def cache_set(self, key: str, value: str, expires_at: float | None) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT OR REPLACE INTO key_value_cache(key, value, expires_at, created_at)
                VALUES (?, ?, ?, ?)
                """,
                (key, value, None if expires_at is None else float(expires_at), time.time()),
            )
            conn.commit()
            logger.debug("Cache set key=%s expires_at=%s", key, expires_at)
        finally:
            conn.close()

    def cache_delete(self, key: str) -> None:
        conn = self._get_conn()
        try:
            conn.execute("DELETE FROM key_value_cache WHERE key = ?", (key,))
            conn.commit()
        finally:
            conn.close()

    def cache_cleanup_expired(self, now_ts: float | None = None) -> int:
        now = time.time() if now_ts is None else float(now_ts)
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                "DELETE FROM key_value_cache WHERE expires_at IS NOT NULL AND expires_at <= ?",
                (now,),
            )
            conn.commit()
            return int(cur.rowcount or 0)
        finally:
            conn.close()

    def cache_count(self) -> int:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT COUNT(*) FROM key_value_cache")
            (n,) = cur.fetchone()
            return int(n)
        finally:
            conn.close()

    # ---- queue ----

    def queue_enqueue(
        self,
        *,
        task_name: str,
        arguments: str,
        added_at: float,
        expires_at: float | None,
        priority: int = 0,
    ) -> int:
        if not task_name or not task_name.strip():
            raise ValueError("task_name is required")

        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                INSERT INTO queued_tasks(task_name, arguments, added_at, expires_at, priority)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    task_name.strip(),
                    arguments,
                    float(added_at),
                    None if expires_at is None else float(expires_at),
                    int(priority),
                ),
            )
            conn.commit()
            rowid = cur.lastrowid
            if rowid is None:
                raise RuntimeError("SQLite did not return lastrowid for queued_tasks insert")
            return int(rowid)
        finally:
            conn.close()

    def queue_extract_next(self, now_ts: float | None = None) -> TaskRecord | None:
        """
        Next record to run, without deleting it.

        Order: priority DESC, added_at ASC, id ASC. Expired records are skipped.
        """
        now = time.time() if now_ts is None else float(now_ts)
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                SELECT *
                FROM queued_tasks
                WHERE expires_at IS NULL OR expires_at > ?
                ORDER BY priority DESC, added_at ASC, id ASC
                    LIMIT 1
                """,
                (now,),
            )
            row = cur.fetchone()
            return None if row is None else self._row_to_record(row)
        finally:
            conn.close()

    def queue_get(self, record_id: int) -> TaskRecord | None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT * FROM queued_tasks WHERE id = ?", (int(record_id),))
            row = cur.fetchone()
            return None if row is None else self._row_to_record(row)
        finally:
            conn.close()

    def queue_list(
        self,
        *,
        exclude_expired: bool = True,
        now_ts: float | None = None,
        limit: int | None = None,
    ) -> list[TaskRecord]:
        now = time.time() if now_ts is None else float(now_ts)
        where = "WHERE expires_at IS NULL OR expires_at > ?" if exclude_expired else ""
        params: list[object] = [now] if exclude_expired else []
        limit_sql = ""
        if limit is not None:
            limit_sql = "LIMIT ?"
            params.append(int(limit))

        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                f"""
                SELECT *
                FROM queued_tasks
                {where}
                ORDER BY priority DESC, added_at ASC, id ASC
                {limit_sql}
                """,
                params,
            )
            return [self._row_to_record(r) for r in cur.fetchall()]
        finally:
            conn.close()

    def queue_delete(self, record_id: int) -> None:
        conn = self._get_conn()
        try:
            conn.execute("DELETE FROM queued_tasks WHERE id = ?", (int(record_id),))
            conn.commit()
        finally:
            conn.close()

    def queue_cleanup_expired(self, now_ts: float | None = None) -> int:
        now = time.time() if now_ts is None else float(now_ts)
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                "DELETE FROM queued_tasks WHERE expires_at IS NOT NULL AND expires_at <= ?",
                (now,),
            )
            conn.commit()
            return int(cur.rowcount or 0)
        finally:
            conn.close()

    def queue_count(self) -> int:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT COUNT(*) FROM queued_tasks")
            (n,) = cur.fetchone()
            return int(n)
        finally:
            conn.close()
