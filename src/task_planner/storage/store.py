# src/task_planner/storage/store.py

from __future__ import annotations

import contextlib
import functools
import logging
import sqlite3
import time
from collections.abc import Callable, Iterator, Sequence
from pathlib import Path
from typing import Any, TypeVar

from ..core.errors import AlreadyExists, InvalidInput, NotFound, StoreFailure
from ..core.models import Account, Task
from .passwords import check_password

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


def _store_call(fn: F) -> F:
    """
    Translate sqlite3 errors into the core error taxonomy.

    UNIQUE violations become AlreadyExists; every other sqlite error
    (including trigger aborts and lock timeouts) becomes StoreFailure.
    """

    @functools.wraps(fn)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return fn(*args, **kwargs)
        except sqlite3.IntegrityError as e:
            if "UNIQUE constraint failed" in str(e):
                raise AlreadyExists(str(e)) from e
            logger.exception("Store integrity failure in %s", fn.__name__)
            raise StoreFailure(str(e)) from e
        except sqlite3.Error as e:
            logger.exception("Store failure in %s", fn.__name__)
            raise StoreFailure(str(e)) from e

    return wrapper  # type: ignore[return-value]


class SQLiteStore:
    """
    SQLite persistence for accounts, platform sessions, tasks and subtasks.

    The schema is migration-safe:
    - create tables if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    Thread-safety:
    - each method opens its own SQLite connection
    - multi-statement writes run inside BEGIN IMMEDIATE, so concurrent writers
      for the same account serialize on the database lock
    """

    def __init__(self, db_path: str | Path = "tasks.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        logger.info("SQLiteStore ready db=%s", self._db_path)

    @property
    def db_path(self) -> Path:
        return self._db_path

    def close(self) -> None:
        """Compatibility hook for shutdown (no persistent connections to close)."""
        return

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        # isolation_level=None: no implicit transactions; writes that need
        # atomicity open one explicitly via _write_tx().
        conn = sqlite3.connect(str(self._db_path), timeout=30.0, isolation_level=None)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA foreign_keys=ON")

    @contextlib.contextmanager
    def _read(self) -> Iterator[sqlite3.Connection]:
        conn = self._get_conn()
        try:
            yield conn
        finally:
            conn.close()

    @contextlib.contextmanager
    def _write_tx(self) -> Iterator[sqlite3.Connection]:
        conn = self._get_conn()
        try:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                with contextlib.suppress(sqlite3.Error):
                    conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")
        finally:
            conn.close()

    def _ensure_schema(self) -> None:
        with self._write_tx() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS accounts (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    username TEXT NOT NULL UNIQUE,
                    password_hash TEXT NOT NULL,
                    created_at REAL NOT NULL DEFAULT 0
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS sessions (
                    platform_type TEXT NOT NULL,
                    platform_id TEXT NOT NULL,
                    account_id INTEGER NOT NULL,
                    created_at REAL NOT NULL DEFAULT 0,
                    FOREIGN KEY (account_id) REFERENCES accounts(id) ON DELETE CASCADE,
                    UNIQUE (platform_type, platform_id)
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    account_id INTEGER NOT NULL,
                    text TEXT NOT NULL,
                    created_at REAL NOT NULL DEFAULT 0,
                    FOREIGN KEY (account_id) REFERENCES accounts(id) ON DELETE CASCADE,
                    UNIQUE (account_id, text)
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS completed_tasks (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    account_id INTEGER NOT NULL,
                    text TEXT NOT NULL,
                    completed_at REAL NOT NULL DEFAULT 0,
                    FOREIGN KEY (account_id) REFERENCES accounts(id) ON DELETE CASCADE,
                    UNIQUE (account_id, text)
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS subtasks (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    task_id INTEGER NOT NULL,
                    text TEXT NOT NULL,
                    created_at REAL NOT NULL DEFAULT 0,
                    FOREIGN KEY (task_id) REFERENCES tasks(id) ON DELETE CASCADE,
                    UNIQUE (task_id, text)
                )
                """
            )

            # Migrations (safe): older databases were created without timestamps.
            def add_col(table: str, name: str, decl: str) -> None:
                cols = {row["name"] for row in conn.execute(f"PRAGMA table_info({table})")}
                if name in cols:
                    return
                conn.execute(f"ALTER TABLE {table} ADD COLUMN {name} {decl}")
                logger.info("SQLiteStore migration: added column %s.%s", table, name)

            add_col("accounts", "created_at", "REAL NOT NULL DEFAULT 0")
            add_col("sessions", "created_at", "REAL NOT NULL DEFAULT 0")
            add_col("tasks", "created_at", "REAL NOT NULL DEFAULT 0")
            add_col("completed_tasks", "completed_at", "REAL NOT NULL DEFAULT 0")
            add_col("subtasks", "created_at", "REAL NOT NULL DEFAULT 0")

            conn.execute("CREATE INDEX IF NOT EXISTS idx_sessions_account ON sessions(account_id)")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_subtasks_task ON subtasks(task_id)")

    @staticmethod
    def _row_to_task(row: sqlite3.Row) -> Task:
        return Task(id=int(row["id"]), account_id=int(row["account_id"]), text=str(row["text"]))

    # ---- accounts ----

    @_store_call
    def user_exists(self, username: str) -> bool:
        with self._read() as conn:
            row = conn.execute("SELECT 1 FROM accounts WHERE username = ?", (username,)).fetchone()
            return row is not None

    @_store_call
    def create_account(self, username: str, password_hash: str) -> int:
        with self._write_tx() as conn:
            return self._insert_account(conn, username, password_hash)

    @staticmethod
    def _insert_account(conn: sqlite3.Connection, username: str, password_hash: str) -> int:
        if not username or not password_hash:
            raise InvalidInput("username and password_hash are required")
        cur = conn.execute(
            "INSERT INTO accounts(username, password_hash, created_at) VALUES (?, ?, ?)",
            (username, password_hash, time.time()),
        )
        rowid = cur.lastrowid
        if rowid is None:
            raise RuntimeError("SQLite did not return lastrowid for accounts insert")
        return int(rowid)

    @staticmethod
    def _upsert_session(conn: sqlite3.Connection, platform: str, platform_id: str, account_id: int) -> None:
        conn.execute(
            """
            INSERT INTO sessions(platform_type, platform_id, account_id, created_at)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(platform_type, platform_id)
                DO UPDATE SET account_id = excluded.account_id, created_at = excluded.created_at
            """,
            (platform, platform_id, int(account_id), time.time()),
        )

    @_store_call
    def create_account_and_bind(
        self,
        username: str,
        password_hash: str,
        *,
        platform: str,
        platform_id: str,
    ) -> int:
        """Insert the account and bind the session in one transaction."""
        with self._write_tx() as conn:
            account_id = self._insert_account(conn, username, password_hash)
            self._upsert_session(conn, platform, platform_id, account_id)
        logger.debug("Account created id=%s and bound to %s:%s", account_id, platform, platform_id)
        return account_id

    @_store_call
    def verify_password(self, username: str, candidate: str) -> int | None:
        with self._read() as conn:
            row = conn.execute(
                "SELECT id, password_hash FROM accounts WHERE username = ?",
                (username,),
            ).fetchone()
        if row is None:
            return None
        if not check_password(candidate, str(row["password_hash"])):
            return None
        return int(row["id"])

    @_store_call
    def get_account(self, account_id: int) -> Account | None:
        with self._read() as conn:
            row = conn.execute("SELECT id, username FROM accounts WHERE id = ?", (int(account_id),)).fetchone()
        return Account(id=int(row["id"]), username=str(row["username"])) if row else None

    # ---- sessions ----

    @_store_call
    def bind_session(self, platform: str, platform_id: str, account_id: int) -> None:
        with self._write_tx() as conn:
            self._upsert_session(conn, platform, platform_id, account_id)

    @_store_call
    def unbind_session(self, platform: str, platform_id: str) -> bool:
        with self._write_tx() as conn:
            cur = conn.execute(
                "DELETE FROM sessions WHERE platform_type = ? AND platform_id = ?",
                (platform, platform_id),
            )
            return cur.rowcount > 0

    @_store_call
    def resolve_account(self, platform: str, platform_id: str) -> int | None:
        with self._read() as conn:
            row = conn.execute(
                """
                SELECT s.account_id
                FROM sessions s
                JOIN accounts a ON a.id = s.account_id
                WHERE s.platform_type = ? AND s.platform_id = ?
                """,
                (platform, platform_id),
            ).fetchone()
        return int(row["account_id"]) if row else None

    # ---- tasks ----

    @_store_call
    def list_current_tasks(self, account_id: int) -> list[Task]:
        with self._read() as conn:
            rows = conn.execute(
                "SELECT id, account_id, text FROM tasks WHERE account_id = ? ORDER BY id",
                (int(account_id),),
            ).fetchall()
        return [self._row_to_task(r) for r in rows]

    @_store_call
    def list_completed_tasks(self, account_id: int) -> list[str]:
        with self._read() as conn:
            rows = conn.execute(
                "SELECT text FROM completed_tasks WHERE account_id = ? ORDER BY id",
                (int(account_id),),
            ).fetchall()
        return [str(r["text"]) for r in rows]

    @_store_call
    def find_task(self, account_id: int, text: str) -> Task | None:
        with self._read() as conn:
            row = conn.execute(
                "SELECT id, account_id, text FROM tasks WHERE account_id = ? AND text = ?",
                (int(account_id), text),
            ).fetchone()
        return self._row_to_task(row) if row else None

    @_store_call
    def get_task(self, task_id: int) -> Task | None:
        with self._read() as conn:
            row = conn.execute("SELECT id, account_id, text FROM tasks WHERE id = ?", (int(task_id),)).fetchone()
        return self._row_to_task(row) if row else None

    @_store_call
    def insert_task(self, account_id: int, text: str) -> int:
        if not text or not text.strip():
            raise InvalidInput("task text is required")
        with self._write_tx() as conn:
            cur = conn.execute(
                "INSERT INTO tasks(account_id, text, created_at) VALUES (?, ?, ?)",
                (int(account_id), text, time.time()),
            )
            rowid = cur.lastrowid
        if rowid is None:
            raise RuntimeError("SQLite did not return lastrowid for tasks insert")
        logger.debug("Task added id=%s account=%s", rowid, account_id)
        return int(rowid)

    @_store_call
    def delete_task(self, account_id: int, text: str) -> None:
        # Subtasks go with it (ON DELETE CASCADE).
        with self._write_tx() as conn:
            cur = conn.execute(
                "DELETE FROM tasks WHERE account_id = ? AND text = ?",
                (int(account_id), text),
            )
            if cur.rowcount == 0:
                raise NotFound(text)

    @_store_call
    def complete_task(self, account_id: int, text: str) -> None:
        """
        Move a task from current to completed.

        Delete and insert share one transaction: if the insert fails the delete
        is rolled back. The delete's row count decides the winner when two
        completions race.
        """
        with self._write_tx() as conn:
            cur = conn.execute(
                "DELETE FROM tasks WHERE account_id = ? AND text = ?",
                (int(account_id), text),
            )
            if cur.rowcount == 0:
                raise NotFound(text)
            conn.execute(
                """
                INSERT INTO completed_tasks(account_id, text, completed_at)
                VALUES (?, ?, ?)
                ON CONFLICT(account_id, text) DO UPDATE SET completed_at = excluded.completed_at
                """,
                (int(account_id), text, time.time()),
            )

    @_store_call
    def replace_tasks(self, account_id: int, current: Sequence[str], completed: Sequence[str]) -> None:
        """Replace both task sets of one account atomically (import)."""
        now = time.time()
        with self._write_tx() as conn:
            conn.execute("DELETE FROM tasks WHERE account_id = ?", (int(account_id),))
            conn.execute("DELETE FROM completed_tasks WHERE account_id = ?", (int(account_id),))
            conn.executemany(
                "INSERT INTO tasks(account_id, text, created_at) VALUES (?, ?, ?)",
                [(int(account_id), t, now) for t in current],
            )
            conn.executemany(
                "INSERT INTO completed_tasks(account_id, text, completed_at) VALUES (?, ?, ?)",
                [(int(account_id), t, now) for t in completed],
            )

    # ---- subtasks ----

    @_store_call
    def list_subtasks(self, task_id: int) -> list[str]:
        with self._read() as conn:
            rows = conn.execute(
                "SELECT text FROM subtasks WHERE task_id = ? ORDER BY id",
                (int(task_id),),
            ).fetchall()
        return [str(r["text"]) for r in rows]

    @_store_call
    def insert_subtask(self, task_id: int, text: str) -> None:
        if not text or not text.strip():
            raise InvalidInput("subtask text is required")
        with self._write_tx() as conn:
            try:
                conn.execute(
                    "INSERT INTO subtasks(task_id, text, created_at) VALUES (?, ?, ?)",
                    (int(task_id), text, time.time()),
                )
            except sqlite3.IntegrityError as e:
                if "FOREIGN KEY" in str(e):
                    raise NotFound(f"task {task_id}") from e
                raise

    @_store_call
    def insert_subtasks(self, task_id: int, texts: Sequence[str]) -> int:
        """Insert many subtasks, skipping ones that already exist. Returns how many were added."""
        added = 0
        now = time.time()
        with self._write_tx() as conn:
            if conn.execute("SELECT 1 FROM tasks WHERE id = ?", (int(task_id),)).fetchone() is None:
                raise NotFound(f"task {task_id}")
            for text in texts:
                cur = conn.execute(
                    "INSERT OR IGNORE INTO subtasks(task_id, text, created_at) VALUES (?, ?, ?)",
                    (int(task_id), text, now),
                )
                added += cur.rowcount
        return added

    @_store_call
    def delete_subtask(self, task_id: int, text: str) -> None:
        with self._write_tx() as conn:
            cur = conn.execute(
                "DELETE FROM subtasks WHERE task_id = ? AND text = ?",
                (int(task_id), text),
            )
            if cur.rowcount == 0:
                raise NotFound(text)

    @_store_call
    def rename_subtask(self, task_id: int, old_text: str, new_text: str) -> None:
        with self._write_tx() as conn:
            cur = conn.execute(
                "UPDATE subtasks SET text = ? WHERE task_id = ? AND text = ?",
                (new_text, int(task_id), old_text),
            )
            if cur.rowcount == 0:
                raise NotFound(old_text)
