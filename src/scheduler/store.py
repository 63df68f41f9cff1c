"""SchedulerStore — libsql persistence for tasks, reminders, recipients, shifts and the execution log."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from src.db import connection
from src.scheduler.models import (
    SCHEDULABLE_COLUMNS,
    STATUS_PENDING,
    ExecutionLogEntry,
    Recipient,
    Schedulable,
    ShiftDefinition,
    format_timestamp,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from datetime import datetime
    from pathlib import Path

    from src.db import _AsyncConnection

logger = logging.getLogger(__name__)

ENTITY_TASK = "task"
ENTITY_REMINDER = "reminder"

_ENTITY_TABLES = {ENTITY_TASK: "tasks", ENTITY_REMINDER: "reminders"}

_SCHEDULABLE_DDL = """
CREATE TABLE IF NOT EXISTS {table} (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    status TEXT NOT NULL DEFAULT 'pending',
    scheduled_date TEXT,
    is_repeating INTEGER NOT NULL DEFAULT 0,
    repeat_interval INTEGER NOT NULL DEFAULT 1,
    repeat_unit TEXT NOT NULL DEFAULT 'day',
    repeat_start_date TEXT,
    repeat_days_of_week TEXT NOT NULL DEFAULT '[]',
    repeat_end_type TEXT NOT NULL DEFAULT 'never',
    repeat_end_date TEXT,
    repeat_occurrences INTEGER,
    should_send_notification INTEGER NOT NULL DEFAULT 1,
    message TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
)
"""

_SCHEMA = [
    _SCHEDULABLE_DDL.format(table="tasks"),
    _SCHEDULABLE_DDL.format(table="reminders"),
    """
    CREATE TABLE IF NOT EXISTS recipients (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        phone TEXT,
        active INTEGER NOT NULL DEFAULT 1,
        is_admin INTEGER NOT NULL DEFAULT 0
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS task_recipients (
        task_id TEXT NOT NULL,
        recipient_id TEXT NOT NULL,
        PRIMARY KEY (task_id, recipient_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS shifts (
        id TEXT PRIMARY KEY,
        title TEXT NOT NULL,
        time TEXT NOT NULL,
        alert_minutes_before INTEGER NOT NULL DEFAULT 0,
        message TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS execution_log (
        id TEXT PRIMARY KEY,
        entity_id TEXT,
        recipient_id TEXT NOT NULL,
        alert_kind TEXT NOT NULL,
        executed_at TEXT NOT NULL,
        success INTEGER NOT NULL,
        error_message TEXT,
        metadata TEXT NOT NULL DEFAULT '{}'
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_execution_log_key
        ON execution_log (entity_id, recipient_id, alert_kind, executed_at)
    """,
]

_RECIPIENT_COLUMNS = "id, name, phone, active, is_admin"
_LOG_COLUMNS = (
    "id, entity_id, recipient_id, alert_kind, executed_at, success, error_message, metadata"
)


def _table(entity_type: str) -> str:
    try:
        return _ENTITY_TABLES[entity_type]
    except KeyError:
        msg = f"Unknown entity type: {entity_type}"
        raise ValueError(msg) from None


class SchedulerStore:
    """Reads scheduler inputs and appends execution-log rows.

    Singleton accessed via ``SchedulerStore.get()``.  Pass an explicit
    *db_path* for test isolation (e.g. ``tmp_path / "test.db"``).

    Calls are serialized on one lock per store: the activity passes run
    concurrently and a local SQLite file takes one writer at a time.
    """

    _instance: SchedulerStore | None = None

    def __init__(self, db_path: Path | None = None) -> None:
        self._db_path = db_path
        self._initialised = False
        self._lock = asyncio.Lock()

    @classmethod
    def get(cls) -> SchedulerStore:
        """Return the shared SchedulerStore instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def _reset(cls) -> None:
        """Reset the singleton (for testing)."""
        cls._instance = None

    # -- Internal helpers ------------------------------------------------------

    @asynccontextmanager
    async def _connect(self) -> AsyncIterator[_AsyncConnection]:
        """Hold the store lock for the lifetime of one connection.

        Not re-entrant: store methods must not call each other while inside.
        """
        async with self._lock, connection(local_path_override=self._db_path) as db:
            if not self._initialised:
                await db.execute_script(_SCHEMA)
                await db.commit()
                self._initialised = True
            yield db

    async def _recipient_ids(self, db: _AsyncConnection, task_id: str) -> list[str]:
        cursor = await db.execute(
            "SELECT recipient_id FROM task_recipients WHERE task_id = ? ORDER BY recipient_id",
            (task_id,),
        )
        return [row[0] for row in await cursor.fetchall()]

    async def _load_tasks(self, db: _AsyncConnection, sql: str, params: tuple) -> list[Schedulable]:
        cursor = await db.execute(sql, params)
        rows = await cursor.fetchall()
        return [Schedulable.from_row(row, await self._recipient_ids(db, row[0])) for row in rows]

    # -- Seeding ---------------------------------------------------------------

    async def add_entity(self, entity_type: str, entity: Schedulable) -> Schedulable:
        """Insert a task or reminder (and, for tasks, its recipient links)."""
        table = _table(entity_type)
        placeholders = ", ".join("?" * len(entity.to_row()))
        async with self._connect() as db:
            await db.execute(
                f"INSERT INTO {table} ({SCHEDULABLE_COLUMNS}) VALUES ({placeholders})",  # noqa: S608
                entity.to_row(),
            )
            if entity_type == ENTITY_TASK:
                for recipient_id in entity.recipient_ids:
                    await db.execute(
                        "INSERT OR IGNORE INTO task_recipients (task_id, recipient_id) VALUES (?, ?)",
                        (entity.id, recipient_id),
                    )
            await db.commit()
        logger.info("Added %s: %s (%s)", entity_type, entity.title, entity.id)
        return entity

    async def add_task(self, task: Schedulable) -> Schedulable:
        return await self.add_entity(ENTITY_TASK, task)

    async def add_reminder(self, reminder: Schedulable) -> Schedulable:
        return await self.add_entity(ENTITY_REMINDER, reminder)

    async def add_recipient(self, recipient: Recipient) -> Recipient:
        async with self._connect() as db:
            await db.execute(
                f"INSERT INTO recipients ({_RECIPIENT_COLUMNS}) VALUES (?, ?, ?, ?, ?)",
                recipient.to_row(),
            )
            await db.commit()
        return recipient

    async def assign_recipient(self, task_id: str, recipient_id: str) -> None:
        """Link a recipient to a task (idempotent)."""
        async with self._connect() as db:
            await db.execute(
                "INSERT OR IGNORE INTO task_recipients (task_id, recipient_id) VALUES (?, ?)",
                (task_id, recipient_id),
            )
            await db.commit()

    async def add_shift(self, shift: ShiftDefinition) -> ShiftDefinition:
        async with self._connect() as db:
            await db.execute(
                "INSERT INTO shifts (id, title, time, alert_minutes_before, message)"
                " VALUES (?, ?, ?, ?, ?)",
                shift.to_row(),
            )
            await db.commit()
        return shift

    # -- Reads -----------------------------------------------------------------

    async def list_shifts(self) -> list[ShiftDefinition]:
        """All shift definitions, earliest first."""
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT id, title, time, alert_minutes_before, message FROM shifts ORDER BY time"
            )
            return [ShiftDefinition.from_row(row) for row in await cursor.fetchall()]

    async def list_active_recipients(self) -> list[Recipient]:
        async with self._connect() as db:
            cursor = await db.execute(
                f"SELECT {_RECIPIENT_COLUMNS} FROM recipients WHERE active = 1 ORDER BY name"
            )
            return [Recipient.from_row(row) for row in await cursor.fetchall()]

    async def list_admin_recipients(self) -> list[Recipient]:
        """Active recipients flagged as administrators."""
        async with self._connect() as db:
            cursor = await db.execute(
                f"SELECT {_RECIPIENT_COLUMNS} FROM recipients"
                " WHERE active = 1 AND is_admin = 1 ORDER BY name"
            )
            return [Recipient.from_row(row) for row in await cursor.fetchall()]

    async def list_task_recipients(self, task_id: str) -> list[Recipient]:
        """Every recipient linked to *task_id*, active or not."""
        async with self._connect() as db:
            cursor = await db.execute(
                f"SELECT r.{_RECIPIENT_COLUMNS.replace(', ', ', r.')} FROM recipients r"
                " JOIN task_recipients tr ON tr.recipient_id = r.id"
                " WHERE tr.task_id = ? ORDER BY r.name",
                (task_id,),
            )
            return [Recipient.from_row(row) for row in await cursor.fetchall()]

    async def list_pending_tasks(
        self,
        recipient_id: str | None = None,
        *,
        notifiable_only: bool = True,
    ) -> list[Schedulable]:
        """Pending tasks, optionally only those linked to *recipient_id*.

        With ``notifiable_only`` (default) tasks whose notification gate is
        off are excluded.
        """
        clauses = ["t.status = ?"]
        params: list = [STATUS_PENDING]
        if notifiable_only:
            clauses.append("t.should_send_notification = 1")
        join = ""
        if recipient_id is not None:
            join = " JOIN task_recipients tr ON tr.task_id = t.id"
            clauses.append("tr.recipient_id = ?")
            params.append(recipient_id)
        columns = ", ".join(f"t.{c.strip()}" for c in SCHEDULABLE_COLUMNS.split(","))
        sql = (
            f"SELECT {columns} FROM tasks t{join} WHERE {' AND '.join(clauses)}"  # noqa: S608
            " ORDER BY t.scheduled_date IS NULL, t.scheduled_date"
        )
        async with self._connect() as db:
            return await self._load_tasks(db, sql, tuple(params))

    async def list_pending_reminders(self) -> list[Schedulable]:
        async with self._connect() as db:
            cursor = await db.execute(
                f"SELECT {SCHEDULABLE_COLUMNS} FROM reminders WHERE status = ?"  # noqa: S608
                " ORDER BY scheduled_date IS NULL, scheduled_date",
                (STATUS_PENDING,),
            )
            return [Schedulable.from_row(row) for row in await cursor.fetchall()]

    async def get_entity(self, entity_type: str, entity_id: str) -> Schedulable | None:
        """Fetch a task or reminder by ID, or None if not found."""
        table = _table(entity_type)
        async with self._connect() as db:
            cursor = await db.execute(
                f"SELECT {SCHEDULABLE_COLUMNS} FROM {table} WHERE id = ?",  # noqa: S608
                (entity_id,),
            )
            row = await cursor.fetchone()
            if row is None:
                return None
            ids = await self._recipient_ids(db, entity_id) if entity_type == ENTITY_TASK else []
            return Schedulable.from_row(row, ids)

    # -- Writes ----------------------------------------------------------------

    async def update_status(self, entity_type: str, entity_id: str, status: str) -> bool:
        """Set an entity's status. Returns True if a row was updated."""
        table = _table(entity_type)
        async with self._connect() as db:
            cursor = await db.execute(
                f"UPDATE {table} SET status = ? WHERE id = ?",  # noqa: S608
                (status, entity_id),
            )
            await db.commit()
            updated = cursor.rowcount > 0
        if updated:
            logger.info("Set %s %s status=%s", entity_type, entity_id, status)
        return updated

    # -- Execution log ---------------------------------------------------------

    async def append_log(self, entry: ExecutionLogEntry) -> ExecutionLogEntry:
        """Append one execution-log row."""
        async with self._connect() as db:
            await db.execute(
                f"INSERT INTO execution_log ({_LOG_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                entry.to_row(),
            )
            await db.commit()
        return entry

    async def count_logs(
        self,
        *,
        recipient_id: str,
        alert_kind: str,
        start: datetime,
        end: datetime,
        entity_id: str | None = None,
        since: datetime | None = None,
    ) -> int:
        """Count rows for a key with ``executed_at`` in ``[start, end)``.

        *entity_id* narrows to one entity; *since* drops rows older than it.
        """
        clauses = ["recipient_id = ?", "alert_kind = ?", "executed_at >= ?", "executed_at < ?"]
        params: list = [recipient_id, alert_kind, format_timestamp(start), format_timestamp(end)]
        if entity_id is not None:
            clauses.append("entity_id = ?")
            params.append(entity_id)
        if since is not None:
            clauses.append("executed_at >= ?")
            params.append(format_timestamp(since))
        async with self._connect() as db:
            count = await db.scalar(
                f"SELECT COUNT(*) FROM execution_log WHERE {' AND '.join(clauses)}",  # noqa: S608
                tuple(params),
                default=0,
            )
        return int(count)

    async def count_entity_logs(self, entity_id: str, alert_kind: str) -> int:
        """Count every row (any outcome) for an entity under one alert kind."""
        async with self._connect() as db:
            count = await db.scalar(
                "SELECT COUNT(*) FROM execution_log WHERE entity_id = ? AND alert_kind = ?",
                (entity_id, alert_kind),
                default=0,
            )
        return int(count)

    async def list_logs(self, entity_id: str | None = None) -> list[ExecutionLogEntry]:
        """Execution-log rows in insertion time order, optionally for one entity."""
        sql = f"SELECT {_LOG_COLUMNS} FROM execution_log"  # noqa: S608
        params: tuple = ()
        if entity_id is not None:
            sql += " WHERE entity_id = ?"
            params = (entity_id,)
        sql += " ORDER BY executed_at"
        async with self._connect() as db:
            cursor = await db.execute(sql, params)
            return [ExecutionLogEntry.from_row(row) for row in await cursor.fetchall()]
