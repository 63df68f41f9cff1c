"""Async access to the scheduler database through libsql.

Every blocking driver call runs in ``asyncio.to_thread()``. Which database
is opened depends on settings:

- ``TURSO_DATABASE_URL`` set → hosted libSQL, authenticated with
  ``TURSO_AUTH_TOKEN``
- otherwise → a local SQLite file at ``database_path``

Tests pass an explicit path, which always wins.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

import libsql

from src.config import settings

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from pathlib import Path

# Local files only. busy_timeout goes first so the WAL switch waits on a held lock
_LOCAL_PRAGMAS = ("PRAGMA busy_timeout=5000", "PRAGMA journal_mode=WAL")


class _AsyncCursor:
    """Awaitable view of a libsql cursor."""

    def __init__(self, cursor: Any) -> None:
        self._cursor = cursor

    async def fetchone(self) -> tuple | None:
        return await asyncio.to_thread(self._cursor.fetchone)

    async def fetchall(self) -> list[tuple]:
        return await asyncio.to_thread(self._cursor.fetchall)

    @property
    def rowcount(self) -> int:
        return self._cursor.rowcount


class _AsyncConnection:
    """Awaitable view of a libsql connection."""

    def __init__(self, conn: Any) -> None:
        self._conn = conn

    async def execute(self, sql: str, params: tuple = ()) -> _AsyncCursor:
        return _AsyncCursor(await asyncio.to_thread(self._conn.execute, sql, params))

    async def execute_script(self, statements: list[str]) -> None:
        """Run several statements in order (schema bootstrap)."""
        for sql in statements:
            await asyncio.to_thread(self._conn.execute, sql)

    async def scalar(self, sql: str, params: tuple = (), default: Any = None) -> Any:
        """First column of the first row, or *default* when there is none."""
        row = await (await self.execute(sql, params)).fetchone()
        return default if row is None else row[0]

    async def commit(self) -> None:
        await asyncio.to_thread(self._conn.commit)

    async def close(self) -> None:
        await asyncio.to_thread(self._conn.close)


def _connect_local(path: Path) -> Any:
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = libsql.connect(str(path))
    for pragma in _LOCAL_PRAGMAS:
        conn.execute(pragma)
    return conn


def _connect_remote(url: str, auth_token: str) -> Any:
    return libsql.connect(database=url, auth_token=auth_token)


async def get_connection(local_path_override: Path | None = None) -> _AsyncConnection:
    """Open a connection to the configured database (caller must close it)."""
    if local_path_override:
        conn = await asyncio.to_thread(_connect_local, local_path_override)
    elif settings.turso_database_url:
        conn = await asyncio.to_thread(
            _connect_remote, settings.turso_database_url, settings.turso_auth_token
        )
    else:
        conn = await asyncio.to_thread(_connect_local, settings.database_path)
    return _AsyncConnection(conn)


@asynccontextmanager
async def connection(local_path_override: Path | None = None) -> AsyncIterator[_AsyncConnection]:
    """``async with connection() as db:``; the connection is closed on exit."""
    db = await get_connection(local_path_override)
    try:
        yield db
    finally:
        await db.close()
