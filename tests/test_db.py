"""Tests for the libsql connection helpers."""

from pathlib import Path

import pytest

from src.db import _AsyncConnection, connection, get_connection

pytestmark = pytest.mark.usefixtures("_no_turso")


async def test_override_path_creates_parent_dirs(tmp_path: Path) -> None:
    db_path = tmp_path / "nested" / "alerts.db"
    conn = await get_connection(local_path_override=db_path)
    try:
        assert isinstance(conn, _AsyncConnection)
        assert db_path.parent.is_dir()
    finally:
        await conn.close()


async def test_default_path_from_settings(tmp_path: Path, monkeypatch) -> None:
    db_path = tmp_path / "data" / "agrotask.db"
    monkeypatch.setattr("src.config.settings.database_path", db_path)

    async with connection() as db:
        await db.execute("CREATE TABLE t (id INTEGER PRIMARY KEY)")
        await db.commit()

    assert db_path.exists()


async def test_rows_persist_across_connections(tmp_path: Path) -> None:
    db_path = tmp_path / "alerts.db"
    async with connection(local_path_override=db_path) as db:
        await db.execute("CREATE TABLE log (id TEXT PRIMARY KEY, ok INTEGER)")
        await db.execute("INSERT INTO log (id, ok) VALUES (?, ?)", ("a", 1))
        await db.execute("INSERT INTO log (id, ok) VALUES (?, ?)", ("b", 0))
        await db.commit()

    async with connection(local_path_override=db_path) as db:
        rows = await (await db.execute("SELECT id, ok FROM log ORDER BY id")).fetchall()
        missing = await (await db.execute("SELECT id FROM log WHERE id = ?", ("z",))).fetchone()

    assert rows == [("a", 1), ("b", 0)]
    assert missing is None


async def test_rowcount_reports_updated_rows(tmp_path: Path) -> None:
    async with connection(local_path_override=tmp_path / "alerts.db") as db:
        await db.execute("CREATE TABLE t (id INTEGER PRIMARY KEY, status TEXT)")
        await db.execute("INSERT INTO t (status) VALUES (?)", ("pending",))
        await db.execute("INSERT INTO t (status) VALUES (?)", ("pending",))
        cursor = await db.execute("UPDATE t SET status = ? WHERE id = ?", ("completed", 1))
        assert cursor.rowcount == 1


async def test_execute_script_and_scalar(tmp_path: Path) -> None:
    async with connection(local_path_override=tmp_path / "alerts.db") as db:
        await db.execute_script(
            [
                "CREATE TABLE t (id INTEGER PRIMARY KEY, kind TEXT)",
                "CREATE INDEX idx_t_kind ON t (kind)",
                "INSERT INTO t (kind) VALUES ('individual')",
            ]
        )
        await db.commit()

        assert await db.scalar("SELECT COUNT(*) FROM t WHERE kind = ?", ("individual",)) == 1
        assert await db.scalar("SELECT kind FROM t WHERE id = ?", (99,), default="none") == "none"
        index = await db.scalar(
            "SELECT name FROM sqlite_master WHERE type = 'index' AND tbl_name = 't'"
        )
        assert index == "idx_t_kind"


async def test_connection_closed_when_body_raises(tmp_path: Path) -> None:
    closed = []
    with pytest.raises(RuntimeError):
        async with connection(local_path_override=tmp_path / "alerts.db") as db:
            original_close = db.close

            async def _close() -> None:
                closed.append(True)
                await original_close()

            db.close = _close
            raise RuntimeError("boom")
    assert closed == [True]
