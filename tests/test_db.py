import sqlite3
from pathlib import Path

import pytest

from notewise.db import Database, PersistenceError


@pytest.mark.asyncio
async def test_db_init_creates_tables(tmp_path: Path):
    db = Database(str(tmp_path / "schema.db"))
    await db.init()
    rows = await db.fetchall("SELECT name FROM sqlite_master WHERE type='table'")
    tables = {row["name"] for row in rows}
    assert "summaries" in tables
    # Idempotent across restarts.
    await db.init()


@pytest.mark.asyncio
async def test_add_and_list_newest_first(tmp_path: Path):
    db = Database(str(tmp_path / "history.db"))
    await db.init()
    first = await db.add_summary("first text", "first", provider="ollama")
    second = await db.add_summary("second text", "second", provider="gemini")

    assert second["id"] > first["id"]
    assert first["created_at"].endswith("Z")
    rows = await db.list_summaries()
    assert [row["id"] for row in rows] == [second["id"], first["id"]]
    assert rows[0]["provider"] == "gemini"
    assert rows[1]["original_text"] == "first text"

    limited = await db.list_summaries(limit=1)
    assert [row["id"] for row in limited] == [second["id"]]


@pytest.mark.asyncio
async def test_delete_and_clear(tmp_path: Path):
    db = Database(str(tmp_path / "history.db"))
    await db.init()
    record = await db.add_summary("a text", "a")
    await db.add_summary("b text", "b")
    await db.add_summary("c text", "c")

    assert await db.delete_summary(record["id"]) is True
    assert await db.delete_summary(record["id"]) is False
    assert record["id"] not in [row["id"] for row in await db.list_summaries()]

    assert await db.clear_summaries() == 2
    assert await db.list_summaries() == []
    assert await db.clear_summaries() == 0


@pytest.mark.asyncio
async def test_db_migration_adds_provider_column(tmp_path: Path):
    db_path = tmp_path / "legacy.db"
    conn = sqlite3.connect(db_path)
    conn.executescript(
        """
        CREATE TABLE summaries(
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            original_text TEXT NOT NULL,
            summary_text TEXT NOT NULL,
            created_at TEXT NOT NULL
        );
        """
    )
    conn.execute(
        "INSERT INTO summaries(original_text, summary_text, created_at) VALUES (?,?,?)",
        ("old text", "old summary", "2024-01-01T00:00:00Z"),
    )
    conn.commit()
    conn.close()

    db = Database(str(db_path))
    await db.init()

    rows = await db.list_summaries()
    assert rows[0]["summary_text"] == "old summary"
    assert rows[0]["provider"] is None
    record = await db.add_summary("new text", "new summary", provider="huggingface")
    assert (await db.list_summaries())[0]["id"] == record["id"]


@pytest.mark.asyncio
async def test_db_init_failure_raises_persistence_error(tmp_path: Path):
    db = Database(str(tmp_path / "missing-dir" / "history.db"))
    with pytest.raises(PersistenceError):
        await db.init()
