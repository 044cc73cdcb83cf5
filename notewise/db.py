from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

import aiosqlite


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class PersistenceError(RuntimeError):
    """A generated summary could not be written to (or read from) history."""


class Database:
    def __init__(self, path: str):
        self.path = path

    async def init(self) -> None:
        try:
            await self._create_schema()
        except aiosqlite.Error as exc:
            raise PersistenceError(f"could not open history database {self.path}: {exc}") from exc

    async def _create_schema(self) -> None:
        async with aiosqlite.connect(self.path) as db:
            await db.executescript(
                """
                PRAGMA journal_mode=WAL;
                CREATE TABLE IF NOT EXISTS summaries(
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    original_text TEXT NOT NULL,
                    summary_text TEXT NOT NULL,
                    provider TEXT,
                    created_at TEXT NOT NULL
                );
                CREATE INDEX IF NOT EXISTS idx_summaries_created_at ON summaries(created_at);
                """
            )
            async def column_exists(table: str, column: str) -> bool:
                cursor = await db.execute(f"PRAGMA table_info({table})")
                rows = await cursor.fetchall()
                await cursor.close()
                return any(row[1] == column for row in rows)

            # Databases created before provider tracking lack the column.
            if not await column_exists("summaries", "provider"):
                await db.execute("ALTER TABLE summaries ADD COLUMN provider TEXT")
            await db.commit()

    async def execute(self, query: str, params: Tuple[Any, ...] = ()) -> int:
        async with aiosqlite.connect(self.path) as db:
            cursor = await db.execute(query, params)
            await db.commit()
            return cursor.rowcount

    async def fetchall(self, query: str, params: Tuple[Any, ...] = ()) -> List[aiosqlite.Row]:
        async with aiosqlite.connect(self.path) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(query, params)
            rows = await cursor.fetchall()
            await cursor.close()
            return rows

    async def add_summary(self, original_text: str, summary_text: str, provider: Optional[str] = None) -> Dict[str, Any]:
        created_at = utc_now()
        try:
            async with aiosqlite.connect(self.path) as db:
                cursor = await db.execute(
                    "INSERT INTO summaries(original_text, summary_text, provider, created_at) VALUES (?,?,?,?)",
                    (original_text, summary_text, provider, created_at),
                )
                await db.commit()
                summary_id = cursor.lastrowid
        except aiosqlite.Error as exc:
            raise PersistenceError(f"could not store summary: {exc}") from exc
        return {
            "id": summary_id,
            "original_text": original_text,
            "summary_text": summary_text,
            "created_at": created_at,
            "provider": provider,
        }

    async def list_summaries(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        query = "SELECT id, original_text, summary_text, created_at, provider FROM summaries ORDER BY created_at DESC, id DESC"
        params: Tuple[Any, ...] = ()
        if limit is not None:
            query += " LIMIT ?"
            params = (limit,)
        try:
            rows = await self.fetchall(query, params)
        except aiosqlite.Error as exc:
            raise PersistenceError(f"could not read history: {exc}") from exc
        return [dict(row) for row in rows]

    async def delete_summary(self, summary_id: int) -> bool:
        try:
            deleted = await self.execute("DELETE FROM summaries WHERE id=?", (summary_id,))
        except aiosqlite.Error as exc:
            raise PersistenceError(f"could not delete summary {summary_id}: {exc}") from exc
        return deleted > 0

    async def clear_summaries(self) -> int:
        try:
            return await self.execute("DELETE FROM summaries")
        except aiosqlite.Error as exc:
            raise PersistenceError(f"could not clear history: {exc}") from exc
