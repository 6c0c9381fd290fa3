"""
Single aiosqlite connection shared by the storage layer.

Reads go straight through :attr:`ConnectionManager.connection`. Writes use
:meth:`ConnectionManager.transaction`, which holds a process-wide writer lock
until the block commits or rolls back, so a read-then-update on a warning
counter cannot interleave with another task doing the same.

    await db_connection.open(path)
    async with db_connection.transaction() as conn:
        await conn.execute("UPDATE ...")
    await db_connection.close()
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

import aiosqlite

from serversense.util.logger import get_logger

logger = get_logger("database_connection")

CONNECTION_PRAGMAS: dict[str, str] = {
    "journal_mode": "WAL",
    "synchronous": "NORMAL",
    "foreign_keys": "ON",
    "temp_store": "MEMORY",
    "busy_timeout": "5000",
}


class ConnectionManager:
    """Opens, hands out and closes the bot's SQLite connection."""

    def __init__(self) -> None:
        self._conn: aiosqlite.Connection | None = None
        self._writer_lock = asyncio.Lock()
        self.path: Path | None = None

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    @property
    def connection(self) -> aiosqlite.Connection:
        """
        The open connection.

        Raises:
            RuntimeError: Before ``open()`` or after ``close()``.
        """
        if self._conn is None:
            raise RuntimeError("Database connection is not open; await open(path) first")
        return self._conn

    async def _apply_pragmas(self, conn: aiosqlite.Connection) -> None:
        for name, value in CONNECTION_PRAGMAS.items():
            await conn.execute(f"PRAGMA {name} = {value}")
        await conn.commit()

    async def open(self, path: Path) -> None:
        """Connect to ``path``, creating its directory if needed. A second call is a no-op."""
        if self.is_open:
            logger.warning("[DB CONNECTION] Already connected to %s; ignoring open(%s)", self.path, path)
            return

        path.parent.mkdir(parents=True, exist_ok=True)
        conn = await aiosqlite.connect(path)
        conn.row_factory = aiosqlite.Row
        await self._apply_pragmas(conn)

        self._conn = conn
        self.path = path
        logger.info("[DB CONNECTION] Connected to %s", path)

    async def close(self) -> None:
        """Fold the WAL back into the main file, then disconnect."""
        conn, self._conn = self._conn, None
        if conn is None:
            return

        try:
            await conn.execute("PRAGMA wal_checkpoint(TRUNCATE)")
        except aiosqlite.Error:
            logger.exception("[DB CONNECTION] Checkpoint before close failed")
        await conn.close()
        logger.info("[DB CONNECTION] Disconnected from %s", self.path)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """Exclusive write block: commit on success, roll back and re-raise on error."""
        conn = self.connection
        async with self._writer_lock:
            try:
                yield conn
            except BaseException:
                await conn.rollback()
                raise
            await conn.commit()


db_connection = ConnectionManager()
