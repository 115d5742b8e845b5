"""Persistence of the engine's state document.

The document is an opaque mapping of top-level keys (blacklist, whitelist,
reputation cache snapshot, statistics, threat intel summary, reports). It
is loaded once at startup and saved whole after each mutation.
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Optional, Protocol

import aiosqlite

from ..errors import PersistenceError

logger = logging.getLogger(__name__)


class DocumentStore(Protocol):
    async def load(self) -> dict:  # pragma: no cover - interface
        ...

    async def save(self, document: dict) -> None:  # pragma: no cover - interface
        ...

    async def close(self) -> None:  # pragma: no cover - interface
        ...


class MemoryDocumentStore:
    """Keeps the document in process (tests, ephemeral runs)."""

    def __init__(self, document: Optional[dict] = None):
        self.document: dict = json.loads(json.dumps(document or {}))
        self.saves = 0

    async def load(self) -> dict:
        return json.loads(json.dumps(self.document))

    async def save(self, document: dict) -> None:
        self.document = json.loads(json.dumps(document))
        self.saves += 1

    async def close(self) -> None:
        return None


class JsonDocumentStore:
    """Single JSON file, replaced atomically on save."""

    def __init__(self, path: Path):
        self.path = Path(path)

    async def load(self) -> dict:
        return await asyncio.to_thread(self._read)

    async def save(self, document: dict) -> None:
        await asyncio.to_thread(self._write, document)

    async def close(self) -> None:
        return None

    def _read(self) -> dict:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text())
        except (OSError, ValueError) as exc:
            raise PersistenceError(f"Failed to read {self.path}: {exc}") from exc
        if not isinstance(data, dict):
            raise PersistenceError(f"{self.path} does not contain a JSON object")
        return data

    def _write(self, document: dict) -> None:
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(json.dumps(document, indent=2, sort_keys=True))
            tmp_path.replace(self.path)
        except (OSError, TypeError, ValueError) as exc:
            raise PersistenceError(f"Failed to write {self.path}: {exc}") from exc


class SqliteDocumentStore:
    """Key/value rows in SQLite, one row per top-level document key."""

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self._connection: Optional[aiosqlite.Connection] = None
        self._lock = asyncio.Lock()

    async def connect(self) -> None:
        """Open the connection and create the table."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._connection = await aiosqlite.connect(self.db_path)
        self._connection.row_factory = aiosqlite.Row
        await self._connection.execute(
            """
            CREATE TABLE IF NOT EXISTS state (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
            """
        )
        await self._connection.commit()

    async def close(self) -> None:
        if self._connection:
            await self._connection.close()
            self._connection = None

    async def load(self) -> dict:
        async with self._lock:
            try:
                if self._connection is None:
                    await self.connect()
                cursor = await self._connection.execute("SELECT key, value FROM state")
                rows = await cursor.fetchall()
            except (aiosqlite.Error, OSError) as exc:
                raise PersistenceError(f"Failed to load state from {self.db_path}: {exc}") from exc

        document: dict = {}
        for row in rows:
            try:
                document[row["key"]] = json.loads(row["value"])
            except ValueError:
                logger.warning("Skipping unreadable state key %s", row["key"])
        return document

    async def save(self, document: dict) -> None:
        try:
            rows = [(key, json.dumps(value)) for key, value in document.items()]
        except (TypeError, ValueError) as exc:
            raise PersistenceError(f"State is not serializable: {exc}") from exc

        async with self._lock:
            try:
                if self._connection is None:
                    await self.connect()
                await self._connection.executemany(
                    """
                    INSERT INTO state (key, value, updated_at)
                    VALUES (?, ?, CURRENT_TIMESTAMP)
                    ON CONFLICT(key) DO UPDATE SET
                        value = excluded.value,
                        updated_at = excluded.updated_at
                    """,
                    rows,
                )
                await self._connection.commit()
            except (aiosqlite.Error, OSError) as exc:
                raise PersistenceError(f"Failed to save state to {self.db_path}: {exc}") from exc
