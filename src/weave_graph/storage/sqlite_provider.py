# Copyright 2024 Heinrich Krupp
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
SQLite key-value provider.

All keys share one table; a key is split on its first ":" into a namespace
and an id so that namespaced listing hits the primary key:

    "graph:my-chat" -> namespace="graph", id="my-chat"
    "plain-key"     -> namespace="",      id="plain-key"

Async operations using aiosqlite over a single lazily-opened connection.
"""

import asyncio
import json
import logging
import os
from pathlib import Path
from typing import Any

import aiosqlite

from ..errors import CorruptDocumentError
from ..models.validators import to_iso, utc_now
from .base import ClosableProvider

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = "./weave.db"


def split_key(key: str) -> tuple[str, str]:
    namespace, sep, record_id = key.partition(":")
    if not sep:
        return "", key
    return namespace, record_id


def join_key(namespace: str, record_id: str) -> str:
    return f"{namespace}:{record_id}" if namespace else record_id


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class SqliteProvider(ClosableProvider):
    """Async SQLite provider backed by a single ``kv_store`` table."""

    provider_name = "SqliteProvider"

    def __init__(self, db_path: str | Path = DEFAULT_DB_PATH):
        """
        Args:
            db_path: Path to the SQLite database file, or ":memory:"
        """
        super().__init__()
        self.db_path = str(db_path)
        self._db: aiosqlite.Connection | None = None
        self._init_lock = asyncio.Lock()

    async def initialize(self) -> None:
        """Open the connection and create the schema if it does not exist."""
        self._assert_open()
        if self._db is not None:
            return

        async with self._init_lock:
            if self._db is not None:
                return

            directory = os.path.dirname(self.db_path)
            if directory and self.db_path != ":memory:":
                os.makedirs(directory, exist_ok=True)

            db = await aiosqlite.connect(self.db_path)
            await db.execute(
                """
                CREATE TABLE IF NOT EXISTS kv_store (
                    namespace TEXT NOT NULL,
                    id TEXT NOT NULL,
                    value TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    PRIMARY KEY (namespace, id)
                )
            """
            )
            await db.commit()
            self._db = db
            logger.info(f"SQLite provider initialized at {self.db_path}")

    async def _connection(self) -> aiosqlite.Connection:
        self._assert_open()
        if self._db is None:
            await self.initialize()
        return self._db

    async def close(self) -> None:
        self._closed = True
        if self._db is not None:
            await self._db.close()
            self._db = None
            logger.info(f"SQLite provider closed: {self.db_path}")

    async def get(self, key: str) -> dict[str, Any] | None:
        db = await self._connection()
        namespace, record_id = split_key(key)
        async with db.execute(
            "SELECT value FROM kv_store WHERE namespace = ? AND id = ?",
            (namespace, record_id),
        ) as cursor:
            row = await cursor.fetchone()
        if row is None:
            return None
        try:
            return json.loads(row[0])
        except ValueError as e:
            raise CorruptDocumentError(key, str(e)) from e

    async def set(self, key: str, value: dict[str, Any]) -> None:
        db = await self._connection()
        namespace, record_id = split_key(key)
        await db.execute(
            """
            INSERT INTO kv_store (namespace, id, value, updated_at)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(namespace, id) DO UPDATE SET
                value = excluded.value,
                updated_at = excluded.updated_at
        """,
            (namespace, record_id, json.dumps(value), to_iso(utc_now())),
        )
        await db.commit()

    async def delete(self, key: str) -> None:
        db = await self._connection()
        namespace, record_id = split_key(key)
        await db.execute("DELETE FROM kv_store WHERE namespace = ? AND id = ?", (namespace, record_id))
        await db.commit()

    async def list(self, prefix: str | None = None) -> list[str]:
        db = await self._connection()

        if prefix and ":" in prefix:
            namespace, id_prefix = split_key(prefix)
            query = "SELECT namespace, id FROM kv_store WHERE namespace = ? AND id LIKE ? ESCAPE '\\' ORDER BY id"
            params: tuple = (namespace, f"{_escape_like(id_prefix)}%")
        else:
            query = "SELECT namespace, id FROM kv_store ORDER BY namespace, id"
            params = ()

        async with db.execute(query, params) as cursor:
            rows = await cursor.fetchall()

        keys = [join_key(namespace, record_id) for namespace, record_id in rows]
        if not prefix:
            return keys
        # LIKE is case-insensitive for ASCII; re-check exactly
        return [key for key in keys if key.startswith(prefix)]

    async def clear(self, prefix: str | None = None) -> None:
        db = await self._connection()
        if not prefix:
            await db.execute("DELETE FROM kv_store")
            await db.commit()
            return

        keys = await self.list(prefix)
        await db.executemany(
            "DELETE FROM kv_store WHERE namespace = ? AND id = ?",
            [split_key(key) for key in keys],
        )
        await db.commit()

    async def count(self) -> int:
        db = await self._connection()
        async with db.execute("SELECT COUNT(*) FROM kv_store") as cursor:
            row = await cursor.fetchone()
        return row[0] if row else 0
