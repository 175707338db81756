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
Redis key-value provider.

Values are stored as JSON strings under ``<key_prefix><key>``. Listing and
prefix clearing walk the keyspace with SCAN (never KEYS), so they are safe
on a shared server.
"""

import json
import logging
import re
from typing import Any

from redis.asyncio import ConnectionPool, Redis

from ..errors import CorruptDocumentError
from .base import ClosableProvider

logger = logging.getLogger(__name__)

DEFAULT_KEY_PREFIX = "weave:"

_GLOB_SPECIAL = re.compile(r"([*?\[\]\\])")


def _escape_glob(value: str) -> str:
    return _GLOB_SPECIAL.sub(r"\\\1", value)


class RedisProvider(ClosableProvider):
    """Async Redis provider with a pooled connection."""

    provider_name = "RedisProvider"

    def __init__(
        self,
        url: str = "redis://localhost:6379",
        key_prefix: str = DEFAULT_KEY_PREFIX,
        max_connections: int = 10,
    ):
        """
        Args:
            url: Redis connection URL
            key_prefix: Prefix for all keys written by this provider
            max_connections: Maximum Redis connections in pool
        """
        super().__init__()
        self.url = url
        self.key_prefix = key_prefix
        self.max_connections = max_connections

        self._pool: ConnectionPool | None = None
        self._redis: Redis | None = None

    async def initialize(self) -> None:
        """Initialize the connection pool and verify the server is reachable."""
        self._assert_open()
        if self._redis is not None:
            return

        self._pool = ConnectionPool.from_url(
            self.url,
            max_connections=self.max_connections,
            decode_responses=True,
        )
        self._redis = Redis(connection_pool=self._pool)

        try:
            await self._redis.ping()
            logger.info(f"Redis provider initialized: {self.url} (prefix={self.key_prefix!r})")
        except Exception as e:
            logger.error(f"Redis provider initialization failed: {e}")
            await self._release()
            raise

    async def _release(self) -> None:
        if self._redis:
            await self._redis.aclose()
            self._redis = None

        if self._pool:
            await self._pool.aclose()
            self._pool = None

    async def close(self) -> None:
        self._closed = True
        await self._release()

    async def _client(self) -> Redis:
        self._assert_open()
        if self._redis is None:
            await self.initialize()
        return self._redis

    def _make_key(self, key: str) -> str:
        return f"{self.key_prefix}{key}"

    async def get(self, key: str) -> dict[str, Any] | None:
        client = await self._client()
        raw = await client.get(self._make_key(key))
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError as e:
            raise CorruptDocumentError(key, str(e)) from e

    async def set(self, key: str, value: dict[str, Any]) -> None:
        client = await self._client()
        await client.set(self._make_key(key), json.dumps(value))

    async def delete(self, key: str) -> None:
        client = await self._client()
        await client.delete(self._make_key(key))

    async def _scan(self, client: Redis, prefix: str | None) -> list[str]:
        pattern = f"{_escape_glob(self._make_key(prefix or ''))}*"
        return [full_key async for full_key in client.scan_iter(match=pattern)]

    async def list(self, prefix: str | None = None) -> list[str]:
        client = await self._client()
        offset = len(self.key_prefix)
        return sorted(full_key[offset:] for full_key in await self._scan(client, prefix))

    async def clear(self, prefix: str | None = None) -> None:
        client = await self._client()
        full_keys = await self._scan(client, prefix)
        if full_keys:
            await client.delete(*full_keys)
            logger.info(f"Cleared {len(full_keys)} keys matching {self.key_prefix}{prefix or ''}*")
