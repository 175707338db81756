"""In-process dict-backed provider for tests and ephemeral sessions."""

import copy
from typing import Any

from .base import ClosableProvider


class MemoryProvider(ClosableProvider):
    """
    Stores values in a dict. Nothing survives the process.

    Values are deep-copied on the way in and out so callers can never
    mutate stored state through a reference.
    """

    provider_name = "MemoryProvider"

    def __init__(self) -> None:
        super().__init__()
        self._store: dict[str, dict[str, Any]] = {}

    async def close(self) -> None:
        self._closed = True
        self._store.clear()

    async def get(self, key: str) -> dict[str, Any] | None:
        self._assert_open()
        value = self._store.get(key)
        return copy.deepcopy(value) if value is not None else None

    async def set(self, key: str, value: dict[str, Any]) -> None:
        self._assert_open()
        self._store[key] = copy.deepcopy(value)

    async def delete(self, key: str) -> None:
        self._assert_open()
        self._store.pop(key, None)

    async def list(self, prefix: str | None = None) -> list[str]:
        self._assert_open()
        if not prefix:
            return list(self._store)
        return [key for key in self._store if key.startswith(prefix)]

    async def clear(self, prefix: str | None = None) -> None:
        self._assert_open()
        if not prefix:
            self._store.clear()
            return
        for key in [k for k in self._store if k.startswith(prefix)]:
            del self._store[key]

    @property
    def size(self) -> int:
        return len(self._store)
