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
Key-value persistence contract shared by every storage backend.

Keys are plain strings, conventionally namespaced with a ``<namespace>:``
prefix (``graph:<chat_id>``) so several subsystems can share one provider.
Values are JSON-compatible dicts.
"""

from typing import Any, Protocol, runtime_checkable

from ..errors import ProviderClosedError


@runtime_checkable
class WeaveProvider(Protocol):
    """Async key-value store used by PersistenceManager."""

    async def get(self, key: str) -> dict[str, Any] | None:
        """
        Return the value stored under ``key``, or None.

        Raises:
            CorruptDocumentError: if the stored bytes cannot be decoded
        """
        ...

    async def set(self, key: str, value: dict[str, Any]) -> None:
        """Store ``value`` under ``key``, overwriting any previous value."""
        ...

    async def delete(self, key: str) -> None:
        """Remove ``key``. A missing key is a no-op."""
        ...

    async def list(self, prefix: str | None = None) -> list[str]:
        """Keys starting with ``prefix`` (all keys when None or empty)."""
        ...

    async def clear(self, prefix: str | None = None) -> None:
        """Delete every key starting with ``prefix`` (everything when None or empty)."""
        ...

    async def close(self) -> None:
        """Release resources; every later call raises ProviderClosedError."""
        ...


class ClosableProvider:
    """Closed-state bookkeeping shared by the built-in providers."""

    provider_name = "WeaveProvider"

    def __init__(self) -> None:
        self._closed = False

    @property
    def is_closed(self) -> bool:
        return self._closed

    def _assert_open(self) -> None:
        if self._closed:
            raise ProviderClosedError(self.provider_name)
