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
Storage provider registry.

Built-in providers:
    json   -> JsonProvider(settings.data_dir)   (default)
    memory -> MemoryProvider()
    sqlite -> SqliteProvider(settings.sqlite_path)
    redis  -> RedisProvider(settings.redis_url, settings.redis_key_prefix)

Additional backends can be registered at startup with ``register_provider``.
Names are case-insensitive.
"""

import logging
from collections.abc import Callable

from ..config import StorageSettings
from ..errors import UnknownProviderError
from .base import WeaveProvider
from .json_provider import JsonProvider
from .memory_provider import MemoryProvider
from .redis_provider import RedisProvider
from .sqlite_provider import SqliteProvider

logger = logging.getLogger(__name__)

ProviderFactory = Callable[[StorageSettings], WeaveProvider]

_factories: dict[str, ProviderFactory] = {}


def _normalize(name: str) -> str:
    return name.strip().lower()


def register_provider(name: str, factory: ProviderFactory) -> None:
    """Register (or replace) a provider factory under ``name``."""
    _factories[_normalize(name)] = factory


def unregister_provider(name: str) -> None:
    _factories.pop(_normalize(name), None)


def available_providers() -> list[str]:
    return sorted(_factories)


async def create_provider(name: str | None = None, settings: StorageSettings | None = None) -> WeaveProvider:
    """
    Create and initialize a storage provider.

    Args:
        name: Provider name; defaults to ``settings.provider`` (WEAVE_PROVIDER)
        settings: Storage settings; loaded from the environment when omitted

    Raises:
        UnknownProviderError: if no factory is registered under the name
    """
    settings = settings or StorageSettings()
    resolved = _normalize(name or settings.provider or "json")

    factory = _factories.get(resolved)
    if factory is None:
        raise UnknownProviderError(resolved, available_providers())

    provider = factory(settings)
    initialize = getattr(provider, "initialize", None)
    if initialize is not None:
        await initialize()

    logger.info(f"Created {resolved} storage provider")
    return provider


register_provider("json", lambda s: JsonProvider(s.data_dir))
register_provider("memory", lambda s: MemoryProvider())
register_provider("sqlite", lambda s: SqliteProvider(s.sqlite_path))
register_provider("redis", lambda s: RedisProvider(s.redis_url, key_prefix=s.redis_key_prefix))
