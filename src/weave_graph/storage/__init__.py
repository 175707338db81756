"""Key-value storage providers and graph snapshot persistence."""

from .base import WeaveProvider
from .factory import available_providers, create_provider, register_provider, unregister_provider
from .json_provider import JsonProvider
from .memory_provider import MemoryProvider
from .persistence import PersistenceManager
from .redis_provider import RedisProvider
from .sqlite_provider import SqliteProvider

__all__ = [
    "JsonProvider",
    "MemoryProvider",
    "PersistenceManager",
    "RedisProvider",
    "SqliteProvider",
    "WeaveProvider",
    "available_providers",
    "create_provider",
    "register_provider",
    "unregister_provider",
]
