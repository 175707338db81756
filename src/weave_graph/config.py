"""
Configuration for the weave graph.

Each concern has its own ``BaseSettings`` class with an environment prefix,
so any default can be overridden without code changes::

    WEAVE_SYNAPTIC_THRESHOLD=0.5
    WEAVE_HEBBIAN_DECAY_RATE=0.95
    WEAVE_PROVIDER=sqlite

Engines do not read these objects directly; ``graph.factory`` maps a
``Settings`` instance onto engine constructor arguments.
"""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class SynapticSettings(BaseSettings):
    """Retroactive linking configuration."""

    model_config = SettingsConfigDict(env_prefix="WEAVE_SYNAPTIC_", extra="ignore")

    threshold: float = Field(default=0.72, ge=0.0, le=1.0)
    max_connections: int = Field(default=20, ge=0)
    use_embeddings: bool = False
    embedding_model: str = "all-MiniLM-L6-v2"


class HebbianSettings(BaseSettings):
    """Hebbian strengthening, decay and pruning configuration."""

    model_config = SettingsConfigDict(env_prefix="WEAVE_HEBBIAN_", extra="ignore")

    enabled: bool = True
    strength: float = Field(default=0.1, ge=0.0)
    decay_rate: float = Field(default=0.99, gt=0.0, le=1.0)
    prune_threshold: float = Field(default=0.05, ge=0.0)
    max_weight: float = Field(default=5.0, gt=0.0)


class CompressionSettings(BaseSettings):
    """Context-pressure and archival configuration."""

    model_config = SettingsConfigDict(env_prefix="WEAVE_COMPRESSION_", extra="ignore")

    threshold: float = Field(default=0.75, gt=0.0, le=1.0)
    max_context_bytes: int = Field(default=100_000, gt=0)
    target_reduction: float = Field(default=0.3, gt=0.0, le=1.0)


class StorageSettings(BaseSettings):
    """Persistence provider selection.

    ``provider`` is resolved by ``storage.factory.create_provider``:
    ``json`` (default), ``memory``, ``sqlite`` or ``redis``.
    """

    model_config = SettingsConfigDict(env_prefix="WEAVE_", extra="ignore")

    provider: str = "json"
    data_dir: Path = Path("./weave-data")
    sqlite_path: Path = Path("./weave.db")
    redis_url: str = "redis://localhost:6379"
    redis_key_prefix: str = "weave:"


class Settings(BaseSettings):
    """Aggregate settings object."""

    model_config = SettingsConfigDict(extra="ignore")

    synaptic: SynapticSettings = Field(default_factory=SynapticSettings)
    hebbian: HebbianSettings = Field(default_factory=HebbianSettings)
    compression: CompressionSettings = Field(default_factory=CompressionSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)


settings = Settings()
