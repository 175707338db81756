"""
Tests for settings classes and the engine factory.
"""

from unittest.mock import MagicMock, patch

import pytest
from pydantic import ValidationError

from weave_graph.config import CompressionSettings, HebbianSettings, Settings, StorageSettings, SynapticSettings
from weave_graph.errors import UnknownProviderError
from weave_graph.graph.factory import (
    create_compression_engine,
    create_engines,
    create_graph_store,
    create_hebbian_engine,
    create_synaptic_linker,
)
from weave_graph.storage.factory import available_providers, create_provider, register_provider, unregister_provider
from weave_graph.storage.json_provider import JsonProvider
from weave_graph.storage.memory_provider import MemoryProvider
from weave_graph.storage.sqlite_provider import SqliteProvider


class TestSettingsDefaults:
    def test_defaults(self):
        config = Settings()
        assert config.synaptic.threshold == 0.72
        assert config.synaptic.max_connections == 20
        assert config.hebbian.strength == 0.1
        assert config.hebbian.decay_rate == 0.99
        assert config.hebbian.prune_threshold == 0.05
        assert config.hebbian.max_weight == 5.0
        assert config.compression.threshold == 0.75
        assert config.compression.max_context_bytes == 100_000
        assert config.storage.provider == "json"


class TestEnvOverrides:
    def test_synaptic_env(self, monkeypatch):
        monkeypatch.setenv("WEAVE_SYNAPTIC_THRESHOLD", "0.5")
        monkeypatch.setenv("WEAVE_SYNAPTIC_MAX_CONNECTIONS", "3")
        config = SynapticSettings()
        assert config.threshold == 0.5
        assert config.max_connections == 3

    def test_hebbian_env(self, monkeypatch):
        monkeypatch.setenv("WEAVE_HEBBIAN_ENABLED", "false")
        monkeypatch.setenv("WEAVE_HEBBIAN_DECAY_RATE", "0.9")
        config = HebbianSettings()
        assert config.enabled is False
        assert config.decay_rate == 0.9

    def test_storage_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("WEAVE_PROVIDER", "sqlite")
        monkeypatch.setenv("WEAVE_DATA_DIR", str(tmp_path))
        config = StorageSettings()
        assert config.provider == "sqlite"
        assert config.data_dir == tmp_path

    def test_out_of_range_rejected(self, monkeypatch):
        monkeypatch.setenv("WEAVE_SYNAPTIC_THRESHOLD", "1.5")
        with pytest.raises(ValidationError):
            SynapticSettings()

    def test_invalid_compression_threshold(self):
        with pytest.raises(ValidationError):
            CompressionSettings(threshold=0)


class TestEngineFactory:
    def test_engines_follow_settings(self):
        config = Settings(
            synaptic=SynapticSettings(threshold=0.3, max_connections=4),
            hebbian=HebbianSettings(strength=0.2, max_weight=2.0),
            compression=CompressionSettings(max_context_bytes=500, target_reduction=0.5),
        )
        assert create_synaptic_linker(config).config["threshold"] == 0.3
        assert create_hebbian_engine(config).config["max_weight"] == 2.0
        engine = create_compression_engine(config)
        assert engine.max_context_bytes == 500
        assert engine.target_reduction == 0.5

    def test_hebbian_disabled(self):
        config = Settings(hebbian=HebbianSettings(enabled=False))
        assert create_hebbian_engine(config) is None

    def test_explicit_embedding_provider(self):
        provider = MagicMock()
        linker = create_synaptic_linker(Settings(), embedding_provider=provider)
        assert linker.has_embedding_provider

    def test_use_embeddings_builds_sentence_transformer_embedder(self):
        config = Settings(synaptic=SynapticSettings(use_embeddings=True, embedding_model="tiny-model"))
        with patch("weave_graph.graph.factory.SentenceTransformerEmbedder") as mock_embedder:
            linker = create_synaptic_linker(config)
        mock_embedder.assert_called_once_with(model_name="tiny-model")
        assert linker.has_embedding_provider

    def test_create_engines_overrides(self):
        marker = MagicMock()
        engines = create_engines(Settings(), synaptic=marker)
        assert engines["synaptic"] is marker
        assert set(engines) == {"hebbian", "synaptic", "compression"}

    def test_create_graph_store(self):
        config = Settings(compression=CompressionSettings(threshold=0.5))
        store = create_graph_store("chat", config)
        assert store.compression_threshold == 0.5
        assert store.hebbian is not None
        assert store.synaptic is not None


class TestProviderRegistry:
    @pytest.mark.asyncio
    async def test_builtin_names(self, tmp_path):
        settings = StorageSettings(data_dir=tmp_path / "data", sqlite_path=tmp_path / "weave.db")

        assert isinstance(await create_provider("memory", settings), MemoryProvider)
        assert isinstance(await create_provider("JSON", settings), JsonProvider)
        sqlite = await create_provider(" sqlite ", settings)
        assert isinstance(sqlite, SqliteProvider)
        await sqlite.close()

    @pytest.mark.asyncio
    async def test_defaults_to_settings_provider(self):
        provider = await create_provider(settings=StorageSettings(provider="memory"))
        assert isinstance(provider, MemoryProvider)

    @pytest.mark.asyncio
    async def test_unknown_provider(self):
        with pytest.raises(UnknownProviderError, match="mongodb"):
            await create_provider("mongodb", StorageSettings())

    @pytest.mark.asyncio
    async def test_register_custom_provider(self):
        custom = MemoryProvider()
        register_provider("Custom", lambda settings: custom)
        try:
            assert "custom" in available_providers()
            assert await create_provider("custom", StorageSettings()) is custom
        finally:
            unregister_provider("custom")
        assert "custom" not in available_providers()

    def test_builtins_registered(self):
        assert {"json", "memory", "sqlite", "redis"} <= set(available_providers())
