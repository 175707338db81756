"""
Snapshot persistence through a pluggable WeaveProvider.

Each session is one document under the key ``graph:<chat_id>``. The document
is the camelCase wire form of a GraphSnapshot:

    {
      "nodes":    {<id>: {"id", "type", "label", "description", "metadata",
                          "frequency", "createdAt", "updatedAt"}},
      "edges":    {<id>: {"id", "sourceId", "targetId", "type", "weight",
                          "metadata", "createdAt", "updatedAt"}},
      "metadata": {"chatId", "version", "createdAt", "updatedAt",
                   "compressionThreshold"}
    }

Timestamps are ISO-8601 strings.

Nodes compressed out of the active graph live in a second document under
``graph-archive:<chat_id>`` ({"chatId", "nodes", "edges"}), so an archive
survives a reload and can be restored later. An empty archive is deleted
rather than written.
"""

import asyncio
import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from ..errors import CorruptDocumentError, SnapshotFormatError
from ..graph.store import DEFAULT_COMPRESSION_THRESHOLD, GraphStore
from ..models.graph import ArchiveSnapshot, GraphSnapshot
from .base import WeaveProvider
from .json_provider import DEFAULT_DATA_DIR, JsonProvider

logger = logging.getLogger(__name__)

GRAPH_NAMESPACE = "graph:"
ARCHIVE_NAMESPACE = "graph-archive:"
_REQUIRED_SECTIONS = ("nodes", "edges", "metadata")


def graph_key(chat_id: str) -> str:
    return f"{GRAPH_NAMESPACE}{chat_id}"


def archive_key(chat_id: str) -> str:
    return f"{ARCHIVE_NAMESPACE}{chat_id}"


class PersistenceManager:
    """Saves and loads graph snapshots; defaults to a JsonProvider."""

    def __init__(self, provider: WeaveProvider | None = None, data_dir: str | Path = DEFAULT_DATA_DIR):
        """
        Args:
            provider: Storage provider; a JsonProvider(data_dir) when omitted
            data_dir: Directory for the default JsonProvider
        """
        self._provider: WeaveProvider = provider or JsonProvider(data_dir)

    @property
    def provider(self) -> WeaveProvider:
        return self._provider

    @provider.setter
    def provider(self, provider: WeaveProvider) -> None:
        """Swap the backend at runtime, e.g. after a migration."""
        self._provider = provider

    # ── Wire format ─────────────────────────────────────────────────────

    @staticmethod
    def serialize(snapshot: GraphSnapshot) -> dict[str, Any]:
        return snapshot.to_wire()

    @staticmethod
    def deserialize(data: Any) -> GraphSnapshot:
        """
        Parse a wire document into a GraphSnapshot.

        Raises:
            SnapshotFormatError: if the document is structurally invalid, a
                record fails validation, or a map key differs from its record id
        """
        if not isinstance(data, dict):
            raise SnapshotFormatError(f"Snapshot must be an object, got {type(data).__name__}")

        missing = [section for section in _REQUIRED_SECTIONS if section not in data]
        if missing:
            raise SnapshotFormatError(f"Snapshot is missing sections: {', '.join(missing)}")

        try:
            snapshot = GraphSnapshot.model_validate(data)
        except ValidationError as e:
            raise SnapshotFormatError(f"Invalid graph snapshot: {e}") from e

        for kind, records in (("node", snapshot.nodes), ("edge", snapshot.edges)):
            for key, record in records.items():
                if key != record.id:
                    raise SnapshotFormatError(f"{kind} key {key!r} does not match record id {record.id!r}")

        return snapshot

    # ── Operations ──────────────────────────────────────────────────────

    async def save_graph(self, snapshot: GraphSnapshot) -> None:
        await self._provider.set(graph_key(snapshot.chat_id), self.serialize(snapshot))
        logger.debug(
            f"Saved graph {snapshot.chat_id} ({len(snapshot.nodes)} nodes, {len(snapshot.edges)} edges)"
        )

    async def load_graph(self, chat_id: str) -> GraphSnapshot | None:
        """
        Load a snapshot; None when the session has never been saved.

        Raises:
            SnapshotFormatError: if the stored document is unreadable or invalid
        """
        raw = await self._get(graph_key(chat_id))
        if raw is None:
            return None
        return self.deserialize(raw)

    async def save_archive(self, archive: ArchiveSnapshot) -> None:
        key = archive_key(archive.chat_id)
        if archive.is_empty:
            await self._provider.delete(key)
            return
        await self._provider.set(key, archive.to_wire())
        logger.debug(f"Saved archive {archive.chat_id} ({len(archive.nodes)} nodes, {len(archive.edges)} edges)")

    async def load_archive(self, chat_id: str) -> ArchiveSnapshot | None:
        """
        Load the session's compression archive; None when nothing is archived.

        Raises:
            SnapshotFormatError: if the stored document is unreadable or invalid
        """
        raw = await self._get(archive_key(chat_id))
        if raw is None:
            return None
        try:
            archive = ArchiveSnapshot.model_validate(raw)
        except ValidationError as e:
            raise SnapshotFormatError(f"Invalid archive for {chat_id}: {e}") from e
        if archive.chat_id != chat_id:
            raise SnapshotFormatError(f"Archive chat id {archive.chat_id!r} does not match {chat_id!r}")
        return archive

    async def _get(self, key: str) -> Any:
        try:
            return await self._provider.get(key)
        except CorruptDocumentError as e:
            raise SnapshotFormatError(str(e)) from e

    async def load_or_create_graph(
        self,
        chat_id: str,
        compression_threshold: float | None = None,
        **engines: Any,
    ) -> GraphStore:
        """
        Restore the session's store, or create an empty one.

        ``engines`` (hebbian=, synaptic=, compression=) are attached either
        way. The threshold only applies to a newly created store; a restored
        one keeps its persisted threshold. A persisted compression archive is
        loaded back into the compression engine.
        """
        snapshot = await self.load_graph(chat_id)
        if snapshot is not None:
            logger.info(f"Loaded graph {chat_id} ({len(snapshot.nodes)} nodes)")
            store = GraphStore.restore(snapshot, **engines)
        else:
            threshold = DEFAULT_COMPRESSION_THRESHOLD if compression_threshold is None else compression_threshold
            store = GraphStore(chat_id, threshold, **engines)

        archive = await self.load_archive(chat_id)
        if archive is not None:
            store.load_archive(archive)
        return store

    async def graph_exists(self, chat_id: str) -> bool:
        try:
            return await self._provider.get(graph_key(chat_id)) is not None
        except CorruptDocumentError:
            return True

    async def delete_graph(self, chat_id: str) -> None:
        """Delete a saved session and its archive. No-op if it does not exist."""
        await self._provider.delete(graph_key(chat_id))
        await self._provider.delete(archive_key(chat_id))

    async def list_sessions(self) -> list[dict[str, Any]]:
        """
        Summaries of every saved session.

        Returns:
            Dicts with chat_id, created_at, updated_at, node_count, edge_count.
            Unreadable documents are skipped with a warning.
        """
        keys = await self._provider.list(GRAPH_NAMESPACE)
        chat_ids = [key[len(GRAPH_NAMESPACE) :] for key in keys]
        results = await asyncio.gather(*(self._summarize(chat_id) for chat_id in chat_ids))
        return [summary for summary in results if summary is not None]

    async def _summarize(self, chat_id: str) -> dict[str, Any] | None:
        try:
            snapshot = await self.load_graph(chat_id)
        except SnapshotFormatError as e:
            logger.warning(f"Skipping unreadable session {chat_id}: {e}")
            return None
        if snapshot is None:
            return None
        return {
            "chat_id": chat_id,
            "created_at": snapshot.metadata.created_at,
            "updated_at": snapshot.metadata.updated_at,
            "node_count": len(snapshot.nodes),
            "edge_count": len(snapshot.edges),
        }
