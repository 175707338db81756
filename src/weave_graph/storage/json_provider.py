"""
File-system provider: one JSON document per key.

Key -> filename mapping is reversible and confined to the data directory.
Every character outside ``[A-Za-z0-9_-]`` is replaced by ``~<hex code point>~``:

    graph:my-session  ->  graph~3a~my-session.json
    ../etc/passwd     ->  ~2e~~2e~~2f~etc~2f~passwd.json

Writes land in a temporary file that is then renamed over the target, so a
reader never observes a half-written document.

File I/O is blocking and runs in the default executor.
"""

import asyncio
import json
import logging
import os
import re
import tempfile
from functools import partial
from pathlib import Path
from typing import Any

from ..errors import CorruptDocumentError
from .base import ClosableProvider

logger = logging.getLogger(__name__)

DEFAULT_DATA_DIR = "./weave-data"
FILE_SUFFIX = ".json"

_UNSAFE_CHAR = re.compile(r"[^A-Za-z0-9_\-]")
_ENCODED_CHAR = re.compile(r"~([0-9a-f]+)~")


def encode_key(key: str) -> str:
    """Map a logical key onto a safe filename stem."""
    return _UNSAFE_CHAR.sub(lambda m: f"~{ord(m.group(0)):x}~", key)


def decode_key(stem: str) -> str:
    """Inverse of encode_key."""
    return _ENCODED_CHAR.sub(lambda m: chr(int(m.group(1), 16)), stem)


class JsonProvider(ClosableProvider):
    """Stores each key as ``<data_dir>/<encoded key>.json``."""

    provider_name = "JsonProvider"

    def __init__(self, data_dir: str | Path = DEFAULT_DATA_DIR):
        """
        Args:
            data_dir: Directory holding the documents; created on first write
        """
        super().__init__()
        self.data_dir = Path(data_dir)

    async def close(self) -> None:
        self._closed = True

    def _path_for(self, key: str) -> Path:
        return self.data_dir / f"{encode_key(key)}{FILE_SUFFIX}"

    async def _run(self, func, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, partial(func, *args))

    # ── Blocking helpers ────────────────────────────────────────────────

    def _read(self, path: Path) -> dict[str, Any] | None:
        try:
            with open(path, encoding="utf-8") as f:
                return json.load(f)
        except FileNotFoundError:
            return None

    def _write(self, path: Path, value: dict[str, Any]) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.data_dir, prefix=".", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(value, f, indent=2, ensure_ascii=False)
            os.replace(tmp_path, path)
        except BaseException:
            # Never leave a stray temp file behind
            try:
                os.unlink(tmp_path)
            except FileNotFoundError:
                pass
            raise

    def _unlink(self, path: Path) -> None:
        try:
            path.unlink()
        except FileNotFoundError:
            pass

    def _keys(self) -> list[str]:
        try:
            names = sorted(os.listdir(self.data_dir))
        except FileNotFoundError:
            return []
        return [decode_key(name[: -len(FILE_SUFFIX)]) for name in names if name.endswith(FILE_SUFFIX)]

    # ── Provider API ────────────────────────────────────────────────────

    async def get(self, key: str) -> dict[str, Any] | None:
        self._assert_open()
        try:
            return await self._run(self._read, self._path_for(key))
        except ValueError as e:
            raise CorruptDocumentError(key, str(e)) from e

    async def set(self, key: str, value: dict[str, Any]) -> None:
        self._assert_open()
        await self._run(self._write, self._path_for(key), value)

    async def delete(self, key: str) -> None:
        self._assert_open()
        await self._run(self._unlink, self._path_for(key))

    async def list(self, prefix: str | None = None) -> list[str]:
        self._assert_open()
        keys = await self._run(self._keys)
        if not prefix:
            return keys
        return [key for key in keys if key.startswith(prefix)]

    async def clear(self, prefix: str | None = None) -> None:
        self._assert_open()
        keys = await self.list(prefix)
        for key in keys:
            await self._run(self._unlink, self._path_for(key))
        if keys:
            logger.info(f"Cleared {len(keys)} documents from {self.data_dir}")
