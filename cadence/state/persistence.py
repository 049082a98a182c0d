"""
Key-value persistence collaborators for ``StateStore.persist`` / ``restore``.

The store only needs a narrow read/write-by-key interface; anything with async
``save/get/delete/list_keys`` works.
"""

from __future__ import annotations

import asyncio
import copy
import json
import logging
from pathlib import Path
from typing import Any, Protocol, runtime_checkable
from urllib.parse import quote, unquote

logger = logging.getLogger(__name__)


@runtime_checkable
class KeyValueStore(Protocol):
    async def save(self, key: str, value: Any) -> None: ...

    async def get(self, key: str) -> Any | None: ...

    async def delete(self, key: str) -> bool: ...

    async def list_keys(self, prefix: str = "") -> list[str]: ...


class MemoryKeyValueStore:
    """In-process store; values are deep-copied on the way in and out."""

    def __init__(self) -> None:
        self._store: dict[str, Any] = {}

    async def save(self, key: str, value: Any) -> None:
        self._store[key] = copy.deepcopy(value)

    async def get(self, key: str) -> Any | None:
        value = self._store.get(key)
        return copy.deepcopy(value) if value is not None else None

    async def delete(self, key: str) -> bool:
        return self._store.pop(key, None) is not None

    async def list_keys(self, prefix: str = "") -> list[str]:
        return [k for k in self._store if k.startswith(prefix)]

    async def clear(self) -> None:
        self._store.clear()


class FileKeyValueStore:
    """
    One JSON file per key under ``directory``.

    Keys are percent-encoded into file names, so any string is a valid key.
    File I/O runs in a worker thread.
    """

    SUFFIX = ".json"

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)

    def _file(self, key: str) -> Path:
        return self.directory / f"{quote(key, safe='')}{self.SUFFIX}"

    async def save(self, key: str, value: Any) -> None:
        data = json.dumps(value, ensure_ascii=False, indent=2)

        def _write() -> None:
            self.directory.mkdir(parents=True, exist_ok=True)
            tmp = self._file(key).with_suffix(".tmp")
            tmp.write_text(data, encoding="utf-8")
            tmp.replace(self._file(key))

        await asyncio.to_thread(_write)
        logger.debug("Saved key %r to %s", key, self.directory)

    async def get(self, key: str) -> Any | None:
        path = self._file(key)

        def _read() -> str | None:
            return path.read_text(encoding="utf-8") if path.exists() else None

        raw = await asyncio.to_thread(_read)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Corrupted value for key %r in %s", key, path)
            return None

    async def delete(self, key: str) -> bool:
        path = self._file(key)

        def _unlink() -> bool:
            if not path.exists():
                return False
            path.unlink()
            return True

        return await asyncio.to_thread(_unlink)

    async def list_keys(self, prefix: str = "") -> list[str]:
        def _scan() -> list[str]:
            if not self.directory.is_dir():
                return []
            return [
                unquote(p.name[: -len(self.SUFFIX)])
                for p in self.directory.iterdir()
                if p.name.endswith(self.SUFFIX)
            ]

        keys = await asyncio.to_thread(_scan)
        return sorted(k for k in keys if k.startswith(prefix))
