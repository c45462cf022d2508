"""Persisters storing a dehydrated query cache between restarts.

A persister exposes ``save(payload)``, ``load()`` and ``remove()``. The local
JSON file is the default store; Redis is used when ``REDIS_URL`` is set.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, Optional

from alerta.core.cache import CacheClient

logger = logging.getLogger(__name__)

STORAGE_KEY = "alerta-educativa-cache-v1"


class FileCachePersister:
    def __init__(self, path: str | Path):
        self.path = Path(path)

    async def save(self, payload: Dict[str, Any]) -> None:
        await asyncio.to_thread(self._write, payload)

    async def load(self) -> Optional[Dict[str, Any]]:
        return await asyncio.to_thread(self._read)

    async def remove(self) -> None:
        await asyncio.to_thread(self._unlink)

    def _write(self, payload: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            tmp_path.write_text(
                json.dumps(payload, ensure_ascii=False, default=str), encoding="utf-8"
            )
            os.replace(tmp_path, self.path)
        except OSError as exc:
            logger.warning("Failed to persist query cache to %s: %s", self.path, exc)

    def _read(self) -> Optional[Dict[str, Any]]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            logger.warning("Failed to read persisted query cache %s: %s", self.path, exc)
            return None
        try:
            payload = json.loads(raw)
        except ValueError:
            logger.warning("Ignoring corrupt persisted query cache %s", self.path)
            return None
        return payload if isinstance(payload, dict) else None

    def _unlink(self) -> None:
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass


class RedisCachePersister:
    def __init__(
        self,
        client: CacheClient,
        *,
        key: str = STORAGE_KEY,
        max_age: timedelta = timedelta(hours=24),
    ):
        self.client = client
        self.key = key
        self.max_age = max_age

    async def save(self, payload: Dict[str, Any]) -> None:
        if not await self.client.set_json(self.key, payload, ttl=self.max_age):
            logger.warning("Query cache was not persisted to Redis")

    async def load(self) -> Optional[Dict[str, Any]]:
        payload = await self.client.get_json(self.key)
        return payload if isinstance(payload, dict) else None

    async def remove(self) -> None:
        await self.client.delete(self.key)


__all__ = ["FileCachePersister", "RedisCachePersister", "STORAGE_KEY"]
