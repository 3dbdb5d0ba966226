"""In-memory key-value store.

Values are kept as JSON text, so a read always returns a fresh copy and
quota accounting matches :class:`SQLiteKeyValueStore`.  Suitable for tests
and throwaway sessions.
"""

from __future__ import annotations

import json
from typing import Any

import structlog

from finddocs.interfaces.storage_provider import IKeyValueStore
from finddocs.utils.errors import StorageReadError, StorageWriteError

logger = structlog.get_logger(logger_name=__name__)


class MemoryKeyValueStore(IKeyValueStore):
    """Dict-backed store with an optional total-size quota in characters."""

    def __init__(self, quota_chars: int | None = None, name: str = "memory") -> None:
        self._data: dict[str, str] = {}
        self._quota = quota_chars
        self._name = name

    async def get(self, key: str) -> Any | None:
        raw = self._data.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError as exc:
            raise StorageReadError(
                message=f"Corrupt value stored under '{key}'",
                provider_name=self._name,
            ) from exc

    async def set(self, key: str, value: Any) -> None:
        try:
            raw = json.dumps(value, ensure_ascii=False)
        except (TypeError, ValueError) as exc:
            raise StorageWriteError(
                message=f"Value for '{key}' is not JSON serialisable: {exc}",
                provider_name=self._name,
            ) from exc

        if self._quota is not None:
            used = sum(len(v) for k, v in self._data.items() if k != key)
            if used + len(raw) > self._quota:
                raise StorageWriteError(
                    message=(
                        f"Quota exceeded writing '{key}': "
                        f"{used + len(raw)} > {self._quota} chars"
                    ),
                    provider_name=self._name,
                )
        self._data[key] = raw
        logger.debug("kv_store_write", store=self._name, key=key, chars=len(raw))

    async def delete(self, key: str) -> bool:
        return self._data.pop(key, None) is not None

    async def keys(self, prefix: str = "") -> list[str]:
        return sorted(k for k in self._data if k.startswith(prefix))

    async def clear(self) -> None:
        self._data.clear()

    def get_provider_name(self) -> str:
        return self._name

    async def usage_chars(self) -> int:
        return sum(len(v) for v in self._data.values())
