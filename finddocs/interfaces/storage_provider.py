"""Abstract base class for key-value storage tiers.

The tiered store composes two of these: a size-limited primary tier and an
unlimited overflow tier.  Values are JSON-serialisable Python objects; the
provider owns serialisation.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


# Concrete implementations: SQLiteKeyValueStore, MemoryKeyValueStore
# Located in: finddocs/providers/storage/
class IKeyValueStore(ABC):
    """Contract for a durable string-keyed store of JSON values."""

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        """Return the value stored under *key*, or ``None`` if absent.

        Raises
        ------
        finddocs.utils.errors.StorageReadError
            If the backend cannot be read or the value cannot be decoded.
        """

    @abstractmethod
    async def set(self, key: str, value: Any) -> None:
        """Store *value* under *key*, replacing any previous value.

        Raises
        ------
        finddocs.utils.errors.StorageWriteError
            If the backend rejects the write (quota exceeded, I/O error).
        """

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Remove *key*.  Returns ``True`` if it existed."""

    @abstractmethod
    async def keys(self, prefix: str = "") -> list[str]:
        """Return all keys starting with *prefix*, sorted."""

    @abstractmethod
    async def clear(self) -> None:
        """Remove every key."""

    @abstractmethod
    async def usage_chars(self) -> int:
        """Return the total size of all stored values, in characters."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier for log output."""
