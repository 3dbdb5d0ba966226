"""Key-value storage tiers.

SQLiteKeyValueStore is durable and used for both the quota-limited primary
tier and the unlimited overflow tier.  MemoryKeyValueStore has the same
semantics without touching disk.
"""

from finddocs.providers.storage.memory_store import MemoryKeyValueStore
from finddocs.providers.storage.sqlite_store import SQLiteKeyValueStore

__all__ = ["MemoryKeyValueStore", "SQLiteKeyValueStore"]
