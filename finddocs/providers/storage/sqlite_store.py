"""SQLite-backed key-value store.

Persists JSON values to a local SQLite database using ``aiosqlite`` for
async I/O.  Used for both storage tiers: the primary tier is created with a
character quota (mirroring browser storage limits), the overflow tier
without one.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import aiosqlite
import structlog

from finddocs.interfaces.storage_provider import IKeyValueStore
from finddocs.utils.errors import StorageReadError, StorageWriteError

logger = structlog.get_logger(logger_name=__name__)

_CREATE_TABLE_SQL = """\
CREATE TABLE IF NOT EXISTS {table} (
    key         TEXT PRIMARY KEY,
    value_json  TEXT NOT NULL,
    updated_at  TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
);
"""

_UPSERT_SQL = """\
INSERT INTO {table} (key, value_json)
VALUES (?, ?)
ON CONFLICT(key)
DO UPDATE SET value_json = excluded.value_json,
              updated_at = strftime('%Y-%m-%dT%H:%M:%fZ', 'now');
"""

_SELECT_SQL = "SELECT value_json FROM {table} WHERE key = ?;"

_DELETE_SQL = "DELETE FROM {table} WHERE key = ?;"

_KEYS_SQL = "SELECT key FROM {table} WHERE key LIKE ? ESCAPE '\\' ORDER BY key;"

_CLEAR_SQL = "DELETE FROM {table};"

_USAGE_EXCLUDING_SQL = (
    "SELECT COALESCE(SUM(LENGTH(value_json)), 0) FROM {table} WHERE key != ?;"
)

_USAGE_SQL = "SELECT COALESCE(SUM(LENGTH(value_json)), 0) FROM {table};"


class SQLiteKeyValueStore(IKeyValueStore):
    """Durable JSON key-value store in a single SQLite table.

    Parameters
    ----------
    db_path:
        Path to the SQLite database file; parent directories are created.
    table_name:
        Table to use, so both tiers may share one database file.
    quota_chars:
        Maximum total size of all stored JSON values, in characters.  A
        write that would exceed it raises :class:`StorageWriteError`.
        ``None`` disables the limit.
    name:
        Identifier used in logs and error messages.
    """

    def __init__(
        self,
        db_path: str | Path,
        table_name: str = "kv",
        quota_chars: int | None = None,
        name: str = "sqlite",
    ) -> None:
        self._db_path = Path(db_path)
        self._table = table_name
        self._quota = quota_chars
        self._name = name
        self._initialized = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        """Create the table if it doesn't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(_CREATE_TABLE_SQL.format(table=self._table))
            await db.commit()
        self._initialized = True
        logger.info(
            "kv_store_initialized",
            store=self._name,
            path=str(self._db_path),
            table=self._table,
            quota_chars=self._quota,
        )

    # ------------------------------------------------------------------
    # IKeyValueStore implementation
    # ------------------------------------------------------------------

    async def get(self, key: str) -> Any | None:
        await self._ensure_initialized()
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                cursor = await db.execute(_SELECT_SQL.format(table=self._table), (key,))
                row = await cursor.fetchone()
        except aiosqlite.Error as exc:
            raise StorageReadError(
                message=f"Failed to read '{key}': {exc}",
                provider_name=self._name,
            ) from exc

        if row is None:
            return None
        try:
            return json.loads(row[0])
        except ValueError as exc:
            raise StorageReadError(
                message=f"Corrupt value stored under '{key}'",
                provider_name=self._name,
            ) from exc

    async def set(self, key: str, value: Any) -> None:
        await self._ensure_initialized()
        try:
            value_json = json.dumps(value, ensure_ascii=False)
        except (TypeError, ValueError) as exc:
            raise StorageWriteError(
                message=f"Value for '{key}' is not JSON serialisable: {exc}",
                provider_name=self._name,
            ) from exc

        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                if self._quota is not None:
                    cursor = await db.execute(
                        _USAGE_EXCLUDING_SQL.format(table=self._table), (key,)
                    )
                    row = await cursor.fetchone()
                    used = int(row[0]) if row else 0
                    if used + len(value_json) > self._quota:
                        raise StorageWriteError(
                            message=(
                                f"Quota exceeded writing '{key}': "
                                f"{used + len(value_json)} > {self._quota} chars"
                            ),
                            provider_name=self._name,
                        )
                await db.execute(_UPSERT_SQL.format(table=self._table), (key, value_json))
                await db.commit()
        except aiosqlite.Error as exc:
            raise StorageWriteError(
                message=f"Failed to write '{key}': {exc}",
                provider_name=self._name,
            ) from exc

        logger.debug("kv_store_write", store=self._name, key=key, chars=len(value_json))

    async def delete(self, key: str) -> bool:
        await self._ensure_initialized()
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                cursor = await db.execute(_DELETE_SQL.format(table=self._table), (key,))
                await db.commit()
                return cursor.rowcount > 0
        except aiosqlite.Error as exc:
            raise StorageWriteError(
                message=f"Failed to delete '{key}': {exc}",
                provider_name=self._name,
            ) from exc

    async def keys(self, prefix: str = "") -> list[str]:
        await self._ensure_initialized()
        pattern = _escape_like(prefix) + "%"
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                cursor = await db.execute(_KEYS_SQL.format(table=self._table), (pattern,))
                rows = await cursor.fetchall()
        except aiosqlite.Error as exc:
            raise StorageReadError(
                message=f"Failed to list keys: {exc}",
                provider_name=self._name,
            ) from exc
        return [row[0] for row in rows]

    async def clear(self) -> None:
        await self._ensure_initialized()
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                await db.execute(_CLEAR_SQL.format(table=self._table))
                await db.commit()
        except aiosqlite.Error as exc:
            raise StorageWriteError(
                message=f"Failed to clear store: {exc}",
                provider_name=self._name,
            ) from exc
        logger.info("kv_store_cleared", store=self._name)

    def get_provider_name(self) -> str:
        return self._name

    # ------------------------------------------------------------------
    # Extras
    # ------------------------------------------------------------------

    async def usage_chars(self) -> int:
        """Return the total size of all stored JSON values, in characters."""
        await self._ensure_initialized()
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                cursor = await db.execute(_USAGE_SQL.format(table=self._table))
                row = await cursor.fetchone()
        except aiosqlite.Error as exc:
            raise StorageReadError(
                message=f"Failed to measure usage: {exc}",
                provider_name=self._name,
            ) from exc
        return int(row[0]) if row else 0

    async def _ensure_initialized(self) -> None:
        if not self._initialized:
            await self.initialize()


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
