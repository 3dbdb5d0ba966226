"""Two-tier persistence for documents, dedup hashes and conversations.

The primary tier is small and fast but size-limited; the overflow tier is
unlimited.  Four logical keys are persisted:

    rag_documents             -- document list (large bodies replaced by placeholders)
    rag_file_hashes           -- dedup hash list
    rag_chat_history          -- conversation list
    rag_current_conversation  -- id of the current conversation

Large document bodies live in the overflow tier under
``<documentId>_overflow``.  When the primary tier rejects a write, the full
value is written to the overflow tier under ``fallback:<key>`` instead.  The
document list takes the same path when a large body cannot be stored.  A
fallback copy only exists while the primary tier is behind, so reads check
it first.

Writes are not transactional across tiers.  An overflow blob that cannot be
read back leaves its record with placeholder content; that is logged as
data loss, never raised.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from enum import Enum
from typing import Any

import structlog
from pydantic import ValidationError

from finddocs.interfaces.storage_provider import IKeyValueStore
from finddocs.models.conversation import Conversation
from finddocs.models.document import DocumentRecord, StoredDocument
from finddocs.utils.errors import FindDocsError, StorageReadError, StorageWriteError
from finddocs.utils.logging import get_logger

DOCUMENTS_KEY = "rag_documents"
HASHES_KEY = "rag_file_hashes"
CONVERSATIONS_KEY = "rag_chat_history"
CURRENT_CONVERSATION_KEY = "rag_current_conversation"

OVERFLOW_SUFFIX = "_overflow"
FALLBACK_PREFIX = "fallback:"
DEFAULT_OVERFLOW_THRESHOLD = 100_000  # characters

_PLACEHOLDER_TEMPLATE = "[Large content stored separately - {length} characters]"


class StorageTier(str, Enum):  # noqa: UP042
    PRIMARY = "primary"
    FALLBACK = "fallback"


def overflow_ref_for(document_id: str) -> str:
    return f"{document_id}{OVERFLOW_SUFFIX}"


def placeholder_for(content: str) -> str:
    return _PLACEHOLDER_TEMPLATE.format(length=len(content))


class TieredStore:
    """Persists application state across a primary and an overflow tier.

    Parameters
    ----------
    primary:
        Size-limited store holding the primary representation of every key.
    overflow:
        Unlimited store for large document bodies and fallback copies.
    overflow_threshold:
        Documents whose content is longer than this many characters are
        split: placeholder in primary, full body in overflow.
    """

    def __init__(
        self,
        primary: IKeyValueStore,
        overflow: IKeyValueStore,
        overflow_threshold: int = DEFAULT_OVERFLOW_THRESHOLD,
    ) -> None:
        self._primary = primary
        self._overflow = overflow
        self._threshold = overflow_threshold
        self._logger: structlog.BoundLogger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    async def save_documents(self, records: Sequence[DocumentRecord]) -> StorageTier:
        """Persist *records*, splitting oversized bodies into the overflow tier.

        Returns the tier that received the document list.

        Raises
        ------
        StorageWriteError
            If both the primary write and the fallback write fail.
        """
        stored: list[dict[str, Any]] = []
        blobs: dict[str, str] = {}
        for record in records:
            fields = record.model_dump()
            if len(record.content) > self._threshold:
                ref = overflow_ref_for(record.id)
                fields["content"] = placeholder_for(record.content)
                blobs[ref] = record.content
                stored.append(StoredDocument(**fields, overflow_ref=ref).model_dump(mode="json"))
            else:
                stored.append(StoredDocument(**fields).model_dump(mode="json"))

        # Bodies first, so a placeholder in primary always has a blob behind it.
        # A missing body sends the whole list down the fallback path instead.
        try:
            for ref, content in blobs.items():
                try:
                    await self._overflow.set(ref, content)
                except StorageWriteError as exc:
                    self._logger.error(
                        "overflow_content_write_failed",
                        overflow_ref=ref,
                        chars=len(content),
                        error=str(exc),
                    )
                    raise
            await self._primary.set(DOCUMENTS_KEY, stored)
        except StorageWriteError as write_exc:
            full = [record.model_dump(mode="json") for record in records]
            await self._write_fallback(DOCUMENTS_KEY, full, write_exc)
            await self._prune_overflow(keep=set())
            self._logger.info(
                "documents_saved",
                tier=StorageTier.FALLBACK.value,
                count=len(records),
            )
            return StorageTier.FALLBACK

        await self._discard(self._overflow, FALLBACK_PREFIX + DOCUMENTS_KEY)
        await self._prune_overflow(keep=set(blobs))
        self._logger.info(
            "documents_saved",
            tier=StorageTier.PRIMARY.value,
            count=len(records),
            overflowed=len(blobs),
        )
        return StorageTier.PRIMARY

    async def load_documents(self) -> list[DocumentRecord]:
        """Load the document list, splicing overflow bodies back in order."""
        payload = await self._read(DOCUMENTS_KEY)
        if not isinstance(payload, list):
            return []

        records: list[DocumentRecord] = []
        for item in payload:
            try:
                stored = StoredDocument.model_validate(item)
            except ValidationError as exc:
                self._logger.warning("stored_document_invalid", error=str(exc)[:200])
                continue

            content: str | None = None
            if stored.overflow_ref:
                content = await self._fetch_overflow(stored)
            records.append(stored.to_record(content))

        self._logger.info("documents_loaded", count=len(records))
        return records

    # ------------------------------------------------------------------
    # Dedup hashes
    # ------------------------------------------------------------------

    async def save_hashes(self, hashes: Iterable[str]) -> StorageTier:
        return await self._write(HASHES_KEY, list(hashes))

    async def load_hashes(self) -> list[str]:
        payload = await self._read(HASHES_KEY)
        if not isinstance(payload, list):
            return []
        return [h for h in payload if isinstance(h, str)]

    # ------------------------------------------------------------------
    # Conversations
    # ------------------------------------------------------------------

    async def save_conversations(self, conversations: Sequence[Conversation]) -> StorageTier:
        return await self._write(
            CONVERSATIONS_KEY,
            [conversation.model_dump(mode="json") for conversation in conversations],
        )

    async def load_conversations(self) -> list[Conversation]:
        payload = await self._read(CONVERSATIONS_KEY)
        if not isinstance(payload, list):
            return []
        conversations: list[Conversation] = []
        for item in payload:
            try:
                conversations.append(Conversation.model_validate(item))
            except ValidationError as exc:
                self._logger.warning("stored_conversation_invalid", error=str(exc)[:200])
        return conversations

    async def save_current_conversation_id(self, conversation_id: str | None) -> StorageTier | None:
        if conversation_id is None:
            await self._discard(self._primary, CURRENT_CONVERSATION_KEY)
            await self._discard(self._overflow, FALLBACK_PREFIX + CURRENT_CONVERSATION_KEY)
            return None
        return await self._write(CURRENT_CONVERSATION_KEY, conversation_id)

    async def load_current_conversation_id(self) -> str | None:
        payload = await self._read(CURRENT_CONVERSATION_KEY)
        return payload if isinstance(payload, str) and payload else None

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    async def clear(self) -> None:
        """Delete all state from both tiers.

        Both tiers are attempted even if the first fails.
        """
        failures: list[StorageWriteError] = []
        for store in (self._primary, self._overflow):
            try:
                await store.clear()
            except StorageWriteError as exc:
                failures.append(exc)
                self._logger.error(
                    "storage_clear_failed",
                    store=store.get_provider_name(),
                    error=str(exc),
                )
        if failures:
            raise StorageWriteError(
                message=f"Failed to clear {len(failures)} storage tier(s)",
                provider_name="tiered_store",
            ) from failures[0]
        self._logger.info("storage_cleared")

    async def usage(self) -> dict[str, int]:
        """Return characters held per tier, keyed by ``primary`` and ``overflow``.

        Raises
        ------
        StorageReadError
            If either tier cannot be measured.
        """
        return {
            "primary": await self._primary.usage_chars(),
            "overflow": await self._overflow.usage_chars(),
        }

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _write(self, key: str, value: Any) -> StorageTier:
        try:
            await self._primary.set(key, value)
        except StorageWriteError as primary_exc:
            await self._write_fallback(key, value, primary_exc)
            return StorageTier.FALLBACK
        await self._discard(self._overflow, FALLBACK_PREFIX + key)
        return StorageTier.PRIMARY

    async def _write_fallback(self, key: str, value: Any, cause: StorageWriteError) -> None:
        self._logger.warning("primary_write_failed", key=key, error=str(cause))
        try:
            await self._overflow.set(FALLBACK_PREFIX + key, value)
        except StorageWriteError as exc:
            self._logger.error("storage_write_failed", key=key, error=str(exc))
            raise StorageWriteError(
                message=f"All storage tiers rejected '{key}'",
                provider_name="tiered_store",
            ) from exc
        # Stale primary copy would otherwise resurface if the fallback is lost.
        await self._discard(self._primary, key)

    async def _read(self, key: str) -> Any | None:
        for store, store_key in (
            (self._overflow, FALLBACK_PREFIX + key),
            (self._primary, key),
        ):
            try:
                value = await store.get(store_key)
            except StorageReadError as exc:
                self._logger.warning(
                    "storage_read_failed",
                    key=store_key,
                    store=store.get_provider_name(),
                    error=str(exc),
                )
                continue
            if value is not None:
                return value
        return None

    async def _fetch_overflow(self, stored: StoredDocument) -> str | None:
        ref = stored.overflow_ref or ""
        try:
            blob = await self._overflow.get(ref)
        except StorageReadError as exc:
            self._logger.warning("overflow_content_unreadable", overflow_ref=ref, error=str(exc))
            return None
        if not isinstance(blob, str):
            self._logger.warning(
                "overflow_content_missing",
                overflow_ref=ref,
                document_id=stored.id,
                filename=stored.filename,
            )
            return None
        return blob

    async def _prune_overflow(self, keep: set[str]) -> None:
        try:
            refs = await self._overflow.keys()
        except StorageReadError as exc:
            self._logger.warning("overflow_prune_skipped", error=str(exc))
            return
        stale = [
            ref
            for ref in refs
            if ref.endswith(OVERFLOW_SUFFIX)
            and not ref.startswith(FALLBACK_PREFIX)
            and ref not in keep
        ]
        for ref in stale:
            await self._discard(self._overflow, ref)
        if stale:
            self._logger.info("overflow_pruned", count=len(stale))

    async def _discard(self, store: IKeyValueStore, key: str) -> None:
        try:
            await store.delete(key)
        except FindDocsError as exc:
            self._logger.warning(
                "storage_delete_failed",
                key=key,
                store=store.get_provider_name(),
                error=str(exc),
            )
