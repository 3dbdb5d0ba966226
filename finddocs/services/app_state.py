"""Explicit application state: documents, dedup index and conversations.

One :class:`AppState` is created per process by the application factory
and handed to the ingestion, retrieval and question-answering services.
It is the only writer of persisted state.

Lifecycle::

    state = AppState(store)
    await state.initialize()   # load persisted state, bootstrap a conversation
    ...                        # services mutate and call save_*()
    await state.clear()        # wipe memory and both storage tiers
"""

from __future__ import annotations

import json
from collections.abc import Callable

import structlog

from finddocs.models.document import DocumentRecord, StorageStats
from finddocs.services.conversation_store import ConversationStore
from finddocs.services.dedup import DedupIndex
from finddocs.services.tiered_store import TieredStore
from finddocs.utils.logging import get_logger


class AppState:
    """Owns the in-memory document library and conversation registry."""

    def __init__(
        self,
        store: TieredStore,
        conversation_id_factory: Callable[[], str] | None = None,
    ) -> None:
        self._store = store
        self._id_factory = conversation_id_factory
        self._documents: list[DocumentRecord] = []
        self._dedup = DedupIndex()
        self._conversations = ConversationStore(id_factory=conversation_id_factory)
        self._initialized = False
        self._logger: structlog.BoundLogger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        """Load persisted state and make sure a conversation is current.

        A conversation is created only when none were persisted and no
        current id was saved.
        """
        self._documents = await self._store.load_documents()
        hashes = await self._store.load_hashes()
        self._dedup = DedupIndex(hashes)
        for record in self._documents:
            self._dedup.add(record.content_hash)

        conversations = await self._store.load_conversations()
        current_id = await self._store.load_current_conversation_id()
        self._conversations = ConversationStore(
            conversations,
            current_id=current_id,
            id_factory=self._id_factory,
        )

        had_conversations = len(self._conversations) > 0 or current_id is not None
        self._conversations.current()
        if not had_conversations:
            await self.save_conversations()

        self._initialized = True
        self._logger.info(
            "app_state_initialized",
            documents=len(self._documents),
            hashes=len(self._dedup),
            conversations=len(self._conversations),
            current_conversation=self._conversations.current_id,
        )

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    async def clear(self) -> None:
        """Drop every document, hash and conversation, in memory and on disk."""
        await self._store.clear()
        self._documents = []
        self._dedup.clear()
        self._conversations.clear()
        self._logger.info("app_state_cleared")

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    @property
    def documents(self) -> list[DocumentRecord]:
        return list(self._documents)

    @property
    def dedup(self) -> DedupIndex:
        return self._dedup

    def find_document(self, document_id: str) -> DocumentRecord | None:
        for record in self._documents:
            if record.id == document_id:
                return record
        return None

    def add_document(self, record: DocumentRecord) -> None:
        self._documents.append(record)
        self._dedup.add(record.content_hash)

    def remove_document(self, document_id: str) -> DocumentRecord | None:
        """Remove a record and evict its hash; returns the removed record."""
        record = self.find_document(document_id)
        if record is None:
            return None
        self._documents = [r for r in self._documents if r.id != document_id]
        self._dedup.discard(record.content_hash)
        return record

    async def save_documents(self) -> None:
        """Persist the document list and the dedup index."""
        await self._store.save_documents(self._documents)
        await self._store.save_hashes(self._dedup.to_list())

    def stats(self) -> StorageStats:
        total_docs = len(self._documents)
        total_chars = sum(len(r.content) for r in self._documents)
        avg_chars = round(total_chars / total_docs) if total_docs else 0
        serialized = json.dumps([r.model_dump(mode="json") for r in self._documents])
        return StorageStats(
            total_docs=total_docs,
            total_chars=total_chars,
            avg_chars=avg_chars,
            storage_used_mb=round(len(serialized) / 1024 / 1024, 2),
        )

    async def storage_usage(self) -> dict[str, int]:
        return await self._store.usage()

    # ------------------------------------------------------------------
    # Conversations
    # ------------------------------------------------------------------

    @property
    def conversations(self) -> ConversationStore:
        return self._conversations

    async def save_conversations(self) -> None:
        await self._store.save_conversations(self._conversations.conversations)
        await self._store.save_current_conversation_id(self._conversations.current_id)
