"""Unit tests for the two-tier persistence layer."""

from __future__ import annotations

import json

import pytest

from finddocs.models.conversation import Conversation, Message, MessageRole
from finddocs.models.document import ConvertedDocument, DocumentRecord
from finddocs.providers.storage.memory_store import MemoryKeyValueStore
from finddocs.services.tiered_store import (
    CURRENT_CONVERSATION_KEY,
    DOCUMENTS_KEY,
    FALLBACK_PREFIX,
    HASHES_KEY,
    StorageTier,
    TieredStore,
    overflow_ref_for,
    placeholder_for,
)
from finddocs.utils.errors import StorageReadError, StorageWriteError


def _record(content: str, name: str = "a.pdf", content_hash: str | None = None) -> DocumentRecord:
    return DocumentRecord(filename=name, content=content, content_hash=content_hash or f"{name}_1_1")


class _UnreadableStore(MemoryKeyValueStore):
    async def get(self, key: str):
        raise StorageReadError("disk gone", provider_name=self.get_provider_name())


class _ReadOnlyStore(MemoryKeyValueStore):
    async def set(self, key: str, value) -> None:
        raise StorageWriteError("read-only", provider_name=self.get_provider_name())


class _FallbackOnlyStore(MemoryKeyValueStore):
    async def set(self, key: str, value) -> None:
        if not key.startswith(FALLBACK_PREFIX):
            raise StorageWriteError("blob rejected", provider_name=self.get_provider_name())
        await super().set(key, value)


# ======================================================================
# Documents
# ======================================================================


class TestDocuments:
    @pytest.mark.asyncio
    async def test_small_documents_round_trip(self, tiered_store: TieredStore) -> None:
        records = [_record("alpha", "a.pdf"), _record("beta", "b.txt")]
        tier = await tiered_store.save_documents(records)
        loaded = await tiered_store.load_documents()

        assert tier == StorageTier.PRIMARY
        assert [r.content for r in loaded] == ["alpha", "beta"]
        assert [r.id for r in loaded] == [r.id for r in records]

    @pytest.mark.asyncio
    async def test_large_content_goes_to_overflow(
        self,
        tiered_store: TieredStore,
        primary_store: MemoryKeyValueStore,
        overflow_store: MemoryKeyValueStore,
    ) -> None:
        big = "x" * 150_000
        record = _record(big)
        await tiered_store.save_documents([record])

        stored = await primary_store.get(DOCUMENTS_KEY)
        assert stored[0]["content"] == placeholder_for(big)
        assert stored[0]["overflow_ref"] == overflow_ref_for(record.id)
        assert await overflow_store.get(overflow_ref_for(record.id)) == big

        loaded = await tiered_store.load_documents()
        assert loaded[0].content == big
        assert len(loaded[0].content) == 150_000

    @pytest.mark.asyncio
    async def test_converted_document_body_stays_out_of_primary(
        self,
        tiered_store: TieredStore,
        primary_store: MemoryKeyValueStore,
    ) -> None:
        body = "word " * 30_000
        converted = ConvertedDocument.from_payload(
            {"document": {"filename": "report.pdf", "md_content": body, "text_content": body}}
        )
        record = DocumentRecord(
            filename="report.pdf",
            content=converted.content,
            metadata=converted.metadata,
            content_hash="report.pdf_1_1",
        )

        await tiered_store.save_documents([record])

        assert len(json.dumps(await primary_store.get(DOCUMENTS_KEY))) < 2_000
        loaded = await tiered_store.load_documents()
        assert loaded[0].content == body
        assert loaded[0].metadata == {"filename": "report.pdf"}

    @pytest.mark.asyncio
    async def test_failed_body_write_falls_back_to_full_records(
        self, primary_store: MemoryKeyValueStore
    ) -> None:
        overflow = _FallbackOnlyStore(name="overflow")
        store = TieredStore(primary_store, overflow)
        big = "z" * 150_000

        tier = await store.save_documents([_record(big)])

        assert tier == StorageTier.FALLBACK
        assert await primary_store.get(DOCUMENTS_KEY) is None
        assert (await store.load_documents())[0].content == big

    @pytest.mark.asyncio
    async def test_content_at_threshold_stays_inline(
        self, tiered_store: TieredStore, overflow_store: MemoryKeyValueStore
    ) -> None:
        await tiered_store.save_documents([_record("y" * 100_000)])
        assert await overflow_store.keys() == []

    @pytest.mark.asyncio
    async def test_missing_overflow_keeps_placeholder(
        self, tiered_store: TieredStore, overflow_store: MemoryKeyValueStore
    ) -> None:
        big = "z" * 120_000
        record = _record(big)
        await tiered_store.save_documents([record])
        await overflow_store.delete(overflow_ref_for(record.id))

        loaded = await tiered_store.load_documents()
        assert len(loaded) == 1
        assert loaded[0].content == placeholder_for(big)

    @pytest.mark.asyncio
    async def test_stale_overflow_blobs_are_pruned(
        self, tiered_store: TieredStore, overflow_store: MemoryKeyValueStore
    ) -> None:
        first = _record("a" * 150_000, "a.pdf")
        second = _record("b" * 150_000, "b.pdf")
        await tiered_store.save_documents([first, second])
        await tiered_store.save_documents([second])

        assert await overflow_store.keys() == [overflow_ref_for(second.id)]

    @pytest.mark.asyncio
    async def test_primary_quota_falls_back_to_overflow(self, overflow_store: MemoryKeyValueStore) -> None:
        primary = MemoryKeyValueStore(quota_chars=500, name="primary")
        store = TieredStore(primary, overflow_store)
        records = [_record("w" * 1000)]

        tier = await store.save_documents(records)

        assert tier == StorageTier.FALLBACK
        assert await primary.get(DOCUMENTS_KEY) is None
        assert await overflow_store.get(FALLBACK_PREFIX + DOCUMENTS_KEY) is not None
        loaded = await store.load_documents()
        assert loaded[0].content == "w" * 1000

    @pytest.mark.asyncio
    async def test_successful_write_clears_fallback_copy(self, overflow_store: MemoryKeyValueStore) -> None:
        primary = MemoryKeyValueStore(quota_chars=2000, name="primary")
        store = TieredStore(primary, overflow_store)
        await store.save_documents([_record("w" * 5000)])
        await store.save_documents([_record("small")])

        assert await overflow_store.get(FALLBACK_PREFIX + DOCUMENTS_KEY) is None
        assert [r.content for r in await store.load_documents()] == ["small"]

    @pytest.mark.asyncio
    async def test_both_tiers_failing_raises(self) -> None:
        store = TieredStore(_ReadOnlyStore(name="primary"), _ReadOnlyStore(name="overflow"))
        with pytest.raises(StorageWriteError):
            await store.save_documents([_record("text")])

    @pytest.mark.asyncio
    async def test_unreadable_primary_loads_nothing(self, overflow_store: MemoryKeyValueStore) -> None:
        store = TieredStore(_UnreadableStore(name="primary"), overflow_store)
        assert await store.load_documents() == []

    @pytest.mark.asyncio
    async def test_invalid_items_are_skipped(
        self, tiered_store: TieredStore, primary_store: MemoryKeyValueStore
    ) -> None:
        await tiered_store.save_documents([_record("ok")])
        payload = await primary_store.get(DOCUMENTS_KEY)
        await primary_store.set(DOCUMENTS_KEY, [{"bogus": True}, *payload])

        loaded = await tiered_store.load_documents()
        assert [r.content for r in loaded] == ["ok"]


# ======================================================================
# Hashes and conversations
# ======================================================================


class TestStateKeys:
    @pytest.mark.asyncio
    async def test_hashes_round_trip(self, tiered_store: TieredStore) -> None:
        await tiered_store.save_hashes(["a.pdf_1_1", "b.pdf_2_2"])
        assert await tiered_store.load_hashes() == ["a.pdf_1_1", "b.pdf_2_2"]

    @pytest.mark.asyncio
    async def test_hashes_fall_back_when_primary_full(self, overflow_store: MemoryKeyValueStore) -> None:
        store = TieredStore(MemoryKeyValueStore(quota_chars=10), overflow_store)
        tier = await store.save_hashes(["report.pdf_1024_1700000000000"])
        assert tier == StorageTier.FALLBACK
        assert await store.load_hashes() == ["report.pdf_1024_1700000000000"]
        assert await overflow_store.get(FALLBACK_PREFIX + HASHES_KEY) is not None

    @pytest.mark.asyncio
    async def test_conversations_round_trip(self, tiered_store: TieredStore) -> None:
        conversation = Conversation(id="1700000000123", title="Conversation 000123").with_messages(
            Message(role=MessageRole.USER, content="hi"),
            Message(role=MessageRole.ASSISTANT, content="hello"),
        )
        await tiered_store.save_conversations([conversation])
        await tiered_store.save_current_conversation_id(conversation.id)

        loaded = await tiered_store.load_conversations()
        assert loaded[0].id == conversation.id
        assert [m.content for m in loaded[0].messages] == ["hi", "hello"]
        assert await tiered_store.load_current_conversation_id() == conversation.id

    @pytest.mark.asyncio
    async def test_clearing_current_id(
        self, tiered_store: TieredStore, primary_store: MemoryKeyValueStore
    ) -> None:
        await tiered_store.save_current_conversation_id("123")
        assert await tiered_store.save_current_conversation_id(None) is None
        assert await primary_store.get(CURRENT_CONVERSATION_KEY) is None
        assert await tiered_store.load_current_conversation_id() is None

    @pytest.mark.asyncio
    async def test_usage_reports_each_tier(
        self,
        tiered_store: TieredStore,
        overflow_store: MemoryKeyValueStore,
    ) -> None:
        await tiered_store.save_documents([_record("u" * 150_000)])

        usage = await tiered_store.usage()

        assert usage["overflow"] == await overflow_store.usage_chars()
        assert usage["overflow"] > 150_000
        assert 0 < usage["primary"] < 2_000

    @pytest.mark.asyncio
    async def test_clear_wipes_both_tiers(
        self,
        tiered_store: TieredStore,
        primary_store: MemoryKeyValueStore,
        overflow_store: MemoryKeyValueStore,
    ) -> None:
        await tiered_store.save_documents([_record("q" * 150_000)])
        await tiered_store.save_hashes(["h"])
        await tiered_store.clear()

        assert await primary_store.keys() == []
        assert await overflow_store.keys() == []
        assert await tiered_store.load_documents() == []
