"""Unit tests for single-file and batch ingestion."""

from __future__ import annotations

from pathlib import Path

import httpx
import pytest

from finddocs.models.ingestion import IngestionPhase, IngestStatus
from finddocs.pipeline.progress_tracker import ProgressTracker
from finddocs.providers.conversion.docling_provider import DoclingConversionProvider
from finddocs.providers.storage.memory_store import MemoryKeyValueStore
from finddocs.services.app_state import AppState
from finddocs.services.conversion_runner import ConversionJobRunner
from finddocs.services.dedup import hash_source_file
from finddocs.services.ingestion_service import IngestionPipeline, failure_message, is_supported
from finddocs.services.tiered_store import TieredStore
from finddocs.utils.concurrency import CancellationToken, FixedDelay
from finddocs.utils.errors import JobFailedError, JobTimedOutError, StorageWriteError, SubmissionError
from tests.conftest import FakeClock, FakeConversionProvider, make_source, success_payload

# ======================================================================
# Helpers
# ======================================================================


def _build(
    provider: FakeConversionProvider,
    state: AppState,
    clock: FakeClock,
    tracker: ProgressTracker | None = None,
) -> IngestionPipeline:
    runner = ConversionJobRunner(provider, clock=clock, delay_policy=FixedDelay(5.0), max_attempts=60)
    return IngestionPipeline(runner, state, progress_tracker=tracker, clock=clock, pacing_delay=1.0)


class TestHelpers:
    @pytest.mark.parametrize(
        ("name", "expected"),
        [("a.PDF", True), ("notes.txt", True), ("scan.jpeg", True), ("sheet.xlsx", False), ("README", False)],
    )
    def test_is_supported(self, name: str, expected: bool) -> None:
        assert is_supported(make_source(name)) is expected

    def test_failure_messages(self) -> None:
        assert failure_message("x.pdf", JobFailedError("bad scan")) == "Failed to process x.pdf. Task failed: bad scan"
        assert failure_message("x.pdf", JobTimedOutError("Task timed out after 60 poll attempts")) == (
            "Failed to process x.pdf. Task timed out after 60 poll attempts."
        )
        assert failure_message("x.pdf", SubmissionError("File too large.")) == (
            "Failed to process x.pdf. File too large."
        )


# ======================================================================
# Single file
# ======================================================================


class TestIngestOne:
    @pytest.mark.asyncio
    async def test_ingests_new_file(
        self, pipeline: IngestionPipeline, app_state: AppState, provider: FakeConversionProvider
    ) -> None:
        source = make_source("report.pdf", relative_path="docs/report.pdf")
        outcome = await pipeline.ingest_one(source)

        assert outcome.status == IngestStatus.INGESTED
        assert outcome.message == "report.pdf processed successfully!"
        assert outcome.record is not None
        assert outcome.record.source_path == "docs/report.pdf"
        assert outcome.record.content_hash == hash_source_file(source)
        assert outcome.record.file_type == "application/pdf"
        assert app_state.dedup.contains_file(source)
        assert len(app_state.documents) == 1
        assert provider.submitted == ["report.pdf"]

    @pytest.mark.asyncio
    async def test_persists_after_ingest(
        self, pipeline: IngestionPipeline, tiered_store: TieredStore
    ) -> None:
        source = make_source("report.pdf")
        await pipeline.ingest_one(source)
        assert [r.filename for r in await tiered_store.load_documents()] == ["report.pdf"]
        assert await tiered_store.load_hashes() == [hash_source_file(source)]

    @pytest.mark.asyncio
    async def test_duplicate_skips_network(
        self, pipeline: IngestionPipeline, provider: FakeConversionProvider
    ) -> None:
        source = make_source("report.pdf")
        await pipeline.ingest_one(source)
        outcome = await pipeline.ingest_one(source)

        assert outcome.status == IngestStatus.SKIPPED_DUPLICATE
        assert outcome.message == "report.pdf already processed - skipping duplicate"
        assert provider.submitted == ["report.pdf"]

    @pytest.mark.asyncio
    async def test_unsupported_skips_network(
        self, pipeline: IngestionPipeline, provider: FakeConversionProvider
    ) -> None:
        outcome = await pipeline.ingest_one(make_source("sheet.xlsx"))
        assert outcome.status == IngestStatus.SKIPPED_UNSUPPORTED
        assert provider.submitted == []

    @pytest.mark.asyncio
    async def test_failure_leaves_state_untouched(self, app_state: AppState, clock: FakeClock) -> None:
        provider = FakeConversionProvider(failing_files={"bad.pdf": "bad scan"})
        outcome = await _build(provider, app_state, clock).ingest_one(make_source("bad.pdf"))

        assert outcome.status == IngestStatus.FAILED
        assert outcome.message == "Failed to process bad.pdf. Task failed: bad scan"
        assert app_state.documents == []
        assert len(app_state.dedup) == 0

    @pytest.mark.asyncio
    async def test_unreadable_file_fails(self, pipeline: IngestionPipeline, tmp_path: Path) -> None:
        path = tmp_path / "gone.pdf"
        path.write_bytes(b"%PDF")
        source = make_source("gone.pdf").model_copy(update={"path": path, "data": None})
        path.unlink()

        outcome = await pipeline.ingest_one(source)
        assert outcome.status == IngestStatus.FAILED
        assert "Could not read file" in outcome.message

    @pytest.mark.asyncio
    async def test_storage_failure_still_ingested(self, clock: FakeClock) -> None:
        class _NoDocuments(MemoryKeyValueStore):
            async def set(self, key, value):
                if "rag_documents" in key:
                    raise StorageWriteError("full", provider_name=self.get_provider_name())
                await super().set(key, value)

        state = AppState(TieredStore(_NoDocuments(name="primary"), _NoDocuments(name="overflow")))
        await state.initialize()
        outcome = await _build(FakeConversionProvider(), state, clock).ingest_one(make_source("a.pdf"))

        assert outcome.status == IngestStatus.INGESTED
        assert "could not be saved" in outcome.message
        assert len(state.documents) == 1

    @pytest.mark.asyncio
    async def test_progress_phases_reported(
        self, app_state: AppState, clock: FakeClock, tracker: ProgressTracker
    ) -> None:
        provider = FakeConversionProvider(
            statuses=[
                {"task_status": "started", "task_meta": {"num_docs": 2, "num_processed": 1}},
                {"task_status": "success"},
            ],
        )
        seen = []
        tracker.register_listener("op", lambda op, progress: seen.append(progress))
        await _build(provider, app_state, clock, tracker).ingest_one(make_source("a.pdf"), operation_id="op")

        phases = [p.phase for p in seen]
        assert phases[0] == IngestionPhase.UPLOADING
        assert IngestionPhase.CONVERTING in phases
        assert phases[-2:] == [IngestionPhase.STORING, IngestionPhase.COMPLETE]
        converting = next(p for p in seen if p.phase == IngestionPhase.CONVERTING)
        assert "1/2 pages (50%)" in converting.message
        assert tracker.get_status("op").phase == IngestionPhase.COMPLETE


# ======================================================================
# Batches
# ======================================================================


class TestIngestBatch:
    @pytest.mark.asyncio
    async def test_new_and_duplicate_files(
        self, pipeline: IngestionPipeline, provider: FakeConversionProvider
    ) -> None:
        known = [make_source("old1.pdf"), make_source("old2.txt")]
        for source in known:
            await pipeline.ingest_one(source)
        provider.submitted.clear()

        fresh = [make_source("n1.pdf"), make_source("n2.docx"), make_source("n3.png")]
        report = await pipeline.ingest_batch([*fresh, *known])

        assert report.total == 5
        assert report.processed == 3
        assert report.skipped_duplicate == 2
        assert report.failed == 0
        assert provider.submitted == ["n1.pdf", "n2.docx", "n3.png"]
        assert report.summary == (
            "Batch processing complete! 3 files processed, 0 failed, 2 skipped (already processed)."
        )

    @pytest.mark.asyncio
    async def test_failure_does_not_stop_batch(self, app_state: AppState, clock: FakeClock) -> None:
        provider = FakeConversionProvider(failing_files={"b.pdf": "bad scan"})
        report = await _build(provider, app_state, clock).ingest_batch(
            [make_source("a.pdf"), make_source("b.pdf"), make_source("c.pdf")]
        )

        assert report.processed == 2
        assert report.failed == 1
        assert report.errors == ("Failed to process b.pdf. Task failed: bad scan",)
        assert [d.filename for d in app_state.documents] == ["a.pdf", "c.pdf"]

    @pytest.mark.asyncio
    async def test_malformed_status_replies_fail_each_file(self, app_state: AppState, clock: FakeClock) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.method == "POST":
                return httpx.Response(200, json={"task_id": "t-1"})
            return httpx.Response(200, json={"task_status": None})

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        provider = DoclingConversionProvider(client, base_url="http://docling.test")
        runner = ConversionJobRunner(provider, clock=clock, delay_policy=FixedDelay(5.0), max_attempts=3)
        pipeline = IngestionPipeline(runner, app_state, clock=clock, pacing_delay=1.0)

        report = await pipeline.ingest_batch([make_source("a.pdf"), make_source("b.pdf")])
        await client.aclose()

        assert report.processed == 0
        assert report.failed == 2
        assert report.errors == (
            "Failed to process a.pdf. Task timed out after 3 poll attempts.",
            "Failed to process b.pdf. Task timed out after 3 poll attempts.",
        )
        assert app_state.documents == []

    @pytest.mark.asyncio
    async def test_files_converted_sequentially_with_pacing(
        self, pipeline: IngestionPipeline, clock: FakeClock
    ) -> None:
        await pipeline.ingest_batch([make_source("a.pdf"), make_source("b.pdf"), make_source("c.pdf")])
        # One 5s poll per file, a 1s pause between files, none after the last.
        assert clock.sleeps == [5.0, 1.0, 5.0, 1.0, 5.0]

    @pytest.mark.asyncio
    async def test_repeated_file_in_selection_counts_once(
        self, pipeline: IngestionPipeline, provider: FakeConversionProvider
    ) -> None:
        source = make_source("a.pdf")
        report = await pipeline.ingest_batch([source, source])
        assert report.processed == 1
        assert report.skipped_duplicate == 1
        assert provider.submitted == ["a.pdf"]

    @pytest.mark.asyncio
    async def test_unsupported_files_are_ignored(self, pipeline: IngestionPipeline) -> None:
        report = await pipeline.ingest_batch([make_source("a.pdf"), make_source("b.xlsx")])
        assert report.processed == 1
        assert report.skipped_unsupported == 1
        assert report.summary.endswith("1 unsupported files ignored.")

    @pytest.mark.asyncio
    async def test_cancellation_stops_before_next_file(self, app_state: AppState, clock: FakeClock) -> None:
        token = CancellationToken()

        class _CancelAfterFirst(FakeConversionProvider):
            async def fetch_result(self, task_id: str) -> dict:
                token.cancel("Cancelled by user")
                return success_payload()

        provider = _CancelAfterFirst()
        report = await _build(provider, app_state, clock).ingest_batch(
            [make_source("a.pdf"), make_source("b.pdf"), make_source("c.pdf")],
            cancel_token=token,
        )

        assert report.cancelled is True
        assert report.processed == 1
        assert provider.submitted == ["a.pdf"]
        assert report.summary.startswith("Batch cancelled.")

    @pytest.mark.asyncio
    async def test_removal_allows_reingest(
        self, pipeline: IngestionPipeline, app_state: AppState, provider: FakeConversionProvider
    ) -> None:
        source = make_source("a.pdf")
        outcome = await pipeline.ingest_one(source)
        removed = await pipeline.remove_document(outcome.record.id)

        assert removed is not None
        assert not app_state.dedup.contains_file(source)
        again = await pipeline.ingest_one(source)
        assert again.status == IngestStatus.INGESTED
        assert provider.submitted == ["a.pdf", "a.pdf"]

    @pytest.mark.asyncio
    async def test_remove_unknown_document(self, pipeline: IngestionPipeline) -> None:
        assert await pipeline.remove_document("missing") is None


# ======================================================================
# Scanning
# ======================================================================


class TestScanning:
    @pytest.mark.asyncio
    async def test_scan_directory(self, pipeline: IngestionPipeline, tmp_path: Path) -> None:
        root = tmp_path / "reports"
        (root / "q3").mkdir(parents=True)
        (root / "a.pdf").write_bytes(b"a")
        (root / "q3" / "b.txt").write_text("b")
        (root / "c.xlsx").write_bytes(b"c")

        await pipeline.ingest_one(pipeline.scan_directory(root).new[0])
        scan = pipeline.scan_directory(root)

        assert len(scan.supported) == 2
        assert len(scan.new) == 1
        assert len(scan.duplicates) == 1
        assert [s.name for s in scan.unsupported] == ["c.xlsx"]
        assert scan.new[0].relative_path == "reports/q3/b.txt"
        assert scan.describe().startswith("Found 2 files (1 new, 1 already processed)")

    def test_scan_missing_directory(self, pipeline: IngestionPipeline, tmp_path: Path) -> None:
        with pytest.raises(NotADirectoryError):
            pipeline.scan_directory(tmp_path / "nope")
