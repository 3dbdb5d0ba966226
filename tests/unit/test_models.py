"""Unit tests for the document, conversion and ingestion models."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from finddocs.models.conversion import ConversionJob, ConversionProgress, JobState, StatusReport
from finddocs.models.document import (
    NO_CONTENT_SENTINEL,
    ContentKind,
    ConvertedDocument,
    DocumentRecord,
    SourceFile,
    StoredDocument,
)
from finddocs.models.ingestion import BatchReport, DirectoryScan
from finddocs.models.retrieval import RetrievalResult


class TestSourceFile:
    def test_from_path(self, tmp_path: Path) -> None:
        root = tmp_path / "reports"
        (root / "q3").mkdir(parents=True)
        path = root / "q3" / "Summary.PDF"
        path.write_bytes(b"%PDF-1.7")

        source = SourceFile.from_path(path, root=root)
        assert source.name == "Summary.PDF"
        assert source.size_bytes == 8
        assert source.extension == "pdf"
        assert source.relative_path == "reports/q3/Summary.PDF"
        assert source.read_bytes() == b"%PDF-1.7"

    def test_no_extension(self) -> None:
        assert SourceFile.from_bytes("Makefile", b"").extension == ""

    def test_read_without_content(self) -> None:
        source = SourceFile(name="x.pdf", size_bytes=0, last_modified_ms=0)
        with pytest.raises(ValueError):
            source.read_bytes()

    def test_frozen(self) -> None:
        source = SourceFile.from_bytes("a.txt", b"a")
        with pytest.raises(ValidationError):
            source.name = "b.txt"


class TestConvertedDocument:
    @pytest.mark.parametrize(
        ("document", "kind", "content"),
        [
            ({"md_content": "# md", "text_content": "txt"}, ContentKind.MARKDOWN, "# md"),
            ({"md_content": "", "text_content": "txt", "html_content": "<p>"}, ContentKind.TEXT, "txt"),
            ({"html_content": "<p>hi</p>"}, ContentKind.HTML, "<p>hi</p>"),
            ({}, ContentKind.NONE, NO_CONTENT_SENTINEL),
        ],
    )
    def test_content_priority(self, document: dict, kind: ContentKind, content: str) -> None:
        converted = ConvertedDocument.from_payload({"document": document})
        assert converted.kind == kind
        assert converted.content == content

    def test_missing_document(self) -> None:
        assert ConvertedDocument.from_payload(None).content == NO_CONTENT_SENTINEL

    def test_metadata_excludes_text_fields(self) -> None:
        converted = ConvertedDocument.from_payload(
            {
                "document": {
                    "filename": "q3.pdf",
                    "md_content": "# md",
                    "text_content": "txt",
                    "html_content": "<p>",
                    "json_content": {"pages": 2},
                }
            }
        )
        assert converted.metadata == {"filename": "q3.pdf", "json_content": {"pages": 2}}


class TestConversionModels:
    def test_progress_compute(self) -> None:
        progress = ConversionProgress.compute(1, 4, 2000)
        assert progress.percentage == 25
        assert progress.estimated_remaining_ms == 6000

    def test_progress_clamps(self) -> None:
        progress = ConversionProgress.compute(9, 0, 0)
        assert progress.total_units == 1
        assert progress.processed_units == 1
        assert progress.estimated_remaining_ms == 0

    def test_unit_counts(self) -> None:
        assert StatusReport(task_status="started").unit_counts() is None
        assert StatusReport(task_meta={"num_docs": 3, "num_processed": 5}).unit_counts() == (3, 3)
        assert StatusReport(task_meta={"num_processed": "2"}).unit_counts() == (1, 1)

    def test_extra_keys_kept(self) -> None:
        report = StatusReport.model_validate({"task_status": "success", "worker": "w1"})
        assert report.is_success
        assert report.model_extra == {"worker": "w1"}

    def test_terminal_states(self) -> None:
        assert not ConversionJob(task_id="t", file_name="f").is_terminal
        assert JobState.TIMED_OUT.is_terminal


class TestRecords:
    def test_stored_document_to_record(self) -> None:
        stored = StoredDocument(filename="a.pdf", content="[placeholder]", content_hash="h", overflow_ref="x")
        record = stored.to_record("full text")
        assert type(record) is DocumentRecord
        assert record.content == "full text"
        assert record.id == stored.id

    def test_retrieval_score_bounds(self) -> None:
        with pytest.raises(ValidationError):
            RetrievalResult(document_id="a", filename="a", content_excerpt="", relevance_score=1.5)


class TestIngestionModels:
    def test_scan_describe(self) -> None:
        assert DirectoryScan(directory="docs").describe() == "Found 0 files (0 new, 0 already processed) from docs"

    def test_report_summary(self) -> None:
        report = BatchReport(total=4, processed=2, failed=1, skipped_duplicate=1)
        assert report.summary == "Batch processing complete! 2 files processed, 1 failed, 1 skipped (already processed)."
        assert report.skipped == 1
