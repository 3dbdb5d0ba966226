"""Ingestion outcome and batch progress models."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from finddocs.models.conversion import ConversionProgress
from finddocs.models.document import DocumentRecord, SourceFile


class IngestStatus(str, Enum):  # noqa: UP042
    INGESTED = "INGESTED"
    SKIPPED_DUPLICATE = "SKIPPED_DUPLICATE"
    SKIPPED_UNSUPPORTED = "SKIPPED_UNSUPPORTED"
    FAILED = "FAILED"


class IngestionPhase(str, Enum):  # noqa: UP042
    """Coarse phases reported to progress listeners."""

    SCANNING = "SCANNING"
    UPLOADING = "UPLOADING"
    CONVERTING = "CONVERTING"
    STORING = "STORING"
    COMPLETE = "COMPLETE"
    FAILED = "FAILED"


class IngestOutcome(BaseModel):
    """Result of offering a single file to the pipeline."""

    model_config = ConfigDict(frozen=True)

    status: IngestStatus
    filename: str
    record: DocumentRecord | None = None
    message: str = ""

    @property
    def succeeded(self) -> bool:
        return self.status == IngestStatus.INGESTED


class DirectoryScan(BaseModel):
    """Partition of a file selection by extension support and dedup status."""

    model_config = ConfigDict(frozen=True)

    directory: str = ""
    supported: tuple[SourceFile, ...] = ()
    new: tuple[SourceFile, ...] = ()
    duplicates: tuple[SourceFile, ...] = ()
    unsupported: tuple[SourceFile, ...] = ()

    def describe(self) -> str:
        text = (
            f"Found {len(self.supported)} files "
            f"({len(self.new)} new, {len(self.duplicates)} already processed)"
        )
        if self.directory:
            text += f" from {self.directory}"
        return text


class BatchProgress(BaseModel):
    """Snapshot emitted while a batch is running.

    ``index`` is 1-based; ``conversion`` carries the current file's
    sub-progress when the conversion service reports unit counts.
    """

    model_config = ConfigDict(frozen=True)

    index: int = Field(ge=0)
    total: int = Field(ge=0)
    filename: str
    phase: IngestionPhase
    conversion: ConversionProgress | None = None
    message: str = ""

    @property
    def percentage(self) -> float:
        if self.total == 0:
            return 100.0
        done = max(0, self.index - 1)
        fraction = 0.0
        if self.phase == IngestionPhase.COMPLETE:
            fraction = 1.0
        elif self.conversion is not None:
            fraction = self.conversion.percentage / 100
        return min(100.0, (done + fraction) / self.total * 100)


class BatchReport(BaseModel):
    """Aggregate result of a batch ingestion."""

    model_config = ConfigDict(frozen=True)

    total: int = 0
    processed: int = 0
    failed: int = 0
    skipped_duplicate: int = 0
    skipped_unsupported: int = 0
    cancelled: bool = False
    outcomes: tuple[IngestOutcome, ...] = ()
    errors: tuple[str, ...] = ()

    @property
    def skipped(self) -> int:
        return self.skipped_duplicate + self.skipped_unsupported

    @property
    def summary(self) -> str:
        text = (
            f"Batch processing complete! {self.processed} files processed, "
            f"{self.failed} failed, {self.skipped_duplicate} skipped (already processed)."
        )
        if self.skipped_unsupported:
            text += f" {self.skipped_unsupported} unsupported files ignored."
        if self.cancelled:
            text = "Batch cancelled. " + text
        return text
