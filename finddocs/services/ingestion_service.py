"""Single-file and batch ingestion on top of the conversion job runner.

For every file offered:

    1. Reject unsupported extensions          -> SKIPPED_UNSUPPORTED
    2. Skip files whose dedup hash is known   -> SKIPPED_DUPLICATE (no network call)
    3. Convert through the job runner         -> FAILED on any domain error
    4. Build a DocumentRecord, record the hash, persist  -> INGESTED

Batches partition the selection up front, then convert new files strictly
one after another with a short pause in between so the conversion service
is never flooded.  One file's failure never stops the batch.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from pathlib import Path
from uuid import uuid4

import structlog

from finddocs.models.conversion import ConversionProgress
from finddocs.models.document import DocumentRecord, SourceFile
from finddocs.models.ingestion import (
    BatchProgress,
    BatchReport,
    DirectoryScan,
    IngestionPhase,
    IngestOutcome,
    IngestStatus,
)
from finddocs.pipeline.progress_tracker import ProgressTracker
from finddocs.services.app_state import AppState
from finddocs.services.conversion_runner import ConversionJobRunner
from finddocs.services.dedup import hash_source_file
from finddocs.utils.concurrency import CancellationToken, Clock, SystemClock
from finddocs.utils.errors import (
    FindDocsError,
    JobCancelledError,
    JobFailedError,
    JobTimedOutError,
    StorageWriteError,
)
from finddocs.utils.logging import get_logger

SUPPORTED_EXTENSIONS: frozenset[str] = frozenset({"pdf", "txt", "docx", "png", "jpg", "jpeg"})
DEFAULT_PACING_DELAY = 1.0  # seconds between batch files


def is_supported(source: SourceFile) -> bool:
    return source.extension in SUPPORTED_EXTENSIONS


def failure_message(file_name: str, exc: FindDocsError) -> str:
    """Render a per-file failure as user-facing status text."""
    if isinstance(exc, JobFailedError):
        return f"Failed to process {file_name}. Task failed: {exc.message}"
    if isinstance(exc, JobTimedOutError):
        return f"Failed to process {file_name}. {exc.message}."
    return f"Failed to process {file_name}. {exc.message}"


class IngestionPipeline:
    """Orchestrates document ingestion into the application state.

    Parameters
    ----------
    runner:
        Drives conversion jobs against the conversion service.
    state:
        The application state receiving new documents and hashes.
    progress_tracker:
        Optional hub receiving a :class:`BatchProgress` snapshot per step.
    clock:
        Used for the pause between batch files.
    pacing_delay:
        Seconds to wait between consecutive batch files.
    """

    def __init__(
        self,
        runner: ConversionJobRunner,
        state: AppState,
        progress_tracker: ProgressTracker | None = None,
        clock: Clock | None = None,
        pacing_delay: float = DEFAULT_PACING_DELAY,
    ) -> None:
        self._runner = runner
        self._state = state
        self._tracker = progress_tracker
        self._clock = clock or SystemClock()
        self._pacing_delay = pacing_delay
        self._logger: structlog.BoundLogger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Scanning
    # ------------------------------------------------------------------

    def scan_files(self, files: Iterable[SourceFile], directory: str = "") -> DirectoryScan:
        """Partition *files* by extension support and dedup status."""
        supported: list[SourceFile] = []
        unsupported: list[SourceFile] = []
        new: list[SourceFile] = []
        duplicates: list[SourceFile] = []
        seen: set[str] = set()
        for source in files:
            if not is_supported(source):
                unsupported.append(source)
                continue
            supported.append(source)
            content_hash = hash_source_file(source)
            # Repeats within one selection count as duplicates too.
            if content_hash in self._state.dedup or content_hash in seen:
                duplicates.append(source)
            else:
                seen.add(content_hash)
                new.append(source)
        return DirectoryScan(
            directory=directory,
            supported=tuple(supported),
            new=tuple(new),
            duplicates=tuple(duplicates),
            unsupported=tuple(unsupported),
        )

    def scan_directory(self, path: str | Path) -> DirectoryScan:
        """Walk a directory tree and partition every regular file in it.

        Relative paths start with the directory's own name, e.g.
        ``reports/q3/summary.pdf``.
        """
        root = Path(path)
        if not root.is_dir():
            raise NotADirectoryError(f"Not a directory: {root}")
        files = [
            SourceFile.from_path(entry, root=root)
            for entry in sorted(root.rglob("*"))
            if entry.is_file()
        ]
        scan = self.scan_files(files, directory=root.name)
        self._logger.info(
            "directory_scanned",
            directory=str(root),
            supported=len(scan.supported),
            new=len(scan.new),
            duplicates=len(scan.duplicates),
            unsupported=len(scan.unsupported),
        )
        return scan

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    async def ingest_one(
        self,
        source: SourceFile,
        cancel_token: CancellationToken | None = None,
        operation_id: str | None = None,
    ) -> IngestOutcome:
        """Ingest a single file, skipping unsupported types and duplicates.

        Raises :class:`JobCancelledError` if *cancel_token* fires while the
        file is converting; every other failure is returned as an outcome.
        """
        if not is_supported(source):
            return self._unsupported(source)
        if self._state.dedup.contains_file(source):
            return self._duplicate(source)
        operation_id = operation_id or uuid4().hex
        return await self._process(source, 1, 1, operation_id, cancel_token)

    async def ingest_batch(
        self,
        files: Sequence[SourceFile],
        cancel_token: CancellationToken | None = None,
        operation_id: str | None = None,
    ) -> BatchReport:
        """Ingest new supported files one at a time.

        Duplicates and unsupported files are counted, not converted.  A
        triggered *cancel_token* stops the batch before the next file.
        """
        operation_id = operation_id or uuid4().hex
        scan = self.scan_files(files)
        outcomes: list[IngestOutcome] = [self._unsupported(s) for s in scan.unsupported]
        outcomes.extend(self._duplicate(s) for s in scan.duplicates)

        self._logger.info(
            "batch_started",
            operation_id=operation_id,
            new=len(scan.new),
            skipped_duplicate=len(scan.duplicates),
            skipped_unsupported=len(scan.unsupported),
        )

        processed = 0
        failed = 0
        cancelled = False
        errors: list[str] = []
        total = len(scan.new)

        for index, source in enumerate(scan.new, start=1):
            if cancel_token is not None and cancel_token.is_cancelled:
                cancelled = True
                break

            try:
                outcome = await self._process(source, index, total, operation_id, cancel_token)
            except JobCancelledError:
                cancelled = True
                break

            outcomes.append(outcome)
            if outcome.status == IngestStatus.INGESTED:
                processed += 1
            else:
                failed += 1
                errors.append(outcome.message)

            if index < total:
                await self._clock.sleep(self._pacing_delay)

        report = BatchReport(
            total=len(files),
            processed=processed,
            failed=failed,
            skipped_duplicate=len(scan.duplicates),
            skipped_unsupported=len(scan.unsupported),
            cancelled=cancelled,
            outcomes=tuple(outcomes),
            errors=tuple(errors),
        )
        self._logger.info(
            "batch_finished",
            operation_id=operation_id,
            processed=processed,
            failed=failed,
            skipped_duplicate=report.skipped_duplicate,
            skipped_unsupported=report.skipped_unsupported,
            cancelled=cancelled,
        )
        return report

    async def remove_document(self, document_id: str) -> DocumentRecord | None:
        """Remove a document and evict its hash so the file can be re-ingested."""
        record = self._state.remove_document(document_id)
        if record is None:
            self._logger.warning("document_not_found", document_id=document_id)
            return None
        await self._state.save_documents()
        self._logger.info(
            "document_removed",
            document_id=document_id,
            filename=record.filename,
        )
        return record

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _process(
        self,
        source: SourceFile,
        index: int,
        total: int,
        operation_id: str,
        cancel_token: CancellationToken | None,
    ) -> IngestOutcome:
        """Convert and store one new file.

        Raises :class:`JobCancelledError` so batches can stop; every other
        domain error becomes a FAILED outcome.
        """
        log = self._logger.bind(operation_id=operation_id, file_name=source.name)
        await self._report(operation_id, index, total, source, IngestionPhase.UPLOADING,
                           message=f"Processing {source.name} ({index}/{total})...")

        async def on_conversion_progress(progress: ConversionProgress) -> None:
            await self._report(
                operation_id,
                index,
                total,
                source,
                IngestionPhase.CONVERTING,
                conversion=progress,
                message=(
                    f"Processing {source.name} ({index}/{total})... "
                    f"{progress.processed_units}/{progress.total_units} pages "
                    f"({progress.percentage}%)"
                ),
            )

        try:
            file_bytes = source.read_bytes()
        except OSError as exc:
            message = f"Failed to process {source.name}. Could not read file: {exc}"
            log.warning("ingest_read_failed", error=str(exc))
            await self._report(operation_id, index, total, source, IngestionPhase.FAILED,
                               message=message)
            return IngestOutcome(status=IngestStatus.FAILED, filename=source.name, message=message)

        try:
            converted = await self._runner.convert(
                file_bytes,
                source.name,
                on_progress=on_conversion_progress,
                cancel_token=cancel_token,
            )
        except JobCancelledError:
            log.info("ingest_cancelled")
            raise
        except FindDocsError as exc:
            message = failure_message(source.name, exc)
            log.warning("ingest_failed", error=str(exc), error_type=type(exc).__name__)
            await self._report(operation_id, index, total, source, IngestionPhase.FAILED,
                               message=message)
            return IngestOutcome(status=IngestStatus.FAILED, filename=source.name, message=message)

        record = DocumentRecord(
            filename=source.name,
            content=converted.content,
            metadata=converted.metadata,
            source_path=source.relative_path or source.name,
            content_hash=hash_source_file(source),
            file_type=source.mime_type,
        )
        self._state.add_document(record)

        await self._report(operation_id, index, total, source, IngestionPhase.STORING,
                           message=f"Saving {source.name}...")
        message = f"{source.name} processed successfully!"
        try:
            await self._state.save_documents()
        except StorageWriteError as exc:
            log.error("ingest_persist_failed", document_id=record.id, error=str(exc))
            message = f"{source.name} processed but could not be saved: {exc.message}"

        log.info("ingest_succeeded", document_id=record.id, chars=len(record.content))
        await self._report(operation_id, index, total, source, IngestionPhase.COMPLETE,
                           message=message)
        return IngestOutcome(
            status=IngestStatus.INGESTED,
            filename=source.name,
            record=record,
            message=message,
        )

    def _unsupported(self, source: SourceFile) -> IngestOutcome:
        supported = ", ".join(sorted(SUPPORTED_EXTENSIONS))
        return IngestOutcome(
            status=IngestStatus.SKIPPED_UNSUPPORTED,
            filename=source.name,
            message=f"{source.name} is not a supported file type ({supported})",
        )

    def _duplicate(self, source: SourceFile) -> IngestOutcome:
        self._logger.debug("ingest_skipped_duplicate", file_name=source.name)
        return IngestOutcome(
            status=IngestStatus.SKIPPED_DUPLICATE,
            filename=source.name,
            message=f"{source.name} already processed - skipping duplicate",
        )

    async def _report(
        self,
        operation_id: str,
        index: int,
        total: int,
        source: SourceFile,
        phase: IngestionPhase,
        conversion: ConversionProgress | None = None,
        message: str = "",
    ) -> None:
        if self._tracker is None:
            return
        await self._tracker.update(
            operation_id,
            BatchProgress(
                index=index,
                total=total,
                filename=source.name,
                phase=phase,
                conversion=conversion,
                message=message,
            ),
        )
