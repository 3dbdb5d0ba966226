"""Drives a conversion job from submission to a terminal state.

The runner owns the polling loop:

    submit -> (sleep, poll)* -> SUCCEEDED | FAILED | TIMED_OUT | CANCELLED

Each iteration sleeps *before* polling, as the service never finishes a
job instantly.  A poll or result fetch that fails counts as an attempt and
the loop goes on; after ``max_attempts`` non-terminal polls the job times
out.  A ``failure`` status is terminal and is classified once.

Time is read from an injected :class:`Clock` and the inter-attempt delay
comes from an injected :class:`DelayPolicy`, so tests run the whole loop
without real sleeping.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import structlog

from finddocs.interfaces.conversion_provider import IConversionProvider
from finddocs.models.conversion import (
    ConversionJob,
    ConversionProgress,
    JobState,
    StatusReport,
)
from finddocs.models.document import ContentKind, ConvertedDocument
from finddocs.utils.concurrency import (
    CancellationToken,
    Clock,
    DelayPolicy,
    FixedDelay,
    SystemClock,
    invoke_callback,
)
from finddocs.utils.errors import (
    JobCancelledError,
    JobFailedError,
    JobTimedOutError,
    PollTransientError,
)
from finddocs.utils.logging import get_logger

DEFAULT_MAX_ATTEMPTS = 60
UNKNOWN_ERROR = "Unknown error"

ProgressCallback = Callable[[ConversionProgress], Any]


def format_error_entry(entry: Any) -> str:
    """Render one service error as ``"type: msg"`` when it is structured."""
    if isinstance(entry, dict):
        return f"{entry.get('type')}: {entry.get('msg')}"
    return str(entry)


def classify_failure(report: StatusReport, result_payload: dict[str, Any] | None = None) -> str:
    """Pick the most specific failure message available.

    Priority: per-error list from the result endpoint, ``task_meta.error``,
    the status-level ``errors`` list, the status ``message``, else
    ``"Unknown error"``.
    """
    if result_payload:
        errors = result_payload.get("errors")
        if isinstance(errors, list) and errors:
            return ", ".join(format_error_entry(e) for e in errors)

    meta = report.task_meta or {}
    if meta.get("error"):
        return str(meta["error"])
    if report.errors:
        return ", ".join(format_error_entry(e) for e in report.errors)
    if report.message:
        return report.message
    return UNKNOWN_ERROR


class ConversionJobRunner:
    """Submits files to a conversion provider and polls jobs to completion.

    Parameters
    ----------
    provider:
        The conversion service adapter.
    clock:
        Time source; defaults to :class:`SystemClock`.
    delay_policy:
        Delay before each poll; defaults to a fixed 5 seconds.
    max_attempts:
        Poll ceiling before the job is declared timed out.
    options:
        Conversion options document passed on every submission; the
        provider's defaults apply when ``None``.
    """

    def __init__(
        self,
        provider: IConversionProvider,
        clock: Clock | None = None,
        delay_policy: DelayPolicy | None = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        options: dict[str, Any] | None = None,
    ) -> None:
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")
        self._provider = provider
        self._clock = clock or SystemClock()
        self._delay = delay_policy or FixedDelay(5.0)
        self._max_attempts = max_attempts
        self._options = options
        self._logger: structlog.BoundLogger = get_logger(__name__)

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def submit(self, file_bytes: bytes, file_name: str) -> ConversionJob:
        """Upload a file and return the SUBMITTED job.

        Submission is never retried; :class:`SubmissionError` propagates.
        """
        task_id = await self._provider.submit(file_bytes, file_name, self._options)
        return ConversionJob(task_id=task_id, file_name=file_name)

    async def poll(
        self,
        job: ConversionJob,
        on_progress: ProgressCallback | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> ConversionJob:
        """Poll *job* until it reaches a terminal state and return that state.

        Never raises for job-level outcomes: failure, timeout and
        cancellation are returned as terminal jobs.
        """
        started = self._clock.now()
        job = job.model_copy(update={"state": JobState.POLLING, "attempts": 0})
        log = self._logger.bind(task_id=job.task_id, file_name=job.file_name)

        while job.attempts < self._max_attempts:
            if cancel_token is not None and cancel_token.is_cancelled:
                return self._cancelled(job, cancel_token, log)

            await self._clock.sleep(self._delay.delay_for(job.attempts + 1))

            if cancel_token is not None and cancel_token.is_cancelled:
                return self._cancelled(job, cancel_token, log)

            job = job.model_copy(update={"attempts": job.attempts + 1})

            try:
                report = await self._provider.poll_status(job.task_id)
            except PollTransientError as exc:
                log.warning("conversion_poll_failed", attempt=job.attempts, error=str(exc))
                continue

            counts = report.unit_counts()
            if counts is not None:
                progress = ConversionProgress.compute(
                    counts[0], counts[1], self._elapsed_ms(started)
                )
                job = job.model_copy(update={"progress": progress})
                await invoke_callback(on_progress, progress)

            if report.is_success:
                try:
                    payload = await self._provider.fetch_result(job.task_id)
                except PollTransientError as exc:
                    log.warning("conversion_result_fetch_failed", attempt=job.attempts, error=str(exc))
                    continue
                return await self._succeeded(job, payload, started, on_progress, log)

            if report.is_failure:
                message = await self._classify(job.task_id, report, log)
                log.error("conversion_failed", attempts=job.attempts, error=message)
                return job.model_copy(update={"state": JobState.FAILED, "error": message})

            log.debug("conversion_pending", attempt=job.attempts, status=report.task_status)

        log.error("conversion_timed_out", attempts=job.attempts)
        return job.model_copy(
            update={
                "state": JobState.TIMED_OUT,
                "error": f"Task timed out after {job.attempts} poll attempts",
            }
        )

    async def run(
        self,
        file_bytes: bytes,
        file_name: str,
        on_progress: ProgressCallback | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> ConversionJob:
        """Submit then poll; returns the terminal job."""
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()
        job = await self.submit(file_bytes, file_name)
        return await self.poll(job, on_progress=on_progress, cancel_token=cancel_token)

    async def convert(
        self,
        file_bytes: bytes,
        file_name: str,
        on_progress: ProgressCallback | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> ConvertedDocument:
        """Run a job and return its document, raising on any non-success outcome.

        Raises
        ------
        SubmissionError
            The upload was rejected.
        JobFailedError
            The service reported failure; the message is the classified reason.
        JobTimedOutError
            The poll ceiling was reached.
        JobCancelledError
            *cancel_token* was triggered.
        """
        job = await self.run(file_bytes, file_name, on_progress, cancel_token)
        provider_name = self._provider.get_provider_name()
        if job.state == JobState.FAILED:
            raise JobFailedError(message=job.error or UNKNOWN_ERROR, provider_name=provider_name)
        if job.state == JobState.TIMED_OUT:
            raise JobTimedOutError(message=job.error or "Task timed out", provider_name=provider_name)
        if job.state == JobState.CANCELLED:
            raise JobCancelledError(message=job.error or "Operation cancelled")
        return ConvertedDocument(
            content=job.content or "",
            kind=job.content_kind or ContentKind.NONE,
            metadata=job.metadata,
        )

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _succeeded(
        self,
        job: ConversionJob,
        payload: dict[str, Any],
        started: float,
        on_progress: ProgressCallback | None,
        log: structlog.BoundLogger,
    ) -> ConversionJob:
        converted = ConvertedDocument.from_payload(payload)
        total = job.progress.total_units if job.progress else 1
        progress = ConversionProgress.compute(total, total, self._elapsed_ms(started))
        await invoke_callback(on_progress, progress)
        log.info(
            "conversion_succeeded",
            attempts=job.attempts,
            content_kind=converted.kind.value,
            chars=len(converted.content),
        )
        return job.model_copy(
            update={
                "state": JobState.SUCCEEDED,
                "progress": progress,
                "content": converted.content,
                "content_kind": converted.kind,
                "metadata": converted.metadata,
            }
        )

    async def _classify(
        self,
        task_id: str,
        report: StatusReport,
        log: structlog.BoundLogger,
    ) -> str:
        payload: dict[str, Any] | None = None
        try:
            payload = await self._provider.fetch_result(task_id)
        except PollTransientError as exc:
            log.debug("conversion_failure_details_unavailable", error=str(exc))
        return classify_failure(report, payload)

    def _cancelled(
        self,
        job: ConversionJob,
        token: CancellationToken,
        log: structlog.BoundLogger,
    ) -> ConversionJob:
        log.info("conversion_cancelled", attempts=job.attempts, reason=token.reason)
        return job.model_copy(update={"state": JobState.CANCELLED, "error": token.reason})

    def _elapsed_ms(self, started: float) -> float:
        return (self._clock.now() - started) * 1000
