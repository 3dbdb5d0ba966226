"""Conversion job models for the document conversion state machine.

A :class:`ConversionJob` moves through these states:

    SUBMITTED -> POLLING -> SUCCEEDED | FAILED | TIMED_OUT | CANCELLED

Jobs are frozen; the runner produces a new instance per transition via
``model_copy(update={...})`` and hands the terminal one to the caller.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from finddocs.models.document import ContentKind


class JobState(str, Enum):  # noqa: UP042
    """Lifecycle states of a conversion job."""

    SUBMITTED = "SUBMITTED"
    POLLING = "POLLING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    TIMED_OUT = "TIMED_OUT"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_STATES


_TERMINAL_STATES = frozenset(
    {JobState.SUCCEEDED, JobState.FAILED, JobState.TIMED_OUT, JobState.CANCELLED}
)


class TaskStatus(str, Enum):  # noqa: UP042
    """``task_status`` values reported by the conversion service."""

    SUBMITTED = "submitted"
    PENDING = "pending"
    STARTED = "started"
    PROCESSING = "processing"
    SUCCESS = "success"
    FAILURE = "failure"


class ConversionProgress(BaseModel):
    """Advisory progress for one conversion job.

    ``estimated_remaining_ms`` extrapolates from observed throughput since
    the job started; it is ``0`` until at least one unit has completed.
    """

    model_config = ConfigDict(frozen=True)

    processed_units: int = Field(default=0, ge=0)
    total_units: int = Field(default=1, ge=1)
    percentage: int = Field(default=0, ge=0, le=100)
    estimated_remaining_ms: int = Field(default=0, ge=0)

    @classmethod
    def compute(cls, processed: int, total: int, elapsed_ms: float) -> ConversionProgress:
        """Derive percentage and remaining-time estimate from raw counts."""
        total = max(1, total)
        processed = max(0, min(processed, total))
        percentage = round(processed / total * 100)
        estimated = 0
        if processed > 0 and elapsed_ms > 0:
            rate = processed / elapsed_ms  # units per millisecond
            estimated = round((total - processed) / rate)
        return cls(
            processed_units=processed,
            total_units=total,
            percentage=percentage,
            estimated_remaining_ms=estimated,
        )


class StatusReport(BaseModel):
    """Parsed ``GET /v1/status/poll/{task_id}`` response.

    Unknown keys are kept so failure classification can inspect them.
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    task_id: str | None = None
    task_status: str = ""
    task_meta: dict[str, Any] | None = None
    errors: list[Any] | None = None
    message: str | None = None

    @property
    def is_success(self) -> bool:
        return self.task_status == TaskStatus.SUCCESS.value

    @property
    def is_failure(self) -> bool:
        return self.task_status == TaskStatus.FAILURE.value

    def unit_counts(self) -> tuple[int, int] | None:
        """Return ``(processed, total)`` from ``task_meta`` when reported."""
        meta = self.task_meta
        if not isinstance(meta, dict):
            return None
        if "num_processed" not in meta and "num_docs" not in meta:
            return None
        processed = _as_int(meta.get("num_processed"), default=0)
        total = _as_int(meta.get("num_docs"), default=1) or 1
        return min(processed, total), total


class ConversionJob(BaseModel):
    """A conversion job owned by the runner until it reaches a terminal state."""

    model_config = ConfigDict(frozen=True)

    task_id: str
    file_name: str
    state: JobState = JobState.SUBMITTED
    attempts: int = Field(default=0, ge=0)
    progress: ConversionProgress | None = None
    content: str | None = None
    content_kind: ContentKind | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    error: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.state.is_terminal


def _as_int(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default
