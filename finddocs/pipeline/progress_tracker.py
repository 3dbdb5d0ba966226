"""Ingestion progress tracking with callback-based listener notification.

Stores the latest :class:`BatchProgress` snapshot per operation id and
broadcasts every update to the listeners registered for that id.  The
CLI registers a listener that redraws a status line; tests register plain
lists.

    IngestionPipeline --update()--> ProgressTracker --callback()--> CLI status line
                                                    --callback()--> (any other listener)

Listener errors are caught and logged so a broken listener can't stop an
ingestion run.  Both sync and async callbacks are supported.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any

import structlog

from finddocs.models.ingestion import BatchProgress
from finddocs.utils.logging import get_logger

ProgressListener = Callable[[str, BatchProgress], Any]


class ProgressTracker:
    """Tracks and broadcasts ingestion progress via callbacks.

    Each ingestion run is identified by a string ``operation_id``.
    """

    def __init__(self) -> None:
        self._snapshots: dict[str, BatchProgress] = {}
        self._listeners: dict[str, list[ProgressListener]] = {}
        self._logger: structlog.BoundLogger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def update(self, operation_id: str, progress: BatchProgress) -> None:
        """Record a progress snapshot and notify all registered listeners.

        Parameters
        ----------
        operation_id:
            The ingestion run to update.
        progress:
            The latest snapshot for that run.
        """
        self._snapshots[operation_id] = progress

        self._logger.debug(
            "progress_update",
            operation_id=operation_id,
            index=progress.index,
            total=progress.total,
            filename=progress.filename,
            phase=progress.phase.value,
            percentage=round(progress.percentage, 1),
        )

        await self._notify_listeners(operation_id, progress)

    def register_listener(self, operation_id: str, callback: ProgressListener) -> None:
        """Register a callback accepting ``(operation_id, progress)``."""
        listeners = self._listeners.setdefault(operation_id, [])
        if callback not in listeners:
            listeners.append(callback)
            self._logger.debug(
                "listener_registered",
                operation_id=operation_id,
                total_listeners=len(listeners),
            )

    def unregister_listener(self, operation_id: str, callback: ProgressListener) -> None:
        listeners = self._listeners.get(operation_id, [])
        if callback in listeners:
            listeners.remove(callback)
            self._logger.debug(
                "listener_unregistered",
                operation_id=operation_id,
                remaining_listeners=len(listeners),
            )

    def get_status(self, operation_id: str) -> BatchProgress | None:
        """Return the latest snapshot for *operation_id*, or ``None`` if untracked."""
        return self._snapshots.get(operation_id)

    def forget(self, operation_id: str) -> None:
        """Drop the snapshot and listeners of a finished run."""
        self._snapshots.pop(operation_id, None)
        self._listeners.pop(operation_id, None)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _notify_listeners(self, operation_id: str, progress: BatchProgress) -> None:
        for callback in list(self._listeners.get(operation_id, [])):
            try:
                result = callback(operation_id, progress)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as exc:
                self._logger.warning(
                    "listener_callback_error",
                    operation_id=operation_id,
                    error=str(exc),
                    callback=getattr(callback, "__name__", repr(callback)),
                )
