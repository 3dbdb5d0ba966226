"""Timing, retry and cancellation primitives shared by the job runner and
the ingestion pipeline.

Three patterns are exposed:

1. **Clock** -- ``now()`` plus an awaitable ``sleep()``.  The runner and
   pipeline never call ``time`` or ``asyncio.sleep`` directly, so tests
   inject a fake clock that advances instantly.

2. **DelayPolicy** -- maps a 1-based attempt number to the delay before
   that attempt.  :class:`FixedDelay` reproduces the 5-second poll cadence;
   :class:`ExponentialBackoff` is available for slower services.

3. **CancellationToken** -- an ``asyncio.Event`` wrapper checked between
   poll attempts and between batch files.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from typing import Any, Protocol

import structlog

from finddocs.utils.errors import JobCancelledError
from finddocs.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)


class Clock(Protocol):
    """Monotonic time source with cooperative sleeping."""

    def now(self) -> float:
        """Return a monotonic timestamp in seconds."""
        ...

    async def sleep(self, seconds: float) -> None:
        """Suspend the calling task for *seconds*."""
        ...


class SystemClock:
    """Real clock backed by ``time.monotonic`` and ``asyncio.sleep``."""

    def now(self) -> float:
        return time.monotonic()

    async def sleep(self, seconds: float) -> None:
        if seconds > 0:
            await asyncio.sleep(seconds)


class DelayPolicy(Protocol):
    """Strategy deciding how long to wait before a given attempt."""

    def delay_for(self, attempt: int) -> float:
        """Return the delay in seconds before 1-based *attempt*."""
        ...


class FixedDelay:
    """Same delay before every attempt."""

    def __init__(self, seconds: float = 5.0) -> None:
        if seconds < 0:
            raise ValueError(f"Delay must be non-negative, got {seconds}")
        self._seconds = seconds

    @property
    def seconds(self) -> float:
        return self._seconds

    def delay_for(self, attempt: int) -> float:
        return self._seconds


class ExponentialBackoff:
    """Delay doubling (by *factor*) after each attempt, capped at *max_seconds*."""

    def __init__(
        self,
        base_seconds: float = 1.0,
        factor: float = 2.0,
        max_seconds: float = 60.0,
    ) -> None:
        if base_seconds < 0 or max_seconds < 0:
            raise ValueError("Backoff delays must be non-negative")
        if factor < 1.0:
            raise ValueError(f"Backoff factor must be >= 1.0, got {factor}")
        self._base = base_seconds
        self._factor = factor
        self._max = max_seconds

    def delay_for(self, attempt: int) -> float:
        exponent = max(0, attempt - 1)
        return min(self._max, self._base * (self._factor ** exponent))


class CancellationToken:
    """Cooperative cancellation flag.

    Long-running loops call :meth:`raise_if_cancelled` at safe points
    (between poll attempts, between batch files).  Cancelling never
    interrupts an in-flight network call.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason = "Operation cancelled"

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str:
        return self._reason

    def cancel(self, reason: str = "Operation cancelled") -> None:
        self._reason = reason
        self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise JobCancelledError(message=self._reason)

    async def wait(self) -> None:
        await self._event.wait()


async def invoke_callback(callback: Callable[..., Any] | None, *args: Any) -> None:
    """Call a sync or async progress callback, logging and swallowing its errors.

    A broken listener (closed terminal, failing UI hook) must not stop an
    ingestion run, so exceptions raised by *callback* are logged only.
    """
    if callback is None:
        return
    try:
        result = callback(*args)
        if asyncio.iscoroutine(result):
            await result
    except Exception as exc:
        _logger.warning(
            "progress_callback_error",
            error=str(exc),
            callback=getattr(callback, "__name__", repr(callback)),
        )
