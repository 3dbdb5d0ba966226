"""Abstract base class for document conversion service providers.

A conversion provider turns raw file bytes into extracted text through an
asynchronous job: submit, poll until terminal, fetch the result.  The job
runner drives the polling loop; providers only perform single requests and
translate transport failures into domain errors.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from finddocs.models.conversion import StatusReport


# Concrete implementation: DoclingConversionProvider
# Located in: finddocs/providers/conversion/
class IConversionProvider(ABC):
    """Contract for asynchronous document conversion services."""

    @abstractmethod
    async def submit(
        self,
        file_bytes: bytes,
        file_name: str,
        options: dict[str, Any] | None = None,
    ) -> str:
        """Upload a file and start a conversion job.

        Parameters
        ----------
        file_bytes:
            Raw content of the file.
        file_name:
            Name sent with the multipart upload; the service uses its
            extension to pick a parser.
        options:
            Conversion options document.  Providers fall back to their
            default options when ``None``.

        Returns
        -------
        str
            The task id assigned by the service.

        Raises
        ------
        finddocs.utils.errors.SubmissionError
            On transport failure, timeout or a non-2xx response.
        """

    @abstractmethod
    async def poll_status(self, task_id: str) -> StatusReport:
        """Fetch the current status of a conversion job.

        Raises
        ------
        finddocs.utils.errors.PollTransientError
            If the request fails; the caller counts it as an attempt.
        """

    @abstractmethod
    async def fetch_result(self, task_id: str) -> dict[str, Any]:
        """Fetch the raw result payload of a finished job.

        Returns
        -------
        dict
            The decoded JSON body, typically ``{"document": {...}, "errors": [...]}``.

        Raises
        ------
        finddocs.utils.errors.PollTransientError
            If the request fails.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier, e.g. ``"docling"``."""
