"""Custom exception hierarchy for FindDocs.

All application exceptions inherit from :class:`FindDocsError`, which
carries an optional ``provider_name`` so error handlers can identify which
external service (e.g. "docling", "ollama", "sqlite") caused the failure.

The hierarchy is organized by engine domain:

    FindDocsError  (base -- catch-all for any FindDocs error)
    +-- SubmissionError            (upload to the conversion service failed)
    +-- PollTransientError         (one status/result poll failed; retried)
    +-- JobFailedError             (conversion job reported failure)
    +-- JobTimedOutError           (poll ceiling reached without terminal state)
    +-- JobCancelledError          (cancellation token triggered)
    +-- StorageWriteError          (a persistence tier rejected a write)
    +-- StorageReadError           (a persistence tier could not be read)
    +-- GenerationError            (generation service call failed)
    +-- RetrievalError             (nothing to retrieve from)
    +-- ConversationNotFoundError  (unknown conversation id)
    +-- ConfigurationError         (startup / missing config)

Ingestion catches these at the per-file seam and turns them into outcomes,
so one bad file never aborts a batch.
"""


class FindDocsError(Exception):
    """Base exception for all FindDocs errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which external service triggered the
    error.  ``__str__`` prefixes the provider name in brackets for log
    output, e.g. ``[docling] Request timed out.``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Conversion job errors
# ---------------------------------------------------------------------------

class SubmissionError(FindDocsError):
    """Raised when a file cannot be submitted to the conversion service.

    Submission is never retried; the error is terminal for that file but
    not for the batch it belongs to.
    """

    def __init__(
        self,
        message: str = "Document submission failed",
        provider_name: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
        self._status_code = status_code

    @property
    def status_code(self) -> int | None:
        return self._status_code


class PollTransientError(FindDocsError):
    """Raised when a single status or result poll fails.

    The job runner counts the attempt and retries after the configured
    delay; this error never escapes the poll loop.
    """

    def __init__(
        self,
        message: str = "Status poll failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class JobFailedError(FindDocsError):
    """Raised when the conversion service reports a failed job."""

    def __init__(
        self,
        message: str = "Conversion job failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class JobTimedOutError(FindDocsError):
    """Raised when a job is still running after the poll attempt ceiling."""

    def __init__(
        self,
        message: str = "Conversion job timed out",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class JobCancelledError(FindDocsError):
    """Raised when a cancellation token stops a poll loop or batch."""

    def __init__(
        self,
        message: str = "Operation cancelled",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Persistence errors
# ---------------------------------------------------------------------------

class StorageWriteError(FindDocsError):
    """Raised when a storage tier rejects a write (quota, I/O, closed db).

    The tiered store catches this to fall back to the overflow tier and
    only re-raises when every tier has failed.
    """

    def __init__(
        self,
        message: str = "Storage write failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class StorageReadError(FindDocsError):
    """Raised when a storage tier cannot be read.

    Readers degrade the affected record to its placeholder content instead
    of aborting the whole load.
    """

    def __init__(
        self,
        message: str = "Storage read failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Question answering errors
# ---------------------------------------------------------------------------

class GenerationError(FindDocsError):
    """Raised when the generation service call fails or times out."""

    def __init__(
        self,
        message: str = "Failed to generate answer",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class RetrievalError(FindDocsError):
    """Raised when a question is asked but there is nothing to search."""

    def __init__(
        self,
        message: str = "No documents available for retrieval",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ConversationNotFoundError(FindDocsError):
    """Raised when a conversation id does not exist in the store."""

    def __init__(
        self,
        message: str = "Conversation not found",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Configuration errors
# ---------------------------------------------------------------------------

class ConfigurationError(FindDocsError):
    """Raised when configuration is invalid or missing at startup."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
