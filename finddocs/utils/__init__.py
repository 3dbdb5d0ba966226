"""Utility modules for FindDocs.

Available utility modules (all re-exported here for convenience):

- **errors** -- Domain exception hierarchy rooted at FindDocsError; the
  job runner, stores and services raise their own subclass so callers can
  handle failures at the per-file seam.
- **concurrency** -- injectable clock, delay policies and cancellation
  token used by the poll loop and batch ingestion.
- **logging** -- structlog setup with a dual-renderer pattern: coloured
  console output in development, structured JSON in production.
- **text_normalizer** -- whitespace/case normalization and query word
  extraction for keyword retrieval.
"""

# -- Domain exception hierarchy --------------------------------------------
from finddocs.utils.errors import (
    ConfigurationError,
    ConversationNotFoundError,
    FindDocsError,
    GenerationError,
    JobCancelledError,
    JobFailedError,
    JobTimedOutError,
    PollTransientError,
    RetrievalError,
    StorageReadError,
    StorageWriteError,
    SubmissionError,
)

# -- Timing / retry / cancellation -----------------------------------------
from finddocs.utils.concurrency import (
    CancellationToken,
    Clock,
    DelayPolicy,
    ExponentialBackoff,
    FixedDelay,
    SystemClock,
)

# -- Structured logging setup ----------------------------------------------
from finddocs.utils.logging import configure_logging, get_logger

# -- Text normalization for keyword retrieval ------------------------------
from finddocs.utils.text_normalizer import normalize_for_search, query_words

__all__ = [
    "CancellationToken",
    "Clock",
    "ConfigurationError",
    "ConversationNotFoundError",
    "DelayPolicy",
    "ExponentialBackoff",
    "FindDocsError",
    "FixedDelay",
    "GenerationError",
    "JobCancelledError",
    "JobFailedError",
    "JobTimedOutError",
    "PollTransientError",
    "RetrievalError",
    "StorageReadError",
    "StorageWriteError",
    "SubmissionError",
    "SystemClock",
    "configure_logging",
    "get_logger",
    "normalize_for_search",
    "query_words",
]
