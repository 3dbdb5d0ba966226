"""FindDocs domain models -- re-exports all public model classes.

Models are grouped by concern:
    - document.py      -- ingestion input, persisted records, conversion output
    - conversion.py    -- conversion job state machine and progress
    - ingestion.py     -- per-file outcomes, directory scans, batch reports
    - conversation.py  -- conversations and their messages
    - retrieval.py     -- retrieval results and answers
"""

from __future__ import annotations

from finddocs.models.conversation import Conversation, Message, MessageRole
from finddocs.models.conversion import (
    ConversionJob,
    ConversionProgress,
    JobState,
    StatusReport,
    TaskStatus,
)
from finddocs.models.document import (
    CONTENT_PRIORITY,
    NO_CONTENT_SENTINEL,
    ContentKind,
    ConvertedDocument,
    DocumentRecord,
    SourceFile,
    StorageStats,
    StoredDocument,
)
from finddocs.models.ingestion import (
    BatchProgress,
    BatchReport,
    DirectoryScan,
    IngestionPhase,
    IngestOutcome,
    IngestStatus,
)
from finddocs.models.retrieval import QAAnswer, RetrievalResult

__all__ = [
    "CONTENT_PRIORITY",
    "NO_CONTENT_SENTINEL",
    "BatchProgress",
    "BatchReport",
    "ContentKind",
    "Conversation",
    "ConversionJob",
    "ConversionProgress",
    "ConvertedDocument",
    "DirectoryScan",
    "DocumentRecord",
    "IngestOutcome",
    "IngestStatus",
    "IngestionPhase",
    "JobState",
    "Message",
    "MessageRole",
    "QAAnswer",
    "RetrievalResult",
    "SourceFile",
    "StatusReport",
    "StorageStats",
    "StoredDocument",
    "TaskStatus",
]
