"""Services: the ingestion, persistence, retrieval and Q&A engine."""

from finddocs.services.app_state import AppState
from finddocs.services.conversation_store import ConversationStore
from finddocs.services.conversion_runner import ConversionJobRunner, classify_failure
from finddocs.services.dedup import DedupIndex, compute_file_hash, hash_source_file
from finddocs.services.ingestion_service import SUPPORTED_EXTENSIONS, IngestionPipeline
from finddocs.services.qa_service import QAService
from finddocs.services.retrieval_service import RetrievalEngine
from finddocs.services.tiered_store import StorageTier, TieredStore

__all__ = [
    "SUPPORTED_EXTENSIONS",
    "AppState",
    "ConversationStore",
    "ConversionJobRunner",
    "DedupIndex",
    "IngestionPipeline",
    "QAService",
    "RetrievalEngine",
    "StorageTier",
    "TieredStore",
    "classify_failure",
    "compute_file_hash",
    "hash_source_file",
]
