"""Application wiring: builds every provider and service from settings.

``open_app()`` is the single entry point used by the CLI and integration
tests.  It constructs the components, loads persisted state, and closes
the shared HTTP client on exit::

    async with open_app() as components:
        answer = await components["qa"].ask("What is the revenue?")
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import httpx
import structlog

from finddocs.config.loader import feature_enabled, load_config
from finddocs.config.settings import Settings
from finddocs.interfaces.conversion_provider import IConversionProvider
from finddocs.interfaces.llm_provider import ILLMProvider
from finddocs.interfaces.storage_provider import IKeyValueStore
from finddocs.pipeline.progress_tracker import ProgressTracker
from finddocs.providers.conversion.docling_provider import DoclingConversionProvider
from finddocs.providers.llm.ollama_provider import OllamaGenerationProvider
from finddocs.providers.storage.sqlite_store import SQLiteKeyValueStore
from finddocs.services.app_state import AppState
from finddocs.services.conversion_runner import ConversionJobRunner
from finddocs.services.ingestion_service import IngestionPipeline
from finddocs.services.qa_service import QAService
from finddocs.services.retrieval_service import RetrievalEngine
from finddocs.services.tiered_store import TieredStore
from finddocs.utils.concurrency import Clock, FixedDelay, SystemClock
from finddocs.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

_PRIMARY_TABLE = "primary_store"
_OVERFLOW_TABLE = "overflow_store"


def build_components(
    app_settings: Settings,
    config: dict[str, Any] | None = None,
    *,
    http_client: httpx.AsyncClient | None = None,
    conversion_provider: IConversionProvider | None = None,
    llm_provider: ILLMProvider | None = None,
    primary_store: IKeyValueStore | None = None,
    overflow_store: IKeyValueStore | None = None,
    clock: Clock | None = None,
) -> dict[str, Any]:
    """Construct every provider and service instance.

    Keyword overrides replace the default adapters, which lets tests run
    the full stack against fakes.  Returns a flat dict of named components.
    """
    config = config if config is not None else load_config(settings=app_settings)
    clock = clock or SystemClock()

    # -- Shared resources --
    http_client = http_client or httpx.AsyncClient(timeout=app_settings.upload_timeout)

    # -- Storage tiers --
    primary = primary_store or SQLiteKeyValueStore(
        app_settings.primary_db_path,
        table_name=_PRIMARY_TABLE,
        quota_chars=app_settings.primary_quota_chars,
        name="primary",
    )
    overflow = overflow_store or SQLiteKeyValueStore(
        app_settings.overflow_db_path,
        table_name=_OVERFLOW_TABLE,
        name="overflow",
    )
    store = TieredStore(primary, overflow, overflow_threshold=app_settings.overflow_threshold_chars)
    state = AppState(store)

    # -- External services --
    conversion = conversion_provider or DoclingConversionProvider(
        http_client,
        base_url=app_settings.docling_url,
        timeout=app_settings.upload_timeout,
    )
    llm = llm_provider or OllamaGenerationProvider(
        http_client,
        base_url=app_settings.ollama_url,
        model=app_settings.ollama_model,
        timeout=app_settings.generation_timeout,
    )

    # -- Services --
    tracker = ProgressTracker()
    runner = ConversionJobRunner(
        conversion,
        clock=clock,
        delay_policy=FixedDelay(app_settings.poll_interval),
        max_attempts=app_settings.max_poll_attempts,
    )
    ingestion = IngestionPipeline(
        runner,
        state,
        progress_tracker=tracker,
        clock=clock,
        pacing_delay=app_settings.batch_pacing_delay,
    )
    retrieval = RetrievalEngine(
        max_results=app_settings.max_results,
        max_context_chars=app_settings.max_context_length,
        history_pairs=app_settings.history_pairs,
    )
    qa = QAService(
        state,
        retrieval,
        llm,
        use_history=feature_enabled(config, "chat_history"),
    )

    return {
        "settings": app_settings,
        "config": config,
        "http_client": http_client,
        "store": store,
        "state": state,
        "tracker": tracker,
        "runner": runner,
        "ingestion": ingestion,
        "retrieval": retrieval,
        "qa": qa,
        "conversion_provider": conversion,
        "llm_provider": llm,
    }


@asynccontextmanager
async def open_app(
    app_settings: Settings | None = None,
    config: dict[str, Any] | None = None,
    **overrides: Any,
) -> AsyncIterator[dict[str, Any]]:
    """Build components, load persisted state, and clean up on exit."""
    app_settings = app_settings or Settings()
    components = build_components(app_settings, config, **overrides)
    owns_client = overrides.get("http_client") is None

    state: AppState = components["state"]
    try:
        await state.initialize()
        _logger.info(
            "app_startup",
            environment=app_settings.app_env,
            docling_url=app_settings.docling_url,
            ollama_model=app_settings.ollama_model,
            documents=len(state.documents),
        )
        yield components
    finally:
        if owns_client:
            http_client: httpx.AsyncClient = components["http_client"]
            await http_client.aclose()
        _logger.info("app_shutdown")
