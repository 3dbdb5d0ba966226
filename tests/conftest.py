"""Shared pytest fixtures for the FindDocs test suite."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

import pytest

from finddocs.interfaces.conversion_provider import IConversionProvider
from finddocs.interfaces.llm_provider import ILLMProvider
from finddocs.models.conversion import StatusReport
from finddocs.models.document import SourceFile
from finddocs.pipeline.progress_tracker import ProgressTracker
from finddocs.providers.storage.memory_store import MemoryKeyValueStore
from finddocs.services.app_state import AppState
from finddocs.services.conversion_runner import ConversionJobRunner
from finddocs.services.ingestion_service import IngestionPipeline
from finddocs.services.tiered_store import TieredStore
from finddocs.utils.concurrency import FixedDelay
from finddocs.utils.errors import GenerationError

# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeClock:
    """Clock whose sleep() advances time instantly and records each delay."""

    def __init__(self, start: float = 1000.0) -> None:
        self._now = start
        self.sleeps: list[float] = []

    def now(self) -> float:
        return self._now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self._now += seconds

    def advance(self, seconds: float) -> None:
        self._now += seconds


def success_payload(content: str = "# Converted", field: str = "md_content") -> dict[str, Any]:
    return {"document": {field: content, "filename": "doc"}, "errors": []}


class FakeConversionProvider(IConversionProvider):
    """Scripted conversion service.

    ``statuses`` is consumed one entry per poll; the last entry repeats.
    An entry may be a dict (status body) or an exception instance to raise.
    ``results`` maps file name to the result payload returned on success.
    """

    def __init__(
        self,
        statuses: Iterable[Any] | None = None,
        result: dict[str, Any] | Exception | None = None,
        results: dict[str, dict[str, Any]] | None = None,
        failing_files: dict[str, str] | None = None,
        submit_error: Exception | None = None,
    ) -> None:
        self._statuses = list(statuses) if statuses is not None else [{"task_status": "success"}]
        self._result = result if result is not None else success_payload()
        self._results = results or {}
        self._failing = failing_files or {}
        self._submit_error = submit_error
        self._task_files: dict[str, str] = {}
        self._poll_index: dict[str, int] = {}
        self.submitted: list[str] = []
        self.submitted_options: list[dict[str, Any] | None] = []
        self.poll_count = 0
        self.result_count = 0

    async def submit(
        self,
        file_bytes: bytes,
        file_name: str,
        options: dict[str, Any] | None = None,
    ) -> str:
        if self._submit_error is not None:
            raise self._submit_error
        task_id = f"task-{len(self.submitted) + 1}"
        self.submitted.append(file_name)
        self.submitted_options.append(options)
        self._task_files[task_id] = file_name
        return task_id

    async def poll_status(self, task_id: str) -> StatusReport:
        self.poll_count += 1
        file_name = self._task_files.get(task_id, "")
        if file_name in self._failing:
            return StatusReport(task_id=task_id, task_status="failure",
                                task_meta={"error": self._failing[file_name]})
        index = self._poll_index.get(task_id, 0)
        self._poll_index[task_id] = index + 1
        entry = self._statuses[min(index, len(self._statuses) - 1)]
        if isinstance(entry, Exception):
            raise entry
        return StatusReport.model_validate({"task_id": task_id, **entry})

    async def fetch_result(self, task_id: str) -> dict[str, Any]:
        self.result_count += 1
        file_name = self._task_files.get(task_id, "")
        if file_name in self._failing:
            return {"errors": []}
        if file_name in self._results:
            return self._results[file_name]
        if isinstance(self._result, Exception):
            raise self._result
        return self._result

    def get_provider_name(self) -> str:
        return "fake-docling"


class FakeLLM(ILLMProvider):
    """Generation provider returning a canned answer and recording prompts."""

    def __init__(self, answer: str = "The revenue was 42.", error: bool = False) -> None:
        self.answer = answer
        self.error = error
        self.prompts: list[str] = []

    async def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.error:
            raise GenerationError(message="connection refused", provider_name="fake-llm")
        return self.answer

    def get_provider_name(self) -> str:
        return "fake-llm"

    def is_available(self) -> bool:
        return True


def make_source(name: str, content: bytes = b"data", mtime: int = 1_700_000_000_000, **kwargs: Any) -> SourceFile:
    return SourceFile.from_bytes(name, content, last_modified_ms=mtime, **kwargs)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def primary_store() -> MemoryKeyValueStore:
    return MemoryKeyValueStore(name="primary")


@pytest.fixture
def overflow_store() -> MemoryKeyValueStore:
    return MemoryKeyValueStore(name="overflow")


@pytest.fixture
def tiered_store(primary_store: MemoryKeyValueStore, overflow_store: MemoryKeyValueStore) -> TieredStore:
    return TieredStore(primary_store, overflow_store, overflow_threshold=100_000)


@pytest.fixture
async def app_state(tiered_store: TieredStore) -> AppState:
    counter = iter(range(1_700_000_000_000, 1_800_000_000_000))
    state = AppState(tiered_store, conversation_id_factory=lambda: str(next(counter)))
    await state.initialize()
    return state


@pytest.fixture
def provider() -> FakeConversionProvider:
    return FakeConversionProvider()


@pytest.fixture
def tracker() -> ProgressTracker:
    return ProgressTracker()


@pytest.fixture
def runner(provider: FakeConversionProvider, clock: FakeClock) -> ConversionJobRunner:
    return ConversionJobRunner(provider, clock=clock, delay_policy=FixedDelay(5.0), max_attempts=60)


@pytest.fixture
def pipeline(
    runner: ConversionJobRunner,
    app_state: AppState,
    tracker: ProgressTracker,
    clock: FakeClock,
) -> IngestionPipeline:
    return IngestionPipeline(runner, app_state, progress_tracker=tracker, clock=clock, pacing_delay=1.0)
