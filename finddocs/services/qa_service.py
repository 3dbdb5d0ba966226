"""Question answering over the ingested document library.

Data flow per question:
  1. RETRIEVE  -- score every stored document against the question and
                  keep the top candidates.
  2. CONTEXT   -- concatenate the candidates into a bounded context block.
  3. HISTORY   -- take the last few turns of the current conversation.
  4. GENERATE  -- send the grounded prompt to the generation service.
  5. RECORD    -- append the question and answer to the conversation and
                  persist it.

A generation failure raises before anything is recorded, so the
conversation only ever holds answered questions.
"""

from __future__ import annotations

import structlog

from finddocs.interfaces.llm_provider import ILLMProvider
from finddocs.models.conversation import Conversation
from finddocs.models.retrieval import QAAnswer
from finddocs.services.app_state import AppState
from finddocs.services.retrieval_service import RetrievalEngine
from finddocs.utils.errors import RetrievalError, StorageWriteError
from finddocs.utils.logging import get_logger

logger: structlog.BoundLogger = get_logger(__name__)

NEW_CONVERSATION_COMMAND = "/new"
EMPTY_RESPONSE = "No response generated"
GENERATION_FAILED_MESSAGE = "Error: Failed to generate answer. Please try again."


class QAService:
    """Answers questions from stored documents via retrieval + generation.

    Parameters
    ----------
    state:
        Application state holding documents and conversations.
    retrieval:
        Scoring, context assembly and prompt construction.
    llm:
        Generation service adapter.
    use_history:
        When ``False`` prompts carry no conversation history; turns are
        still recorded.
    """

    def __init__(
        self,
        state: AppState,
        retrieval: RetrievalEngine,
        llm: ILLMProvider,
        use_history: bool = True,
    ) -> None:
        self._state = state
        self._retrieval = retrieval
        self._llm = llm
        self._use_history = use_history

    async def ask(self, question: str) -> QAAnswer:
        """Answer *question* within the current conversation.

        Raises
        ------
        ValueError
            If the question is blank.
        RetrievalError
            If no documents have been ingested.
        GenerationError
            If the generation service fails.
        """
        query = question.strip()
        if not query:
            raise ValueError("Question must not be empty")

        documents = self._state.documents
        if not documents:
            raise RetrievalError(message="No documents available. Upload documents first.")

        conversations = self._state.conversations
        conversation = conversations.current()
        if conversation is None:
            conversations.start_new()
            conversation = conversations.current()

        results = self._retrieval.retrieve(query, documents)
        context = self._retrieval.assemble_context(results)
        history = self._retrieval.recent_history(conversation.messages) if self._use_history else []
        prompt = self._retrieval.build_prompt(query, context, history)

        logger.info(
            "qa_question_received",
            conversation_id=conversation.id,
            documents=len(documents),
            results=len(results),
            context_chars=len(context),
            history_messages=len(history),
        )

        answer = await self._llm.generate(prompt) or EMPTY_RESPONSE

        conversations.append_turn(conversation.id, query, answer)
        await self._persist()

        return QAAnswer(
            question=query,
            answer=answer,
            sources=tuple(results),
            conversation_id=conversation.id,
            context_length=len(context),
        )

    async def start_new_conversation(self) -> Conversation:
        conversations = self._state.conversations
        conversation_id = conversations.start_new()
        await self._persist()
        return conversations.get(conversation_id)

    async def select_conversation(self, conversation_id: str) -> Conversation:
        conversation = self._state.conversations.select(conversation_id)
        await self._persist()
        return conversation

    async def _persist(self) -> None:
        try:
            await self._state.save_conversations()
        except StorageWriteError as exc:
            logger.error("conversation_persist_failed", error=str(exc))
