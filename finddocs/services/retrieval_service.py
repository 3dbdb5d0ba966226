"""Keyword retrieval, context assembly and prompt construction.

Scoring is deliberately simple substring matching over normalized text:

    relevance = (query words found in the document) / (query words)

where query words are those longer than two characters.  A document is a
candidate when it contains the whole normalized query, any query word, or
scores above 0.3.  Results are ranked by relevance (stable for ties) and
capped at five.

The assembled context is bounded by a character budget; the first block
that does not fit is truncated and marked, and nothing after it is added.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from finddocs.models.conversation import Message
from finddocs.models.document import DocumentRecord
from finddocs.models.retrieval import RetrievalResult
from finddocs.utils.text_normalizer import normalize_for_search, query_words

MAX_RESULTS = 5
DEFAULT_MAX_CONTEXT_CHARS = 8000
CANDIDATE_THRESHOLD = 0.3
HISTORY_PAIRS = 3

TRUNCATION_MARKER = "... [Content truncated for context limit]"
BLOCK_SEPARATOR = "\n\n"
# Reserved for formatting when a block has to be cut.
TRUNCATION_RESERVE = 100
# Below this much free space a truncated block is dropped instead.
MIN_TRUNCATED_SPACE = 200
# Budget reduction when the top result alone has to be forced in.
FORCED_RESULT_RESERVE = 200

NOT_IN_DOCUMENT = "This information is not provided in the document."

_PROMPT_TEMPLATE = """\
IMPORTANT: You are analyzing documents in a conversational context. ONLY use the information provided below. DO NOT make up or infer any information not explicitly stated in the document.

{history}Document Content:
{context}

Current Question: {query}

Instructions: Answer ONLY using the information from the document above. If the information is not in the document, say "{not_in_document}" Do not add any external knowledge or assumptions. Be conversational and reference previous questions when relevant.

Answer:"""


def _block_header(filename: str) -> str:
    return f"Document: {filename}\n"


class RetrievalEngine:
    """Scores documents against a query and turns the best into a prompt.

    Parameters
    ----------
    max_results:
        Cap on the number of results returned by :meth:`retrieve`.
    max_context_chars:
        Default character budget for :meth:`assemble_context`.
    history_pairs:
        Number of recent question/answer pairs included in the prompt.
    """

    def __init__(
        self,
        max_results: int = MAX_RESULTS,
        max_context_chars: int = DEFAULT_MAX_CONTEXT_CHARS,
        history_pairs: int = HISTORY_PAIRS,
    ) -> None:
        self._max_results = max_results
        self._max_context_chars = max_context_chars
        self._history_pairs = history_pairs

    # ------------------------------------------------------------------
    # Scoring
    # ------------------------------------------------------------------

    @staticmethod
    def score(query: str, document: str) -> float:
        """Return the fraction of qualifying query words found in *document*."""
        words = query_words(query)
        if not words:
            return 0.0
        haystack = normalize_for_search(document)
        matches = sum(1 for word in words if word in haystack)
        return matches / len(words)

    @staticmethod
    def is_candidate(query: str, document: str) -> bool:
        normalized_query = normalize_for_search(query)
        haystack = normalize_for_search(document)
        if normalized_query and normalized_query in haystack:
            return True
        words = query_words(query)
        if any(word in haystack for word in words):
            return True
        return RetrievalEngine.score(query, document) > CANDIDATE_THRESHOLD

    def retrieve(self, query: str, documents: Iterable[DocumentRecord]) -> list[RetrievalResult]:
        """Return the top candidates for *query*, best first."""
        if not normalize_for_search(query):
            return []
        results = [
            RetrievalResult(
                document_id=record.id,
                filename=record.filename,
                content_excerpt=record.content,
                relevance_score=self.score(query, record.content),
            )
            for record in documents
            if self.is_candidate(query, record.content)
        ]
        # sorted() is stable, so equal scores keep library order.
        results.sort(key=lambda result: result.relevance_score, reverse=True)
        return results[: self._max_results]

    # ------------------------------------------------------------------
    # Context and prompt
    # ------------------------------------------------------------------

    def assemble_context(
        self,
        results: Sequence[RetrievalResult],
        max_chars: int | None = None,
    ) -> str:
        """Concatenate result blocks in ranking order within *max_chars*.

        The output never exceeds ``max_chars`` plus the length of the
        truncation marker, and is non-empty whenever *results* is.
        """
        limit = self._max_context_chars if max_chars is None else max_chars
        context = ""
        for result in results:
            header = _block_header(result.filename)
            separator = BLOCK_SEPARATOR if context else ""
            block = header + result.content_excerpt
            if len(context) + len(separator) + len(block) <= limit:
                context += separator + block
                continue

            remaining = limit - len(context) - TRUNCATION_RESERVE
            if remaining > MIN_TRUNCATED_SPACE:
                budget = remaining - len(separator) - len(header)
                if budget > 0:
                    context += (
                        separator
                        + header
                        + result.content_excerpt[:budget]
                        + TRUNCATION_MARKER
                    )
            break

        if not context and results:
            top = results[0]
            header = _block_header(top.filename)
            if len(header) > limit:
                header = ""
            budget = max(0, limit - FORCED_RESULT_RESERVE - len(header))
            context = header + top.content_excerpt[:budget] + TRUNCATION_MARKER
        return context

    def recent_history(self, messages: Sequence[Message]) -> list[Message]:
        """Return the last ``history_pairs`` question/answer pairs."""
        count = self._history_pairs * 2
        if count <= 0:
            return []
        return list(messages[-count:])

    @staticmethod
    def build_prompt(query: str, context: str, recent_history: Sequence[Message] = ()) -> str:
        """Render the grounded prompt sent to the generation service."""
        history = ""
        if recent_history:
            lines = "\n".join(message.render() for message in recent_history)
            history = f"Previous conversation context:\n{lines}\n\n"
        return _PROMPT_TEMPLATE.format(
            history=history,
            context=context,
            query=query,
            not_in_document=NOT_IN_DOCUMENT,
        )
