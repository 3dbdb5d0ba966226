"""In-memory conversation registry with a single current conversation.

Conversations are kept in creation order and never deleted individually;
only a full storage clear drops them.  The store does no I/O: callers
persist :attr:`conversations` and :attr:`current_id` through the tiered
store after each mutation.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Iterable

import structlog

from finddocs.models.conversation import Conversation, Message, MessageRole
from finddocs.utils.errors import ConversationNotFoundError
from finddocs.utils.logging import get_logger

TITLE_SUFFIX_LENGTH = 6


def _epoch_ms_id() -> str:
    return str(int(time.time() * 1000))


class ConversationStore:
    """Owns conversation identity, message order and the current pointer.

    Parameters
    ----------
    conversations:
        Previously persisted conversations, in creation order.
    current_id:
        Id of the conversation that was current when state was saved.
    id_factory:
        Produces new conversation ids; defaults to the epoch time in
        milliseconds.  Collisions are resolved by counting upwards.
    """

    def __init__(
        self,
        conversations: Iterable[Conversation] = (),
        current_id: str | None = None,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self._conversations: dict[str, Conversation] = {c.id: c for c in conversations}
        self._current_id = current_id
        self._id_factory = id_factory or _epoch_ms_id
        self._logger: structlog.BoundLogger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def conversations(self) -> list[Conversation]:
        return list(self._conversations.values())

    @property
    def current_id(self) -> str | None:
        return self._current_id

    def __len__(self) -> int:
        return len(self._conversations)

    def get(self, conversation_id: str) -> Conversation:
        try:
            return self._conversations[conversation_id]
        except KeyError:
            raise ConversationNotFoundError(
                message=f"Conversation '{conversation_id}' not found"
            ) from None

    def current(self) -> Conversation | None:
        """Return the current conversation.

        When the store is empty and nothing is current, a conversation is
        started first.  Otherwise an unknown or unset current id yields
        ``None``.
        """
        if self._current_id is None and not self._conversations:
            self.start_new()
        if self._current_id is None:
            return None
        return self._conversations.get(self._current_id)

    def recent_messages(self, count: int) -> list[Message]:
        """Return the last *count* messages of the current conversation."""
        conversation = self.current()
        if conversation is None:
            return []
        return conversation.recent_messages(count)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def start_new(self) -> str:
        """Create an empty conversation, make it current and return its id."""
        conversation_id = self._next_id()
        conversation = Conversation(
            id=conversation_id,
            title=f"Conversation {conversation_id[-TITLE_SUFFIX_LENGTH:]}",
        )
        self._conversations[conversation_id] = conversation
        self._current_id = conversation_id
        self._logger.info("conversation_started", conversation_id=conversation_id)
        return conversation_id

    def select(self, conversation_id: str) -> Conversation:
        conversation = self.get(conversation_id)
        self._current_id = conversation_id
        return conversation

    def append_turn(self, conversation_id: str, user_text: str, assistant_text: str) -> Conversation:
        """Append a user message and then an assistant message.

        Raises
        ------
        ConversationNotFoundError
            If *conversation_id* is unknown; nothing is modified.
        """
        conversation = self.get(conversation_id)
        updated = conversation.with_messages(
            Message(role=MessageRole.USER, content=user_text),
            Message(role=MessageRole.ASSISTANT, content=assistant_text),
        )
        self._conversations[conversation_id] = updated
        return updated

    def clear(self) -> None:
        self._conversations.clear()
        self._current_id = None

    def _next_id(self) -> str:
        candidate = self._id_factory()
        while candidate in self._conversations:
            candidate = str(int(candidate) + 1) if candidate.isdigit() else candidate + "_1"
        return candidate
