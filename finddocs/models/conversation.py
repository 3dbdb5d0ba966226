"""Conversation models for multi-turn question answering."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)  # noqa: UP017


class MessageRole(str, Enum):  # noqa: UP042
    USER = "user"
    ASSISTANT = "assistant"


class Message(BaseModel):
    """One turn half: a user question or an assistant answer."""

    model_config = ConfigDict(frozen=True)

    role: MessageRole
    content: str
    timestamp: datetime = Field(default_factory=_utcnow)

    def render(self) -> str:
        """Render as a ``role: content`` prompt line."""
        return f"{self.role.value}: {self.content}"


class Conversation(BaseModel):
    """An ordered, append-only sequence of messages.

    Appending returns a new Conversation; the message tuple of an existing
    instance never changes.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    messages: tuple[Message, ...] = ()
    created_at: datetime = Field(default_factory=_utcnow)

    def with_messages(self, *messages: Message) -> Conversation:
        return self.model_copy(update={"messages": self.messages + tuple(messages)})

    def recent_messages(self, count: int) -> list[Message]:
        if count <= 0:
            return []
        return list(self.messages[-count:])
