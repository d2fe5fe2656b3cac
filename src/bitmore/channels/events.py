"""Messaging event models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime

TEXT_CONTENT_TYPE = "text"


def _now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class IncomingMessage:
    """Message delivered by a messaging network."""

    sender_id: str
    conversation_id: str
    content: str
    content_type: str = TEXT_CONTENT_TYPE
    sent_at: datetime = field(default_factory=_now)

    @property
    def is_text(self) -> bool:
        return self.content_type == TEXT_CONTENT_TYPE


@dataclass(frozen=True)
class StoredMessage:
    """Message persisted in a conversation's history."""

    id: str
    conversation_id: str
    sender_id: str
    content: str
    content_type: str = TEXT_CONTENT_TYPE
    sent_at: datetime = field(default_factory=_now)
