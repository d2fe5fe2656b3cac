"""Messaging collaborator interfaces."""

from __future__ import annotations

import uuid
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

from bitmore.channels.events import IncomingMessage, StoredMessage
from bitmore.channels.store import MessageStore


class Conversation(ABC):
    """One chat the agent takes part in."""

    id: str

    @abstractmethod
    async def messages(self) -> list[StoredMessage]:
        """Return every message exchanged so far, oldest first."""

    @abstractmethod
    async def send(self, text: str) -> None:
        """Deliver text as a new message; no delivery confirmation is awaited."""


class Messenger(ABC):
    """Abstract base class for messaging network adapters."""

    name: str = "base"

    @property
    @abstractmethod
    def identity(self) -> str:
        """Sender id the agent uses on this network."""

    @abstractmethod
    async def start(self) -> None:
        """Connect to the network."""

    @abstractmethod
    async def stop(self) -> None:
        """Disconnect and end the message stream."""

    @abstractmethod
    def stream(self) -> AsyncIterator[IncomingMessage]:
        """Yield incoming messages until the network goes away."""

    @abstractmethod
    async def get_conversation(self, conversation_id: str) -> Conversation | None:
        """Resolve a conversation, or None when it is unknown."""


class StoredConversation(Conversation):
    """Conversation whose history lives in a local message store."""

    def __init__(self, conversation_id: str, store: MessageStore, messenger: StoreBackedMessenger) -> None:
        self.id = conversation_id
        self._store = store
        self._messenger = messenger

    async def messages(self) -> list[StoredMessage]:
        return self._store.get_messages(self.id)

    async def send(self, text: str) -> None:
        await self._messenger.deliver(self.id, text)
        self._store.add_message(
            StoredMessage(
                id=uuid.uuid4().hex,
                conversation_id=self.id,
                sender_id=self._messenger.identity,
                content=text,
            )
        )


class StoreBackedMessenger(Messenger):
    """Messenger that records every inbound and outbound message in a store."""

    def __init__(self, store: MessageStore) -> None:
        self.store = store

    def record_inbound(self, message: IncomingMessage, *, message_id: str | None = None) -> None:
        self.store.add_message(
            StoredMessage(
                id=message_id or uuid.uuid4().hex,
                conversation_id=message.conversation_id,
                sender_id=message.sender_id,
                content=message.content,
                content_type=message.content_type,
                sent_at=message.sent_at,
            )
        )

    async def get_conversation(self, conversation_id: str) -> Conversation | None:
        if not self.store.has_conversation(conversation_id):
            return None
        return StoredConversation(conversation_id, self.store, self)

    @abstractmethod
    async def deliver(self, conversation_id: str, text: str) -> None:
        """Put text on the wire for one conversation."""
