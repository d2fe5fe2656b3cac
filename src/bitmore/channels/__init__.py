"""Messaging adapters and history store exports."""

from bitmore.channels.base import Conversation, Messenger, StoreBackedMessenger
from bitmore.channels.console import ConsoleMessenger
from bitmore.channels.events import IncomingMessage, StoredMessage
from bitmore.channels.store import MessageStore
from bitmore.channels.telegram import TelegramConfig, TelegramMessenger

__all__ = [
    "ConsoleMessenger",
    "Conversation",
    "IncomingMessage",
    "MessageStore",
    "Messenger",
    "StoreBackedMessenger",
    "StoredMessage",
    "TelegramConfig",
    "TelegramMessenger",
]
