"""Application-level exception types for bitmore."""

from __future__ import annotations


class BitmoreError(Exception):
    """Base exception for bitmore."""


class ConfigurationError(BitmoreError):
    """Base exception for configuration and startup validation errors."""


class ApiKeyNotConfiguredError(ConfigurationError):
    """Raised when the model provider API key is missing."""


class ChannelNotConfiguredError(ConfigurationError):
    """Raised when a messaging channel is started without its credentials."""


class TransportError(BitmoreError):
    """Raised when the model provider or messaging network cannot serve a request."""


class ConversationNotFoundError(BitmoreError):
    """Raised when an incoming message points at a conversation that cannot be resolved."""

    def __init__(self, conversation_id: str) -> None:
        super().__init__(f"conversation not found: {conversation_id}")
        self.conversation_id = conversation_id


class InvocationError(BitmoreError):
    """One operation invocation failed; carried as a failure result, never raised past the invoker."""
