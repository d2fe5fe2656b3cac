"""Shared core dataclasses."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Final, Literal, TypeAlias

Role = Literal["user", "assistant"]

NO_EXTERNAL_INFORMATION: Final = "no external information found"
"""Handed to synthesis in place of results when the model requested no operation."""


@dataclass(frozen=True)
class ConversationTurn:
    """One message of conversation history as seen by the model."""

    role: Role
    content: str

    def to_message(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class OperationInvocationRequest:
    """One model-requested operation with its JSON-encoded arguments."""

    name: str
    raw_arguments: str
    call_id: str | None = None


@dataclass(frozen=True)
class OperationResult:
    """Outcome of exactly one invocation request."""

    request: OperationInvocationRequest
    ok: bool
    data: Any = None
    error: str | None = None

    @classmethod
    def success(cls, request: OperationInvocationRequest, data: Any) -> OperationResult:
        return cls(request=request, ok=True, data=data)

    @classmethod
    def failure(cls, request: OperationInvocationRequest, message: str) -> OperationResult:
        return cls(request=request, ok=False, error=message)

    def to_payload(self) -> dict[str, Any]:
        """Render the result the way synthesis shows it to the model."""
        payload: dict[str, Any] = {"operation": self.request.name, "arguments": self.request.raw_arguments}
        if self.ok:
            payload["result"] = self.data
        else:
            payload["error"] = self.error
        return payload


InvocationOutcome: TypeAlias = list[OperationResult] | Literal["no external information found"]


@dataclass(frozen=True)
class AgentReply:
    """The single reply produced for one qualifying message."""

    text: str
