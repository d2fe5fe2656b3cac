"""Decision step: ask the model which operations apply to the conversation."""

from __future__ import annotations

from collections.abc import Sequence

from loguru import logger
from openai.types.chat import ChatCompletionMessageParam

from bitmore.core.model import ModelClient
from bitmore.core.prompt import render_decision_prompt
from bitmore.core.types import ConversationTurn, OperationInvocationRequest
from bitmore.operations.registry import OperationRegistry


class DecisionStep:
    """One model round-trip that selects zero or more operations."""

    def __init__(self, model: ModelClient, registry: OperationRegistry, *, agent_name: str) -> None:
        self._model = model
        self._registry = registry
        self._system_prompt = render_decision_prompt(agent_name)

    def build_messages(self, history: Sequence[ConversationTurn]) -> list[ChatCompletionMessageParam]:
        messages: list[ChatCompletionMessageParam] = [{"role": "system", "content": self._system_prompt}]
        messages.extend(turn.to_message() for turn in history)  # type: ignore[misc]
        return messages

    async def decide(self, history: Sequence[ConversationTurn]) -> list[OperationInvocationRequest]:
        """Return the operations the model asked for; model errors propagate."""
        completion = await self._model.complete(self.build_messages(history), tools=self._registry.model_tools())
        logger.info(
            "decision.done actions={}",
            [request.name for request in completion.actions],
        )
        return list(completion.actions)
