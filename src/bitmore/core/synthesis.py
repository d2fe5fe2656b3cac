"""Synthesis step: phrase one reply grounded in the invoked results."""

from __future__ import annotations

import json
from collections.abc import Sequence

from loguru import logger
from openai.types.chat import ChatCompletionMessageParam

from bitmore.core.model import ModelClient
from bitmore.core.prompt import render_synthesis_prompt
from bitmore.core.types import NO_EXTERNAL_INFORMATION, AgentReply, ConversationTurn, InvocationOutcome
from bitmore.operations.registry import OperationRegistry

FALLBACK_REPLY = "I couldn't put together an answer just now. Please ask me again in a moment."


def render_results(results: InvocationOutcome) -> str:
    if results == NO_EXTERNAL_INFORMATION:
        return json.dumps([NO_EXTERNAL_INFORMATION], indent=2)
    payload = [result.to_payload() for result in results]
    return json.dumps(payload, indent=2, ensure_ascii=False, default=str)


class SynthesisStep:
    """One tool-less model round-trip that produces the reply text."""

    def __init__(self, model: ModelClient, registry: OperationRegistry, *, agent_name: str) -> None:
        self._model = model
        self._registry = registry
        self._agent_name = agent_name

    def build_messages(
        self,
        history: Sequence[ConversationTurn],
        results: InvocationOutcome,
        *,
        caller_id: str,
    ) -> list[ChatCompletionMessageParam]:
        system_prompt = render_synthesis_prompt(
            agent_name=self._agent_name,
            caller_id=caller_id,
            specs=self._registry.specs(),
            tool_responses=render_results(results),
        )
        messages: list[ChatCompletionMessageParam] = [{"role": "system", "content": system_prompt}]
        messages.extend(turn.to_message() for turn in history)  # type: ignore[misc]
        return messages

    async def synthesize(
        self,
        history: Sequence[ConversationTurn],
        results: InvocationOutcome,
        *,
        caller_id: str,
    ) -> AgentReply:
        completion = await self._model.complete(self.build_messages(history, results, caller_id=caller_id))
        text = (completion.text or "").strip()
        if not text:
            logger.warning("synthesis.empty_response fallback=true")
            return AgentReply(text=FALLBACK_REPLY)
        return AgentReply(text=text)
