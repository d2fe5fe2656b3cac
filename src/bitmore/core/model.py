"""Model collaborator: chat completions with optional tool catalog."""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol

from loguru import logger
from openai import AsyncOpenAI, OpenAIError
from openai.types.chat import ChatCompletion, ChatCompletionMessageParam

from bitmore.core.types import OperationInvocationRequest
from bitmore.errors import TransportError


@dataclass(frozen=True)
class ModelCompletion:
    """Model output: plain text, requested actions, or both."""

    text: str | None = None
    actions: list[OperationInvocationRequest] = field(default_factory=list)


class ModelClient(Protocol):
    async def complete(
        self,
        messages: Sequence[ChatCompletionMessageParam],
        *,
        tools: Sequence[dict[str, Any]] | None = None,
    ) -> ModelCompletion: ...


class OpenAIModelClient:
    """Single-attempt chat completion client with a per-call timeout."""

    def __init__(
        self,
        *,
        api_key: str,
        model: str,
        timeout_seconds: float | None,
        api_base: str | None = None,
        client: AsyncOpenAI | None = None,
    ) -> None:
        self._client = client or AsyncOpenAI(api_key=api_key, base_url=api_base, max_retries=0)
        self._model = model
        self._timeout_seconds = timeout_seconds

    @property
    def model(self) -> str:
        return self._model

    async def complete(
        self,
        messages: Sequence[ChatCompletionMessageParam],
        *,
        tools: Sequence[dict[str, Any]] | None = None,
    ) -> ModelCompletion:
        kwargs: dict[str, Any] = {"model": self._model, "messages": list(messages)}
        if tools:
            kwargs["tools"] = list(tools)
        try:
            async with asyncio.timeout(self._timeout_seconds):
                completion = await self._client.chat.completions.create(**kwargs)
        except TimeoutError as exc:
            raise TransportError(f"model_timeout: no response within {self._timeout_seconds}s") from exc
        except OpenAIError as exc:
            logger.warning("model.call.error model={} error={}", self._model, exc)
            raise TransportError(f"model_call_error: {exc!s}") from exc
        return parse_completion(completion)


def parse_completion(completion: ChatCompletion) -> ModelCompletion:
    if not completion.choices:
        return ModelCompletion()
    message = completion.choices[0].message
    actions: list[OperationInvocationRequest] = []
    for tool_call in message.tool_calls or ():
        function = getattr(tool_call, "function", None)
        if function is None:
            continue
        actions.append(
            OperationInvocationRequest(name=function.name, raw_arguments=function.arguments or "", call_id=tool_call.id)
        )
    return ModelCompletion(text=message.content, actions=actions)
