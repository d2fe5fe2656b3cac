"""Build the conversation loop from settings."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from loguru import logger

from bitmore.channels.base import Messenger
from bitmore.config import Settings
from bitmore.core.decision import DecisionStep
from bitmore.core.loop import ConversationLoop
from bitmore.core.model import ModelClient, OpenAIModelClient
from bitmore.core.synthesis import SynthesisStep
from bitmore.operations.invoker import OperationInvoker, build_backend_client
from bitmore.operations.registry import OperationRegistry


def build_model_client(settings: Settings) -> OpenAIModelClient:
    return OpenAIModelClient(
        api_key=settings.require_api_key(),
        model=settings.model,
        timeout_seconds=settings.model_timeout_seconds,
        api_base=settings.api_base,
    )


@asynccontextmanager
async def open_loop(
    settings: Settings,
    messenger: Messenger,
    *,
    model: ModelClient | None = None,
) -> AsyncIterator[ConversationLoop]:
    """Yield a ready loop; the backend client and messenger are closed on exit."""

    registry = OperationRegistry()
    model_client = model or build_model_client(settings)
    async with build_backend_client(settings.backend_url, timeout_seconds=settings.backend_timeout_seconds) as client:
        loop = ConversationLoop(
            messenger=messenger,
            decision=DecisionStep(model_client, registry, agent_name=settings.agent_name),
            invoker=OperationInvoker(client, registry, timeout_seconds=settings.backend_timeout_seconds),
            synthesis=SynthesisStep(model_client, registry, agent_name=settings.agent_name),
        )
        await messenger.start()
        logger.info(
            "app.started messenger={} identity={} backend={} model={}",
            messenger.name,
            messenger.identity,
            settings.backend_url,
            settings.model,
        )
        try:
            yield loop
        finally:
            await messenger.stop()
            logger.info("app.stopped messenger={}", messenger.name)


async def serve(settings: Settings, messenger: Messenger) -> None:
    async with open_loop(settings, messenger) as loop:
        await loop.run()
