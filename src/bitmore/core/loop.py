"""Conversation loop: one incoming message in, one reply out."""

from __future__ import annotations

from collections.abc import Sequence
from contextvars import ContextVar
from enum import StrEnum

from loguru import logger

from bitmore.channels.base import Conversation, Messenger
from bitmore.channels.events import IncomingMessage, StoredMessage
from bitmore.core.audit import ProtocolAudit
from bitmore.core.decision import DecisionStep
from bitmore.core.synthesis import SynthesisStep
from bitmore.core.types import NO_EXTERNAL_INFORMATION, AgentReply, ConversationTurn, InvocationOutcome
from bitmore.errors import ConversationNotFoundError
from bitmore.operations.invoker import OperationInvoker

APOLOGY_TEXT = "Sorry, I encountered an error processing your message."

_current_conversation: ContextVar[str] = ContextVar("bitmore_conversation", default="-")


def current_conversation() -> str:
    return _current_conversation.get()


class TurnStage(StrEnum):
    RECEIVED = "received"
    FILTERED = "filtered"
    HISTORY_LOADED = "history_loaded"
    DECIDED = "decided"
    INVOKED = "invoked"
    SYNTHESIZED = "synthesized"
    SENT = "sent"


def same_identity(left: str, right: str) -> bool:
    return left.casefold() == right.casefold()


def to_turns(messages: Sequence[StoredMessage], agent_id: str) -> list[ConversationTurn]:
    """Map stored history to model turns, keeping chronological order."""
    return [
        ConversationTurn(
            role="assistant" if same_identity(message.sender_id, agent_id) else "user",
            content=message.content,
        )
        for message in messages
    ]


class ConversationLoop:
    """Drives decide → invoke → synthesize → send, strictly one message at a time."""

    def __init__(
        self,
        *,
        messenger: Messenger,
        decision: DecisionStep,
        invoker: OperationInvoker,
        synthesis: SynthesisStep,
        apology_text: str = APOLOGY_TEXT,
    ) -> None:
        self._messenger = messenger
        self._decision = decision
        self._invoker = invoker
        self._synthesis = synthesis
        self._apology_text = apology_text
        self._audit = ProtocolAudit()

    async def run(self) -> None:
        """Consume the message stream until it ends."""
        logger.info("loop.waiting messenger={}", self._messenger.name)
        async for message in self._messenger.stream():
            await self.handle_message(message)
            logger.info("loop.waiting messenger={}", self._messenger.name)
        logger.info("loop.stream.closed messenger={}", self._messenger.name)

    def should_handle(self, message: IncomingMessage) -> bool:
        if same_identity(message.sender_id, self._messenger.identity):
            return False
        return message.is_text

    async def handle_message(self, message: IncomingMessage) -> AgentReply | None:
        """Process one message; failures never escape past this call."""
        token = _current_conversation.set(message.conversation_id)
        try:
            if not self.should_handle(message):
                logger.debug(
                    "loop.turn.dropped stage={} sender_id={} content_type={}",
                    TurnStage.FILTERED,
                    message.sender_id,
                    message.content_type,
                )
                return None

            logger.info("loop.turn.start sender_id={} content={}", message.sender_id, message.content[:100])
            try:
                conversation = await self._resolve(message.conversation_id)
            except ConversationNotFoundError as exc:
                logger.warning("loop.turn.dropped stage={} reason={}", TurnStage.HISTORY_LOADED, exc)
                return None
            except Exception:
                logger.exception("loop.turn.error stage={}", TurnStage.HISTORY_LOADED)
                return None

            try:
                reply = await self._run_turn(message, conversation)
            except Exception:
                logger.exception("loop.turn.error")
                await self._send_apology(conversation)
                return None
            logger.info("loop.turn.done stage={} length={}", TurnStage.SENT, len(reply.text))
            return reply
        finally:
            _current_conversation.reset(token)

    async def _resolve(self, conversation_id: str) -> Conversation:
        conversation = await self._messenger.get_conversation(conversation_id)
        if conversation is None:
            raise ConversationNotFoundError(conversation_id)
        return conversation

    async def _run_turn(self, message: IncomingMessage, conversation: Conversation) -> AgentReply:
        history = to_turns(await conversation.messages(), self._messenger.identity)
        logger.debug("loop.stage stage={} turns={}", TurnStage.HISTORY_LOADED, len(history))

        requests = await self._decision.decide(history)
        logger.debug("loop.stage stage={} requests={}", TurnStage.DECIDED, len(requests))
        self._audit.log_violations(message.conversation_id, requests)

        results: InvocationOutcome
        if requests:
            results = await self._invoker.invoke_all(requests, caller_id=message.sender_id)
            logger.debug(
                "loop.stage stage={} ok={} failed={}",
                TurnStage.INVOKED,
                sum(result.ok for result in results),
                sum(not result.ok for result in results),
            )
        else:
            results = NO_EXTERNAL_INFORMATION

        reply = await self._synthesis.synthesize(history, results, caller_id=message.sender_id)
        logger.debug("loop.stage stage={}", TurnStage.SYNTHESIZED)

        await conversation.send(reply.text)
        return reply

    async def _send_apology(self, conversation: Conversation) -> None:
        try:
            await conversation.send(self._apology_text)
        except Exception:
            logger.exception("loop.apology.error")
