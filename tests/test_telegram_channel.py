from __future__ import annotations

from types import SimpleNamespace

import pytest
from telegram.error import BadRequest

from bitmore.channels.store import MessageStore
from bitmore.channels.telegram import (
    TELEGRAM_TEXT_LIMIT,
    AgentMessageFilter,
    TelegramConfig,
    TelegramMessenger,
    split_text,
)


class DummyMessage:
    def __init__(self, *, chat_id: int, text: str | None, message_id: int = 1, caption: str | None = None) -> None:
        self.chat_id = chat_id
        self.text = text
        self.caption = caption
        self.message_id = message_id
        self.replies: list[str] = []

    async def reply_text(self, text: str) -> None:
        self.replies.append(text)


class DummyBot:
    def __init__(self, *, fail_first: bool = False) -> None:
        self.fail_first = fail_first
        self.calls: list[dict[str, object]] = []

    async def send_message(self, **kwargs: object) -> None:
        self.calls.append(kwargs)
        if self.fail_first and len(self.calls) == 1:
            raise BadRequest("Can't parse entities: unmatched end tag")


def _messenger(allow_from: set[str] | None = None) -> TelegramMessenger:
    messenger = TelegramMessenger(TelegramConfig(token="t", allow_from=allow_from or set()), MessageStore())  # noqa: S106
    messenger._start_typing = lambda _chat_id: None  # type: ignore[method-assign]
    return messenger


def _update(message: DummyMessage, *, user_id: int = 1, username: str = "tester") -> SimpleNamespace:
    return SimpleNamespace(
        message=message,
        effective_user=SimpleNamespace(id=user_id, username=username),
    )


@pytest.mark.asyncio
async def test_text_message_is_recorded_and_streamed() -> None:
    messenger = _messenger()
    message = DummyMessage(chat_id=999, text="What's the status of loan L1?", message_id=7)

    await messenger._on_message(_update(message), None)  # type: ignore[arg-type]

    queued = messenger._queue.get_nowait()
    assert queued is not None
    assert (queued.sender_id, queued.conversation_id, queued.content, queued.content_type) == (
        "1",
        "999",
        "What's the status of loan L1?",
        "text",
    )
    history = messenger.store.get_messages("999")
    assert [(stored.id, stored.content) for stored in history] == [("999:7", "What's the status of loan L1?")]


@pytest.mark.asyncio
async def test_non_text_message_is_streamed_with_other_content_type() -> None:
    messenger = _messenger()
    message = DummyMessage(chat_id=999, text=None, caption="a photo")

    await messenger._on_message(_update(message), None)  # type: ignore[arg-type]

    queued = messenger._queue.get_nowait()
    assert queued is not None
    assert queued.content_type == "other"
    assert not queued.is_text


@pytest.mark.asyncio
async def test_sender_outside_allowlist_is_denied() -> None:
    messenger = _messenger(allow_from={"alice"})
    message = DummyMessage(chat_id=999, text="hello")

    await messenger._on_message(_update(message, username="mallory"), None)  # type: ignore[arg-type]

    assert message.replies == ["Access denied."]
    assert messenger._queue.empty()
    assert not messenger.store.has_conversation("999")


@pytest.mark.asyncio
async def test_sender_in_allowlist_by_id_is_accepted() -> None:
    messenger = _messenger(allow_from={"42"})
    message = DummyMessage(chat_id=999, text="hello")

    await messenger._on_message(_update(message, user_id=42, username="bob"), None)  # type: ignore[arg-type]

    assert message.replies == []
    assert not messenger._queue.empty()


@pytest.mark.asyncio
async def test_deliver_falls_back_to_plain_text_on_parse_error() -> None:
    messenger = _messenger()
    bot = DummyBot(fail_first=True)
    messenger._app = SimpleNamespace(bot=bot)  # type: ignore[assignment]

    await messenger.deliver("999", "**Loan L1** is _active_")

    assert len(bot.calls) == 2
    assert bot.calls[0]["parse_mode"] == "MarkdownV2"
    assert bot.calls[1] == {"chat_id": 999, "text": "**Loan L1** is _active_"}


@pytest.mark.asyncio
async def test_stop_ends_the_stream() -> None:
    messenger = _messenger()
    await messenger._queue.put(None)

    received = [message async for message in messenger.stream()]

    assert received == []


def test_identity_requires_start() -> None:
    with pytest.raises(RuntimeError):
        _ = _messenger().identity


class FailingBot(DummyBot):
    async def send_message(self, **kwargs: object) -> None:
        self.calls.append(kwargs)
        if "parse_mode" in kwargs or len(str(kwargs["text"])) > TELEGRAM_TEXT_LIMIT:
            raise BadRequest("Message is too long")


@pytest.mark.asyncio
async def test_long_reply_falls_back_to_chunks_within_telegram_limit() -> None:
    messenger = _messenger()
    bot = FailingBot()
    messenger._app = SimpleNamespace(bot=bot)  # type: ignore[assignment]
    text = "\n".join(f"Loan L{idx}: remaining 600 USDC, asset price 64000.5" for idx in range(200))

    await messenger.deliver("999", text)

    plain = bot.calls[1:]
    assert len(plain) > 1
    assert all(len(str(call["text"])) <= TELEGRAM_TEXT_LIMIT for call in plain)
    assert "\n".join(str(call["text"]) for call in plain) == text


def test_split_text_cuts_long_lines_hard() -> None:
    assert split_text("a" * 10, limit=4) == ["aaaa", "aaaa", "aa"]
    assert split_text("short") == ["short"]
    assert split_text("") == [""]


def _chat_message(
    chat_type: str,
    text: str | None,
    *,
    entities: list[SimpleNamespace] | None = None,
    reply_from: int | None = None,
) -> SimpleNamespace:
    bot = SimpleNamespace(id=777, username="BitmoreBot")
    reply = None if reply_from is None else SimpleNamespace(from_user=SimpleNamespace(id=reply_from))
    return SimpleNamespace(
        chat=SimpleNamespace(type=chat_type),
        text=text,
        entities=entities or [],
        reply_to_message=reply,
        get_bot=lambda: bot,
    )


def test_message_filter_accepts_every_private_message() -> None:
    message_filter = AgentMessageFilter()

    assert message_filter.filter(_chat_message("private", "hello"))  # type: ignore[arg-type]
    assert message_filter.filter(_chat_message("private", None))  # type: ignore[arg-type]


def test_message_filter_gates_group_messages_on_mention_or_reply() -> None:
    message_filter = AgentMessageFilter()
    mention = SimpleNamespace(type="mention", offset=0, length=11, user=None)
    other_mention = SimpleNamespace(type="mention", offset=0, length=6, user=None)

    accepted = [
        _chat_message("group", "@bitmorebot insure L1", entities=[mention]),
        _chat_message("supergroup", "yes please", reply_from=777),
    ]
    rejected = [
        _chat_message("group", "@alice what about L1", entities=[other_mention]),
        _chat_message("group", "insure L1"),
        _chat_message("group", "hi", reply_from=42),
        _chat_message("channel", "@bitmorebot hi", entities=[mention]),
    ]

    assert all(message_filter.filter(message) for message in accepted)  # type: ignore[arg-type]
    assert not any(message_filter.filter(message) for message in rejected)  # type: ignore[arg-type]
