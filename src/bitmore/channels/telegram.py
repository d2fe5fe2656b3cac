"""Telegram messenger using long polling."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any, ClassVar

from loguru import logger
from telegram import Message, Update
from telegram.error import BadRequest
from telegram.ext import Application, CommandHandler, ContextTypes, MessageHandler, filters
from telegramify_markdown import markdownify as md

from bitmore.channels.base import StoreBackedMessenger
from bitmore.channels.events import TEXT_CONTENT_TYPE, IncomingMessage
from bitmore.channels.store import MessageStore
from bitmore.errors import ChannelNotConfiguredError

MAX_MESSAGE_LENGTH = 4000
TELEGRAM_TEXT_LIMIT = 4096
OTHER_CONTENT_TYPE = "other"


def split_text(text: str, limit: int = TELEGRAM_TEXT_LIMIT) -> list[str]:
    """Split text into pieces Telegram accepts, preferring line breaks."""
    chunks: list[str] = []
    while len(text) > limit:
        cut = text.rfind("\n", 0, limit)
        if cut <= 0:
            cut = limit
        chunks.append(text[:cut])
        text = text[cut:].lstrip("\n")
    if text or not chunks:
        chunks.append(text)
    return chunks


class AgentMessageFilter(filters.MessageFilter):
    GROUP_CHAT_TYPES: ClassVar[set[str]] = {"group", "supergroup"}

    def filter(self, message: Message) -> bool | dict[str, list[Any]] | None:
        # Private chat: every message, text or not
        if message.chat.type == "private":
            return True

        # Group chat: only text that mentions the bot or replies to it
        text = message.text
        if message.chat.type not in self.GROUP_CHAT_TYPES or not text:
            return False
        bot = message.get_bot()
        bot_username = (bot.username or "").lower()
        return self._mentions_bot(message, text, bot.id, bot_username) or self._is_reply_to_bot(message, bot.id)

    @staticmethod
    def _mentions_bot(message: Message, text: str, bot_id: int, bot_username: str) -> bool:
        for entity in message.entities or ():
            if entity.type == "mention" and bot_username:
                mention_text = text[entity.offset : entity.offset + entity.length]
                if mention_text.lower() == f"@{bot_username}":
                    return True
                continue
            if entity.type == "text_mention" and entity.user and entity.user.id == bot_id:
                return True
        return False

    @staticmethod
    def _is_reply_to_bot(message: Message, bot_id: int) -> bool:
        reply_to_message = message.reply_to_message
        if reply_to_message is None or reply_to_message.from_user is None:
            return False
        return reply_to_message.from_user.id == bot_id


@dataclass(frozen=True)
class TelegramConfig:
    """Telegram adapter config."""

    token: str
    allow_from: set[str] = field(default_factory=set)


class TelegramMessenger(StoreBackedMessenger):
    """Telegram adapter; history comes from the local message store."""

    name = "telegram"

    def __init__(self, config: TelegramConfig, store: MessageStore) -> None:
        super().__init__(store)
        self._config = config
        self._app: Application | None = None
        self._queue: asyncio.Queue[IncomingMessage | None] = asyncio.Queue()
        self._typing_tasks: dict[str, asyncio.Task[None]] = {}
        self._identity: str | None = None

    @property
    def identity(self) -> str:
        if self._identity is None:
            raise RuntimeError("telegram messenger is not started")
        return self._identity

    async def start(self) -> None:
        if not self._config.token:
            raise ChannelNotConfiguredError("telegram token is empty")
        logger.info("telegram.channel.start allow_from_count={}", len(self._config.allow_from))
        self._app = Application.builder().token(self._config.token).build()
        self._app.add_handler(CommandHandler("start", self._on_start))
        self._app.add_handler(CommandHandler("help", self._on_help))
        self._app.add_handler(MessageHandler(AgentMessageFilter() & ~filters.COMMAND, self._on_message, block=False))
        await self._app.initialize()
        self._identity = str(self._app.bot.id)
        await self._app.start()
        updater = self._app.updater
        if updater is None:
            return
        await updater.start_polling(drop_pending_updates=True, allowed_updates=["message"])
        logger.info("telegram.channel.polling identity={}", self._identity)

    async def stop(self) -> None:
        for task in self._typing_tasks.values():
            task.cancel()
        self._typing_tasks.clear()
        self._queue.put_nowait(None)
        if self._app is None:
            return
        updater = self._app.updater
        if updater is not None:
            await updater.stop()
        await self._app.stop()
        await self._app.shutdown()
        self._app = None
        logger.info("telegram.channel.stopped")

    async def stream(self) -> AsyncIterator[IncomingMessage]:
        while True:
            message = await self._queue.get()
            if message is None:
                return
            yield message

    async def deliver(self, conversation_id: str, text: str) -> None:
        if self._app is None:
            return
        self._stop_typing(conversation_id)

        rendered = md(text)
        if len(rendered.encode("utf-8")) > MAX_MESSAGE_LENGTH:
            rendered = f"<blockquote expandable>{rendered}</blockquote>"
            parse_mode = "HTML"
        else:
            parse_mode = "MarkdownV2"

        try:
            await self._app.bot.send_message(chat_id=int(conversation_id), text=rendered, parse_mode=parse_mode)
        except BadRequest:
            logger.warning("telegram.channel.send.fallback chat_id={} length={}", conversation_id, len(text))
            for chunk in split_text(text):
                await self._app.bot.send_message(chat_id=int(conversation_id), text=chunk)

    async def _on_start(self, update: Update, _context: ContextTypes.DEFAULT_TYPE) -> None:
        if update.message is None:
            return
        await update.message.reply_text("Hi! I can look up your loans and help you insure them. Ask me anything.")

    async def _on_help(self, update: Update, _context: ContextTypes.DEFAULT_TYPE) -> None:
        if update.message is None:
            return
        await update.message.reply_text(
            "Commands:\n"
            "/start - show startup message\n"
            "/help - show this help\n\n"
            "Send a loan or insurance id to get started."
        )

    async def _on_message(self, update: Update, _context: ContextTypes.DEFAULT_TYPE) -> None:
        if update.message is None or update.effective_user is None:
            return
        user = update.effective_user
        sender_tokens = {str(user.id)}
        if user.username:
            sender_tokens.add(user.username)
        if self._config.allow_from and sender_tokens.isdisjoint(self._config.allow_from):
            await update.message.reply_text("Access denied.")
            return

        chat_id = str(update.message.chat_id)
        text = update.message.text
        message = IncomingMessage(
            sender_id=str(user.id),
            conversation_id=chat_id,
            content=text if text is not None else (update.message.caption or ""),
            content_type=TEXT_CONTENT_TYPE if text is not None else OTHER_CONTENT_TYPE,
        )
        logger.info(
            "telegram.channel.inbound chat_id={} sender_id={} username={} content_type={} content={}",
            chat_id,
            user.id,
            user.username or "",
            message.content_type,
            message.content[:100],
        )

        self.record_inbound(message, message_id=f"{chat_id}:{update.message.message_id}")
        if message.content_type == TEXT_CONTENT_TYPE:
            self._start_typing(chat_id)
        await self._queue.put(message)

    def _start_typing(self, chat_id: str) -> None:
        self._stop_typing(chat_id)
        self._typing_tasks[chat_id] = asyncio.create_task(self._typing_loop(chat_id))

    def _stop_typing(self, chat_id: str) -> None:
        task = self._typing_tasks.pop(chat_id, None)
        if task is not None:
            task.cancel()

    async def _typing_loop(self, chat_id: str) -> None:
        try:
            while self._app is not None:
                await self._app.bot.send_chat_action(chat_id=int(chat_id), action="typing")
                await asyncio.sleep(4)
        except asyncio.CancelledError:
            return
        except Exception:
            logger.exception("telegram.channel.typing_loop.error chat_id={}", chat_id)
            return
