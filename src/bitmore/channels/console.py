"""Local console messenger for development chats."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator

from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel

from bitmore.channels.base import StoreBackedMessenger
from bitmore.channels.events import IncomingMessage
from bitmore.channels.store import MessageStore

EXIT_COMMANDS = frozenset({"exit", "quit", "q"})


class ConsoleMessenger(StoreBackedMessenger):
    """Reads user lines from stdin and prints replies with rich."""

    name = "console"

    def __init__(
        self,
        store: MessageStore,
        *,
        agent_id: str = "bitmore",
        user_id: str = "console-user",
        conversation_id: str = "console",
        console: Console | None = None,
    ) -> None:
        super().__init__(store)
        self._agent_id = agent_id
        self._user_id = user_id
        self._conversation_id = conversation_id
        self._console = console or Console()
        self._running = False

    @property
    def identity(self) -> str:
        return self._agent_id

    async def start(self) -> None:
        self._running = True
        self._console.print("[bold]bitmore[/bold] console chat. Type 'exit' to leave.")

    async def stop(self) -> None:
        self._running = False

    async def stream(self) -> AsyncIterator[IncomingMessage]:
        while self._running:
            try:
                line = await asyncio.to_thread(self._console.input, "[bold cyan]you[/bold cyan] > ")
            except EOFError:
                return
            text = line.strip()
            if not text:
                continue
            if text.casefold() in EXIT_COMMANDS:
                return
            message = IncomingMessage(sender_id=self._user_id, conversation_id=self._conversation_id, content=text)
            self.record_inbound(message)
            yield message

    async def deliver(self, conversation_id: str, text: str) -> None:
        self._console.print(Panel(Markdown(text), title=self._agent_id, border_style="green"))
