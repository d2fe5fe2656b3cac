"""bitmore command line interface."""

from __future__ import annotations

import asyncio
import contextlib
from typing import NoReturn, Optional

import typer
from rich.console import Console
from rich.table import Table

from bitmore.app import serve
from bitmore.channels.console import ConsoleMessenger
from bitmore.channels.store import MessageStore
from bitmore.channels.telegram import TelegramConfig, TelegramMessenger
from bitmore.config import Network, load_settings
from bitmore.errors import ConfigurationError
from bitmore.logging_utils import configure_logging
from bitmore.operations.registry import OperationRegistry

app = typer.Typer(name="bitmore", help="Conversational loan insurance agent", add_completion=False)
console = Console()


def _exit_with_error(message: str) -> NoReturn:
    console.print(f"[red]{message}[/red]")
    raise typer.Exit(1)


@app.command()
def run(
    model: Optional[str] = typer.Option(None, "--model", help="Override the chat model"),
    network: Optional[str] = typer.Option(None, "--network", help="Messaging network: local, dev or production"),
) -> None:
    """Serve the agent on Telegram."""
    settings = load_settings(model=model, network=_network(network))
    configure_logging(level=settings.log_level)
    try:
        token = settings.require_telegram_token()
        settings.require_api_key()
    except ConfigurationError as exc:
        _exit_with_error(str(exc))

    store = MessageStore(str(settings.history_db_path()))
    messenger = TelegramMessenger(TelegramConfig(token=token, allow_from=settings.allow_from), store)
    try:
        with contextlib.suppress(KeyboardInterrupt):
            asyncio.run(serve(settings, messenger))
    finally:
        store.close()


@app.command()
def chat(
    model: Optional[str] = typer.Option(None, "--model", help="Override the chat model"),
) -> None:
    """Chat with the agent in this terminal."""
    settings = load_settings(model=model)
    configure_logging(profile="chat", level=settings.log_level)
    try:
        settings.require_api_key()
    except ConfigurationError as exc:
        _exit_with_error(str(exc))

    store = MessageStore()
    messenger = ConsoleMessenger(store, agent_id=settings.agent_name.lower(), console=console)
    try:
        with contextlib.suppress(KeyboardInterrupt):
            asyncio.run(serve(settings, messenger))
    finally:
        store.close()


@app.command()
def operations() -> None:
    """List the operations the agent can invoke."""
    table = Table(title="Operations")
    table.add_column("name")
    table.add_column("method")
    table.add_column("parameters")
    table.add_column("description")
    for spec in OperationRegistry().specs():
        schema = spec.parameter_schema()
        required = set(schema.get("required", []))
        params = ", ".join(f"{name}{'' if name in required else '?'}" for name in schema["properties"])
        table.add_row(str(spec.name), spec.method, params or "-", spec.description)
    console.print(table)


def _network(raw: str | None) -> Network | None:
    if raw is None:
        return None
    if raw not in ("local", "dev", "production"):
        _exit_with_error(f"Unknown network: {raw}")
    return raw  # type: ignore[return-value]
