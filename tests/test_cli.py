import importlib

import pytest
from rich.console import Console
from typer.testing import CliRunner

from bitmore.channels.console import ConsoleMessenger
from bitmore.channels.telegram import TelegramMessenger

cli_module = importlib.import_module("bitmore.cli")


@pytest.fixture(autouse=True)
def _isolated(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    monkeypatch.chdir(tmp_path)
    for name in ("OPENAI_API_KEY", "BITMORE_API_KEY", "BITMORE_TELEGRAM_TOKEN", "BITMORE_NETWORK"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("BITMORE_HOME", str(tmp_path / "home"))
    monkeypatch.setattr(cli_module, "console", Console(width=200))
    monkeypatch.setattr(cli_module, "configure_logging", lambda **_kwargs: None)


def test_operations_command_lists_every_operation() -> None:
    result = CliRunner().invoke(cli_module.app, ["operations"])

    assert result.exit_code == 0
    for name in (
        "fetch_Details_for_loan",
        "calculate_insurance_details",
        "purchase_insurance",
        "rollover_insurance",
        "cancel_insurance",
        "get_insurance_details",
        "get_all_active_insurances",
    ):
        assert name in result.stdout
    assert "userAddress?" in result.stdout


def test_run_command_requires_telegram_token() -> None:
    result = CliRunner().invoke(cli_module.app, ["run"])

    assert result.exit_code == 1
    assert "BITMORE_TELEGRAM_TOKEN" in result.stdout


def test_run_command_rejects_unknown_network(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BITMORE_TELEGRAM_TOKEN", "123:abc")
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")

    result = CliRunner().invoke(cli_module.app, ["run", "--network", "mainnet"])

    assert result.exit_code == 1
    assert "Unknown network: mainnet" in result.stdout


def test_run_command_serves_telegram_with_network_history(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    monkeypatch.setenv("BITMORE_TELEGRAM_TOKEN", "123:abc")
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    served: dict[str, object] = {}

    async def _fake_serve(settings, messenger) -> None:
        served["settings"] = settings
        served["messenger"] = messenger

    monkeypatch.setattr(cli_module, "serve", _fake_serve)

    result = CliRunner().invoke(cli_module.app, ["run", "--network", "production", "--model", "gpt-4o"])

    assert result.exit_code == 0
    assert isinstance(served["messenger"], TelegramMessenger)
    assert served["settings"].model == "gpt-4o"
    assert served["messenger"].store.db_path == str(tmp_path / "home" / "production-messages.db3")


def test_chat_command_requires_api_key() -> None:
    result = CliRunner().invoke(cli_module.app, ["chat"])

    assert result.exit_code == 1
    assert "OPENAI_API_KEY" in result.stdout


def test_chat_command_serves_console(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    served: dict[str, object] = {}

    async def _fake_serve(settings, messenger) -> None:
        served["messenger"] = messenger

    monkeypatch.setattr(cli_module, "serve", _fake_serve)

    result = CliRunner().invoke(cli_module.app, ["chat"])

    assert result.exit_code == 0
    assert isinstance(served["messenger"], ConsoleMessenger)
    assert served["messenger"].identity == "bitmore_xbt"
