from __future__ import annotations

import allure
import pytest

from taskgraph.config import ExecutionSettings, HelpSettings, Settings

pytestmark = [
    allure.epic("Configuration"),
    allure.feature("Environment Settings"),
]

_ENV_KEYS = (
    "TASKGRAPH_RUNFILE_NAMES",
    "TASKGRAPH_SHELL",
    "TASKGRAPH_STRICT",
    "TASKGRAPH_HELP_WIDTH",
    "TASKGRAPH_HELP_COLOR",
    "TASKGRAPH_LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


def test_from_env_defaults() -> None:
    settings = Settings.from_env()

    assert settings.runfile_names == ("Runfile", "Makefile")
    assert settings.execution == ExecutionSettings(shell="/bin/sh", strict_parameters=False)
    assert settings.help == HelpSettings(column_width=15, color=True)
    assert settings.log_level == "WARNING"


def test_from_env_parses_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TASKGRAPH_RUNFILE_NAMES", " Tasks.run, Makefile ,Tasks.run,")
    monkeypatch.setenv("TASKGRAPH_SHELL", "/bin/bash")
    monkeypatch.setenv("TASKGRAPH_STRICT", "yes")
    monkeypatch.setenv("TASKGRAPH_HELP_WIDTH", "20")
    monkeypatch.setenv("TASKGRAPH_HELP_COLOR", "off")
    monkeypatch.setenv("TASKGRAPH_LOG_LEVEL", "debug")

    settings = Settings.from_env()

    assert settings.runfile_names == ("Tasks.run", "Makefile")
    assert settings.execution.shell == "/bin/bash"
    assert settings.execution.strict_parameters is True
    assert settings.help.column_width == 20
    assert settings.help.color is False
    assert settings.log_level == "DEBUG"


def test_from_env_rejects_invalid_boolean(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TASKGRAPH_STRICT", "maybe")

    with pytest.raises(ValueError, match="Invalid boolean value for TASKGRAPH_STRICT"):
        Settings.from_env()


def test_from_env_rejects_invalid_width(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TASKGRAPH_HELP_WIDTH", "wide")
    with pytest.raises(ValueError, match="Invalid integer value for TASKGRAPH_HELP_WIDTH"):
        Settings.from_env()

    monkeypatch.setenv("TASKGRAPH_HELP_WIDTH", "0")
    with pytest.raises(ValueError, match="TASKGRAPH_HELP_WIDTH must be > 0"):
        Settings.from_env()


def test_from_env_rejects_unknown_log_level(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TASKGRAPH_LOG_LEVEL", "chatty")

    with pytest.raises(ValueError, match="TASKGRAPH_LOG_LEVEL"):
        Settings.from_env()


def test_validate_rejects_empty_shell() -> None:
    settings = Settings(execution=ExecutionSettings(shell=""))

    with pytest.raises(ValueError, match="TASKGRAPH_SHELL"):
        settings.validate()
