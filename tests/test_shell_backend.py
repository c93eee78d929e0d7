from __future__ import annotations

import os
import subprocess
import sys
from pathlib import Path

import allure
import pytest

from taskgraph.backend import ShellProcessRunner, StepRunRequest
from taskgraph.backend.shell_backend import _normalize_returncode
from taskgraph.errors import ProcessRunError

pytestmark = [
    allure.epic("Recipe Executor"),
    allure.feature("Shell Backend"),
    pytest.mark.skipif(os.name == "nt", reason="POSIX shell semantics"),
]


def test_exit_code_is_returned_verbatim(tmp_path: Path) -> None:
    result = ShellProcessRunner().run(StepRunRequest(command="exit 101", cwd=tmp_path))

    assert result.exit_code == 101


def test_runs_in_requested_directory_with_bindings_exported(tmp_path: Path) -> None:
    ShellProcessRunner().run(
        StepRunRequest(
            command='printf "%s" "$for" > "$(pwd)/out.txt"',
            cwd=tmp_path,
            environment={"for": "transfer"},
        ),
    )

    assert (tmp_path / "out.txt").read_text("utf-8") == "transfer"


def test_joined_and_chain_short_circuits_inside_shell(tmp_path: Path) -> None:
    result = ShellProcessRunner().run(
        StepRunRequest(command="false && touch never.txt", cwd=tmp_path),
    )

    assert result.exit_code == 1
    assert not (tmp_path / "never.txt").exists()


def test_missing_shell_raises_process_run_error(tmp_path: Path) -> None:
    runner = ShellProcessRunner(shell=str(tmp_path / "no-such-shell"))

    with pytest.raises(ProcessRunError) as error_info:
        runner.run(StepRunRequest(command="true", cwd=tmp_path))

    assert error_info.value.exit_code == 127


def test_signal_exit_is_mapped_above_128() -> None:
    assert _normalize_returncode(-15) == 143
    assert _normalize_returncode(3) == 3


def test_interrupt_terminates_child(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    started: list[subprocess.Popen[bytes]] = []
    original_popen = subprocess.Popen

    class _InterruptingPopen(original_popen):  # type: ignore[misc, valid-type]
        def __init__(self, *args, **kwargs) -> None:
            super().__init__(*args, **kwargs)
            started.append(self)
            self._interrupt_once = True

        def wait(self, timeout=None):
            if self._interrupt_once:
                self._interrupt_once = False
                raise KeyboardInterrupt
            return super().wait(timeout=timeout)

    monkeypatch.setattr(subprocess, "Popen", _InterruptingPopen)

    with pytest.raises(KeyboardInterrupt):
        ShellProcessRunner(terminate_timeout_seconds=5).run(
            StepRunRequest(command=f"{sys.executable} -c 'import time; time.sleep(30)'", cwd=tmp_path),
        )

    (process,) = started
    assert process.returncode is not None
    assert process.returncode != 0
