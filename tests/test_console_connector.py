# tests/test_console_connector.py

from __future__ import annotations

import asyncio

import pytest

from groundcontrol.background.models import BackgroundTaskStatus
from groundcontrol.connectors.console_connector import run_console_loop
from groundcontrol.connectors.loop_runner import start_loop_in_background


def _feed(monkeypatch: pytest.MonkeyPatch, lines: list[str]) -> None:
    pending = list(lines)

    def fake_input(_prompt: str = "") -> str:
        if not pending:
            raise EOFError
        return pending.pop(0)

    monkeypatch.setattr("builtins.input", fake_input)


def test_loop_runner_executes_coroutines_in_its_thread() -> None:
    runner = start_loop_in_background("test-loop")

    async def which_loop():
        return asyncio.get_running_loop()

    try:
        assert runner.run(which_loop(), timeout=5) is runner.loop
    finally:
        runner.stop()
        runner.join(timeout=5)

    assert not runner.thread.is_alive()


def test_console_drives_background_tasks_between_prompts(state, monkeypatch, capsys) -> None:
    _feed(monkeypatch, ["", "hello", "/bg explore scan the tree", "/nope", "/exit", "/never-read"])
    runner = start_loop_in_background("test-console-loop")

    try:
        run_console_loop(state, runner)
        runner.run(state.manager.wait_idle(), timeout=5)
    finally:
        runner.stop()
        runner.join(timeout=5)

    out = capsys.readouterr().out
    assert "Only slash commands are supported here" in out
    assert "Launched bg_" in out
    assert "Unknown command" in out

    (task,) = state.manager.registry.list_tasks()
    assert task.status is BackgroundTaskStatus.COMPLETED


def test_console_exits_on_eof(state, monkeypatch, capsys) -> None:
    _feed(monkeypatch, [])
    runner = start_loop_in_background("test-console-eof")

    try:
        run_console_loop(state, runner)
    finally:
        runner.stop()
        runner.join(timeout=5)

    assert "/help" in capsys.readouterr().out
