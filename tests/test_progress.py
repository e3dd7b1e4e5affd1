"""
Spinner tests against a recording rich Console (no real terminal).
"""

from __future__ import annotations

import io

from rich.console import Console

from tryrepl.progress import FAILURE_SYMBOL, SUCCESS_SYMBOL, Spinner


def _console() -> tuple[Console, io.StringIO]:
    buf = io.StringIO()
    return Console(file=buf, force_terminal=False, width=120), buf


def test_start_and_stop_toggle_running():
    console, _ = _console()
    spinner = Spinner("Installing chalk", console=console)

    spinner.start()
    assert spinner.running
    spinner.stop()
    assert not spinner.running


def test_succeed_prints_marked_line():
    console, buf = _console()
    spinner = Spinner("Installing chalk", console=console).start()

    spinner.succeed("chalk has been installed successfully!")

    assert not spinner.running
    assert f"{SUCCESS_SYMBOL} chalk has been installed successfully!" in buf.getvalue()


def test_fail_can_repeat_and_strips_trailing_newline():
    console, buf = _console()
    spinner = Spinner("Installing chalk", console=console).start()

    spinner.fail("WARNING: one\n")
    spinner.fail("WARNING: two\n")

    out = buf.getvalue()
    assert f"{FAILURE_SYMBOL} WARNING: one" in out
    assert f"{FAILURE_SYMBOL} WARNING: two" in out


def test_markup_in_messages_is_escaped():
    console, buf = _console()
    spinner = Spinner("x", console=console).start()

    spinner.fail("pip[extra] [bold]not markup[/bold]")

    assert "[bold]not markup[/bold]" in buf.getvalue()


def test_context_manager_stops():
    console, _ = _console()

    with Spinner("Cleaning up before exit", console=console) as spinner:
        assert spinner.running

    assert not spinner.running


def test_finish_without_text_uses_label():
    console, buf = _console()
    spinner = Spinner("Cleaning up before exit", console=console).start()

    spinner.succeed()

    assert "Cleaning up before exit" in buf.getvalue()
