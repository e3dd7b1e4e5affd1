# TryREPL™ — Package-Trying Interactive Python Shell
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
Spinner shown while a pip / lookup process is pending.
"""

from __future__ import annotations

import threading

from rich.console import Console
from rich.markup import escape
from rich.status import Status

SUCCESS_SYMBOL = "✔"
FAILURE_SYMBOL = "✖"


class Spinner:
    """Transient status line with succeed/fail end states.

    succeed() and fail() stop the animation and leave one marked line
    behind. fail() may be called several times (once per stderr chunk);
    each call prints its own line.
    """

    def __init__(
        self,
        text: str,
        console: Console | None = None,
        spinner: str = "dots",
    ):
        self.text = text
        self.console = console or Console(stderr=True)
        self._status: Status = self.console.status(
            escape(text), spinner=spinner
        )
        self._lock = threading.Lock()
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> Spinner:
        with self._lock:
            if not self._running:
                self._status.start()
                self._running = True
        return self

    def stop(self) -> None:
        with self._lock:
            if self._running:
                self._status.stop()
                self._running = False

    def succeed(self, text: str | None = None) -> None:
        self._finish(f"[green]{SUCCESS_SYMBOL}[/green]", text)

    def fail(self, text: str | None = None) -> None:
        self._finish(f"[red]{FAILURE_SYMBOL}[/red]", text)

    def _finish(self, symbol: str, text: str | None) -> None:
        self.stop()
        message = (text if text is not None else self.text).rstrip("\n")
        self.console.print(f"{symbol} {escape(message)}", highlight=False)

    def __enter__(self) -> Spinner:
        return self.start()

    def __exit__(self, *exc) -> None:
        self.stop()
