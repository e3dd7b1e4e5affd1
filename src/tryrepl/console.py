# TryREPL™ — Package-Trying Interactive Python Shell
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
Evaluation loop adapter.

SessionConsole is a code.InteractiveConsole whose expression results go
through the formatter and whose tracebacks / results are written through
an injected output function (the UI), not straight to stderr.
"""

from __future__ import annotations

import builtins
import code
import sys
from collections.abc import Callable
from typing import Any

from .formatter import DEFAULT_MAX_DEPTH, format_result


class SessionConsole(code.InteractiveConsole):
    """InteractiveConsole with a formatter-backed display hook."""

    def __init__(
        self,
        namespace: dict[str, Any] | None = None,
        output_fn: Callable[[str], None] | None = None,
        max_depth: int = DEFAULT_MAX_DEPTH,
        colors: bool = True,
        filename: str = "<tryrepl>",
    ):
        if namespace is None:
            namespace = {"__name__": "__console__", "__doc__": None}
        super().__init__(locals=namespace, filename=filename)
        self.output_fn = output_fn
        self.max_depth = max_depth
        self.colors = colors

    @property
    def namespace(self) -> dict[str, Any]:
        return self.locals  # type: ignore[return-value]

    @property
    def needs_more(self) -> bool:
        """True while a multi-line statement is being buffered."""
        return bool(self.buffer)

    def write(self, data: str) -> None:
        if self.output_fn is not None:
            self.output_fn(data)
        else:
            sys.stderr.write(data)

    def displayhook(self, value: Any) -> None:
        if value is None:
            return
        builtins._ = None  # type: ignore[attr-defined]
        text = format_result(
            value, max_depth=self.max_depth, colors=self.colors
        )
        if text:
            self.write(text)
        builtins._ = value  # type: ignore[attr-defined]

    def push(self, line: str, *args, **kwargs) -> bool:
        """Push a source line; returns True when more input is needed."""
        saved_hook = sys.displayhook
        sys.displayhook = self.displayhook
        try:
            return super().push(line, *args, **kwargs)
        finally:
            sys.displayhook = saved_hook

    def clear_buffer(self) -> None:
        """Discard any partially typed multi-line statement."""
        self.resetbuffer()

    def bind(self, symbol: str, value: Any) -> None:
        self.namespace[symbol] = value
