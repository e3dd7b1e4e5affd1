# TryREPL™ — Package-Trying Interactive Python Shell
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
Evaluation result rendering.

Values implementing Presentable (a zero-argument present() method) are
shown through what present() returns; everything else is shown as is.
Rendering goes through rich's pretty printer with a bounded depth.
"""

from __future__ import annotations

import io
from typing import Any

from rich.console import Console
from rich.pretty import Pretty

from .interfaces import Presentable

DEFAULT_MAX_DEPTH = 5


def is_empty_result(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value == "")


def presentation_of(value: Any) -> Any:
    """The object to render for value."""
    if isinstance(value, type):
        # Classes expose present() as an unbound function.
        return value
    if isinstance(value, Presentable) and callable(value.present):
        return value.present()
    return value


def render(
    value: Any,
    max_depth: int = DEFAULT_MAX_DEPTH,
    colors: bool = True,
    width: int = 100,
) -> str:
    """Pretty-print value to a string (ANSI colored when colors=True)."""
    buf = io.StringIO()
    console = Console(
        file=buf,
        force_terminal=colors,
        no_color=not colors,
        color_system="standard" if colors else None,
        width=width,
        highlight=colors,
    )
    console.print(Pretty(value, max_depth=max_depth, expand_all=False))
    return buf.getvalue()


def format_result(
    value: Any,
    max_depth: int = DEFAULT_MAX_DEPTH,
    colors: bool = True,
    width: int = 100,
) -> str | None:
    """Render an evaluation result, or None when there is nothing to show."""
    if is_empty_result(value):
        return None
    return render(
        presentation_of(value), max_depth=max_depth, colors=colors, width=width
    )
