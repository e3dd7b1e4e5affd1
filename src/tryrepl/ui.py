# TryREPL™ — Package-Trying Interactive Python Shell
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

from __future__ import annotations

import re
import rlcompleter
from collections.abc import Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from prompt_toolkit import PromptSession
from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.formatted_text import ANSI
from prompt_toolkit.key_binding import KeyBindings
from prompt_toolkit.patch_stdout import patch_stdout
from prompt_toolkit.shortcuts import clear as pt_clear
from prompt_toolkit.shortcuts import print_formatted_text
from prompt_toolkit.styles import Style

if TYPE_CHECKING:
    from .kernel import Kernel  # pragma: no cover


@dataclass(frozen=True)
class CommandCompletionItem:
    key: str
    meta: str


INDENT = "    "

# Dotted-name fragment at the end of the line: "os.pa" -> "os.pa"
_NAME_TAIL_RE = re.compile(r"[A-Za-z_][\w.]*$")


# ----------------------------
# Config helpers (via kernel.config.get_path)
# ----------------------------


def _cfg_get_path(kernel: Kernel | None, path: str, default):
    if kernel is None:
        return default
    cfg = getattr(kernel, "config", None)
    if cfg is None or not hasattr(cfg, "get_path"):
        return default
    try:
        return cfg.get_path(path, default)
    except Exception:
        return default


def _cfg_dict(kernel: Kernel | None, path: str, default: dict) -> dict:
    val = _cfg_get_path(kernel, path, default)
    return val if isinstance(val, dict) else default


# ----------------------------
# Theme / Style
# ----------------------------


def _default_style_dict() -> dict[str, str]:
    # Conservative: works across prompt_toolkit versions.
    return {
        "completion-menu": "bg:#111111 #d0d0d0",
        "completion-menu.completion": "bg:#111111 #d0d0d0",
        "completion-menu.completion.current": "bg:#303030 #ffffff bold",
        "completion-menu.meta.completion": "bg:#111111 #808080",
        "completion-menu.meta.completion.current": "bg:#303030 #a0a0a0",
        "scrollbar.background": "bg:#202020",
        "scrollbar.button": "bg:#505050",
    }


def _build_style(kernel: Kernel | None) -> Style:
    base = _default_style_dict()
    overrides = _cfg_dict(kernel, "ui.theme.style", {})
    # only keep string->string
    for k, v in list(overrides.items()):
        if isinstance(k, str) and isinstance(v, str):
            base[k] = v
    return Style.from_dict(base)


# ----------------------------
# Completers
# ----------------------------


class CommandCompleter(Completer):
    """Completes dot-commands (first token only)."""

    def __init__(self, kernel: Kernel | None) -> None:
        self.kernel = kernel

    def _items(self) -> list[CommandCompletionItem]:
        k = self.kernel
        if k is None or not hasattr(k, "list_command_completions"):
            return []
        try:
            raw = k.list_command_completions()
        except Exception:
            return []
        items: list[CommandCompletionItem] = []
        for r in raw or []:
            if isinstance(r, dict):
                key = str(r.get("key", "")).strip()
                if key:
                    items.append(
                        CommandCompletionItem(
                            key=key, meta=str(r.get("meta", "") or "")
                        )
                    )
        return items

    def get_completions(
        self, document, complete_event
    ) -> Iterable[Completion]:
        before = document.text_before_cursor or ""
        s = before.lstrip()
        if not s.startswith(".") or " " in s:
            return
        for it in self._items():
            if it.key.startswith(s):
                yield Completion(
                    it.key, start_position=-len(s), display_meta=it.meta
                )


class NamespaceCompleter(Completer):
    """Completes Python names and attributes from the session namespace."""

    def __init__(self, kernel: Kernel | None) -> None:
        self.kernel = kernel

    def _namespace(self) -> dict:
        k = self.kernel
        if k is None:
            return {}
        console = getattr(k, "console", None)
        ns = getattr(console, "namespace", None)
        return ns if isinstance(ns, dict) else {}

    def get_completions(
        self, document, complete_event
    ) -> Iterable[Completion]:
        before = document.text_before_cursor or ""
        if before.lstrip().startswith("."):
            return
        match = _NAME_TAIL_RE.search(before)
        if not match:
            return
        token = match.group(0)

        completer = rlcompleter.Completer(self._namespace())
        seen: set[str] = set()
        state = 0
        while True:
            try:
                cand = completer.complete(token, state)
            except Exception:
                break
            if cand is None:
                break
            state += 1
            if cand in seen:
                continue
            seen.add(cand)
            yield Completion(cand, start_position=-len(token))


class TryReplCompleter(Completer):
    def __init__(self, kernel: Kernel | None) -> None:
        self.kernel = kernel
        self._commands = CommandCompleter(kernel)
        self._names = NamespaceCompleter(kernel)

    def get_completions(
        self, document, complete_event
    ) -> Iterable[Completion]:
        text = document.text_before_cursor or ""
        if text.lstrip().startswith("."):
            yield from self._commands.get_completions(
                document, complete_event
            )
            return
        yield from self._names.get_completions(document, complete_event)


# ----------------------------
# PromptSession UI
# ----------------------------


class PromptToolkitUI:
    """
    Terminal-friendly UI:
      - Keeps normal terminal scrollback + drag-select copy.
      - Uses PromptSession so completion menus remain exactly as expected.
      - Adds hotkeys:
          * Ctrl+L: clear screen
          * Tab on a blank line: indent; otherwise complete
    """

    def __init__(self, kernel: Kernel | None = None) -> None:
        self.kernel = kernel
        self.session: PromptSession[str] | None = None
        self._completer: TryReplCompleter | None = None
        self._style = _build_style(kernel)

        # Track whether we ended on a newline (to prevent prompt mangling)
        self._needs_newline_before_prompt = False

    # ---------- session ----------

    def _ensure_session(self) -> None:
        if self.session is not None:
            return

        key_bindings = (
            self.build_key_bindings(self.kernel)
            if self.kernel else None
        )
        self._completer = TryReplCompleter(self.kernel)

        self.session = PromptSession(
            key_bindings=key_bindings,
            completer=self._completer,
            complete_while_typing=False,
            style=self._style,
        )

    # ---------- public API ----------

    def read(self, prompt: str) -> str:
        self._ensure_session()
        assert self.session is not None

        # If last output didn't end with newline, insert one
        # before prompt redraw
        if self._needs_newline_before_prompt:
            print_formatted_text(
                ANSI("\n"), style=self._style, end=""
            )
            self._needs_newline_before_prompt = False

        with patch_stdout():
            # prompt contains ANSI from kernel.prompt(),
            # so preserve it
            return self.session.prompt(ANSI(prompt + " "))

    def write(self, text: str) -> None:
        """Write EXACTLY what we receive (no extra newline).

        Track prompt safety.
        """
        if not text:
            return
        print_formatted_text(ANSI(text), style=self._style, end="")
        self._needs_newline_before_prompt = not text.endswith("\n")

    def clear(self) -> None:
        pt_clear()

    # ---------- keybindings ----------

    def build_key_bindings(self, kernel: Kernel | None) -> KeyBindings:
        kb = KeyBindings()

        @kb.add("c-l")
        def _(event):
            try:
                event.app.renderer.clear()
            except Exception:
                pass
            try:
                event.current_buffer.reset()
            except Exception:
                pass
            event.app.invalidate()

        @kb.add("tab")
        def _(event):
            buf = event.current_buffer
            before = buf.document.text_before_cursor

            # Blank (or all-whitespace) line: indent like the stock REPL
            if not before.strip():
                buf.insert_text(INDENT)
                return

            buf.complete_next()

        return kb
