# TryREPL™ — Package-Trying Interactive Python Shell
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
TryREPL CLI entry point and REPL loop.

Design:
- CLI owns process startup and wiring.
- Kernel is the session engine (config+console+package manager injected).
- UI is terminal-friendly PromptSession (keeps scrollback + copy/select).
- Leaving the loop always runs teardown, then exits with its code.
"""

from __future__ import annotations

import os
import sys
from collections.abc import Callable

from . import config
from .console import SessionConsole
from .executor import SubprocessExecutor
from .kernel import Kernel, write_crash_log
from .package_manager import PipManager
from .ui import PromptToolkitUI


def run_repl(
    kernel: Kernel,
    ui: PromptToolkitUI | None = None,
    input_fn: Callable[[str], str] = input,
    output_fn: Callable[[str], None] = print,
) -> None:
    """Run the standard TryREPL loop until the session ends."""

    def _emit(text: str) -> None:
        if ui is not None:
            ui.write(text)
        else:
            output_fn(text)

    while kernel.running:
        try:
            prompt = kernel.prompt()

            if ui is not None:
                line = ui.read(prompt)
            else:
                line = input_fn(prompt + " ")

            # Indentation is significant; only skip blank lines when
            # no multi-line statement is open.
            line = (line or "").rstrip("\r\n")
            if not line.strip() and not kernel.console.needs_more:
                continue

            try:
                response = kernel.handle_command(line)

                if response == config.UI_CLEAR:
                    if ui is not None:
                        ui.clear()
                    else:
                        output_fn("\033[2J\033[H")
                    continue

                if response:
                    _emit(response if ui is None else response + "\n")

            except Exception as e:
                # Unhandled exception - write crash log
                write_crash_log(
                    e,
                    raw_command=line,
                    modules=list(kernel.registry),
                )
                error_msg = (
                    f"[ERROR] Unhandled exception: "
                    f"{type(e).__name__}: {e}"
                )
                _emit(error_msg if ui is None else error_msg + "\n")
                # Continue session

        except KeyboardInterrupt:
            # Ctrl-C drops a half-typed block; on a clean prompt it exits
            if kernel.console.needs_more:
                kernel.console.clear_buffer()
                _emit("\nKeyboardInterrupt" if ui is None
                      else "KeyboardInterrupt\n")
                continue
            _emit("\nBye!\n")
            break
        except EOFError:
            _emit("\nBye!\n")
            break


def build_kernel(cfg: config.YAMLConfig | None = None) -> Kernel:
    """Explicit wiring: config + executor + package manager + console."""
    cfg = cfg or config.load_system_config()

    executor = SubprocessExecutor(
        force_color=bool(cfg.get_path("execution.force_color", True)),
        timeout=int(cfg.get_path("execution.timeout_seconds", 600)),
    )

    lookup_args: list[str] = [
        "--timeout", str(cfg.get_path("lookup.timeout_seconds", 10)),
    ]
    if not cfg.get_path("lookup.open_browser", True):
        lookup_args.append("--no-browser")

    package_manager = PipManager(
        executor,
        target=config.modules_dir(cfg),
        pip_args=cfg.get_path("install.pip_args"),
        uninstall_args=cfg.get_path("install.uninstall_args"),
        lookup_args=lookup_args,
    )

    colors = bool(cfg.get_path("display.colors", True)) and (
        os.environ.get("NO_COLOR") is None
    )
    console = SessionConsole(
        max_depth=int(cfg.get_path("display.max_depth", 5)),
        colors=colors,
    )

    return Kernel(console=console, package_manager=package_manager, config=cfg)


def main() -> None:
    """Main entry point for TryREPL CLI."""
    kernel = build_kernel()

    # Start kernel (do NOT include prompt; comes from ui.read())
    start_output = kernel.start(include_prompt=False)

    # If user explicitly disables prompt_toolkit UI:
    if os.environ.get("TRYREPL_LEGACY_UI") == "1":
        kernel.output_fn = lambda s: print(s, end="")
        kernel.console.output_fn = kernel.output_fn
        if start_output:
            print(start_output)
        run_repl(kernel)
    else:
        # Default: PromptToolkitUI (keeps terminal scrollback/copy/select)
        ui = PromptToolkitUI(kernel)

        # Route streaming output through UI (kernel/console call these)
        kernel.output_fn = ui.write
        kernel.error_fn = ui.write
        kernel.console.output_fn = ui.write

        if start_output:
            ui.write(start_output)
            if not start_output.endswith("\n"):
                ui.write("\n")

        run_repl(kernel, ui=ui)

    sys.exit(kernel.shutdown())
