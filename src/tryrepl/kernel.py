# TryREPL™ — Package-Trying Interactive Python Shell
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
TryREPL kernel.

Core implementation of TryREPL:
- dot-command dispatch (.install, .repo, .modules, .help, .exit)
- session module registry + namespace binding
- teardown (bulk uninstall of everything the session installed)
- everything else is pushed to the Python console

Important boundary:
- Kernel does not load YAML or discover defaults.
- Kernel does not build pip command lines; the PackageManager does.
"""

from __future__ import annotations

import traceback
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from . import config as cfg_module
from .config import ANSI_COLORS, UI_CLEAR, colorize
from .console import SessionConsole
from .interfaces import ConfigModel, PackageManager
from .progress import Spinner
from .registry import (
    SessionRegistry,
    derive_binding_symbol,
    is_bindable,
    requirement_name,
)


def write_crash_log(
    error: Exception,
    raw_command: str = "",
    modules: list[str] | None = None,
) -> None:
    """Write an entry to the crash log.

    Logs unhandled exceptions or critical failures.
    Only creates the log directory when actually needed.
    Appends to crash.log (never overwrites).
    """
    try:
        log_path = cfg_module.crash_log_path(cfg_module.get_data_root())

        # Create logs directory only when we need to write
        log_path.parent.mkdir(parents=True, exist_ok=True)

        timestamp = datetime.now().isoformat()
        lines = [f"{timestamp}"]

        if raw_command:
            lines.append(f"raw={raw_command}")
        if modules:
            lines.append(f"modules={','.join(modules)}")

        lines.append(f"error={type(error).__name__}: {error}")
        lines.append("traceback:")
        lines.append(traceback.format_exc())
        lines.append("----")

        with log_path.open("a", encoding="utf-8") as f:
            f.write("\n".join(lines) + "\n")

    except Exception:
        # If we can't write the crash log, fail silently
        # (we're already in an error state)
        pass


@dataclass
class Kernel:
    """TryREPL session engine."""

    console: SessionConsole
    package_manager: PackageManager
    config: ConfigModel

    registry: SessionRegistry = field(default_factory=SessionRegistry)
    spinner_factory: Callable[[str], Any] = Spinner

    running: bool = False

    # Derived from config
    base_commands: dict[str, Any] = field(default_factory=dict)
    command_triggers: dict[str, str] = field(default_factory=dict)
    help_triggers: list[str] = field(default_factory=list)

    # Teardown result (None until shutdown() ran)
    exit_code: int | None = None

    # ---- Streaming hooks (wired by UI/CLI) ----
    output_fn: Callable[[str], None] | None = None
    error_fn: Callable[[str], None] | None = None

    def __post_init__(self) -> None:
        self.base_commands = self.config.commands.get("base", {}) or {}
        self.command_triggers = {}
        for action_name, cmd_cfg in self.base_commands.items():
            for trig in (cmd_cfg or {}).get("triggers", []) or []:
                self.command_triggers[trig] = action_name

        help_cfg = self.config.commands.get("help", {}) or {}
        self.help_triggers = list(help_cfg.get("triggers", []) or [])

    # -----------------------
    # UI helper hooks
    # -----------------------

    def list_command_completions(self) -> list[dict[str, str]]:
        """Used by prompt_toolkit UI for completion menus.

        Returns:
            [{"key": ".install", "meta": "<description>"}...]
        """
        items: list[dict[str, str]] = []
        for action_name, cmd_cfg in self.base_commands.items():
            desc = str((cmd_cfg or {}).get("description", "") or action_name)
            for trig in (cmd_cfg or {}).get("triggers", []) or []:
                items.append({"key": trig, "meta": desc})
        for trig in self.help_triggers:
            items.append({"key": trig, "meta": "show help"})
        return items

    def triggers_for(self, action: str) -> list[str]:
        return [t for t, a in self.command_triggers.items() if a == action]

    # -----------------------
    # Session
    # -----------------------

    def start(self, include_prompt: bool = True) -> str:
        """Start a TryREPL session."""
        self.running = True

        out: list[str] = []

        sys_cfg = getattr(self.config, "system", {}) or {}
        sys_welcome = (
            (sys_cfg.get("welcome") or {})
            if isinstance(sys_cfg, dict)
            else {}
        )
        if isinstance(sys_welcome, dict):
            msg = sys_welcome.get("message")
            if isinstance(msg, str) and msg.strip():
                out.append(msg.strip())

        if include_prompt:
            out.append(self.prompt())

        return "\n\n".join([s for s in out if s])

    def prompt(self) -> str:
        """Return the current prompt string with ANSI colors.

        Shows the continuation prompt while a multi-line statement
        is buffered.
        """
        sys_cfg = getattr(self.config, "system", {}) or {}
        if self.console.needs_more:
            text = sys_cfg.get("continuation_prompt", "...")
        else:
            text = sys_cfg.get("prompt", ">>>")

        prompt_color = ANSI_COLORS.get(
            sys_cfg.get("prompt_color", "reset"), ANSI_COLORS["reset"]
        )
        caret_color = ANSI_COLORS.get(
            sys_cfg.get("caret_color", "reset"), ANSI_COLORS["reset"]
        )
        reset = ANSI_COLORS["reset"]

        # Color the last character as the caret: ">>" + ">"
        head, tail = text[:-1], text[-1:]
        return f"{prompt_color}{head}{reset}{caret_color}{tail}{reset}"

    # -----------------------
    # Command handling
    # -----------------------

    def handle_command(self, command: str) -> str:
        """Handle a single input line.

        Dot-commands are dispatched here; anything else is Python
        source pushed to the console.
        """
        stripped = command.strip()

        if command == "\x0c":
            return UI_CLEAR

        parts = stripped.split(maxsplit=1)
        cmd = parts[0] if parts else ""
        arg = parts[1].strip() if len(parts) > 1 else ""

        if cmd and cmd in self.help_triggers and not arg:
            return self._generate_help()

        action = self.command_triggers.get(cmd) if cmd else None

        if action == "clear" and not arg:
            return UI_CLEAR

        if action == "install":
            return self._handle_install(arg)

        if action == "repo":
            return self._handle_repo(arg)

        if action == "modules":
            return self._handle_modules()

        if action == "exit":
            self.running = False
            exit_cfg = self.base_commands.get("exit", {}) or {}
            name = (getattr(self.config, "system", {}) or {}).get(
                "name", "TryREPL"
            )
            if "message" in exit_cfg:
                return f"Exiting {name}. {exit_cfg['message']}"
            return f"Exiting {name}."

        # Plain Python source
        self.console.push(command)
        return ""

    def _write(self, s: str) -> None:
        if self.output_fn:
            self.output_fn(s)

    def _write_err(self, s: str) -> None:
        if self.error_fn:
            self.error_fn(s)
        elif self.output_fn:
            self.output_fn(s)

    def _usage(self, action: str) -> str:
        cmd_cfg = self.base_commands.get(action, {}) or {}
        usage = cmd_cfg.get("usage")
        if not usage:
            trig = (self.triggers_for(action) or [action])[0]
            usage = f"{trig} <package>"
        return f"Usage: {usage}"

    # -----------------------
    # install / repo / modules
    # -----------------------

    def _handle_install(self, name: str) -> str:
        if not name:
            return self._usage("install")

        # Version specifiers and extras go to pip as typed; the session
        # tracks and binds the bare distribution name.
        package = requirement_name(name)
        symbol = derive_binding_symbol(package)

        if not is_bindable(symbol):
            self.console.clear_buffer()
            return colorize(
                "ERR",
                f"Cannot bind {package} to a Python name "
                f"(`{symbol}` is not an identifier)",
            )

        if self.registry.is_installed(package):
            self.console.clear_buffer()
            return (
                f"{package} has been already loaded. "
                f"You can access it as {symbol}"
            )

        spinner = self.spinner_factory(f"Installing {name}")
        spinner.start()

        result = self.package_manager.install(
            name, on_stdout=self._write, on_stderr=spinner.fail
        )

        if result.exit_code != 0:
            spinner.stop()
            self.console.clear_buffer()
            return colorize(
                "ERR",
                f"Error installing module, exit code: {result.exit_code}",
            )

        spinner.succeed(f"{package} has been installed successfully!")
        self.registry.record_installed(package)

        try:
            module = self.package_manager.load(package)
        except Exception as e:
            # Stays recorded so teardown still removes it.
            self.console.clear_buffer()
            return colorize(
                "ERR",
                f"{package} was installed but could not be imported: "
                f"{type(e).__name__}: {e}",
            )

        self.console.bind(symbol, module)
        self.console.clear_buffer()
        return f"Module has been loaded as `{symbol}`"

    def _handle_repo(self, name: str) -> str:
        if not name:
            return self._usage("repo")

        result = self.package_manager.repo(
            name, on_stdout=self._write, on_stderr=self._write_err
        )

        self.console.clear_buffer()
        if result.exit_code != 0:
            return colorize(
                "ERR", f"Error opening repo, exit code: {result.exit_code}"
            )
        return ""

    def _handle_modules(self) -> str:
        reset = ANSI_COLORS["reset"]
        dim = ANSI_COLORS["dim"]
        green = ANSI_COLORS["green"]
        cyan = ANSI_COLORS["cyan"]
        pink = ANSI_COLORS["pink"]

        dash = f"{green}-{reset}"
        arrow = f"{cyan}-{reset}{pink}>{reset}"

        lines = [f"{colorize('INFO')} session modules:"]
        if len(self.registry):
            for name in self.registry:
                lines.append(
                    f"  {dash} {name} {arrow} "
                    f"{dim}{derive_binding_symbol(name)}{reset}"
                )
        else:
            lines.append("  (none)")
        lines.append(
            f"  {dim}target: {self.package_manager.target}{reset}"
        )
        return "\n".join(lines)

    # -----------------------
    # Teardown
    # -----------------------

    def shutdown(self) -> int:
        """Uninstall every module this session installed.

        Returns the uninstall exit code; the caller exits the process
        with it.
        """
        if self.exit_code is not None:
            return self.exit_code

        self.running = False
        spinner = self.spinner_factory("Cleaning up before exit")
        spinner.start()

        names = self.registry.drain_all()
        try:
            result = self.package_manager.uninstall(names)
        except Exception as e:
            spinner.stop()
            write_crash_log(e, raw_command="<teardown>", modules=names)
            self._write_err(
                colorize("ERR", f"Error deleting modules: {e}") + "\n"
            )
            self.exit_code = 1
            return self.exit_code

        spinner.stop()
        if result.exit_code != 0:
            self._write_err(
                colorize(
                    "ERR",
                    f"Error deleting modules, exit code: {result.exit_code}",
                ) + "\n"
            )

        self.exit_code = result.exit_code
        return self.exit_code

    # -----------------------
    # Help
    # -----------------------

    def _generate_help(self) -> str:
        lines: list[str] = []

        lines.append("Commands:")
        for cmd_key, cmd_cfg in self.base_commands.items():
            cmd_cfg = cmd_cfg or {}
            desc = cmd_cfg.get("description", "")
            usage = cmd_cfg.get("usage")
            triggers = cmd_cfg.get("triggers", []) or []
            label = usage or (", ".join(triggers) if triggers else cmd_key)
            extra = [t for t in triggers if usage and t not in usage]
            if extra:
                label = f"{label} ({', '.join(extra)})"
            lines.append(f"  {label:<24} {desc}")

        lines.append("")
        lines.append("Help:")
        lines.append(f"  {', '.join(self.help_triggers) or '?'}")
        lines.append("")
        lines.append("Anything else is evaluated as Python.")

        return "\n".join(lines)
