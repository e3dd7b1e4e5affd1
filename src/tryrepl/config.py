# TryREPL™ — Package-Trying Interactive Python Shell
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
Filesystem discovery and configuration loading for TryREPL.

Handles:
- Data root resolution (TRYREPL_DATA_HOME, ~/.local/share)
- Session modules directory (tool-local pip --target)
- Packaged YAML defaults loading (tryrepl.defaults/*.yaml)
- ANSI coloring constants + UI_CLEAR semantic sentinel
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml

try:
    # Py3.9+
    from importlib import resources as importlib_resources
except Exception:  # pragma: no cover
    import importlib_resources  # type: ignore


# -----------------------
# UI + branding constants
# -----------------------

ANSI_COLORS: dict[str, str] = {
    "cyan": "\033[38;5;69;1m",
    "pink": "\033[38;5;169;1m",
    "magenta": "\033[38;5;126;1m",
    "yellow": "\033[38;5;226;1m",
    "reset": "\033[0m",
    "dim": "\033[2m",
    "green": "\033[32m",
    "red": "\033[31m",
}

TAG_COLORS: dict[str, str] = {
    "RUN": "green",
    "ERR": "red",
    "OK": "green",
    "INFO": "cyan",
}

# Semantic UI intent for clear screen operations
UI_CLEAR = "__UI_CLEAR__"

# Directory name (next to this package) that receives session installs
MODULES_DIRNAME = "_session_modules"


# -----------------------
# Config model wrapper
# -----------------------


class YAMLConfig:
    """Simple config wrapper that implements ConfigModel protocol."""

    def __init__(self, config_dict: dict[str, Any]):
        self._config = config_dict

    @property
    def commands(self) -> dict[str, Any]:
        return self._config.get("commands", {})

    @property
    def system(self) -> dict[str, Any]:
        return self._config.get("system", {})

    @property
    def install(self) -> dict[str, Any]:
        return self._config.get("install", {})

    @property
    def execution(self) -> dict[str, Any]:
        return self._config.get("execution", {})

    @property
    def display(self) -> dict[str, Any]:
        return self._config.get("display", {})

    @property
    def ui(self) -> dict[str, Any]:
        ui_cfg = self._config.get("ui", {})
        return ui_cfg if isinstance(ui_cfg, dict) else {}

    def get(self, key: str, default: Any = None) -> Any:
        return self._config.get(key, default)

    def get_path(self, path: str, default: Any = None) -> Any:
        """
        Nested lookup using dot-separated path.
        Example: get_path("lookup.timeout_seconds", 10) -> 10
        """
        if not path:
            return default

        cur: Any = self._config
        for part in path.split("."):
            if not isinstance(cur, dict):
                return default
            if part not in cur:
                return default
            cur = cur[part]
        return cur


# -----------------------
# Data root + modules dir
# -----------------------


def get_data_root() -> Path:
    """Get the data root directory for TryREPL.

    Resolution order:
    1. TRYREPL_DATA_HOME environment variable (if set)
    2. ~/.local/share (default, XDG_DATA_HOME is ignored)
    """
    data_home = os.getenv("TRYREPL_DATA_HOME")
    if data_home:
        root = Path(data_home)
    else:
        root = Path.home() / ".local" / "share"

    root.mkdir(parents=True, exist_ok=True)
    return root


def crash_log_path(data_root: Path) -> Path:
    """<data_root>/tryrepl/logs/crash.log"""
    return data_root / "tryrepl" / "logs" / "crash.log"


def package_dir() -> Path:
    """Directory holding the installed tryrepl package."""
    return Path(__file__).resolve().parent


def modules_dir(cfg: YAMLConfig | None = None) -> Path:
    """Resolve the directory session installs go to.

    Resolution order:
    1. TRYREPL_MODULES_DIR environment variable (if set)
    2. install.target from config (relative paths anchor at the package dir)
    3. <package dir>/_session_modules
    """
    env_dir = os.getenv("TRYREPL_MODULES_DIR")
    if env_dir:
        return Path(env_dir).expanduser().resolve()

    target = cfg.get_path("install.target") if cfg is not None else None
    if isinstance(target, str) and target.strip():
        path = Path(target).expanduser()
        if not path.is_absolute():
            path = package_dir() / path
        return path.resolve()

    return package_dir() / MODULES_DIRNAME


# -----------------------
# Packaged defaults loading
# -----------------------


def _defaults_dir() -> Path:
    """Return the installed path to packaged defaults directory."""
    return Path(
        importlib_resources.files("tryrepl.defaults")
    )  # type: ignore[arg-type]


def load_defaults_yaml(filename: str) -> dict[str, Any]:
    """
    Load a YAML file from tryrepl/defaults/.
    """
    defaults_dir = _defaults_dir()
    path = defaults_dir / filename
    if not path.exists():
        raise FileNotFoundError(
            f"Missing defaults YAML: {filename} "
            f"(looked in {defaults_dir})"
        )

    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ValueError(
            f"Defaults YAML {filename} must load to a mapping/dict."
        )
    return data


def load_system_config() -> YAMLConfig:
    """
    Load system.yaml from packaged defaults and return a YAMLConfig wrapper.
    """
    return YAMLConfig(load_defaults_yaml("system.yaml"))


def colorize(tag: str, text: str = "") -> str:
    """Render a bracketed, colored tag followed by text.

    colorize("ERR", "boom") -> "\\033[31m[ERR]\\033[0m boom"
    """
    color = ANSI_COLORS.get(TAG_COLORS.get(tag, "reset"), ANSI_COLORS["reset"])
    reset = ANSI_COLORS["reset"]
    if text:
        return f"{color}[{tag}]{reset} {text}"
    return f"{color}[{tag}]{reset}"
