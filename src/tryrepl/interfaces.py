# TryREPL™ — Package-Trying Interactive Python Shell
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
Protocol definitions for dependency injection.

These interfaces enable clean separation between kernel logic,
package management, process execution and result display.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .executor import StreamResult  # pragma: no cover


class Executor(Protocol):
    """Protocol for process execution."""

    def run_stream(
        self,
        argv: Sequence[str],
        on_stdout: Callable[[str], None] | None = None,
        on_stderr: Callable[[str], None] | None = None,
        timeout: int | None = None,
        cwd: str | None = None,
        env: dict[str, str] | None = None,
    ) -> StreamResult:
        """Spawn argv, stream its output, and return once it exits."""
        ...


class PackageManager(Protocol):
    """Protocol for the package manager collaborator."""

    @property
    def target(self) -> Path:
        """Directory that session installs are scoped to."""
        ...

    def install(
        self,
        name: str,
        on_stdout: Callable[[str], None] | None = None,
        on_stderr: Callable[[str], None] | None = None,
    ) -> StreamResult:
        """Install a package into the target directory."""
        ...

    def uninstall(self, names: Sequence[str]) -> StreamResult:
        """Uninstall all named packages from the target in one call."""
        ...

    def repo(
        self,
        name: str,
        on_stdout: Callable[[str], None] | None = None,
        on_stderr: Callable[[str], None] | None = None,
    ) -> StreamResult:
        """Open the package's source repository page."""
        ...

    def load(self, name: str) -> Any:
        """Import an installed package and return the module object."""
        ...


class ConfigModel(Protocol):
    """Protocol for configuration access."""

    @property
    def commands(self) -> dict[str, Any]:
        """Command configuration."""
        ...

    @property
    def system(self) -> dict[str, Any]:
        """System configuration."""
        ...

    def get_path(self, path: str, default: Any = None) -> Any:
        """Nested lookup using a dot-separated path."""
        ...


@runtime_checkable
class Presentable(Protocol):
    """A value that supplies its own display representation."""

    def present(self) -> Any:
        """Return the value to render in place of self."""
        ...
