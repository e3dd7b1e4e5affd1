# TryREPL™ — Package-Trying Interactive Python Shell
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
pip-backed package manager for TryREPL.

All installs go to one tool-local directory (pip --target), so session
packages never touch the interpreter's own site-packages. Uninstalls run
pip with that directory on PYTHONPATH so pip can find the distributions.

Inside a virtualenv pip refuses to touch files outside sys.prefix and
still exits 0, so after pip returns the target is scanned again and any
session distribution still there is removed through its RECORD. The
target belongs to this tool; nothing else installs into it.
"""

from __future__ import annotations

import importlib
import importlib.metadata
import re
import shutil
import sys
from collections.abc import Callable, Sequence
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from types import ModuleType

from .executor import StreamResult
from .interfaces import Executor
from .registry import requirement_name

DEFAULT_PIP_ARGS = ["--quiet", "--disable-pip-version-check"]
DEFAULT_UNINSTALL_ARGS = ["--yes", "--quiet", "--disable-pip-version-check"]


def normalize_dist_name(name: str) -> str:
    """PEP 503 normalization: 'Foo_Bar.baz' -> 'foo-bar-baz'."""
    return re.sub(r"[-_.]+", "-", name).lower()


def top_level_names(
    dist: importlib.metadata.Distribution,
) -> list[str]:
    """Importable top-level names provided by a distribution.

    Prefers top_level.txt; falls back to the first path component of
    the installed files listed in RECORD.
    """
    text = dist.read_text("top_level.txt")
    if text:
        names = [ln.strip() for ln in text.splitlines() if ln.strip()]
        if names:
            return names

    found: list[str] = []
    for f in dist.files or []:
        parts = f.parts
        if not parts:
            continue
        head = parts[0]
        if head.endswith((".dist-info", ".egg-info", ".data")):
            continue
        if head == "__pycache__" or head.endswith(".pth"):
            continue
        if len(parts) == 1:
            if not head.endswith(".py"):
                continue
            head = head[:-3]
        if head not in found:
            found.append(head)
    return found


def find_distributions(
    names: Sequence[str], target: Path
) -> list[importlib.metadata.Distribution]:
    """Distributions in target whose name matches one of names."""
    importlib.invalidate_caches()
    wanted = {normalize_dist_name(requirement_name(n)) for n in names}
    return [
        dist
        for dist in importlib.metadata.distributions(path=[str(target)])
        if normalize_dist_name(dist.metadata["Name"] or "") in wanted
    ]


def remove_distribution(
    dist: importlib.metadata.Distribution, target: Path
) -> bool:
    """Delete the files dist's RECORD lists under target.

    Directories left empty (or holding only bytecode caches) are removed
    too. Returns False when the distribution has no RECORD.
    """
    files = dist.files
    if not files:
        return False

    root = Path(target).resolve()
    touched: set[Path] = set()
    meta_dirs: set[Path] = set()
    for f in files:
        if f.parts and f.parts[0].endswith(".dist-info"):
            meta_dirs.add(root / f.parts[0])
        path = Path(dist.locate_file(f)).resolve()
        if root not in path.parents:
            # console scripts land in ../bin; leave anything outside alone
            continue
        if path.is_file() or path.is_symlink():
            path.unlink()
        touched.add(path.parent)

    for folder in sorted(touched, key=lambda p: len(p.parts), reverse=True):
        while folder != root and folder.is_dir():
            cache = folder / "__pycache__"
            if cache.is_dir() and all(
                p.suffix == ".pyc" for p in cache.iterdir()
            ):
                shutil.rmtree(cache)
            if any(folder.iterdir()):
                break
            folder.rmdir()
            folder = folder.parent

    # pip --target may leave files in the metadata dir it never recorded
    for meta in meta_dirs:
        if meta.is_dir():
            shutil.rmtree(meta)
    return True


def resolve_import_name(name: str, target: Path) -> str:
    """Map a distribution name to the module to import from target."""
    wanted = normalize_dist_name(requirement_name(name))
    for dist in importlib.metadata.distributions(path=[str(target)]):
        dist_name = dist.metadata["Name"] or ""
        if normalize_dist_name(dist_name) != wanted:
            continue
        names = top_level_names(dist)
        if not names:
            break
        # "python-dateutil" -> ["dateutil"]; prefer the closest match
        underscored = wanted.replace("-", "_")
        for candidate in names:
            if candidate.lower() == underscored:
                return candidate
        public = [n for n in names if not n.startswith("_")]
        return (public or names)[0]
    return requirement_name(name).replace("-", "_")


class PipManager:
    """PackageManager implementation that shells out to `python -m pip`."""

    def __init__(
        self,
        executor: Executor,
        target: Path,
        python: str | None = None,
        pip_args: Sequence[str] | None = None,
        uninstall_args: Sequence[str] | None = None,
        lookup_args: Sequence[str] | None = None,
    ):
        self.executor = executor
        self._target = Path(target)
        self.python = python or sys.executable
        self.pip_args = list(
            pip_args if pip_args is not None else DEFAULT_PIP_ARGS
        )
        self.uninstall_args = list(
            uninstall_args if uninstall_args is not None
            else DEFAULT_UNINSTALL_ARGS
        )
        self.lookup_args = list(lookup_args or [])

    @property
    def target(self) -> Path:
        return self._target

    # -----------------------
    # argv builders
    # -----------------------

    def install_argv(self, name: str) -> list[str]:
        return [
            self.python, "-m", "pip", "install",
            *self.pip_args,
            "--target", str(self._target),
            name,
        ]

    def uninstall_argv(self, names: Sequence[str]) -> list[str]:
        return [
            self.python, "-m", "pip", "uninstall",
            *self.uninstall_args,
            *names,
        ]

    def repo_argv(self, name: str) -> list[str]:
        return [self.python, "-m", "tryrepl.lookup", *self.lookup_args, name]

    # -----------------------
    # operations
    # -----------------------

    def install(
        self,
        name: str,
        on_stdout: Callable[[str], None] | None = None,
        on_stderr: Callable[[str], None] | None = None,
    ) -> StreamResult:
        self._target.mkdir(parents=True, exist_ok=True)
        return self.executor.run_stream(
            self.install_argv(name), on_stdout=on_stdout, on_stderr=on_stderr
        )

    def uninstall(self, names: Sequence[str]) -> StreamResult:
        """Uninstall every name in one pip call.

        pip rejects an uninstall with no requirements, so an empty
        request completes successfully without spawning anything.
        Whatever pip leaves behind in the target is removed afterwards;
        the result is only successful once none of names is left there.
        """
        if not names:
            return StreamResult(
                exit_code=0,
                stdout="",
                stderr="",
                started_at=datetime.now().isoformat(),
                duration_ms=0,
                stdout_bytes=0,
                stderr_bytes=0,
                truncated=False,
            )
        pkg_names = [requirement_name(n) for n in names]
        result = self.executor.run_stream(
            self.uninstall_argv(pkg_names),
            env={"PYTHONPATH": str(self._target)},
        )

        for dist in find_distributions(pkg_names, self._target):
            remove_distribution(dist, self._target)

        left = [
            dist.metadata["Name"]
            for dist in find_distributions(pkg_names, self._target)
        ]
        if left and result.exit_code == 0:
            msg = f"Still installed in {self._target}: {', '.join(left)}\n"
            return replace(
                result,
                exit_code=1,
                stderr=result.stderr + msg,
                stderr_bytes=result.stderr_bytes + len(msg.encode("utf-8")),
            )
        return result

    def repo(
        self,
        name: str,
        on_stdout: Callable[[str], None] | None = None,
        on_stderr: Callable[[str], None] | None = None,
    ) -> StreamResult:
        return self.executor.run_stream(
            self.repo_argv(name), on_stdout=on_stdout, on_stderr=on_stderr
        )

    def load(self, name: str) -> ModuleType:
        """Import a package freshly installed into the target directory."""
        target = str(self._target)
        if target not in sys.path:
            sys.path.insert(0, target)
        importlib.invalidate_caches()
        module_name = resolve_import_name(name, self._target)
        return importlib.import_module(module_name)
