"""
Shared fakes for kernel / CLI / UI tests.

The fakes stand in for the package manager (no pip, no network) and
the spinner (no terminal animation).
"""

from __future__ import annotations

import types
from collections.abc import Callable, Sequence
from pathlib import Path

import pytest

from tryrepl.console import SessionConsole
from tryrepl.executor import StreamResult
from tryrepl.kernel import Kernel


def make_result(exit_code: int = 0, stdout: str = "", stderr: str = "") -> StreamResult:
    return StreamResult(
        exit_code=exit_code,
        stdout=stdout,
        stderr=stderr,
        started_at="2025-12-14T10:00:00",
        duration_ms=5,
        stdout_bytes=len(stdout),
        stderr_bytes=len(stderr),
        truncated=False,
    )


class FakeConfig:
    def __init__(self):
        self.commands = {
            "help": {"triggers": [".help", "?"]},
            "base": {
                "install": {
                    "triggers": [".install"],
                    "usage": ".install <package>",
                    "description": "install a package",
                },
                "repo": {
                    "triggers": [".repo"],
                    "usage": ".repo <package>",
                    "description": "open repository page",
                },
                "modules": {"triggers": [".modules"], "description": "list modules"},
                "clear": {"triggers": [".clear", "cls"], "description": "clear screen"},
                "exit": {"triggers": [".exit"], "description": "quit", "message": "Bye!"},
            },
        }
        self.system = {
            "name": "TryREPL",
            "welcome": {"message": "Welcome to TryREPL"},
            "prompt": ">>>",
            "continuation_prompt": "...",
        }

    def get_path(self, path: str, default=None):
        cur = {"commands": self.commands, "system": self.system}
        for part in path.split("."):
            if not isinstance(cur, dict) or part not in cur:
                return default
            cur = cur[part]
        return cur


class FakePackageManager:
    """Records every request; outcome is configured per operation."""

    def __init__(self):
        self.target = Path("/tmp/tryrepl-fake-target")
        self.install_code = 0
        self.repo_code = 0
        self.uninstall_code = 0
        self.install_stdout: list[str] = []
        self.install_stderr: list[str] = []
        self.repo_stdout: list[str] = []
        self.repo_stderr: list[str] = []
        self.load_error: Exception | None = None

        self.installs: list[str] = []
        self.repos: list[str] = []
        self.uninstalls: list[list[str]] = []
        self.loads: list[str] = []

    def install(self, name, on_stdout=None, on_stderr=None) -> StreamResult:
        self.installs.append(name)
        for chunk in self.install_stdout:
            if on_stdout:
                on_stdout(chunk)
        for chunk in self.install_stderr:
            if on_stderr:
                on_stderr(chunk)
        return make_result(self.install_code, "".join(self.install_stdout))

    def uninstall(self, names: Sequence[str]) -> StreamResult:
        self.uninstalls.append(list(names))
        return make_result(self.uninstall_code)

    def repo(self, name, on_stdout=None, on_stderr=None) -> StreamResult:
        self.repos.append(name)
        for chunk in self.repo_stdout:
            if on_stdout:
                on_stdout(chunk)
        for chunk in self.repo_stderr:
            if on_stderr:
                on_stderr(chunk)
        return make_result(self.repo_code)

    def load(self, name: str):
        self.loads.append(name)
        if self.load_error is not None:
            raise self.load_error
        module = types.ModuleType(name.replace("-", "_"))
        module.__dict__["origin"] = name
        return module


class FakeSpinner:
    def __init__(self, text: str, log: list[tuple[str, str]]):
        self.text = text
        self.log = log

    def start(self):
        self.log.append(("start", self.text))
        return self

    def stop(self):
        self.log.append(("stop", self.text))

    def succeed(self, text=None):
        self.log.append(("succeed", text or self.text))

    def fail(self, text=None):
        self.log.append(("fail", text or self.text))


@pytest.fixture
def spinner_log() -> list[tuple[str, str]]:
    return []


@pytest.fixture
def spinner_factory(spinner_log) -> Callable[[str], FakeSpinner]:
    return lambda text: FakeSpinner(text, spinner_log)


@pytest.fixture
def fake_config() -> FakeConfig:
    return FakeConfig()


@pytest.fixture
def fake_pm() -> FakePackageManager:
    return FakePackageManager()


@pytest.fixture
def output() -> list[str]:
    return []


@pytest.fixture
def kernel(fake_pm, fake_config, spinner_factory, output) -> Kernel:
    console = SessionConsole(output_fn=output.append, colors=False)
    k = Kernel(
        console=console,
        package_manager=fake_pm,
        config=fake_config,
        spinner_factory=spinner_factory,
    )
    k.output_fn = output.append
    k.start()
    return k
