# TryREPL™ — Package-Trying Interactive Python Shell
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
Subprocess-backed executor implementation for TryREPL.

run_stream() spawns one process, forwards stdout/stderr lines to
callbacks as they arrive, and returns a single StreamResult once the
process exits. The kernel blocks on that result, so at most one
process is pending at a time.
"""

from __future__ import annotations

import os
import subprocess
import threading
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class StreamResult:
    exit_code: int
    stdout: str
    stderr: str
    started_at: str
    duration_ms: int
    stdout_bytes: int
    stderr_bytes: int
    truncated: bool

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


class _CappedBuffer:
    """Keeps at most max_bytes of text; counts everything it was given."""

    def __init__(self, max_bytes: int):
        self.max_bytes = max(0, int(max_bytes))
        self.parts: list[str] = []
        self.seen_bytes = 0
        self.truncated = False

    def add(self, text: str) -> None:
        raw = text.encode("utf-8", errors="replace")
        room = self.max_bytes - self.seen_bytes
        self.seen_bytes += len(raw)
        if room <= 0:
            self.truncated = True
        elif len(raw) > room:
            self.parts.append(raw[:room].decode("utf-8", errors="ignore"))
            self.truncated = True
        else:
            self.parts.append(text)

    def text(self) -> str:
        return "".join(self.parts)


class SubprocessExecutor:
    """Subprocess implementation of Executor protocol."""

    def __init__(
        self, force_color: bool = True, timeout: int = 600,
        max_capture_bytes: int = 256_000
    ):
        """Initialize executor with configuration.

        Args:
            force_color: If True, set color-forcing env variables
            timeout: Process timeout in seconds (default: 600)
            max_capture_bytes: Max bytes to keep in captured
                stdout/stderr buffers
        """
        self.force_color = force_color
        self.timeout = timeout
        self.max_capture_bytes = max_capture_bytes

    def _build_env(self, extra: dict[str, str] | None = None) -> dict:
        env = os.environ.copy()
        if self.force_color:
            env["PY_COLORS"] = "1"
            env["FORCE_COLOR"] = "1"
            env["CLICOLOR_FORCE"] = "1"
        if extra:
            env.update(extra)
        return env

    @staticmethod
    def _pump(
        pipe,
        sink: _CappedBuffer,
        callback: Callable[[str], None] | None,
    ) -> None:
        try:
            for line in iter(pipe.readline, ""):
                if callback:
                    callback(line)
                sink.add(line)
        finally:
            pipe.close()

    @staticmethod
    def _wait(proc: subprocess.Popen, deadline: float) -> bool:
        """Block until proc exits; False if the deadline passed first."""
        while proc.poll() is None:
            if time.monotonic() >= deadline:
                return False
            time.sleep(0.03)
        return True

    @staticmethod
    def _stop(proc: subprocess.Popen) -> None:
        proc.terminate()
        try:
            proc.wait(timeout=1.0)
        except subprocess.TimeoutExpired:
            proc.kill()
            proc.wait()

    def run_stream(
        self,
        argv: Sequence[str],
        on_stdout: Callable[[str], None] | None = None,
        on_stderr: Callable[[str], None] | None = None,
        timeout: int | None = None,
        cwd: str | None = None,
        env: dict[str, str] | None = None,
    ) -> StreamResult:
        """Spawn argv and forward its output line by line as it arrives.

        Args:
            argv: program and arguments (no shell involved)
            on_stdout: called with each stdout line (newline included)
            on_stderr: called with each stderr line
            timeout: overrides self.timeout
            cwd: working directory for the process
            env: extra environment variables layered over os.environ

        Returns:
            StreamResult; captured text is capped at max_capture_bytes.
            Spawn failures and timeouts come back as exit code 1.
        """
        started_at = datetime.now().isoformat()
        t0 = time.monotonic()
        limit = timeout if timeout is not None else self.timeout

        out = _CappedBuffer(self.max_capture_bytes)
        err = _CappedBuffer(self.max_capture_bytes)

        def _elapsed_ms() -> int:
            return int((time.monotonic() - t0) * 1000)

        try:
            proc = subprocess.Popen(
                list(argv),
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                bufsize=1,
                env=self._build_env(env),
                cwd=cwd,
            )
        except Exception as e:
            msg = f"Error executing command: {e}"
            if on_stderr:
                on_stderr(msg + "\n")
            return StreamResult(
                exit_code=1,
                stdout="",
                stderr=msg,
                started_at=started_at,
                duration_ms=_elapsed_ms(),
                stdout_bytes=0,
                stderr_bytes=0,
                truncated=False,
            )

        readers = [
            threading.Thread(
                target=self._pump, args=(proc.stdout, out, on_stdout), daemon=True
            ),
            threading.Thread(
                target=self._pump, args=(proc.stderr, err, on_stderr), daemon=True
            ),
        ]
        for t in readers:
            t.start()

        finished = self._wait(proc, t0 + limit)
        if not finished:
            self._stop(proc)

        # Output already written by the process is still delivered.
        for t in readers:
            t.join(timeout=2.0)

        if finished:
            exit_code = proc.returncode
        else:
            msg = f"Command timed out after {limit} seconds\n"
            if on_stderr:
                on_stderr(msg)
            err.add(msg)
            exit_code = 1

        # 127 is the shell's "not found"; report it like any other failure
        if exit_code == 127:
            exit_code = 1

        return StreamResult(
            exit_code=exit_code,
            stdout=out.text(),
            stderr=err.text(),
            started_at=started_at,
            duration_ms=_elapsed_ms(),
            stdout_bytes=out.seen_bytes,
            stderr_bytes=err.seen_bytes,
            truncated=out.truncated or err.truncated,
        )
