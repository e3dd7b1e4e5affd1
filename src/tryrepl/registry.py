# TryREPL™ — Package-Trying Interactive Python Shell
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
Session module registry.

Tracks which packages the current session installed, in install order,
and the symbol each one is bound to in the evaluation namespace.
The list is drained exactly once, at session teardown.
"""

from __future__ import annotations

import keyword
import re
from collections.abc import Iterator

_HYPHEN_RE = re.compile(r"-(\w)")
_REQUIREMENT_NAME_RE = re.compile(r"\s*([A-Za-z0-9][A-Za-z0-9._-]*)")


def requirement_name(spec: str) -> str:
    """Strip extras / version specifiers: 'rich[jupyter]>=13' -> 'rich'."""
    match = _REQUIREMENT_NAME_RE.match(spec)
    return match.group(1) if match else spec.strip()


def derive_binding_symbol(name: str) -> str:
    """Turn a package name into the symbol it is bound to.

    Every hyphen followed by a word character is replaced by that
    character upper-cased:

        derive_binding_symbol("left-pad") -> "leftPad"
        derive_binding_symbol("lodash") -> "lodash"
    """
    return _HYPHEN_RE.sub(lambda m: m.group(1).upper(), name)


def is_bindable(symbol: str) -> bool:
    """True when symbol can be assigned to and read back in Python code."""
    return symbol.isidentifier() and not keyword.iskeyword(symbol)


class RegistryDrainedError(RuntimeError):
    """Raised when recording into a registry that was already drained."""


class SessionRegistry:
    """Ordered set of package names installed during one session."""

    def __init__(self) -> None:
        self._installed: list[str] = []
        self._drained = False

    def __contains__(self, name: object) -> bool:
        return name in self._installed

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._installed))

    def __len__(self) -> int:
        return len(self._installed)

    @property
    def drained(self) -> bool:
        return self._drained

    def is_installed(self, name: str) -> bool:
        return name in self._installed

    def binding_for(self, name: str) -> str | None:
        """Binding symbol for an installed name, or None."""
        if name not in self._installed:
            return None
        return derive_binding_symbol(name)

    def record_installed(self, name: str) -> None:
        """Append name after a confirmed install.

        Callers check is_installed() first; a repeated name is ignored
        so the list never holds duplicates.
        """
        if self._drained:
            raise RegistryDrainedError(
                f"cannot record {name!r}: session registry already drained"
            )
        if name in self._installed:
            return
        self._installed.append(name)

    def drain_all(self) -> list[str]:
        """Return every installed name, in install order, for teardown."""
        self._drained = True
        return list(self._installed)
