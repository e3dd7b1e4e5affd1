# TryREPL™ — Package-Trying Interactive Python Shell
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
TryREPL core package.

An improved Python REPL: `.install <pkg>` pulls a PyPI package into the
running session, `.repo <pkg>` opens its source page, and every package
installed during the session is removed again on exit.
"""
from .kernel import Kernel as Kernel  # noqa: F401 (re-export)
