# TryREPL™ — Package-Trying Interactive Python Shell
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
Repository lookup action.

Run as `python -m tryrepl.lookup [--no-browser] [--timeout N] <package>`:
reads the package's PyPI JSON metadata, picks its source repository URL, prints
it and opens it in a browser.

Exit codes:
    0  URL found (and opened, unless --no-browser)
    1  package not found on PyPI
    2  network / HTTP failure or bad usage
"""

from __future__ import annotations

import sys
import webbrowser
from typing import Any

import requests

PYPI_JSON_URL = "https://pypi.org/pypi/{name}/json"
PYPI_PROJECT_URL = "https://pypi.org/project/{name}/"

# project_urls keys checked in order (case-insensitive)
REPO_URL_KEYS = [
    "source",
    "source code",
    "repository",
    "code",
    "github",
    "homepage",
]

EXIT_OK = 0
EXIT_NOT_FOUND = 1
EXIT_FAILURE = 2


def fetch_metadata(name: str, timeout: float = 10) -> dict[str, Any] | None:
    """Fetch PyPI JSON metadata; None when the package does not exist.

    Raises:
        requests.RequestException: on network errors or non-404 failures
    """
    url = PYPI_JSON_URL.format(name=name)
    response = requests.get(url, timeout=timeout)
    if response.status_code == 404:
        return None
    response.raise_for_status()
    return response.json()


def pick_repo_url(name: str, metadata: dict[str, Any]) -> str:
    """Choose the best repository URL from PyPI metadata."""
    info = metadata.get("info") or {}

    project_urls = info.get("project_urls") or {}
    by_key = {
        str(k).strip().lower(): v
        for k, v in project_urls.items()
        if isinstance(v, str) and v.strip()
    }
    for key in REPO_URL_KEYS:
        if key in by_key:
            return by_key[key].strip()

    home_page = info.get("home_page")
    if isinstance(home_page, str) and home_page.strip():
        return home_page.strip()

    return PYPI_PROJECT_URL.format(name=name)


def main(argv: list[str] | None = None) -> int:
    args = list(sys.argv[1:] if argv is None else argv)

    open_browser = True
    if "--no-browser" in args:
        args.remove("--no-browser")
        open_browser = False

    timeout: float = 10
    if "--timeout" in args:
        i = args.index("--timeout")
        try:
            timeout = float(args[i + 1])
        except (IndexError, ValueError):
            sys.stderr.write("--timeout expects a number of seconds\n")
            return EXIT_FAILURE
        del args[i:i + 2]

    if len(args) != 1 or not args[0].strip():
        sys.stderr.write("Usage: python -m tryrepl.lookup [--no-browser] [--timeout N] <package>\n")
        return EXIT_FAILURE

    name = args[0].strip()

    try:
        metadata = fetch_metadata(name, timeout=timeout)
    except requests.RequestException as e:
        sys.stderr.write(f"Error querying PyPI for {name}: {e}\n")
        return EXIT_FAILURE

    if metadata is None:
        sys.stderr.write(f"Package not found on PyPI: {name}\n")
        return EXIT_NOT_FOUND

    url = pick_repo_url(name, metadata)
    sys.stdout.write(f"{url}\n")
    sys.stdout.flush()

    if open_browser:
        webbrowser.open(url)

    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
