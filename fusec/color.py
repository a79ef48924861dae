"""ANSI colouring of terminal output."""

from __future__ import annotations

import os
import stat
from typing import Any

from .diagnostics import Severity

COLOR_RED = "\033[31m"
COLOR_YELLOW = "\033[33m"
COLOR_GREEN = "\033[32m"
COLOR_CYAN = "\033[36m"
COLOR_DIM = "\033[2m"
COLOR_BOLD = "\033[1m"
COLOR_RESET = "\033[0m"

COLOR_BOLD_RED = "\033[1;31m"
COLOR_BOLD_YELLOW = "\033[1;33m"
COLOR_BOLD_GREEN = "\033[1;32m"
COLOR_BOLD_CYAN = "\033[1;36m"


def _is_terminal(stream: Any) -> bool:
    if stream is None:
        return False
    try:
        fd = stream.fileno()
    except (AttributeError, OSError, ValueError):
        return False
    if os.name == "nt":
        return os.isatty(fd)
    try:
        mode = os.fstat(fd).st_mode
    except OSError:
        return False
    return stat.S_ISCHR(mode)


def use_color(stream: Any) -> bool:
    """Report whether coloured output should be written to ``stream``.

    Honours NO_COLOR (any value disables) and FORCE_COLOR (non-empty and
    not "0" enables), otherwise colours only terminals.
    """
    if "NO_COLOR" in os.environ:
        return False
    force = os.environ.get("FORCE_COLOR", "")
    if force and force != "0":
        return True
    return _is_terminal(stream)


def colorize(text: str, code: str, enabled: bool) -> str:
    """Wrap ``text`` in ``code`` when colouring is enabled."""
    if not enabled or not code:
        return text
    return code + text + COLOR_RESET


def severity_color(severity: Severity) -> str:
    """Return the ANSI code used for a diagnostic severity."""
    return {
        Severity.ERROR: COLOR_BOLD_RED,
        Severity.WARNING: COLOR_BOLD_YELLOW,
        Severity.NOTE: COLOR_BOLD_CYAN,
    }.get(severity, "")