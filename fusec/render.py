"""Rendering of diagnostics as text or JSON."""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from typing import Optional, Union

from .color import (
    COLOR_BOLD_RED,
    COLOR_BOLD_YELLOW,
    COLOR_DIM,
    colorize,
    severity_color,
)
from .diagnostics import Diagnostic, Severity

SourceMap = Optional[Mapping[str, Union[bytes, str]]]


def _get_line(src: Union[bytes, str], line_num: int) -> str:
    if isinstance(src, bytes):
        src = src.decode("utf-8", errors="replace")
    lines = src.split("\n")
    if 1 <= line_num <= len(lines):
        return lines[line_num - 1]
    return ""


def render_text_color(
    diags: Optional[Iterable[Diagnostic]], sources: SourceMap, color: bool
) -> str:
    """Render diagnostics with source context, optionally in colour."""
    parts: list[str] = []
    for d in diags or ():
        sev_code = severity_color(d.severity)
        parts.append(colorize(str(d.severity), sev_code, color))
        span = d.span
        if span.file:
            loc = f"[{span.file}:{span.start.line}:{span.start.col}]"
            parts.append(colorize(loc, COLOR_DIM, color))
        parts.append(f": {d.message}\n")

        if not (span.file and span.start.line > 0 and sources):
            continue
        src = sources.get(span.file)
        if src is None:
            continue
        line = _get_line(src, span.start.line)
        if not line:
            continue
        parts.append(f"  {line}\n")
        col = span.start.col
        if col > 0:
            length = span.end.col - span.start.col
            if length <= 0:
                length = 1
            carets = colorize("^" * length, sev_code, color)
            parts.append("  " + " " * (col - 1) + carets + "\n")
    return "".join(parts)


def render_text(diags: Optional[Iterable[Diagnostic]], sources: SourceMap) -> str:
    """Render diagnostics in plain human-readable form."""
    return render_text_color(diags, sources, False)


def _counted(n: int, noun: str) -> str:
    return f"{n} {noun}" + ("" if n == 1 else "s")


def diag_summary(diags: Optional[Iterable[Diagnostic]], color: bool) -> str:
    """Return a summary such as "2 errors, 1 warning", or "" if none."""
    diags = list(diags or ())
    errors = sum(1 for d in diags if d.severity == Severity.ERROR)
    warnings = sum(1 for d in diags if d.severity == Severity.WARNING)
    parts = []
    if errors:
        parts.append(colorize(_counted(errors, "error"), COLOR_BOLD_RED, color))
    if warnings:
        parts.append(colorize(_counted(warnings, "warning"), COLOR_BOLD_YELLOW, color))
    return ", ".join(parts)


def _json_record(d: Diagnostic) -> dict:
    record: dict = {"severity": str(d.severity)}
    optional = (
        ("file", d.span.file),
        ("line", d.span.start.line),
        ("column", d.span.start.col),
        ("end_line", d.span.end.line),
        ("end_column", d.span.end.col),
    )
    record.update((key, value) for key, value in optional if value)
    record["message"] = d.message
    return record


_HTML_ESCAPES = {
    "<": "\\u003c",
    ">": "\\u003e",
    "&": "\\u0026",
    "\u2028": "\\u2028",
    "\u2029": "\\u2029",
}


def render_json(diags: Optional[Iterable[Diagnostic]]) -> str:
    """Render diagnostics as an indented JSON array followed by a newline."""
    out = json.dumps([_json_record(d) for d in diags or ()], indent=2, ensure_ascii=False)
    out = "".join(_HTML_ESCAPES.get(ch, ch) for ch in out)
    return out + "\n"