"""Spans, severities and diagnostic messages."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum


class Severity(IntEnum):
    """Classification of a diagnostic."""

    ERROR = 0
    WARNING = 1
    NOTE = 2

    def __str__(self) -> str:
        return self.name.lower()


@dataclass(frozen=True)
class Pos:
    """A position in a source file (1-based line and column)."""

    offset: int = 0
    line: int = 0
    col: int = 0

    def __str__(self) -> str:
        return f"{self.line}:{self.col}"


@dataclass(frozen=True)
class Span:
    """A range in a source file."""

    file: str = ""
    start: Pos = field(default_factory=Pos)
    end: Pos = field(default_factory=Pos)

    def __str__(self) -> str:
        if self.file:
            return f"{self.file}:{self.start}"
        return str(self.start)


@dataclass(frozen=True)
class Diagnostic:
    """A single compiler diagnostic message."""

    severity: Severity
    span: Span
    message: str

    def __str__(self) -> str:
        return f"{self.span}: {self.severity}: {self.message}"


def errorf(span: Span, message: str) -> Diagnostic:
    """Create an error diagnostic at the given span."""
    return Diagnostic(severity=Severity.ERROR, span=span, message=message)