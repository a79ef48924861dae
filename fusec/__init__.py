"""Fuse compiler back end: diagnostics, documentation extraction and code generation."""

__version__ = "0.1.0"
__all__ = [
    "backend",
    "color",
    "diagnostics",
    "docgen",
    "emit",
    "mangle",
    "model",
    "native",
    "render",
]