"""Extraction of documented items from source text and Markdown rendering."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Union

_NAME_STOPS = frozenset("({[<: \t")

# Keyword prefix and the kind it introduces, in the order they are tried.
_ITEM_PREFIXES = (
    ("fn ", "fn"),
    ("struct ", "struct"),
    ("enum ", "enum"),
    ("trait ", "trait"),
    ("impl ", "impl"),
    ("const ", "const"),
    ("type ", "type"),
    ("extern fn ", "extern fn"),
)

# Kinds whose signature is just the declaring line.
_SINGLE_LINE_KINDS = frozenset({"const", "type"})

_GROUPS = (
    ("Functions", ("fn",)),
    ("Structs", ("struct",)),
    ("Enums", ("enum",)),
    ("Traits", ("trait",)),
    ("Implementations", ("impl",)),
    ("Constants", ("const",)),
    ("Type Aliases", ("type",)),
    ("Extern Functions", ("extern fn",)),
)


@dataclass
class DocItem:
    """A documentable item and its preceding /// comment lines."""

    kind: str
    name: str
    public: bool = False
    signature: str = ""
    doc_lines: list[str] = field(default_factory=list)


def _extract_name(text: str) -> str:
    text = text.strip()
    for i, ch in enumerate(text):
        if ch in _NAME_STOPS:
            return text[:i]
    return text


def _extract_signature(lines: list[str], start: int) -> str:
    pieces: list[str] = []
    for raw in lines[start:]:
        trimmed = raw.strip()
        pieces.append(trimmed)
        if "{" in trimmed:
            joined = " ".join(pieces)
            return joined[: joined.index("{")].strip()
        if trimmed.endswith(";"):
            return " ".join(pieces)
    return " ".join(pieces).strip()


def _parse_item_line(line: str, lines: list[str], idx: int) -> DocItem | None:
    public = line.startswith("pub ")
    rest = line[len("pub "):] if public else line
    for prefix, kind in _ITEM_PREFIXES:
        if rest.startswith(prefix):
            break
    else:
        return None
    name = _extract_name(rest[len(prefix):])
    if not name:
        return None
    if kind in _SINGLE_LINE_KINDS:
        signature = line.strip()
    else:
        signature = _extract_signature(lines, idx)
    return DocItem(kind=kind, name=name, public=public, signature=signature)


def extract(src: Union[bytes, str]) -> list[DocItem]:
    """Return every documentable item in ``src`` with its doc comments."""
    if isinstance(src, bytes):
        src = src.decode("utf-8", errors="replace")
    lines = src.split("\n")
    items: list[DocItem] = []
    doc_block: list[str] = []

    for idx, raw in enumerate(lines):
        trimmed = raw.strip()
        if trimmed.startswith("///"):
            text = trimmed[3:]
            if text.startswith(" "):
                text = text[1:]
            doc_block.append(text)
            continue

        item = _parse_item_line(trimmed, lines, idx)
        if item is not None:
            item.doc_lines = list(doc_block)
            items.append(item)

        if trimmed:
            doc_block = []

    return items


def extract_public(src: Union[bytes, str]) -> list[DocItem]:
    """Return only the public items in ``src``."""
    return [item for item in extract(src) if item.public]


def render_markdown(items: Iterable[DocItem], module_name: str) -> str:
    """Render items as Markdown grouped by kind."""
    items = list(items)
    out: list[str] = []
    if module_name:
        out.append(f"# {module_name}\n\n")

    for title, kinds in _GROUPS:
        matching = [item for item in items if item.kind in kinds]
        if not matching:
            continue
        out.append(f"## {title}\n\n")
        for item in matching:
            out.append(f"### {item.name}\n\n")
            if item.signature:
                out.append(f"```fuse\n{item.signature}\n```\n\n")
            if item.doc_lines:
                out.extend(line + "\n" for line in item.doc_lines)
                out.append("\n")
    return "".join(out)