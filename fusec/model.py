"""Type table and mid-level IR consumed by the code generators."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum, auto
from typing import Optional

INVALID_TYPE_ID = 0


class TypeKind(Enum):
    """Structural category of a type."""

    UNKNOWN = auto()
    UNIT = auto()
    BOOL = auto()
    CHAR = auto()
    INT = auto()
    UINT = auto()
    FLOAT = auto()
    NEVER = auto()
    PTR = auto()
    REF = auto()
    MUTREF = auto()
    SLICE = auto()
    ARRAY = auto()
    TUPLE = auto()
    STRUCT = auto()
    ENUM = auto()
    CHANNEL = auto()
    FUNC = auto()
    GENERIC_PARAM = auto()


_NOMINAL = (TypeKind.STRUCT, TypeKind.ENUM)


@dataclass
class TypeEntry:
    """Description of one interned type."""

    kind: TypeKind
    name: str = ""
    module: str = ""
    bit_size: int = 0
    elem: int = INVALID_TYPE_ID
    array_len: int = 0
    fields: list[int] = field(default_factory=list)
    field_names: list[str] = field(default_factory=list)
    type_args: list[int] = field(default_factory=list)
    params: list[int] = field(default_factory=list)
    return_type: int = INVALID_TYPE_ID


def _key(entry: TypeEntry) -> tuple:
    # Nominal types are identified by name and arguments; their fields are
    # layout attached later, so they do not take part in identity.
    fields = tuple(entry.fields) if entry.kind is TypeKind.TUPLE else ()
    return (
        entry.kind,
        entry.module,
        entry.name,
        entry.bit_size,
        entry.elem,
        entry.array_len,
        fields,
        tuple(entry.type_args),
        tuple(entry.params),
        entry.return_type,
    )


class TypeTable:
    """Interning table mapping integer type ids to type entries."""

    def __init__(self) -> None:
        self._entries: list[Optional[TypeEntry]] = [None]
        self._index: dict[tuple, int] = {}

        self.unknown = self._prim(TypeKind.UNKNOWN, "Unknown")
        self.unit = self._prim(TypeKind.UNIT, "Unit")
        self.never = self._prim(TypeKind.NEVER, "Never")
        self.bool = self._prim(TypeKind.BOOL, "Bool")
        self.char = self._prim(TypeKind.CHAR, "Char")
        self.i8 = self._prim(TypeKind.INT, "I8", 8)
        self.i16 = self._prim(TypeKind.INT, "I16", 16)
        self.i32 = self._prim(TypeKind.INT, "I32", 32)
        self.i64 = self._prim(TypeKind.INT, "I64", 64)
        self.i128 = self._prim(TypeKind.INT, "I128", 128)
        self.isize = self._prim(TypeKind.INT, "ISize", 0)
        self.u8 = self._prim(TypeKind.UINT, "U8", 8)
        self.u16 = self._prim(TypeKind.UINT, "U16", 16)
        self.u32 = self._prim(TypeKind.UINT, "U32", 32)
        self.u64 = self._prim(TypeKind.UINT, "U64", 64)
        self.u128 = self._prim(TypeKind.UINT, "U128", 128)
        self.usize = self._prim(TypeKind.UINT, "USize", 0)
        self.f32 = self._prim(TypeKind.FLOAT, "F32", 32)
        self.f64 = self._prim(TypeKind.FLOAT, "F64", 64)

    # --- interning ---

    def _prim(self, kind: TypeKind, name: str, bits: int = 0) -> int:
        return self._intern(TypeEntry(kind=kind, name=name, bit_size=bits))

    def _intern(self, entry: TypeEntry) -> int:
        key = _key(entry)
        existing = self._index.get(key)
        if existing is not None:
            return existing
        type_id = len(self._entries)
        self._entries.append(entry)
        self._index[key] = type_id
        return type_id

    def get(self, type_id: int) -> TypeEntry:
        """Return the entry for ``type_id``; raise KeyError if unknown."""
        if type_id <= INVALID_TYPE_ID or type_id >= len(self._entries):
            raise KeyError(type_id)
        entry = self._entries[type_id]
        assert entry is not None
        return entry

    def intern_struct(self, module: str, name: str, type_args=None) -> int:
        """Intern a struct type, optionally with type arguments."""
        return self._intern(
            TypeEntry(TypeKind.STRUCT, name=name, module=module, type_args=list(type_args or ()))
        )

    def intern_enum(self, module: str, name: str, type_args=None) -> int:
        """Intern an enum type, optionally with type arguments."""
        return self._intern(
            TypeEntry(TypeKind.ENUM, name=name, module=module, type_args=list(type_args or ()))
        )

    def intern_tuple(self, fields) -> int:
        """Intern a tuple of the given element types."""
        return self._intern(TypeEntry(TypeKind.TUPLE, fields=list(fields)))

    def intern_ref(self, elem: int) -> int:
        """Intern a shared borrow of ``elem``."""
        return self._intern(TypeEntry(TypeKind.REF, elem=elem))

    def intern_mutref(self, elem: int) -> int:
        """Intern a mutable borrow of ``elem``."""
        return self._intern(TypeEntry(TypeKind.MUTREF, elem=elem))

    def intern_ptr(self, elem: int) -> int:
        """Intern a raw pointer to ``elem``."""
        return self._intern(TypeEntry(TypeKind.PTR, elem=elem))

    def intern_slice(self, elem: int) -> int:
        """Intern a slice of ``elem``."""
        return self._intern(TypeEntry(TypeKind.SLICE, elem=elem))

    def intern_array(self, elem: int, length: int) -> int:
        """Intern a fixed-length array of ``elem``."""
        return self._intern(TypeEntry(TypeKind.ARRAY, elem=elem, array_len=length))

    def intern_channel(self, elem: int) -> int:
        """Intern a channel carrying ``elem``."""
        return self._intern(TypeEntry(TypeKind.CHANNEL, elem=elem))

    def intern_generic_param(self, module: str, name: str) -> int:
        """Intern a generic type parameter."""
        return self._intern(TypeEntry(TypeKind.GENERIC_PARAM, name=name, module=module))

    def set_struct_fields(self, type_id: int, names, types) -> None:
        """Attach field names and types to a struct or enum entry."""
        entry = self.get(type_id)
        if entry.kind not in _NOMINAL:
            raise ValueError(f"type {type_id} is not a struct or enum")
        names, types = list(names), list(types)
        if len(names) != len(types):
            raise ValueError("field names and field types differ in length")
        entry.field_names = names
        entry.fields = types

    # --- queries ---

    def has_generic_param(self, type_id: int) -> bool:
        """Report whether a type transitively refers to a generic parameter."""
        return self._has_generic(type_id, set())

    def _has_generic(self, type_id: int, seen: set[int]) -> bool:
        if type_id == INVALID_TYPE_ID or type_id in seen:
            return False
        seen.add(type_id)
        entry = self.get(type_id)
        if entry.kind is TypeKind.GENERIC_PARAM:
            return True
        children = [entry.elem, entry.return_type, *entry.type_args, *entry.params, *entry.fields]
        return any(self._has_generic(child, seen) for child in children)

    def base_of(self, type_id: int) -> int:
        """Return the generic template a specialization was made from.

        Returns INVALID_TYPE_ID when the type is not a specialization or no
        template of the same name is known.
        """
        entry = self.get(type_id)
        if entry.kind not in _NOMINAL or not entry.type_args:
            return INVALID_TYPE_ID
        for cand_id, cand in enumerate(self._entries[1:], start=1):
            if cand_id == type_id or cand is None:
                continue
            if (
                cand.kind is entry.kind
                and cand.module == entry.module
                and cand.name == entry.name
                and len(cand.type_args) == len(entry.type_args)
                and all(self.get(a).kind is TypeKind.GENERIC_PARAM for a in cand.type_args)
            ):
                return cand_id
        return INVALID_TYPE_ID

    def substitute_fields(self, base_id: int, type_args) -> tuple[list[str], list[int]]:
        """Return the template's field names and its field types with
        ``type_args`` substituted for its generic parameters."""
        base = self.get(base_id)
        type_args = list(type_args)
        if len(type_args) != len(base.type_args):
            raise ValueError("wrong number of type arguments")
        mapping = dict(zip(base.type_args, type_args))
        types = [self._substitute(f, mapping) for f in base.fields]
        return list(base.field_names), types

    def _substitute(self, type_id: int, mapping: dict[int, int]) -> int:
        if type_id in mapping:
            return mapping[type_id]
        if type_id == INVALID_TYPE_ID or not self.has_generic_param(type_id):
            return type_id
        entry = self.get(type_id)

        def sub(child: int) -> int:
            return self._substitute(child, mapping)

        nominal = entry.kind in _NOMINAL
        new = replace(
            entry,
            elem=sub(entry.elem),
            return_type=sub(entry.return_type),
            type_args=[sub(a) for a in entry.type_args],
            params=[sub(p) for p in entry.params],
            fields=[] if nominal else [sub(f) for f in entry.fields],
            field_names=[] if nominal else list(entry.field_names),
        )
        return self._intern(new)


# --- mid-level IR ---


class BorrowKind(Enum):
    """Whether a borrow is shared or mutable."""

    SHARED = auto()
    MUTABLE = auto()


class InstrKind(Enum):
    """Kind of an IR instruction."""

    CONST = auto()
    COPY = auto()
    MOVE = auto()
    BORROW = auto()
    DROP = auto()
    CALL = auto()
    FIELD_READ = auto()
    FIELD_ADDR = auto()
    INDEX = auto()
    BIN_OP = auto()
    UNARY_OP = auto()
    TUPLE = auto()
    STRUCT_INIT = auto()
    PTR_WRITE = auto()
    PTR_DEREF_WRITE = auto()
    ENUM_INIT = auto()


class TermKind(Enum):
    """Kind of a block terminator."""

    NONE = auto()
    RETURN = auto()
    GOTO = auto()
    BRANCH = auto()
    DIVERGE = auto()


@dataclass
class Local:
    """A function local; its id is its index in the function's locals."""

    id: int
    name: str = ""
    type: int = INVALID_TYPE_ID


@dataclass
class Instr:
    """A single IR instruction."""

    kind: InstrKind
    dest: int = 0
    type: int = INVALID_TYPE_ID
    value: str = ""
    src: int = 0
    src2: int = 0
    callee: int = 0
    args: list[int] = field(default_factory=list)
    field: str = ""
    op: str = ""
    borrow_kind: BorrowKind = BorrowKind.SHARED


@dataclass
class Terminator:
    """Control transfer at the end of a block."""

    kind: TermKind = TermKind.NONE
    value: int = 0
    target: int = 0
    else_target: int = 0


@dataclass
class Block:
    """A basic block."""

    id: int
    instrs: list[Instr] = field(default_factory=list)
    term: Terminator = field(default_factory=Terminator)


@dataclass
class Function:
    """An IR function. Its locals start with its parameters; when no
    locals are given they default to the parameters."""

    name: str
    params: list[Local] = field(default_factory=list)
    return_type: int = INVALID_TYPE_ID
    locals: list[Local] = field(default_factory=list)
    blocks: list[Block] = field(default_factory=list)
    entry_block: int = 0

    def __post_init__(self) -> None:
        if not self.locals and self.params:
            self.locals = list(self.params)