"""Deterministic C identifiers and type names."""

from __future__ import annotations

from .model import TypeKind, TypeTable

C_KEYWORDS = frozenset(
    {
        "auto", "break", "case", "char", "const", "continue", "default", "do",
        "double", "else", "enum", "extern", "float", "for", "goto", "if",
        "inline", "int", "long", "register", "restrict", "return", "short",
        "signed", "sizeof", "static", "struct", "switch", "typedef", "union",
        "unsigned", "void", "volatile", "while", "_Bool", "_Complex",
        "_Imaginary", "_Alignas", "_Alignof", "_Atomic", "_Generic",
        "_Noreturn", "_Static_assert", "_Thread_local",
    }
)

_ILLEGAL = str.maketrans({ch: "_" for ch in ".[], ()"})

_INT_TYPES = {
    (8, True): "int8_t",
    (8, False): "uint8_t",
    (16, True): "int16_t",
    (16, False): "uint16_t",
    (32, True): "int32_t",
    (32, False): "uint32_t",
    (64, True): "int64_t",
    (64, False): "uint64_t",
    (128, True): "__int128",
    (128, False): "unsigned __int128",
}


def sanitize_ident(name: str) -> str:
    """Make a name safe for C: replace illegal characters, escape keywords."""
    name = name.translate(_ILLEGAL)
    if name and "0" <= name[0] <= "9":
        name = "f_" + name
    if name in C_KEYWORDS:
        return "fuse_" + name
    return name


def mangle_name(module: str, name: str) -> str:
    """Return the module-qualified C identifier for an item.

    Runtime externs (``fuse_rt_*``) and ``main`` pass through unchanged.
    """
    if name.startswith("fuse_rt_"):
        return name
    if name == "main":
        return "main"
    if not module:
        return "Fuse_" + sanitize_ident(name)
    return "Fuse_" + sanitize_ident(module) + "__" + sanitize_ident(name)


def drop_fn_name(types: TypeTable, type_id: int) -> str:
    """Return the C name of the Drop destructor for a type."""
    entry = types.get(type_id)
    name = entry.name or mangle_type(types, type_id)
    if entry.type_args and entry.kind in (TypeKind.STRUCT, TypeKind.ENUM):
        args = "_".join(types.get(a).name for a in entry.type_args)
        return f"Fuse_{sanitize_ident(name)}__{args}__drop"
    return f"Fuse_{sanitize_ident(name)}__drop"


def _int_c_type(bits: int, signed: bool) -> str:
    # Any other width is platform-sized (ISize/USize).
    return _INT_TYPES.get((bits, signed), "intptr_t" if signed else "uintptr_t")


def _mangle_type_args(types: TypeTable, args) -> str:
    return "__" + "_".join(sanitize_ident(mangle_type(types, a)) for a in args)


def mangle_type(types: TypeTable, type_id: int) -> str:
    """Return the C type name for a type."""
    entry = types.get(type_id)
    kind = entry.kind
    if kind in (TypeKind.UNIT, TypeKind.NEVER):
        return "void"
    if kind is TypeKind.BOOL:
        return "bool"
    if kind is TypeKind.CHAR:
        return "uint32_t"
    if kind is TypeKind.INT:
        return _int_c_type(entry.bit_size, True)
    if kind is TypeKind.UINT:
        return _int_c_type(entry.bit_size, False)
    if kind is TypeKind.FLOAT:
        return "float" if entry.bit_size == 32 else "double"
    if kind in (TypeKind.PTR, TypeKind.REF, TypeKind.MUTREF):
        return mangle_type(types, entry.elem) + "*"
    if kind is TypeKind.SLICE:
        return "FuseSlice_" + sanitize_ident(mangle_type(types, entry.elem))
    if kind is TypeKind.ARRAY:
        return "FuseArray_" + sanitize_ident(mangle_type(types, entry.elem))
    if kind is TypeKind.TUPLE:
        return mangle_tuple_name(types, entry.fields)
    if kind in (TypeKind.STRUCT, TypeKind.ENUM):
        base = mangle_name(entry.module, entry.name)
        if entry.type_args:
            return base + _mangle_type_args(types, entry.type_args)
        return base
    if kind is TypeKind.CHANNEL:
        return "FuseChan_" + sanitize_ident(mangle_type(types, entry.elem))
    if kind is TypeKind.FUNC:
        return "FuseFunc"
    if kind is TypeKind.UNKNOWN:
        return "/* UNKNOWN */ int"
    return "int"


def mangle_tuple_name(types: TypeTable, fields) -> str:
    """Return a stable C name for a tuple of the given element types."""
    parts = [sanitize_ident(mangle_type(types, f)) for f in fields]
    return "FuseTuple_" + "_".join(parts)