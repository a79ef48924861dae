"""C11 source generation from the mid-level IR."""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable, Mapping
from typing import Optional

from .diagnostics import Diagnostic
from .mangle import drop_fn_name, mangle_name, mangle_type, sanitize_ident
from .model import (
    INVALID_TYPE_ID,
    BorrowKind,
    Function,
    Instr,
    InstrKind,
    TermKind,
    Terminator,
    TypeEntry,
    TypeKind,
    TypeTable,
)

_NUMERIC_SUFFIXES = (
    "usize", "isize",
    "u128", "u64", "u32", "u16",
    "i128", "i64", "i32", "i16",
    "f64", "f32",
    "u8", "i8",
)

_PREAMBLE = (
    "#include <stdint.h>\n"
    "#include <stdbool.h>\n"
    "#include <stddef.h>\n"
    '#include "fuse_rt.h"\n'
    "\n"
    "typedef void* FuseFunc;\n"
    "\n"
)

_INDENT = "    "


def strip_numeric_suffix(value: str) -> str:
    """Remove a trailing numeric-literal suffix such as ``usize`` or ``f32``.

    The suffix is only stripped when what remains starts like a number.
    """
    for suffix in _NUMERIC_SUFFIXES:
        if len(value) <= len(suffix) or not value.endswith(suffix):
            continue
        remainder = value[: -len(suffix)]
        if remainder and (remainder[0] in "-." or remainder[0].isdigit()):
            return remainder
    return value


def is_func_ref(value: str) -> bool:
    """Report whether a constant value names a function."""
    return value.startswith("Fuse_") or value.startswith("fuse_rt_") or value == "main"


class Emitter:
    """Generates C11 source from IR functions."""

    def __init__(
        self, types: TypeTable, drop_types: Optional[Mapping[int, bool]] = None
    ) -> None:
        self.types = types
        self.errors: list[Diagnostic] = []
        self.drop_types: dict[int, bool] = dict(drop_types or {})
        self._out: list[str] = []
        self._indent = 0
        self._emitted: set[int] = set()
        self._const_names: dict[int, str] = {}
        self._borrow_locals: set[int] = set()

    # --- public entry point ---

    def emit(self, functions: Iterable[Function]) -> str:
        """Generate a C translation unit for ``functions``."""
        functions = list(functions)
        self._out = [_PREAMBLE]
        self._indent = 0
        self._emitted = set()

        # With a `main`, only functions reachable from it get code; type
        # collection still covers every function.
        to_emit = functions
        reach = self._reachable_from_main(functions)
        if reach is not None:
            to_emit = [fn for fn in functions if fn.name in reach]

        for fn in functions:
            self._collect_types(fn)
        self._line("")

        for fn in to_emit:
            self._emit_forward_decl(fn)
        self._line("")

        for fn in to_emit:
            self._emit_function(fn)

        return "".join(self._out)

    # --- reachability ---

    def _reachable_from_main(self, functions: list[Function]) -> Optional[set[str]]:
        by_name = {fn.name: fn for fn in functions}
        if "main" not in by_name:
            return None
        reach = {"main"}
        queue = deque(["main"])
        while queue:
            fn = by_name.get(queue.popleft())
            if fn is None:
                continue
            for callee in self._direct_callees(fn):
                name = callee[len("Fuse_"):] if callee.startswith("Fuse_") else callee
                if name not in by_name or name in reach:
                    continue
                reach.add(name)
                queue.append(name)
        return reach

    def _direct_callees(self, fn: Function) -> list[str]:
        const_names: dict[int, str] = {}
        found: dict[str, None] = {}

        def add(name: str) -> None:
            if name:
                found.setdefault(name, None)

        for blk in fn.blocks:
            for ins in blk.instrs:
                if ins.kind is InstrKind.CONST:
                    if is_func_ref(ins.value):
                        const_names[ins.dest] = ins.value
                        add(ins.value)
                elif ins.kind is InstrKind.CALL:
                    if ins.callee in const_names:
                        add(const_names[ins.callee])
                elif ins.kind is InstrKind.DROP:
                    if self.drop_types.get(ins.type):
                        add(drop_fn_name(self.types, ins.type))
        for local in fn.locals[len(fn.params):]:
            if self.drop_types.get(local.type) and local.name:
                add(drop_fn_name(self.types, local.type))
        return list(found)

    # --- type collection ---

    def _kind(self, type_id: int) -> Optional[TypeKind]:
        if type_id == INVALID_TYPE_ID:
            return None
        return self.types.get(type_id).kind

    def _fn_has_generic_param(self, fn: Function) -> bool:
        has = self.types.has_generic_param
        return (
            has(fn.return_type)
            or any(has(p.type) for p in fn.params)
            or any(has(l.type) for l in fn.locals)
        )

    def _collect_types(self, fn: Function) -> None:
        if self._fn_has_generic_param(fn):
            return
        self._emit_type_def(fn.return_type)
        for p in fn.params:
            self._emit_type_def(p.type)
        for local in fn.locals:
            self._emit_type_def(local.type)

    def _concrete_layout(self, type_id: int, te: TypeEntry) -> tuple[list[int], list[str]]:
        if te.fields or not te.type_args:
            return te.fields, te.field_names
        base_id = self.types.base_of(type_id)
        if base_id == INVALID_TYPE_ID:
            return te.fields, te.field_names
        names, types = self.types.substitute_fields(base_id, te.type_args)
        return types, names

    def _emit_type_def(self, type_id: int) -> None:
        if type_id in self._emitted or type_id == INVALID_TYPE_ID:
            return
        te = self.types.get(type_id)
        kind = te.kind

        if kind is TypeKind.GENERIC_PARAM:
            self._emitted.add(type_id)
            return
        if kind in (TypeKind.STRUCT, TypeKind.ENUM) and self.types.has_generic_param(type_id):
            self._emitted.add(type_id)
            return

        mt = lambda t: mangle_type(self.types, t)  # noqa: E731

        if kind is TypeKind.STRUCT:
            self._emitted.add(type_id)
            fields, names = self._concrete_layout(type_id, te)
            for ft in fields:
                self._emit_type_def(ft)
            name = mt(type_id)
            if names:
                body = "".join(
                    f" {mt(ft)} {sanitize_ident(fname)};" for ft, fname in zip(fields, names)
                )
                self._write(f"typedef struct {name} {{{body} }} {name};")
            elif fields:
                body = "".join(f" {mt(ft)} _f{i};" for i, ft in enumerate(fields))
                self._write(f"typedef struct {name} {{{body} }} {name};")
            else:
                self._write(f"typedef struct {name} {name};")
            self._line("")
        elif kind is TypeKind.ENUM:
            self._emitted.add(type_id)
            fields, _ = self._concrete_layout(type_id, te)
            for pt in fields:
                self._emit_type_def(pt)
            name = mt(type_id)
            if fields:
                body = "".join(f" {mt(f)} _f{i};" for i, f in enumerate(fields))
                self._write(f"typedef struct {name} {{ int _tag;{body} }} {name};")
            else:
                self._write(f"typedef struct {name} {{ int _tag; }} {name};")
            self._line("")
        elif kind is TypeKind.TUPLE:
            for f in te.fields:
                self._emit_type_def(f)
            self._emitted.add(type_id)
            body = "".join(f" {mt(f)} f_{i};" for i, f in enumerate(te.fields))
            self._write(f"typedef struct {{{body} }} {mt(type_id)};")
            self._line("")
        elif kind is TypeKind.SLICE:
            self._emit_type_def(te.elem)
            self._emitted.add(type_id)
            self._write(f"typedef struct {{ {mt(te.elem)}* data; size_t len; }} {mt(type_id)};")
            self._line("")
        elif kind is TypeKind.ARRAY:
            self._emit_type_def(te.elem)
            self._emitted.add(type_id)
            self._write(
                f"typedef struct {{ {mt(te.elem)} data[{te.array_len}]; }} {mt(type_id)};"
            )
            self._line("")
        elif kind is TypeKind.CHANNEL:
            self._emit_type_def(te.elem)
            self._emitted.add(type_id)
            self._write(
                f"typedef struct {{ void* _impl; /* Chan<{mt(te.elem)}> */ }} {mt(type_id)};"
            )
            self._line("")
        elif kind in (TypeKind.REF, TypeKind.MUTREF, TypeKind.PTR):
            self._emitted.add(type_id)
            self._emit_type_def(te.elem)
        else:
            self._emitted.add(type_id)

    # --- functions ---

    def _signature(self, fn: Function) -> str:
        ret = self._return_type_c(fn.return_type)
        return f"{ret} {mangle_name('', fn.name)}({self._params_c(fn)})"

    def _emit_forward_decl(self, fn: Function) -> None:
        if self._fn_has_generic_param(fn):
            return
        self._line(self._signature(fn) + ";")

    def _emit_function(self, fn: Function) -> None:
        if self._fn_has_generic_param(fn):
            return
        self._const_names = {}
        self._borrow_locals = {
            l.id for l in fn.locals if self._kind(l.type) in (TypeKind.REF, TypeKind.MUTREF)
        }
        self._line(self._signature(fn) + " {")
        self._indent += 1

        for local in fn.locals[len(fn.params):]:
            if self._is_unit(local.type):
                continue
            self._stmt(f"{mangle_type(self.types, local.type)} {self._local_name(local.id)};")
        if len(fn.locals) > len(fn.params):
            self._line("")

        for blk in fn.blocks:
            if blk.id != fn.entry_block:
                self._line(f"block_{blk.id}:;")
            for instr in blk.instrs:
                self._emit_instr(fn, instr)
            self._emit_terminator(fn, blk.term)

        self._indent -= 1
        self._line("}")
        self._line("")

    def _callee_name(self, local_id: int) -> str:
        name = self._const_names.get(local_id)
        if name is None:
            return self._local_name(local_id)
        if name.startswith("Fuse_"):
            return "Fuse_" + sanitize_ident(name[len("Fuse_"):])
        return name

    def _emit_instr(self, fn: Function, instr: Instr) -> None:
        dest = self._local_name(instr.dest)
        kind = instr.kind
        val = self._local_value
        name = self._local_name

        if kind is InstrKind.CONST:
            if self._is_unit(instr.type):
                return
            if instr.type == self.types.unknown and is_func_ref(instr.value):
                self._const_names[instr.dest] = instr.value
                return
            self._stmt(f"{dest} = {self._const_value(instr.value, instr.type)};")
        elif kind is InstrKind.COPY:
            if self._is_unit(instr.type):
                return
            dest_expr = f"(*{dest})" if instr.dest in self._borrow_locals else dest
            self._stmt(f"{dest_expr} = {val(instr.src)};")
        elif kind is InstrKind.MOVE:
            if self._is_unit(instr.type):
                return
            self._stmt(f"{dest} = {val(instr.src)}; /* move */")
        elif kind is InstrKind.BORROW:
            tag = "mutref" if instr.borrow_kind is BorrowKind.MUTABLE else "ref"
            self._stmt(f"{dest} = &{name(instr.src)}; /* {tag} */")
        elif kind is InstrKind.DROP:
            if self._is_unit(instr.type):
                return
            if self.drop_types.get(instr.type):
                self._stmt(f"{drop_fn_name(self.types, instr.type)}(&{name(instr.src)});")
        elif kind is InstrKind.CALL:
            call = f"{self._callee_name(instr.callee)}({self._args_c(instr.args)})"
            if self._is_unit(instr.type):
                self._stmt(call + ";")
            else:
                self._stmt(f"{dest} = {call};")
        elif kind is InstrKind.FIELD_READ:
            self._stmt(f"{dest} = {val(instr.src)}.{sanitize_ident(instr.field)};")
        elif kind is InstrKind.FIELD_ADDR:
            self._stmt(f"{dest} = &{val(instr.src)}.{sanitize_ident(instr.field)};")
        elif kind is InstrKind.INDEX:
            if self._kind(fn.locals[instr.src].type) is TypeKind.PTR:
                self._stmt(f"{dest} = {val(instr.src)}[{val(instr.src2)}];")
            else:
                self._stmt(f"{dest} = {val(instr.src)}.data[{val(instr.src2)}];")
        elif kind is InstrKind.BIN_OP:
            self._stmt(f"{dest} = {val(instr.src)} {instr.op} {val(instr.src2)};")
        elif kind is InstrKind.UNARY_OP:
            self._stmt(f"{dest} = {instr.op}{val(instr.src)};")
        elif kind is InstrKind.TUPLE:
            if self._is_unit(instr.type):
                return
            ty = mangle_type(self.types, instr.type)
            if self._kind(instr.type) is TypeKind.ARRAY:
                elems = ", ".join(name(a) for a in instr.args)
                self._stmt(f"{dest} = ({ty}){{.data = {{{elems}}}}};")
            else:
                fields = ", ".join(f".f_{i} = {name(a)}" for i, a in enumerate(instr.args))
                self._stmt(f"{dest} = ({ty}){{{fields}}};")
        elif kind is InstrKind.STRUCT_INIT:
            ty = mangle_type(self.types, instr.type)
            if not instr.args:
                self._stmt(f"{dest} = ({ty}){{0}};")
            else:
                names = self.types.get(instr.type).field_names
                inits = []
                for i, a in enumerate(instr.args):
                    if i < len(names) and names[i]:
                        inits.append(f".{sanitize_ident(names[i])} = {name(a)}")
                    else:
                        inits.append(name(a))
                self._stmt(f"{dest} = ({ty}){{{', '.join(inits)}}};")
        elif kind is InstrKind.PTR_WRITE:
            if self._kind(fn.locals[instr.dest].type) is TypeKind.ARRAY:
                self._stmt(f"{dest}.data[{val(instr.src)}] = {val(instr.src2)};")
            else:
                self._stmt(f"{dest}[{val(instr.src)}] = {val(instr.src2)};")
        elif kind is InstrKind.PTR_DEREF_WRITE:
            self._stmt(f"*{dest} = {val(instr.src)};")
        elif kind is InstrKind.ENUM_INIT:
            ty = mangle_type(self.types, instr.type)
            variant = sanitize_ident(instr.field)
            if not instr.args:
                self._stmt(f"{dest} = ({ty}){{0}}; /* {variant} */")
            else:
                elems = ", ".join(name(a) for a in instr.args)
                self._stmt(f"{dest} = ({ty}){{{elems}}}; /* {variant} */")

    def _emit_terminator(self, fn: Function, term: Terminator) -> None:
        kind = term.kind
        if kind is TermKind.RETURN:
            for local in fn.locals[len(fn.params):]:
                if self.drop_types.get(local.type) and local.name:
                    drop = drop_fn_name(self.types, local.type)
                    self._stmt(f"{drop}(&{self._local_name(local.id)});")
            if self._is_unit(fn.return_type):
                self._stmt("return;")
            else:
                self._stmt(f"return {self._local_value(term.value)};")
        elif kind is TermKind.GOTO:
            self._stmt(f"goto block_{term.target};")
        elif kind is TermKind.BRANCH:
            self._stmt(
                f"if ({self._local_value(term.value)}) goto block_{term.target}; "
                f"else goto block_{term.else_target};"
            )
        elif kind is TermKind.DIVERGE:
            self._stmt("__builtin_unreachable();")

    # --- helpers ---

    def _is_unit(self, type_id: int) -> bool:
        return type_id in (self.types.unit, self.types.never)

    @staticmethod
    def _local_name(local_id: int) -> str:
        return f"_l{local_id}"

    def _local_value(self, local_id: int) -> str:
        name = self._local_name(local_id)
        return f"(*{name})" if local_id in self._borrow_locals else name

    def _return_type_c(self, type_id: int) -> str:
        if self._is_unit(type_id):
            return "void"
        return mangle_type(self.types, type_id)

    def _params_c(self, fn: Function) -> str:
        parts = [
            f"{mangle_type(self.types, p.type)} {self._local_name(p.id)}"
            for p in fn.params
            if not self._is_unit(p.type)
        ]
        return ", ".join(parts) if parts else "void"

    def _args_c(self, args: Iterable[int]) -> str:
        return ", ".join(self._local_name(a) for a in args)

    def _const_value(self, value: str, type_id: int) -> str:
        if value == "()" or self._is_unit(type_id):
            return "0 /* unit */"
        if type_id == INVALID_TYPE_ID:
            return value
        te = self.types.get(type_id)
        kind = te.kind
        if kind is TypeKind.BOOL:
            return "true" if value == "true" else "false"
        if kind is TypeKind.STRUCT:
            ty = mangle_type(self.types, type_id)
            if te.name == "String" and len(value) >= 2 and value[0] == '"':
                length = len(value[1:-1].encode("utf-8"))
                return f"({ty}){{.data = (uint8_t*){value}, .len = {length}}}"
            return f"({ty}){{0}}"
        if kind in (TypeKind.ENUM, TypeKind.TUPLE):
            return f"({mangle_type(self.types, type_id)}){{0}}"
        if kind in (TypeKind.INT, TypeKind.UINT, TypeKind.FLOAT):
            return strip_numeric_suffix(value)
        return value

    def _write(self, text: str) -> None:
        self._out.append(text)

    def _line(self, text: str) -> None:
        self._out.append(text + "\n")

    def _stmt(self, text: str) -> None:
        self._out.append(_INDENT * self._indent + text + "\n")