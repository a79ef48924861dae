"""x86-64 assembly generation straight from the mid-level IR."""

from __future__ import annotations

from collections.abc import Iterable

from .mangle import mangle_name, mangle_type
from .model import (
    INVALID_TYPE_ID,
    BorrowKind,
    Function,
    Instr,
    InstrKind,
    TermKind,
    Terminator,
    TypeKind,
    TypeTable,
)

_BINOPS = {"+": "add", "-": "sub", "*": "imul"}
_UNARYOPS = {"-": "neg rax", "!": "xor rax, 1"}


class NativeBackend:
    """Emits x86-64 assembly (Intel syntax) for IR functions.

    Every local occupies one 8-byte stack slot; parameters sit above the
    saved frame pointer and return address.
    """

    name = "native"

    def __init__(self, types: TypeTable, optimize: bool = False) -> None:
        self.types = types
        self.optimize = optimize
        self.drop_types: dict[int, bool] = {}
        self._out: list[str] = []

    def emit(self, functions: Iterable[Function]) -> bytes:
        """Generate an assembly listing for ``functions``."""
        self._out = [".section .text\n", "\n"]
        for fn in functions:
            self._emit_function(fn)
        self._out.append("\n")
        self._out.append(".section .rodata\n")
        return "".join(self._out).encode("utf-8")

    # --- functions ---

    def _emit_function(self, fn: Function) -> None:
        name = mangle_name("", fn.name)
        self._line(f".globl {name}")
        self._line(f"{name}:")
        self._line("    push rbp")
        self._line("    mov rbp, rsp")

        local_count = len(fn.locals) - len(fn.params)
        if local_count > 0:
            self._line(f"    sub rsp, {local_count * 8}")

        for blk in fn.blocks:
            if blk.id != fn.entry_block:
                self._line(f".L_block_{blk.id}:")
            for instr in blk.instrs:
                self._emit_instr(fn, instr)
            self._emit_terminator(fn, blk.term)

        self._line("")

    def _emit_instr(self, fn: Function, instr: Instr) -> None:
        dest = self._offset(fn, instr.dest)
        kind = instr.kind

        if kind is InstrKind.CONST:
            if self._is_unit(instr.type):
                return
            self._line(f"    mov qword [rbp{dest}], {self._const_asm(instr.value, instr.type)}")
        elif kind in (InstrKind.COPY, InstrKind.MOVE):
            if self._is_unit(instr.type):
                return
            self._line(f"    mov rax, [rbp{self._offset(fn, instr.src)}]")
            self._line(f"    mov [rbp{dest}], rax")
            if kind is InstrKind.MOVE:
                self._line("    ; move (src invalidated)")
        elif kind is InstrKind.BORROW:
            tag = "mutref" if instr.borrow_kind is BorrowKind.MUTABLE else "ref"
            self._line(f"    lea rax, [rbp{self._offset(fn, instr.src)}] ; {tag}")
            self._line(f"    mov [rbp{dest}], rax")
        elif kind is InstrKind.DROP:
            if self._is_unit(instr.type):
                return
            if self.drop_types.get(instr.type):
                name = mangle_name("", mangle_type(self.types, instr.type) + "_drop")
                self._line(f"    lea rdi, [rbp{self._offset(fn, instr.src)}]")
                self._line(f"    call {name}")
            else:
                self._line(f"    ; drop local{instr.src} (no-op)")
        elif kind is InstrKind.CALL:
            for arg in reversed(instr.args):
                self._line(f"    push qword [rbp{self._offset(fn, arg)}]")
            self._line(f"    call [rbp{self._offset(fn, instr.callee)}]")
            if instr.args:
                self._line(f"    add rsp, {len(instr.args) * 8}")
            if not self._is_unit(instr.type):
                self._line(f"    mov [rbp{dest}], rax")
        elif kind is InstrKind.BIN_OP:
            self._line(f"    mov rax, [rbp{self._offset(fn, instr.src)}]")
            mnemonic = _BINOPS.get(instr.op)
            if mnemonic is None:
                self._line(f"    ; binop {instr.op} (unsupported)")
            else:
                self._line(f"    {mnemonic} rax, [rbp{self._offset(fn, instr.src2)}]")
            self._line(f"    mov [rbp{dest}], rax")
        elif kind is InstrKind.UNARY_OP:
            self._line(f"    mov rax, [rbp{self._offset(fn, instr.src)}]")
            self._line(_UNARYOPS.get(instr.op, f"    ; unaryop {instr.op}")
                       if instr.op not in _UNARYOPS else f"    {_UNARYOPS[instr.op]}")
            self._line(f"    mov [rbp{dest}], rax")
        elif kind is InstrKind.FIELD_READ:
            self._line(f"    mov rax, [rbp{self._offset(fn, instr.src)}] ; .{instr.field}")
            self._line(f"    mov [rbp{dest}], rax")
        elif kind is InstrKind.STRUCT_INIT:
            if self._is_unit(instr.type):
                return
            self._line(f"    ; struct init {instr.field}")
            self._line(f"    mov qword [rbp{dest}], 0")
        elif kind is InstrKind.TUPLE:
            if self._is_unit(instr.type):
                return
            self._line("    ; tuple init")
            self._line(f"    mov qword [rbp{dest}], 0")

    def _emit_terminator(self, fn: Function, term: Terminator) -> None:
        kind = term.kind
        if kind is TermKind.RETURN:
            if not self._is_unit(fn.return_type):
                self._line(f"    mov rax, [rbp{self._offset(fn, term.value)}]")
            self._line("    mov rsp, rbp")
            self._line("    pop rbp")
            self._line("    ret")
        elif kind is TermKind.GOTO:
            self._line(f"    jmp .L_block_{term.target}")
        elif kind is TermKind.BRANCH:
            self._line(f"    cmp qword [rbp{self._offset(fn, term.value)}], 0")
            self._line(f"    je .L_block_{term.else_target}")
            self._line(f"    jmp .L_block_{term.target}")
        elif kind is TermKind.DIVERGE:
            self._line("    ud2")

    # --- helpers ---

    @staticmethod
    def _offset(fn: Function, local_id: int) -> str:
        if local_id < len(fn.params):
            return f"+{(local_id + 2) * 8}"
        return f"-{(local_id - len(fn.params) + 1) * 8}"

    def _is_unit(self, type_id: int) -> bool:
        return type_id in (self.types.unit, self.types.never)

    def _const_asm(self, value: str, type_id: int) -> str:
        if self._is_unit(type_id):
            return "0"
        if type_id != INVALID_TYPE_ID and self.types.get(type_id).kind is TypeKind.BOOL:
            return "1" if value == "true" else "0"
        return value

    def _line(self, text: str) -> None:
        self._out.append(text + "\n")