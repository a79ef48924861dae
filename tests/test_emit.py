import pytest

from fusec.emit import Emitter, is_func_ref, strip_numeric_suffix
from fusec.model import (
    Block,
    BorrowKind,
    Function,
    Instr,
    InstrKind,
    Local,
    TermKind,
    Terminator,
    TypeTable,
)


class FnBuilder:
    """Small helper building IR functions for tests."""

    def __init__(self, name, params, ret):
        self.name = name
        self.params = list(params or [])
        self.ret = ret
        self.locals = list(self.params)
        self.blocks = [Block(id=0)]
        self.cur = self.blocks[0]

    def new_local(self, name, ty):
        local = Local(id=len(self.locals), name=name, type=ty)
        self.locals.append(local)
        return local.id

    def new_temp(self, ty):
        return self.new_local("", ty)

    def ty(self, local_id):
        return self.locals[local_id].type

    def new_block(self):
        blk = Block(id=len(self.blocks))
        self.blocks.append(blk)
        return blk.id

    def switch_to(self, blk_id):
        self.cur = self.blocks[blk_id]

    def add(self, instr):
        self.cur.instrs.append(instr)

    def const(self, dest, ty, value):
        self.add(Instr(InstrKind.CONST, dest=dest, type=ty, value=value))

    def term(self, kind, value=0, target=0, else_target=0):
        self.cur.term = Terminator(kind, value=value, target=target, else_target=else_target)

    def build(self):
        return Function(
            name=self.name,
            params=self.params,
            return_type=self.ret,
            locals=self.locals,
            blocks=self.blocks,
        )


def emit_one(tt, fn, drop_types=None):
    e = Emitter(tt, drop_types)
    src = e.emit([fn])
    assert e.errors == []
    return src


# --- helpers ---


@pytest.mark.parametrize(
    "value, expected",
    [
        ("0usize", "0"),
        ("42u8", "42"),
        ("100i32", "100"),
        ("9223372036854775807i64", "9223372036854775807"),
        ("1.5f32", "1.5"),
        ("-7isize", "-7"),
        ("0", "0"),
        ("true", "true"),
        ("myvar_u8", "myvar_u8"),
        ("u8", "u8"),
    ],
)
def test_strip_numeric_suffix(value, expected):
    assert strip_numeric_suffix(value) == expected


@pytest.mark.parametrize(
    "value, expected",
    [("Fuse_add", True), ("fuse_rt_proc_argc", True), ("main", True), ("foo", False), ("", False)],
)
def test_is_func_ref(value, expected):
    assert is_func_ref(value) is expected


# --- contracts ---


def test_composite_types_emitted_before_functions():
    tt = TypeTable()
    sty = tt.intern_struct("m", "Point", None)
    b = FnBuilder("test", None, sty)
    tmp = b.new_temp(sty)
    b.add(Instr(InstrKind.STRUCT_INIT, dest=tmp, type=sty, field="Point"))
    b.term(TermKind.RETURN, value=tmp)
    src = emit_one(tt, b.build())
    typedef_idx = src.find("typedef struct Fuse_m__Point")
    fn_idx = src.find("Fuse_test(")
    assert typedef_idx >= 0
    assert fn_idx >= 0
    assert typedef_idx < fn_idx


def test_tuple_type_emitted_before_use():
    tt = TypeTable()
    tty = tt.intern_tuple([tt.i32, tt.bool])
    b = FnBuilder("test", None, tty)
    a = b.new_temp(tt.i32)
    b.const(a, tt.i32, "1")
    c = b.new_temp(tt.bool)
    b.const(c, tt.bool, "true")
    tmp = b.new_temp(tty)
    b.add(Instr(InstrKind.TUPLE, dest=tmp, type=tty, args=[a, c]))
    b.term(TermKind.RETURN, value=tmp)
    src = emit_one(tt, b.build())
    assert "typedef struct { int32_t f_0; bool f_1; } FuseTuple_int32_t_bool;" in src
    assert "_l2 = (FuseTuple_int32_t_bool){.f_0 = _l0, .f_1 = _l1};" in src


def _borrow_fn(tt, ref_ty, kind):
    b = FnBuilder("test", None, ref_ty)
    x = b.new_local("x", tt.i32)
    b.const(x, tt.i32, "42")
    dest = b.new_temp(ref_ty)
    b.add(Instr(InstrKind.BORROW, dest=dest, src=x, type=ref_ty, borrow_kind=kind))
    b.term(TermKind.RETURN, value=dest)
    return b.build()


def test_borrow_pointer_uses_address_of():
    tt = TypeTable()
    src = emit_one(tt, _borrow_fn(tt, tt.intern_ref(tt.i32), BorrowKind.SHARED))
    assert "&_l0" in src
    assert "/* ref */" in src


def test_mutref_borrow_annotation():
    tt = TypeTable()
    src = emit_one(tt, _borrow_fn(tt, tt.intern_mutref(tt.i32), BorrowKind.MUTABLE))
    assert "_l1 = &_l0; /* mutref */" in src


def test_unit_return_is_void():
    tt = TypeTable()
    b = FnBuilder("test", None, tt.unit)
    tmp = b.new_temp(tt.unit)
    b.const(tmp, tt.unit, "()")
    b.term(TermKind.RETURN, value=tmp)
    src = emit_one(tt, b.build())
    assert "void Fuse_test(void)" in src
    assert "return;" in src


def test_unit_local_erased():
    tt = TypeTable()
    b = FnBuilder("test", None, tt.i32)
    u = b.new_temp(tt.unit)
    b.const(u, tt.unit, "()")
    ret = b.new_temp(tt.i32)
    b.const(ret, tt.i32, "0")
    b.term(TermKind.RETURN, value=ret)
    src = emit_one(tt, b.build())
    for line in src.split("\n"):
        trimmed = line.strip()
        assert not (trimmed.startswith("void _l") and trimmed.endswith(";") and "(" not in trimmed)
    assert "int32_t _l1;" in src


def test_unit_param_erased():
    tt = TypeTable()
    params = [Local(id=0, name="x", type=tt.unit), Local(id=1, name="y", type=tt.i32)]
    b = FnBuilder("test", params, tt.i32)
    ret = b.new_temp(tt.i32)
    b.const(ret, tt.i32, "0")
    b.term(TermKind.RETURN, value=ret)
    src = emit_one(tt, b.build())
    assert "void _l0" not in src
    assert "int32_t Fuse_test(int32_t _l1)" in src


def test_aggregate_zero_initializer():
    tt = TypeTable()
    sty = tt.intern_struct("m", "Foo", None)
    b = FnBuilder("test", None, sty)
    tmp = b.new_temp(sty)
    b.add(Instr(InstrKind.STRUCT_INIT, dest=tmp, type=sty, field="Foo"))
    b.term(TermKind.RETURN, value=tmp)
    src = emit_one(tt, b.build())
    assert "(Fuse_m__Foo){0}" in src


def test_divergence_emits_unreachable():
    tt = TypeTable()
    b = FnBuilder("test", None, tt.never)
    b.term(TermKind.DIVERGE)
    src = emit_one(tt, b.build())
    assert "__builtin_unreachable();" in src


def test_return_terminator():
    tt = TypeTable()
    b = FnBuilder("test", None, tt.i32)
    tmp = b.new_temp(tt.i32)
    b.const(tmp, tt.i32, "42")
    b.term(TermKind.RETURN, value=tmp)
    src = emit_one(tt, b.build())
    assert "    _l0 = 42;\n" in src
    assert "return _l0;" in src


def test_branch_emits_if_goto():
    tt = TypeTable()
    b = FnBuilder("test", None, tt.i32)
    cond = b.new_temp(tt.bool)
    b.const(cond, tt.bool, "true")
    then_blk = b.new_block()
    else_blk = b.new_block()
    b.term(TermKind.BRANCH, value=cond, target=then_blk, else_target=else_blk)
    b.switch_to(then_blk)
    t1 = b.new_temp(tt.i32)
    b.const(t1, tt.i32, "1")
    b.term(TermKind.RETURN, value=t1)
    b.switch_to(else_blk)
    t2 = b.new_temp(tt.i32)
    b.const(t2, tt.i32, "2")
    b.term(TermKind.RETURN, value=t2)
    src = emit_one(tt, b.build())
    assert "if (_l0) goto block_1; else goto block_2;" in src
    assert "block_1:;" in src
    assert "block_2:;" in src


def test_goto_terminator():
    tt = TypeTable()
    b = FnBuilder("test", None, tt.unit)
    target = b.new_block()
    b.term(TermKind.GOTO, target=target)
    b.switch_to(target)
    tmp = b.new_temp(tt.unit)
    b.const(tmp, tt.unit, "()")
    b.term(TermKind.RETURN, value=tmp)
    src = emit_one(tt, b.build())
    assert "goto block_1;" in src


def test_call_emission():
    tt = TypeTable()
    b = FnBuilder("test", None, tt.i32)
    callee = b.new_temp(tt.unknown)
    b.const(callee, tt.unknown, "foo")
    arg = b.new_temp(tt.i32)
    b.const(arg, tt.i32, "1")
    dest = b.new_temp(tt.i32)
    b.add(Instr(InstrKind.CALL, dest=dest, callee=callee, args=[arg], type=tt.i32))
    b.term(TermKind.RETURN, value=dest)
    src = emit_one(tt, b.build())
    assert "_l2 = _l0(_l1);" in src


def test_direct_call_sanitizes_keyword_callee():
    tt = TypeTable()
    b = FnBuilder("test", None, tt.unit)
    callee = b.new_temp(tt.unknown)
    b.const(callee, tt.unknown, "Fuse_double")
    dest = b.new_temp(tt.unit)
    b.add(Instr(InstrKind.CALL, dest=dest, callee=callee, type=tt.unit))
    b.term(TermKind.RETURN, value=dest)
    src = emit_one(tt, b.build())
    assert "    Fuse_fuse_double();\n" in src
    assert "_l0 = Fuse_double" not in src


def test_field_read_emission():
    tt = TypeTable()
    sty = tt.intern_struct("m", "Pt", None)
    b = FnBuilder("test", None, tt.i32)
    obj = b.new_temp(sty)
    b.add(Instr(InstrKind.STRUCT_INIT, dest=obj, type=sty, field="Pt"))
    dest = b.new_temp(tt.i32)
    b.add(Instr(InstrKind.FIELD_READ, dest=dest, src=obj, field="x", type=tt.i32))
    b.term(TermKind.RETURN, value=dest)
    src = emit_one(tt, b.build())
    assert "_l1 = _l0.x;" in src


def test_binop_emission():
    tt = TypeTable()
    b = FnBuilder("test", None, tt.i32)
    a = b.new_temp(tt.i32)
    b.const(a, tt.i32, "1")
    bv = b.new_temp(tt.i32)
    b.const(bv, tt.i32, "2")
    c = b.new_temp(tt.i32)
    b.add(Instr(InstrKind.BIN_OP, dest=c, op="+", src=a, src2=bv, type=tt.i32))
    b.term(TermKind.RETURN, value=c)
    src = emit_one(tt, b.build())
    assert "_l2 = _l0 + _l1;" in src


def test_hello_world_output():
    tt = TypeTable()
    b = FnBuilder("main", None, tt.i32)
    ret = b.new_temp(tt.i32)
    b.const(ret, tt.i32, "0")
    b.term(TermKind.RETURN, value=ret)
    src = emit_one(tt, b.build())
    assert src.startswith("#include <stdint.h>\n")
    assert "int32_t main(void);" in src
    assert "int32_t main(void) {" in src
    assert "return _l0" in src


# --- destructors ---


def _drop_fn(tt, sty, name):
    b = FnBuilder("test", None, tt.unit)
    obj = b.new_local(name, sty)
    b.add(Instr(InstrKind.STRUCT_INIT, dest=obj, type=sty))
    b.add(Instr(InstrKind.DROP, src=obj, type=sty))
    tmp = b.new_temp(tt.unit)
    b.const(tmp, tt.unit, "()")
    b.term(TermKind.RETURN, value=tmp)
    return b.build()


def test_drop_with_drop_trait():
    tt = TypeTable()
    sty = tt.intern_struct("m", "Resource", None)
    src = emit_one(tt, _drop_fn(tt, sty, "r"), {sty: True})
    assert "Fuse_Resource__drop(&_l0)" in src


def test_drop_without_drop_trait():
    tt = TypeTable()
    sty = tt.intern_struct("m", "Plain", None)
    src = emit_one(tt, _drop_fn(tt, sty, "p"))
    assert "_drop(" not in src


def test_drop_unit_erased():
    tt = TypeTable()
    b = FnBuilder("test", None, tt.unit)
    u = b.new_temp(tt.unit)
    b.const(u, tt.unit, "()")
    b.add(Instr(InstrKind.DROP, src=u, type=tt.unit))
    b.term(TermKind.RETURN, value=u)
    src = emit_one(tt, b.build())
    assert "drop" not in src


# --- generics ---


def test_generic_function_not_emitted():
    tt = TypeTable()
    gp = tt.intern_generic_param("core.list", "T")
    params = [Local(id=0, name="x", type=gp)]
    b = FnBuilder("identity", params, gp)
    b.term(TermKind.RETURN, value=0)
    src = emit_one(tt, b.build())
    assert "identity" not in src
    assert "__T;" not in src
    assert "__T " not in src


def test_generic_struct_typedef_not_emitted():
    tt = TypeTable()
    gp = tt.intern_generic_param("core.list", "T")
    list_ty = tt.intern_struct("core.list", "List", [gp])
    tt.set_struct_fields(list_ty, ["items"], [gp])
    b = FnBuilder("entry", None, tt.unit)
    b.new_local("l", list_ty)
    tmp = b.new_temp(tt.unit)
    b.const(tmp, tt.unit, "()")
    b.term(TermKind.RETURN, value=tmp)
    src = emit_one(tt, b.build())
    assert "typedef struct Fuse_core_list__List" not in src
    assert "__T;" not in src


def test_specialization_takes_layout_from_template():
    tt = TypeTable()
    gp = tt.intern_generic_param("core.list", "T")
    template = tt.intern_struct("core.list", "List", [gp])
    tt.set_struct_fields(template, ["items"], [gp])
    spec = tt.intern_struct("core.list", "List", [tt.i32])
    b = FnBuilder("entry", None, tt.unit)
    b.new_local("l", spec)
    tmp = b.new_temp(tt.unit)
    b.const(tmp, tt.unit, "()")
    b.term(TermKind.RETURN, value=tmp)
    src = emit_one(tt, b.build())
    name = "Fuse_core_list__List__int32_t"
    assert f"typedef struct {name} {{ int32_t items; }} {name};" in src


# --- other type definitions and constants ---


def test_channel_type_emission():
    tt = TypeTable()
    chan_ty = tt.intern_channel(tt.i32)
    b = FnBuilder("test", None, tt.unit)
    ch = b.new_temp(chan_ty)
    b.const(ch, chan_ty, "0")
    tmp = b.new_temp(tt.unit)
    b.const(tmp, tt.unit, "()")
    b.term(TermKind.RETURN, value=tmp)
    src = emit_one(tt, b.build())
    assert "typedef struct { void* _impl;" in src
    assert "FuseChan_int32_t" in src


def test_named_struct_fields_typedef_and_init():
    tt = TypeTable()
    sty = tt.intern_struct("m", "Pt", None)
    tt.set_struct_fields(sty, ["x", "y"], [tt.i32, tt.i32])
    b = FnBuilder("test", None, sty)
    x = b.new_temp(tt.i32)
    b.const(x, tt.i32, "1")
    y = b.new_temp(tt.i32)
    b.const(y, tt.i32, "2")
    obj = b.new_temp(sty)
    b.add(Instr(InstrKind.STRUCT_INIT, dest=obj, type=sty, args=[x, y]))
    b.term(TermKind.RETURN, value=obj)
    src = emit_one(tt, b.build())
    assert "typedef struct Fuse_m__Pt { int32_t x; int32_t y; } Fuse_m__Pt;" in src
    assert "_l2 = (Fuse_m__Pt){.x = _l0, .y = _l1};" in src


def test_enum_without_fields_is_tag_only():
    tt = TypeTable()
    ety = tt.intern_enum("m", "E", None)
    b = FnBuilder("test", None, ety)
    v = b.new_temp(ety)
    b.add(Instr(InstrKind.ENUM_INIT, dest=v, type=ety, field="A"))
    b.term(TermKind.RETURN, value=v)
    src = emit_one(tt, b.build())
    assert "typedef struct Fuse_m__E { int _tag; } Fuse_m__E;" in src
    assert "_l0 = (Fuse_m__E){0}; /* A */" in src


def test_array_literal_and_typedef():
    tt = TypeTable()
    aty = tt.intern_array(tt.i32, 2)
    b = FnBuilder("test", None, aty)
    a = b.new_temp(tt.i32)
    b.const(a, tt.i32, "1")
    c = b.new_temp(tt.i32)
    b.const(c, tt.i32, "2")
    arr = b.new_temp(aty)
    b.add(Instr(InstrKind.TUPLE, dest=arr, type=aty, args=[a, c]))
    b.term(TermKind.RETURN, value=arr)
    src = emit_one(tt, b.build())
    assert "typedef struct { int32_t data[2]; } FuseArray_int32_t;" in src
    assert "_l2 = (FuseArray_int32_t){.data = {_l0, _l1}};" in src


def test_string_literal_constant():
    tt = TypeTable()
    sty = tt.intern_struct("", "String", None)
    b = FnBuilder("test", None, sty)
    s = b.new_temp(sty)
    b.const(s, sty, '"hi"')
    b.term(TermKind.RETURN, value=s)
    src = emit_one(tt, b.build())
    assert '_l0 = (Fuse_String){.data = (uint8_t*)"hi", .len = 2};' in src


def test_numeric_suffix_stripped_in_constant():
    tt = TypeTable()
    b = FnBuilder("test", None, tt.usize)
    v = b.new_temp(tt.usize)
    b.const(v, tt.usize, "5usize")
    b.term(TermKind.RETURN, value=v)
    src = emit_one(tt, b.build())
    assert "uintptr_t _l0;" in src
    assert "_l0 = 5;" in src


# --- dead-code elimination ---


def _unit_fn(name, tt, callee=None):
    b = FnBuilder(name, None, tt.unit)
    if callee is not None:
        c = b.new_temp(tt.unknown)
        b.const(c, tt.unknown, callee)
        d = b.new_temp(tt.unit)
        b.add(Instr(InstrKind.CALL, dest=d, callee=c, type=tt.unit))
    tmp = b.new_temp(tt.unit)
    b.const(tmp, tt.unit, "()")
    b.term(TermKind.RETURN, value=tmp)
    return b.build()


def test_only_functions_reachable_from_main_are_emitted():
    tt = TypeTable()
    fns = [
        _unit_fn("main", tt, "Fuse_helper"),
        _unit_fn("helper", tt),
        _unit_fn("orphan", tt),
    ]
    src = Emitter(tt).emit(fns)
    assert "void Fuse_helper(void) {" in src
    assert "    Fuse_helper();\n" in src
    assert "Fuse_orphan" not in src


def test_without_main_everything_is_emitted():
    tt = TypeTable()
    src = Emitter(tt).emit([_unit_fn("a", tt), _unit_fn("b", tt)])
    assert "void Fuse_a(void) {" in src
    assert "void Fuse_b(void) {" in src


def test_emit_is_deterministic():
    tt = TypeTable()
    sty = tt.intern_struct("m", "Point", None)
    fn = _drop_fn(tt, sty, "p")
    first = Emitter(tt).emit([fn])
    second = Emitter(tt).emit([fn])
    assert first == second