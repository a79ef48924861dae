# fusec

The back end of a compiler for the Fuse language, written as a plain
Python library with no third-party dependencies.

It provides:

- **Diagnostics** (`fusec.diagnostics`, `fusec.render`, `fusec.color`):
  `Severity`, `Pos`, `Span` and `Diagnostic`, with `errorf` to build an
  error. `render_text` and `render_text_color` show the diagnostic with
  the offending source line and a caret underline; `render_json` writes
  an indented JSON array; `diag_summary` gives a line such as
  "2 errors, 1 warning". `use_color` honours `NO_COLOR` and
  `FORCE_COLOR` and otherwise colours only terminals.
- **Documentation extraction** (`fusec.docgen`): `extract` and
  `extract_public` collect `fn`, `struct`, `enum`, `trait`, `impl`,
  `const`, `type` and `extern fn` items together with their `///` doc
  comments as `DocItem` values; `render_markdown` groups them by kind
  into Markdown.
- **An intermediate representation** (`fusec.model`): a `TypeTable`
  that interns types (primitives, structs, enums, tuples, borrows,
  pointers, slices, arrays, channels, generic parameters) plus
  `Function`, `Block`, `Instr`, `Terminator` and `Local`.
- **Name mangling** (`fusec.mangle`): `sanitize_ident`, `mangle_name`,
  `mangle_type`, `mangle_tuple_name` and `drop_fn_name` give stable C
  identifiers; C keywords are escaped and items from different modules
  do not collide.
- **Code generation** (`fusec.emit`, `fusec.native`, `fusec.backend`):
  `Emitter` produces a C11 translation unit, emitting type definitions
  before use, erasing unit values, skipping generic templates and, when
  a `main` is present, dropping functions not reachable from it.
  `NativeBackend` produces a simplified x86-64 assembly listing.
  `new_backend(BackendConfig(...))` picks `"native"` or, by default,
  the C11 backend; both backends' `emit` return bytes.

## Installation

```
pip install .
```

To include the test dependencies:

```
pip install .[test]
```

## Example

```python
from fusec.diagnostics import Pos, Span, errorf
from fusec.render import render_text, render_json

src = b"fn main() {\n  let x = ;\n}\n"
diag = errorf(
    Span("test.fuse", Pos(line=2, col=11), Pos(line=2, col=12)),
    "expected expression",
)
print(render_text([diag], {"test.fuse": src}))
print(render_json([diag]))
```

Generating C from a function:

```python
from fusec.model import TypeTable, Function, Block, Instr, InstrKind, Terminator, TermKind, Local
from fusec.backend import BackendConfig, new_backend

types = TypeTable()
fn = Function(
    name="main",
    params=[],
    return_type=types.i32,
    locals=[Local(0, "", types.i32)],
    blocks=[Block(0, [Instr(InstrKind.CONST, dest=0, type=types.i32, value="0")],
                  Terminator(TermKind.RETURN, value=0))],
)
backend = new_backend(BackendConfig(target="c11", types=types))
print(backend.emit([fn]).decode())
```

## What it does not do

This package is a library only and has no command-line tool. It does
not lex, parse, resolve or type-check Fuse source: code generation
starts from functions already built in `fusec.model`. It does not find
or load standard-library sources, does not locate the runtime library,
and does not invoke a C compiler or assembler on what it generates.

## Running the tests

```
pytest
```