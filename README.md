# pageasm

`pageasm` is the back end of an assembler for a small 16-bit instruction set.
Its code memory is split into 128-byte pages of 64 two-byte instructions. It
works on a program that has already been parsed into syntax nodes, and it
does three jobs:

- **Resolution** (`pageasm.resolution.Resolver`): it looks up each
  instruction by mnemonic and operand count in an instruction set you supply,
  puts the operands in field order, and replaces label references with their
  addresses from a `SymbolTable`.
- **Page checking** (`pageasm.page_checker.PageChecker`): it reports
  instructions and data that run past the end of the current `.page`. It also
  reports `bra` branches whose target lies in another page. Those reports
  carry a label on the branch and a secondary label on the target label.
- **Encoding** (`pageasm.encode.Encoder`): it produces a flat image of
  big-endian 16-bit words. The image covers instructions, `.page` and `.org`
  layout, the data directives `.bytes`, `.fill`, `.string` and `.cstring`,
  and `.incbin`.

## Building a program

Programs are built from the dataclasses in `pageasm.nodes`, and instruction
encodings from the classes in `pageasm.spec`:

- `Program` holds a list of `LabelStatement`, `InstructionStatement` and
  `DirectiveStatement` values.
- Operands are a `Register`, an `Immediate`, an `AbsoluteAddress`, an
  `IndexedAddress`, a `StdCondition` or `AltCondition`, or a `LabelRef`.
- Directive arguments are an `IntegerArg`, a `CharArg`, an `IdentifierArg`
  or a `StringArg`.
- `InstructionSpec` gives the opcode bits, the fields that follow them
  (`OperandField`, `KindField`, `PadField`), the canonical mnemonic and an
  optional kind value.

The instruction set is given either as a mapping keyed by
`(mnemonic, operand count)` or as a callable that takes those two values and
returns an `InstructionSpec` or `None`.

```python
from pageasm.encode import Encoder
from pageasm.nodes import (
    Immediate, InstructionStatement, LabelStatement, Program, Register,
    Symbol, SymbolTable,
)
from pageasm.spec import FormatKind, InstructionSpec, OpFormat, OperandField

instructions = {
    ("addi", 2): InstructionSpec(
        "10010",
        (
            OperandField(0, OpFormat(FormatKind.REGISTER)),
            OperandField(1, OpFormat(FormatKind.IMMEDIATE, 8)),
        ),
        "addi",
    ),
    ("halt", 0): InstructionSpec("0000000100000000", (), "halt"),
}

program = Program([
    LabelStatement("start"),
    InstructionStatement("addi", [Register.R1, Immediate(0x0F)]),
    InstructionStatement("halt"),
])
symbols = SymbolTable([Symbol("start", 0)])

result = Encoder(instructions).assemble(program, symbols)
assert result.unwrap() == bytes([0x91, 0x0F, 0x01, 0x00])
```

`PageChecker(instructions).analyze(program, symbols)` walks the same
program and returns a `Partial[None]` with any page problems.

## Encoding rules

- Fields are packed most significant first. Every instruction must fill
  exactly 16 bits.
- Signed fields (immediates, offsets, pad values, pointer offsets) accept
  values from the negative minimum of their width up to the all-ones
  unsigned maximum.
- For `jmp` and `cal`, the first operand is encoded as an instruction index,
  which is the byte address divided by two. For `bra`, it is encoded as the
  slot within its 128-byte page. Targets must be non-negative and even.
- `.page n` moves to byte `n * 128` and `.org a` moves to byte `a`. Neither
  may move backward, and the gap is zero-filled.
- `.zero` is not encoded. The page checker reports it as no longer supported.

## Errors

Problems are collected as `Diagnostic` objects, so every problem in a run is
reported and not only the first. `Encoder.assemble`,
`Resolver.resolve_program` and `PageChecker.analyze` each return a `Partial`.
A `Partial` carries the value that could still be produced, together with
the diagnostics found along the way. `Partial.unwrap()` returns the value
when there were no diagnostics. Otherwise it raises `DiagnosticError`, whose
`diagnostics` attribute lists them.

Single-item operations raise `DiagnosticError` directly. These are
`Resolver.resolve_instruction`, `Encoder.encode_instruction` and the helpers
in `pageasm.directives`, such as `directive_data_len`, `incbin_bytes` and
`validate_incbin`.

```python
result = Encoder(instructions).assemble(program, symbols)
if result.has_errors():
    for diagnostic in result.diagnostics:
        print(diagnostic.code.code(), diagnostic.message)
```

## Printing diagnostics

`pageasm.printer.render_diagnostics(path, source, diagnostics)` returns a
report as a string. Label spans are offsets into `source`, and lines may end
in `\n`, `\r\n` or `\r`:

```python
from pageasm.diagnostics import (
    CodeKind, Diagnostic, DiagnosticCode, DiagnosticLabel, Span,
)
from pageasm.printer import render_diagnostics

diagnostic = Diagnostic.from_code(
    DiagnosticCode(CodeKind.UNEXPECTED_TOKEN, "unknown label `done`")
).with_label(DiagnosticLabel(Span(0, 4, 8), "`done` is not defined"))

print(render_diagnostics("prog.asm", "bra done, ?equal\n", [diagnostic]))
```

```
error[E006]: unknown label `done`
  --> prog.asm [1:5]
1 | bra done, ?equal
  |     ^^^^ `done` is not defined
```

Primary labels are underlined with `^` and secondary labels with `-`. Lines
that are not adjacent are separated by `...`.
`print_diagnostics(stream, path, source, diagnostics)` writes the same report
to any text stream.

## Including files

`.incbin` paths that are not absolute are resolved against the `base_dir` of
an `IncbinContext`. `IncbinContext.from_input_path(path)` builds one from the
input file's directory. Without a base directory, for example when the source
was read from standard input, relative paths are rejected. Pass the context
to `Encoder` and `PageChecker` as their `incbin` argument.

## What this package does not do

- It has no lexer, preprocessor or parser. Programs must be built from
  `pageasm.nodes` values.
- It ships no instruction table. The instruction set, including any aliases
  or short forms, is supplied by the caller as `InstructionSpec` values.
- It does not compute label addresses. The caller fills the `SymbolTable`.
- It has no command-line program and writes no output files. `assemble`
  returns the image as `bytes`.

## Development

```
pip install -e .[test]
pytest
```