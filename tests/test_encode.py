import pytest

from pageasm.diagnostics import DiagnosticError, Span
from pageasm.directives import IncbinContext
from pageasm.encode import Encoder
from pageasm.nodes import (
    AbsoluteAddress,
    CharArg,
    DirectiveStatement,
    Immediate,
    IndexedAddress,
    InstructionStatement,
    IntegerArg,
    LabelRef,
    LabelStatement,
    Program,
    Register,
    StdCondition,
    StringArg,
    Symbol,
    SymbolTable,
)
from pageasm.resolution import ResolvedInstruction, ResolvedPointer
from pageasm.spec import FormatKind, InstructionSpec, KindField, OpFormat, OperandField, PadField


def op(order, kind, bits=None):
    return OperandField(order, OpFormat(kind, bits))


ISA = {
    ("halt", 0): InstructionSpec("00000001", (PadField(0, 8),), "halt"),
    ("addi", 2): InstructionSpec(
        "10010", (op(0, FormatKind.REGISTER), op(1, FormatKind.IMMEDIATE, 8)), "addi"
    ),
    ("jmp", 1): InstructionSpec("0010", (op(0, FormatKind.IMMEDIATE, 12),), "jmp"),
    ("bra", 2): InstructionSpec(
        "00101",
        (op(0, FormatKind.OFFSET, 6), op(1, FormatKind.CONDITION), PadField(0, 2)),
        "bra",
    ),
    ("ret", 1): InstructionSpec(
        "0111", (PadField(0, 6), op(0, FormatKind.CONDITION), KindField(3)), "crets", 1
    ),
    ("ret", 2): InstructionSpec(
        "0111",
        (op(0, FormatKind.IMMEDIATE, 6), op(1, FormatKind.CONDITION), KindField(3)),
        "crets",
        1,
    ),
    ("msx", 2): InstructionSpec(
        "00011", (op(0, FormatKind.REGISTER), op(1, FormatKind.OFFSET_POINTER)), "msx"
    ),
    ("ld", 2): InstructionSpec(
        "0100000",
        (op(0, FormatKind.REGISTER), op(1, FormatKind.POINTER), PadField(0, 3)),
        "ld",
    ),
    ("ldd", 2): InstructionSpec(
        "01010", (op(0, FormatKind.REGISTER), op(1, FormatKind.ADDRESS)), "ldd"
    ),
}

HALT = InstructionStatement("halt")


def assemble(statements, symbols=(), incbin=None):
    encoder = Encoder(ISA, incbin)
    return encoder.assemble(Program(list(statements)), SymbolTable(symbols))


def directive(name, *args):
    return DirectiveStatement(name, list(args))


def test_encodes_addi_big_endian():
    image = assemble([InstructionStatement("addi", [Register.R1, Immediate(0x0F)])]).unwrap()
    assert image == bytes([0x91, 0x0F])


def test_encodes_jump_targets_using_instruction_indices():
    statements = [
        LabelStatement("start"),
        HALT,
        LabelStatement("after"),
        InstructionStatement("jmp", [LabelRef("after")]),
    ]
    image = assemble(statements, [Symbol("start", 0), Symbol("after", 2)]).unwrap()
    assert image == bytes([0x01, 0x00, 0x20, 0x01])


def test_encodes_branch_targets_as_page_slots():
    statements = [
        directive("page", IntegerArg(0)),
        LabelStatement("start"),
        HALT,
        InstructionStatement("bra", [LabelRef("start"), StdCondition.EQUAL]),
    ]
    image = assemble(statements, [Symbol("start", 0)]).unwrap()
    assert image == bytes([0x01, 0x00, 0x28, 0x00])


def test_encodes_layout_and_data_directives_into_flat_image():
    statements = [
        directive("page", IntegerArg(1)),
        HALT,
        directive("org", IntegerArg(0x0084)),
        directive("bytes", IntegerArg(0xAA), CharArg(ord("B"))),
        directive("fill", IntegerArg(2), IntegerArg(0x00)),
        directive("string", StringArg("hi")),
        directive("cstring", StringArg("!")),
    ]
    image = assemble(statements).unwrap()
    assert len(image) == 0x008C
    assert image[0x0080:0x0082] == bytes([0x01, 0x00])
    assert image[0x0082:0x0084] == bytes([0x00, 0x00])
    assert image[0x0084:0x008C] == bytes([0xAA, ord("B"), 0x00, 0x00, ord("h"), ord("i"), ord("!"), 0x00])


def test_page_directive_zero_fills_until_page_start():
    image = assemble([HALT, directive("page", IntegerArg(1)), HALT]).unwrap()
    assert len(image) == 0x0082
    assert image[0x0000:0x0002] == bytes([0x01, 0x00])
    assert all(byte == 0 for byte in image[0x0002:0x0080])
    assert image[0x0080:0x0082] == bytes([0x01, 0x00])


def test_reports_range_errors_and_continues_encoding():
    assembled = assemble([InstructionStatement("addi", [Register.R1, Immediate(0x1FF)]), HALT])
    assert len(assembled.diagnostics) == 1
    assert assembled.diagnostics[0].message == "immediate does not fit target field width"
    assert assembled.value == bytes([0x01, 0x00])


def test_rejects_zero_directive_as_unsupported():
    assembled = assemble([directive("zero", IntegerArg(2))])
    assert len(assembled.diagnostics) == 1
    assert assembled.diagnostics[0].message == "directive `.zero` cannot be encoded"


def test_encodes_conditional_ret_shorthand_like_long_form():
    short = assemble([InstructionStatement("ret", [StdCondition.EQUAL])]).unwrap()
    long = assemble([InstructionStatement("ret", [Immediate(0), StdCondition.EQUAL])]).unwrap()
    assert short == long
    assert len(short) == 2


def test_encodes_incbin_bytes_into_output_image(tmp_path):
    path = tmp_path / "encode.bin"
    path.write_bytes(bytes([0xDE, 0xAD, 0xBE, 0xEF]))
    image = assemble([directive("incbin", StringArg(str(path))), HALT]).unwrap()
    assert image == bytes([0xDE, 0xAD, 0xBE, 0xEF, 0x01, 0x00])


def test_incbin_relative_to_base_dir(tmp_path):
    payload = bytes(range(5))
    (tmp_path / "asset.bin").write_bytes(payload)
    image = assemble(
        [directive("incbin", StringArg("asset.bin"))], incbin=IncbinContext(tmp_path)
    ).unwrap()
    assert image == payload


def test_rejects_relative_incbin_paths_without_base_dir():
    assembled = assemble([directive("incbin", StringArg("asset.bin"))])
    assert len(assembled.diagnostics) == 1
    assert (
        assembled.diagnostics[0].message
        == "directive `.incbin` requires an absolute path when reading source from stdin"
    )


def test_unknown_label_is_reported_and_skipped():
    assembled = assemble([InstructionStatement("jmp", [LabelRef("missing")]), HALT])
    assert [d.message for d in assembled.diagnostics] == ["unknown label `missing`"]
    assert assembled.value == bytes([0x01, 0x00])
    with pytest.raises(DiagnosticError):
        assembled.unwrap()


def test_org_may_not_move_backward():
    assembled = assemble([HALT, HALT, HALT, directive("org", IntegerArg(4))])
    assert assembled.diagnostics[0].message == "directive `.org` may not move encoding backward"
    assert len(assembled.value) == 6


def test_negative_page_and_non_integer_org():
    assembled = assemble([directive("page", IntegerArg(-1)), directive("org", StringArg("x"))])
    messages = [d.message for d in assembled.diagnostics]
    assert messages == ["page must be non-negative", "directive `.org` expects an integer argument"]
    assert assembled.value == b""


def test_offset_pointer_round_trips_register_and_offset():
    image = assemble(
        [InstructionStatement("msx", [Register.R2, IndexedAddress(Register.R3, -4)])]
    ).unwrap()
    word = int.from_bytes(image, "big")
    assert (word >> 8) & 0b111 == Register.R2.value
    assert (word >> 5) & 0b111 == Register.R3.value
    assert ((word & 0x1F) ^ 0x10) - 0x10 == -4


def test_pointer_with_offset_is_rejected():
    assembled = assemble([InstructionStatement("ld", [Register.R1, IndexedAddress(Register.R2, 1)])])
    assert assembled.diagnostics[0].message == "pointer operand must not include an offset"


def test_absolute_address_out_of_range():
    assembled = assemble([InstructionStatement("ldd", [Register.R1, AbsoluteAddress(0x1FF)])])
    assert assembled.diagnostics[0].message == "address does not fit in 8 bits"
    assert assembled.value == b""


def test_control_flow_target_errors():
    encoder = Encoder(ISA)
    symbols = SymbolTable([Symbol("odd", 3)])
    assembled = encoder.assemble(
        Program(
            [
                InstructionStatement("jmp", [Immediate(-2)]),
                InstructionStatement("bra", [LabelRef("odd"), StdCondition.ALWAYS]),
            ]
        ),
        symbols,
    )
    assert [d.message for d in assembled.diagnostics] == [
        "control-flow target must be a non-negative address",
        "control-flow target must be instruction-aligned",
    ]


def resolved(bits, bitfields, operands=(), kind=None, mnemonic="test"):
    return ResolvedInstruction(bits, tuple(bitfields), mnemonic, kind, tuple(operands), Span(0, 0, 4))


def test_encode_instruction_missing_operand():
    instruction = resolved("0000000000000", [op(0, FormatKind.REGISTER)])
    with pytest.raises(DiagnosticError) as caught:
        Encoder(ISA).encode_instruction(instruction, 0)
    assert caught.value.diagnostics[0].message == "instruction `test` is missing operand 0"


def test_encode_instruction_short_word():
    instruction = resolved("0000", [PadField(0, 8)])
    with pytest.raises(DiagnosticError) as caught:
        Encoder(ISA).encode_instruction(instruction, 0)
    assert caught.value.diagnostics[0].message == "instruction `test` encoded to 12 bits instead of 16"


def test_encode_instruction_fields_overflow():
    instruction = resolved("0000000000000000", [PadField(0, 1)])
    with pytest.raises(DiagnosticError) as caught:
        Encoder(ISA).encode_instruction(instruction, 0)
    assert caught.value.diagnostics[0].message == "instruction fields exceed 16 bits"


def test_encode_instruction_kind_too_wide():
    instruction = resolved("000000000000000", [KindField(1)], kind=3)
    with pytest.raises(DiagnosticError) as caught:
        Encoder(ISA).encode_instruction(instruction, 0)
    assert caught.value.diagnostics[0].message == "instruction kind does not fit field width"


def test_encode_instruction_pointer_register_in_low_bits():
    instruction = resolved("0000000000000", [op(0, FormatKind.POINTER)], [ResolvedPointer(5)])
    assert Encoder(ISA).encode_instruction(instruction, 0) == 5
    with pytest.raises(DiagnosticError):
        Encoder(ISA).encode_instruction(
            resolved("0000000000000", [op(0, FormatKind.POINTER)], [Immediate(1)]), 0
        )