import pytest

from pageasm.diagnostics import Span
from pageasm.nodes import (
    AltCondition,
    DirectiveStatement,
    IndexedAddress,
    InstructionStatement,
    LabelStatement,
    Program,
    Register,
    StdCondition,
    Symbol,
    SymbolTable,
    encode_condition,
)


def test_standard_conditions_cover_every_code_once():
    assert sorted(encode_condition(c) for c in StdCondition) == list(range(8))


def test_alternate_conditions_cover_every_code_once():
    assert sorted(encode_condition(c) for c in AltCondition) == list(range(8))


def test_pinned_condition_encodings():
    assert encode_condition(StdCondition.EQUAL) == 0b000
    assert encode_condition(AltCondition.ODD) == 0b110
    assert encode_condition(StdCondition.ALWAYS) == encode_condition(AltCondition.ALWAYS)


def test_encode_condition_rejects_other_values():
    with pytest.raises(TypeError):
        encode_condition(Register.R1)


def test_register_numbers_follow_names():
    table = SymbolTable([Symbol(r.name, r.number) for r in Register])
    assert len(table) == 8
    assert [table.get(f"R{n}").value for n in range(8)] == list(range(8))


def test_standard_and_alternate_conditions_share_codes_but_differ():
    assert encode_condition(StdCondition.EQUAL) == encode_condition(AltCondition.OVERFLOW) == 0
    assert StdCondition.EQUAL != AltCondition.OVERFLOW


def test_indexed_address_default_offset():
    assert IndexedAddress(Register.R3).offset is None
    assert IndexedAddress(Register.R3, -4).offset == -4


def test_symbol_table_define_and_get():
    span = Span(0, 0, 5)
    table = SymbolTable()
    table.define(Symbol("start", 0, span))
    table.define(Symbol("done", 0x80))
    assert table.get("start") == Symbol("start", 0, span)
    assert table.get("done").value == 0x80
    assert table.get("missing") is None
    assert "start" in table
    assert len(table) == 2
    assert [s.name for s in table] == ["start", "done"]


def test_symbol_table_rejects_duplicates():
    table = SymbolTable([Symbol("start", 0)])
    with pytest.raises(ValueError, match="duplicate label `start`"):
        table.define(Symbol("start", 2))
    assert table.get("start").value == 0


def test_program_iterates_statements_in_order():
    statements = [
        LabelStatement("start"),
        InstructionStatement("halt"),
        DirectiveStatement("page", []),
    ]
    program = Program(statements)
    assert list(program) == statements
    assert InstructionStatement("halt").operands == []