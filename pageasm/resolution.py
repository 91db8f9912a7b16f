"""Resolve parsed instructions against an instruction set and a symbol table."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, List, Mapping, Optional, Tuple, Union

from pageasm.diagnostics import (
    CodeKind,
    Diagnostic,
    DiagnosticCode,
    DiagnosticEmitter,
    DiagnosticError,
    DiagnosticLabel,
    Partial,
    Span,
)
from pageasm.nodes import (
    AbsoluteAddress,
    AltCondition,
    Immediate,
    IndexedAddress,
    InstructionStatement,
    LabelRef,
    Operand,
    Program,
    Register,
    StdCondition,
    SymbolTable,
)
from pageasm.spec import Bitfield, InstructionSpec

InstructionLookup = Callable[[str, int], Optional[InstructionSpec]]


@dataclass(frozen=True)
class ResolvedLabel:
    """A label operand replaced by the symbol's name and address."""

    name: str
    value: int


@dataclass(frozen=True)
class ResolvedPointer:
    """A pointer through a register number with a signed offset."""

    register: int
    offset: int = 0


@dataclass(frozen=True)
class ResolvedDirect:
    """An absolute address."""

    value: int


ResolvedOperand = Union[
    Register, Immediate, ResolvedDirect, ResolvedPointer, StdCondition, AltCondition, ResolvedLabel
]


@dataclass(frozen=True)
class ResolvedInstruction:
    """An instruction matched to its encoding, operands in field order."""

    bits: str
    bitfields: Tuple[Bitfield, ...]
    mnemonic: str
    kind: Optional[int]
    operands: Tuple[ResolvedOperand, ...]
    span: Span


def _invalid_operand(message: str, span: Span, label: str) -> DiagnosticError:
    diagnostic = Diagnostic.from_code(DiagnosticCode(CodeKind.INVALID_OPERAND, message)).with_label(
        DiagnosticLabel(span, label)
    )
    return DiagnosticError([diagnostic])


class Resolver:
    """Maps instruction statements to specifications and resolves their operands.

    The instruction set is given either as a callable taking a mnemonic and an
    operand count, or as a mapping keyed by (mnemonic, operand count).
    """

    def __init__(
        self,
        instructions: Union[InstructionLookup, Mapping[Tuple[str, int], InstructionSpec]],
    ) -> None:
        if isinstance(instructions, Mapping):
            table = instructions
            self._lookup: InstructionLookup = lambda mnemonic, count: table.get((mnemonic, count))
        else:
            self._lookup = instructions

    def resolve_program(self, program: Program, symbols: SymbolTable) -> Partial[List[ResolvedInstruction]]:
        """Resolve every instruction, collecting a diagnostic for each that fails."""
        emitter = DiagnosticEmitter()
        resolved: List[ResolvedInstruction] = []
        for statement in program.statements:
            if not isinstance(statement, InstructionStatement):
                continue
            try:
                resolved.append(self.resolve_instruction(statement, symbols))
            except DiagnosticError as error:
                emitter.extend(error.diagnostics)
        return emitter.finish(resolved)

    def resolve_instruction(
        self, instruction: InstructionStatement, symbols: SymbolTable
    ) -> ResolvedInstruction:
        """Resolve one instruction; raise DiagnosticError if it cannot be."""
        mnemonic = instruction.mnemonic
        spec = self._lookup(mnemonic, len(instruction.operands))
        if spec is None:
            raise _invalid_operand(
                f"unknown instruction `{mnemonic}`",
                instruction.span,
                f"`{mnemonic}` is not a known instruction",
            )

        def mapping_error() -> DiagnosticError:
            return _invalid_operand(
                f"instruction `{mnemonic}` has an invalid operand mapping",
                instruction.span,
                "instruction operands could not be resolved",
            )

        slots: List[Optional[ResolvedOperand]] = [None] * spec.operand_count()
        for operand, field in zip(instruction.operands, spec.operand_formats()):
            if not 0 <= field.operand_order < len(slots):
                raise mapping_error()
            slots[field.operand_order] = self._resolve_operand(operand, instruction.span, symbols)

        if any(slot is None for slot in slots):
            raise mapping_error()

        return ResolvedInstruction(
            bits=spec.bits,
            bitfields=spec.bitfields,
            mnemonic=spec.resolved_mnemonic,
            kind=spec.kind,
            operands=tuple(slots),  # type: ignore[arg-type]
            span=instruction.span,
        )

    @staticmethod
    def _resolve_operand(operand: Operand, span: Span, symbols: SymbolTable) -> ResolvedOperand:
        if isinstance(operand, (Register, Immediate, StdCondition, AltCondition)):
            return operand
        if isinstance(operand, AbsoluteAddress):
            return ResolvedDirect(operand.value)
        if isinstance(operand, IndexedAddress):
            return ResolvedPointer(operand.base.value, operand.offset or 0)
        if isinstance(operand, LabelRef):
            symbol = symbols.get(operand.name)
            if symbol is None:
                diagnostic = Diagnostic.from_code(
                    DiagnosticCode(CodeKind.UNEXPECTED_TOKEN, f"unknown label `{operand.name}`")
                ).with_label(DiagnosticLabel(span, f"`{operand.name}` is not defined"))
                raise DiagnosticError([diagnostic])
            return ResolvedLabel(symbol.name, symbol.value)
        raise TypeError(f"not an operand: {operand!r}")