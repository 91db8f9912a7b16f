"""Encode resolved programs into a flat big-endian image of 16-bit instruction words."""

from __future__ import annotations

from typing import List, Mapping, Optional, Tuple, Union

from pageasm.diagnostics import DiagnosticEmitter, DiagnosticError, Partial, Span
from pageasm.directives import (
    IncbinContext,
    PAGE_SHIFT,
    encode_data_directive,
    incbin_bytes,
    page_error,
)
from pageasm.nodes import (
    AltCondition,
    CharArg,
    DirectiveStatement,
    Immediate,
    InstructionStatement,
    IntegerArg,
    LabelStatement,
    Program,
    Register,
    StdCondition,
    SymbolTable,
    encode_condition,
)
from pageasm.resolution import (
    InstructionLookup,
    ResolvedDirect,
    ResolvedInstruction,
    ResolvedLabel,
    ResolvedOperand,
    ResolvedPointer,
    Resolver,
)
from pageasm.spec import FormatKind, InstructionSpec, KindField, OperandField, PadField

PAGE_SIZE_BYTES = 128
INSTRUCTION_SIZE_BYTES = 2
WORD_BITS = 16

_CONTROL_FLOW = frozenset({"jmp", "cal", "bra"})


def _error(span: Span, message: str) -> DiagnosticError:
    return DiagnosticError([page_error(span, message)])


def _unsigned(value: int, bit_length: int, span: Span, message: str) -> int:
    if value < 0 or value > (1 << bit_length) - 1:
        raise _error(span, message)
    return value


def _signed(value: int, bit_length: int, span: Span, message: str) -> int:
    mask = (1 << bit_length) - 1
    if value >= 0:
        if value > mask:
            raise _error(span, message)
        return value
    if value < -(1 << (bit_length - 1)):
        raise _error(span, message)
    return value & mask


def _location_value(operand: ResolvedOperand, span: Span) -> int:
    if isinstance(operand, Immediate):
        return operand.value
    if isinstance(operand, ResolvedLabel):
        return operand.value
    if isinstance(operand, ResolvedDirect):
        return operand.value
    raise _error(span, "expected immediate, label, or absolute address during encoding")


def _control_flow_target(
    mnemonic: str, operand: ResolvedOperand, span: Span, bit_length: int
) -> int:
    target = _location_value(operand, span)
    if target < 0:
        raise _error(span, "control-flow target must be a non-negative address")
    if target % INSTRUCTION_SIZE_BYTES:
        raise _error(span, "control-flow target must be instruction-aligned")
    if mnemonic == "bra":
        slot = (target % PAGE_SIZE_BYTES) // INSTRUCTION_SIZE_BYTES
        return _unsigned(
            slot, bit_length, span, "branch target does not fit in the 6-bit page slot"
        )
    return _unsigned(
        target // INSTRUCTION_SIZE_BYTES,
        bit_length,
        span,
        "control-flow target does not fit target field width",
    )


def _encode_operand(
    mnemonic: str, field: OperandField, operand: ResolvedOperand, span: Span
) -> Tuple[int, int]:
    kind = field.format.kind

    if kind is FormatKind.REGISTER:
        if not isinstance(operand, Register):
            raise _error(span, "expected register operand during encoding")
        return _unsigned(operand.value, 3, span, "register does not fit in 3 bits"), 3

    if kind is FormatKind.CONDITION:
        if not isinstance(operand, (StdCondition, AltCondition)):
            raise _error(span, "expected condition operand during encoding")
        return encode_condition(operand), 3

    if kind is FormatKind.ADDRESS:
        if not isinstance(operand, (ResolvedDirect, ResolvedLabel)):
            raise _error(span, "expected absolute address during encoding")
        return _unsigned(operand.value, 8, span, "address does not fit in 8 bits"), 8

    if kind is FormatKind.POINTER:
        if not isinstance(operand, ResolvedPointer):
            raise _error(span, "expected pointer operand during encoding")
        if operand.offset != 0:
            raise _error(span, "pointer operand must not include an offset")
        return _unsigned(operand.register, 3, span, "pointer register does not fit"), 3

    if kind is FormatKind.OFFSET_POINTER:
        if not isinstance(operand, ResolvedPointer):
            raise _error(span, "expected indexed pointer operand during encoding")
        register = _unsigned(operand.register, 3, span, "pointer register does not fit")
        offset = _signed(operand.offset, 5, span, "pointer offset does not fit in 5 bits")
        return (register << 5) | offset, 8

    bit_length = field.format.width
    if mnemonic in _CONTROL_FLOW and field.operand_order == 0:
        return _control_flow_target(mnemonic, operand, span, bit_length), bit_length
    noun = "offset" if kind is FormatKind.OFFSET else "immediate"
    value = _location_value(operand, span)
    return (
        _signed(value, bit_length, span, f"{noun} does not fit target field width"),
        bit_length,
    )


class _Word:
    """Accumulates fields into a 16-bit word, most significant first."""

    def __init__(self, span: Span) -> None:
        self.span = span
        self.value = 0
        self.written = 0

    def push(self, bits: int, length: int) -> None:
        if self.written + length > WORD_BITS:
            raise _error(self.span, "instruction fields exceed 16 bits")
        shift = WORD_BITS - (self.written + length)
        self.value = (self.value | ((bits & 0xFFFF) << shift)) & 0xFFFF
        self.written += length


class Encoder:
    """Turns a program into its binary image, reporting every problem it meets."""

    def __init__(
        self,
        instructions: Union[InstructionLookup, Mapping[Tuple[str, int], InstructionSpec]],
        incbin: Optional[IncbinContext] = None,
    ) -> None:
        self._resolver = Resolver(instructions)
        self._incbin = incbin if incbin is not None else IncbinContext()

    def assemble(self, program: Program, symbols: SymbolTable) -> Partial[bytes]:
        """Encode every statement; failed statements are reported and skipped."""
        emitter = DiagnosticEmitter()
        image = bytearray()

        for statement in program.statements:
            if isinstance(statement, LabelStatement):
                continue
            if isinstance(statement, InstructionStatement):
                try:
                    resolved = self._resolver.resolve_instruction(statement, symbols)
                    word = self.encode_instruction(resolved, len(image))
                except DiagnosticError as error:
                    emitter.extend(error.diagnostics)
                    continue
                image.extend(word.to_bytes(2, "big"))
            elif isinstance(statement, DirectiveStatement):
                self._encode_directive(statement, image, emitter)

        return emitter.finish(bytes(image))

    def encode_instruction(self, instruction: ResolvedInstruction, address: int) -> int:
        """Return the 16-bit word for a resolved instruction at the given byte address."""
        span = instruction.span
        word = _Word(span)
        opcode = "".join(bit for bit in instruction.bits if bit in "01")
        word.push(int(opcode, 2) if opcode else 0, len(instruction.bits))

        for field in instruction.bitfields:
            if isinstance(field, OperandField):
                order = field.operand_order
                if not 0 <= order < len(instruction.operands):
                    raise _error(
                        span,
                        f"instruction `{instruction.mnemonic}` is missing operand {order}",
                    )
                bits, length = _encode_operand(
                    instruction.mnemonic, field, instruction.operands[order], span
                )
                word.push(bits, length)
            elif isinstance(field, KindField):
                kind = 0 if instruction.kind is None else instruction.kind
                _unsigned(kind, field.length, span, "instruction kind does not fit field width")
                word.push(kind, field.length)
            elif isinstance(field, PadField):
                bits = _signed(
                    field.data, field.length, span, "fixed pad value does not fit field width"
                )
                word.push(bits, field.length)

        if word.written != WORD_BITS:
            raise _error(
                span,
                f"instruction `{instruction.mnemonic}` encoded to {word.written} bits instead of 16",
            )
        return word.value

    def _encode_directive(
        self, directive: DirectiveStatement, image: bytearray, emitter: DiagnosticEmitter
    ) -> None:
        if encode_data_directive(directive, image, emitter):
            return

        name = directive.name
        if name == "page":
            target = _directive_address(directive, "page", emitter)
            if target is not None:
                _seek(image, target << PAGE_SHIFT, directive, emitter)
        elif name == "org":
            target = _directive_address(directive, "origin", emitter)
            if target is not None:
                _seek(image, target, directive, emitter)
        elif name == "incbin":
            try:
                image.extend(incbin_bytes(directive, self._incbin))
            except DiagnosticError as error:
                emitter.extend(error.diagnostics)
        else:
            emitter.push(page_error(directive.span, f"directive `.{name}` cannot be encoded"))


def _directive_address(
    directive: DirectiveStatement, label: str, emitter: DiagnosticEmitter
) -> Optional[int]:
    first = directive.args[0] if directive.args else None
    if not isinstance(first, (IntegerArg, CharArg)):
        emitter.push(
            page_error(directive.span, f"directive `.{directive.name}` expects an integer argument")
        )
        return None
    if first.value < 0:
        emitter.push(page_error(directive.span, f"{label} must be non-negative"))
        return None
    return first.value


def _seek(
    image: bytearray, target: int, directive: DirectiveStatement, emitter: DiagnosticEmitter
) -> None:
    if target < len(image):
        emitter.push(
            page_error(
                directive.span, f"directive `.{directive.name}` may not move encoding backward"
            )
        )
        return
    image.extend(bytes(target - len(image)))


__all__: List[str] = ["Encoder", "PAGE_SIZE_BYTES", "INSTRUCTION_SIZE_BYTES"]