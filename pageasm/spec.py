"""Instruction encoding specifications: opcode bits and the fields that follow them."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Iterator, Optional, Tuple, Union


class FormatKind(enum.Enum):
    REGISTER = "register"
    CONDITION = "condition"
    ADDRESS = "address"
    POINTER = "pointer"
    OFFSET_POINTER = "offset_pointer"
    OFFSET = "offset"
    IMMEDIATE = "immediate"


_FIXED_WIDTHS = {
    FormatKind.REGISTER: 3,
    FormatKind.CONDITION: 3,
    FormatKind.POINTER: 3,
    FormatKind.ADDRESS: 8,
    FormatKind.OFFSET_POINTER: 8,
}


@dataclass(frozen=True)
class OpFormat:
    """How one operand is laid out; offsets and immediates carry their own width."""

    kind: FormatKind
    bit_length: Optional[int] = None

    def __post_init__(self) -> None:
        sized = self.kind in (FormatKind.OFFSET, FormatKind.IMMEDIATE)
        if sized and (self.bit_length is None or self.bit_length <= 0):
            raise ValueError(f"{self.kind.value} format needs a positive bit length")
        if not sized and self.bit_length is not None:
            raise ValueError(f"{self.kind.value} format has a fixed width")

    @property
    def width(self) -> int:
        if self.bit_length is not None:
            return self.bit_length
        return _FIXED_WIDTHS[self.kind]


@dataclass(frozen=True)
class OperandField:
    """A field filled from the source operand at operand_order."""

    operand_order: int
    format: OpFormat

    @property
    def width(self) -> int:
        return self.format.width


@dataclass(frozen=True)
class KindField:
    """A field holding the instruction's kind value."""

    length: int

    @property
    def width(self) -> int:
        return self.length


@dataclass(frozen=True)
class PadField:
    """A field holding a fixed value."""

    data: int
    length: int

    @property
    def width(self) -> int:
        return self.length


Bitfield = Union[OperandField, KindField, PadField]


@dataclass(frozen=True)
class InstructionSpec:
    """Opcode bits, the fields after them, and the canonical mnemonic and kind."""

    bits: str
    bitfields: Tuple[Bitfield, ...]
    resolved_mnemonic: str
    kind: Optional[int] = None

    def __post_init__(self) -> None:
        if any(bit not in "01" for bit in self.bits):
            raise ValueError(f"opcode bits must be binary digits: {self.bits!r}")
        object.__setattr__(self, "bitfields", tuple(self.bitfields))

    def operand_formats(self) -> Iterator[OperandField]:
        """Yield the operand fields in layout order."""
        return (f for f in self.bitfields if isinstance(f, OperandField))

    def operand_count(self) -> int:
        return sum(1 for _ in self.operand_formats())

    @property
    def width(self) -> int:
        return len(self.bits) + sum(f.width for f in self.bitfields)