"""Syntax nodes for assembled programs: registers, conditions, operands, statements, symbols."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Optional, Union

from pageasm.diagnostics import Span

NO_SPAN = Span(0, 0, 0)


class Register(enum.Enum):
    """The eight general-purpose registers."""

    R0 = 0
    R1 = 1
    R2 = 2
    R3 = 3
    R4 = 4
    R5 = 5
    R6 = 6
    R7 = 7

    @property
    def number(self) -> int:
        return self.value


class StdCondition(enum.Enum):
    """Standard condition codes, valued by their 3-bit encoding."""

    EQUAL = 0b000
    NOT_EQUAL = 0b001
    LOWER = 0b010
    HIGHER = 0b011
    LOWER_SAME = 0b100
    HIGHER_SAME = 0b101
    EVEN = 0b110
    ALWAYS = 0b111


class AltCondition(enum.Enum):
    """Alternate condition codes, valued by their 3-bit encoding."""

    OVERFLOW = 0b000
    NO_OVERFLOW = 0b001
    LESS = 0b010
    GREATER = 0b011
    LESS_EQUAL = 0b100
    GREATER_EQUAL = 0b101
    ODD = 0b110
    ALWAYS = 0b111


Condition = Union[StdCondition, AltCondition]


def encode_condition(condition: Condition) -> int:
    """Return the 3-bit field value of a standard or alternate condition."""
    if isinstance(condition, (StdCondition, AltCondition)):
        return condition.value
    raise TypeError(f"not a condition: {condition!r}")


@dataclass(frozen=True)
class Immediate:
    value: int


@dataclass(frozen=True)
class AbsoluteAddress:
    value: int


@dataclass(frozen=True)
class IndexedAddress:
    """A pointer through a base register with an optional signed offset."""

    base: Register
    offset: Optional[int] = None


@dataclass(frozen=True)
class LabelRef:
    name: str


Operand = Union[Register, Immediate, AbsoluteAddress, IndexedAddress, StdCondition, AltCondition, LabelRef]


@dataclass(frozen=True)
class IntegerArg:
    value: int
    raw: Optional[str] = None


@dataclass(frozen=True)
class CharArg:
    value: int


@dataclass(frozen=True)
class IdentifierArg:
    name: str


@dataclass(frozen=True)
class StringArg:
    value: str


DirectiveArg = Union[IntegerArg, CharArg, IdentifierArg, StringArg]


@dataclass
class LabelStatement:
    name: str
    span: Span = NO_SPAN


@dataclass
class InstructionStatement:
    mnemonic: str
    operands: List[Operand] = field(default_factory=list)
    span: Span = NO_SPAN


@dataclass
class DirectiveStatement:
    name: str
    args: List[DirectiveArg] = field(default_factory=list)
    span: Span = NO_SPAN


Statement = Union[LabelStatement, InstructionStatement, DirectiveStatement]


@dataclass
class Program:
    statements: List[Statement] = field(default_factory=list)

    def __iter__(self) -> Iterator[Statement]:
        return iter(self.statements)


@dataclass(frozen=True)
class Symbol:
    """A named address defined by a label."""

    name: str
    value: int
    span: Span = NO_SPAN


class SymbolTable:
    """Symbols by name, each defined once."""

    def __init__(self, symbols: Iterable[Symbol] = ()) -> None:
        self._symbols: Dict[str, Symbol] = {}
        for symbol in symbols:
            self.define(symbol)

    def define(self, symbol: Symbol) -> None:
        if symbol.name in self._symbols:
            raise ValueError(f"duplicate label `{symbol.name}`")
        self._symbols[symbol.name] = symbol

    def get(self, name: str) -> Optional[Symbol]:
        return self._symbols.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._symbols

    def __len__(self) -> int:
        return len(self._symbols)

    def __iter__(self) -> Iterator[Symbol]:
        return iter(self._symbols.values())