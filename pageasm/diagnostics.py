"""Diagnostic values, error codes and the partial-result container."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Callable, Generic, Iterable, Iterator, List, Optional, TypeVar

T = TypeVar("T")
U = TypeVar("U")


class CodeKind(enum.Enum):
    """Every kind of diagnostic code, paired with its printed identifier."""

    UNEXPECTED_CHARACTER = "E001"
    EXPECTED_HEX_DIGITS_AFTER_PREFIX = "E002"
    EXPECTED_BINARY_DIGITS_AFTER_PREFIX = "E002 "
    EXPECTED_DIGITS = "E002  "
    INVALID_INTEGER_LITERAL = "E002   "
    INTEGER_OUT_OF_RANGE = "E002    "
    INVALID_CHARACTER_LITERAL_LENGTH = "E003"
    UNTERMINATED_CHARACTER_LITERAL = "E003 "
    UNTERMINATED_STRING_LITERAL = "E004"
    UNSUPPORTED_ESCAPE_SEQUENCE = "E005"
    UNTERMINATED_ESCAPE_SEQUENCE = "E005 "
    UNEXPECTED_TOKEN = "E006"
    INVALID_OPERAND = "E007"
    INVALID_DIRECTIVE = "E008"
    UNKNOWN_REGISTER = "E009"
    UNKNOWN_CONDITION = "E010"
    ENCODING_ERROR = "E011"

    @property
    def code(self) -> str:
        """The printed code; several kinds share one."""
        return self.value.strip()


_FIXED_MESSAGES = {
    CodeKind.EXPECTED_HEX_DIGITS_AFTER_PREFIX: "expected at least one hexadecimal digit after `0x`",
    CodeKind.EXPECTED_BINARY_DIGITS_AFTER_PREFIX: "expected at least one binary digit after `0b`",
    CodeKind.EXPECTED_DIGITS: "expected digits",
    CodeKind.INVALID_CHARACTER_LITERAL_LENGTH: "character literal must contain exactly one character",
    CodeKind.UNTERMINATED_CHARACTER_LITERAL: "unterminated character literal",
    CodeKind.UNTERMINATED_STRING_LITERAL: "unterminated string literal",
    CodeKind.UNTERMINATED_ESCAPE_SEQUENCE: "unterminated escape sequence",
}

_TEMPLATES = {
    CodeKind.UNEXPECTED_CHARACTER: "unexpected character `{}`",
    CodeKind.INVALID_INTEGER_LITERAL: "invalid integer literal `{}`",
    CodeKind.INTEGER_OUT_OF_RANGE: "integer literal `{}` is out of range for i64",
    CodeKind.UNSUPPORTED_ESCAPE_SEQUENCE: "unsupported escape sequence `\\{}`",
}


@dataclass(frozen=True)
class DiagnosticCode:
    """A diagnostic code together with the detail it carries, if any."""

    kind: CodeKind
    detail: Optional[str] = None

    def code(self) -> str:
        return self.kind.code

    def message(self) -> str:
        if self.kind in _FIXED_MESSAGES:
            return _FIXED_MESSAGES[self.kind]
        if self.kind in _TEMPLATES:
            return _TEMPLATES[self.kind].format(self.detail or "")
        return self.detail or ""


@dataclass(frozen=True)
class Span:
    """A half-open range of offsets into one source file."""

    file_id: int
    start: int
    end: int

    @classmethod
    def empty(cls, file_id: int, at: int) -> "Span":
        return cls(file_id, at, at)

    @property
    def length(self) -> int:
        return max(self.end - self.start, 0)

    @property
    def is_empty(self) -> bool:
        return self.start >= self.end

    def merge(self, other: "Span") -> "Span":
        return Span(self.file_id, min(self.start, other.start), max(self.end, other.end))


class Severity(enum.Enum):
    ERROR = "error"
    WARNING = "warning"
    NOTE = "note"


class LabelKind(enum.Enum):
    PRIMARY = "primary"
    SECONDARY = "secondary"


@dataclass
class DiagnosticLabel:
    """A message attached to a span of source."""

    span: Span
    message: str
    kind: LabelKind = LabelKind.PRIMARY

    @classmethod
    def secondary(cls, span: Span, message: str) -> "DiagnosticLabel":
        return cls(span, message, LabelKind.SECONDARY)


@dataclass
class Diagnostic:
    """A reported problem with its severity, optional code and labels."""

    severity: Severity
    message: str
    code: Optional[DiagnosticCode] = None
    labels: List[DiagnosticLabel] = field(default_factory=list)

    @classmethod
    def error(cls, message: str) -> "Diagnostic":
        return cls(Severity.ERROR, message)

    @classmethod
    def warning(cls, message: str) -> "Diagnostic":
        return cls(Severity.WARNING, message)

    @classmethod
    def note(cls, message: str) -> "Diagnostic":
        return cls(Severity.NOTE, message)

    @classmethod
    def from_code(cls, code: DiagnosticCode) -> "Diagnostic":
        return cls(Severity.ERROR, code.message(), code)

    def with_label(self, label: DiagnosticLabel) -> "Diagnostic":
        """Attach a label and return this diagnostic."""
        self.labels.append(label)
        return self

    def with_span_label(self, span: Span, message: str) -> "Diagnostic":
        return self.with_label(DiagnosticLabel(span, message))


class DiagnosticError(Exception):
    """Raised when a result is demanded from a pass that reported problems."""

    def __init__(self, diagnostics: Iterable[Diagnostic]):
        self.diagnostics = list(diagnostics)
        text = "; ".join(d.message for d in self.diagnostics) or "no value was produced"
        super().__init__(text)


@dataclass
class Partial(Generic[T]):
    """A value that may come with diagnostics, or no value at all."""

    value: Optional[T] = None
    diagnostics: List[Diagnostic] = field(default_factory=list)
    failed: bool = False

    @classmethod
    def success(cls, value: T) -> "Partial[T]":
        return cls(value)

    @classmethod
    def failure(cls, diagnostics: Iterable[Diagnostic]) -> "Partial[T]":
        return cls(None, list(diagnostics), True)

    def has_errors(self) -> bool:
        return bool(self.diagnostics)

    def map(self, func: Callable[[T], U]) -> "Partial[U]":
        if self.failed:
            return Partial(None, self.diagnostics, True)
        return Partial(func(self.value), self.diagnostics)  # type: ignore[arg-type]

    def unwrap(self) -> T:
        """Return the value, raising DiagnosticError if anything was reported."""
        if self.diagnostics:
            raise DiagnosticError(self.diagnostics)
        if self.failed:
            raise DiagnosticError([])
        return self.value  # type: ignore[return-value]


class DiagnosticEmitter:
    """Collects diagnostics while a pass runs."""

    def __init__(self) -> None:
        self._diagnostics: List[Diagnostic] = []

    def push(self, diagnostic: Diagnostic) -> None:
        self._diagnostics.append(diagnostic)

    def extend(self, diagnostics: Iterable[Diagnostic]) -> None:
        self._diagnostics.extend(diagnostics)

    def emit(self, diagnostic: Diagnostic) -> Diagnostic:
        self.push(diagnostic)
        return diagnostic

    @property
    def diagnostics(self) -> List[Diagnostic]:
        return list(self._diagnostics)

    def __len__(self) -> int:
        return len(self._diagnostics)

    def __iter__(self) -> Iterator[Diagnostic]:
        return iter(self._diagnostics)

    def finish(self, value: Any) -> Partial[Any]:
        return Partial(value, list(self._diagnostics))

    def fail(self) -> Partial[Any]:
        return Partial.failure(self._diagnostics)