"""Data, layout and binary-inclusion directives."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Optional, Tuple

from pageasm.diagnostics import (
    CodeKind,
    Diagnostic,
    DiagnosticCode,
    DiagnosticEmitter,
    DiagnosticError,
    DiagnosticLabel,
    Span,
)
from pageasm.nodes import CharArg, DirectiveArg, DirectiveStatement, IntegerArg, StringArg

PAGE_SHIFT = 7


def _arg(directive: DirectiveStatement, index: int) -> Optional[DirectiveArg]:
    return directive.args[index] if 0 <= index < len(directive.args) else None


def _literal_value(arg: Optional[DirectiveArg]) -> Optional[int]:
    if isinstance(arg, (IntegerArg, CharArg)):
        return arg.value
    return None


def _directive_error(directive: DirectiveStatement, message: str) -> Diagnostic:
    return Diagnostic.from_code(DiagnosticCode(CodeKind.INVALID_DIRECTIVE, message)).with_label(
        DiagnosticLabel(directive.span, message)
    )


def page_error(span: Span, message: str) -> Diagnostic:
    """An encoding-error diagnostic labelled at span."""
    return Diagnostic.from_code(DiagnosticCode(CodeKind.ENCODING_ERROR, message)).with_label(
        DiagnosticLabel(span, message)
    )


def _reject(directive: DirectiveStatement, message: str) -> DiagnosticError:
    return DiagnosticError([_directive_error(directive, message)])


# --- data directives -------------------------------------------------------


def _check_string_like(directive: DirectiveStatement) -> Optional[str]:
    if isinstance(_arg(directive, 0), StringArg):
        return None
    return "expected string argument"


def _check_fill(directive: DirectiveStatement) -> Optional[str]:
    if len(directive.args) != 2:
        return "expected count and fill value"
    if _literal_value(_arg(directive, 0)) is None:
        return "expected integer count"
    if _literal_value(_arg(directive, 1)) is None:
        return "expected integer or char fill value"
    return None


def _check_bytes(directive: DirectiveStatement) -> Optional[str]:
    if all(_literal_value(arg) is not None for arg in directive.args):
        return None
    return "expected only byte-sized literals"


_DATA_CHECKS: Dict[str, Callable[[DirectiveStatement], Optional[str]]] = {
    "string": _check_string_like,
    "cstring": _check_string_like,
    "fill": _check_fill,
    "bytes": _check_bytes,
}


def validate_data_directive(directive: DirectiveStatement) -> bool:
    """Return whether this is a data directive; raise DiagnosticError if it is malformed."""
    check = _DATA_CHECKS.get(directive.name)
    if check is None:
        return False
    problem = check(directive)
    if problem is not None:
        raise _reject(directive, problem)
    return True


def directive_data_len(directive: DirectiveStatement) -> Optional[int]:
    """Bytes a data directive emits, or None for other directives."""
    name = directive.name
    if name == "bytes":
        return len(directive.args)
    if name in ("string", "cstring"):
        first = _arg(directive, 0)
        if not isinstance(first, StringArg):
            raise _reject(directive, "expected string argument")
        length = len(first.value.encode("utf-8"))
        return length + 1 if name == "cstring" else length
    if name == "fill":
        count = _literal_value(_arg(directive, 0))
        if count is None:
            raise _reject(directive, "expected integer argument")
        return count
    return None


def _byte(value: int) -> Optional[int]:
    return value if 0 <= value <= 0xFF else None


def encode_data_directive(
    directive: DirectiveStatement, image: bytearray, emitter: DiagnosticEmitter
) -> bool:
    """Append a data directive's bytes to image; return False for other directives."""
    name = directive.name
    span = directive.span

    if name == "bytes":
        for arg in directive.args:
            value = _literal_value(arg)
            if value is None:
                emitter.push(page_error(span, "directive `.bytes` expects integer or char arguments"))
                continue
            byte = _byte(value)
            if byte is None:
                emitter.push(page_error(span, "byte literal does not fit in 8 bits"))
                continue
            image.append(byte)
        return True

    if name == "fill":
        count = directive_int(directive, 0, emitter)
        if count is None:
            return True
        if count < 0:
            emitter.push(page_error(span, "directive `.fill` expects a non-negative count"))
            return True
        value = _literal_value(_arg(directive, 1))
        if value is None:
            emitter.push(page_error(span, "directive `.fill` expects an integer or char fill value"))
            return True
        byte = _byte(value)
        if byte is None:
            emitter.push(page_error(span, "fill value does not fit in 8 bits"))
            return True
        image.extend(bytes([byte]) * count)
        return True

    if name in ("string", "cstring"):
        first = _arg(directive, 0)
        if isinstance(first, StringArg):
            image.extend(first.value.encode("utf-8"))
            if name == "cstring":
                image.append(0)
        else:
            emitter.push(page_error(span, f"directive `.{name}` expects a string argument"))
        return True

    return False


# --- layout directives -----------------------------------------------------


def validate_layout_directive(directive: DirectiveStatement) -> bool:
    """Return whether this is a layout directive; raise DiagnosticError if it is malformed."""
    if directive.name not in ("page", "org"):
        return False
    if _literal_value(_arg(directive, 0)) is None:
        raise _reject(directive, "expected integer argument")
    return True


def directive_int(
    directive: DirectiveStatement, index: int, emitter: DiagnosticEmitter
) -> Optional[int]:
    """The integer or char argument at index, or None after reporting its absence."""
    value = _literal_value(_arg(directive, index))
    if value is None:
        emitter.push(
            page_error(directive.span, f"directive `.{directive.name}` expects an integer argument")
        )
    return value


def apply_layout_directive(
    directive: DirectiveStatement,
    cursor: int,
    page_start: Optional[int],
    emitter: DiagnosticEmitter,
) -> Optional[Tuple[int, Optional[int]]]:
    """Return the new (cursor, page start) after a layout directive, or None for others."""
    if directive.name == "page":
        page = directive_int(directive, 0, emitter)
        if page is None:
            return cursor, page_start
        if page < 0:
            emitter.push(
                page_error(directive.span, "directive `.page` expects a non-negative page number")
            )
            return cursor, page_start
        start = page << PAGE_SHIFT
        return start, start

    if directive.name == "org":
        target = directive_int(directive, 0, emitter)
        if target is None:
            return cursor, page_start
        if target < 0:
            emitter.push(
                page_error(directive.span, "directive `.org` expects a non-negative address")
            )
            return cursor, page_start
        return target, None

    return None


# --- binary inclusion ------------------------------------------------------


@dataclass(frozen=True)
class IncbinContext:
    """Where relative `.incbin` paths are looked up; None when reading from stdin."""

    base_dir: Optional[Path] = None

    @classmethod
    def from_input_path(cls, input_path: Optional[str]) -> "IncbinContext":
        if input_path is None:
            return cls()
        return cls(Path(input_path).parent)


def validate_incbin(directive: DirectiveStatement) -> None:
    """Raise DiagnosticError unless the directive has exactly one string argument."""
    if len(directive.args) != 1 or not isinstance(directive.args[0], StringArg):
        raise _reject(directive, "expected string path argument")


def _incbin_path(directive: DirectiveStatement, context: IncbinContext) -> Path:
    first = _arg(directive, 0)
    if not isinstance(first, StringArg):
        raise _reject(directive, "directive `.incbin` expects a string path argument")
    path = Path(first.value)
    if path.is_absolute():
        return path
    if context.base_dir is None:
        raise _reject(
            directive,
            "directive `.incbin` requires an absolute path when reading source from stdin",
        )
    return context.base_dir / path


def incbin_bytes(directive: DirectiveStatement, context: IncbinContext) -> bytes:
    """Read the included file's contents."""
    path = _incbin_path(directive, context)
    try:
        return path.read_bytes()
    except OSError as error:
        raise _reject(directive, f"failed to read `.incbin` file `{path}`: {error}") from error


def incbin_length(directive: DirectiveStatement, context: IncbinContext) -> int:
    """Size of the included file in bytes."""
    path = _incbin_path(directive, context)
    try:
        return path.stat().st_size
    except OSError as error:
        raise _reject(directive, f"failed to inspect `.incbin` file `{path}`: {error}") from error