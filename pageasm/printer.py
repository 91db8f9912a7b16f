"""Render diagnostics against their source text."""

from __future__ import annotations

import io
import re
from dataclasses import dataclass
from typing import Optional, Sequence, TextIO

from pageasm.diagnostics import Diagnostic, DiagnosticLabel, LabelKind

_LINE_BREAK = re.compile(r"\r\n?|\n")


@dataclass(frozen=True)
class _LineInfo:
    number: int
    column: int
    text: str
    end: int


def _line_info(source: str, offset: int) -> _LineInfo:
    clamped = min(offset, len(source))
    line = 1
    line_start = 0
    for match in _LINE_BREAK.finditer(source):
        if match.start() >= clamped:
            break
        line += 1
        line_start = match.end()

    line_end = line_start
    next_break = _LINE_BREAK.search(source, line_start)
    line_end = next_break.start() if next_break else len(source)
    line_end = max(line_end, line_start)

    return _LineInfo(
        number=line,
        column=max(clamped - line_start, 0) + 1,
        text=source[line_start:line_end],
        end=line_end,
    )


def _underline_length(label: DiagnosticLabel, info: _LineInfo) -> int:
    if label.span.is_empty:
        return 1
    clamped_end = max(min(label.span.end, info.end), label.span.start + 1)
    return max(clamped_end - label.span.start, 1)


def _header(diagnostic: Diagnostic) -> str:
    severity = diagnostic.severity.value
    if diagnostic.code is not None:
        return f"{severity}[{diagnostic.code.code()}]: {diagnostic.message}\n"
    return f"{severity}: {diagnostic.message}\n"


def _anchor_label(diagnostic: Diagnostic) -> Optional[DiagnosticLabel]:
    primary = next((l for l in diagnostic.labels if l.kind is LabelKind.PRIMARY), None)
    if primary is not None:
        return primary
    return diagnostic.labels[0] if diagnostic.labels else None


def _write_label(
    stream: TextIO, source: str, diagnostic: Diagnostic, label: DiagnosticLabel, width: int
) -> None:
    info = _line_info(source, label.span.start)
    marker = "^" if label.kind is LabelKind.PRIMARY else "-"
    duplicate = label.kind is LabelKind.PRIMARY and label.message == diagnostic.message
    detail = "" if not label.message or duplicate else f" {label.message}"

    stream.write(f"{info.number:>{width}} | {info.text}\n")
    if label.kind is LabelKind.SECONDARY and not detail:
        return
    indent = " " * max(info.column - 1, 0)
    underline = marker * _underline_length(label, info)
    stream.write(f"{'':>{width}} | {indent}{underline}{detail}\n")


def _write_diagnostic(stream: TextIO, path: str, source: str, diagnostic: Diagnostic) -> None:
    stream.write(_header(diagnostic))
    anchor = _anchor_label(diagnostic)
    if anchor is not None:
        info = _line_info(source, anchor.span.start)
        stream.write(f"  --> {path} [{info.number}:{info.column}]\n")

    labels = sorted(diagnostic.labels, key=lambda l: (l.span.start, l.span.end))
    numbers = [_line_info(source, l.span.start).number for l in labels]
    width = max(len(str(max(numbers, default=0))), 1)

    previous: Optional[int] = None
    for label, number in zip(labels, numbers):
        if previous is not None and number > previous + 1:
            stream.write("...\n")
        _write_label(stream, source, diagnostic, label, width)
        previous = number


def print_diagnostics(
    stream: TextIO, path: str, source: str, diagnostics: Sequence[Diagnostic]
) -> None:
    """Write every diagnostic to the stream, separated by blank lines."""
    for position, diagnostic in enumerate(diagnostics):
        if position:
            stream.write("\n")
        _write_diagnostic(stream, path, source, diagnostic)


def render_diagnostics(path: str, source: str, diagnostics: Sequence[Diagnostic]) -> str:
    """Return the rendered diagnostics as a string."""
    buffer = io.StringIO()
    print_diagnostics(buffer, path, source, diagnostics)
    return buffer.getvalue()