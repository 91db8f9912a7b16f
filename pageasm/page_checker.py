"""Check that instructions and data stay inside their pages and branches stay local."""

from __future__ import annotations

from typing import List, Mapping, Optional, Tuple, Union

from pageasm.diagnostics import (
    CodeKind,
    Diagnostic,
    DiagnosticCode,
    DiagnosticEmitter,
    DiagnosticError,
    DiagnosticLabel,
    Partial,
)
from pageasm.directives import (
    IncbinContext,
    apply_layout_directive,
    directive_data_len,
    incbin_length,
    page_error,
)
from pageasm.nodes import (
    CharArg,
    DirectiveStatement,
    Immediate,
    InstructionStatement,
    IntegerArg,
    LabelRef,
    LabelStatement,
    Program,
    Symbol,
    SymbolTable,
)
from pageasm.resolution import (
    InstructionLookup,
    ResolvedDirect,
    ResolvedInstruction,
    ResolvedLabel,
    ResolvedOperand,
    Resolver,
)
from pageasm.spec import InstructionSpec

PAGE_SIZE_BYTES = 128
INSTRUCTION_SIZE_BYTES = 2


def _branch_target_address(operand: ResolvedOperand) -> Optional[int]:
    if isinstance(operand, (Immediate, ResolvedLabel, ResolvedDirect)):
        return operand.value
    return None


def _branch_target_symbol(
    instruction: InstructionStatement, symbols: SymbolTable
) -> Optional[Symbol]:
    if not instruction.operands:
        return None
    first = instruction.operands[0]
    if not isinstance(first, LabelRef):
        return None
    return symbols.get(first.name)


def _enclosing_page(program: Program, label_name: str) -> Optional[int]:
    """The number of the last `.page` directive before the label's definition."""
    current: Optional[int] = None
    for statement in program.statements:
        if isinstance(statement, DirectiveStatement) and statement.name == "page":
            if not statement.args:
                continue
            first = statement.args[0]
            if isinstance(first, (IntegerArg, CharArg)):
                current = first.value
        elif isinstance(statement, LabelStatement) and statement.name == label_name:
            return current
    return None


def _validate_branch_target(
    program: Program,
    instruction: InstructionStatement,
    instruction_start: int,
    resolved: ResolvedInstruction,
    symbols: SymbolTable,
) -> Optional[Diagnostic]:
    target = _branch_target_address(resolved.operands[0]) if resolved.operands else None
    if target is None:
        return page_error(resolved.span, "branch target must resolve to a byte address")
    if target % INSTRUCTION_SIZE_BYTES:
        return page_error(resolved.span, "branch target must be instruction-aligned")

    source_page = instruction_start // PAGE_SIZE_BYTES
    target_page = target // PAGE_SIZE_BYTES
    if source_page == target_page:
        return None

    diagnostic = Diagnostic.from_code(
        DiagnosticCode(
            CodeKind.ENCODING_ERROR, "branch target crosses a 64-instruction page boundary"
        )
    ).with_label(DiagnosticLabel(resolved.span, f"branch is in page {source_page}.."))

    symbol = _branch_target_symbol(instruction, symbols)
    if symbol is not None:
        page = _enclosing_page(program, symbol.name)
        if page is None:
            page = target_page
        diagnostic.with_label(
            DiagnosticLabel.secondary(
                symbol.span, f"..but target label `{symbol.name}` is in page {page}"
            )
        )
    return diagnostic


class PageChecker:
    """Walks a program's layout and reports page overflows and cross-page branches."""

    def __init__(
        self,
        instructions: Union[InstructionLookup, Mapping[Tuple[str, int], InstructionSpec]],
        incbin: Optional[IncbinContext] = None,
    ) -> None:
        self._resolver = Resolver(instructions)
        self._incbin = incbin if incbin is not None else IncbinContext()

    def analyze(self, program: Program, symbols: SymbolTable) -> Partial[None]:
        """Check the whole program, collecting every problem found."""
        emitter = DiagnosticEmitter()
        cursor = 0
        page_start: Optional[int] = None

        def check_fits(directive: DirectiveStatement, length: int) -> None:
            if page_start is not None and cursor + length > page_start + PAGE_SIZE_BYTES:
                emitter.push(
                    page_error(
                        directive.span,
                        f"directive `.{directive.name}` exceeds the current page",
                    )
                )

        for statement in program.statements:
            if isinstance(statement, LabelStatement):
                continue

            if isinstance(statement, InstructionStatement):
                start = cursor
                if page_start is not None and start + INSTRUCTION_SIZE_BYTES > page_start + PAGE_SIZE_BYTES:
                    emitter.push(
                        page_error(statement.span, "instruction exceeds the 64-instruction page")
                    )
                if statement.mnemonic == "bra":
                    self._check_branch(program, statement, start, symbols, emitter)
                cursor += INSTRUCTION_SIZE_BYTES
                continue

            if not isinstance(statement, DirectiveStatement):
                continue

            layout = apply_layout_directive(statement, cursor, page_start, emitter)
            if layout is not None:
                cursor, page_start = layout
                continue

            try:
                length = directive_data_len(statement)
            except DiagnosticError as error:
                emitter.extend(page_error(statement.span, d.message) for d in error.diagnostics)
                continue
            if length is not None:
                check_fits(statement, length)
                cursor += length
                continue

            if statement.name == "incbin":
                try:
                    length = incbin_length(statement, self._incbin)
                except DiagnosticError as error:
                    emitter.extend(error.diagnostics)
                    continue
                check_fits(statement, length)
                cursor += length
            elif statement.name == "zero":
                emitter.push(
                    page_error(statement.span, "directive `.zero` is no longer supported")
                )

        return emitter.finish(None)

    def _check_branch(
        self,
        program: Program,
        instruction: InstructionStatement,
        start: int,
        symbols: SymbolTable,
        emitter: DiagnosticEmitter,
    ) -> None:
        try:
            resolved = self._resolver.resolve_instruction(instruction, symbols)
        except DiagnosticError as error:
            emitter.extend(error.diagnostics)
            return
        diagnostic = _validate_branch_target(program, instruction, start, resolved, symbols)
        if diagnostic is not None:
            emitter.push(diagnostic)


__all__: List[str] = ["PageChecker", "PAGE_SIZE_BYTES"]