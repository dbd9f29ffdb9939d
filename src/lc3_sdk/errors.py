"""
LC-3 SDK Error Hierarchy
========================

This module defines the exception hierarchy for the LC-3 SDK assembler.
All exceptions inherit from LC3Error, allowing callers to catch every
SDK-related error with a single except clause if desired.

Exception Hierarchy
-------------------
LC3Error (base)
└── AssemblerError (assembler-related, carries a numeric ErrorCode)
    ├── AssemblySyntaxError - line fails the column grammar, bad operand token
    ├── UndefinedSymbolError - reference to a symbol nobody defined
    ├── DuplicateSymbolError - label defined more than once
    ├── OperandError - wrong operand count/kind, misplaced literal or external
    ├── OperandRangeError - operand value does not fit its bit field
    │   └── PageError - address operand outside the instruction's page
    ├── DirectiveError - misuse of .ORIG, .END, .EQU, .BLKW, ...
    └── SegmentError - segment runs past the top of memory, missing .END

Design Philosophy
-----------------
Fatal conditions are exceptions: the parser and code generator never try
to recover locally, and never terminate the process themselves. The
command-line driver is the only place that turns an error into an exit
status.

Warnings (symbol table full, literal pool full, record ceiling reached) are
not exceptions. They are handed to an ErrorReporter, which logs them and
keeps them for the final report while assembly carries on.

Error messages follow this format:
    line 12: error E114: duplicate symbol 'LOOP'
    hint: 'LOOP' was first defined on line 4
"""

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Optional
import logging

logger = logging.getLogger(__name__)


# =============================================================================
# Error Codes
# =============================================================================

class ErrorCode(IntEnum):
    """
    Numeric codes reported alongside every diagnostic.

    1xx codes are syntax and semantic errors (always fatal), 2xx codes are
    resource-limit warnings and 3xx codes are I/O failures.
    """

    # Syntax errors
    MALFORMED_RECORD = 100
    INVALID_LABEL = 101
    MALFORMED_OPERAND = 102
    UNTERMINATED_STRING = 103
    TOO_MANY_OPERANDS = 104

    # Semantic errors
    UNKNOWN_OPCODE = 110
    WRONG_OPERAND_COUNT = 111
    INVALID_OPERAND_KIND = 112
    LITERAL_NOT_ALLOWED = 113
    DUPLICATE_SYMBOL = 114
    UNDEFINED_SYMBOL = 115
    EXTERNAL_NOT_FINAL = 116
    OPERAND_OUT_OF_BOUNDS = 117
    PAGE_MISMATCH = 118
    MISSING_ORIG = 119
    EXTRA_ORIG = 120
    MISSING_END = 121
    SEGMENT_OVERFLOW = 122
    INVALID_DIRECTIVE = 123

    # Resource-limit warnings
    SYMBOL_TABLE_FULL = 200
    LITERAL_POOL_FULL = 201
    RECORD_LIMIT = 202

    # I/O failures
    IO_ERROR = 300


class Severity(Enum):
    """How the run proceeds after a diagnostic is reported."""
    WARNING = "warning"
    FATAL = "error"


# =============================================================================
# Base Exception Classes
# =============================================================================

class LC3Error(Exception):
    """
    Base exception for all LC-3 SDK errors.

        try:
            assembler.assemble_file("program.asm")
        except LC3Error as e:
            print(f"Error: {e}")
    """
    pass


class AssemblerError(LC3Error):
    """
    Base exception for all assembler-related errors.

    Attributes:
        message: The error description
        code: Numeric ErrorCode for the condition
        line: Source line number (1-indexed), when known
        hint: A suggestion for fixing the error (optional)
    """

    default_code = ErrorCode.MALFORMED_RECORD

    def __init__(
        self,
        message: str,
        code: Optional[ErrorCode] = None,
        line: Optional[int] = None,
        hint: Optional[str] = None,
    ):
        self.message = message
        self.code = ErrorCode(code) if code is not None else self.default_code
        self.line = line
        self.hint = hint
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """
        Format the error message with line number, code and hint.

        Example output:
            line 7: error E117: immediate out of bounds: '#32'
            hint: decimal operands in a 6-bit field must be in -16..15
        """
        prefix = f"line {self.line}: " if self.line is not None else ""
        parts = [f"{prefix}error E{self.code.value:03d}: {self.message}"]
        if self.hint:
            parts.append(f"hint: {self.hint}")
        return "\n".join(parts)


class AssemblySyntaxError(AssemblerError):
    """
    Syntax error in assembly source code.

    Examples:
        - Opcode not in columns 10-14
        - Label with a leading 'R' or 'x'
        - Unterminated .STRZ string
        - Operand token that is neither register, immediate, literal,
          symbol nor string
    """
    default_code = ErrorCode.MALFORMED_RECORD


class UndefinedSymbolError(AssemblerError):
    """
    Reference to a symbol that is neither defined locally nor declared
    external with .EXT.

    When the symbol table overflowed earlier in the run, this is the
    expected cascade of the "symbol table full" warning.
    """

    default_code = ErrorCode.UNDEFINED_SYMBOL

    def __init__(
        self,
        symbol: str,
        line: Optional[int] = None,
        hint: Optional[str] = None,
    ):
        self.symbol = symbol
        super().__init__(f"undefined symbol '{symbol}'", line=line, hint=hint)


class DuplicateSymbolError(AssemblerError):
    """
    Symbol defined multiple times.

    Includes the line of the original definition when it is known.
    """

    default_code = ErrorCode.DUPLICATE_SYMBOL

    def __init__(
        self,
        symbol: str,
        line: Optional[int] = None,
        original_line: Optional[int] = None,
    ):
        self.symbol = symbol
        self.original_line = original_line

        hint = None
        if original_line is not None:
            hint = f"'{symbol}' was first defined on line {original_line}"

        super().__init__(f"duplicate symbol '{symbol}'", line=line, hint=hint)


class OperandError(AssemblerError):
    """
    Operand cannot be used where it appears.

    Raised for an unknown opcode, the wrong number of operands, an operand
    kind the slot does not accept, a literal outside LD, an external symbol
    in a non-final slot, or a relocatable symbol in a field that cannot be
    relocated.
    """
    default_code = ErrorCode.INVALID_OPERAND_KIND


class OperandRangeError(AssemblerError):
    """
    Operand value does not fit the bit field it is packed into.

    Example:
        ADD R0,R0,#32   ; 5-bit signed immediate, decimal range is -16..15
    """
    default_code = ErrorCode.OPERAND_OUT_OF_BOUNDS


class PageError(OperandRangeError):
    """
    Address operand lies on a different 512-word page than the
    instruction that follows the current one.

    9-bit address fields only carry the offset within a page; the page
    itself comes from the incremented program counter, so a target on any
    other page cannot be encoded.
    """

    default_code = ErrorCode.PAGE_MISMATCH

    def __init__(
        self,
        address: int,
        location: int,
        line: Optional[int] = None,
    ):
        self.address = address
        self.location = location
        target_page = address >> 9
        pc_page = (location + 1) >> 9
        super().__init__(
            f"page number mismatch: x{address:04X} is on page {target_page}, "
            f"instruction at x{location:04X} executes on page {pc_page}",
            line=line,
            hint="move the target onto the same page or use an indirect load",
        )


class DirectiveError(AssemblerError):
    """
    Error in an assembler directive.

    Examples:
        - .ORIG without a segment name label
        - .BLKW with a forward reference or a non-positive size
        - .EQU without a label
        - .END naming a symbol that is not defined
    """
    default_code = ErrorCode.INVALID_DIRECTIVE


class SegmentError(AssemblerError):
    """
    Structural error in the segment as a whole.

    Raised when the location counter passes xFFFF, when the first record is
    not .ORIG, when .ORIG appears twice, or when the input ends before .END.
    """
    default_code = ErrorCode.SEGMENT_OVERFLOW


# =============================================================================
# Error Reporting Side Channel
# =============================================================================

@dataclass(frozen=True)
class Diagnostic:
    """
    One reported condition.

    Attributes:
        message: Human-readable description
        code: Numeric ErrorCode
        line: Source line number, when known
        severity: WARNING or FATAL
    """
    message: str
    code: ErrorCode
    line: Optional[int] = None
    severity: Severity = Severity.WARNING

    def __str__(self) -> str:
        label = "WARNING" if self.severity is Severity.WARNING else "ERROR"
        text = f"[{label} {self.code.value:03d}] {self.message}"
        if self.line is not None:
            text += f" (line {self.line})"
        return text


class ErrorReporter:
    """
    Receives (message, code, optional line, severity) from the assembler.

    Fatal reports raise, so the current pass stops immediately and nothing
    after that point is trusted. Warnings are logged and kept so the
    driver can print them after assembly.

    Example:
        reporter = ErrorReporter()
        parser = Parser(reporter=reporter)
        program = parser.parse(lines)
        for warning in reporter.warnings:
            print(warning)
    """

    def __init__(self):
        self.warnings: list[Diagnostic] = []
        self.errors: list[AssemblerError] = []

    def report(
        self,
        message: str,
        code: ErrorCode,
        line: Optional[int] = None,
        severity: Severity = Severity.FATAL,
    ) -> None:
        """
        Report a condition.

        Raises:
            AssemblerError: If severity is FATAL
        """
        if severity is Severity.FATAL:
            self.fatal(AssemblerError(message, code, line))
        self.warning(message, code, line)

    def warning(self, message: str, code: ErrorCode, line: Optional[int] = None) -> None:
        """Record a warning and continue."""
        diagnostic = Diagnostic(message, ErrorCode(code), line, Severity.WARNING)
        self.warnings.append(diagnostic)
        logger.info(str(diagnostic))

    def fatal(self, error: AssemblerError) -> None:
        """
        Record a fatal error and raise it.

        Raises:
            AssemblerError: Always
        """
        self.errors.append(error)
        logger.debug(f"fatal: {error.message} (code {error.code.value})")
        raise error

    def has_errors(self) -> bool:
        """Return True if a fatal error has been reported."""
        return len(self.errors) > 0

    def warning_count(self) -> int:
        """Return the number of collected warnings."""
        return len(self.warnings)

    def report_text(self) -> str:
        """
        Format all errors and warnings for display.

        Returns:
            Formatted string with all diagnostics and a summary line
        """
        lines = [str(error) for error in self.errors]
        lines.extend(str(warning) for warning in self.warnings)

        error_word = "error" if len(self.errors) == 1 else "errors"
        warning_word = "warning" if len(self.warnings) == 1 else "warnings"
        lines.append(
            f"{len(self.errors)} {error_word}, {len(self.warnings)} {warning_word}"
        )
        return "\n".join(lines)

    def clear(self) -> None:
        """Clear all collected diagnostics."""
        self.errors.clear()
        self.warnings.clear()
