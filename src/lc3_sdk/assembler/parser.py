"""
LC-3 Assembly Language Parser
=============================

This module implements the first pass of the assembler. It reads source
lines one at a time, splits each into label, opcode and operands, checks
them against the descriptor tables, keeps the location counter, and builds
the symbol table and literal pool of a Program.

Line Format
-----------
Source lines use fixed columns:

| Columns | Field    | Notes                                          |
|---------|----------|------------------------------------------------|
| 1-6     | label    | blank, or 1-6 alphanumerics not led by R or x  |
| 7-9     | (blank)  |                                                |
| 10-14   | opcode   | machine mnemonic or directive, blank padded    |
| 15-17   | (blank)  |                                                |
| 18-     | operands | comma separated, no blanks, ends at blank or ; |

A line whose first column is ';' is a comment. `.STRZ` takes one quoted
string that may contain blanks, commas and semicolons.

    ;  Sum two numbers
    ADDER     .ORIG    x3000
    START     LD       R1,=#25
              ADD      R1,R1,#-1
              BRP      START
    MSG       .STRZ    "Done; ok"
              .END     START

Location Counter
----------------
| Opcode                          | Advance                    |
|---------------------------------|----------------------------|
| machine op, .FILL               | 1                          |
| .STRZ "text"                    | len(text) + 1              |
| .BLKW n                         | n (immediate or absolute)  |
| .ORIG .EQU .ENT .EXT .END       | 0                          |

Parsing stops at .END, or when the configured record ceiling is reached
(a warning; the segment is closed as if .END had been seen).
"""

from dataclasses import dataclass
from typing import Iterable, Optional
import logging
import re

from lc3_sdk.config import AssemblerConfig
from lc3_sdk.errors import (
    AssemblerError,
    AssemblySyntaxError,
    DirectiveError,
    ErrorCode,
    ErrorReporter,
    OperandError,
    OperandRangeError,
    SegmentError,
    UndefinedSymbolError,
)
from lc3_sdk.assembler.operands import ArgKind, Operand
from lc3_sdk.assembler.opcodes import (
    MAX_ARGS,
    arg_range,
    get_machine_op,
    get_pseudo_op,
    has_op,
)
from lc3_sdk.assembler.program import MAX_ADDRESS, Program, SourceRecord

logger = logging.getLogger(__name__)


# =============================================================================
# Column Layout
# =============================================================================

LABEL_FIELD = slice(0, 6)
LABEL_GAP = slice(6, 9)
OPCODE_FIELD = slice(9, 14)
OPCODE_GAP = slice(14, 17)
OPERAND_COLUMN = 17

COMMENT_CHAR = ";"

# Label: first character a letter other than 'R' or 'x', blank padded.
LABEL_PATTERN = re.compile(r"^[A-QS-Za-wyz][A-Za-z0-9]{0,5} *$")

# Operand field ends at the first blank or comment.
OPERAND_END = re.compile(r"[\s;]")

# Smallest and largest values that fit a 16-bit word (signed or unsigned).
MIN_WORD_VALUE = -0x8000
MAX_WORD_VALUE = 0xFFFF


# =============================================================================
# Line Splitting
# =============================================================================

@dataclass(frozen=True)
class ParsedLine:
    """
    A source line split into its fields.

    Attributes:
        line_number: Source line number
        label: Label, or None when the label field is blank
        opcode: Opcode field with padding removed
        operands: Classified operand tokens
    """
    line_number: int
    label: Optional[str]
    opcode: str
    operands: tuple[Operand, ...]


def is_comment(line: str) -> bool:
    """Return True if `line` is a full-line comment."""
    return line.startswith(COMMENT_CHAR)


def split_line(line: str, line_number: int) -> ParsedLine:
    """
    Split one non-comment source line into label, opcode and operands.

    Args:
        line: Source line without its line terminator
        line_number: Line number for error messages

    Returns:
        The parsed fields

    Raises:
        AssemblySyntaxError: If the line does not follow the column layout,
            a label or operand is malformed, or a string is unterminated
    """
    if len(line) <= OPCODE_FIELD.start or line[LABEL_GAP].strip():
        raise AssemblySyntaxError(
            "malformed record",
            ErrorCode.MALFORMED_RECORD,
            line_number,
            hint="labels go in columns 1-6 and opcodes start in column 10",
        )

    label_field = line[LABEL_FIELD]
    label = None
    if label_field.strip():
        if not LABEL_PATTERN.match(label_field):
            raise AssemblySyntaxError(
                f"invalid label '{label_field.strip()}'",
                ErrorCode.INVALID_LABEL,
                line_number,
                hint="labels are 1-6 letters or digits and may not start with R, x or a digit",
            )
        label = label_field.strip()

    opcode_field = line[OPCODE_FIELD]
    opcode = opcode_field.rstrip()
    if not opcode or opcode != opcode.strip() or " " in opcode or line[OPCODE_GAP].strip():
        raise AssemblySyntaxError(
            "expected opcode in columns 10-14",
            ErrorCode.MALFORMED_RECORD,
            line_number,
            hint="operands start in column 18",
        )

    operand_text = line[OPERAND_COLUMN:]
    if opcode == ".STRZ" and operand_text.startswith('"'):
        tokens = [_split_string(operand_text, line_number)]
    else:
        field = OPERAND_END.split(operand_text, maxsplit=1)[0]
        tokens = field.split(",") if field else []

    if len(tokens) > MAX_ARGS:
        raise AssemblySyntaxError(
            f"too many operands ({len(tokens)}, at most {MAX_ARGS})",
            ErrorCode.TOO_MANY_OPERANDS,
            line_number,
        )

    operands = tuple(Operand.parse(token) for token in tokens)
    for operand in operands:
        if operand.kind is ArgKind.MALFORMED:
            raise AssemblySyntaxError(
                f"malformed operand '{operand.text}'",
                ErrorCode.MALFORMED_OPERAND,
                line_number,
            )

    return ParsedLine(line_number, label, opcode, operands)


def _split_string(text: str, line_number: int) -> str:
    """Return the quoted string at the start of `text`, quotes included."""
    close = text.find('"', 1)
    if close == -1:
        raise AssemblySyntaxError(
            "unterminated string",
            ErrorCode.UNTERMINATED_STRING,
            line_number,
        )
    rest = text[close + 1:]
    if rest and not (rest[0].isspace() or rest[0] == COMMENT_CHAR):
        raise AssemblySyntaxError(
            f"unexpected text after string: '{rest.strip()}'",
            ErrorCode.MALFORMED_OPERAND,
            line_number,
        )
    return text[:close + 1]


# =============================================================================
# Parser Implementation
# =============================================================================

class Parser:
    """
    First pass: turns source lines into a frozen Program.

    Usage:
        parser = Parser(AssemblerConfig(max_symbols=200))
        program = parser.parse(open("prog.asm"))

    Attributes:
        config: Resource limits for this run
        reporter: Receives warnings (full tables, record ceiling)
    """

    def __init__(
        self,
        config: Optional[AssemblerConfig] = None,
        reporter: Optional[ErrorReporter] = None,
    ):
        self.config = config or AssemblerConfig()
        self.reporter = reporter or ErrorReporter()
        self._program = Program()
        self._location = 0
        self._line_number = 0
        self._started = False
        self._ended = False

    def parse(self, lines: Iterable[str]) -> Program:
        """
        Parse source lines into a frozen Program.

        Args:
            lines: Source lines, with or without line terminators

        Returns:
            The resolved Program

        Raises:
            AssemblerError: On the first syntax or semantic error
        """
        self._program = Program()
        self._location = 0
        self._line_number = 0
        self._started = False
        self._ended = False

        try:
            for line_number, raw in enumerate(lines, start=1):
                self._line_number = line_number
                line = raw.rstrip("\r\n")
                if is_comment(line):
                    continue

                if self._program.record_count() >= self.config.max_records:
                    self.reporter.warning(
                        f"maximum number of records ({self.config.max_records}) reached before .END",
                        ErrorCode.RECORD_LIMIT,
                        self._line_number,
                    )
                    self._close_segment(None)
                    return self._program

                self._process(split_line(line, self._line_number))
                if self._ended:
                    return self._program
        except OSError as e:
            raise AssemblerError(
                f"cannot read source: {e}", ErrorCode.IO_ERROR, self._line_number or None
            ) from e

        if not self._started:
            raise SegmentError("empty source: expected .ORIG", ErrorCode.MISSING_ORIG)
        raise SegmentError("no .END record", ErrorCode.MISSING_END, self._line_number)

    # =========================================================================
    # Record Processing
    # =========================================================================

    def _process(self, parsed: ParsedLine) -> None:
        """Validate one record, define its label and advance the counter."""
        n = parsed.line_number

        if not has_op(parsed.opcode):
            raise OperandError(
                f"unknown opcode '{parsed.opcode}'", ErrorCode.UNKNOWN_OPCODE, n
            )

        if not self._started:
            if parsed.opcode != ".ORIG":
                raise SegmentError(
                    f"expected .ORIG, found '{parsed.opcode}'", ErrorCode.MISSING_ORIG, n
                )
        elif parsed.opcode == ".ORIG":
            raise SegmentError("extra .ORIG record", ErrorCode.EXTRA_ORIG, n)

        self._check_operands(parsed)

        handler = self._DIRECTIVES.get(parsed.opcode)
        if handler is not None:
            handler(self, parsed)
            return

        # Machine operation: one word
        self._define_label(parsed.label, n)
        self._collect_literals(parsed)
        self._add_record(parsed, size=1)

    def _check_operands(self, parsed: ParsedLine) -> None:
        """Check operand count, kinds and literal placement."""
        n = parsed.line_number
        fewest, most = arg_range(parsed.opcode)
        count = len(parsed.operands)
        if not (fewest <= count <= most):
            expected = str(fewest) if fewest == most else f"{fewest} to {most}"
            raise OperandError(
                f"wrong number of operands for {parsed.opcode}: expected {expected}, got {count}",
                ErrorCode.WRONG_OPERAND_COUNT,
                n,
            )

        machine_op = get_machine_op(parsed.opcode)
        for index, operand in enumerate(parsed.operands):
            if machine_op is not None:
                slot = machine_op.slots[index]
                allowed = slot.allows(operand.kind)
                accepted = ", ".join(sorted(str(c) for c in slot.categories))
            else:
                pseudo_op = get_pseudo_op(parsed.opcode)
                allowed = pseudo_op.allows(operand.kind)
                accepted = ", ".join(sorted(str(k) for k in pseudo_op.kinds))
            if not allowed:
                raise OperandError(
                    f"{operand.kind} operand '{operand.text}' not allowed "
                    f"in operand {index + 1} of {parsed.opcode}",
                    ErrorCode.INVALID_OPERAND_KIND,
                    n,
                    hint=f"expected {accepted}",
                )

            if operand.kind is ArgKind.LITERAL and not (parsed.opcode == "LD" and index == 1):
                raise OperandError(
                    f"literal '{operand.text}' is only allowed as the second operand of LD",
                    ErrorCode.LITERAL_NOT_ALLOWED,
                    n,
                )

    def _collect_literals(self, parsed: ParsedLine) -> None:
        for operand in parsed.operands:
            if operand.kind is not ArgKind.LITERAL:
                continue
            self._check_word(operand, parsed.line_number)
            if self._program.has_literal(operand.value):
                continue
            if self._program.literal_count() >= self.config.max_literals:
                self.reporter.warning(
                    f"maximum number of literals ({self.config.max_literals}) reached; "
                    f"'{operand.text}' not added",
                    ErrorCode.LITERAL_POOL_FULL,
                    parsed.line_number,
                )
                continue
            self._program.add_literal(operand.value)
            logger.debug(f"line {parsed.line_number}: literal {operand.text}")

    def _define_label(
        self,
        label: Optional[str],
        line: int,
        value: Optional[int] = None,
        relocatable: Optional[bool] = None,
    ) -> None:
        """
        Enter `label` in the symbol table.

        Defaults to the current location counter, relocatable when the
        segment is.
        """
        if label is None:
            return
        if value is None:
            value = self._location
            relocatable = self._program.relocatable

        if (
            not self._program.has_symbol(label)
            and self._program.symbol_count() >= self.config.max_symbols
        ):
            self.reporter.warning(
                f"maximum number of symbols ({self.config.max_symbols}) reached; "
                f"'{label}' not added",
                ErrorCode.SYMBOL_TABLE_FULL,
                line,
            )
            return

        self._program.define_symbol(label, value, bool(relocatable), line)
        logger.debug(f"line {line}: symbol {label} = x{value & 0xFFFF:04X}")

    def _add_record(self, parsed: ParsedLine, size: int, located: bool = True) -> None:
        """
        Append the record and advance the location counter by `size`.

        The counter itself must stay within memory, so no word can be
        placed at xFFFF.
        """
        record = SourceRecord(
            line_number=parsed.line_number,
            opcode=parsed.opcode,
            label=parsed.label,
            operands=parsed.operands,
            location=self._location if located else None,
            size=size,
        )
        if size and self._location + size > MAX_ADDRESS:
            raise SegmentError(
                "segment left system memory (location counter past xFFFF)",
                ErrorCode.SEGMENT_OVERFLOW,
                parsed.line_number,
            )
        self._program.add_record(record)
        self._location += size

    def _check_word(self, operand: Operand, line: int) -> None:
        if not (MIN_WORD_VALUE <= operand.value <= MAX_WORD_VALUE):
            raise OperandRangeError(
                f"value '{operand.text}' does not fit in 16 bits",
                ErrorCode.OPERAND_OUT_OF_BOUNDS,
                line,
            )

    # =========================================================================
    # Directives
    # =========================================================================

    def _orig(self, parsed: ParsedLine) -> None:
        n = parsed.line_number
        if parsed.label is None:
            raise DirectiveError(
                ".ORIG requires a label naming the segment",
                ErrorCode.INVALID_DIRECTIVE,
                n,
            )

        program = self._program
        program.segment_name = parsed.label
        if parsed.operands:
            address = parsed.operands[0].value
            if not (0 <= address <= MAX_ADDRESS):
                raise DirectiveError(
                    f".ORIG address '{parsed.operands[0].text}' outside system memory",
                    ErrorCode.OPERAND_OUT_OF_BOUNDS,
                    n,
                )
            program.first_address = address
            program.relocatable = False
        else:
            program.first_address = 0
            program.relocatable = True

        self._location = program.first_address
        self._started = True
        logger.debug(
            f"segment {program.segment_name} at x{program.first_address:04X}"
            f"{' (relocatable)' if program.relocatable else ''}"
        )
        self._add_record(parsed, size=0, located=False)

    def _equ(self, parsed: ParsedLine) -> None:
        n = parsed.line_number
        if parsed.label is None:
            raise DirectiveError(".EQU requires a label", ErrorCode.INVALID_DIRECTIVE, n)

        operand = parsed.operands[0]
        if operand.kind is ArgKind.IMMEDIATE:
            self._check_word(operand, n)
            value, relocatable = operand.value, False
        else:
            symbol = self._program.get_symbol(operand.text)
            if symbol is None:
                if self._program.is_external(operand.text):
                    raise DirectiveError(
                        f".EQU cannot take the value of external symbol '{operand.text}'",
                        ErrorCode.INVALID_DIRECTIVE,
                        n,
                    )
                raise UndefinedSymbolError(
                    operand.text, line=n, hint=".EQU operands must be defined earlier"
                )
            value, relocatable = symbol.signed_value, symbol.relocatable

        self._define_label(parsed.label, n, value, relocatable)
        self._add_record(parsed, size=0, located=False)

    def _fill(self, parsed: ParsedLine) -> None:
        self._define_label(parsed.label, parsed.line_number)
        self._add_record(parsed, size=1)

    def _strz(self, parsed: ParsedLine) -> None:
        self._define_label(parsed.label, parsed.line_number)
        # Characters plus the terminating zero: (len - 2 quotes) + 1
        self._add_record(parsed, size=len(parsed.operands[0].text) - 1)

    def _blkw(self, parsed: ParsedLine) -> None:
        n = parsed.line_number
        operand = parsed.operands[0]
        if operand.kind is ArgKind.IMMEDIATE:
            words = operand.value
        else:
            symbol = self._program.get_symbol(operand.text)
            if symbol is None or symbol.relocatable:
                raise DirectiveError(
                    f".BLKW needs a previously defined absolute symbol, got '{operand.text}'",
                    ErrorCode.INVALID_DIRECTIVE,
                    n,
                    hint="forward references are not allowed in .BLKW",
                )
            words = symbol.signed_value

        if words <= 0:
            raise DirectiveError(
                f".BLKW size must be positive, got {words}",
                ErrorCode.INVALID_DIRECTIVE,
                n,
            )

        self._define_label(parsed.label, n)
        self._add_record(parsed, size=words)

    def _ent(self, parsed: ParsedLine) -> None:
        self._define_label(parsed.label, parsed.line_number)
        for operand in parsed.operands:
            self._program.add_entry_symbol(operand.text, parsed.line_number)
        self._add_record(parsed, size=0, located=False)

    def _ext(self, parsed: ParsedLine) -> None:
        self._define_label(parsed.label, parsed.line_number)
        for operand in parsed.operands:
            self._program.add_external_symbol(operand.text, parsed.line_number)
        self._add_record(parsed, size=0, located=False)

    def _end(self, parsed: ParsedLine) -> None:
        n = parsed.line_number
        if parsed.label is not None:
            raise DirectiveError(
                f"label '{parsed.label}' not allowed on .END", ErrorCode.INVALID_DIRECTIVE, n
            )

        exec_address = None
        if parsed.operands:
            operand = parsed.operands[0]
            if operand.kind is ArgKind.IMMEDIATE:
                exec_address = operand.value
            else:
                symbol = self._program.get_symbol(operand.text)
                if symbol is None:
                    raise UndefinedSymbolError(
                        operand.text, line=n, hint="the execution address must be a local symbol"
                    )
                exec_address = symbol.value

        self._add_record(parsed, size=0, located=False)
        self._close_segment(exec_address)

    _DIRECTIVES = {
        ".ORIG": _orig,
        ".EQU": _equ,
        ".FILL": _fill,
        ".STRZ": _strz,
        ".BLKW": _blkw,
        ".ENT": _ent,
        ".EXT": _ext,
        ".END": _end,
    }

    def _close_segment(self, exec_address: Optional[int]) -> None:
        """
        Place the literal pool, fix the length and execution address, and
        freeze the program.
        """
        program = self._program
        pool_start = self._location
        end = program.assign_literals(pool_start)
        program.length = end - program.first_address

        if exec_address is not None:
            program.exec_address = exec_address
        elif program.relocatable:
            program.exec_address = pool_start
        else:
            program.exec_address = program.first_address

        program.freeze()
        self._ended = True
        logger.debug(
            f"segment {program.segment_name}: length x{program.length:04X}, "
            f"{program.literal_count()} literals at x{pool_start:04X}, "
            f"exec x{program.exec_address:04X}"
        )


# =============================================================================
# Convenience Function
# =============================================================================

def parse_source(
    source: str,
    config: Optional[AssemblerConfig] = None,
    reporter: Optional[ErrorReporter] = None,
) -> Program:
    """
    Parse assembly source text into a Program.

    Args:
        source: Complete source text
        config: Resource limits (defaults apply when omitted)
        reporter: Receives warnings

    Returns:
        The frozen Program
    """
    return Parser(config, reporter).parse(source.splitlines())
