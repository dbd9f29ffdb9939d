"""
LC-3 Code Generator
===================

This module implements the second pass of the assembler. It walks the
records of a frozen Program in source order and produces two line
streams: the object file and the listing.

Object File Format
------------------
```
Record                         Description
-----------------------------  ----------------------------------------
H<name:6><first:4><length:4>   Header: segment name, load address, length
N<symbol:6><value:4><R|A>      Entry point, relative or absolute
X<symbol>                      External symbol used by this segment
T<addr:4><word:4>[reloc]       One memory word; reloc is M0, M1 or X<w><sym>
E<exec:4>                      End record: execution start address
```

All numbers are upper-case hexadecimal. Relocation tags appear only in
relocatable segments:

| Operand                  | Tag             |
|--------------------------|-----------------|
| literal                  | M1              |
| external symbol          | X<width><name>  |
| external, .FILL word     | XF<name>        |
| relocatable, 9-bit field | M1              |
| relocatable, .FILL word  | M1              |
| relocatable, other field | M0              |

Listing Format
--------------
```
(3000) 4001 0100000000000001 (   2)          JMP   NEXT
(3001) 0201 0000001000000001 (   3) NEXT     BRP   NEXT
                             (   4)          .END
(3002) 0019 0000000000011001 ( lit)
```

Records that produce no storage leave the address and contents columns
blank. `.BLKW` shows its address only. Each `.STRZ` character after the
first is listed without the source columns.
"""

from dataclasses import dataclass, field
from typing import Optional
import logging

from lc3_sdk.errors import (
    ErrorCode,
    OperandError,
    OperandRangeError,
    PageError,
    UndefinedSymbolError,
)
from lc3_sdk.assembler.operands import ADDRESS_WIDTH, ArgKind, Operand, out_of_bounds
from lc3_sdk.assembler.opcodes import (
    DATA_WIDTH,
    FILL_SLOT,
    IMMEDIATE_FLAG_BIT,
    IMMEDIATE_FLAG_OPS,
    SlotFormat,
    get_machine_op,
)
from lc3_sdk.assembler.program import Program, SourceRecord, WORD_MASK

logger = logging.getLogger(__name__)


# Width of the address and contents columns of a listing line.
LISTING_PREFIX_WIDTH = 28

# Range accepted for a full data word (signed or unsigned).
MIN_WORD_VALUE = -0x8000
MAX_WORD_VALUE = 0xFFFF

# X tags carry the field width as a single hex digit; a full .FILL word is XF.
MAX_TAG_WIDTH = 0xF


# =============================================================================
# Output Container
# =============================================================================

@dataclass
class AssemblyOutput:
    """
    Result of code generation.

    Attributes:
        object_lines: Object file records, without line terminators
        listing_lines: Listing lines, without line terminators
    """
    object_lines: list[str] = field(default_factory=list)
    listing_lines: list[str] = field(default_factory=list)

    def object_text(self) -> str:
        """Object file contents, one record per line."""
        return "".join(f"{line}\n" for line in self.object_lines)

    def listing_text(self) -> str:
        """Listing contents, one line per entry."""
        return "".join(f"{line}\n" for line in self.listing_lines)


# =============================================================================
# Code Generator
# =============================================================================

class CodeGenerator:
    """
    Second pass: encodes a frozen Program.

    The generator only reads the program, so `generate()` can be called
    any number of times and always returns the same lines.

    Usage:
        program = Parser().parse(lines)
        output = CodeGenerator(program).generate()
        print(output.object_text())
    """

    def __init__(self, program: Program):
        if not program.frozen:
            raise ValueError("program must be frozen before code generation")
        self.program = program
        self._object: list[str] = []
        self._listing: list[str] = []

    def generate(self) -> AssemblyOutput:
        """
        Produce object and listing lines for the program.

        Returns:
            AssemblyOutput with both line streams

        Raises:
            AssemblerError: On the first operand that cannot be encoded
        """
        self._object = []
        self._listing = []
        program = self.program

        self._object.append(
            f"H{program.segment_name:<6}{program.first_address:04X}{program.length:04X}"
        )
        for name in program.entry_symbols:
            kind = "R" if program.is_relative(name) else "A"
            self._object.append(f"N{name:<6}{program.symbol_value(name):04X}{kind}")
        for name in program.external_symbols:
            self._object.append(f"X{name}")

        for record in program:
            self._generate_record(record)

        for value, address in program.literals:
            self._emit_word(address, value)
            self._listing.append(
                f"{self._storage_prefix(address, value)} ( lit)"
            )

        self._object.append(f"E{program.exec_address:04X}")

        logger.debug(
            f"generated {len(self._object)} object records, "
            f"{len(self._listing)} listing lines for {program.segment_name}"
        )
        return AssemblyOutput(list(self._object), list(self._listing))

    # =========================================================================
    # Record Dispatch
    # =========================================================================

    def _generate_record(self, record: SourceRecord) -> None:
        if record.opcode == ".FILL":
            self._emit_fill(record)
        elif record.opcode == ".STRZ":
            self._emit_strz(record)
        elif record.opcode == ".BLKW":
            prefix = f"({record.location:04X})".ljust(LISTING_PREFIX_WIDTH)
            self._list(record, prefix)
        elif record.opcode.startswith("."):
            self._list(record, " " * LISTING_PREFIX_WIDTH)
        else:
            self._emit_machine_op(record)

    def _emit_machine_op(self, record: SourceRecord) -> None:
        """Encode one machine instruction."""
        op = get_machine_op(record.opcode)
        word = op.template
        relocation = ""
        last = len(record.operands) - 1

        for index, operand in enumerate(record.operands):
            slot = op.slots[index]
            value, external = self._resolve_operand(record, operand)

            if external:
                if index != last:
                    raise OperandError(
                        f"external symbol '{operand.text}' may only appear in the final operand",
                        ErrorCode.EXTERNAL_NOT_FINAL,
                        record.line_number,
                    )
            else:
                self._check_bounds(record, operand, value, slot)

            if index == last:
                relocation = self._relocation(operand, slot)

            word |= (value & slot.mask) << slot.position

        if (
            record.opcode in IMMEDIATE_FLAG_OPS
            and record.operands[-1].kind is not ArgKind.REGISTER
        ):
            word |= 1 << IMMEDIATE_FLAG_BIT

        self._emit_word(record.location, word, relocation)
        self._list(record, self._storage_prefix(record.location, word))

    def _emit_fill(self, record: SourceRecord) -> None:
        operand = record.operands[0]
        value, _ = self._resolve_operand(record, operand)
        if operand.kind is ArgKind.IMMEDIATE and not (MIN_WORD_VALUE <= value <= MAX_WORD_VALUE):
            raise OperandRangeError(
                f".FILL value '{operand.text}' does not fit in {DATA_WIDTH} bits",
                ErrorCode.OPERAND_OUT_OF_BOUNDS,
                record.line_number,
            )

        word = value & WORD_MASK
        self._emit_word(record.location, word, self._relocation(operand, FILL_SLOT))
        self._list(record, self._storage_prefix(record.location, word))

    def _emit_strz(self, record: SourceRecord) -> None:
        """One word per character, then a terminating zero word."""
        words = [ord(char) & WORD_MASK for char in record.operands[0].string_body]
        words.append(0)

        for offset, word in enumerate(words):
            address = record.location + offset
            self._emit_word(address, word)
            prefix = self._storage_prefix(address, word)
            if offset == 0:
                self._list(record, prefix)
            else:
                self._listing.append(prefix)

    def _emit_word(self, address: int, word: int, relocation: str = "") -> None:
        self._object.append(f"T{address:04X}{word:04X}{relocation}")

    # =========================================================================
    # Operand Resolution
    # =========================================================================

    def _resolve_operand(self, record: SourceRecord, operand: Operand) -> tuple[int, bool]:
        """
        Return (value, is_external) for an operand.

        Registers give their number, immediates their value, literals their
        pool address and symbols their table value. External symbols
        resolve to 0.
        """
        program = self.program
        if operand.kind is ArgKind.LITERAL:
            if not program.has_literal(operand.value):
                raise OperandError(
                    f"literal '{operand.text}' has no pool entry",
                    ErrorCode.UNDEFINED_SYMBOL,
                    record.line_number,
                    hint="the literal pool was full when it was first used",
                )
            return program.literal_address(operand.value), False

        if operand.kind is ArgKind.SYMBOL:
            symbol = program.get_symbol(operand.text)
            if symbol is not None:
                return symbol.value, False
            if program.is_external(operand.text):
                return 0, True
            raise UndefinedSymbolError(operand.text, line=record.line_number)

        return operand.value, False

    def _check_bounds(
        self, record: SourceRecord, operand: Operand, value: int, slot: SlotFormat
    ) -> None:
        """Range-check immediates and symbols, then page-check address fields."""
        if operand.kind is ArgKind.IMMEDIATE:
            if out_of_bounds(value, slot.width, operand.base):
                raise OperandRangeError(
                    f"immediate out of bounds: '{operand.text}'",
                    ErrorCode.OPERAND_OUT_OF_BOUNDS,
                    record.line_number,
                    hint=_range_hint(slot.width, operand.base),
                )
        elif operand.kind is ArgKind.SYMBOL:
            if out_of_bounds(value, slot.width, None):
                raise OperandRangeError(
                    f"symbol out of bounds: '{operand.text}' = x{value:04X}",
                    ErrorCode.OPERAND_OUT_OF_BOUNDS,
                    record.line_number,
                    hint=_range_hint(slot.width, None),
                )

        if slot.width == ADDRESS_WIDTH and operand.kind is not ArgKind.REGISTER:
            if (record.location + 1) >> 9 != value >> 9:
                raise PageError(value, record.location, line=record.line_number)

    def _relocation(self, operand: Operand, slot: SlotFormat) -> str:
        """Relocation tag for the final operand of a word."""
        program = self.program
        if not program.relocatable:
            return ""
        if operand.kind is ArgKind.LITERAL:
            return "M1"
        if operand.kind is not ArgKind.SYMBOL:
            return ""
        if program.is_external(operand.text) and not program.has_symbol(operand.text):
            return f"X{min(slot.width, MAX_TAG_WIDTH):X}{operand.text}"
        if program.has_symbol(operand.text) and program.is_relative(operand.text):
            return "M1" if slot.width >= ADDRESS_WIDTH else "M0"
        return ""

    # =========================================================================
    # Listing
    # =========================================================================

    @staticmethod
    def _storage_prefix(address: int, word: int) -> str:
        return f"({address:04X}) {word:04X} {word:016b}"

    def _list(self, record: SourceRecord, prefix: str) -> None:
        operands = ",".join(op.text for op in record.operands)
        line = (
            f"{prefix} ({record.line_number:4d})"
            f" {record.label or '':<8} {record.opcode:<5} {operands}"
        )
        self._listing.append(line.rstrip())


def _range_hint(width: int, base: Optional[str]) -> str:
    if width == ADDRESS_WIDTH:
        return "address operands must be in x0000..xFFFF"
    shift = width - 1
    low, high = 0, (1 << shift) - 1
    if base == "#":
        offset = 1 << (shift - 1)
        return f"decimal operands in a {width}-bit field must be in {low - offset}..{high - offset}"
    return f"operands in a {width}-bit field must be in x0..x{high:X}"
