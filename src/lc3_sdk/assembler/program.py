"""
LC-3 Program Model
==================

The resolved, in-memory representation of one assembly unit: the ordered
source records, the symbol table, the literal pool, segment metadata and
the entry/external symbol sets.

Lifecycle
---------
1. The parser creates an empty Program.
2. Records, symbols and literals are added during the single parsing pass.
3. At .END the literal pool is given addresses, the length is fixed and
   the program is frozen.
4. The code generator only reads the frozen program.

Literal Pool
------------
Literals are keyed by their 16-bit word value, so `=#-1` and `=xFFFF`
share an entry. Until `assign_literals` runs every entry maps to
UNASSIGNED. Addresses are given in first-encounter order, which keeps the
object file reproducible from run to run.
"""

from dataclasses import dataclass, field
from typing import Iterator, Optional, TextIO

from lc3_sdk.errors import (
    DirectiveError,
    DuplicateSymbolError,
    ErrorCode,
    SegmentError,
    UndefinedSymbolError,
)
from lc3_sdk.assembler.operands import Operand


# Address of a literal that has not been placed yet.
UNASSIGNED = -1

# Highest word address on the target machine.
MAX_ADDRESS = 0xFFFF

WORD_MASK = 0xFFFF


# =============================================================================
# Records and Symbols
# =============================================================================

@dataclass(frozen=True)
class SourceRecord:
    """
    One assembled source line.

    Attributes:
        line_number: Position in the source file (1-indexed)
        opcode: Machine mnemonic or directive name
        label: Label field, or None
        operands: Classified operands, at most three
        location: Word address of the record, or None if it has none
        size: Words of storage the record occupies
    """
    line_number: int
    opcode: str
    label: Optional[str] = None
    operands: tuple[Operand, ...] = ()
    location: Optional[int] = None
    size: int = 0

    def __str__(self) -> str:
        location = f"x{self.location:04X}" if self.location is not None else "  -  "
        operands = ",".join(op.text for op in self.operands)
        return f"{self.line_number:4d} ({location}): {self.label or '':<6} {self.opcode:<5} {operands}".rstrip()


@dataclass(frozen=True)
class Symbol:
    """
    Symbol table entry.

    Attributes:
        name: Symbol name
        value: 16-bit value
        relocatable: True if the value is an address inside this segment
        line: Line on which the symbol was defined
        negative: True if the source value was below zero
    """
    name: str
    value: int
    relocatable: bool = False
    line: Optional[int] = None
    negative: bool = False

    @property
    def signed_value(self) -> int:
        """The value as written, before it was masked to a word."""
        return self.value - (WORD_MASK + 1) if self.negative else self.value


# =============================================================================
# Program
# =============================================================================

@dataclass
class Program:
    """
    One assembly unit, built by the parser and read by the code generator.

    Attributes:
        segment_name: Label of the .ORIG record
        relocatable: True if .ORIG had no operand
        first_address: Load address of the first word
        length: Segment length in words including the literal pool
        exec_address: Address where execution starts
    """
    segment_name: str = ""
    relocatable: bool = False
    first_address: int = 0
    length: int = 0
    exec_address: int = 0

    records: list[SourceRecord] = field(default_factory=list)
    _symbols: dict[str, Symbol] = field(default_factory=dict, repr=False)
    _literals: dict[int, int] = field(default_factory=dict, repr=False)
    _entries: dict[str, Optional[int]] = field(default_factory=dict, repr=False)
    _externals: dict[str, Optional[int]] = field(default_factory=dict, repr=False)
    _frozen: bool = field(default=False, repr=False)

    # =========================================================================
    # Records
    # =========================================================================

    def add_record(self, record: SourceRecord) -> None:
        self._check_mutable()
        self.records.append(record)

    def record_count(self) -> int:
        return len(self.records)

    def __iter__(self) -> Iterator[SourceRecord]:
        return iter(self.records)

    # =========================================================================
    # Symbol Table
    # =========================================================================

    def define_symbol(
        self,
        name: str,
        value: int,
        relocatable: bool = False,
        line: Optional[int] = None,
    ) -> Symbol:
        """
        Add a symbol to the table.

        Raises:
            DuplicateSymbolError: If `name` is already defined
        """
        self._check_mutable()
        if name in self._symbols:
            raise DuplicateSymbolError(name, line=line, original_line=self._symbols[name].line)
        symbol = Symbol(name, value & WORD_MASK, relocatable, line, negative=value < 0)
        self._symbols[name] = symbol
        return symbol

    def has_symbol(self, name: str) -> bool:
        return name in self._symbols

    def get_symbol(self, name: str) -> Optional[Symbol]:
        return self._symbols.get(name)

    def symbol_value(self, name: str) -> int:
        """
        Raises:
            KeyError: If `name` is not defined
        """
        return self._symbols[name].value

    def is_relative(self, name: str) -> bool:
        """
        Raises:
            KeyError: If `name` is not defined
        """
        return self._symbols[name].relocatable

    def symbol_count(self) -> int:
        return len(self._symbols)

    @property
    def symbols(self) -> dict[str, Symbol]:
        return dict(self._symbols)

    # =========================================================================
    # Entry and External Symbols
    # =========================================================================

    def add_entry_symbol(self, name: str, line: Optional[int] = None) -> None:
        self._check_mutable()
        self._entries.setdefault(name, line)

    def add_external_symbol(self, name: str, line: Optional[int] = None) -> None:
        self._check_mutable()
        self._externals.setdefault(name, line)

    def is_entry(self, name: str) -> bool:
        return name in self._entries

    def is_external(self, name: str) -> bool:
        return name in self._externals

    @property
    def entry_symbols(self) -> list[str]:
        return list(self._entries)

    @property
    def external_symbols(self) -> list[str]:
        return list(self._externals)

    # =========================================================================
    # Literal Pool
    # =========================================================================

    def add_literal(self, value: int) -> bool:
        """
        Add a literal value to the pool if it is not already there.

        Returns:
            True if a new entry was created
        """
        self._check_mutable()
        key = value & WORD_MASK
        if key in self._literals:
            return False
        self._literals[key] = UNASSIGNED
        return True

    def has_literal(self, value: int) -> bool:
        return (value & WORD_MASK) in self._literals

    def literal_address(self, value: int) -> int:
        """
        Return the pool address of a literal (UNASSIGNED before .END).

        Raises:
            KeyError: If the literal is not in the pool
        """
        return self._literals[value & WORD_MASK]

    def literal_count(self) -> int:
        return len(self._literals)

    @property
    def literals(self) -> list[tuple[int, int]]:
        """(value, address) pairs in pool order."""
        return list(self._literals.items())

    def literals_assigned(self) -> bool:
        return any(address != UNASSIGNED for address in self._literals.values())

    def assign_literals(self, start: int) -> int:
        """
        Give every literal an address, starting at `start`.

        Returns:
            The first address after the pool

        Raises:
            RuntimeError: If addresses were already assigned
            SegmentError: If the pool runs past the top of memory
        """
        self._check_mutable()
        if self.literals_assigned():
            raise RuntimeError("literal addresses have already been assigned")

        end = start + len(self._literals)
        if self._literals and end > MAX_ADDRESS:
            raise SegmentError(
                f"literal pool at x{start:04X} leaves system memory",
                ErrorCode.SEGMENT_OVERFLOW,
            )
        for offset, key in enumerate(self._literals):
            self._literals[key] = start + offset
        return end

    # =========================================================================
    # Freezing
    # =========================================================================

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        """
        Check the segment invariants and make the program read-only.

        Raises:
            UndefinedSymbolError: If an entry symbol is not defined locally
            DuplicateSymbolError: If an external symbol is also defined locally
            DirectiveError: If the execution address lies outside the segment range
        """
        if self._frozen:
            return

        for name, line in self._entries.items():
            if name not in self._symbols:
                raise UndefinedSymbolError(
                    name, line=line, hint=".ENT names a symbol that is never defined"
                )
        for name, line in self._externals.items():
            if name in self._symbols:
                raise DuplicateSymbolError(
                    name, line=line, original_line=self._symbols[name].line
                )
        if not (0 <= self.first_address <= MAX_ADDRESS):
            raise SegmentError(f"first address x{self.first_address:X} outside memory")
        if not (self.first_address <= self.exec_address <= MAX_ADDRESS):
            raise DirectiveError(
                f"execution address x{self.exec_address:04X} outside segment "
                f"range x{self.first_address:04X}-xFFFF",
                ErrorCode.INVALID_DIRECTIVE,
            )

        self._frozen = True

    def _check_mutable(self) -> None:
        if self._frozen:
            raise RuntimeError("program is frozen")

    # =========================================================================
    # State Dump
    # =========================================================================

    def write_state(self, out: TextIO) -> None:
        """
        Write a readable dump of the resolved program to `out`.

        Sections: segment description, external symbols, entry points,
        symbol table, literal table, records.
        """
        out.write(f"segmentName   = '{self.segment_name}'\n")
        out.write(f"isRelocatable = {str(self.relocatable).lower()}\n")
        out.write(f"firstAddress  = 0x{self.first_address:04x}\n")
        out.write(f"length        = 0x{self.length:04x}\n")
        out.write(f"execAddress   = 0x{self.exec_address:04x}\n")

        out.write("\n# EXTERNAL SYMBOLS #\n\n")
        for name in self._externals:
            out.write(f"{name}\n")

        out.write("\n# ENTRY POINTS #\n\n")
        for name in self._entries:
            out.write(f"{name}\n")

        out.write("\n# SYMBOL TABLE #\n\n")
        for symbol in self._symbols.values():
            out.write(f"{symbol.name:<6} 0x{symbol.value:04x} {str(symbol.relocatable).lower()}\n")

        out.write("\n# LITERAL TABLE #\n\n")
        for value, address in self._literals.items():
            shown = "----" if address == UNASSIGNED else f"{address:04x}"
            out.write(f"{value:04x} {shown}\n")

        out.write("\n# PROGRAM #\n\n")
        for record in self.records:
            out.write(f"{record}\n")
