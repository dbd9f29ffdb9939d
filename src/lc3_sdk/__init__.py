"""
LC-3 SDK - Assembler Toolchain for the LC-3 Educational Machine
===============================================================

This package provides an assembler for the LC-3 family of 16-bit
educational machines. Source files use a fixed-column format; output is a
text object file suitable for a linker/loader, plus a listing.

Main Components
---------------
- **assembler**: LC-3 assembler (lc3asm)
    Converts assembly source files (.asm) to object files (.obj) and
    listings (.lst)

- **config**: Resource limits (symbol table, literal pool, record ceiling)

- **errors**: Exception hierarchy and diagnostic reporting

Quick Start
-----------
Assemble a program:
    >>> from lc3_sdk import Assembler
    >>> asm = Assembler()
    >>> output = asm.assemble_file("demo.asm")
    >>> asm.write_object("demo.obj")

Or use the command-line tool:
    $ lc3asm demo.asm -l demo.lst

Version History
---------------
1.0.0 - Initial release with assembler, listing and program dump
"""

__version__ = "1.0.0"

# =============================================================================
# Public API Exports
# =============================================================================

from lc3_sdk.assembler import Assembler, AssemblyOutput, assemble, assemble_file
from lc3_sdk.config import AssemblerConfig
from lc3_sdk.errors import (
    LC3Error,
    AssemblerError,
    AssemblySyntaxError,
    UndefinedSymbolError,
    DuplicateSymbolError,
    OperandError,
    OperandRangeError,
    PageError,
    DirectiveError,
    SegmentError,
    ErrorCode,
    ErrorReporter,
    Diagnostic,
    Severity,
)

__all__ = [
    # Version info
    "__version__",
    # Assembler
    "Assembler",
    "AssemblyOutput",
    "AssemblerConfig",
    "assemble",
    "assemble_file",
    # Exception hierarchy
    "LC3Error",
    "AssemblerError",
    "AssemblySyntaxError",
    "UndefinedSymbolError",
    "DuplicateSymbolError",
    "OperandError",
    "OperandRangeError",
    "PageError",
    "DirectiveError",
    "SegmentError",
    # Diagnostics
    "ErrorCode",
    "ErrorReporter",
    "Diagnostic",
    "Severity",
]
