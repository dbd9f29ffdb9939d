"""
LC-3 Assembler
==============

This module provides an assembler for the LC-3 family of 16-bit educational
machines. It converts fixed-column assembly source into a text object file
and a listing.

Main Components
---------------
- **Assembler**: Main assembler class that runs both passes
- **Parser**: First pass; builds the symbol table and literal pool
- **Program**: The resolved segment handed from the first pass to the second
- **CodeGenerator**: Second pass; encodes instructions and data words
- **operands / opcodes**: Operand classifier and instruction descriptor tables

Assembly Process
----------------
1. **Parsing (Parser)**:
   - Split each line into label, opcode and operands
   - Check operand counts and kinds against the descriptor tables
   - Assign addresses, define symbols, collect literals
   - At .END place the literal pool and freeze the program

2. **Code Generation (CodeGenerator)**:
   - Resolve operands, check ranges and page numbers
   - Pack operands into instruction templates
   - Emit object records with relocation tags, and listing lines

Example Usage
-------------
>>> from lc3_sdk.assembler import Assembler
>>> asm = Assembler()
>>> output = asm.assemble_file("demo.asm")
>>> asm.write_object("demo.obj")
>>> asm.write_listing("demo.lst")
"""

from lc3_sdk.assembler.assembler import Assembler, assemble, assemble_file
from lc3_sdk.assembler.operands import ArgCategory, ArgKind, Operand, classify
from lc3_sdk.assembler.opcodes import MACHINE_OPS, PSEUDO_OPS, MachineOp, PseudoOp, SlotFormat
from lc3_sdk.assembler.parser import Parser, parse_source
from lc3_sdk.assembler.program import Program, SourceRecord, Symbol
from lc3_sdk.assembler.codegen import AssemblyOutput, CodeGenerator

__all__ = [
    "Assembler",
    "assemble",
    "assemble_file",
    "ArgCategory",
    "ArgKind",
    "Operand",
    "classify",
    "MACHINE_OPS",
    "PSEUDO_OPS",
    "MachineOp",
    "PseudoOp",
    "SlotFormat",
    "Parser",
    "parse_source",
    "Program",
    "SourceRecord",
    "Symbol",
    "AssemblyOutput",
    "CodeGenerator",
]
