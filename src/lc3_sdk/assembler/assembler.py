"""
LC-3 Assembler - Main Interface
===============================

This module provides the main Assembler class, which is the primary interface
for assembling LC-3 source code. It runs the parser (first pass) and the code
generator (second pass) and keeps the results for writing.

Example Usage
-------------
>>> from lc3_sdk.assembler import Assembler
>>>
>>> asm = Assembler()
>>> output = asm.assemble_string(
...     "DEMO      .ORIG    x3000\\n"
...     "          JMP      NEXT\\n"
...     "NEXT      BRP      NEXT\\n"
...     "          .END\\n"
... )
>>> output.object_lines
['HDEMO  30000002', 'T30004001', 'T30010201', 'E3000']
>>>
>>> asm.write_object("demo.obj")
>>> asm.write_listing("demo.lst")

Command-Line Usage
------------------
The assembler can also be invoked from the command line:

    $ lc3asm demo.asm -o demo.obj -l demo.lst

Options:
    -o, --output FILE        Object file (default: INPUT.obj)
    -l, --listing FILE       Listing file (default: INPUT.lst)
    -d, --dump               Write the resolved program to INPUT.dump
    -M, --max-records N      Stop after N records
    -s, --max-symbols N      Symbol table capacity
    -L, --max-literals N     Literal pool capacity
    -v, --verbose            Verbose output
"""

from pathlib import Path
from typing import Iterable, Optional

from lc3_sdk.config import AssemblerConfig
from lc3_sdk.errors import AssemblerError, Diagnostic, ErrorReporter
from lc3_sdk.assembler.parser import Parser
from lc3_sdk.assembler.codegen import AssemblyOutput, CodeGenerator
from lc3_sdk.assembler.program import Program


class Assembler:
    """
    Main LC-3 assembler class.

    One instance can assemble several sources in turn; each call replaces
    the results of the previous one.

    Attributes:
        config: Resource limits passed to the parser
        verbose: If True, print progress messages
    """

    def __init__(
        self,
        config: Optional[AssemblerConfig] = None,
        verbose: bool = False,
        reporter: Optional[ErrorReporter] = None,
    ):
        """
        Initialize the assembler.

        Args:
            config: Resource limits (defaults apply when omitted)
            verbose: Enable verbose output
            reporter: Diagnostic sink; a private one is created when omitted
        """
        self.config = (config or AssemblerConfig()).validate()
        self._verbose = verbose
        self._reporter = reporter or ErrorReporter()
        self._program: Optional[Program] = None
        self._output: Optional[AssemblyOutput] = None

    # =========================================================================
    # Assembly Methods
    # =========================================================================

    def assemble_lines(self, lines: Iterable[str]) -> AssemblyOutput:
        """
        Assemble source lines.

        Args:
            lines: Source lines, with or without line terminators

        Returns:
            Object and listing lines

        Raises:
            AssemblerError: If assembly fails
        """
        self._program = None
        self._output = None
        self._reporter.clear()

        try:
            program = Parser(self.config, self._reporter).parse(lines)
            if self._verbose:
                print(
                    f"Parsed {program.record_count()} records, "
                    f"{program.symbol_count()} symbols, {program.literal_count()} literals"
                )

            output = CodeGenerator(program).generate()
        except AssemblerError as e:
            self._reporter.fatal(e)

        if self._verbose:
            print(f"Generated {len(output.object_lines)} object records")

        self._program = program
        self._output = output
        return output

    def assemble_string(self, source: str) -> AssemblyOutput:
        """
        Assemble source code from a string.

        Args:
            source: Assembly source code

        Returns:
            Object and listing lines

        Raises:
            AssemblerError: If assembly fails
        """
        if self._verbose:
            print("Assembling from string...")
        return self.assemble_lines(source.splitlines())

    def assemble_file(self, filepath: str | Path) -> AssemblyOutput:
        """
        Assemble source code from a file.

        Args:
            filepath: Path to assembly source file

        Returns:
            Object and listing lines

        Raises:
            AssemblerError: If assembly fails or the file cannot be read
            FileNotFoundError: If source file not found
        """
        filepath = Path(filepath)

        if self._verbose:
            print(f"Assembling {filepath}...")

        with filepath.open(encoding="utf-8") as source:
            return self.assemble_lines(source)

    # =========================================================================
    # Output Methods
    # =========================================================================

    def get_program(self) -> Program:
        """
        Get the resolved program of the last assembly.

        Raises:
            RuntimeError: If nothing has been assembled
        """
        if self._program is None:
            raise RuntimeError("nothing has been assembled")
        return self._program

    def get_object_lines(self) -> list[str]:
        return list(self._require_output().object_lines)

    def get_listing(self) -> str:
        return self._require_output().listing_text()

    def get_warnings(self) -> list[Diagnostic]:
        """Warnings reported during the last assembly."""
        return list(self._reporter.warnings)

    def write_object(self, filepath: str | Path) -> None:
        """
        Write the object file.

        Args:
            filepath: Output file path
        """
        Path(filepath).write_text(self._require_output().object_text(), encoding="utf-8")

        if self._verbose:
            print(f"Wrote {filepath}")

    def write_listing(self, filepath: str | Path) -> None:
        """
        Write the assembly listing file.

        The listing shows, per line, the address and contents in hex and
        binary, the source line number, label, opcode and operands.

        Args:
            filepath: Output file path
        """
        Path(filepath).write_text(self._require_output().listing_text(), encoding="utf-8")

        if self._verbose:
            print(f"Wrote listing to {filepath}")

    def write_dump(self, filepath: str | Path) -> None:
        """
        Write the resolved program (segment, symbols, literals, records).

        Args:
            filepath: Output file path
        """
        with Path(filepath).open("w", encoding="utf-8") as out:
            self.get_program().write_state(out)

        if self._verbose:
            print(f"Wrote program dump to {filepath}")

    def _require_output(self) -> AssemblyOutput:
        if self._output is None:
            raise RuntimeError("nothing has been assembled")
        return self._output


# =============================================================================
# Convenience Functions
# =============================================================================

def assemble(source: str, config: Optional[AssemblerConfig] = None) -> AssemblyOutput:
    """
    Convenience function to assemble source code.

    Args:
        source: Assembly source code
        config: Resource limits

    Returns:
        Object and listing lines

    Raises:
        AssemblerError: If assembly fails
    """
    return Assembler(config).assemble_string(source)


def assemble_file(filepath: str | Path, config: Optional[AssemblerConfig] = None) -> AssemblyOutput:
    """
    Convenience function to assemble a file.

    Args:
        filepath: Path to source file
        config: Resource limits

    Returns:
        Object and listing lines

    Raises:
        AssemblerError: If assembly fails
    """
    return Assembler(config).assemble_file(filepath)
