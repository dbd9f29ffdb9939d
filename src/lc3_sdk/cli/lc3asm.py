"""
lc3asm - LC-3 Assembler Command-Line Interface
==============================================

This module implements the command-line interface for the LC-3 assembler.

Usage Examples
--------------
Basic assembly (writes demo.obj and demo.lst):
    $ lc3asm demo.asm

With explicit output files:
    $ lc3asm demo.asm -o out/demo.obj -l out/demo.lst

Dump the resolved program (segment, symbols, literals, records):
    $ lc3asm -d demo.asm

Raise the resource limits:
    $ lc3asm -s 500 -L 200 -M 10000 big.asm

Verbose mode:
    $ lc3asm -v demo.asm

Limits not given on the command line are read from LC3ASM_MAX_SYMBOLS,
LC3ASM_MAX_LITERALS and LC3ASM_MAX_RECORDS when set.
"""

from pathlib import Path
from typing import Callable, Optional
import logging

import click

from lc3_sdk import __version__
from lc3_sdk.assembler import Assembler
from lc3_sdk.config import AssemblerConfig
from lc3_sdk.cli.errors import OutputFileError, handle_cli_exception


# =============================================================================
# CLI Definition
# =============================================================================

@click.command()
@click.argument(
    "input_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option(
    "-o", "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Output object file (default: INPUT.obj)",
)
@click.option(
    "-l", "--listing",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Output listing file (default: INPUT.lst)",
)
@click.option(
    "-d", "--dump",
    is_flag=True,
    help="Write the resolved program to INPUT.dump",
)
@click.option(
    "-M", "--max-records",
    type=click.IntRange(min=1),
    default=None,
    help="Stop after this many records (default: 2000)",
)
@click.option(
    "-s", "--max-symbols",
    type=click.IntRange(min=1),
    default=None,
    help="Symbol table capacity (default: 100)",
)
@click.option(
    "-L", "--max-literals",
    type=click.IntRange(min=1),
    default=None,
    help="Literal pool capacity (default: 50)",
)
@click.option(
    "-v", "--verbose",
    is_flag=True,
    help="Verbose output",
)
@click.version_option(version=__version__, prog_name="lc3asm")
def main(
    input_file: Path,
    output: Optional[Path],
    listing: Optional[Path],
    dump: bool,
    max_records: Optional[int],
    max_symbols: Optional[int],
    max_literals: Optional[int],
    verbose: bool,
) -> None:
    """
    Assemble LC-3 source code.

    INPUT_FILE is the assembly source file to assemble.

    The assembler produces a text object file for the linker/loader and a
    listing showing the address, contents and source of every word.

    \b
    Examples:
        lc3asm demo.asm              # Outputs demo.obj and demo.lst
        lc3asm demo.asm -o out.obj   # Specify object file
        lc3asm -d demo.asm           # Also write demo.dump
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s: %(name)s: %(message)s",
    )

    config = AssemblerConfig.from_env()
    if max_records is not None:
        config.max_records = max_records
    if max_symbols is not None:
        config.max_symbols = max_symbols
    if max_literals is not None:
        config.max_literals = max_literals

    object_file = output if output is not None else input_file.with_suffix(".obj")
    listing_file = listing if listing is not None else input_file.with_suffix(".lst")

    try:
        try:
            config.validate()
        except ValueError as e:
            raise click.BadParameter(str(e), param_hint="LC3ASM_* environment") from e

        asm = Assembler(config=config, verbose=verbose)

        if verbose:
            click.echo(
                f"Limits: {config.max_symbols} symbols, {config.max_literals} literals, "
                f"{config.max_records} records"
            )

        asm.assemble_file(input_file)

        for warning in asm.get_warnings():
            click.echo(str(warning), err=True)

        _write("object", object_file, asm.write_object)
        _write("listing", listing_file, asm.write_listing)

        if dump:
            _write("dump", input_file.with_suffix(".dump"), asm.write_dump)

        if verbose:
            program = asm.get_program()
            click.echo(
                f"Assembly complete: segment {program.segment_name}, "
                f"{program.length} words at x{program.first_address:04X}"
            )
            click.echo(f"Defined {program.symbol_count()} symbols")

    except Exception as e:
        handle_cli_exception(e, verbose=verbose, error_type="Assembly")


def _write(kind: str, path: Path, writer: Callable[[Path], None]) -> None:
    try:
        writer(path)
    except OSError as e:
        raise OutputFileError(kind, path, e) from e


if __name__ == "__main__":
    main()
