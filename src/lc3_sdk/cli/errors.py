"""
CLI Error Handling
==================

Maps the exceptions that can escape an lc3asm run onto exit codes and a
single line on stderr.

| Exception                         | Exit code      | Message prefix          |
|-----------------------------------|----------------|-------------------------|
| LC3Error (syntax, range, segment) | BUILD_ERROR    | "Assembly error: "      |
| OutputFileError                   | BUILD_ERROR    | "Error: cannot write"   |
| other OSError after reading input | BUILD_ERROR    | "I/O error: "           |
| click.BadParameter, bad input     | INVALID_ARGS   | "Error: "               |
| anything else                     | INTERNAL_ERROR | "Internal error: "      |
"""

import sys
import traceback
from enum import IntEnum
from pathlib import Path
from typing import NoReturn

import click

from lc3_sdk.errors import LC3Error


class ExitCode(IntEnum):
    """Exit codes returned by lc3asm."""
    SUCCESS = 0
    BUILD_ERROR = 1      # Source rejected, or an output file could not be written
    INVALID_ARGS = 2     # Bad option value, missing or unreadable input
    INTERNAL_ERROR = 3   # Unexpected internal error


class OutputFileError(Exception):
    """
    An object, listing or dump file could not be written.

    The source assembled cleanly, so this is a build failure rather than a
    usage error even when the underlying cause is a missing directory or a
    permission problem.
    """

    def __init__(self, kind: str, path: Path, cause: OSError):
        self.kind = kind
        self.path = path
        self.cause = cause
        reason = cause.strerror or str(cause)
        super().__init__(f"cannot write {kind} file '{path}': {reason}")


def handle_cli_exception(
    error: Exception,
    verbose: bool = False,
    error_type: str | None = None
) -> NoReturn:
    """
    Report `error` on stderr and exit with the matching ExitCode.

    Args:
        error: The exception that was raised
        verbose: If True, print the traceback for internal errors
        error_type: Prefix for assembly errors (e.g., "Assembly")

    Raises:
        SystemExit: Always
    """
    if isinstance(error, LC3Error):
        # Already carries line number, error code and hint
        prefix = f"{error_type} error: " if error_type else "Error: "
        click.echo(f"{prefix}{error}", err=True)
        sys.exit(ExitCode.BUILD_ERROR)

    elif isinstance(error, OutputFileError):
        click.echo(f"Error: {error}", err=True)
        sys.exit(ExitCode.BUILD_ERROR)

    elif isinstance(error, click.BadParameter):
        click.echo(f"Error: {error.format_message()}", err=True)
        sys.exit(ExitCode.INVALID_ARGS)

    elif isinstance(error, (FileNotFoundError, PermissionError, IsADirectoryError)):
        # Input file vanished or is unreadable
        click.echo(f"Error: {error}", err=True)
        sys.exit(ExitCode.INVALID_ARGS)

    elif isinstance(error, OSError):
        click.echo(f"I/O error: {error}", err=True)
        sys.exit(ExitCode.BUILD_ERROR)

    else:
        click.echo(f"Internal error: {error}", err=True)
        if verbose:
            traceback.print_exc()
        sys.exit(ExitCode.INTERNAL_ERROR)
