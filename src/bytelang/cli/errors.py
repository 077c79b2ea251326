"""
Exit Codes for blc and blvm
===========================

Both commands map the exceptions they catch to a message on stderr and a
process exit code. Diagnostics from the compiler are printed as they are,
since they already carry their "file:line:col: error:" header.
"""

import sys
import traceback
from enum import IntEnum
from typing import NoReturn

import click


class ExitCode(IntEnum):
    """Process exit status of blc and blvm."""
    SUCCESS = 0
    BUILD_ERROR = 1      # Lexing, parsing or code generation error
    INVALID_ARGS = 2     # Bad option value or unreadable input file
    INTERNAL_ERROR = 3   # Bug in bytelang itself
    RUNTIME_FAULT = 4    # The stack machine faulted


def describe_failure(error: Exception, error_type: str | None = None) -> tuple[ExitCode, str]:
    """
    Pick the exit code and stderr text for an exception.

    Args:
        error: Exception caught by a command
        error_type: Word placed before "fault:" for machine faults

    Returns:
        (exit code, message) pair
    """
    from bytelang.compiler.errors import CompileError
    from bytelang.vm.errors import VMFault

    if isinstance(error, CompileError):
        return ExitCode.BUILD_ERROR, str(error)

    if isinstance(error, VMFault):
        prefix = f"{error_type} fault" if error_type else "Fault"
        return ExitCode.RUNTIME_FAULT, f"{prefix}: {error}"

    if isinstance(error, (click.BadParameter, FileNotFoundError, PermissionError, IsADirectoryError)):
        return ExitCode.INVALID_ARGS, f"Error: {error}"

    return ExitCode.INTERNAL_ERROR, f"Internal error: {error}"


def handle_cli_exception(
    error: Exception,
    verbose: bool = False,
    error_type: str | None = None
) -> NoReturn:
    """
    Report an exception caught by a command and exit.

    With verbose set, internal errors also print their traceback.
    """
    code, message = describe_failure(error, error_type)
    click.echo(message, err=True)
    if verbose and code == ExitCode.INTERNAL_ERROR:
        traceback.print_exc()
    sys.exit(code)
