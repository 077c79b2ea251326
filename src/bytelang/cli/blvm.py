"""
blvm - bytelang Virtual Machine Command-Line Interface
======================================================

Compiles a bytelang source file and executes it on the stack machine.
Program output (from print) is echoed line by line, followed by the
program's result.

Usage Examples
--------------
Run a program:
    $ blvm hello.bl

Trace every instruction:
    $ blvm --trace hello.bl

Use a smaller stack:
    $ blvm --stack-size 64 hello.bl

Environment Variables
---------------------
BYTELANG_STACK_SIZE and BYTELANG_TRACE provide defaults that the
command-line options override.
"""

from pathlib import Path
from typing import Optional

import click

from bytelang import __version__
from bytelang.cli import setup_logging
from bytelang.cli.errors import handle_cli_exception
from bytelang.compiler import Compiler
from bytelang.vm import MachineOptions, StackMachine


@click.command()
@click.argument(
    "input_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option(
    "--trace",
    is_flag=True,
    help="Log every executed instruction with the machine state",
)
@click.option(
    "--stack-size",
    type=click.IntRange(min=1),
    default=None,
    help="Value stack capacity in words (default: 1024)",
)
@click.option(
    "-v", "--verbose",
    is_flag=True,
    help="Verbose output",
)
@click.version_option(version=__version__, prog_name="blvm")
def main(
    input_file: Path,
    trace: bool,
    stack_size: Optional[int],
    verbose: bool,
) -> None:
    """
    Compile and run a bytelang program.

    INPUT_FILE is the bytelang source file (.bl) to run.

    \b
    Exit codes:
        0  program ran to completion
        1  compilation failed
        2  invalid arguments
        4  the machine faulted at runtime
    """
    options = MachineOptions.from_env()
    if trace:
        options.trace = True
    if stack_size is not None:
        options.stack_size = stack_size

    setup_logging(verbose, trace=options.trace)

    try:
        result = Compiler().compile_file(input_file)
        for warning in result.warnings:
            click.echo(warning, err=True)

        if verbose:
            click.echo(f"Running {input_file} ({len(result.program)} instructions)")

        machine = StackMachine(options, on_output=click.echo)
        value = machine.execute(result.program)

        click.echo(f"Result: {value}")

    except Exception as e:
        handle_cli_exception(e, verbose=verbose, error_type="Runtime")


if __name__ == "__main__":
    main()
