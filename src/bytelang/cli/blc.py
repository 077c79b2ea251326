"""
blc - bytelang Compiler Command-Line Interface
==============================================

This module implements the command-line interface for the bytelang
compiler. It compiles a source file and writes the numbered bytecode
listing, or dumps the intermediate token stream or syntax tree.

Usage Examples
--------------
Basic compilation:
    $ blc hello.bl

With output file:
    $ blc hello.bl -o hello.lst

Inspect the front end:
    $ blc --tokens hello.bl
    $ blc --ast hello.bl

Verbose mode:
    $ blc -v hello.bl
"""

from pathlib import Path
from typing import Optional

import click

from bytelang import __version__
from bytelang.cli import setup_logging
from bytelang.cli.errors import handle_cli_exception
from bytelang.compiler import Compiler, CompilerOptions
from bytelang.compiler.lexer import tokenize
from bytelang.compiler.parser import parse_source


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
    help="Output listing file (default: input.lst)",
)
@click.option(
    "--tokens",
    is_flag=True,
    help="Print the token stream and exit",
)
@click.option(
    "--ast",
    is_flag=True,
    help="Print the syntax tree and exit",
)
@click.option(
    "--no-comments",
    is_flag=True,
    help="Omit instruction comments from the listing",
)
@click.option(
    "-v", "--verbose",
    is_flag=True,
    help="Verbose output",
)
@click.version_option(version=__version__, prog_name="blc")
def main(
    input_file: Path,
    output: Optional[Path],
    tokens: bool,
    ast: bool,
    no_comments: bool,
    verbose: bool,
) -> None:
    """
    Compile bytelang source code to a bytecode listing.

    INPUT_FILE is the bytelang source file (.bl) to compile.

    \b
    Examples:
        blc hello.bl                 # Outputs hello.lst
        blc hello.bl -o out.lst      # Specify output file
        blc --tokens hello.bl        # Dump tokens
        blc --ast hello.bl           # Dump the syntax tree
    """
    setup_logging(verbose)

    if output is None:
        output = input_file.with_suffix(".lst")

    try:
        source = input_file.read_text(encoding="utf-8")

        # Token dump mode
        if tokens:
            for token in tokenize(source, str(input_file)):
                click.echo(f"{token.line:4d}:{token.column:<3d} {token.kind.name:<14} {token.lexeme}")
            return

        # Tree dump mode
        if ast:
            click.echo(parse_source(source, str(input_file)).pretty())
            return

        options = CompilerOptions(output_comments=not no_comments)
        result = Compiler(options).compile_source(source, str(input_file))

        for warning in result.warnings:
            click.echo(warning, err=True)

        listing = result.program.listing()
        output.write_text(listing + "\n", encoding="utf-8")

        if verbose:
            click.echo(f"Tokenized: {result.token_count} tokens")
            click.echo(f"Functions: {', '.join(result.program.function_table) or 'none'}")
            click.echo(f"Globals: {result.program.global_slot_count}")

        click.echo(f"Compiled {input_file} -> {output} ({len(result.program)} instructions)")

    except Exception as e:
        handle_cli_exception(e, verbose=verbose, error_type="Compilation")


if __name__ == "__main__":
    main()
