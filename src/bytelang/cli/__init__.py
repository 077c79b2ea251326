"""
bytelang Command-Line Interface
===============================

This package provides the command-line tools for bytelang:

- **blc**: compiler (writes the bytecode listing, or dumps tokens / tree)
- **blvm**: compiles a source file and runs it on the stack machine

Each tool is implemented as a Click-based CLI application with
comprehensive help and error reporting.
"""

import logging

__all__ = ["blc", "blvm", "setup_logging"]


def setup_logging(verbose: bool = False, trace: bool = False) -> None:
    """
    Configure logging based on verbosity.

    Verbose mode shows DEBUG messages from every module; trace mode alone
    only enables the stack machine's per-step DEBUG log.
    """
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s" if verbose else "%(message)s",
    )
    if trace:
        logging.getLogger("bytelang.vm").setLevel(logging.DEBUG)
