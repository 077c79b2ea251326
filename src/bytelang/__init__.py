"""
bytelang - A Tiny Imperative Language, Bytecode Compiler and Stack VM
=====================================================================

This package compiles a small imperative language (typed functions,
variables, if/elseif/else, while, arithmetic and comparisons, calls and
return) to a linear bytecode program and runs it on a stack machine.

Main Components
---------------
- **compiler**: lexer, recursive descent parser and code generator (blc)
    Converts source text (.bl) to a bytecode Program

- **bytecode**: instruction set and Program container
    Shared by the compiler and the machine, with listing output

- **vm**: stack machine (blvm)
    Executes a Program with explicit fault detection

Quick Start
-----------
Compile and run a program:
    >>> from bytelang import compile_source, StackMachine
    >>> program = compile_source('''
    ... fn square(x: int) -> int { return x * x }
    ... fn main() -> int { return square(7) }
    ... ''')
    >>> StackMachine().execute(program)
    49

Inspect the generated code:
    >>> print(program.listing())

Or use the command-line tools:
    $ blc square.bl -o square.lst
    $ blvm square.bl
"""

__version__ = "1.0.0"

# =============================================================================
# Public API Exports
# =============================================================================

from bytelang.errors import BytelangError, LocatedError, SourceLocation
from bytelang.bytecode import Instruction, OpCode, Program
from bytelang.compiler import (
    Compiler,
    CompilerOptions,
    CompilerResult,
    CompileError,
    CompilationError,
    CSyntaxError,
    CSemanticError,
    compile_source,
    run_source,
)
from bytelang.vm import MachineOptions, MachineState, StackMachine, VMFault

__all__ = [
    # Version info
    "__version__",
    # Errors
    "BytelangError",
    "LocatedError",
    "SourceLocation",
    "CompileError",
    "CompilationError",
    "CSyntaxError",
    "CSemanticError",
    "VMFault",
    # Bytecode
    "Instruction",
    "OpCode",
    "Program",
    # Compiler
    "Compiler",
    "CompilerOptions",
    "CompilerResult",
    "compile_source",
    "run_source",
    # Machine
    "MachineOptions",
    "MachineState",
    "StackMachine",
]
