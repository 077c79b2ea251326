"""
bytelang Compiler Main Module
=============================

This module provides the main compiler interface for bytelang.
It orchestrates the complete compilation process:

    Source → Lex → Parse → Generate → Program

Usage
-----
Command line:
    $ blc hello.bl -o hello.lst

Programmatic:
    >>> from bytelang.compiler import compile_source
    >>> program = compile_source('fn main() -> int { return 42 }')

Compilation Pipeline
--------------------
1. **Lexical Analysis**: Convert source to tokens
2. **Parsing**: Build the syntax tree (stops at the first syntax error)
3. **Code Generation**: Lower the tree to bytecode, collecting diagnostics

Error Handling
--------------
Syntax errors are raised as they are found. Generation diagnostics are
collected, so every semantic problem is reported in one CompilationError.
A program with diagnostics is never returned for execution.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from bytelang.bytecode import Program
from bytelang.compiler.ast import SyntaxTree
from bytelang.compiler.codegen import CodeGenerator
from bytelang.compiler.lexer import Lexer, Token
from bytelang.compiler.parser import Parser

logger = logging.getLogger(__name__)


@dataclass
class CompilerOptions:
    """
    Compiler configuration options.

    Attributes:
        output_comments: Attach readable comments to generated instructions
        max_errors: Diagnostics listed in a report before the rest are counted
    """
    output_comments: bool = True
    max_errors: int = 100


@dataclass
class CompilerResult:
    """
    Result of a compilation.

    Attributes:
        filename: Source filename
        success: True if compilation succeeded
        program: Generated bytecode program
        tree: Syntax tree (if parsing succeeded)
        tokens: Token stream
        errors: Diagnostics from code generation
        warnings: Warning messages
    """
    filename: str = ""
    success: bool = False
    program: Optional[Program] = None
    tree: Optional[SyntaxTree] = None
    tokens: list[Token] = field(default_factory=list)
    errors: list = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def token_count(self) -> int:
        return len(self.tokens)


class Compiler:
    """
    bytelang compiler.

    Example:
        compiler = Compiler()
        result = compiler.compile_file("hello.bl")
        print(result.program.listing())

    Attributes:
        options: Compiler configuration options
    """

    def __init__(self, options: Optional[CompilerOptions] = None):
        """
        Initialize the compiler.

        Args:
            options: Compiler configuration (uses defaults if None)
        """
        self.options = options or CompilerOptions()

    def compile_source(self, source: str, filename: str = "<input>") -> CompilerResult:
        """
        Compile bytelang source code to a Program.

        Args:
            source: Source code string
            filename: Source filename for error messages

        Returns:
            CompilerResult containing the program and any warnings

        Raises:
            CSyntaxError: On the first lexical or grammar error
            CompilationError: If code generation reported any diagnostics
        """
        result = CompilerResult(filename=filename)
        source_lines = source.splitlines()

        # Stage 1: Lexical analysis
        result.tokens = self._lex(source, filename)

        # Stage 2: Parsing
        result.tree = self._parse(result.tokens, filename, source_lines)

        # Stage 3: Code generation
        generator = CodeGenerator(
            max_errors=self.options.max_errors,
            output_comments=self.options.output_comments,
            source_lines=source_lines,
        )
        result.program = generator.generate(result.tree)
        result.errors = generator.errors
        result.warnings = generator.warnings

        if generator.has_errors():
            logger.debug(f"{filename}: {generator.error_count} errors, not runnable")
        generator.diagnostics.raise_if_errors()

        result.success = True
        logger.debug(
            f"{filename}: compiled {result.token_count} tokens "
            f"to {len(result.program)} instructions, "
            f"{generator.diagnostics.warning_count()} warnings"
        )
        return result

    def compile_file(self, filepath) -> CompilerResult:
        """
        Compile a bytelang source file.

        Raises:
            FileNotFoundError: If source file not found
            CSyntaxError, CompilationError: As for compile_source
        """
        path = Path(filepath)
        if not path.exists():
            raise FileNotFoundError(f"Source file not found: {filepath}")

        source = path.read_text(encoding="utf-8")
        return self.compile_source(source, str(filepath))

    def _lex(self, source: str, filename: str) -> list[Token]:
        """Tokenize source."""
        return list(Lexer(source, filename).tokenize())

    def _parse(self, tokens: list[Token], filename: str, source_lines: list[str]) -> SyntaxTree:
        """Parse tokens into a syntax tree."""
        return Parser(tokens, filename, source_lines).parse()


# =============================================================================
# Convenience Functions
# =============================================================================

def compile_source(
    source: str,
    filename: str = "<input>",
    options: Optional[CompilerOptions] = None,
) -> Program:
    """
    Compile source code and return the Program.

    Raises:
        CompileError: If compilation fails
    """
    return Compiler(options).compile_source(source, filename).program


def run_source(source: str, filename: str = "<input>", machine=None) -> int:
    """
    Compile and execute source code, returning the program's result.

    Args:
        source: Source code string
        filename: Source filename for error messages
        machine: StackMachine to run on (a default one if None)

    Raises:
        CompileError: If compilation fails
        VMFault: If execution faults
    """
    from bytelang.vm.machine import StackMachine

    program = compile_source(source, filename)
    machine = machine or StackMachine()
    return machine.execute(program)
