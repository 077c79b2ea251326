"""
bytelang Compiler
=================

Pipeline
--------
    Source → Lexer → Parser → Syntax Tree → Code Generator → Program

The lexer and parser stop at the first error. The code generator collects
every diagnostic of a program before the compiler reports them together.

Usage
-----
>>> from bytelang.compiler import compile_source
>>> program = compile_source('fn main() -> int { return 2 + 3 * 4 }')
>>> print(program.listing())
"""

from bytelang.compiler.compiler import (
    Compiler,
    CompilerOptions,
    CompilerResult,
    compile_source,
    run_source,
)
from bytelang.compiler.errors import (
    CompileError,
    CompilationError,
    CSyntaxError,
    CSemanticError,
    InvalidCharacterError,
    UnexpectedTokenError,
    MissingTokenError,
    UndeclaredIdentifierError,
    UndefinedFunctionError,
    DuplicateDeclarationError,
    ArgumentCountError,
    InvalidStatementError,
    ErrorCollector,
)
from bytelang.compiler.lexer import Lexer, Token, TokenType, tokenize
from bytelang.compiler.parser import Parser, parse_source
from bytelang.compiler.ast import NodeKind, SyntaxTree
from bytelang.compiler.codegen import CodeGenerator
from bytelang.compiler.types import PrimitiveType

__all__ = [
    # Main API
    "Compiler",
    "CompilerOptions",
    "CompilerResult",
    "compile_source",
    "run_source",
    # Errors
    "CompileError",
    "CompilationError",
    "CSyntaxError",
    "CSemanticError",
    "InvalidCharacterError",
    "UnexpectedTokenError",
    "MissingTokenError",
    "UndeclaredIdentifierError",
    "UndefinedFunctionError",
    "DuplicateDeclarationError",
    "ArgumentCountError",
    "InvalidStatementError",
    "ErrorCollector",
    # Lexer
    "Lexer",
    "Token",
    "TokenType",
    "tokenize",
    # Parser
    "Parser",
    "parse_source",
    # Syntax tree
    "NodeKind",
    "SyntaxTree",
    # Code generator
    "CodeGenerator",
    "PrimitiveType",
]
