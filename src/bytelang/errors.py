"""
bytelang Error Hierarchy
========================

This module defines the root of the exception hierarchy for bytelang.
All exceptions inherit from BytelangError, allowing callers to catch every
toolchain error with a single except clause if desired.

Exception Hierarchy
-------------------
BytelangError (base)
├── CompileError (bytelang.compiler.errors)
│   ├── CSyntaxError - lexer and parser errors
│   ├── CSemanticError - code generation diagnostics
│   └── CompilationError - aggregate report of collected diagnostics
└── VMFault (bytelang.vm.errors)
    ├── StackOverflowError
    ├── StackUnderflowError
    ├── DivisionByZeroError
    ├── InvalidOpcodeError
    └── InvalidAddressError

Error messages follow this format:
    filename:line:column: error: description
        source_line_text
        ^ (pointer to error location)
    hint: suggestion for fixing (when available)
"""

from dataclasses import dataclass
from typing import Optional


# =============================================================================
# Base Exception Class
# =============================================================================

class BytelangError(Exception):
    """
    Base exception for all bytelang errors.

        try:
            compile_source(source)
        except BytelangError as e:
            print(f"Error: {e}")
    """
    pass


# =============================================================================
# Source Location Tracking
# =============================================================================

@dataclass(frozen=True)
class SourceLocation:
    """
    A position in source code, used for diagnostics.

    Attributes:
        filename: Name of the source file (or "<input>" for string input)
        line: Line number (1-indexed)
        column: Column number (0-indexed, as produced by the lexer)
    """
    filename: str
    line: int
    column: int

    def __str__(self) -> str:
        """Format as 'filename:line:column' for error messages."""
        return f"{self.filename}:{self.line}:{self.column}"


# =============================================================================
# Located Errors
# =============================================================================

class LocatedError(BytelangError):
    """
    Error that can point at a place in the source.

    Attributes:
        message: The error description
        location: Where in the source the error occurred (optional)
        hint: A suggestion for fixing the error (optional)
        source_line: The source text at the error location (optional)
    """

    def __init__(
        self,
        message: str,
        location: Optional[SourceLocation] = None,
        hint: Optional[str] = None,
        source_line: Optional[str] = None,
    ):
        self.message = message
        self.location = location
        self.hint = hint
        self.source_line = source_line
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """
        Format the error message with location, source context, and hint.

        Example output:
            demo.bl:3:11: error: undeclared identifier 'cnt'
                return cnt + 1
                       ^
            hint: did you mean 'count'?
        """
        parts = []

        if self.location:
            parts.append(f"{self.location}: error: {self.message}")
        else:
            parts.append(f"error: {self.message}")

        # Source context with caret pointer
        if self.source_line is not None and self.location is not None:
            parts.append(f"    {self.source_line}")
            padding = " " * (4 + self.location.column)
            parts.append(f"{padding}^")

        if self.hint:
            parts.append(f"hint: {self.hint}")

        return "\n".join(parts)
