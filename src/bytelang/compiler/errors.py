"""
Compiler Error Hierarchy
========================

Exceptions raised (or collected) by the lexer, parser and code generator.
All of them inherit from CompileError, which itself inherits from the
package-wide BytelangError.

Exception Hierarchy
-------------------
CompileError (base for all compile-time errors)
├── CSyntaxError - lexer and parser errors, fatal on first occurrence
│   ├── InvalidCharacterError - character the lexer cannot classify
│   ├── UnexpectedTokenError - token that fits no grammar rule
│   └── MissingTokenError - required token absent
├── CSemanticError - code generation diagnostics (collected, not raised)
│   ├── UndeclaredIdentifierError - variable used without declaration
│   ├── UndefinedFunctionError - call to a function that is never defined
│   ├── DuplicateDeclarationError - name declared twice in one scope
│   ├── ArgumentCountError - call with the wrong number of arguments
│   └── InvalidStatementError - statement in a place it cannot compile
└── CompilationError - aggregate report built by ErrorCollector

The parser aborts at the first CSyntaxError. The code generator never
raises: it records CSemanticError instances in an ErrorCollector, emits a
neutral placeholder and keeps going, so several problems surface in one run.
"""

import difflib
from typing import Iterable, List, Optional

from bytelang.errors import LocatedError, SourceLocation


# =============================================================================
# Base Compile Exception
# =============================================================================

class CompileError(LocatedError):
    """Base exception for all compile-time errors."""
    pass


class CompilationError(CompileError):
    """
    Aggregate compilation error containing multiple diagnostics.

    The message is an already formatted report from ErrorCollector and is
    passed through without another location prefix.
    """

    def __init__(self, message: str, errors: Optional[List[CompileError]] = None):
        self.errors = list(errors or [])
        super().__init__(message)

    def _format_message(self) -> str:
        """Return message as-is - it's already a formatted aggregate report."""
        return self.message


# =============================================================================
# Syntax Errors (Lexer and Parser)
# =============================================================================

class CSyntaxError(CompileError):
    """
    Lexical or grammar error.

    Raised when the lexer meets a character it cannot classify, or when the
    parser meets a token that does not match the grammar. Parsing stops at
    the first one; no tree is produced.
    """
    pass


class InvalidCharacterError(CSyntaxError):
    """Invalid character in source code."""

    def __init__(
        self,
        char: str,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
        hint: Optional[str] = None,
    ):
        self.char = char
        super().__init__(
            f"invalid character '{char}' (0x{ord(char):02X})",
            location=location,
            hint=hint,
            source_line=source_line,
        )


class UnexpectedTokenError(CSyntaxError):
    """
    Unexpected token during parsing.

    Raised when the parser encounters a token that doesn't start any
    alternative of the rule being parsed.
    """

    def __init__(
        self,
        found: str,
        expected: Optional[str] = None,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
    ):
        self.found = found
        self.expected = expected

        hint = None
        if expected:
            hint = f"expected {expected}"

        super().__init__(
            f"unexpected token '{found}'",
            location=location,
            hint=hint,
            source_line=source_line,
        )


class MissingTokenError(CSyntaxError):
    """
    Required token is missing.

    Raised when a required token (like ')' or '->') is not found where
    the grammar demands it.
    """

    def __init__(
        self,
        expected: str,
        found: str,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
    ):
        self.expected = expected
        self.found = found
        super().__init__(
            f"expected {expected} but found '{found}'",
            location=location,
            source_line=source_line,
        )


# =============================================================================
# Semantic Errors (Code Generation)
# =============================================================================

class CSemanticError(CompileError):
    """
    Semantic error found while generating code.

    The program is syntactically correct but refers to something that does
    not exist or puts a statement where it cannot be compiled.
    """
    pass


def similar_names(name: str, candidates: Iterable[str]) -> List[str]:
    """Return up to three known names that look like `name`."""
    return difflib.get_close_matches(name, list(candidates), n=3, cutoff=0.6)


class UndeclaredIdentifierError(CSemanticError):
    """
    Reference to an undeclared variable.

    Suggests similarly-named identifiers when any are known, which catches
    most typos.
    """

    def __init__(
        self,
        identifier: str,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
        similar_identifiers: Optional[List[str]] = None,
    ):
        self.identifier = identifier
        self.similar_identifiers = similar_identifiers or []

        hint = None
        if self.similar_identifiers:
            suggestions = ", ".join(f"'{s}'" for s in self.similar_identifiers[:3])
            hint = f"did you mean {suggestions}?"

        super().__init__(
            f"undeclared identifier '{identifier}'",
            location=location,
            hint=hint,
            source_line=source_line,
        )


class UndefinedFunctionError(CSemanticError):
    """Call to a function that is not defined anywhere in the program."""

    def __init__(
        self,
        function_name: str,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
        similar_functions: Optional[List[str]] = None,
    ):
        self.function_name = function_name
        self.similar_functions = similar_functions or []

        hint = "the call will target address 0"
        if self.similar_functions:
            suggestions = ", ".join(f"'{s}'" for s in self.similar_functions[:3])
            hint = f"did you mean {suggestions}?"

        super().__init__(
            f"call to undefined function '{function_name}'",
            location=location,
            hint=hint,
            source_line=source_line,
        )


class DuplicateDeclarationError(CSemanticError):
    """Name declared more than once in the same scope."""

    def __init__(
        self,
        identifier: str,
        kind: str = "variable",
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
    ):
        self.identifier = identifier
        self.kind = kind
        super().__init__(
            f"redeclaration of {kind} '{identifier}'",
            location=location,
            hint=f"the first declaration of '{identifier}' is kept",
            source_line=source_line,
        )


class ArgumentCountError(CSemanticError):
    """Call passing a different number of arguments than the function declares."""

    def __init__(
        self,
        function_name: str,
        expected: int,
        found: int,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
    ):
        self.function_name = function_name
        self.expected = expected
        self.found = found
        plural = "argument" if expected == 1 else "arguments"
        verb = "was" if found == 1 else "were"
        super().__init__(
            f"'{function_name}' takes {expected} {plural} but {found} {verb} given",
            location=location,
            source_line=source_line,
        )


class InvalidStatementError(CSemanticError):
    """
    Statement that cannot be compiled where it appears.

    Examples:
        - 'return' at top level
        - 'fn' nested inside a function body
        - malformed node shapes handed to the generator
    """
    pass


# =============================================================================
# Error Collection (for multi-error reporting)
# =============================================================================

class ErrorCollector:
    """
    Collects multiple errors for batch reporting.

    The code generator uses this to continue after a diagnostic, so the user
    sees every problem of a translation unit in one run.

    Example:
        collector = ErrorCollector(max_errors=100)
        collector.add(UndeclaredIdentifierError("x"))
        if collector.has_errors():
            print(collector.report())
    """

    def __init__(self, max_errors: int = 100):
        """
        Initialize the error collector.

        Args:
            max_errors: Maximum errors to keep before further ones are dropped
        """
        self.errors: List[CompileError] = []
        self.warnings: List[str] = []
        self.max_errors = max_errors
        self.dropped = 0

    def add(self, error: CompileError) -> None:
        """Add an error to the collection."""
        if self.should_stop():
            self.dropped += 1
            return
        self.errors.append(error)

    def add_warning(self, message: str, location: Optional[SourceLocation] = None) -> None:
        """Add a warning message."""
        if location:
            self.warnings.append(f"{location}: warning: {message}")
        else:
            self.warnings.append(f"warning: {message}")

    def has_errors(self) -> bool:
        """Return True if any errors have been collected."""
        return len(self.errors) > 0

    def should_stop(self) -> bool:
        """Return True if max_errors has been reached."""
        return len(self.errors) >= self.max_errors

    def error_count(self) -> int:
        """Return the number of errors seen, including dropped ones."""
        return len(self.errors) + self.dropped

    def warning_count(self) -> int:
        """Return the number of collected warnings."""
        return len(self.warnings)

    def report(self) -> str:
        """Format all errors and warnings for display."""
        lines = []

        for error in self.errors:
            lines.append(str(error))
            lines.append("")

        for warning in self.warnings:
            lines.append(warning)

        if self.dropped:
            lines.append(f"({self.dropped} further errors not shown)")

        count = self.error_count()
        error_word = "error" if count == 1 else "errors"
        warning_word = "warning" if self.warning_count() == 1 else "warnings"
        lines.append(f"\n{count} {error_word}, {self.warning_count()} {warning_word}")

        return "\n".join(lines)

    def clear(self) -> None:
        """Clear all collected errors and warnings."""
        self.errors.clear()
        self.warnings.clear()
        self.dropped = 0

    def raise_if_errors(self) -> None:
        """Raise a CompilationError if any errors were collected."""
        if self.has_errors():
            raise CompilationError(self.report(), self.errors)
