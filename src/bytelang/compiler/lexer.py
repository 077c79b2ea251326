"""
bytelang Lexer (Tokenizer)
==========================

This module converts bytelang source text into the token stream consumed by
the parser.

Token Categories
----------------
- Structural: EOF (always the last token)
- Literals: decimal integers
- Identifiers: variable and function names
- Keywords: fn, return, if, else, elseif, while, var
- Type names: int, bool, string, void
- Operators: + - * / == != < > <= >=
- Separators: , : ( ) { } -> =

Comments
--------
Single-line only: // comment

Two-character operators (->, ==, !=, <=, >=) are recognised greedily before
falling back to their single-character prefixes. A lone '!' is not a token.

Example Usage
-------------
>>> from bytelang.compiler.lexer import Lexer
>>> for token in Lexer('fn main() -> int { return 42 }').tokenize():
...     print(token)
Token(FN, 'fn', 1:0)
Token(IDENTIFIER, 'main', 1:3)
Token(LPAREN, '(', 1:7)
Token(RPAREN, ')', 1:8)
Token(ARROW, '->', 1:10)
Token(INT, 'int', 1:13)
Token(LBRACE, '{', 1:17)
Token(RETURN, 'return', 1:19)
Token(NUMERIC, '42', 1:26)
Token(RBRACE, '}', 1:29)
Token(EOF, '', 1:30)
"""

from dataclasses import dataclass
from enum import Enum, auto
from typing import Iterator
import string

from bytelang.errors import SourceLocation
from bytelang.compiler.errors import InvalidCharacterError


# =============================================================================
# Token Type Enumeration
# =============================================================================

class TokenType(Enum):
    """
    Token kinds of the bytelang language.

    Keywords are distinguished from identifiers here so the parser never has
    to compare lexemes.
    """

    # === Structural Tokens ===
    EOF = auto()            # End of input

    # === Identifiers and Literals ===
    IDENTIFIER = auto()     # Variable/function names
    NUMERIC = auto()        # Integer literals

    # === Keywords ===
    FN = auto()             # fn
    RETURN = auto()         # return
    IF = auto()             # if
    ELSE = auto()           # else
    ELSEIF = auto()         # elseif
    WHILE = auto()          # while
    VAR = auto()            # var

    # === Type Names ===
    INT = auto()            # int
    BOOL = auto()           # bool
    STRING = auto()         # string
    VOID = auto()           # void

    # === Operators ===
    PLUS = auto()           # +
    MINUS = auto()          # -
    STAR = auto()           # *
    SLASH = auto()          # /
    EQUAL = auto()          # ==
    NOT_EQUAL = auto()      # !=
    LESS = auto()           # <
    GREATER = auto()        # >
    LESS_EQUAL = auto()     # <=
    GREATER_EQUAL = auto()  # >=

    # === Separators ===
    COMMA = auto()          # ,
    COLON = auto()          # :
    LPAREN = auto()         # (
    RPAREN = auto()         # )
    LBRACE = auto()         # {
    RBRACE = auto()         # }
    ARROW = auto()          # ->
    ASSIGN = auto()         # =


# =============================================================================
# Keyword Mapping
# =============================================================================

KEYWORDS: dict[str, TokenType] = {
    "fn": TokenType.FN,
    "return": TokenType.RETURN,
    "if": TokenType.IF,
    "else": TokenType.ELSE,
    "elseif": TokenType.ELSEIF,
    "while": TokenType.WHILE,
    "var": TokenType.VAR,

    # Type names
    "int": TokenType.INT,
    "bool": TokenType.BOOL,
    "string": TokenType.STRING,
    "void": TokenType.VOID,
}

TYPE_KEYWORDS = frozenset({
    TokenType.INT,
    TokenType.BOOL,
    TokenType.STRING,
    TokenType.VOID,
})

COMPARISON_OPERATORS = frozenset({
    TokenType.EQUAL,
    TokenType.NOT_EQUAL,
    TokenType.LESS,
    TokenType.GREATER,
    TokenType.LESS_EQUAL,
    TokenType.GREATER_EQUAL,
})


# =============================================================================
# Token Data Class
# =============================================================================

@dataclass(frozen=True)
class Token:
    """
    A single token of bytelang source.

    Attributes:
        kind: The TokenType classification
        lexeme: The exact source text of the token ('' for EOF)
        line: Line number in source (1-indexed)
        column: Column number in source (0-indexed)
        filename: Name of the source file
    """
    kind: TokenType
    lexeme: str
    line: int = 1
    column: int = 0
    filename: str = "<input>"

    def __repr__(self) -> str:
        return f"Token({self.kind.name}, {self.lexeme!r}, {self.line}:{self.column})"

    @property
    def location(self) -> SourceLocation:
        """Return a SourceLocation for error reporting."""
        return SourceLocation(self.filename, self.line, self.column)

    def is_type_keyword(self) -> bool:
        """Return True if this token names a primitive type."""
        return self.kind in TYPE_KEYWORDS

    def is_comparison_operator(self) -> bool:
        """Return True if this token is one of the six comparison operators."""
        return self.kind in COMPARISON_OPERATORS


# =============================================================================
# Lexer Implementation
# =============================================================================

class Lexer:
    """
    Tokenizes bytelang source code.

    Usage:
        lexer = Lexer(source_text, filename)
        tokens = list(lexer.tokenize())

    Attributes:
        source: The source code being tokenized
        filename: Name of the source file (for error reporting)
    """

    IDENT_START = string.ascii_letters + "_"
    IDENT_CHARS = string.ascii_letters + string.digits + "_"
    DIGITS = string.digits

    SINGLE_TOKENS = {
        "+": TokenType.PLUS,
        "*": TokenType.STAR,
        "/": TokenType.SLASH,
        "(": TokenType.LPAREN,
        ")": TokenType.RPAREN,
        "{": TokenType.LBRACE,
        "}": TokenType.RBRACE,
        ",": TokenType.COMMA,
        ":": TokenType.COLON,
    }

    def __init__(self, source: str, filename: str = "<input>"):
        """
        Initialize the lexer with source code.

        Args:
            source: The bytelang source code to tokenize
            filename: Name of the source file (for error messages)
        """
        self.source = source
        self.filename = filename

        self._pos = 0
        self._line = 1
        self._column = 0
        self._line_start_pos = 0

    def tokenize(self) -> Iterator[Token]:
        """
        Generate tokens from the source code.

        Yields:
            Token objects, always ending with an EOF token

        Raises:
            InvalidCharacterError: If a character cannot start any token
        """
        while True:
            self._skip_whitespace_and_comments()
            if self._at_end():
                break
            yield self._scan_token()

        yield self._make_token(TokenType.EOF, "", self._line, self._column)

    # =========================================================================
    # Character Access Methods
    # =========================================================================

    def _at_end(self) -> bool:
        return self._pos >= len(self.source)

    def _peek(self, offset: int = 0) -> str:
        """Look at the character at position + offset; '' past the end."""
        pos = self._pos + offset
        if pos >= len(self.source):
            return ""
        return self.source[pos]

    def _advance(self) -> str:
        """Consume and return the current character, tracking line/column."""
        if self._at_end():
            return ""

        char = self.source[self._pos]
        self._pos += 1

        if char == "\n":
            self._line += 1
            self._column = 0
            self._line_start_pos = self._pos
        else:
            self._column += 1

        return char

    def _match(self, expected: str) -> bool:
        """Consume next character if it matches expected."""
        if self._peek() == expected:
            self._advance()
            return True
        return False

    def _make_token(self, kind: TokenType, lexeme: str, line: int, column: int) -> Token:
        return Token(kind=kind, lexeme=lexeme, line=line, column=column, filename=self.filename)

    # =========================================================================
    # Whitespace and Comment Handling
    # =========================================================================

    def _skip_whitespace_and_comments(self) -> None:
        while not self._at_end():
            char = self._peek()

            if char in " \t\n\r":
                self._advance()
                continue

            # Single-line comment: //
            if char == "/" and self._peek(1) == "/":
                while not self._at_end() and self._peek() != "\n":
                    self._advance()
                continue

            break

    # =========================================================================
    # Token Scanning
    # =========================================================================

    def _scan_token(self) -> Token:
        start_line = self._line
        start_column = self._column

        char = self._peek()

        if char in self.IDENT_START:
            return self._scan_identifier(start_line, start_column)

        if char and char in self.DIGITS:
            return self._scan_number(start_line, start_column)

        return self._scan_operator(start_line, start_column)

    def _scan_identifier(self, start_line: int, start_column: int) -> Token:
        """Scan an identifier or keyword."""
        chars = []
        while self._peek() and self._peek() in self.IDENT_CHARS:
            chars.append(self._advance())

        name = "".join(chars)
        kind = KEYWORDS.get(name, TokenType.IDENTIFIER)
        return self._make_token(kind, name, start_line, start_column)

    def _scan_number(self, start_line: int, start_column: int) -> Token:
        """
        Scan a decimal literal.

        The lexeme is kept as text; the code generator converts it with
        32-bit wraparound.
        """
        chars = []
        while self._peek() and self._peek() in self.DIGITS:
            chars.append(self._advance())
        return self._make_token(TokenType.NUMERIC, "".join(chars), start_line, start_column)

    def _scan_operator(self, start_line: int, start_column: int) -> Token:
        """Scan an operator or separator, two-character forms first."""
        char = self._advance()

        if char == "-":
            if self._match(">"):
                return self._make_token(TokenType.ARROW, "->", start_line, start_column)
            return self._make_token(TokenType.MINUS, "-", start_line, start_column)

        if char == "=":
            if self._match("="):
                return self._make_token(TokenType.EQUAL, "==", start_line, start_column)
            return self._make_token(TokenType.ASSIGN, "=", start_line, start_column)

        if char == "!":
            if self._match("="):
                return self._make_token(TokenType.NOT_EQUAL, "!=", start_line, start_column)
            raise InvalidCharacterError(
                char,
                SourceLocation(self.filename, start_line, start_column),
                self._get_current_line(),
                hint="did you mean '!='?",
            )

        if char == "<":
            if self._match("="):
                return self._make_token(TokenType.LESS_EQUAL, "<=", start_line, start_column)
            return self._make_token(TokenType.LESS, "<", start_line, start_column)

        if char == ">":
            if self._match("="):
                return self._make_token(TokenType.GREATER_EQUAL, ">=", start_line, start_column)
            return self._make_token(TokenType.GREATER, ">", start_line, start_column)

        if char in self.SINGLE_TOKENS:
            return self._make_token(self.SINGLE_TOKENS[char], char, start_line, start_column)

        raise InvalidCharacterError(
            char,
            SourceLocation(self.filename, start_line, start_column),
            self._get_current_line(),
        )

    # =========================================================================
    # Utility Methods
    # =========================================================================

    def _get_current_line(self) -> str:
        """Get the current line of source text for error reporting."""
        line_end = self.source.find("\n", self._line_start_pos)
        if line_end == -1:
            line_end = len(self.source)
        return self.source[self._line_start_pos:line_end]


def tokenize(source: str, filename: str = "<input>") -> list[Token]:
    """Tokenize a whole source string into a list ending with EOF."""
    return list(Lexer(source, filename).tokenize())
