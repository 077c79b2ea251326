"""
bytelang Recursive Descent Parser
=================================

This module implements a recursive descent parser for bytelang. It takes
the token stream from the lexer and builds the attributed syntax tree
(see bytelang.compiler.ast).

Grammar (EBNF)
--------------
program      ::= statement* EOF
statement    ::= function | var_decl | if_stmt | while_stmt | return_stmt
               | assignment | expression
function     ::= 'fn' IDENTIFIER '(' param_list ')' '->' type block
param_list   ::= (param (',' param)*)?
param        ::= IDENTIFIER ':' type
var_decl     ::= 'var' IDENTIFIER ':' type ('=' expression)?
assignment   ::= IDENTIFIER '=' expression
if_stmt      ::= 'if' '(' condition ')' block
                 ('elseif' '(' condition ')' block)*
                 ('else' block)?
while_stmt   ::= 'while' '(' condition ')' block
return_stmt  ::= 'return' expression
block        ::= '{' statement* '}'
condition    ::= expression compare_op expression
expression   ::= term (('+' | '-') term)*
term         ::= factor (('*' | '/') factor)*
factor       ::= '(' expression ')' | '-' factor | NUMERIC
               | IDENTIFIER | IDENTIFIER '(' (expression (',' expression)*)? ')'
type         ::= 'int' | 'bool' | 'string' | 'void'

Lookahead
---------
One token of lookahead selects the rule; a second token distinguishes
`IDENTIFIER '='` (assignment) from an expression statement, and
`IDENTIFIER '('` (call) from a plain variable reference.

Error Policy
------------
The first grammar violation raises a CSyntaxError carrying line, column and
what was expected versus found. There is no error recovery and no partial
tree.

Example Usage
-------------
>>> from bytelang.compiler.parser import parse_source
>>> tree = parse_source('fn main() -> int { return 42 }')
>>> tree.children[0].get("name")
'main'
"""

from typing import Optional

from bytelang.compiler.lexer import Lexer, Token, TokenType, TYPE_KEYWORDS
from bytelang.compiler.ast import NodeKind, SyntaxTree
from bytelang.compiler.errors import MissingTokenError, UnexpectedTokenError


# Token kinds that map to a binary operator at each precedence level
ADDITIVE_OPERATORS = (TokenType.PLUS, TokenType.MINUS)
MULTIPLICATIVE_OPERATORS = (TokenType.STAR, TokenType.SLASH)


class Parser:
    """
    Recursive descent parser for bytelang.

    One method per nonterminal. Binary operator loops are iterative and
    left-associative, so long operand chains never recurse deeply.

    Attributes:
        tokens: List of tokens to parse (must end with EOF)
        filename: Source filename for error reporting
    """

    def __init__(
        self,
        tokens: list[Token],
        filename: str = "<input>",
        source_lines: Optional[list[str]] = None,
    ):
        """
        Initialize the parser.

        Args:
            tokens: List of tokens from the lexer
            filename: Source filename for error messages
            source_lines: Original source lines for error context
        """
        if not tokens or tokens[-1].kind != TokenType.EOF:
            tokens = list(tokens) + [Token(TokenType.EOF, "", filename=filename)]
        self.tokens = tokens
        self.filename = filename
        self.source_lines = source_lines or []

        self._pos = 0

    def parse(self) -> SyntaxTree:
        """
        Parse the token stream into a syntax tree.

        Returns:
            The PROGRAM root node

        Raises:
            CSyntaxError: On the first grammar violation
        """
        self._pos = 0
        program = SyntaxTree(NodeKind.PROGRAM, location=self._peek().location)

        while not self._at_end():
            program.add_child(self._parse_statement())

        return program

    # =========================================================================
    # Token Access Methods
    # =========================================================================

    def _at_end(self) -> bool:
        return self._peek().kind == TokenType.EOF

    def _peek(self, offset: int = 0) -> Token:
        """Look at token at current position + offset (EOF past the end)."""
        pos = self._pos + offset
        if pos >= len(self.tokens):
            return self.tokens[-1]
        return self.tokens[pos]

    def _advance(self) -> Token:
        """Consume and return the current token."""
        token = self._peek()
        if not self._at_end():
            self._pos += 1
        return token

    def _check(self, *kinds: TokenType) -> bool:
        return self._peek().kind in kinds

    def _match(self, *kinds: TokenType) -> Optional[Token]:
        """Consume current token if it matches one of the kinds."""
        if self._check(*kinds):
            return self._advance()
        return None

    def _expect(self, kind: TokenType, description: str) -> Token:
        """
        Expect and consume a specific token kind.

        Raises:
            MissingTokenError: If the current token is of another kind
        """
        if self._check(kind):
            return self._advance()

        current = self._peek()
        raise MissingTokenError(
            description,
            self._describe(current),
            current.location,
            self._get_source_line(current.line),
        )

    def _expect_type(self, what: str) -> Token:
        """Expect one of the primitive type names."""
        if self._peek().kind in TYPE_KEYWORDS:
            return self._advance()
        return self._expect(TokenType.INT, f"{what} (int, bool, string or void)")

    def _unexpected(self, expected: str) -> UnexpectedTokenError:
        current = self._peek()
        return UnexpectedTokenError(
            self._describe(current),
            expected=expected,
            location=current.location,
            source_line=self._get_source_line(current.line),
        )

    @staticmethod
    def _describe(token: Token) -> str:
        return token.lexeme if token.kind != TokenType.EOF else "end of input"

    def _get_source_line(self, line: int) -> Optional[str]:
        if 0 < line <= len(self.source_lines):
            return self.source_lines[line - 1]
        return None

    # =========================================================================
    # Statements
    # =========================================================================

    def _parse_statement(self) -> SyntaxTree:
        """Parse any statement."""
        token = self._peek()

        if token.kind == TokenType.FN:
            return self._parse_function()
        if token.kind == TokenType.VAR:
            return self._parse_variable_declaration()
        if token.kind == TokenType.IF:
            return self._parse_if_statement()
        if token.kind == TokenType.WHILE:
            return self._parse_while_statement()
        if token.kind == TokenType.RETURN:
            return self._parse_return_statement()

        if token.kind == TokenType.IDENTIFIER and self._peek(1).kind == TokenType.ASSIGN:
            return self._parse_assignment()

        # Expression statement
        return self._parse_expression()

    def _parse_function(self) -> SyntaxTree:
        """Parse 'fn' IDENTIFIER '(' param_list ')' '->' type block."""
        location = self._expect(TokenType.FN, "'fn'").location
        name = self._expect(TokenType.IDENTIFIER, "function name")

        node = SyntaxTree(NodeKind.FUNCTION, location=location)
        node.with_attribute("name", name.lexeme)

        self._expect(TokenType.LPAREN, "'('")
        node.add_child(self._parse_parameter_list())
        self._expect(TokenType.RPAREN, "')'")
        self._expect(TokenType.ARROW, "'->'")

        return_type = self._expect_type("return type")
        node.with_attribute("returnType", return_type.lexeme)

        node.add_child(self._parse_block())
        return node

    def _parse_parameter_list(self) -> SyntaxTree:
        node = SyntaxTree(NodeKind.PARAMETER_LIST, location=self._peek().location)
        if self._check(TokenType.RPAREN):
            return node

        node.add_child(self._parse_parameter())
        while self._match(TokenType.COMMA):
            node.add_child(self._parse_parameter())
        return node

    def _parse_parameter(self) -> SyntaxTree:
        name = self._expect(TokenType.IDENTIFIER, "parameter name")
        self._expect(TokenType.COLON, "':'")
        param_type = self._expect_type("parameter type")
        return (
            SyntaxTree(NodeKind.PARAMETER, location=name.location)
            .with_attribute("name", name.lexeme)
            .with_attribute("type", param_type.lexeme)
        )

    def _parse_block(self) -> SyntaxTree:
        """Parse a block { ... }."""
        location = self._expect(TokenType.LBRACE, "'{'").location
        node = SyntaxTree(NodeKind.BLOCK, location=location)

        while not self._check(TokenType.RBRACE) and not self._at_end():
            node.add_child(self._parse_statement())

        self._expect(TokenType.RBRACE, "'}'")
        return node

    def _parse_variable_declaration(self) -> SyntaxTree:
        """Parse 'var' IDENTIFIER ':' type ('=' expression)?."""
        location = self._expect(TokenType.VAR, "'var'").location
        name = self._expect(TokenType.IDENTIFIER, "variable name")
        self._expect(TokenType.COLON, "':'")
        var_type = self._expect_type("variable type")

        node = (
            SyntaxTree(NodeKind.VARIABLE_DECLARATION, location=location)
            .with_attribute("name", name.lexeme)
            .with_attribute("type", var_type.lexeme)
        )

        if self._match(TokenType.ASSIGN):
            node.add_child(self._parse_expression())

        return node

    def _parse_assignment(self) -> SyntaxTree:
        name = self._expect(TokenType.IDENTIFIER, "variable name")
        self._expect(TokenType.ASSIGN, "'='")

        node = SyntaxTree(NodeKind.ASSIGNMENT, location=name.location)
        node.with_attribute("name", name.lexeme)
        node.add_child(self._parse_expression())
        return node

    def _parse_if_statement(self) -> SyntaxTree:
        """Parse if / elseif* / else? chains into one IF node."""
        location = self._expect(TokenType.IF, "'if'").location
        node = SyntaxTree(NodeKind.IF, location=location)

        node.add_child(self._parse_parenthesized_condition())
        node.add_child(self._parse_block())

        while self._check(TokenType.ELSEIF):
            branch = SyntaxTree(NodeKind.ELSE_IF, location=self._advance().location)
            branch.add_child(self._parse_parenthesized_condition())
            branch.add_child(self._parse_block())
            node.add_child(branch)

        if self._check(TokenType.ELSE):
            branch = SyntaxTree(NodeKind.ELSE, location=self._advance().location)
            branch.add_child(self._parse_block())
            node.add_child(branch)

        return node

    def _parse_while_statement(self) -> SyntaxTree:
        location = self._expect(TokenType.WHILE, "'while'").location
        node = SyntaxTree(NodeKind.WHILE, location=location)
        node.add_child(self._parse_parenthesized_condition())
        node.add_child(self._parse_block())
        return node

    def _parse_return_statement(self) -> SyntaxTree:
        location = self._expect(TokenType.RETURN, "'return'").location
        node = SyntaxTree(NodeKind.RETURN, location=location)
        node.add_child(self._parse_expression())
        return node

    # =========================================================================
    # Conditions and Expressions
    # =========================================================================

    def _parse_parenthesized_condition(self) -> SyntaxTree:
        self._expect(TokenType.LPAREN, "'('")
        condition = self._parse_condition()
        self._expect(TokenType.RPAREN, "')'")
        return condition

    def _parse_condition(self) -> SyntaxTree:
        """Parse expression compare_op expression."""
        left = self._parse_expression()

        if not self._peek().is_comparison_operator():
            raise self._unexpected("comparison operator (==, !=, <, >, <=, >=)")
        operator = self._advance()

        right = self._parse_expression()

        node = SyntaxTree(NodeKind.CONDITION, location=left.location)
        node.with_attribute("operator", operator.lexeme)
        node.add_child(left)
        node.add_child(right)
        return node

    def _parse_expression(self) -> SyntaxTree:
        """Parse additive expression (+ -)."""
        return self._parse_binary(self._parse_term, ADDITIVE_OPERATORS, NodeKind.EXPRESSION)

    def _parse_term(self) -> SyntaxTree:
        """Parse multiplicative expression (* /)."""
        return self._parse_binary(self._parse_factor, MULTIPLICATIVE_OPERATORS, NodeKind.TERM)

    def _parse_binary(self, operand_parser, operators: tuple, kind: NodeKind) -> SyntaxTree:
        """
        Generic left-associative binary expression parser.

        Args:
            operand_parser: Method parsing the next-higher precedence level
            operators: Token kinds accepted at this level
            kind: Node kind for the binary nodes built here
        """
        expr = operand_parser()

        while self._check(*operators):
            operator = self._advance()
            right = operand_parser()
            node = SyntaxTree(kind, location=expr.location)
            node.with_attribute("operator", operator.lexeme)
            node.add_child(expr)
            node.add_child(right)
            expr = node

        return expr

    def _parse_factor(self) -> SyntaxTree:
        """Parse a run of unary minus signs and the operand they apply to."""
        minus_tokens = []
        while self._check(TokenType.MINUS):
            minus_tokens.append(self._advance())

        expr = self._parse_primary()

        for token in reversed(minus_tokens):
            node = SyntaxTree(NodeKind.NEGATE, location=token.location)
            node.with_attribute("operator", "-")
            node.add_child(expr)
            expr = node

        return expr

    def _parse_primary(self) -> SyntaxTree:
        token = self._peek()

        if token.kind == TokenType.LPAREN:
            self._advance()
            expr = self._parse_expression()
            self._expect(TokenType.RPAREN, "')'")
            return expr

        if token.kind == TokenType.NUMERIC:
            self._advance()
            return SyntaxTree(NodeKind.NUMERIC, value=token.lexeme, location=token.location)

        if token.kind == TokenType.IDENTIFIER:
            if self._peek(1).kind == TokenType.LPAREN:
                return self._parse_call()
            self._advance()
            return SyntaxTree(NodeKind.IDENTIFIER, value=token.lexeme, location=token.location)

        raise self._unexpected("expression")

    def _parse_call(self) -> SyntaxTree:
        """Parse IDENTIFIER '(' arguments? ')'."""
        name = self._advance()
        self._expect(TokenType.LPAREN, "'('")

        node = SyntaxTree(NodeKind.FUNCTION_CALL, location=name.location)
        node.with_attribute("name", name.lexeme)

        if not self._check(TokenType.RPAREN):
            node.add_child(self._parse_expression())
            while self._match(TokenType.COMMA):
                node.add_child(self._parse_expression())

        self._expect(TokenType.RPAREN, "')'")
        return node


# =============================================================================
# Convenience Functions
# =============================================================================

def parse(tokens: list[Token], filename: str = "<input>") -> SyntaxTree:
    """Parse an already tokenized program."""
    return Parser(tokens, filename).parse()


def parse_source(source: str, filename: str = "<input>") -> SyntaxTree:
    """
    Parse bytelang source code into a syntax tree.

    Combines lexing and parsing.

    Raises:
        CSyntaxError: If lexing or parsing fails
    """
    tokens = list(Lexer(source, filename).tokenize())
    parser = Parser(tokens, filename, source.splitlines())
    return parser.parse()
