"""
bytelang Syntax Tree
====================

This module defines the attributed syntax tree built by the parser and
consumed once by the code generator.

Every node has the same shape: a kind tag, an optional scalar value (for the
NUMERIC and IDENTIFIER leaves), a string attribute map (names, operators,
declared types) and an ordered list of owned children. The tree is acyclic
and owned top-down; traversal is always parent to child, so nodes keep no
back-pointers.

Node Kinds
----------
Nonterminals:
    PROGRAM, FUNCTION, PARAMETER_LIST, PARAMETER, BLOCK,
    VARIABLE_DECLARATION, ASSIGNMENT, IF, ELSE_IF, ELSE, WHILE, RETURN,
    CONDITION, EXPRESSION, TERM, NEGATE, FUNCTION_CALL
Terminal leaves:
    NUMERIC, IDENTIFIER

Attributes
----------
| Kind                 | Attributes             |
|----------------------|------------------------|
| FUNCTION             | name, returnType       |
| PARAMETER            | name, type             |
| VARIABLE_DECLARATION | name, type             |
| ASSIGNMENT           | name                   |
| FUNCTION_CALL        | name                   |
| CONDITION            | operator (== != < > <= >=) |
| EXPRESSION           | operator (+ -)         |
| TERM                 | operator (* /)         |
| NEGATE               | operator (-)           |

Example
-------
>>> tree = parse_source("fn main() -> int { return 1 + 2 }")
>>> print(tree.pretty())
PROGRAM
└── FUNCTION {name=main, returnType=int}
    ├── PARAMETER_LIST
    └── BLOCK
        └── RETURN
            └── EXPRESSION {operator=+}
                ├── NUMERIC('1')
                └── NUMERIC('2')
"""

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Iterator, Optional

from bytelang.errors import SourceLocation


class NodeKind(Enum):
    """Kind tag of a syntax tree node."""

    # === Nonterminals ===
    PROGRAM = auto()
    FUNCTION = auto()
    PARAMETER_LIST = auto()
    PARAMETER = auto()
    BLOCK = auto()
    VARIABLE_DECLARATION = auto()
    ASSIGNMENT = auto()
    IF = auto()
    ELSE_IF = auto()
    ELSE = auto()
    WHILE = auto()
    RETURN = auto()
    CONDITION = auto()
    EXPRESSION = auto()
    TERM = auto()
    NEGATE = auto()
    FUNCTION_CALL = auto()

    # === Terminal leaves ===
    NUMERIC = auto()
    IDENTIFIER = auto()

    @property
    def is_terminal(self) -> bool:
        return self in (NodeKind.NUMERIC, NodeKind.IDENTIFIER)


@dataclass
class SyntaxTree:
    """
    A node of the syntax tree.

    Attributes:
        kind: The node kind
        value: Literal text for NUMERIC, the name for IDENTIFIER, else None
        attributes: Named string properties (see module docstring)
        children: Owned child nodes, in source order
        location: Where the construct starts, for diagnostics
    """
    kind: NodeKind
    value: Optional[str] = None
    attributes: dict[str, str] = field(default_factory=dict)
    children: list["SyntaxTree"] = field(default_factory=list)
    location: Optional[SourceLocation] = field(default=None, compare=False)

    def __repr__(self) -> str:
        if self.value is not None:
            return f"{self.kind.name}({self.value!r})"
        return f"{self.kind.name}[{len(self.children)}]"

    # =========================================================================
    # Construction
    # =========================================================================

    def add_child(self, child: "SyntaxTree") -> "SyntaxTree":
        """Append an owned child and return it."""
        self.children.append(child)
        return child

    def with_attribute(self, key: str, value: str) -> "SyntaxTree":
        """Set an attribute and return self, so construction can be chained."""
        self.attributes[key] = value
        return self

    # =========================================================================
    # Access
    # =========================================================================

    def get(self, key: str) -> Optional[str]:
        """Return an attribute value, or None if absent."""
        return self.attributes.get(key)

    def child(self, index: int) -> Optional["SyntaxTree"]:
        """Return the child at index, or None if out of range."""
        if 0 <= index < len(self.children):
            return self.children[index]
        return None

    def first(self, kind: NodeKind) -> Optional["SyntaxTree"]:
        """Return the first direct child of the given kind."""
        for node in self.children:
            if node.kind == kind:
                return node
        return None

    def children_of(self, kind: NodeKind) -> list["SyntaxTree"]:
        """Return all direct children of the given kind, in order."""
        return [node for node in self.children if node.kind == kind]

    @property
    def is_leaf(self) -> bool:
        return not self.children

    def walk(self) -> Iterator["SyntaxTree"]:
        """Yield this node and all descendants, depth-first pre-order."""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def leaves(self) -> list["SyntaxTree"]:
        """Return the terminal leaves in left-to-right order."""
        return [node for node in self.walk() if node.kind.is_terminal]

    # =========================================================================
    # Printing
    # =========================================================================

    def label(self) -> str:
        """One-line description: kind, value and attributes."""
        text = self.kind.name
        if self.value is not None:
            text += f"('{self.value}')"
        if self.attributes:
            attrs = ", ".join(f"{k}={v}" for k, v in self.attributes.items())
            text += f" {{{attrs}}}"
        return text

    def pretty(self) -> str:
        """Render the tree with box-drawing connectors."""
        lines = [self.label()]
        self._pretty_children("", lines)
        return "\n".join(lines)

    def _pretty_children(self, prefix: str, lines: list[str]) -> None:
        for index, node in enumerate(self.children):
            last = index == len(self.children) - 1
            lines.append(f"{prefix}{'└── ' if last else '├── '}{node.label()}")
            node._pretty_children(prefix + ("    " if last else "│   "), lines)
