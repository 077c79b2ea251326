"""
bytelang Primitive Types
========================

The language has a closed set of four primitive type tags. They are carried
through the syntax tree (as attribute text) and surfaced in listings, but
there is no type checker: every runtime value is a 32-bit signed integer.

| Tag    | Runtime representation             |
|--------|------------------------------------|
| int    | 32-bit signed integer              |
| bool   | integer, 0 = false, anything else = true |
| string | integer index into the constant table |
| void   | no meaningful value (functions return 0) |
"""

from enum import Enum
from typing import Optional


class PrimitiveType(Enum):
    """The primitive type tags a declaration may name."""
    INT = "int"
    BOOL = "bool"
    STRING = "string"
    VOID = "void"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def from_name(cls, name: Optional[str]) -> Optional["PrimitiveType"]:
        """Look up a tag by its source spelling; None for unknown names."""
        if name is None:
            return None
        try:
            return cls(name)
        except ValueError:
            return None

