"""
bytelang Bytecode
=================

This module defines the instruction set shared by the code generator and the
stack machine, together with the 32-bit integer helpers both sides use.

Instruction Set
---------------
| Opcode     | Operand | Effect                                          |
|------------|---------|-------------------------------------------------|
| PUSH n     | value   | push n                                          |
| LOAD o     | offset  | push stack[fp + o]                              |
| STORE o    | offset  | stack[fp + o] = pop                             |
| GLOAD s    | slot    | push stack[s]                                   |
| GSTORE s   | slot    | stack[s] = pop                                  |
| POP        |         | discard top                                     |
| ADD SUB MUL DIV |    | pop right, pop left, push left op right         |
| NEG        |         | negate top                                      |
| CMP_EQ CMP_NEQ CMP_GT CMP_LT CMP_GTE CMP_LTE | | push 1 or 0          |
| JMP a      | address | pc = a                                          |
| JZ a       | address | pop; jump if zero                               |
| JNZ a      | address | pop; jump if nonzero                            |
| CALL a     | address | push pc+1, push fp, fp = sp, pc = a             |
| ENTER n    | count   | sp += n                                         |
| RET k      | count   | pop rv, sp = fp, pop fp, pop pc, drop k, push rv|
| LEAVE      |         | sp = fp                                         |
| NOP        |         | nothing                                         |
| HALT       |         | stop                                            |
| PRINT      |         | write top to output (not popped)                |
| PRINT_STR  |         | pop index, write constants[index]               |

Listing Format
--------------
    0000: PUSH     3        ; comment
    0001: CALL     5        ; call main
"""

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Optional


# =============================================================================
# 32-bit Integer Model
# =============================================================================

INT_MIN = -(2 ** 31)
INT_MAX = 2 ** 31 - 1


def wrap_int(value: int) -> int:
    """Wrap an arbitrary Python int to 32-bit two's complement."""
    return ((value - INT_MIN) % (2 ** 32)) + INT_MIN


def truncating_div(left: int, right: int) -> int:
    """
    Integer division rounding toward zero, as in C.

    Python's // floors, so -7 // 2 is -4; this returns -3.
    """
    quotient = abs(left) // abs(right)
    if (left < 0) != (right < 0):
        quotient = -quotient
    return wrap_int(quotient)


# =============================================================================
# Opcodes
# =============================================================================

class OpCode(Enum):
    """Operation codes of the stack machine."""

    # === Stack and memory ===
    PUSH = auto()
    LOAD = auto()
    STORE = auto()
    GLOAD = auto()
    GSTORE = auto()
    POP = auto()

    # === Arithmetic ===
    ADD = auto()
    SUB = auto()
    MUL = auto()
    DIV = auto()
    NEG = auto()

    # === Comparison ===
    CMP_EQ = auto()
    CMP_NEQ = auto()
    CMP_GT = auto()
    CMP_LT = auto()
    CMP_GTE = auto()
    CMP_LTE = auto()

    # === Control flow ===
    JMP = auto()
    JZ = auto()
    JNZ = auto()
    CALL = auto()
    RET = auto()
    ENTER = auto()
    LEAVE = auto()
    NOP = auto()
    HALT = auto()

    # === Output ===
    PRINT = auto()
    PRINT_STR = auto()

    @property
    def has_operand(self) -> bool:
        return self in OPERAND_OPCODES

    @property
    def is_jump(self) -> bool:
        """True for opcodes whose operand is an instruction address."""
        return self in (OpCode.JMP, OpCode.JZ, OpCode.JNZ, OpCode.CALL)


OPERAND_OPCODES = frozenset({
    OpCode.PUSH,
    OpCode.LOAD,
    OpCode.STORE,
    OpCode.GLOAD,
    OpCode.GSTORE,
    OpCode.JMP,
    OpCode.JZ,
    OpCode.JNZ,
    OpCode.CALL,
    OpCode.ENTER,
    OpCode.RET,
})

# Source operator text to opcode
BINARY_OPCODES: dict[str, OpCode] = {
    "+": OpCode.ADD,
    "-": OpCode.SUB,
    "*": OpCode.MUL,
    "/": OpCode.DIV,
    "==": OpCode.CMP_EQ,
    "!=": OpCode.CMP_NEQ,
    ">": OpCode.CMP_GT,
    "<": OpCode.CMP_LT,
    ">=": OpCode.CMP_GTE,
    "<=": OpCode.CMP_LTE,
}


# =============================================================================
# Instructions
# =============================================================================

@dataclass
class Instruction:
    """
    A single bytecode instruction.

    The operand is only meaningful for the opcodes in OPERAND_OPCODES. It is
    mutable so the code generator can backpatch jump and call targets.

    Attributes:
        opcode: The operation
        operand: 32-bit signed operand (0 when unused)
        label: Optional symbolic name for this address (function entries)
        comment: Optional human-readable note for listings
    """
    opcode: OpCode
    operand: int = 0
    label: Optional[str] = None
    comment: Optional[str] = None

    @property
    def has_operand(self) -> bool:
        return self.opcode in OPERAND_OPCODES

    def __str__(self) -> str:
        # Hand-built programs may carry something that is not an OpCode
        name = self.opcode.name if isinstance(self.opcode, OpCode) else str(self.opcode)
        if self.has_operand:
            return f"{name:<8} {self.operand}"
        return name

    def to_listing(self, address: int) -> str:
        """Format as one listing line: '0004: LOAD     -3       ; x'."""
        text = f"{address:04d}: {str(self):<17}"
        if self.comment:
            text += f" ; {self.comment}"
        return text.rstrip()


# =============================================================================
# Program
# =============================================================================

@dataclass
class Program:
    """
    A compiled program, ready to execute.

    Attributes:
        instructions: The linear instruction stream (execution starts at 0)
        function_table: Function name to entry address
        global_slot_count: Number of global slots the VM must reserve
        constants: Read-only string table addressed by PRINT_STR
    """
    instructions: list[Instruction] = field(default_factory=list)
    function_table: dict[str, int] = field(default_factory=dict)
    global_slot_count: int = 0
    constants: tuple[str, ...] = ()

    def __len__(self) -> int:
        return len(self.instructions)

    def __getitem__(self, address: int) -> Instruction:
        return self.instructions[address]

    def labels(self) -> dict[int, str]:
        """Return address to label for every labelled instruction."""
        return {
            address: instr.label
            for address, instr in enumerate(self.instructions)
            if instr.label
        }

    def listing(self) -> str:
        """
        Render the numbered instruction listing.

        Labelled addresses get a 'name:' line above them, like an assembler
        listing.
        """
        labels = self.labels()
        lines = []
        for address, instr in enumerate(self.instructions):
            if address in labels:
                lines.append(f"{labels[address]}:")
            lines.append(instr.to_listing(address))
        return "\n".join(lines)
