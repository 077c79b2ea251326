"""
Stack Machine Faults
====================

Runtime faults raised by the stack machine. Every fault stops execution:
the machine clears its running flag, logs the fault and raises it.

Exception Hierarchy
-------------------
VMFault (base for all runtime faults)
├── StackOverflowError - push or ENTER past the stack capacity
├── StackUnderflowError - pop from an empty stack
├── DivisionByZeroError - DIV with a zero divisor
├── InvalidOpcodeError - instruction the machine cannot execute
└── InvalidAddressError - jump, call, frame or constant reference out of range

Message format:
    pc 0007 (DIV): division by zero
"""

from typing import Optional

from bytelang.bytecode import Instruction
from bytelang.errors import BytelangError


class VMFault(BytelangError):
    """
    Base exception for runtime faults.

    Attributes:
        message: Fault description
        pc: Address of the failing instruction
        instruction: The failing instruction (None if pc was out of range)
    """

    def __init__(
        self,
        message: str,
        pc: int = 0,
        instruction: Optional[Instruction] = None,
    ):
        self.message = message
        self.pc = pc
        self.instruction = instruction
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        if self.instruction is not None:
            return f"pc {self.pc:04d} ({self.instruction}): {self.message}"
        return f"pc {self.pc:04d}: {self.message}"


class StackOverflowError(VMFault):
    """Value stack capacity exceeded."""
    pass


class StackUnderflowError(VMFault):
    """Pop from an empty value stack."""
    pass


class DivisionByZeroError(VMFault):
    """Integer division by zero."""

    def __init__(self, pc: int = 0, instruction: Optional[Instruction] = None):
        super().__init__("division by zero", pc, instruction)


class InvalidOpcodeError(VMFault):
    """Instruction the machine does not know how to execute."""
    pass


class InvalidAddressError(VMFault):
    """
    Reference outside the valid range.

    Covers unresolved call targets (such as a missing main), jumps past the
    program, frame or global slots outside the stack, and constant indices
    outside the constant table.
    """
    pass
