"""
bytelang Stack Machine
======================

Runs compiled bytecode Programs. See bytelang.vm.machine for the machine
model and calling convention.
"""

from bytelang.vm.errors import (
    VMFault,
    StackOverflowError,
    StackUnderflowError,
    DivisionByZeroError,
    InvalidOpcodeError,
    InvalidAddressError,
)
from bytelang.vm.machine import MachineOptions, MachineState, StackMachine

__all__ = [
    "VMFault",
    "StackOverflowError",
    "StackUnderflowError",
    "DivisionByZeroError",
    "InvalidOpcodeError",
    "InvalidAddressError",
    "MachineOptions",
    "MachineState",
    "StackMachine",
]
