"""
bytelang Stack Machine
======================

Executes a bytecode Program on a fixed-capacity value stack.

Machine State
-------------
| Register | Meaning                                      |
|----------|----------------------------------------------|
| pc       | index of the next instruction                |
| sp       | number of live stack words (next free slot)  |
| fp       | base of the current call frame               |
| running  | cleared by HALT or a fault                   |

Every stack word is a 32-bit signed integer. Arithmetic wraps and DIV
truncates toward zero.

Memory Layout
-------------
    stack[0 .. g-1]      globals (g = program.global_slot_count, zeroed)
    stack[g ..]          call frames and expression temporaries

Calling Convention
------------------
    CALL a     push pc+1, push fp, fp = sp, pc = a
    ENTER n    sp += n (new slots zeroed)
    RET k      pop rv, sp = fp, pop fp, pop pc, drop k arguments, push rv
    LEAVE      sp = fp

Execution ends on HALT, when pc runs past the last instruction, or on a
fault. The result is the top of the stack, or 0 when it is empty.

Example
-------
>>> from bytelang.compiler import compile_source
>>> from bytelang.vm import StackMachine
>>> machine = StackMachine()
>>> machine.execute(compile_source('fn main() -> int { return 2 + 3 * 4 }'))
14
"""

import logging
import os
from dataclasses import dataclass
from typing import Callable, Optional

from bytelang.bytecode import (
    Instruction,
    OpCode,
    Program,
    truncating_div,
    wrap_int,
)
from bytelang.vm.errors import (
    DivisionByZeroError,
    InvalidAddressError,
    InvalidOpcodeError,
    StackOverflowError,
    StackUnderflowError,
    VMFault,
)

logger = logging.getLogger(__name__)


DEFAULT_STACK_SIZE = 1024

# Stack words shown per trace line
TRACE_WINDOW = 10


# =============================================================================
# Configuration
# =============================================================================

@dataclass
class MachineOptions:
    """
    Stack machine configuration.

    Attributes:
        stack_size: Capacity of the value stack in words
        trace: Log every step at DEBUG level
    """
    stack_size: int = DEFAULT_STACK_SIZE
    trace: bool = False

    @classmethod
    def from_env(cls) -> "MachineOptions":
        """
        Create MachineOptions from environment variables.

        Environment variables (all optional):
            BYTELANG_STACK_SIZE: Stack capacity in words (positive integer)
            BYTELANG_TRACE: Enable tracing ("1", "true", "yes", "on")

        Returns:
            MachineOptions with values from environment variables
        """
        options = cls()

        if stack_size := os.environ.get("BYTELANG_STACK_SIZE"):
            try:
                value = int(stack_size)
            except ValueError:
                logger.warning(f"Ignoring invalid BYTELANG_STACK_SIZE={stack_size!r}")
            else:
                if value > 0:
                    options.stack_size = value

        if trace := os.environ.get("BYTELANG_TRACE"):
            options.trace = trace.strip().lower() in ("1", "true", "yes", "on")

        return options


@dataclass(frozen=True)
class MachineState:
    """
    Snapshot of the machine registers and live stack.

    Attributes:
        pc: Program counter
        sp: Stack pointer
        fp: Frame pointer
        running: True while executing
        stack: The live stack words, stack[0 .. sp-1]
        output: Everything written by PRINT and PRINT_STR so far
        steps: Instructions executed since the program was loaded
    """
    pc: int
    sp: int
    fp: int
    running: bool
    stack: tuple[int, ...]
    output: tuple[str, ...]
    steps: int

    @property
    def top(self) -> Optional[int]:
        return self.stack[-1] if self.stack else None


# =============================================================================
# Stack Machine
# =============================================================================

class StackMachine:
    """
    Stack-based virtual machine for bytelang programs.

    One machine runs one program at a time; execute() resets all state, so a
    machine can be reused for the next program.

    Example:
        >>> machine = StackMachine(MachineOptions(trace=True))
        >>> result = machine.execute(program)
        >>> print(machine.output)

    Attributes:
        options: Machine configuration
        output: Lines written by PRINT and PRINT_STR during the last run
        on_output: Optional callback invoked with each output line
    """

    def __init__(
        self,
        options: Optional[MachineOptions] = None,
        on_output: Optional[Callable[[str], None]] = None,
    ):
        """
        Initialize the machine.

        Args:
            options: Machine configuration (uses defaults if None)
            on_output: Called with each line of program output
        """
        self.options = options or MachineOptions()
        self.on_output = on_output
        self.output: list[str] = []

        self._stack = [0] * self.options.stack_size
        self._sp = 0
        self._fp = 0
        self._pc = 0
        self._running = False
        self._steps = 0

        self._program = Program()
        self._current: Optional[Instruction] = None

        self._handlers: dict[OpCode, Callable[[int], None]] = {
            OpCode.PUSH: self._op_push,
            OpCode.LOAD: self._op_load,
            OpCode.STORE: self._op_store,
            OpCode.GLOAD: self._op_gload,
            OpCode.GSTORE: self._op_gstore,
            OpCode.POP: self._op_pop,
            OpCode.ADD: self._op_add,
            OpCode.SUB: self._op_sub,
            OpCode.MUL: self._op_mul,
            OpCode.DIV: self._op_div,
            OpCode.NEG: self._op_neg,
            OpCode.CMP_EQ: self._op_cmp_eq,
            OpCode.CMP_NEQ: self._op_cmp_neq,
            OpCode.CMP_GT: self._op_cmp_gt,
            OpCode.CMP_LT: self._op_cmp_lt,
            OpCode.CMP_GTE: self._op_cmp_gte,
            OpCode.CMP_LTE: self._op_cmp_lte,
            OpCode.JMP: self._op_jmp,
            OpCode.JZ: self._op_jz,
            OpCode.JNZ: self._op_jnz,
            OpCode.CALL: self._op_call,
            OpCode.RET: self._op_ret,
            OpCode.ENTER: self._op_enter,
            OpCode.LEAVE: self._op_leave,
            OpCode.NOP: self._op_nop,
            OpCode.HALT: self._op_halt,
            OpCode.PRINT: self._op_print,
            OpCode.PRINT_STR: self._op_print_str,
        }

    # =========================================================================
    # Register Properties
    # =========================================================================

    @property
    def pc(self) -> int:
        """Program counter."""
        return self._pc

    @property
    def sp(self) -> int:
        """Stack pointer (number of live words)."""
        return self._sp

    @property
    def fp(self) -> int:
        """Frame pointer."""
        return self._fp

    @property
    def running(self) -> bool:
        return self._running

    @property
    def result(self) -> int:
        """Top of the stack, or 0 if the stack is empty."""
        return self._stack[self._sp - 1] if self._sp > 0 else 0

    def state(self) -> MachineState:
        """Return an immutable snapshot of the machine."""
        return MachineState(
            pc=self._pc,
            sp=self._sp,
            fp=self._fp,
            running=self._running,
            stack=tuple(self._stack[:self._sp]),
            output=tuple(self.output),
            steps=self._steps,
        )

    # =========================================================================
    # Main Execution Loop
    # =========================================================================

    def load(self, program: Program) -> None:
        """
        Reset the machine and prepare a program for execution.

        Reserves the program's global slots at the bottom of the stack.

        Raises:
            StackOverflowError: If the globals do not fit on the stack
        """
        self._program = program
        self._stack = [0] * self.options.stack_size
        self._pc = 0
        self._fp = 0
        self._sp = 0
        self._steps = 0
        self._current = None
        self.output = []
        self._running = True

        if program.global_slot_count > self.options.stack_size:
            self._fault(StackOverflowError(
                f"{program.global_slot_count} global slots exceed "
                f"stack size {self.options.stack_size}",
                0,
            ))
        self._sp = program.global_slot_count

    def execute(self, program: Program) -> int:
        """
        Run a program to completion.

        Args:
            program: The program to execute

        Returns:
            The value on top of the stack when execution ended (0 if empty)

        Raises:
            VMFault: On any runtime fault
        """
        self.load(program)
        logger.debug(
            f"Starting: {len(program)} instructions, "
            f"{program.global_slot_count} globals, stack size {self.options.stack_size}"
        )

        while self._running and self._pc < len(self._program):
            self.step()

        self._running = False
        logger.debug(
            f"Halted after {self._steps} steps: "
            f"SP={self._sp} FP={self._fp} PC={self._pc} result={self.result}"
        )
        return self.result

    def step(self) -> None:
        """
        Execute exactly one instruction.

        Raises:
            VMFault: On any runtime fault
        """
        if not 0 <= self._pc < len(self._program):
            self._fault(InvalidAddressError(
                f"program counter outside program (0..{len(self._program) - 1})",
                self._pc,
            ))

        instruction = self._program[self._pc]
        self._current = instruction

        if self.options.trace:
            self._trace(instruction)

        handler = self._handlers.get(instruction.opcode)
        if handler is None:
            self._fault(InvalidOpcodeError(
                f"unknown opcode {instruction.opcode!r}", self._pc, instruction
            ))

        self._steps += 1
        handler(instruction.operand)

    def _trace(self, instruction: Instruction) -> None:
        start = max(0, self._sp - TRACE_WINDOW)
        window = ", ".join(str(v) for v in self._stack[start:self._sp])
        logger.debug(
            f"PC={self._pc:04d}  SP={self._sp:3d}  FP={self._fp:3d}  "
            f"| {str(instruction):<20} | Stack: [{window}]"
        )

    def _fault(self, fault: VMFault) -> None:
        """Stop the machine, log the fault and raise it."""
        self._running = False
        logger.error(f"VM fault: {fault}")
        raise fault

    # =========================================================================
    # Stack Access
    # =========================================================================

    def _push(self, value: int) -> None:
        if self._sp >= self.options.stack_size:
            self._fault(StackOverflowError(
                f"stack overflow (capacity {self.options.stack_size})",
                self._pc, self._current,
            ))
        self._stack[self._sp] = value
        self._sp += 1

    def _pop(self) -> int:
        if self._sp <= 0:
            self._fault(StackUnderflowError("stack underflow", self._pc, self._current))
        self._sp -= 1
        return self._stack[self._sp]

    def _peek(self) -> int:
        if self._sp <= 0:
            self._fault(StackUnderflowError("stack underflow", self._pc, self._current))
        return self._stack[self._sp - 1]

    def _check_slot(self, address: int) -> int:
        """Return address if it names a live stack word, else fault."""
        if not 0 <= address < self._sp:
            self._fault(InvalidAddressError(
                f"stack address {address} outside live stack (0..{self._sp - 1})",
                self._pc, self._current,
            ))
        return address

    def _check_target(self, target: int, what: str = "jump") -> int:
        """Return target if it is an instruction address (or the end), else fault."""
        if not 0 <= target <= len(self._program):
            self._fault(InvalidAddressError(
                f"unresolved {what} target {target}", self._pc, self._current
            ))
        return target

    # =========================================================================
    # Stack and Memory Instructions
    # =========================================================================

    def _op_push(self, operand: int) -> None:
        self._push(wrap_int(operand))
        self._pc += 1

    def _op_load(self, operand: int) -> None:
        self._push(self._stack[self._check_slot(self._fp + operand)])
        self._pc += 1

    def _op_store(self, operand: int) -> None:
        value = self._pop()
        self._stack[self._check_slot(self._fp + operand)] = value
        self._pc += 1

    def _op_gload(self, operand: int) -> None:
        self._push(self._stack[self._check_slot(operand)])
        self._pc += 1

    def _op_gstore(self, operand: int) -> None:
        value = self._pop()
        self._stack[self._check_slot(operand)] = value
        self._pc += 1

    def _op_pop(self, operand: int) -> None:
        self._pop()
        self._pc += 1

    # =========================================================================
    # Arithmetic and Comparison
    # =========================================================================

    def _binary(self, operation: Callable[[int, int], int]) -> None:
        """Pop right then left, push operation(left, right)."""
        right = self._pop()
        left = self._pop()
        self._push(wrap_int(operation(left, right)))
        self._pc += 1

    def _op_add(self, operand: int) -> None:
        self._binary(lambda a, b: a + b)

    def _op_sub(self, operand: int) -> None:
        self._binary(lambda a, b: a - b)

    def _op_mul(self, operand: int) -> None:
        self._binary(lambda a, b: a * b)

    def _op_div(self, operand: int) -> None:
        right = self._pop()
        left = self._pop()
        if right == 0:
            self._fault(DivisionByZeroError(self._pc, self._current))
        self._push(truncating_div(left, right))
        self._pc += 1

    def _op_neg(self, operand: int) -> None:
        self._push(wrap_int(-self._pop()))
        self._pc += 1

    def _op_cmp_eq(self, operand: int) -> None:
        self._binary(lambda a, b: int(a == b))

    def _op_cmp_neq(self, operand: int) -> None:
        self._binary(lambda a, b: int(a != b))

    def _op_cmp_gt(self, operand: int) -> None:
        self._binary(lambda a, b: int(a > b))

    def _op_cmp_lt(self, operand: int) -> None:
        self._binary(lambda a, b: int(a < b))

    def _op_cmp_gte(self, operand: int) -> None:
        self._binary(lambda a, b: int(a >= b))

    def _op_cmp_lte(self, operand: int) -> None:
        self._binary(lambda a, b: int(a <= b))

    # =========================================================================
    # Control Flow
    # =========================================================================

    def _op_jmp(self, operand: int) -> None:
        self._pc = self._check_target(operand)

    def _op_jz(self, operand: int) -> None:
        if self._pop() == 0:
            self._pc = self._check_target(operand)
        else:
            self._pc += 1

    def _op_jnz(self, operand: int) -> None:
        if self._pop() != 0:
            self._pc = self._check_target(operand)
        else:
            self._pc += 1

    def _op_call(self, operand: int) -> None:
        target = operand
        if not 0 <= target < len(self._program):
            self._fault(InvalidAddressError(
                f"unresolved call target {target}", self._pc, self._current
            ))
        self._push(self._pc + 1)
        self._push(self._fp)
        self._fp = self._sp
        self._pc = target

    def _op_ret(self, operand: int) -> None:
        return_value = self._pop()
        self._sp = self._fp
        self._fp = self._pop()
        return_address = self._pop()
        if not 0 <= operand <= self._sp:
            self._fault(StackUnderflowError(
                f"cannot drop {operand} arguments from {self._sp} stack words",
                self._pc, self._current,
            ))
        self._sp -= operand
        self._push(return_value)
        self._pc = return_address

    def _op_enter(self, operand: int) -> None:
        new_sp = self._sp + operand
        if new_sp > self.options.stack_size:
            self._fault(StackOverflowError(
                f"stack overflow reserving {operand} locals "
                f"(capacity {self.options.stack_size})",
                self._pc, self._current,
            ))
        if new_sp < 0:
            self._fault(StackUnderflowError(
                f"cannot reserve {operand} locals", self._pc, self._current
            ))
        for slot in range(self._sp, new_sp):
            self._stack[slot] = 0
        self._sp = new_sp
        self._pc += 1

    def _op_leave(self, operand: int) -> None:
        self._sp = self._fp
        self._pc += 1

    def _op_nop(self, operand: int) -> None:
        self._pc += 1

    def _op_halt(self, operand: int) -> None:
        self._running = False

    # =========================================================================
    # Output
    # =========================================================================

    def _write(self, text: str) -> None:
        self.output.append(text)
        logger.debug(f"OUTPUT: {text}")
        if self.on_output is not None:
            self.on_output(text)

    def _op_print(self, operand: int) -> None:
        self._write(str(self._peek()))
        self._pc += 1

    def _op_print_str(self, operand: int) -> None:
        index = self._pop()
        constants = self._program.constants
        if not 0 <= index < len(constants):
            self._fault(InvalidAddressError(
                f"constant index {index} outside table of {len(constants)}",
                self._pc, self._current,
            ))
        self._write(constants[index])
        self._pc += 1
