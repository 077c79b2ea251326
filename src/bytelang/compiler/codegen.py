"""
bytelang Code Generator
=======================

This module lowers the syntax tree into a linear bytecode Program for the
stack machine (see bytelang.bytecode).

Generation Strategy
-------------------
One depth-first pass over the tree, dispatched on node kind:

1. Pre-scan the direct children of PROGRAM: every VARIABLE_DECLARATION gets
   a global slot (first-seen order), every FUNCTION is registered with its
   parameter count so calls can be checked before the callee is generated.
2. Emit the entry sequence: global initializers and other top-level
   statements in source order, then `CALL main` and `HALT`.
3. Emit each function. Calls to functions not generated yet are recorded and
   backpatched once every entry address is known.

Diagnostics never stop generation. Each one is recorded in an
ErrorCollector, logged, and replaced by neutral code (`PUSH 0` for a value,
`POP` for a discarded one) so the stack stays balanced and later problems
still surface in the same run.

Stack Frame Layout
------------------
CALL pushes the return address and the caller's fp, then sets fp = sp.
For a function with p parameters and n locals, after `ENTER n`:

    +----------------+
    | param 0        |  fp - (p + 2)
    | ...            |
    | param p-1      |  fp - 3
    | return address |  fp - 2  (pushed by CALL)
    | saved fp       |  fp - 1  (pushed by CALL)
    +----------------+ <- fp
    | local 0        |  fp + 0
    | ...            |
    | local n-1      |  fp + n - 1
    +----------------+ <- sp after ENTER

So parameter i of p sits at offset -(p - i + 2).

Globals live at absolute slots 0 .. global_slot_count-1, reserved by the
machine before the first instruction runs.

Usage
-----
>>> from bytelang.compiler.parser import parse_source
>>> from bytelang.compiler.codegen import CodeGenerator
>>> tree = parse_source('fn main() -> int { return 2 + 3 * 4 }')
>>> gen = CodeGenerator()
>>> program = gen.generate(tree)
>>> print(program.listing())
"""

import logging
import string
from dataclasses import dataclass
from typing import Optional

from bytelang.bytecode import (
    BINARY_OPCODES,
    Instruction,
    OpCode,
    Program,
    wrap_int,
)
from bytelang.compiler.ast import NodeKind, SyntaxTree
from bytelang.compiler.errors import (
    ArgumentCountError,
    CSemanticError,
    DuplicateDeclarationError,
    ErrorCollector,
    InvalidStatementError,
    UndeclaredIdentifierError,
    UndefinedFunctionError,
    similar_names,
)
from bytelang.compiler.types import PrimitiveType

logger = logging.getLogger(__name__)


ENTRY_FUNCTION = "main"
BUILTIN_PRINT = "print"

# Operand of the entry CALL while main's address is unknown
UNRESOLVED_ADDRESS = -1


# =============================================================================
# Symbol Tables for Code Generation
# =============================================================================

@dataclass
class SymbolInfo:
    """
    A variable known to the generator.

    Attributes:
        name: Variable name
        var_type: Declared type tag (None if the tree carried an unknown name)
        is_global: True for global slots, False for frame offsets
        offset: Global slot, or signed offset from fp
        is_parameter: True for function parameters
    """
    name: str
    var_type: Optional[PrimitiveType]
    is_global: bool = False
    offset: int = 0
    is_parameter: bool = False


@dataclass
class FunctionInfo:
    """
    A function known to the generator.

    Attributes:
        name: Function name
        return_type: Declared return type tag
        param_count: Number of parameters
        local_count: Number of local slots reserved by ENTER
    """
    name: str
    return_type: Optional[PrimitiveType]
    param_count: int = 0
    local_count: int = 0


@dataclass
class PendingCall:
    """A CALL whose target function had not been generated yet."""
    index: int
    name: str


# =============================================================================
# Code Generator Class
# =============================================================================

class CodeGenerator:
    """
    Generates a bytecode Program from a bytelang syntax tree.

    Attributes:
        diagnostics: ErrorCollector holding every diagnostic of the last run
        output_comments: Attach human-readable comments to instructions
    """

    def __init__(
        self,
        max_errors: int = 100,
        output_comments: bool = True,
        source_lines: Optional[list[str]] = None,
    ):
        """
        Initialize the code generator.

        Args:
            max_errors: Diagnostics kept before further ones are only counted
            output_comments: Whether to attach listing comments
            source_lines: Original source lines, for diagnostic context
        """
        self.output_comments = output_comments
        self.source_lines = source_lines or []
        self.diagnostics = ErrorCollector(max_errors=max_errors)

        self._instructions: list[Instruction] = []
        self._function_table: dict[str, int] = {}

        # Symbol tables
        self._globals: dict[str, SymbolInfo] = {}
        self._locals: dict[str, SymbolInfo] = {}
        self._functions: dict[str, FunctionInfo] = {}

        # Current function context
        self._current_function: Optional[FunctionInfo] = None
        self._next_local_offset = 0

        self._pending_calls: list[PendingCall] = []

    # =========================================================================
    # Public Interface
    # =========================================================================

    @property
    def error_count(self) -> int:
        return self.diagnostics.error_count()

    def has_errors(self) -> bool:
        return self.diagnostics.has_errors()

    @property
    def errors(self) -> list[CSemanticError]:
        return list(self.diagnostics.errors)

    @property
    def warnings(self) -> list[str]:
        return list(self.diagnostics.warnings)

    def generate(self, tree: SyntaxTree) -> Program:
        """
        Generate a Program from a PROGRAM syntax tree.

        Always returns a Program; check has_errors() before running it.

        Args:
            tree: The root PROGRAM node

        Returns:
            The generated Program
        """
        self._reset()

        if tree.kind != NodeKind.PROGRAM:
            self._error(InvalidStatementError(
                f"expected a PROGRAM node, got {tree.kind.name}",
                location=tree.location,
            ))
            return self._build_program()

        # First pass: global slots and function signatures
        self._prescan(tree)

        # Entry sequence: globals and top-level statements, then main
        functions = []
        for statement in tree.children:
            if statement.kind == NodeKind.FUNCTION:
                functions.append(statement)
            elif statement.kind == NodeKind.RETURN:
                self._error(InvalidStatementError(
                    "'return' outside of a function",
                    location=statement.location,
                    source_line=self._source_line(statement),
                ))
            else:
                self._generate_statement(statement)

        main_call = self._emit(
            OpCode.CALL, UNRESOLVED_ADDRESS, comment=f"call {ENTRY_FUNCTION}"
        )
        self._emit(OpCode.HALT, comment="end of program")

        for function in functions:
            self._generate_function(function)

        self._resolve_calls()
        self._resolve_entry(main_call)

        program = self._build_program()
        logger.debug(
            f"Generated {len(program)} instructions, "
            f"{len(program.function_table)} functions, "
            f"{program.global_slot_count} globals, "
            f"{self.error_count} errors"
        )
        return program

    def _reset(self) -> None:
        self.diagnostics.clear()
        self._instructions = []
        self._function_table = {}
        self._globals = {}
        self._locals = {}
        self._functions = {}
        self._current_function = None
        self._next_local_offset = 0
        self._pending_calls = []

    def _build_program(self) -> Program:
        return Program(
            instructions=self._instructions,
            function_table=dict(self._function_table),
            global_slot_count=len(self._globals),
        )

    # =========================================================================
    # Instruction Output Methods
    # =========================================================================

    def _emit(
        self,
        opcode: OpCode,
        operand: int = 0,
        comment: Optional[str] = None,
        label: Optional[str] = None,
    ) -> int:
        """Append an instruction and return its address."""
        if not self.output_comments:
            comment = None
        self._instructions.append(Instruction(opcode, operand, label, comment))
        return len(self._instructions) - 1

    def _here(self) -> int:
        """Address of the next instruction to be emitted."""
        return len(self._instructions)

    def _patch(self, address: int, target: int) -> None:
        self._instructions[address].operand = target

    # =========================================================================
    # Diagnostics
    # =========================================================================

    def _source_line(self, node: SyntaxTree) -> Optional[str]:
        if node.location is None:
            return None
        line = node.location.line
        if 0 < line <= len(self.source_lines):
            return self.source_lines[line - 1]
        return None

    def _error(self, error: CSemanticError) -> None:
        logger.error(error.message if error.location is None
                     else f"{error.location}: {error.message}")
        self.diagnostics.add(error)

    def _warning(self, message: str, node: Optional[SyntaxTree] = None) -> None:
        location = node.location if node is not None else None
        logger.warning(message)
        self.diagnostics.add_warning(message, location)

    # =========================================================================
    # Symbol Table Management
    # =========================================================================

    def _prescan(self, tree: SyntaxTree) -> None:
        """Assign global slots and register function signatures."""
        for node in tree.children:
            if node.kind == NodeKind.VARIABLE_DECLARATION:
                name = node.get("name")
                if name is None:
                    continue
                if name in self._globals:
                    self._error(DuplicateDeclarationError(
                        name, "global variable",
                        location=node.location,
                        source_line=self._source_line(node),
                    ))
                    continue
                self._add_global(node)

            elif node.kind == NodeKind.FUNCTION:
                name = node.get("name")
                if name is None or name in self._functions:
                    # Reported when the duplicate is generated
                    continue
                params = node.first(NodeKind.PARAMETER_LIST)
                self._functions[name] = FunctionInfo(
                    name=name,
                    return_type=PrimitiveType.from_name(node.get("returnType")),
                    param_count=len(params.children) if params else 0,
                )

    def _add_global(self, node: SyntaxTree) -> SymbolInfo:
        name = node.get("name")
        info = SymbolInfo(
            name=name,
            var_type=PrimitiveType.from_name(node.get("type")),
            is_global=True,
            offset=len(self._globals),
        )
        self._globals[name] = info
        return info

    def _add_local(self, node: SyntaxTree) -> SymbolInfo:
        """
        Give a local its own frame offset.

        Offsets are flat and never reused within a function. A redeclared
        name is bound to a fresh offset from that point on.
        """
        name = node.get("name")
        info = SymbolInfo(
            name=name,
            var_type=PrimitiveType.from_name(node.get("type")),
            offset=self._next_local_offset,
        )
        self._next_local_offset += 1
        self._locals[name] = info
        return info

    def _lookup(self, name: str) -> Optional[SymbolInfo]:
        """Look up a variable in local then global scope."""
        if name in self._locals:
            return self._locals[name]
        if name in self._globals:
            return self._globals[name]
        return None

    def _known_variables(self) -> list[str]:
        return list(self._locals) + list(self._globals)

    # =========================================================================
    # Function Code Generation
    # =========================================================================

    def _generate_function(self, node: SyntaxTree) -> None:
        """Generate code for a function definition."""
        name = node.get("name")
        params = node.first(NodeKind.PARAMETER_LIST)
        body = node.first(NodeKind.BLOCK)

        if name is None or body is None:
            self._error(InvalidStatementError(
                "function is missing its name or body",
                location=node.location,
            ))
            return

        if name in self._function_table:
            self._error(DuplicateDeclarationError(
                name, "function",
                location=node.location,
                source_line=self._source_line(node),
            ))
            return

        info = self._functions[name]
        self._function_table[name] = self._here()

        # Reset local state
        self._locals = {}
        self._next_local_offset = 0
        self._current_function = info

        parameters = params.children if params else []
        param_count = len(parameters)
        for index, param in enumerate(parameters):
            param_name = param.get("name")
            if param_name in self._locals:
                self._error(DuplicateDeclarationError(
                    param_name, "parameter",
                    location=param.location,
                    source_line=self._source_line(param),
                ))
                continue
            self._locals[param_name] = SymbolInfo(
                name=param_name,
                var_type=PrimitiveType.from_name(param.get("type")),
                offset=-(param_count - index + 2),
                is_parameter=True,
            )

        info.local_count = self._count_locals(body)

        self._emit(
            OpCode.ENTER, info.local_count,
            label=name,
            comment=f"fn {name} -> {info.return_type or node.get('returnType')}, "
                    f"{info.local_count} locals",
        )

        self._generate_block(body)

        # Falling off the end returns 0
        self._emit(OpCode.PUSH, 0, comment="default return value")
        self._emit(OpCode.RET, param_count, comment=f"exit {name}")

        logger.debug(
            f"Function {name}: entry {self._function_table[name]}, "
            f"{param_count} params, {info.local_count} locals"
        )

        self._current_function = None
        self._locals = {}

    @staticmethod
    def _count_locals(body: SyntaxTree) -> int:
        """Count every variable declaration reachable in a function body."""
        count = 0
        stack = [body]
        while stack:
            node = stack.pop()
            if node.kind == NodeKind.VARIABLE_DECLARATION:
                count += 1
            if node.kind != NodeKind.FUNCTION:
                stack.extend(node.children)
        return count

    # =========================================================================
    # Statement Code Generation
    # =========================================================================

    def _generate_block(self, block: SyntaxTree) -> None:
        for statement in block.children:
            self._generate_statement(statement)

    def _generate_statement(self, node: SyntaxTree) -> None:
        """Generate code for any statement."""
        kind = node.kind

        if kind == NodeKind.VARIABLE_DECLARATION:
            self._generate_variable_declaration(node)
        elif kind == NodeKind.ASSIGNMENT:
            self._generate_assignment(node)
        elif kind == NodeKind.IF:
            self._generate_if(node)
        elif kind == NodeKind.WHILE:
            self._generate_while(node)
        elif kind == NodeKind.RETURN:
            self._generate_return(node)
        elif kind == NodeKind.BLOCK:
            self._generate_block(node)
        elif kind == NodeKind.FUNCTION:
            self._error(InvalidStatementError(
                f"function '{node.get('name')}' must be defined at top level",
                location=node.location,
                source_line=self._source_line(node),
            ))
        elif kind in (NodeKind.PROGRAM, NodeKind.PARAMETER_LIST, NodeKind.PARAMETER,
                      NodeKind.ELSE_IF, NodeKind.ELSE):
            self._error(InvalidStatementError(
                f"{kind.name} node cannot appear as a statement",
                location=node.location,
            ))
        else:
            # Expression statement: the value is not used
            self._generate_expression(node)
            self._emit(OpCode.POP, comment="discard expression value")

    def _generate_variable_declaration(self, node: SyntaxTree) -> None:
        name = node.get("name")
        if name is None:
            self._error(InvalidStatementError(
                "variable declaration is missing its name",
                location=node.location,
            ))
            return

        if self._current_function is not None:
            symbol = self._add_local(node)
        else:
            # Direct PROGRAM children already have a slot from the pre-scan
            symbol = self._globals.get(name) or self._add_global(node)

        initializer = node.child(0)
        if initializer is not None:
            self._generate_expression(initializer)
        else:
            self._emit(OpCode.PUSH, 0, comment=f"default value of {name}")

        self._emit_store(symbol, f"init {name}")

    def _generate_assignment(self, node: SyntaxTree) -> None:
        name = node.get("name")
        value = node.child(0)
        if value is None:
            self._error(InvalidStatementError(
                f"assignment to '{name}' has no value",
                location=node.location,
            ))
            return

        self._generate_expression(value)

        symbol = self._lookup(name)
        if symbol is None:
            self._error(UndeclaredIdentifierError(
                name,
                location=node.location,
                source_line=self._source_line(node),
                similar_identifiers=similar_names(name, self._known_variables()),
            ))
            self._emit(OpCode.POP, comment=f"drop value for unknown '{name}'")
            return

        self._emit_store(symbol, f"{name} =")

    def _emit_store(self, symbol: SymbolInfo, comment: str) -> None:
        opcode = OpCode.GSTORE if symbol.is_global else OpCode.STORE
        self._emit(opcode, symbol.offset, comment=comment)

    def _generate_if(self, node: SyntaxTree) -> None:
        """
        Generate an if / elseif / else chain.

        Each conditional branch is: condition, JZ next, block, JMP end.
        Every JZ is patched to the start of the following branch, every
        JMP to the address after the whole chain.
        """
        branches = [(node.child(0), node.child(1))]
        for extra in node.children_of(NodeKind.ELSE_IF):
            branches.append((extra.child(0), extra.child(1)))

        else_node = node.first(NodeKind.ELSE)
        else_block = else_node.child(0) if else_node is not None else None

        end_jumps = []
        for index, (condition, block) in enumerate(branches):
            if condition is None or block is None:
                self._error(InvalidStatementError(
                    "if branch is missing its condition or block",
                    location=node.location,
                ))
                continue
            word = "if" if index == 0 else "elseif"
            self._generate_expression(condition)
            skip = self._emit(OpCode.JZ, 0, comment=f"{word}: false, next branch")
            self._generate_block(block)
            end_jumps.append(self._emit(OpCode.JMP, 0, comment=f"{word}: done"))
            self._patch(skip, self._here())

        if else_block is not None:
            self._generate_block(else_block)

        end = self._here()
        for jump in end_jumps:
            self._patch(jump, end)

    def _generate_while(self, node: SyntaxTree) -> None:
        condition = node.child(0)
        body = node.child(1)
        if condition is None or body is None:
            self._error(InvalidStatementError(
                "while is missing its condition or body",
                location=node.location,
            ))
            return

        loop_start = self._here()
        self._generate_expression(condition)
        exit_jump = self._emit(OpCode.JZ, 0, comment="while: exit loop")
        self._generate_block(body)
        self._emit(OpCode.JMP, loop_start, comment="while: repeat")
        self._patch(exit_jump, self._here())

    def _generate_return(self, node: SyntaxTree) -> None:
        function = self._current_function
        if function is None:
            self._error(InvalidStatementError(
                "'return' outside of a function",
                location=node.location,
                source_line=self._source_line(node),
            ))
            return

        value = node.child(0)
        if value is not None:
            self._generate_expression(value)
        else:
            self._emit(OpCode.PUSH, 0, comment="no return value")
        self._emit(OpCode.RET, function.param_count, comment=f"return from {function.name}")

    # =========================================================================
    # Expression Code Generation
    # =========================================================================

    def _generate_expression(self, node: SyntaxTree) -> None:
        """Generate code leaving exactly one value on the stack."""
        kind = node.kind

        if kind == NodeKind.NUMERIC:
            self._generate_number(node)
        elif kind == NodeKind.IDENTIFIER:
            self._generate_identifier(node)
        elif kind in (NodeKind.EXPRESSION, NodeKind.TERM, NodeKind.CONDITION):
            self._generate_binary(node)
        elif kind == NodeKind.NEGATE:
            self._generate_negate(node)
        elif kind == NodeKind.FUNCTION_CALL:
            self._generate_call(node)
        else:
            self._error(InvalidStatementError(
                f"{kind.name} node cannot be used as a value",
                location=node.location,
                source_line=self._source_line(node),
            ))
            self._emit(OpCode.PUSH, 0, comment="placeholder")

    def _generate_number(self, node: SyntaxTree) -> None:
        text = node.value or ""
        if not text or any(c not in string.digits for c in text):
            self._error(InvalidStatementError(
                f"malformed numeric literal '{text}'",
                location=node.location,
            ))
            self._emit(OpCode.PUSH, 0, comment="placeholder")
            return
        value = wrap_int(int(text))
        self._emit(OpCode.PUSH, value, comment=f"push {text}")

    def _generate_identifier(self, node: SyntaxTree) -> None:
        name = node.value
        symbol = self._lookup(name)

        if symbol is None:
            self._error(UndeclaredIdentifierError(
                name,
                location=node.location,
                source_line=self._source_line(node),
                similar_identifiers=similar_names(name, self._known_variables()),
            ))
            self._emit(OpCode.PUSH, 0, comment=f"unknown '{name}'")
            return

        opcode = OpCode.GLOAD if symbol.is_global else OpCode.LOAD
        self._emit(opcode, symbol.offset, comment=f"load {name}")

    def _generate_binary(self, node: SyntaxTree) -> None:
        """Generate left operand, right operand, then the operator."""
        left = node.child(0)
        right = node.child(1)
        operator = node.get("operator")

        if left is None or right is None or len(node.children) != 2:
            self._error(InvalidStatementError(
                f"{node.kind.name} needs exactly two operands",
                location=node.location,
            ))
            self._emit(OpCode.PUSH, 0, comment="placeholder")
            return

        self._generate_expression(left)
        self._generate_expression(right)

        opcode = BINARY_OPCODES.get(operator)
        if opcode is None:
            self._error(InvalidStatementError(
                f"unknown operator '{operator}'",
                location=node.location,
                source_line=self._source_line(node),
            ))
            # Collapse both operands to a single placeholder value
            self._emit(OpCode.POP)
            self._emit(OpCode.POP)
            self._emit(OpCode.PUSH, 0, comment="placeholder")
            return

        self._emit(opcode, comment=operator)

    def _generate_negate(self, node: SyntaxTree) -> None:
        depth = 0
        while node.kind == NodeKind.NEGATE:
            operand = node.child(0)
            if operand is None:
                self._error(InvalidStatementError(
                    "negation is missing its operand",
                    location=node.location,
                ))
                self._emit(OpCode.PUSH, 0, comment="placeholder")
                break
            depth += 1
            node = operand
        else:
            self._generate_expression(node)

        for _ in range(depth):
            self._emit(OpCode.NEG)

    def _generate_call(self, node: SyntaxTree) -> None:
        """
        Generate a function call.

        Arguments are pushed left to right. The target address is filled in
        directly when the callee has been generated already, otherwise it is
        backpatched after all functions are generated.
        """
        name = node.get("name")
        arguments = node.children

        if name == BUILTIN_PRINT and name not in self._functions:
            self._generate_print(node)
            return

        for argument in arguments:
            self._generate_expression(argument)

        function = self._functions.get(name)
        if function is None:
            self._error(UndefinedFunctionError(
                name,
                location=node.location,
                source_line=self._source_line(node),
                similar_functions=similar_names(name, self._functions),
            ))
            # Keep the stack shape of a call: arguments replaced by one value
            self._emit(OpCode.CALL, 0, comment=f"call {name} (undefined)")
            return

        if len(arguments) != function.param_count:
            self._error(ArgumentCountError(
                name, function.param_count, len(arguments),
                location=node.location,
                source_line=self._source_line(node),
            ))

        address = self._function_table.get(name)
        if address is None:
            index = self._emit(OpCode.CALL, 0, comment=f"call {name}")
            self._pending_calls.append(PendingCall(index, name))
        else:
            self._emit(OpCode.CALL, address, comment=f"call {name}")

    def _generate_print(self, node: SyntaxTree) -> None:
        """Built-in print(expr): evaluates to its argument, which is printed."""
        if len(node.children) != 1:
            self._error(ArgumentCountError(
                BUILTIN_PRINT, 1, len(node.children),
                location=node.location,
                source_line=self._source_line(node),
            ))
            for argument in node.children:
                self._generate_expression(argument)
                self._emit(OpCode.POP)
            self._emit(OpCode.PUSH, 0, comment="placeholder")
            return

        self._generate_expression(node.children[0])
        self._emit(OpCode.PRINT)

    # =========================================================================
    # Backpatching
    # =========================================================================

    def _resolve_calls(self) -> None:
        """Patch calls to functions that were generated after the call site."""
        for pending in self._pending_calls:
            address = self._function_table.get(pending.name)
            if address is not None:
                self._patch(pending.index, address)
        self._pending_calls = []

    def _resolve_entry(self, main_call: int) -> None:
        address = self._function_table.get(ENTRY_FUNCTION)
        if address is None:
            self._warning(
                f"no '{ENTRY_FUNCTION}' function; the entry call is left unresolved"
            )
            return
        self._patch(main_call, address)
