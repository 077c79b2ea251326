# =============================================================================
# test_codegen.py - Code Generator Unit Tests
# =============================================================================
# Tests for the bytelang code generator.
#
# Test coverage includes:
#   - Entry sequence and global initialisation order
#   - Frame offsets for parameters and locals
#   - Control-flow lowering and jump backpatching
#   - Forward calls, recursion and the built-in print
#   - Degrade-and-continue diagnostics
#   - Listing output
# =============================================================================

import pytest
from bytelang.bytecode import Instruction, OpCode, Program
from bytelang.compiler.ast import NodeKind, SyntaxTree
from bytelang.compiler.codegen import CodeGenerator
from bytelang.compiler.errors import (
    ArgumentCountError,
    CompilationError,
    DuplicateDeclarationError,
    InvalidStatementError,
    UndeclaredIdentifierError,
    UndefinedFunctionError,
)
from bytelang.compiler.parser import parse_source


# =============================================================================
# Helper Functions
# =============================================================================

def generate(source: str, **kwargs) -> tuple[Program, CodeGenerator]:
    """Parse and generate, returning the program and the generator."""
    generator = CodeGenerator(source_lines=source.splitlines(), **kwargs)
    program = generator.generate(parse_source(source))
    return program, generator


def ops(program: Program, start: int = 0, end: int = None) -> list:
    """(opcode, operand) pairs, with operand None where it is unused."""
    return [
        (i.opcode, i.operand if i.has_operand else None)
        for i in program.instructions[start:end]
    ]


# =============================================================================
# Entry Sequence
# =============================================================================

class TestEntrySequence:
    """Code emitted before the first function."""

    def test_main_only(self):
        program, gen = generate("fn main() -> int { return 2 + 3 * 4 }")
        assert not gen.has_errors()
        assert ops(program) == [
            (OpCode.CALL, 2),
            (OpCode.HALT, None),
            (OpCode.ENTER, 0),
            (OpCode.PUSH, 2),
            (OpCode.PUSH, 3),
            (OpCode.PUSH, 4),
            (OpCode.MUL, None),
            (OpCode.ADD, None),
            (OpCode.RET, 0),
            (OpCode.PUSH, 0),
            (OpCode.RET, 0),
        ]
        assert program.function_table == {"main": 2}
        assert program.global_slot_count == 0

    def test_globals_initialised_before_main(self):
        program, gen = generate(
            "var g: int = 10  fn main() -> int { g = g + 5  return g }"
        )
        assert not gen.has_errors()
        assert ops(program, 0, 4) == [
            (OpCode.PUSH, 10),
            (OpCode.GSTORE, 0),
            (OpCode.CALL, 4),
            (OpCode.HALT, None),
        ]
        assert ops(program, 4) == [
            (OpCode.ENTER, 0),
            (OpCode.GLOAD, 0),
            (OpCode.PUSH, 5),
            (OpCode.ADD, None),
            (OpCode.GSTORE, 0),
            (OpCode.GLOAD, 0),
            (OpCode.RET, 0),
            (OpCode.PUSH, 0),
            (OpCode.RET, 0),
        ]
        assert program.global_slot_count == 1

    def test_global_slots_in_declaration_order(self):
        program, _ = generate("var a: int  var b: int = 2  var c: bool")
        assert ops(program, 0, 6) == [
            (OpCode.PUSH, 0),
            (OpCode.GSTORE, 0),
            (OpCode.PUSH, 2),
            (OpCode.GSTORE, 1),
            (OpCode.PUSH, 0),
            (OpCode.GSTORE, 2),
        ]
        assert program.global_slot_count == 3

    def test_top_level_statements_run_before_main(self):
        program, gen = generate(
            "var total: int = 1  total = total + 4  fn main() -> int { return total }"
        )
        assert not gen.has_errors()
        assert ops(program, 0, 6) == [
            (OpCode.PUSH, 1),
            (OpCode.GSTORE, 0),
            (OpCode.GLOAD, 0),
            (OpCode.PUSH, 4),
            (OpCode.ADD, None),
            (OpCode.GSTORE, 0),
        ]
        assert program[6].opcode == OpCode.CALL

    def test_missing_main_leaves_call_unresolved(self):
        program, gen = generate("var x: int = 1")
        assert not gen.has_errors()
        assert program[2].opcode == OpCode.CALL
        assert program[2].operand == -1
        assert any("main" in w for w in gen.warnings)

    def test_bare_expression_is_popped(self):
        program, gen = generate("fn main() -> int { 1 + 2  return 0 }")
        assert not gen.has_errors()
        assert ops(program, 3, 7) == [
            (OpCode.PUSH, 1),
            (OpCode.PUSH, 2),
            (OpCode.ADD, None),
            (OpCode.POP, None),
        ]


# =============================================================================
# Frames
# =============================================================================

class TestFrames:
    """Parameter and local offsets."""

    def test_single_parameter_offset(self):
        program, _ = generate("fn id(x: int) -> int { return x }  fn main() -> int { return id(7) }")
        entry = program.function_table["id"]
        assert ops(program, entry, entry + 3) == [
            (OpCode.ENTER, 0),
            (OpCode.LOAD, -3),
            (OpCode.RET, 1),
        ]

    @pytest.mark.parametrize("count", [1, 2, 3, 5])
    def test_parameter_offsets(self, count):
        names = [f"p{i}" for i in range(count)]
        params = ", ".join(f"{n}: int" for n in names)
        uses = " + ".join(names)
        program, gen = generate(f"fn f({params}) -> int {{ return {uses} }}")
        assert not gen.has_errors()
        loads = [i.operand for i in program.instructions if i.opcode == OpCode.LOAD]
        assert loads == [-(count - i + 2) for i in range(count)]

    def test_locals_count_includes_nested_declarations(self):
        program, _ = generate(
            "fn main() -> int {"
            "  var a: int = 1"
            "  while (a < 3) { var b: int = a  a = a + b }"
            "  if (a == 4) { var c: int } else { var d: int }"
            "  return a"
            "}"
        )
        enter = program[program.function_table["main"]]
        assert enter.opcode == OpCode.ENTER
        assert enter.operand == 4
        assert enter.label == "main"

    def test_local_offsets_are_sequential(self):
        program, _ = generate(
            "fn main() -> int { var a: int = 1  var b: int = 2  var c: int = 3  return c }"
        )
        stores = [i.operand for i in program.instructions if i.opcode == OpCode.STORE]
        assert stores == [0, 1, 2]

    def test_redeclared_local_gets_new_slot(self):
        program, gen = generate(
            "fn main() -> int { var a: int = 1  var a: int = 2  return a }"
        )
        assert not gen.has_errors()
        stores = [i.operand for i in program.instructions if i.opcode == OpCode.STORE]
        loads = [i.operand for i in program.instructions if i.opcode == OpCode.LOAD]
        assert stores == [0, 1]
        assert loads == [1]

    def test_local_shadows_global(self):
        program, _ = generate(
            "var x: int = 5  fn main() -> int { var x: int = 1  return x }"
        )
        main = program.function_table["main"]
        body = ops(program, main)
        assert (OpCode.LOAD, 0) in body
        assert (OpCode.GLOAD, 0) not in body

    def test_parameter_assignment_uses_store(self):
        program, _ = generate("fn f(n: int) -> int { n = n - 1  return n }")
        assert (OpCode.STORE, -3) in ops(program)


# =============================================================================
# Control Flow
# =============================================================================

class TestControlFlow:
    """Jump lowering and backpatching."""

    def test_while_loop(self):
        program, _ = generate(
            "fn main() -> int { var i: int = 0  while (i < 3) { i = i + 1 }  return i }"
        )
        assert ops(program, 2) == [
            (OpCode.ENTER, 1),
            (OpCode.PUSH, 0),
            (OpCode.STORE, 0),
            (OpCode.LOAD, 0),       # 5: loop start
            (OpCode.PUSH, 3),
            (OpCode.CMP_LT, None),
            (OpCode.JZ, 14),
            (OpCode.LOAD, 0),
            (OpCode.PUSH, 1),
            (OpCode.ADD, None),
            (OpCode.STORE, 0),
            (OpCode.JMP, 5),
            (OpCode.LOAD, 0),       # 14: loop exit
            (OpCode.RET, 0),
            (OpCode.PUSH, 0),
            (OpCode.RET, 0),
        ]

    def test_if_else_chain_targets(self):
        program, _ = generate(
            "fn main() -> int {"
            "  var x: int = 2"
            "  if (x == 1) { x = 10 } elseif (x == 2) { x = 20 } else { x = 30 }"
            "  return x"
            "}"
        )
        instructions = program.instructions
        jz = [a for a, i in enumerate(instructions) if i.opcode == OpCode.JZ]
        jmp = [a for a, i in enumerate(instructions) if i.opcode == OpCode.JMP]
        assert len(jz) == 2
        assert len(jmp) == 2

        # Each JZ lands on the next branch: right after that branch's JMP
        assert instructions[jz[0]].operand == jmp[0] + 1
        assert instructions[jz[1]].operand == jmp[1] + 1

        # Every JMP lands after the else block
        end = instructions[jmp[0]].operand
        assert instructions[jmp[1]].operand == end
        assert ops(program, jmp[1] + 1, end) == [(OpCode.PUSH, 30), (OpCode.STORE, 0)]
        assert instructions[end].opcode == OpCode.LOAD

    def test_if_without_else(self):
        program, _ = generate("fn main() -> int { if (1 < 2) { return 5 }  return 6 }")
        instructions = program.instructions
        jz = next(i for i in instructions if i.opcode == OpCode.JZ)
        jmp = next(i for i in instructions if i.opcode == OpCode.JMP)
        assert jz.operand == jmp.operand
        assert instructions[jz.operand].opcode == OpCode.PUSH
        assert instructions[jz.operand].operand == 6

    @pytest.mark.parametrize("source", [
        "fn main() -> int { var i: int = 0  while (i < 10) { if (i == 5) { i = i + 2 } else { i = i + 1 } }  return i }",
        "fn main() -> int { if (1 == 1) { while (0 > 1) { } } elseif (2 != 2) { } elseif (3 <= 3) { return 3 } return 0 }",
        "var g: int  while (g < 2) { g = g + 1 }  fn main() -> int { return g }",
    ])
    def test_jump_targets_are_valid(self, source):
        """Every jump lands inside the program once generation completes."""
        program, gen = generate(source)
        assert not gen.has_errors()
        for instr in program.instructions:
            if instr.opcode.is_jump:
                assert 0 <= instr.operand < len(program)

    def test_comparison_opcodes(self):
        program, _ = generate(
            "fn main() -> int {"
            "  if (1 == 1) { } if (1 != 1) { } if (1 > 1) { }"
            "  if (1 < 1) { } if (1 >= 1) { } if (1 <= 1) { }"
            "  return 0 }"
        )
        compares = [i.opcode for i in program.instructions if i.opcode.name.startswith("CMP")]
        assert compares == [
            OpCode.CMP_EQ, OpCode.CMP_NEQ, OpCode.CMP_GT,
            OpCode.CMP_LT, OpCode.CMP_GTE, OpCode.CMP_LTE,
        ]


# =============================================================================
# Calls
# =============================================================================

class TestCalls:
    """Call emission and backpatching."""

    def test_backward_call(self):
        program, _ = generate("fn id(x: int) -> int { return x }  fn main() -> int { return id(7) }")
        main = program.function_table["main"]
        assert ops(program, main, main + 3) == [
            (OpCode.ENTER, 0),
            (OpCode.PUSH, 7),
            (OpCode.CALL, program.function_table["id"]),
        ]

    def test_forward_call_is_backpatched(self):
        program, gen = generate(
            "fn main() -> int { return twice(21) }  fn twice(x: int) -> int { return x * 2 }"
        )
        assert not gen.has_errors()
        calls = [i for i in program.instructions if i.opcode == OpCode.CALL]
        assert [c.operand for c in calls] == [
            program.function_table["main"],
            program.function_table["twice"],
        ]

    def test_recursive_call(self):
        program, gen = generate(
            "fn fact(n: int) -> int { if (n <= 1) { return 1 }  return n * fact(n - 1) }"
        )
        assert not gen.has_errors()
        inner = [i for i in program.instructions if i.opcode == OpCode.CALL][1]
        assert inner.operand == program.function_table["fact"]

    def test_arguments_pushed_left_to_right(self):
        program, _ = generate("fn f(a: int, b: int) -> int { return a }  fn main() -> int { return f(1, 2) }")
        main = program.function_table["main"]
        assert ops(program, main + 1, main + 4) == [
            (OpCode.PUSH, 1),
            (OpCode.PUSH, 2),
            (OpCode.CALL, program.function_table["f"]),
        ]

    def test_builtin_print(self):
        program, gen = generate("fn main() -> int { print(42)  return 0 }")
        assert not gen.has_errors()
        assert ops(program, 3, 6) == [
            (OpCode.PUSH, 42),
            (OpCode.PRINT, None),
            (OpCode.POP, None),
        ]

    def test_user_print_overrides_builtin(self):
        program, gen = generate(
            "fn print(x: int) -> int { return x }  fn main() -> int { return print(1) }"
        )
        assert not gen.has_errors()
        assert OpCode.PRINT not in [i.opcode for i in program.instructions]


# =============================================================================
# Literals
# =============================================================================

class TestLiterals:
    """Numeric literals and negation."""

    def test_literal_wraps_to_32_bits(self):
        program, _ = generate("2147483648")
        assert program[0].operand == -2147483648

    def test_large_literal_wraps(self):
        program, _ = generate("4294967297")
        assert program[0].operand == 1

    def test_negation(self):
        program, _ = generate("-5")
        assert ops(program, 0, 3) == [(OpCode.PUSH, 5), (OpCode.NEG, None), (OpCode.POP, None)]

    def test_long_negation_chain(self):
        program, gen = generate("-" * 3000 + "7")
        assert not gen.has_errors()
        assert ops(program, 0, 1) == [(OpCode.PUSH, 7)]
        assert ops(program, 1, 3001) == [(OpCode.NEG, None)] * 3000
        assert program[3001].opcode == OpCode.POP

    def test_negation_without_operand(self):
        negate = SyntaxTree(NodeKind.NEGATE)
        outer = SyntaxTree(NodeKind.NEGATE)
        outer.add_child(negate)
        tree = SyntaxTree(NodeKind.PROGRAM)
        tree.add_child(outer)
        gen = CodeGenerator()
        program = gen.generate(tree)
        assert "negation is missing its operand" in str(gen.errors[0])
        assert ops(program, 0, 3) == [(OpCode.PUSH, 0), (OpCode.NEG, None), (OpCode.POP, None)]


# =============================================================================
# Diagnostics
# =============================================================================

class TestDiagnostics:
    """Generation degrades and continues instead of raising."""

    def test_undefined_function_targets_zero(self):
        program, gen = generate("fn main() -> int { return foo() }")
        assert gen.has_errors()
        assert gen.error_count == 1
        error = gen.errors[0]
        assert isinstance(error, UndefinedFunctionError)
        assert error.function_name == "foo"
        assert ops(program, 2, 5) == [
            (OpCode.ENTER, 0),
            (OpCode.CALL, 0),
            (OpCode.RET, 0),
        ]

    def test_undefined_function_suggestion(self):
        _, gen = generate("fn helper() -> int { return 1 }  fn main() -> int { return helpr() }")
        assert gen.errors[0].similar_functions == ["helper"]

    def test_undeclared_identifier_pushes_zero(self):
        program, gen = generate("var count: int  fn main() -> int { return cout }")
        error = gen.errors[0]
        assert isinstance(error, UndeclaredIdentifierError)
        assert error.similar_identifiers == ["count"]
        assert "did you mean 'count'?" in str(error)
        main = program.function_table["main"]
        assert ops(program, main + 1, main + 2) == [(OpCode.PUSH, 0)]

    def test_assignment_to_unknown_keeps_stack_balanced(self):
        program, gen = generate("fn main() -> int { z = 1  return 0 }")
        assert isinstance(gen.errors[0], UndeclaredIdentifierError)
        assert ops(program, 3, 5) == [(OpCode.PUSH, 1), (OpCode.POP, None)]

    def test_multiple_errors_reported(self):
        _, gen = generate("fn main() -> int { a = b  return c + foo() }")
        assert gen.error_count == 4

    def test_duplicate_function(self):
        program, gen = generate(
            "fn main() -> int { return 1 }  fn main() -> int { return 2 }"
        )
        assert isinstance(gen.errors[0], DuplicateDeclarationError)
        assert program.function_table == {"main": 2}

    def test_duplicate_global(self):
        program, gen = generate("var g: int = 1  var g: int = 2")
        assert isinstance(gen.errors[0], DuplicateDeclarationError)
        assert program.global_slot_count == 1

    def test_duplicate_parameter(self):
        _, gen = generate("fn f(a: int, a: int) -> int { return a }")
        assert isinstance(gen.errors[0], DuplicateDeclarationError)

    def test_top_level_return(self):
        _, gen = generate("return 1")
        assert isinstance(gen.errors[0], InvalidStatementError)

    def test_nested_function(self):
        _, gen = generate("fn main() -> int { fn inner() -> int { return 1 }  return 0 }")
        assert isinstance(gen.errors[0], InvalidStatementError)

    def test_argument_count(self):
        _, gen = generate("fn f(a: int) -> int { return a }  fn main() -> int { return f(1, 2) }")
        error = gen.errors[0]
        assert isinstance(error, ArgumentCountError)
        assert "'f' takes 1 argument but 2 were given" in str(error)

    def test_unknown_operator_in_hand_built_tree(self):
        tree = SyntaxTree(NodeKind.PROGRAM)
        expr = tree.add_child(SyntaxTree(NodeKind.EXPRESSION).with_attribute("operator", "%"))
        expr.add_child(SyntaxTree(NodeKind.NUMERIC, value="1"))
        expr.add_child(SyntaxTree(NodeKind.NUMERIC, value="2"))
        gen = CodeGenerator()
        gen.generate(tree)
        assert isinstance(gen.errors[0], InvalidStatementError)
        assert "unknown operator '%'" in str(gen.errors[0])

    @pytest.mark.parametrize("text", ["²", "1①", ""])
    def test_malformed_literal_in_hand_built_tree(self, text):
        tree = SyntaxTree(NodeKind.PROGRAM)
        tree.add_child(SyntaxTree(NodeKind.NUMERIC, value=text))
        gen = CodeGenerator()
        program = gen.generate(tree)
        assert isinstance(gen.errors[0], InvalidStatementError)
        assert "malformed numeric literal" in str(gen.errors[0])
        assert ops(program, 0, 2) == [(OpCode.PUSH, 0), (OpCode.POP, None)]

    def test_non_program_root(self):
        gen = CodeGenerator()
        program = gen.generate(SyntaxTree(NodeKind.BLOCK))
        assert gen.has_errors()
        assert len(program) == 0

    def test_diagnostic_has_source_context(self):
        _, gen = generate("fn main() -> int {\n  return missing\n}")
        lines = str(gen.errors[0]).splitlines()
        assert lines[0] == "<input>:2:9: error: undeclared identifier 'missing'"
        assert lines[1] == "      return missing"

    def test_generator_is_reusable(self):
        gen = CodeGenerator()
        gen.generate(parse_source("fn main() -> int { return x }"))
        assert gen.has_errors()
        program = gen.generate(parse_source("fn main() -> int { return 1 }"))
        assert not gen.has_errors()
        assert program.function_table == {"main": 2}

    def test_assignment_to_unknown_name_pops_value(self):
        program, gen = generate("fn main() -> int { nope = 4  return 1 }")
        assert isinstance(gen.errors[0], UndeclaredIdentifierError)
        assert ops(program, 3, 6) == [
            (OpCode.PUSH, 4),
            (OpCode.POP, None),
            (OpCode.PUSH, 1),
        ]

    def test_diagnostics_counts(self):
        _, gen = generate("var x: int = y")
        assert gen.diagnostics.error_count() == 1
        assert gen.diagnostics.warning_count() == 1

    def test_raise_if_errors(self):
        _, gen = generate("fn main() -> int { return a + b }")
        with pytest.raises(CompilationError) as exc_info:
            gen.diagnostics.raise_if_errors()
        assert len(exc_info.value.errors) == 2
        assert "2 errors" in str(exc_info.value)

    def test_raise_if_errors_when_clean(self):
        _, gen = generate("fn main() -> int { return 1 }")
        gen.diagnostics.raise_if_errors()

    def test_max_errors(self):
        gen = CodeGenerator(max_errors=2)
        gen.generate(parse_source("fn main() -> int { return a + b + c + d }"))
        assert len(gen.errors) == 2
        assert gen.error_count == 4


# =============================================================================
# Listing
# =============================================================================

class TestListing:
    """Program.listing() and instruction comments."""

    def test_listing_lines(self):
        program, _ = generate("fn main() -> int { return 2 + 3 * 4 }")
        lines = program.listing().splitlines()
        assert lines[0].startswith("0000: CALL     2")
        assert lines[0].endswith("; call main")
        assert lines[1].startswith("0001: HALT")
        assert lines[2] == "main:"
        assert lines[3].startswith("0002: ENTER    0")
        assert "fn main -> int, 0 locals" in lines[3]

    def test_without_comments(self):
        program, _ = generate("fn main() -> int { return 1 }", output_comments=False)
        assert all(i.comment is None for i in program.instructions)
        assert program.listing().splitlines()[0] == "0000: CALL     2"

    def test_labels(self):
        program, _ = generate(
            "fn square(x: int) -> int { return x * x }  fn main() -> int { return square(7) }"
        )
        assert program.labels() == {
            program.function_table["square"]: "square",
            program.function_table["main"]: "main",
        }

    def test_instruction_str(self):
        assert str(Instruction(OpCode.PUSH, 3)) == "PUSH     3"
        assert str(Instruction(OpCode.ADD)) == "ADD"
        assert Instruction(OpCode.LOAD, -3, comment="x").to_listing(4) == "0004: LOAD     -3       ; x"
