"""
Tests for variables, assignment and block scoping.

Covers:
- var with default, number and string types
- set mutating existing storage (locals and globals)
- begin blocks shadowing without leaking
- Allocation placement in the entry block
"""

import pytest
from llvmlite import ir

from codegen import (
    CodeGenerator, CompileError, MalformedFormError, TypeMismatchError,
    UndefinedIdentifierError,
)
from codegen.types import BYTE_PTR, INT32


class TestVarDeclaration:
    """Tests for the var form."""

    def test_untyped_var(self, evaluate):
        assert evaluate("(var x 10) x") == 10

    def test_var_evaluates_to_stored_value(self, evaluate):
        assert evaluate("(var x (+ 1 2))") == 3

    def test_typed_number(self, evaluate):
        assert evaluate("(var (x number) 7) (+ x 1)") == 8

    def test_typed_string(self, evaluate):
        assert evaluate('(var (s string) "abc") s') == "abc"

    def test_string_escapes_become_bytes(self, evaluate):
        assert evaluate(r'(var (s string) "a\nb") s') == "a\nb"

    def test_initializer_uses_other_variables(self, evaluate):
        assert evaluate("(var x 10) (var y (* x 2)) (+ x y)") == 30

    def test_initializer_cannot_see_own_binding(self, generate):
        with pytest.raises(UndefinedIdentifierError, match="'x'"):
            generate("(var x x)")

    def test_redeclare_in_same_scope(self, evaluate):
        assert evaluate("(var x 1) (var x 2) x") == 2

    def test_string_into_number_rejected(self, generate):
        with pytest.raises(TypeMismatchError, match="Cannot store string in 'x'"):
            generate('(var x "hello")')

    def test_number_into_string_rejected(self, generate):
        with pytest.raises(TypeMismatchError):
            generate("(var (s string) 5)")

    def test_unknown_type_defaults_to_number(self, evaluate):
        assert evaluate("(var (x float) 3) x") == 3

    def test_missing_initializer(self, generate):
        with pytest.raises(MalformedFormError):
            generate("(var x)")

    def test_reserved_name(self, generate):
        with pytest.raises(MalformedFormError, match="reserved"):
            generate("(var true 1)")

    def test_bad_typed_target(self, generate):
        with pytest.raises(MalformedFormError, match="Typed declaration"):
            generate("(var (x number extra) 1)")


class TestSet:
    """Tests for the set form."""

    def test_set_mutates(self, evaluate):
        assert evaluate("(var x 10) (set x 20) x") == 20

    def test_set_evaluates_to_value(self, evaluate):
        assert evaluate("(var x 10) (set x (+ x 5))") == 15

    def test_set_undeclared(self, generate):
        with pytest.raises(UndefinedIdentifierError, match="Undeclared identifier 'y'"):
            generate("(set y 1)")

    def test_set_requires_name(self, generate):
        with pytest.raises(MalformedFormError, match="must be a name"):
            generate("(var x 1) (set (x) 2)")

    def test_set_type_mismatch(self, generate):
        with pytest.raises(TypeMismatchError, match="Cannot store string in 'x' of type number"):
            generate('(var x 1) (set x "two")')

    def test_set_string(self, evaluate):
        assert evaluate('(var (s string) "a") (set s "b") s') == "b"


class TestGlobals:
    """Tests for module-level cells."""

    def test_version_global(self, evaluate):
        assert evaluate("VERSION") == 42

    def test_set_global(self, evaluate):
        assert evaluate("(set VERSION 7) VERSION") == 7

    def test_configured_globals(self, evaluate):
        assert evaluate("(+ A B)", global_vars={"A": 40, "B": 2}) == 42

    def test_global_cell_is_mutable(self, generate):
        codegen, _ = generate("VERSION")
        cell = codegen.module.globals["VERSION"]
        assert isinstance(cell, ir.GlobalVariable)
        assert not cell.global_constant
        assert cell.align == 4
        assert cell.initializer.constant == 42

    @pytest.mark.parametrize("value", [2 ** 31, -2 ** 31 - 1, 4294967338])
    def test_configured_global_out_of_range(self, value):
        with pytest.raises(CompileError, match="does not fit in 32 bits"):
            CodeGenerator(global_vars={"BIG": value})

    def test_configured_global_limits(self, evaluate):
        assert evaluate("LOW", global_vars={"LOW": -2 ** 31}) == -2 ** 31
        assert evaluate("HIGH", global_vars={"HIGH": 2 ** 31 - 1}) == 2 ** 31 - 1

    def test_var_never_creates_global(self, generate):
        codegen, _ = generate("(var top 1)")
        assert "top" not in codegen.module.globals

    def test_var_shadows_global(self, evaluate):
        assert evaluate("(var VERSION 1) VERSION") == 1


class TestBlocks:
    """Tests for begin blocks and lexical scope."""

    def test_block_value_is_last_expression(self, evaluate):
        assert evaluate("(begin 1 2 3)") == 3

    def test_empty_block(self, evaluate):
        assert evaluate("(begin)") == 0

    def test_shadowing_inside_block(self, evaluate):
        assert evaluate("(var x 1) (begin (var x 2) x)") == 2

    def test_shadowing_does_not_leak(self, evaluate):
        assert evaluate("(var x 1) (begin (var x 2) x) x") == 1

    def test_block_sees_outer_scope(self, evaluate):
        assert evaluate("(var x 1) (begin (+ x 10))") == 11

    def test_set_from_block_updates_outer(self, evaluate):
        assert evaluate("(var x 1) (begin (set x 5)) x") == 5

    def test_inner_initializer_reads_outer(self, evaluate):
        assert evaluate("(var x 1) (begin (var x (+ x 1)) x)") == 2

    def test_block_locals_not_visible_after(self, generate):
        with pytest.raises(UndefinedIdentifierError, match="'y'"):
            generate("(begin (var y 1)) y")

    def test_nested_blocks(self, evaluate):
        source = """
        (var x 1)
        (begin
          (var x 2)
          (begin
            (var x 3)
            (set x (* x 10)))
          (set x (+ x 1)))
        x
        """
        assert evaluate(source) == 1


class TestAllocation:
    """Tests for stack slot placement."""

    def test_allocas_lead_the_entry_block(self, generate):
        codegen, _ = generate("""
            (var a 1)
            (var b (+ a 1))
            (begin (var c (* b 2)) (set a c))
        """)
        instructions = codegen.function.entry_basic_block.instructions
        kinds = [isinstance(instr, ir.AllocaInstr) for instr in instructions]
        assert kinds.count(True) == 3
        assert kinds == sorted(kinds, reverse=True)

    def test_slot_types(self, generate):
        codegen, _ = generate('(var n 1) (var (s string) "x")')
        allocas = [instr for instr in codegen.function.entry_basic_block.instructions
                   if isinstance(instr, ir.AllocaInstr)]
        assert sorted(str(a.allocated_type) for a in allocas) == sorted([str(INT32), str(BYTE_PTR)])

    def test_store_follows_initializer(self, evaluate):
        # The initializer's instructions must precede the store into the slot
        assert evaluate("(var a 2) (var b (* a 21)) b") == 42
