"""
Expressions Module for Eva Code Generator

Every Eva construct is an expression. Node kinds handled:
- Literals: numbers (i32), strings (i8*), true/false (i1)
- Symbols: variable reads
- Lists, dispatched on their Form:
    (+ a b) (- a b) (* a b) (/ a b)          arithmetic, signed division
    (> a b) (< a b) (== a b) (!= a b) ...    unsigned comparison, i1 result
    (var x init) (var (x type) init)         declaration
    (set x value)                            assignment
    (begin expr...)                          block with its own scope
    (name arg...)                            call to a declared external
"""
import re
from typing import TYPE_CHECKING, List as PyList, Tuple

from llvmlite import ir

from ast_nodes import (
    BOOLEAN_LITERALS, Form, ListExpr, Node, NumberLiteral, StringLiteral, Symbol
)
from codegen.errors import MalformedFormError, TypeMismatchError
from codegen.types import BOOL, INT32, resolve_declaration, type_name

if TYPE_CHECKING:
    from codegen.core import CodeGenerator
    from codegen.environment import Environment


# Form -> (IRBuilder method, result name)
ARITHMETIC_OPS = {
    Form.ADD: ("add", "tmpadd"),
    Form.SUB: ("sub", "tmpsub"),
    Form.MUL: ("mul", "tmpmul"),
    Form.DIV: ("sdiv", "tmpdiv"),
}

ESCAPES = {
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "\\": "\\",
    '"': '"',
}

_ESCAPE_RE = re.compile(r"\\(.)", re.DOTALL)


def unescape(text: str) -> str:
    """Replace recognized escape sequences; unknown ones are kept verbatim."""
    return _ESCAPE_RE.sub(lambda m: ESCAPES.get(m.group(1), m.group(0)), text)


class ExpressionsGenerator:
    """Generates code for Eva expressions."""

    def __init__(self, codegen: 'CodeGenerator'):
        """Initialize with reference to parent CodeGenerator instance."""
        self.codegen = codegen
        self._form_handlers = {
            Form.VAR: self.generate_var,
            Form.SET: self.generate_set,
            Form.BEGIN: self.generate_begin,
            Form.CALL: self.generate_call,
        }
        for form in Form:
            if form.is_arithmetic:
                self._form_handlers[form] = self.generate_arithmetic
            elif form.is_comparison:
                self._form_handlers[form] = self.generate_comparison

    # Property accessors for commonly used codegen attributes
    @property
    def builder(self):
        return self.codegen.builder

    @property
    def storage(self):
        return self.codegen.storage

    # ========================================================================
    # Main Expression Dispatcher
    # ========================================================================

    def generate(self, expr: Node, env: 'Environment') -> ir.Value:
        """Generate code for an expression and return its value."""
        if isinstance(expr, NumberLiteral):
            return ir.Constant(INT32, expr.value)

        elif isinstance(expr, StringLiteral):
            return self.codegen.get_string_ptr(unescape(expr.value))

        elif isinstance(expr, Symbol):
            return self.generate_symbol(expr, env)

        elif isinstance(expr, ListExpr):
            return self.generate_list(expr, env)

        raise MalformedFormError(f"Unsupported expression: {expr!r}")

    def generate_symbol(self, expr: Symbol, env: 'Environment') -> ir.Value:
        if expr.name in BOOLEAN_LITERALS:
            return ir.Constant(BOOL, int(BOOLEAN_LITERALS[expr.name]))

        handle = env.lookup(expr.name)
        return self.builder.load(handle.pointer, name=expr.name, typ=handle.type)

    def generate_list(self, expr: ListExpr, env: 'Environment') -> ir.Value:
        if not expr.items:
            raise MalformedFormError("Cannot evaluate an empty list ()")
        if not isinstance(expr.head, Symbol):
            raise MalformedFormError(f"Expected an operator name at the head of {expr}")

        form = Form.of(expr.head.name)
        return self._form_handlers[form](form, expr, env)

    # ========================================================================
    # Operators
    # ========================================================================

    def generate_arithmetic(self, form: Form, expr: ListExpr,
                            env: 'Environment') -> ir.Value:
        left, right = self._generate_operands(expr, env)
        if left.type != INT32:
            raise TypeMismatchError(
                f"Operator '{form.value}' expects numbers, got {type_name(left.type)} in {expr}"
            )
        method, name = ARITHMETIC_OPS[form]
        return getattr(self.builder, method)(left, right, name=name)

    def generate_comparison(self, form: Form, expr: ListExpr,
                            env: 'Environment') -> ir.Value:
        left, right = self._generate_operands(expr, env)
        # Ordering uses unsigned predicates (ugt, ult, uge, ule)
        return self.builder.icmp_unsigned(form.value, left, right, name="tmpcmp")

    def _generate_operands(self, expr: ListExpr,
                           env: 'Environment') -> Tuple[ir.Value, ir.Value]:
        self._check_arity(expr, 2)
        left = self.generate(expr.args[0], env)
        right = self.generate(expr.args[1], env)
        if left.type != right.type:
            raise TypeMismatchError(
                f"Operands of '{expr.head.name}' have different types "
                f"({type_name(left.type)} and {type_name(right.type)}) in {expr}"
            )
        return left, right

    # ========================================================================
    # Variables
    # ========================================================================

    def generate_var(self, form: Form, expr: ListExpr,
                     env: 'Environment') -> ir.Value:
        """(var x init): every declaration is a stack slot of main."""
        self._check_arity(expr, 2)
        decl, init_expr = expr.args
        name, var_type = resolve_declaration(decl)

        # The initializer must not see the binding it initializes
        init = self.generate(init_expr, env)
        self._check_store_type(init, var_type, name, expr)

        handle = self.storage.allocate_local(name, var_type, env)
        self.builder.store(init, handle.pointer)
        return init

    def generate_set(self, form: Form, expr: ListExpr,
                     env: 'Environment') -> ir.Value:
        self._check_arity(expr, 2)
        target, value_expr = expr.args
        if not isinstance(target, Symbol):
            raise MalformedFormError(f"Assignment target must be a name in {expr}")

        handle = env.lookup(target.name)
        value = self.generate(value_expr, env)
        self._check_store_type(value, handle.type, handle.name, expr)

        self.builder.store(value, handle.pointer)
        return value

    def _check_store_type(self, value: ir.Value, expected: ir.Type,
                          name: str, expr: ListExpr):
        if value.type != expected:
            raise TypeMismatchError(
                f"Cannot store {type_name(value.type)} in '{name}' "
                f"of type {type_name(expected)} in {expr}"
            )

    # ========================================================================
    # Blocks and Calls
    # ========================================================================

    def generate_begin(self, form: Form, expr: ListExpr,
                       env: 'Environment') -> ir.Value:
        block_env = env.child()

        # An empty block evaluates to 0
        result = ir.Constant(INT32, 0)
        for body_expr in expr.args:
            result = self.generate(body_expr, block_env)
        return result

    def generate_call(self, form: Form, expr: ListExpr,
                      env: 'Environment') -> ir.Value:
        name = expr.head.name
        fn = self.codegen.externals.get(name)
        if fn is None:
            raise MalformedFormError(f"Unknown function '{name}' in {expr}")

        args: PyList[ir.Value] = [self.generate(arg, env) for arg in expr.args]

        fn_type = fn.function_type
        params = fn_type.args
        if len(args) < len(params) or (not fn_type.var_arg and len(args) > len(params)):
            expected = f"at least {len(params)}" if fn_type.var_arg else str(len(params))
            raise MalformedFormError(
                f"Function '{name}' expects {expected} argument(s), got {len(args)} in {expr}"
            )
        for i, (arg, param) in enumerate(zip(args, params)):
            if arg.type != param:
                raise TypeMismatchError(
                    f"Argument {i + 1} of '{name}' must be {type_name(param)}, "
                    f"got {type_name(arg.type)} in {expr}"
                )

        return self.builder.call(fn, args)

    def _check_arity(self, expr: ListExpr, count: int):
        if len(expr.args) != count:
            raise MalformedFormError(
                f"'{expr.head.name}' expects {count} argument(s), got {len(expr.args)} in {expr}"
            )
