"""
Type System Module for Eva Code Generator

Eva has two declarable types, plus the boolean produced by comparisons:

- number -> i32 (also the default for untyped declarations)
- string -> i8*
- bool   -> i1 (literals true/false and comparison results only)

Declaration targets are either a bare name or a (name type) pair:

    x            -> ("x", i32)
    (x number)   -> ("x", i32)
    (s string)   -> ("s", i8*)
"""
from typing import Tuple

from llvmlite import ir

from ast_nodes import BOOLEAN_LITERALS, Form, ListExpr, Node, Symbol
from codegen.errors import MalformedFormError


INT32 = ir.IntType(32)
BOOL = ir.IntType(1)
BYTE_PTR = ir.IntType(8).as_pointer()

INT32_MIN = -2 ** 31
INT32_MAX = 2 ** 31 - 1

TYPE_MAP = {
    "number": INT32,
    "string": BYTE_PTR,
}

DEFAULT_TYPE = INT32


def type_from_string(type_name: str) -> ir.Type:
    """Convert an Eva type name to an LLVM type, defaulting to i32"""
    return TYPE_MAP.get(type_name, DEFAULT_TYPE)


def extract_var_name(decl: Node) -> str:
    """x -> x, (x number) -> x"""
    if isinstance(decl, ListExpr):
        _check_typed_decl(decl)
        name = decl.items[0].name
    elif isinstance(decl, Symbol):
        name = decl.name
    else:
        raise MalformedFormError(f"Invalid declaration target: {decl}")

    if name in BOOLEAN_LITERALS or Form.of(name) is not Form.CALL:
        raise MalformedFormError(f"Cannot declare reserved name '{name}'")
    return name


def extract_var_type(decl: Node) -> ir.Type:
    """x -> i32, (x number) -> i32, (x string) -> i8*"""
    if isinstance(decl, ListExpr):
        _check_typed_decl(decl)
        return type_from_string(decl.items[1].name)
    return DEFAULT_TYPE


def resolve_declaration(decl: Node) -> Tuple[str, ir.Type]:
    return extract_var_name(decl), extract_var_type(decl)


def _check_typed_decl(decl: ListExpr):
    if len(decl) != 2 or not all(isinstance(item, Symbol) for item in decl.items):
        raise MalformedFormError(
            f"Typed declaration must be (name type), got {decl}"
        )


def type_name(llvm_type: ir.Type) -> str:
    """Human-readable Eva name of an LLVM type, for diagnostics"""
    if llvm_type == INT32:
        return "number"
    if llvm_type == BYTE_PTR:
        return "string"
    if llvm_type == BOOL:
        return "boolean"
    return str(llvm_type)
