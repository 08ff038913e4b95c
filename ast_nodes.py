"""
Eva AST Node Definitions

The reader produces a tree of four node kinds: numbers, strings, symbols
and lists. Nodes are immutable; the code generator only reads them.
"""

from dataclasses import dataclass
from typing import Optional, Tuple, Union
from enum import Enum


# ============================================================================
# Enums
# ============================================================================

class Form(Enum):
    # Arithmetic
    ADD = "+"
    SUB = "-"
    MUL = "*"
    DIV = "/"
    # Comparison
    GT = ">"
    LT = "<"
    EQ = "=="
    NE = "!="
    GE = ">="
    LE = "<="
    # Variables
    VAR = "var"
    SET = "set"
    # Blocks
    BEGIN = "begin"
    # Anything else in operator position
    CALL = "call"

    @classmethod
    def of(cls, name: str) -> 'Form':
        """Classify an operator symbol. Unknown names are calls."""
        form = _FORMS_BY_NAME.get(name)
        return form if form is not None else cls.CALL

    @property
    def is_arithmetic(self) -> bool:
        return self in ARITHMETIC_FORMS

    @property
    def is_comparison(self) -> bool:
        return self in COMPARISON_FORMS


_FORMS_BY_NAME = {form.value: form for form in Form if form is not Form.CALL}

ARITHMETIC_FORMS = frozenset({Form.ADD, Form.SUB, Form.MUL, Form.DIV})
COMPARISON_FORMS = frozenset({Form.GT, Form.LT, Form.EQ, Form.NE, Form.GE, Form.LE})

# Symbols that can never name a variable
BOOLEAN_LITERALS = {"true": True, "false": False}


# ============================================================================
# Expression Nodes
# ============================================================================

@dataclass(frozen=True)
class NumberLiteral:
    value: int

    def __str__(self):
        return str(self.value)


@dataclass(frozen=True)
class StringLiteral:
    value: str  # raw source text between the quotes, escapes untouched

    def __str__(self):
        return f'"{self.value}"'


@dataclass(frozen=True)
class Symbol:
    name: str

    def __str__(self):
        return self.name


@dataclass(frozen=True)
class ListExpr:
    items: Tuple['Node', ...] = ()

    def __str__(self):
        return "(" + " ".join(str(item) for item in self.items) + ")"

    def __len__(self):
        return len(self.items)

    @property
    def head(self) -> Optional['Node']:
        return self.items[0] if self.items else None

    @property
    def args(self) -> Tuple['Node', ...]:
        return self.items[1:]


Node = Union[NumberLiteral, StringLiteral, Symbol, ListExpr]
