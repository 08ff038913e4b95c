"""
Eva Language Parser

Reads Eva S-expressions into the AST defined in ast_nodes.py. A program is
a sequence of expressions, returned wrapped in a single (begin ...) list.

    (var x 10)
    (printf "x = %d\\n" x)   // comments run to end of line
"""

from typing import List as PyList

from ply import lex, yacc

from ast_nodes import ListExpr, Node, NumberLiteral, StringLiteral, Symbol
from codegen.errors import ParseError
from codegen.types import INT32_MAX, INT32_MIN


# ============================================================
# Lexer (PLY)
# ============================================================

tokens = (
    "LPAREN", "RPAREN",
    "NUMBER", "STRING", "SYMBOL",
)

t_ignore = " \t\r"

t_LPAREN = r'\('
t_RPAREN = r'\)'


def t_comment(t):
    r'//[^\n]*'
    pass


def t_STRING(t):
    r'"([^"\\]|\\.)*"'
    t.lexer.lineno += t.value.count("\n")
    # Escapes are left for the code generator
    t.value = t.value[1:-1]
    return t


def t_NUMBER(t):
    r'-?\d+(?=[\s()"]|//|$)'
    value = int(t.value)
    if not INT32_MIN <= value <= INT32_MAX:
        raise ParseError(f"Line {t.lineno}: number {t.value} does not fit in 32 bits")
    t.value = value
    return t


def t_SYMBOL(t):
    r'(?:[^\s()"/]|/(?!/))+'
    # A symbol ends where a comment starts
    return t


def t_newline(t):
    r'\n+'
    t.lexer.lineno += len(t.value)


def t_error(t):
    raise ParseError(f"Line {t.lineno}: unexpected character {t.value[0]!r}")


# ============================================================
# Parser (PLY)
# ============================================================

def p_program(p):
    """program : exprs"""
    p[0] = ListExpr((Symbol("begin"),) + tuple(p[1]))


def p_exprs_multi(p):
    """exprs : exprs expr"""
    p[0] = p[1] + [p[2]]


def p_exprs_empty(p):
    """exprs :"""
    p[0] = []


def p_expr_number(p):
    """expr : NUMBER"""
    p[0] = NumberLiteral(p[1])


def p_expr_string(p):
    """expr : STRING"""
    p[0] = StringLiteral(p[1])


def p_expr_symbol(p):
    """expr : SYMBOL"""
    p[0] = Symbol(p[1])


def p_expr_list(p):
    """expr : LPAREN exprs RPAREN"""
    p[0] = ListExpr(tuple(p[2]))


def p_error(p):
    if p is None:
        raise ParseError("Unexpected end of input (missing ')'?)")
    raise ParseError(f"Line {p.lineno}: unexpected {p.value!r}")


_lexer = None
_parser = None


def _build():
    global _lexer, _parser
    if _parser is None:
        _lexer = lex.lex()
        _parser = yacc.yacc(start="program", debug=False, write_tables=False,
                            errorlog=yacc.NullLogger())
    return _lexer.clone(), _parser


def parse(source: str) -> ListExpr:
    """Parse Eva source code from string."""
    lexer, parser = _build()
    return parser.parse(source, lexer=lexer)


def parse_file(source_path: str) -> ListExpr:
    """Parse an Eva source file"""
    with open(source_path, 'r', encoding='utf-8') as f:
        return parse(f.read())


def format_ast(node: Node, indent: int = 0) -> PyList[str]:
    """Render an AST one list per line, for --emit-ast"""
    pad = "  " * indent
    if isinstance(node, ListExpr) and any(isinstance(item, ListExpr) for item in node.items):
        lines = [f"{pad}(" + str(node.head)]
        for item in node.args:
            lines.extend(format_ast(item, indent + 1))
        lines[-1] += ")"
        return lines
    return [f"{pad}{node}"]
