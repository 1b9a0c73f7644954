"""
Conversion between tagged expressions and ground terms.

encode() flattens an Expr into a TermExpr, dropping metadata and interning
variables as symbols. decode() goes the other way, producing an Expr whose
metadata is all None. Both are total over well-formed input.
"""

from typing import Dict, List, Optional, Tuple

from .expr import Arith, Bool, Bop, Expr, Literal, Rel, Uop, Var, BinaryOp, UnaryOp
from .term import Op, Term, TermExpr, intern_symbol

_BOP_TO_OP: Dict[Bop, Op] = {
    Arith.ADD: Op.ADD,
    Arith.SUB: Op.SUB,
    Arith.MUL: Op.MUL,
    Arith.DIV: Op.DIV,
    Arith.INT_DIV: Op.INT_DIV,
    Arith.MODULUS: Op.MODULUS,
    Bool.AND: Op.AND,
    Bool.OR: Op.OR,
    Bool.IMPLIES: Op.IMPLIES,
    Bool.IFF: Op.IFF,
    Rel.EQ: Op.EQ,
    Rel.NOT_EQ: Op.NOT_EQ,
    Rel.LESS: Op.LESS,
    Rel.LESS_EQ: Op.LESS_EQ,
    Rel.GREATER: Op.GREATER,
    Rel.GREATER_EQ: Op.GREATER_EQ,
}

_UOP_TO_OP: Dict[Uop, Op] = {
    Uop.DEREF: Op.DEREF,
    Uop.PLUS: Op.PLUS,
    Uop.MINUS: Op.MINUS,
    Uop.NOT: Op.NOT,
}

_OP_TO_BOP = {op: bop for bop, op in _BOP_TO_OP.items()}
_OP_TO_UOP = {op: uop for uop, op in _UOP_TO_OP.items()}


# ============================================================
# Encoding
# ============================================================

def encode(expr: Expr) -> TermExpr:
    """Flatten `expr` into a term; the root is the last node added."""
    dest = TermExpr()
    add_expr(dest, expr)
    return dest


def add_expr(dest: TermExpr, expr: Expr) -> int:
    """Add `expr` to `dest` bottom-up and return the id of its top node."""
    # post-order walk with an explicit stack; operands end up on `ids`
    ids: List[int] = []
    stack: List[Tuple[Expr, bool]] = [(expr, False)]
    while stack:
        node, ready = stack.pop()
        if isinstance(node, Literal):
            ids.append(dest.add(Term.constant(node.constant.item)))
        elif isinstance(node, Var):
            ids.append(dest.add(Term.var(intern_symbol(node.name.item))))
        elif not isinstance(node, (BinaryOp, UnaryOp)):
            raise TypeError(f"not an expression: {node!r}")
        elif not ready:
            stack.append((node, True))
            stack.extend((child, False) for child in reversed(node.children()))
        elif isinstance(node, BinaryOp):
            rhs = ids.pop()
            lhs = ids.pop()
            ids.append(dest.add(Term.apply(_BOP_TO_OP[node.op], lhs, rhs)))
        else:
            inner = ids.pop()
            ids.append(dest.add(Term.apply(_UOP_TO_OP[node.op], inner)))
    return ids[-1]


# ============================================================
# Decoding
# ============================================================

def decode(term: TermExpr, index: Optional[int] = None) -> Expr:
    """
    Rebuild an expression from the subterm at `index` (default: the root).

    Metadata is None throughout and variables are symbols.
    """
    index = term.root if index is None else index
    # children precede parents, so one forward pass sees every child first
    built: List[Expr] = []
    for node in term.nodes[:index + 1]:
        if node.op is Op.CONSTANT:
            built.append(Expr.constant(node.value))
        elif node.op is Op.VAR:
            built.append(Expr.var(node.value))
        elif node.op in _OP_TO_UOP:
            built.append(Expr.uop(_OP_TO_UOP[node.op], built[node.children[0]]))
        else:
            lhs, rhs = node.children
            built.append(Expr.bop(built[lhs], _OP_TO_BOP[node.op], built[rhs]))
    return built[index]
