"""
Constant folding as an e-graph analysis.

Each e-class carries Optional[Constant]: the value every term in the class
evaluates to, when that is known. A class whose value becomes known gets the
constant as a leaf node, and all its non-leaf nodes are dropped, so the
constant is always what gets extracted.

Folding is typed. An operator applied to the wrong kind of constant, or a
division by zero, folds to None (unknown), never to an error.
"""

import operator
from typing import Any, Callable, Dict, List, Optional

from .egraph import Analysis, EClassId, EGraph
from .errors import InconsistentAnalysis
from .expr import Constant
from .term import Op, Term

FoldFunc = Callable[[List[Constant]], Optional[Constant]]


# ============================================================
# Integer helpers
# ============================================================

def trunc_div(a: int, b: int) -> Optional[int]:
    """Integer division rounding toward zero; None for a zero divisor."""
    if b == 0:
        return None
    quotient = abs(a) // abs(b)
    return quotient if (a < 0) == (b < 0) else -quotient


def trunc_mod(a: int, b: int) -> Optional[int]:
    """Remainder of trunc_div, taking the sign of the dividend."""
    quotient = trunc_div(a, b)
    if quotient is None:
        return None
    return a - b * quotient


# ============================================================
# Fold builders
# ============================================================

def _wrap(result: Any) -> Optional[Constant]:
    return None if result is None else Constant(result)


def int_binary(f: Callable[[int, int], Any]) -> FoldFunc:
    """Fold a binary operator defined on two integers."""
    def fold(args: List[Constant]) -> Optional[Constant]:
        a, b = args
        if not (a.is_int and b.is_int):
            return None
        return _wrap(f(a.value, b.value))
    return fold


def bool_binary(f: Callable[[bool, bool], bool]) -> FoldFunc:
    """Fold a binary operator defined on two Booleans."""
    def fold(args: List[Constant]) -> Optional[Constant]:
        a, b = args
        if not (a.is_bool and b.is_bool):
            return None
        return _wrap(f(a.value, b.value))
    return fold


def int_unary(f: Callable[[int], int]) -> FoldFunc:
    def fold(args: List[Constant]) -> Optional[Constant]:
        (a,) = args
        return _wrap(f(a.value)) if a.is_int else None
    return fold


def bool_unary(f: Callable[[bool], bool]) -> FoldFunc:
    def fold(args: List[Constant]) -> Optional[Constant]:
        (a,) = args
        return _wrap(f(a.value)) if a.is_bool else None
    return fold


def constant_binary(f: Callable[[Constant, Constant], bool]) -> FoldFunc:
    """Fold a comparison defined on constants of either kind."""
    def fold(args: List[Constant]) -> Optional[Constant]:
        a, b = args
        return Constant(bool(f(a, b)))
    return fold


# Dereference is absent: its value depends on the store.
FOLD_PRELUDE: Dict[Op, FoldFunc] = {
    Op.ADD: int_binary(operator.add),
    Op.SUB: int_binary(operator.sub),
    Op.MUL: int_binary(operator.mul),
    Op.DIV: int_binary(trunc_div),
    Op.INT_DIV: int_binary(trunc_div),
    Op.MODULUS: int_binary(trunc_mod),
    Op.AND: bool_binary(lambda a, b: a and b),
    Op.OR: bool_binary(lambda a, b: a or b),
    Op.IMPLIES: bool_binary(lambda a, b: (not a) or b),
    Op.IFF: bool_binary(operator.eq),
    Op.EQ: constant_binary(operator.eq),
    Op.NOT_EQ: constant_binary(operator.ne),
    Op.LESS: int_binary(operator.lt),
    Op.LESS_EQ: int_binary(operator.le),
    Op.GREATER: int_binary(operator.gt),
    Op.GREATER_EQ: int_binary(operator.ge),
    Op.MINUS: int_unary(operator.neg),
    Op.PLUS: int_unary(operator.pos),
    Op.NOT: bool_unary(operator.not_),
}


# ============================================================
# The analysis
# ============================================================

class ConstantFolding(Analysis):
    """
    Track the constant value of each e-class.

    Args:
        fold_funcs: Operator to fold function mapping. Defaults to
            FOLD_PRELUDE; operators missing from it never fold.
    """

    def __init__(self, fold_funcs: Optional[Dict[Op, FoldFunc]] = None):
        self.fold_funcs = FOLD_PRELUDE if fold_funcs is None else fold_funcs

    def make(self, egraph: EGraph, term: Term) -> Optional[Constant]:
        if term.op is Op.CONSTANT:
            return term.value
        fold = self.fold_funcs.get(term.op)
        if fold is None:
            return None
        args = [egraph[child].data for child in term.children]
        if any(arg is None for arg in args):
            return None
        return fold(args)

    def merge(self, left: Optional[Constant],
              right: Optional[Constant]) -> Optional[Constant]:
        if left is None:
            return right
        if right is None or left == right:
            return left
        raise InconsistentAnalysis(left, right)

    def modify(self, egraph: EGraph, id: EClassId) -> None:
        value = egraph[id].data
        if value is None:
            return
        leaf = egraph.add(Term.constant(value))
        egraph.union(id, leaf)
        eclass = egraph[id]
        eclass.nodes = eclass.leaves()


def constant_of(egraph: EGraph, id: EClassId) -> Optional[Constant]:
    """The folded value of a class, if known."""
    return egraph[id].data


def is_not_zero(egraph: EGraph, id: EClassId) -> bool:
    """
    Guard for rules that divide by a class.

    Fails only when the class is known to be the integer 0; a class of
    unknown value passes.
    """
    value = constant_of(egraph, id)
    return value is None or not value.is_zero()
