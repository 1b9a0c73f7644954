"""
The simplification pipeline: encode, saturate, extract, decode.

    >>> simplify_sexpr("(implies x (not x))")
    '(not x)'
"""

from typing import Iterable, Optional

from .encode import decode, encode
from .expr import Expr
from .extract import Extractor
from .pattern import Rewrite
from .runner import DEFAULT_ITER_LIMIT, DEFAULT_NODE_LIMIT, Runner
from .term import TermExpr


def saturate(term: TermExpr, *, rules: Optional[Iterable[Rewrite]] = None,
             iter_limit: int = DEFAULT_ITER_LIMIT,
             node_limit: int = DEFAULT_NODE_LIMIT) -> Runner:
    """Run equality saturation on a term and return the finished runner."""
    runner = Runner(rules, iter_limit=iter_limit, node_limit=node_limit)
    return runner.with_expr(term).run()


def simplify_term(term: TermExpr, *, rules: Optional[Iterable[Rewrite]] = None,
                  iter_limit: int = DEFAULT_ITER_LIMIT,
                  node_limit: int = DEFAULT_NODE_LIMIT) -> TermExpr:
    """Saturate `term` and extract the smallest equivalent term."""
    runner = saturate(term, rules=rules, iter_limit=iter_limit, node_limit=node_limit)
    _, best = Extractor(runner.egraph).find_best(runner.roots[0])
    return best


def simplify(expr: Expr, *, rules: Optional[Iterable[Rewrite]] = None,
             iter_limit: int = DEFAULT_ITER_LIMIT,
             node_limit: int = DEFAULT_NODE_LIMIT) -> Expr:
    """
    Simplify an expression.

    The result is equivalent to `expr` under the rule table and no larger.
    Metadata is dropped: every tag in the result is None.

    Raises:
        InconsistentAnalysis: if the rules prove two different constants
            equal. This signals an unsound rule for this input.
    """
    best = simplify_term(encode(expr), rules=rules, iter_limit=iter_limit,
                         node_limit=node_limit)
    return decode(best)


def simplify_sexpr(text: str, **kwargs) -> str:
    """simplify_term for S-expression text in and out."""
    return str(simplify_term(TermExpr.parse(text), **kwargs))
