"""
Starling - expression simplification by equality saturation

Simplifies Starling expressions (Boolean, relational and integer arithmetic
terms) by saturating an e-graph with a fixed table of rewrite rules and
extracting the smallest equivalent term.

Quick Start:
    from starling import simplify_sexpr

    simplify_sexpr("(implies x (not x))")          # => "(not x)"
    simplify_sexpr("(= (div (* 4 4) 8) (- 3 1))")  # => "true"

Working with expressions:
    from starling import Expr, Bool, Uop, simplify

    e = Expr.bop(Expr.var("x"), Bool.IMPLIES, Expr.uop(Uop.NOT, Expr.var("x")))
    str(simplify(e))                               # => "not(x)"

Rule DSL:
    # Comments start with #
    [group]
    @rule-name: (pattern) => (skeleton)
    @rule-name "Description": (pattern) => (skeleton)
    @rule-name: (div ?x ?x) => 1 when (is-not-zero :x)

Pattern Syntax:
    ?x                - on the left, match any e-class and bind it to x
    :x                - on the right, the e-class bound to x
"""

__version__ = "0.1.0"

from .errors import (
    StarlingError,
    TermSyntaxError,
    RuleSyntaxError,
    InconsistentAnalysis,
)

from .expr import (
    Constant,
    Tagged,
    Arith,
    Bool,
    Rel,
    Bop,
    Uop,
    Fixity,
    Expr,
    Literal,
    Var,
    BinaryOp,
    UnaryOp,
)

from .term import (
    Op,
    Term,
    TermExpr,
    Symbol,
    intern_symbol,
    read_sexpr,
    format_sexpr,
)

from .encode import encode, decode

from .egraph import (
    EGraph,
    EClass,
    Analysis,
    UnionFind,
)

from .analysis import (
    ConstantFolding,
    FOLD_PRELUDE,
    is_not_zero,
)

from .pattern import (
    Pattern,
    PatternVar,
    PatternNode,
    Guard,
    Rewrite,
    parse_pattern,
    ematch,
    search,
)

from .rules import (
    CONDITIONS,
    DEFAULT_RULES_DSL,
    default_rules,
    parse_rule_line,
    load_rules_from_dsl,
    load_rules_from_file,
    format_rule,
    to_dsl,
)

from .runner import (
    Runner,
    RunReport,
    Iteration,
    StopReason,
)

from .extract import Extractor, ast_size

from .simplify import (
    saturate,
    simplify,
    simplify_term,
    simplify_sexpr,
)

from .log import setup_logging

__all__ = [
    # Errors
    "StarlingError",
    "TermSyntaxError",
    "RuleSyntaxError",
    "InconsistentAnalysis",
    # Expressions
    "Constant",
    "Tagged",
    "Arith",
    "Bool",
    "Rel",
    "Bop",
    "Uop",
    "Fixity",
    "Expr",
    "Literal",
    "Var",
    "BinaryOp",
    "UnaryOp",
    # Terms
    "Op",
    "Term",
    "TermExpr",
    "Symbol",
    "intern_symbol",
    "read_sexpr",
    "format_sexpr",
    "encode",
    "decode",
    # E-graph
    "EGraph",
    "EClass",
    "Analysis",
    "UnionFind",
    "ConstantFolding",
    "FOLD_PRELUDE",
    "is_not_zero",
    # Rules
    "Pattern",
    "PatternVar",
    "PatternNode",
    "Guard",
    "Rewrite",
    "parse_pattern",
    "ematch",
    "search",
    "CONDITIONS",
    "DEFAULT_RULES_DSL",
    "default_rules",
    "parse_rule_line",
    "load_rules_from_dsl",
    "load_rules_from_file",
    "format_rule",
    "to_dsl",
    # Saturation and extraction
    "Runner",
    "RunReport",
    "Iteration",
    "StopReason",
    "Extractor",
    "ast_size",
    # Pipeline
    "saturate",
    "simplify",
    "simplify_term",
    "simplify_sexpr",
    "setup_logging",
]
