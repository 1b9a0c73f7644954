"""
Patterns, e-matching and rewrites over an e-graph.

Patterns are written as S-expressions. On the left-hand side of a rule,
pattern variables start with "?"; on the right-hand side they start with
":" (both spellings name the same variable):

    (+ ?x 0)        matches any addition of zero
    (- :x)          builds the negation of whatever ?x matched

A bare variable is a valid pattern and matches every e-class.
"""

from typing import Callable, Dict, Iterator, List, NamedTuple, Optional, Tuple, Union

from .egraph import EClassId, EGraph
from .errors import RuleSyntaxError, TermSyntaxError
from .term import Op, SexprType, Term, format_sexpr, read_atom, read_sexpr

Subst = Dict[str, EClassId]
Match = Tuple[EClassId, Subst]

LHS_PREFIX = "?"
RHS_PREFIX = ":"


class PatternVar(NamedTuple):
    name: str


class PatternNode(NamedTuple):
    """An operator or leaf to match exactly, with sub-patterns for its children."""

    head: Term
    children: Tuple["Pattern", ...] = ()


Pattern = Union[PatternVar, PatternNode]


# ============================================================
# Reading and printing patterns
# ============================================================

def parse_pattern(text: Union[str, SexprType], var_prefix: str = LHS_PREFIX) -> Pattern:
    """
    Read a pattern, with variables written `var_prefix` + name.

    Raises:
        RuleSyntaxError: if the text is not a well-formed pattern.
    """
    try:
        sexpr = read_sexpr(text) if isinstance(text, str) else text
    except TermSyntaxError as exc:
        raise RuleSyntaxError(str(exc)) from None
    return _from_sexpr(sexpr, var_prefix)


def _from_sexpr(sexpr: SexprType, var_prefix: str) -> Pattern:
    if isinstance(sexpr, list):
        if not sexpr or isinstance(sexpr[0], list):
            raise RuleSyntaxError(f"expected an operator in {format_sexpr(sexpr)}")
        op = Op.lookup(sexpr[0], len(sexpr) - 1)
        if op is None:
            raise RuleSyntaxError(
                f"unknown operator {sexpr[0]!r} with {len(sexpr) - 1} argument(s)"
            )
        children = tuple(_from_sexpr(arg, var_prefix) for arg in sexpr[1:])
        return PatternNode(Term(op, ()), children)

    if sexpr.startswith(var_prefix):
        name = sexpr[len(var_prefix):]
        if not name:
            raise RuleSyntaxError(f"empty variable name {sexpr!r}")
        return PatternVar(name)
    if sexpr[0] in "?:":
        raise RuleSyntaxError(
            f"variable {sexpr!r} should be written {var_prefix}{sexpr[1:]} here"
        )
    try:
        return PatternNode(read_atom(sexpr))
    except TermSyntaxError as exc:
        raise RuleSyntaxError(str(exc)) from None


def pattern_to_sexpr(pattern: Pattern, var_prefix: str = LHS_PREFIX) -> SexprType:
    if isinstance(pattern, PatternVar):
        return var_prefix + pattern.name
    if not pattern.children:
        return pattern.head.label()
    return [pattern.head.label()] + [pattern_to_sexpr(c, var_prefix) for c in pattern.children]


def format_pattern(pattern: Pattern, var_prefix: str = LHS_PREFIX) -> str:
    return format_sexpr(pattern_to_sexpr(pattern, var_prefix))


def pattern_vars(pattern: Pattern) -> List[str]:
    """Variables of a pattern in first-occurrence order."""
    names: List[str] = []

    def walk(p: Pattern) -> None:
        if isinstance(p, PatternVar):
            if p.name not in names:
                names.append(p.name)
            return
        for child in p.children:
            walk(child)

    walk(pattern)
    return names


# ============================================================
# Matching
# ============================================================

def ematch(egraph: EGraph, pattern: Pattern, id: EClassId,
           subst: Optional[Subst] = None) -> Iterator[Subst]:
    """Yield every substitution under which `pattern` matches class `id`."""
    subst = {} if subst is None else subst
    id = egraph.find(id)

    if isinstance(pattern, PatternVar):
        bound = subst.get(pattern.name)
        if bound is None:
            yield {**subst, pattern.name: id}
        elif egraph.find(bound) == id:
            yield subst
        return

    for node in list(egraph[id].nodes):
        if node.matches(pattern.head) and len(node.children) == len(pattern.children):
            yield from _match_children(egraph, pattern.children, node.children, subst)


def _match_children(egraph: EGraph, patterns: Tuple[Pattern, ...],
                    ids: Tuple[EClassId, ...], subst: Subst) -> Iterator[Subst]:
    if not patterns:
        yield subst
        return
    for partial in ematch(egraph, patterns[0], ids[0], subst):
        yield from _match_children(egraph, patterns[1:], ids[1:], partial)


def search(egraph: EGraph, pattern: Pattern) -> List[Match]:
    """All (class, substitution) matches of `pattern`, without duplicates."""
    matches: List[Match] = []
    for eclass in egraph:
        seen = set()
        for subst in ematch(egraph, pattern, eclass.id):
            key = tuple(sorted(subst.items()))
            if key not in seen:
                seen.add(key)
                matches.append((eclass.id, subst))
    return matches


def instantiate(egraph: EGraph, pattern: Pattern, subst: Subst) -> EClassId:
    """Add the term a pattern describes under `subst`, returning its class."""
    if isinstance(pattern, PatternVar):
        return egraph.find(subst[pattern.name])
    children = tuple(instantiate(egraph, child, subst) for child in pattern.children)
    return egraph.add(Term(pattern.head.op, children, pattern.head.value))


# ============================================================
# Rewrites
# ============================================================

GuardFunc = Callable[[EGraph, EClassId], bool]


class Guard(NamedTuple):
    """A named side condition on one pattern variable."""

    name: str
    var: str
    check: GuardFunc

    def __call__(self, egraph: EGraph, subst: Subst) -> bool:
        return self.check(egraph, subst[self.var])

    def __str__(self) -> str:
        return f"({self.name} {RHS_PREFIX}{self.var})"


class Rewrite:
    """
    A named, directed equivalence lhs => rhs with an optional guard.

    Applying a rewrite to a match adds the instantiated right-hand side and
    unions it with the matched class. The guard, if any, is checked when
    the rewrite is applied, against the graph as it is at that moment.
    """

    __slots__ = ("name", "lhs", "rhs", "guard", "description", "tags")

    def __init__(self, name: str, lhs: Pattern, rhs: Pattern,
                 guard: Optional[Guard] = None, description: Optional[str] = None,
                 tags: Optional[List[str]] = None):
        bound = pattern_vars(lhs)
        for var in pattern_vars(rhs):
            if var not in bound:
                raise RuleSyntaxError(f"{name}: right-hand side uses unbound variable {var!r}")
        if guard is not None and guard.var not in bound:
            raise RuleSyntaxError(f"{name}: guard uses unbound variable {guard.var!r}")
        self.name = name
        self.lhs = lhs
        self.rhs = rhs
        self.guard = guard
        self.description = description
        self.tags = list(tags) if tags else []

    @classmethod
    def parse(cls, name: str, lhs: str, rhs: str, guard: Optional[Guard] = None,
              description: Optional[str] = None) -> "Rewrite":
        """Build a rewrite from pattern text, e.g. Rewrite.parse("add-0", "(+ ?x 0)", ":x")."""
        return cls(name, parse_pattern(lhs, LHS_PREFIX), parse_pattern(rhs, RHS_PREFIX),
                   guard, description)

    def search(self, egraph: EGraph) -> List[Match]:
        return search(egraph, self.lhs)

    def apply(self, egraph: EGraph, matches: List[Match]) -> int:
        """Apply to each match; returns how many unions changed the graph."""
        applied = 0
        for id, subst in matches:
            if self.guard is not None and not self.guard(egraph, subst):
                continue
            new_id = instantiate(egraph, self.rhs, subst)
            if egraph.union(id, new_id):
                applied += 1
        return applied

    def __str__(self) -> str:
        text = f"{format_pattern(self.lhs, LHS_PREFIX)} => {format_pattern(self.rhs, RHS_PREFIX)}"
        if self.guard is not None:
            text += f" when {self.guard}"
        return text

    def __repr__(self) -> str:
        return f"Rewrite({self.name!r}, {str(self)!r})"
