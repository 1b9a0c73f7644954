"""
Ground term grammar for the simplifier.

A Term is one operator application whose children are integer ids. In a
TermExpr the ids index earlier entries of a flat node list (children are
always added before their parents, so the root is the last node); inside an
EGraph the same Term type is used with e-class ids as children.

Terms read and print as S-expressions:

    (not (and (> (+ 1 1) 3) x))

Operators are identified by symbol and arity, so "(- x)" is unary minus
while "(- x y)" is subtraction, and "(+ x)" is unary plus.
"""

import re
import sys
from enum import Enum
from typing import Any, Callable, Dict, List, NamedTuple, Optional, Tuple, Union

from .errors import TermSyntaxError
from .expr import Constant

Symbol = str
SexprType = Union[str, List]


def intern_symbol(var: Any) -> Symbol:
    """Convert a variable to its interned symbol."""
    return sys.intern(str(var))


# ============================================================
# Operators
# ============================================================

class Op(Enum):
    """Term node kinds: one per surface operator, plus the two leaf kinds."""

    # Arithmetic
    ADD = ("+", 2)
    SUB = ("-", 2)
    MUL = ("*", 2)
    DIV = ("/", 2)
    INT_DIV = ("div", 2)
    MODULUS = ("mod", 2)
    # Boolean
    AND = ("and", 2)
    OR = ("or", 2)
    IMPLIES = ("implies", 2)
    IFF = ("iff", 2)
    # Relational
    EQ = ("=", 2)
    NOT_EQ = ("<>", 2)
    LESS = ("<", 2)
    LESS_EQ = ("<=", 2)
    GREATER = (">", 2)
    GREATER_EQ = (">=", 2)
    # Unary
    MINUS = ("-", 1)
    PLUS = ("+", 1)
    DEREF = ("^", 1)
    NOT = ("not", 1)
    # Leaves
    CONSTANT = ("<constant>", 0)
    VAR = ("<var>", 0)

    def __init__(self, symbol: str, arity: int):
        self.symbol = symbol
        self.arity = arity

    @classmethod
    def lookup(cls, symbol: str, arity: int) -> Optional["Op"]:
        """Find the operator written `symbol` taking `arity` arguments."""
        return _OPERATORS.get((symbol, arity))

    def __str__(self) -> str:
        return self.symbol


_OPERATORS: Dict[Tuple[str, int], Op] = {
    (op.symbol, op.arity): op for op in Op if op.arity
}
OPERATOR_SYMBOLS = frozenset(symbol for symbol, _ in _OPERATORS)


class Term(NamedTuple):
    """
    One node of the term grammar.

    `value` holds the Constant of a CONSTANT leaf or the symbol of a VAR
    leaf, and is None for operator nodes.
    """

    op: Op
    children: Tuple[int, ...] = ()
    value: Any = None

    @classmethod
    def constant(cls, value: Constant) -> "Term":
        return cls(Op.CONSTANT, (), value)

    @classmethod
    def var(cls, symbol: Symbol) -> "Term":
        return cls(Op.VAR, (), intern_symbol(symbol))

    @classmethod
    def apply(cls, op: Op, *children: int) -> "Term":
        if len(children) != op.arity:
            raise ValueError(f"{op.name} takes {op.arity} children, got {len(children)}")
        return cls(op, tuple(children))

    def is_leaf(self) -> bool:
        return not self.children

    def map_children(self, f: Callable[[int], int]) -> "Term":
        if not self.children:
            return self
        return Term(self.op, tuple(f(c) for c in self.children), self.value)

    def matches(self, other: "Term") -> bool:
        """Same operator and payload, ignoring children."""
        return self.op is other.op and self.value == other.value

    def label(self) -> str:
        """How this node's head prints."""
        if self.op is Op.CONSTANT:
            return str(self.value)
        if self.op is Op.VAR:
            return self.value
        return self.op.symbol


# ============================================================
# S-expression reading and printing
# ============================================================

_TOKEN = re.compile(r"\(|\)|[^\s()]+")


def read_sexpr(text: str) -> SexprType:
    """
    Read one S-expression into nested lists of atom strings.

    Examples:
        "(+ x 1)"       -> ["+", "x", "1"]
        "(not (= x y))" -> ["not", ["=", "x", "y"]]

    Raises:
        TermSyntaxError: on empty input, unbalanced parentheses, or
            trailing text after the expression.
    """
    tokens = _TOKEN.findall(text)
    if not tokens:
        raise TermSyntaxError("empty expression", text)

    # lists still waiting for their closing parenthesis, innermost last
    open_lists: List[List[SexprType]] = []
    for position, token in enumerate(tokens):
        if token == "(":
            open_lists.append([])
            continue
        if token == ")":
            if not open_lists:
                raise TermSyntaxError("unexpected ')'", text)
            item: SexprType = open_lists.pop()
        else:
            item = token
        if not open_lists:
            if position != len(tokens) - 1:
                raise TermSyntaxError("unexpected text after expression", text)
            return item
        open_lists[-1].append(item)
    raise TermSyntaxError("unbalanced parentheses", text)


# markers format_sexpr pushes between list items
_CLOSE = object()
_SPACE = object()


def format_sexpr(expr: SexprType) -> str:
    """
    Format nested lists as an S-expression string.

    Examples:
        ["+", "x", 1] -> "(+ x 1)"
        "x"           -> "x"
    """
    parts: List[str] = []
    stack: List[Any] = [expr]
    while stack:
        item = stack.pop()
        if item is _CLOSE:
            parts.append(")")
        elif isinstance(item, list):
            parts.append("(")
            stack.append(_CLOSE)
            for position in range(len(item) - 1, -1, -1):
                stack.append(item[position])
                if position:
                    stack.append(_SPACE)
        elif item is _SPACE:
            parts.append(" ")
        else:
            parts.append(str(item))
    return "".join(parts)


def read_atom(atom: str) -> Term:
    """Read a leaf: a constant if it looks like one, else a variable."""
    try:
        return Term.constant(Constant.parse(atom))
    except TermSyntaxError:
        pass
    if atom in OPERATOR_SYMBOLS or atom[0] in "?:" or _looks_numeric(atom):
        raise TermSyntaxError("not a variable name", atom)
    return Term.var(atom)


def _looks_numeric(atom: str) -> bool:
    if atom[0] in "+-":
        atom = atom[1:]
    return atom[:1].isdigit()


# ============================================================
# Flat term expressions
# ============================================================

class TermExpr:
    """
    A concrete term stored as a flat, index-addressed node list.

    Children are added before parents, and the last node is the root:

        t = TermExpr()
        x = t.add(Term.var("x"))
        one = t.add(Term.constant(Constant(1)))
        t.add(Term.apply(Op.ADD, x, one))
        str(t)  # => "(+ x 1)"
    """

    __slots__ = ("nodes",)

    def __init__(self, nodes: Optional[List[Term]] = None):
        self.nodes: List[Term] = []
        for node in nodes or []:
            self.add(node)

    def add(self, term: Term) -> int:
        """Append a node (its children must already be present) and return its id."""
        for child in term.children:
            if not 0 <= child < len(self.nodes):
                raise ValueError(f"child id {child} is not in this expression")
        self.nodes.append(term)
        return len(self.nodes) - 1

    @property
    def root(self) -> int:
        if not self.nodes:
            raise ValueError("empty term expression has no root")
        return len(self.nodes) - 1

    @classmethod
    def parse(cls, text: str) -> "TermExpr":
        """Read a term from S-expression text."""
        result = cls()
        result._add_sexpr(read_sexpr(text), text)
        return result

    def _add_sexpr(self, sexpr: SexprType, text: str) -> int:
        # post-order walk; each list is seen once to check it, once to add it
        ids: List[int] = []
        stack: List[Tuple[SexprType, bool]] = [(sexpr, False)]
        while stack:
            item, ready = stack.pop()
            if not isinstance(item, list):
                ids.append(self.add(read_atom(item)))
                continue
            if not item or isinstance(item[0], list):
                raise TermSyntaxError("expected an operator", text)
            op = Op.lookup(item[0], len(item) - 1)
            if op is None:
                raise TermSyntaxError(
                    f"unknown operator {item[0]!r} with {len(item) - 1} argument(s)", text
                )
            if not ready:
                stack.append((item, True))
                stack.extend((arg, False) for arg in reversed(item[1:]))
                continue
            children = ids[len(ids) - op.arity:]
            del ids[len(ids) - op.arity:]
            ids.append(self.add(Term.apply(op, *children)))
        return ids[-1]

    def to_sexpr(self, index: Optional[int] = None) -> SexprType:
        """The subterm at `index` (default: root) as nested lists."""
        index = self.root if index is None else index
        built: List[SexprType] = []
        for node in self.nodes[:index + 1]:
            if node.is_leaf():
                built.append(node.label())
            else:
                built.append([node.label()] + [built[c] for c in node.children])
        return built[index]

    def cost(self, index: Optional[int] = None) -> int:
        """Number of nodes in the tree under `index` (default: root)."""
        index = self.root if index is None else index
        sizes: List[int] = []
        for node in self.nodes[:index + 1]:
            sizes.append(1 + sum(sizes[c] for c in node.children))
        return sizes[index]

    def _shapes(self, table: Dict[Tuple, int]) -> List[int]:
        """Number every node so that equal subtrees get equal numbers."""
        shapes: List[int] = []
        for node in self.nodes:
            key = (node.op, node.value, tuple(shapes[c] for c in node.children))
            shapes.append(table.setdefault(key, len(table)))
        return shapes

    def __getitem__(self, index: int) -> Term:
        return self.nodes[index]

    def __len__(self) -> int:
        return len(self.nodes)

    def __iter__(self):
        return iter(self.nodes)

    def __eq__(self, other):
        """Trees are equal when they read the same, however they are laid out."""
        if not isinstance(other, TermExpr):
            return NotImplemented
        if not self.nodes or not other.nodes:
            return not self.nodes and not other.nodes
        table: Dict[Tuple, int] = {}
        return self._shapes(table)[-1] == other._shapes(table)[-1]

    __hash__ = None

    def __str__(self) -> str:
        return format_sexpr(self.to_sexpr())

    def __repr__(self) -> str:
        return f"TermExpr({str(self)!r})"
