"""
Expression data model for starling.

Expressions are trees of literals, variables, and unary or binary operator
applications. Literals and variables are wrapped in a Tagged pair so the
caller can attach metadata (a source span, say). The simplifier never looks
at that metadata, and equality, hashing and ordering all ignore it.

Rendering (str) is fully parenthesised and makes no attempt at precedence:

    Expr.bop(Expr.var("x"), Arith.ADD, Expr.integer(1))   ->  (x) + (1)
    Expr.uop(Uop.NOT, Expr.var("x"))                       ->  not(x)
    Expr.uop(Uop.DEREF, Expr.var("p"))                     ->  (p)^
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from functools import total_ordering
from typing import Any, Callable, Iterator, List, Optional, Union

from .errors import TermSyntaxError

# base 10, ASCII digits only
_INTEGER = re.compile(r"[+-]?[0-9]+")


# ============================================================
# Constants
# ============================================================

@total_ordering
class Constant:
    """
    A Boolean or arbitrary-precision integer constant.

    Unlike Python's own bool and int, a Boolean constant never equals an
    integer constant: Constant(True) != Constant(1).

    The ordering is total and compares across the two cases (all Booleans
    sort before all integers). It exists so constants can sit inside sorted
    structures; it carries no meaning in the language itself.
    """

    __slots__ = ("value",)

    def __init__(self, value: Union[bool, int]):
        if not isinstance(value, (bool, int)):
            raise TypeError(
                f"constants are Booleans or integers, not {type(value).__name__}"
            )
        self.value = value

    @classmethod
    def zero(cls) -> "Constant":
        """The integer constant 0."""
        return cls(0)

    @classmethod
    def parse(cls, text: str) -> "Constant":
        """
        Read a constant.

        "true" and "false" are Booleans (case-insensitive); anything else
        must be a base-10 integer.
        """
        stripped = text.strip()
        if stripped.lower() == "true":
            return cls(True)
        if stripped.lower() == "false":
            return cls(False)
        if not _INTEGER.fullmatch(stripped):
            raise TermSyntaxError("not a constant", text)
        return cls(int(stripped))

    @property
    def is_bool(self) -> bool:
        return isinstance(self.value, bool)

    @property
    def is_int(self) -> bool:
        return not isinstance(self.value, bool)

    def as_bool(self) -> Optional[bool]:
        """The Boolean value, or None if this is an integer."""
        return self.value if self.is_bool else None

    def as_int(self) -> Optional[int]:
        """The integer value, or None if this is a Boolean."""
        return self.value if self.is_int else None

    def is_zero(self) -> bool:
        """True only for the integer 0 (false is not zero)."""
        return self.is_int and self.value == 0

    def _key(self):
        return (0 if self.is_bool else 1, int(self.value))

    def __eq__(self, other):
        if not isinstance(other, Constant):
            return NotImplemented
        return self._key() == other._key()

    def __lt__(self, other):
        if not isinstance(other, Constant):
            return NotImplemented
        return self._key() < other._key()

    def __hash__(self):
        return hash(self._key())

    def __repr__(self) -> str:
        return f"Constant({self.value!r})"

    def __str__(self) -> str:
        if self.is_bool:
            return "true" if self.value else "false"
        return str(self.value)


# ============================================================
# Tagging
# ============================================================

@dataclass(frozen=True, order=True)
class Tagged:
    """An item paired with caller-supplied metadata that it does not compare on."""

    item: Any
    meta: Any = field(default=None, compare=False)

    def map(self, f: Callable[[Any], Any]) -> "Tagged":
        """Apply f to the item, keeping the metadata."""
        return Tagged(f(self.item), self.meta)

    def map_meta(self, f: Callable[[Any], Any]) -> "Tagged":
        """Apply f to the metadata, keeping the item."""
        return Tagged(self.item, f(self.meta))

    def __str__(self) -> str:
        return str(self.item)


# ============================================================
# Operators
# ============================================================

class Arith(Enum):
    """Arithmetic binary operators."""

    ADD = "+"
    SUB = "-"
    MUL = "*"
    # Both divisions are integer division truncating toward zero.
    DIV = "/"
    INT_DIV = "div"
    MODULUS = "mod"

    def __str__(self) -> str:
        return self.value


class Bool(Enum):
    """Boolean binary operators."""

    AND = "and"
    OR = "or"
    IMPLIES = "implies"
    IFF = "iff"

    def __str__(self) -> str:
        return self.value


class Rel(Enum):
    """Relational binary operators."""

    EQ = "="
    NOT_EQ = "<>"
    LESS = "<"
    LESS_EQ = "<="
    GREATER = ">"
    GREATER_EQ = ">="

    def __str__(self) -> str:
        return self.value


Bop = Union[Arith, Bool, Rel]


class Fixity(Enum):
    PREFIX = "prefix"
    POSTFIX = "postfix"


class Uop(Enum):
    """Unary operators."""

    DEREF = "^"
    PLUS = "+"
    MINUS = "-"
    NOT = "not"

    @property
    def fixity(self) -> Fixity:
        return Fixity.POSTFIX if self is Uop.DEREF else Fixity.PREFIX

    def __str__(self) -> str:
        return self.value


# ============================================================
# Expressions
# ============================================================

class Expr:
    """
    Base class of expression nodes.

    Build expressions with the class-level constructors rather than the
    node classes directly:

        Expr.bop(Expr.var("x"), Rel.LESS, Expr.integer(3))
    """

    __slots__ = ()

    @staticmethod
    def integer(value: int, meta: Any = None) -> "Literal":
        return Literal(Tagged(Constant(int(value)), meta))

    @staticmethod
    def boolean(value: bool, meta: Any = None) -> "Literal":
        return Literal(Tagged(Constant(bool(value)), meta))

    @staticmethod
    def constant(value: Constant, meta: Any = None) -> "Literal":
        return Literal(Tagged(value, meta))

    @staticmethod
    def var(name: Any, meta: Any = None) -> "Var":
        return Var(Tagged(name, meta))

    @staticmethod
    def bop(lhs: "Expr", op: Bop, rhs: "Expr") -> "BinaryOp":
        return BinaryOp(op, lhs, rhs)

    @staticmethod
    def uop(op: Uop, expr: "Expr") -> "UnaryOp":
        return UnaryOp(op, expr)

    def children(self) -> List["Expr"]:
        return []

    def map_meta(self, f: Callable[[Any], Any]) -> "Expr":
        """Rebuild the expression with f applied to every piece of metadata."""
        raise NotImplementedError

    def map_vars(self, f: Callable[[Any], Any]) -> "Expr":
        """Rebuild the expression with f applied to every variable."""
        raise NotImplementedError

    def strip_meta(self) -> "Expr":
        """Drop all metadata."""
        return self.map_meta(lambda _meta: None)

    def variables(self) -> Iterator[Any]:
        """Yield variables in left-to-right order (with repeats)."""
        stack: List[Expr] = [self]
        while stack:
            node = stack.pop()
            if isinstance(node, Var):
                yield node.name.item
            else:
                stack.extend(reversed(node.children()))


@dataclass(frozen=True)
class Literal(Expr):
    constant: Tagged

    def map_meta(self, f):
        return Literal(self.constant.map_meta(f))

    def map_vars(self, f):
        return self

    def __str__(self) -> str:
        return str(self.constant)


@dataclass(frozen=True)
class Var(Expr):
    name: Tagged

    def map_meta(self, f):
        return Var(self.name.map_meta(f))

    def map_vars(self, f):
        return Var(self.name.map(f))

    def __str__(self) -> str:
        return str(self.name)


@dataclass(frozen=True)
class BinaryOp(Expr):
    op: Bop
    lhs: Expr
    rhs: Expr

    def children(self):
        return [self.lhs, self.rhs]

    def map_meta(self, f):
        return BinaryOp(self.op, self.lhs.map_meta(f), self.rhs.map_meta(f))

    def map_vars(self, f):
        return BinaryOp(self.op, self.lhs.map_vars(f), self.rhs.map_vars(f))

    def __str__(self) -> str:
        return render(self)


@dataclass(frozen=True)
class UnaryOp(Expr):
    op: Uop
    expr: Expr

    def children(self):
        return [self.expr]

    def map_meta(self, f):
        return UnaryOp(self.op, self.expr.map_meta(f))

    def map_vars(self, f):
        return UnaryOp(self.op, self.expr.map_vars(f))

    def __str__(self) -> str:
        return render(self)


def render(expr: Expr) -> str:
    """Fully parenthesised infix text for `expr`; this is what str() returns."""
    parts: List[str] = []
    stack: List[Union[Expr, str]] = [expr]
    while stack:
        item = stack.pop()
        if isinstance(item, str):
            parts.append(item)
        elif isinstance(item, BinaryOp):
            stack.extend(["(", item.lhs, f") {item.op} (", item.rhs, ")"][::-1])
        elif isinstance(item, UnaryOp):
            if item.op.fixity is Fixity.POSTFIX:
                stack.extend(["(", item.expr, f"){item.op}"][::-1])
            else:
                stack.extend([f"{item.op}(", item.expr, ")"][::-1])
        else:
            parts.append(str(item))
    return "".join(parts)
