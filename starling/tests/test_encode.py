"""Tests for encoding expressions into terms and decoding them back."""

import pytest

from starling import Arith, Bool, Expr, Rel, TermExpr, Uop, decode, encode


def _x():
    return Expr.var("x")


class TestEncode:
    """Tests for Expr -> TermExpr."""

    def test_simple(self):
        e = Expr.bop(_x(), Arith.ADD, Expr.integer(1))
        assert str(encode(e)) == "(+ x 1)"

    def test_unary(self):
        assert str(encode(Expr.uop(Uop.MINUS, _x()))) == "(- x)"
        assert str(encode(Expr.uop(Uop.PLUS, _x()))) == "(+ x)"
        assert str(encode(Expr.uop(Uop.DEREF, _x()))) == "(^ x)"

    def test_both_divisions(self):
        assert str(encode(Expr.bop(_x(), Arith.DIV, Expr.var("y")))) == "(/ x y)"
        assert str(encode(Expr.bop(_x(), Arith.INT_DIV, Expr.var("y")))) == "(div x y)"

    def test_metadata_dropped(self):
        e = Expr.bop(Expr.var("x", meta=(0, 1)), Rel.LESS, Expr.integer(3, meta=(4, 5)))
        assert encode(e) == TermExpr.parse("(< x 3)")

    def test_children_precede_parents(self):
        t = encode(Expr.uop(Uop.NOT, Expr.bop(_x(), Bool.OR, Expr.boolean(False))))
        for index, node in enumerate(t):
            assert all(child < index for child in node.children)

    def test_rejects_non_expressions(self):
        with pytest.raises(TypeError):
            encode("x")


class TestDecode:
    """Tests for TermExpr -> Expr."""

    def test_simple(self):
        expected = Expr.uop(Uop.NOT, Expr.bop(_x(), Rel.EQ, Expr.integer(3)))
        assert decode(TermExpr.parse("(not (= x 3))")) == expected

    def test_metadata_is_none(self):
        e = decode(TermExpr.parse("(+ x 1)"))
        assert e.lhs.name.meta is None
        assert e.rhs.constant.meta is None

    def test_subterm(self):
        t = TermExpr.parse("(and p q)")
        assert decode(t, 0) == Expr.var("p")

    def test_infix(self):
        assert str(decode(TermExpr.parse("(implies (^ p) (not q))"))) == "((p)^) implies (not(q))"


class TestRoundTrip:
    """decode(encode(e)) is e without its metadata."""

    @pytest.mark.parametrize("op", list(Arith) + list(Bool) + list(Rel))
    def test_binary_operators(self, op):
        e = Expr.bop(Expr.var("a", meta=1), op, Expr.var("b", meta=2))
        assert decode(encode(e)) == e.strip_meta()

    @pytest.mark.parametrize("op", list(Uop))
    def test_unary_operators(self, op):
        e = Expr.uop(op, Expr.var("a"))
        assert decode(encode(e)) == e

    def test_constants(self):
        for e in [Expr.integer(-12), Expr.boolean(True), Expr.boolean(False)]:
            assert decode(encode(e)) == e


class TestDeepTerms:
    """Encoding and decoding do not recurse on term depth."""

    def test_deep_negation(self):
        e = Expr.var("p")
        for _ in range(3000):
            e = Expr.uop(Uop.NOT, e)
        term = encode(e)
        assert len(term) == 3001
        assert term.cost() == 3001
        assert str(decode(term)) == str(e)
