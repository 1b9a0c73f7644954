"""Tests for the e-graph and the constant-folding analysis."""

import pytest

from starling import (
    Constant, ConstantFolding, EGraph, InconsistentAnalysis, Op, Term, TermExpr,
    is_not_zero,
)
from starling.analysis import FOLD_PRELUDE, trunc_div, trunc_mod
from starling.egraph import UnionFind


def _const(value):
    return Term.constant(Constant(value))


class TestUnionFind:
    """Tests for the disjoint-set structure."""

    def test_make_set(self):
        uf = UnionFind()
        assert [uf.make_set() for _ in range(3)] == [0, 1, 2]
        assert len(uf) == 3

    def test_union_and_find(self):
        uf = UnionFind()
        a, b, c = uf.make_set(), uf.make_set(), uf.make_set()
        uf.union(a, b)
        uf.union(a, c)
        assert uf.find(b) == uf.find(c) == a


class TestHashConsing:
    """Equal nodes are stored once."""

    def test_same_leaf_same_class(self):
        egraph = EGraph()
        assert egraph.add(Term.var("x")) == egraph.add(Term.var("x"))
        assert egraph.total_size == 1

    def test_shared_subterms(self):
        egraph = EGraph()
        egraph.add_expr(TermExpr.parse("(+ (- x) (- x))"))
        # x, (- x), (+ ...)
        assert egraph.number_of_classes == 3

    def test_lookup(self):
        egraph = EGraph()
        root = egraph.add_expr(TermExpr.parse("(not x)"))
        assert egraph.lookup_expr(TermExpr.parse("(not x)")) == root
        assert egraph.lookup(Term.var("y")) is None
        assert egraph.lookup_expr(TermExpr.parse("(not y)")) is None

    def test_empty_expression(self):
        with pytest.raises(ValueError):
            EGraph().add_expr(TermExpr())


class TestCongruence:
    """Union plus rebuild restores congruence closure."""

    def test_union_reports_change(self):
        egraph = EGraph()
        x, y = egraph.add(Term.var("x")), egraph.add(Term.var("y"))
        assert egraph.union(x, y)
        assert not egraph.union(y, x)
        assert egraph.equivalent(x, y)

    def test_parents_merge_on_rebuild(self):
        egraph = EGraph()
        x, y = egraph.add(Term.var("x")), egraph.add(Term.var("y"))
        fx = egraph.add(Term.apply(Op.NOT, x))
        fy = egraph.add(Term.apply(Op.NOT, y))
        egraph.union(x, y)
        assert not egraph.equivalent(fx, fy)
        assert egraph.rebuild() == 1
        assert egraph.equivalent(fx, fy)
        assert egraph.clean

    def test_congruence_propagates_upward(self):
        egraph = EGraph()
        a = egraph.add_expr(TermExpr.parse("(not (not x))"))
        b = egraph.add_expr(TermExpr.parse("(not (not y))"))
        egraph.union(egraph.lookup(Term.var("x")), egraph.lookup(Term.var("y")))
        assert egraph.rebuild() == 2
        assert egraph.equivalent(a, b)

    def test_rebuild_deduplicates_nodes(self):
        egraph = EGraph()
        x, y = egraph.add(Term.var("x")), egraph.add(Term.var("y"))
        fx = egraph.add(Term.apply(Op.NOT, x))
        egraph.add(Term.apply(Op.NOT, y))
        egraph.union(x, y)
        egraph.rebuild()
        assert len(egraph[fx].nodes) == 1
        assert egraph.total_size == 3

    def test_union_count(self):
        egraph = EGraph()
        x, y = egraph.add(Term.var("x")), egraph.add(Term.var("y"))
        egraph.union(x, y)
        egraph.union(x, y)
        assert egraph.union_count == 1

    def test_dump(self):
        egraph = EGraph()
        egraph.add_expr(TermExpr.parse("(not x)"))
        dump = egraph.dump()
        assert "e0:" in dump
        assert "not e0" in dump


class TestConstantFolding:
    """Tests for the constant-folding analysis."""

    def _graph(self, text):
        egraph = EGraph(ConstantFolding())
        root = egraph.add_expr(TermExpr.parse(text))
        egraph.rebuild()
        return egraph, root

    def test_fold_on_add(self):
        egraph, root = self._graph("(+ 1 2)")
        assert egraph[root].data == Constant(3)
        assert egraph.lookup(_const(3)) == root

    def test_folded_class_keeps_only_leaves(self):
        egraph, root = self._graph("(* (+ 1 2) 4)")
        assert egraph[root].nodes == [_const(12)]

    @pytest.mark.parametrize("text,expected", [
        ("(- 2 5)", -3),
        ("(/ 7 2)", 3),
        ("(div -7 2)", -3),
        ("(mod -7 2)", -1),
        ("(mod 7 -2)", 1),
        ("(- 4)", -4),
        ("(+ 4)", 4),
        ("(< 1 2)", True),
        ("(>= 1 2)", False),
        ("(= true false)", False),
        ("(<> 3 3)", False),
        ("(implies false x)", None),
        ("(implies false true)", True),
        ("(iff false false)", True),
        ("(not (and true false))", True),
        ("(or false false)", False),
    ])
    def test_folds(self, text, expected):
        egraph, root = self._graph(text)
        data = egraph[root].data
        if expected is None:
            assert data is None
        else:
            assert data == Constant(expected)

    def test_division_by_zero_is_unknown(self):
        for text in ["(div 1 0)", "(/ 0 0)", "(mod 5 0)"]:
            egraph, root = self._graph(text)
            assert egraph[root].data is None

    def test_type_mismatch_is_unknown(self):
        for text in ["(+ true 1)", "(and 1 true)", "(not 0)", "(- false)", "(< true false)"]:
            egraph, root = self._graph(text)
            assert egraph[root].data is None

    def test_mixed_equality_is_false(self):
        egraph, root = self._graph("(= true 1)")
        assert egraph[root].data == Constant(False)

    def test_deref_never_folds(self):
        assert Op.DEREF not in FOLD_PRELUDE
        egraph, root = self._graph("(^ 1)")
        assert egraph[root].data is None

    def test_union_propagates_constants_to_parents(self):
        egraph = EGraph(ConstantFolding())
        plus = egraph.add_expr(TermExpr.parse("(+ x 1)"))
        egraph.union(egraph.lookup(Term.var("x")), egraph.add(_const(2)))
        egraph.rebuild()
        assert egraph[plus].data == Constant(3)
        assert egraph[plus].nodes == [_const(3)]

    def test_merge_conflict_raises(self):
        egraph = EGraph(ConstantFolding())
        one, two = egraph.add(_const(1)), egraph.add(_const(2))
        with pytest.raises(InconsistentAnalysis) as info:
            egraph.union(one, two)
        assert {str(info.value.left), str(info.value.right)} == {"1", "2"}
        assert {info.value.left_id, info.value.right_id} == {one, two}
        assert "merged non-equal constants" in str(info.value)

    def test_merge_unknown_with_constant(self):
        analysis = ConstantFolding()
        assert analysis.merge(None, Constant(1)) == Constant(1)
        assert analysis.merge(Constant(1), None) == Constant(1)
        assert analysis.merge(Constant(1), Constant(1)) == Constant(1)
        assert analysis.merge(None, None) is None


class TestIntegerHelpers:
    """Truncating division and remainder."""

    @pytest.mark.parametrize("a,b,q,r", [
        (7, 2, 3, 1),
        (-7, 2, -3, -1),
        (7, -2, -3, 1),
        (-7, -2, 3, -1),
        (0, 5, 0, 0),
    ])
    def test_truncation(self, a, b, q, r):
        assert trunc_div(a, b) == q
        assert trunc_mod(a, b) == r

    def test_zero_divisor(self):
        assert trunc_div(1, 0) is None
        assert trunc_mod(1, 0) is None


class TestIsNotZero:
    """The guard used by the reflexive division rules."""

    def test_values(self):
        egraph = EGraph(ConstantFolding())
        zero = egraph.add(_const(0))
        five = egraph.add(_const(5))
        false = egraph.add(_const(False))
        assert not is_not_zero(egraph, zero)
        assert is_not_zero(egraph, five)
        assert is_not_zero(egraph, false)

    def test_unknown_passes(self):
        egraph = EGraph(ConstantFolding())
        x = egraph.add(Term.var("x"))
        assert is_not_zero(egraph, x)

    def test_folded_zero_fails(self):
        egraph = EGraph(ConstantFolding())
        root = egraph.add_expr(TermExpr.parse("(- 3 3)"))
        assert not is_not_zero(egraph, root)
