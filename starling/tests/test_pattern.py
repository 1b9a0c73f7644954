"""Tests for patterns, e-matching and single rewrites."""

import pytest

from starling import (
    Constant, ConstantFolding, EGraph, Guard, Op, PatternNode, PatternVar, Rewrite,
    RuleSyntaxError, Term, TermExpr, is_not_zero, parse_pattern, search,
)
from starling.pattern import RHS_PREFIX, format_pattern, instantiate, pattern_vars


def _graph(text):
    egraph = EGraph(ConstantFolding())
    root = egraph.add_expr(TermExpr.parse(text))
    egraph.rebuild()
    return egraph, root


class TestPatternParsing:
    """Tests for reading patterns."""

    def test_operator_pattern(self):
        assert parse_pattern("(+ ?x 0)") == PatternNode(
            Term(Op.ADD, ()),
            (PatternVar("x"), PatternNode(Term.constant(Constant(0)))),
        )

    def test_bare_variable(self):
        assert parse_pattern("?x") == PatternVar("x")

    def test_rhs_prefix(self):
        assert parse_pattern("(- :x)", RHS_PREFIX) == PatternNode(
            Term(Op.MINUS, ()), (PatternVar("x"),)
        )

    def test_wrong_prefix_rejected(self):
        with pytest.raises(RuleSyntaxError):
            parse_pattern(":x")
        with pytest.raises(RuleSyntaxError):
            parse_pattern("(+ ?x 1)", RHS_PREFIX)

    @pytest.mark.parametrize("text", ["(foo ?x)", "(not ?x ?y)", "(+ ?x", "?", "()"])
    def test_malformed(self, text):
        with pytest.raises(RuleSyntaxError):
            parse_pattern(text)

    def test_format_round_trip(self):
        for text in ["(and (= ?x ?y) (= ?y ?z))", "?x", "(* ?x -1)", "(or ?x false)"]:
            assert format_pattern(parse_pattern(text)) == text

    def test_pattern_vars_in_order(self):
        assert pattern_vars(parse_pattern("(and (= ?x ?y) (= ?y ?z))")) == ["x", "y", "z"]
        assert pattern_vars(parse_pattern("true")) == []


class TestMatching:
    """Tests for e-matching against an e-graph."""

    def test_simple_match(self):
        egraph, root = _graph("(+ a 0)")
        matches = search(egraph, parse_pattern("(+ ?x 0)"))
        assert matches == [(root, {"x": egraph.lookup(Term.var("a"))})]

    def test_no_match(self):
        egraph, _ = _graph("(+ a 1)")
        assert search(egraph, parse_pattern("(+ ?x 0)")) == []

    def test_non_linear(self):
        egraph, _ = _graph("(- a a)")
        assert len(search(egraph, parse_pattern("(- ?x ?x)"))) == 1
        egraph, _ = _graph("(- a b)")
        assert search(egraph, parse_pattern("(- ?x ?x)")) == []

    def test_non_linear_after_union(self):
        egraph, root = _graph("(- a b)")
        egraph.union(egraph.lookup(Term.var("a")), egraph.lookup(Term.var("b")))
        egraph.rebuild()
        matches = search(egraph, parse_pattern("(- ?x ?x)"))
        assert [id for id, _ in matches] == [egraph.find(root)]

    def test_bare_variable_matches_every_class(self):
        egraph, _ = _graph("(and p (not q))")
        assert len(search(egraph, parse_pattern("?x"))) == egraph.number_of_classes

    def test_nested(self):
        egraph, root = _graph("(not (and p q))")
        matches = search(egraph, parse_pattern("(not (and ?x ?y))"))
        assert len(matches) == 1
        id, subst = matches[0]
        assert id == root
        assert subst["x"] == egraph.lookup(Term.var("p"))
        assert subst["y"] == egraph.lookup(Term.var("q"))

    def test_ground_leaf_pattern(self):
        egraph, root = _graph("(and p true)")
        matches = search(egraph, parse_pattern("(and p true)"))
        assert matches == [(root, {})]

    def test_instantiate(self):
        egraph, _ = _graph("(+ a 0)")
        a = egraph.lookup(Term.var("a"))
        new = instantiate(egraph, parse_pattern("(- :x)", RHS_PREFIX), {"x": a})
        assert egraph.lookup(Term.apply(Op.MINUS, a)) == new


class TestRewrite:
    """Tests for named rewrites and guards."""

    def test_apply(self):
        egraph, root = _graph("(+ a 0)")
        rule = Rewrite.parse("add-0", "(+ ?x 0)", ":x")
        assert rule.apply(egraph, rule.search(egraph)) == 1
        egraph.rebuild()
        assert egraph.equivalent(root, egraph.lookup(Term.var("a")))

    def test_apply_twice_changes_nothing(self):
        egraph, _ = _graph("(+ a 0)")
        rule = Rewrite.parse("add-0", "(+ ?x 0)", ":x")
        rule.apply(egraph, rule.search(egraph))
        egraph.rebuild()
        assert rule.apply(egraph, rule.search(egraph)) == 0

    def test_unbound_rhs_variable(self):
        with pytest.raises(RuleSyntaxError):
            Rewrite.parse("bad", "(+ ?x 0)", ":y")

    def test_unbound_guard_variable(self):
        guard = Guard("is-not-zero", "y", is_not_zero)
        with pytest.raises(RuleSyntaxError):
            Rewrite.parse("bad", "(div ?x ?x)", "1", guard)

    def test_guard_blocks_known_zero(self):
        guard = Guard("is-not-zero", "x", is_not_zero)
        rule = Rewrite.parse("div-reflexive", "(div ?x ?x)", "1", guard)
        egraph, root = _graph("(div 0 0)")
        assert len(rule.search(egraph)) == 1
        assert rule.apply(egraph, rule.search(egraph)) == 0
        assert egraph[root].data is None

    def test_guard_allows_unknown(self):
        guard = Guard("is-not-zero", "x", is_not_zero)
        rule = Rewrite.parse("div-reflexive", "(div ?x ?x)", "1", guard)
        egraph, root = _graph("(div y y)")
        assert rule.apply(egraph, rule.search(egraph)) == 1
        egraph.rebuild()
        assert egraph[root].data == Constant(1)

    def test_str(self):
        guard = Guard("is-not-zero", "x", is_not_zero)
        rule = Rewrite.parse("div-reflexive", "(div ?x ?x)", "1", guard)
        assert str(rule) == "(div ?x ?x) => 1 when (is-not-zero :x)"
        assert "div-reflexive" in repr(rule)
