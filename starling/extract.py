"""
Extraction: choosing one cheapest term out of each e-class.
"""

from typing import Callable, Dict, Tuple

from .egraph import EClass, EClassId, EGraph
from .term import Term, TermExpr

CostFunction = Callable[[Term, Callable[[EClassId], int]], int]


def ast_size(term: Term, child_cost: Callable[[EClassId], int]) -> int:
    """One per node: a leaf costs 1, anything else 1 plus its children."""
    return 1 + sum(child_cost(child) for child in term.children)


class Extractor:
    """
    Compute the cheapest node of every e-class, bottom-up to a fixpoint.

    A node only gets a cost once all its children have one, so a node that
    refers back to its own class (like the (+ x) that lives in x's class)
    is never picked over the finite alternative it loops through. Among
    equally cheap nodes, the one earliest in the class wins.

    Example:
        extractor = Extractor(runner.egraph)
        cost, term = extractor.find_best(runner.roots[0])
    """

    def __init__(self, egraph: EGraph, cost: CostFunction = ast_size):
        if not egraph.clean:
            raise ValueError("e-graph must be rebuilt before extraction")
        self.egraph = egraph
        self.cost_function = cost
        self.best: Dict[EClassId, Tuple[int, Term]] = {}
        self._find_costs()

    def _find_costs(self) -> None:
        changed = True
        while changed:
            changed = False
            for eclass in self.egraph:
                candidate = self._best_node(eclass)
                if candidate is None:
                    continue
                previous = self.best.get(eclass.id)
                if previous is None or candidate[0] < previous[0]:
                    self.best[eclass.id] = candidate
                    changed = True

    def _best_node(self, eclass: EClass):
        best = None
        for node in eclass.nodes:
            if any(self.egraph.find(c) not in self.best for c in node.children):
                continue
            cost = self.cost_function(node, self.find_best_cost)
            if best is None or cost < best[0]:
                best = (cost, node)
        return best

    def find_best_cost(self, id: EClassId) -> int:
        return self.best[self.egraph.find(id)][0]

    def find_best_node(self, id: EClassId) -> Term:
        return self.best[self.egraph.find(id)][1]

    def find_best(self, id: EClassId) -> Tuple[int, TermExpr]:
        """The cost and a cheapest term of the class of `id`."""
        id = self.egraph.find(id)
        if id not in self.best:
            raise ValueError(f"e-class {id} has no finite-cost term")
        expr = TermExpr()
        self._build(expr, id, {})
        return self.best[id][0], expr

    def _build(self, expr: TermExpr, id: EClassId, built: Dict[EClassId, int]) -> int:
        # post-order over classes; a class is emitted once all its children are
        stack = [self.egraph.find(id)]
        while stack:
            current = stack[-1]
            if current in built:
                stack.pop()
                continue
            node = self.best[current][1]
            children = [self.egraph.find(child) for child in node.children]
            missing = [child for child in children if child not in built]
            if missing:
                stack.extend(reversed(missing))
                continue
            stack.pop()
            built[current] = expr.add(
                Term(node.op, tuple(built[child] for child in children), node.value)
            )
        return built[self.egraph.find(id)]
