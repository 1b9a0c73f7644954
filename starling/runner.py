"""
Equality saturation.

A Runner owns an e-graph seeded with one or more terms and grows it by
applying every rule to every match, iteration after iteration, until nothing
changes (saturation) or a limit is hit:

    runner = Runner(iter_limit=10).with_expr(TermExpr.parse("(+ x 0)")).run()
    runner.report.stop_reason   # => StopReason.SATURATED
    runner.egraph               # every term equivalent to the input
"""

import time
from enum import Enum
from typing import Dict, Iterable, Iterator, List, Optional

from .analysis import ConstantFolding
from .egraph import Analysis, EClassId, EGraph
from .log import get_logger
from .pattern import Rewrite
from .rules import default_rules
from .term import TermExpr

logger = get_logger(__name__, system="runner")

DEFAULT_ITER_LIMIT = 30
DEFAULT_NODE_LIMIT = 10_000


class StopReason(Enum):
    SATURATED = "saturated"
    ITERATION_LIMIT = "iteration limit"
    NODE_LIMIT = "node limit"

    def __str__(self) -> str:
        return self.value


class Iteration:
    """Statistics for one search/apply/rebuild round."""

    def __init__(self, index: int, matches: Dict[str, int], applied: Dict[str, int],
                 rebuild_unions: int, nodes: int, classes: int, elapsed: float):
        self.index = index
        self.matches = matches
        self.applied = applied
        self.rebuild_unions = rebuild_unions
        self.nodes = nodes
        self.classes = classes
        self.elapsed = elapsed
        self.saturated = False

    @property
    def unions(self) -> int:
        return sum(self.applied.values()) + self.rebuild_unions

    def __repr__(self) -> str:
        return (f"Iteration({self.index}: {sum(self.matches.values())} matches, "
                f"{self.unions} unions, {self.nodes} nodes, {self.classes} classes)")

    def to_dict(self) -> Dict:
        return {
            "index": self.index,
            "matches": dict(self.matches),
            "applied": dict(self.applied),
            "rebuild_unions": self.rebuild_unions,
            "nodes": self.nodes,
            "classes": self.classes,
            "elapsed": self.elapsed,
            "saturated": self.saturated,
        }


class RunReport:
    """What a run did, iteration by iteration, and why it stopped."""

    def __init__(self):
        self.iterations: List[Iteration] = []
        self.stop_reason: Optional[StopReason] = None

    def __len__(self) -> int:
        return len(self.iterations)

    def __iter__(self) -> Iterator[Iteration]:
        return iter(self.iterations)

    @property
    def saturated(self) -> bool:
        return self.stop_reason is StopReason.SATURATED

    @property
    def total_time(self) -> float:
        return sum(it.elapsed for it in self.iterations)

    def rule_counts(self) -> Dict[str, int]:
        """Count how many unions each rule caused over the whole run."""
        counts: Dict[str, int] = {}
        for iteration in self.iterations:
            for name, count in iteration.applied.items():
                counts[name] = counts.get(name, 0) + count
        return counts

    def rules_applied(self) -> List[str]:
        """Names of the rules that changed the graph, in order of first use."""
        return list(self.rule_counts())

    def summary(self) -> str:
        if not self.iterations:
            return "No iterations run"
        last = self.iterations[-1]
        return (f"{self.stop_reason} after {len(self.iterations)} iterations: "
                f"{last.nodes} nodes in {last.classes} classes, "
                f"{sum(it.unions for it in self.iterations)} unions")

    def format(self) -> str:
        lines = [self.summary()]
        for iteration in self.iterations:
            applied = ", ".join(f"{name} x{count}" for name, count in iteration.applied.items())
            lines.append(f"  {iteration.index}. {iteration.nodes} nodes, "
                         f"{iteration.classes} classes: {applied or '(nothing applied)'}")
        return "\n".join(lines)

    def to_dict(self) -> Dict:
        return {
            "stop_reason": None if self.stop_reason is None else self.stop_reason.value,
            "iterations": [it.to_dict() for it in self.iterations],
            "rule_counts": self.rule_counts(),
        }

    def __repr__(self) -> str:
        return f"RunReport({self.summary()!r})"


class Runner:
    """
    Run equality saturation over an e-graph.

    Args:
        rules: Rewrites to apply; defaults to the built-in table.
        iter_limit: Stop after this many iterations.
        node_limit: Stop once the e-graph holds more than this many e-nodes.
        analysis: E-class analysis; defaults to constant folding.

    Raises:
        ValueError: if either limit is not positive.
    """

    def __init__(self, rules: Optional[Iterable[Rewrite]] = None, *,
                 iter_limit: int = DEFAULT_ITER_LIMIT,
                 node_limit: int = DEFAULT_NODE_LIMIT,
                 analysis: Optional[Analysis] = None):
        if iter_limit <= 0:
            raise ValueError(f"iter_limit must be positive, got {iter_limit}")
        if node_limit <= 0:
            raise ValueError(f"node_limit must be positive, got {node_limit}")
        self.rules = tuple(default_rules() if rules is None else rules)
        self.iter_limit = iter_limit
        self.node_limit = node_limit
        self.egraph = EGraph(analysis if analysis is not None else ConstantFolding())
        self.roots: List[EClassId] = []
        self.report = RunReport()

    def with_expr(self, expr: TermExpr) -> "Runner":
        """Seed the e-graph with a term; its class is appended to roots."""
        self.roots.append(self.egraph.add_expr(expr))
        self.egraph.rebuild()
        return self

    @property
    def stop_reason(self) -> Optional[StopReason]:
        return self.report.stop_reason

    def run(self) -> "Runner":
        """Iterate until saturation or a limit; returns self."""
        while True:
            reason = self._check_limits()
            if reason is not None:
                break
            iteration = self._run_one(len(self.report.iterations))
            self.report.iterations.append(iteration)
            if iteration.saturated:
                reason = StopReason.SATURATED
                break

        self.report.stop_reason = reason
        logger.info(
            "saturation_stopped",
            reason=reason.value,
            iterations=len(self.report),
            nodes=self.egraph.total_size,
            classes=self.egraph.number_of_classes,
            elapsed_ms=round(self.report.total_time * 1000, 3),
        )
        return self

    def _check_limits(self) -> Optional[StopReason]:
        if len(self.report.iterations) >= self.iter_limit:
            return StopReason.ITERATION_LIMIT
        if self.egraph.total_size > self.node_limit:
            return StopReason.NODE_LIMIT
        return None

    def _run_one(self, index: int) -> Iteration:
        egraph = self.egraph
        started = time.perf_counter()
        unions_before = egraph.union_count
        nodes_before = egraph.total_size
        classes_before = egraph.number_of_classes

        # Search everything first so every rule sees the same graph.
        found = [(rule, rule.search(egraph)) for rule in self.rules]

        applied: Dict[str, int] = {}
        for rule, matches in found:
            if not matches:
                continue
            count = rule.apply(egraph, matches)
            if count:
                applied[rule.name] = applied.get(rule.name, 0) + count
            if egraph.total_size > self.node_limit:
                break

        rebuild_unions = egraph.rebuild()

        iteration = Iteration(
            index,
            matches={rule.name: len(matches) for rule, matches in found if matches},
            applied=applied,
            rebuild_unions=rebuild_unions,
            nodes=egraph.total_size,
            classes=egraph.number_of_classes,
            elapsed=time.perf_counter() - started,
        )
        iteration.saturated = (
            egraph.union_count == unions_before
            and iteration.nodes == nodes_before
            and iteration.classes == classes_before
        )
        logger.debug(
            "iteration",
            index=index,
            matches=sum(iteration.matches.values()),
            unions=iteration.unions,
            nodes=iteration.nodes,
            classes=iteration.classes,
        )
        return iteration
