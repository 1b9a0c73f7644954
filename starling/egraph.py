"""
E-graph: a compact representation of many equivalent terms at once.

An e-graph is a set of e-classes, each holding e-nodes (Terms whose children
are e-class ids). Adding a term is hash-consed, so the same canonical node is
never stored twice. Union merges two classes; congruence closure (if a ~ b
then f(a) ~ f(b)) is restored lazily by rebuild(), which must run before the
graph is searched again.

An Analysis attaches a value to each class and keeps it up to date across
unions. See analysis.ConstantFolding for the one starling uses.
"""

from typing import Any, Dict, Iterator, List, Optional, Tuple

from .errors import InconsistentAnalysis
from .log import get_logger
from .term import Term, TermExpr

logger = get_logger(__name__, system="egraph")

EClassId = int


class UnionFind:
    """Disjoint sets over the ids 0..n-1, with path halving."""

    def __init__(self):
        self.parents: List[int] = []

    def make_set(self) -> int:
        new_id = len(self.parents)
        self.parents.append(new_id)
        return new_id

    def find(self, x: int) -> int:
        parents = self.parents
        while parents[x] != x:
            parents[x] = parents[parents[x]]
            x = parents[x]
        return x

    def union(self, root: int, other: int) -> int:
        """Make `root` the representative of `other`; both must be roots."""
        self.parents[other] = root
        return root

    def __len__(self) -> int:
        return len(self.parents)


class EClass:
    """One equivalence class: its nodes, the nodes that use it, and its analysis data."""

    __slots__ = ("id", "nodes", "parents", "data")

    def __init__(self, id: EClassId, nodes: List[Term], data: Any):
        self.id = id
        self.nodes = nodes
        self.parents: List[Tuple[Term, EClassId]] = []
        self.data = data

    def leaves(self) -> List[Term]:
        return [node for node in self.nodes if node.is_leaf()]

    def __len__(self) -> int:
        return len(self.nodes)

    def __iter__(self) -> Iterator[Term]:
        return iter(self.nodes)

    def __repr__(self) -> str:
        return f"EClass(id={self.id}, nodes={len(self.nodes)}, data={self.data!r})"


class Analysis:
    """
    Per-class data kept consistent across unions.

    make() computes the data for a new node from its children's data;
    merge() combines the data of two classes being unioned; modify() may
    change a class (add nodes, union it with others) once its data is known.
    The base class attaches nothing.
    """

    def make(self, egraph: "EGraph", term: Term) -> Any:
        return None

    def merge(self, left: Any, right: Any) -> Any:
        return left if left is not None else right

    def modify(self, egraph: "EGraph", id: EClassId) -> None:
        pass


class EGraph:
    """
    A hash-consed e-graph with deferred congruence closure.

    Example:
        egraph = EGraph()
        x = egraph.add(Term.var("x"))
        y = egraph.add(Term.var("y"))
        fx = egraph.add(Term.apply(Op.NOT, x))
        fy = egraph.add(Term.apply(Op.NOT, y))
        egraph.union(x, y)
        egraph.rebuild()
        egraph.find(fx) == egraph.find(fy)  # => True
    """

    def __init__(self, analysis: Optional[Analysis] = None):
        self.analysis = analysis if analysis is not None else Analysis()
        self.unionfind = UnionFind()
        self.classes: Dict[EClassId, EClass] = {}
        self.memo: Dict[Term, EClassId] = {}
        # (parent node, parent class) pairs whose children may have changed
        self.pending: List[Tuple[Term, EClassId]] = []
        self.analysis_pending: List[Tuple[Term, EClassId]] = []
        self.union_count = 0
        self.clean = True

    # ------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------

    def find(self, id: EClassId) -> EClassId:
        return self.unionfind.find(id)

    def __getitem__(self, id: EClassId) -> EClass:
        return self.classes[self.find(id)]

    def __iter__(self) -> Iterator[EClass]:
        return iter(list(self.classes.values()))

    def __len__(self) -> int:
        return len(self.classes)

    @property
    def number_of_classes(self) -> int:
        return len(self.classes)

    @property
    def total_size(self) -> int:
        """Number of e-nodes across all classes."""
        return sum(len(eclass.nodes) for eclass in self.classes.values())

    def canonicalize(self, term: Term) -> Term:
        return term.map_children(self.find)

    def lookup(self, term: Term) -> Optional[EClassId]:
        """The class holding `term`, or None if it has never been added."""
        found = self.memo.get(self.canonicalize(term))
        return None if found is None else self.find(found)

    def lookup_expr(self, expr: TermExpr) -> Optional[EClassId]:
        """The class holding a whole term, or None if any part is missing."""
        ids: List[EClassId] = []
        for node in expr:
            found = self.lookup(node.map_children(lambda child: ids[child]))
            if found is None:
                return None
            ids.append(found)
        return ids[-1] if ids else None

    def equivalent(self, a: EClassId, b: EClassId) -> bool:
        return self.find(a) == self.find(b)

    # ------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------

    def add(self, term: Term) -> EClassId:
        """
        Add one node whose children are class ids already in the graph.

        Returns the id of the class holding the node; if an equal node is
        already present, that class is returned and nothing changes.
        """
        term = self.canonicalize(term)
        existing = self.memo.get(term)
        if existing is not None:
            return self.find(existing)

        new_id = self.unionfind.make_set()
        eclass = EClass(new_id, [term], self.analysis.make(self, term))
        self.classes[new_id] = eclass
        for child in term.children:
            self.classes[child].parents.append((term, new_id))
        self.memo[term] = new_id
        self.clean = False

        self.analysis.modify(self, new_id)
        return self.find(new_id)

    def add_expr(self, expr: TermExpr) -> EClassId:
        """Add every node of a flat term and return the class of its root."""
        ids: List[EClassId] = []
        for node in expr:
            ids.append(self.add(node.map_children(lambda child: ids[child])))
        if not ids:
            raise ValueError("cannot add an empty term expression")
        return self.find(ids[-1])

    def union(self, a: EClassId, b: EClassId) -> bool:
        """
        Merge the classes of `a` and `b`.

        Returns True if they were distinct. Congruence is not restored until
        rebuild() runs.

        Raises:
            InconsistentAnalysis: if the analysis data of the two classes
                cannot be merged.
        """
        a, b = self.find(a), self.find(b)
        if a == b:
            return False

        root, other = self.classes[a], self.classes[b]
        # the class with more parents stays root
        if len(root.parents) < len(other.parents):
            root, other = other, root

        merged = self._merge_data(root, other.data, other.id)

        self.unionfind.union(root.id, other.id)
        self.union_count += 1
        self.clean = False

        if merged != root.data:
            self.analysis_pending.extend(root.parents)
        if merged != other.data:
            self.analysis_pending.extend(other.parents)
        root.data = merged

        self.pending.extend(other.parents)
        root.nodes.extend(other.nodes)
        root.parents.extend(other.parents)
        del self.classes[other.id]

        self.analysis.modify(self, root.id)
        return True

    def _merge_data(self, eclass: EClass, data: Any, source: EClassId) -> Any:
        try:
            return self.analysis.merge(eclass.data, data)
        except InconsistentAnalysis as exc:
            logger.error(
                "inconsistent_analysis",
                left=str(exc.left),
                right=str(exc.right),
                left_id=eclass.id,
                right_id=source,
            )
            raise InconsistentAnalysis(exc.left, exc.right, eclass.id, source) from exc

    def rebuild(self) -> int:
        """
        Restore congruence closure and analysis invariants.

        Returns the number of unions performed while doing so.
        """
        unions = self._process_unions()
        self._rebuild_classes()
        self.clean = True
        return unions

    def _process_unions(self) -> int:
        unions = 0
        while self.pending or self.analysis_pending:
            while self.pending:
                term, id = self.pending.pop()
                term = self.canonicalize(term)
                memo_id = self.memo.get(term)
                self.memo[term] = id
                if memo_id is not None and self.union(memo_id, id):
                    unions += 1

            while self.analysis_pending:
                term, id = self.analysis_pending.pop()
                eclass = self[id]
                merged = self._merge_data(eclass, self.analysis.make(self, term), self.find(id))
                if merged != eclass.data:
                    eclass.data = merged
                    self.analysis_pending.extend(eclass.parents)
                    self.analysis.modify(self, eclass.id)
        return unions

    def _rebuild_classes(self) -> None:
        for eclass in self.classes.values():
            # dicts keep first-seen order, so node order stays deterministic
            nodes = dict.fromkeys(self.canonicalize(node) for node in eclass.nodes)
            eclass.nodes = list(nodes)

            parents: Dict[Term, EClassId] = {}
            for term, id in eclass.parents:
                parents[self.canonicalize(term)] = self.find(id)
            eclass.parents = list(parents.items())

    # ------------------------------------------------------------
    # Debugging
    # ------------------------------------------------------------

    def dump(self) -> str:
        """A human-readable listing of every class and its nodes."""
        lines = []
        for id in sorted(self.classes):
            eclass = self.classes[id]
            data = "" if eclass.data is None else f" = {eclass.data}"
            lines.append(f"e{id}{data}:")
            for node in eclass.nodes:
                args = " ".join(f"e{self.find(c)}" for c in node.children)
                lines.append(f"    {node.label()} {args}".rstrip())
        return "\n".join(lines)

    def __repr__(self) -> str:
        return f"EGraph(classes={self.number_of_classes}, nodes={self.total_size})"
