# Copyright (c) 2025.
# This file is part of hybrid-fg, released under the MIT License.
"""
Decision trees indexed by discrete assignments.

A decision tree maps every assignment of a set of discrete keys to a leaf.
Internal `Choice` nodes branch on one key; `Leaf` nodes hold a value, which
is a float for algebraic trees and an arbitrary object (e.g. a Gaussian
conditional, or ``None`` for a pruned branch) for generic trees.

Structure
---------
• Canonical key order
    Along any root-to-leaf path the branching keys strictly increase. Two
    trees can therefore be combined by a simultaneous walk that always
    branches on the smaller of the two root labels.

• Collapsing and sharing
    A `Choice` whose branches are all structurally identical is replaced by
    that branch, so a key only appears where it matters. Transformations
    memoize on node identity, so a sub-tree shared by several parents is
    transformed once and stays shared in the result. The number of nodes
    tracks the number of *distinct* outcomes rather than the Cartesian
    product of the domains.

• Totality
    Every assignment of the tree's keys reaches exactly one leaf. Pruned
    branches keep a leaf (``None`` or `INFEASIBLE_ERROR`) instead of being
    removed, so algebra on trees never has to handle holes.

Classes
-------
DecisionTree
    Generic tree: evaluation, restriction, unary/binary `apply`, enumeration.

AlgebraicDecisionTree
    Tree of floats with pointwise arithmetic, marginalization over a key,
    arg-min/arg-max and pruning to the lowest-valued assignments.
"""

from __future__ import annotations

import itertools
import math
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

from .errors import DEFAULT_TOL, INFEASIBLE_ERROR, IncompleteAssignmentError
from .types import DiscreteKey, Key, key_to_str, sorted_discrete_keys


class Leaf:
    __slots__ = ("value",)

    def __init__(self, value: Any) -> None:
        self.value = value


class Choice:
    __slots__ = ("label", "branches")

    def __init__(self, label: Key, branches: Tuple["Node", ...]) -> None:
        self.label = label
        self.branches = branches


Node = Union[Leaf, Choice]


def _leaf_equal(x: Any, y: Any) -> bool:
    if x is y:
        return True
    if isinstance(x, (int, float)) and isinstance(y, (int, float)):
        return x == y
    return False


def _same(a: Node, b: Node) -> bool:
    if a is b:
        return True
    if isinstance(a, Leaf) and isinstance(b, Leaf):
        return _leaf_equal(a.value, b.value)
    if isinstance(a, Choice) and isinstance(b, Choice):
        return (
            a.label == b.label
            and len(a.branches) == len(b.branches)
            and all(_same(x, y) for x, y in zip(a.branches, b.branches))
        )
    return False


def _make_choice(label: Key, branches: Sequence[Node]) -> Node:
    first = branches[0]
    if all(_same(first, b) for b in branches[1:]):
        return first
    return Choice(label, tuple(branches))


def _select(assignment: Mapping[Key, int], node: Choice) -> Node:
    try:
        value = int(assignment[node.label])
    except KeyError:
        raise IncompleteAssignmentError(
            f"assignment has no value for {key_to_str(node.label)}"
        ) from None
    if not 0 <= value < len(node.branches):
        raise IncompleteAssignmentError(
            f"value {value} out of domain for {key_to_str(node.label)} "
            f"(cardinality {len(node.branches)})"
        )
    return node.branches[value]


class DecisionTree:
    """Immutable decision tree over discrete keys with arbitrary leaves."""

    __slots__ = ("root",)

    def __init__(self, root: Node) -> None:
        self.root = root

    # --- Construction ---

    @classmethod
    def leaf(cls, value: Any):
        return cls(Leaf(value))

    @classmethod
    def tabulate(cls, keys: Sequence[DiscreteKey], fn: Callable[[Dict[Key, int]], Any]):
        """
        Build a tree by calling ``fn(assignment)`` for every assignment of
        ``keys``. Keys are branched on in ascending identifier order.
        """
        ordered = sorted_discrete_keys(keys)
        assignment: Dict[Key, int] = {}

        def build(depth: int) -> Node:
            if depth == len(ordered):
                return Leaf(fn(dict(assignment)))
            key, card = ordered[depth]
            branches = []
            for v in range(card):
                assignment[key] = v
                branches.append(build(depth + 1))
            del assignment[key]
            return _make_choice(key, branches)

        return cls(build(0))

    @classmethod
    def from_table(cls, keys: Sequence[DiscreteKey], values: Sequence[Any]):
        """
        Build a tree from a row-major table: the first key in ``keys`` is the
        most significant, the last one varies fastest.
        """
        keys = [DiscreteKey(Key(int(k)), int(c)) for k, c in keys]
        size = math.prod(c for _, c in keys)
        if len(values) != size:
            raise ValueError(
                f"table has {len(values)} entries, expected {size} for keys "
                + ", ".join(str(k) for k in keys)
            )
        strides = []
        stride = 1
        for _, card in reversed(keys):
            strides.append(stride)
            stride *= card
        strides.reverse()

        def lookup(assignment: Dict[Key, int]) -> Any:
            index = sum(assignment[k] * s for (k, _), s in zip(keys, strides))
            return values[index]

        return cls.tabulate(keys, lookup)

    def _new(self, root: Node):
        return type(self)(root)

    # --- Queries ---

    def __call__(self, assignment: Mapping[Key, int]) -> Any:
        node = self.root
        while isinstance(node, Choice):
            node = _select(assignment, node)
        return node.value

    def keys(self) -> List[DiscreteKey]:
        """Discrete keys actually branched on, sorted by identifier."""
        found: Dict[Key, int] = {}
        seen = set()
        stack = [self.root]
        while stack:
            node = stack.pop()
            if id(node) in seen or isinstance(node, Leaf):
                continue
            seen.add(id(node))
            found[node.label] = len(node.branches)
            stack.extend(node.branches)
        return [DiscreteKey(k, found[k]) for k in sorted(found)]

    def nr_leaves(self) -> int:
        """Number of distinct leaf nodes (shared leaves are counted once)."""
        count = 0
        seen = set()
        stack = [self.root]
        while stack:
            node = stack.pop()
            if id(node) in seen:
                continue
            seen.add(id(node))
            if isinstance(node, Leaf):
                count += 1
            else:
                stack.extend(node.branches)
        return count

    def visit(self, fn: Callable[[Any], None]) -> None:
        """Call ``fn`` on every distinct leaf value."""
        seen = set()

        def walk(node: Node) -> None:
            if id(node) in seen:
                return
            seen.add(id(node))
            if isinstance(node, Leaf):
                fn(node.value)
            else:
                for b in node.branches:
                    walk(b)

        walk(self.root)

    def enumerate(
        self, keys: Optional[Sequence[DiscreteKey]] = None
    ) -> Iterator[Tuple[Dict[Key, int], Any]]:
        """
        Yield ``(assignment, leaf)`` for every assignment of ``keys`` (by
        default the tree's own keys) in lexicographic order: keys ascending,
        values ascending, last key fastest.
        """
        ordered = sorted_discrete_keys(list(keys) + self.keys() if keys else self.keys())
        labels = [k for k, _ in ordered]
        for values in itertools.product(*(range(c) for _, c in ordered)):
            assignment = dict(zip(labels, values))
            yield assignment, self(assignment)

    # --- Transformations ---

    def apply(self, fn: Callable[[Any], Any]):
        """Map ``fn`` over the leaves, returning a tree of the same class."""
        memo: Dict[int, Node] = {}

        def walk(node: Node) -> Node:
            cached = memo.get(id(node))
            if cached is not None:
                return cached
            if isinstance(node, Leaf):
                out: Node = Leaf(fn(node.value))
            else:
                out = _make_choice(node.label, [walk(b) for b in node.branches])
            memo[id(node)] = out
            return out

        return self._new(walk(self.root))

    def apply2(self, other: "DecisionTree", fn: Callable[[Any, Any], Any]):
        """Combine two trees leaf-wise over the union of their keys."""
        return self._new(_apply2(self.root, other.root, fn, {}))

    def restrict(self, assignment: Mapping[Key, int]):
        """Fix the keys present in ``assignment``; the result branches on the rest."""
        memo: Dict[int, Node] = {}

        def walk(node: Node) -> Node:
            cached = memo.get(id(node))
            if cached is not None:
                return cached
            if isinstance(node, Leaf):
                out: Node = node
            elif node.label in assignment:
                out = walk(_select(assignment, node))
            else:
                out = _make_choice(node.label, [walk(b) for b in node.branches])
            memo[id(node)] = out
            return out

        return self._new(walk(self.root))

    def __repr__(self) -> str:
        leaves = self.nr_leaves()
        return f"{type(self).__name__}(keys=[{', '.join(map(str, self.keys()))}], leaves={leaves})"


def _apply2(a: Node, b: Node, fn: Callable[[Any, Any], Any], memo: Dict) -> Node:
    token = (id(a), id(b))
    cached = memo.get(token)
    if cached is not None:
        return cached

    if isinstance(a, Leaf) and isinstance(b, Leaf):
        out: Node = Leaf(fn(a.value, b.value))
    else:
        labels = [n.label for n in (a, b) if isinstance(n, Choice)]
        label = min(labels)
        a_branches = a.branches if isinstance(a, Choice) and a.label == label else None
        b_branches = b.branches if isinstance(b, Choice) and b.label == label else None
        if a_branches is not None and b_branches is not None and len(a_branches) != len(b_branches):
            raise ValueError(
                f"cardinality mismatch on {key_to_str(label)}: "
                f"{len(a_branches)} vs {len(b_branches)}"
            )
        card = len(a_branches if a_branches is not None else b_branches)
        branches = [
            _apply2(
                a_branches[i] if a_branches is not None else a,
                b_branches[i] if b_branches is not None else b,
                fn,
                memo,
            )
            for i in range(card)
        ]
        out = _make_choice(label, branches)

    memo[token] = out
    return out


def _as_tree(value: Any) -> "AlgebraicDecisionTree":
    if isinstance(value, DecisionTree):
        return value if isinstance(value, AlgebraicDecisionTree) else AlgebraicDecisionTree(value.root)
    return AlgebraicDecisionTree.leaf(float(value))


class AlgebraicDecisionTree(DecisionTree):
    """Decision tree with float leaves and pointwise arithmetic."""

    __slots__ = ()

    @classmethod
    def leaf(cls, value: float):
        return cls(Leaf(float(value)))

    @classmethod
    def from_table(cls, keys: Sequence[DiscreteKey], values: Sequence[float]):
        return super().from_table(keys, [float(v) for v in values])

    # --- Arithmetic ---

    def __add__(self, other):
        return self.apply2(_as_tree(other), lambda x, y: x + y)

    __radd__ = __add__

    def __sub__(self, other):
        return self.apply2(_as_tree(other), lambda x, y: x - y)

    def __mul__(self, other):
        return self.apply2(_as_tree(other), lambda x, y: x * y)

    __rmul__ = __mul__

    def __truediv__(self, other):
        # 0/0 is defined as 0 so conditionals of impossible parent values stay finite.
        return self.apply2(_as_tree(other), lambda x, y: 0.0 if y == 0.0 else x / y)

    def __neg__(self):
        return self.apply(lambda x: -x)

    # --- Reductions ---

    def combine(self, dkey: DiscreteKey, op: Callable[[float, float], float]):
        """Eliminate ``dkey`` by folding its branches with ``op``."""
        key, card = DiscreteKey(Key(int(dkey[0])), int(dkey[1]))
        memo: Dict[int, Node] = {}
        pair_memo: Dict = {}

        def fold(nodes: Sequence[Node]) -> Node:
            acc = nodes[0]
            for n in nodes[1:]:
                acc = _apply2(acc, n, op, pair_memo)
            return acc

        def walk(node: Node) -> Node:
            cached = memo.get(id(node))
            if cached is not None:
                return cached
            if isinstance(node, Choice) and node.label == key:
                out = fold(node.branches)
            elif isinstance(node, Choice) and node.label < key:
                out = _make_choice(node.label, [walk(b) for b in node.branches])
            else:
                # key does not occur below this node: every value gives the same sub-tree
                out = fold([node] * card)
            memo[id(node)] = out
            return out

        return self._new(walk(self.root))

    def sum_out(self, dkey: DiscreteKey):
        return self.combine(dkey, lambda x, y: x + y)

    def max_out(self, dkey: DiscreteKey):
        return self.combine(dkey, max)

    def sum(self, keys: Optional[Sequence[DiscreteKey]] = None) -> float:
        """Sum of the leaves over all assignments of ``keys`` (default: own keys)."""
        tree = self
        for dk in sorted_discrete_keys(keys if keys is not None else self.keys()):
            tree = tree.sum_out(dk)
        return float(tree(dict()))

    def min(self) -> float:
        values: List[float] = []
        self.visit(values.append)
        return min(values)

    def max(self) -> float:
        values: List[float] = []
        self.visit(values.append)
        return max(values)

    def argmin(self, keys: Optional[Sequence[DiscreteKey]] = None) -> Tuple[float, Dict[Key, int]]:
        """
        Lowest leaf and the lexicographically smallest assignment reaching it.

        Keys the tree does not branch on (or extra ``keys``) are set to 0.
        """
        return self._extremum(keys, lambda x, y: x < y)

    def argmax(self, keys: Optional[Sequence[DiscreteKey]] = None) -> Tuple[float, Dict[Key, int]]:
        return self._extremum(keys, lambda x, y: x > y)

    def _extremum(self, keys, better) -> Tuple[float, Dict[Key, int]]:
        memo: Dict[int, Tuple[float, Dict[Key, int]]] = {}

        def walk(node: Node) -> Tuple[float, Dict[Key, int]]:
            cached = memo.get(id(node))
            if cached is not None:
                return cached
            if isinstance(node, Leaf):
                out = (node.value, {})
            else:
                out = None
                for v, b in enumerate(node.branches):
                    value, sub = walk(b)
                    # strict comparison keeps the first (smallest) value on ties
                    if out is None or better(value, out[0]):
                        out = (value, {node.label: v, **sub})
            memo[id(node)] = out
            return out

        value, assignment = walk(self.root)
        full = {k: 0 for k, _ in sorted_discrete_keys(list(keys or []) + self.keys())}
        full.update(assignment)
        return value, full

    def prune(self, max_nr_leaves: int, keys: Optional[Sequence[DiscreteKey]] = None):
        """
        Keep the ``max_nr_leaves`` lowest-valued assignments and set every
        other assignment to `INFEASIBLE_ERROR`. Ties are broken by
        lexicographic assignment order. The key set, hence the topology seen
        by consumers, is unchanged.
        """
        if max_nr_leaves < 0:
            raise ValueError("max_nr_leaves must be non-negative")
        ordered = sorted_discrete_keys(list(keys or []) + self.keys())
        entries = list(self.enumerate(ordered))
        ranked = sorted(range(len(entries)), key=lambda i: (entries[i][1], i))
        keep = set(ranked[:max_nr_leaves])
        table = [
            value if i in keep else INFEASIBLE_ERROR
            for i, (_, value) in enumerate(entries)
        ]
        if not ordered:
            return self._new(Leaf(table[0]))
        return type(self).from_table(ordered, table)

    def equals(self, other: "DecisionTree", tol: float = DEFAULT_TOL) -> bool:
        """Pointwise comparison over the union of both trees' keys."""
        union = sorted_discrete_keys(self.keys() + other.keys())
        for assignment, value in self.enumerate(union):
            if abs(value - other(assignment)) > tol:
                return False
        return True

    def __repr__(self) -> str:
        ordered = self.keys()
        if math.prod(c for _, c in ordered) > 64:
            return super().__repr__()
        rows = ", ".join(
            f"{''.join(str(v) for v in a.values()) or '-'}:{value:.6g}"
            for a, value in self.enumerate()
        )
        return f"AlgebraicDecisionTree([{', '.join(map(str, ordered))}] {rows})"
