# Copyright (c) 2025.
# This file is part of hybrid-fg, released under the MIT License.
"""
Hybrid Bayes trees produced by multifrontal elimination.

Each clique holds one `HybridConditional` over its frontal variables given
its separator. A clique's frontals are either all discrete or all
continuous. Parents are referenced weakly so a clique sub-tree can be
dropped without cycles keeping it alive.

The running-intersection property holds: the separator of every clique is
contained in its parent's frontals and separator. `check_running_intersection`
verifies it.

`optimize` visits cliques parent-before-child, so each clique is solved with
its separator values already known. `error` and `prune` treat the tree's
conditionals exactly like a Bayes net's (see `inference`).
"""

from __future__ import annotations

import weakref
from typing import Dict, Iterator, List, Mapping, Optional, Sequence, Union

import jax.numpy as jnp

from ..core.decision_tree import AlgebraicDecisionTree
from ..core.errors import DEFAULT_TOL, InfeasibleBranchError
from ..core.types import Key, VectorValues, assignment_to_str, key_to_str
from . import inference
from .conditional import HybridConditional
from .values import HybridValues


class HybridBayesTreeClique:
    def __init__(self, conditional, children: Sequence["HybridBayesTreeClique"] = ()) -> None:
        self.conditional = HybridConditional.wrap(conditional)
        self.children: List[HybridBayesTreeClique] = []
        self._parent = None
        for child in children:
            self.add_child(child)

    def add_child(self, child: "HybridBayesTreeClique") -> None:
        child._parent = weakref.ref(self)
        self.children.append(child)

    @property
    def parent(self) -> Optional["HybridBayesTreeClique"]:
        return self._parent() if self._parent is not None else None

    @property
    def frontals(self):
        return self.conditional.frontals

    @property
    def separator(self):
        return self.conditional.parents

    def __repr__(self) -> str:
        f = ", ".join(key_to_str(k) for k in self.frontals)
        s = ", ".join(key_to_str(k) for k in self.separator)
        return f"Clique({f} : {s})"


class HybridBayesTree:
    def __init__(self, roots: Sequence[HybridBayesTreeClique] = ()) -> None:
        self.roots: List[HybridBayesTreeClique] = list(roots)

    def cliques(self) -> Iterator[HybridBayesTreeClique]:
        """Pre-order traversal: every clique is yielded before its children."""
        stack = list(reversed(self.roots))
        while stack:
            clique = stack.pop()
            yield clique
            stack.extend(reversed(clique.children))

    def conditionals(self) -> List[HybridConditional]:
        return [c.conditional for c in self.cliques()]

    def __len__(self) -> int:
        return sum(1 for _ in self.cliques())

    def clique(self, key: Key) -> HybridBayesTreeClique:
        """Clique that has ``key`` among its frontals."""
        for c in self.cliques():
            if key in c.frontals:
                return c
        raise KeyError(f"no clique has frontal {key_to_str(key)}")

    def check_running_intersection(self) -> bool:
        for c in self.cliques():
            parent = c.parent
            if parent is None:
                if c.separator:
                    return False
                continue
            if not set(c.separator) <= set(parent.frontals) | set(parent.separator):
                return False
        return True

    # --- Inference ---

    def optimize(self, assignment: Optional[Mapping[Key, int]] = None) -> HybridValues:
        conds = self.conditionals()
        if assignment is None:
            assignment = inference.map_assignment(conds)
        solution: VectorValues = {}
        for clique in self.cliques():
            c = clique.conditional
            if c.is_discrete():
                continue
            if c.is_hybrid():
                gaussian = c.as_mixture()(assignment)
                if gaussian is None:
                    raise InfeasibleBranchError(
                        f"{c.inner!r} is pruned for {assignment_to_str(assignment)}"
                    )
            else:
                gaussian = c.as_gaussian()
            solution.update(gaussian.solve(solution))
        return HybridValues(dict(assignment), solution)

    def error(
        self,
        values: Mapping[Key, jnp.ndarray],
        assignment: Optional[Mapping[Key, int]] = None,
    ) -> Union[AlgebraicDecisionTree, float]:
        if assignment is None:
            return inference.error_tree(self.conditionals(), values)
        return inference.total_error(self.conditionals(), values, assignment)

    def discrete_error_tree(self) -> AlgebraicDecisionTree:
        return inference.discrete_error_tree(self.conditionals())

    def prune(self, max_nr_leaves: int) -> "HybridBayesTree":
        """Same topology, conditionals pruned to the most probable assignments."""
        order = list(self.cliques())
        pruned = inference.prune_conditionals([c.conditional for c in order], max_nr_leaves)
        replacement: Dict[int, HybridConditional] = {
            id(c): p for c, p in zip(order, pruned)
        }

        def rebuild(clique: HybridBayesTreeClique) -> HybridBayesTreeClique:
            return HybridBayesTreeClique(
                replacement[id(clique)], [rebuild(child) for child in clique.children]
            )

        return HybridBayesTree([rebuild(r) for r in self.roots])

    def equals(self, other: "HybridBayesTree", tol: float = DEFAULT_TOL) -> bool:
        def same(a: HybridBayesTreeClique, b: HybridBayesTreeClique) -> bool:
            return (
                a.conditional.equals(b.conditional, tol)
                and len(a.children) == len(b.children)
                and all(same(x, y) for x, y in zip(a.children, b.children))
            )

        return (
            isinstance(other, HybridBayesTree)
            and len(self.roots) == len(other.roots)
            and all(same(a, b) for a, b in zip(self.roots, other.roots))
        )

    def __repr__(self) -> str:
        lines = ["HybridBayesTree"]

        def walk(clique: HybridBayesTreeClique, depth: int) -> None:
            lines.append("  " * (depth + 1) + repr(clique))
            for child in clique.children:
                walk(child, depth + 1)

        for r in self.roots:
            walk(r, 0)
        return "\n".join(lines)
