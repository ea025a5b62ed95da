# Copyright (c) 2025.
# This file is part of hybrid-fg, released under the MIT License.
"""
Conditional probability tables over discrete keys.

`DiscreteConditional` is a `DecisionTreeFactor` that additionally knows which
of its keys are frontal. Tables are usually given as signature strings, one
row per parent assignment (first parent most significant) and one
``/``-separated entry per frontal value:

    DiscreteConditional.from_signature(M2, "1/2 3/2", parents=[M1])

reads as P(M2=0|M1=0) : P(M2=1|M1=0) = 1 : 2 and
P(M2=0|M1=1) : P(M2=1|M1=1) = 3 : 2. Rows are normalized on construction.
"""

from __future__ import annotations

import itertools
from typing import Dict, List, Mapping, Sequence

from ..core.decision_tree import AlgebraicDecisionTree
from ..core.errors import INFEASIBLE_ERROR
from ..core.types import DiscreteKey, Key, key_to_str, sorted_discrete_keys
from .factor import DecisionTreeFactor


def parse_signature(text: str) -> List[List[float]]:
    rows = []
    for row in text.split():
        try:
            rows.append([float(v) for v in row.split("/")])
        except ValueError:
            raise ValueError(f"malformed signature row {row!r} in {text!r}") from None
    return rows


class DiscreteConditional(DecisionTreeFactor):
    def __init__(
        self,
        frontals: Sequence[DiscreteKey],
        parents: Sequence[DiscreteKey],
        tree: AlgebraicDecisionTree,
    ) -> None:
        self.frontals = sorted_discrete_keys(frontals)
        self.parents = sorted_discrete_keys(parents)
        overlap = {k for k, _ in self.frontals} & {k for k, _ in self.parents}
        if overlap:
            raise ValueError(f"keys {sorted(overlap)} are both frontal and parent")
        super().__init__(self.frontals + self.parents, tree)

    @classmethod
    def from_signature(
        cls, key: DiscreteKey, text: str, parents: Sequence[DiscreteKey] = ()
    ) -> "DiscreteConditional":
        key = DiscreteKey(Key(int(key[0])), int(key[1]))
        parents = [DiscreteKey(Key(int(k)), int(c)) for k, c in parents]
        rows = parse_signature(text)
        expected = 1
        for _, card in parents:
            expected *= card
        if len(rows) != expected or any(len(r) != key.cardinality for r in rows):
            raise ValueError(
                f"signature {text!r} does not match {key} given "
                f"[{', '.join(map(str, parents))}]"
            )
        table = []
        for row in rows:
            total = sum(row)
            if total <= 0.0:
                raise ValueError(f"signature row {row} has no probability mass")
            table.extend(v / total for v in row)
        tree = AlgebraicDecisionTree.from_table(list(parents) + [key], table)
        return cls([key], parents, tree)

    @classmethod
    def from_joint(
        cls, joint: DecisionTreeFactor, frontals: Sequence[DiscreteKey]
    ) -> "DiscreteConditional":
        """P(frontals | rest) = joint / Σ_frontals joint."""
        marginal = joint.sum_out(frontals)
        frontal_keys = {k for k, _ in frontals}
        parents = [dk for dk in joint.discrete_keys if dk.key not in frontal_keys]
        return cls(frontals, parents, joint.tree / marginal.tree)

    @property
    def nr_frontals(self) -> int:
        return len(self.frontals)

    def choose(self, parent_values: Mapping[Key, int]) -> "DiscreteConditional":
        """Restrict to a parent assignment, leaving a distribution over the frontals."""
        given = {k: parent_values[k] for k, _ in self.parents if k in parent_values}
        rest = [dk for dk in self.parents if dk.key not in given]
        return DiscreteConditional(self.frontals, rest, self.tree.restrict(given))

    def argmax(self, parent_values: Mapping[Key, int]) -> Dict[Key, int]:
        """Most probable frontal assignment; ties go to the smallest assignment."""
        best = None
        best_p = -1.0
        labels = [k for k, _ in self.frontals]
        for values in itertools.product(*(range(c) for _, c in self.frontals)):
            assignment = dict(parent_values)
            assignment.update(zip(labels, values))
            p = self(assignment)
            if p > best_p:
                best, best_p = dict(zip(labels, values)), p
        return best

    def prune(self, pruned_errors: AlgebraicDecisionTree) -> "DiscreteConditional":
        """
        Zero every entry whose completions in ``pruned_errors`` are all
        infeasible. Remaining entries keep their value (no renormalization).
        """

        def keep(assignment: Dict[Key, int]) -> bool:
            return pruned_errors.restrict(assignment).min() < INFEASIBLE_ERROR

        table = [
            value if keep(assignment) else 0.0
            for assignment, value in self.enumerate()
        ]
        if not self.discrete_keys:
            return self
        tree = AlgebraicDecisionTree.from_table(self.discrete_keys, table)
        return DiscreteConditional(self.frontals, self.parents, tree)

    def equals(self, other, tol: float = 1e-9) -> bool:
        return (
            isinstance(other, DiscreteConditional)
            and self.frontals == other.frontals
            and super().equals(other, tol)
        )

    def __repr__(self) -> str:
        f = ", ".join(key_to_str(k) for k, _ in self.frontals)
        p = ", ".join(key_to_str(k) for k, _ in self.parents)
        return f"DiscreteConditional(P({f} | {p}))"
