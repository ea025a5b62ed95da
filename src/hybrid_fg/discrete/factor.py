# Copyright (c) 2025.
# This file is part of hybrid-fg, released under the MIT License.
"""
Discrete potentials stored in algebraic decision trees.

A `DecisionTreeFactor` is a non-negative function of a set of discrete keys.
The key list is kept explicitly because the tree collapses keys on which the
potential does not depend, yet the factor is still *over* those keys for
elimination and for enumeration.
"""

from __future__ import annotations

import math
from functools import reduce
from typing import List, Mapping, Sequence

from ..core.decision_tree import AlgebraicDecisionTree
from ..core.errors import DEFAULT_TOL, INFEASIBLE_ERROR
from ..core.types import DiscreteKey, Key, sorted_discrete_keys


def probability_to_error(p: float) -> float:
    """Negative log-probability, with the infeasible sentinel for p <= 0."""
    if p <= 0.0:
        return INFEASIBLE_ERROR
    return min(-math.log(p), INFEASIBLE_ERROR)


class DecisionTreeFactor:
    def __init__(self, keys: Sequence[DiscreteKey], tree: AlgebraicDecisionTree) -> None:
        self.discrete_keys: List[DiscreteKey] = sorted_discrete_keys(keys)
        own = {k for k, _ in self.discrete_keys}
        extra = [k for k, _ in tree.keys() if k not in own]
        if extra:
            raise ValueError(f"tree branches on keys {extra} outside the factor's keys")
        self.tree = tree

    @classmethod
    def from_table(cls, keys: Sequence[DiscreteKey], values: Sequence[float]):
        return cls(keys, AlgebraicDecisionTree.from_table(keys, values))

    @property
    def keys(self) -> List[Key]:
        return [k for k, _ in self.discrete_keys]

    def __call__(self, assignment: Mapping[Key, int]) -> float:
        return float(self.tree(assignment))

    def error(self, assignment: Mapping[Key, int]) -> float:
        return probability_to_error(self(assignment))

    def error_tree(self) -> AlgebraicDecisionTree:
        return self.tree.apply(probability_to_error)

    def __mul__(self, other: "DecisionTreeFactor") -> "DecisionTreeFactor":
        return DecisionTreeFactor(
            self.discrete_keys + other.discrete_keys, self.tree * other.tree
        )

    def __truediv__(self, other: "DecisionTreeFactor") -> "DecisionTreeFactor":
        return DecisionTreeFactor(
            self.discrete_keys + other.discrete_keys, self.tree / other.tree
        )

    def sum_out(self, keys: Sequence[DiscreteKey]) -> "DecisionTreeFactor":
        return self._reduce(keys, AlgebraicDecisionTree.sum_out)

    def max_out(self, keys: Sequence[DiscreteKey]) -> "DecisionTreeFactor":
        return self._reduce(keys, AlgebraicDecisionTree.max_out)

    def _reduce(self, keys, op) -> "DecisionTreeFactor":
        gone = {k for k, _ in keys}
        tree = self.tree
        for dk in sorted_discrete_keys(keys):
            tree = op(tree, dk)
        return DecisionTreeFactor([dk for dk in self.discrete_keys if dk.key not in gone], tree)

    def enumerate(self):
        return self.tree.enumerate(self.discrete_keys)

    def equals(self, other: "DecisionTreeFactor", tol: float = DEFAULT_TOL) -> bool:
        return (
            isinstance(other, DecisionTreeFactor)
            and self.discrete_keys == other.discrete_keys
            and self.tree.equals(other.tree, tol)
        )

    def __repr__(self) -> str:
        return f"{type(self).__name__}([{', '.join(map(str, self.discrete_keys))}])"


def multiply_all(factors: Sequence[DecisionTreeFactor]) -> DecisionTreeFactor:
    unit = DecisionTreeFactor([], AlgebraicDecisionTree.leaf(1.0))
    return reduce(lambda a, b: a * b, factors, unit)


