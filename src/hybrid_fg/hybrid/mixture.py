# Copyright (c) 2025.
# This file is part of hybrid-fg, released under the MIT License.
"""
Gaussian mixtures indexed by discrete assignments.

Two closely related containers live here:

GaussianMixture
    A conditional p(x_f | x_p, m): a decision tree over the discrete parents
    ``m`` whose leaves are `GaussianConditional`s sharing the same frontal and
    parent keys. A leaf may be ``None``, which marks a pruned (infeasible)
    branch. Evaluating such a branch yields `INFEASIBLE_ERROR` rather than an
    exception, so the error trees built from mixtures stay total.

GaussianMixtureFactor
    A factor whose leaves are ``MixtureComponent(factor, constant)`` pairs: a
    Jacobian factor (or ``None``) plus a scalar error offset. Linearized
    hybrid measurements enter elimination in this form, and hybrid elimination
    hands per-branch residuals (with their log-normalization constants) to the
    next step in this form too.
"""

from __future__ import annotations

from typing import Any, List, Mapping, NamedTuple, Optional, Sequence, Tuple

import jax.numpy as jnp

from ..core.decision_tree import AlgebraicDecisionTree, DecisionTree
from ..core.errors import DEFAULT_TOL, INFEASIBLE_ERROR, IncompleteAssignmentError
from ..core.types import DiscreteKey, Key, key_to_str, sorted_discrete_keys
from ..linear.conditional import GaussianConditional
from ..linear.jacobian import JacobianFactor


def _check_assignment(discrete_keys: Sequence[DiscreteKey], assignment: Mapping[Key, int]) -> None:
    for key, card in discrete_keys:
        if key not in assignment:
            raise IncompleteAssignmentError(f"assignment has no value for {key_to_str(key)}")
        if not 0 <= int(assignment[key]) < card:
            raise IncompleteAssignmentError(
                f"value {assignment[key]} out of domain for {key_to_str(key)} (cardinality {card})"
            )


class GaussianMixture:
    def __init__(
        self,
        frontals: Sequence[Key],
        parents: Sequence[Key],
        discrete_parents: Sequence[DiscreteKey],
        conditionals: DecisionTree,
    ) -> None:
        self.frontals: Tuple[Key, ...] = tuple(frontals)
        self.parents: Tuple[Key, ...] = tuple(parents)
        self.discrete_parents: List[DiscreteKey] = sorted_discrete_keys(discrete_parents)
        self.conditionals = conditionals

        declared = {k for k, _ in self.discrete_parents}
        stray = [k for k, _ in conditionals.keys() if k not in declared]
        if stray:
            raise ValueError(f"mixture tree branches on undeclared keys {stray}")

        def check(leaf: Any) -> None:
            if leaf is None:
                return
            if not isinstance(leaf, GaussianConditional):
                raise ValueError(f"mixture leaf must be a GaussianConditional or None, got {type(leaf)}")
            if leaf.frontals != self.frontals or leaf.parents != self.parents:
                raise ValueError(
                    f"mixture leaf {leaf!r} does not match scope "
                    f"p({', '.join(map(key_to_str, self.frontals))} | "
                    f"{', '.join(map(key_to_str, self.parents))})"
                )

        conditionals.visit(check)

    @classmethod
    def from_conditionals(
        cls,
        discrete_parents: Sequence[DiscreteKey],
        conditionals: Sequence[Optional[GaussianConditional]],
    ) -> "GaussianMixture":
        """Build from a row-major list of conditionals (first key most significant)."""
        first = next((c for c in conditionals if c is not None), None)
        if first is None:
            raise ValueError("a mixture needs at least one non-pruned conditional")
        tree = DecisionTree.from_table(discrete_parents, list(conditionals))
        return cls(first.frontals, first.parents, discrete_parents, tree)

    @property
    def continuous_keys(self) -> Tuple[Key, ...]:
        return self.frontals + self.parents

    def __call__(self, assignment: Mapping[Key, int]) -> Optional[GaussianConditional]:
        """Conditional selected by ``assignment``; ``None`` for a pruned branch."""
        _check_assignment(self.discrete_parents, assignment)
        return self.conditionals(assignment)

    def error(self, values: Mapping[Key, jnp.ndarray], assignment: Optional[Mapping[Key, int]] = None):
        """
        Error of the branch selected by ``assignment`` at ``values``, or the
        whole error tree (see `likelihood`) when no assignment is given.
        """
        if assignment is None:
            return self.likelihood(values)
        conditional = self(assignment)
        if conditional is None:
            return INFEASIBLE_ERROR
        return conditional.error(values)

    def likelihood(self, values: Mapping[Key, jnp.ndarray]) -> AlgebraicDecisionTree:
        """Decision tree of every branch's error at the continuous point ``values``."""
        tree = self.conditionals.apply(
            lambda c: INFEASIBLE_ERROR if c is None else c.error(values)
        )
        return AlgebraicDecisionTree(tree.root)

    def prune(self, pruned_errors: AlgebraicDecisionTree) -> "GaussianMixture":
        """
        Invalidate every branch with no surviving completion in the joint
        discrete error tree ``pruned_errors`` (pruned entries hold
        `INFEASIBLE_ERROR`). Branches are replaced by ``None``; the key set and
        hence the topology are kept.
        """

        def alive(assignment) -> bool:
            return pruned_errors.restrict(assignment).min() < INFEASIBLE_ERROR

        tree = DecisionTree.tabulate(
            self.discrete_parents,
            lambda a: self.conditionals(a) if alive(a) else None,
        )
        return GaussianMixture(self.frontals, self.parents, self.discrete_parents, tree)

    def nr_pruned(self) -> int:
        return sum(1 for _, c in self.conditionals.enumerate(self.discrete_parents) if c is None)

    def equals(self, other: "GaussianMixture", tol: float = DEFAULT_TOL) -> bool:
        if not isinstance(other, GaussianMixture):
            return False
        if (self.frontals, self.parents, self.discrete_parents) != (
            other.frontals,
            other.parents,
            other.discrete_parents,
        ):
            return False
        for assignment, mine in self.conditionals.enumerate(self.discrete_parents):
            theirs = other.conditionals(assignment)
            if mine is None or theirs is None:
                if mine is not theirs:
                    return False
            elif not mine.equals(theirs, tol):
                return False
        return True

    def __repr__(self) -> str:
        f = ", ".join(key_to_str(k) for k in self.frontals)
        p = ", ".join(key_to_str(k) for k in self.parents)
        m = ", ".join(str(dk) for dk in self.discrete_parents)
        return f"GaussianMixture(p({f} | {p}; {m}))"


class MixtureComponent(NamedTuple):
    factor: Optional[JacobianFactor]
    constant: float = 0.0

    def error(self, values: Mapping[Key, jnp.ndarray]) -> float:
        if self.factor is None:
            return INFEASIBLE_ERROR
        return self.factor.error(values) + self.constant


class GaussianMixtureFactor:
    def __init__(
        self,
        keys: Sequence[Key],
        discrete_keys: Sequence[DiscreteKey],
        components: DecisionTree,
    ) -> None:
        self.keys: Tuple[Key, ...] = tuple(keys)
        self.discrete_keys: List[DiscreteKey] = sorted_discrete_keys(discrete_keys)
        self.components = components

        scope = set(self.keys)

        def check(leaf: Any) -> None:
            if not isinstance(leaf, MixtureComponent):
                raise ValueError(f"mixture factor leaf must be a MixtureComponent, got {type(leaf)}")
            if leaf.factor is not None and not set(leaf.factor.keys) <= scope:
                raise ValueError(f"component {leaf.factor!r} is outside keys {list(self.keys)}")

        components.visit(check)

    @classmethod
    def from_factors(
        cls,
        discrete_keys: Sequence[DiscreteKey],
        factors: Sequence[Optional[JacobianFactor]],
    ) -> "GaussianMixtureFactor":
        """Build from a row-major list of Jacobian factors, one per assignment."""
        keys: List[Key] = []
        for f in factors:
            if f is not None:
                keys.extend(k for k in f.keys if k not in keys)
        tree = DecisionTree.from_table(discrete_keys, [MixtureComponent(f, 0.0) for f in factors])
        return cls(keys, discrete_keys, tree)

    def __call__(self, assignment: Mapping[Key, int]) -> MixtureComponent:
        _check_assignment(self.discrete_keys, assignment)
        return self.components(assignment)

    def error(self, values: Mapping[Key, jnp.ndarray], assignment: Mapping[Key, int]) -> float:
        return self(assignment).error(values)

    def error_tree(self, values: Mapping[Key, jnp.ndarray]) -> AlgebraicDecisionTree:
        return AlgebraicDecisionTree(self.components.apply(lambda c: c.error(values)).root)

    def __repr__(self) -> str:
        keys = ", ".join(key_to_str(k) for k in self.keys)
        m = ", ".join(str(dk) for dk in self.discrete_keys)
        return f"GaussianMixtureFactor([{keys}]; {m})"
