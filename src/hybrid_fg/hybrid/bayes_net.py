# Copyright (c) 2025.
# This file is part of hybrid-fg, released under the MIT License.
"""
Hybrid Bayes nets.

A `HybridBayesNet` is the ordered list of conditionals produced by
sequential elimination, each one discrete, Gaussian or a Gaussian mixture.
The stored order is the elimination order: every conditional's parents are
eliminated later and therefore appear *after* it.

Queries
-------
choose(assignment)
    Collapse to a `GaussianBayesNet` for one discrete assignment.

optimize(assignment=None)
    MAP estimate. Without an assignment the most probable discrete
    assignment is chosen first (see `inference.map_assignment`), then the
    continuous variables are back-substituted for it.

error(values, assignment=None)
    Gaussian error at ``values``, as a decision tree over the mixtures'
    discrete keys or as a scalar for one assignment.

prune(max_nr_leaves)
    New net keeping only the most probable joint discrete assignments.
"""

from __future__ import annotations

from typing import Iterable, Iterator, List, Mapping, Optional, Sequence, Union

import jax.numpy as jnp

from ..core.decision_tree import AlgebraicDecisionTree
from ..core.errors import DEFAULT_TOL, InfeasibleBranchError
from ..core.types import DiscreteKey, Key, assignment_to_str
from ..discrete.conditional import DiscreteConditional
from ..linear.conditional import GaussianBayesNet, GaussianConditional
from . import inference
from .conditional import HybridConditional
from .mixture import GaussianMixture
from .values import HybridValues


class HybridBayesNet:
    def __init__(self, conditionals: Iterable = ()) -> None:
        self.conditionals: List[HybridConditional] = [
            HybridConditional.wrap(c) for c in conditionals
        ]

    # --- Construction ---

    def add(self, conditional) -> None:
        """Append one conditional (any of the three kinds, wrapped or not)."""
        self.conditionals.append(HybridConditional.wrap(conditional))

    def add_discrete(
        self, key: DiscreteKey, signature: str, parents: Sequence[DiscreteKey] = ()
    ) -> None:
        """Append ``P(key | parents)`` given as a signature string such as "99/1"."""
        self.add(DiscreteConditional.from_signature(key, signature, parents))

    def push_back(self, other: Union["HybridBayesNet", Iterable]) -> None:
        for c in other:
            self.add(c)

    # --- Access ---

    def __len__(self) -> int:
        return len(self.conditionals)

    def __iter__(self) -> Iterator[HybridConditional]:
        return iter(self.conditionals)

    def at(self, i: int) -> HybridConditional:
        return self.conditionals[i]

    def at_discrete(self, i: int) -> DiscreteConditional:
        return self.conditionals[i].as_discrete()

    def at_gaussian(self, i: int) -> GaussianConditional:
        return self.conditionals[i].as_gaussian()

    def at_mixture(self, i: int) -> GaussianMixture:
        return self.conditionals[i].as_mixture()

    def discrete_keys(self) -> List[DiscreteKey]:
        return inference.conditional_discrete_keys(self.conditionals)

    def continuous_keys(self) -> List[Key]:
        keys = set()
        for c in self.conditionals:
            if not c.is_discrete():
                keys.update(c.frontals)
                keys.update(c.continuous_parents)
        return sorted(keys)

    # --- Inference ---

    def choose(self, assignment: Mapping[Key, int]) -> GaussianBayesNet:
        """
        Gaussian Bayes net selected by ``assignment``: Gaussian conditionals
        are kept, discrete ones dropped and mixtures evaluated.

        Raises:
            IncompleteAssignmentError: if a mixture key is not assigned.
            InfeasibleBranchError: if the assignment selects a pruned branch.
        """
        gbn = GaussianBayesNet()
        for c in self.conditionals:
            if c.is_continuous():
                gbn.add(c.as_gaussian())
            elif c.is_hybrid():
                selected = c.as_mixture()(assignment)
                if selected is None:
                    raise InfeasibleBranchError(
                        f"{c.inner!r} is pruned for {assignment_to_str(assignment)}"
                    )
                gbn.add(selected)
        return gbn

    def optimize(self, assignment: Optional[Mapping[Key, int]] = None) -> HybridValues:
        if assignment is None:
            assignment = inference.map_assignment(self.conditionals)
        continuous = self.choose(assignment).optimize()
        return HybridValues(dict(assignment), continuous)

    def error(
        self,
        values: Mapping[Key, jnp.ndarray],
        assignment: Optional[Mapping[Key, int]] = None,
    ) -> Union[AlgebraicDecisionTree, float]:
        if assignment is None:
            return inference.error_tree(self.conditionals, values)
        return inference.total_error(self.conditionals, values, assignment)

    def discrete_error_tree(self) -> AlgebraicDecisionTree:
        return inference.discrete_error_tree(self.conditionals)

    def prune(self, max_nr_leaves: int) -> "HybridBayesNet":
        return HybridBayesNet(inference.prune_conditionals(self.conditionals, max_nr_leaves))

    def equals(self, other: "HybridBayesNet", tol: float = DEFAULT_TOL) -> bool:
        return (
            isinstance(other, HybridBayesNet)
            and len(self) == len(other)
            and all(a.equals(b, tol) for a, b in zip(self, other))
        )

    def __repr__(self) -> str:
        lines = [f"HybridBayesNet of size {len(self)}"]
        lines.extend(f"  {i}: {c.inner!r}" for i, c in enumerate(self.conditionals))
        return "\n".join(lines)
