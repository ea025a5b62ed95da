# Copyright (c) 2025.
# This file is part of hybrid-fg, released under the MIT License.
"""
Linear hybrid factor graphs.

`HybridGaussianFactorGraph` is a flat container of the three factor kinds
the elimination engine understands:

    • JacobianFactor          purely continuous, 0.5‖A x − b‖²
    • GaussianMixtureFactor   continuous factor selected by discrete keys
    • DecisionTreeFactor      purely discrete potential

It is usually produced by `HybridNonlinearFactorGraph.linearize` and
consumed by `eliminate_sequential` / `eliminate_multifrontal`, both of which
return the eliminated structure together with the residual graph over the
keys left out of the ordering.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple

import jax.numpy as jnp

from ..core.types import DiscreteKey, Key, sorted_discrete_keys
from .bayes_net import HybridBayesNet
from .bayes_tree import HybridBayesTree
from .elimination import EliminationConfig, eliminate_multifrontal, eliminate_sequential
from .factors import HybridFactor, check_factor, continuous_keys_of, discrete_keys_of, factor_error


@dataclass
class HybridGaussianFactorGraph:
    factors: List[HybridFactor] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.factors = [check_factor(f) for f in self.factors]

    def add(self, factor: HybridFactor) -> None:
        self.factors.append(check_factor(factor))

    def push_back(self, factors: Iterable[HybridFactor]) -> None:
        for f in factors:
            self.add(f)

    def __len__(self) -> int:
        return len(self.factors)

    def __iter__(self) -> Iterator[HybridFactor]:
        return iter(self.factors)

    def __getitem__(self, i: int) -> HybridFactor:
        return self.factors[i]

    # --- Keys ---

    def continuous_keys(self) -> List[Key]:
        return sorted({k for f in self.factors for k in continuous_keys_of(f)})

    def discrete_keys(self) -> List[DiscreteKey]:
        return sorted_discrete_keys(dk for f in self.factors for dk in discrete_keys_of(f))

    def keys(self) -> List[Key]:
        return sorted(set(self.continuous_keys()) | {k for k, _ in self.discrete_keys()})

    def get_hybrid_ordering(self) -> List[Key]:
        """Continuous keys ascending, then discrete keys ascending."""
        return self.continuous_keys() + [k for k, _ in self.discrete_keys()]

    # --- Elimination ---

    def eliminate_sequential(
        self,
        ordering: Optional[Sequence[Key]] = None,
        config: Optional[EliminationConfig] = None,
    ) -> Tuple[HybridBayesNet, "HybridGaussianFactorGraph"]:
        """
        Eliminate ``ordering`` (default: `get_hybrid_ordering`) one key at a
        time. Returns the Bayes net and the residual graph.
        """
        if ordering is None:
            ordering = self.get_hybrid_ordering()
        bayes_net, remaining = eliminate_sequential(self.factors, ordering, config)
        return bayes_net, HybridGaussianFactorGraph(remaining)

    def eliminate_multifrontal(
        self,
        ordering: Optional[Sequence[Key]] = None,
        config: Optional[EliminationConfig] = None,
    ) -> Tuple[HybridBayesTree, "HybridGaussianFactorGraph"]:
        if ordering is None:
            ordering = self.get_hybrid_ordering()
        bayes_tree, remaining = eliminate_multifrontal(self.factors, ordering, config)
        return bayes_tree, HybridGaussianFactorGraph(remaining)

    def error(self, values: Mapping[Key, jnp.ndarray], assignment: Mapping[Key, int]) -> float:
        """Total error at a hybrid point; discrete factors contribute −log φ."""
        return sum(factor_error(f, values, assignment) for f in self.factors)

    def __repr__(self) -> str:
        lines = [f"HybridGaussianFactorGraph of size {len(self)}"]
        lines.extend(f"  {i}: {f!r}" for i, f in enumerate(self.factors))
        return "\n".join(lines)
