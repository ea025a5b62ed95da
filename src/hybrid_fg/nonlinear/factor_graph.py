# Copyright (c) 2025.
# This file is part of hybrid-fg, released under the MIT License.
"""
Nonlinear hybrid factor graphs and their linearization.

The graph stores:
    - NonlinearFactor   a residual type, its keys and parameters
    - MixtureFactor     one NonlinearFactor per assignment of some discrete keys
    - DecisionTreeFactor / DiscreteConditional   discrete potentials
    - residual_fns      factor type -> residual function

`linearize(values)` evaluates every residual at ``values`` and takes its
Jacobian with `jax.jacfwd`, turning each factor into the linear form

    0.5‖J δ − (−r)‖²,   i.e.  A = J, b = −r

where residuals are already whitened by their sigma. The result is a
`HybridGaussianFactorGraph` over the update δ = x − values, ready for
hybrid elimination.

Example
-------
    graph = HybridNonlinearFactorGraph()
    graph.add_factor("prior", [X(1)], target=0.0, sigma=0.1)
    graph.add_mixture(
        [X(1), X(2)], [DiscreteKey(M(1), 2)],
        [NonlinearFactor("between", (X(1), X(2)), {"measurement": 0.0, "sigma": 1.0}),
         NonlinearFactor("between", (X(1), X(2)), {"measurement": 1.0, "sigma": 1.0})],
    )
    linear = graph.linearize({X(1): jnp.array([1.0]), X(2): jnp.array([2.0])})
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Sequence, Tuple, Union

import jax
import jax.numpy as jnp

from ..core.decision_tree import DecisionTree
from ..core.types import DiscreteKey, Key, key_to_str, sorted_discrete_keys, stack_values
from ..discrete.factor import DecisionTreeFactor
from ..hybrid.factor_graph import HybridGaussianFactorGraph
from ..hybrid.mixture import GaussianMixtureFactor
from ..linear.jacobian import JacobianFactor
from .measurements import between_residual, prior_residual

ResidualFn = Callable[[jnp.ndarray, Dict[str, Any]], jnp.ndarray]


@dataclass
class NonlinearFactor:
    """Factor whose residual is looked up by ``type`` in the graph's registry."""
    type: str
    keys: Tuple[Key, ...]
    params: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.keys = tuple(Key(int(k)) for k in self.keys)


@dataclass
class MixtureFactor:
    """
    Nonlinear factors selected by discrete keys: ``components`` is row-major
    over ``discrete_keys`` (first key most significant).
    """
    keys: Tuple[Key, ...]
    discrete_keys: List[DiscreteKey]
    components: List[NonlinearFactor]

    def __post_init__(self) -> None:
        self.keys = tuple(Key(int(k)) for k in self.keys)
        self.discrete_keys = [DiscreteKey(Key(int(k)), int(c)) for k, c in self.discrete_keys]
        self._tree = DecisionTree.from_table(self.discrete_keys, list(self.components))
        for component in self.components:
            if not set(component.keys) <= set(self.keys):
                raise ValueError(
                    f"mixture component over {[key_to_str(k) for k in component.keys]} "
                    f"is outside keys {[key_to_str(k) for k in self.keys]}"
                )

    def select(self, assignment: Mapping[Key, int]) -> NonlinearFactor:
        return self._tree(assignment)


NonlinearGraphFactor = Union[NonlinearFactor, MixtureFactor, DecisionTreeFactor]


@dataclass
class HybridNonlinearFactorGraph:
    factors: List[NonlinearGraphFactor] = field(default_factory=list)
    residual_fns: Dict[str, ResidualFn] = field(
        default_factory=lambda: {"prior": prior_residual, "between": between_residual}
    )

    def register_residual(self, factor_type: str, fn: ResidualFn) -> None:
        self.residual_fns[factor_type] = fn

    def add_factor(self, factor_type: str, keys: Sequence[Key], **params) -> NonlinearFactor:
        factor = NonlinearFactor(factor_type, tuple(keys), params)
        self.factors.append(factor)
        return factor

    def add_mixture(
        self,
        keys: Sequence[Key],
        discrete_keys: Sequence[DiscreteKey],
        components: Sequence[NonlinearFactor],
    ) -> MixtureFactor:
        factor = MixtureFactor(tuple(keys), list(discrete_keys), list(components))
        self.factors.append(factor)
        return factor

    def add_discrete(self, factor: DecisionTreeFactor) -> None:
        self.factors.append(factor)

    def __len__(self) -> int:
        return len(self.factors)

    def discrete_keys(self) -> List[DiscreteKey]:
        keys: List[DiscreteKey] = []
        for f in self.factors:
            if isinstance(f, MixtureFactor):
                keys.extend(f.discrete_keys)
            elif isinstance(f, DecisionTreeFactor):
                keys.extend(f.discrete_keys)
        return sorted_discrete_keys(keys)

    # --- Evaluation ---

    def _residual_fn(self, factor: NonlinearFactor) -> ResidualFn:
        fn = self.residual_fns.get(factor.type, None)
        if fn is None:
            raise ValueError(f"No residual fn registered for factor type '{factor.type}'")
        return fn

    def residual(self, factor: NonlinearFactor, values: Mapping[Key, jnp.ndarray]) -> jnp.ndarray:
        x = stack_values(values, factor.keys)
        return jnp.atleast_1d(self._residual_fn(factor)(x, factor.params))

    def error(self, values: Mapping[Key, jnp.ndarray], assignment: Mapping[Key, int]) -> float:
        """Sum of 0.5‖r‖² over the selected factors plus −log φ of discrete ones."""
        total = 0.0
        for f in self.factors:
            if isinstance(f, DecisionTreeFactor):
                total += f.error(assignment)
                continue
            if isinstance(f, MixtureFactor):
                f = f.select(assignment)
            r = self.residual(f, values)
            total += 0.5 * float(r @ r)
        return total

    # --- Linearization ---

    def linearize_factor(
        self, factor: NonlinearFactor, values: Mapping[Key, jnp.ndarray]
    ) -> JacobianFactor:
        fn = self._residual_fn(factor)
        x0 = stack_values(values, factor.keys)
        r0 = jnp.atleast_1d(fn(x0, factor.params))
        J = jnp.atleast_2d(jax.jacfwd(lambda x: jnp.atleast_1d(fn(x, factor.params)))(x0))

        terms = []
        offset = 0
        for key in factor.keys:
            dim = jnp.ravel(jnp.asarray(values[key])).shape[0]
            terms.append((key, J[:, offset:offset + dim]))
            offset += dim
        return JacobianFactor.from_terms(terms, -r0)

    def linearize(self, values: Mapping[Key, jnp.ndarray]) -> HybridGaussianFactorGraph:
        linear = HybridGaussianFactorGraph()
        for f in self.factors:
            if isinstance(f, NonlinearFactor):
                linear.add(self.linearize_factor(f, values))
            elif isinstance(f, MixtureFactor):
                linear.add(
                    GaussianMixtureFactor.from_factors(
                        f.discrete_keys, [self.linearize_factor(c, values) for c in f.components]
                    )
                )
            else:
                linear.add(f)
        return linear
