# Copyright (c) 2025.
# This file is part of hybrid-fg, released under the MIT License.
"""
Tagged union over the three conditional kinds of a hybrid Bayes net.

`HybridConditional` wraps exactly one of

    • DiscreteConditional  (kind DISCRETE)
    • GaussianConditional  (kind CONTINUOUS)
    • GaussianMixture      (kind HYBRID)

and exposes the capability queries ``is_discrete / is_continuous /
is_hybrid`` plus typed accessors that raise `TypeMismatchError` when the
stored kind differs from the requested one.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import List, Mapping, Tuple, Union

import jax.numpy as jnp

from ..core.errors import DEFAULT_TOL, TypeMismatchError
from ..core.types import DiscreteKey, Key
from ..discrete.conditional import DiscreteConditional
from ..linear.conditional import GaussianConditional
from .mixture import GaussianMixture


class ConditionalKind(enum.Enum):
    DISCRETE = "discrete"
    CONTINUOUS = "continuous"
    HYBRID = "hybrid"


ConditionalPayload = Union[DiscreteConditional, GaussianConditional, GaussianMixture]


@dataclass(frozen=True)
class HybridConditional:
    kind: ConditionalKind
    inner: ConditionalPayload

    @staticmethod
    def wrap(conditional) -> "HybridConditional":
        if isinstance(conditional, HybridConditional):
            return conditional
        if isinstance(conditional, DiscreteConditional):
            return HybridConditional(ConditionalKind.DISCRETE, conditional)
        if isinstance(conditional, GaussianConditional):
            return HybridConditional(ConditionalKind.CONTINUOUS, conditional)
        if isinstance(conditional, GaussianMixture):
            return HybridConditional(ConditionalKind.HYBRID, conditional)
        raise TypeError(f"not a conditional: {type(conditional).__name__}")

    def is_discrete(self) -> bool:
        return self.kind is ConditionalKind.DISCRETE

    def is_continuous(self) -> bool:
        return self.kind is ConditionalKind.CONTINUOUS

    def is_hybrid(self) -> bool:
        return self.kind is ConditionalKind.HYBRID

    def _expect(self, kind: ConditionalKind):
        if self.kind is not kind:
            raise TypeMismatchError(
                f"conditional is {self.kind.value}, not {kind.value}: {self.inner!r}"
            )
        return self.inner

    def as_discrete(self) -> DiscreteConditional:
        return self._expect(ConditionalKind.DISCRETE)

    def as_gaussian(self) -> GaussianConditional:
        return self._expect(ConditionalKind.CONTINUOUS)

    def as_mixture(self) -> GaussianMixture:
        return self._expect(ConditionalKind.HYBRID)

    @property
    def frontals(self) -> Tuple[Key, ...]:
        if self.is_discrete():
            return tuple(k for k, _ in self.inner.frontals)
        return self.inner.frontals

    @property
    def continuous_parents(self) -> Tuple[Key, ...]:
        return () if self.is_discrete() else self.inner.parents

    @property
    def discrete_keys(self) -> List[DiscreteKey]:
        if self.is_discrete():
            return list(self.inner.discrete_keys)
        if self.is_hybrid():
            return list(self.inner.discrete_parents)
        return []

    @property
    def parents(self) -> Tuple[Key, ...]:
        """All parent keys, continuous first, then discrete."""
        if self.is_discrete():
            return tuple(k for k, _ in self.inner.parents)
        if self.is_hybrid():
            return self.inner.parents + tuple(k for k, _ in self.inner.discrete_parents)
        return self.inner.parents

    def error(self, values: Mapping[Key, jnp.ndarray], assignment: Mapping[Key, int]) -> float:
        """
        Gaussian error of this conditional at a hybrid point.

        Discrete conditionals carry no continuous error and return 0; their
        negative log-probability is available as ``as_discrete().error``.
        """
        if self.is_discrete():
            return 0.0
        if self.is_hybrid():
            return self.inner.error(values, assignment)
        return self.inner.error(values)

    def equals(self, other: "HybridConditional", tol: float = DEFAULT_TOL) -> bool:
        return (
            isinstance(other, HybridConditional)
            and self.kind is other.kind
            and self.inner.equals(other.inner, tol)
        )

    def __repr__(self) -> str:
        return f"HybridConditional({self.inner!r})"
