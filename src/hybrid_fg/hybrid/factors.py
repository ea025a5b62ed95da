# Copyright (c) 2025.
# This file is part of hybrid-fg, released under the MIT License.
"""Key bookkeeping shared by the hybrid factor graph and the elimination engine."""

from __future__ import annotations

from typing import List, Mapping, Tuple, Union

import jax.numpy as jnp

from ..core.types import DiscreteKey, Key
from ..discrete.factor import DecisionTreeFactor
from ..linear.jacobian import JacobianFactor
from .mixture import GaussianMixtureFactor

HybridFactor = Union[JacobianFactor, GaussianMixtureFactor, DecisionTreeFactor]


def continuous_keys_of(factor: HybridFactor) -> Tuple[Key, ...]:
    if isinstance(factor, (JacobianFactor, GaussianMixtureFactor)):
        return tuple(factor.keys)
    return ()


def discrete_keys_of(factor: HybridFactor) -> List[DiscreteKey]:
    if isinstance(factor, GaussianMixtureFactor):
        return list(factor.discrete_keys)
    if isinstance(factor, DecisionTreeFactor):
        return list(factor.discrete_keys)
    return []


def all_keys_of(factor: HybridFactor) -> Tuple[Key, ...]:
    return continuous_keys_of(factor) + tuple(k for k, _ in discrete_keys_of(factor))


def check_factor(factor) -> HybridFactor:
    if not isinstance(factor, (JacobianFactor, GaussianMixtureFactor, DecisionTreeFactor)):
        raise TypeError(f"unsupported factor type {type(factor).__name__}")
    return factor


def factor_error(
    factor: HybridFactor,
    values: Mapping[Key, jnp.ndarray],
    assignment: Mapping[Key, int],
) -> float:
    if isinstance(factor, JacobianFactor):
        return factor.error(values)
    if isinstance(factor, GaussianMixtureFactor):
        return factor.error(values, assignment)
    return factor.error(assignment)
