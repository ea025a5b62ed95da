# Copyright (c) 2025.
# This file is part of hybrid-fg, released under the MIT License.
"""Result container for hybrid optimization."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

import jax.numpy as jnp

from ..core.errors import DEFAULT_TOL
from ..core.types import Key, assignment_to_str, key_to_str, vector_values_equal


@dataclass(frozen=True)
class HybridValues:
    """Immutable pair of a discrete assignment and continuous vector values."""
    discrete: Mapping[Key, int] = field(default_factory=dict)
    continuous: Mapping[Key, jnp.ndarray] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "discrete", MappingProxyType({Key(int(k)): int(v) for k, v in self.discrete.items()})
        )
        object.__setattr__(self, "continuous", MappingProxyType(dict(self.continuous)))

    def at_discrete(self, key: Key) -> int:
        return self.discrete[key]

    def at(self, key: Key) -> jnp.ndarray:
        return self.continuous[key]

    def equals(self, other: "HybridValues", tol: float = DEFAULT_TOL) -> bool:
        return dict(self.discrete) == dict(other.discrete) and vector_values_equal(
            self.continuous, other.continuous, tol
        )

    def __repr__(self) -> str:
        cont = ", ".join(
            f"{key_to_str(k)}:{jnp.asarray(v).tolist()}" for k, v in sorted(self.continuous.items())
        )
        return f"HybridValues(discrete={assignment_to_str(self.discrete)}, continuous={{{cont}}})"
