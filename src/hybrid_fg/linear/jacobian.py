# Copyright (c) 2025.
# This file is part of hybrid-fg, released under the MIT License.
"""
Whitened linear (Jacobian) factors.

A `JacobianFactor` stores a linear least-squares term

    error(x) = 0.5 * ‖A x − b‖²

over an ordered tuple of continuous keys. ``A`` is kept as one dense matrix
whose column blocks follow ``keys``; noise models are assumed to be folded in
already (the nonlinear front end divides by sigma when linearizing).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Mapping, Sequence, Tuple

import jax.numpy as jnp

from ..core.errors import DEFAULT_TOL
from ..core.types import Key, key_to_str, stack_values


@dataclass(frozen=True)
class JacobianFactor:
    keys: Tuple[Key, ...]
    dims: Tuple[int, ...]
    A: jnp.ndarray  # (m, sum(dims))
    b: jnp.ndarray  # (m,)

    @staticmethod
    def from_terms(terms: Sequence[Tuple[Key, jnp.ndarray]], b) -> "JacobianFactor":
        """
        Build a factor from ``[(key, A_key), ...]`` blocks and right-hand side.

        Example:
            JacobianFactor.from_terms([(X(1), [[10.0]])], [-10.0])
        """
        b = jnp.atleast_1d(jnp.asarray(b, dtype=float))
        keys = []
        dims = []
        blocks = []
        for key, block in terms:
            block = jnp.asarray(block, dtype=float).reshape(b.shape[0], -1)
            keys.append(Key(int(key)))
            dims.append(block.shape[1])
            blocks.append(block)
        if len(set(keys)) != len(keys):
            raise ValueError("JacobianFactor keys must be unique")
        A = jnp.concatenate(blocks, axis=1) if blocks else jnp.zeros((b.shape[0], 0))
        return JacobianFactor(tuple(keys), tuple(dims), A, b)

    @property
    def rows(self) -> int:
        return int(self.b.shape[0])

    def dim_map(self) -> Dict[Key, int]:
        return dict(zip(self.keys, self.dims))

    def block(self, key: Key) -> jnp.ndarray:
        i = self.keys.index(key)
        start = sum(self.dims[:i])
        return self.A[:, start:start + self.dims[i]]

    def error(self, values: Mapping[Key, jnp.ndarray]) -> float:
        r = self.A @ stack_values(values, self.keys) - self.b if self.keys else -self.b
        return 0.5 * float(r @ r)

    def equals(self, other: "JacobianFactor", tol: float = DEFAULT_TOL) -> bool:
        if not isinstance(other, JacobianFactor):
            return False
        if self.keys != other.keys or self.dims != other.dims:
            return False
        if self.A.shape != other.A.shape:
            return False
        return bool(
            jnp.allclose(self.A, other.A, atol=tol, rtol=0.0)
            and jnp.allclose(self.b, other.b, atol=tol, rtol=0.0)
        )

    def __repr__(self) -> str:
        keys = ", ".join(key_to_str(k) for k in self.keys)
        return f"JacobianFactor([{keys}], rows={self.rows})"
