# Copyright (c) 2025.
# This file is part of hybrid-fg, released under the MIT License.
"""
Linear-Gaussian conditionals and Bayes nets.

A `GaussianConditional` is the square-root information form of
p(x_f | x_p):

    error(x) = 0.5 * ‖R x_f + S x_p − d‖²

with ``R`` upper-triangular over the frontal variables (one or several, the
latter for multifrontal cliques) and ``S`` stacking one block per parent.
Back-substitution solves ``R x_f = d − S x_p`` with a triangular solve.

A `GaussianBayesNet` is an ordered list of such conditionals as produced by
elimination: parents of a conditional appear *after* it, so `optimize`
back-substitutes from the last conditional to the first.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Iterator, List, Mapping, Sequence, Tuple, Union

import jax.numpy as jnp
from jax.scipy.linalg import solve_triangular

from ..core.errors import DEFAULT_TOL, InvalidOrderingError
from ..core.types import Key, VectorValues, key_to_str, stack_values


@dataclass(frozen=True)
class GaussianConditional:
    frontals: Tuple[Key, ...]
    parents: Tuple[Key, ...]
    dims: Tuple[int, ...]   # aligned with frontals + parents
    R: jnp.ndarray          # (n, n) upper triangular
    S: jnp.ndarray          # (n, sum(parent dims))
    d: jnp.ndarray          # (n,)

    @staticmethod
    def from_terms(
        frontal_terms: Sequence[Tuple[Key, jnp.ndarray]],
        parent_terms: Sequence[Tuple[Key, jnp.ndarray]],
        d,
    ) -> "GaussianConditional":
        """Build from ``[(key, block)]`` lists for the frontal and parent columns."""
        d = jnp.atleast_1d(jnp.asarray(d, dtype=float))
        n = d.shape[0]

        def assemble(terms):
            keys, dims, blocks = [], [], []
            for key, block in terms:
                block = jnp.asarray(block, dtype=float).reshape(n, -1)
                keys.append(Key(int(key)))
                dims.append(block.shape[1])
                blocks.append(block)
            mat = jnp.concatenate(blocks, axis=1) if blocks else jnp.zeros((n, 0))
            return tuple(keys), tuple(dims), mat

        fkeys, fdims, R = assemble(frontal_terms)
        pkeys, pdims, S = assemble(parent_terms)
        if R.shape != (n, n):
            raise ValueError(f"frontal block must be square, got {R.shape}")
        return GaussianConditional(fkeys, pkeys, fdims + pdims, R, S, d)

    @staticmethod
    def improper(keys: Union[Key, Sequence[Key]], dim: int = 1) -> "GaussianConditional":
        """Zero-information conditional for variables no factor constrains, ``dim`` each."""
        keys = (Key(int(keys)),) if isinstance(keys, int) else tuple(keys)
        n = dim * len(keys)
        return GaussianConditional(
            keys, (), (dim,) * len(keys), jnp.zeros((n, n)), jnp.zeros((n, 0)), jnp.zeros(n)
        )

    @property
    def keys(self) -> Tuple[Key, ...]:
        return self.frontals + self.parents

    @property
    def nr_frontals(self) -> int:
        return len(self.frontals)

    @property
    def is_improper(self) -> bool:
        return bool(jnp.any(jnp.diag(self.R) == 0.0))

    def error(self, values: Mapping[Key, jnp.ndarray]) -> float:
        r = self.R @ stack_values(values, self.frontals) - self.d
        if self.parents:
            r = r + self.S @ stack_values(values, self.parents)
        return 0.5 * float(r @ r)

    def solve(self, parent_values: Mapping[Key, jnp.ndarray]) -> VectorValues:
        """Back-substitute the frontal variables given values for all parents."""
        rhs = self.d
        if self.parents:
            rhs = rhs - self.S @ stack_values(parent_values, self.parents)
        if self.is_improper:
            x = jnp.zeros_like(self.d)
        else:
            x = solve_triangular(self.R, rhs, lower=False)
        out: VectorValues = {}
        offset = 0
        for key, dim in zip(self.frontals, self.dims):
            out[key] = x[offset:offset + dim]
            offset += dim
        return out

    def log_normalization_constant(self) -> float:
        """log of 1/sqrt(|2π Σ|) = Σ log|R_ii| − n/2 log 2π."""
        n = self.R.shape[0]
        diag = jnp.abs(jnp.diag(self.R))
        return float(jnp.sum(jnp.log(diag))) - 0.5 * n * math.log(2.0 * math.pi)

    def equals(self, other: "GaussianConditional", tol: float = DEFAULT_TOL) -> bool:
        if not isinstance(other, GaussianConditional):
            return False
        if (self.frontals, self.parents, self.dims) != (other.frontals, other.parents, other.dims):
            return False
        return all(
            a.shape == b.shape and bool(jnp.allclose(a, b, atol=tol, rtol=0.0))
            for a, b in ((self.R, other.R), (self.S, other.S), (self.d, other.d))
        )

    def __repr__(self) -> str:
        f = ", ".join(key_to_str(k) for k in self.frontals)
        p = ", ".join(key_to_str(k) for k in self.parents)
        return f"GaussianConditional(p({f} | {p}))"


@dataclass
class GaussianBayesNet:
    conditionals: List[GaussianConditional] = field(default_factory=list)

    def add(self, conditional: GaussianConditional) -> None:
        self.conditionals.append(conditional)

    def __len__(self) -> int:
        return len(self.conditionals)

    def __iter__(self) -> Iterator[GaussianConditional]:
        return iter(self.conditionals)

    def __getitem__(self, i: int) -> GaussianConditional:
        return self.conditionals[i]

    def optimize(self) -> VectorValues:
        """Back-substitution from the last conditional to the first."""
        solution: VectorValues = {}
        for conditional in reversed(self.conditionals):
            missing = [k for k in conditional.parents if k not in solution]
            if missing:
                raise InvalidOrderingError(
                    f"{conditional!r}: parents {[key_to_str(k) for k in missing]} "
                    "are not solved before it"
                )
            solution.update(conditional.solve(solution))
        return solution

    def error(self, values: Mapping[Key, jnp.ndarray]) -> float:
        return sum(c.error(values) for c in self.conditionals)

    def equals(self, other: "GaussianBayesNet", tol: float = DEFAULT_TOL) -> bool:
        return len(self) == len(other) and all(
            a.equals(b, tol) for a, b in zip(self.conditionals, other.conditionals)
        )
