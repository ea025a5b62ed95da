# Copyright (c) 2025.
# This file is part of hybrid-fg, released under the MIT License.
"""
Dense QR elimination of Gaussian factors.

`eliminate_gaussian` stacks the given Jacobian factors into one augmented
matrix ``[A_frontal | A_separator | b]`` and reduces it with a QR
decomposition. The first rows of the triangular factor give the conditional
p(frontals | separator); the remaining rows give the residual factor on the
separator. When no separator remains, the residual holds only the constant
least-squares remainder in ``b``.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Sequence, Tuple

import jax.numpy as jnp

from ..core.errors import NumericalDegeneracyError
from ..core.types import Key, key_to_str
from .conditional import GaussianConditional
from .jacobian import JacobianFactor

logger = logging.getLogger(__name__)


def collect_dims(factors: Sequence[JacobianFactor]) -> Dict[Key, int]:
    dims: Dict[Key, int] = {}
    for f in factors:
        for key, dim in f.dim_map().items():
            if dims.setdefault(key, dim) != dim:
                raise ValueError(
                    f"dimension mismatch for {key_to_str(key)}: {dims[key]} vs {dim}"
                )
    return dims


def eliminate_gaussian(
    factors: Sequence[JacobianFactor],
    frontals: Sequence[Key],
    rank_tol: float = 1e-9,
) -> Tuple[GaussianConditional, JacobianFactor]:
    """
    Eliminate ``frontals`` from a set of Jacobian factors.

    Returns the conditional on ``frontals`` (with positive ``R`` diagonal)
    and the residual factor over the remaining keys, sorted ascending.

    Raises:
        NumericalDegeneracyError: if the frontal block is rank deficient.
    """
    dims = collect_dims(factors)
    frontals = tuple(frontals)
    for key in frontals:
        if key not in dims:
            raise ValueError(f"no factor involves frontal {key_to_str(key)}")
    separator = tuple(sorted(k for k in dims if k not in frontals))
    columns = frontals + separator

    offsets: Dict[Key, int] = {}
    total = 0
    for key in columns:
        offsets[key] = total
        total += dims[key]

    rows: List[jnp.ndarray] = []
    for f in factors:
        block = jnp.zeros((f.rows, total + 1))
        col = 0
        for key, dim in f.dim_map().items():
            block = block.at[:, offsets[key]:offsets[key] + dim].set(f.A[:, col:col + dim])
            col += dim
        block = block.at[:, total].set(f.b)
        rows.append(block)
    Ab = jnp.concatenate(rows, axis=0)

    n = sum(dims[k] for k in frontals)
    R = jnp.linalg.qr(Ab, mode="r")
    diag = jnp.diag(R[:n, :n]) if R.shape[0] >= n else jnp.zeros(0)
    if R.shape[0] < n or bool(jnp.any(jnp.abs(diag) <= rank_tol)):
        raise NumericalDegeneracyError(
            "rank-deficient elimination of "
            + ", ".join(key_to_str(k) for k in frontals)
            + f" ({Ab.shape[0]} rows for {n} frontal dimensions)"
        )

    # make the conditional's diagonal positive so results are unique
    signs = jnp.where(diag < 0.0, -1.0, 1.0)
    top = R[:n] * signs[:, None]
    conditional = GaussianConditional(
        frontals=frontals,
        parents=separator,
        dims=tuple(dims[k] for k in columns),
        R=top[:, :n],
        S=top[:, n:total],
        d=top[:, total],
    )
    rest = R[n:]
    residual = JacobianFactor(
        keys=separator,
        dims=tuple(dims[k] for k in separator),
        A=rest[:, n:total],
        b=rest[:, total],
    )
    logger.debug(
        "eliminated %s: %d rows -> separator [%s]",
        ", ".join(key_to_str(k) for k in frontals),
        Ab.shape[0],
        ", ".join(key_to_str(k) for k in separator),
    )
    return conditional, residual
