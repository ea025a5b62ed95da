# Copyright (c) 2025.
# This file is part of hybrid-fg, released under the MIT License.
"""
Residual models for the nonlinear front end.

Every function here implements a residual

    r(x; params) ∈ ℝᵏ

on the stacked values ``x`` of a factor's keys, written in `jax.numpy` so the
front end can take its Jacobian with autodiff when linearizing. Factor types
("prior", "between", or anything registered later) map to these functions
through `HybridNonlinearFactorGraph.register_residual`.

Noise
-----
Residuals are whitened by ``params["sigma"]`` (scalar or per-component
standard deviations), so a linearized factor contributes 0.5‖r‖² directly.

Adding a factor type
--------------------
    1. Implement ``def my_residual(x, params) -> jnp.ndarray`` here.
    2. Register it: ``graph.register_residual("my_type", my_residual)``.
"""

from __future__ import annotations

from typing import Any, Dict

import jax.numpy as jnp


def _whiten(residual: jnp.ndarray, params: Dict[str, Any]) -> jnp.ndarray:
    """
    Divide by the noise standard deviation.

    If params["sigma"] is:
      - missing: no change
      - scalar:  r' = r / sigma
      - vector:  r' = r / sigma  (per component)
    """
    sigma = params.get("sigma", None)
    if sigma is None:
        return residual
    return residual / jnp.asarray(sigma)


def prior_residual(x: jnp.ndarray, params: Dict[str, Any]) -> jnp.ndarray:
    """
    Prior on a single variable:
        residual = x - target
    Works for any vector dimension.
    """
    target = jnp.asarray(params["target"])
    return _whiten(x - target, params)


def between_residual(x: jnp.ndarray, params: Dict[str, Any]) -> jnp.ndarray:
    """
    Relative measurement between two variables of equal dimension:

        x = [x_i, x_j]
        residual = (x_j - x_i) - measurement
    """
    dim = x.shape[0] // 2
    xi = x[:dim]
    xj = x[dim:]
    meas = jnp.asarray(params["measurement"])
    return _whiten((xj - xi) - meas, params)
