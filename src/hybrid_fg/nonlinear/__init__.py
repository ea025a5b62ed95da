# Copyright (c) 2025.
# This file is part of hybrid-fg, released under the MIT License.
"""Nonlinear front end: residual models and linearization with JAX autodiff."""

from .measurements import between_residual, prior_residual
from .factor_graph import HybridNonlinearFactorGraph, MixtureFactor, NonlinearFactor

__all__ = [
    "HybridNonlinearFactorGraph",
    "MixtureFactor",
    "NonlinearFactor",
    "between_residual",
    "prior_residual",
]
