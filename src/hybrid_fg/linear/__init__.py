# Copyright (c) 2025.
# This file is part of hybrid-fg, released under the MIT License.
"""Gaussian substrate: Jacobian factors, conditionals and QR elimination."""

from .jacobian import JacobianFactor
from .conditional import GaussianConditional, GaussianBayesNet
from .elimination import eliminate_gaussian, collect_dims

__all__ = [
    "JacobianFactor",
    "GaussianConditional",
    "GaussianBayesNet",
    "eliminate_gaussian",
    "collect_dims",
]
