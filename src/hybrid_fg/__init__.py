# Copyright (c) 2025.
# This file is part of hybrid-fg, released under the MIT License.
"""
hybrid-fg: hybrid discrete/continuous factor-graph inference in JAX.

Linearized hybrid factor graphs are eliminated into hybrid Bayes nets
(sequential) or Bayes trees (multifrontal), which then answer MAP,
error and pruning queries over the joint discrete/continuous space.
"""

import jax

# regression tolerances assume float64 throughout
jax.config.update("jax_enable_x64", True)

from .core import (  # noqa: E402
    DEFAULT_TOL,
    INFEASIBLE_ERROR,
    AlgebraicDecisionTree,
    DecisionTree,
    DiscreteKey,
    HybridInferenceError,
    IncompleteAssignmentError,
    InfeasibleBranchError,
    InvalidOrderingError,
    Key,
    NumericalDegeneracyError,
    TypeMismatchError,
    key_to_str,
    symbol,
)
from .linear import GaussianBayesNet, GaussianConditional, JacobianFactor  # noqa: E402
from .discrete import DecisionTreeFactor, DiscreteConditional  # noqa: E402
from .hybrid import (  # noqa: E402
    EliminationConfig,
    GaussianMixture,
    GaussianMixtureFactor,
    HybridBayesNet,
    HybridBayesTree,
    HybridConditional,
    HybridGaussianFactorGraph,
    HybridValues,
)
from .nonlinear import HybridNonlinearFactorGraph, MixtureFactor, NonlinearFactor  # noqa: E402

__version__ = "0.1.0"

__all__ = [
    "AlgebraicDecisionTree",
    "DEFAULT_TOL",
    "DecisionTree",
    "DecisionTreeFactor",
    "DiscreteConditional",
    "DiscreteKey",
    "EliminationConfig",
    "GaussianBayesNet",
    "GaussianConditional",
    "GaussianMixture",
    "GaussianMixtureFactor",
    "HybridBayesNet",
    "HybridBayesTree",
    "HybridConditional",
    "HybridGaussianFactorGraph",
    "HybridInferenceError",
    "HybridNonlinearFactorGraph",
    "HybridValues",
    "INFEASIBLE_ERROR",
    "IncompleteAssignmentError",
    "InfeasibleBranchError",
    "InvalidOrderingError",
    "JacobianFactor",
    "Key",
    "MixtureFactor",
    "NonlinearFactor",
    "NumericalDegeneracyError",
    "TypeMismatchError",
    "key_to_str",
    "symbol",
]
