# Copyright (c) 2025.
# This file is part of hybrid-fg, released under the MIT License.
"""Keys, error taxonomy and decision trees."""

from .types import (
    DiscreteKey,
    DiscreteValues,
    Key,
    VectorValues,
    key_to_str,
    sorted_discrete_keys,
    symbol,
)
from .errors import (
    DEFAULT_TOL,
    INFEASIBLE_ERROR,
    HybridInferenceError,
    IncompleteAssignmentError,
    InfeasibleBranchError,
    InvalidOrderingError,
    NumericalDegeneracyError,
    TypeMismatchError,
)
from .decision_tree import AlgebraicDecisionTree, DecisionTree

__all__ = [
    "AlgebraicDecisionTree",
    "DEFAULT_TOL",
    "DecisionTree",
    "DiscreteKey",
    "DiscreteValues",
    "HybridInferenceError",
    "INFEASIBLE_ERROR",
    "IncompleteAssignmentError",
    "InfeasibleBranchError",
    "InvalidOrderingError",
    "Key",
    "NumericalDegeneracyError",
    "TypeMismatchError",
    "VectorValues",
    "key_to_str",
    "sorted_discrete_keys",
    "symbol",
]
