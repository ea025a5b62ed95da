# Copyright (c) 2025.
# This file is part of hybrid-fg, released under the MIT License.
"""
Error taxonomy for hybrid inference.

Construction-time problems (bad orderings, malformed mixtures, rank-deficient
elimination) are raised immediately. Evaluation-time infeasibility of pruned
branches is *not* an exception: it is encoded as the finite sentinel
`INFEASIBLE_ERROR` so decision-tree arithmetic stays total.
"""

from __future__ import annotations

# Error assigned to pruned / degenerate branches. Large but finite so sums and
# minima over decision trees remain well defined.
INFEASIBLE_ERROR = 1e50

DEFAULT_TOL = 1e-9


class HybridInferenceError(Exception):
    """Base class for all hybrid inference failures."""


class InvalidOrderingError(HybridInferenceError, ValueError):
    """Elimination ordering is inconsistent with the graph."""


class TypeMismatchError(HybridInferenceError, TypeError):
    """A typed accessor was used on a conditional of another kind."""


class IncompleteAssignmentError(HybridInferenceError, LookupError):
    """A discrete assignment is missing a key (or holds an out-of-domain value)."""


class NumericalDegeneracyError(HybridInferenceError, ArithmeticError):
    """Rank-deficient Gaussian elimination step."""


class InfeasibleBranchError(HybridInferenceError, LookupError):
    """A Gaussian conditional was requested for a pruned mixture branch."""
