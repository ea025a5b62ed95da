# Copyright (c) 2025.
# This file is part of hybrid-fg, released under the MIT License.
"""Discrete substrate: decision-tree factors, conditionals and elimination."""

from .factor import DecisionTreeFactor, multiply_all, probability_to_error
from .conditional import DiscreteConditional, parse_signature
from .elimination import eliminate_discrete

__all__ = [
    "DecisionTreeFactor",
    "DiscreteConditional",
    "eliminate_discrete",
    "multiply_all",
    "parse_signature",
    "probability_to_error",
]
