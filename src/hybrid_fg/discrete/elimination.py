# Copyright (c) 2025.
# This file is part of hybrid-fg, released under the MIT License.
"""Sum-product elimination of discrete factors."""

from __future__ import annotations

import logging
from typing import Optional, Sequence, Tuple

from ..core.types import DiscreteKey, key_to_str
from .conditional import DiscreteConditional
from .factor import DecisionTreeFactor, multiply_all

logger = logging.getLogger(__name__)


def eliminate_discrete(
    factors: Sequence[DecisionTreeFactor],
    frontals: Sequence[DiscreteKey],
) -> Tuple[DiscreteConditional, Optional[DecisionTreeFactor]]:
    """
    Multiply ``factors``, then split the product into P(frontals | separator)
    and the marginal over the separator. The marginal is ``None`` when no
    separator keys remain.
    """
    joint = multiply_all(factors)
    frontal_keys = {k for k, _ in frontals}
    missing = frontal_keys - set(joint.keys)
    if missing:
        raise ValueError(f"no factor involves frontals {sorted(missing)}")
    conditional = DiscreteConditional.from_joint(joint, frontals)
    marginal = joint.sum_out(frontals)
    logger.debug(
        "discrete elimination of %s over %d factors",
        ", ".join(key_to_str(k) for k, _ in frontals),
        len(factors),
    )
    if not marginal.discrete_keys:
        return conditional, None
    return conditional, marginal
