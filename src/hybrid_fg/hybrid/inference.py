# Copyright (c) 2025.
# This file is part of hybrid-fg, released under the MIT License.
"""
Queries shared by `HybridBayesNet` and `HybridBayesTree`.

Both containers are, for the purposes of error evaluation, MAP inference and
pruning, just a collection of `HybridConditional`s; the functions here work
on such a collection regardless of how it is organised.

Error trees
-----------
discrete_error_tree(conds)
    Σ −log P over the discrete conditionals, as a decision tree over their
    keys. This is the joint ranking used for MAP and pruning.

error_tree(conds, values)
    Σ of Gaussian errors at ``values`` over the continuous and mixture
    conditionals, branching on the mixtures' discrete keys.

Sums are saturated at `INFEASIBLE_ERROR`, so a branch that is pruned in
several mixtures still reports the sentinel itself.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Mapping, Sequence

import jax.numpy as jnp

from ..core.decision_tree import AlgebraicDecisionTree
from ..core.errors import INFEASIBLE_ERROR, IncompleteAssignmentError
from ..core.types import DiscreteKey, Key, assignment_to_str, key_to_str, sorted_discrete_keys
from .conditional import HybridConditional

logger = logging.getLogger(__name__)


def _saturate(tree: AlgebraicDecisionTree) -> AlgebraicDecisionTree:
    return tree.apply(lambda x: min(x, INFEASIBLE_ERROR))


def conditional_discrete_keys(conds: Iterable[HybridConditional]) -> List[DiscreteKey]:
    keys: List[DiscreteKey] = []
    for c in conds:
        keys.extend(c.discrete_keys)
    return sorted_discrete_keys(keys)


def discrete_error_tree(conds: Iterable[HybridConditional]) -> AlgebraicDecisionTree:
    total = AlgebraicDecisionTree.leaf(0.0)
    for c in conds:
        if c.is_discrete():
            total = total + c.as_discrete().error_tree()
    return _saturate(total)


def error_tree(
    conds: Iterable[HybridConditional], values: Mapping[Key, jnp.ndarray]
) -> AlgebraicDecisionTree:
    total = AlgebraicDecisionTree.leaf(0.0)
    for c in conds:
        if c.is_hybrid():
            total = total + c.as_mixture().likelihood(values)
        elif c.is_continuous():
            total = total + c.as_gaussian().error(values)
    return _saturate(total)


def total_error(
    conds: Iterable[HybridConditional],
    values: Mapping[Key, jnp.ndarray],
    assignment: Mapping[Key, int],
) -> float:
    total = sum(c.error(values, assignment) for c in conds)
    return min(total, INFEASIBLE_ERROR)


def map_assignment(conds: Sequence[HybridConditional]) -> Dict[Key, int]:
    """
    Most probable discrete assignment under the discrete conditionals.

    Ties are broken toward the lexicographically smallest assignment.

    Raises:
        IncompleteAssignmentError: if a mixture branches on a key that no
            discrete conditional covers (e.g. a partially eliminated net).
    """
    covered = {
        k for c in conds if c.is_discrete() for k, _ in c.discrete_keys
    }
    needed = conditional_discrete_keys(c for c in conds if c.is_hybrid())
    missing = [k for k, _ in needed if k not in covered]
    if missing:
        raise IncompleteAssignmentError(
            "no discrete conditional covers "
            + ", ".join(key_to_str(k) for k in missing)
            + "; pass an explicit assignment"
        )
    keys = conditional_discrete_keys(c for c in conds if c.is_discrete())
    value, assignment = discrete_error_tree(conds).argmin(keys)
    logger.debug("MAP assignment %s with error %.6g", assignment_to_str(assignment), value)
    return assignment


def prune_conditionals(
    conds: Sequence[HybridConditional], max_nr_leaves: int
) -> List[HybridConditional]:
    """
    Keep the ``max_nr_leaves`` most probable joint discrete assignments.

    Discrete conditionals are zeroed on the pruned assignments and every
    mixture branch without a surviving completion is invalidated. The
    key sets, hence the topology, are unchanged.
    """
    keys = conditional_discrete_keys(c for c in conds if c.is_discrete())
    pruned = discrete_error_tree(conds).prune(max_nr_leaves, keys)
    out: List[HybridConditional] = []
    invalidated = 0
    for c in conds:
        if c.is_discrete():
            out.append(HybridConditional.wrap(c.as_discrete().prune(pruned)))
        elif c.is_hybrid():
            mixture = c.as_mixture().prune(pruned)
            invalidated += mixture.nr_pruned()
            out.append(HybridConditional.wrap(mixture))
        else:
            out.append(c)
    logger.info(
        "pruned to %d joint assignments over %d keys, %d mixture branches invalidated",
        max_nr_leaves,
        len(keys),
        invalidated,
    )
    return out
