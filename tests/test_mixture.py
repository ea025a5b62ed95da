from __future__ import annotations

import jax.numpy as jnp
import pytest

from hybrid_fg import (
    INFEASIBLE_ERROR,
    AlgebraicDecisionTree,
    DiscreteKey,
    GaussianConditional,
    GaussianMixture,
    GaussianMixtureFactor,
    IncompleteAssignmentError,
    JacobianFactor,
)
from switching import M, X

M1 = DiscreteKey(M(1), 2)


def _mixture():
    """
    p(x1 | x2, m1) with two components that differ only in the mean offset:
        m1 = 0:  x1 - x2 = 0
        m1 = 1:  x1 - x2 = 1
    """
    still = GaussianConditional.from_terms([(X(1), [[1.0]])], [(X(2), [[-1.0]])], [0.0])
    moving = GaussianConditional.from_terms([(X(1), [[1.0]])], [(X(2), [[-1.0]])], [1.0])
    return GaussianMixture.from_conditionals([M1], [still, moving]), still, moving


def test_mixture_selects_branch():
    mixture, still, moving = _mixture()
    assert mixture({M(1): 0}) is still
    assert mixture({M(1): 1}) is moving
    assert mixture.continuous_keys == (X(1), X(2))
    with pytest.raises(IncompleteAssignmentError):
        mixture({})


def test_mixture_error_and_likelihood():
    mixture, _, _ = _mixture()
    values = {X(1): jnp.array([3.0]), X(2): jnp.array([1.0])}
    assert mixture.error(values, {M(1): 0}) == pytest.approx(2.0)
    assert mixture.error(values, {M(1): 1}) == pytest.approx(0.5)

    tree = mixture.likelihood(values)
    expected = AlgebraicDecisionTree.from_table([M1], [2.0, 0.5])
    assert tree.equals(expected)
    assert mixture.error(values).equals(expected)


def test_mixture_prune_invalidates_branches():
    mixture, _, moving = _mixture()
    survivors = AlgebraicDecisionTree.from_table([M1], [INFEASIBLE_ERROR, 0.3])
    pruned = mixture.prune(survivors)
    assert pruned({M(1): 0}) is None
    assert pruned({M(1): 1}) is moving
    assert pruned.nr_pruned() == 1

    values = {X(1): jnp.array([3.0]), X(2): jnp.array([1.0])}
    assert pruned.error(values, {M(1): 0}) == INFEASIBLE_ERROR
    assert pruned.likelihood(values)({M(1): 0}) == INFEASIBLE_ERROR
    # pruning keeps the key set
    assert pruned.discrete_parents == [M1]


def test_mixture_rejects_mismatched_scope():
    a = GaussianConditional.from_terms([(X(1), [[1.0]])], [(X(2), [[-1.0]])], [0.0])
    b = GaussianConditional.from_terms([(X(1), [[1.0]])], [(X(3), [[-1.0]])], [0.0])
    with pytest.raises(ValueError):
        GaussianMixture.from_conditionals([M1], [a, b])


def test_mixture_factor_error():
    still = JacobianFactor.from_terms([(X(1), [[-1.0]]), (X(2), [[1.0]])], [0.0])
    moving = JacobianFactor.from_terms([(X(1), [[-1.0]]), (X(2), [[1.0]])], [1.0])
    factor = GaussianMixtureFactor.from_factors([M1], [still, moving])
    assert factor.keys == (X(1), X(2))

    values = {X(1): jnp.array([0.0]), X(2): jnp.array([1.0])}
    assert factor.error(values, {M(1): 0}) == pytest.approx(0.5)
    assert factor.error(values, {M(1): 1}) == pytest.approx(0.0)
    assert factor.error_tree(values)({M(1): 0}) == pytest.approx(0.5)
    assert factor({M(1): 1}).constant == 0.0
