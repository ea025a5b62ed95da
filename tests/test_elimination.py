from __future__ import annotations

import logging
import math

import jax.numpy as jnp
import pytest

from hybrid_fg import (
    DecisionTreeFactor,
    DiscreteConditional,
    DiscreteKey,
    EliminationConfig,
    GaussianMixtureFactor,
    HybridGaussianFactorGraph,
    IncompleteAssignmentError,
    InfeasibleBranchError,
    InvalidOrderingError,
    JacobianFactor,
    TypeMismatchError,
)
from hybrid_fg.hybrid import eliminate_step
from switching import M, X


def test_hybrid_ordering(switching3):
    graph = switching3.linearized_graph
    assert graph.get_hybrid_ordering() == [X(1), X(2), X(3), M(1), M(2)]
    assert graph.continuous_keys() == [X(1), X(2), X(3)]
    assert [k for k, _ in graph.discrete_keys()] == [M(1), M(2)]
    assert graph.keys() == sorted([X(1), X(2), X(3), M(1), M(2)])


def test_partial_elimination_leaves_discrete_residual(switching3):
    """
    Eliminating only the continuous keys turns the last hybrid residual into
    a discrete factor over both modes; together with the two mode priors it
    forms the residual graph.
    """
    graph = switching3.linearized_graph
    bayes_net, remaining = graph.eliminate_sequential(switching3.continuous_ordering())

    assert len(bayes_net) == 3
    assert all(c.is_hybrid() for c in bayes_net)
    assert len(remaining) == 3
    assert all(isinstance(f, DecisionTreeFactor) for f in remaining)

    produced = remaining[-1]
    assert produced.keys == [M(1), M(2)]
    # potentials are shifted so the most likely branch has value 1
    assert max(v for _, v in produced.enumerate()) == pytest.approx(1.0)


def test_multifrontal_partial_elimination(switching3):
    graph = switching3.linearized_graph
    bayes_tree, remaining = graph.eliminate_multifrontal(switching3.continuous_ordering())
    assert {k for c in bayes_tree.cliques() for k in c.frontals} == {X(1), X(2), X(3)}
    assert all(isinstance(f, DecisionTreeFactor) for f in remaining)


def test_discrete_key_before_its_continuous_variables(switching3):
    graph = switching3.linearized_graph
    with pytest.raises(InvalidOrderingError):
        graph.eliminate_sequential([M(1), X(1), X(2), X(3), M(2)])
    with pytest.raises(InvalidOrderingError):
        graph.eliminate_multifrontal([M(1), X(1), X(2), X(3), M(2)])


def test_duplicate_key_in_ordering(switching3):
    graph = switching3.linearized_graph
    with pytest.raises(InvalidOrderingError):
        graph.eliminate_sequential([X(1), X(1), X(2), X(3), M(1), M(2)])
    # still a ValueError for callers that do not know the hierarchy
    with pytest.raises(ValueError):
        graph.eliminate_multifrontal([X(1), X(2), X(2), X(3), M(1), M(2)])


def test_mixed_frontals_and_stray_discrete_factor():
    m1 = DiscreteKey(M(1), 2)
    prior = JacobianFactor.from_terms([(X(1), [[1.0]])], [0.0])
    mode = DecisionTreeFactor.from_table([m1], [0.5, 0.5])
    index = {M(1): m1}

    with pytest.raises(InvalidOrderingError):
        eliminate_step([prior, mode], [X(1), M(1)], index)
    with pytest.raises(InvalidOrderingError):
        eliminate_step([prior, mode], [X(1)], index)


def test_typed_accessors(switching3):
    bayes_net, _ = switching3.linearized_graph.eliminate_sequential()
    assert bayes_net.at(0).is_hybrid()
    assert bayes_net.at_mixture(0).frontals == (X(1),)
    with pytest.raises(TypeMismatchError):
        bayes_net.at_gaussian(0)
    with pytest.raises(TypeError):
        bayes_net.at_discrete(0)
    last = len(bayes_net) - 1
    assert bayes_net.at(last).is_discrete()
    with pytest.raises(TypeMismatchError):
        bayes_net.at_mixture(last)


def test_incomplete_assignment(switching4):
    bayes_net, _ = switching4.linearized_graph.eliminate_sequential()
    with pytest.raises(IncompleteAssignmentError):
        bayes_net.choose({M(1): 1})
    with pytest.raises(IncompleteAssignmentError):
        bayes_net.choose({M(1): 1, M(2): 2, M(3): 0})


def test_choose_pruned_branch(switching3):
    bayes_net, _ = switching3.linearized_graph.eliminate_sequential()
    pruned = bayes_net.prune(2)
    # (0, 1) and (1, 1) survive pruning to two leaves
    pruned.choose({M(1): 0, M(2): 1})
    with pytest.raises(InfeasibleBranchError):
        pruned.choose({M(1): 0, M(2): 0})


def test_unconstrained_key_gets_improper_conditional(switching3, caplog):
    graph = switching3.linearized_graph
    ordering = switching3.continuous_ordering() + [X(9), M(1), M(2)]
    with caplog.at_level(logging.WARNING, logger="hybrid_fg.hybrid.elimination"):
        bayes_net, remaining = graph.eliminate_sequential(ordering)

    assert any("improper" in r.getMessage() for r in caplog.records)
    assert len(remaining) == 0
    improper = bayes_net.at_gaussian(3)
    assert improper.frontals == (X(9),)
    assert improper.is_improper

    delta = bayes_net.optimize()
    assert float(delta.at(X(9))[0]) == 0.0


def test_rank_tolerance_is_configurable():
    weak = JacobianFactor.from_terms([(X(1), [[1e-6]])], [0.0])
    graph = HybridGaussianFactorGraph([weak])
    bayes_net, _ = graph.eliminate_sequential(config=EliminationConfig(rank_tol=1e-9))
    assert len(bayes_net) == 1
    with pytest.raises(ArithmeticError):
        graph.eliminate_sequential(config=EliminationConfig(rank_tol=1e-3))


def test_graph_error_and_factor_checks(switching3):
    graph = switching3.linearized_graph
    values = {X(k): jnp.zeros(1) for k in range(1, 4)}
    assignment = {M(1): 1, M(2): 1}
    # zero update: each prior is off by 1.0 (ten sigmas), "moving" odometry is exact
    expected = 0.5 * 100.0 * 3 + 0.0 + graph[-2].error(assignment) + graph[-1].error(assignment)
    assert graph.error(values, assignment) == pytest.approx(expected)

    with pytest.raises(TypeError):
        graph.add("not a factor")


def test_mode_posterior_accounts_for_branch_covariance():
    """
    A unit measurement x1 = 0 plus a mode-dependent prior of slope 1 or 10.
    Integrating x1 out gives P(m1) proportional to 1/sqrt(2) and 1/sqrt(101),
    so the looser mode is the more probable one.
    """
    m1 = DiscreteKey(M(1), 2)

    def slope(a):
        return JacobianFactor.from_terms([(X(1), [[a]])], [0.0])

    graph = HybridGaussianFactorGraph(
        [
            slope(1.0),
            GaussianMixtureFactor.from_factors([m1], [slope(1.0), slope(10.0)]),
            DiscreteConditional.from_signature(m1, "1/1"),
        ]
    )
    loose, tight = 1.0 / math.sqrt(2.0), 1.0 / math.sqrt(101.0)

    bayes_net, _ = graph.eliminate_sequential()
    posterior = bayes_net.at_discrete(1)
    assert posterior({M(1): 0}) == pytest.approx(loose / (loose + tight))
    assert posterior({M(1): 0}) == pytest.approx(0.8766, abs=1e-4)
    assert bayes_net.optimize().discrete == {M(1): 0}

    bayes_tree, _ = graph.eliminate_multifrontal()
    assert bayes_tree.optimize().discrete == {M(1): 0}
