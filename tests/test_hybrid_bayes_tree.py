from __future__ import annotations

import jax.numpy as jnp
import pytest

from hybrid_fg.core.types import vector_values_equal
from switching import M, X


def test_clique_structure(switching4):
    """
    Eliminating X1..X4 then M1..M3 groups the modes in one discrete root,
    X3 and X4 in a continuous clique below it, then X2, then X1.
    """
    graph = switching4.linearized_graph
    bayes_tree, remaining = graph.eliminate_multifrontal(graph.get_hybrid_ordering())
    assert len(remaining) == 0
    assert len(bayes_tree) == 4
    assert len(bayes_tree.roots) == 1

    root = bayes_tree.roots[0]
    assert root.conditional.is_discrete()
    assert set(root.frontals) == {M(1), M(2), M(3)}
    assert root.parent is None

    (x34,) = root.children
    assert x34.frontals == (X(3), X(4))
    assert x34.conditional.is_hybrid()
    assert x34.parent is root

    (x2,) = x34.children
    assert x2.frontals == (X(2),)
    (x1,) = x2.children
    assert x1.frontals == (X(1),)
    assert x1.children == []

    assert bayes_tree.clique(X(4)) is x34
    assert bayes_tree.check_running_intersection()


def test_optimize_matches_sequential(switching4):
    graph = switching4.linearized_graph
    bayes_net, _ = graph.eliminate_sequential()
    bayes_tree, _ = graph.eliminate_multifrontal()

    sequential = bayes_net.optimize()
    multifrontal = bayes_tree.optimize()
    assert multifrontal.discrete == sequential.discrete
    assert vector_values_equal(sequential.continuous, multifrontal.continuous, 1e-5)

    expected = {
        X(1): jnp.array([-0.999904]),
        X(2): jnp.array([-0.99029]),
        X(3): jnp.array([-1.00971]),
        X(4): jnp.array([-1.0001]),
    }
    assert vector_values_equal(expected, multifrontal.continuous, 1e-5)


def test_error_and_prune_agree_with_bayes_net(switching3):
    graph = switching3.linearized_graph
    bayes_net, _ = graph.eliminate_sequential()
    bayes_tree, _ = graph.eliminate_multifrontal()
    delta = bayes_net.optimize()

    assert bayes_tree.error(delta.continuous).equals(bayes_net.error(delta.continuous), 1e-6)

    pruned = bayes_tree.prune(2)
    assert len(pruned) == len(bayes_tree)
    assert pruned.optimize().discrete == delta.discrete
    assert pruned.discrete_error_tree().equals(bayes_net.prune(2).discrete_error_tree(), 1e-6)


def test_optimize_given_assignment(switching4):
    bayes_tree, _ = switching4.linearized_graph.eliminate_multifrontal()
    delta = bayes_tree.optimize({M(1): 1, M(2): 1, M(3): 1})
    for k in range(1, 5):
        assert float(delta.at(X(k))[0]) == pytest.approx(-1.0)
