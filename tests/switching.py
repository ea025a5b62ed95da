"""
Switching-chain scenario shared by the hybrid tests.

A robot moves along a line for K steps. Each step k -> k+1 is either "still"
(odometry 0) or "moving" (odometry 1), chosen by a binary mode M(k):

    prior        X(1) = 0                      sigma 0.1
    mixtures     X(k+1) - X(k) = {0, 1}[M(k)]  sigma 1.0
    measurements X(k) = k - 1                  sigma 0.1   (k = 2..K)
    modes        P(M1) = 1/1,  P(M(k+1) | M(k)) = 1/2 3/2

The graph is linearized at X(k) = k, so the true update is -1 everywhere
when every mode is "moving".
"""

from __future__ import annotations

import jax.numpy as jnp

from hybrid_fg import DiscreteConditional, DiscreteKey, HybridNonlinearFactorGraph, NonlinearFactor, symbol


def X(k: int):
    return symbol("x", k)


def M(k: int):
    return symbol("m", k)


class Switching:
    def __init__(self, K: int, between_sigma: float = 1.0, prior_sigma: float = 0.1) -> None:
        self.K = K
        self.modes = [DiscreteKey(M(k), 2) for k in range(1, K)]

        graph = HybridNonlinearFactorGraph()
        graph.add_factor("prior", [X(1)], target=jnp.array([0.0]), sigma=prior_sigma)
        for k in range(1, K):
            keys = (X(k), X(k + 1))
            graph.add_mixture(
                keys,
                [self.modes[k - 1]],
                [
                    NonlinearFactor("between", keys, {"measurement": jnp.array([0.0]), "sigma": between_sigma}),
                    NonlinearFactor("between", keys, {"measurement": jnp.array([1.0]), "sigma": between_sigma}),
                ],
            )
        for k in range(2, K + 1):
            graph.add_factor("prior", [X(k)], target=jnp.array([float(k - 1)]), sigma=prior_sigma)

        graph.add_discrete(DiscreteConditional.from_signature(self.modes[0], "1/1"))
        for k in range(1, K - 1):
            graph.add_discrete(
                DiscreteConditional.from_signature(self.modes[k], "1/2 3/2", parents=[self.modes[k - 1]])
            )

        self.nonlinear_graph = graph
        self.linearization_point = {X(k): jnp.array([float(k)]) for k in range(1, K + 1)}
        self.linearized_graph = graph.linearize(self.linearization_point)

    def continuous_ordering(self):
        return [X(k) for k in range(1, self.K + 1)]
