# Copyright (c) 2025.
# This file is part of hybrid-fg, released under the MIT License.
"""Hybrid layer: mixtures, Bayes nets and trees, and the elimination engine."""

from .mixture import GaussianMixture, GaussianMixtureFactor, MixtureComponent
from .conditional import ConditionalKind, HybridConditional
from .values import HybridValues
from .bayes_net import HybridBayesNet
from .bayes_tree import HybridBayesTree, HybridBayesTreeClique
from .elimination import EliminationConfig, build_junction_tree, eliminate_step
from .factor_graph import HybridGaussianFactorGraph

__all__ = [
    "ConditionalKind",
    "EliminationConfig",
    "GaussianMixture",
    "GaussianMixtureFactor",
    "HybridBayesNet",
    "HybridBayesTree",
    "HybridBayesTreeClique",
    "HybridConditional",
    "HybridGaussianFactorGraph",
    "HybridValues",
    "MixtureComponent",
    "build_junction_tree",
    "eliminate_step",
]
