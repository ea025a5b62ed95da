# Copyright (c) 2025.
# This file is part of hybrid-fg, released under the MIT License.
"""
Hybrid elimination engine.

This module turns a set of hybrid factors (Jacobian factors, Gaussian
mixture factors and discrete decision-tree factors) into conditionals,
either one variable at a time (`eliminate_sequential`, giving a
`HybridBayesNet`) or one clique at a time (`eliminate_multifrontal`, giving a
`HybridBayesTree`).

Elimination step
----------------
`eliminate_step(factors, frontals, ...)` dispatches on what it is given:

    • discrete frontals
        Sum-product elimination of the decision-tree factors. A continuous
        or mixture factor still touching the frontals means the ordering
        eliminates a mode before the continuous variables that depend on
        it: `InvalidOrderingError`.

    • continuous frontals, Jacobian factors only
        Dense QR elimination: Gaussian conditional + Jacobian residual.

    • continuous frontals with mixture factors
        One Gaussian elimination per discrete assignment of the mixtures'
        keys. The branches are assembled as a decision tree of factor sets
        (pruned branches stay ``None``), every branch is eliminated, and the
        results are split into a `GaussianMixture` and a residual. Each
        residual component carries the branch's accumulated constant plus
        the conditional's log-normalization constant log(|R| / (2π)^(n/2)),
        the error of integrating the frontals out, so when the continuous
        separator becomes empty the residual turns into a discrete factor
        with potential ``exp(−(0.5‖b‖² + constant))``, shifted by the
        minimum over branches.

    • continuous frontals no factor references
        Improper zero-information conditional, with a warning.

Junction tree
-------------
Symbolic elimination yields every variable's separator. Walking the
ordering backwards, a variable joins its parent's clique when its separator
equals that clique's frontals plus separator and both are of the same kind
(discrete or continuous); otherwise it opens a new clique below it. Factors
go to the clique of their earliest-eliminated key and cliques are eliminated
children first.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Dict, List, NamedTuple, Optional, Sequence, Set, Tuple

import jax.numpy as jnp

from ..core.decision_tree import AlgebraicDecisionTree, DecisionTree
from ..core.errors import InvalidOrderingError
from ..core.types import DiscreteKey, Key, key_to_str, sorted_discrete_keys
from ..discrete.elimination import eliminate_discrete
from ..discrete.factor import DecisionTreeFactor
from ..linear.conditional import GaussianConditional
from ..linear.elimination import collect_dims, eliminate_gaussian
from ..linear.jacobian import JacobianFactor
from .bayes_net import HybridBayesNet
from .bayes_tree import HybridBayesTree, HybridBayesTreeClique
from .conditional import HybridConditional
from .factors import HybridFactor, all_keys_of, discrete_keys_of
from .mixture import GaussianMixture, GaussianMixtureFactor, MixtureComponent

logger = logging.getLogger(__name__)


@dataclass
class EliminationConfig:
    rank_tol: float = 1e-9              # |R_ii| at or below this is rank deficient
    drop_empty_residuals: bool = True   # discard keyless Jacobian residuals


class _Branch(NamedTuple):
    factors: Tuple[JacobianFactor, ...]
    constant: float


def _names(keys) -> str:
    return ", ".join(key_to_str(k) for k in keys)


def discrete_index(factors: Sequence[HybridFactor]) -> Dict[Key, DiscreteKey]:
    """Cardinality lookup for every discrete key referenced by ``factors``."""
    keys: List[DiscreteKey] = []
    for f in factors:
        keys.extend(discrete_keys_of(f))
    return {dk.key: dk for dk in sorted_discrete_keys(keys)}


def check_ordering(ordering: Sequence[Key]) -> List[Key]:
    ordering = [Key(int(k)) for k in ordering]
    seen: Set[Key] = set()
    for k in ordering:
        if k in seen:
            raise InvalidOrderingError(f"key {key_to_str(k)} appears twice in the ordering")
        seen.add(k)
    return ordering


# --- Single elimination step ---

def eliminate_step(
    factors: Sequence[HybridFactor],
    frontals: Sequence[Key],
    index: Dict[Key, DiscreteKey],
    config: Optional[EliminationConfig] = None,
) -> Tuple[HybridConditional, Optional[HybridFactor]]:
    """
    Eliminate ``frontals`` from ``factors``.

    Returns the conditional on the frontals and the residual factor over the
    separator, or ``None`` when nothing remains.
    """
    config = config or EliminationConfig()
    frontals = tuple(frontals)
    discrete = [index[k] for k in frontals if k in index]
    if discrete and len(discrete) != len(frontals):
        raise InvalidOrderingError(
            f"cannot eliminate discrete and continuous keys together: {_names(frontals)}"
        )
    if discrete:
        return _eliminate_discrete_step(factors, discrete)
    return _eliminate_continuous_step(factors, frontals, config)


def _eliminate_discrete_step(factors, frontals: List[DiscreteKey]):
    frontal_keys = {k for k, _ in frontals}
    tables = []
    for f in factors:
        if isinstance(f, DecisionTreeFactor):
            tables.append(f)
            continue
        raise InvalidOrderingError(
            f"eliminating {_names(sorted(frontal_keys))} while {f!r} still depends on "
            "continuous variables; eliminate continuous keys first"
        )
    conditional, marginal = eliminate_discrete(tables, frontals)
    return HybridConditional.wrap(conditional), marginal


def _eliminate_continuous_step(factors, frontals: Tuple[Key, ...], config: EliminationConfig):
    gaussians: List[JacobianFactor] = []
    mixtures: List[GaussianMixtureFactor] = []
    for f in factors:
        if isinstance(f, JacobianFactor):
            gaussians.append(f)
        elif isinstance(f, GaussianMixtureFactor):
            mixtures.append(f)
        else:
            raise InvalidOrderingError(
                f"discrete factor {f!r} reached the elimination of continuous {_names(frontals)}"
            )

    if not gaussians and not mixtures:
        logger.warning("no factor involves %s; adding an improper conditional", _names(frontals))
        return HybridConditional.wrap(GaussianConditional.improper(frontals)), None

    if not mixtures:
        conditional, residual = eliminate_gaussian(gaussians, frontals, config.rank_tol)
        if not residual.keys and config.drop_empty_residuals:
            residual = None
        return HybridConditional.wrap(conditional), residual

    return _eliminate_hybrid_step(gaussians, mixtures, frontals, config)


def _extend(branch: Optional[_Branch], component: MixtureComponent) -> Optional[_Branch]:
    if branch is None or component.factor is None:
        return None
    return _Branch(branch.factors + (component.factor,), branch.constant + component.constant)


def _eliminate_hybrid_step(
    gaussians: List[JacobianFactor],
    mixtures: List[GaussianMixtureFactor],
    frontals: Tuple[Key, ...],
    config: EliminationConfig,
):
    discrete_keys = sorted_discrete_keys(dk for m in mixtures for dk in m.discrete_keys)

    component_factors: List[JacobianFactor] = []

    def collect(component: MixtureComponent) -> None:
        if component.factor is not None:
            component_factors.append(component.factor)

    for m in mixtures:
        m.components.visit(collect)
    dims = collect_dims(gaussians + component_factors)
    keys = tuple(sorted(dims))
    # zero-row factor over every key so all branches share one separator
    scope = JacobianFactor(
        keys, tuple(dims[k] for k in keys), jnp.zeros((0, sum(dims.values()))), jnp.zeros(0)
    )

    branches = DecisionTree.leaf(_Branch(tuple(gaussians) + (scope,), 0.0))
    for m in mixtures:
        branches = branches.apply2(m.components, _extend)

    def eliminate_branch(branch: Optional[_Branch]):
        if branch is None:
            return None
        conditional, residual = eliminate_gaussian(branch.factors, frontals, config.rank_tol)
        constant = branch.constant + conditional.log_normalization_constant()
        return conditional, MixtureComponent(residual, constant)

    results = branches.apply(eliminate_branch)
    live: list = []
    results.visit(lambda r: r is not None and live.append(r))
    if not live:
        raise ValueError(f"every branch is pruned when eliminating {_names(frontals)}")

    separator = live[0][0].parents
    conditionals = results.apply(lambda r: None if r is None else r[0])
    mixture = GaussianMixture(frontals, separator, discrete_keys, conditionals)
    logger.debug(
        "hybrid elimination of %s over [%s]: %d live branches -> separator [%s]",
        _names(frontals),
        ", ".join(map(str, discrete_keys)),
        len(live),
        _names(separator),
    )

    if separator:
        components = results.apply(
            lambda r: MixtureComponent(None, 0.0) if r is None else r[1]
        )
        return HybridConditional.wrap(mixture), GaussianMixtureFactor(
            separator, discrete_keys, components
        )

    # continuous separator exhausted: the branch energies become a discrete potential
    lowest = min(r[1].error({}) for r in live)
    potentials = results.apply(
        lambda r: 0.0 if r is None else math.exp(-(r[1].error({}) - lowest))
    )
    factor = DecisionTreeFactor(discrete_keys, AlgebraicDecisionTree(potentials.root))
    return HybridConditional.wrap(mixture), factor


# --- Sequential elimination ---

def eliminate_sequential(
    factors: Sequence[HybridFactor],
    ordering: Sequence[Key],
    config: Optional[EliminationConfig] = None,
) -> Tuple[HybridBayesNet, List[HybridFactor]]:
    """
    Eliminate ``ordering`` one key at a time.

    Returns the Bayes net (conditionals in elimination order) and the factors
    left over, i.e. everything over keys outside ``ordering``.
    """
    config = config or EliminationConfig()
    ordering = check_ordering(ordering)
    index = discrete_index(factors)
    remaining: List[HybridFactor] = list(factors)
    bayes_net = HybridBayesNet()

    for key in ordering:
        involved = [f for f in remaining if key in all_keys_of(f)]
        remaining = [f for f in remaining if key not in all_keys_of(f)]
        conditional, residual = eliminate_step(involved, (key,), index, config)
        logger.debug("eliminated %s from %d factors", key_to_str(key), len(involved))
        bayes_net.add(conditional)
        if residual is not None:
            remaining.append(residual)

    return bayes_net, remaining


# --- Multifrontal elimination ---

@dataclass
class JunctionCluster:
    frontals: List[Key]
    separator: Set[Key]
    discrete: bool
    children: List["JunctionCluster"] = field(default_factory=list)
    factors: List[HybridFactor] = field(default_factory=list)


def build_junction_tree(
    factors: Sequence[HybridFactor],
    ordering: Sequence[Key],
    index: Dict[Key, DiscreteKey],
) -> Tuple[List[JunctionCluster], List[HybridFactor]]:
    """
    Group ``ordering`` into cliques and distribute ``factors`` over them.

    Returns the root clusters and the factors that touch no key of the
    ordering.
    """
    position = {k: i for i, k in enumerate(ordering)}

    symbolic: List[Set[Key]] = [set(all_keys_of(f)) for f in factors]
    separators: Dict[Key, Set[Key]] = {}
    parent_of: Dict[Key, Optional[Key]] = {}
    for key in ordering:
        involved = [s for s in symbolic if key in s]
        symbolic = [s for s in symbolic if key not in s]
        separator = set().union(*involved) - {key}
        separators[key] = separator
        later = [k for k in separator if k in position]
        parent_of[key] = min(later, key=position.__getitem__) if later else None
        if separator:
            symbolic.append(separator)

    cluster_of: Dict[Key, JunctionCluster] = {}
    roots: List[JunctionCluster] = []
    for key in reversed(ordering):
        is_discrete = key in index
        parent_key = parent_of[key]
        parent = cluster_of[parent_key] if parent_key is not None else None
        if (
            parent is not None
            and parent.discrete == is_discrete
            and separators[key] == set(parent.frontals) | parent.separator
        ):
            parent.frontals.insert(0, key)
            cluster_of[key] = parent
            continue
        cluster = JunctionCluster([key], separators[key], is_discrete)
        cluster_of[key] = cluster
        (roots if parent is None else parent.children).append(cluster)

    def first(cluster: JunctionCluster) -> int:
        return position[cluster.frontals[0]]

    for cluster in {id(c): c for c in cluster_of.values()}.values():
        cluster.children.sort(key=first)
    roots.sort(key=first)

    unassigned: List[HybridFactor] = []
    for f in factors:
        eliminated = [k for k in all_keys_of(f) if k in position]
        if not eliminated:
            unassigned.append(f)
            continue
        cluster_of[min(eliminated, key=position.__getitem__)].factors.append(f)

    return roots, unassigned


def eliminate_multifrontal(
    factors: Sequence[HybridFactor],
    ordering: Sequence[Key],
    config: Optional[EliminationConfig] = None,
) -> Tuple[HybridBayesTree, List[HybridFactor]]:
    """
    Eliminate ``ordering`` clique by clique.

    Returns the Bayes tree and the factors left over (factors not touching
    the ordering plus the residuals of the root cliques).
    """
    config = config or EliminationConfig()
    ordering = check_ordering(ordering)
    index = discrete_index(factors)
    roots, remaining = build_junction_tree(factors, ordering, index)

    preorder: List[JunctionCluster] = []
    stack = list(reversed(roots))
    while stack:
        cluster = stack.pop()
        preorder.append(cluster)
        stack.extend(reversed(cluster.children))

    cliques: Dict[int, HybridBayesTreeClique] = {}
    residuals: Dict[int, Optional[HybridFactor]] = {}
    for cluster in reversed(preorder):
        gathered = list(cluster.factors)
        gathered.extend(
            residuals[id(c)] for c in cluster.children if residuals[id(c)] is not None
        )
        conditional, residual = eliminate_step(gathered, cluster.frontals, index, config)
        logger.debug(
            "clique [%s | %s] from %d factors",
            _names(cluster.frontals),
            _names(sorted(cluster.separator)),
            len(gathered),
        )
        cliques[id(cluster)] = HybridBayesTreeClique(
            conditional, [cliques[id(c)] for c in cluster.children]
        )
        residuals[id(cluster)] = residual

    for r in roots:
        if residuals[id(r)] is not None:
            remaining.append(residuals[id(r)])
    return HybridBayesTree([cliques[id(r)] for r in roots]), remaining
