# Copyright (c) 2025.
# This file is part of hybrid-fg, released under the MIT License.
"""
Matplotlib diagnostics for hybrid inference results.

Two views are provided:

1. **Error trees**
   `plot_error_tree()` draws one bar per discrete assignment of an
   `AlgebraicDecisionTree` (e.g. ``bayes_net.error(delta)``). Leaves holding
   the infeasible sentinel are drawn as hatched bars at the top of the axis
   instead of at 1e50, so pruned branches stay visible without crushing the
   scale.

2. **Bayes trees**
   `export_bayes_tree_for_vis()` lays cliques out top-down (roots on the
   first row, children centred below their parent) and `plot_bayes_tree()`
   draws them, coloured by kind: discrete, continuous or hybrid.

Both plotting functions draw into ``ax`` when given and otherwise create a
new figure; they return the `Axes` and never call ``plt.show()``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

import matplotlib.pyplot as plt
import numpy as np

from .core.decision_tree import AlgebraicDecisionTree
from .core.errors import INFEASIBLE_ERROR
from .core.types import DiscreteKey, key_to_str
from .hybrid.bayes_tree import HybridBayesTree, HybridBayesTreeClique


@dataclass
class VisClique:
    """Lightweight clique representation for visualization."""
    label: str
    kind: str
    position: Tuple[float, float]
    parent: Optional[int]


def _clique_label(clique: HybridBayesTreeClique) -> str:
    f = ",".join(key_to_str(k) for k in clique.frontals)
    s = ",".join(key_to_str(k) for k in clique.separator)
    return f"{f} : {s}" if s else f


def export_bayes_tree_for_vis(tree: HybridBayesTree) -> List[VisClique]:
    """
    Lay out the cliques of ``tree``: depth gives the row, leaves are spread
    evenly along x and every inner clique sits above the mean of its children.
    """
    out: List[VisClique] = []
    next_x = [0.0]

    def place(clique: HybridBayesTreeClique, depth: int, parent: Optional[int]) -> float:
        index = len(out)
        out.append(VisClique(_clique_label(clique), clique.conditional.kind.value, (0.0, 0.0), parent))
        if clique.children:
            xs = [place(child, depth + 1, index) for child in clique.children]
            x = sum(xs) / len(xs)
        else:
            x = next_x[0]
            next_x[0] += 1.0
        out[index].position = (x, -float(depth))
        return x

    for root in tree.roots:
        place(root, 0, None)
    return out


def plot_bayes_tree(tree: HybridBayesTree, ax=None, show_labels: bool = True):
    """
    Top-down drawing of the clique tree.

    :param tree: The Bayes tree to draw.
    :param ax: Axes to draw into; a new figure is created when omitted.
    :param show_labels: Whether to write "frontals : separator" next to cliques.
    :return: The matplotlib Axes.
    """
    cliques = export_bayes_tree_for_vis(tree)
    kind_to_color: Dict[str, str] = {
        "discrete": "C3",
        "continuous": "C0",
        "hybrid": "C2",
    }

    if ax is None:
        _, ax = plt.subplots()

    for c in cliques:
        if c.parent is None:
            continue
        p = cliques[c.parent].position
        ax.plot([p[0], c.position[0]], [p[1], c.position[1]], color="gray", linewidth=0.8)

    for c in cliques:
        x, y = c.position
        ax.scatter(x, y, s=60, c=kind_to_color.get(c.kind, "k"), zorder=3)
        if show_labels:
            ax.text(x + 0.05, y + 0.05, c.label, fontsize=7)

    ax.set_title(f"Hybrid Bayes tree ({len(cliques)} cliques)")
    ax.set_xticks([])
    ax.set_yticks([])
    if cliques:
        xs = [c.position[0] for c in cliques]
        ys = [c.position[1] for c in cliques]
        ax.set_xlim(min(xs) - 0.5, max(xs) + 1.5)
        ax.set_ylim(min(ys) - 0.5, max(ys) + 0.5)
    return ax


def plot_error_tree(
    tree: AlgebraicDecisionTree,
    keys: Optional[Sequence[DiscreteKey]] = None,
    ax=None,
):
    """
    Bar chart of the error of every assignment of ``keys`` (default: the
    tree's own keys), in lexicographic order.

    :return: The matplotlib Axes.
    """
    entries = list(tree.enumerate(keys))
    labels = [
        ",".join(f"{key_to_str(k)}={v}" for k, v in a.items()) or "-" for a, _ in entries
    ]
    values = [v for _, v in entries]
    feasible = [v for v in values if v < INFEASIBLE_ERROR]
    ceiling = (max(feasible) if feasible else 1.0) * 1.2 or 1.0

    if ax is None:
        _, ax = plt.subplots()

    for i, v in enumerate(values):
        if v < INFEASIBLE_ERROR:
            ax.bar(i, v, color="C0")
        else:
            ax.bar(i, ceiling, color="none", edgecolor="C3", hatch="//")

    ax.set_xticks(np.arange(len(labels)))
    ax.set_xticklabels(labels, rotation=45, ha="right", fontsize=7)
    ax.set_ylabel("error")
    ax.set_title("Error per discrete assignment (hatched: pruned)")
    return ax
