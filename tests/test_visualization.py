from __future__ import annotations

import matplotlib.pyplot as plt

from hybrid_fg.visualization import export_bayes_tree_for_vis, plot_bayes_tree, plot_error_tree


def test_plot_error_tree(switching3):
    bayes_net, _ = switching3.linearized_graph.eliminate_sequential()
    delta = bayes_net.optimize()
    ax = plot_error_tree(bayes_net.prune(2).error(delta.continuous))
    assert len(ax.patches) == 4
    labels = [t.get_text() for t in ax.get_xticklabels()]
    assert labels[0] == "m1=0,m2=0"
    # pruned assignments are hatched rather than drawn at the sentinel
    assert sum(1 for p in ax.patches if p.get_hatch()) == 2
    assert ax.get_ylim()[1] < 1e10
    plt.close(ax.figure)


def test_export_bayes_tree_layout(switching4):
    bayes_tree, _ = switching4.linearized_graph.eliminate_multifrontal()
    cliques = export_bayes_tree_for_vis(bayes_tree)
    assert len(cliques) == 4
    assert cliques[0].parent is None
    assert cliques[0].kind == "discrete"
    assert [c.position[1] for c in cliques] == [0.0, -1.0, -2.0, -3.0]
    assert cliques[1].label == "x3,x4 : m1,m2,m3"


def test_plot_bayes_tree_into_given_axes(switching4):
    bayes_tree, _ = switching4.linearized_graph.eliminate_multifrontal()
    fig, ax = plt.subplots()
    returned = plot_bayes_tree(bayes_tree, ax=ax)
    assert returned is ax
    assert len(ax.collections) == 4
    assert len(ax.lines) == 3
    plt.close(fig)
