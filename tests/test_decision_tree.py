from __future__ import annotations

import pytest

from hybrid_fg import INFEASIBLE_ERROR, AlgebraicDecisionTree, DecisionTree, DiscreteKey, IncompleteAssignmentError
from switching import M

A = DiscreteKey(M(1), 2)
B = DiscreteKey(M(2), 2)
C = DiscreteKey(M(3), 3)


def test_from_table_is_row_major():
    """
    The first key is the most significant one:
        (A, B) = (0,0) (0,1) (1,0) (1,1)  ->  1 2 3 4
    """
    tree = AlgebraicDecisionTree.from_table([A, B], [1.0, 2.0, 3.0, 4.0])
    assert tree({M(1): 0, M(2): 0}) == 1.0
    assert tree({M(1): 0, M(2): 1}) == 2.0
    assert tree({M(1): 1, M(2): 0}) == 3.0
    assert tree({M(1): 1, M(2): 1}) == 4.0


def test_from_table_orders_keys_canonically():
    """Listing B before A yields the same tree as the (A, B) table transposed."""
    ab = AlgebraicDecisionTree.from_table([A, B], [1.0, 2.0, 3.0, 4.0])
    ba = AlgebraicDecisionTree.from_table([B, A], [1.0, 3.0, 2.0, 4.0])
    assert ab.equals(ba)
    assert ba.root.label == M(1)


def test_collapses_irrelevant_keys():
    """A key whose branches are all equal is dropped from the structure."""
    tree = AlgebraicDecisionTree.from_table([A, B], [5.0, 5.0, 7.0, 7.0])
    assert tree.keys() == [A]
    assert tree.nr_leaves() == 2
    # the collapsed key may still be given in assignments
    assert tree({M(1): 1, M(2): 0}) == 7.0


def test_missing_key_raises():
    tree = AlgebraicDecisionTree.from_table([A, B], [1.0, 2.0, 3.0, 4.0])
    with pytest.raises(IncompleteAssignmentError):
        tree({M(1): 0})
    with pytest.raises(IncompleteAssignmentError):
        tree({M(1): 2, M(2): 0})


def test_table_size_mismatch_raises():
    with pytest.raises(ValueError):
        AlgebraicDecisionTree.from_table([A, B], [1.0, 2.0, 3.0])


def test_enumerate_is_lexicographic():
    tree = AlgebraicDecisionTree.from_table([A, C], [0.0, 1.0, 2.0, 3.0, 4.0, 5.0])
    entries = list(tree.enumerate())
    assert [a for a, _ in entries] == [
        {M(1): 0, M(3): 0},
        {M(1): 0, M(3): 1},
        {M(1): 0, M(3): 2},
        {M(1): 1, M(3): 0},
        {M(1): 1, M(3): 1},
        {M(1): 1, M(3): 2},
    ]
    assert [v for _, v in entries] == [0.0, 1.0, 2.0, 3.0, 4.0, 5.0]


def test_pointwise_algebra_over_key_union():
    """Adding trees over different keys gives a tree over both."""
    a = AlgebraicDecisionTree.from_table([A], [1.0, 10.0])
    b = AlgebraicDecisionTree.from_table([B], [100.0, 1000.0])
    s = a + b
    assert s.keys() == [A, B]
    assert s({M(1): 1, M(2): 0}) == pytest.approx(110.0)

    p = a * 2.0
    assert p({M(1): 1}) == pytest.approx(20.0)
    assert (-a)({M(1): 0}) == pytest.approx(-1.0)
    assert (b - a)({M(1): 0, M(2): 1}) == pytest.approx(999.0)


def test_division_of_zero_by_zero_is_zero():
    num = AlgebraicDecisionTree.from_table([A], [0.0, 3.0])
    den = AlgebraicDecisionTree.from_table([A], [0.0, 1.5])
    q = num / den
    assert q({M(1): 0}) == 0.0
    assert q({M(1): 1}) == pytest.approx(2.0)


def test_sum_and_max_out():
    tree = AlgebraicDecisionTree.from_table([A, B], [1.0, 2.0, 3.0, 4.0])
    summed = tree.sum_out(B)
    assert summed.keys() == [A]
    assert summed({M(1): 0}) == pytest.approx(3.0)
    assert summed({M(1): 1}) == pytest.approx(7.0)

    best = tree.max_out(A)
    assert best({M(2): 0}) == pytest.approx(3.0)
    assert best({M(2): 1}) == pytest.approx(4.0)

    assert tree.sum() == pytest.approx(10.0)
    # summing over a key the tree does not branch on multiplies by its cardinality
    assert tree.sum([A, B, C]) == pytest.approx(30.0)


def test_argmin_breaks_ties_lexicographically():
    tree = AlgebraicDecisionTree.from_table([A, B], [1.0, 0.0, 0.0, 2.0])
    value, assignment = tree.argmin()
    assert value == 0.0
    assert assignment == {M(1): 0, M(2): 1}

    value, assignment = tree.argmax([A, B, C])
    assert value == 2.0
    assert assignment == {M(1): 1, M(2): 1, M(3): 0}


def test_prune_keeps_lowest_leaves():
    tree = AlgebraicDecisionTree.from_table([A, B], [4.0, 1.0, 3.0, 2.0])
    pruned = tree.prune(2)
    expected = AlgebraicDecisionTree.from_table(
        [A, B], [INFEASIBLE_ERROR, 1.0, INFEASIBLE_ERROR, 2.0]
    )
    assert pruned.equals(expected)
    assert pruned.keys() == [A, B]


def test_prune_breaks_ties_by_enumeration_order():
    tree = AlgebraicDecisionTree.from_table([A, B], [1.0, 1.0, 1.0, 1.0])
    pruned = tree.prune(1, [A, B])
    assert pruned({M(1): 0, M(2): 0}) == 1.0
    assert pruned({M(1): 0, M(2): 1}) == INFEASIBLE_ERROR
    assert pruned({M(1): 1, M(2): 1}) == INFEASIBLE_ERROR


def test_restrict_fixes_given_keys():
    tree = AlgebraicDecisionTree.from_table([A, B], [1.0, 2.0, 3.0, 4.0])
    r = tree.restrict({M(2): 1})
    assert r.keys() == [A]
    assert r({M(1): 0}) == 2.0
    assert r({M(1): 1}) == 4.0
    assert r.min() == 2.0 and r.max() == 4.0


def test_generic_tree_apply_and_apply2():
    """Generic trees hold arbitrary leaves; apply keeps identical outputs shared."""
    labels = DecisionTree.from_table([A], ["still", "moving"])
    lengths = labels.apply(len)
    assert lengths({M(1): 1}) == 6

    flags = DecisionTree.from_table([B], [False, True])
    joined = labels.apply2(flags, lambda s, f: s + ("!" if f else ""))
    assert joined({M(1): 0, M(2): 1}) == "still!"
    assert joined.keys() == [A, B]

    constant = DecisionTree.tabulate([A, B], lambda a: 3)
    assert constant.keys() == []
    assert constant.nr_leaves() == 1


def test_cardinality_mismatch_raises():
    a = AlgebraicDecisionTree.from_table([DiscreteKey(M(1), 2)], [1.0, 2.0])
    b = AlgebraicDecisionTree.from_table([DiscreteKey(M(1), 3)], [1.0, 2.0, 3.0])
    with pytest.raises(ValueError):
        a + b
