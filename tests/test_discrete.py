from __future__ import annotations

import math

import pytest

from hybrid_fg import INFEASIBLE_ERROR, AlgebraicDecisionTree, DecisionTreeFactor, DiscreteConditional, DiscreteKey
from hybrid_fg.discrete import eliminate_discrete, probability_to_error
from switching import M

M1 = DiscreteKey(M(1), 2)
M2 = DiscreteKey(M(2), 2)


def test_signature_without_parents():
    asia = DiscreteConditional.from_signature(DiscreteKey(0, 2), "99/1")
    assert asia({0: 0}) == pytest.approx(0.99)
    assert asia({0: 1}) == pytest.approx(0.01)
    assert asia.nr_frontals == 1
    assert asia.error({0: 1}) == pytest.approx(-math.log(0.01))


def test_signature_rows_follow_parent_values():
    """'1/2 3/2' reads P(M2 | M1=0) = 1:2 and P(M2 | M1=1) = 3:2."""
    c = DiscreteConditional.from_signature(M2, "1/2 3/2", parents=[M1])
    assert c({M(1): 0, M(2): 0}) == pytest.approx(1.0 / 3.0)
    assert c({M(1): 0, M(2): 1}) == pytest.approx(2.0 / 3.0)
    assert c({M(1): 1, M(2): 0}) == pytest.approx(0.6)
    assert c({M(1): 1, M(2): 1}) == pytest.approx(0.4)
    assert c.argmax({M(1): 0}) == {M(2): 1}
    assert c.argmax({M(1): 1}) == {M(2): 0}


def test_malformed_signature_raises():
    with pytest.raises(ValueError):
        DiscreteConditional.from_signature(M2, "1/2", parents=[M1])
    with pytest.raises(ValueError):
        DiscreteConditional.from_signature(M1, "1/x")
    with pytest.raises(ValueError):
        DiscreteConditional.from_signature(M1, "0/0")


def test_eliminate_discrete_chain():
    """
    P(M1) = 1/1 and P(M2|M1) = 1/2 3/2. Eliminating M1 leaves the marginal
        P(M2=0) = 0.5 * 1/3 + 0.5 * 0.6
    and Bayes' rule for P(M1 | M2).
    """
    prior = DiscreteConditional.from_signature(M1, "1/1")
    transition = DiscreteConditional.from_signature(M2, "1/2 3/2", parents=[M1])
    conditional, marginal = eliminate_discrete([prior, transition], [M1])

    p0 = 0.5 / 3.0 + 0.5 * 0.6
    assert marginal({M(2): 0}) == pytest.approx(p0)
    assert marginal({M(2): 1}) == pytest.approx(1.0 - p0)
    assert conditional.frontals == [M1]
    assert conditional.parents == [M2]
    assert conditional({M(1): 1, M(2): 0}) == pytest.approx(0.5 * 0.6 / p0)

    last, nothing = eliminate_discrete([marginal], [M2])
    assert nothing is None
    assert last({M(2): 0}) == pytest.approx(p0 / (p0 + (1.0 - p0)))


def test_conditional_from_joint():
    joint = DecisionTreeFactor.from_table([M1, M2], [1.0, 3.0, 2.0, 2.0])
    c = DiscreteConditional.from_joint(joint, [M2])
    assert c.parents == [M1]
    assert c({M(1): 0, M(2): 1}) == pytest.approx(0.75)
    assert c({M(1): 1, M(2): 0}) == pytest.approx(0.5)


def test_factor_product_and_sum_out():
    a = DecisionTreeFactor.from_table([M1], [1.0, 3.0])
    b = DecisionTreeFactor.from_table([M2], [2.0, 5.0])
    ab = a * b
    assert ab.keys == [M(1), M(2)]
    assert ab({M(1): 1, M(2): 1}) == pytest.approx(15.0)
    assert ab.sum_out([M1])({M(2): 0}) == pytest.approx(8.0)
    assert ab.max_out([M2, M1]).keys == []


def test_probability_to_error_saturates():
    assert probability_to_error(0.0) == INFEASIBLE_ERROR
    assert probability_to_error(1.0) == 0.0


def test_prune_zeroes_entries_without_survivors():
    transition = DiscreteConditional.from_signature(M2, "1/2 3/2", parents=[M1])
    survivors = AlgebraicDecisionTree.from_table(
        [M1, M2], [INFEASIBLE_ERROR, 0.1, INFEASIBLE_ERROR, 0.2]
    )
    pruned = transition.prune(survivors)
    assert pruned({M(1): 0, M(2): 0}) == 0.0
    assert pruned({M(1): 1, M(2): 0}) == 0.0
    # surviving entries are not renormalized
    assert pruned({M(1): 0, M(2): 1}) == pytest.approx(2.0 / 3.0)
    assert pruned({M(1): 1, M(2): 1}) == pytest.approx(0.4)
    assert pruned.error({M(1): 0, M(2): 0}) == INFEASIBLE_ERROR


def test_conditional_equality():
    a = DiscreteConditional.from_signature(M1, "99/1")
    b = DiscreteConditional.from_signature(M1, "990/10")
    c = DiscreteConditional.from_signature(M1, "1/1")
    assert a.equals(b)
    assert not a.equals(c)
