import numpy as np
import pytest

from polyroot.algorithms.nonlinear.norms import _infinity_norm
from polyroot.algorithms.nonlinear.selection import select_best


def test_minimum_norm_wins():
    values = [np.array([3.0, 4.0]), np.array([1.0, 0.0]), np.array([0.0, 2.0])]
    assert select_best(values) == 1


def test_ties_keep_first_occurrence():
    values = [np.array([2.0]), np.array([1.0]), np.array([-1.0]), np.array([1.0])]
    assert select_best(values) == 1


def test_nan_ranks_last():
    values = [np.array([np.nan]), np.array([1e300]), np.array([np.inf])]
    assert select_best(values) == 1
    assert select_best([np.array([np.nan]), np.array([np.inf])]) == 1
    assert select_best([np.array([np.nan]), np.array([np.nan])]) == 0


def test_norm_function_and_key():
    records = [("a", np.array([1.0, 1.0])), ("b", np.array([1.2, 0.0]))]
    assert select_best(records, key=lambda r: r[1]) == 1
    assert select_best(records, _infinity_norm, key=lambda r: r[1]) == 0


def test_single_value():
    assert select_best([np.array([5.0])]) == 0


def test_empty_raises():
    with pytest.raises(ValueError):
        select_best([])
