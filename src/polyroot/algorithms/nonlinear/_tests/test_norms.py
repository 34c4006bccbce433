import numpy as np
import pytest

from polyroot.algorithms.nonlinear import (INFINITY_NORM, RMS_NORM,
                                           NonlinearProblem, RobustMultiNewton)
from polyroot.algorithms.nonlinear.norms import (DEFAULT_NORM, _default_norm,
                                                 _infinity_norm, _rms_norm)


@pytest.mark.parametrize("r", [
    np.array([3.0, 4.0]),
    np.array([0.0, 0.0, 0.0]),
    np.linspace(-2.0, 5.0, 17),
])
def test_l2_matches_numpy(r):
    assert _default_norm(r) == pytest.approx(np.linalg.norm(r), rel=1e-14)


def test_l2_does_not_overflow():
    r = np.array([1e200, 1e200])
    assert _default_norm(r) == pytest.approx(np.sqrt(2.0) * 1e200, rel=1e-14)


def test_non_finite_components():
    assert np.isnan(_default_norm(np.array([1.0, np.nan])))
    assert np.isnan(_default_norm(np.array([np.nan, np.nan])))
    assert _default_norm(np.array([1.0, -np.inf])) == np.inf
    assert np.isnan(_infinity_norm(np.array([np.nan, 1.0])))


def test_infinity_and_rms():
    r = np.array([1.0, -3.0, 2.0])
    assert _infinity_norm(r) == 3.0
    assert _rms_norm(r) == pytest.approx(np.sqrt(14.0 / 3.0))


def test_accepts_array_like_and_returns_float():
    value = DEFAULT_NORM([[3.0], [4.0]])
    assert isinstance(value, float)
    assert value == pytest.approx(5.0)


@pytest.mark.parametrize("norm", [INFINITY_NORM, RMS_NORM])
def test_exported_norms_drive_a_polyalgorithm(norm):
    prob = NonlinearProblem(lambda u, p: u**2 - p, np.array([1.0, 1.0]), p=np.array([2.0, 3.0]))
    cache = RobustMultiNewton().init(prob, internalnorm=norm)
    assert cache.internalnorm is norm
    sol = cache.solve()
    assert sol.success
    assert sol.residual_norm(norm) <= 1e-10
    np.testing.assert_allclose(sol.u, np.sqrt([2.0, 3.0]), rtol=1e-8)
