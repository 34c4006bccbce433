import numpy as np
import pandas as pd
import pytest

from polyroot.algorithms.nonlinear.types import (AttemptRecord,
                                                 NonlinearProblem,
                                                 NonlinearSolution,
                                                 ReturnCode, SolverStats)
from polyroot.algorithms.types.exceptions import (ConvergenceError,
                                                  PolyrootError)


def _solution(retcode, attempts=()):
    return NonlinearSolution(
        u=np.array([1.0]),
        resid=np.array([3.0, 4.0]),
        retcode=retcode,
        stats=SolverStats(nsteps=2),
        attempts=attempts,
    )


def test_problem_validation():
    with pytest.raises(ValueError):
        NonlinearProblem("not callable", np.zeros(2))
    with pytest.raises(ValueError):
        NonlinearProblem(lambda u, p: u, np.zeros((2, 2)))
    with pytest.raises(ValueError):
        NonlinearProblem(lambda u, p: u, np.array([]))
    with pytest.raises(ValueError):
        NonlinearProblem(lambda u, p: u, np.zeros(2), jac=1.0)


def test_problem_copies_and_promotes_u0():
    u0 = np.array([1, 2])
    prob = NonlinearProblem(lambda u, p: u, u0)
    u0[0] = 7
    assert prob.u0.dtype == np.float64
    np.testing.assert_array_equal(prob.u0, [1.0, 2.0])
    assert NonlinearProblem(lambda u, p: u, 3.0).n == 1


def test_residual_calling_conventions():
    oop = NonlinearProblem(lambda u, p: u * p, np.ones(2), p=2.0)

    def f(du, u, p):
        du[:] = u * p

    inplace = NonlinearProblem(f, np.ones(2), p=2.0, inplace=True)
    u = np.array([1.0, 3.0])
    out = np.empty(2)
    np.testing.assert_array_equal(oop.residual(u), [2.0, 6.0])
    assert inplace.residual(u, out=out) is out
    np.testing.assert_array_equal(out, [2.0, 6.0])
    with pytest.raises(ValueError):
        oop.jacobian(u)


def test_remake_keeps_other_fields():
    prob = NonlinearProblem(lambda u, p: u - p, np.zeros(2), p=1.0)
    moved = prob.remake(u0=[1.0, 1.0])
    assert moved.p == 1.0
    np.testing.assert_array_equal(moved.u0, [1.0, 1.0])
    np.testing.assert_array_equal(prob.u0, [0.0, 0.0])
    assert prob.remake(p=None).p is None
    assert prob.remake().f is prob.f


def test_return_codes():
    assert ReturnCode.SUCCESS.is_successful
    assert not any(rc.is_successful for rc in ReturnCode if rc is not ReturnCode.SUCCESS)
    assert str(ReturnCode.MAX_ITERS) == "MaxIters"


def test_stats_copy_and_reset():
    stats = SolverStats(nsteps=3, nf=5)
    snap = stats.copy()
    stats.reset()
    assert snap.nsteps == 3 and snap.nf == 5
    assert stats == SolverStats()


def test_require_success():
    ok = _solution(ReturnCode.SUCCESS)
    assert ok.require_success() is ok
    with pytest.raises(ConvergenceError) as excinfo:
        _solution(ReturnCode.STALLED).require_success()
    assert isinstance(excinfo.value, PolyrootError)
    assert "Stalled" in str(excinfo.value)


def test_residual_norm_and_to_df():
    attempts = (
        AttemptRecord(0, "NewtonRaphson", ReturnCode.FAILURE, np.inf, 1),
        AttemptRecord(1, "TrustRegion(Simple)", ReturnCode.SUCCESS, 0.0, 9),
    )
    sol = _solution(ReturnCode.SUCCESS, attempts)
    assert sol.residual_norm() == pytest.approx(5.0)
    assert sol.candidate is None

    df = sol.to_df()
    assert isinstance(df, pd.DataFrame)
    assert list(df.columns) == ["index", "candidate", "retcode", "residual_norm", "nsteps"]
    assert df["retcode"].tolist() == ["Failure", "Success"]
    assert df["nsteps"].sum() == 10
    assert _solution(ReturnCode.SUCCESS).to_df().empty
