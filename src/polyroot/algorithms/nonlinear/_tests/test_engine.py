import logging

import numpy as np
import pytest

from polyroot.algorithms.nonlinear.candidates.base import (_CandidateAlgorithm,
                                                           _CandidateCache)
from polyroot.algorithms.nonlinear.engine import (PolyAlgorithmCache,
                                                  _solve_four,
                                                  _solve_in_order)
from polyroot.algorithms.nonlinear.norms import _infinity_norm
from polyroot.algorithms.nonlinear.types import NonlinearProblem, ReturnCode
from polyroot.algorithms.types.core import _BackendCall
from polyroot.algorithms.types.exceptions import PolyAlgorithmStateError


class _Scripted(_CandidateAlgorithm):
    """Candidate that terminates after ``nsteps`` with a fixed outcome."""

    def __init__(self, label, *, retcode, resid, u=None, nsteps=1):
        super().__init__()
        self.label = label
        self.retcode = retcode
        self.resid = np.asarray(resid, dtype=float)
        self.u_final = np.full(self.resid.size, float(len(label))) if u is None else np.asarray(u, dtype=float)
        self.nsteps = nsteps
        self.solves = 0

    @property
    def name(self):
        return self.label

    def _make_cache(self, problem, **kwargs):
        return _ScriptedCache(self, problem, **kwargs)

    def solve(self, problem, *args, **kwargs):
        self.solves += 1
        return super().solve(problem, *args, **kwargs)

    def _key(self):
        return super()._key() + (self.label,)


class _ScriptedCache(_CandidateCache):

    def _setup(self):
        return None

    def _reset_state(self):
        return None

    def _perform_step(self):
        if self.stats.nsteps + 1 < self.alg.nsteps:
            return
        self.u[:] = self.alg.u_final
        self.fu[:] = self.alg.resid
        self._terminate(self.alg.retcode)


def _problem(n=2):
    return NonlinearProblem(lambda u, p: u - 10.0, np.zeros(n))


def _fail(label, resid, **kwargs):
    return _Scripted(label, retcode=ReturnCode.MAX_ITERS, resid=resid, **kwargs)


def _win(label, u, **kwargs):
    return _Scripted(label, retcode=ReturnCode.SUCCESS, resid=np.zeros(len(u)), u=u, **kwargs)


def _stateful(candidates, problem=None, **kwargs):
    problem = _problem() if problem is None else problem
    return PolyAlgorithmCache("poly", tuple(c.init(problem, **kwargs) for c in candidates))


def test_first_success_wins_in_every_driver():
    u_win = np.array([1.0, 2.0])
    candidates = (
        _fail("a", [3.0, 0.0]),
        _win("b", u_win, nsteps=4),
        _win("c", np.array([9.0, 9.0])),
        _fail("d", [0.1, 0.0]),
    )
    problem = _problem()
    call = _BackendCall()

    stateless = _solve_in_order(problem, "poly", candidates, call)
    fixed = _solve_four(problem, "poly", *candidates, call)
    cache = _stateful(candidates, problem)
    stateful = cache.solve()

    for sol in (stateless, fixed, stateful):
        assert sol.retcode is ReturnCode.SUCCESS
        np.testing.assert_array_equal(sol.u, u_win)
        assert sol.candidate_index == 1
        assert sol.stats.nsteps == 4
        assert sol.alg == "poly"
        assert sol.original.alg is candidates[1]
        assert [a.name for a in sol.attempts] == ["a", "b"]
    assert cache.current == 1


def test_later_candidates_are_not_run_after_success():
    candidates = [_win("a", np.ones(2)), _fail("b", [1.0, 1.0])]
    _solve_in_order(_problem(), "poly", candidates, _BackendCall())
    assert candidates[0].solves == 1
    assert candidates[1].solves == 0


def test_fourth_candidate_success_falls_through_three_failures():
    u_win = np.array([4.0, 4.0])
    candidates = (
        _fail("nr", [1.0, 1.0]),
        _fail("nr-bt", [2.0, 2.0]),
        _Scripted("tr", retcode=ReturnCode.SHRINK_THRESHOLD_EXCEEDED, resid=[0.5, 0.5]),
        _win("tr-bastin", u_win, nsteps=7),
    )
    problem = _problem()
    cache = _stateful(candidates, problem)

    stateful = cache.solve()
    stateless = _solve_in_order(problem, "poly", candidates, _BackendCall())

    for sol in (stateful, stateless):
        assert sol.success
        assert sol.candidate_index == 3
        assert sol.stats.nsteps == 7
        assert [a.retcode for a in sol.attempts[:3]] == [
            ReturnCode.MAX_ITERS, ReturnCode.MAX_ITERS, ReturnCode.SHRINK_THRESHOLD_EXCEEDED,
        ]
        np.testing.assert_array_equal(sol.u, u_win)
    assert cache.current == 3


def test_total_failure_returns_minimum_residual():
    candidates = (
        _fail("a", [3.0, 0.0]),
        _Scripted("b", retcode=ReturnCode.STALLED, resid=[0.0, 0.5]),
        _fail("c", [1.0, 0.0]),
        _fail("d", [np.nan, 0.0]),
    )
    problem = _problem()
    call = _BackendCall()

    stateless = _solve_in_order(problem, "poly", candidates, call)
    fixed = _solve_four(problem, "poly", *candidates, call)

    for sol in (stateless, fixed):
        assert sol.candidate_index == 1
        # Stateless paths keep the winner's own return code
        assert sol.retcode is ReturnCode.STALLED
        np.testing.assert_array_equal(sol.u, candidates[1].u_final)
        assert len(sol.attempts) == 4

    cache = _stateful(candidates, problem)
    stateful = cache.solve()
    assert stateful.retcode is ReturnCode.MAX_ITERS
    assert stateful.candidate_index == 1
    assert cache.current == len(candidates)
    norms = [a.residual_norm for a in stateful.attempts]
    assert stateful.residual_norm() == min(n for n in norms if not np.isnan(n))


def test_equal_residuals_keep_the_earlier_candidate():
    candidates = (
        _fail("a", [2.0, 0.0]),
        _fail("b", [1.0, 0.0]),
        _fail("c", [0.0, 1.0]),
        _fail("d", [1.0, 0.0]),
    )
    problem = _problem()
    call = _BackendCall()
    assert _solve_in_order(problem, "poly", candidates, call).candidate_index == 1
    assert _solve_four(problem, "poly", *candidates, call).candidate_index == 1
    assert _stateful(candidates, problem).solve().candidate_index == 1


def test_fixed_arity_matches_list_driver():
    candidates = (
        _fail("a", [0.3, 0.0]),
        _fail("b", [0.2, 0.0]),
        _fail("c", [0.2, 0.1]),
        _fail("d", [0.25, 0.0]),
    )
    problem = _problem()
    call = _BackendCall()
    listed = _solve_in_order(problem, "poly", candidates, call)
    fixed = _solve_four(problem, "poly", *candidates, call)
    assert listed.candidate_index == fixed.candidate_index == 1
    assert listed.retcode is fixed.retcode
    np.testing.assert_array_equal(listed.u, fixed.u)
    np.testing.assert_array_equal(listed.resid, fixed.resid)
    assert listed.to_df().equals(fixed.to_df())


def test_selection_uses_forwarded_norm():
    candidates = (
        _fail("a", [1.0, 1.0]),    # L2 1.41, inf 1.0
        _fail("b", [1.2, 0.0]),    # L2 1.2,  inf 1.2
    )
    problem = _problem()
    l2 = _solve_in_order(problem, "poly", candidates, _BackendCall())
    inf = _solve_in_order(problem, "poly", candidates, _BackendCall(kwargs={"internalnorm": _infinity_norm}))
    assert l2.candidate_index == 1
    assert inf.candidate_index == 0


def test_stateful_total_failure_ranks_unattempted_caches():
    candidates = (_fail("a", [20.0, 0.0]), _fail("b", [30.0, 0.0]))
    cache = _stateful(candidates)
    # The first cache is never driven, so its residual stays at u0 - 10
    cache.current = 1
    sol = cache.solve()
    assert sol.retcode is ReturnCode.MAX_ITERS
    assert [a.name for a in sol.attempts] == ["b"]
    assert sol.candidate_index == 0
    np.testing.assert_array_equal(sol.resid, [-10.0, -10.0])
    assert not cache.caches[0].is_terminated

    cache = _stateful(candidates)
    cache.current = len(candidates)
    sol = cache.solve()
    assert sol.retcode is ReturnCode.MAX_ITERS
    assert sol.attempts == ()
    assert sol.candidate_index == 0
    np.testing.assert_array_equal(sol.resid, [-10.0, -10.0])


def test_perform_step_drives_one_candidate_to_termination():
    candidates = (_fail("a", [1.0, 0.0], nsteps=5), _win("b", np.ones(2)))
    cache = _stateful(candidates)
    sub = cache.perform_step()
    assert sub.retcode is ReturnCode.MAX_ITERS
    assert sub.stats.nsteps == 5
    assert cache.caches[0].is_terminated
    assert not cache.caches[1].is_terminated
    assert cache.current == 0
    assert cache.step == cache.perform_step


def test_perform_step_outside_range_raises():
    cache = _stateful((_fail("a", [1.0, 0.0]), _fail("b", [1.0, 0.0])))
    cache.solve()
    assert cache.current == 2
    with pytest.raises(PolyAlgorithmStateError):
        cache.perform_step()
    with pytest.raises(ValueError):
        cache.current = 3
    with pytest.raises(ValueError):
        cache.current = -1


def test_reinit_resets_every_cache_but_not_current():
    candidates = (_fail("a", [1.0, 0.0]), _win("b", np.ones(2)), _fail("c", [2.0, 0.0]))
    cache = _stateful(candidates)
    cache.solve()
    assert cache.current == 1

    u0 = np.array([5.0, 6.0])
    cache.reinit(u0)
    assert cache.current == 1
    for sub in cache.caches:
        assert not sub.is_terminated
        assert sub.retcode is ReturnCode.DEFAULT
        assert sub.stats.nsteps == 0
        np.testing.assert_array_equal(sub.u, u0)
        np.testing.assert_array_equal(sub.fu, u0 - 10.0)

    cache.current = 0
    sol = cache.solve()
    assert sol.success
    assert sol.candidate_index == 1


def test_reinit_rejects_size_change():
    cache = _stateful((_fail("a", [1.0, 0.0]),))
    with pytest.raises(ValueError):
        cache.reinit(np.zeros(3))


def test_forwarded_kwargs_reach_every_candidate():
    candidates = (_fail("a", [1.0, 0.0], nsteps=50), _fail("b", [2.0, 0.0], nsteps=50))
    sol = _solve_in_order(_problem(), "poly", candidates, _BackendCall(kwargs={"maxiters": 3}))
    assert [a.nsteps for a in sol.attempts] == [3, 3]
    assert all(a.retcode is ReturnCode.MAX_ITERS for a in sol.attempts)

    cache = _stateful(candidates, maxiters=3)
    assert all(sub.maxiters == 3 for sub in cache.caches)


def test_empty_candidate_list_is_rejected():
    with pytest.raises(ValueError):
        _solve_in_order(_problem(), "poly", (), _BackendCall())
    with pytest.raises(ValueError):
        PolyAlgorithmCache("poly", ())


def test_fallbacks_and_total_failure_are_logged(caplog):
    candidates = (_fail("a", [1.0, 0.0]), _fail("b", [2.0, 0.0]))
    with caplog.at_level(logging.INFO, logger="polyroot"):
        _solve_in_order(_problem(), "poly", candidates, _BackendCall())
    records = [r for r in caplog.records if r.name == "polyroot"]
    assert [r.levelname for r in records] == ["INFO", "INFO", "WARNING"]
    assert "falling back" in records[0].getMessage()
    assert "falling back" not in records[1].getMessage()
    assert records[1].getMessage().startswith("Last candidate 1 (b)")

    caplog.clear()
    with caplog.at_level(logging.INFO, logger="polyroot"):
        _stateful(candidates).solve()
    messages = [r.getMessage() for r in caplog.records if r.name == "polyroot"]
    assert "falling back" in messages[0]
    assert messages[1].startswith("Last candidate 1 (b)")
