"""Drive ordered candidate lists to a single solution record.

Three drivers share one ordered-try core (:func:`_first_success`):

- :class:`PolyAlgorithmCache` keeps one warm cache per candidate and a cursor
  over them, so repeated solves with :meth:`PolyAlgorithmCache.reinit` reuse
  the linear-solve machinery;
- :func:`_solve_in_order` builds every candidate fresh and discards it;
- :func:`_solve_four` is the fixed four-candidate variant used for in-place
  problems.

All three return on the first successful candidate in list order. When every
candidate fails, the candidate with the smallest residual norm is reported,
first occurrence winning ties.
"""

from __future__ import annotations

from typing import Any, Iterable, Iterator, Optional, Sequence

from polyroot.algorithms.nonlinear.candidates.base import (_CandidateAlgorithm,
                                                           _CandidateCache)
from polyroot.algorithms.nonlinear.norms import _default_norm
from polyroot.algorithms.nonlinear.selection import select_best
from polyroot.algorithms.nonlinear.types import (_UNSET, AttemptRecord,
                                                 NonlinearProblem,
                                                 NonlinearSolution, NormFn,
                                                 ReturnCode)
from polyroot.algorithms.types.core import _BackendCall
from polyroot.algorithms.types.exceptions import PolyAlgorithmStateError
from polyroot.utils.log_config import logger

_Attempt = tuple[int, NonlinearSolution]


def _record(index: int, sub: NonlinearSolution, norm_fn: NormFn) -> AttemptRecord:
    name = getattr(sub.alg, "name", type(sub.alg).__name__)
    return AttemptRecord(
        index=index,
        name=name,
        retcode=sub.retcode,
        residual_norm=sub.residual_norm(norm_fn),
        nsteps=sub.stats.nsteps,
    )


def _wrap(
    alg: Any,
    problem: NonlinearProblem,
    index: int,
    sub: NonlinearSolution,
    attempts: Sequence[AttemptRecord],
    *,
    retcode: Optional[ReturnCode] = None,
) -> NonlinearSolution:
    """Re-label the sub-solution of candidate ``index`` as the result of ``alg``."""
    return NonlinearSolution(
        u=sub.u,
        resid=sub.resid,
        retcode=sub.retcode if retcode is None else retcode,
        stats=sub.stats,
        alg=alg,
        problem=problem,
        original=sub,
        candidate_index=index,
        attempts=tuple(attempts),
    )


def _first_success(
    attempts: Iterable[_Attempt],
    records: list[AttemptRecord],
    norm_fn: NormFn,
    total: int,
) -> tuple[Optional[_Attempt], list[_Attempt]]:
    """Consume ``attempts`` in order until one succeeds.

    ``attempts`` is consumed lazily, so candidates after the first success
    are never run.

    Parameters
    ----------
    attempts : iterable of (int, :class:`~polyroot.algorithms.nonlinear.types.NonlinearSolution`)
        Candidate index and fully solved sub-solution, in list order.
    records : list of :class:`~polyroot.algorithms.nonlinear.types.AttemptRecord`
        Appended with one record per consumed attempt.
    norm_fn : :data:`~polyroot.algorithms.nonlinear.types.NormFn`
        Norm reported in the records and log messages.
    total : int
        Number of candidates in the list. The failure at index ``total - 1``
        is logged as the last one rather than as a fallback.

    Returns
    -------
    winner : (int, NonlinearSolution) or None
        First successful attempt, or None if all failed.
    failures : list of (int, NonlinearSolution)
        Failed attempts preceding the winner (all attempts if none won).
    """
    failures: list[_Attempt] = []
    for index, sub in attempts:
        record = _record(index, sub, norm_fn)
        records.append(record)
        if sub.success:
            if failures:
                logger.info("Candidate %d (%s) converged after %d fallback(s)", index, record.name, len(failures))
            return (index, sub), failures
        if index + 1 < total:
            logger.info(
                "Candidate %d (%s) failed with %s (|F|=%.2e), falling back",
                index, record.name, record.retcode, record.residual_norm,
            )
        else:
            logger.info(
                "Last candidate %d (%s) failed with %s (|F|=%.2e)",
                index, record.name, record.retcode, record.residual_norm,
            )
        failures.append((index, sub))
    return None, failures


def _norm_from_call(call: _BackendCall) -> NormFn:
    norm = call.kwargs.get("internalnorm")
    return _default_norm if norm is None else norm


def _solve_in_order(
    problem: NonlinearProblem,
    alg: Any,
    candidates: Sequence[_CandidateAlgorithm],
    call: _BackendCall,
) -> NonlinearSolution:
    """Solve ``problem`` with each candidate in turn, discarding each cache.

    On total failure the attempted candidate with the smallest residual norm
    is returned with its own return code.
    """
    if not candidates:
        raise ValueError("At least one candidate is required")
    norm_fn = _norm_from_call(call)
    records: list[AttemptRecord] = []
    attempts = ((i, c.solve(problem, *call.args, **call.kwargs)) for i, c in enumerate(candidates))
    winner, failures = _first_success(attempts, records, norm_fn, len(candidates))
    if winner is not None:
        return _wrap(alg, problem, winner[0], winner[1], records)

    best = select_best(failures, norm_fn, key=lambda item: item[1].resid)
    index, sub = failures[best]
    logger.warning(
        "All %d candidates failed; returning candidate %d (%s, |F|=%.2e)",
        len(failures), index, records[best].name, records[best].residual_norm,
    )
    return _wrap(alg, problem, index, sub, records)


def _solve_four(
    problem: NonlinearProblem,
    alg: Any,
    c1: _CandidateAlgorithm,
    c2: _CandidateAlgorithm,
    c3: _CandidateAlgorithm,
    c4: _CandidateAlgorithm,
    call: _BackendCall,
) -> NonlinearSolution:
    """Fixed-arity form of :func:`_solve_in_order` for exactly four candidates."""
    norm_fn = _norm_from_call(call)
    records: list[AttemptRecord] = []

    def attempts() -> Iterator[_Attempt]:
        yield 0, c1.solve(problem, *call.args, **call.kwargs)
        yield 1, c2.solve(problem, *call.args, **call.kwargs)
        yield 2, c3.solve(problem, *call.args, **call.kwargs)
        yield 3, c4.solve(problem, *call.args, **call.kwargs)

    winner, failures = _first_success(attempts(), records, norm_fn, 4)
    if winner is not None:
        return _wrap(alg, problem, winner[0], winner[1], records)

    (_, s1), (_, s2), (_, s3), (_, s4) = failures
    best = select_best((s1.resid, s2.resid, s3.resid, s4.resid), norm_fn)
    logger.warning(
        "All 4 candidates failed; returning candidate %d (%s, |F|=%.2e)",
        best, records[best].name, records[best].residual_norm,
    )
    return _wrap(alg, problem, best, (s1, s2, s3, s4)[best], records)


def _snapshot(cache: _CandidateCache) -> NonlinearSolution:
    return NonlinearSolution(
        u=cache.u.copy(),
        resid=cache.fu.copy(),
        retcode=cache.retcode,
        stats=cache.stats.copy(),
        alg=cache.alg,
        problem=cache.prob,
    )


class PolyAlgorithmCache:
    """Warm candidate caches driven in order by a cursor.

    Parameters
    ----------
    alg : Any
        Polyalgorithm named as the solver in the returned records.
    caches : sequence of :class:`~polyroot.algorithms.nonlinear.candidates.base._CandidateCache`
        One initialised cache per candidate, in list order.

    Notes
    -----
    ``current`` is the 0-based index of the candidate that :meth:`solve`
    drives next. It only advances past a candidate that failed, so after a
    successful :meth:`solve` it points at the winner, and after total failure
    it equals ``len(caches)``. :meth:`reinit` leaves it unchanged; the owner
    rewinds it explicitly when a new solve should start from the first
    candidate again.

    One call to :meth:`perform_step` fully solves the current candidate
    rather than performing a single iteration of it.
    """

    def __init__(self, alg: Any, caches: Sequence[_CandidateCache]) -> None:
        if not caches:
            raise ValueError("PolyAlgorithmCache requires at least one candidate cache")
        self.alg = alg
        self._caches: tuple[_CandidateCache, ...] = tuple(caches)
        self._current = 0

    @property
    def caches(self) -> tuple[_CandidateCache, ...]:
        return self._caches

    @property
    def current(self) -> int:
        return self._current

    @current.setter
    def current(self, value: int) -> None:
        value = int(value)
        if not 0 <= value <= len(self._caches):
            raise ValueError(f"current must be in [0, {len(self._caches)}], got {value}")
        self._current = value

    @property
    def problem(self) -> NonlinearProblem:
        return self._caches[0].prob

    @property
    def internalnorm(self) -> NormFn:
        """Norm used to rank failed candidates (that of the first cache)."""
        return self._caches[0].internalnorm

    def __len__(self) -> int:
        return len(self._caches)

    def perform_step(self) -> NonlinearSolution:
        """Fully solve the candidate at the cursor and return its sub-solution.

        The cursor is not moved.

        Raises
        ------
        :class:`~polyroot.algorithms.types.exceptions.PolyAlgorithmStateError`
            If ``current`` is not a valid candidate index.
        """
        if not 0 <= self._current < len(self._caches):
            raise PolyAlgorithmStateError(
                f"Cannot step candidate {self._current}: cursor must be in [0, {len(self._caches)})"
            )
        return self._caches[self._current].solve()

    step = perform_step

    def _drive(self) -> Iterator[_Attempt]:
        while self._current < len(self._caches):
            sub = self.perform_step()
            yield self._current, sub
            self._current += 1

    def solve(self) -> NonlinearSolution:
        """Drive candidates from the cursor until one succeeds.

        Returns
        -------
        :class:`~polyroot.algorithms.nonlinear.types.NonlinearSolution`
            The winner's result with ``SUCCESS``, or on total failure the
            candidate with the smallest residual among all caches (attempted
            or not) with ``MAX_ITERS``.
        """
        norm_fn = self.internalnorm
        records: list[AttemptRecord] = []
        if self._current >= len(self._caches):
            logger.warning("All candidates already exhausted; call reinit and reset current to solve again")
        winner, _ = _first_success(self._drive(), records, norm_fn, len(self._caches))
        if winner is not None:
            index, sub = winner
            return _wrap(self.alg, self.problem, index, sub, records, retcode=ReturnCode.SUCCESS)

        best = select_best(self._caches, norm_fn, key=lambda cache: cache.fu)
        sub = _snapshot(self._caches[best])
        logger.warning(
            "All %d candidates failed; returning candidate %d (%s, |F|=%.2e)",
            len(self._caches), best, self._caches[best].alg.name, sub.residual_norm(norm_fn),
        )
        return _wrap(self.alg, self.problem, best, sub, records, retcode=ReturnCode.MAX_ITERS)

    def reinit(self, u0: Any = None, p: Any = _UNSET) -> None:
        """Restart every candidate cache; ``current`` is left unchanged."""
        for cache in self._caches:
            cache.reinit(u0, p)

    def __repr__(self) -> str:
        return f"PolyAlgorithmCache(alg={self.alg!r}, current={self._current}, n={len(self._caches)})"
