"""Define the capability interface of candidate solvers.

A candidate has two layers:

- an immutable *algorithm* (:class:`_CandidateAlgorithm`) naming the method
  and carrying its configuration, which can be compared and listed by the
  registry;
- a mutable *cache* (:class:`_CandidateCache`) created by
  :meth:`_CandidateAlgorithm.init` for one problem, owning the iterate,
  residual, return code and statistics.

The fallback drivers only use the methods defined here: ``init``, ``step``,
``is_terminated``, ``solve``, ``reinit`` and ``residual_norm``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Optional

import numpy as np

from polyroot.algorithms.nonlinear.config import PolyAlgorithmConfig
from polyroot.algorithms.nonlinear.norms import _default_norm
from polyroot.algorithms.nonlinear.types import (_UNSET, NonlinearProblem,
                                                 NonlinearSolution, NormFn,
                                                 ReturnCode, SolverStats)
from polyroot.algorithms.types.core import _PolyrootBaseBackend
from polyroot.algorithms.types.exceptions import BackendError
from polyroot.utils.log_config import logger


class _CandidateAlgorithm(ABC):
    """Immutable specification of one candidate solver.

    Parameters
    ----------
    config : :class:`~polyroot.algorithms.nonlinear.config.PolyAlgorithmConfig` or None
        Derivative and linear-solve settings. ``None`` uses the defaults.
    """

    name: str = "candidate"

    def __init__(self, *, config: Optional[PolyAlgorithmConfig] = None) -> None:
        self.config = PolyAlgorithmConfig() if config is None else config

    @abstractmethod
    def _make_cache(self, problem: NonlinearProblem, **kwargs) -> "_CandidateCache":
        """Build the cache for ``problem``."""

    def supports(self, problem: NonlinearProblem) -> bool:
        """Return whether this candidate can run on ``problem``'s calling convention."""
        return True

    def init(self, problem: NonlinearProblem, *args, **kwargs) -> "_CandidateCache":
        """Create an initialised, steppable cache for ``problem``.

        Extra positional arguments are not used by the built-in candidates
        and are rejected; keyword arguments are the runtime options of
        :class:`_CandidateCache`.

        Raises
        ------
        :class:`~polyroot.algorithms.types.exceptions.BackendError`
            If the candidate does not support the problem's calling
            convention.
        """
        if args:
            raise TypeError(f"{self.name} takes no extra positional arguments, got {len(args)}")
        if not self.supports(problem):
            convention = "in-place" if problem.inplace else "out-of-place"
            raise BackendError(f"{self.name} does not support {convention} problems")
        return self._make_cache(problem, **kwargs)

    def solve(self, problem: NonlinearProblem, *args, **kwargs) -> NonlinearSolution:
        """Build a cache for ``problem`` and drive it to termination."""
        return self.init(problem, *args, **kwargs).solve()

    def _key(self) -> tuple:
        return (type(self), self.config)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, _CandidateAlgorithm):
            return NotImplemented
        return self._key() == other._key()

    def __hash__(self) -> int:
        return hash(self._key())

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


class _CandidateCache(_PolyrootBaseBackend, ABC):
    """Mutable iteration state of one candidate on one problem.

    Parameters
    ----------
    alg : :class:`_CandidateAlgorithm`
        Algorithm that built this cache.
    problem : :class:`~polyroot.algorithms.nonlinear.types.NonlinearProblem`
        Problem being solved.
    abstol : float, default=1e-10
        Termination tolerance on ``internalnorm(fu)``.
    maxiters : int, default=1000
        Iteration budget.
    internalnorm : :data:`~polyroot.algorithms.nonlinear.types.NormFn` or None
        Norm used for the termination test and residual comparisons. L2 if
        None.

    Notes
    -----
    The residual at the starting point is evaluated on construction and on
    :meth:`reinit`, so :meth:`residual_norm` is meaningful before the first
    step. The termination test runs at the start of every :meth:`step`.
    """

    def __init__(
        self,
        alg: _CandidateAlgorithm,
        problem: NonlinearProblem,
        *,
        abstol: float = 1e-10,
        maxiters: int = 1000,
        internalnorm: NormFn | None = None,
    ) -> None:
        if abstol < 0:
            raise ValueError("abstol must be non-negative")
        if maxiters < 0:
            raise ValueError("maxiters must be non-negative")
        self.alg = alg
        self.prob = problem
        self.abstol = float(abstol)
        self.maxiters = int(maxiters)
        self.internalnorm: NormFn = _default_norm if internalnorm is None else internalnorm
        self.stats = SolverStats()
        self.u = problem.u0.copy()
        self.fu = np.empty_like(self.u)
        self.retcode = ReturnCode.DEFAULT
        self.force_stop = False
        self._setup()
        self._start()

    @abstractmethod
    def _setup(self) -> None:
        """Allocate structural machinery (Jacobian, linear solver, buffers)."""

    @abstractmethod
    def _reset_state(self) -> None:
        """Reset method-specific iteration state after ``u`` and ``fu`` are set."""

    @abstractmethod
    def _perform_step(self) -> None:
        """Advance one iteration, updating ``u`` and ``fu`` in place.

        Implementations call :meth:`_terminate` on internal failures.
        """

    def _start(self) -> None:
        self.retcode = ReturnCode.DEFAULT
        self.force_stop = False
        self._eval_residual(self.u, out=self.fu)
        self._reset_state()

    def _eval_residual(self, u: np.ndarray, out: np.ndarray) -> np.ndarray:
        self.stats.nf += 1
        return self.prob.residual(u, out=out)

    @property
    def is_terminated(self) -> bool:
        return self.force_stop or self.retcode is not ReturnCode.DEFAULT

    def residual_norm(self, norm_fn: NormFn | None = None) -> float:
        norm = self.internalnorm if norm_fn is None else norm_fn
        return float(norm(self.fu))

    def step(self) -> None:
        """Advance one internal iteration unless the cache is terminated."""
        if self.is_terminated or self._check_termination():
            return
        self._perform_step()
        self.stats.nsteps += 1
        if self.is_terminated:
            return
        self.on_iteration(self.stats.nsteps, self.u, self.residual_norm())
        self._check_termination()

    def solve(self) -> NonlinearSolution:
        """Iterate until termination and return the outcome."""
        while not self.is_terminated:
            self.step()
        return NonlinearSolution(
            u=self.u.copy(),
            resid=self.fu.copy(),
            retcode=self.retcode,
            stats=self.stats.copy(),
            alg=self.alg,
            problem=self.prob,
        )

    def reinit(self, u0: Any = None, p: Any = _UNSET) -> None:
        """Restart from a new starting point and/or new parameters.

        Structural machinery built in :meth:`_setup` is kept. Statistics are
        reset. Omitted arguments keep their current values; without ``u0``
        the iteration restarts from the problem's stored ``u0``. ``p`` uses a
        sentinel default because ``None`` is a valid parameter value.
        """
        problem = self.prob.remake(u0=_UNSET if u0 is None else u0, p=p)
        if problem.n != self.u.size:
            raise ValueError(
                f"reinit cannot change the problem size ({self.u.size} -> {problem.n})"
            )
        self.prob = problem
        self._rebind_problem()
        np.copyto(self.u, self.prob.u0)
        self.stats.reset()
        self._start()

    def _rebind_problem(self) -> None:
        """Point structural machinery at ``self.prob`` after a reinit."""
        return None

    def _check_termination(self) -> bool:
        r_norm = self.residual_norm()
        if not np.isfinite(r_norm):
            self._terminate(ReturnCode.FAILURE)
        elif r_norm <= self.abstol:
            self._terminate(ReturnCode.SUCCESS)
        elif self.stats.nsteps >= self.maxiters:
            self._terminate(ReturnCode.MAX_ITERS)
        return self.is_terminated

    def _terminate(self, retcode: ReturnCode) -> None:
        self.retcode = retcode
        self.force_stop = True
        r_norm = self.residual_norm()
        if retcode.is_successful:
            logger.debug("%s converged after %d iterations (|F|=%.2e)", self.alg.name, self.stats.nsteps, r_norm)
            self.on_accept(self.u, iterations=self.stats.nsteps, residual_norm=r_norm)
        else:
            logger.debug("%s stopped with %s after %d iterations (|F|=%.2e)", self.alg.name, retcode, self.stats.nsteps, r_norm)
            self.on_failure(self.u, iterations=self.stats.nsteps, residual_norm=r_norm)
