"""Provide the Newton-Raphson candidate, with an optional line search.

Each iteration solves ``J(u) delta = -F(u)`` with the configured linear
solver and either takes the full step or hands it to the Armijo
backtracking search.
"""

from typing import Optional

import numpy as np
from numpy.linalg import LinAlgError

from polyroot.algorithms.nonlinear.candidates.base import (_CandidateAlgorithm,
                                                           _CandidateCache)
from polyroot.algorithms.nonlinear.config import (BackTracking,
                                                  PolyAlgorithmConfig)
from polyroot.algorithms.nonlinear.jacobian import _JacobianOperator
from polyroot.algorithms.nonlinear.line import _ArmijoLineSearch
from polyroot.algorithms.nonlinear.linsolve import _LinearSolver
from polyroot.algorithms.nonlinear.types import NonlinearProblem, ReturnCode
from polyroot.algorithms.types.exceptions import ConvergenceError
from polyroot.utils.log_config import logger


class NewtonRaphson(_CandidateAlgorithm):
    """Newton-Raphson method.

    Parameters
    ----------
    linesearch : :class:`~polyroot.algorithms.nonlinear.config.BackTracking` or None
        Line search applied to every Newton step. ``None`` takes full steps.
    config : :class:`~polyroot.algorithms.nonlinear.config.PolyAlgorithmConfig` or None
        Derivative and linear-solve settings.

    Examples
    --------
    >>> import numpy as np
    >>> from polyroot import NonlinearProblem, NewtonRaphson
    >>> prob = NonlinearProblem(lambda u, p: u**2 - p, np.array([1.0]), p=2.0)
    >>> sol = NewtonRaphson().solve(prob)
    >>> bool(np.isclose(sol.u[0], np.sqrt(2.0)))
    True
    """

    def __init__(
        self,
        *,
        linesearch: Optional[BackTracking] = None,
        config: Optional[PolyAlgorithmConfig] = None,
    ) -> None:
        super().__init__(config=config)
        if linesearch is not None and not isinstance(linesearch, BackTracking):
            raise ValueError("linesearch must be a BackTracking configuration or None")
        self.linesearch = linesearch

    @property
    def name(self) -> str:
        if self.linesearch is None:
            return "NewtonRaphson"
        return "NewtonRaphson(BackTracking)"

    def _make_cache(self, problem: NonlinearProblem, **kwargs) -> "_NewtonCache":
        return _NewtonCache(self, problem, **kwargs)

    def _key(self) -> tuple:
        return super()._key() + (self.linesearch,)

    def __repr__(self) -> str:
        if self.linesearch is None:
            return "NewtonRaphson()"
        return f"NewtonRaphson(linesearch={self.linesearch!r})"


class _NewtonCache(_CandidateCache):

    alg: NewtonRaphson

    def _setup(self) -> None:
        self._jac = _JacobianOperator(self.prob, self.alg.config, self.stats)
        self._linsolve = _LinearSolver(self.alg.config, self.stats)
        self._linesearch = None
        if self.alg.linesearch is not None:
            self._linesearch = _ArmijoLineSearch(
                config=self.alg.linesearch,
                residual_fn=self._eval_residual,
                norm_fn=self.internalnorm,
            )

    def _rebind_problem(self) -> None:
        self._jac.problem = self.prob

    def _reset_state(self) -> None:
        return None

    def _perform_step(self) -> None:
        J = self._jac.build(self.u, self.fu)
        try:
            delta = self._linsolve.solve(J, -self.fu, u=self.u, p=self.prob.p)
        except LinAlgError as exc:
            logger.debug("%s: linear solve failed at step %d: %s", self.alg.name, self.stats.nsteps, exc)
            self._terminate(ReturnCode.FAILURE)
            return
        if not np.all(np.isfinite(delta)):
            self._terminate(ReturnCode.FAILURE)
            return

        if self._linesearch is None:
            self.u += delta
            self._eval_residual(self.u, out=self.fu)
            return

        try:
            x_new, r_new, _, _ = self._linesearch(
                x0=self.u, delta=delta, current_norm=self.residual_norm()
            )
        except ConvergenceError as exc:
            logger.debug("%s: %s", self.alg.name, exc)
            self._terminate(ReturnCode.STALLED)
            return
        np.copyto(self.u, x_new)
        np.copyto(self.fu, r_new)
