"""User-facing polyalgorithms for square nonlinear systems.

A polyalgorithm tries an ordered list of candidate solvers and returns the
first one that converges, so the caller does not need to know in advance
which method suits the problem. Two presets are provided:

- :class:`RobustMultiNewton` favours globally convergent trust-region
  methods;
- :class:`FastShortcutNonlinearPolyalg` starts with cheap methods and only
  falls back to trust regions when they fail. It is the default of
  :func:`init` and :func:`solve`.

Examples
--------
>>> import numpy as np
>>> from polyroot import NonlinearProblem, RobustMultiNewton
>>> prob = NonlinearProblem(lambda u, p: u**2 - p, np.array([1.0, 1.0]), p=2.0)
>>> sol = RobustMultiNewton().solve(prob, abstol=1e-12)
>>> sol.success
True
>>> np.allclose(sol.u, np.sqrt(2.0))
True
"""

from typing import Any, Optional

from polyroot.algorithms.nonlinear.candidates import (NewtonRaphson,
                                                      TrustRegion,
                                                      _CandidateAlgorithm)
from polyroot.algorithms.nonlinear.config import (BackTracking,
                                                  DifferentiationConfig,
                                                  PolyAlgorithmConfig,
                                                  PrecsFn, RadiusUpdateScheme)
from polyroot.algorithms.nonlinear.engine import (PolyAlgorithmCache,
                                                  _solve_four,
                                                  _solve_in_order)
from polyroot.algorithms.nonlinear.registry import Preset, build_candidates
from polyroot.algorithms.nonlinear.types import (NonlinearProblem,
                                                 NonlinearSolution)
from polyroot.algorithms.types.core import _BackendCall, _PolyrootBaseFacade


class _PolyAlgorithm(_PolyrootBaseFacade[PolyAlgorithmConfig, NonlinearProblem, NonlinearSolution]):
    """Shared construction and solve logic of the polyalgorithm presets.

    Parameters
    ----------
    autodiff : :class:`~polyroot.algorithms.nonlinear.config.DifferentiationConfig` or None
        Derivative settings.
    linsolve : {"lu", "lstsq", "gmres"} or None
        Linear solver used by the Newton-type and trust-region candidates.
    precs : :data:`~polyroot.algorithms.nonlinear.config.PrecsFn` or None
        Preconditioner factory for the Krylov solver.
    concrete_jac : bool or None
        Force a materialised (``True``) or matrix-free (``False``) Jacobian.
    config : :class:`~polyroot.algorithms.nonlinear.config.PolyAlgorithmConfig` or None
        Base configuration; the keyword arguments above override its fields
        when they are not None.
    """

    preset: Preset

    def __init__(
        self,
        *,
        autodiff: Optional[DifferentiationConfig] = None,
        linsolve: Optional[str] = None,
        precs: Optional[PrecsFn] = None,
        concrete_jac: Optional[bool] = None,
        config: Optional[PolyAlgorithmConfig] = None,
    ) -> None:
        base = PolyAlgorithmConfig() if config is None else config
        super().__init__(base.merge(autodiff=autodiff, linsolve=linsolve, precs=precs, concrete_jac=concrete_jac))

    def candidates(self, problem: NonlinearProblem, *, persistent: bool) -> tuple[_CandidateAlgorithm, ...]:
        """Return the ordered candidate list for ``problem``."""
        return build_candidates(problem, self.config, preset=self.preset, persistent=persistent)

    def init(self, problem: NonlinearProblem, *args, **kwargs) -> PolyAlgorithmCache:
        """Initialise one cache per candidate for repeated solves.

        Parameters
        ----------
        problem : :class:`~polyroot.algorithms.nonlinear.types.NonlinearProblem`
            Problem to solve.
        *args, **kwargs
            Forwarded verbatim to every candidate's ``init`` (``abstol``,
            ``maxiters``, ``internalnorm``).

        Returns
        -------
        :class:`~polyroot.algorithms.nonlinear.engine.PolyAlgorithmCache`
            Cache with the cursor on the first candidate.
        """
        call = _BackendCall(args=args, kwargs=kwargs)
        caches = tuple(
            candidate.init(problem, *call.args, **call.kwargs)
            for candidate in self.candidates(problem, persistent=True)
        )
        return PolyAlgorithmCache(self, caches)

    def solve(self, problem: NonlinearProblem, *args, **kwargs) -> NonlinearSolution:
        """Initialise ``problem`` and drive the candidates once.

        Same outcome as ``self.init(problem, *args, **kwargs).solve()``: the
        first successful candidate, or ``MAX_ITERS`` with the smallest
        residual among all candidates.
        """
        return self.init(problem, *args, **kwargs).solve()


class RobustMultiNewton(_PolyAlgorithm):
    """Polyalgorithm favouring robustness over speed.

    Candidates, in order: trust region with the simple, Bastin, NLsolve and
    Fan radius updates, with Newton-Raphson plus backtracking tried third.
    """

    preset = "robust"


#: Short alias of :class:`RobustMultiNewton`.
Robusters = RobustMultiNewton


class FastShortcutNonlinearPolyalg(_PolyAlgorithm):
    """Polyalgorithm starting with the cheapest methods.

    Candidates, in order: Klement and Broyden (out-of-place problems, one-shot
    solves only), Newton-Raphson, Newton-Raphson with backtracking, and the
    simple and Bastin trust regions.

    In-place problems are solved by a fixed four-candidate driver that
    gives the same outcome as the list-based one.
    """

    preset = "fast"

    def solve(self, problem: NonlinearProblem, *args, **kwargs) -> NonlinearSolution:
        if problem.inplace:
            return self.solve_four(problem, *args, **kwargs)
        return self.solve_list(problem, *args, **kwargs)

    def solve_list(self, problem: NonlinearProblem, *args, **kwargs) -> NonlinearSolution:
        """Solve ``problem`` with fresh candidates, discarding them afterwards.

        Returns the first successful candidate's result or, if all fail,
        the attempted candidate with the smallest residual norm and its own
        return code.
        """
        call = _BackendCall(args=args, kwargs=kwargs)
        return _solve_in_order(problem, self, self.candidates(problem, persistent=False), call)

    def solve_four(self, problem: NonlinearProblem, *args, **kwargs) -> NonlinearSolution:
        config = self.config
        return _solve_four(
            problem,
            self,
            NewtonRaphson(config=config),
            NewtonRaphson(linesearch=BackTracking(), config=config),
            TrustRegion(config=config),
            TrustRegion(radius_update_scheme=RadiusUpdateScheme.BASTIN, config=config),
            _BackendCall(args=args, kwargs=kwargs),
        )


def init(problem: NonlinearProblem, alg: Any = None, *args, **kwargs) -> Any:
    """Initialise ``alg`` on ``problem``.

    ``alg=None`` selects :class:`FastShortcutNonlinearPolyalg`. A candidate
    algorithm such as :class:`~polyroot.algorithms.nonlinear.candidates.newton.NewtonRaphson`
    returns its own steppable cache.
    """
    if alg is None:
        alg = FastShortcutNonlinearPolyalg()
    return alg.init(problem, *args, **kwargs)


def solve(problem: NonlinearProblem, alg: Any = None, *args, **kwargs) -> NonlinearSolution:
    """Solve ``problem`` with ``alg`` (default :class:`FastShortcutNonlinearPolyalg`).

    Parameters
    ----------
    problem : :class:`~polyroot.algorithms.nonlinear.types.NonlinearProblem`
        Problem to solve.
    alg : polyalgorithm, candidate algorithm or None
        Solver. A candidate algorithm is solved directly, without fallback.
    *args, **kwargs
        Runtime options forwarded to every candidate.

    Returns
    -------
    :class:`~polyroot.algorithms.nonlinear.types.NonlinearSolution`
        Solution record.
    """
    if alg is None:
        alg = FastShortcutNonlinearPolyalg()
    return alg.solve(problem, *args, **kwargs)
