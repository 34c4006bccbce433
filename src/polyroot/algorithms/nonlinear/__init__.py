"""Provide polyalgorithms for square nonlinear systems ``f(u, p) = 0``.

The :mod:`~polyroot.algorithms.nonlinear` package combines several
iterative root finders behind a single entry point. A polyalgorithm holds
an ordered list of candidate solvers, tries them in turn, returns the first
that converges and otherwise reports the attempt with the smallest residual.

Examples
--------
>>> import numpy as np
>>> from polyroot.algorithms.nonlinear import NonlinearProblem, solve
>>> prob = NonlinearProblem(lambda u, p: u**3 - p, np.array([1.0]), p=8.0)
>>> sol = solve(prob)
>>> sol.retcode
<ReturnCode.SUCCESS: 'Success'>

Reusing warm caches across starting points:

>>> from polyroot.algorithms.nonlinear import RobustMultiNewton
>>> cache = RobustMultiNewton().init(prob, abstol=1e-12)
>>> first = cache.solve()
>>> cache.reinit(np.array([3.0]))
>>> cache.current = 0
>>> second = cache.solve()

See Also
--------
:mod:`~polyroot.algorithms.nonlinear.candidates`
    The candidate solvers.
"""

from .base import (FastShortcutNonlinearPolyalg, Robusters, RobustMultiNewton,
                   init, solve)
from .candidates import Broyden, Klement, NewtonRaphson, TrustRegion
from .config import (BackTracking, DifferentiationConfig, PolyAlgorithmConfig,
                     RadiusUpdateScheme, TrustRegionParams)
from .engine import PolyAlgorithmCache
from .norms import DEFAULT_NORM, INFINITY_NORM, RMS_NORM
from .registry import build_candidates
from .selection import select_best
from .types import (AttemptRecord, NonlinearProblem, NonlinearSolution,
                    ReturnCode, SolverStats)

__all__ = [
    "RobustMultiNewton",
    "Robusters",
    "FastShortcutNonlinearPolyalg",
    "PolyAlgorithmCache",
    "init",
    "solve",

    "NewtonRaphson",
    "TrustRegion",
    "Klement",
    "Broyden",

    "PolyAlgorithmConfig",
    "DifferentiationConfig",
    "BackTracking",
    "TrustRegionParams",
    "RadiusUpdateScheme",

    "NonlinearProblem",
    "NonlinearSolution",
    "AttemptRecord",
    "ReturnCode",
    "SolverStats",

    "build_candidates",
    "select_best",
    "DEFAULT_NORM",
    "INFINITY_NORM",
    "RMS_NORM",
]
