"""Polyalgorithm root finding for nonlinear systems."""

from .algorithms.nonlinear import (BackTracking, Broyden,
                                   DifferentiationConfig,
                                   FastShortcutNonlinearPolyalg, Klement,
                                   NewtonRaphson, NonlinearProblem,
                                   NonlinearSolution, PolyAlgorithmCache,
                                   PolyAlgorithmConfig, RadiusUpdateScheme,
                                   ReturnCode, Robusters, RobustMultiNewton,
                                   SolverStats, TrustRegion, init, solve)
from .algorithms.types.exceptions import (BackendError, ConvergenceError,
                                          EngineError,
                                          PolyAlgorithmStateError,
                                          PolyrootError)

__version__ = "0.1.0"

__all__ = [
    "init",
    "solve",
    "NonlinearProblem",
    "NonlinearSolution",
    "ReturnCode",
    "SolverStats",
    "PolyAlgorithmConfig",
    "DifferentiationConfig",
    "BackTracking",
    "RadiusUpdateScheme",
    "RobustMultiNewton",
    "Robusters",
    "FastShortcutNonlinearPolyalg",
    "PolyAlgorithmCache",
    "NewtonRaphson",
    "TrustRegion",
    "Klement",
    "Broyden",
    "PolyrootError",
    "ConvergenceError",
    "BackendError",
    "EngineError",
    "PolyAlgorithmStateError",
]
