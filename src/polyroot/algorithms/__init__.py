""" Public API for the :mod:`~polyroot.algorithms` package.
"""

from .nonlinear import (BackTracking, Broyden, DifferentiationConfig,
                        FastShortcutNonlinearPolyalg, Klement, NewtonRaphson,
                        NonlinearProblem, NonlinearSolution,
                        PolyAlgorithmCache, PolyAlgorithmConfig,
                        RadiusUpdateScheme, ReturnCode, Robusters,
                        RobustMultiNewton, TrustRegion)

__all__ = [
    "NonlinearProblem",
    "NonlinearSolution",
    "ReturnCode",
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
]
