"""
Define the candidate solvers tried by the polyalgorithms.
"""

from .base import _CandidateAlgorithm, _CandidateCache
from .newton import NewtonRaphson
from .secant import Broyden, Klement
from .trust_region import TrustRegion

__all__ = [
    "_CandidateAlgorithm",
    "_CandidateCache",
    "NewtonRaphson",
    "TrustRegion",
    "Klement",
    "Broyden",
]
