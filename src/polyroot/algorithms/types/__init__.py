"""Shared base classes and exceptions of :mod:`~polyroot.algorithms`."""

from .exceptions import (BackendError, ConvergenceError, EngineError,
                         PolyAlgorithmStateError, PolyrootError)

__all__ = [
    "PolyrootError",
    "ConvergenceError",
    "BackendError",
    "EngineError",
    "PolyAlgorithmStateError",
]
