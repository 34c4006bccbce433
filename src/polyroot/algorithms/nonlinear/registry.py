"""Build the ordered candidate lists of the polyalgorithms.

The order encodes the speed-to-robustness trade-off of each preset and is
part of the contract: identical inputs always give equal lists in the same
order, and the drivers never reorder them.
"""

from typing import Literal

from polyroot.algorithms.nonlinear.candidates import (Broyden, Klement,
                                                      NewtonRaphson,
                                                      TrustRegion,
                                                      _CandidateAlgorithm)
from polyroot.algorithms.nonlinear.config import (BackTracking,
                                                  PolyAlgorithmConfig,
                                                  RadiusUpdateScheme)
from polyroot.algorithms.nonlinear.types import NonlinearProblem

Preset = Literal["robust", "fast"]


def candidate_supports(candidate: _CandidateAlgorithm, problem: NonlinearProblem) -> bool:
    """Return whether ``candidate`` can run on ``problem``'s calling convention."""
    return candidate.supports(problem)


def _robust_candidates(config: PolyAlgorithmConfig) -> tuple[_CandidateAlgorithm, ...]:
    return (
        TrustRegion(config=config),
        TrustRegion(radius_update_scheme=RadiusUpdateScheme.BASTIN, config=config),
        NewtonRaphson(linesearch=BackTracking(), config=config),
        TrustRegion(radius_update_scheme=RadiusUpdateScheme.NLSOLVE, config=config),
        TrustRegion(radius_update_scheme=RadiusUpdateScheme.FAN, config=config),
    )


def _fast_candidates(config: PolyAlgorithmConfig) -> tuple[_CandidateAlgorithm, ...]:
    return (
        NewtonRaphson(config=config),
        NewtonRaphson(linesearch=BackTracking(), config=config),
        TrustRegion(config=config),
        TrustRegion(radius_update_scheme=RadiusUpdateScheme.BASTIN, config=config),
    )


def _shortcut_candidates(config: PolyAlgorithmConfig) -> tuple[_CandidateAlgorithm, ...]:
    return (Klement(config=config), Broyden(config=config))


def build_candidates(
    problem: NonlinearProblem,
    config: PolyAlgorithmConfig,
    *,
    preset: Preset,
    persistent: bool,
) -> tuple[_CandidateAlgorithm, ...]:
    """Return the ordered candidates of ``preset`` for ``problem``.

    Parameters
    ----------
    problem : :class:`~polyroot.algorithms.nonlinear.types.NonlinearProblem`
        Problem to be solved; only its calling convention is inspected.
    config : :class:`~polyroot.algorithms.nonlinear.config.PolyAlgorithmConfig`
        Settings carried by every Newton-type and trust-region candidate.
    preset : {"robust", "fast"}
        Candidate family.
    persistent : bool
        Whether the list backs a reusable cache. The non-persistent fast
        list is prefixed with the secant-type candidates that support the
        problem's calling convention; unsupported ones are left out.

    Returns
    -------
    tuple of :class:`~polyroot.algorithms.nonlinear.candidates.base._CandidateAlgorithm`
        Five entries for ``"robust"``; four (persistent) or four to six
        (non-persistent) entries for ``"fast"``.
    """
    if preset == "robust":
        return _robust_candidates(config)
    if preset != "fast":
        raise ValueError(f"Invalid preset: {preset}. Must be 'robust' or 'fast'.")
    if persistent:
        return _fast_candidates(config)
    shortcuts = tuple(c for c in _shortcut_candidates(config) if candidate_supports(c, problem))
    return shortcuts + _fast_candidates(config)
