import numpy as np
import pytest

from polyroot.algorithms.nonlinear.candidates import (Broyden, Klement,
                                                      NewtonRaphson,
                                                      TrustRegion)
from polyroot.algorithms.nonlinear.config import (BackTracking,
                                                  PolyAlgorithmConfig,
                                                  RadiusUpdateScheme)
from polyroot.algorithms.nonlinear.registry import build_candidates
from polyroot.algorithms.nonlinear.types import NonlinearProblem


def _oop_problem():
    return NonlinearProblem(lambda u, p: u - 1.0, np.zeros(2))


def _inplace_problem():
    def f(du, u, p):
        du[:] = u - 1.0

    return NonlinearProblem(f, np.zeros(2), inplace=True)


def _names(candidates):
    return [c.name for c in candidates]


def test_robust_order():
    candidates = build_candidates(_oop_problem(), PolyAlgorithmConfig(), preset="robust", persistent=True)
    assert _names(candidates) == [
        "TrustRegion(Simple)",
        "TrustRegion(Bastin)",
        "NewtonRaphson(BackTracking)",
        "TrustRegion(Nlsolve)",
        "TrustRegion(Fan)",
    ]
    assert candidates[2] == NewtonRaphson(linesearch=BackTracking())


def test_fast_persistent_order():
    for problem in (_oop_problem(), _inplace_problem()):
        candidates = build_candidates(problem, PolyAlgorithmConfig(), preset="fast", persistent=True)
        assert candidates == (
            NewtonRaphson(),
            NewtonRaphson(linesearch=BackTracking()),
            TrustRegion(),
            TrustRegion(radius_update_scheme=RadiusUpdateScheme.BASTIN),
        )


def test_fast_stateless_prepends_secant_methods_when_supported():
    config = PolyAlgorithmConfig()
    oop = build_candidates(_oop_problem(), config, preset="fast", persistent=False)
    assert len(oop) == 6
    assert isinstance(oop[0], Klement)
    assert isinstance(oop[1], Broyden)
    assert oop[2:] == build_candidates(_oop_problem(), config, preset="fast", persistent=True)

    inplace = build_candidates(_inplace_problem(), config, preset="fast", persistent=False)
    assert len(inplace) == 4
    assert not any(isinstance(c, (Klement, Broyden)) for c in inplace)


@pytest.mark.parametrize("preset", ["robust", "fast"])
@pytest.mark.parametrize("persistent", [True, False])
def test_registry_is_deterministic(preset, persistent):
    config = PolyAlgorithmConfig(linsolve="lstsq")
    first = build_candidates(_oop_problem(), config, preset=preset, persistent=persistent)
    second = build_candidates(_oop_problem(), config, preset=preset, persistent=persistent)
    assert first == second
    assert _names(first) == _names(second)


def test_config_reaches_every_candidate():
    config = PolyAlgorithmConfig(linsolve="gmres", concrete_jac=False)
    for candidate in build_candidates(_oop_problem(), config, preset="fast", persistent=False):
        assert candidate.config is config


def test_unknown_preset():
    with pytest.raises(ValueError):
        build_candidates(_oop_problem(), PolyAlgorithmConfig(), preset="fastest", persistent=True)
