"""Provide configuration classes for the nonlinear polyalgorithms.

This module provides the compile-time configuration classes shared by the
candidate solvers and the polyalgorithms built on them. These classes
encapsulate algorithm structure parameters that define WHAT algorithm is
used: how Jacobians are obtained, how linear systems are solved, and how
steps are globalised.

Runtime tuning parameters (``abstol``, ``maxiters``, ``internalnorm``) are
keyword arguments of ``init``/``solve`` and are forwarded to every candidate.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Literal, Optional

import numpy as np

from polyroot.algorithms.types.core import _PolyrootBaseConfig

#: Preconditioner factory ``precs(A, u, p) -> M`` where ``A`` is the
#: Jacobian matrix or operator at ``u`` and ``M`` approximates ``A^{-1}``.
PrecsFn = Callable[[Any, np.ndarray, Any], Any]

_LINSOLVE_CHOICES = ("lu", "lstsq", "gmres")


class RadiusUpdateScheme(Enum):
    """Trust-region radius update rules."""

    SIMPLE = "simple"
    NLSOLVE = "nlsolve"
    BASTIN = "bastin"
    FAN = "fan"


@dataclass(frozen=True)
class DifferentiationConfig(_PolyrootBaseConfig):
    """Configuration of the derivative backend.

    Jacobians and Jacobian-vector products are approximated by finite
    differences unless the problem carries an analytic Jacobian.

    Parameters
    ----------
    mode : {"forward", "central"}, default="forward"
        Finite-difference stencil.
    step : float or None, default=None
        Relative perturbation. ``None`` picks ``sqrt(eps)`` for forward and
        ``eps**(1/3)`` for central differences.
    """
    mode: Literal["forward", "central"] = "forward"
    step: Optional[float] = None

    def _validate(self) -> None:
        """Validate the configuration."""
        if self.mode not in ("forward", "central"):
            raise ValueError(
                f"Invalid mode: {self.mode}. Must be 'forward' or 'central'."
            )
        if self.step is not None and not self.step > 0:
            raise ValueError("step must be positive")

    @property
    def relative_step(self) -> float:
        if self.step is not None:
            return float(self.step)
        eps = np.finfo(np.float64).eps
        return float(np.sqrt(eps)) if self.mode == "forward" else float(np.cbrt(eps))


@dataclass(frozen=True)
class BackTracking(_PolyrootBaseConfig):
    """Configuration of the Armijo backtracking line search.

    Parameters
    ----------
    alpha_reduction : float, default=0.5
        Factor applied to the step length after each rejected trial.
    min_alpha : float, default=1e-4
        Smallest step length tried before giving up.
    armijo_c : float, default=0.1
        Sufficient decrease constant in
        ``||F(x + alpha d)|| <= (1 - c alpha) ||F(x)||``.
    max_delta : float or None, default=None
        Optional cap on the infinity norm of the Newton step.
    """
    alpha_reduction: float = 0.5
    min_alpha: float = 1e-4
    armijo_c: float = 0.1
    max_delta: Optional[float] = None

    def _validate(self) -> None:
        """Validate the configuration."""
        if not 0.0 < self.alpha_reduction < 1.0:
            raise ValueError("alpha_reduction must lie in (0, 1)")
        if not 0.0 < self.min_alpha <= 1.0:
            raise ValueError("min_alpha must lie in (0, 1]")
        if not 0.0 < self.armijo_c < 1.0:
            raise ValueError("armijo_c must lie in (0, 1)")
        if self.max_delta is not None and self.max_delta <= 0:
            raise ValueError("Max delta must be positive")


@dataclass(frozen=True)
class TrustRegionParams(_PolyrootBaseConfig):
    """Thresholds and factors of a trust-region radius update rule.

    Parameters
    ----------
    step_threshold : float
        Steps with reduction ratio above this value are accepted.
    shrink_threshold : float
        Ratios below this value shrink the radius.
    expand_threshold : float
        Ratios above this value may expand the radius.
    shrink_factor : float
        Multiplier applied when shrinking.
    expand_factor : float
        Multiplier applied when expanding.
    max_shrink_times : int
        Consecutive shrinks tolerated before the solver gives up.
    """
    step_threshold: float = 1e-4
    shrink_threshold: float = 0.25
    expand_threshold: float = 0.75
    shrink_factor: float = 0.25
    expand_factor: float = 2.0
    max_shrink_times: int = 32

    def _validate(self) -> None:
        """Validate the configuration."""
        if not 0.0 < self.shrink_factor < 1.0:
            raise ValueError("shrink_factor must lie in (0, 1)")
        if self.expand_factor <= 1.0:
            raise ValueError("expand_factor must be greater than 1")
        if self.max_shrink_times <= 0:
            raise ValueError("max_shrink_times must be positive")

    @classmethod
    def for_scheme(cls, scheme: RadiusUpdateScheme) -> "TrustRegionParams":
        if scheme is RadiusUpdateScheme.SIMPLE:
            return cls()
        if scheme is RadiusUpdateScheme.NLSOLVE:
            return cls(step_threshold=1e-4, shrink_threshold=0.1, expand_threshold=0.9,
                       shrink_factor=0.5, expand_factor=2.0)
        if scheme is RadiusUpdateScheme.BASTIN:
            return cls(step_threshold=0.05, shrink_threshold=0.05, expand_threshold=0.9,
                       shrink_factor=0.25, expand_factor=2.5)
        if scheme is RadiusUpdateScheme.FAN:
            return cls(step_threshold=1e-4, shrink_threshold=0.25, expand_threshold=0.75,
                       shrink_factor=0.25, expand_factor=4.0)
        raise ValueError(f"Unknown radius update scheme: {scheme!r}")


@dataclass(frozen=True)
class PolyAlgorithmConfig(_PolyrootBaseConfig):
    """Algorithm configuration shared by every candidate of a polyalgorithm.

    Parameters
    ----------
    autodiff : :class:`DifferentiationConfig`
        Derivative backend settings. Ignored where the problem provides an
        analytic Jacobian.
    linsolve : {"lu", "lstsq", "gmres"} or None, default=None
        Linear solver used inside each Newton-type step. ``None`` selects
        dense LU.
    precs : :data:`PrecsFn` or None, default=None
        Preconditioner factory for the Krylov solver.
    concrete_jac : bool or None, default=None
        ``True`` forces a materialised Jacobian, ``False`` forces
        matrix-free Jacobian-vector products (Krylov solver only), ``None``
        lets the linear solver decide.

    Examples
    --------
    >>> config = PolyAlgorithmConfig(linsolve="gmres", concrete_jac=False)
    >>> config.uses_concrete_jacobian
    False
    """
    autodiff: DifferentiationConfig = field(default_factory=DifferentiationConfig)
    linsolve: Optional[Literal["lu", "lstsq", "gmres"]] = None
    precs: Optional[PrecsFn] = None
    concrete_jac: Optional[bool] = None

    def _validate(self) -> None:
        """Validate the configuration."""
        if not isinstance(self.autodiff, DifferentiationConfig):
            raise ValueError("autodiff must be a DifferentiationConfig")
        if self.linsolve is not None and self.linsolve not in _LINSOLVE_CHOICES:
            raise ValueError(
                f"Invalid linsolve: {self.linsolve}. "
                f"Must be one of {', '.join(_LINSOLVE_CHOICES)} or None."
            )
        if self.precs is not None and not callable(self.precs):
            raise ValueError("precs must be callable or None")
        if self.concrete_jac not in (None, True, False):
            raise ValueError("concrete_jac must be True, False or None")
        if self.concrete_jac is False and self.linsolve != "gmres":
            raise ValueError("A matrix-free Jacobian requires linsolve='gmres'.")

    @property
    def uses_concrete_jacobian(self) -> bool:
        if self.concrete_jac is not None:
            return self.concrete_jac
        # Krylov solves stay matrix-free unless a preconditioner needs the matrix
        return self.linsolve != "gmres" or self.precs is not None
