"""
Types for the nonlinear solve module.

This module provides the problem, statistics and solution types shared by
the candidate solvers and the fallback drivers.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Optional

import numpy as np
import pandas as pd

from polyroot.algorithms.types.core import (_PolyrootBaseProblem,
                                            _PolyrootBaseResults)
from polyroot.algorithms.types.exceptions import ConvergenceError

if TYPE_CHECKING:
    from polyroot.algorithms.nonlinear.candidates.base import _CandidateAlgorithm

#: Type alias for residual function signatures.
#:
#: Out-of-place problems use ``f(u, p) -> residual``; in-place problems use
#: ``f(du, u, p)`` and write the residual into ``du``.
ResidualFn = Callable[..., Any]

#: Type alias for Jacobian function signatures.
#:
#: Out-of-place problems use ``jac(u, p) -> J``; in-place problems use
#: ``jac(J, u, p)`` and write into ``J``. Element (i, j) is the partial
#: derivative of residual[i] with respect to u[j].
JacobianFn = Callable[..., Any]

#: Type alias for norm function signatures.
#:
#: Maps a residual vector to a non-negative scalar. The same norm is used
#: for the termination test of a candidate and for comparing the residuals
#: of failed candidates.
NormFn = Callable[[np.ndarray], float]

_UNSET = object()


class ReturnCode(Enum):
    """Termination classification of a solve."""

    DEFAULT = "Default"
    SUCCESS = "Success"
    MAX_ITERS = "MaxIters"
    STALLED = "Stalled"
    SHRINK_THRESHOLD_EXCEEDED = "ShrinkThresholdExceeded"
    FAILURE = "Failure"

    @property
    def is_successful(self) -> bool:
        return self is ReturnCode.SUCCESS

    def __str__(self) -> str:
        return self.value


@dataclass
class SolverStats:
    """Counters accumulated by a candidate solver.

    Attributes
    ----------
    nsteps : int
        Number of completed iterations.
    nf : int
        Number of residual evaluations.
    njacs : int
        Number of Jacobian constructions (or Jacobian operators built).
    nfactors : int
        Number of matrix factorisations.
    nsolve : int
        Number of linear solves.
    """
    nsteps: int = 0
    nf: int = 0
    njacs: int = 0
    nfactors: int = 0
    nsolve: int = 0

    def copy(self) -> "SolverStats":
        return replace(self)

    def reset(self) -> None:
        self.nsteps = 0
        self.nf = 0
        self.njacs = 0
        self.nfactors = 0
        self.nsolve = 0


@dataclass(frozen=True, eq=False)
class NonlinearProblem(_PolyrootBaseProblem):
    """Define a square nonlinear system ``f(u, p) = 0``.

    Attributes
    ----------
    f : :data:`ResidualFn`
        Residual function, out-of-place or in-place depending on ``inplace``.
    u0 : ndarray
        Initial iterate. Stored as a float64 copy.
    p : Any
        Problem parameters passed to ``f`` and ``jac``.
    inplace : bool
        Calling convention of ``f`` and ``jac``.
    jac : :data:`JacobianFn` or None
        Optional analytic Jacobian.
    """
    f: ResidualFn
    u0: np.ndarray
    p: Any = None
    inplace: bool = False
    jac: Optional[JacobianFn] = None

    def __post_init__(self) -> None:
        if not callable(self.f):
            raise ValueError("f must be callable")
        if self.jac is not None and not callable(self.jac):
            raise ValueError("jac must be callable or None")
        u0 = np.array(self.u0, dtype=np.float64)
        if u0.ndim == 0:
            u0 = u0.reshape(1)
        if u0.ndim != 1 or u0.size == 0:
            raise ValueError(f"u0 must be a non-empty vector, got shape {u0.shape}")
        object.__setattr__(self, "u0", u0)

    @property
    def n(self) -> int:
        return self.u0.size

    def residual(self, u: np.ndarray, out: np.ndarray | None = None) -> np.ndarray:
        """Evaluate ``f`` at ``u``, writing into ``out`` when given."""
        if self.inplace:
            if out is None:
                out = np.empty_like(u)
            self.f(out, u, self.p)
            return out
        r = np.asarray(self.f(u, self.p), dtype=np.float64).reshape(u.shape)
        if out is None:
            return r
        np.copyto(out, r)
        return out

    def jacobian(self, u: np.ndarray, out: np.ndarray | None = None) -> np.ndarray:
        """Evaluate the analytic Jacobian at ``u``."""
        if self.jac is None:
            raise ValueError("Problem has no analytic Jacobian")
        if self.inplace:
            if out is None:
                out = np.empty((u.size, u.size))
            self.jac(out, u, self.p)
            return out
        J = np.asarray(self.jac(u, self.p), dtype=np.float64).reshape(u.size, u.size)
        if out is None:
            return J
        np.copyto(out, J)
        return out

    def remake(self, *, u0: Any = _UNSET, p: Any = _UNSET) -> "NonlinearProblem":
        """Return a copy with a new initial iterate and/or new parameters."""
        changes = {}
        if u0 is not _UNSET:
            changes["u0"] = u0
        if p is not _UNSET:
            changes["p"] = p
        return replace(self, **changes)


@dataclass(frozen=True)
class AttemptRecord:
    """Summary of one candidate tried by a fallback driver."""
    index: int
    name: str
    retcode: ReturnCode
    residual_norm: float
    nsteps: int


@dataclass(frozen=True, eq=False)
class NonlinearSolution(_PolyrootBaseResults):
    """Result of a nonlinear solve.

    Attributes
    ----------
    u : ndarray
        Final iterate.
    resid : ndarray
        Residual at ``u``.
    retcode : :class:`ReturnCode`
        Termination classification.
    stats : :class:`SolverStats`
        Snapshot of the statistics of the producing candidate.
    alg : Any
        Algorithm named as the solver. For polyalgorithms this is the
        polyalgorithm itself, not the winning candidate.
    problem : :class:`NonlinearProblem` or None
        Problem that was solved.
    original : :class:`NonlinearSolution` or None
        Sub-solution of the winning candidate, kept for diagnostics.
    candidate_index : int or None
        Position of the producing candidate in the candidate list.
    attempts : tuple of :class:`AttemptRecord`
        Every candidate tried to build this record, in order.
    """
    u: np.ndarray
    resid: np.ndarray
    retcode: ReturnCode
    stats: SolverStats
    alg: Any = None
    problem: Optional[NonlinearProblem] = None
    original: Optional["NonlinearSolution"] = None
    candidate_index: Optional[int] = None
    attempts: tuple[AttemptRecord, ...] = field(default_factory=tuple)

    @property
    def success(self) -> bool:
        return self.retcode.is_successful

    @property
    def candidate(self) -> Optional["_CandidateAlgorithm"]:
        """Candidate algorithm that produced the iterate, if known."""
        if self.original is not None:
            return self.original.alg
        return None

    def residual_norm(self, norm_fn: NormFn | None = None) -> float:
        if norm_fn is None:
            from polyroot.algorithms.nonlinear.norms import _default_norm
            norm_fn = _default_norm
        return float(norm_fn(self.resid))

    def require_success(self) -> "NonlinearSolution":
        """Return ``self`` or raise when the solve failed.

        Raises
        ------
        :class:`~polyroot.algorithms.types.exceptions.ConvergenceError`
            If ``retcode`` is not successful.
        """
        if not self.success:
            raise ConvergenceError(
                f"Nonlinear solve failed with retcode {self.retcode} "
                f"(|F|={self.residual_norm():.2e})"
            )
        return self

    def to_df(self) -> pd.DataFrame:
        """Tabulate the candidate attempts behind this solution."""
        columns = ["index", "candidate", "retcode", "residual_norm", "nsteps"]
        rows = [
            (a.index, a.name, str(a.retcode), a.residual_norm, a.nsteps)
            for a in self.attempts
        ]
        return pd.DataFrame(rows, columns=columns)
