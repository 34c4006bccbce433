"""Provide the linear solves used inside Newton-type steps.

The solver choice is fixed when the candidate cache is built and survives
re-initialisation. Singular systems raise
:class:`numpy.linalg.LinAlgError`, which the candidates turn into a
``FAILURE`` return code.
"""

import warnings
from typing import Any, Optional

import numpy as np
from numpy.linalg import LinAlgError
from scipy.linalg import LinAlgWarning, lstsq, lu_factor, lu_solve
from scipy.sparse.linalg import aslinearoperator, gmres

from polyroot.algorithms.nonlinear.config import PolyAlgorithmConfig, PrecsFn
from polyroot.algorithms.nonlinear.jacobian import JacobianLike
from polyroot.algorithms.nonlinear.types import SolverStats
from polyroot.utils.log_config import logger


class _LinearSolver:
    """Solve ``A x = b`` for the configured method.

    Parameters
    ----------
    config : :class:`~polyroot.algorithms.nonlinear.config.PolyAlgorithmConfig`
        Supplies ``linsolve`` and ``precs``.
    stats : :class:`~polyroot.algorithms.nonlinear.types.SolverStats`
        Counters of the owning cache; updated in place.
    krylov_rtol : float, default=1e-10
        Relative tolerance of the GMRES solve.
    """

    def __init__(self, config: PolyAlgorithmConfig, stats: SolverStats, *, krylov_rtol: float = 1e-10) -> None:
        self.method = config.linsolve or "lu"
        self.precs: Optional[PrecsFn] = config.precs
        self.stats = stats
        self.krylov_rtol = krylov_rtol

    def solve(self, A: JacobianLike, b: np.ndarray, *, u: np.ndarray, p: Any = None) -> np.ndarray:
        """Return ``x`` with ``A x = b``.

        Parameters
        ----------
        A : ndarray or LinearOperator
            System matrix. Operators are only accepted by the Krylov method.
        b : ndarray
            Right-hand side.
        u : ndarray
            Current iterate, passed to the preconditioner factory.
        p : Any
            Problem parameters, passed to the preconditioner factory.

        Raises
        ------
        numpy.linalg.LinAlgError
            If the system is singular or the solve breaks down.
        """
        self.stats.nsolve += 1
        if self.method == "gmres":
            return self._solve_krylov(A, b, u, p)
        if not isinstance(A, np.ndarray):
            raise LinAlgError(f"linsolve={self.method!r} needs a concrete Jacobian")
        if self.method == "lstsq":
            x, *_ = lstsq(A, b)
            return x
        return self._solve_lu(A, b)

    def _solve_lu(self, A: np.ndarray, b: np.ndarray) -> np.ndarray:
        if not np.all(np.isfinite(A)):
            raise LinAlgError("Jacobian contains non-finite entries")
        self.stats.nfactors += 1
        with warnings.catch_warnings():
            # Exact singularity is detected from the pivots below
            warnings.simplefilter("ignore", LinAlgWarning)
            lu, piv = lu_factor(A, check_finite=False)
        if np.any(np.diag(lu) == 0.0):
            raise LinAlgError("Singular Jacobian")
        return lu_solve((lu, piv), b, check_finite=False)

    def _solve_krylov(self, A: JacobianLike, b: np.ndarray, u: np.ndarray, p: Any) -> np.ndarray:
        M = None
        if self.precs is not None:
            M = self.precs(A, u, p)
        x, info = gmres(aslinearoperator(A), b, rtol=self.krylov_rtol, atol=0.0, M=M)
        if info < 0:
            raise LinAlgError(f"GMRES breakdown (info={info})")
        if info > 0:
            logger.debug("GMRES stopped after %d iterations without reaching rtol=%.1e", info, self.krylov_rtol)
        return x
