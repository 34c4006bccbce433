"""Provide Jacobian construction for the Newton-type candidates.

A :class:`_JacobianOperator` is built once per candidate cache and reused
across iterations and re-initialisations. Depending on the configuration it
returns a dense matrix (analytic or finite-difference) or a
:class:`scipy.sparse.linalg.LinearOperator` computing Jacobian-vector
products matrix-free.
"""

from typing import Union

import numpy as np
from scipy.sparse.linalg import LinearOperator

from polyroot.algorithms.nonlinear.config import (DifferentiationConfig,
                                                  PolyAlgorithmConfig)
from polyroot.algorithms.nonlinear.types import NonlinearProblem, SolverStats

JacobianLike = Union[np.ndarray, LinearOperator]


class _JacobianOperator:
    """Build Jacobians of a problem's residual.

    Parameters
    ----------
    problem : :class:`~polyroot.algorithms.nonlinear.types.NonlinearProblem`
        Problem whose residual is differentiated. Replaced on reinit.
    config : :class:`~polyroot.algorithms.nonlinear.config.PolyAlgorithmConfig`
        Supplies the differentiation settings and the concrete/matrix-free
        choice.
    stats : :class:`~polyroot.algorithms.nonlinear.types.SolverStats`
        Counters of the owning cache; updated in place.
    """

    def __init__(self, problem: NonlinearProblem, config: PolyAlgorithmConfig, stats: SolverStats) -> None:
        self.problem = problem
        self.autodiff: DifferentiationConfig = config.autodiff
        self.concrete = config.uses_concrete_jacobian
        self.stats = stats
        n = problem.n
        self._J = np.empty((n, n))
        self._u_pert = np.empty(n)
        self._f_plus = np.empty(n)
        self._f_minus = np.empty(n)

    def build(self, u: np.ndarray, fu: np.ndarray) -> JacobianLike:
        """Return the Jacobian at ``u`` in the configured representation.

        ``fu`` must hold the residual at ``u``; forward differences reuse it.
        """
        self.stats.njacs += 1
        if self.concrete:
            return self._dense(u, fu)
        return self._matrix_free(u.copy(), fu.copy())

    def dense(self, u: np.ndarray, fu: np.ndarray) -> np.ndarray:
        """Return a materialised Jacobian regardless of the configuration."""
        self.stats.njacs += 1
        return self._dense(u, fu)

    def _dense(self, u: np.ndarray, fu: np.ndarray) -> np.ndarray:
        if self.problem.jac is not None:
            return self.problem.jacobian(u, out=self._J).copy()
        for j in range(u.size):
            self._J[:, j] = self._directional(u, fu, _unit(u.size, j))
        return self._J.copy()

    def _matrix_free(self, u: np.ndarray, fu: np.ndarray) -> LinearOperator:
        n = u.size
        if self.problem.jac is not None:
            J = self.problem.jacobian(u)
            return LinearOperator((n, n), matvec=lambda v: J @ np.ravel(v), dtype=np.float64)

        def matvec(v):
            return self._directional(u, fu, np.asarray(v, dtype=np.float64).ravel())

        return LinearOperator((n, n), matvec=matvec, dtype=np.float64)

    def _directional(self, u: np.ndarray, fu: np.ndarray, v: np.ndarray) -> np.ndarray:
        """Finite-difference approximation of ``J(u) @ v``."""
        v_norm = float(np.linalg.norm(v))
        if v_norm == 0.0:
            return np.zeros_like(u)
        h = self.autodiff.relative_step * max(1.0, float(np.linalg.norm(u))) / v_norm
        np.add(u, h * v, out=self._u_pert)
        self.problem.residual(self._u_pert, out=self._f_plus)
        self.stats.nf += 1
        if self.autodiff.mode == "forward":
            return (self._f_plus - fu) / h
        np.subtract(u, h * v, out=self._u_pert)
        self.problem.residual(self._u_pert, out=self._f_minus)
        self.stats.nf += 1
        return (self._f_plus - self._f_minus) / (2.0 * h)


def _unit(n: int, j: int) -> np.ndarray:
    e = np.zeros(n)
    e[j] = 1.0
    return e
