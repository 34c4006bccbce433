"""Provide the low-overhead quasi-Newton candidates.

Both methods start from an identity Jacobian estimate and update it from
observed residual changes, so no derivative evaluation or factorisation is
needed. They only support out-of-place problems; the registry omits them
for in-place ones.
"""

from abc import abstractmethod
from typing import Optional

import numpy as np

from polyroot.algorithms.nonlinear.candidates.base import (_CandidateAlgorithm,
                                                           _CandidateCache)
from polyroot.algorithms.nonlinear.config import PolyAlgorithmConfig
from polyroot.algorithms.nonlinear.types import NonlinearProblem, ReturnCode
from polyroot.utils.log_config import logger

_EPS = np.finfo(np.float64).eps


class _SecantAlgorithm(_CandidateAlgorithm):
    """Shared parameters of the secant-type candidates.

    Parameters
    ----------
    max_resets : int, default=5
        Number of times the Jacobian estimate may be reset to the identity
        after a degenerate update before the candidate fails.
    """

    def __init__(self, *, max_resets: int = 5, config: Optional[PolyAlgorithmConfig] = None) -> None:
        super().__init__(config=config)
        if max_resets < 0:
            raise ValueError("max_resets must be non-negative")
        self.max_resets = int(max_resets)

    def supports(self, problem: NonlinearProblem) -> bool:
        return not problem.inplace

    def _key(self) -> tuple:
        return super()._key() + (self.max_resets,)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


class _SecantCache(_CandidateCache):

    alg: _SecantAlgorithm

    def _setup(self) -> None:
        self._u_prev = np.empty_like(self.u)
        self._fu_prev = np.empty_like(self.u)

    def _reset_state(self) -> None:
        self.resets = 0
        self._reset_estimate()

    @abstractmethod
    def _reset_estimate(self) -> None:
        """Restore the Jacobian estimate to its initial value."""

    def _register_reset(self) -> bool:
        """Reset the estimate; return False once the reset budget is spent."""
        self.resets += 1
        if self.resets > self.alg.max_resets:
            self._terminate(ReturnCode.FAILURE)
            return False
        logger.debug("%s: resetting Jacobian estimate (%d/%d)", self.alg.name, self.resets, self.alg.max_resets)
        self._reset_estimate()
        return True

    def _advance(self, delta: np.ndarray) -> None:
        np.copyto(self._u_prev, self.u)
        np.copyto(self._fu_prev, self.fu)
        self.u += delta
        self._eval_residual(self.u, out=self.fu)


class Klement(_SecantAlgorithm):
    """Klement's method with a diagonal Jacobian estimate."""

    name = "Klement"

    def _make_cache(self, problem: NonlinearProblem, **kwargs) -> "_KlementCache":
        return _KlementCache(self, problem, **kwargs)


class _KlementCache(_SecantCache):

    def _reset_estimate(self) -> None:
        self.diag = np.ones_like(self.u)

    def _perform_step(self) -> None:
        if np.any(np.abs(self.diag) <= _EPS):
            if not self._register_reset():
                return
        delta = -self.fu / self.diag
        if not np.all(np.isfinite(delta)):
            self._register_reset()
            return
        self._advance(delta)

        y = self.fu - self._fu_prev
        # Rank-one secant update projected onto the diagonal, weighted by J^T J
        w = self.diag**2 * delta
        denom = float(w @ delta)
        if not np.isfinite(denom) or denom <= _EPS * float(np.max(self.diag**2)) * float(delta @ delta):
            self._register_reset()
            return
        self.diag = self.diag + (y - self.diag * delta) * w / denom


class Broyden(_SecantAlgorithm):
    """Broyden's good method updating the inverse Jacobian estimate."""

    name = "Broyden"

    def _make_cache(self, problem: NonlinearProblem, **kwargs) -> "_BroydenCache":
        return _BroydenCache(self, problem, **kwargs)


class _BroydenCache(_SecantCache):

    def _reset_estimate(self) -> None:
        self.J_inv = np.eye(self.u.size)

    def _perform_step(self) -> None:
        delta = -(self.J_inv @ self.fu)
        if not np.all(np.isfinite(delta)):
            self._register_reset()
            return
        self._advance(delta)

        y = self.fu - self._fu_prev
        Hy = self.J_inv @ y
        denom = float(delta @ Hy)
        if not np.isfinite(denom) or abs(denom) <= _EPS * float(np.linalg.norm(delta) * np.linalg.norm(Hy)):
            self._register_reset()
            return
        self.J_inv = self.J_inv + np.outer(delta - Hy, delta @ self.J_inv) / denom
