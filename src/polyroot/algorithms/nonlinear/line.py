"""Provide line search implementations for robust Newton-type methods.

This module provides Armijo line search with backtracking for the Newton
candidates. Line search enforces sufficient decrease of the residual norm,
which widens the basin of convergence of plain Newton iteration.
"""

from typing import Callable, Tuple

import numpy as np

from polyroot.algorithms.nonlinear.config import BackTracking
from polyroot.algorithms.nonlinear.types import NormFn
from polyroot.algorithms.types.exceptions import ConvergenceError
from polyroot.utils.log_config import logger


class _ArmijoLineSearch:
    """Implement Armijo line search with backtracking for Newton methods.

    Implements the Armijo rule for sufficient decrease, ensuring that
    each step reduces the residual norm by an amount proportional to the
    step size. Includes step size capping and a best-point fallback.

    Parameters
    ----------
    config : :class:`~polyroot.algorithms.nonlinear.config.BackTracking`
        Configuration parameters for the line search.
    residual_fn : callable
        ``residual_fn(x, out)`` writes the residual at ``x`` into ``out``.
    norm_fn : :data:`~polyroot.algorithms.nonlinear.types.NormFn`
        Norm used for the decrease test.
    """

    def __init__(
        self,
        *,
        config: BackTracking,
        residual_fn: Callable[[np.ndarray, np.ndarray], np.ndarray],
        norm_fn: NormFn,
    ) -> None:
        self.residual_fn = residual_fn
        self.norm_fn = norm_fn
        self.max_delta = config.max_delta
        self.alpha_reduction = config.alpha_reduction
        self.min_alpha = config.min_alpha
        self.armijo_c = config.armijo_c

    def __call__(
        self,
        *,
        x0: np.ndarray,
        delta: np.ndarray,
        current_norm: float,
    ) -> Tuple[np.ndarray, np.ndarray, float, float]:
        """Execute Armijo line search with backtracking.

        Finds step size satisfying Armijo condition:
        ||R(x + alpha * delta)|| <= (1 - c * alpha) * ||R(x)||

        Starts with full Newton step and reduces by backtracking until
        sufficient decrease is achieved or minimum step size is reached.

        Parameters
        ----------
        x0 : ndarray
            Current iterate.
        delta : ndarray
            Newton step direction.
        current_norm : float
            Norm of residual at current point.

        Returns
        -------
        x_new : ndarray
            Accepted iterate.
        r_new : ndarray
            Residual at the accepted iterate.
        r_norm_new : float
            Norm of residual at the accepted iterate.
        alpha_used : float
            Step size scaling factor that was accepted.

        Raises
        ------
        :class:`~polyroot.algorithms.types.exceptions.ConvergenceError`
            If no trial step reduces the residual norm.
        """
        if (self.max_delta is not None) and (not np.isinf(self.max_delta)):
            delta_norm = np.linalg.norm(delta, ord=np.inf)
            if delta_norm > self.max_delta:
                delta = delta * (self.max_delta / delta_norm)
                logger.debug(
                    "Capping Newton step (|delta|=%.2e > %.2e)",
                    delta_norm,
                    self.max_delta,
                )

        alpha = 1.0
        best = None
        best_norm = current_norm

        while alpha >= self.min_alpha:
            x_trial = x0 + alpha * delta
            r_trial = self.residual_fn(x_trial, np.empty_like(x0))
            norm_trial = float(self.norm_fn(r_trial))

            if not np.isfinite(norm_trial):
                logger.debug("Non-finite residual at alpha=%.3e; trying smaller step", alpha)
                alpha *= self.alpha_reduction
                continue

            if norm_trial <= (1.0 - self.armijo_c * alpha) * current_norm:
                logger.debug(
                    "Armijo success: alpha=%.3e, |r|=%.3e (was |r0|=%.3e)",
                    alpha,
                    norm_trial,
                    current_norm,
                )
                return x_trial, r_trial, norm_trial, alpha

            # Track best point for fallback
            if norm_trial < best_norm:
                best = (x_trial, r_trial, norm_trial, alpha)
                best_norm = norm_trial

            alpha *= self.alpha_reduction

        if best is not None:
            logger.debug(
                "Line search exhausted; using best found step (alpha=%.3e, |r|=%.3e)",
                best[3],
                best[2],
            )
            return best

        raise ConvergenceError(
            f"Armijo line search failed to find a productive step (min_alpha={self.min_alpha:.2e})"
        )
