"""Provide the dogleg trust-region candidate.

The step minimises the Gauss-Newton model
``m(s) = 0.5 * ||F(u) + J(u) s||^2`` inside a ball of radius ``radius``
using Powell's dogleg path between the Cauchy point and the Newton step.
The ratio of actual to predicted reduction decides whether the trial point
is accepted and how the radius changes; four radius update rules are
available through
:class:`~polyroot.algorithms.nonlinear.config.RadiusUpdateScheme`.

The trust-region candidate always materialises the Jacobian, because the
Cauchy point needs ``J^T F``.
"""

from typing import Optional

import numpy as np
from numpy.linalg import LinAlgError

from polyroot.algorithms.nonlinear.candidates.base import (_CandidateAlgorithm,
                                                           _CandidateCache)
from polyroot.algorithms.nonlinear.config import (PolyAlgorithmConfig,
                                                  RadiusUpdateScheme,
                                                  TrustRegionParams)
from polyroot.algorithms.nonlinear.jacobian import _JacobianOperator
from polyroot.algorithms.nonlinear.linsolve import _LinearSolver
from polyroot.algorithms.nonlinear.types import NonlinearProblem, ReturnCode
from polyroot.utils.log_config import logger

# Fan's rule scales the radius with ||F||**_FAN_EXPONENT
_FAN_EXPONENT = 0.99
_FAN_MU_MAX = 1e8


class TrustRegion(_CandidateAlgorithm):
    """Trust-region method with a dogleg step.

    Parameters
    ----------
    radius_update_scheme : :class:`~polyroot.algorithms.nonlinear.config.RadiusUpdateScheme`, default=SIMPLE
        Rule used to update the radius after each trial step.
    params : :class:`~polyroot.algorithms.nonlinear.config.TrustRegionParams` or None
        Thresholds and factors. ``None`` uses the defaults of the scheme.
    config : :class:`~polyroot.algorithms.nonlinear.config.PolyAlgorithmConfig` or None
        Derivative and linear-solve settings.
    """

    def __init__(
        self,
        *,
        radius_update_scheme: RadiusUpdateScheme = RadiusUpdateScheme.SIMPLE,
        params: Optional[TrustRegionParams] = None,
        config: Optional[PolyAlgorithmConfig] = None,
    ) -> None:
        super().__init__(config=config)
        self.radius_update_scheme = RadiusUpdateScheme(radius_update_scheme)
        self.params = TrustRegionParams.for_scheme(self.radius_update_scheme) if params is None else params

    @property
    def name(self) -> str:
        return f"TrustRegion({self.radius_update_scheme.name.capitalize()})"

    def _make_cache(self, problem: NonlinearProblem, **kwargs) -> "_TrustRegionCache":
        return _TrustRegionCache(self, problem, **kwargs)

    def _key(self) -> tuple:
        return super()._key() + (self.radius_update_scheme, self.params)

    def __repr__(self) -> str:
        return f"TrustRegion(radius_update_scheme=RadiusUpdateScheme.{self.radius_update_scheme.name})"


class _TrustRegionCache(_CandidateCache):

    alg: TrustRegion

    def _setup(self) -> None:
        self._jac = _JacobianOperator(self.prob, self.alg.config, self.stats)
        self._linsolve = _LinearSolver(self.alg.config, self.stats)
        self._params = self.alg.params
        self._scheme = self.alg.radius_update_scheme
        self._u_trial = np.empty_like(self.u)
        self._fu_trial = np.empty_like(self.u)

    def _rebind_problem(self) -> None:
        self._jac.problem = self.prob

    def _reset_state(self) -> None:
        self._J: Optional[np.ndarray] = None
        self.shrink_counter = 0
        f_norm = float(np.linalg.norm(self.fu))
        u_norm = float(np.linalg.norm(self.u))
        self.max_radius = np.inf
        self.mu = 1.0
        if self._scheme is RadiusUpdateScheme.SIMPLE:
            self.max_radius = max(f_norm, float(np.max(self.u) - np.min(self.u)), 1.0)
            self.radius = self.max_radius / 11.0
        elif self._scheme is RadiusUpdateScheme.NLSOLVE:
            self.radius = 1.0 if u_norm == 0.0 else 10.0 * u_norm
        elif self._scheme is RadiusUpdateScheme.BASTIN:
            self.radius = 1.0
        else:
            self.radius = self._fan_radius()

    def _fan_radius(self) -> float:
        f_norm = float(np.linalg.norm(self.fu))
        return max(self.mu * f_norm ** _FAN_EXPONENT, np.finfo(np.float64).tiny)

    def _jacobian(self) -> np.ndarray:
        if self._J is None:
            self._J = self._jac.dense(self.u, self.fu)
        return self._J

    def _dogleg(self, J: np.ndarray) -> np.ndarray:
        try:
            s_newton = self._linsolve.solve(J, -self.fu, u=self.u, p=self.prob.p)
            if not np.all(np.isfinite(s_newton)):
                s_newton = None
        except LinAlgError:
            s_newton = None

        if s_newton is not None and np.linalg.norm(s_newton) <= self.radius:
            return s_newton

        g = J.T @ self.fu
        g_norm = float(np.linalg.norm(g))
        if g_norm == 0.0:
            return np.zeros_like(self.u) if s_newton is None else s_newton * (self.radius / np.linalg.norm(s_newton))
        Jg = J @ g
        Jg_sq = float(Jg @ Jg)
        t = g_norm**2 / Jg_sq if Jg_sq > 0.0 else np.inf
        if s_newton is None or t * g_norm >= self.radius:
            return -(self.radius / g_norm) * g

        s_cauchy = -t * g
        d = s_newton - s_cauchy
        # Solve ||s_cauchy + tau d|| = radius for tau in [0, 1]
        a = float(d @ d)
        b = 2.0 * float(s_cauchy @ d)
        c = float(s_cauchy @ s_cauchy) - self.radius**2
        tau = (-b + np.sqrt(max(b * b - 4.0 * a * c, 0.0))) / (2.0 * a) if a > 0.0 else 0.0
        return s_cauchy + min(max(tau, 0.0), 1.0) * d

    def _perform_step(self) -> None:
        J = self._jacobian()
        s = self._dogleg(J)
        if not np.all(np.isfinite(s)):
            self._terminate(ReturnCode.FAILURE)
            return
        s_norm = float(np.linalg.norm(s))

        np.add(self.u, s, out=self._u_trial)
        self._eval_residual(self._u_trial, out=self._fu_trial)

        loss = 0.5 * float(self.fu @ self.fu)
        loss_trial = 0.5 * float(self._fu_trial @ self._fu_trial)
        model = self.fu + J @ s
        predicted = loss - 0.5 * float(model @ model)
        actual = loss - loss_trial
        if predicted > 0.0 and np.isfinite(loss_trial):
            rho = actual / predicted
        else:
            rho = -np.inf

        accepted = self._update_radius(rho, s, s_norm)
        if accepted:
            np.copyto(self.u, self._u_trial)
            np.copyto(self.fu, self._fu_trial)
            if self._J is not None and self._scheme is not RadiusUpdateScheme.BASTIN:
                self._J = None
            if self._scheme is RadiusUpdateScheme.FAN:
                self.radius = self._fan_radius()

        if self.shrink_counter > self._params.max_shrink_times:
            logger.debug("%s: radius shrank %d times in a row", self.alg.name, self.shrink_counter)
            self._terminate(ReturnCode.SHRINK_THRESHOLD_EXCEEDED)

    def _update_radius(self, rho: float, s: np.ndarray, s_norm: float) -> bool:
        prm = self._params
        scheme = self._scheme

        if scheme is RadiusUpdateScheme.SIMPLE:
            if rho < prm.shrink_threshold:
                self.radius *= prm.shrink_factor
                self.shrink_counter += 1
            else:
                self.shrink_counter = 0
            accepted = rho > prm.step_threshold
            if accepted and rho > prm.expand_threshold and s_norm >= 0.9 * self.radius:
                self.radius = min(prm.expand_factor * self.radius, self.max_radius)
            return accepted

        if scheme is RadiusUpdateScheme.NLSOLVE:
            if rho < prm.shrink_threshold:
                self.radius *= prm.shrink_factor
                self.shrink_counter += 1
            else:
                self.shrink_counter = 0
                if rho >= prm.expand_threshold:
                    self.radius = prm.expand_factor * s_norm
                elif rho >= 0.5:
                    self.radius = max(self.radius, prm.expand_factor * s_norm)
            return rho > prm.step_threshold

        if scheme is RadiusUpdateScheme.BASTIN:
            if rho <= prm.step_threshold:
                self.radius *= prm.shrink_factor
                self.shrink_counter += 1
                return False
            self.shrink_counter = 0
            # Retrospective ratio: the new model evaluated backwards along the step
            fu_old = self.fu.copy()
            np.copyto(self.u, self._u_trial)
            np.copyto(self.fu, self._fu_trial)
            self._J = self._jac.dense(self.u, self.fu)
            back = self.fu - self._J @ s
            loss_new = 0.5 * float(self.fu @ self.fu)
            retro_pred = 0.5 * float(back @ back) - loss_new
            retro_actual = 0.5 * float(fu_old @ fu_old) - loss_new
            rho_ret = retro_actual / retro_pred if retro_pred > 0.0 else 0.0
            if rho_ret >= prm.expand_threshold:
                self.radius = max(prm.expand_factor * s_norm, self.radius)
            elif rho_ret < prm.shrink_threshold:
                self.radius = max(prm.shrink_factor * self.radius, np.finfo(np.float64).tiny)
            return True

        # Fan: radius follows mu * ||F||**0.99
        if rho < prm.shrink_threshold:
            self.mu *= prm.shrink_factor
            self.shrink_counter += 1
        else:
            self.shrink_counter = 0
            if rho > prm.expand_threshold:
                self.mu = min(prm.expand_factor * self.mu, _FAN_MU_MAX)
        accepted = rho > prm.step_threshold
        if not accepted:
            self.radius = self._fan_radius()
        return accepted
