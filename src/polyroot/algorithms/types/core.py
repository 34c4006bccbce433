"""Abstract base classes shared by the polyroot algorithms.

This module provides the marker and template classes that the nonlinear
solve machinery builds on: immutable configuration payloads, problems,
results, candidate backends with lifecycle hooks, and user-facing facades.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field, fields, replace
from typing import Any, Generic, TypeVar

ConfigT = TypeVar("ConfigT", bound="_PolyrootBaseConfig")

ProblemT = TypeVar("ProblemT", bound="_PolyrootBaseProblem")

ResultT = TypeVar("ResultT", bound="_PolyrootBaseResults")


@dataclass(frozen=True)
class _BackendCall:
    """Describe the extra positional and keyword arguments of a solve call.

    The fallback drivers forward these verbatim to every candidate.
    """

    args: tuple[Any, ...] = ()
    kwargs: dict[str, Any] = field(default_factory=dict)


class _PolyrootBaseProblem(ABC):
    """Marker base class for problem payloads."""

    __slots__ = ()


class _PolyrootBaseResults(ABC):
    """Marker base class for user-facing results returned by solvers."""

    __slots__ = ()


@dataclass(frozen=True)
class _PolyrootBaseConfig(ABC):
    """Base class for immutable configuration payloads.

    Subclasses are frozen dataclasses and override :meth:`_validate`, which
    runs once after construction.
    """

    def __post_init__(self) -> None:
        self._validate()

    def _validate(self) -> None:
        """Validate the configuration."""
        return None

    def merge(self: ConfigT, **overrides: Any) -> ConfigT:
        """Return a copy with ``overrides`` applied.

        ``None`` values are ignored so that optional keyword arguments can be
        passed straight through.

        Raises
        ------
        ValueError
            If an override does not name a configuration field.
        """
        names = {f.name for f in fields(self)}
        filtered = {k: v for k, v in overrides.items() if v is not None}
        unknown = sorted(set(filtered) - names)
        if unknown:
            raise ValueError(f"Unknown configuration parameter(s): {', '.join(unknown)}")
        if not filtered:
            return self
        return replace(self, **filtered)


class _PolyrootBaseBackend(ABC):
    """Abstract base class for the iterative candidate solvers.

    Backends own their iterate, residual and statistics exclusively. The
    following lifecycle hooks are called by the iteration loop and do
    nothing by default:

    - :meth:`on_iteration`: after each accepted iteration
    - :meth:`on_accept`: when the backend terminates successfully
    - :meth:`on_failure`: when the backend terminates without converging
    """

    def on_iteration(self, k: int, x: Any, r_norm: float) -> None:
        """Called after each iteration of the main algorithm.

        Parameters
        ----------
        k : int
            Current iteration number (1-based count of completed steps).
        x : Any
            Current solution estimate.
        r_norm : float
            Current residual norm.
        """
        return

    def on_accept(self, x: Any, *, iterations: int, residual_norm: float) -> None:
        """Called when the backend detects convergence.

        Parameters
        ----------
        x : Any
            Final solution.
        iterations : int
            Total number of iterations performed.
        residual_norm : float
            Final residual norm.
        """
        return

    def on_failure(self, x: Any, *, iterations: int, residual_norm: float) -> None:
        """Called when the backend terminates without converging.

        Parameters
        ----------
        x : Any
            Final solution estimate (not converged).
        iterations : int
            Total number of iterations performed.
        residual_norm : float
            Final residual norm.
        """
        return


class _PolyrootBaseFacade(Generic[ConfigT, ProblemT, ResultT]):
    """Abstract base class for user-facing solver facades.

    A facade holds an immutable configuration and exposes the two entry
    points of the package: ``init`` (build a reusable cache) and ``solve``
    (one-shot solve).
    """

    def __init__(self, config: ConfigT) -> None:
        self._validate_config(config)
        self._config: ConfigT = config

    @property
    def config(self) -> ConfigT:
        return self._config

    @abstractmethod
    def init(self, problem: ProblemT, *args, **kwargs) -> Any:
        """Build a reusable solver cache for ``problem``."""
        ...

    @abstractmethod
    def solve(self, problem: ProblemT, *args, **kwargs) -> ResultT:
        """Solve ``problem`` and return a result record."""
        ...

    def update_config(self, **kwargs) -> None:
        """Replace configuration parameters.

        Parameters
        ----------
        **kwargs
            Configuration parameters to update. ``None`` values are ignored.

        Raises
        ------
        ValueError
            If the configuration parameter is not valid.
        """
        config = self._config.merge(**kwargs)
        self._validate_config(config)
        self._config = config

    def _validate_config(self, config: ConfigT) -> None:
        """Validate the configuration object.

        This method can be overridden by concrete facades to perform
        algorithm-specific configuration validation.
        """
        pass

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self._config!r})"
