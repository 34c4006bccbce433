"""
Custom exceptions for the algorithms package.
"""

class PolyrootError(Exception):
    """Base exception for polyroot errors.

    Parameters
    ----------
    message : str
        The error message.
    """

    def __init__(self, message: str):
        super().__init__(message)


class ConvergenceError(PolyrootError):
    """Raised when an algorithm fails to converge and the caller asked for it.

    A failed candidate is reported through its return code, so this never
    escapes a solve. It is raised by
    :meth:`~polyroot.algorithms.nonlinear.types.NonlinearSolution.require_success`
    and, internally, by the backtracking line search when no acceptable step
    is found.

    Parameters
    ----------
    message : str
        The error message.
    """

    def __init__(self, message: str):
        super().__init__(message)


class BackendError(PolyrootError):
    """Raised when a candidate solver cannot be built for a problem.

    Parameters
    ----------
    message : str
        The error message.
    """

    def __init__(self, message: str):
        super().__init__(message)


class EngineError(PolyrootError):
    """Raised when an exception occurs in the fallback engine.

    Parameters
    ----------
    message : str
        The error message.
    """

    def __init__(self, message: str):
        super().__init__(message)


class PolyAlgorithmStateError(EngineError):
    """Raised when the fallback cursor is out of range for an orchestration step.

    This signals a bug in the code driving the cache, not a numerical
    failure. It is never caught inside the package.

    Parameters
    ----------
    message : str
        The error message.
    """

    def __init__(self, message: str):
        super().__init__(message)
