"""Provide residual norms used for termination tests and fallback ranking.

The kernels are compiled with numba; the public wrappers accept any array
like and always return a Python float.
"""

import numpy as np
from numba import njit

from polyroot.algorithms.utils.config import FASTMATH


@njit(cache=False, fastmath=FASTMATH)
def _l2_norm_kernel(r: np.ndarray) -> float:
    # Scaled accumulation avoids overflow for large residual components
    scale = 0.0
    for i in range(r.size):
        a = abs(r[i])
        if a != a:
            return a
        if a > scale:
            scale = a
    if scale == 0.0 or np.isinf(scale):
        return scale
    acc = 0.0
    for i in range(r.size):
        t = r[i] / scale
        acc += t * t
    return scale * np.sqrt(acc)


@njit(cache=False, fastmath=FASTMATH)
def _inf_norm_kernel(r: np.ndarray) -> float:
    out = 0.0
    for i in range(r.size):
        a = abs(r[i])
        if a != a:
            return a
        if a > out:
            out = a
    return out


def _as_flat(r) -> np.ndarray:
    return np.ascontiguousarray(np.asarray(r, dtype=np.float64).ravel())


def _default_norm(r: np.ndarray) -> float:
    """Compute L2 norm of residual vector.

    Parameters
    ----------
    r : ndarray
        Residual vector.

    Returns
    -------
    float
        L2 norm of the residual. NaN if any component is NaN.
    """
    return float(_l2_norm_kernel(_as_flat(r)))


def _infinity_norm(r: np.ndarray) -> float:
    """Compute infinity norm of residual vector.

    Parameters
    ----------
    r : ndarray
        Residual vector.

    Returns
    -------
    float
        Maximum absolute component of the residual.
    """
    return float(_inf_norm_kernel(_as_flat(r)))


def _rms_norm(r: np.ndarray) -> float:
    """Root-mean-square norm, the L2 norm divided by ``sqrt(n)``."""
    flat = _as_flat(r)
    if flat.size == 0:
        return 0.0
    return float(_l2_norm_kernel(flat)) / float(np.sqrt(flat.size))


DEFAULT_NORM = _default_norm
INFINITY_NORM = _infinity_norm
RMS_NORM = _rms_norm
