"""Pick the best failed attempt by residual norm."""

import math
from typing import Any, Callable, Optional, Sequence

from polyroot.algorithms.nonlinear.norms import _default_norm
from polyroot.algorithms.nonlinear.types import NormFn


def _rank(value: float) -> tuple[bool, float]:
    # NaN ranks after every other value, infinity included, so a diverged
    # attempt never wins over one with a finite or infinite residual
    return (True, 0.0) if math.isnan(value) else (False, value)


def select_best(
    values: Sequence[Any],
    norm_fn: Optional[NormFn] = None,
    *,
    key: Optional[Callable[[Any], Any]] = None,
) -> int:
    """Return the index of the entry with the smallest residual norm.

    Parameters
    ----------
    values : sequence
        Residual vectors, or records from which ``key`` extracts one.
    norm_fn : :data:`~polyroot.algorithms.nonlinear.types.NormFn` or None
        Norm applied to each residual. L2 if None.
    key : callable or None
        Maps an entry to its residual vector.

    Returns
    -------
    int
        Index of the first entry attaining the minimum norm. NaN norms rank
        after every other norm; if all norms are NaN the first index wins.

    Raises
    ------
    ValueError
        If ``values`` is empty.
    """
    if len(values) == 0:
        raise ValueError("select_best() requires at least one candidate")
    norm = _default_norm if norm_fn is None else norm_fn
    best_idx = 0
    best = None
    for i, value in enumerate(values):
        resid = value if key is None else key(value)
        r = _rank(float(norm(resid)))
        if best is None or r < best:
            best_idx, best = i, r
    return best_idx
