from __future__ import annotations

from typing import Any

import numpy as np


def as_vector(x: Any) -> np.ndarray:
    """Return a 1D float64 array view (or copy) of a vector-like object."""
    arr = np.asarray(x, dtype=np.float64)
    return arr.ravel()


def p_norm(x: Any, order: int) -> float:
    """p-norm of a vector; ``order <= 0`` gives the max-abs norm.

    An empty vector has norm 0.
    """
    v = as_vector(x)
    if v.size == 0:
        return 0.0
    if order <= 0:
        return float(np.max(np.abs(v)))
    if order == 2:
        return float(np.sqrt(np.dot(v, v)))
    return float(np.sum(np.abs(v) ** order) ** (1.0 / order))
