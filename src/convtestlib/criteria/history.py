from __future__ import annotations

import numpy as np


class ConvergenceHistory:
    """Fixed-capacity record of per-iteration displacement and residual norms.

    Layout for capacity ``n``: ``[0, n)`` displacement norms, ``[n, 2n)``
    residual norms, same offset per iteration.
    """

    def __init__(self, max_iterations: int) -> None:
        self._max_iterations = 0
        self._values = np.zeros(0, dtype=np.float64)
        self.resize(max_iterations)

    @property
    def max_iterations(self) -> int:
        return self._max_iterations

    def __len__(self) -> int:
        return int(self._values.size)

    def __getitem__(self, index):
        return self._values[index]

    def __setitem__(self, index, value) -> None:
        self._values[index] = value

    def resize(self, max_iterations: int) -> None:
        """Reallocate for a new budget; contents are zeroed."""
        assert int(max_iterations) >= 0, "max_iterations must be non-negative"
        self._max_iterations = int(max_iterations)
        self._values = np.zeros(2 * self._max_iterations, dtype=np.float64)

    def clear(self) -> None:
        self._values.fill(0.0)

    def record(self, iteration: int, norm_x: float, norm_b: float) -> bool:
        """Store both norms for a 1-based iteration; returns False when beyond capacity."""
        if iteration < 1 or iteration > self._max_iterations:
            return False
        self._values[iteration - 1] = norm_x
        self._values[self._max_iterations + iteration - 1] = norm_b
        return True

    def view(self) -> np.ndarray:
        v = self._values.view()
        v.flags.writeable = False
        return v

    @property
    def displacement_norms(self) -> np.ndarray:
        return self.view()[: self._max_iterations]

    @property
    def residual_norms(self) -> np.ndarray:
        return self.view()[self._max_iterations :]
