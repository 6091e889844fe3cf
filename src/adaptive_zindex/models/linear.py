"""
Linear rank model over sorted Z-order keys: ``rank ~= slope * key + intercept``.
"""

import logging
from dataclasses import dataclass
from typing import Sequence

import numpy as np
from sklearn.linear_model import LinearRegression

logger = logging.getLogger(__name__)

MIN_VALID_R_SQUARED = 0.6


@dataclass(frozen=True)
class LinearFit:
    """Result of regressing array position against Z-order value."""
    slope: float
    intercept: float
    r_squared: float
    min_error: float = 0.0  # worst over-prediction (negative)
    max_error: float = 0.0  # worst under-prediction (positive)

    @property
    def is_valid(self) -> bool:
        return self.r_squared > MIN_VALID_R_SQUARED

    @property
    def max_abs_error(self) -> float:
        return max(abs(self.min_error), abs(self.max_error))

    def predict(self, key: int) -> float:
        return self.slope * float(key) + self.intercept

    def __str__(self) -> str:
        return (f"LinearFit{{slope={self.slope:.4f}, intercept={self.intercept:.4f}, "
                f"R²={self.r_squared:.4f}, valid={self.is_valid}}}")


DEGENERATE_FIT = LinearFit(0.0, 0.0, 0.0)


def fit_linear(sorted_keys: Sequence[int]) -> LinearFit:
    """
    Fit ``position ~= slope * key + intercept`` over keys in ascending order.

    The target for the i-th key is its position i. Fewer than two keys, or
    keys with zero variance, give a degenerate fit with everything set to 0.

    Args:
        sorted_keys: Z-order values sorted ascending (duplicates allowed)

    Returns:
        LinearFit with R² and signed error extremes over the training keys
    """
    keys = np.asarray(sorted_keys, dtype=np.float64)
    n = len(keys)
    if n < 2 or np.ptp(keys) == 0:
        return DEGENERATE_FIT

    X = keys.reshape(-1, 1)
    y = np.arange(n, dtype=np.float64)

    model = LinearRegression()
    model.fit(X, y)

    predictions = model.predict(X)
    errors = predictions - y

    # Ranks 0..n-1 are distinct, so SS_total > 0 once n >= 2
    ss_total = float(np.sum((y - y.mean()) ** 2))
    ss_residual = float(np.sum(errors ** 2))
    r_squared = 0.0 if ss_total < 1e-10 else 1.0 - ss_residual / ss_total

    return LinearFit(
        slope=float(model.coef_[0]),
        intercept=float(model.intercept_),
        r_squared=r_squared,
        min_error=float(np.min(errors)),
        max_error=float(np.max(errors)),
    )
