import math
from typing import Iterable
import numpy as np


class MathTools:
    """Provides essential numeric utilities for training analytics."""

    PLATE_INCREMENT: float = 2.5

    @staticmethod
    def clamp(value: float, min_value: float, max_value: float) -> float:
        """Clamp ``value`` to the inclusive range [min_value, max_value]."""
        if min_value > max_value:
            raise ValueError("min_value must not exceed max_value")
        return max(min_value, min(value, max_value))

    @staticmethod
    def volume(sets: Iterable[tuple[int, float]]) -> float:
        """Compute training volume as the sum of reps times weight."""
        vol = 0.0
        for reps, weight in sets:
            vol += reps * weight
        return vol

    @staticmethod
    def mean(values: Iterable[float], default: float = 0.0) -> float:
        """Return the arithmetic mean or ``default`` for no values."""
        data = list(values)
        if not data:
            return default
        return float(np.mean(np.array(data, dtype=float)))

    @staticmethod
    def variance(values: Iterable[float]) -> float:
        """Return the population variance of ``values``."""
        data = list(values)
        if not data:
            return 0.0
        return float(np.var(np.array(data, dtype=float)))

    @staticmethod
    def std_dev(values: Iterable[float]) -> float:
        """Return the population standard deviation of ``values``."""
        data = list(values)
        if not data:
            return 0.0
        return float(np.std(np.array(data, dtype=float)))

    @staticmethod
    def percent_change(current: float, previous: float) -> float:
        """Return the change from ``previous`` to ``current`` in percent.

        A zero or negative baseline yields ``0.0``.
        """
        if previous <= 0:
            return 0.0
        return (current - previous) / previous * 100

    @classmethod
    def round_to_increment(cls, value: float, increment: float | None = None) -> float:
        """Round ``value`` half-up to the nearest multiple of ``increment``."""
        step = increment if increment is not None else cls.PLATE_INCREMENT
        if step <= 0:
            raise ValueError("increment must be positive")
        return math.floor(round(value / step, 9) + 0.5) * step

    @staticmethod
    def consistency_score(values: Iterable[float]) -> float:
        """Return ``100 - 10 * stddev`` floored at zero.

        Fewer than two values count as perfectly consistent.
        """
        data = list(values)
        if len(data) < 2:
            return 100.0
        return max(0.0, 100.0 - MathTools.std_dev(data) * 10)

    @staticmethod
    def half_split_delta(values: list[float]) -> float:
        """Return mean of the second half minus mean of the first half."""
        if len(values) < 2:
            return 0.0
        mid = len(values) // 2
        first = values[:mid]
        second = values[mid:]
        return MathTools.mean(second) - MathTools.mean(first)
