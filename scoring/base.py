"""Base component scorer for the breakout engine."""
import math
from abc import ABC, abstractmethod
from typing import Optional

import numpy as np

from common.logger import get_logger
from common.models import ComponentScore, TokenMetrics


def normalize(value: float, max_range: float) -> float:
    """Map a signed percent change onto [0, 100].

    -max_range maps to 0, 0 to 50 and +max_range to 100; anything beyond
    the band saturates.
    """
    return float(np.clip((value + max_range) / (2 * max_range) * 100, 0, 100))


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def weights_sum_to_one(weights: dict[str, float]) -> bool:
    return abs(sum(weights.values()) - 1.0) < 1e-9


class BaseComponentScorer(ABC):
    """Weighted sum of normalized per-window values.

    A window without data contributes nothing; the remaining weights are
    not rescaled.
    """
    name: str = ""
    max_range: float = 100.0
    weights: dict[str, float] = {}

    def __init__(self):
        self.logger = get_logger(self.__class__.__name__)
        assert weights_sum_to_one(self.weights), f"{self.name} window weights must sum to 1.0"

    @property
    def windows(self) -> tuple[str, ...]:
        return tuple(self.weights)

    @abstractmethod
    def window_value(self, metrics: TokenMetrics, window: str) -> Optional[float]:
        """Raw percent change for *window*, or None when absent."""
        pass

    def score(self, metrics: TokenMetrics) -> ComponentScore:
        details: dict[str, Optional[float]] = {}
        total = 0.0
        for window, weight in self.weights.items():
            raw = self.window_value(metrics, window)
            if raw is None:
                details[window] = None
                continue
            normalized = normalize(raw, self.max_range)
            details[window] = normalized
            total += normalized * weight
        return ComponentScore(score=total, details=details)
