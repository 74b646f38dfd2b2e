"""Volume momentum: total volume change, weighted toward the short windows."""
from typing import Optional

from common.models import TokenMetrics
from scoring.base import BaseComponentScorer


class VolumeScorer(BaseComponentScorer):
    name = "volume"
    max_range = 200.0
    weights = {
        "1h":  0.40,
        "2h":  0.25,
        "4h":  0.15,
        "8h":  0.12,
        "24h": 0.08,
    }

    def window_value(self, metrics: TokenMetrics, window: str) -> Optional[float]:
        return metrics.value("volume", window)
