"""Price momentum: percent price change, weighted toward the 24h window."""
from typing import Optional

from common.models import TokenMetrics
from scoring.base import BaseComponentScorer


class PriceScorer(BaseComponentScorer):
    name = "price"
    max_range = 20.0
    weights = {
        "1h":  0.08,
        "2h":  0.12,
        "4h":  0.15,
        "8h":  0.25,
        "24h": 0.40,
    }

    def window_value(self, metrics: TokenMetrics, window: str) -> Optional[float]:
        return metrics.value("price", window)
