"""Trade activity: trade count change."""
from typing import Optional

from common.models import TokenMetrics
from scoring.base import BaseComponentScorer


class TradeScorer(BaseComponentScorer):
    name = "trade"
    max_range = 100.0
    weights = {"1h": 0.1, "2h": 0.2, "4h": 0.3, "8h": 0.4}

    def window_value(self, metrics: TokenMetrics, window: str) -> Optional[float]:
        return metrics.value("trade", window)
