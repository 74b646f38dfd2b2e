"""Buy/sell pressure: buy-volume change minus sell-volume change."""
from typing import Optional

from common.models import TokenMetrics
from scoring.base import BaseComponentScorer


class BuySellScorer(BaseComponentScorer):
    name = "buy_sell"
    max_range = 150.0
    weights = {"1h": 0.1, "2h": 0.2, "4h": 0.3, "8h": 0.4}

    def window_value(self, metrics: TokenMetrics, window: str) -> Optional[float]:
        buy = metrics.value("buy_volume", window)
        sell = metrics.value("sell_volume", window)
        # one-sided data says nothing about the balance
        if buy is None or sell is None:
            return None
        return buy - sell
