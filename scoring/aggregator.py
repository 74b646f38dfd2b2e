"""
Token Pulse — Breakout aggregator

Combines the five component scorers into a single breakout score (0..100).

Weights:
  Price     30% — direction and size of the move, 24h-heavy
  Volume    25% — fresh volume, 1h-heavy
  Buy/Sell  20% — buy pressure over sell pressure
  Wallet    15% — new unique wallets
  Trade     10% — trade count growth

Each component normalizes its per-window percent changes to 0..100 before
weighting, so the final score lives on the same scale.
"""
from typing import Mapping, Optional, Union

from common.logger import get_logger
from common.models import (
    BreakoutComponents,
    BreakoutResult,
    ComponentScore,
    Interpretation,
    TokenMetrics,
)
from config.settings import BREAKOUT_WEIGHTS
from scoring.base import round_half_up, weights_sum_to_one
from scoring.buy_sell import BuySellScorer
from scoring.price import PriceScorer
from scoring.trade import TradeScorer
from scoring.volume import VolumeScorer
from scoring.wallet import WalletScorer

logger = get_logger("aggregator")

WEIGHTS = dict(BREAKOUT_WEIGHTS)

assert weights_sum_to_one(WEIGHTS), "Weights must sum to 1.0"

SCORERS = {
    "price":    PriceScorer(),
    "volume":   VolumeScorer(),
    "buy_sell": BuySellScorer(),
    "wallet":   WalletScorer(),
    "trade":    TradeScorer(),
}

assert set(SCORERS) == set(WEIGHTS)


def level_from_score(score: float) -> str:
    if score >= 80:  return "Strong Breakout"
    if score >= 60:  return "Bullish"
    if score >= 40:  return "Neutral"
    if score >= 20:  return "Slightly Bearish"
    return "Weak/Bearish"


def _as_metrics(metrics: Union[TokenMetrics, Mapping, None]) -> TokenMetrics:
    if isinstance(metrics, TokenMetrics):
        return metrics
    return TokenMetrics.model_validate(dict(metrics or {}))


def calculate_price_score(metrics: TokenMetrics) -> ComponentScore:
    return SCORERS["price"].score(metrics)


def calculate_volume_score(metrics: TokenMetrics) -> ComponentScore:
    return SCORERS["volume"].score(metrics)


def calculate_buy_sell_score(metrics: TokenMetrics) -> ComponentScore:
    return SCORERS["buy_sell"].score(metrics)


def calculate_wallet_score(metrics: TokenMetrics) -> ComponentScore:
    return SCORERS["wallet"].score(metrics)


def calculate_trade_score(metrics: TokenMetrics) -> ComponentScore:
    return SCORERS["trade"].score(metrics)


def calculate_breakout_score(
    metrics: Union[TokenMetrics, Mapping, None],
) -> BreakoutResult:
    """
    Score short-term momentum for one token.

    Accepts a TokenMetrics or a plain mapping keyed by field name or
    upstream alias. When every metric is absent the result carries
    breakout_score=None and empty components instead of raising.
    """
    metrics = _as_metrics(metrics)

    if not metrics.has_data():
        empty = {name: ComponentScore() for name in SCORERS}
        return BreakoutResult(
            breakout_score=None,
            components=BreakoutComponents(**empty),
            interpretation=None,
        )

    components = {name: scorer.score(metrics) for name, scorer in SCORERS.items()}
    weighted = sum(components[k].score * WEIGHTS[k] for k in WEIGHTS)
    breakout: Optional[int] = round_half_up(weighted)
    level = level_from_score(breakout)

    logger.debug(
        "breakout=%s (%s) %s", breakout, level,
        ", ".join(f"{k}={c.score:.1f}" for k, c in components.items()),
    )

    return BreakoutResult(
        breakout_score=breakout,
        components=BreakoutComponents(**components),
        interpretation=Interpretation(level=level),
    )
