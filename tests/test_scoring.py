"""Tests for the breakout score engine."""
import pytest

from common.models import METRIC_FIELDS, TokenMetrics
from scoring.aggregator import (
    SCORERS,
    WEIGHTS,
    calculate_breakout_score,
    calculate_buy_sell_score,
    calculate_price_score,
    level_from_score,
)
from scoring.base import normalize, round_half_up
from scoring.buy_sell import BuySellScorer
from scoring.price import PriceScorer
from scoring.trade import TradeScorer
from scoring.volume import VolumeScorer
from scoring.wallet import WalletScorer

WINDOWS = ("1h", "2h", "4h", "8h", "24h")


def all_metrics(value: float) -> dict:
    return {name: value for name in METRIC_FIELDS}


def max_metrics() -> dict:
    m = {}
    for w in WINDOWS:
        m[f"priceChange{w}Percent"] = 20
        m[f"v{w}ChangePercent"] = 200
        m[f"vBuy{w}ChangePercent"] = 150
        m[f"vSell{w}ChangePercent"] = 0
        m[f"uniqueWallet{w}ChangePercent"] = 50
        m[f"trade{w}ChangePercent"] = 100
    return m


class TestNormalize:
    def test_zero_is_midpoint(self):
        assert normalize(0, 20) == 50.0

    def test_linear_inside_band(self):
        assert normalize(10, 20) == pytest.approx(75.0)
        assert normalize(-100, 200) == pytest.approx(25.0)

    def test_saturates_at_band_edges(self):
        assert normalize(20, 20) == 100.0
        assert normalize(1000, 20) == 100.0
        assert normalize(-20, 20) == 0.0
        assert normalize(-1000, 20) == 0.0

    def test_round_half_up(self):
        assert round_half_up(12.5) == 13
        assert round_half_up(0.5) == 1
        assert round_half_up(12.49) == 12
        assert round_half_up(0.0) == 0


class TestWeights:
    def test_component_weights_sum_to_one(self):
        assert sum(WEIGHTS.values()) == pytest.approx(1.0)

    def test_component_weights(self):
        assert WEIGHTS == {"price": 0.30, "volume": 0.25, "buy_sell": 0.20,
                           "wallet": 0.15, "trade": 0.10}

    @pytest.mark.parametrize("name", ["price", "volume", "buy_sell", "wallet", "trade"])
    def test_window_weights_sum_to_one(self, name):
        assert sum(SCORERS[name].weights.values()) == pytest.approx(1.0)

    def test_price_favours_long_windows_volume_short(self):
        assert PriceScorer.weights["24h"] == 0.40
        assert VolumeScorer.weights["1h"] == 0.40

    def test_four_window_families_have_no_24h(self):
        for cls in (BuySellScorer, WalletScorer, TradeScorer):
            assert cls().windows == ("1h", "2h", "4h", "8h")

    def test_max_ranges(self):
        assert [s.max_range for s in SCORERS.values()] == [20, 200, 150, 50, 100]


class TestComponents:
    def test_price_24h_only(self):
        c = calculate_price_score(TokenMetrics(priceChange24hPercent=20))
        assert c.details["24h"] == 100.0
        assert c.score == pytest.approx(40.0)
        assert c.details["1h"] is None

    def test_price_negative_saturates_to_zero(self):
        c = calculate_price_score(TokenMetrics(priceChange24hPercent=-20))
        assert c.details["24h"] == 0.0
        assert c.score == 0.0

    def test_price_saturation_matches(self):
        big = calculate_price_score(TokenMetrics(priceChange24hPercent=1000))
        edge = calculate_price_score(TokenMetrics(priceChange24hPercent=20))
        assert big.details["24h"] == edge.details["24h"] == 100.0
        assert big.score == edge.score

    def test_buy_sell_uses_difference(self):
        c = calculate_buy_sell_score(TokenMetrics(vBuy8hChangePercent=100, vSell8hChangePercent=25))
        assert c.details["8h"] == pytest.approx(normalize(75, 150))
        assert c.score == pytest.approx(normalize(75, 150) * 0.4)

    def test_buy_sell_one_sided_window_is_absent(self):
        c = calculate_buy_sell_score(TokenMetrics(vBuy1hChangePercent=50))
        assert c.details["1h"] is None
        assert c.score == 0.0

    def test_details_stay_in_bounds(self):
        m = TokenMetrics(**{name: v for name, v in zip(METRIC_FIELDS, range(-900, 900, 60))})
        for scorer in SCORERS.values():
            for value in scorer.score(m).details.values():
                assert value is None or 0 <= value <= 100


class TestBreakoutScore:
    def test_empty_input_is_null(self):
        result = calculate_breakout_score({})
        assert result.breakout_score is None
        assert result.interpretation is None
        for name in SCORERS:
            comp = getattr(result.components, name)
            assert comp.score is None
            assert comp.details == {}

    def test_none_and_all_nan_are_null(self):
        assert calculate_breakout_score(None).breakout_score is None
        nan = {name: float("nan") for name in METRIC_FIELDS}
        assert calculate_breakout_score(nan).breakout_score is None

    def test_price_24h_only(self):
        result = calculate_breakout_score({"priceChange24hPercent": 20})
        assert result.components.price.score == pytest.approx(40.0)
        assert result.components.volume.score == 0.0
        assert result.breakout_score == 12
        assert result.interpretation.level == "Weak/Bearish"

    def test_negative_price_24h_only(self):
        result = calculate_breakout_score({"priceChange24hPercent": -20})
        assert result.components.price.details["24h"] == 0.0
        assert result.breakout_score == 0

    def test_flat_market_is_neutral(self):
        result = calculate_breakout_score(all_metrics(0))
        for name in SCORERS:
            assert getattr(result.components, name).score == pytest.approx(50.0)
        assert result.breakout_score == 50
        assert result.interpretation.level == "Neutral"

    def test_everything_maxed_is_strong_breakout(self):
        result = calculate_breakout_score(max_metrics())
        assert result.breakout_score == 100
        assert result.interpretation.level == "Strong Breakout"

    def test_accepts_field_names_and_aliases(self):
        by_name = calculate_breakout_score({"price_change_24h_percent": 5})
        by_alias = calculate_breakout_score({"priceChange24hPercent": 5})
        assert by_name == by_alias

    def test_unknown_keys_are_ignored(self):
        result = calculate_breakout_score({"priceChange24hPercent": 20, "holder": 12})
        assert result.breakout_score == 12

    def test_deterministic(self):
        metrics = max_metrics() | {"priceChange1hPercent": -7.5, "v24hChangePercent": None}
        first = calculate_breakout_score(metrics)
        second = calculate_breakout_score(metrics)
        assert first.model_dump() == second.model_dump()

    def test_serializes_with_camel_case(self):
        dumped = calculate_breakout_score({"priceChange24hPercent": 20}).model_dump(by_alias=True)
        assert "breakoutScore" in dumped
        assert "buySell" in dumped["components"]
        assert dumped["interpretation"] == {"level": "Weak/Bearish"}

    def test_score_within_range(self):
        for value in (-1000, -50, -1, 0, 3, 42, 999):
            score = calculate_breakout_score(all_metrics(value)).breakout_score
            assert 0 <= score <= 100


class TestLevels:
    @pytest.mark.parametrize("score,level", [
        (100, "Strong Breakout"),
        (80, "Strong Breakout"),
        (79, "Bullish"),
        (60, "Bullish"),
        (40, "Neutral"),
        (39, "Slightly Bearish"),
        (20, "Slightly Bearish"),
        (19, "Weak/Bearish"),
        (0, "Weak/Bearish"),
    ])
    def test_level_from_score(self, score, level):
        assert level_from_score(score) == level
