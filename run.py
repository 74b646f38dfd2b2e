"""
Token Pulse — Entry point
Prints the breakout table for every stored token.
Run: python run.py
"""
import asyncio

from api.handlers import list_tokens
from common.logger import get_logger, new_request_id
from scoring.aggregator import WEIGHTS, level_from_score
from storage.cache import create_cache

logger = get_logger("run")


def _fmt(value) -> str:
    return f"{value:>7.1f}" if value is not None else f"{'N/A':>7}"


async def main():
    new_request_id()
    cache = create_cache()
    try:
        page = await list_tokens(cache, page_size=100, sort="breakout_score")
    finally:
        await cache.close()

    print("\n" + "="*90)
    print("  🚀  TOKEN PULSE  —  Breakout Scores")
    print("="*90)
    print(f"{'Symbol':<10} {'Price':>7} {'Volume':>7} {'Buy/Sl':>7} {'Wallet':>7} {'Trade':>7} {'BREAKOUT':>9}  Level")
    print("-"*90)

    for t in page.tokens:
        level = level_from_score(t.breakout_score) if t.breakout_score is not None else "No data"
        print(
            f"{t.symbol:<10}"
            f" {_fmt(t.price_score)}"
            f" {_fmt(t.volume_score)}"
            f" {_fmt(t.buy_sell_score)}"
            f" {_fmt(t.wallet_score)}"
            f" {_fmt(t.trade_score)}"
            f" {t.breakout_score if t.breakout_score is not None else 'N/A':>9}"
            f"  {level}"
        )

    print("="*90)
    print(f"\n  Weights: " + " | ".join(f"{k}: {v:.0%}" for k, v in WEIGHTS.items()))
    print(f"  Tokens: {page.total_count}  (prices cached: {page.cached})")
    print("="*90 + "\n")


if __name__ == "__main__":
    asyncio.run(main())
