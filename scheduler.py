#!/usr/bin/env python3
"""
Standalone refresher — fetch fresh prices and momentum metrics for every token.
Run: python scheduler.py
Or add to cron: */15 * * * * cd /srv/token-pulse && ./venv/bin/python scheduler.py
"""
import asyncio

from api.handlers import refresh_prices
from common.logger import get_logger, new_request_id
from ingest.birdeye import BirdeyeIngestor
from storage.cache import create_cache
from storage.database import init_db

logger = get_logger("scheduler")


async def run_cycle() -> dict:
    new_request_id()
    cache = create_cache()
    try:
        await init_db()
        result = await refresh_prices(cache, BirdeyeIngestor(), force=True)
    finally:
        await cache.close()
    logger.info(f"✅ Done: {len(result['data'])} tokens refreshed")
    return result


def main():
    asyncio.run(run_cycle())


if __name__ == "__main__":
    main()
