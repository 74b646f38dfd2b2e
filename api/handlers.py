"""Request handlers around the scoring core.

Each handler receives its collaborators (cache, ingestor, storage callables)
as arguments so the FastAPI layer only wires things together.
"""
import asyncio
import math
import time
from datetime import datetime
from typing import Awaitable, Callable, Optional

import pandas as pd
import requests

from common.logger import get_logger
from common.models import (
    METRIC_FIELDS,
    RepoAuthenticatedData,
    RepoHealth,
    RepoPublicData,
    Token,
    TokenCreate,
    TokenMetrics,
    TokenPriceUpdate,
    TokensPage,
)
from config.settings import PRICE_CACHE_KEY, PRICE_CACHE_TTL, REPO_CACHE_TTL
from ingest.birdeye import BirdeyeIngestor
from ingest.github import GitHubIngestor, parse_github_url
from scoring.aggregator import calculate_breakout_score
from scoring.cyber_index import calculate_cyber_index, cyber_index_breakdown
from storage.cache import CacheError, get_json, set_json, with_cache
from storage.database import add_token, load_tokens, update_token_prices

logger = get_logger("handlers")

TOKEN_TYPES = ("agent", "framework", "application", "meme", "kol", "defi")
SORT_FIELDS = ("price", "price_change_24h", "market_cap", "breakout_score")
MERGE_COLUMNS = ["price", "market_cap", "price_change_24h", "price_updated_at", *METRIC_FIELDS]
MAX_PAGE_SIZE = 100

COMPONENT_COLUMNS = {
    "price":    "price_score",
    "volume":   "volume_score",
    "buy_sell": "buy_sell_score",
    "wallet":   "wallet_score",
    "trade":    "trade_score",
}


class InvalidRepositoryUrl(ValueError):
    pass


class UpstreamUnavailable(Exception):
    pass


def _records(df: pd.DataFrame) -> list[dict]:
    """DataFrame rows as dicts with every NaN replaced by None."""
    if df.empty:
        return []
    return df.astype(object).where(pd.notna(df), None).to_dict(orient="records")


async def _cached_updates(cache) -> list[dict]:
    try:
        return await get_json(cache, PRICE_CACHE_KEY) or []
    except CacheError as e:
        logger.warning(f"Price cache unavailable: {e}")
        return []


def merge_price_updates(tokens: pd.DataFrame, updates: list[dict]) -> pd.DataFrame:
    """Overlay cached price/metric updates onto token rows, matched by id.

    Every cached field replaces the stored one, nulls included.
    """
    if tokens.empty or not updates:
        return tokens
    upd = pd.DataFrame(updates).drop_duplicates(subset="id", keep="last").set_index("id")
    cols = [c for c in MERGE_COLUMNS if c in upd.columns and c in tokens.columns]
    merged = tokens.set_index("id")
    ids = upd.index.intersection(merged.index)
    merged[cols] = merged[cols].astype(object)
    fresh = upd.loc[ids, cols].astype(object)
    merged.loc[ids, cols] = fresh.where(pd.notna(fresh), None)
    return merged.reset_index()


def decorate_token(row: dict) -> dict:
    """Attach breakout_score and the five component scores to one token row."""
    result = calculate_breakout_score(TokenMetrics.model_validate(row))
    row = dict(row)
    row["breakout_score"] = result.breakout_score
    for name, column in COMPONENT_COLUMNS.items():
        score = getattr(result.components, name).score
        row[column] = round(score, 2) if score is not None else None
    return row


def _numeric(s: pd.Series) -> pd.Series:
    return pd.to_numeric(s, errors="coerce")


async def list_tokens(
    cache,
    *,
    page: int = 1,
    page_size: int = 50,
    token_type: str = "all",
    chain: str = "all",
    ecosystem: str = "all",
    sort: Optional[str] = None,
    direction: str = "desc",
    load: Callable[[], Awaitable[pd.DataFrame]] = load_tokens,
) -> TokensPage:
    tokens = await load()
    updates = await _cached_updates(cache)
    rows = [decorate_token(r) for r in _records(merge_price_updates(tokens, updates))]

    page_size = min(max(page_size, 1), MAX_PAGE_SIZE)
    df = pd.DataFrame(rows)
    if not df.empty:
        if token_type != "all":
            df = df[df[f"is_{token_type}"].astype(bool)]
        if chain != "all":
            df = df[df["chain"] == chain.lower()]
        if ecosystem != "all":
            df = df[df["ecosystem"] == ecosystem]
        if sort:
            df = df.sort_values(sort, ascending=direction == "asc", na_position="last",
                                kind="stable", key=_numeric)

    total = len(df)
    total_pages = max(1, math.ceil(total / page_size))
    page = min(max(page, 1), total_pages)
    start = (page - 1) * page_size
    window = _records(df.iloc[start:start + page_size])

    return TokensPage(
        tokens=[Token.model_validate(r) for r in window],
        total_count=total,
        current_page=page,
        total_pages=total_pages,
        cached=bool(updates),
        timestamp=int(time.time() * 1000),
    )


async def refresh_prices(
    cache,
    ingestor: BirdeyeIngestor,
    *,
    load: Callable[[], Awaitable[pd.DataFrame]] = load_tokens,
    persist: Callable[[list[TokenPriceUpdate]], Awaitable[int]] = update_token_prices,
    force: bool = False,
) -> dict:
    """Refresh every token from Birdeye unless a non-empty refresh is still cached."""
    cached = [] if force else await _cached_updates(cache)
    if cached:
        return {"success": True, "message": "Prices retrieved from cache",
                "cached": True, "data": cached}

    tokens = _records(await load())
    logger.info(f"🔄 Refreshing {len(tokens)} tokens...")
    results = await asyncio.gather(
        *(asyncio.to_thread(ingestor.fetch_update, t) for t in tokens)
    )
    valid = [u for u in results if u is not None]
    await persist(valid)

    data = [u.model_dump(mode="json") for u in valid]
    if data:
        try:
            await set_json(cache, PRICE_CACHE_KEY, data, ex=PRICE_CACHE_TTL)
        except CacheError as e:
            logger.warning(f"Could not cache refreshed prices: {e}")
    logger.info(f"🏁 Refresh done: {len(valid)}/{len(tokens)} tokens updated")
    return {"success": True, "message": "Prices updated successfully",
            "cached": False, "data": data}


async def repo_health(
    cache,
    ingestor: GitHubIngestor,
    repo_url: Optional[str],
    now: Optional[datetime] = None,
) -> RepoHealth:
    """Fetch (or reuse cached) repository statistics and score them."""
    owner, repo = parse_github_url(repo_url)
    if not owner or not repo:
        raise InvalidRepositoryUrl(f"Invalid GitHub repository URL: {repo_url!r}")

    async def fetch() -> dict:
        try:
            public, authenticated = await asyncio.to_thread(ingestor.fetch_all, owner, repo)
        except requests.RequestException as e:
            raise UpstreamUnavailable(f"GitHub unavailable for {owner}/{repo}: {e}") from e
        return {
            "publicData": public.model_dump(mode="json", by_alias=True),
            "authenticatedData": (authenticated.model_dump(mode="json", by_alias=True)
                                  if authenticated else None),
        }

    key = f"github:{owner.lower()}/{repo.lower()}"
    try:
        data = await with_cache(cache, key, REPO_CACHE_TTL, fetch)
    except CacheError as e:
        logger.warning(f"Repo cache unavailable: {e}")
        data = await fetch()

    public = RepoPublicData.model_validate(data["publicData"])
    authenticated = (RepoAuthenticatedData.model_validate(data["authenticatedData"])
                     if data.get("authenticatedData") else None)
    score = calculate_cyber_index(public, authenticated, now=now)
    logger.info(f"{owner}/{repo} cyber index = {score}")
    return RepoHealth(
        owner=owner,
        repo=repo,
        cyber_index=score,
        breakdown=cyber_index_breakdown(public, now=now),
        public_data=public,
        authenticated_data=authenticated,
    )


async def create_token(
    payload: TokenCreate,
    *,
    add: Callable[[TokenCreate], Awaitable[int]] = add_token,
) -> int:
    token_id = await add(payload)
    logger.info(f"✅ Token {payload.symbol} registered with id={token_id}")
    return token_id
