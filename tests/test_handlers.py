"""Tests for the request handlers (token list, price refresh, repo health)."""
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pandas as pd
import pytest
import requests

from api import handlers
from common.models import METRIC_FIELDS, RepoPublicData, TokenCreate, TokenPriceUpdate
from config.settings import PRICE_CACHE_KEY
from storage.cache import MemoryCache, get_json, set_json

NOW = datetime(2026, 10, 19, tzinfo=timezone.utc)


def token_row(token_id: int, name: str, chain: str = "base", ecosystem: str = "virtuals",
              price=None, **extra) -> dict:
    row = {
        "id": token_id, "name": name, "symbol": name[:4].upper(), "description": None,
        "contract_address": f"0x{token_id:03d}", "chain": chain, "ecosystem": ecosystem,
        "image_url": None, "is_agent": False, "is_framework": False,
        "is_application": False, "is_meme": False, "is_kol": False, "is_defi": False,
        "project_desc": None, "github_url": None, "twitter_url": None,
        "dexscreener_url": None, "price": price, "market_cap": None,
        "price_change_24h": None, "price_updated_at": None,
    }
    row.update({name: None for name in METRIC_FIELDS})
    row.update(extra)
    return row


def frame(*rows) -> pd.DataFrame:
    return pd.DataFrame(list(rows))


def loader(df: pd.DataFrame) -> AsyncMock:
    return AsyncMock(return_value=df)


@pytest.fixture
def cache():
    return MemoryCache()


TOKENS = frame(
    token_row(1, "Aixbt", price=0.4, is_agent=True, price_change_24h_percent=20),
    token_row(2, "Bonk", chain="solana", ecosystem="memes", price=0.00002, is_meme=True,
              price_change_24h_percent=-20),
    token_row(3, "Eliza", chain="solana", ecosystem="ai16z", price=None, is_framework=True),
)


@pytest.mark.asyncio
class TestListTokens:
    async def test_decorates_breakout_scores(self, cache):
        page = await handlers.list_tokens(cache, load=loader(TOKENS))
        by_id = {t.id: t for t in page.tokens}
        assert by_id[1].breakout_score == 12
        assert by_id[1].price_score == 40.0
        assert by_id[1].volume_score == 0.0
        assert by_id[2].breakout_score == 0
        assert by_id[3].breakout_score is None
        assert by_id[3].price_score is None

    async def test_pagination(self, cache):
        page = await handlers.list_tokens(cache, page=2, page_size=2, load=loader(TOKENS))
        assert page.total_count == 3
        assert page.total_pages == 2
        assert page.current_page == 2
        assert [t.id for t in page.tokens] == [3]

    async def test_filters(self, cache):
        agents = await handlers.list_tokens(cache, token_type="agent", load=loader(TOKENS))
        assert [t.id for t in agents.tokens] == [1]
        solana = await handlers.list_tokens(cache, chain="SOLANA", load=loader(TOKENS))
        assert {t.id for t in solana.tokens} == {2, 3}
        ai16z = await handlers.list_tokens(cache, ecosystem="ai16z", load=loader(TOKENS))
        assert [t.id for t in ai16z.tokens] == [3]

    async def test_sort_puts_nulls_last(self, cache):
        desc = await handlers.list_tokens(cache, sort="price", direction="desc", load=loader(TOKENS))
        assert [t.id for t in desc.tokens] == [1, 2, 3]
        asc = await handlers.list_tokens(cache, sort="price", direction="asc", load=loader(TOKENS))
        assert [t.id for t in asc.tokens] == [2, 1, 3]

    async def test_sort_by_breakout(self, cache):
        page = await handlers.list_tokens(cache, sort="breakout_score", load=loader(TOKENS))
        assert [t.id for t in page.tokens] == [1, 2, 3]

    async def test_merges_cached_prices(self, cache):
        await set_json(cache, PRICE_CACHE_KEY, [
            {"id": 3, "price": 1.25, "market_cap": 5e6, "price_change_24h": 3.0,
             "price_updated_at": NOW.isoformat(), "price_change_24h_percent": 20},
        ])
        page = await handlers.list_tokens(cache, load=loader(TOKENS))
        eliza = next(t for t in page.tokens if t.id == 3)
        assert page.cached is True
        assert eliza.price == 1.25
        assert eliza.market_cap == 5e6
        assert eliza.price_updated_at == NOW
        assert eliza.price_change_24h_percent == 20
        assert eliza.breakout_score == 12

    async def test_cached_null_price_replaces_stored_price(self, cache):
        await set_json(cache, PRICE_CACHE_KEY, [
            {"id": 1, "price": None, "market_cap": None, "price_change_24h": None,
             "price_updated_at": NOW.isoformat()},
        ])
        page = await handlers.list_tokens(cache, load=loader(TOKENS))
        aixbt = next(t for t in page.tokens if t.id == 1)
        assert aixbt.price is None
        assert aixbt.price_updated_at == NOW

    async def test_empty_store(self, cache):
        page = await handlers.list_tokens(cache, load=loader(pd.DataFrame()))
        assert page.tokens == []
        assert page.total_count == 0
        assert page.total_pages == 1
        assert page.cached is False

    async def test_serializes_camel_case_page(self, cache):
        page = await handlers.list_tokens(cache, load=loader(TOKENS))
        dumped = page.model_dump(by_alias=True)
        assert {"tokens", "totalCount", "currentPage", "totalPages", "cached", "timestamp"} <= set(dumped)


def test_merge_ignores_unknown_ids():
    merged = handlers.merge_price_updates(TOKENS, [{"id": 99, "price": 5.0}])
    assert merged.set_index("id").loc[1, "price"] == 0.4
    assert 99 not in set(merged["id"])


class FakeBirdeye:
    def __init__(self, failing: set = frozenset()):
        self.failing = failing
        self.calls = 0

    def fetch_update(self, token: dict):
        self.calls += 1
        if token["id"] in self.failing:
            return None
        return TokenPriceUpdate(
            id=token["id"], price=2.0, market_cap=1e6, price_change_24h=1.0,
            price_updated_at=NOW, contract_address=token["contract_address"],
            chain=token["chain"], priceChange24hPercent=1.0,
        )


@pytest.mark.asyncio
class TestRefreshPrices:
    async def test_refresh_persists_and_caches(self, cache):
        persist = AsyncMock(return_value=2)
        ingestor = FakeBirdeye(failing={2})
        result = await handlers.refresh_prices(cache, ingestor, load=loader(TOKENS), persist=persist)
        assert result["cached"] is False
        assert [u["id"] for u in result["data"]] == [1, 3]
        persisted = persist.await_args.args[0]
        assert [u.id for u in persisted] == [1, 3]
        assert await get_json(cache, PRICE_CACHE_KEY) == result["data"]

    async def test_cached_refresh_skips_fetch(self, cache):
        await set_json(cache, PRICE_CACHE_KEY, [{"id": 1, "price": 9.0}])
        ingestor = FakeBirdeye()
        persist = AsyncMock()
        result = await handlers.refresh_prices(cache, ingestor, load=loader(TOKENS), persist=persist)
        assert result["cached"] is True
        assert ingestor.calls == 0
        persist.assert_not_awaited()

    async def test_force_ignores_cache(self, cache):
        await set_json(cache, PRICE_CACHE_KEY, [{"id": 1, "price": 9.0}])
        ingestor = FakeBirdeye()
        result = await handlers.refresh_prices(cache, ingestor, load=loader(TOKENS),
                                               persist=AsyncMock(), force=True)
        assert result["cached"] is False
        assert ingestor.calls == 3

    async def test_nothing_fetched_is_not_cached(self, cache):
        ingestor = FakeBirdeye(failing={1, 2, 3})
        await handlers.refresh_prices(cache, ingestor, load=loader(TOKENS), persist=AsyncMock())
        assert await get_json(cache, PRICE_CACHE_KEY) is None


def github_stub(public: RepoPublicData = None, error: Exception = None) -> MagicMock:
    ingestor = MagicMock()
    if error:
        ingestor.fetch_all.side_effect = error
    else:
        ingestor.fetch_all.return_value = (public, None)
    return ingestor


@pytest.mark.asyncio
class TestRepoHealth:
    async def test_scores_repository(self, cache):
        public = RepoPublicData(stars_count=10000, forks_count=1000, license={"key": "mit"},
                                description="d", topics=["ai"], updated_at=NOW)
        health = await handlers.repo_health(cache, github_stub(public),
                                            "https://github.com/acme/agent", now=NOW)
        assert health.owner == "acme"
        assert health.repo == "agent"
        assert health.cyber_index == 50
        assert health.breakdown["community"]["stars"] == 20
        assert health.authenticated_data is None

    async def test_result_is_cached_per_repo(self, cache):
        ingestor = github_stub(RepoPublicData(stars_count=1))
        await handlers.repo_health(cache, ingestor, "https://github.com/acme/agent")
        await handlers.repo_health(cache, ingestor, "https://github.com/ACME/agent.git")
        ingestor.fetch_all.assert_called_once_with("acme", "agent")

    async def test_invalid_url(self, cache):
        with pytest.raises(handlers.InvalidRepositoryUrl):
            await handlers.repo_health(cache, github_stub(), "https://example.com/x/y")

    async def test_upstream_failure(self, cache):
        ingestor = github_stub(error=requests.ConnectionError("down"))
        with pytest.raises(handlers.UpstreamUnavailable):
            await handlers.repo_health(cache, ingestor, "https://github.com/acme/agent")


@pytest.mark.asyncio
async def test_create_token_uses_store():
    add = AsyncMock(return_value=4)
    payload = TokenCreate(contract_address="0x9", chain="Base", name="Luna", symbol="LUNA")
    assert await handlers.create_token(payload, add=add) == 4
    add.assert_awaited_once_with(payload)
