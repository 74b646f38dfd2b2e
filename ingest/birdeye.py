"""Birdeye token overview ingestor (price, market cap and momentum metrics)."""
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

import requests

from common.models import METRIC_FAMILIES, WINDOWS, TokenPriceUpdate
from config.settings import BIRDEYE_API_KEY
from ingest.base import BaseIngestor

METRIC_ALIASES = [tpl.format(w=w) for tpl in METRIC_FAMILIES.values() for w in WINDOWS]


class BirdeyeIngestor(BaseIngestor):
    base_url = "https://public-api.birdeye.so"

    def __init__(self, api_key: str = BIRDEYE_API_KEY, **kwargs):
        super().__init__(**kwargs)
        self.api_key = api_key

    def default_headers(self) -> dict[str, str]:
        return {**super().default_headers(), "X-API-KEY": self.api_key}

    def fetch_overview(self, address: str, chain: str) -> Optional[dict]:
        """Return the overview ``data`` object, or None when Birdeye has nothing usable."""
        try:
            self.logger.info(f"Fetching overview for {address} on {chain}...")
            payload = self.get_json(
                "/defi/token_overview",
                params={"address": address},
                headers={"x-chain": chain.lower()},
            )
        except (requests.RequestException, ValueError) as e:
            self.logger.warning(f"Birdeye failed for {address} ({chain}): {e}")
            return None
        if not payload.get("success") or not payload.get("data"):
            self.logger.warning(
                f"Birdeye returned no data for {address} ({chain}): "
                f"{payload.get('message') or 'Unknown error'}"
            )
            return None
        return payload["data"]

    def to_price_update(self, token: Mapping[str, Any], overview: Mapping[str, Any],
                        now: Optional[datetime] = None) -> TokenPriceUpdate:
        metrics = {alias: overview.get(alias) for alias in METRIC_ALIASES}
        return TokenPriceUpdate(
            id=int(token["id"]),
            price=overview.get("price"),
            market_cap=overview.get("mc", overview.get("marketCap")),
            price_change_24h=overview.get("priceChange24hPercent"),
            price_updated_at=now or datetime.now(timezone.utc),
            contract_address=token["contract_address"],
            chain=token["chain"],
            **metrics,
        )

    def fetch_update(self, token: Mapping[str, Any]) -> Optional[TokenPriceUpdate]:
        overview = self.fetch_overview(token["contract_address"], token["chain"])
        if overview is None:
            self.logger.error(
                f"Failed to fetch data for token {token.get('name')} "
                f"({token.get('symbol')}) on chain {token['chain']}"
            )
            return None
        return self.to_price_update(token, overview)
