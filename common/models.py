"""Core Pydantic models for Token Pulse."""
import math
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

WINDOWS = ("1h", "2h", "4h", "8h", "24h")

# python family prefix -> upstream (Birdeye) alias template
METRIC_FAMILIES = {
    "price":         "priceChange{w}Percent",
    "volume":        "v{w}ChangePercent",
    "buy_volume":    "vBuy{w}ChangePercent",
    "sell_volume":   "vSell{w}ChangePercent",
    "unique_wallet": "uniqueWallet{w}ChangePercent",
    "trade":         "trade{w}ChangePercent",
}


def metric_field(family: str, window: str) -> str:
    return f"{family}_change_{window}_percent"


METRIC_FIELDS = [metric_field(f, w) for f in METRIC_FAMILIES for w in WINDOWS]


class TokenMetrics(BaseModel):
    """Percentage changes over five windows for six metric families.

    Every field is optional; NaN, infinities and unparsable values are
    coerced to None so nothing downstream sees them.
    """
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    price_change_1h_percent:  Optional[float] = Field(None, alias="priceChange1hPercent")
    price_change_2h_percent:  Optional[float] = Field(None, alias="priceChange2hPercent")
    price_change_4h_percent:  Optional[float] = Field(None, alias="priceChange4hPercent")
    price_change_8h_percent:  Optional[float] = Field(None, alias="priceChange8hPercent")
    price_change_24h_percent: Optional[float] = Field(None, alias="priceChange24hPercent")

    volume_change_1h_percent:  Optional[float] = Field(None, alias="v1hChangePercent")
    volume_change_2h_percent:  Optional[float] = Field(None, alias="v2hChangePercent")
    volume_change_4h_percent:  Optional[float] = Field(None, alias="v4hChangePercent")
    volume_change_8h_percent:  Optional[float] = Field(None, alias="v8hChangePercent")
    volume_change_24h_percent: Optional[float] = Field(None, alias="v24hChangePercent")

    buy_volume_change_1h_percent:  Optional[float] = Field(None, alias="vBuy1hChangePercent")
    buy_volume_change_2h_percent:  Optional[float] = Field(None, alias="vBuy2hChangePercent")
    buy_volume_change_4h_percent:  Optional[float] = Field(None, alias="vBuy4hChangePercent")
    buy_volume_change_8h_percent:  Optional[float] = Field(None, alias="vBuy8hChangePercent")
    buy_volume_change_24h_percent: Optional[float] = Field(None, alias="vBuy24hChangePercent")

    sell_volume_change_1h_percent:  Optional[float] = Field(None, alias="vSell1hChangePercent")
    sell_volume_change_2h_percent:  Optional[float] = Field(None, alias="vSell2hChangePercent")
    sell_volume_change_4h_percent:  Optional[float] = Field(None, alias="vSell4hChangePercent")
    sell_volume_change_8h_percent:  Optional[float] = Field(None, alias="vSell8hChangePercent")
    sell_volume_change_24h_percent: Optional[float] = Field(None, alias="vSell24hChangePercent")

    unique_wallet_change_1h_percent:  Optional[float] = Field(None, alias="uniqueWallet1hChangePercent")
    unique_wallet_change_2h_percent:  Optional[float] = Field(None, alias="uniqueWallet2hChangePercent")
    unique_wallet_change_4h_percent:  Optional[float] = Field(None, alias="uniqueWallet4hChangePercent")
    unique_wallet_change_8h_percent:  Optional[float] = Field(None, alias="uniqueWallet8hChangePercent")
    unique_wallet_change_24h_percent: Optional[float] = Field(None, alias="uniqueWallet24hChangePercent")

    trade_change_1h_percent:  Optional[float] = Field(None, alias="trade1hChangePercent")
    trade_change_2h_percent:  Optional[float] = Field(None, alias="trade2hChangePercent")
    trade_change_4h_percent:  Optional[float] = Field(None, alias="trade4hChangePercent")
    trade_change_8h_percent:  Optional[float] = Field(None, alias="trade8hChangePercent")
    trade_change_24h_percent: Optional[float] = Field(None, alias="trade24hChangePercent")

    @field_validator(*METRIC_FIELDS, mode="before")
    @classmethod
    def _finite_or_none(cls, v: Any) -> Optional[float]:
        if v is None or isinstance(v, bool):
            return None
        try:
            f = float(v)
        except (TypeError, ValueError):
            return None
        return f if math.isfinite(f) else None

    def value(self, family: str, window: str) -> Optional[float]:
        return getattr(self, metric_field(family, window))

    def has_data(self) -> bool:
        return any(getattr(self, name) is not None for name in METRIC_FIELDS)

    def metric_values(self) -> dict[str, Optional[float]]:
        return {name: getattr(self, name) for name in METRIC_FIELDS}


# ── Breakout result ───────────────────────────────────────────────────────────

class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ComponentScore(BaseModel):
    score: Optional[float] = None
    details: dict[str, Optional[float]] = {}


class BreakoutComponents(_CamelModel):
    price: ComponentScore
    volume: ComponentScore
    buy_sell: ComponentScore
    wallet: ComponentScore
    trade: ComponentScore


class Interpretation(BaseModel):
    level: str


class BreakoutResult(_CamelModel):
    breakout_score: Optional[int]
    components: BreakoutComponents
    interpretation: Optional[Interpretation] = None


# ── Repository statistics ─────────────────────────────────────────────────────

class Frequency(BaseModel):
    daily: float = 0.0
    weekly: float = 0.0
    monthly: float = 0.0


class PullRequestStats(_CamelModel):
    average_time_to_merge: float = 0.0
    merge_rate: float = 0.0
    reviews_per_pr: float = Field(0.0, alias="reviewsPerPR")


class RepoPublicData(_CamelModel):
    commit_frequency: Frequency = Frequency()
    open_pull_requests_count: int = 0
    closed_pull_requests_count: int = 0
    contributors_count: int = 0
    stars_count: int = 0
    forks_count: int = 0
    open_issues_count: int = 0
    closed_issues_count: int = 0
    license: Optional[Any] = None
    updated_at: Optional[datetime] = None
    description: str = ""
    topics: list[str] = []

    releases_count: int = 0
    default_branch: Optional[str] = None
    primary_language: Optional[str] = None
    created_at: Optional[datetime] = None
    is_archived: bool = False
    has_wiki: bool = False
    has_issues: bool = False

    @field_validator(
        "open_pull_requests_count", "closed_pull_requests_count",
        "contributors_count", "stars_count", "forks_count",
        "open_issues_count", "closed_issues_count", "releases_count",
        mode="before",
    )
    @classmethod
    def _count_or_zero(cls, v: Any) -> int:
        return 0 if v is None else v

    @field_validator("commit_frequency", mode="before")
    @classmethod
    def _frequency_or_empty(cls, v: Any) -> Any:
        return Frequency() if v is None else v

    @field_validator("description", mode="before")
    @classmethod
    def _description_or_empty(cls, v: Any) -> str:
        return v or ""

    @field_validator("topics", mode="before")
    @classmethod
    def _topics_or_empty(cls, v: Any) -> list:
        return v or []

    @field_validator("is_archived", "has_wiki", "has_issues", mode="before")
    @classmethod
    def _flag_or_false(cls, v: Any) -> bool:
        return bool(v)


class RepoAuthenticatedData(_CamelModel):
    traffic: dict = {}
    code_frequency: list = []
    commit_activity: list = []
    deployment_frequency: Frequency = Frequency()
    pull_request_review_stats: PullRequestStats = PullRequestStats()


class RepoHealth(_CamelModel):
    owner: str
    repo: str
    cyber_index: int
    breakdown: dict[str, dict[str, float]]
    public_data: RepoPublicData
    authenticated_data: Optional[RepoAuthenticatedData] = None


# ── Tokens ────────────────────────────────────────────────────────────────────

class Token(TokenMetrics):
    """A dashboard row with its raw metrics. Unknown columns are dropped on construction."""
    id: int
    name: str
    symbol: str
    description: Optional[str] = None
    contract_address: str
    chain: str
    ecosystem: Optional[str] = None
    image_url: Optional[str] = None
    is_agent: bool = False
    is_framework: bool = False
    is_application: bool = False
    is_meme: bool = False
    is_kol: bool = False
    is_defi: bool = False
    project_desc: Optional[str] = None
    github_url: Optional[str] = None
    twitter_url: Optional[str] = None
    dexscreener_url: Optional[str] = None

    price: Optional[float] = None
    price_change_24h: Optional[float] = None
    market_cap: Optional[float] = None
    price_updated_at: Optional[datetime] = None

    breakout_score: Optional[int] = None
    price_score: Optional[float] = None
    volume_score: Optional[float] = None
    buy_sell_score: Optional[float] = None
    wallet_score: Optional[float] = None
    trade_score: Optional[float] = None


class TokenCreate(BaseModel):
    """Payload for registering a new token. Unknown keys are rejected."""
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    contract_address: str = Field(min_length=1)
    chain: str = Field(min_length=1)
    name: str = Field(min_length=1)
    symbol: str = Field(min_length=1)
    description: Optional[str] = None
    framework: Optional[str] = None
    is_agent: bool = False
    is_framework: bool = False
    is_application: bool = False
    is_meme: bool = False
    is_kol: bool = False
    is_defi: bool = False
    project_desc: Optional[str] = None
    github_url: Optional[str] = None
    twitter_url: Optional[str] = None
    dexscreener_url: Optional[str] = None
    image_url: Optional[str] = None

    @field_validator("chain")
    @classmethod
    def _lower_chain(cls, v: str) -> str:
        return v.lower()


class TokenPriceUpdate(TokenMetrics):
    """One refreshed price/metrics record, cached and persisted per token."""
    id: int
    price: Optional[float] = None
    market_cap: Optional[float] = None
    price_change_24h: Optional[float] = None
    price_updated_at: datetime
    contract_address: str
    chain: str


class TokensPage(_CamelModel):
    tokens: list[Token]
    total_count: int
    current_page: int
    total_pages: int
    cached: bool
    timestamp: int
