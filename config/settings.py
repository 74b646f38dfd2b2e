"""Configuration loader."""
import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv(Path(__file__).parent.parent / ".env")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

DATABASE_URL = os.getenv("DATABASE_URL", "none").strip()
REDIS_URL = os.getenv("REDIS_URL", "none").strip()
REDIS_KEY_PREFIX = os.getenv("REDIS_KEY_PREFIX", "server:")

BIRDEYE_API_KEY = os.getenv("BIRDEYE_API_KEY", "")
GITHUB_PAT = os.getenv("GITHUB_PAT", "")
HTTP_TIMEOUT = float(os.getenv("HTTP_TIMEOUT", "10"))

PRICE_CACHE_KEY = "token_prices"
PRICE_CACHE_TTL = int(os.getenv("PRICE_CACHE_TTL", "3600"))
REPO_CACHE_TTL = int(os.getenv("REPO_CACHE_TTL", "3600"))

RATE_LIMIT_INTERVAL = int(os.getenv("RATE_LIMIT_INTERVAL", "60"))
RATE_LIMIT_MAX = int(os.getenv("RATE_LIMIT_MAX", "30"))

TOTAL_SUPPLY = os.getenv("TOTAL_SUPPLY", "900000000")
CIRCULATING_SUPPLY = os.getenv("CIRCULATING_SUPPLY", "525132481")

BREAKOUT_WEIGHTS = {
    "price":    0.30,
    "volume":   0.25,
    "buy_sell": 0.20,
    "wallet":   0.15,
    "trade":    0.10,
}
