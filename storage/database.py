"""Token storage layer.

Backend is selected at startup via the DATABASE_URL environment variable:
  - DATABASE_URL=none (or unset) → CSV file data/tokens.csv (default / fallback)
  - DATABASE_URL=postgresql://... → PostgreSQL via SQLAlchemy async + asyncpg

All public functions are async so they integrate seamlessly with FastAPI.
Rows come back as a pandas DataFrame with the `framework` column exposed as
`ecosystem` and `chain` lower-cased.
"""
import asyncio
from decimal import Decimal
from pathlib import Path
from typing import Optional

import pandas as pd

from common.logger import get_logger
from common.models import METRIC_FIELDS, TokenCreate, TokenPriceUpdate
from config.settings import DATABASE_URL

logger = get_logger("database")

DATA_DIR = Path(__file__).parent.parent / "data"
DATA_DIR.mkdir(exist_ok=True)

FLAG_COLUMNS = ["is_agent", "is_framework", "is_application", "is_meme", "is_kol", "is_defi"]
PRICE_COLUMNS = ["price", "market_cap", "price_change_24h", "price_updated_at"]
TOKEN_COLUMNS = [
    "id", "name", "symbol", "description", "contract_address", "chain", "framework",
    "image_url", *FLAG_COLUMNS, "project_desc", "github_url", "twitter_url",
    "dexscreener_url", *PRICE_COLUMNS, *METRIC_FIELDS,
]
UPDATE_COLUMNS = [*PRICE_COLUMNS, "chain", *METRIC_FIELDS]


class DuplicateTokenError(Exception):
    """A token with the same contract address already exists on that chain."""


# ── Backend detection ──────────────────────────────────────────────────────────
_raw_url: str = DATABASE_URL
USE_POSTGRES: bool = _raw_url.lower() not in ("none", "", "null")

# PostgreSQL objects — populated only when USE_POSTGRES is True
_engine = None
_SessionFactory = None

if USE_POSTGRES:
    from sqlalchemy import select, update
    from sqlalchemy.dialects.postgresql import insert as pg_insert
    from sqlalchemy.exc import SQLAlchemyError
    from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
    from storage.models import Base, TokenDB

    # Normalise URL scheme for asyncpg driver
    _db_url = _raw_url
    if _db_url.startswith("postgres://"):
        _db_url = "postgresql+asyncpg://" + _db_url[len("postgres://"):]
    elif _db_url.startswith("postgresql://") and "+asyncpg" not in _db_url:
        _db_url = _db_url.replace("postgresql://", "postgresql+asyncpg://", 1)

    _engine = create_async_engine(
        _db_url,
        echo=False,
        pool_pre_ping=True,
        pool_size=5,
        max_overflow=10,
        connect_args={"timeout": 5},
    )
    _SessionFactory = async_sessionmaker(_engine, expire_on_commit=False)
    logger.info(f"[PG] Backend: {_db_url.split('@')[-1]}")
else:
    logger.info("[CSV] Backend: %s/tokens.csv", DATA_DIR)


def _finish_frame(df: pd.DataFrame) -> pd.DataFrame:
    """Shape shared by both backends: ecosystem column, lower-case chain, name order."""
    if df.empty:
        return pd.DataFrame(columns=[c if c != "framework" else "ecosystem" for c in TOKEN_COLUMNS])
    df = df.rename(columns={"framework": "ecosystem"})
    df["chain"] = df["chain"].astype(str).str.lower()
    for col in FLAG_COLUMNS:
        df[col] = df[col].fillna(False).astype(bool)
    return df.sort_values("name", kind="stable").reset_index(drop=True)


# ── CSV helpers (sync; run via asyncio.to_thread) ─────────────────────────────

def _csv_read(data_dir: Path) -> pd.DataFrame:
    path = data_dir / "tokens.csv"
    if not path.exists():
        return pd.DataFrame(columns=TOKEN_COLUMNS)
    df = pd.read_csv(path)
    for col in TOKEN_COLUMNS:
        if col not in df.columns:
            df[col] = None
    return df[TOKEN_COLUMNS]


def _csv_write(df: pd.DataFrame, data_dir: Path) -> None:
    df.to_csv(data_dir / "tokens.csv", index=False)


def _csv_load_tokens(data_dir: Path) -> pd.DataFrame:
    return _finish_frame(_csv_read(data_dir))


def _csv_add_token(token: TokenCreate, data_dir: Path) -> int:
    df = _csv_read(data_dir)
    dup = (df["contract_address"] == token.contract_address) & (df["chain"].astype(str).str.lower() == token.chain)
    if dup.any():
        raise DuplicateTokenError(f"{token.contract_address} already tracked on {token.chain}")
    new_id = int(df["id"].max()) + 1 if not df.empty else 1
    row = {"id": new_id, **token.model_dump()}
    df = pd.concat([df, pd.DataFrame([row], columns=TOKEN_COLUMNS)], ignore_index=True)
    _csv_write(df, data_dir)
    logger.info("[CSV] Added token %s (%s) id=%d", token.name, token.symbol, new_id)
    return new_id


def _csv_update_prices(updates: list[TokenPriceUpdate], data_dir: Path) -> int:
    df = _csv_read(data_dir)
    df[UPDATE_COLUMNS] = df[UPDATE_COLUMNS].astype(object)
    touched = 0
    for u in updates:
        mask = df["id"] == u.id
        if not mask.any():
            logger.warning("[CSV] Token id=%d not found, skipping price update", u.id)
            continue
        values = u.model_dump(include=set(UPDATE_COLUMNS))
        values["price_updated_at"] = u.price_updated_at.isoformat()
        for col, value in values.items():
            df.loc[mask, col] = value
        touched += 1
    _csv_write(df, data_dir)
    logger.info("[CSV] Updated prices for %d/%d tokens", touched, len(updates))
    return touched


# ── PostgreSQL helpers (async) ─────────────────────────────────────────────────

def _to_float(val) -> Optional[float]:
    return float(val) if isinstance(val, Decimal) else val


def _pg_row_to_dict(t: "TokenDB") -> dict:
    return {col: _to_float(getattr(t, col)) for col in TOKEN_COLUMNS}


async def _pg_load_tokens() -> pd.DataFrame:
    async with _SessionFactory() as session:
        rows = (await session.execute(select(TokenDB).order_by(TokenDB.name))).scalars().all()
    return _finish_frame(pd.DataFrame([_pg_row_to_dict(t) for t in rows]))


async def _pg_add_token(token: TokenCreate) -> int:
    async with _SessionFactory() as session:
        async with session.begin():
            stmt = (
                pg_insert(TokenDB)
                .values(**token.model_dump())
                .on_conflict_do_nothing(index_elements=["contract_address", "chain"])
                .returning(TokenDB.id)
            )
            new_id = (await session.execute(stmt)).scalar_one_or_none()
    if new_id is None:
        raise DuplicateTokenError(f"{token.contract_address} already tracked on {token.chain}")
    logger.info("[PG] Added token %s (%s) id=%d", token.name, token.symbol, new_id)
    return new_id


async def _pg_update_prices(updates: list[TokenPriceUpdate]) -> int:
    touched = 0
    try:
        async with _SessionFactory() as session:
            async with session.begin():
                for u in updates:
                    stmt = (
                        update(TokenDB)
                        .where(TokenDB.id == u.id)
                        .values(**u.model_dump(include=set(UPDATE_COLUMNS)))
                    )
                    result = await session.execute(stmt)
                    touched += result.rowcount
    except SQLAlchemyError as e:
        logger.error("[PG] Price update rolled back: %s", e)
        raise
    logger.info("[PG] Updated prices for %d/%d tokens", touched, len(updates))
    return touched


# ── Public async API ───────────────────────────────────────────────────────────

async def load_tokens() -> pd.DataFrame:
    """Return every tracked token ordered by name."""
    if USE_POSTGRES:
        return await _pg_load_tokens()
    return await asyncio.to_thread(_csv_load_tokens, DATA_DIR)


async def add_token(token: TokenCreate) -> int:
    """Register a token and return its id. Raises DuplicateTokenError."""
    if USE_POSTGRES:
        return await _pg_add_token(token)
    return await asyncio.to_thread(_csv_add_token, token, DATA_DIR)


async def update_token_prices(updates: list[TokenPriceUpdate]) -> int:
    """Persist refreshed prices and metrics in one transaction; returns rows touched."""
    if not updates:
        return 0
    if USE_POSTGRES:
        return await _pg_update_prices(updates)
    return await asyncio.to_thread(_csv_update_prices, updates, DATA_DIR)


async def init_db() -> None:
    """Create all tables (idempotent). Prefer Alembic for production migrations."""
    if not USE_POSTGRES:
        return
    async with _engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("[PG] Tables ensured")
