"""SQLAlchemy ORM models — the tokens table behind the dashboard."""
from sqlalchemy import (
    Boolean, Column, DECIMAL, Index, Integer, String, TEXT, TIMESTAMP, UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.sql import func


class Base(DeclarativeBase):
    pass


def _pct():
    return Column(DECIMAL(20, 6))


class TokenDB(Base):
    __tablename__ = "tokens"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    symbol = Column(String(20), nullable=False)
    description = Column(TEXT)
    contract_address = Column(String(100), nullable=False)
    chain = Column(String(30), nullable=False)
    framework = Column(String(50))
    image_url = Column(TEXT)

    is_agent = Column(Boolean, nullable=False, server_default="false")
    is_framework = Column(Boolean, nullable=False, server_default="false")
    is_application = Column(Boolean, nullable=False, server_default="false")
    is_meme = Column(Boolean, nullable=False, server_default="false")
    is_kol = Column(Boolean, nullable=False, server_default="false")
    is_defi = Column(Boolean, nullable=False, server_default="false")

    project_desc = Column(TEXT)
    github_url = Column(TEXT)
    twitter_url = Column(TEXT)
    dexscreener_url = Column(TEXT)

    # Latest refresh
    price = Column(DECIMAL(30, 12))
    market_cap = Column(DECIMAL(30, 2))
    price_change_24h = Column(DECIMAL(20, 6))
    price_updated_at = Column(TIMESTAMP(timezone=True))

    # Raw momentum metrics (percent change per window); scores are derived on read
    price_change_1h_percent = _pct()
    price_change_2h_percent = _pct()
    price_change_4h_percent = _pct()
    price_change_8h_percent = _pct()
    price_change_24h_percent = _pct()

    volume_change_1h_percent = _pct()
    volume_change_2h_percent = _pct()
    volume_change_4h_percent = _pct()
    volume_change_8h_percent = _pct()
    volume_change_24h_percent = _pct()

    buy_volume_change_1h_percent = _pct()
    buy_volume_change_2h_percent = _pct()
    buy_volume_change_4h_percent = _pct()
    buy_volume_change_8h_percent = _pct()
    buy_volume_change_24h_percent = _pct()

    sell_volume_change_1h_percent = _pct()
    sell_volume_change_2h_percent = _pct()
    sell_volume_change_4h_percent = _pct()
    sell_volume_change_8h_percent = _pct()
    sell_volume_change_24h_percent = _pct()

    unique_wallet_change_1h_percent = _pct()
    unique_wallet_change_2h_percent = _pct()
    unique_wallet_change_4h_percent = _pct()
    unique_wallet_change_8h_percent = _pct()
    unique_wallet_change_24h_percent = _pct()

    trade_change_1h_percent = _pct()
    trade_change_2h_percent = _pct()
    trade_change_4h_percent = _pct()
    trade_change_8h_percent = _pct()
    trade_change_24h_percent = _pct()

    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("contract_address", "chain", name="uq_tokens_address_chain"),
        Index("idx_tokens_name", "name"),
    )
