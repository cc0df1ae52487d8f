from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from app.core.clock import utcnow
from app.core.db import Base, BigIntPK


class Stock(Base):
    __tablename__ = "stocks"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)

    symbol: Mapped[str] = mapped_column(String(32), unique=True, index=True)
    name: Mapped[str] = mapped_column(String(255))
    sector: Mapped[str | None] = mapped_column(String(128), nullable=True, default="Unknown")

    current_price: Mapped[float] = mapped_column(Numeric(12, 2, asdecimal=False), default=0)
    price_change_24h: Mapped[float] = mapped_column(Numeric(7, 2, asdecimal=False), default=0)
    volume: Mapped[int] = mapped_column(BigInteger, default=0)
    market_cap: Mapped[int] = mapped_column(BigInteger, default=0)

    last_updated: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "symbol": self.symbol,
            "name": self.name,
            "sector": self.sector,
            "current_price": self.current_price,
            "price_change_24h": self.price_change_24h,
            "volume": self.volume,
            "market_cap": self.market_cap,
            "last_updated": self.last_updated.isoformat() if self.last_updated else None,
        }
