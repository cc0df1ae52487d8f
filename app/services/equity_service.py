# app/services/equity_service.py
from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict, dataclass
from typing import Iterable

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.clock import utcnow
from app.models import Alert, Recommendation, Stock, WatchlistEntry

logger = logging.getLogger(__name__)

# Serialises every bulk replace (equities and recommendations) in this process.
catalog_write_lock = asyncio.Lock()


@dataclass
class EquityRecord:
    """A validated equity row, before persistence. Defaults mirror the table."""

    symbol: str
    name: str
    sector: str | None = None
    current_price: float | None = None
    price_change_24h: float | None = None
    volume: int | None = None
    market_cap: int | None = None

    def column_values(self) -> dict:
        return {
            "symbol": self.symbol.strip().upper(),
            "name": self.name.strip(),
            "sector": self.sector or "Unknown",
            "current_price": self.current_price or 0,
            "price_change_24h": self.price_change_24h or 0,
            "volume": self.volume or 0,
            "market_cap": self.market_cap or 0,
        }


@dataclass
class ReplaceSummary:
    inserted: int = 0
    updated: int = 0
    pruned: int = 0

    @property
    def written(self) -> int:
        return self.inserted + self.updated

    def as_dict(self) -> dict:
        return asdict(self)


async def list_equities(db: AsyncSession) -> list[Stock]:
    rows = (await db.execute(select(Stock).order_by(Stock.symbol))).scalars().all()
    return list(rows)


async def replace_equities(db: AsyncSession, records: Iterable[EquityRecord]) -> ReplaceSummary:
    """Make the stocks table hold exactly ``records``, in one transaction.

    Rows are upserted by symbol so surviving equities keep their id. Equities
    missing from ``records`` are pruned along with everything that references
    them, so recommendations never point at a deleted equity.
    """
    incoming: dict[str, dict] = {}
    for rec in records:
        values = rec.column_values()
        if values["symbol"] in incoming:
            logger.info("duplicate symbol %s in batch; last row wins", values["symbol"])
        incoming[values["symbol"]] = values

    summary = ReplaceSummary()
    now = utcnow()

    async with catalog_write_lock:
        try:
            q = select(Stock).execution_options(populate_existing=True)
            existing = {s.symbol: s for s in (await db.execute(q)).scalars().all()}

            stale_ids = [s.id for sym, s in existing.items() if sym not in incoming]
            if stale_ids:
                await db.execute(delete(Recommendation).where(Recommendation.stock_id.in_(stale_ids)))
                await db.execute(delete(WatchlistEntry).where(WatchlistEntry.stock_id.in_(stale_ids)))
                await db.execute(delete(Alert).where(Alert.stock_id.in_(stale_ids)))
                await db.execute(delete(Stock).where(Stock.id.in_(stale_ids)))
                summary.pruned = len(stale_ids)

            for symbol, values in incoming.items():
                stock = existing.get(symbol)
                if stock is None:
                    db.add(Stock(**values, last_updated=now, created_at=now))
                    summary.inserted += 1
                else:
                    for key, value in values.items():
                        setattr(stock, key, value)
                    stock.last_updated = now
                    summary.updated += 1

            await db.commit()
        except Exception:
            await db.rollback()
            logger.exception("equity replace failed; transaction rolled back")
            raise

    logger.info(
        "equities replaced: inserted=%d updated=%d pruned=%d",
        summary.inserted,
        summary.updated,
        summary.pruned,
    )
    return summary
