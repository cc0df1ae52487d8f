# app/services/watchlist_service.py
from __future__ import annotations

import logging

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import Stock, WatchlistEntry
from app.services.profile_service import ensure_profile

logger = logging.getLogger(__name__)


class StockNotFoundError(LookupError):
    pass


class WatchlistConflictError(Exception):
    pass


async def add_to_watchlist(db: AsyncSession, user_id: str, stock_id: int) -> WatchlistEntry:
    if await db.get(Stock, stock_id) is None:
        raise StockNotFoundError(stock_id)

    await ensure_profile(db, user_id)

    existing = (
        await db.execute(
            select(WatchlistEntry.id).where(
                WatchlistEntry.user_id == user_id, WatchlistEntry.stock_id == stock_id
            )
        )
    ).first()
    if existing:
        raise WatchlistConflictError(f"stock {stock_id} already in watchlist")

    entry = WatchlistEntry(user_id=user_id, stock_id=stock_id)
    db.add(entry)
    try:
        await db.commit()
    except IntegrityError as exc:
        # lost a race against the same insert
        await db.rollback()
        raise WatchlistConflictError(f"stock {stock_id} already in watchlist") from exc
    logger.info("watchlist add user=%s stock_id=%s", user_id, stock_id)
    return entry


async def remove_from_watchlist(db: AsyncSession, user_id: str, stock_id: int) -> bool:
    result = await db.execute(
        delete(WatchlistEntry).where(
            WatchlistEntry.user_id == user_id, WatchlistEntry.stock_id == stock_id
        )
    )
    await db.commit()
    return (result.rowcount or 0) > 0


async def list_watchlist(db: AsyncSession, user_id: str) -> list[dict]:
    q = (
        select(WatchlistEntry, Stock)
        .join(Stock, Stock.id == WatchlistEntry.stock_id)
        .where(WatchlistEntry.user_id == user_id)
        .order_by(Stock.symbol)
    )
    rows = (await db.execute(q)).all()
    return [
        {
            "id": entry.id,
            "stock_id": entry.stock_id,
            "created_at": entry.created_at.isoformat() if entry.created_at else None,
            "stock": stock.to_dict(),
        }
        for entry, stock in rows
    ]
