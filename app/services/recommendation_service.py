# app/services/recommendation_service.py
from __future__ import annotations

import logging
import random
from datetime import datetime, timedelta
from typing import Any, Sequence

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.clock import utcnow
from app.models import Recommendation, Stock
from app.services.equity_service import catalog_write_lock
from app.services.scorers import (
    EquitySnapshot,
    ScoredRecommendation,
    Scorer,
    finalize_recommendation,
)

logger = logging.getLogger(__name__)

SELECTIONS = ("first", "random", "market_cap")
DEFAULT_TTL_DAYS = 7

NO_STOCKS_MESSAGE = "No stocks available for analysis. Please import stock data first."


async def select_batch(
    db: AsyncSession,
    limit: int = 10,
    selection: str = "market_cap",
    symbols: Sequence[str] | None = None,
    rng: random.Random | None = None,
) -> list[EquitySnapshot]:
    """Pick the equities a generation run analyzes."""
    if selection not in SELECTIONS:
        raise ValueError(f"unknown selection {selection!r}; expected one of {SELECTIONS}")

    q = select(Stock)
    if symbols is not None:
        q = q.where(Stock.symbol.in_([s.upper() for s in symbols]))

    if selection == "market_cap":
        q = q.order_by(Stock.market_cap.desc(), Stock.symbol).limit(limit)
        stocks = (await db.execute(q)).scalars().all()
    elif selection == "first":
        q = q.order_by(Stock.symbol).limit(limit)
        stocks = (await db.execute(q)).scalars().all()
    else:
        pool = (await db.execute(q.order_by(Stock.symbol))).scalars().all()
        stocks = (rng or random).sample(list(pool), k=min(limit, len(pool)))

    return [EquitySnapshot.from_stock(s) for s in stocks]


async def _replace_recommendations(
    db: AsyncSession,
    recs: list[ScoredRecommendation],
    ttl_days: int,
) -> int:
    """Delete every recommendation and insert ``recs``, in one transaction.

    Symbols are re-resolved to stock ids here, under the write lock, so a
    catalog replace that ran while the batch was being scored cannot leave
    rows pointing at a pruned equity.
    """
    async with catalog_write_lock:
        try:
            wanted = {r.symbol for r in recs}
            rows = (
                await db.execute(select(Stock.id, Stock.symbol).where(Stock.symbol.in_(wanted)))
            ).all() if wanted else []
            ids = {sym: sid for sid, sym in rows}

            await db.execute(delete(Recommendation))

            created_at = utcnow()
            expires_at = created_at + timedelta(days=ttl_days)
            inserted = 0
            for rec in recs:
                stock_id = ids.get(rec.symbol)
                if stock_id is None:
                    logger.info("skipping %s: equity no longer present", rec.symbol)
                    continue
                db.add(
                    Recommendation(
                        stock_id=stock_id,
                        recommendation_type=rec.recommendation_type,
                        confidence_score=rec.confidence_score,
                        target_price=rec.target_price,
                        reasoning=rec.reasoning,
                        created_at=created_at,
                        expires_at=expires_at,
                    )
                )
                inserted += 1

            await db.commit()
        except Exception:
            await db.rollback()
            logger.exception("recommendation replace failed; transaction rolled back")
            raise
    return inserted


async def generate_recommendations(
    db: AsyncSession,
    scorer: Scorer,
    limit: int = 10,
    selection: str = "market_cap",
    symbols: Sequence[str] | None = None,
    rng: random.Random | None = None,
    ttl_days: int = DEFAULT_TTL_DAYS,
) -> dict[str, Any]:
    batch = await select_batch(db, limit=limit, selection=selection, symbols=symbols, rng=rng)
    if not batch:
        return {"ok": False, "message": NO_STOCKS_MESSAGE, "count": 0}

    logger.info("scoring %d equities with %s scorer", len(batch), scorer.name)
    outcome = await scorer.score(batch)
    recs = [finalize_recommendation(r) for r in outcome.recommendations]

    count = await _replace_recommendations(db, recs, ttl_days=ttl_days)
    logger.info(
        "recommendations generated: count=%d source=%s upstream=%s rejected=%d",
        count,
        outcome.source,
        outcome.upstream_status,
        outcome.rejected,
    )

    message = f"Generated {count} recommendations ({outcome.source})"
    if outcome.source == "heuristic_fallback":
        message += f"; language model unavailable: {outcome.upstream_status}"
    return {
        "ok": True,
        "message": message,
        "count": count,
        "source": outcome.source,
        "upstream_status": outcome.upstream_status,
        "rejected": outcome.rejected,
    }


async def list_active_recommendations(
    db: AsyncSession, now: datetime | None = None
) -> list[tuple[Recommendation, Stock]]:
    """Unexpired recommendations joined with their equity, most confident first."""
    now = now or utcnow()
    q = (
        select(Recommendation, Stock)
        .join(Stock, Stock.id == Recommendation.stock_id)
        .where(Recommendation.expires_at > now)
        .order_by(Recommendation.confidence_score.desc(), Stock.symbol)
    )
    return [(r, s) for r, s in (await db.execute(q)).all()]


def recommendation_to_dict(rec: Recommendation, stock: Stock) -> dict[str, Any]:
    return {
        "id": rec.id,
        "stock_id": rec.stock_id,
        "recommendation_type": rec.recommendation_type.value,
        "confidence_score": rec.confidence_score,
        "target_price": rec.target_price,
        "reasoning": rec.reasoning,
        "created_at": rec.created_at.isoformat() if rec.created_at else None,
        "expires_at": rec.expires_at.isoformat() if rec.expires_at else None,
        "stock": {
            "id": stock.id,
            "symbol": stock.symbol,
            "name": stock.name,
            "current_price": stock.current_price,
            "price_change_24h": stock.price_change_24h,
            "sector": stock.sector,
        },
    }
