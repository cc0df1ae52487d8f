# app/routers/api/reco.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import get_db
from app.services.recommendation_service import list_active_recommendations, recommendation_to_dict

router = APIRouter(prefix="/api/reco", tags=["reco"])


@router.get("")
async def get_reco(
    limit: int = Query(default=50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
):
    rows = await list_active_recommendations(db)
    items = [recommendation_to_dict(rec, stock) for rec, stock in rows[:limit]]
    return {"ok": True, "items": items}
