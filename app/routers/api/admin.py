from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import get_current_user_id
from app.core.db import create_all, get_db
from app.core.settings import settings
from app.services.catalog_service import import_catalog
from app.services.recommendation_service import SELECTIONS, generate_recommendations
from app.services.scorers import build_scorer

router = APIRouter(prefix="/api/admin", tags=["admin"])


@router.post("/init-db")
async def init_db(_user_id: str = Depends(get_current_user_id)):
    await create_all()
    return {"ok": True}


@router.post("/import-catalog")
async def admin_import_catalog(
    db: AsyncSession = Depends(get_db),
    _user_id: str = Depends(get_current_user_id),
):
    return await import_catalog(db, ttl_days=settings.RECO_TTL_DAYS)


@router.post("/generate-recommendations")
async def admin_generate_recommendations(
    scorer: str | None = Query(default=None, pattern="^(heuristic|llm)$"),
    limit: int | None = Query(default=None, ge=1, le=50),
    selection: str | None = Query(default=None),
    db: AsyncSession = Depends(get_db),
    _user_id: str = Depends(get_current_user_id),
):
    sel = selection or settings.RECO_SELECTION
    if sel not in SELECTIONS:
        return JSONResponse(
            status_code=400,
            content={"ok": False, "message": f"selection must be one of {', '.join(SELECTIONS)}", "count": 0},
        )

    active_scorer = build_scorer(settings, kind=scorer)
    try:
        result = await generate_recommendations(
            db,
            active_scorer,
            limit=limit or settings.RECO_BATCH_SIZE,
            selection=sel,
            ttl_days=settings.RECO_TTL_DAYS,
        )
    finally:
        await active_scorer.aclose()
    if not result["ok"]:
        return JSONResponse(status_code=400, content=result)
    return result
