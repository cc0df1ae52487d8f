from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import get_db
from app.core.settings import settings

router = APIRouter(prefix="/api/health", tags=["health"])


@router.get("")
async def health():
    return {"ok": True, "app": settings.APP_NAME, "scorer": settings.SCORER}


@router.get("/db")
async def health_db(db: AsyncSession = Depends(get_db)):
    value = (await db.execute(text("SELECT 1"))).scalar()
    return {"ok": value == 1}
