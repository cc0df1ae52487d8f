from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import get_current_user_id
from app.core.db import get_db
from app.services.watchlist_service import (
    StockNotFoundError,
    WatchlistConflictError,
    add_to_watchlist,
    list_watchlist,
    remove_from_watchlist,
)

router = APIRouter(prefix="/api/watchlist", tags=["watchlist"])


class WatchlistAdd(BaseModel):
    stock_id: int = Field(..., ge=1)


@router.get("")
async def get_watchlist(
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    return {"ok": True, "items": await list_watchlist(db, user_id)}


@router.post("", status_code=status.HTTP_201_CREATED)
async def post_watchlist(
    body: WatchlistAdd,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    try:
        entry = await add_to_watchlist(db, user_id, body.stock_id)
    except StockNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Stock not found")
    except WatchlistConflictError:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Stock already in watchlist")
    return {"ok": True, "message": "Stock added to watchlist", "id": entry.id}


@router.delete("/{stock_id}")
async def delete_watchlist(
    stock_id: int,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    removed = await remove_from_watchlist(db, user_id, stock_id)
    if not removed:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Stock not in watchlist")
    return {"ok": True, "message": "Stock removed from watchlist"}
