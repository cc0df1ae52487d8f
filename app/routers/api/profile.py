from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import get_current_user_email, get_current_user_id
from app.core.db import get_db
from app.models import SubscriptionType
from app.services.profile_service import ensure_profile, update_profile

router = APIRouter(prefix="/api/profile", tags=["profile"])


class ProfileUpdate(BaseModel):
    email: str | None = None
    full_name: str | None = None
    subscription_type: SubscriptionType | None = None


@router.get("/me")
async def get_me(
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
    email: str | None = Depends(get_current_user_email),
):
    profile = await ensure_profile(db, user_id, email=email)
    await db.commit()
    return {"ok": True, "profile": profile.to_dict()}


@router.patch("/me")
async def patch_me(
    body: ProfileUpdate,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    profile = await update_profile(
        db,
        user_id,
        email=body.email,
        full_name=body.full_name,
        subscription_type=body.subscription_type,
    )
    return {"ok": True, "profile": profile.to_dict()}
