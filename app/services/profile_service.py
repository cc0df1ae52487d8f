# app/services/profile_service.py
from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from app.models import Profile, SubscriptionType

logger = logging.getLogger(__name__)


async def ensure_profile(db: AsyncSession, user_id: str, email: str | None = None) -> Profile:
    """Return the caller's profile, creating it on first use."""
    profile = await db.get(Profile, user_id)
    if profile is not None:
        return profile

    profile = Profile(id=user_id, email=email, subscription_type=SubscriptionType.FREE)
    db.add(profile)
    await db.flush()
    logger.info("profile created for user=%s", user_id)
    return profile


async def update_profile(
    db: AsyncSession,
    user_id: str,
    email: str | None = None,
    full_name: str | None = None,
    subscription_type: SubscriptionType | None = None,
) -> Profile:
    profile = await ensure_profile(db, user_id)
    if email is not None:
        profile.email = email
    if full_name is not None:
        profile.full_name = full_name
    if subscription_type is not None:
        profile.subscription_type = subscription_type
    await db.commit()
    await db.refresh(profile)
    return profile
