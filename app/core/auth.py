from __future__ import annotations

from fastapi import HTTPException, Request, status

from app.core.settings import settings


def get_current_user_id(request: Request) -> str:
    """Identity injected by the upstream auth gateway.

    Sign-in and sessions live outside this service; any request reaching a
    mutating endpoint without the header is treated as anonymous.
    """
    user_id = (request.headers.get(settings.AUTH_USER_HEADER) or "").strip()
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )
    return user_id


def get_current_user_email(request: Request) -> str | None:
    email = (request.headers.get(settings.AUTH_EMAIL_HEADER) or "").strip()
    return email or None
