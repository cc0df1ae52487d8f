from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import get_db
from app.core.settings import settings
from app.services.equity_service import list_equities
from app.services.recommendation_service import list_active_recommendations, recommendation_to_dict

router = APIRouter()


@router.get("/", response_class=HTMLResponse)
async def dashboard(request: Request, db: AsyncSession = Depends(get_db)):
    """Dashboard page.

    - Initial equities/recommendations are rendered server-side.
    - dashboard.js issues the import/generate/upload actions and re-fetches
      only the collections an action touched.
    """
    templates = request.app.state.templates  # type: ignore[attr-defined]

    stocks = await list_equities(db)
    recos = await list_active_recommendations(db)

    # cache bust for the page script
    v = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S")

    return templates.TemplateResponse(
        request,
        "pages/dashboard.html",
        {
            "title": settings.APP_NAME,
            "stocks": [s.to_dict() for s in stocks],
            "recommendations": [recommendation_to_dict(r, s) for r, s in recos],
            "page_js": f"js/pages/dashboard.js?v={v}",
            "page_css": "css/dashboard.css",
        },
    )
