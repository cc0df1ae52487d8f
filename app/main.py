from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
import logging
import traceback
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
from sqlalchemy.exc import SQLAlchemyError

from app.core.settings import settings
from app.services.scorers import ScorerConfigError
from app.routers.pages.dashboard import router as dashboard_router
from app.routers.api.health import router as health_router
from app.routers.api.admin import router as admin_router
from app.routers.api.reco import router as reco_router
from app.routers.api.stocks import router as stocks_router
from app.routers.api.watchlist import router as watchlist_router
from app.routers.api.profile import router as profile_router


def create_app() -> FastAPI:
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger = logging.getLogger("uvicorn.error")

    app = FastAPI(title=settings.APP_NAME)

    @app.exception_handler(SQLAlchemyError)
    async def _db_error_handler(request: Request, exc: SQLAlchemyError):
        logger.exception("Database error: %s %s", request.method, request.url)
        return JSONResponse(
            status_code=500,
            content={"ok": False, "message": "Database operation failed", "count": 0},
        )

    @app.exception_handler(ScorerConfigError)
    async def _scorer_config_handler(request: Request, exc: ScorerConfigError):
        logger.error("Scorer misconfigured: %s", exc)
        return JSONResponse(status_code=500, content={"ok": False, "message": str(exc), "count": 0})

    # Dev-only: return full traceback as JSON to speed up debugging
    if str(getattr(settings, "ENV", "")).lower() in {"local", "dev", "development"}:

        @app.exception_handler(Exception)
        async def _unhandled_exception_handler(request: Request, exc: Exception):
            logger.exception("Unhandled exception: %s %s", request.method, request.url)
            return JSONResponse(
                status_code=500,
                content={
                    "ok": False,
                    "error": str(exc),
                    "type": exc.__class__.__name__,
                    "path": str(request.url),
                    "trace": traceback.format_exc(),
                },
            )

    # Templates
    templates = Jinja2Templates(directory=str(settings.TEMPLATE_DIR))
    app.state.templates = templates  # used by the pages router

    # Static
    app.mount(
        "/static",
        StaticFiles(directory=str(settings.STATIC_DIR)),
        name="static",
    )

    # Routers
    app.include_router(dashboard_router)
    app.include_router(health_router)
    app.include_router(admin_router)
    app.include_router(stocks_router)
    app.include_router(reco_router)
    app.include_router(watchlist_router)
    app.include_router(profile_router)
    return app


app = create_app()
