from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, File, UploadFile
from fastapi.responses import JSONResponse, PlainTextResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import get_current_user_id
from app.core.db import get_db
from app.core.settings import settings
from app.services.csv_ingest_service import CSV_COLUMNS, ingest_csv
from app.services.equity_service import list_equities

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/stocks", tags=["stocks"])

CSV_MIME_TYPES = {"text/csv", "application/csv", "application/vnd.ms-excel"}


def _reject(message: str, status_code: int = 400) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"ok": False, "message": message, "count": 0})


def _is_csv(file: UploadFile) -> bool:
    name = (file.filename or "").lower()
    ctype = (file.content_type or "").split(";")[0].strip().lower()
    return name.endswith(".csv") or ctype in CSV_MIME_TYPES


@router.get("")
async def get_stocks(db: AsyncSession = Depends(get_db)):
    stocks = await list_equities(db)
    return {"ok": True, "items": [s.to_dict() for s in stocks]}


@router.get("/csv-template", response_class=PlainTextResponse)
async def csv_template():
    return PlainTextResponse(
        ",".join(CSV_COLUMNS) + "\n",
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="stocks_template.csv"'},
    )


@router.post("/upload")
async def upload_csv(
    file: UploadFile = File(...),
    db: AsyncSession = Depends(get_db),
    _user_id: str = Depends(get_current_user_id),
):
    if not _is_csv(file):
        return _reject("Please select a valid CSV file")

    raw = await file.read(settings.CSV_MAX_BYTES + 1)
    if len(raw) > settings.CSV_MAX_BYTES:
        return _reject(f"CSV file exceeds {settings.CSV_MAX_BYTES} bytes", status_code=413)

    try:
        text = raw.decode("utf-8-sig")
    except UnicodeDecodeError:
        return _reject("CSV file must be UTF-8 encoded")

    logger.info("csv upload %r (%d bytes)", file.filename, len(raw))
    result = await ingest_csv(db, text)
    if not result["ok"]:
        return JSONResponse(status_code=400, content=result)
    return result
