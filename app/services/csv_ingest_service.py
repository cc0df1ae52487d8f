# app/services/csv_ingest_service.py
from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from app.services.equity_service import EquityRecord, replace_equities

logger = logging.getLogger(__name__)

# canonical header, also served as the downloadable template
CSV_COLUMNS = (
    "symbol",
    "name",
    "sector",
    "current_price",
    "price_change_24h",
    "volume",
    "market_cap",
)

NO_VALID_DATA_MESSAGE = (
    "No valid data found in CSV file. Please check the format and ensure it has "
    "'symbol' and 'name' columns."
)

_HEADER_NOISE = re.compile(r"[\s_-]")
_NUMERIC_NOISE = re.compile(r"[,$%]")

# column limits: current_price NUMERIC(12,2), price_change_24h NUMERIC(7,2), BIGINT counts
MAX_PRICE = 1e10
MAX_ABS_CHANGE = 1e5
MAX_BIGINT = 2**63 - 1


@dataclass
class CsvParseResult:
    rows: list[EquityRecord] = field(default_factory=list)
    total_rows: int = 0
    dropped_rows: int = 0


def split_csv_line(line: str, delimiter: str = ",") -> list[str]:
    """Quote-aware split. A double quote toggles in-field mode and is not kept.

    There is no escaped-quote support: ``""`` simply toggles twice.
    """
    out: list[str] = []
    current: list[str] = []
    in_quotes = False
    for ch in line:
        if ch == '"':
            in_quotes = not in_quotes
        elif ch == delimiter and not in_quotes:
            out.append("".join(current).strip())
            current = []
        else:
            current.append(ch)
    out.append("".join(current).strip())
    return out


def resolve_column(header: str) -> str | None:
    """Map a raw header to an equity field; first match wins, in this order."""
    h = _HEADER_NOISE.sub("", header.lower())
    if not h:
        return None
    if "symbol" in h or h == "ticker":
        return "symbol"
    if "name" in h or "company" in h:
        return "name"
    if "sector" in h or "industry" in h:
        return "sector"
    if ("price" in h and "change" not in h) or h in ("currentprice", "close"):
        return "current_price"
    if "change" in h or "pct" in h:
        return "price_change_24h"
    if "volume" in h:
        return "volume"
    if ("market" in h and "cap" in h) or h == "marketcap":
        return "market_cap"
    return None


def _parse_float(value: str) -> float | None:
    if "_" in value:
        return None
    try:
        num = float(_NUMERIC_NOISE.sub("", value))
    except ValueError:
        return None
    return num if math.isfinite(num) else None


def _parse_int(value: str) -> int | None:
    num = _parse_float(value)
    if num is None:
        return None
    num = int(num)
    return num if abs(num) <= MAX_BIGINT else None


def _non_negative(num: float | int | None) -> float | int | None:
    return num if num is not None and num >= 0 else None


def _row_to_fields(columns: list[str | None], values: list[str]) -> dict[str, Any]:
    row: dict[str, Any] = {}
    for idx, col in enumerate(columns):
        if col is None or idx >= len(values):
            continue
        value = values[idx].strip()
        if not value:
            continue

        if col == "symbol":
            row["symbol"] = value.upper()
        elif col in ("name", "sector"):
            row[col] = value
        elif col == "current_price":
            price = _non_negative(_parse_float(value))
            if price is not None and price < MAX_PRICE:
                row["current_price"] = price
        elif col == "price_change_24h":
            change = _parse_float(value)
            if change is not None and abs(change) < MAX_ABS_CHANGE:
                row["price_change_24h"] = change
        elif col in ("volume", "market_cap"):
            num = _non_negative(_parse_int(value))
            if num is not None:
                row[col] = num
    return row


def parse_csv(text: str, delimiter: str = ",") -> CsvParseResult:
    lines = text.replace("\r\n", "\n").replace("\r", "\n").split("\n")
    lines = [ln for ln in lines if ln.strip()]
    result = CsvParseResult()
    if not lines:
        return result

    headers = [h.lower().replace('"', "").replace("'", "") for h in split_csv_line(lines[0], delimiter)]
    columns = [resolve_column(h) for h in headers]
    logger.debug("csv headers=%s resolved=%s", headers, columns)

    for line_no, line in enumerate(lines[1:], start=2):
        values = split_csv_line(line, delimiter)
        if not any(v.strip() for v in values):
            continue
        result.total_rows += 1

        fields = _row_to_fields(columns, values)
        if not fields.get("symbol") or not fields.get("name"):
            result.dropped_rows += 1
            logger.info(
                "csv line %d dropped: missing symbol or name (symbol=%r, name=%r)",
                line_no,
                fields.get("symbol"),
                fields.get("name"),
            )
            continue
        result.rows.append(EquityRecord(**fields))

    logger.info(
        "csv parsed: %d valid of %d data rows (%d dropped)",
        len(result.rows),
        result.total_rows,
        result.dropped_rows,
    )
    return result


async def ingest_csv(db: AsyncSession, text: str, delimiter: str = ",") -> dict[str, Any]:
    parsed = parse_csv(text, delimiter=delimiter)
    if not parsed.rows:
        return {"ok": False, "message": NO_VALID_DATA_MESSAGE, "count": 0}

    summary = await replace_equities(db, parsed.rows)
    count = summary.written
    return {
        "ok": True,
        "message": f"Successfully imported {count} stocks from CSV file",
        "count": count,
        "dropped": parsed.dropped_rows,
        "summary": summary.as_dict(),
    }
