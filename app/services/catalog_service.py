# app/services/catalog_service.py
from __future__ import annotations

import logging
import random
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from app.services.equity_service import EquityRecord, replace_equities
from app.services.recommendation_service import DEFAULT_TTL_DAYS, generate_recommendations
from app.services.scorers import HeuristicScorer

logger = logging.getLogger(__name__)

# Static NSE seed; stands in for a market-data feed that is never called.
NSE_CATALOG: tuple[EquityRecord, ...] = (
    EquityRecord("RELIANCE", "Reliance Industries Limited", "Oil & Gas", 2450.75, 1.25, 5_000_000, 1_650_000_000_000),
    EquityRecord("TCS", "Tata Consultancy Services Limited", "Information Technology", 3650.50, -0.85, 2_500_000, 1_320_000_000_000),
    EquityRecord("INFY", "Infosys Limited", "Information Technology", 1455.30, 2.10, 3_200_000, 610_000_000_000),
    EquityRecord("HDFCBANK", "HDFC Bank Limited", "Banking", 1625.90, 0.75, 4_100_000, 1_240_000_000_000),
    EquityRecord("ICICIBANK", "ICICI Bank Limited", "Banking", 985.45, -1.20, 6_500_000, 690_000_000_000),
    EquityRecord("HINDUNILVR", "Hindustan Unilever Limited", "FMCG", 2685.20, 0.95, 1_800_000, 630_000_000_000),
    EquityRecord("BHARTIARTL", "Bharti Airtel Limited", "Telecommunications", 1125.75, 1.85, 8_200_000, 620_000_000_000),
    EquityRecord("ITC", "ITC Limited", "FMCG", 485.60, -0.45, 12_000_000, 600_000_000_000),
    EquityRecord("KOTAKBANK", "Kotak Mahindra Bank Limited", "Banking", 1755.85, 2.30, 2_100_000, 350_000_000_000),
    EquityRecord("LT", "Larsen & Toubro Limited", "Construction", 3525.40, 1.65, 1_500_000, 495_000_000_000),
    EquityRecord("WIPRO", "Wipro Limited", "Information Technology", 425.70, -1.15, 4_800_000, 230_000_000_000),
    EquityRecord("MARUTI", "Maruti Suzuki India Limited", "Automobile", 10850.25, 0.85, 580_000, 328_000_000_000),
    EquityRecord("HCLTECH", "HCL Technologies Limited", "Information Technology", 1285.95, 1.45, 2_800_000, 348_000_000_000),
    EquityRecord("ASIANPAINT", "Asian Paints Limited", "Paints", 2950.60, -0.65, 950_000, 283_000_000_000),
    EquityRecord("ADANIPORTS", "Adani Ports and Special Economic Zone Limited", "Infrastructure", 745.30, 3.25, 7_200_000, 161_000_000_000),
)

CATALOG_RECOMMENDATION_SYMBOLS = ("RELIANCE", "TCS", "INFY", "HDFCBANK")


async def import_catalog(
    db: AsyncSession,
    rng: random.Random | None = None,
    ttl_days: int = DEFAULT_TTL_DAYS,
) -> dict[str, Any]:
    summary = await replace_equities(db, NSE_CATALOG)
    logger.info("catalog imported: %d equities", summary.written)

    reco = await generate_recommendations(
        db,
        HeuristicScorer(rng=rng),
        limit=len(CATALOG_RECOMMENDATION_SYMBOLS),
        selection="first",
        symbols=CATALOG_RECOMMENDATION_SYMBOLS,
        ttl_days=ttl_days,
    )

    return {
        "ok": True,
        "message": (
            f"Successfully imported {summary.written} NSE stocks and created "
            f"{reco['count']} recommendations"
        ),
        "count": summary.written,
        "recommendations_count": reco["count"],
        "summary": summary.as_dict(),
    }
