from __future__ import annotations

import enum

from sqlalchemy import Enum


class RecommendationType(str, enum.Enum):
    BUY = "buy"
    SELL = "sell"
    HOLD = "hold"
    WATCH = "watch"


class AlertType(str, enum.Enum):
    PRICE_DROP = "price_drop"
    VOLUME_SPIKE = "volume_spike"
    TECHNICAL_INDICATOR = "technical_indicator"
    AI_RECOMMENDATION = "ai_recommendation"


class SubscriptionType(str, enum.Enum):
    FREE = "free"
    PREMIUM = "premium"
    PRO = "pro"


def db_enum(enum_cls: type[enum.Enum], name: str) -> Enum:
    # persist the lowercase values, not the member names
    return Enum(
        enum_cls,
        name=name,
        values_callable=lambda e: [m.value for m in e],
        validate_strings=True,
    )
