# app/models/recommendation.py
from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Numeric, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.core.clock import utcnow
from app.core.db import Base, BigIntPK
from app.models.enums import RecommendationType, db_enum


class Recommendation(Base):
    __tablename__ = "recommendations"
    __table_args__ = (
        CheckConstraint(
            "confidence_score >= 0 AND confidence_score <= 1",
            name="ck_recommendations_confidence_range",
        ),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)

    stock_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("stocks.id", ondelete="CASCADE"), index=True, nullable=False
    )

    recommendation_type: Mapped[RecommendationType] = mapped_column(
        db_enum(RecommendationType, "recommendation_type"), nullable=False
    )
    confidence_score: Mapped[float] = mapped_column(Numeric(3, 2, asdecimal=False))
    target_price: Mapped[float] = mapped_column(Numeric(12, 2, asdecimal=False))
    reasoning: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime, index=True, nullable=False)
