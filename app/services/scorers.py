# app/services/scorers.py
from __future__ import annotations

import json
import logging
import random
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Protocol, Sequence

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from app.models.enums import RecommendationType
from app.services.llm_client import GeminiClient, LLMError

logger = logging.getLogger(__name__)

# --- heuristic thresholds (percent change over 24h) ---
MOMENTUM_UP = 2.0
MOMENTUM_DOWN = -2.0

DEFAULT_REASONING = "AI-generated recommendation"

# greedy on purpose: first "[" to last "]"
_JSON_ARRAY = re.compile(r"\[[\s\S]*\]")


class EmptyBatchError(ValueError):
    pass


class ScorerConfigError(RuntimeError):
    pass


@dataclass(frozen=True)
class EquitySnapshot:
    symbol: str
    name: str
    sector: str | None = None
    current_price: float = 0.0
    price_change_24h: float = 0.0
    volume: int = 0
    market_cap: int = 0

    @classmethod
    def from_stock(cls, stock: Any) -> "EquitySnapshot":
        return cls(
            symbol=stock.symbol,
            name=stock.name,
            sector=stock.sector,
            current_price=float(stock.current_price or 0),
            price_change_24h=float(stock.price_change_24h or 0),
            volume=int(stock.volume or 0),
            market_cap=int(stock.market_cap or 0),
        )


@dataclass
class ScoredRecommendation:
    symbol: str
    recommendation_type: RecommendationType
    confidence_score: float
    target_price: float
    reasoning: str = DEFAULT_REASONING


@dataclass
class ScoringOutcome:
    recommendations: list[ScoredRecommendation] = field(default_factory=list)
    source: str = "heuristic"
    upstream_status: str | None = None
    rejected: int = 0


def clamp_confidence(value: float) -> float:
    return min(max(float(value), 0.0), 1.0)


def clamp_target_price(value: float) -> float:
    return max(float(value), 0.0)


def finalize_recommendation(rec: ScoredRecommendation) -> ScoredRecommendation:
    """The one validation step applied to every scorer's output before persistence."""
    return ScoredRecommendation(
        symbol=rec.symbol,
        recommendation_type=RecommendationType(rec.recommendation_type),
        confidence_score=round(clamp_confidence(rec.confidence_score), 2),
        target_price=round(clamp_target_price(rec.target_price), 2),
        reasoning=(rec.reasoning or "").strip() or DEFAULT_REASONING,
    )


class Scorer(ABC):
    name: str = "scorer"

    @abstractmethod
    async def score(self, batch: Sequence[EquitySnapshot]) -> ScoringOutcome:
        ...

    async def aclose(self) -> None:
        return None


class HeuristicScorer(Scorer):
    """Classifies by 24h percent change with randomized parameters.

    >2%  : buy (p=0.7) else watch, confidence 0.75+U(0,0.2), target x(1.05+U(0,0.15))
    <-2% : buy (p=0.5) else watch, confidence 0.65+U(0,0.25), target x(1.10+U(0,0.20))
    else : hold (p=0.4) else watch, confidence 0.60+U(0,0.30), target x(1.02+U(0,0.08))
    """

    name = "heuristic"

    def __init__(self, rng: random.Random | None = None):
        self.rng = rng or random.Random()

    def score_one(self, eq: EquitySnapshot) -> ScoredRecommendation:
        change = eq.price_change_24h or 0.0
        r = self.rng

        if change > MOMENTUM_UP:
            rtype = RecommendationType.BUY if r.random() > 0.3 else RecommendationType.WATCH
            confidence = 0.75 + r.random() * 0.2
            multiplier = 1.05 + r.random() * 0.15
            reasoning = (
                f"Strong upward momentum (+{change:.2f}%). Technical indicators suggest "
                "continued growth potential."
            )
        elif change < MOMENTUM_DOWN:
            rtype = RecommendationType.BUY if r.random() > 0.5 else RecommendationType.WATCH
            confidence = 0.65 + r.random() * 0.25
            multiplier = 1.10 + r.random() * 0.20
            reasoning = (
                f"Significant dip (-{abs(change):.2f}%) presents potential buying opportunity. "
                "Oversold conditions detected."
            )
        else:
            rtype = RecommendationType.HOLD if r.random() > 0.6 else RecommendationType.WATCH
            confidence = 0.60 + r.random() * 0.30
            multiplier = 1.02 + r.random() * 0.08
            reasoning = (
                f"Stable price movement ({change:+.2f}%). Market consolidation phase with "
                "moderate growth potential."
            )

        return ScoredRecommendation(
            symbol=eq.symbol,
            recommendation_type=rtype,
            confidence_score=min(confidence, 1.0),
            target_price=round(eq.current_price * multiplier, 2),
            reasoning=reasoning,
        )

    async def score(self, batch: Sequence[EquitySnapshot]) -> ScoringOutcome:
        if not batch:
            raise EmptyBatchError("no equities to score")
        return ScoringOutcome(
            recommendations=[self.score_one(eq) for eq in batch],
            source=self.name,
        )


class CompletionClient(Protocol):
    async def agenerate(self, prompt: str) -> str:
        ...

    def close(self) -> None:
        ...


class LLMRecommendationItem(BaseModel):
    """Schema every element of the model's JSON array must satisfy."""

    model_config = ConfigDict(allow_inf_nan=False, extra="ignore")

    symbol: str
    recommendation_type: RecommendationType
    confidence_score: float
    target_price: float
    reasoning: str = ""

    @field_validator("symbol")
    @classmethod
    def _symbol_strip(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("empty symbol")
        return v

    @field_validator("recommendation_type", mode="before")
    @classmethod
    def _type_lower(cls, v: Any) -> Any:
        return v.strip().lower() if isinstance(v, str) else v


def build_prompt(batch: Sequence[EquitySnapshot]) -> str:
    stocks = [
        {
            "symbol": eq.symbol,
            "name": eq.name,
            "sector": eq.sector,
            "current_price": eq.current_price,
            "price_change_24h": eq.price_change_24h,
            "volume": eq.volume,
            "market_cap": eq.market_cap,
        }
        for eq in batch
    ]
    return f"""You are a professional stock market analyst. Analyze the following stock market data and provide investment recommendations for each stock.

Stock Data:
{json.dumps(stocks, indent=2)}

For each stock, provide a JSON object with the following structure:
{{
  "symbol": "STOCK_SYMBOL",
  "recommendation_type": "buy" | "sell" | "hold" | "watch",
  "confidence_score": 0.0-1.0,
  "target_price": number,
  "reasoning": "detailed explanation of your recommendation based on technical and fundamental analysis"
}}

Consider:
- Price momentum (24h change)
- Sector performance
- Market cap and volume
- Risk-reward ratio
- Current market conditions

Respond with a JSON array containing recommendations for all stocks. Be professional and provide clear reasoning for each recommendation."""


def extract_json_array(text: str) -> list[Any]:
    """Parse the first greedy ``[...]`` span of ``text``; ValueError if absent or invalid."""
    match = _JSON_ARRAY.search(text or "")
    if not match:
        raise ValueError("no JSON array in completion text")
    data = json.loads(match.group(0))
    if not isinstance(data, list):
        raise ValueError("completion JSON is not an array")
    return data


class LanguageModelScorer(Scorer):
    name = "llm"

    def __init__(self, client: CompletionClient, fallback: HeuristicScorer | None = None):
        self.client = client
        self.fallback = fallback or HeuristicScorer()

    async def aclose(self) -> None:
        self.client.close()

    def _validate(
        self, items: list[Any], batch: Sequence[EquitySnapshot]
    ) -> tuple[dict[str, ScoredRecommendation], int]:
        known = {eq.symbol for eq in batch}
        accepted: dict[str, ScoredRecommendation] = {}
        rejected = 0
        for idx, raw in enumerate(items):
            try:
                item = LLMRecommendationItem.model_validate(raw)
            except ValidationError as exc:
                rejected += 1
                logger.warning("llm item %d rejected: %s", idx, exc.errors()[:1])
                continue
            if item.symbol not in known:
                rejected += 1
                logger.warning("llm item %d rejected: unknown symbol %s", idx, item.symbol)
                continue
            if item.symbol in accepted:
                rejected += 1
                logger.warning("llm item %d rejected: duplicate symbol %s", idx, item.symbol)
                continue
            accepted[item.symbol] = ScoredRecommendation(
                symbol=item.symbol,
                recommendation_type=item.recommendation_type,
                confidence_score=item.confidence_score,
                target_price=item.target_price,
                reasoning=item.reasoning,
            )
        return accepted, rejected

    async def _fallback(self, batch: Sequence[EquitySnapshot], status: str) -> ScoringOutcome:
        outcome = await self.fallback.score(batch)
        outcome.source = "heuristic_fallback"
        outcome.upstream_status = status
        return outcome

    async def score(self, batch: Sequence[EquitySnapshot]) -> ScoringOutcome:
        if not batch:
            raise EmptyBatchError("no equities to score")

        try:
            text = await self.client.agenerate(build_prompt(batch))
        except LLMError as exc:
            logger.warning("completion call failed (%s): %s; using heuristic", exc.category, exc)
            return await self._fallback(batch, exc.category)

        try:
            items = extract_json_array(text)
        except ValueError as exc:
            logger.warning("completion output unparseable: %s; using heuristic", exc)
            logger.debug("raw completion text: %s", text)
            return await self._fallback(batch, "unparseable")

        accepted, rejected = self._validate(items, batch)
        if not accepted:
            outcome = await self._fallback(batch, "unparseable")
            outcome.rejected = rejected
            return outcome

        # equities the model skipped or got wrong are scored by the heuristic
        recs: list[ScoredRecommendation] = []
        filled = 0
        for eq in batch:
            rec = accepted.get(eq.symbol)
            if rec is None:
                rec = self.fallback.score_one(eq)
                filled += 1
            recs.append(rec)

        if filled:
            logger.info("llm scored %d of %d equities; heuristic filled %d", len(accepted), len(batch), filled)
        return ScoringOutcome(
            recommendations=recs,
            source="llm+heuristic" if filled else "llm",
            upstream_status="ok",
            rejected=rejected,
        )


def build_scorer(cfg: Any, kind: str | None = None, rng: random.Random | None = None) -> Scorer:
    kind = (kind or cfg.SCORER or "heuristic").strip().lower()
    if kind == "heuristic":
        return HeuristicScorer(rng=rng)
    if kind == "llm":
        if not cfg.LLM_API_KEY:
            raise ScorerConfigError("SCORER=llm requires LLM_API_KEY")
        client = GeminiClient(
            api_key=cfg.LLM_API_KEY,
            model=cfg.LLM_MODEL,
            base_url=cfg.LLM_BASE_URL,
            timeout=cfg.LLM_TIMEOUT,
            temperature=cfg.LLM_TEMPERATURE,
            max_output_tokens=cfg.LLM_MAX_OUTPUT_TOKENS,
        )
        return LanguageModelScorer(client, fallback=HeuristicScorer(rng=rng))
    raise ScorerConfigError(f"unknown scorer {kind!r} (expected 'heuristic' or 'llm')")
