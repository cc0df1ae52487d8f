"""Tests for the heuristic and language-model scorers."""

from __future__ import annotations

import json
import random

import pytest

from app.core.settings import Settings
from app.models import RecommendationType
from app.services.llm_client import LLMPaymentRequiredError, LLMRateLimitError, LLMResponseError
from app.services.scorers import (
    EmptyBatchError,
    EquitySnapshot,
    HeuristicScorer,
    LanguageModelScorer,
    ScoredRecommendation,
    ScorerConfigError,
    build_prompt,
    build_scorer,
    clamp_confidence,
    clamp_target_price,
    extract_json_array,
    finalize_recommendation,
)

BUY_WATCH = {RecommendationType.BUY, RecommendationType.WATCH}
HOLD_WATCH = {RecommendationType.HOLD, RecommendationType.WATCH}


def _eq(symbol: str, change: float, price: float = 100.0) -> EquitySnapshot:
    return EquitySnapshot(symbol=symbol, name=f"{symbol} Ltd", sector="Tech", current_price=price, price_change_24h=change)


class FakeClient:
    def __init__(self, text: str | None = None, exc: Exception | None = None):
        self.text = text
        self.exc = exc
        self.prompts: list[str] = []
        self.closed = False

    async def agenerate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.exc is not None:
            raise self.exc
        return self.text

    def close(self) -> None:
        self.closed = True


# ── clamping ──────────────────────────────────────────────────────────────────

class TestClamping:
    @pytest.mark.parametrize("raw,expected", [(-0.3, 0.0), (1.4, 1.0), (0.42, 0.42), (0.0, 0.0), (1.0, 1.0)])
    def test_confidence(self, raw, expected):
        assert clamp_confidence(raw) == expected

    @pytest.mark.parametrize("raw,expected", [(-50, 0.0), (0, 0.0), (123.456, 123.456)])
    def test_target_price(self, raw, expected):
        assert clamp_target_price(raw) == expected

    def test_finalize_applies_both_and_defaults_reasoning(self):
        rec = finalize_recommendation(
            ScoredRecommendation("X", "buy", confidence_score=1.4, target_price=-50, reasoning="  ")
        )
        assert rec.recommendation_type is RecommendationType.BUY
        assert rec.confidence_score == 1.0
        assert rec.target_price == 0.0
        assert rec.reasoning == "AI-generated recommendation"


# ── heuristic ─────────────────────────────────────────────────────────────────

class TestHeuristicScorer:
    def test_strong_gain_buckets(self):
        for seed in range(200):
            rec = HeuristicScorer(rng=random.Random(seed)).score_one(_eq("UP", 3.5))
            assert rec.recommendation_type in BUY_WATCH
            assert 0.75 <= rec.confidence_score <= 0.95
            assert 105.0 <= rec.target_price <= 120.0
            assert "+3.50%" in rec.reasoning

    def test_sharp_drop_buckets(self):
        for seed in range(200):
            rec = HeuristicScorer(rng=random.Random(seed)).score_one(_eq("DOWN", -4.0))
            assert rec.recommendation_type in BUY_WATCH
            assert 0.65 <= rec.confidence_score <= 0.90
            assert 110.0 <= rec.target_price <= 130.0
            assert "-4.00%" in rec.reasoning

    def test_flat_buckets(self):
        for seed in range(200):
            rec = HeuristicScorer(rng=random.Random(seed)).score_one(_eq("FLAT", 2.0))
            assert rec.recommendation_type in HOLD_WATCH
            assert 0.60 <= rec.confidence_score <= 0.90
            assert 102.0 <= rec.target_price <= 110.0

    def test_buy_probability_roughly_seventy_percent(self):
        scorer = HeuristicScorer(rng=random.Random(7))
        buys = sum(
            scorer.score_one(_eq("UP", 5.0)).recommendation_type is RecommendationType.BUY
            for _ in range(2000)
        )
        assert 0.65 < buys / 2000 < 0.75

    def test_never_sells(self):
        scorer = HeuristicScorer(rng=random.Random(1))
        types = {scorer.score_one(_eq("S", c)).recommendation_type for c in (-9, -1, 0, 1, 9) for _ in range(50)}
        assert RecommendationType.SELL not in types

    @pytest.mark.asyncio
    async def test_one_per_equity(self):
        batch = [_eq("A", 3), _eq("B", -3), _eq("C", 0)]
        outcome = await HeuristicScorer(rng=random.Random(0)).score(batch)
        assert [r.symbol for r in outcome.recommendations] == ["A", "B", "C"]
        assert outcome.source == "heuristic"

    @pytest.mark.asyncio
    async def test_empty_batch_rejected(self):
        with pytest.raises(EmptyBatchError):
            await HeuristicScorer().score([])


# ── language model ────────────────────────────────────────────────────────────

class TestExtractJsonArray:
    def test_array_inside_prose(self):
        text = 'Sure! Here you go:\n```json\n[{"symbol": "A"}]\n```\nGood luck.'
        assert extract_json_array(text) == [{"symbol": "A"}]

    def test_missing_array(self):
        with pytest.raises(ValueError):
            extract_json_array("I cannot help with that.")

    def test_truncated_array(self):
        with pytest.raises(ValueError):
            extract_json_array('[{"symbol": "A", ] trailing [')


class TestBuildPrompt:
    def test_prompt_carries_every_field(self):
        prompt = build_prompt([EquitySnapshot("TCS", "Tata", "IT", 3650.5, -0.85, 2500000, 1320000000000)])
        for token in ("TCS", "Tata", "IT", "3650.5", "-0.85", "2500000", "1320000000000", "JSON array"):
            assert token in prompt


@pytest.mark.asyncio
class TestLanguageModelScorer:
    async def test_valid_response_is_used(self):
        payload = [
            {"symbol": "A", "recommendation_type": "sell", "confidence_score": 0.8, "target_price": 90, "reasoning": "weak"},
            {"symbol": "B", "recommendation_type": "HOLD", "confidence_score": 0.6, "target_price": 101, "reasoning": "flat"},
        ]
        scorer = LanguageModelScorer(FakeClient(text=f"Analysis:\n{json.dumps(payload)}"))
        outcome = await scorer.score([_eq("A", 1), _eq("B", 1)])

        assert outcome.source == "llm"
        assert outcome.upstream_status == "ok"
        assert outcome.rejected == 0
        by_symbol = {r.symbol: r for r in outcome.recommendations}
        assert by_symbol["A"].recommendation_type is RecommendationType.SELL
        assert by_symbol["B"].recommendation_type is RecommendationType.HOLD

    async def test_out_of_range_values_survive_to_clamp(self):
        payload = [{"symbol": "A", "recommendation_type": "buy", "confidence_score": 1.4, "target_price": -50}]
        outcome = await LanguageModelScorer(FakeClient(text=json.dumps(payload))).score([_eq("A", 1)])
        final = finalize_recommendation(outcome.recommendations[0])
        assert final.confidence_score == 1.0
        assert final.target_price == 0.0

    async def test_invalid_and_unknown_entries_rejected_and_filled(self):
        payload = [
            {"symbol": "A", "recommendation_type": "buy", "confidence_score": 0.9, "target_price": 110},
            {"symbol": "A", "recommendation_type": "sell", "confidence_score": 0.9, "target_price": 80},
            {"symbol": "ZZZ", "recommendation_type": "buy", "confidence_score": 0.9, "target_price": 1},
            {"symbol": "B", "recommendation_type": "moon", "confidence_score": 0.9, "target_price": 1},
            "not an object",
        ]
        scorer = LanguageModelScorer(FakeClient(text=json.dumps(payload)), fallback=HeuristicScorer(rng=random.Random(3)))
        outcome = await scorer.score([_eq("A", 1), _eq("B", 3)])

        assert outcome.rejected == 4
        assert outcome.source == "llm+heuristic"
        assert [r.symbol for r in outcome.recommendations] == ["A", "B"]
        assert outcome.recommendations[0].recommendation_type is RecommendationType.BUY
        assert outcome.recommendations[1].recommendation_type in BUY_WATCH

    async def test_symbols_match_exactly(self):
        payload = [{"symbol": "a", "recommendation_type": "sell", "confidence_score": 0.8, "target_price": 90}]
        scorer = LanguageModelScorer(FakeClient(text=json.dumps(payload)), fallback=HeuristicScorer(rng=random.Random(0)))
        outcome = await scorer.score([_eq("A", 3.5)])

        assert outcome.rejected == 1
        assert outcome.source == "heuristic_fallback"
        assert outcome.recommendations[0].recommendation_type in BUY_WATCH

    async def test_aclose_closes_client(self):
        client = FakeClient(text="[]")
        await LanguageModelScorer(client).aclose()
        assert client.closed is True

    @pytest.mark.parametrize(
        "exc,category",
        [
            (LLMRateLimitError(429, "slow down"), "rate_limited"),
            (LLMPaymentRequiredError(402, "pay up"), "payment_required"),
            (LLMResponseError("no candidates"), "bad_response"),
        ],
    )
    async def test_upstream_failure_falls_back(self, exc, category):
        scorer = LanguageModelScorer(FakeClient(exc=exc), fallback=HeuristicScorer(rng=random.Random(0)))
        outcome = await scorer.score([_eq("A", 3.5)])

        assert outcome.source == "heuristic_fallback"
        assert outcome.upstream_status == category
        assert len(outcome.recommendations) == 1
        assert outcome.recommendations[0].recommendation_type in BUY_WATCH

    async def test_unparseable_text_falls_back(self):
        scorer = LanguageModelScorer(FakeClient(text="no json here"))
        outcome = await scorer.score([_eq("A", 0), _eq("B", 0)])
        assert outcome.source == "heuristic_fallback"
        assert outcome.upstream_status == "unparseable"
        assert len(outcome.recommendations) == 2

    async def test_all_entries_invalid_falls_back(self):
        payload = [{"symbol": "A", "recommendation_type": "buy", "confidence_score": "high", "target_price": 1}]
        outcome = await LanguageModelScorer(FakeClient(text=json.dumps(payload))).score([_eq("A", 0)])
        assert outcome.source == "heuristic_fallback"
        assert outcome.rejected == 1


class TestBuildScorer:
    def test_heuristic_default(self):
        assert isinstance(build_scorer(Settings(SCORER="heuristic")), HeuristicScorer)

    def test_llm_requires_key(self):
        with pytest.raises(ScorerConfigError):
            build_scorer(Settings(SCORER="llm", LLM_API_KEY=None))

    def test_llm_with_key(self):
        scorer = build_scorer(Settings(SCORER="llm", LLM_API_KEY="k"))
        assert isinstance(scorer, LanguageModelScorer)
        assert scorer.client.model == "gemini-1.5-flash"

    def test_override_kind(self):
        assert isinstance(build_scorer(Settings(SCORER="llm", LLM_API_KEY="k"), kind="heuristic"), HeuristicScorer)

    def test_unknown_kind(self):
        with pytest.raises(ScorerConfigError):
            build_scorer(Settings(), kind="oracle")
